"""
Component wiring for NomadFinance

Builds one session's worth of collaborators: storage backends, the audit
logger, the finance store and the identity gate in front of it.

Control flow at runtime:
    IdentityGate resolves a user id
    -> FinanceStore loads that user's collections
    -> views read snapshots and call add/delete back into the store
"""

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog

from nomad_finance.audit import AuditLogger
from nomad_finance.config import AppSettings, get_settings
from nomad_finance.identity import IdentityGate
from nomad_finance.services.storage import (
    AccountStorageInterface,
    FinanceDataInterface,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    LocalAccountStorage,
    LocalFinanceStorage,
    LocalJSONFile,
)
from nomad_finance.store import FinanceStore


logger = structlog.get_logger("nomad_finance.orchestrator")


@dataclass
class AppComponents:
    """Everything one session needs, passed explicitly to the views."""
    store: FinanceStore
    gate: IdentityGate
    audit_logger: AuditLogger
    app_settings: AppSettings
    backend: str


def _local_backends(app_settings: AppSettings) -> tuple[FinanceDataInterface, AccountStorageInterface]:
    document = LocalJSONFile(Path(app_settings.local_data_path))
    return LocalFinanceStorage(document), LocalAccountStorage(document)


def create_app_components(
    use_storage: bool = True,
    app_settings: Optional[AppSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to try the configured remote backend.
                    False (or a failed Sheets setup) falls back to the
                    local JSON file used by the offline demo.
        app_settings: Override for the loaded AppSettings.
    """
    app_settings = app_settings or get_settings().app
    audit_logger = AuditLogger()
    backend = "local"

    finance_storage: FinanceDataInterface
    account_storage: AccountStorageInterface

    if use_storage and app_settings.storage_backend == "sheets":
        try:
            sheets_client = GoogleSheetsClient()
            finance_storage = GoogleSheetsFinanceStorage(sheets_client)
            account_storage = GoogleSheetsAccountStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            backend = "sheets"
        except Exception as e:
            # Sheets not configured - continue with the offline demo file
            logger.warning("sheets_storage_unavailable", error=str(e))
            finance_storage, account_storage = _local_backends(app_settings)
    else:
        finance_storage, account_storage = _local_backends(app_settings)

    store = FinanceStore(
        storage=finance_storage,
        audit_logger=audit_logger,
        default_exchange_rate=Decimal(str(app_settings.default_exchange_rate)),
        legacy_exchange_rates=app_settings.legacy_exchange_rates_list,
    )
    gate = IdentityGate(account_storage, store, audit_logger)

    return AppComponents(
        store=store,
        gate=gate,
        audit_logger=audit_logger,
        app_settings=app_settings,
        backend=backend,
    )
