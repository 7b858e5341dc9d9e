"""
Storage Services Package

Abstract interfaces plus two implementations: Google Sheets (deployed)
and a local JSON document (offline demo).
"""

from nomad_finance.services.storage.interface import (
    ASSETS,
    EXPENSES,
    INCOMES,
    RECORD_COLLECTIONS,
    SETTINGS,
    USERS,
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    FinanceDataInterface,
    Row,
    StorageError,
)
from nomad_finance.services.storage.google_sheets import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
)
from nomad_finance.services.storage.local_json import (
    LocalAccountStorage,
    LocalFinanceStorage,
    LocalJSONFile,
)

__all__ = [
    # Collections
    "ASSETS",
    "EXPENSES",
    "INCOMES",
    "RECORD_COLLECTIONS",
    "SETTINGS",
    "USERS",
    "Row",
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "FinanceDataInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    # Local implementation
    "LocalAccountStorage",
    "LocalFinanceStorage",
    "LocalJSONFile",
]
