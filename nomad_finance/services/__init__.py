"""Services package."""

from nomad_finance.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    FinanceDataInterface,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    LocalAccountStorage,
    LocalFinanceStorage,
    LocalJSONFile,
    StorageError,
)

__all__ = [
    "AccountStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "FinanceDataInterface",
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    "LocalAccountStorage",
    "LocalFinanceStorage",
    "LocalJSONFile",
    "StorageError",
]
