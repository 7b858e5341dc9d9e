"""
Abstract Storage Interfaces

The remote store is a plain row store: four per-user collections plus a
users collection. We only need the handful of operations below, so this is
deliberately not an ORM. Rows are dicts of JSON-native values; numbers may
come back as text and it is the caller's job to coerce them.

Implementations:
- Google Sheets (the deployed backend)
- Local JSON file (offline demo mode)
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from nomad_finance.models.account import Account
from nomad_finance.models.audit import AuditEvent


Row = dict[str, Any]

EXPENSES = "expenses"
INCOMES = "incomes"
ASSETS = "assets"
SETTINGS = "settings"
USERS = "users"

RECORD_COLLECTIONS = (EXPENSES, INCOMES, ASSETS)

# Collections whose rows come back newest first
DATE_ORDERED_COLLECTIONS = (EXPENSES, INCOMES)


class AccountStorageInterface(ABC):
    """Point lookup and upsert over the users collection."""

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """
        Look up an account by its stringified platform id.

        Returns:
            The account if found, None otherwise

        Raises:
            StorageError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def upsert_account(self, account: Account) -> Account:
        """
        Create or replace the account row with the same id.

        Raises:
            StorageError: If the write fails
        """
        pass


class FinanceDataInterface(ABC):
    """
    Row-oriented CRUD over the expenses, incomes, assets and settings
    collections. Every row carries a user_id foreign key.
    """

    @abstractmethod
    async def list_rows(self, collection: str, user_id: str) -> list[Row]:
        """
        Return every row in `collection` owned by `user_id`.

        Expenses and incomes are ordered by date, newest first.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert_row(self, collection: str, row: Row) -> Row:
        """
        Insert a row and return it as stored, including the service-assigned id.

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def delete_row(self, collection: str, row_id: str) -> bool:
        """
        Delete a row by id.

        Returns:
            True if a row was deleted, False if no row had that id

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def get_settings_row(self, user_id: str) -> Optional[Row]:
        """Return the settings row for `user_id`, or None if there is none yet."""
        pass

    @abstractmethod
    async def upsert_settings_row(self, row: Row) -> Row:
        """
        Create or replace the settings row with the same user_id.

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
