"""
Local JSON Storage (offline demo mode)

Used when no spreadsheet is configured. The whole dataset is one JSON
document with fixed top-level keys (users, expenses, incomes, assets,
settings), rewritten atomically after every change.
"""

import json
from pathlib import Path
from typing import Optional
from uuid import uuid4

from nomad_finance.models.account import Account
from nomad_finance.services.storage.interface import (
    ASSETS,
    DATE_ORDERED_COLLECTIONS,
    EXPENSES,
    INCOMES,
    SETTINGS,
    USERS,
    AccountStorageInterface,
    FinanceDataInterface,
    Row,
    StorageError,
)


CACHE_KEYS = (USERS, EXPENSES, INCOMES, ASSETS, SETTINGS)


class LocalJSONFile:
    """
    Crash-safe JSON document holding every collection.

    Writes go to a temp file first and are moved into place, so a crash
    never leaves a half-written document behind.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, list[Row]]:
        data: dict[str, list[Row]] = {key: [] for key in CACHE_KEYS}
        if not self._path.exists():
            return data
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupted JSON data in {self._path}") from e
        except OSError as e:
            raise StorageError(f"Unable to read from {self._path}") from e

        if not isinstance(payload, dict):
            raise StorageError(f"Expected an object at the top of {self._path}")
        for key in CACHE_KEYS:
            data[key] = list(payload.get(key, []))
        return data

    def save(self, data: dict[str, list[Row]]) -> None:
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
                handle.flush()
            temp_path.replace(self._path)
        except OSError as e:
            raise StorageError(f"Unable to write to {self._path}") from e


class LocalFinanceStorage(FinanceDataInterface):
    """Finance collections stored in the local JSON document."""

    def __init__(self, document: LocalJSONFile):
        self._document = document

    async def list_rows(self, collection: str, user_id: str) -> list[Row]:
        rows = [row for row in self._document.load()[collection] if row.get("user_id") == user_id]
        if collection in DATE_ORDERED_COLLECTIONS:
            rows.sort(key=lambda r: r.get("date") or "", reverse=True)
        return rows

    async def insert_row(self, collection: str, row: Row) -> Row:
        stored = {**row, "id": str(uuid4())}
        # No await between load and save, so this is atomic on the event loop
        data = self._document.load()
        data[collection].append(stored)
        self._document.save(data)
        return stored

    async def delete_row(self, collection: str, row_id: str) -> bool:
        data = self._document.load()
        remaining = [row for row in data[collection] if row.get("id") != row_id]
        if len(remaining) == len(data[collection]):
            return False
        data[collection] = remaining
        self._document.save(data)
        return True

    async def get_settings_row(self, user_id: str) -> Optional[Row]:
        for row in self._document.load()[SETTINGS]:
            if row.get("user_id") == user_id:
                return row
        return None

    async def upsert_settings_row(self, row: Row) -> Row:
        data = self._document.load()
        data[SETTINGS] = [r for r in data[SETTINGS] if r.get("user_id") != row["user_id"]]
        data[SETTINGS].append(row)
        self._document.save(data)
        return row


class LocalAccountStorage(AccountStorageInterface):
    """Users collection stored in the local JSON document."""

    def __init__(self, document: LocalJSONFile):
        self._document = document

    async def get_account(self, account_id: str) -> Optional[Account]:
        for row in self._document.load()[USERS]:
            if str(row.get("id")) == account_id:
                return Account.from_row(row)
        return None

    async def upsert_account(self, account: Account) -> Account:
        data = self._document.load()
        data[USERS] = [r for r in data[USERS] if str(r.get("id")) != account.id]
        data[USERS].append(account.to_row())
        self._document.save(data)
        return account
