"""
Google Sheets Storage Implementation

Each collection lives in its own worksheet; the first row holds the column
names. Worksheets are created with their headers on first use.

TRADEOFFS:
- Every cell comes back as text, so callers coerce numbers and booleans
- No transactions or server-side filtering: we scan and filter in Python
- gspread is synchronous; calls run in a worker thread so the event loop
  keeps serving optimistic updates while a request is in flight
- Row numbers shift on delete, so every find-then-write runs under the
  client's write lock
"""

import asyncio
import threading
from typing import Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from nomad_finance.config import get_settings
from nomad_finance.models.account import Account
from nomad_finance.models.audit import AuditEvent
from nomad_finance.services.storage.interface import (
    ASSETS,
    DATE_ORDERED_COLLECTIONS,
    EXPENSES,
    INCOMES,
    SETTINGS,
    USERS,
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    FinanceDataInterface,
    Row,
    StorageError,
)


COLUMNS: dict[str, list[str]] = {
    USERS: ["id", "username", "first_name", "last_name", "password"],
    EXPENSES: [
        "id",
        "user_id",
        "title",
        "amount",
        "category",
        "date",
        "is_recurring",
        "frequency",
        "note",
    ],
    INCOMES: ["id", "user_id", "amount", "source", "date", "type"],
    ASSETS: ["id", "user_id", "name", "amount", "type", "currency"],
    SETTINGS: [
        "user_id",
        "exchange_rate",
        "savings_goal_usd",
        "recurring_enabled",
        "user_name",
        "monthly_budget",
        "theme",
    ],
}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "collection",
    "entity_id",
    "description",
    "details_json",
    "error_message",
]


def row_to_values(columns: list[str], row: Row) -> list:
    """Flatten a row dict into cell values in column order."""
    values = []
    for column in columns:
        value = row.get(column)
        values.append("" if value is None else value)
    return values


def values_to_row(columns: list[str], values: list) -> Row:
    """Zip a sheet row back into a dict; short rows are padded with blanks."""
    padded = list(values) + [""] * (len(columns) - len(values))
    return dict(zip(columns, padded))


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self.write_lock = threading.Lock()
        self._settings = get_settings().google_sheets
        self._sheet_names = {
            USERS: self._settings.users_sheet_name,
            EXPENSES: self._settings.expenses_sheet_name,
            INCOMES: self._settings.incomes_sheet_name,
            ASSETS: self._settings.assets_sheet_name,
            SETTINGS: self._settings.settings_sheet_name,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        return self._get_or_create(self._sheet_names[collection], COLUMNS[collection], rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class _SheetsRepository:
    """Row scanning helpers shared by the Sheets-backed stores."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _scan(self, collection: str) -> list[tuple[int, Row]]:
        """Return (sheet_row_number, row) pairs, skipping the header and blank rows."""
        sheet = self._client.get_collection_sheet(collection)
        columns = COLUMNS[collection]
        found = []
        # Row 1 is the header
        for idx, values in enumerate(sheet.get_all_values()[1:], start=2):
            if not values or not values[0]:
                continue
            found.append((idx, values_to_row(columns, values)))
        return found

    def _find(self, collection: str, key: str, value: str) -> Optional[tuple[int, Row]]:
        for idx, row in self._scan(collection):
            if row.get(key) == value:
                return idx, row
        return None

    def _append(self, collection: str, row: Row) -> None:
        sheet = self._client.get_collection_sheet(collection)
        sheet.append_row(row_to_values(COLUMNS[collection], row), value_input_option="RAW")

    def _replace(self, collection: str, idx: int, row: Row) -> None:
        sheet = self._client.get_collection_sheet(collection)
        sheet.update(range_name=f"A{idx}", values=[row_to_values(COLUMNS[collection], row)])

    def _upsert(self, collection: str, key: str, row: Row) -> Row:
        with self._client.write_lock:
            match = self._find(collection, key, str(row[key]))
            if match is None:
                self._append(collection, row)
            else:
                self._replace(collection, match[0], row)
        return row

    def _append_once(self, collection: str, row: Row) -> None:
        """Append unless a previous attempt already wrote a row with this id."""
        with self._client.write_lock:
            if self._find(collection, "id", row["id"]) is None:
                self._append(collection, row)

    def _delete(self, collection: str, row_id: str) -> bool:
        with self._client.write_lock:
            match = self._find(collection, "id", row_id)
            if match is None:
                return False
            self._client.get_collection_sheet(collection).delete_rows(match[0])
            return True


class GoogleSheetsFinanceStorage(_SheetsRepository, FinanceDataInterface):
    """
    Google Sheets implementation of the finance collections.

    Ids for new rows are generated here (uuid4), standing in for the
    database-assigned ids of a real row store.
    """

    async def list_rows(self, collection: str, user_id: str) -> list[Row]:
        """List a user's rows, newest first for date-ordered collections."""
        try:
            scanned = await asyncio.to_thread(self._scan, collection)
        except Exception as e:
            raise StorageError(f"Failed to list {collection}: {e}") from e

        rows = [row for _, row in scanned if row.get("user_id") == user_id]
        if collection in DATE_ORDERED_COLLECTIONS:
            # ISO dates sort correctly as strings
            rows.sort(key=lambda r: r.get("date") or "", reverse=True)
        return rows

    async def insert_row(self, collection: str, row: Row) -> Row:
        """Append a row and return it with its new id."""
        # One id for every attempt, so a retried append cannot duplicate the row
        stored = {**row, "id": str(uuid4())}
        await self._insert_with_retry(collection, stored)
        return stored

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _insert_with_retry(self, collection: str, stored: Row) -> None:
        try:
            await asyncio.to_thread(self._append_once, collection, stored)
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection}: {e}") from e

    async def delete_row(self, collection: str, row_id: str) -> bool:
        """Delete a row by id."""
        try:
            return await asyncio.to_thread(self._delete, collection, row_id)
        except Exception as e:
            raise StorageError(f"Failed to delete from {collection}: {e}") from e

    async def get_settings_row(self, user_id: str) -> Optional[Row]:
        try:
            match = await asyncio.to_thread(self._find, SETTINGS, "user_id", user_id)
        except Exception as e:
            raise StorageError(f"Failed to read settings: {e}") from e
        return match[1] if match else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_settings_row(self, row: Row) -> Row:
        try:
            return await asyncio.to_thread(self._upsert, SETTINGS, "user_id", row)
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}") from e


class GoogleSheetsAccountStorage(_SheetsRepository, AccountStorageInterface):
    """Google Sheets implementation of the users collection."""

    async def get_account(self, account_id: str) -> Optional[Account]:
        try:
            match = await asyncio.to_thread(self._find, USERS, "id", account_id)
        except Exception as e:
            raise StorageError(f"Failed to look up account: {e}") from e
        return Account.from_row(match[1]) if match else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_account(self, account: Account) -> Account:
        try:
            await asyncio.to_thread(self._upsert, USERS, "id", account.to_row())
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}") from e
        return account


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        def _append() -> None:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

        try:
            await asyncio.to_thread(_append)
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e
