"""
Finance Store

Session-scoped state for one signed-in user: expenses, incomes, assets and
settings, mirrored from the remote store.

Every add follows optimistic-update-then-reconcile:
1. Prepend the record under a provisional id (status PENDING)
2. Insert it remotely
3. On success swap in the service id at the same list position (CONFIRMED)
4. On failure drop the record and report to the audit logger

Deletes are applied locally first and never rolled back; settings updates
are merged locally first and kept even if the upsert fails.

One store is built per session and handed to the views explicitly; there
is no module-level state.
"""

import asyncio
import itertools
import time
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from nomad_finance.audit import AuditLogger
from nomad_finance.models.audit import AuditEvent, AuditEventBuilder
from nomad_finance.models.defaults import (
    default_assets,
    default_expenses,
    default_incomes,
    default_settings,
)
from nomad_finance.models.records import (
    Asset,
    AssetDraft,
    Expense,
    ExpenseDraft,
    FinanceSettings,
    Income,
    IncomeDraft,
    RecordDraft,
    SyncStatus,
    TrackedRecord,
)
from nomad_finance.services.storage import (
    ASSETS,
    EXPENSES,
    INCOMES,
    RECORD_COLLECTIONS,
    SETTINGS,
    FinanceDataInterface,
    Row,
    StorageError,
)


RECORD_MODELS: dict[str, type[TrackedRecord]] = {
    EXPENSES: Expense,
    INCOMES: Income,
    ASSETS: Asset,
}


class FinanceSnapshot(BaseModel):
    """Immutable view of the store handed to listeners and views."""
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str]
    expenses: tuple[Expense, ...]
    incomes: tuple[Income, ...]
    assets: tuple[Asset, ...]
    settings: FinanceSettings


Listener = Callable[[FinanceSnapshot], None]


class FinanceStore:
    """
    Holds the active user's four collections and syncs mutations remotely.

    All mutations are no-ops while no user is active.
    """

    def __init__(
        self,
        storage: FinanceDataInterface,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
        default_exchange_rate: Union[Decimal, float, str] = Decimal("180.0"),
        legacy_exchange_rates: Iterable[Union[Decimal, float, str]] = (Decimal("120.0"),),
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today
        self._default_rate = Decimal(str(default_exchange_rate))
        self._legacy_rates = frozenset(Decimal(str(rate)) for rate in legacy_exchange_rates)

        self._user_id: Optional[str] = None
        # Bumped on every user switch; in-flight work from an older
        # generation must not touch the current collections.
        self._generation = 0
        self._sequence = itertools.count(1)
        self._pending_deletes: set[str] = set()
        self._listeners: list[Listener] = []

        self._records: dict[str, list[TrackedRecord]] = {}
        self._settings = default_settings(self._default_rate)
        self._reset_to_defaults()

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def expenses(self) -> list[Expense]:
        return list(self._records[EXPENSES])

    @property
    def incomes(self) -> list[Income]:
        return list(self._records[INCOMES])

    @property
    def assets(self) -> list[Asset]:
        return list(self._records[ASSETS])

    @property
    def settings(self) -> FinanceSettings:
        return self._settings

    def snapshot(self) -> FinanceSnapshot:
        return FinanceSnapshot(
            user_id=self._user_id,
            expenses=tuple(self._records[EXPENSES]),
            incomes=tuple(self._records[INCOMES]),
            assets=tuple(self._records[ASSETS]),
            settings=self._settings,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # -------------------------------------------------------------------------
    # User switching and loading
    # -------------------------------------------------------------------------

    async def set_user_id(self, user_id: Optional[str]) -> None:
        """
        Switch the active user.

        None resets to the built-in demo data. A new id clears everything
        first, then reloads that user's collections and settings.
        """
        if user_id is not None:
            user_id = str(user_id)
        if user_id == self._user_id:
            return

        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        self._pending_deletes.clear()

        if user_id is None:
            self._reset_to_defaults()
            self._notify()
            return

        for collection in RECORD_COLLECTIONS:
            self._records[collection] = []
        self._settings = default_settings(self._default_rate)
        self._notify()

        await self._load(user_id, generation)

    def _reset_to_defaults(self) -> None:
        today = self._today()
        self._records = {
            EXPENSES: list(default_expenses(today)),
            INCOMES: list(default_incomes(today)),
            ASSETS: list(default_assets()),
        }
        self._settings = default_settings(self._default_rate)

    async def _load(self, user_id: str, generation: int) -> None:
        try:
            expense_rows, income_rows, asset_rows, settings_row = await asyncio.gather(
                self._storage.list_rows(EXPENSES, user_id),
                self._storage.list_rows(INCOMES, user_id),
                self._storage.list_rows(ASSETS, user_id),
                self._storage.get_settings_row(user_id),
            )
        except StorageError as e:
            if generation == self._generation:
                await self._log(AuditEventBuilder.data_load_failed(user_id, str(e)))
            return

        if generation != self._generation:
            return

        loaded: dict[str, list[TrackedRecord]] = {}
        for collection, rows in (
            (EXPENSES, expense_rows),
            (INCOMES, income_rows),
            (ASSETS, asset_rows),
        ):
            loaded[collection] = await self._coerce_rows(user_id, collection, rows)

        settings = await self._resolve_settings(user_id, settings_row)

        if generation != self._generation:
            return

        self._records.update(loaded)
        self._settings = settings
        self._notify()
        await self._log(AuditEventBuilder.data_loaded(
            user_id,
            {collection: len(records) for collection, records in loaded.items()},
        ))

    async def _coerce_rows(self, user_id: str, collection: str, rows: list[Row]) -> list[TrackedRecord]:
        """Validate remote rows; text numbers become Decimals, bad rows are skipped."""
        model = RECORD_MODELS[collection]
        records = []
        for row in rows:
            try:
                records.append(model.from_row(row))
            except (ValidationError, KeyError) as e:
                row_id = row.get("id")
                await self._log(AuditEventBuilder.row_skipped(
                    user_id, collection, str(row_id) if row_id is not None else None, str(e),
                ))
        return records

    async def _resolve_settings(self, user_id: str, row: Optional[Row]) -> FinanceSettings:
        """Use the stored settings row, creating it from defaults if missing."""
        if row is None:
            settings = default_settings(self._default_rate)
            if await self._upsert_settings(user_id, settings):
                await self._log(AuditEventBuilder.settings_created(user_id))
            return settings

        try:
            settings = FinanceSettings.from_row(row)
        except ValidationError as e:
            await self._log(AuditEventBuilder.row_skipped(user_id, SETTINGS, user_id, str(e)))
            return default_settings(self._default_rate)

        if settings.exchange_rate in self._legacy_rates:
            old_rate = settings.exchange_rate
            settings = settings.merged(exchange_rate=self._default_rate)
            if await self._upsert_settings(user_id, settings):
                await self._log(AuditEventBuilder.settings_migrated(
                    user_id, str(old_rate), str(self._default_rate),
                ))
        return settings

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_expense(self, draft: Union[ExpenseDraft, dict]) -> Optional[Expense]:
        return await self._add(EXPENSES, ExpenseDraft.model_validate(draft))

    async def add_income(self, draft: Union[IncomeDraft, dict]) -> Optional[Income]:
        return await self._add(INCOMES, IncomeDraft.model_validate(draft))

    async def add_asset(self, draft: Union[AssetDraft, dict]) -> Optional[Asset]:
        return await self._add(ASSETS, AssetDraft.model_validate(draft))

    async def delete_expense(self, record_id: str) -> None:
        await self._delete(EXPENSES, record_id)

    async def delete_income(self, record_id: str) -> None:
        await self._delete(INCOMES, record_id)

    async def delete_asset(self, record_id: str) -> None:
        await self._delete(ASSETS, record_id)

    async def update_settings(self, **changes: Any) -> Optional[FinanceSettings]:
        """
        Merge `changes` into the settings now, then upsert the merged row.

        Invalid values raise ValidationError before anything changes.
        """
        if self._user_id is None:
            return None
        user_id = self._user_id

        merged = self._settings.merged(**changes)
        self._settings = merged
        self._notify()

        if await self._upsert_settings(user_id, merged):
            await self._log(AuditEventBuilder.settings_updated(user_id, sorted(changes)))
        return merged

    async def _add(self, collection: str, draft: RecordDraft) -> Optional[TrackedRecord]:
        if self._user_id is None:
            return None
        user_id = self._user_id
        generation = self._generation

        provisional_id = self._next_provisional_id()
        model = RECORD_MODELS[collection]
        pending = model(id=provisional_id, status=SyncStatus.PENDING, **draft.model_dump())
        self._records[collection].insert(0, pending)
        self._notify()

        try:
            stored = await self._storage.insert_row(collection, draft.to_row(user_id))
            service_id = str(stored["id"])
        except (StorageError, KeyError) as e:
            if generation == self._generation:
                self._pending_deletes.discard(provisional_id)
                if self._remove(collection, provisional_id) is not None:
                    self._notify()
            await self._log(AuditEventBuilder.record_create_failed(
                user_id, collection, provisional_id, str(e),
            ))
            return None

        await self._log(AuditEventBuilder.record_created(user_id, collection, provisional_id, service_id))

        if generation != self._generation:
            return None

        if provisional_id in self._pending_deletes:
            # Deleted while the insert was in flight; remove the new row too
            self._pending_deletes.discard(provisional_id)
            await self._remote_delete(user_id, collection, service_id)
            return None

        return self._reconcile(collection, provisional_id, service_id)

    async def _delete(self, collection: str, record_id: str) -> None:
        if self._user_id is None:
            return
        user_id = self._user_id

        removed = self._remove(collection, record_id)
        if removed is not None:
            self._notify()
            if removed.is_pending:
                self._pending_deletes.add(record_id)
                return

        # No rollback if this fails: the local copy stays deleted
        await self._remote_delete(user_id, collection, record_id)

    async def _remote_delete(self, user_id: str, collection: str, record_id: str) -> None:
        try:
            await self._storage.delete_row(collection, record_id)
        except StorageError as e:
            await self._log(AuditEventBuilder.record_delete_failed(user_id, collection, record_id, str(e)))
            return
        await self._log(AuditEventBuilder.record_deleted(user_id, collection, record_id))

    async def _upsert_settings(self, user_id: str, settings: FinanceSettings) -> bool:
        try:
            await self._storage.upsert_settings_row(settings.to_row(user_id))
        except StorageError as e:
            await self._log(AuditEventBuilder.settings_update_failed(user_id, str(e)))
            return False
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _next_provisional_id(self) -> str:
        millis = time.time_ns() // 1_000_000
        return f"tmp-{millis}-{next(self._sequence)}"

    def _reconcile(self, collection: str, provisional_id: str, service_id: str) -> Optional[TrackedRecord]:
        """Swap the provisional id for the service id, keeping the list position."""
        records = self._records[collection]
        for index, record in enumerate(records):
            if record.id == provisional_id:
                records[index] = record.confirmed(service_id)
                self._notify()
                return records[index]
        return None

    def _remove(self, collection: str, record_id: str) -> Optional[TrackedRecord]:
        records = self._records[collection]
        for index, record in enumerate(records):
            if record.id == record_id:
                return records.pop(index)
        return None

    async def _log(self, event: AuditEvent) -> None:
        await self._audit_logger.log(event)
