"""
Tests for the FinanceStore optimistic-update flow.

The remote store is replaced by an in-memory fake whose calls can be held
open (to observe the pending state) or made to fail.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from nomad_finance.audit import AuditLogger
from nomad_finance.models.audit import AuditEvent, AuditEventType
from nomad_finance.models.records import (
    ExpenseCategory,
    ExpenseDraft,
    FinanceSettings,
    SyncStatus,
)
from nomad_finance.services.storage import (
    ASSETS,
    EXPENSES,
    INCOMES,
    FinanceDataInterface,
    Row,
    StorageError,
)
from nomad_finance.store import FinanceStore


TODAY = date(2024, 1, 10)


class FakeFinanceStorage(FinanceDataInterface):
    """In-memory row store with switchable failures and held calls."""

    def __init__(self):
        self.rows: dict[str, list[Row]] = {EXPENSES: [], INCOMES: [], ASSETS: []}
        self.settings: dict[str, Row] = {}
        self.insert_gates: list[asyncio.Event] = []
        self.list_gates: dict[str, asyncio.Event] = {}
        self.fail_inserts = False
        self.fail_deletes = False
        self.fail_lists = False
        self.fail_settings_upsert = False
        self.deleted: list[tuple[str, str]] = []
        self.settings_upserts: list[Row] = []
        self.list_calls = 0
        self._next_id = 0

    def hold_next_insert(self) -> asyncio.Event:
        gate = asyncio.Event()
        self.insert_gates.append(gate)
        return gate

    async def list_rows(self, collection: str, user_id: str) -> list[Row]:
        self.list_calls += 1
        gate = self.list_gates.get(user_id)
        if gate is not None:
            await gate.wait()
        if self.fail_lists:
            raise StorageError("service unavailable")
        return [dict(row) for row in self.rows[collection] if row["user_id"] == user_id]

    async def insert_row(self, collection: str, row: Row) -> Row:
        if self.insert_gates:
            await self.insert_gates.pop(0).wait()
        if self.fail_inserts:
            raise StorageError("insert rejected")
        self._next_id += 1
        stored = {**row, "id": f"row-{self._next_id}"}
        self.rows[collection].append(stored)
        return stored

    async def delete_row(self, collection: str, row_id: str) -> bool:
        self.deleted.append((collection, row_id))
        if self.fail_deletes:
            raise StorageError("delete rejected")
        before = len(self.rows[collection])
        self.rows[collection] = [r for r in self.rows[collection] if r["id"] != row_id]
        return len(self.rows[collection]) < before

    async def get_settings_row(self, user_id: str) -> Optional[Row]:
        row = self.settings.get(user_id)
        return dict(row) if row is not None else None

    async def upsert_settings_row(self, row: Row) -> Row:
        if self.fail_settings_upsert:
            raise StorageError("upsert rejected")
        self.settings_upserts.append(row)
        self.settings[row["user_id"]] = row
        return row


class RecordingAuditLogger(AuditLogger):
    """Keeps every event instead of writing anywhere."""

    def __init__(self):
        super().__init__()
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def types(self) -> list[AuditEventType]:
        return [event.event_type for event in self.events]


def expense_row(row_id: str, user_id: str, amount: str, day: str = "2024-01-10", category: str = "Food") -> Row:
    return {
        "id": row_id,
        "user_id": user_id,
        "title": f"expense {row_id}",
        "amount": amount,
        "category": category,
        "date": day,
        "is_recurring": "false",
        "frequency": "",
        "note": "",
    }


def lunch(amount: str = "120") -> ExpenseDraft:
    return ExpenseDraft(title="Lunch", amount=Decimal(amount), category=ExpenseCategory.FOOD, date=TODAY)


async def settle():
    """Let scheduled tasks run up to their next blocking await."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def storage():
    storage = FakeFinanceStorage()
    storage.settings["42"] = {"user_id": "42", "exchange_rate": "180"}
    return storage


@pytest.fixture
def audit():
    return RecordingAuditLogger()


@pytest.fixture
def store(storage, audit):
    return FinanceStore(storage, audit_logger=audit, today=lambda: TODAY)


class TestLoading:
    """Tests for user switching and the initial load."""

    def test_starts_with_demo_data(self, store):
        assert store.user_id is None
        assert [e.id for e in store.expenses] == ["1", "2", "3", "4", "5"]
        assert len(store.incomes) == 4
        assert len(store.assets) == 3
        assert store.settings == FinanceSettings()

    def test_loads_and_coerces_rows(self, store, storage, audit):
        storage.rows[EXPENSES].append(expense_row("a", "42", "450.00"))
        storage.rows[EXPENSES].append(expense_row("b", "7", "999"))

        asyncio.run(store.set_user_id("42"))

        assert [e.id for e in store.expenses] == ["a"]
        assert store.expenses[0].amount == Decimal("450")
        assert store.incomes == []
        assert store.assets == []
        assert AuditEventType.DATA_LOADED in audit.types()

    def test_bad_rows_are_skipped(self, store, storage, audit):
        storage.rows[EXPENSES].append(expense_row("a", "42", "not-a-number"))
        storage.rows[EXPENSES].append(expense_row("b", "42", "10"))

        asyncio.run(store.set_user_id("42"))

        assert [e.id for e in store.expenses] == ["b"]
        skipped = [e for e in audit.events if e.event_type == AuditEventType.ROW_SKIPPED]
        assert len(skipped) == 1
        assert skipped[0].entity_id == "a"

    def test_creates_missing_settings(self, store, storage, audit):
        asyncio.run(store.set_user_id("7"))

        assert store.settings == FinanceSettings()
        assert storage.settings["7"]["user_id"] == "7"
        assert storage.settings["7"]["exchange_rate"] == "180.0"
        assert AuditEventType.SETTINGS_CREATED in audit.types()

    def test_migrates_legacy_exchange_rate(self, store, storage, audit):
        storage.settings["42"] = {"user_id": "42", "exchange_rate": "120.0", "user_name": "Sara"}

        asyncio.run(store.set_user_id("42"))

        assert store.settings.exchange_rate == Decimal("180.0")
        assert store.settings.user_name == "Sara"
        assert storage.settings_upserts[-1]["exchange_rate"] == "180.0"
        assert AuditEventType.SETTINGS_MIGRATED in audit.types()

    def test_current_rate_is_not_migrated(self, store, storage):
        storage.settings["42"] = {"user_id": "42", "exchange_rate": "155"}

        asyncio.run(store.set_user_id("42"))

        assert store.settings.exchange_rate == Decimal("155")
        assert storage.settings_upserts == []

    def test_load_failure_leaves_collections_empty(self, store, storage, audit):
        storage.fail_lists = True

        asyncio.run(store.set_user_id("42"))

        assert store.user_id == "42"
        assert store.expenses == []
        assert AuditEventType.DATA_LOAD_FAILED in audit.types()

    def test_same_user_is_a_noop(self, store, storage):
        asyncio.run(store.set_user_id("42"))
        calls = storage.list_calls

        asyncio.run(store.set_user_id("42"))

        assert storage.list_calls == calls

    def test_switch_clears_before_loading(self, store, storage):
        """Listeners never see one user's rows alongside another's."""
        storage.rows[EXPENSES].append(expense_row("a", "42", "10"))
        storage.rows[EXPENSES].append(expense_row("b", "7", "20"))
        asyncio.run(store.set_user_id("42"))

        seen = []
        store.subscribe(lambda snapshot: seen.append([e.id for e in snapshot.expenses]))
        asyncio.run(store.set_user_id("7"))

        assert seen[0] == []
        assert seen[-1] == ["b"]

    def test_none_resets_to_defaults(self, store, storage):
        storage.rows[EXPENSES].append(expense_row("a", "42", "10"))
        asyncio.run(store.set_user_id("42"))

        asyncio.run(store.set_user_id(None))

        assert store.user_id is None
        assert [e.id for e in store.expenses] == ["1", "2", "3", "4", "5"]

    def test_stale_load_is_discarded(self, store, storage):
        storage.rows[EXPENSES].append(expense_row("a", "42", "10"))
        storage.rows[EXPENSES].append(expense_row("b", "7", "20"))

        async def scenario():
            storage.list_gates["42"] = asyncio.Event()
            first = asyncio.create_task(store.set_user_id("42"))
            await settle()
            await store.set_user_id("7")
            storage.list_gates["42"].set()
            await first

        asyncio.run(scenario())

        assert store.user_id == "7"
        assert [e.id for e in store.expenses] == ["b"]

    def test_unsubscribe_stops_notifications(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()

        asyncio.run(store.set_user_id("42"))

        assert seen == []


class TestAdd:
    """Tests for optimistic add and reconciliation."""

    def test_add_shows_pending_then_confirms(self, store, storage, audit):
        async def scenario():
            await store.set_user_id("42")
            gate = storage.hold_next_insert()
            task = asyncio.create_task(store.add_expense(lunch()))
            await settle()

            pending = store.expenses[0]
            assert pending.status == SyncStatus.PENDING
            assert pending.id.startswith("tmp-")
            assert pending.amount == Decimal("120")

            gate.set()
            return await task

        confirmed = asyncio.run(scenario())

        assert confirmed.id == "row-1"
        assert confirmed.status == SyncStatus.CONFIRMED
        assert [e.id for e in store.expenses] == ["row-1"]
        assert storage.rows[EXPENSES][0]["user_id"] == "42"
        assert AuditEventType.RECORD_CREATED in audit.types()

    def test_reconcile_keeps_list_position(self, store, storage):
        """A slow insert is confirmed where it sits, not moved to the top."""
        async def scenario():
            await store.set_user_id("42")
            gate = storage.hold_next_insert()
            slow = asyncio.create_task(store.add_expense(lunch("100")))
            await settle()
            await store.add_expense(lunch("200"))
            gate.set()
            await slow

        asyncio.run(scenario())

        # The fast insert finished first and took the first service id
        assert [e.id for e in store.expenses] == ["row-1", "row-2"]
        assert [e.amount for e in store.expenses] == [Decimal("200"), Decimal("100")]
        assert not any(e.is_pending for e in store.expenses)

    def test_add_accepts_mapping(self, store):
        async def scenario():
            await store.set_user_id("42")
            return await store.add_income({"amount": "50", "source": "Tips", "date": "2024-01-09"})

        income = asyncio.run(scenario())

        assert income.amount == Decimal("50")
        assert store.incomes[0].source == "Tips"

    def test_failed_add_rolls_back(self, store, storage, audit):
        storage.fail_inserts = True

        async def scenario():
            await store.set_user_id("42")
            return await store.add_asset({"name": "Savings", "amount": "100"})

        result = asyncio.run(scenario())

        assert result is None
        assert store.assets == []
        failed = [e for e in audit.events if e.event_type == AuditEventType.RECORD_CREATE_FAILED]
        assert failed[0].entity_id.startswith("tmp-")

    def test_add_without_user_is_noop(self, store, storage):
        before = store.expenses

        result = asyncio.run(store.add_expense(lunch()))

        assert result is None
        assert store.expenses == before
        assert storage.rows[EXPENSES] == []

    def test_same_user_again_keeps_in_flight_add(self, store, storage):
        """Re-announcing the active user must not orphan an unconfirmed add."""
        async def scenario():
            await store.set_user_id("42")
            gate = storage.hold_next_insert()
            task = asyncio.create_task(store.add_expense(lunch()))
            await settle()
            await store.set_user_id("42")
            gate.set()
            return await task

        result = asyncio.run(scenario())

        assert result.id == "row-1"
        assert [e.id for e in store.expenses] == ["row-1"]

    def test_confirmation_after_user_switch_is_dropped(self, store, storage):
        async def scenario():
            await store.set_user_id("42")
            gate = storage.hold_next_insert()
            task = asyncio.create_task(store.add_expense(lunch()))
            await settle()
            await store.set_user_id("7")
            gate.set()
            return await task

        result = asyncio.run(scenario())

        assert result is None
        assert store.user_id == "7"
        assert store.expenses == []


class TestDelete:
    """Tests for delete, which is never rolled back."""

    def test_delete_removes_locally_and_remotely(self, store, storage, audit):
        storage.rows[EXPENSES].append(expense_row("a", "42", "10"))

        async def scenario():
            await store.set_user_id("42")
            await store.delete_expense("a")

        asyncio.run(scenario())

        assert store.expenses == []
        assert storage.deleted == [(EXPENSES, "a")]
        assert AuditEventType.RECORD_DELETED in audit.types()

    def test_failed_delete_is_not_rolled_back(self, store, storage, audit):
        storage.rows[INCOMES].append({
            "id": "i1", "user_id": "42", "amount": "10", "source": "Gig", "date": "2024-01-10", "type": "Variable",
        })
        storage.fail_deletes = True

        async def scenario():
            await store.set_user_id("42")
            await store.delete_income("i1")

        asyncio.run(scenario())

        assert store.incomes == []
        assert AuditEventType.RECORD_DELETE_FAILED in audit.types()

    def test_delete_pending_record_waits_for_confirmation(self, store, storage):
        async def scenario():
            await store.set_user_id("42")
            gate = storage.hold_next_insert()
            task = asyncio.create_task(store.add_expense(lunch()))
            await settle()

            provisional_id = store.expenses[0].id
            await store.delete_expense(provisional_id)
            assert store.expenses == []
            assert storage.deleted == []

            gate.set()
            return await task

        result = asyncio.run(scenario())

        assert result is None
        assert store.expenses == []
        assert storage.deleted == [(EXPENSES, "row-1")]
        assert storage.rows[EXPENSES] == []

    def test_delete_without_user_is_noop(self, store, storage):
        asyncio.run(store.delete_expense("1"))

        assert len(store.expenses) == 5
        assert storage.deleted == []


class TestSettings:
    """Tests for settings updates."""

    def test_update_merges_and_upserts(self, store, storage, audit):
        async def scenario():
            await store.set_user_id("42")
            return await store.update_settings(user_name="Sara", monthly_budget="2500")

        merged = asyncio.run(scenario())

        assert merged.user_name == "Sara"
        assert store.settings.monthly_budget == Decimal("2500")
        assert store.settings.exchange_rate == Decimal("180")
        assert storage.settings["42"]["user_name"] == "Sara"
        assert AuditEventType.SETTINGS_UPDATED in audit.types()

    def test_failed_update_keeps_local_value(self, store, storage, audit):
        async def scenario():
            await store.set_user_id("42")
            storage.fail_settings_upsert = True
            await store.update_settings(theme="dark")

        asyncio.run(scenario())

        assert store.settings.theme.value == "dark"
        assert AuditEventType.SETTINGS_UPDATE_FAILED in audit.types()

    def test_update_without_user_is_noop(self, store, storage):
        assert asyncio.run(store.update_settings(user_name="Sara")) is None
        assert store.settings.user_name == "Freelancer"
        assert storage.settings_upserts == []
