"""
Tests for the session event loop that finishes remote work off the page thread.
"""

import asyncio
import threading
import time
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from nomad_finance.background import BackgroundLoop
from nomad_finance.models.records import ExpenseCategory, ExpenseDraft
from nomad_finance.services.storage import FinanceDataInterface, Row
from nomad_finance.store import FinanceStore


class SlowInsertStorage(FinanceDataInterface):
    """Inserts wait until the test releases them."""

    def __init__(self):
        self.release = threading.Event()

    async def list_rows(self, collection: str, user_id: str) -> list[Row]:
        return []

    async def insert_row(self, collection: str, row: Row) -> Row:
        await asyncio.to_thread(self.release.wait, 5)
        return {**row, "id": "svc-1"}

    async def delete_row(self, collection: str, row_id: str) -> bool:
        return True

    async def get_settings_row(self, user_id: str) -> Optional[Row]:
        return {"user_id": user_id}

    async def upsert_settings_row(self, row: Row) -> Row:
        return row


def wait_until_idle(loop: BackgroundLoop, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while loop.pending_tasks and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.fixture
def loop():
    loop = BackgroundLoop(name="test-sync")
    yield loop
    loop.stop()


class TestBackgroundLoop:
    def test_run_returns_result(self, loop):
        async def answer():
            await asyncio.sleep(0)
            return 42

        assert loop.run(answer()) == 42

    def test_run_reraises(self, loop):
        async def broken():
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            loop.run(broken())

    def test_start_returns_before_remote_part(self, loop):
        release = threading.Event()
        steps = []

        async def mutation():
            steps.append("local")
            await asyncio.to_thread(release.wait, 5)
            steps.append("remote")

        loop.start(mutation())

        assert steps == ["local"]
        assert loop.pending_tasks == 1

        release.set()
        wait_until_idle(loop)

        assert steps == ["local", "remote"]
        assert loop.pending_tasks == 0

    def test_failed_task_is_dropped(self, loop):
        async def broken():
            await asyncio.sleep(0)
            raise RuntimeError("remote exploded")

        loop.start(broken())
        wait_until_idle(loop)

        assert loop.pending_tasks == 0


class TestStoreOnBackgroundLoop:
    """Adds show up as pending right away and confirm later."""

    def test_add_is_visible_before_insert_finishes(self, loop):
        storage = SlowInsertStorage()
        store = FinanceStore(storage)
        loop.run(store.set_user_id("42"))

        loop.start(store.add_expense(ExpenseDraft(
            title="Lunch", amount=Decimal("120"), category=ExpenseCategory.FOOD, date=date(2024, 1, 10),
        )))

        assert len(store.expenses) == 1
        assert store.expenses[0].is_pending

        storage.release.set()
        wait_until_idle(loop)

        assert store.expenses[0].id == "svc-1"
        assert not store.expenses[0].is_pending
