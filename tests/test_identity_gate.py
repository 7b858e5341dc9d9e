"""
Tests for the IdentityGate and host identity resolution.
"""

import asyncio
import json
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from nomad_finance.audit import AuditLogger
from nomad_finance.config import AppSettings
from nomad_finance.identity import (
    EmptyPasswordError,
    GateState,
    GateStateError,
    IdentityGate,
    resolve_host_user,
)
from nomad_finance.models.account import Account, HostUser
from nomad_finance.models.audit import AuditEvent, AuditEventType
from nomad_finance.services.storage import AccountStorageInterface, StorageError
from nomad_finance.store import FinanceStore


class FakeAccountStorage(AccountStorageInterface):
    def __init__(self, accounts: Optional[list[Account]] = None):
        self.accounts = {account.id: account for account in accounts or []}
        self.fail_lookup = False
        self.fail_upsert = False
        self.lookups = 0
        self.upserts: list[Account] = []

    async def get_account(self, account_id: str) -> Optional[Account]:
        self.lookups += 1
        if self.fail_lookup:
            raise StorageError("account service down")
        return self.accounts.get(account_id)

    async def upsert_account(self, account: Account) -> Account:
        if self.fail_upsert:
            raise StorageError("write rejected")
        self.upserts.append(account)
        self.accounts[account.id] = account
        return account


class RecordingAuditLogger(AuditLogger):
    def __init__(self):
        super().__init__()
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True


SARA = HostUser(id=42, username="sara", first_name="Sara", last_name="T")


@pytest.fixture
def store():
    return AsyncMock(spec=FinanceStore)


@pytest.fixture
def audit():
    return RecordingAuditLogger()


def make_gate(accounts, store, audit):
    return IdentityGate(accounts, store, audit)


class TestInitialize:
    """Tests for resolving the gate state on mount."""

    def test_known_account_is_authorized(self, store, audit):
        accounts = FakeAccountStorage([Account(id="42", password="secret")])
        gate = make_gate(accounts, store, audit)

        state = asyncio.run(gate.initialize(SARA))

        assert state == GateState.AUTHORIZED
        assert gate.user_id == "42"
        store.set_user_id.assert_awaited_once_with("42")
        assert audit.events[-1].event_type == AuditEventType.ACCOUNT_FOUND

    def test_unknown_account_needs_registration(self, store, audit):
        gate = make_gate(FakeAccountStorage(), store, audit)

        state = asyncio.run(gate.initialize(SARA))

        assert state == GateState.NEEDS_REGISTRATION
        assert gate.user_id is None
        store.set_user_id.assert_not_awaited()

    def test_account_without_password_needs_registration(self, store, audit):
        accounts = FakeAccountStorage([Account(id="42", username="sara")])
        gate = make_gate(accounts, store, audit)

        assert asyncio.run(gate.initialize(SARA)) == GateState.NEEDS_REGISTRATION

    def test_no_identity(self, store, audit):
        accounts = FakeAccountStorage()
        gate = make_gate(accounts, store, audit)

        state = asyncio.run(gate.initialize(None))

        assert state == GateState.NO_IDENTITY
        assert accounts.lookups == 0
        assert audit.events[0].event_type == AuditEventType.IDENTITY_MISSING

    def test_lookup_failure_shows_error(self, store, audit):
        accounts = FakeAccountStorage()
        accounts.fail_lookup = True
        gate = make_gate(accounts, store, audit)

        state = asyncio.run(gate.initialize(SARA))

        assert state == GateState.ERROR
        assert "account service down" in gate.error_message
        assert audit.events[-1].event_type == AuditEventType.ACCOUNT_SERVICE_FAILED

    def test_initialize_runs_once(self, store, audit):
        accounts = FakeAccountStorage()
        gate = make_gate(accounts, store, audit)

        asyncio.run(gate.initialize(SARA))
        asyncio.run(gate.initialize(SARA))

        assert accounts.lookups == 1


class TestRegister:
    """Tests for the registration form."""

    def test_register_upserts_identity_and_password(self, store, audit):
        accounts = FakeAccountStorage()
        gate = make_gate(accounts, store, audit)

        async def scenario():
            await gate.initialize(SARA)
            return await gate.register("abc123")

        state = asyncio.run(scenario())

        assert state == GateState.AUTHORIZED
        saved = accounts.upserts[0]
        assert saved.id == "42"
        assert saved.username == "sara"
        assert saved.first_name == "Sara"
        assert saved.last_name == "T"
        assert saved.password == "abc123"
        store.set_user_id.assert_awaited_once_with("42")
        assert AuditEventType.ACCOUNT_REGISTERED in [e.event_type for e in audit.events]

    def test_empty_password_is_rejected(self, store, audit):
        accounts = FakeAccountStorage()
        gate = make_gate(accounts, store, audit)
        asyncio.run(gate.initialize(SARA))

        with pytest.raises(EmptyPasswordError):
            asyncio.run(gate.register("   "))

        assert accounts.upserts == []
        assert gate.state == GateState.NEEDS_REGISTRATION

    def test_register_failure_shows_error(self, store, audit):
        accounts = FakeAccountStorage()
        accounts.fail_upsert = True
        gate = make_gate(accounts, store, audit)

        async def scenario():
            await gate.initialize(SARA)
            return await gate.register("abc123")

        assert asyncio.run(scenario()) == GateState.ERROR
        store.set_user_id.assert_not_awaited()

    def test_register_from_wrong_state(self, store, audit):
        gate = make_gate(FakeAccountStorage(), store, audit)

        with pytest.raises(GateStateError):
            asyncio.run(gate.register("abc123"))


class TestRetry:
    def test_retry_after_error(self, store, audit):
        accounts = FakeAccountStorage([Account(id="42", password="secret")])
        accounts.fail_lookup = True
        gate = make_gate(accounts, store, audit)
        assert asyncio.run(gate.initialize(SARA)) == GateState.ERROR

        accounts.fail_lookup = False
        state = asyncio.run(gate.retry())

        assert state == GateState.AUTHORIZED
        assert gate.error_message is None
        assert accounts.lookups == 2


class TestResolveHostUser:
    """Tests for reading the identity the host container provides."""

    settings = AppSettings(dev_hostnames="localhost,127.0.0.1", mock_user_id=999)

    def test_webapp_object(self):
        user = resolve_host_user(
            {"initDataUnsafe": {"user": {"id": 42, "first_name": "Sara"}}},
            "finance.example.com",
            self.settings,
        )
        assert user.id == 42
        assert user.first_name == "Sara"

    def test_json_user_string(self):
        user = resolve_host_user(json.dumps({"id": 42, "username": "sara"}), None, self.settings)
        assert user.account_id == "42"
        assert user.username == "sara"

    def test_dev_host_gets_mock_identity(self):
        user = resolve_host_user(None, "localhost:8501", self.settings)
        assert user.id == 999

    def test_malformed_payload_on_public_host(self):
        assert resolve_host_user("{not json", "finance.example.com", self.settings) is None
        assert resolve_host_user({"user": {"first_name": "x"}}, "finance.example.com", self.settings) is None

    def test_real_identity_wins_on_dev_host(self):
        user = resolve_host_user({"user": {"id": 42}}, "127.0.0.1", self.settings)
        assert user.id == 42
