"""
Identity Gate

Decides whether the person opening the app may see their data.

The host container (Telegram WebApp) tells us who the user is; we trust
that identifier. The gate then checks for an account row:
- account with a password -> returning user, straight in
- no account, or no password -> registration form
- account service unreachable -> retry screen

NOTE: the password is a plaintext placeholder, not a security boundary.
"""

import json
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from nomad_finance.audit import AuditLogger
from nomad_finance.config import AppSettings
from nomad_finance.models.account import Account, HostUser
from nomad_finance.models.audit import AuditEventBuilder
from nomad_finance.services.storage import AccountStorageInterface, StorageError
from nomad_finance.store import FinanceStore


class GateState(str, Enum):
    """Mutually exclusive gate states; each maps to one screen."""
    LOADING = "loading"
    NO_IDENTITY = "no_identity"
    NEEDS_REGISTRATION = "needs_registration"
    ERROR = "error"
    AUTHORIZED = "authorized"


class EmptyPasswordError(ValueError):
    """Registration was submitted without a password."""


class GateStateError(RuntimeError):
    """An operation was attempted from a state that does not allow it."""


def resolve_host_user(
    host_data: Union[Mapping[str, Any], str, None],
    hostname: Optional[str],
    settings: AppSettings,
) -> Optional[HostUser]:
    """
    Work out who is opening the app.

    Accepts the host's WebApp object (``{"initDataUnsafe": {"user": {...}}}``),
    the bare user mapping, or either as a JSON string. Falls back to the
    configured mock identity on development hosts; otherwise returns None.
    """
    user_data = _extract_user(host_data)
    if user_data is not None:
        try:
            return HostUser.model_validate(user_data)
        except ValidationError:
            # Malformed host payload: treat like no identity
            pass

    if hostname and hostname.split(":")[0].lower() in settings.dev_hostnames_list:
        return HostUser(
            id=settings.mock_user_id,
            username=settings.mock_username,
            first_name=settings.mock_first_name,
            last_name=settings.mock_last_name,
        )
    return None


def _extract_user(host_data: Union[Mapping[str, Any], str, None]) -> Optional[Mapping[str, Any]]:
    if isinstance(host_data, str):
        try:
            host_data = json.loads(host_data)
        except json.JSONDecodeError:
            return None
    if not isinstance(host_data, Mapping):
        return None

    init_data = host_data.get("initDataUnsafe")
    if isinstance(init_data, Mapping):
        user = init_data.get("user")
        return user if isinstance(user, Mapping) else None
    user = host_data.get("user")
    if isinstance(user, Mapping):
        return user
    if "id" in host_data:
        return host_data
    return None


class IdentityGate:
    """
    Gates the app until a user id is established, then hands it to the store.

    `initialize` runs once per mount; only `retry` runs it again.
    """

    def __init__(
        self,
        accounts: AccountStorageInterface,
        store: FinanceStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._accounts = accounts
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._state = GateState.LOADING
        self._host_user: Optional[HostUser] = None
        self._user_id: Optional[str] = None
        self._started = False
        self.error_message: Optional[str] = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def host_user(self) -> Optional[HostUser]:
        return self._host_user

    @property
    def user_id(self) -> Optional[str]:
        """The propagated identifier, set once the gate is authorized."""
        return self._user_id

    async def initialize(self, host_user: Optional[HostUser]) -> GateState:
        """Resolve the gate state for `host_user`. Later calls are no-ops."""
        if self._started:
            return self._state
        self._started = True
        self._host_user = host_user

        if host_user is None:
            self._state = GateState.NO_IDENTITY
            await self._audit_logger.log(AuditEventBuilder.identity_missing(None))
            return self._state

        account_id = host_user.account_id
        try:
            account = await self._accounts.get_account(account_id)
        except StorageError as e:
            return await self._fail(account_id, "lookup", e)

        if account is not None and account.has_password:
            await self._audit_logger.log(AuditEventBuilder.account_found(account_id))
            await self._authorize(account_id)
        else:
            self._state = GateState.NEEDS_REGISTRATION
        return self._state

    async def register(self, password: str) -> GateState:
        """Store the password for the host user, then let them in."""
        if self._state != GateState.NEEDS_REGISTRATION or self._host_user is None:
            raise GateStateError(f"Cannot register from state {self._state.value}")
        if not password or not password.strip():
            raise EmptyPasswordError("Password must not be empty")

        account = Account.for_host_user(self._host_user, password)
        try:
            await self._accounts.upsert_account(account)
        except StorageError as e:
            return await self._fail(account.id, "registration", e)

        await self._audit_logger.log(AuditEventBuilder.account_registered(account.id))
        await self._authorize(account.id)
        return self._state

    async def retry(self) -> GateState:
        """Explicit user retry: start over from LOADING."""
        host_user = self._host_user
        self._started = False
        self._state = GateState.LOADING
        self.error_message = None
        return await self.initialize(host_user)

    async def _authorize(self, account_id: str) -> None:
        self._user_id = account_id
        await self._store.set_user_id(account_id)
        self._state = GateState.AUTHORIZED

    async def _fail(self, account_id: str, operation: str, error: StorageError) -> GateState:
        self._state = GateState.ERROR
        self.error_message = str(error)
        await self._audit_logger.log(
            AuditEventBuilder.account_service_failed(account_id, operation, str(error))
        )
        return self._state
