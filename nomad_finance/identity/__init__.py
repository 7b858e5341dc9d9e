"""Identity gate package."""

from nomad_finance.identity.gate import (
    EmptyPasswordError,
    GateState,
    GateStateError,
    IdentityGate,
    resolve_host_user,
)

__all__ = [
    "EmptyPasswordError",
    "GateState",
    "GateStateError",
    "IdentityGate",
    "resolve_host_user",
]
