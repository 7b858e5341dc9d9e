"""
Identity Models for NomadFinance

HostUser is what the host container (Telegram WebApp) tells us about the
person opening the app. Account is our own row for that person.

NOTE: Account.password is stored as plain text. It is a placeholder
gate, not a security boundary; do not reuse this scheme for anything real.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HostUser(BaseModel):
    """User object exposed by the host container (initDataUnsafe.user)."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: int = Field(..., description="Numeric id assigned by the chat platform")
    username: Optional[str] = None
    first_name: str = ""
    last_name: Optional[str] = None

    @property
    def account_id(self) -> str:
        """Accounts and finance rows are keyed by the stringified platform id."""
        return str(self.id)


class Account(BaseModel):
    """Row in the users collection."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str = Field(..., min_length=1)
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = None

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    @classmethod
    def for_host_user(cls, user: HostUser, password: str) -> "Account":
        return cls(
            id=user.account_id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            password=password,
        )

    @classmethod
    def from_row(cls, row: dict) -> "Account":
        data = {
            key: (None if isinstance(value, str) and not value.strip() else value)
            for key, value in row.items()
        }
        data["id"] = str(data["id"]) if data.get("id") is not None else None
        return cls.model_validate(data)

    def to_row(self) -> dict:
        return self.model_dump(mode="json")
