"""
Finance Record Models for NomadFinance

These models define the schemas for the four per-user collections:
expenses, incomes, assets and the settings singleton.

The remote store may hand numbers back as text (Google Sheets returns
every cell as a string), so all amounts are Decimal fields in lax mode:
"450.00" validates to Decimal("450.00"). Blank optional cells become None
before validation.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Expense categories, in display order.

    New categories may be appended over time; views must not assume
    every lookup table covers all of them.
    """
    FOOD = "Food"
    COFFEE = "Coffee"
    ITEM = "Item"
    TRANSPORT = "Transport"
    RENT = "Rent"
    INTERNET = "Internet"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


CATEGORY_LABELS: dict[ExpenseCategory, str] = {
    ExpenseCategory.ENTERTAINMENT: "Fun",
}


class Frequency(str, Enum):
    """Recurrence frequency for recurring expenses."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class IncomeType(str, Enum):
    STABLE = "Stable"
    VARIABLE = "Variable"


class AssetType(str, Enum):
    CASH = "Cash"
    CRYPTO = "Crypto"
    STOCK = "Stock"
    REAL_ESTATE = "Real Estate"
    DEBT = "Debt"
    OTHER = "Other"


class Currency(str, Enum):
    USD = "USD"
    ETB = "ETB"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class SyncStatus(str, Enum):
    """
    Where a record is in the optimistic-update cycle.

    PENDING records carry a provisional id; CONFIRMED records carry the id
    assigned by the remote store.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"


def _clean_row(row: dict[str, Any]) -> dict[str, Any]:
    """Turn blank cells into None so optional fields validate."""
    return {
        key: (None if isinstance(value, str) and not value.strip() else value)
        for key, value in row.items()
    }


# =============================================================================
# DRAFTS - what the user submits (no id yet)
# =============================================================================

class RecordDraft(BaseModel):
    """Base for user-submitted records that have not been stored yet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    def to_row(self, user_id: str) -> dict[str, Any]:
        """Render the insert row for the remote store."""
        return {"user_id": user_id, **self.model_dump(mode="json")}


class ExpenseDraft(RecordDraft):
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Short label; the form falls back to the category name"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in ETB"
    )
    category: ExpenseCategory
    date: dt.date = Field(
        ...,
        description="Calendar day the money was spent"
    )
    is_recurring: bool = False
    frequency: Optional[Frequency] = None
    note: Optional[str] = Field(default=None, max_length=500)


class IncomeDraft(RecordDraft):
    amount: Decimal = Field(..., ge=0)
    source: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    type: IncomeType = IncomeType.VARIABLE


class AssetDraft(RecordDraft):
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    type: AssetType = AssetType.CASH
    currency: Currency = Currency.USD


# =============================================================================
# STORED RECORDS
# =============================================================================

class TrackedRecord(BaseModel):
    """
    Identity and sync state shared by every in-memory record.

    Records are never edited in place; reconciliation swaps the whole
    object for a copy with the service id.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    status: SyncStatus = SyncStatus.CONFIRMED

    @property
    def is_pending(self) -> bool:
        return self.status == SyncStatus.PENDING

    @classmethod
    def from_row(cls, row: dict[str, Any]):
        """Build a confirmed record from a remote row (extra columns ignored)."""
        data = _clean_row(row)
        data["id"] = str(data["id"]) if data.get("id") is not None else None
        data.pop("status", None)
        return cls.model_validate(data)

    def confirmed(self, service_id: str):
        """Return the reconciled copy carrying the service-assigned id."""
        return self.model_copy(update={"id": service_id, "status": SyncStatus.CONFIRMED})

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {"user_id": user_id, **self.model_dump(mode="json", exclude={"status"})}


class Expense(ExpenseDraft, TrackedRecord):
    """A single expense owned by one user."""


class Income(IncomeDraft, TrackedRecord):
    """A single income entry owned by one user."""


class Asset(AssetDraft, TrackedRecord):
    """A holding (or a debt) owned by one user."""


# =============================================================================
# SETTINGS SINGLETON
# =============================================================================

class FinanceSettings(BaseModel):
    """Per-user settings row, keyed by user_id in the remote store."""
    model_config = ConfigDict(str_strip_whitespace=True)

    exchange_rate: Decimal = Field(
        default=Decimal("180.0"),
        gt=0,
        description="ETB per 1 USD"
    )
    savings_goal_usd: Decimal = Field(default=Decimal("10000"), ge=0)
    recurring_enabled: bool = True
    user_name: str = Field(default="Freelancer", max_length=100)
    monthly_budget: Decimal = Field(default=Decimal("1000"), ge=0)
    theme: Theme = Theme.LIGHT

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FinanceSettings":
        data = {k: v for k, v in _clean_row(row).items() if v is not None}
        return cls.model_validate(data)

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {"user_id": user_id, **self.model_dump(mode="json")}

    def merged(self, **changes: Any) -> "FinanceSettings":
        """Validate a partial update against the current values."""
        return FinanceSettings.model_validate({**self.model_dump(), **changes})
