"""
Data Models Package

All data flowing through NomadFinance conforms to these pydantic schemas.
"""

from nomad_finance.models.records import (
    CATEGORY_LABELS,
    Asset,
    AssetDraft,
    AssetType,
    Currency,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    FinanceSettings,
    Frequency,
    Income,
    IncomeDraft,
    IncomeType,
    SyncStatus,
    Theme,
    TrackedRecord,
)
from nomad_finance.models.account import Account, HostUser
from nomad_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance records
    "CATEGORY_LABELS",
    "Asset",
    "AssetDraft",
    "AssetType",
    "Currency",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "FinanceSettings",
    "Frequency",
    "Income",
    "IncomeDraft",
    "IncomeType",
    "SyncStatus",
    "Theme",
    "TrackedRecord",
    # Identity
    "Account",
    "HostUser",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
