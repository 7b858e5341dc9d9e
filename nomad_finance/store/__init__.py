"""Finance store package."""

from nomad_finance.store.finance_store import FinanceSnapshot, FinanceStore

__all__ = ["FinanceSnapshot", "FinanceStore"]
