"""
Built-in demo data shown while nobody is signed in.

Dates are generated relative to `today` so the demo always looks current.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from nomad_finance.models.records import (
    Asset,
    AssetType,
    Currency,
    Expense,
    ExpenseCategory,
    FinanceSettings,
    Frequency,
    Income,
    IncomeType,
)


def default_settings(exchange_rate: Optional[Decimal] = None) -> FinanceSettings:
    if exchange_rate is None:
        return FinanceSettings()
    return FinanceSettings(exchange_rate=exchange_rate)


def default_expenses(today: date) -> list[Expense]:
    month_start = today.replace(day=1)
    return [
        Expense(id="1", title="Lunch at cafe", amount=Decimal("450"), category=ExpenseCategory.FOOD,
                date=today, note="Lunch at cafe"),
        Expense(id="2", title="Uber to meeting", amount=Decimal("300"), category=ExpenseCategory.TRANSPORT,
                date=today, note="Uber to meeting"),
        Expense(id="3", title="EthioTelecom", amount=Decimal("1200"), category=ExpenseCategory.INTERNET,
                date=today - timedelta(days=1), is_recurring=True, frequency=Frequency.MONTHLY,
                note="EthioTelecom"),
        Expense(id="4", title="Groceries", amount=Decimal("800"), category=ExpenseCategory.FOOD,
                date=today - timedelta(days=2), note="Groceries"),
        Expense(id="5", title="Apartment Rent", amount=Decimal("25000"), category=ExpenseCategory.RENT,
                date=month_start, is_recurring=True, frequency=Frequency.MONTHLY, note="Apartment Rent"),
    ]


def default_incomes(today: date) -> list[Income]:
    month_start = today.replace(day=1)
    return [
        Income(id="1", amount=Decimal("2000"), source="Retainer Client A", date=month_start,
               type=IncomeType.STABLE),
        Income(id="1b", amount=Decimal("500"), source="Maintenance Contract", date=month_start,
               type=IncomeType.STABLE),
        Income(id="2", amount=Decimal("450"), source="Upwork Project", date=today - timedelta(days=5),
               type=IncomeType.VARIABLE),
        Income(id="3", amount=Decimal("300"), source="Consultation", date=today - timedelta(days=10),
               type=IncomeType.VARIABLE),
    ]


def default_assets() -> list[Asset]:
    return [
        Asset(id="1", name="Emergency Fund", amount=Decimal("5000"), type=AssetType.CASH, currency=Currency.USD),
        Asset(id="2", name="Bitcoin Cold Storage", amount=Decimal("2500"), type=AssetType.CRYPTO,
              currency=Currency.USD),
        Asset(id="3", name="Tech ETF", amount=Decimal("1500"), type=AssetType.STOCK, currency=Currency.USD),
    ]
