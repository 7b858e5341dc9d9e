"""
Aggregate Derivation

Pure functions the views use to turn a store snapshot into totals, day
buckets and trend series. Nothing here touches storage; every function
takes the records (and "today", where it matters) explicitly.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from enum import IntEnum
from typing import Iterable, Sequence

from pydantic import BaseModel

from nomad_finance.models.records import (
    CATEGORY_LABELS,
    Asset,
    AssetType,
    Currency,
    Expense,
    ExpenseCategory,
    FinanceSettings,
    Income,
)


ZERO = Decimal("0")

CATEGORY_ICONS: dict[ExpenseCategory, str] = {
    ExpenseCategory.FOOD: "🍽️",
    ExpenseCategory.COFFEE: "☕",
    ExpenseCategory.TRANSPORT: "🚗",
    ExpenseCategory.RENT: "🏠",
    ExpenseCategory.INTERNET: "📶",
    ExpenseCategory.ENTERTAINMENT: "🎬",
    ExpenseCategory.OTHER: "🗂️",
}

FALLBACK_ICON = "🗂️"


class ReportPeriod(IntEnum):
    """Trend window lengths offered in the reports view."""
    WEEK = 7
    MONTH = 30


class DayGroup(BaseModel):
    day: date
    expenses: list[Expense]
    total: Decimal


class CategoryTotal(BaseModel):
    category: ExpenseCategory
    label: str
    total: Decimal


class TrendPoint(BaseModel):
    day: date
    label: str
    amount: Decimal


def category_icon(category: ExpenseCategory) -> str:
    """Glyph for a category; categories without one get the generic glyph."""
    return CATEGORY_ICONS.get(category, FALLBACK_ICON)


def category_label(category: ExpenseCategory) -> str:
    return CATEGORY_LABELS.get(category, category.value)


def is_today(day: date, today: date) -> bool:
    """A day bucket is "today" when both format to the same ISO string."""
    return day.isoformat() == today.isoformat()


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, start=ZERO)


# =============================================================================
# EXPENSE LIST
# =============================================================================

def group_by_day(expenses: Iterable[Expense]) -> list[DayGroup]:
    """Bucket expenses by calendar day, newest day first."""
    buckets: dict[date, list[Expense]] = defaultdict(list)
    for expense in expenses:
        buckets[expense.date].append(expense)

    return [
        DayGroup(day=day, expenses=items, total=_sum(e.amount for e in items))
        for day, items in sorted(buckets.items(), key=lambda item: item[0], reverse=True)
    ]


def month_total(expenses: Iterable[Expense], today: date) -> Decimal:
    """Spend in the calendar month (and year) containing `today`."""
    return _sum(
        e.amount for e in expenses
        if e.date.year == today.year and e.date.month == today.month
    )


# =============================================================================
# REPORTS
# =============================================================================

def category_totals(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """Lifetime spend per category, nonzero only, largest first."""
    totals: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[expense.category] += expense.amount

    # Enum order breaks ties, since sorted() is stable
    result = [
        CategoryTotal(category=category, label=category_label(category), total=totals[category])
        for category in ExpenseCategory
        if totals[category] > 0
    ]
    result.sort(key=lambda item: item.total, reverse=True)
    return result


def trend_series(expenses: Iterable[Expense], days: int, today: date) -> list[TrendPoint]:
    """
    Per-day spend for the trailing `days` days ending today, oldest first.

    Days without spend are included with a zero amount.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    per_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        per_day[expense.date] += expense.amount

    points = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        if days == ReportPeriod.WEEK:
            label = day.strftime("%a")
        else:
            label = str(day.day)
        points.append(TrendPoint(day=day, label=label, amount=per_day[day]))
    return points


def lifetime_total(expenses: Iterable[Expense]) -> Decimal:
    return _sum(e.amount for e in expenses)


def average_daily_spend(expenses: Sequence[Expense]) -> Decimal:
    """Lifetime total divided by the number of distinct days with spend (or 1)."""
    active_days = len({e.date for e in expenses}) or 1
    return lifetime_total(expenses) / active_days


# =============================================================================
# INCOME, BUDGET AND ASSETS
# =============================================================================

def month_income(incomes: Iterable[Income], today: date) -> Decimal:
    return _sum(
        i.amount for i in incomes
        if i.date.year == today.year and i.date.month == today.month
    )


def budget_remaining(expenses: Iterable[Expense], settings: FinanceSettings, today: date) -> Decimal:
    """Monthly budget minus this month's spend; negative when over budget."""
    return settings.monthly_budget - month_total(expenses, today)


def to_usd(amount: Decimal, currency: Currency, exchange_rate: Decimal) -> Decimal:
    if currency == Currency.ETB:
        return amount / exchange_rate
    return amount


def net_worth_usd(assets: Iterable[Asset], exchange_rate: Decimal) -> Decimal:
    """Sum of holdings in USD; debts count against the total."""
    total = ZERO
    for asset in assets:
        value = to_usd(asset.amount, asset.currency, exchange_rate)
        total += -value if asset.type == AssetType.DEBT else value
    return total


def savings_progress(assets: Iterable[Asset], settings: FinanceSettings) -> Decimal:
    """Share of the savings goal covered by net worth, clamped to 0..1."""
    if settings.savings_goal_usd <= 0:
        return Decimal("1")
    ratio = net_worth_usd(assets, settings.exchange_rate) / settings.savings_goal_usd
    return max(ZERO, min(Decimal("1"), ratio))
