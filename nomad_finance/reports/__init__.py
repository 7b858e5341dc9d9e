"""Aggregate derivation used by the views."""

from nomad_finance.reports.aggregates import (
    CATEGORY_ICONS,
    FALLBACK_ICON,
    CategoryTotal,
    DayGroup,
    ReportPeriod,
    TrendPoint,
    average_daily_spend,
    budget_remaining,
    category_icon,
    category_label,
    category_totals,
    group_by_day,
    is_today,
    lifetime_total,
    month_income,
    month_total,
    net_worth_usd,
    savings_progress,
    to_usd,
    trend_series,
)

__all__ = [
    "CATEGORY_ICONS",
    "FALLBACK_ICON",
    "CategoryTotal",
    "DayGroup",
    "ReportPeriod",
    "TrendPoint",
    "average_daily_spend",
    "budget_remaining",
    "category_icon",
    "category_label",
    "category_totals",
    "group_by_day",
    "is_today",
    "lifetime_total",
    "month_income",
    "month_total",
    "net_worth_usd",
    "savings_progress",
    "to_usd",
    "trend_series",
]
