"""
Streamlit Frontend for NomadFinance

The mini-app the Telegram bot opens. One session = one set of components
(store + identity gate) and one background event loop, kept in
st.session_state. Identity checks block the page; store mutations return
as soon as their local change is applied.

Screens:
- Loading / "Open in Telegram" / registration / retry (identity gate)
- Expenses, Reports, Income, Assets, Settings tabs (once authorized)
"""

import time
from datetime import date
from decimal import Decimal

import streamlit as st

from nomad_finance.background import BackgroundLoop
from nomad_finance.config import validate_all_settings
from nomad_finance.identity import EmptyPasswordError, GateState, resolve_host_user
from nomad_finance.models.records import (
    AssetDraft,
    AssetType,
    Currency,
    ExpenseCategory,
    ExpenseDraft,
    Frequency,
    IncomeDraft,
    IncomeType,
    Theme,
)
from nomad_finance.orchestrator import AppComponents, create_app_components
from nomad_finance.reports import (
    ReportPeriod,
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
    trend_series,
)
from nomad_finance.store import FinanceStore


st.set_page_config(
    page_title="NomadFinance",
    page_icon="💸",
    layout="centered",
)


def get_background_loop() -> BackgroundLoop:
    """Get or create this session's event loop thread."""
    if "background_loop" not in st.session_state:
        st.session_state.background_loop = BackgroundLoop()
    return st.session_state.background_loop


def run_blocking(coro):
    """Identity checks hold the page until they finish."""
    return get_background_loop().run(coro)


def run_in_background(coro):
    """Apply the local change now; the remote call completes in the background."""
    get_background_loop().start(coro)


def get_components() -> AppComponents:
    """Get or create this session's components."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(use_storage=True)
    return st.session_state.components


def fmt(amount: Decimal) -> str:
    return f"{amount:,.0f}"


def main():
    """Main application entry point."""
    components = get_components()
    gate = components.gate

    if components.app_settings.debug_mode:
        st.sidebar.caption(f"Storage backend: {components.backend}")
        st.sidebar.json(validate_all_settings())

    if gate.state == GateState.LOADING:
        host_user = resolve_host_user(
            st.query_params.get("user"),
            st.context.headers.get("Host"),
            components.app_settings,
        )
        with st.spinner("Loading..."):
            run_blocking(gate.initialize(host_user))

    if gate.state == GateState.NO_IDENTITY:
        render_open_in_host()
    elif gate.state == GateState.ERROR:
        render_retry(components)
    elif gate.state == GateState.NEEDS_REGISTRATION:
        render_registration(components)
    elif gate.state == GateState.AUTHORIZED:
        render_app(components.store)


# =============================================================================
# GATE SCREENS
# =============================================================================

def render_open_in_host():
    st.title("Open in Telegram")
    st.markdown(
        "NomadFinance is designed as a Telegram Mini App. "
        "Please open it using your Telegram bot."
    )


def render_retry(components: AppComponents):
    st.title("Connection problem")
    st.error("We couldn't reach the account service.")
    if components.gate.error_message:
        st.caption(components.gate.error_message)
    if st.button("🔄 Reload", type="primary"):
        run_blocking(components.gate.retry())
        st.rerun()


def render_registration(components: AppComponents):
    gate = components.gate
    name = gate.host_user.first_name if gate.host_user else ""
    st.title(f"Welcome{', ' + name if name else ''}")
    st.markdown("Set a password to finish creating your account.")

    with st.form("register"):
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Create account", type="primary")

    if submitted:
        try:
            with st.spinner("Creating your account..."):
                run_blocking(gate.register(password))
            st.rerun()
        except EmptyPasswordError:
            st.error("Please enter a password")


# =============================================================================
# APP TABS
# =============================================================================

def render_app(store: FinanceStore):
    expenses_tab, reports_tab, income_tab, assets_tab, settings_tab = st.tabs(
        ["Expenses", "Reports", "Income", "Assets", "Settings"]
    )
    with expenses_tab:
        render_expenses_tab(store)
    with reports_tab:
        render_reports_tab(store)
    with income_tab:
        render_income_tab(store)
    with assets_tab:
        render_assets_tab(store)
    with settings_tab:
        render_settings_tab(store)

    if get_background_loop().pending_tasks:
        st.caption("⏳ Syncing...")
        time.sleep(1)
        st.rerun()


def render_expenses_tab(store: FinanceStore):
    today = date.today()
    snapshot = store.snapshot()

    col1, col2 = st.columns(2)
    col1.metric("Total (Month)", f"{fmt(month_total(snapshot.expenses, today))} ETB")
    col2.metric("Budget left", f"{fmt(budget_remaining(snapshot.expenses, snapshot.settings, today))} ETB")

    with st.expander("➕ Add Expense"):
        with st.form("add_expense", clear_on_submit=True):
            amount = st.number_input("Amount (ETB)", min_value=0.0, step=10.0)
            category = st.selectbox(
                "Category",
                options=list(ExpenseCategory),
                format_func=lambda c: f"{category_icon(c)} {category_label(c)}",
            )
            spent_on = st.date_input("Date", value=today)
            note = st.text_input("Note")
            recurring = False
            if snapshot.settings.recurring_enabled:
                recurring = st.checkbox("Repeats monthly")
            if st.form_submit_button("Add Expense", type="primary") and amount > 0:
                run_in_background(store.add_expense(ExpenseDraft(
                    title=note or category.value,
                    amount=Decimal(str(amount)),
                    category=category,
                    date=spent_on,
                    is_recurring=recurring,
                    frequency=Frequency.MONTHLY if recurring else None,
                    note=note or None,
                )))
                st.rerun()

    for group in group_by_day(snapshot.expenses):
        heading = group.day.strftime("%a, %d %b")
        if is_today(group.day, today):
            heading = f"**{heading} · Today**"
        st.markdown(f"{heading} · {fmt(group.total)} ETB")
        for expense in group.expenses:
            left, mid, right = st.columns([6, 3, 1])
            pending = " ⏳" if expense.is_pending else ""
            left.write(f"{category_icon(expense.category)} {expense.title}{pending}")
            mid.write(f"{fmt(expense.amount)} ETB")
            if right.button("✕", key=f"del-exp-{expense.id}"):
                run_in_background(store.delete_expense(expense.id))
                st.rerun()


def render_reports_tab(store: FinanceStore):
    today = date.today()
    expenses = store.expenses

    period = st.radio(
        "Period",
        options=list(ReportPeriod),
        format_func=lambda p: "7D" if p == ReportPeriod.WEEK else "30D",
        horizontal=True,
    )

    col1, col2 = st.columns(2)
    col1.metric("Lifetime", f"{fmt(lifetime_total(expenses))} ETB")
    col2.metric("Daily Avg", f"{fmt(average_daily_spend(expenses))} ETB / Day")

    st.subheader("Category Allocation")
    totals = category_totals(expenses)
    if totals:
        st.bar_chart(
            {"category": [t.label for t in totals], "amount": [float(t.total) for t in totals]},
            x="category",
            y="amount",
        )
    else:
        st.info("No Expense Data")

    st.subheader("Spending Trend")
    points = trend_series(expenses, int(period), today)
    st.bar_chart(
        {"day": [p.day.isoformat() for p in points], "amount": [float(p.amount) for p in points]},
        x="day",
        y="amount",
    )


def render_income_tab(store: FinanceStore):
    today = date.today()
    st.metric("Income (Month)", f"{fmt(month_income(store.incomes, today))} USD")

    with st.expander("➕ Add Income"):
        with st.form("add_income", clear_on_submit=True):
            amount = st.number_input("Amount (USD)", min_value=0.0, step=10.0)
            source = st.text_input("Source")
            received_on = st.date_input("Date", value=today)
            kind = st.selectbox("Type", options=list(IncomeType), format_func=lambda t: t.value)
            if st.form_submit_button("Add Income", type="primary") and amount > 0 and source:
                run_in_background(store.add_income(IncomeDraft(
                    amount=Decimal(str(amount)),
                    source=source,
                    date=received_on,
                    type=kind,
                )))
                st.rerun()

    for income in store.incomes:
        left, mid, right = st.columns([6, 3, 1])
        left.write(f"{income.source} · {income.type.value} · {income.date.isoformat()}")
        mid.write(f"{fmt(income.amount)} USD")
        if right.button("✕", key=f"del-inc-{income.id}"):
            run_in_background(store.delete_income(income.id))
            st.rerun()


def render_assets_tab(store: FinanceStore):
    settings = store.settings
    assets = store.assets

    col1, col2 = st.columns(2)
    col1.metric("Net worth", f"{fmt(net_worth_usd(assets, settings.exchange_rate))} USD")
    col2.metric("Savings goal", f"{float(savings_progress(assets, settings)):.0%}")

    with st.expander("➕ Add Asset"):
        with st.form("add_asset", clear_on_submit=True):
            name = st.text_input("Name")
            amount = st.number_input("Amount", min_value=0.0, step=100.0)
            kind = st.selectbox("Type", options=list(AssetType), format_func=lambda t: t.value)
            currency = st.selectbox("Currency", options=list(Currency), format_func=lambda c: c.value)
            if st.form_submit_button("Add Asset", type="primary") and name:
                run_in_background(store.add_asset(AssetDraft(
                    name=name,
                    amount=Decimal(str(amount)),
                    type=kind,
                    currency=currency,
                )))
                st.rerun()

    for asset in assets:
        left, mid, right = st.columns([6, 3, 1])
        left.write(f"{asset.name} · {asset.type.value}")
        mid.write(f"{fmt(asset.amount)} {asset.currency.value}")
        if right.button("✕", key=f"del-ast-{asset.id}"):
            run_in_background(store.delete_asset(asset.id))
            st.rerun()


def render_settings_tab(store: FinanceStore):
    settings = store.settings

    with st.form("settings"):
        user_name = st.text_input("Display name", value=settings.user_name)
        exchange_rate = st.number_input(
            "Exchange rate (ETB per USD)", min_value=0.01, value=float(settings.exchange_rate)
        )
        monthly_budget = st.number_input(
            "Monthly budget (ETB)", min_value=0.0, value=float(settings.monthly_budget)
        )
        savings_goal = st.number_input(
            "Savings goal (USD)", min_value=0.0, value=float(settings.savings_goal_usd)
        )
        recurring_enabled = st.checkbox("Recurring expenses", value=settings.recurring_enabled)
        theme = st.selectbox(
            "Theme",
            options=list(Theme),
            index=list(Theme).index(settings.theme),
            format_func=lambda t: t.value.title(),
        )
        if st.form_submit_button("Save", type="primary"):
            run_in_background(store.update_settings(
                user_name=user_name,
                exchange_rate=Decimal(str(exchange_rate)),
                monthly_budget=Decimal(str(monthly_budget)),
                savings_goal_usd=Decimal(str(savings_goal)),
                recurring_enabled=recurring_enabled,
                theme=theme,
            ))
            st.success("Settings saved")


if __name__ == "__main__":
    main()
