"""Dashboard page with sales, cash flow and stock overview."""
from datetime import datetime

import plotly.express as px
import streamlit as st

from core.config import get_timezone
from core.constants import DASHBOARD_PERIODS, REPORT_PERIODS
from core.reports import (
    daily_sales,
    in_window,
    is_in_range,
    report_window,
    summarize,
    transactions_frame,
    visible_cash_flows,
    visible_transactions,
)
from ui.components import money


def _render_report(ledger, user, transactions, now):
    st.subheader("\U0001F4C4 Sales Report")
    col1, col2, col3 = st.columns(3)
    period = col1.selectbox(
        "Report period",
        REPORT_PERIODS,
        format_func=lambda p: {"today": "Today", "week": "Last 7 Days",
                               "month": "This Month", "custom": "Custom Range"}[p],
        key="report_period",
    )
    start = end = None
    if period == "custom":
        start = col2.date_input("From", value=now.date(), key="report_start")
        end = col3.date_input("To", value=now.date(), key="report_end")
        if start and end and start > end:
            st.warning("Start date is after end date.")
            return

    window = report_window(period, now, start, end)
    if window is None:
        st.info("Choose both dates to see the report")
        return
    sales = in_window(transactions, window)
    flows = in_window(visible_cash_flows(ledger.cash_flows, user), window)
    stats = summarize(sales, flows)

    col1, col2, col3 = st.columns(3)
    col1.metric("Sales", stats.transaction_count)
    col2.metric("Revenue", money(stats.total_revenue))
    col3.metric("Expenses" if user.is_admin else "My Expenses", money(stats.total_expenses))
    if user.is_admin:
        col1, col2, col3 = st.columns(3)
        col1.metric("Profit", money(stats.total_profit))
        col2.metric("Withdrawals", money(stats.total_withdrawals))
        col3.metric("Net", money(stats.net_cash_flow))

    df = transactions_frame(sales, now.tzinfo)
    if df.empty:
        st.info("No sales in this period")
        return
    if not user.is_admin:
        df = df.drop(columns=["total_profit"])
    st.dataframe(df.drop(columns=["day"]), width="stretch", hide_index=True)
    st.download_button(
        "\U0001F4E5 Download CSV",
        df.to_csv(index=False).encode("utf-8"),
        file_name=f"sales_report_{period}_{now:%Y%m%d}.csv",
        mime="text/csv",
    )


def render(ledger, user):
    """Render the dashboard page."""
    st.header("\U0001F4CA Dashboard")
    now = datetime.now(get_timezone())

    period = st.selectbox(
        "Period",
        list(DASHBOARD_PERIODS),
        format_func=DASHBOARD_PERIODS.get,
        key="dashboard_period",
    )
    transactions = visible_transactions(ledger.transactions, user)
    period_sales = [t for t in transactions if is_in_range(t.timestamp, period, now)]
    flows = visible_cash_flows(ledger.cash_flows, user)
    period_flows = [c for c in flows if is_in_range(c.timestamp, period, now)]
    stats = summarize(period_sales, period_flows)

    # Row 1: Sales
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Revenue", money(stats.total_revenue))
    col2.metric("Product Sales", money(stats.product_revenue))
    col3.metric("Service Sales", money(stats.service_revenue))
    col4.metric("Transactions", stats.transaction_count)

    # Row 2: Cash flow
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Expenses" if user.is_admin else "My Expenses", money(stats.total_expenses))
    if user.is_admin:
        col2.metric("Withdrawals", money(stats.total_withdrawals))
        col3.metric("Profit", money(stats.total_profit))
        col4.metric("Net Cash Flow", money(stats.net_cash_flow))

    st.markdown("---")

    st.subheader("\U0001F4C8 Last 7 Days")
    chart_df = daily_sales(transactions, now)
    y_columns = ["total_amount", "total_profit"] if user.is_admin else ["total_amount"]
    fig = px.bar(
        chart_df,
        x="label",
        y=y_columns,
        barmode="group",
        labels={"label": "Day", "value": "Amount ($)", "variable": ""},
        color_discrete_sequence=["#4338ca", "#10b981"],
    )
    st.plotly_chart(fig, width="stretch")

    # Low stock
    st.subheader("⚠\ufe0f Low Stock")
    low = sorted(ledger.low_stock_products(), key=lambda p: p.stock)
    if low:
        st.dataframe(
            [{"Product": p.name, "SKU": p.sku, "Stock": p.stock} for p in low],
            width="stretch",
            hide_index=True,
        )
    else:
        st.success("All products are well stocked")

    # Recent activity
    st.subheader("\U0001F504 Recent Sales")
    recent = transactions_frame(transactions[:5], now.tzinfo)
    if recent.empty:
        st.info("No recent activity")
    else:
        st.dataframe(
            recent[["id", "date", "customer", "items", "total_amount"]].rename(
                columns={"id": "ID", "date": "Date", "customer": "Customer",
                         "items": "Items", "total_amount": "Total"}
            ),
            width="stretch",
            hide_index=True,
        )

    st.markdown("---")
    _render_report(ledger, user, transactions, now)
