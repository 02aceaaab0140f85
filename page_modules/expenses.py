"""Expenses page: record expenses and owner withdrawals."""
import streamlit as st

from core.config import get_timezone
from core.constants import CASH_FLOW_EXPENSE, CASH_FLOW_WITHDRAWAL, EXPENSE_CATEGORIES
from core.errors import LedgerError
from core.reports import to_local
from ui.components import flash, flush_to_database, money


def render(ledger, user, conn):
    """Render the expenses page."""
    st.header("\U0001F4B8 Expenses & Withdrawals")

    kind = st.radio(
        "Type",
        [CASH_FLOW_EXPENSE, CASH_FLOW_WITHDRAWAL],
        format_func=lambda k: k.title(),
        horizontal=True,
        key="cash_flow_kind",
    )
    with st.form("cash_flow_form", clear_on_submit=True):
        category = None
        if kind == CASH_FLOW_EXPENSE:
            category = st.selectbox("Category *", [""] + EXPENSE_CATEGORIES)
        amount = st.number_input("Amount *", min_value=0.0, step=10.0)
        description = st.text_input("Description")
        submitted = st.form_submit_button("\U0001F4BE Record")

    if submitted:
        try:
            entry = ledger.record_cash_flow(
                kind, amount, user, category=category, description=description
            )
        except LedgerError as e:
            st.error(f"❌ {e}")
        else:
            flush_to_database(ledger, conn)
            flash(f"Recorded {entry.kind} of {money(entry.amount)}")
            st.rerun()

    st.divider()
    st.subheader("History")
    entries = ledger.cash_flows
    if not entries:
        st.info("No expenses recorded yet")
        return
    tz = get_timezone()
    rows = [
        {
            "Date": to_local(e.timestamp, tz).strftime("%d/%m/%Y %H:%M"),
            "Type": e.kind.title(),
            "Category": e.category or "",
            "Amount": float(e.amount),
            "Description": e.description,
            "By": e.created_by_name,
        }
        for e in entries
    ]
    st.dataframe(
        rows,
        width="stretch",
        hide_index=True,
        column_config={"Amount": st.column_config.NumberColumn("Amount", format="$%.2f")},
    )
