"""Transaction history: search, edit, void and export sales."""
from datetime import datetime

import streamlit as st

from core.config import get_timezone
from core.constants import MUTABLE_WINDOW_MS
from core.errors import LedgerError
from core.reports import to_local, transactions_frame, visible_transactions
from ui.components import flash, flush_to_database, money, render_cart_table


def _matches(transaction, query: str) -> bool:
    query = query.casefold()
    haystack = [
        transaction.id,
        transaction.customer_name,
        transaction.customer_phone or "",
        transaction.vehicle_model or "",
        transaction.mechanic_name or "",
    ]
    return any(query in value.casefold() for value in haystack)


def _minutes_left(ledger, transaction) -> int:
    remaining = MUTABLE_WINDOW_MS - (ledger.now() - transaction.timestamp)
    return max(0, remaining // 60000)


def _render_edit_form(ledger, user, conn, tx):
    with st.form(f"edit_{tx.id}"):
        col1, col2 = st.columns(2)
        customer_name = col1.text_input("Customer name", value=tx.customer_name)
        customer_phone = col2.text_input("Phone", value=tx.customer_phone or "")
        vehicle_model = col1.text_input("Vehicle", value=tx.vehicle_model or "")
        mechanic_name = col2.text_input("Mechanic", value=tx.mechanic_name or "")
        product_discount = col1.number_input(
            "Product discount", min_value=0.0, value=float(tx.product_discount), step=1.0
        )
        service_discount = col2.number_input(
            "Service discount", min_value=0.0, value=float(tx.service_discount), step=1.0
        )
        submitted = st.form_submit_button("\U0001F4BE Save changes")

    if submitted:
        updates = {
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "vehicle_model": vehicle_model,
            "mechanic_name": mechanic_name,
            "product_discount": product_discount,
            "service_discount": service_discount,
        }
        try:
            edited = ledger.edit_sale(tx.id, updates, user)
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Updated {edited.id}")
        st.rerun()


def _render_void(ledger, user, conn, tx):
    confirm_key = f"confirm_void_{tx.id}"
    if not st.session_state.get(confirm_key):
        if st.button("\U0001F5D1\ufe0f Void sale", key=f"void_{tx.id}"):
            st.session_state[confirm_key] = True
            st.rerun()
        return

    st.warning(f"Void {tx.id}? Product stock will be restored.")
    col1, col2 = st.columns(2)
    if col1.button("Yes, void", key=f"void_yes_{tx.id}", type="primary"):
        st.session_state.pop(confirm_key, None)
        try:
            ledger.void_sale(tx.id, user)
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Voided {tx.id}", "\U0001F5D1\ufe0f")
        st.rerun()
    if col2.button("Cancel", key=f"void_no_{tx.id}"):
        st.session_state.pop(confirm_key, None)
        st.rerun()


def render(ledger, user, conn):
    """Render the transactions page."""
    st.header("\U0001F9FE Transactions")
    tz = get_timezone()

    transactions = visible_transactions(ledger.transactions, user)
    query = st.text_input("\U0001F50D Search by ID, customer, phone, vehicle or mechanic")
    if query.strip():
        transactions = [t for t in transactions if _matches(t, query.strip())]

    if not transactions:
        st.info("No transactions found")
        return

    df = transactions_frame(transactions, tz)
    if not user.is_admin:
        df = df.drop(columns=["total_profit"])
    st.download_button(
        "\U0001F4E5 Export CSV",
        df.drop(columns=["day"]).to_csv(index=False).encode("utf-8"),
        file_name=f"transactions_{datetime.now(tz):%Y%m%d_%H%M}.csv",
        mime="text/csv",
    )

    for tx in transactions[:50]:
        editable = ledger.can_modify(tx, user)
        when = to_local(tx.timestamp, tz).strftime("%d/%m/%Y %H:%M")
        label = f"{tx.id} | {when} | {tx.customer_name} | {money(tx.total_amount)}"
        if not editable:
            label = f"\U0001F512 {label}"
        with st.expander(label):
            col1, col2, col3 = st.columns(3)
            col1.caption(f"Phone: {tx.customer_phone or '-'}")
            col2.caption(f"Vehicle: {tx.vehicle_model or '-'}")
            col3.caption(f"Mechanic: {tx.mechanic_name or '-'}")
            render_cart_table(tx.items)

            col1, col2, col3 = st.columns(3)
            col1.write(f"Products: {money(tx.product_total)} (-{money(tx.product_discount)})")
            col2.write(f"Services: {money(tx.service_total)} (-{money(tx.service_discount)})")
            col3.write(f"**Total: {money(tx.total_amount)}**")
            if user.is_admin:
                st.caption(f"Cost {money(tx.total_cost)} | Profit {money(tx.total_profit)}")
            st.caption(f"Recorded by {tx.created_by_name}")

            if not editable:
                st.markdown(
                    "<span class='tx-locked'>Locked: the edit window has passed.</span>",
                    unsafe_allow_html=True,
                )
                continue
            if not user.is_admin:
                st.caption(f"Editable for {_minutes_left(ledger, tx)} more minute(s)")
            _render_edit_form(ledger, user, conn, tx)
            _render_void(ledger, user, conn, tx)

    if len(transactions) > 50:
        st.caption(f"Showing 50 of {len(transactions)}. Use search or export to see more.")
