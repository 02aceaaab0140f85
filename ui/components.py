"""Reusable UI components."""
from typing import Iterable, List, Optional, Tuple

import pandas as pd
import streamlit as st

from core.errors import PersistenceFailure
from core.models import CartLine, Product
from core.sync import SyncCommand


def money(value) -> str:
    return f"${float(value):,.2f}"


def flash(message: str, icon: str = "✅") -> None:
    """Queue a toast to show after the next rerun."""
    st.session_state["flash_message"] = (message, icon)


def show_flash() -> None:
    pending = st.session_state.pop("flash_message", None)
    if pending:
        message, icon = pending
        st.toast(message, icon=icon)


def sync_alert(
    failures: List[PersistenceFailure], pending: List[SyncCommand]
) -> Optional[Tuple[str, str]]:
    """Level and text of the banner for a flush that left writes behind."""
    if not failures:
        return None
    if any(c.describe().startswith("upsert transactions") for c in pending):
        return (
            "error",
            "⚠\ufe0f Transaction saved on this device but NOT in the database. "
            "Check the connection; it will be retried.",
        )
    return (
        "warning",
        f"Database sync failed ({failures[0].operation}); "
        f"{len(pending)} change(s) will be retried.",
    )


def show_sync_alert() -> None:
    pending = st.session_state.pop("sync_alert", None)
    if pending:
        level, message = pending
        if level == "error":
            st.error(message)
        else:
            st.warning(message)


def flush_to_database(ledger, conn) -> List[PersistenceFailure]:
    """Push queued ledger writes; keep a banner for anything that did not reach the DB.

    The session keeps the change either way. The banner survives the
    ``st.rerun()`` that follows a saved form.
    """
    failures = ledger.sync.flush(conn)
    alert = sync_alert(failures, ledger.sync.pending())
    if alert:
        st.session_state["sync_alert"] = alert
    return failures


def render_products_table(products: Iterable[Product]):
    """Render catalog products as a table."""
    rows = [
        {
            "SKU": p.sku,
            "Name": p.name,
            "Category": p.category,
            "Stock": p.stock,
            "Cost": float(p.buying_price),
            "Price": float(p.selling_price),
            "Description": p.description,
        }
        for p in products
    ]
    if not rows:
        st.info("No products to show")
        return
    display_df = pd.DataFrame(rows)
    st.dataframe(
        display_df,
        width="stretch",
        hide_index=True,
        column_config={
            "Cost": st.column_config.NumberColumn("Cost", format="$%.2f"),
            "Price": st.column_config.NumberColumn("Price", format="$%.2f"),
        },
    )


def render_cart_table(lines: Iterable[CartLine]):
    rows = [
        {
            "Item": line.name,
            "Type": line.item_type.title(),
            "Qty": line.quantity,
            "Unit Price": float(line.unit_price),
            "Subtotal": float(line.subtotal),
        }
        for line in lines
    ]
    if not rows:
        st.info("Cart is empty")
        return
    st.dataframe(
        pd.DataFrame(rows),
        width="stretch",
        hide_index=True,
        column_config={
            "Unit Price": st.column_config.NumberColumn("Unit Price", format="$%.2f"),
            "Subtotal": st.column_config.NumberColumn("Subtotal", format="$%.2f"),
        },
    )
