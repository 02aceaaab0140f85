"""Sidebar menu, signed-in user and sync status."""
import streamlit as st

from core.constants import (
    MENU_DASHBOARD,
    MENU_EMPLOYEES,
    MENU_EXPENSES,
    MENU_INVENTORY,
    MENU_POS,
    MENU_TRANSACTIONS,
    MENU_USER_MANAGEMENT,
)
from core.simple_auth import logout
from ui.components import flash, flush_to_database


def render_sidebar_menu(user, offline: bool = False):
    """Render the sidebar navigation menu with the signed-in user and logout."""
    menu = [MENU_DASHBOARD, MENU_POS, MENU_TRANSACTIONS, MENU_INVENTORY, MENU_EXPENSES]
    if user.is_admin:
        # Only show admin pages to admins
        menu.extend([MENU_EMPLOYEES, MENU_USER_MANAGEMENT])
    if (
        "menu_selection" not in st.session_state
        or st.session_state.menu_selection not in menu
    ):
        st.session_state.menu_selection = menu[0]
    selected = st.sidebar.radio("Select Page", menu, key="menu_selection")

    st.sidebar.markdown("---")
    role_emoji = "\U0001F451" if user.is_admin else "\U0001F9D1\u200d\U0001F527"
    st.sidebar.write(f"{role_emoji} **{user.name}**")
    st.sidebar.caption(f"Role: {user.role.title()}")
    if offline:
        st.sidebar.warning("Offline mode: changes are not saved.")
    if st.sidebar.button("\U0001F6AA Logout", key="sidebar_logout"):
        logout()
        st.rerun()

    return selected


def render_sync_status(ledger, conn):
    """Show writes still waiting for the database, with a retry button."""
    pending = len(ledger.sync)
    if conn is None or not pending:
        return
    st.sidebar.markdown("---")
    st.sidebar.warning(f"{pending} change(s) not yet saved to the database.")
    if st.sidebar.button("\U0001F504 Retry sync", key="sidebar_retry_sync"):
        if not flush_to_database(ledger, conn):
            flash("\U0001F4BE All changes saved")
        st.rerun()
