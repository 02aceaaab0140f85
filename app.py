"""AutoTrack POS - Main Application Entry Point."""
import logging

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
from core.db_init import init_db
from core.mobile_styles import apply_mobile_styles
from core.services import open_ledger
from core.simple_auth import get_current_user, login_form, require_auth
from ui.components import show_flash, show_sync_alert
from ui.sidebar import render_sidebar_menu, render_sync_status

# Import page render functions
from page_modules import dashboard, employees, expenses, inventory, pos, transactions, user_management

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Page configuration
st.set_page_config(
    page_title="AutoTrack POS",
    page_icon="\U0001F527",
    layout="wide",
)

# Apply mobile-friendly styles
apply_mobile_styles()


# Initialize database connection (cached to avoid reconnecting on every interaction)
@st.cache_resource
def get_db_connection():
    return init_db()


conn = get_db_connection()

# Check authentication
if not require_auth():
    login_form(conn)
    st.stop()

user = get_current_user()

# One ledger per session, loaded once and then kept in memory
if "ledger" not in st.session_state:
    st.session_state.ledger = open_ledger(conn)
ledger = st.session_state.ledger

menu = render_sidebar_menu(user, offline=conn is None)
show_sync_alert()
show_flash()

# Page routing
pages = {
    MENU_DASHBOARD: lambda: dashboard.render(ledger, user),
    MENU_POS: lambda: pos.render(ledger, user, conn),
    MENU_TRANSACTIONS: lambda: transactions.render(ledger, user, conn),
    MENU_INVENTORY: lambda: inventory.render(ledger, user, conn),
    MENU_EXPENSES: lambda: expenses.render(ledger, user, conn),
}

# Add admin-only pages
if user.is_admin:
    pages[MENU_EMPLOYEES] = lambda: employees.render(ledger, user, conn)
    pages[MENU_USER_MANAGEMENT] = lambda: user_management.render(conn, user)

# Render selected page
if menu not in pages:
    menu = MENU_DASHBOARD
pages[menu]()

render_sync_status(ledger, conn)
