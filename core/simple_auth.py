"""Simple authentication: seeded users, SHA-256 password hashes, session flags."""
import hashlib
import logging
from typing import Optional

import streamlit as st

from core.constants import INITIAL_USERS, ROLE_MANAGER
from core.models import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash password using SHA-256."""
    return hashlib.sha256(password.encode()).hexdigest()


def seed_users(conn) -> None:
    """Insert the default admin and manager into an empty users table."""
    from core.services import add_user

    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) FROM users")
    if cur.fetchone()[0]:
        return
    logger.info("Seeding users")
    for user in INITIAL_USERS:
        add_user(conn, user["id"], user["username"], hash_password(user["password"]),
                 user["name"], user["role"])


def get_db_user(conn, username: str) -> Optional[dict]:
    """Get user row (including password hash) from database."""
    from core.services import placeholder

    username = (username or "").strip()
    cur = conn.cursor()
    try:
        cur.execute(
            "SELECT id, username, password_hash, name, role FROM users "
            f"WHERE LOWER(username) = LOWER({placeholder(conn)})",
            (username,),
        )
        row = cur.fetchone()
        if row:
            return {
                'id': row[0],
                'username': row[1],
                'password_hash': row[2],
                'name': row[3],
                'role': row[4],
            }
    except Exception:
        logger.exception("Failed to read user from database")
    return None


def verify_login(conn, username: str, password: str) -> Optional[User]:
    """Check credentials against the database, or the seeded users offline."""
    username = (username or "").strip()
    password_hash = hash_password(password or "")

    if conn is None:
        for user in INITIAL_USERS:
            if user["username"].lower() == username.lower() and user["password"] == password:
                return User(id=user["id"], name=user["name"], role=user["role"],
                            username=user["username"])
        return None

    row = get_db_user(conn, username)
    if row and row['password_hash'] == password_hash:
        return User(id=str(row['id']), name=row['name'], role=row['role'],
                    username=row['username'])
    return None


def create_user(conn, user_id: str, username: str, password: str, name: str,
                role: str = ROLE_MANAGER) -> tuple:
    """Create a login.
    Returns: (success: bool, message: str)
    """
    from core.services import add_user

    username = (username or "").strip()
    if not username or not password or not name:
        return False, "All fields are required"
    if len(password) < 4:
        return False, "Password must be at least 4 characters"
    if get_db_user(conn, username):
        return False, "Username already exists"
    try:
        add_user(conn, user_id, username, hash_password(password), name, role)
    except Exception as e:
        logger.exception("Failed to create user")
        return False, f"Error creating account: {str(e)}"
    return True, f"User {name} created"


def edit_user(conn, user_id: str, name: str, password: str = "") -> tuple:
    """Change a user's display name; a non-empty password replaces the old one.
    Returns: (success: bool, message: str)
    """
    from core.services import update_user

    name = (name or "").strip()
    if not name:
        return False, "Name is required"
    if password and len(password) < 4:
        return False, "Password must be at least 4 characters"
    if not update_user(conn, user_id, name, hash_password(password) if password else None):
        return False, "Failed to update user"
    return True, f"User {name} updated"


def login_form(conn):
    """Display the login form."""
    st.markdown("### \U0001F510 Login")
    if conn is None:
        st.caption("Offline mode: sign in with a demo account (admin@autotrack.com / 1234).")
    with st.form("login_form", clear_on_submit=False):
        username = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submit = st.form_submit_button("Login", width="stretch")

        if submit:
            if username and password:
                user = verify_login(conn, username, password)
                if user:
                    st.session_state.authenticated = True
                    st.session_state.user = user
                    st.rerun()
                else:
                    st.error("\u274C Invalid email or password")
            else:
                st.warning("\u26A0\ufe0f Please enter both email and password")


def logout():
    """Clear authentication session and the session ledger."""
    st.session_state.authenticated = False
    st.session_state.user = None
    st.session_state.pop("ledger", None)


def require_auth() -> bool:
    """Check if user is authenticated. Returns True if authenticated, False otherwise."""
    return bool(st.session_state.get('authenticated', False) and st.session_state.get('user'))


def get_current_user() -> Optional[User]:
    """Get current user, or None when signed out."""
    return st.session_state.get('user')
