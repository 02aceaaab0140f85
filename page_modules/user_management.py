"""User Management Page - Admin only."""
import time

import streamlit as st

from core.constants import ROLE_ADMIN, ROLE_MANAGER, ROLES
from core.services import delete_user, get_all_users, update_user_role
from core.simple_auth import create_user, edit_user


def render(conn, user):
    """Render user management page."""
    # Check permissions
    if not user.is_admin:
        st.error("⛔ Access denied. This page is for admins only.")
        return

    st.title("\U0001F9D1\u200d\U0001F4BB User Management")

    if conn is None:
        st.info("Offline mode: users are the built-in demo accounts and cannot be changed.")
        return

    # New user section
    st.header("➕ Add User")
    with st.form("add_user", clear_on_submit=True):
        col1, col2 = st.columns(2)
        name = col1.text_input("Full name")
        username = col2.text_input("Email")
        password = col1.text_input("Password", type="password")
        role = col2.selectbox("Role", ROLES, index=ROLES.index(ROLE_MANAGER))
        submitted = st.form_submit_button("Create user")
    if submitted:
        ok, message = create_user(
            conn, f"u{int(time.time() * 1000)}", username, password, name, role
        )
        if ok:
            st.success(message)
            st.rerun()
        else:
            st.error(message)

    # Active users section
    st.header("\U0001F465 Users")
    all_users_df = get_all_users(conn)

    if all_users_df.empty:
        st.info("No users.")
        return

    for _, row in all_users_df.iterrows():
        with st.container():
            col1, col2, col3, col4 = st.columns([3, 2, 2, 2])

            with col1:
                role_emoji = "\U0001F451" if row['role'] == ROLE_ADMIN else "\U0001F527"
                st.write(f"{role_emoji} **{row['name']}**")
                st.caption(f"@{row['username']}")

            with col2:
                st.caption(f"Role: {row['role'].title()}")
                if row.get('created_at'):
                    st.caption(f"Since: {str(row['created_at'])[:10]}")

            is_self = row['id'] == user.id
            with col3:
                if not is_self:
                    new_role = st.selectbox(
                        "Change role",
                        ROLES,
                        index=ROLES.index(row['role']) if row['role'] in ROLES else 1,
                        key=f"role_{row['id']}"
                    )
                    if new_role != row['role']:
                        if st.button("\U0001F4BE Save", key=f"save_role_{row['id']}"):
                            if update_user_role(conn, row['id'], new_role):
                                st.success(f"Updated {row['username']} to {new_role}")
                                st.rerun()
                            else:
                                st.error("Failed to update role")

            with col4:
                if is_self:
                    st.caption("(You)")
                elif st.button("\U0001F5D1\ufe0f Delete", key=f"delete_{row['id']}"):
                    if delete_user(conn, row['id']):
                        st.success(f"Deleted {row['username']}")
                        st.rerun()
                    else:
                        st.error("Failed to delete user")

            with st.expander("\u270f\ufe0f Edit name / reset password"):
                with st.form(f"edit_user_{row['id']}"):
                    new_name = st.text_input("Full name", value=row['name'])
                    new_password = st.text_input(
                        "New password", type="password", help="Leave blank to keep the current one"
                    )
                    saved = st.form_submit_button("\U0001F4BE Save changes")
                if saved:
                    ok, message = edit_user(conn, row['id'], new_name, new_password)
                    if ok:
                        st.success(message)
                        st.rerun()
                    else:
                        st.error(message)

            st.divider()

    # Statistics
    st.header("\U0001F4CA Statistics")
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Total Users", len(all_users_df))
    with col2:
        st.metric("Admins", int((all_users_df['role'] == ROLE_ADMIN).sum()))
