"""Create and return a database connection (PostgreSQL, SQLite, or none).
Schema creation is delegated to `services.init_db(conn)` to avoid
duplicated table definitions.
"""
import logging
import os
import sqlite3

import streamlit as st

from core.config import get_section, get_setting
from core.services import init_db as init_schema
from core.simple_auth import seed_users

logger = logging.getLogger(__name__)


def init_db():
    """Initialize database connection.

    Uses PostgreSQL (Supabase) when a ``[postgres]`` secrets section exists,
    a local SQLite file when ``SQLITE_PATH`` is set, and otherwise returns
    None so the app runs offline on mock data.
    """
    pg = get_section("postgres")
    if pg:
        import psycopg2

        try:
            # Supabase requires SSL
            conn = psycopg2.connect(
                host=pg["host"],
                port=int(pg.get("port", 5432)),
                database=pg["database"],
                user=pg["user"],
                password=pg["password"],
                sslmode=pg.get("sslmode", "require"),
                connect_timeout=10,
                options='-c statement_timeout=30000'  # 30 second query timeout
            )
            conn.autocommit = False
        except Exception as e:
            logger.exception('PostgreSQL connection failed')
            st.error(f"\u26A0\ufe0f PostgreSQL connection failed: {str(e)}")
            st.warning("\U0001F4DD Check: 1) Supabase project is ACTIVE (not paused), 2) Secrets are correct, 3) Database allows connections")
            # Do not fall back silently when PostgreSQL secrets are provided.
            st.stop()
    else:
        sqlite_path = get_setting("SQLITE_PATH")
        if not sqlite_path:
            logger.warning("Database credentials missing. App running in OFFLINE MODE with mock data.")
            return None
        conn = _connect_sqlite(sqlite_path)

    init_schema(conn)
    seed_users(conn)
    return conn


def _connect_sqlite(path: str) -> sqlite3.Connection:
    """Create local SQLite connection (ensures the parent dir exists)."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return sqlite3.connect(path, check_same_thread=False)
