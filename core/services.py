# ---------- services.py ----------
"""Database access for the ledger: schema, loading and row writes."""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

import pandas as pd

from core.constants import INITIAL_PRODUCTS, INITIAL_SERVICES
from core.ledger import Ledger
from core.models import (
    Attendance,
    CartLine,
    CashFlowEntry,
    Customer,
    Employee,
    Product,
    Service,
    Transaction,
    to_money,
)
from core.sync import DELETE, UPSERT, SyncCommand

try:
    import psycopg2
    import psycopg2.extensions
except ImportError:
    psycopg2 = None

logger = logging.getLogger(__name__)

# Type alias for database connections
DBConnection = Union[sqlite3.Connection, 'psycopg2.extensions.connection']

TABLES = (
    "products",
    "services",
    "customers",
    "transactions",
    "cash_flow",
    "employees",
    "attendance",
)


def is_postgres(conn: DBConnection) -> bool:
    """Check if connection is PostgreSQL."""
    return psycopg2 is not None and isinstance(conn, psycopg2.extensions.connection)


def placeholder(conn: DBConnection) -> str:
    return "%s" if is_postgres(conn) else "?"


def init_db(conn: DBConnection) -> None:
    """Create tables for a new database (safe to run on existing DB)."""
    is_pg = is_postgres(conn)
    # Use NUMERIC for PostgreSQL, REAL for SQLite
    money = "NUMERIC(10,2)" if is_pg else "REAL"

    cur = conn.cursor()
    try:
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS products (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                sku TEXT,
                type TEXT DEFAULT 'product',
                category TEXT,
                description TEXT,
                buying_price {money} DEFAULT 0,
                selling_price {money} DEFAULT 0,
                stock INTEGER DEFAULT 0
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS services (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT DEFAULT 'service',
                category TEXT,
                description TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS customers (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                phone TEXT
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                timestamp BIGINT NOT NULL,
                customer_name TEXT NOT NULL,
                customer_phone TEXT,
                vehicle_model TEXT,
                mechanic_name TEXT,
                items TEXT NOT NULL,
                product_total {money},
                service_total {money},
                product_discount {money},
                service_discount {money},
                total_amount {money},
                total_cost {money},
                total_profit {money},
                created_by TEXT,
                created_by_name TEXT
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS cash_flow (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                category TEXT,
                amount {money} NOT NULL,
                description TEXT,
                timestamp BIGINT NOT NULL,
                created_by TEXT,
                created_by_name TEXT
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS employees (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                phone TEXT,
                position TEXT,
                salary_per_month {money} DEFAULT 0,
                total_due_salary {money} DEFAULT 0
            )
            """
        )
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS attendance (
                id TEXT PRIMARY KEY,
                employee_id TEXT NOT NULL,
                date BIGINT NOT NULL,
                status TEXT NOT NULL,
                type TEXT,
                wage {money} DEFAULT 0
            )
            """
        )
        # Users table for authentication
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                name TEXT NOT NULL,
                role TEXT NOT NULL,
                created_at TEXT
            )
            """
        )

        # Schema migration: older databases lack the frozen cost column
        if is_pg:
            cur.execute(
                "ALTER TABLE transactions ADD COLUMN IF NOT EXISTS total_cost NUMERIC(10,2)"
            )
        else:
            cur.execute("PRAGMA table_info(transactions)")
            cols = [r[1] for r in cur.fetchall()]
            if "total_cost" not in cols:
                cur.execute("ALTER TABLE transactions ADD COLUMN total_cost REAL")
        conn.commit()
    except Exception:
        conn.rollback()
        raise


# ============================================================================
# Row mapping
# ============================================================================

def _db_value(conn: DBConnection, value):
    """sqlite3 cannot bind Decimal; PostgreSQL keeps exact NUMERIC."""
    if isinstance(value, Decimal) and not is_postgres(conn):
        return float(value)
    return value


def _clean(value):
    """pandas NaN/NaT back to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _str_or_none(value) -> Optional[str]:
    value = _clean(value)
    return None if value is None else str(value)


def product_to_row(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "type": "product",
        "category": p.category,
        "description": p.description,
        "buying_price": p.buying_price,
        "selling_price": p.selling_price,
        "stock": p.stock,
    }


def product_from_row(row: dict) -> Product:
    return Product(
        id=str(row["id"]),
        name=row["name"],
        sku=_str_or_none(row.get("sku")) or "",
        category=_str_or_none(row.get("category")) or "",
        description=_str_or_none(row.get("description")) or "",
        buying_price=to_money(_clean(row.get("buying_price"))),
        selling_price=to_money(_clean(row.get("selling_price"))),
        stock=int(_clean(row.get("stock")) or 0),
    )


def service_to_row(s: Service) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "type": "service",
        "category": s.category,
        "description": s.description,
    }


def service_from_row(row: dict) -> Service:
    return Service(
        id=str(row["id"]),
        name=row["name"],
        category=_str_or_none(row.get("category")) or "",
        description=_str_or_none(row.get("description")) or "",
    )


def customer_to_row(c: Customer) -> dict:
    return {"id": c.id, "name": c.name, "phone": c.phone}


def customer_from_row(row: dict) -> Customer:
    return Customer(id=str(row["id"]), name=row["name"], phone=_str_or_none(row.get("phone")))


def transaction_to_row(t: Transaction) -> dict:
    return {
        "id": t.id,
        "timestamp": t.timestamp,
        "customer_name": t.customer_name,
        "customer_phone": t.customer_phone,
        "vehicle_model": t.vehicle_model,
        "mechanic_name": t.mechanic_name,
        "items": json.dumps([line.to_dict() for line in t.items]),
        "product_total": t.product_total,
        "service_total": t.service_total,
        "product_discount": t.product_discount,
        "service_discount": t.service_discount,
        "total_amount": t.total_amount,
        "total_cost": t.total_cost,
        "total_profit": t.total_profit,
        "created_by": t.created_by,
        "created_by_name": t.created_by_name,
    }


def transaction_from_row(row: dict) -> Transaction:
    raw_items = row.get("items") or "[]"
    # JSONB columns arrive already decoded
    items = raw_items if isinstance(raw_items, list) else json.loads(raw_items)
    total_amount = to_money(_clean(row.get("total_amount")))
    total_profit = to_money(_clean(row.get("total_profit")))
    total_cost = _clean(row.get("total_cost"))
    return Transaction(
        id=str(row["id"]),
        timestamp=int(row["timestamp"]),
        customer_name=row["customer_name"],
        customer_phone=_str_or_none(row.get("customer_phone")),
        vehicle_model=_str_or_none(row.get("vehicle_model")),
        mechanic_name=_str_or_none(row.get("mechanic_name")),
        items=tuple(CartLine.from_dict(item) for item in items),
        product_total=to_money(_clean(row.get("product_total"))),
        service_total=to_money(_clean(row.get("service_total"))),
        product_discount=to_money(_clean(row.get("product_discount"))),
        service_discount=to_money(_clean(row.get("service_discount"))),
        total_amount=total_amount,
        # Rows written before total_cost existed: derive it from amount - profit
        total_cost=to_money(total_cost) if total_cost is not None else total_amount - total_profit,
        total_profit=total_profit,
        created_by=_str_or_none(row.get("created_by")) or "",
        created_by_name=_str_or_none(row.get("created_by_name")) or "",
    )


def cash_flow_to_row(c: CashFlowEntry) -> dict:
    return {
        "id": c.id,
        "type": c.kind,
        "category": c.category,
        "amount": c.amount,
        "description": c.description,
        "timestamp": c.timestamp,
        "created_by": c.created_by,
        "created_by_name": c.created_by_name,
    }


def cash_flow_from_row(row: dict) -> CashFlowEntry:
    return CashFlowEntry(
        id=str(row["id"]),
        kind=row["type"],
        category=_str_or_none(row.get("category")),
        amount=to_money(_clean(row.get("amount"))),
        description=_str_or_none(row.get("description")) or "",
        timestamp=int(row["timestamp"]),
        created_by=_str_or_none(row.get("created_by")) or "",
        created_by_name=_str_or_none(row.get("created_by_name")) or "",
    )


def employee_to_row(e: Employee) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "phone": e.phone,
        "position": e.position,
        "salary_per_month": e.salary_per_month,
        "total_due_salary": e.total_due_salary,
    }


def employee_from_row(row: dict) -> Employee:
    return Employee(
        id=str(row["id"]),
        name=row["name"],
        phone=_str_or_none(row.get("phone")) or "",
        position=_str_or_none(row.get("position")) or "",
        salary_per_month=to_money(_clean(row.get("salary_per_month"))),
        total_due_salary=to_money(_clean(row.get("total_due_salary"))),
    )


def attendance_to_row(a: Attendance) -> dict:
    return {
        "id": a.id,
        "employee_id": a.employee_id,
        "date": a.date,
        "status": a.status,
        "type": a.shift,
        "wage": a.wage,
    }


def attendance_from_row(row: dict) -> Attendance:
    return Attendance(
        id=str(row["id"]),
        employee_id=str(row["employee_id"]),
        date=int(row["date"]),
        status=row["status"],
        shift=_str_or_none(row.get("type")),
        wage=to_money(_clean(row.get("wage"))),
    )


_TO_ROW: Dict[str, Callable] = {
    "products": product_to_row,
    "services": service_to_row,
    "customers": customer_to_row,
    "transactions": transaction_to_row,
    "cash_flow": cash_flow_to_row,
    "employees": employee_to_row,
    "attendance": attendance_to_row,
}


# ============================================================================
# Writes
# ============================================================================

def upsert_row(conn: DBConnection, table: str, row: dict) -> None:
    """Insert a row or overwrite the existing row with the same id."""
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    ph = placeholder(conn)
    cols = list(row)
    updates = ", ".join(f"{c}=excluded.{c}" for c in cols if c != "id")
    cur = conn.cursor()
    try:
        cur.execute(
            f"""
            INSERT INTO {table} ({", ".join(cols)})
            VALUES ({", ".join([ph] * len(cols))})
            ON CONFLICT (id) DO UPDATE SET {updates}
            """,
            tuple(_db_value(conn, row[c]) for c in cols),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def delete_row(conn: DBConnection, table: str, row_id: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    cur = conn.cursor()
    try:
        cur.execute(f"DELETE FROM {table} WHERE id={placeholder(conn)}", (row_id,))
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def apply_command(conn: DBConnection, command: SyncCommand) -> None:
    """Write one queued ledger change to the database."""
    if command.action == UPSERT:
        upsert_row(conn, command.table, _TO_ROW[command.table](command.record))
    elif command.action == DELETE:
        delete_row(conn, command.table, command.record)
    else:
        raise ValueError(f"Unknown sync action: {command.action}")


# ============================================================================
# Loading
# ============================================================================

def _read_rows(conn: DBConnection, query: str) -> List[dict]:
    return pd.read_sql(query, conn).to_dict("records")


def seed_catalog(conn: DBConnection) -> None:
    """Fill empty products/services tables with the demo catalog."""
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) FROM products")
    if cur.fetchone()[0] == 0:
        logger.info("Seeding products")
        for data in INITIAL_PRODUCTS:
            upsert_row(conn, "products", product_to_row(Product(**data)))
    cur.execute("SELECT COUNT(*) FROM services")
    if cur.fetchone()[0] == 0:
        logger.info("Seeding services")
        for data in INITIAL_SERVICES:
            upsert_row(conn, "services", service_to_row(Service(**data)))


def load_snapshot(conn: DBConnection) -> dict:
    """Read every ledger table into domain records, keyed by Ledger kwarg."""
    return {
        "products": [product_from_row(r) for r in _read_rows(conn, "SELECT * FROM products")],
        "services": [service_from_row(r) for r in _read_rows(conn, "SELECT * FROM services")],
        "customers": [customer_from_row(r) for r in _read_rows(conn, "SELECT * FROM customers")],
        "transactions": [
            transaction_from_row(r)
            for r in _read_rows(conn, "SELECT * FROM transactions ORDER BY timestamp DESC")
        ],
        "cash_flows": [
            cash_flow_from_row(r)
            for r in _read_rows(conn, "SELECT * FROM cash_flow ORDER BY timestamp DESC")
        ],
        "employees": [employee_from_row(r) for r in _read_rows(conn, "SELECT * FROM employees")],
        "attendance": [attendance_from_row(r) for r in _read_rows(conn, "SELECT * FROM attendance")],
    }


def open_ledger(conn: Optional[DBConnection], **kwargs) -> Ledger:
    """Build the session ledger from the database, or from demo data.

    Without a connection, or when loading fails, the ledger runs on the
    built-in catalog and nothing is persisted.
    """
    if conn is None:
        logger.warning("No database configured; running in offline mode with mock data")
        return Ledger.seeded(**kwargs)
    try:
        seed_catalog(conn)
        return Ledger(**load_snapshot(conn), **kwargs)
    except Exception:
        logger.exception("Error loading data, using offline fallback")
        return Ledger.seeded(**kwargs)


# ============================================================================
# User Management Functions
# ============================================================================

def get_all_users(conn: DBConnection) -> pd.DataFrame:
    """Get all users from database."""
    try:
        query = "SELECT id, username, name, role, created_at FROM users ORDER BY created_at DESC"
        return pd.read_sql(query, conn)
    except Exception as e:
        logger.exception("Failed to read users: %s", e)
        return pd.DataFrame()


def add_user(conn: DBConnection, user_id: str, username: str, password_hash: str,
             name: str, role: str) -> None:
    """Insert a user; raises IntegrityError on a duplicate username."""
    ph = placeholder(conn)
    cur = conn.cursor()
    try:
        cur.execute(
            f"INSERT INTO users (id, username, password_hash, name, role, created_at) "
            f"VALUES ({ph}, {ph}, {ph}, {ph}, {ph}, {ph})",
            (user_id, username.lower(), password_hash, name, role,
             datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def delete_user(conn: DBConnection, user_id: str) -> bool:
    """Delete a user (admin only)."""
    cur = conn.cursor()
    try:
        cur.execute(f"DELETE FROM users WHERE id = {placeholder(conn)}", (user_id,))
        conn.commit()
        return True
    except Exception as e:
        conn.rollback()
        logger.exception("Failed to delete user: %s", e)
        return False


def update_user_role(conn: DBConnection, user_id: str, new_role: str) -> bool:
    """Update user role (admin only)."""
    ph = placeholder(conn)
    cur = conn.cursor()
    try:
        cur.execute(f"UPDATE users SET role = {ph} WHERE id = {ph}", (new_role, user_id))
        conn.commit()
        return True
    except Exception as e:
        conn.rollback()
        logger.exception("Failed to update user role: %s", e)
        return False


def update_user(conn: DBConnection, user_id: str, name: str,
                password_hash: Optional[str] = None) -> bool:
    """Rename a user and, when a hash is given, reset their password."""
    ph = placeholder(conn)
    cur = conn.cursor()
    try:
        if password_hash:
            cur.execute(
                f"UPDATE users SET name = {ph}, password_hash = {ph} WHERE id = {ph}",
                (name, password_hash, user_id),
            )
        else:
            cur.execute(f"UPDATE users SET name = {ph} WHERE id = {ph}", (name, user_id))
        conn.commit()
        return cur.rowcount > 0
    except Exception as e:
        conn.rollback()
        logger.exception("Failed to update user: %s", e)
        return False
