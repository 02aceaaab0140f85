"""Employees page - Admin only: staff, attendance and salary payments."""
from datetime import datetime, time

import streamlit as st

from core.config import get_timezone
from core.errors import LedgerError
from core.reports import to_local
from ui.components import flash, flush_to_database, money


def _day_start_ms(day, tz) -> int:
    return int(datetime.combine(day, time.min, tzinfo=tz).timestamp() * 1000)


def _render_add_employee(ledger, conn):
    with st.form("add_employee", clear_on_submit=True):
        col1, col2 = st.columns(2)
        name = col1.text_input("Name *")
        phone = col2.text_input("Phone")
        position = col1.text_input("Position", placeholder="Mechanic, Helper, ...")
        salary = col2.number_input("Salary per month", min_value=0.0, step=500.0)
        submitted = st.form_submit_button("➕ Add employee")
    if submitted:
        try:
            employee = ledger.add_employee(name, phone, position, salary)
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Added {employee.name}")
        st.rerun()


def _render_attendance(ledger, conn, employee, tz):
    col1, col2, col3 = st.columns(3)
    day = col1.date_input("Date", value=datetime.now(tz).date(), key=f"att_date_{employee.id}")
    status = col2.selectbox("Status", ["present", "absent"], key=f"att_status_{employee.id}")
    shift = col3.selectbox(
        "Shift", ["full", "half"], key=f"att_shift_{employee.id}", disabled=status == "absent"
    )
    if st.button("✅ Mark attendance", key=f"att_mark_{employee.id}"):
        try:
            record = ledger.mark_attendance(
                employee.id,
                _day_start_ms(day, tz),
                status,
                shift if status == "present" else None,
            )
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"{employee.name}: {record.status} ({money(record.wage)})")
        st.rerun()

    history = sorted(
        (a for a in ledger.attendance if a.employee_id == employee.id),
        key=lambda a: a.date,
        reverse=True,
    )[:10]
    if history:
        st.dataframe(
            [
                {
                    "Date": to_local(a.date, tz).strftime("%d/%m/%Y"),
                    "Status": a.status.title(),
                    "Shift": (a.shift or "").title(),
                    "Wage": float(a.wage),
                }
                for a in history
            ],
            width="stretch",
            hide_index=True,
        )


def _render_pay(ledger, user, conn, employee):
    with st.form(f"pay_{employee.id}", clear_on_submit=True):
        default = max(float(employee.total_due_salary), 0.0)
        amount = st.number_input("Amount", min_value=0.0, value=default, step=100.0)
        notes = st.text_input("Notes")
        submitted = st.form_submit_button("\U0001F4B0 Pay salary")
    if submitted:
        try:
            entry = ledger.pay_salary(employee.id, amount, user, notes)
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Paid {money(entry.amount)} to {employee.name}")
        st.rerun()


def render(ledger, user, conn):
    """Render the employees page."""
    if not user.is_admin:
        st.error("⛔ Access denied. This page is for admins only.")
        return
    st.header("\U0001F477 Employees")
    tz = get_timezone()

    with st.expander("➕ Add employee"):
        _render_add_employee(ledger, conn)

    employees = sorted(ledger.employees, key=lambda e: e.name.casefold())
    if not employees:
        st.info("No employees yet")
        return

    st.metric("Total Salary Due", money(sum(e.total_due_salary for e in employees)))
    for employee in employees:
        with st.expander(f"{employee.name} | {employee.position or '-'} | due {money(employee.total_due_salary)}"):
            st.caption(f"Phone: {employee.phone or '-'} | Salary: {money(employee.salary_per_month)} / month")
            attendance_tab, pay_tab, manage_tab = st.tabs(["Attendance", "Pay", "Manage"])
            with attendance_tab:
                _render_attendance(ledger, conn, employee, tz)
            with pay_tab:
                _render_pay(ledger, user, conn, employee)
            with manage_tab:
                with st.form(f"edit_employee_{employee.id}"):
                    phone = st.text_input("Phone", value=employee.phone)
                    position = st.text_input("Position", value=employee.position)
                    salary = st.number_input(
                        "Salary per month", min_value=0.0,
                        value=float(employee.salary_per_month), step=500.0,
                    )
                    saved = st.form_submit_button("\U0001F4BE Save")
                if saved:
                    try:
                        ledger.update_employee(
                            employee.id, phone=phone.strip(), position=position.strip(),
                            salary_per_month=salary,
                        )
                    except LedgerError as e:
                        st.error(f"❌ {e}")
                    else:
                        flush_to_database(ledger, conn)
                        flash(f"Updated {employee.name}")
                        st.rerun()
                if st.button("\U0001F5D1\ufe0f Delete", key=f"delete_employee_{employee.id}"):
                    ledger.delete_employee(employee.id)
                    flush_to_database(ledger, conn)
                    flash(f"Deleted {employee.name}", "\U0001F5D1\ufe0f")
                    st.rerun()
