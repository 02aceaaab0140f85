"""
Tests for staff records, attendance wages and salary payments.
"""
from decimal import Decimal

import pytest

from core.errors import NotFound, ValidationError
from core.sync import DELETE

DAY_MS = 24 * 3600 * 1000
MONDAY = 1_699_833_600_000  # 2023-11-13 00:00 UTC


@pytest.fixture
def mechanic(ledger):
    return ledger.add_employee("Imran", "0333-1112223", "Mechanic", "3000")


def test_new_employee_owes_nothing(mechanic, clock):
    assert mechanic.id == f"emp{clock.now}"
    assert mechanic.total_due_salary == Decimal("0.00")
    assert mechanic.salary_per_month == Decimal("3000.00")


def test_daily_wages(ledger, mechanic):
    full = ledger.mark_attendance(mechanic.id, MONDAY, "present")
    half = ledger.mark_attendance(mechanic.id, MONDAY + DAY_MS, "present", "half")
    absent = ledger.mark_attendance(mechanic.id, MONDAY + 2 * DAY_MS, "absent", "full")

    assert full.wage == Decimal("100.00")
    assert full.shift == "full"
    assert half.wage == Decimal("50.00")
    assert absent.wage == Decimal("0.00")
    assert absent.shift is None
    assert ledger.get_employee(mechanic.id).total_due_salary == Decimal("150.00")


def test_wage_rounds_to_cents(ledger):
    helper = ledger.add_employee("Sajid", "", "Helper", "1000")
    record = ledger.mark_attendance(helper.id, MONDAY, "present")
    assert record.wage == Decimal("33.33")


def test_one_record_per_day(ledger, mechanic):
    ledger.mark_attendance(mechanic.id, MONDAY, "present")

    with pytest.raises(ValidationError):
        ledger.mark_attendance(mechanic.id, MONDAY, "absent")
    assert ledger.get_employee(mechanic.id).total_due_salary == Decimal("100.00")
    assert len(ledger.attendance) == 1


def test_unknown_status(ledger, mechanic):
    with pytest.raises(ValidationError):
        ledger.mark_attendance(mechanic.id, MONDAY, "late")


def test_pay_salary_books_expense(ledger, mechanic, admin):
    ledger.mark_attendance(mechanic.id, MONDAY, "present")
    ledger.mark_attendance(mechanic.id, MONDAY + DAY_MS, "present", "half")

    entry = ledger.pay_salary(mechanic.id, "100", admin, "Week 46")

    assert entry.kind == "expense"
    assert entry.category == "Salary"
    assert entry.description == "Salary Payment to Imran. Week 46"
    assert entry.amount == Decimal("100.00")
    assert ledger.cash_flows[0] == entry
    assert ledger.get_employee(mechanic.id).total_due_salary == Decimal("50.00")


def test_pay_salary_rejects_bad_amount(ledger, mechanic, admin):
    with pytest.raises(ValidationError):
        ledger.pay_salary(mechanic.id, 0, admin)
    assert ledger.cash_flows == []


def test_update_and_delete(ledger, mechanic):
    updated = ledger.update_employee(mechanic.id, position="Senior Mechanic", salary_per_month="4500")
    assert updated.position == "Senior Mechanic"
    assert updated.salary_per_month == Decimal("4500.00")

    ledger.delete_employee(mechanic.id)
    with pytest.raises(NotFound):
        ledger.get_employee(mechanic.id)
    assert ledger.sync.pending()[-1].action == DELETE
