"""
Tests for the session ledger: posting, voiding and editing sales.
"""
import logging
from decimal import Decimal

import pytest

from conftest import START_MS, product_line, repair_sale, sale, service_line
from core.constants import MUTABLE_WINDOW_MS
from core.errors import (
    InsufficientStock,
    MissingRequiredField,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from core.ledger import Ledger, can_modify, compute_totals
from core.sync import DELETE, UPSERT


class TestPostSale:
    """Posting a sale."""

    def test_repair_scenario_totals(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)

        assert tx.product_total == Decimal("70.00")
        assert tx.service_total == Decimal("50.00")
        assert tx.total_amount == Decimal("115.00")
        assert tx.total_cost == Decimal("30.00")
        assert tx.total_profit == Decimal("85.00")
        assert tx.created_by == admin.id
        assert tx.created_by_name == admin.name

    def test_total_amount_identity(self, ledger, admin):
        details = sale(
            product_line(quantity=3, unit_price="33.33"),
            service_line(unit_price="19.99"),
            vehicle_model="Suzuki GS 150",
            mechanic_name="Rashid",
            product_discount=Decimal("0.99"),
            service_discount=Decimal("4.50"),
        )
        tx = ledger.post_sale(details, admin)

        assert tx.total_amount == (tx.product_total - tx.product_discount) + (
            tx.service_total - tx.service_discount
        )
        assert tx.total_amount == Decimal("114.49")

    def test_stock_decrements_by_quantity(self, ledger, admin):
        ledger.post_sale(sale(product_line("p1", 2), product_line("p3", 3, "12.00", "Oil Filter")), admin)

        assert ledger.get_product("p1").stock == 40
        assert ledger.get_product("p3").stock == 5

    def test_selling_exact_stock_leaves_zero(self, ledger, admin):
        ledger.post_sale(sale(product_line("p3", 8, "12.00", "Oil Filter")), admin)

        assert ledger.get_product("p3").stock == 0

    def test_selling_one_more_than_stock_fails(self, ledger, admin):
        with pytest.raises(InsufficientStock) as exc:
            ledger.post_sale(sale(product_line("p3", 9, "12.00", "Oil Filter")), admin)

        assert exc.value.requested == 9
        assert exc.value.available == 8
        assert ledger.get_product("p3").stock == 8

    def test_split_lines_are_checked_together(self, ledger, admin):
        with pytest.raises(InsufficientStock):
            ledger.post_sale(sale(product_line("p1", 40), product_line("p1", 3, "30.00")), admin)

    def test_failed_sale_changes_nothing(self, ledger, admin):
        details = sale(product_line("p1", 2), product_line("p2", 13, "65.00", "Brake Pads"))

        with pytest.raises(InsufficientStock):
            ledger.post_sale(details, admin)

        assert ledger.get_product("p1").stock == 42
        assert ledger.get_product("p2").stock == 12
        assert ledger.transactions == []
        assert ledger.customers == []
        assert len(ledger.sync) == 0

    def test_customer_name_required(self, ledger, admin):
        with pytest.raises(MissingRequiredField) as exc:
            ledger.post_sale(sale(product_line(), customer_name="  "), admin)
        assert exc.value.field == "customer_name"

    def test_empty_cart_rejected(self, ledger, admin):
        with pytest.raises(MissingRequiredField) as exc:
            ledger.post_sale(sale(), admin)
        assert exc.value.field == "items"

    def test_services_need_mechanic_and_vehicle(self, ledger, admin):
        with pytest.raises(MissingRequiredField) as exc:
            ledger.post_sale(sale(service_line(), vehicle_model="Honda CD 70"), admin)
        assert exc.value.field == "mechanic_name"

        with pytest.raises(MissingRequiredField) as exc:
            ledger.post_sale(sale(service_line(), mechanic_name="Rashid"), admin)
        assert exc.value.field == "vehicle_model"

    def test_products_only_need_no_mechanic(self, ledger, admin):
        tx = ledger.post_sale(sale(product_line()), admin)
        assert tx.mechanic_name is None
        assert not tx.has_services

    def test_negative_discount_rejected(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.post_sale(sale(product_line(), product_discount=Decimal("-1")), admin)

    def test_zero_quantity_rejected(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.post_sale(sale(product_line(quantity=0)), admin)

    def test_unknown_product(self, ledger, admin):
        with pytest.raises(NotFound):
            ledger.post_sale(sale(product_line("p404")), admin)

    def test_transaction_id_from_timestamp(self, ledger, admin):
        first = ledger.post_sale(sale(product_line()), admin)
        second = ledger.post_sale(sale(product_line()), admin)

        assert first.id == "TX-123456"
        assert second.id == "TX-123457"
        assert first.timestamp == second.timestamp == START_MS

    def test_most_recent_first(self, ledger, admin, clock):
        first = ledger.post_sale(sale(product_line()), admin)
        clock.advance(1000)
        second = ledger.post_sale(sale(product_line()), admin)

        assert [t.id for t in ledger.transactions] == [second.id, first.id]

    def test_enqueues_customer_products_then_transaction(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)

        described = [c.describe() for c in ledger.sync.pending()]
        assert described[0].startswith("upsert customers c")
        assert described[1:] == ["upsert products p1", f"upsert transactions {tx.id}"]

    def test_unit_price_is_taken_from_cart(self, ledger, admin):
        tx = ledger.post_sale(sale(product_line(unit_price="30.00")), admin)

        assert tx.product_total == Decimal("30.00")
        assert ledger.get_product("p1").selling_price == Decimal("35.00")


class TestCustomers:
    """Customer directory kept up by sales."""

    def test_new_customer_created(self, ledger, admin):
        ledger.post_sale(sale(product_line(), customer_phone="555"), admin)

        [customer] = ledger.customers
        assert customer.name == "John Doe"
        assert customer.phone == "555"
        assert customer.id.startswith("c")

    def test_same_name_any_case_is_one_customer(self, ledger, admin):
        ledger.post_sale(sale(product_line()), admin)
        ledger.post_sale(sale(product_line(), customer_name="john doe", customer_phone="555"), admin)

        [customer] = ledger.customers
        assert customer.phone == "555"

    def test_unchanged_customer_not_rewritten(self, ledger, admin):
        ledger.post_sale(sale(product_line(), customer_phone="555"), admin)
        ledger.sync.clear()
        ledger.post_sale(sale(product_line(), customer_phone="555"), admin)

        assert not any(c.table == "customers" for c in ledger.sync.pending())


class TestCanModify:
    """Mutable window for edits and voids."""

    def test_window_boundary_for_manager(self, ledger, manager, clock):
        tx = ledger.post_sale(sale(product_line()), manager)

        assert can_modify(tx, manager, tx.timestamp + MUTABLE_WINDOW_MS - 1)
        assert not can_modify(tx, manager, tx.timestamp + MUTABLE_WINDOW_MS)

    def test_admin_never_locked(self, ledger, admin):
        tx = ledger.post_sale(sale(product_line()), admin)

        assert can_modify(tx, admin, tx.timestamp + 365 * 24 * 3600 * 1000)

    def test_same_inputs_same_answer(self, ledger, manager):
        tx = ledger.post_sale(sale(product_line()), manager)
        now = tx.timestamp + MUTABLE_WINDOW_MS // 2

        answers = {can_modify(tx, manager, now) for _ in range(5)}
        assert answers == {True}

    def test_no_user(self, ledger, admin):
        tx = ledger.post_sale(sale(product_line()), admin)
        assert not can_modify(tx, None, tx.timestamp)


class TestVoidSale:
    """Voiding a sale."""

    def test_post_then_void_restores_stock(self, ledger, admin):
        before = {p.id: p.stock for p in ledger.products}
        tx = ledger.post_sale(repair_sale(), admin)

        removed = ledger.void_sale(tx.id, admin)

        assert removed == tx
        assert {p.id: p.stock for p in ledger.products} == before
        assert ledger.transactions == []

    def test_void_enqueues_delete(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        ledger.sync.clear()

        ledger.void_sale(tx.id, admin)

        pending = ledger.sync.pending()
        assert [(c.action, c.table) for c in pending] == [
            (UPSERT, "products"),
            (DELETE, "transactions"),
        ]
        assert pending[-1].record == tx.id

    def test_manager_locked_after_window(self, ledger, manager, clock):
        tx = ledger.post_sale(sale(product_line()), manager)
        clock.advance(MUTABLE_WINDOW_MS)

        with pytest.raises(PermissionDenied) as exc:
            ledger.void_sale(tx.id, manager)

        assert exc.value.reason == PermissionDenied.LOCKED_WINDOW
        assert ledger.get_product("p1").stock == 41
        assert len(ledger.transactions) == 1

    def test_manager_can_void_inside_window(self, ledger, manager, clock):
        tx = ledger.post_sale(sale(product_line()), manager)
        clock.advance(MUTABLE_WINDOW_MS - 1)

        ledger.void_sale(tx.id, manager)
        assert ledger.get_product("p1").stock == 42

    def test_admin_voids_old_sale(self, ledger, admin, clock):
        tx = ledger.post_sale(sale(product_line()), admin)
        clock.advance(30 * 24 * 3600 * 1000)

        ledger.void_sale(tx.id, admin)
        assert ledger.transactions == []

    def test_void_after_price_change_restores_by_id(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        ledger.update_product("p1", buying_price="20.00", selling_price="40.00", category="Oils")

        ledger.void_sale(tx.id, admin)

        product = ledger.get_product("p1")
        assert product.stock == 42
        assert product.category == "Oils"
        assert product.buying_price == Decimal("20.00")

    def test_void_skips_product_gone_from_catalog(self, ledger, admin, clock, caplog):
        tx = ledger.post_sale(sale(product_line(quantity=2), product_line("p2", unit_price="25.00")), admin)
        trimmed = Ledger(
            products=[p for p in ledger.products if p.id != "p1"],
            services=ledger.services,
            transactions=ledger.transactions,
            clock=clock,
        )

        with caplog.at_level(logging.WARNING, logger="core.ledger"):
            trimmed.void_sale(tx.id, admin)

        assert trimmed.transactions == []
        assert trimmed.get_product("p2").stock == 12
        assert [c.describe() for c in trimmed.sync.pending()] == [
            "upsert products p2",
            f"delete transactions {tx.id}",
        ]
        assert "no longer in catalog" in caplog.text

    def test_unknown_transaction(self, ledger, admin):
        with pytest.raises(NotFound):
            ledger.void_sale("TX-000000", admin)


class TestEditSale:
    """Editing customer details and discounts."""

    def test_discount_change_recomputes_amount_and_profit(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)

        edited = ledger.edit_sale(tx.id, {"product_discount": "10.00"}, admin)

        assert edited.total_amount == Decimal("110.00")
        assert edited.total_profit == Decimal("80.00")
        assert edited.total_cost == tx.total_cost
        assert ledger.get_transaction(tx.id) == edited

    def test_profit_uses_current_buying_price(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        ledger.update_product("p1", buying_price="20.00")

        edited = ledger.edit_sale(tx.id, {"service_discount": "5.00"}, admin)

        assert edited.total_amount == Decimal("110.00")
        assert edited.total_profit == Decimal("70.00")
        assert edited.total_cost == Decimal("30.00")

    def test_detail_change_keeps_money(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)

        edited = ledger.edit_sale(tx.id, {"customer_phone": "0311-0000000"}, admin)

        assert edited.customer_phone == "0311-0000000"
        assert edited.total_amount == tx.total_amount
        assert edited.total_profit == tx.total_profit

    def test_no_changes_enqueue_nothing(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        ledger.sync.clear()

        same = ledger.edit_sale(tx.id, {"customer_name": tx.customer_name}, admin)

        assert same is tx
        assert len(ledger.sync) == 0

    def test_items_cannot_be_edited(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        with pytest.raises(ValidationError):
            ledger.edit_sale(tx.id, {"items": ()}, admin)

    def test_mechanic_cannot_be_cleared_on_service_sale(self, ledger, admin):
        tx = ledger.post_sale(repair_sale(), admin)
        with pytest.raises(MissingRequiredField):
            ledger.edit_sale(tx.id, {"mechanic_name": ""}, admin)

    def test_manager_locked_after_window(self, ledger, manager, clock):
        tx = ledger.post_sale(sale(product_line()), manager)
        clock.advance(MUTABLE_WINDOW_MS)

        with pytest.raises(PermissionDenied):
            ledger.edit_sale(tx.id, {"customer_name": "Jane"}, manager)
        assert ledger.get_transaction(tx.id).customer_name == "John Doe"


class TestCashFlow:
    """Expenses and withdrawals."""

    def test_expense_without_category(self, ledger, admin):
        with pytest.raises(MissingRequiredField) as exc:
            ledger.record_cash_flow("expense", "100", admin, category="")
        assert exc.value.field == "category"
        assert ledger.cash_flows == []

    def test_withdrawal_needs_no_category(self, ledger, admin, clock):
        entry = ledger.record_cash_flow("withdrawal", 500, admin, category="Rent")

        assert entry.category is None
        assert entry.amount == Decimal("500.00")
        assert entry.id == f"cf{clock.now}"
        assert ledger.cash_flows == [entry]

    def test_amount_must_be_positive(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.record_cash_flow("expense", 0, admin, category="Rent")

    def test_amount_must_be_numeric(self, ledger, admin):
        with pytest.raises(ValidationError, match="amount must be a number"):
            ledger.record_cash_flow("expense", "abc", admin, category="Rent")
        assert ledger.cash_flows == []
        assert len(ledger.sync) == 0

    def test_unknown_kind(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.record_cash_flow("refund", 10, admin)

    def test_does_not_touch_stock(self, ledger, admin):
        before = [p.stock for p in ledger.products]
        ledger.record_cash_flow("expense", "12.50", admin, category="Tea & Refreshments")
        assert [p.stock for p in ledger.products] == before


class TestCatalog:
    def test_add_and_update_product(self, ledger, clock):
        product = ledger.add_product("Chain Lube", "LUBE-01", "Fluids", "3.00", "8.00", stock=10)

        assert product.id == f"p{clock.now}"
        updated = ledger.update_product(product.id, stock=7, selling_price="9.50")
        assert updated.stock == 7
        assert updated.selling_price == Decimal("9.50")

    def test_non_numeric_price_rejected(self, ledger):
        with pytest.raises(ValidationError, match="selling_price must be a number"):
            ledger.update_product("p1", selling_price="twelve")
        assert ledger.get_product("p1").selling_price == Decimal("35.00")

    def test_negative_stock_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.update_product("p1", stock=-1)
        assert ledger.get_product("p1").stock == 42

    def test_low_stock(self, ledger):
        assert [p.id for p in ledger.low_stock_products()] == []
        assert [p.id for p in ledger.low_stock_products(10)] == ["p3"]

    def test_low_stock_default_is_below_five(self, ledger, admin):
        ledger.post_sale(sale(product_line("p3", quantity=3, unit_price="8.00", name="Oil Filter")), admin)
        assert ledger.low_stock_products() == []

        ledger.post_sale(sale(product_line("p3", quantity=1, unit_price="8.00", name="Oil Filter")), admin)
        assert [(p.id, p.stock) for p in ledger.low_stock_products()] == [("p3", 4)]

    def test_add_service(self, ledger):
        service = ledger.add_service("Headlight Alignment", "Electrical & Electronic Services")
        assert ledger.get_service(service.id).name == "Headlight Alignment"


def test_compute_totals_matches_posted_sale(ledger, admin):
    details = repair_sale()
    preview = compute_totals(details.items, details.product_discount, details.service_discount)

    tx = ledger.post_sale(details, admin)

    assert preview.total_amount == tx.total_amount
    assert preview.product_total == tx.product_total
