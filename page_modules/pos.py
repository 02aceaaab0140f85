"""Point-of-sale page: build a cart and post the sale."""
from decimal import Decimal

import streamlit as st
from streamlit_free_text_select import st_free_text_select

from core.constants import SERVICE_CATEGORIES
from core.errors import LedgerError
from core.ledger import compute_totals
from core.models import CartLine, SaleDetails, to_money
from ui.components import flash, flush_to_database, money, render_cart_table


def _cart():
    if "cart" not in st.session_state:
        st.session_state.cart = []
    return st.session_state.cart


def _in_cart(item_id: str) -> int:
    return sum(line.quantity for line in _cart() if line.item_id == item_id)


def _add_to_cart(line: CartLine):
    """Merge with an existing line for the same item and price."""
    cart = _cart()
    for i, existing in enumerate(cart):
        if existing.item_id == line.item_id and existing.unit_price == line.unit_price:
            cart[i] = CartLine(
                item_id=existing.item_id,
                name=existing.name,
                item_type=existing.item_type,
                quantity=existing.quantity + line.quantity,
                unit_price=existing.unit_price,
            )
            return
    cart.append(line)


def _reset_form():
    st.session_state.cart = []
    for key in list(st.session_state.keys()):
        if key in ("pos_customer", "pos_vehicle", "pos_mechanic", "pos_product_discount",
                   "pos_service_discount") or key.startswith("pos_phone_"):
            del st.session_state[key]


def _render_product_picker(ledger):
    products = sorted(ledger.products, key=lambda p: p.name.casefold())
    if not products:
        st.info("No products available")
        return
    labels = {f"{p.name} ({p.sku}) - {p.stock} in stock": p for p in products}
    choice = st.selectbox("Product", list(labels), key="pos_product_choice")
    product = labels[choice]
    available = product.stock - _in_cart(product.id)

    col1, col2 = st.columns(2)
    qty = col1.number_input("Quantity", min_value=1, value=1, step=1, key=f"pos_qty_{product.id}")
    price = col2.number_input(
        "Unit price",
        min_value=0.0,
        value=float(product.selling_price),
        step=1.0,
        key=f"pos_price_{product.id}",
    )
    if available <= 0:
        st.error("Item out of stock!")
    elif qty > available:
        st.error(f"Exceeds available stock: only {available} left.")
    if st.button("➕ Add product", disabled=available <= 0 or qty > available):
        _add_to_cart(CartLine.for_item(product, quantity=int(qty), unit_price=price))
        st.rerun()


def _render_service_picker(ledger):
    categories = [c for c in SERVICE_CATEGORIES if any(s.category == c for s in ledger.services)]
    extra = sorted({s.category for s in ledger.services} - set(categories))
    categories += extra
    if not categories:
        st.info("No services available")
        return
    category = st.selectbox("Category", categories, key="pos_service_category")
    services = [s for s in ledger.services if s.category == category]
    labels = {s.name: s for s in services}
    name = st.selectbox("Service", list(labels), key="pos_service_choice")
    price = st.number_input("Charge", min_value=0.0, value=0.0, step=10.0, key="pos_service_price")
    if st.button("➕ Add service"):
        _add_to_cart(CartLine.for_item(labels[name], quantity=1, unit_price=price))
        st.rerun()


def render(ledger, user, conn):
    """Render the POS page."""
    if st.session_state.pop("reset_pos_form", False):
        _reset_form()
    st.header("\U0001F6D2 Point of Sale")

    left, right = st.columns([3, 2])
    with left:
        product_tab, service_tab = st.tabs(["\U0001F4E6 Products", "\U0001F527 Services"])
        with product_tab:
            _render_product_picker(ledger)
        with service_tab:
            _render_service_picker(ledger)

        st.subheader("Cart")
        cart = _cart()
        render_cart_table(cart)
        if cart:
            col1, col2 = st.columns([3, 1])
            remove_idx = col1.selectbox(
                "Remove line",
                range(len(cart)),
                format_func=lambda i: f"{cart[i].name} x{cart[i].quantity}",
                key="pos_remove_idx",
            )
            if col2.button("\U0001F5D1\ufe0f Remove"):
                cart.pop(remove_idx)
                st.rerun()

    with right:
        st.subheader("Customer")
        known = sorted((c.name for c in ledger.customers), key=str.casefold)
        customer_name = st_free_text_select(
            "Customer name",
            known,
            key="pos_customer",
            placeholder="Type to search or add new",
        ) or ""
        existing = ledger.find_customer(customer_name) if customer_name else None
        phone = st.text_input(
            "Phone",
            value=(existing.phone or "") if existing else "",
            key=f"pos_phone_{existing.id if existing else 'new'}",
        )
        has_services = any(not line.is_product for line in cart)
        vehicle = st.text_input(
            "Vehicle name & model" + (" *" if has_services else ""), key="pos_vehicle"
        )
        mechanic = st.text_input(
            "Mechanic" + (" *" if has_services else ""), key="pos_mechanic"
        )

        col1, col2 = st.columns(2)
        product_discount = col1.number_input(
            "Product discount", min_value=0.0, step=1.0, key="pos_product_discount"
        )
        service_discount = col2.number_input(
            "Service discount", min_value=0.0, step=1.0, key="pos_service_discount"
        )

        totals = compute_totals(cart, to_money(product_discount), to_money(service_discount))
        st.write(f"Products: {money(totals.product_total)}")
        st.write(f"Services: {money(totals.service_total)}")
        st.markdown(
            f"<div class='pos-total'>Total: {money(totals.total_amount)}</div>",
            unsafe_allow_html=True,
        )
        if totals.total_amount < Decimal("0"):
            st.warning("Discounts exceed the cart total.")

        if st.button("\U0001F4B3 Checkout", type="primary", disabled=not cart, width="stretch"):
            details = SaleDetails(
                customer_name=customer_name,
                customer_phone=phone,
                vehicle_model=vehicle,
                mechanic_name=mechanic,
                items=tuple(cart),
                product_discount=to_money(product_discount),
                service_discount=to_money(service_discount),
            )
            try:
                transaction = ledger.post_sale(details, user)
            except LedgerError as e:
                st.error(f"❌ {e}")
            else:
                flush_to_database(ledger, conn)
                flash(f"Sale {transaction.id} recorded: {money(transaction.total_amount)}", "\U0001F9FE")
                st.session_state["reset_pos_form"] = True
                st.rerun()
