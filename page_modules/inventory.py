"""Inventory view page: products, services and catalog maintenance."""
import streamlit as st

from core.constants import LOW_STOCK_THRESHOLD_DEFAULT, SERVICE_CATEGORIES
from core.errors import LedgerError
from ui.components import flash, flush_to_database, render_products_table


def _render_low_stock(ledger):
    low = ledger.low_stock_products(LOW_STOCK_THRESHOLD_DEFAULT)
    if not low:
        return
    names = ", ".join(f"{p.name} ({p.stock})" for p in sorted(low, key=lambda p: p.stock))
    st.warning(f"⚠\ufe0f Low stock: {names}")


def _render_add_product(ledger, conn):
    with st.form("add_product", clear_on_submit=True):
        col1, col2 = st.columns(2)
        name = col1.text_input("Name *")
        sku = col2.text_input("SKU")
        category = col1.text_input("Category")
        stock = col2.number_input("Opening stock", min_value=0, value=0, step=1)
        buying_price = col1.number_input("Buying price", min_value=0.0, step=1.0)
        selling_price = col2.number_input("Selling price", min_value=0.0, step=1.0)
        description = st.text_area("Description")
        submitted = st.form_submit_button("➕ Add product")

    if submitted:
        try:
            product = ledger.add_product(
                name=name,
                sku=sku,
                category=category,
                buying_price=buying_price,
                selling_price=selling_price,
                stock=int(stock),
                description=description,
            )
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Added {product.name}")
        st.rerun()


def _render_edit_product(ledger, conn):
    products = sorted(ledger.products, key=lambda p: p.name.casefold())
    if not products:
        st.info("No products to edit")
        return
    labels = {f"{p.name} ({p.sku})": p for p in products}
    product = labels[st.selectbox("Product", list(labels), key="edit_product_choice")]

    with st.form(f"edit_product_{product.id}"):
        col1, col2 = st.columns(2)
        name = col1.text_input("Name", value=product.name)
        sku = col2.text_input("SKU", value=product.sku)
        category = col1.text_input("Category", value=product.category)
        stock = col2.number_input("Stock (correction)", min_value=0, value=product.stock, step=1)
        buying_price = col1.number_input(
            "Buying price", min_value=0.0, value=float(product.buying_price), step=1.0
        )
        selling_price = col2.number_input(
            "Selling price", min_value=0.0, value=float(product.selling_price), step=1.0
        )
        description = st.text_area("Description", value=product.description)
        submitted = st.form_submit_button("\U0001F4BE Save")

    if submitted:
        try:
            ledger.update_product(
                product.id,
                name=name,
                sku=sku,
                category=category,
                stock=int(stock),
                buying_price=buying_price,
                selling_price=selling_price,
                description=description,
            )
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Updated {name}")
        st.rerun()


def _render_services_admin(ledger, conn):
    with st.form("add_service", clear_on_submit=True):
        name = st.text_input("Service name *")
        category = st.selectbox("Category", SERVICE_CATEGORIES)
        description = st.text_input("Description")
        submitted = st.form_submit_button("➕ Add service")
    if submitted:
        try:
            service = ledger.add_service(name=name, category=category, description=description)
        except LedgerError as e:
            st.error(f"❌ {e}")
        else:
            flush_to_database(ledger, conn)
            flash(f"Added {service.name}")
            st.rerun()

    services = sorted(ledger.services, key=lambda s: s.name.casefold())
    if not services:
        return
    st.markdown("**Edit service**")
    labels = {s.name: s for s in services}
    service = labels[st.selectbox("Service", list(labels), key="edit_service_choice")]
    categories = list(SERVICE_CATEGORIES)
    if service.category not in categories:
        categories.append(service.category)
    with st.form(f"edit_service_{service.id}"):
        name = st.text_input("Name", value=service.name)
        category = st.selectbox("Category", categories, index=categories.index(service.category))
        description = st.text_input("Description", value=service.description)
        submitted = st.form_submit_button("\U0001F4BE Save")
    if submitted:
        try:
            ledger.update_service(service.id, name=name.strip(), category=category,
                                  description=description.strip())
        except LedgerError as e:
            st.error(f"❌ {e}")
            return
        flush_to_database(ledger, conn)
        flash(f"Updated {name}")
        st.rerun()


def render(ledger, user, conn):
    """Render the inventory page."""
    st.header("\U0001F5C2\ufe0f Inventory")
    _render_low_stock(ledger)

    product_tab, service_tab = st.tabs(["\U0001F4E6 Products", "\U0001F527 Services"])
    with product_tab:
        search = st.text_input("Search by name, SKU, category or description")
        products = sorted(ledger.products, key=lambda p: p.name.casefold())
        if search:
            needle = search.casefold()
            products = [
                p for p in products
                if needle in p.name.casefold()
                or needle in p.sku.casefold()
                or needle in p.category.casefold()
                or needle in p.description.casefold()
            ]
        render_products_table(products)

        if user.is_admin:
            st.divider()
            with st.expander("➕ Add product"):
                _render_add_product(ledger, conn)
            with st.expander("✏\ufe0f Edit product"):
                _render_edit_product(ledger, conn)

    with service_tab:
        rows = [
            {"Name": s.name, "Category": s.category, "Description": s.description}
            for s in sorted(ledger.services, key=lambda s: (s.category, s.name.casefold()))
        ]
        if rows:
            st.dataframe(rows, width="stretch", hide_index=True)
        else:
            st.info("No services available")
        if user.is_admin:
            st.divider()
            _render_services_admin(ledger, conn)
