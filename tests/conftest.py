"""
Pytest configuration and fixtures for the POS ledger tests.
"""
import sqlite3
from decimal import Decimal

import pytest

from core.constants import ITEM_PRODUCT, ITEM_SERVICE, ROLE_ADMIN, ROLE_MANAGER
from core.ledger import Ledger
from core.models import CartLine, SaleDetails, User
from core.services import init_db

# 2023-11-14 22:15:23.456 UTC
START_MS = 1_700_000_123_456


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def admin():
    return User(id="u1", name="Alice Admin", role=ROLE_ADMIN, username="admin@autotrack.com")


@pytest.fixture
def manager():
    return User(id="u2", name="Bob Manager", role=ROLE_MANAGER, username="manager@autotrack.com")


@pytest.fixture
def ledger(clock):
    """Ledger over the demo catalog: p1 oil is 15.00 / 35.00 with 42 in stock."""
    return Ledger.seeded(clock=clock)


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    init_db(conn)
    yield conn
    conn.close()


def product_line(item_id="p1", quantity=1, unit_price="35.00", name="Synthetic Motor Oil 5W-30"):
    return CartLine(
        item_id=item_id,
        name=name,
        item_type=ITEM_PRODUCT,
        quantity=quantity,
        unit_price=Decimal(unit_price),
    )


def service_line(item_id="s_engine_oil_change", unit_price="50.00", name="Engine Oil Change"):
    return CartLine(
        item_id=item_id,
        name=name,
        item_type=ITEM_SERVICE,
        quantity=1,
        unit_price=Decimal(unit_price),
    )


def sale(*items, customer_name="John Doe", **kwargs):
    return SaleDetails(customer_name=customer_name, items=tuple(items), **kwargs)


def repair_sale(**kwargs):
    """Two oils and an oil change, product discount 5.00."""
    defaults = dict(
        customer_phone="0300-1234567",
        vehicle_model="Honda CD 70",
        mechanic_name="Rashid",
        product_discount=Decimal("5.00"),
    )
    defaults.update(kwargs)
    return sale(product_line(quantity=2), service_line(), **defaults)
