"""Domain records held by the ledger."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple, Union

from core.constants import ITEM_PRODUCT, ITEM_SERVICE, ROLE_ADMIN

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number or numeric string to a Decimal rounded to cents.

    Floats (and numpy scalars from pandas) go through ``str`` so that ``0.1``
    becomes ``0.10`` rather than its binary expansion.
    """
    if value is None or value == "":
        return Decimal("0.00")
    if not isinstance(value, (Decimal, int, str)):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    sku: str
    category: str
    buying_price: Decimal
    selling_price: Decimal
    stock: int
    description: str = ""

    item_type = ITEM_PRODUCT


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    category: str
    description: str = ""

    item_type = ITEM_SERVICE


CatalogItem = Union[Product, Service]


@dataclass(frozen=True)
class CartLine:
    item_id: str
    name: str
    item_type: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def is_product(self) -> bool:
        return self.item_type == ITEM_PRODUCT

    @classmethod
    def for_item(cls, item: CatalogItem, quantity: int = 1, unit_price=None) -> "CartLine":
        """Snapshot a catalog item into a cart line.

        Products default to their selling price; services have no stored price
        so ``unit_price`` must be given.
        """
        if unit_price is None:
            unit_price = item.selling_price if isinstance(item, Product) else 0
        return cls(
            item_id=item.id,
            name=item.name,
            item_type=item.item_type,
            quantity=int(quantity),
            unit_price=to_money(unit_price),
        )

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "type": self.item_type,
            "quantity": self.quantity,
            "unitPrice": str(self.unit_price),
            "subtotal": str(self.subtotal),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            item_id=data["itemId"],
            name=data.get("name", ""),
            item_type=data.get("type", ITEM_PRODUCT),
            quantity=int(data.get("quantity", 1)),
            unit_price=to_money(data.get("unitPrice", 0)),
        )


@dataclass(frozen=True)
class SaleDetails:
    """Everything the POS screen collects for one checkout."""

    customer_name: str
    items: Tuple[CartLine, ...]
    customer_phone: Optional[str] = None
    vehicle_model: Optional[str] = None
    mechanic_name: Optional[str] = None
    product_discount: Decimal = Decimal("0.00")
    service_discount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class Transaction:
    id: str
    timestamp: int
    customer_name: str
    items: Tuple[CartLine, ...]
    product_total: Decimal
    service_total: Decimal
    product_discount: Decimal
    service_discount: Decimal
    total_amount: Decimal
    total_cost: Decimal
    total_profit: Decimal
    created_by: str
    created_by_name: str
    customer_phone: Optional[str] = None
    vehicle_model: Optional[str] = None
    mechanic_name: Optional[str] = None

    @property
    def has_services(self) -> bool:
        return any(not line.is_product for line in self.items)


@dataclass(frozen=True)
class CashFlowEntry:
    id: str
    kind: str
    amount: Decimal
    description: str
    timestamp: int
    created_by: str
    created_by_name: str
    category: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class Employee:
    id: str
    name: str
    phone: str
    position: str
    salary_per_month: Decimal
    total_due_salary: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class Attendance:
    id: str
    employee_id: str
    date: int
    status: str
    wage: Decimal
    shift: Optional[str] = None


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: str
    username: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
