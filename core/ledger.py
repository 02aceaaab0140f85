"""Session ledger: catalog, sales, cash flow and staff records.

The ledger is the source of truth for a running session. Every mutating
operation validates its whole request first, then applies the change in one
step under the ledger lock, and only then enqueues the matching database
writes on ``self.sync``. A failed database write never rolls the ledger back;
see ``SyncQueue.flush``.

Stock only moves through ``post_sale`` (decrement) and ``void_sale``
(restore), apart from explicit catalog corrections via ``update_product``.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from core.constants import (
    CASH_FLOW_EXPENSE,
    CASH_FLOW_TYPES,
    DAYS_PER_MONTH,
    INITIAL_PRODUCTS,
    INITIAL_SERVICES,
    ITEM_PRODUCT,
    ITEM_SERVICE,
    LOW_STOCK_THRESHOLD_DEFAULT,
    MUTABLE_WINDOW_MS,
    SALARY_CATEGORY,
)
from core.errors import (
    InsufficientStock,
    MissingRequiredField,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from core.models import (
    Attendance,
    CartLine,
    CashFlowEntry,
    Customer,
    Employee,
    Product,
    SaleDetails,
    Service,
    Transaction,
    User,
    to_money,
)
from core.sync import DELETE, UPSERT, SyncCommand, SyncQueue

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

EDITABLE_SALE_FIELDS = (
    "customer_name",
    "customer_phone",
    "vehicle_model",
    "mechanic_name",
    "product_discount",
    "service_discount",
)
PRODUCT_FIELDS = ("name", "sku", "category", "description", "buying_price", "selling_price", "stock")
SERVICE_FIELDS = ("name", "category", "description")
EMPLOYEE_FIELDS = ("name", "phone", "position", "salary_per_month")


def now_ms() -> int:
    return int(time.time() * 1000)


def can_modify(transaction: Transaction, user: Optional[User], now: int,
               window_ms: int = MUTABLE_WINDOW_MS) -> bool:
    """Whether ``user`` may still edit or void ``transaction`` at ``now``.

    A sale is open for ``window_ms`` after its timestamp and locked from then
    on. Admins are never locked out.
    """
    if user is None:
        return False
    if user.is_admin:
        return True
    return now - transaction.timestamp < window_ms


class SaleTotals(NamedTuple):
    product_total: Decimal
    service_total: Decimal
    total_amount: Decimal


def compute_totals(items: Iterable[CartLine], product_discount=ZERO,
                   service_discount=ZERO) -> SaleTotals:
    """Cart totals as shown on the POS screen and stored on a transaction."""
    product_total = ZERO
    service_total = ZERO
    for line in items:
        if line.is_product:
            product_total += line.subtotal
        else:
            service_total += line.subtotal
    total_amount = (product_total - to_money(product_discount)) + (
        service_total - to_money(service_discount)
    )
    return SaleTotals(product_total, service_total, total_amount)


def _next_id(prefix: str, stamp: int, taken, digits: Optional[int] = None) -> str:
    """``prefix`` + timestamp (optionally its last ``digits``), bumped until unused."""
    while True:
        text = str(stamp)
        candidate = prefix + (text[-digits:] if digits else text)
        if candidate not in taken:
            return candidate
        stamp += 1


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _non_negative(value, field: str) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number") from None
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def _stock_level(value) -> int:
    try:
        stock = int(value)
    except (TypeError, ValueError):
        raise ValidationError("stock must be a whole number") from None
    if stock < 0:
        raise ValidationError("stock cannot be negative")
    return stock


class Ledger:
    def __init__(
        self,
        products: Iterable[Product] = (),
        services: Iterable[Service] = (),
        transactions: Iterable[Transaction] = (),
        customers: Iterable[Customer] = (),
        cash_flows: Iterable[CashFlowEntry] = (),
        employees: Iterable[Employee] = (),
        attendance: Iterable[Attendance] = (),
        sync: Optional[SyncQueue] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._lock = threading.RLock()
        self._products: Dict[str, Product] = {p.id: p for p in products}
        self._services: Dict[str, Service] = {s.id: s for s in services}
        self._customers: Dict[str, Customer] = {c.id: c for c in customers}
        self._employees: Dict[str, Employee] = {e.id: e for e in employees}
        # Most recent first
        self._transactions: List[Transaction] = sorted(
            transactions, key=lambda t: t.timestamp, reverse=True
        )
        self._cash_flows: List[CashFlowEntry] = sorted(
            cash_flows, key=lambda c: c.timestamp, reverse=True
        )
        self._attendance: List[Attendance] = list(attendance)
        self.sync = sync if sync is not None else SyncQueue()
        self._clock = clock or now_ms

    @classmethod
    def seeded(cls, **kwargs) -> "Ledger":
        """Ledger over the built-in demo catalog (offline mode)."""
        products = [Product(**p) for p in INITIAL_PRODUCTS]
        services = [Service(**s) for s in INITIAL_SERVICES]
        return cls(products=products, services=services, **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def now(self) -> int:
        return self._clock()

    @property
    def products(self) -> List[Product]:
        return list(self._products.values())

    @property
    def services(self) -> List[Service]:
        return list(self._services.values())

    @property
    def transactions(self) -> List[Transaction]:
        return list(self._transactions)

    @property
    def customers(self) -> List[Customer]:
        return list(self._customers.values())

    @property
    def cash_flows(self) -> List[CashFlowEntry]:
        return list(self._cash_flows)

    @property
    def employees(self) -> List[Employee]:
        return list(self._employees.values())

    @property
    def attendance(self) -> List[Attendance]:
        return list(self._attendance)

    def get_product(self, product_id: str) -> Product:
        try:
            return self._products[product_id]
        except KeyError:
            raise NotFound("product", product_id) from None

    def get_service(self, service_id: str) -> Service:
        try:
            return self._services[service_id]
        except KeyError:
            raise NotFound("service", service_id) from None

    def get_transaction(self, transaction_id: str) -> Transaction:
        for tx in self._transactions:
            if tx.id == transaction_id:
                return tx
        raise NotFound("transaction", transaction_id)

    def get_employee(self, employee_id: str) -> Employee:
        try:
            return self._employees[employee_id]
        except KeyError:
            raise NotFound("employee", employee_id) from None

    def find_customer(self, name: str) -> Optional[Customer]:
        """Customer whose name matches case-insensitively, if any."""
        key = (name or "").strip().casefold()
        for customer in self._customers.values():
            if customer.name.casefold() == key:
                return customer
        return None

    def low_stock_products(self, threshold: int = LOW_STOCK_THRESHOLD_DEFAULT) -> List[Product]:
        return [p for p in self._products.values() if p.stock < threshold]

    def can_modify(self, transaction: Transaction, user: Optional[User]) -> bool:
        return can_modify(transaction, user, self.now())

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def post_sale(self, details: SaleDetails, user: User) -> Transaction:
        """Record a sale, decrementing stock for every product line.

        Raises MissingRequiredField, ValidationError, NotFound or
        InsufficientStock before anything changes.
        """
        customer_name = _text(details.customer_name)
        if not customer_name:
            raise MissingRequiredField("customer_name")
        items = tuple(details.items)
        if not items:
            raise MissingRequiredField("items")
        product_discount = _non_negative(details.product_discount, "product_discount")
        service_discount = _non_negative(details.service_discount, "service_discount")
        customer_phone = _text(details.customer_phone)
        vehicle_model = _text(details.vehicle_model)
        mechanic_name = _text(details.mechanic_name)
        if any(line.item_type == ITEM_SERVICE for line in items):
            if not mechanic_name:
                raise MissingRequiredField("mechanic_name")
            if not vehicle_model:
                raise MissingRequiredField("vehicle_model")

        with self._lock:
            requested: Dict[str, int] = {}
            for line in items:
                if line.quantity < 1:
                    raise ValidationError(f"Quantity for {line.name} must be at least 1")
                if line.unit_price < 0:
                    raise ValidationError(f"Price for {line.name} cannot be negative")
                if line.item_type == ITEM_PRODUCT:
                    self.get_product(line.item_id)
                    requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity
                elif line.item_type == ITEM_SERVICE:
                    self.get_service(line.item_id)
                else:
                    raise ValidationError(f"Unknown item type: {line.item_type}")

            for product_id, quantity in requested.items():
                product = self._products[product_id]
                if quantity > product.stock:
                    raise InsufficientStock(product.name, quantity, product.stock)

            timestamp = self.now()
            totals = compute_totals(items, product_discount, service_discount)
            total_cost = self._cost_of(items)

            customer = self._resolve_customer(customer_name, customer_phone, timestamp)
            updated_products = [
                replace(self._products[pid], stock=self._products[pid].stock - qty)
                for pid, qty in requested.items()
            ]
            transaction = Transaction(
                id=_next_id("TX-", timestamp, {t.id for t in self._transactions}, digits=6),
                timestamp=timestamp,
                customer_name=customer_name,
                customer_phone=customer_phone,
                vehicle_model=vehicle_model,
                mechanic_name=mechanic_name,
                items=items,
                product_total=totals.product_total,
                service_total=totals.service_total,
                product_discount=product_discount,
                service_discount=service_discount,
                total_amount=totals.total_amount,
                total_cost=total_cost,
                total_profit=totals.total_amount - total_cost,
                created_by=user.id,
                created_by_name=user.name,
            )

            if customer is not None:
                self._customers[customer.id] = customer
            for product in updated_products:
                self._products[product.id] = product
            self._transactions.insert(0, transaction)

        commands = []
        if customer is not None:
            commands.append(SyncCommand(UPSERT, "customers", customer))
        commands.extend(SyncCommand(UPSERT, "products", p) for p in updated_products)
        commands.append(SyncCommand(UPSERT, "transactions", transaction))
        self.sync.enqueue(*commands)
        logger.info(
            "Posted %s for %s: total %s (%d lines)",
            transaction.id, customer_name, transaction.total_amount, len(items),
        )
        return transaction

    def void_sale(self, transaction_id: str, user: User) -> Transaction:
        """Delete a sale and put its product quantities back in stock."""
        with self._lock:
            transaction = self.get_transaction(transaction_id)
            if not self.can_modify(transaction, user):
                raise PermissionDenied("void", PermissionDenied.LOCKED_WINDOW)

            restored: Dict[str, Product] = {}
            for line in transaction.items:
                if not line.is_product:
                    continue
                product = restored.get(line.item_id) or self._products.get(line.item_id)
                if product is None:
                    logger.warning(
                        "Voiding %s: product %s no longer in catalog, stock not restored",
                        transaction_id, line.item_id,
                    )
                    continue
                restored[product.id] = replace(product, stock=product.stock + line.quantity)

            self._products.update(restored)
            self._transactions = [t for t in self._transactions if t.id != transaction_id]

        self.sync.enqueue(
            *(SyncCommand(UPSERT, "products", p) for p in restored.values()),
            SyncCommand(DELETE, "transactions", transaction_id),
        )
        logger.info("Voided %s by %s", transaction_id, user.name)
        return transaction

    def edit_sale(self, transaction_id: str, updates: dict, user: User) -> Transaction:
        """Change customer details and/or discounts on a posted sale.

        Cart lines are immutable. When a discount changes, the amount is
        recomputed from the stored product/service totals and the profit from
        the current catalog buying prices of the sold products.
        """
        unknown = set(updates) - set(EDITABLE_SALE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        with self._lock:
            transaction = self.get_transaction(transaction_id)
            if not self.can_modify(transaction, user):
                raise PermissionDenied("edit", PermissionDenied.LOCKED_WINDOW)

            changes = {}
            for field in ("customer_name", "customer_phone", "vehicle_model", "mechanic_name"):
                if field in updates:
                    value = _text(updates[field])
                    if value != getattr(transaction, field):
                        changes[field] = value
            if "customer_name" in changes and not changes["customer_name"]:
                raise MissingRequiredField("customer_name")
            if transaction.has_services:
                for field in ("mechanic_name", "vehicle_model"):
                    if field in changes and not changes[field]:
                        raise MissingRequiredField(field)

            product_discount = _non_negative(
                updates.get("product_discount", transaction.product_discount), "product_discount"
            )
            service_discount = _non_negative(
                updates.get("service_discount", transaction.service_discount), "service_discount"
            )
            if (product_discount != transaction.product_discount
                    or service_discount != transaction.service_discount):
                total_amount = (transaction.product_total - product_discount) + (
                    transaction.service_total - service_discount
                )
                changes.update(
                    product_discount=product_discount,
                    service_discount=service_discount,
                    total_amount=total_amount,
                    total_profit=total_amount - self._cost_of(transaction.items),
                )

            if not changes:
                return transaction
            edited = replace(transaction, **changes)
            self._transactions = [
                edited if t.id == transaction_id else t for t in self._transactions
            ]

        self.sync.enqueue(SyncCommand(UPSERT, "transactions", edited))
        logger.info("Edited %s: %s", transaction_id, ", ".join(sorted(changes)))
        return edited

    def _cost_of(self, items: Iterable[CartLine]) -> Decimal:
        """Sum of current buying price x quantity over product lines.

        Lines whose product has left the catalog cost nothing.
        """
        cost = ZERO
        for line in items:
            if not line.is_product:
                continue
            product = self._products.get(line.item_id)
            if product is not None:
                cost += to_money(product.buying_price * line.quantity)
        return cost

    def _resolve_customer(self, name: str, phone: Optional[str], stamp: int) -> Optional[Customer]:
        """New or updated customer record for a sale, or None if unchanged."""
        existing = self.find_customer(name)
        if existing is None:
            return Customer(id=_next_id("c", stamp, self._customers), name=name, phone=phone)
        if phone and existing.phone != phone:
            return replace(existing, phone=phone)
        return None

    # ------------------------------------------------------------------
    # Cash flow
    # ------------------------------------------------------------------

    def record_cash_flow(self, kind: str, amount, user: User,
                         category: Optional[str] = None, description: str = "") -> CashFlowEntry:
        """Record an expense or an owner withdrawal."""
        if kind not in CASH_FLOW_TYPES:
            raise ValidationError(f"Unknown cash flow type: {kind}")
        try:
            value = to_money(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError("amount must be a number") from None
        if value <= 0:
            raise ValidationError("amount must be greater than zero")
        category = _text(category)
        if kind == CASH_FLOW_EXPENSE and not category:
            raise MissingRequiredField("category")

        with self._lock:
            stamp = self.now()
            entry = CashFlowEntry(
                id=_next_id("cf", stamp, {c.id for c in self._cash_flows}),
                kind=kind,
                amount=value,
                category=category if kind == CASH_FLOW_EXPENSE else None,
                description=(description or "").strip(),
                timestamp=stamp,
                created_by=user.id,
                created_by_name=user.name,
            )
            self._cash_flows.insert(0, entry)

        self.sync.enqueue(SyncCommand(UPSERT, "cash_flow", entry))
        logger.info("Recorded %s of %s by %s", kind, value, user.name)
        return entry

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def add_product(self, name: str, sku: str, category: str, buying_price, selling_price,
                    stock: int = 0, description: str = "") -> Product:
        name = _text(name)
        if not name:
            raise MissingRequiredField("name")
        with self._lock:
            product = Product(
                id=_next_id("p", self.now(), self._products),
                name=name,
                sku=(sku or "").strip(),
                category=(category or "").strip(),
                description=(description or "").strip(),
                buying_price=_non_negative(buying_price, "buying_price"),
                selling_price=_non_negative(selling_price, "selling_price"),
                stock=_stock_level(stock),
            )
            self._products[product.id] = product
        self.sync.enqueue(SyncCommand(UPSERT, "products", product))
        return product

    def update_product(self, product_id: str, **updates) -> Product:
        """Edit catalog fields; ``stock`` here is a manual correction."""
        unknown = set(updates) - set(PRODUCT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        changes = dict(updates)
        if "name" in changes:
            changes["name"] = _text(changes["name"])
            if not changes["name"]:
                raise MissingRequiredField("name")
        for field in ("buying_price", "selling_price"):
            if field in changes:
                changes[field] = _non_negative(changes[field], field)
        if "stock" in changes:
            changes["stock"] = _stock_level(changes["stock"])
        with self._lock:
            product = replace(self.get_product(product_id), **changes)
            self._products[product_id] = product
        self.sync.enqueue(SyncCommand(UPSERT, "products", product))
        return product

    def add_service(self, name: str, category: str, description: str = "") -> Service:
        name = _text(name)
        if not name:
            raise MissingRequiredField("name")
        with self._lock:
            service = Service(
                id=_next_id("s", self.now(), self._services),
                name=name,
                category=(category or "").strip(),
                description=(description or "").strip(),
            )
            self._services[service.id] = service
        self.sync.enqueue(SyncCommand(UPSERT, "services", service))
        return service

    def update_service(self, service_id: str, **updates) -> Service:
        unknown = set(updates) - set(SERVICE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown service fields: {', '.join(sorted(unknown))}")
        if "name" in updates and not _text(updates["name"]):
            raise MissingRequiredField("name")
        with self._lock:
            service = replace(self.get_service(service_id), **updates)
            self._services[service_id] = service
        self.sync.enqueue(SyncCommand(UPSERT, "services", service))
        return service

    # ------------------------------------------------------------------
    # Employees & attendance
    # ------------------------------------------------------------------

    def add_employee(self, name: str, phone: str, position: str, salary_per_month) -> Employee:
        name = _text(name)
        if not name:
            raise MissingRequiredField("name")
        with self._lock:
            employee = Employee(
                id=_next_id("emp", self.now(), self._employees),
                name=name,
                phone=(phone or "").strip(),
                position=(position or "").strip(),
                salary_per_month=_non_negative(salary_per_month, "salary_per_month"),
            )
            self._employees[employee.id] = employee
        self.sync.enqueue(SyncCommand(UPSERT, "employees", employee))
        return employee

    def update_employee(self, employee_id: str, **updates) -> Employee:
        unknown = set(updates) - set(EMPLOYEE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown employee fields: {', '.join(sorted(unknown))}")
        changes = dict(updates)
        if "salary_per_month" in changes:
            changes["salary_per_month"] = _non_negative(changes["salary_per_month"], "salary_per_month")
        with self._lock:
            employee = replace(self.get_employee(employee_id), **changes)
            self._employees[employee_id] = employee
        self.sync.enqueue(SyncCommand(UPSERT, "employees", employee))
        return employee

    def delete_employee(self, employee_id: str) -> Employee:
        with self._lock:
            employee = self.get_employee(employee_id)
            del self._employees[employee_id]
        self.sync.enqueue(SyncCommand(DELETE, "employees", employee_id))
        return employee

    def mark_attendance(self, employee_id: str, date: int, status: str,
                        shift: Optional[str] = None) -> Attendance:
        """Record one day for an employee and add the day's wage to their dues.

        ``date`` is the epoch-ms of the day's local midnight. A full day pays
        salary / 30, a half day half of that, an absence nothing.
        """
        if status not in ("present", "absent"):
            raise ValidationError(f"Unknown attendance status: {status}")
        if status == "present":
            shift = shift or "full"
            if shift not in ("full", "half"):
                raise ValidationError(f"Unknown shift: {shift}")
        else:
            shift = None

        with self._lock:
            employee = self.get_employee(employee_id)
            if any(a.employee_id == employee_id and a.date == date for a in self._attendance):
                raise ValidationError(f"Attendance already marked for {employee.name} on this day")
            daily = employee.salary_per_month / DAYS_PER_MONTH
            if status == "absent":
                wage = ZERO
            elif shift == "half":
                wage = to_money(daily / 2)
            else:
                wage = to_money(daily)
            record = Attendance(
                id=_next_id("att", self.now(), {a.id for a in self._attendance}),
                employee_id=employee_id,
                date=date,
                status=status,
                shift=shift,
                wage=wage,
            )
            employee = replace(employee, total_due_salary=employee.total_due_salary + wage)
            self._attendance.append(record)
            self._employees[employee_id] = employee

        self.sync.enqueue(
            SyncCommand(UPSERT, "attendance", record),
            SyncCommand(UPSERT, "employees", employee),
        )
        return record

    def pay_salary(self, employee_id: str, amount, user: User, notes: str = "") -> CashFlowEntry:
        """Pay an employee: books a Salary expense and reduces their dues."""
        employee = self.get_employee(employee_id)
        with self._lock:
            entry = self.record_cash_flow(
                CASH_FLOW_EXPENSE,
                amount,
                user,
                category=SALARY_CATEGORY,
                description=f"Salary Payment to {employee.name}. {notes or ''}".strip(),
            )
            employee = self.get_employee(employee_id)
            employee = replace(employee, total_due_salary=employee.total_due_salary - entry.amount)
            self._employees[employee_id] = employee
        self.sync.enqueue(SyncCommand(UPSERT, "employees", employee))
        return entry
