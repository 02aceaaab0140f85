"""Period filters and summary figures for the dashboard and reports."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from core.constants import CASH_FLOW_EXPENSE, CASH_FLOW_WITHDRAWAL
from core.models import CashFlowEntry, Transaction, User

ZERO = Decimal("0.00")


def to_local(timestamp: int, tz) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000, tz)


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def is_in_range(timestamp: int, period: str, now: datetime) -> bool:
    """Dashboard periods, compared by calendar day in ``now``'s timezone.

    ``week`` starts on Monday; ``month`` and ``year`` are the current calendar
    month and year.
    """
    day = to_local(timestamp, now.tzinfo).date()
    today = now.date()
    if period == "day":
        return day == today
    if period == "week":
        return day >= today - timedelta(days=today.weekday())
    if period == "month":
        return (day.year, day.month) == (today.year, today.month)
    if period == "year":
        return day.year == today.year
    if period == "all":
        return True
    raise ValueError(f"Unknown period: {period}")


def report_window(period: str, now: datetime, start: Optional[date] = None,
                  end: Optional[date] = None) -> Optional[Tuple[int, int]]:
    """Inclusive ``(start_ms, end_ms)`` for a report period.

    ``custom`` needs both dates and covers the whole end day; it returns None
    until both are chosen.
    """
    tz = now.tzinfo
    midnight = datetime.combine(now.date(), time.min, tzinfo=tz)
    if period == "today":
        return _epoch_ms(midnight), _epoch_ms(midnight + timedelta(days=1)) - 1
    if period == "week":
        return _epoch_ms(midnight - timedelta(days=7)), _epoch_ms(now)
    if period == "month":
        return _epoch_ms(midnight.replace(day=1)), _epoch_ms(now)
    if period == "custom":
        if not start or not end:
            return None
        first = datetime.combine(start, time.min, tzinfo=tz)
        last = datetime.combine(end, time.min, tzinfo=tz) + timedelta(days=1)
        return _epoch_ms(first), _epoch_ms(last) - 1
    raise ValueError(f"Unknown report period: {period}")


def in_window(records: Iterable, window: Optional[Tuple[int, int]]) -> list:
    if window is None:
        return []
    start, end = window
    return [r for r in records if start <= r.timestamp <= end]


def visible_transactions(transactions: Iterable[Transaction], user: User) -> List[Transaction]:
    """Admins see every sale; managers only their own."""
    if user.is_admin:
        return list(transactions)
    return [t for t in transactions if t.created_by == user.id]


def visible_cash_flows(cash_flows: Iterable[CashFlowEntry], user: User) -> List[CashFlowEntry]:
    """Admins see all cash flow; managers only the expenses they recorded."""
    if user.is_admin:
        return list(cash_flows)
    return [
        c for c in cash_flows
        if c.created_by == user.id and c.kind == CASH_FLOW_EXPENSE
    ]


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: Decimal
    product_revenue: Decimal
    service_revenue: Decimal
    total_profit: Decimal
    total_expenses: Decimal
    total_withdrawals: Decimal
    transaction_count: int

    @property
    def net_cash_flow(self) -> Decimal:
        """Revenue less expenses and withdrawals (cash on hand for 'all')."""
        return self.total_revenue - self.total_expenses - self.total_withdrawals


def summarize(transactions: Iterable[Transaction],
              cash_flows: Iterable[CashFlowEntry]) -> DashboardStats:
    """Revenue is net of discounts."""
    transactions = list(transactions)
    cash_flows = list(cash_flows)
    return DashboardStats(
        total_revenue=sum((t.total_amount for t in transactions), ZERO),
        product_revenue=sum((t.product_total - t.product_discount for t in transactions), ZERO),
        service_revenue=sum((t.service_total - t.service_discount for t in transactions), ZERO),
        total_profit=sum((t.total_profit for t in transactions), ZERO),
        total_expenses=sum(
            (c.amount for c in cash_flows if c.kind == CASH_FLOW_EXPENSE), ZERO
        ),
        total_withdrawals=sum(
            (c.amount for c in cash_flows if c.kind == CASH_FLOW_WITHDRAWAL), ZERO
        ),
        transaction_count=len(transactions),
    )


def transactions_frame(transactions: Iterable[Transaction], tz) -> pd.DataFrame:
    """One row per sale, for tables, charts and CSV export."""
    rows = [
        {
            "id": t.id,
            "date": to_local(t.timestamp, tz).strftime("%d/%m/%Y %H:%M"),
            "day": to_local(t.timestamp, tz).date(),
            "customer": t.customer_name,
            "phone": t.customer_phone or "",
            "vehicle": t.vehicle_model or "",
            "mechanic": t.mechanic_name or "",
            "items": ", ".join(f"{line.name} x{line.quantity}" for line in t.items),
            "product_total": float(t.product_total),
            "service_total": float(t.service_total),
            "discount": float(t.product_discount + t.service_discount),
            "total_amount": float(t.total_amount),
            "total_profit": float(t.total_profit),
            "created_by": t.created_by_name,
        }
        for t in transactions
    ]
    columns = [
        "id", "date", "day", "customer", "phone", "vehicle", "mechanic", "items",
        "product_total", "service_total", "discount", "total_amount", "total_profit",
        "created_by",
    ]
    return pd.DataFrame(rows, columns=columns)


def daily_sales(transactions: Iterable[Transaction], now: datetime, days: int = 7) -> pd.DataFrame:
    """Revenue and profit per day for the last ``days`` days, zero-filled."""
    df = transactions_frame(transactions, now.tzinfo)
    calendar = pd.DataFrame({"day": [now.date() - timedelta(days=n) for n in range(days - 1, -1, -1)]})
    if df.empty:
        grouped = pd.DataFrame(columns=["day", "total_amount", "total_profit"])
    else:
        grouped = df.groupby("day")[["total_amount", "total_profit"]].sum().reset_index()
    merged = calendar.merge(grouped, on="day", how="left").fillna(0.0)
    merged["label"] = merged["day"].apply(lambda d: d.strftime("%a %d"))
    return merged
