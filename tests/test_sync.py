"""
Tests for the outbound write queue.
"""
import sqlite3

from conftest import product_line, sale
from core.errors import PersistenceFailure
from core.ledger import Ledger
from core.sync import DELETE, UPSERT, SyncCommand, SyncQueue


class Recorder:
    """Stand-in for ``apply_command`` that can be told to fail on a table."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.applied = []

    def __call__(self, conn, command):
        if command.table in self.fail_on:
            raise sqlite3.OperationalError("database is locked")
        self.applied.append(command.describe())


def test_describe():
    assert SyncCommand(DELETE, "transactions", "TX-123456").describe() == "delete transactions TX-123456"


def test_flush_applies_in_order(clock, admin):
    recorder = Recorder()
    ledger = Ledger.seeded(clock=clock, sync=SyncQueue(apply=recorder))
    tx = ledger.post_sale(sale(product_line()), admin)

    failures = ledger.sync.flush(object())

    assert failures == []
    assert recorder.applied[-2:] == ["upsert products p1", f"upsert transactions {tx.id}"]
    assert len(ledger.sync) == 0


def test_failure_keeps_ledger_and_command(clock, admin):
    recorder = Recorder(fail_on={"transactions"})
    ledger = Ledger.seeded(clock=clock, sync=SyncQueue(apply=recorder))
    tx = ledger.post_sale(sale(product_line()), admin)

    failures = ledger.sync.flush(object())

    [failure] = failures
    assert isinstance(failure, PersistenceFailure)
    assert failure.operation == f"upsert transactions {tx.id}"
    assert isinstance(failure.cause, sqlite3.OperationalError)
    # Writes queued ahead of it went through
    assert "upsert products p1" in recorder.applied
    assert ledger.get_transaction(tx.id) == tx
    assert [c.describe() for c in ledger.sync.pending()] == [failure.operation]


def test_retry_after_failure(clock, admin):
    recorder = Recorder(fail_on={"transactions"})
    ledger = Ledger.seeded(clock=clock, sync=SyncQueue(apply=recorder))
    tx = ledger.post_sale(sale(product_line()), admin)
    ledger.sync.flush(object())

    recorder.fail_on.clear()
    assert ledger.sync.flush(object()) == []
    assert recorder.applied[-1] == f"upsert transactions {tx.id}"
    assert len(ledger.sync) == 0


def test_retried_commands_stay_ahead_of_new_ones():
    recorder = Recorder(fail_on={"products"})
    queue = SyncQueue(apply=recorder)
    queue.enqueue(SyncCommand(DELETE, "products", "p1"), SyncCommand(DELETE, "products", "p2"))
    queue.flush(object())
    queue.enqueue(SyncCommand(DELETE, "customers", "c1"))

    assert [c.describe() for c in queue.pending()] == [
        "delete products p1",
        "delete products p2",
        "delete customers c1",
    ]


def test_offline_flush_drops_pending():
    recorder = Recorder()
    queue = SyncQueue(apply=recorder)
    queue.enqueue(SyncCommand(UPSERT, "customers", "c1"))

    assert queue.flush(None) == []
    assert len(queue) == 0
    assert recorder.applied == []


def test_flush_stops_at_first_failure():
    recorder = Recorder(fail_on={"products"})
    queue = SyncQueue(apply=recorder)
    queue.enqueue(
        SyncCommand(DELETE, "customers", "c1"),
        SyncCommand(DELETE, "products", "p1"),
        SyncCommand(DELETE, "customers", "c2"),
        SyncCommand(DELETE, "transactions", "TX-000001"),
    )

    [failure] = queue.flush(object())

    assert failure.operation == "delete products p1"
    assert recorder.applied == ["delete customers c1"]
    assert [c.describe() for c in queue.pending()] == [
        "delete products p1",
        "delete customers c2",
        "delete transactions TX-000001",
    ]


def test_held_back_commands_stay_ahead_of_later_sales(clock, admin):
    recorder = Recorder(fail_on={"products"})
    ledger = Ledger.seeded(clock=clock, sync=SyncQueue(apply=recorder))
    first = ledger.post_sale(sale(product_line()), admin)
    ledger.sync.flush(object())
    clock.advance(1000)
    second = ledger.post_sale(sale(product_line()), admin)

    recorder.fail_on.clear()
    assert ledger.sync.flush(object()) == []

    tx_writes = [d for d in recorder.applied if d.startswith("upsert transactions")]
    assert tx_writes == [f"upsert transactions {first.id}", f"upsert transactions {second.id}"]
    stock_writes = [d for d in recorder.applied if d == "upsert products p1"]
    assert len(stock_writes) == 2
