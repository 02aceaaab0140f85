"""Outbound write queue between the in-memory ledger and the database."""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from core.errors import PersistenceFailure

logger = logging.getLogger(__name__)

UPSERT = "upsert"
DELETE = "delete"


@dataclass(frozen=True)
class SyncCommand:
    """One row-level write mirroring a ledger change.

    ``record`` is the domain object for an upsert and the row id for a delete.
    """

    action: str
    table: str
    record: Any

    @property
    def record_id(self) -> str:
        return self.record if self.action == DELETE else getattr(self.record, "id", "?")

    def describe(self) -> str:
        return f"{self.action} {self.table} {self.record_id}"


class SyncQueue:
    """FIFO of pending writes.

    Ledger operations enqueue after their local change is applied; the UI
    calls ``flush`` with the open connection. Writes are idempotent upserts and
    deletes applied strictly in order. A flush stops at the first failed
    command; that command and everything after it stay queued for the next
    flush, ahead of anything enqueued since.
    """

    def __init__(self, apply: Optional[Callable[[Any, SyncCommand], None]] = None):
        self._pending: deque = deque()
        self._lock = threading.Lock()
        self._apply = apply

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, *commands: SyncCommand) -> None:
        with self._lock:
            self._pending.extend(commands)

    def pending(self) -> List[SyncCommand]:
        with self._lock:
            return list(self._pending)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()

    def flush(self, conn) -> List[PersistenceFailure]:
        """Write pending commands in order; return the failure, if any.

        The returned list holds at most one ``PersistenceFailure``. With no
        connection (offline mode) pending commands are dropped.
        """
        with self._lock:
            batch = list(self._pending)
            self._pending.clear()
        if conn is None:
            return []

        apply = self._apply
        if apply is None:
            from core.services import apply_command as apply

        for index, command in enumerate(batch):
            try:
                apply(conn, command)
            except Exception as e:
                logger.exception("Sync failed: %s", command.describe())
                # Later writes may touch the same row; keep them behind this one.
                retry = batch[index:]
                with self._lock:
                    self._pending.extendleft(reversed(retry))
                logger.warning("%d write(s) held back for retry", len(retry))
                return [PersistenceFailure(command.describe(), e)]
        return []
