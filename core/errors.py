"""Ledger error types.

Every error derives from ``ValueError`` so pages can keep surfacing failures
with ``st.error(str(e))``.
"""


class LedgerError(ValueError):
    """Base class for rejected ledger operations."""


class ValidationError(LedgerError):
    """Bad amount, quantity or field in a request."""


class InsufficientStock(LedgerError):
    def __init__(self, item: str, requested: int, available: int):
        self.item = item
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item}: requested {requested}, available {available}"
        )


class MissingRequiredField(LedgerError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class PermissionDenied(LedgerError):
    LOCKED_WINDOW = "locked-window"
    NOT_OWNER = "not-owner"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Cannot {action}: {reason}")


class NotFound(LedgerError):
    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")


class PersistenceFailure(Exception):
    """A database write that failed after the local ledger already changed.

    Returned from ``SyncQueue.flush`` rather than raised; the in-memory ledger
    is not rolled back.
    """

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")
