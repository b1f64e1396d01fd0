"""
Error taxonomy for the ordering core.

None of these is fatal: each one degrades a single view or operation.
Routers translate them into HTTP status codes.
"""


class OrderingError(Exception):
    """Base class for ordering errors."""


class CatalogLoadError(OrderingError):
    """Categories or menu items could not be read. Callers degrade to an empty catalog."""


class OrderSubmitError(OrderingError):
    """The order could not be persisted. The cart is kept so the user can retry."""


class TableUpdateError(OrderingError):
    """One or more pending orders could not be moved to the new table."""

    def __init__(self, message: str, *, failed: int = 0, total: int = 0) -> None:
        super().__init__(message)
        self.failed = failed
        self.total = total


class SubscriptionError(OrderingError):
    """The live order stream failed. The stream is considered stalled."""


class InvalidTableNumberError(OrderingError, ValueError):
    """Table number is not a positive integer."""


class InvalidOptionError(OrderingError, ValueError):
    """A selected option is not offered by the menu item."""
