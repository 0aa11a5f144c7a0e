"""Custom application-wide exceptions."""

from typing import Any


class ApplicationError(Exception):
    """Base class for application-specific errors."""

    def __init__(
        self, message: str = "An application error occurred", original_exception: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_exception = original_exception
        self.message = message

    def __str__(self) -> str:
        if self.original_exception:
            return f"{self.message} (Original error: {self.original_exception})"
        return self.message


class DatabaseError(ApplicationError):
    """Exception raised for errors during database operations."""

    def __init__(self, message: str = "Database operation failed", original_exception: Exception | None = None) -> None:
        super().__init__(message, original_exception)
        self.message = f"Database Error: {message}"


class ValidationError(ApplicationError):
    """Raised when input fails validation (bad amount, missing field, unknown product)."""

    def __init__(
        self, message: str = "Validation failed", field: str | None = None, original_exception: Exception | None = None
    ) -> None:
        super().__init__(message, original_exception)
        self.field = field


class NotFoundError(ApplicationError):
    """Raised when an operation references an id that does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(ApplicationError):
    """Raised when an expense would take more than is in stock."""

    def __init__(self, current_stock: int, requested: int | None = None, message: str | None = None) -> None:
        if message is None:
            message = f"Insufficient stock. Current stock: {current_stock}"
        super().__init__(message)
        self.current_stock = current_stock
        self.requested = requested


class NegativeStockError(ApplicationError):
    """Raised when removing or shrinking an arrival would make stock negative."""

    def __init__(self, current_stock: int, amount: int, message: str | None = None) -> None:
        if message is None:
            message = (
                "Deleting this arrival would make the stock negative. "
                "Delete the dependent expenses first."
            )
        super().__init__(message)
        self.current_stock = current_stock
        self.amount = amount


class DuplicateTitleError(ApplicationError):
    """Raised when a product title already exists (case-insensitive)."""

    def __init__(self, title: str, original_exception: Exception | None = None) -> None:
        super().__init__(f"A product titled '{title}' already exists", original_exception)
        self.title = title


class HasDependentsError(ApplicationError):
    """Raised when a product with arrivals or expenses is deleted."""

    def __init__(self, product_id: Any, title: str | None = None, original_exception: Exception | None = None) -> None:
        name = title if title is not None else str(product_id)
        super().__init__(
            f"Cannot delete product '{name}': it has arrival or expense records", original_exception
        )
        self.product_id = product_id
        self.title = title


class ConcurrencyConflictError(ApplicationError):
    """Raised when a concurrent writer holds the product lock or the store reports a stale write."""

    def __init__(
        self, message: str = "Concurrent modification detected", original_exception: Exception | None = None
    ) -> None:
        super().__init__(message, original_exception)
