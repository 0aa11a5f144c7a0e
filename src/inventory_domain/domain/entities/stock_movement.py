"""Stock movement entities: arrivals add stock, expenses remove it."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar

from src.common.exceptions.custom_exceptions import ValidationError
from src.common.utils.date_utils import to_datetime


class MovementKind(str, enum.Enum):
    ARRIVAL = "arrival"
    EXPENSE = "expense"


def validate_amount(amount: object) -> int:
    """Amounts are strictly positive integers; bools are rejected even though they are ints."""
    if amount is None:
        raise ValidationError("Amount is required", field="amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    return amount


def validate_date(value: object) -> datetime:
    if value is None:
        raise ValidationError("Date is required", field="date")
    if not isinstance(value, (date, datetime)):
        raise ValidationError("Date must be a date or datetime", field="date")
    return to_datetime(value)


@dataclass
class StockMovement:
    """Common shape of arrivals and expenses."""

    kind: ClassVar[MovementKind]

    product_id: uuid.UUID
    amount: int
    date: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        if self.product_id is None:
            raise ValidationError("Product is required", field="product_id")
        self.amount = validate_amount(self.amount)
        self.date = validate_date(self.date)


@dataclass
class Arrival(StockMovement):
    """Stock added to a product on a date."""

    kind: ClassVar[MovementKind] = MovementKind.ARRIVAL


@dataclass
class Expense(StockMovement):
    """Stock removed from a product on a date."""

    kind: ClassVar[MovementKind] = MovementKind.EXPENSE


MOVEMENT_TYPES: dict[MovementKind, type[StockMovement]] = {
    MovementKind.ARRIVAL: Arrival,
    MovementKind.EXPENSE: Expense,
}
