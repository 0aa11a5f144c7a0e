"""Tests for Product, Arrival and Expense entities."""

import uuid
from datetime import date, datetime

import pytest
import pytz

from src.common.exceptions.custom_exceptions import ValidationError
from src.inventory_domain.domain.entities.product import Product, normalize_title
from src.inventory_domain.domain.entities.stock_movement import Arrival, Expense, MovementKind


def test_product_title_is_trimmed() -> None:
    product = Product(title="  Bolt  ")

    assert product.title == "Bolt"
    assert product.normalized_title == "bolt"
    assert isinstance(product.id, uuid.UUID)
    assert isinstance(product.created_at, datetime)


@pytest.mark.parametrize("title", ["", "   ", None])
def test_product_title_required(title) -> None:
    with pytest.raises(ValidationError, match="title is required") as exc_info:
        Product(title=title)

    assert exc_info.value.field == "title"


def test_product_title_length_limit() -> None:
    assert Product(title="x" * 100).title == "x" * 100

    with pytest.raises(ValidationError, match="longer than 100"):
        Product(title="x" * 101)


def test_normalize_title() -> None:
    assert normalize_title(" Bolt ") == normalize_title("bolt")


@pytest.mark.parametrize("amount", [0, -1, 2.5, "3", True, None])
def test_movement_rejects_invalid_amount(amount) -> None:
    with pytest.raises(ValidationError) as exc_info:
        Arrival(product_id=uuid.uuid4(), amount=amount, date=datetime(2024, 1, 1))

    assert exc_info.value.field == "amount"


def test_movement_requires_date() -> None:
    with pytest.raises(ValidationError, match="Date is required"):
        Expense(product_id=uuid.uuid4(), amount=1, date=None)


def test_movement_requires_product() -> None:
    with pytest.raises(ValidationError, match="Product is required"):
        Expense(product_id=None, amount=1, date=datetime(2024, 1, 1))


def test_movement_promotes_plain_date_to_midnight() -> None:
    arrival = Arrival(product_id=uuid.uuid4(), amount=1, date=date(2024, 1, 5))

    assert arrival.date == datetime(2024, 1, 5, 0, 0)


def test_movement_kind() -> None:
    product_id = uuid.uuid4()
    arrival = Arrival(product_id=product_id, amount=3, date=datetime(2024, 1, 1))
    expense = Expense(product_id=product_id, amount=3, date=datetime(2024, 1, 1))

    assert arrival.kind is MovementKind.ARRIVAL
    assert expense.kind is MovementKind.EXPENSE


def test_movement_converts_aware_date_to_naive_utc() -> None:
    """Aware datetimes are stored as naive UTC so they compare with the rest of the data."""
    berlin = pytz.timezone("Europe/Berlin")
    aware = berlin.localize(datetime(2024, 3, 10, 13, 0))

    expense = Expense(product_id=uuid.uuid4(), amount=1, date=aware)

    assert expense.date == datetime(2024, 3, 10, 12, 0)
    assert expense.date.tzinfo is None
    assert expense.date < datetime(2024, 3, 11)
