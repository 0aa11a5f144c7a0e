"""Data Transfer Objects for stock levels and dashboard read models."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import Arrival, Expense, MovementKind


@dataclass
class MovementDatesDTO:
    """Most recent arrival and expense dates of a product."""

    last_arrival: datetime | None = None
    last_expense: datetime | None = None


@dataclass
class StockLevelDTO:
    """A product with its derived stock, as shown in stock lists."""

    product: Product
    current_stock: int
    last_arrival: datetime | None = None
    last_expense: datetime | None = None


@dataclass
class TransactionDTO:
    """One row of the merged recent-transactions feed."""

    id: uuid.UUID
    date: datetime
    kind: MovementKind
    product_id: uuid.UUID
    product_title: str | None
    amount: int


@dataclass
class MovementSeriesDTO:
    """Daily arrival/expense totals, oldest day first."""

    days: list[date] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    arrivals: list[int] = field(default_factory=list)
    expenses: list[int] = field(default_factory=list)


@dataclass
class DashboardDTO:
    total_products: int
    new_products: int
    total_arrivals: int
    new_arrivals: int
    total_expenses: int
    new_expenses: int
    low_stock_count: int
    low_stock_items: list[StockLevelDTO] = field(default_factory=list)
    recent_transactions: list[TransactionDTO] = field(default_factory=list)
    movement_series: MovementSeriesDTO = field(default_factory=MovementSeriesDTO)


@dataclass
class StockDetailsDTO:
    """Movement history of one product within an optional date range."""

    product: Product
    current_stock: int
    arrivals: list[Arrival] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class ProductDetailsDTO:
    """Product card: current stock plus the latest movements of the past month."""

    product: Product
    current_stock: int
    recent_arrivals: list[Arrival] = field(default_factory=list)
    recent_expenses: list[Expense] = field(default_factory=list)
