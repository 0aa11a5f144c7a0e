"""Inventory repository interface (products, arrivals and expenses)."""
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Optional

from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import MovementKind, StockMovement


class IInventoryRepository(ABC):

    # Products

    @abstractmethod
    def add_product(self, product: Product) -> None:
        """Persists a new product."""
        pass

    @abstractmethod
    def update_product(self, product: Product) -> None:
        """Persists changes to an existing product."""
        pass

    @abstractmethod
    def delete_product(self, product_id: uuid.UUID) -> None:
        """Removes a product. Callers check for dependent movements first."""
        pass

    @abstractmethod
    def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        """Retrieves a product by id, or None."""
        pass

    @abstractmethod
    def get_products(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        """Retrieves several products in one query, keyed by id."""
        pass

    @abstractmethod
    def list_products(self, search: Optional[str] = None) -> list[Product]:
        """Lists products, optionally filtered by a case-insensitive title substring."""
        pass

    @abstractmethod
    def exists_by_title(self, title: str, excluding_id: Optional[uuid.UUID] = None) -> bool:
        """Checks whether a product with the same trimmed, lower-cased title exists."""
        pass

    @abstractmethod
    def count_products(self, created_since: Optional[datetime] = None) -> int:
        """Counts products, optionally only those created on or after a moment."""
        pass

    # Arrivals and expenses

    @abstractmethod
    def add_movement(self, movement: StockMovement) -> None:
        """Persists a new arrival or expense."""
        pass

    @abstractmethod
    def update_movement(self, movement: StockMovement) -> None:
        """Persists changes to an existing arrival or expense."""
        pass

    @abstractmethod
    def delete_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> bool:
        """Removes an arrival or expense. Returns False if nothing was deleted."""
        pass

    @abstractmethod
    def get_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> Optional[StockMovement]:
        """Retrieves an arrival or expense by id, or None."""
        pass

    @abstractmethod
    def list_movements(
        self,
        kind: MovementKind,
        product_id: Optional[uuid.UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[StockMovement]:
        """Lists movements of one kind; `start` is inclusive and `end` exclusive."""
        pass

    @abstractmethod
    def group_sum(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Sums amounts per product in one grouped query. Products without movements are omitted."""
        pass

    @abstractmethod
    def group_last_date(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, datetime]:
        """Latest movement date per product in one grouped query."""
        pass

    @abstractmethod
    def has_any_movement(self, product_id: uuid.UUID) -> bool:
        """Checks whether any arrival or expense references the product."""
        pass

    @abstractmethod
    def count_movements(self, kind: MovementKind, since: Optional[datetime] = None) -> int:
        """Counts movements, optionally only those dated on or after a moment."""
        pass

    @abstractmethod
    def daily_totals(self, kind: MovementKind, start: datetime, end: datetime) -> dict[date, int]:
        """Sums amounts per calendar day for movements in [start, end)."""
        pass

    # Lock backend

    @abstractmethod
    def acquire(self, key: str, timeout: Optional[float]) -> bool:
        """Takes a named lock shared by every user of the same store."""
        pass

    @abstractmethod
    def release(self, key: str) -> None:
        """Releases a named lock taken with acquire."""
        pass
