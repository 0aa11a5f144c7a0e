"""In-memory implementation of the Inventory repository."""

import copy
import logging
import threading
import uuid
from datetime import date, datetime
from typing import Iterable, Optional

from src.common.exceptions.custom_exceptions import ConcurrencyConflictError
from src.inventory_domain.domain.entities.product import Product, normalize_title
from src.inventory_domain.domain.entities.stock_movement import MovementKind, StockMovement
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository

logger = logging.getLogger(__name__)


class InMemoryInventoryRepository(IInventoryRepository):
    """
    Process-local store for demos and tests.

    Entities are copied on the way in and out so callers never hold a
    reference into the store. Named locks are plain threading locks, so they
    only coordinate threads of the current process. A key is dropped once no
    thread holds or waits for it.
    """

    def __init__(self) -> None:
        self._products: dict[uuid.UUID, Product] = {}
        self._movements: dict[MovementKind, dict[uuid.UUID, StockMovement]] = {kind: {} for kind in MovementKind}
        self._data_lock = threading.RLock()
        self._named_locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._named_locks_guard = threading.Lock()

    # Products

    def add_product(self, product: Product) -> None:
        with self._data_lock:
            self._products[product.id] = copy.copy(product)

    def update_product(self, product: Product) -> None:
        with self._data_lock:
            if product.id not in self._products:
                raise ConcurrencyConflictError(f"Product {product.id} no longer exists")
            self._products[product.id] = copy.copy(product)

    def delete_product(self, product_id: uuid.UUID) -> None:
        with self._data_lock:
            self._products.pop(product_id, None)

    def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        with self._data_lock:
            product = self._products.get(product_id)
            return copy.copy(product) if product else None

    def get_products(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        with self._data_lock:
            return {pid: copy.copy(self._products[pid]) for pid in set(product_ids) if pid in self._products}

    def list_products(self, search: Optional[str] = None) -> list[Product]:
        needle = search.lower() if search else None
        with self._data_lock:
            products = [
                copy.copy(p) for p in self._products.values() if needle is None or needle in p.title.lower()
            ]
        return sorted(products, key=lambda p: p.created_at)

    def exists_by_title(self, title: str, excluding_id: Optional[uuid.UUID] = None) -> bool:
        key = normalize_title(title)
        with self._data_lock:
            return any(p.normalized_title == key and p.id != excluding_id for p in self._products.values())

    def count_products(self, created_since: Optional[datetime] = None) -> int:
        with self._data_lock:
            return sum(1 for p in self._products.values() if created_since is None or p.created_at >= created_since)

    # Arrivals and expenses

    def add_movement(self, movement: StockMovement) -> None:
        with self._data_lock:
            self._movements[movement.kind][movement.id] = copy.copy(movement)

    def update_movement(self, movement: StockMovement) -> None:
        with self._data_lock:
            table = self._movements[movement.kind]
            if movement.id not in table:
                raise ConcurrencyConflictError(f"{movement.kind.value.capitalize()} {movement.id} no longer exists")
            table[movement.id] = copy.copy(movement)

    def delete_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> bool:
        with self._data_lock:
            return self._movements[kind].pop(movement_id, None) is not None

    def get_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> Optional[StockMovement]:
        with self._data_lock:
            movement = self._movements[kind].get(movement_id)
            return copy.copy(movement) if movement else None

    def list_movements(
        self,
        kind: MovementKind,
        product_id: Optional[uuid.UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[StockMovement]:
        with self._data_lock:
            rows = [
                copy.copy(m)
                for m in self._movements[kind].values()
                if (product_id is None or m.product_id == product_id)
                and (start is None or m.date >= start)
                and (end is None or m.date < end)
            ]
        rows.sort(key=lambda m: m.date, reverse=newest_first)
        return rows[:limit] if limit is not None else rows

    def group_sum(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, int]:
        wanted = set(product_ids)
        totals: dict[uuid.UUID, int] = {}
        with self._data_lock:
            for m in self._movements[kind].values():
                if m.product_id in wanted:
                    totals[m.product_id] = totals.get(m.product_id, 0) + m.amount
        return totals

    def group_last_date(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, datetime]:
        wanted = set(product_ids)
        latest: dict[uuid.UUID, datetime] = {}
        with self._data_lock:
            for m in self._movements[kind].values():
                if m.product_id in wanted and (m.product_id not in latest or m.date > latest[m.product_id]):
                    latest[m.product_id] = m.date
        return latest

    def has_any_movement(self, product_id: uuid.UUID) -> bool:
        with self._data_lock:
            return any(m.product_id == product_id for table in self._movements.values() for m in table.values())

    def count_movements(self, kind: MovementKind, since: Optional[datetime] = None) -> int:
        with self._data_lock:
            return sum(1 for m in self._movements[kind].values() if since is None or m.date >= since)

    def daily_totals(self, kind: MovementKind, start: datetime, end: datetime) -> dict[date, int]:
        totals: dict[date, int] = {}
        with self._data_lock:
            for m in self._movements[kind].values():
                if start <= m.date < end:
                    day = m.date.date()
                    totals[day] = totals.get(day, 0) + m.amount
        return totals

    # Lock backend

    def acquire(self, key: str, timeout: Optional[float]) -> bool:
        with self._named_locks_guard:
            named_lock = self._named_locks.setdefault(key, threading.Lock())
            self._lock_users[key] = self._lock_users.get(key, 0) + 1

        acquired = named_lock.acquire() if timeout is None else named_lock.acquire(timeout=timeout)
        if not acquired:
            self._drop_lock_user(key)
        return acquired

    def release(self, key: str) -> None:
        with self._named_locks_guard:
            named_lock = self._named_locks.get(key)
        if named_lock is None or not named_lock.locked():
            return
        named_lock.release()
        self._drop_lock_user(key)

    def _drop_lock_user(self, key: str) -> None:
        """Forgets a key once no thread holds or waits for it."""
        with self._named_locks_guard:
            users = self._lock_users.get(key, 0) - 1
            if users > 0:
                self._lock_users[key] = users
            else:
                self._lock_users.pop(key, None)
                self._named_locks.pop(key, None)
