# src/inventory_domain/domain/services/stock_calculator.py
"""Derives current stock from raw arrival and expense sums."""

import uuid
from typing import Iterable

from src.common.dtos.inventory_dtos import MovementDatesDTO, StockLevelDTO
from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import MovementKind
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository


class StockCalculator:
    """
    Read-only stock arithmetic over the inventory repository.

    Stock is never cached: every call re-aggregates the movement tables, and
    the batch variants issue a fixed number of grouped queries regardless of
    how many products are asked for.
    """

    def __init__(self, inventory_repo: IInventoryRepository) -> None:
        self.inventory_repo = inventory_repo

    def current_stock(self, product_id: uuid.UUID) -> int:
        """Sum of arrivals minus sum of expenses; 0 for unknown products."""
        return self.batch_stock([product_id]).get(product_id, 0)

    def batch_stock(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Current stock for many products using one grouped sum per movement kind."""
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        arrivals = self.inventory_repo.group_sum(MovementKind.ARRIVAL, ids)
        expenses = self.inventory_repo.group_sum(MovementKind.EXPENSE, ids)

        return {pid: arrivals.get(pid, 0) - expenses.get(pid, 0) for pid in ids}

    def last_movement_dates(self, product_id: uuid.UUID) -> MovementDatesDTO:
        return self.batch_last_movement_dates([product_id]).get(product_id, MovementDatesDTO())

    def batch_last_movement_dates(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, MovementDatesDTO]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        last_arrivals = self.inventory_repo.group_last_date(MovementKind.ARRIVAL, ids)
        last_expenses = self.inventory_repo.group_last_date(MovementKind.EXPENSE, ids)

        return {
            pid: MovementDatesDTO(last_arrival=last_arrivals.get(pid), last_expense=last_expenses.get(pid))
            for pid in ids
        }

    def stock_levels(self, products: list[Product]) -> list[StockLevelDTO]:
        """Builds stock rows for a product list in four grouped queries."""
        ids = [p.id for p in products]
        stock = self.batch_stock(ids)
        dates = self.batch_last_movement_dates(ids)

        return [
            StockLevelDTO(
                product=p,
                current_stock=stock.get(p.id, 0),
                last_arrival=dates[p.id].last_arrival if p.id in dates else None,
                last_expense=dates[p.id].last_expense if p.id in dates else None,
            )
            for p in products
        ]
