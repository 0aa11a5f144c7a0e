# src/inventory_domain/application/inventory_service.py
"""Application service for guarded product, arrival and expense mutations."""

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import (
    ConcurrencyConflictError,
    DuplicateTitleError,
    HasDependentsError,
    InsufficientStockError,
    NegativeStockError,
    NotFoundError,
    ValidationError,
)
from src.common.utils.locking import CATALOG_LOCK_KEY, lock, stock_lock_key
from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import (
    Arrival,
    Expense,
    MovementKind,
    StockMovement,
)
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository
from src.inventory_domain.domain.services.stock_calculator import StockCalculator

logger = logging.getLogger(__name__)


def _as_uuid(value: uuid.UUID | str | None, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"{field} is not a valid identifier: {value!r}", field=field, original_exception=e)


class InventoryApplicationService:
    """
    Guarded CRUD for products, arrivals and expenses.

    Every read-decide-write sequence on stock runs while holding the
    `stock:<product_id>` lock of each product it touches, so two concurrent
    expenses cannot both pass the stock check. Title checks run under a single
    catalog-wide lock.
    """

    def __init__(
        self,
        inventory_repo: IInventoryRepository,
        calculator: Optional[StockCalculator] = None,
        lock_timeout: Optional[float] = None,
        guard_arrival_edits: Optional[bool] = None,
    ) -> None:
        self.inventory_repo = inventory_repo
        self.calculator = calculator or StockCalculator(inventory_repo)
        self.lock_timeout = settings.LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self.guard_arrival_edits = (
            settings.GUARD_ARRIVAL_EDITS if guard_arrival_edits is None else guard_arrival_edits
        )

    def _stock_lock(self, *product_ids: uuid.UUID):
        return lock(
            [stock_lock_key(pid) for pid in product_ids], backend=self.inventory_repo, timeout=self.lock_timeout
        )

    def _catalog_lock(self):
        return lock(CATALOG_LOCK_KEY, backend=self.inventory_repo, timeout=self.lock_timeout)

    def _require_existing_product(self, product_id: uuid.UUID) -> Product:
        """Used on create/edit paths, where an unknown product is an input error."""
        product = self.inventory_repo.get_product(product_id)
        if product is None:
            raise ValidationError(f"Product {product_id} does not exist", field="product_id")
        return product

    def _reload_movement(self, kind: MovementKind, movement_id: uuid.UUID, locked_product_id: uuid.UUID) -> StockMovement:
        """Re-reads a movement after locking and checks it still belongs to the locked product."""
        movement = self.inventory_repo.get_movement(kind, movement_id)
        if movement is None:
            raise NotFoundError(kind.value.capitalize(), movement_id)
        if movement.product_id != locked_product_id:
            raise ConcurrencyConflictError(
                f"{kind.value.capitalize()} {movement_id} was moved to another product concurrently"
            )
        return movement

    # Queries

    def get_product(self, product_id: uuid.UUID | str) -> Product:
        product_id = _as_uuid(product_id, "product_id")
        product = self.inventory_repo.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def get_arrival(self, arrival_id: uuid.UUID | str) -> Arrival:
        return self._get_movement(MovementKind.ARRIVAL, arrival_id)

    def get_expense(self, expense_id: uuid.UUID | str) -> Expense:
        return self._get_movement(MovementKind.EXPENSE, expense_id)

    def _get_movement(self, kind: MovementKind, movement_id: uuid.UUID | str) -> StockMovement:
        movement_id = _as_uuid(movement_id, "id")
        movement = self.inventory_repo.get_movement(kind, movement_id)
        if movement is None:
            raise NotFoundError(kind.value.capitalize(), movement_id)
        return movement

    # Arrivals

    def create_arrival(self, product_id: uuid.UUID | str, amount: int, date: date | datetime) -> Arrival:
        """Records incoming stock. Arrivals only raise stock, so no stock check is needed."""
        arrival = Arrival(product_id=_as_uuid(product_id, "product_id"), amount=amount, date=date)

        with self._stock_lock(arrival.product_id):
            self._require_existing_product(arrival.product_id)
            self.inventory_repo.add_movement(arrival)

        logger.info(f"Arrival {arrival.id}: +{arrival.amount} for product {arrival.product_id}")
        return arrival

    def edit_arrival(
        self,
        arrival_id: uuid.UUID | str,
        amount: int,
        date: date | datetime,
        product_id: uuid.UUID | str,
    ) -> Arrival:
        """
        Updates an arrival.

        Not stock-checked unless `guard_arrival_edits` is on, matching the
        historical behaviour where only expense edits were guarded. With the
        guard on, the edit is refused if the product losing stock would go
        negative.
        """
        original = self.get_arrival(arrival_id)
        updated = Arrival(
            product_id=_as_uuid(product_id, "product_id"), amount=amount, date=date, id=original.id
        )

        with self._stock_lock(original.product_id, updated.product_id):
            original = self._reload_movement(MovementKind.ARRIVAL, original.id, original.product_id)
            self._require_existing_product(updated.product_id)

            if self.guard_arrival_edits:
                current_stock = self.calculator.current_stock(original.product_id)
                if updated.product_id == original.product_id:
                    new_stock = current_stock - original.amount + updated.amount
                else:
                    new_stock = current_stock - original.amount
                if new_stock < 0:
                    logger.warning(
                        f"Rejected edit of arrival {original.id}: stock of product {original.product_id} "
                        f"would become {new_stock}"
                    )
                    raise NegativeStockError(
                        current_stock,
                        original.amount,
                        message=(
                            "Changing this arrival would make the stock negative. "
                            "Delete the dependent expenses first."
                        ),
                    )

            self.inventory_repo.update_movement(updated)

        logger.info(f"Arrival {updated.id} updated: amount {original.amount} -> {updated.amount}")
        return updated

    def delete_arrival(self, arrival_id: uuid.UUID | str) -> bool:
        """
        Deletes an arrival unless doing so would drive stock negative.

        Returns False when the arrival does not exist.
        """
        arrival_id = _as_uuid(arrival_id, "id")
        arrival = self.inventory_repo.get_movement(MovementKind.ARRIVAL, arrival_id)
        if arrival is None:
            return False

        with self._stock_lock(arrival.product_id):
            arrival = self.inventory_repo.get_movement(MovementKind.ARRIVAL, arrival_id)
            if arrival is None:
                return False

            current_stock = self.calculator.current_stock(arrival.product_id)
            if current_stock - arrival.amount < 0:
                logger.warning(
                    f"Rejected deletion of arrival {arrival.id}: stock {current_stock} - {arrival.amount} < 0"
                )
                raise NegativeStockError(current_stock, arrival.amount)

            deleted = self.inventory_repo.delete_movement(MovementKind.ARRIVAL, arrival_id)

        logger.info(f"Arrival {arrival_id} deleted")
        return deleted

    # Expenses

    def create_expense(self, product_id: uuid.UUID | str, amount: int, date: date | datetime) -> Expense:
        """Records outgoing stock if enough is on hand."""
        expense = Expense(product_id=_as_uuid(product_id, "product_id"), amount=amount, date=date)

        with self._stock_lock(expense.product_id):
            self._require_existing_product(expense.product_id)

            current_stock = self.calculator.current_stock(expense.product_id)
            if current_stock < expense.amount:
                logger.warning(
                    f"Rejected expense of {expense.amount} for product {expense.product_id}: "
                    f"only {current_stock} in stock"
                )
                raise InsufficientStockError(current_stock, expense.amount)

            self.inventory_repo.add_movement(expense)

        logger.info(f"Expense {expense.id}: -{expense.amount} for product {expense.product_id}")
        return expense

    def edit_expense(
        self,
        expense_id: uuid.UUID | str,
        amount: int,
        date: date | datetime,
        product_id: uuid.UUID | str,
    ) -> Expense:
        """
        Updates an expense if the resulting stock stays non-negative.

        The stored expense is already counted in current stock, so for the
        same product the check is `current + old amount - new amount >= 0`.
        Moving the expense to another product checks the target product only.
        """
        original = self.get_expense(expense_id)
        updated = Expense(
            product_id=_as_uuid(product_id, "product_id"), amount=amount, date=date, id=original.id
        )

        with self._stock_lock(original.product_id, updated.product_id):
            original = self._reload_movement(MovementKind.EXPENSE, original.id, original.product_id)
            self._require_existing_product(updated.product_id)

            current_stock = self.calculator.current_stock(updated.product_id)
            if updated.product_id == original.product_id:
                new_stock = current_stock + original.amount - updated.amount
            else:
                new_stock = current_stock - updated.amount

            if new_stock < 0:
                logger.warning(
                    f"Rejected edit of expense {original.id}: stock of product {updated.product_id} "
                    f"would become {new_stock}"
                )
                raise InsufficientStockError(
                    current_stock,
                    updated.amount,
                    message=f"Insufficient stock: the adjusted stock would be {new_stock}",
                )

            self.inventory_repo.update_movement(updated)

        logger.info(f"Expense {updated.id} updated: amount {original.amount} -> {updated.amount}")
        return updated

    def delete_expense(self, expense_id: uuid.UUID | str) -> bool:
        """
        Deletes an expense. Always allowed, since it can only raise stock.

        Idempotent: returns False when the expense is already gone.
        """
        expense_id = _as_uuid(expense_id, "id")
        deleted = self.inventory_repo.delete_movement(MovementKind.EXPENSE, expense_id)
        if deleted:
            logger.info(f"Expense {expense_id} deleted")
        else:
            logger.debug(f"Expense {expense_id} already absent, nothing to delete")
        return deleted

    # Products

    def create_product(self, title: str) -> Product:
        product = Product(title=title)

        with self._catalog_lock():
            if self.inventory_repo.exists_by_title(product.title):
                logger.warning(f"Rejected duplicate product title '{product.title}'")
                raise DuplicateTitleError(product.title)
            self.inventory_repo.add_product(product)

        logger.info(f"Product '{product.title}' created with id {product.id}")
        return product

    def edit_product(self, product_id: uuid.UUID | str, title: str) -> Product:
        existing = self.get_product(product_id)
        updated = Product(title=title, id=existing.id, created_at=existing.created_at)

        with self._catalog_lock():
            if self.inventory_repo.get_product(existing.id) is None:
                raise NotFoundError("Product", existing.id)
            if self.inventory_repo.exists_by_title(updated.title, excluding_id=existing.id):
                logger.warning(f"Rejected rename of product {existing.id} to duplicate title '{updated.title}'")
                raise DuplicateTitleError(updated.title)
            self.inventory_repo.update_product(updated)

        logger.info(f"Product {existing.id} renamed '{existing.title}' -> '{updated.title}'")
        return updated

    def delete_product(self, product_id: uuid.UUID | str) -> None:
        """Deletes a product that has no arrivals or expenses."""
        product_id = _as_uuid(product_id, "product_id")

        with self._stock_lock(product_id):
            product = self.inventory_repo.get_product(product_id)
            if product is None:
                raise NotFoundError("Product", product_id)

            if self.inventory_repo.has_any_movement(product_id):
                logger.warning(f"Rejected deletion of product '{product.title}': it has movements")
                raise HasDependentsError(product_id, product.title)

            self.inventory_repo.delete_product(product_id)

        logger.info(f"Product '{product.title}' deleted")
