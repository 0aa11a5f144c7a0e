"""Read-only projections for the dashboard, stock overview and journals."""

import logging
import uuid
from datetime import date, timedelta
from typing import Callable, Optional

from src.common.config.settings import settings
from src.common.dtos.inventory_dtos import (
    DashboardDTO,
    MovementSeriesDTO,
    ProductDetailsDTO,
    StockDetailsDTO,
    StockLevelDTO,
    TransactionDTO,
)
from src.common.exceptions.custom_exceptions import NotFoundError
from src.common.utils.date_utils import day_range_bounds, local_today, start_of_day, subtract_months
from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import MovementKind, StockMovement
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository
from src.inventory_domain.domain.services.stock_calculator import StockCalculator

logger = logging.getLogger(__name__)

SERIES_DAYS = 31
RECENT_PER_KIND = 5
RECENT_TRANSACTIONS = 10
NEW_MOVEMENT_DAYS = 7
PRODUCT_DETAIL_MOVEMENTS = 5


class ReportingApplicationService:
    """Thin read layer combining repository queries with the stock calculator."""

    def __init__(
        self,
        inventory_repo: IInventoryRepository,
        calculator: Optional[StockCalculator] = None,
        today_provider: Callable[[], date] = local_today,
    ) -> None:
        self.inventory_repo = inventory_repo
        self.calculator = calculator or StockCalculator(inventory_repo)
        self.today_provider = today_provider

    def get_dashboard(self, today: Optional[date] = None) -> DashboardDTO:
        today = today or self.today_provider()
        logger.debug(f"Building dashboard for {today}")

        # Products created within the last month, today included
        new_products_since = start_of_day(subtract_months(today + timedelta(days=1), 1))
        new_movements_since = start_of_day(today - timedelta(days=NEW_MOVEMENT_DAYS))

        low_stock_items = self.get_low_stock()

        return DashboardDTO(
            total_products=self.inventory_repo.count_products(),
            new_products=self.inventory_repo.count_products(created_since=new_products_since),
            total_arrivals=self.inventory_repo.count_movements(MovementKind.ARRIVAL),
            new_arrivals=self.inventory_repo.count_movements(MovementKind.ARRIVAL, since=new_movements_since),
            total_expenses=self.inventory_repo.count_movements(MovementKind.EXPENSE),
            new_expenses=self.inventory_repo.count_movements(MovementKind.EXPENSE, since=new_movements_since),
            low_stock_count=len(low_stock_items),
            low_stock_items=low_stock_items,
            recent_transactions=self.get_recent_transactions(),
            movement_series=self.get_movement_series(today),
        )

    def get_low_stock(
        self, threshold: Optional[int] = None, limit: Optional[int] = None
    ) -> list[StockLevelDTO]:
        """Products at or below the threshold, lowest stock first, ties ordered by title."""
        threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
        limit = settings.LOW_STOCK_LIMIT if limit is None else limit

        levels = self.calculator.stock_levels(self.inventory_repo.list_products())
        low = [level for level in levels if level.current_stock <= threshold]
        low.sort(key=lambda level: (level.current_stock, level.product.title.lower()))
        return low[:limit]

    def get_recent_transactions(self) -> list[TransactionDTO]:
        arrivals = self.inventory_repo.list_movements(MovementKind.ARRIVAL, limit=RECENT_PER_KIND)
        expenses = self.inventory_repo.list_movements(MovementKind.EXPENSE, limit=RECENT_PER_KIND)
        movements = arrivals + expenses

        products = self.inventory_repo.get_products({m.product_id for m in movements})

        transactions = [
            TransactionDTO(
                id=m.id,
                date=m.date,
                kind=m.kind,
                product_id=m.product_id,
                product_title=products[m.product_id].title if m.product_id in products else None,
                amount=m.amount,
            )
            for m in movements
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions[:RECENT_TRANSACTIONS]

    def get_movement_series(self, today: Optional[date] = None) -> MovementSeriesDTO:
        """Daily totals for today and the 30 days before it, zero-filled."""
        today = today or self.today_provider()
        first_day = today - timedelta(days=SERIES_DAYS - 1)
        start = start_of_day(first_day)
        end = start_of_day(today + timedelta(days=1))

        arrival_totals = self.inventory_repo.daily_totals(MovementKind.ARRIVAL, start, end)
        expense_totals = self.inventory_repo.daily_totals(MovementKind.EXPENSE, start, end)

        days = [first_day + timedelta(days=i) for i in range(SERIES_DAYS)]
        return MovementSeriesDTO(
            days=days,
            labels=[d.strftime("%d %b") for d in days],
            arrivals=[arrival_totals.get(d, 0) for d in days],
            expenses=[expense_totals.get(d, 0) for d in days],
        )

    def list_stock(self, search: Optional[str] = None, sort_order: Optional[str] = None) -> list[StockLevelDTO]:
        """Stock overview with an optional title filter. Unknown sort orders fall back to title."""
        search = search.strip() if search else None
        levels = self.calculator.stock_levels(self.inventory_repo.list_products(search=search or None))

        if sort_order == "title_desc":
            levels.sort(key=lambda level: level.product.title.lower(), reverse=True)
        elif sort_order == "Stock":
            levels.sort(key=lambda level: level.current_stock)
        elif sort_order == "stock_desc":
            levels.sort(key=lambda level: level.current_stock, reverse=True)
        else:
            levels.sort(key=lambda level: level.product.title.lower())
        return levels

    def get_stock_details(
        self, product_id: uuid.UUID, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> StockDetailsDTO:
        product = self._require_product(product_id)
        start, end = day_range_bounds(start_date, end_date)

        return StockDetailsDTO(
            product=product,
            current_stock=self.calculator.current_stock(product.id),
            arrivals=self.inventory_repo.list_movements(MovementKind.ARRIVAL, product_id=product.id, start=start, end=end),
            expenses=self.inventory_repo.list_movements(MovementKind.EXPENSE, product_id=product.id, start=start, end=end),
            start_date=start_date,
            end_date=end_date,
        )

    def get_product_details(self, product_id: uuid.UUID, today: Optional[date] = None) -> ProductDetailsDTO:
        product = self._require_product(product_id)
        today = today or self.today_provider()
        since = start_of_day(subtract_months(today, 1))

        return ProductDetailsDTO(
            product=product,
            current_stock=self.calculator.current_stock(product.id),
            recent_arrivals=self.inventory_repo.list_movements(
                MovementKind.ARRIVAL, product_id=product.id, start=since, limit=PRODUCT_DETAIL_MOVEMENTS
            ),
            recent_expenses=self.inventory_repo.list_movements(
                MovementKind.EXPENSE, product_id=product.id, start=since, limit=PRODUCT_DETAIL_MOVEMENTS
            ),
        )

    def list_arrivals(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> list[StockMovement]:
        start, end = day_range_bounds(start_date, end_date)
        return self.inventory_repo.list_movements(MovementKind.ARRIVAL, start=start, end=end)

    def list_expenses(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> list[StockMovement]:
        start, end = day_range_bounds(start_date, end_date)
        return self.inventory_repo.list_movements(MovementKind.EXPENSE, start=start, end=end)

    def _require_product(self, product_id: uuid.UUID) -> Product:
        product = self.inventory_repo.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product
