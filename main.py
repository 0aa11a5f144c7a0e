"""Main application entry point for the warehouse inventory tracker."""

import logging

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import ApplicationError, DatabaseError
from src.common.logger_config import setup_logging
from src.inventory_domain.application.inventory_service import InventoryApplicationService
from src.inventory_domain.application.reporting_service import ReportingApplicationService
from src.inventory_domain.domain.entities.stock_movement import MovementKind
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository
from src.inventory_domain.domain.services.stock_calculator import StockCalculator
from src.inventory_domain.infrastructure.persistence.in_memory_inventory_repository import (
    InMemoryInventoryRepository,
)
from src.inventory_domain.infrastructure.persistence.mysql_inventory_repository import (
    MySQLInventoryRepository,
)

logger = logging.getLogger(__name__)


def create_inventory_repository() -> IInventoryRepository:
    """Builds the repository selected by STORAGE_BACKEND, creating tables when needed."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        logger.info("Using in-memory inventory store")
        return InMemoryInventoryRepository()
    if backend != "mysql":
        raise ApplicationError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}' (expected 'mysql' or 'memory')")

    repository = MySQLInventoryRepository()
    try:
        repository.create_tables()
        logger.info("✅ Database tables created/verified successfully")
    except DatabaseError as e:
        logger.error(f"❌ Error creating inventory database tables: {e}")
        raise
    return repository


def setup_inventory_dependencies(
    repository: IInventoryRepository,
) -> tuple[InventoryApplicationService, ReportingApplicationService]:
    """Wires the inventory services around one store handle."""
    calculator = StockCalculator(repository)
    inventory_service = InventoryApplicationService(inventory_repo=repository, calculator=calculator)
    reporting_service = ReportingApplicationService(inventory_repo=repository, calculator=calculator)
    return inventory_service, reporting_service


def log_inventory_summary(reporting_service: ReportingApplicationService) -> None:
    """Logs the dashboard counters, low-stock items and the stock overview."""
    dashboard = reporting_service.get_dashboard()

    logger.info(
        f"Products: {dashboard.total_products} (+{dashboard.new_products} this month) | "
        f"Arrivals: {dashboard.total_arrivals} (+{dashboard.new_arrivals} this week) | "
        f"Expenses: {dashboard.total_expenses} (+{dashboard.new_expenses} this week)"
    )

    if dashboard.low_stock_items:
        logger.warning(f"{dashboard.low_stock_count} product(s) low on stock:")
        for item in dashboard.low_stock_items:
            logger.warning(f"  {item.product.title}: {item.current_stock}")

    for transaction in dashboard.recent_transactions:
        sign = "+" if transaction.kind is MovementKind.ARRIVAL else "-"
        logger.info(
            f"  {transaction.date:%Y-%m-%d} {transaction.product_title or transaction.product_id}: "
            f"{sign}{transaction.amount}"
        )

    stock = reporting_service.list_stock()
    logger.info(f"--- Stock overview ({len(stock)} products) ---")
    for level in stock:
        logger.info(
            f"  {level.product.title}: {level.current_stock} "
            f"(last arrival: {level.last_arrival or '-'}, last expense: {level.last_expense or '-'})"
        )


def main() -> None:
    setup_logging()
    logger.info("Warehouse inventory tracker started.")

    try:
        repository = create_inventory_repository()
        _, reporting_service = setup_inventory_dependencies(repository)
        log_inventory_summary(reporting_service)
    except ApplicationError as e:
        logger.error(f"An error occurred while reading the inventory: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
