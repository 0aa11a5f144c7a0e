# tests/conftest.py
from datetime import date, datetime
from unittest.mock import Mock

import pytest

from src.common.config.settings import settings
from src.inventory_domain.application.inventory_service import InventoryApplicationService
from src.inventory_domain.application.reporting_service import ReportingApplicationService
from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository
from src.inventory_domain.domain.services.stock_calculator import StockCalculator
from src.inventory_domain.infrastructure.persistence.in_memory_inventory_repository import (
    InMemoryInventoryRepository,
)

FIXED_TODAY = date(2024, 3, 15)


@pytest.fixture(autouse=True)
def mock_settings_inventory(mocker) -> None:
    """Pins the settings the services read so tests do not depend on the environment."""
    mocker.patch.object(settings, "TIMEZONE", "UTC")
    mocker.patch.object(settings, "LOW_STOCK_THRESHOLD", 5)
    mocker.patch.object(settings, "LOW_STOCK_LIMIT", 5)
    mocker.patch.object(settings, "LOCK_TIMEOUT", 1.0)
    mocker.patch.object(settings, "GUARD_ARRIVAL_EDITS", False)


@pytest.fixture
def fixed_today() -> date:
    return FIXED_TODAY


@pytest.fixture
def inventory_repository() -> InMemoryInventoryRepository:
    """Fresh in-memory store per test."""
    return InMemoryInventoryRepository()


@pytest.fixture
def mock_inventory_repository() -> Mock:
    """Mock for the repository interface."""
    return Mock(spec=IInventoryRepository)


@pytest.fixture
def stock_calculator(inventory_repository) -> StockCalculator:
    return StockCalculator(inventory_repository)


@pytest.fixture
def inventory_service(inventory_repository, stock_calculator) -> InventoryApplicationService:
    """Service with the historical behaviour: arrival edits are not stock-checked."""
    return InventoryApplicationService(
        inventory_repo=inventory_repository, calculator=stock_calculator, lock_timeout=0.5, guard_arrival_edits=False
    )


@pytest.fixture
def guarded_inventory_service(inventory_repository, stock_calculator) -> InventoryApplicationService:
    """Service with arrival edits guarded as well."""
    return InventoryApplicationService(
        inventory_repo=inventory_repository, calculator=stock_calculator, lock_timeout=0.5, guard_arrival_edits=True
    )


@pytest.fixture
def reporting_service(inventory_repository, stock_calculator, fixed_today) -> ReportingApplicationService:
    return ReportingApplicationService(
        inventory_repo=inventory_repository, calculator=stock_calculator, today_provider=lambda: fixed_today
    )


@pytest.fixture
def widget(inventory_service) -> Product:
    """A product with no movements."""
    return inventory_service.create_product("Widget")


@pytest.fixture
def gadget(inventory_service) -> Product:
    return inventory_service.create_product("Gadget")


@pytest.fixture
def sample_dates() -> dict[str, datetime]:
    return {
        "d1": datetime(2024, 3, 1, 9, 0, 0),
        "d2": datetime(2024, 3, 2, 10, 30, 0),
        "d3": datetime(2024, 3, 3, 16, 45, 0),
    }
