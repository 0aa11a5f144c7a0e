# tests/test_inventory_domain/test_infrastructure/test_mysql_inventory_repository.py

import uuid
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest
from mysql.connector import Error

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import (
    ConcurrencyConflictError,
    DatabaseError,
    DuplicateTitleError,
    HasDependentsError,
    ValidationError,
)
from src.inventory_domain.domain.entities.product import Product
from src.inventory_domain.domain.entities.stock_movement import Arrival, Expense, MovementKind
from src.inventory_domain.infrastructure.persistence.mysql_inventory_repository import MySQLInventoryRepository


@pytest.fixture
def mock_connect(mocker) -> Mock:
    """Patches mysql.connector.connect and the DB settings."""
    mocker.patch.object(settings, "DB_HOST", "localhost")
    mocker.patch.object(settings, "DB_DATABASE", "test_db")
    mocker.patch.object(settings, "DB_USER", "test_user")
    mocker.patch.object(settings, "DB_PASSWORD", "test_password")
    return mocker.patch("mysql.connector.connect")


@pytest.fixture
def mock_cursor(mock_connect) -> Mock:
    cursor = Mock()
    cursor.rowcount = 1
    mock_connect.return_value.cursor.return_value = cursor
    return cursor


@pytest.fixture
def repo(mock_connect, mock_cursor) -> MySQLInventoryRepository:
    repository = MySQLInventoryRepository()
    repository._connection = None
    return repository


def test_create_tables_success(repo, mock_connect, mock_cursor) -> None:
    """
    Tests that create_tables connects and creates the product, arrival and expense tables.
    """
    repo.create_tables()

    mock_connect.assert_called_once()
    assert mock_connect.call_args.kwargs["database"] == "test_db"
    assert mock_cursor.execute.call_count == 3
    statements = [c[0][0] for c in mock_cursor.execute.call_args_list]
    assert "inv_products" in statements[0]
    assert "inv_arrivals" in statements[1]
    assert "inv_expenses" in statements[2]
    assert "ON DELETE RESTRICT" in statements[1]
    assert "title VARCHAR(100) COLLATE utf8mb4_0900_as_ci NOT NULL" in statements[0]
    mock_connect.return_value.commit.assert_called_once()
    mock_cursor.close.assert_called_once()


def test_title_collation_is_accent_sensitive(repo, mock_cursor) -> None:
    """Titles differing only by accent are distinct; only case is ignored."""
    repo.create_tables()

    products_ddl = mock_cursor.execute.call_args_list[0][0][0]
    assert "utf8mb4_0900_as_ci" in products_ddl
    assert "_ai_ci" not in products_ddl


def test_create_tables_failure_rolls_back(repo, mock_connect, mock_cursor) -> None:
    mock_cursor.execute.side_effect = Error("boom")

    with pytest.raises(DatabaseError, match="Error creating inventory tables"):
        repo.create_tables()

    mock_connect.return_value.rollback.assert_called_once()
    mock_cursor.close.assert_called_once()


def test_connection_failure_raises_database_error(mock_connect) -> None:
    mock_connect.side_effect = Error("Access denied")
    repository = MySQLInventoryRepository()

    with pytest.raises(DatabaseError, match="Failed to connect to MySQL"):
        repository.get_product(uuid.uuid4())


def test_add_product_inserts_and_commits(repo, mock_connect, mock_cursor) -> None:
    product = Product(title="Widget", created_at=datetime(2024, 3, 1, 9, 0))

    repo.add_product(product)

    query, params = mock_cursor.execute.call_args[0]
    assert query.strip().startswith("INSERT INTO inv_products")
    assert params == (str(product.id), "Widget", datetime(2024, 3, 1, 9, 0))
    mock_connect.return_value.commit.assert_called_once()
    mock_cursor.close.assert_called_once()


def test_add_product_duplicate_title(repo, mock_connect, mock_cursor) -> None:
    mock_cursor.execute.side_effect = Error(msg="Duplicate entry", errno=1062)

    with pytest.raises(DuplicateTitleError) as exc_info:
        repo.add_product(Product(title="Widget"))

    assert exc_info.value.title == "Widget"
    mock_connect.return_value.rollback.assert_called_once()
    mock_cursor.close.assert_called_once()


def test_add_movement_for_missing_product(repo, mock_cursor) -> None:
    mock_cursor.execute.side_effect = Error(msg="foreign key constraint fails", errno=1452)

    with pytest.raises(ValidationError) as exc_info:
        repo.add_movement(Arrival(product_id=uuid.uuid4(), amount=1, date=datetime(2024, 3, 1)))

    assert exc_info.value.field == "product_id"


def test_delete_product_with_movements(repo, mock_cursor) -> None:
    mock_cursor.execute.side_effect = Error(msg="Cannot delete or update a parent row", errno=1451)

    with pytest.raises(HasDependentsError):
        repo.delete_product(uuid.uuid4())


@pytest.mark.parametrize("errno", [1205, 1213])
def test_lock_errors_map_to_conflict(repo, mock_cursor, errno) -> None:
    mock_cursor.execute.side_effect = Error(msg="Lock wait", errno=errno)

    with pytest.raises(ConcurrencyConflictError):
        repo.add_movement(Expense(product_id=uuid.uuid4(), amount=1, date=datetime(2024, 3, 1)))


def test_unknown_error_maps_to_database_error(repo, mock_cursor) -> None:
    mock_cursor.execute.side_effect = Error(msg="Table doesn't exist", errno=1146)

    with pytest.raises(DatabaseError):
        repo.list_products()


def test_update_product_missing_row_is_conflict(repo, mock_cursor) -> None:
    mock_cursor.rowcount = 0

    with pytest.raises(ConcurrencyConflictError):
        repo.update_product(Product(title="Widget"))


def test_update_movement_targets_kind_table(repo, mock_cursor) -> None:
    expense = Expense(product_id=uuid.uuid4(), amount=3, date=datetime(2024, 3, 1))

    repo.update_movement(expense)

    query, params = mock_cursor.execute.call_args[0]
    assert query.startswith("UPDATE inv_expenses")
    assert params == (str(expense.product_id), 3, datetime(2024, 3, 1), str(expense.id))


def test_update_movement_missing_row_is_conflict(repo, mock_cursor) -> None:
    mock_cursor.rowcount = 0

    with pytest.raises(ConcurrencyConflictError):
        repo.update_movement(Arrival(product_id=uuid.uuid4(), amount=3, date=datetime(2024, 3, 1)))


@pytest.mark.parametrize("rowcount, expected", [(1, True), (0, False)])
def test_delete_movement_reports_whether_a_row_was_removed(repo, mock_cursor, rowcount, expected) -> None:
    mock_cursor.rowcount = rowcount

    assert repo.delete_movement(MovementKind.EXPENSE, uuid.uuid4()) is expected
    assert mock_cursor.execute.call_args[0][0].startswith("DELETE FROM inv_expenses")


def test_get_product_parses_row(repo, mock_connect, mock_cursor) -> None:
    product_id = uuid.uuid4()
    mock_cursor.fetchall.return_value = [
        {"id": str(product_id), "title": "Widget", "created_at": datetime(2024, 3, 1, 9, 0)}
    ]

    product = repo.get_product(product_id)

    assert product == Product(title="Widget", id=product_id, created_at=datetime(2024, 3, 1, 9, 0))
    assert mock_cursor.execute.call_args[0][1] == (str(product_id),)
    # Reads commit to end the snapshot
    mock_connect.return_value.commit.assert_called_once()
    mock_cursor.close.assert_called_once()


def test_get_product_missing(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = []

    assert repo.get_product(uuid.uuid4()) is None


def test_get_movement_builds_kind_specific_entity(repo, mock_cursor) -> None:
    movement_id, product_id = uuid.uuid4(), uuid.uuid4()
    mock_cursor.fetchall.return_value = [
        {"id": str(movement_id), "product_id": str(product_id), "amount": 4, "date": datetime(2024, 3, 2)}
    ]

    movement = repo.get_movement(MovementKind.ARRIVAL, movement_id)

    assert isinstance(movement, Arrival)
    assert movement.id == movement_id
    assert movement.product_id == product_id
    assert movement.amount == 4


def test_list_products_search_uses_like(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = []

    repo.list_products(search="WiD")

    query, params = mock_cursor.execute.call_args[0]
    assert "LOWER(title) LIKE %s" in query
    assert query.endswith("ORDER BY created_at")
    assert params == ("%wid%",)


def test_exists_by_title_normalizes_and_excludes(repo, mock_cursor) -> None:
    excluded = uuid.uuid4()
    mock_cursor.fetchall.return_value = [(1,)]

    assert repo.exists_by_title("  Widget ", excluding_id=excluded) is True

    query, params = mock_cursor.execute.call_args[0]
    assert "LOWER(TRIM(title)) = %s" in query
    assert "id <> %s" in query
    assert params == ("widget", str(excluded))


def test_exists_by_title_not_found(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = []

    assert repo.exists_by_title("Widget") is False


def test_list_movements_builds_filters(repo, mock_cursor) -> None:
    product_id = uuid.uuid4()
    mock_cursor.fetchall.return_value = []

    repo.list_movements(
        MovementKind.ARRIVAL, product_id=product_id, start=datetime(2024, 3, 1), end=datetime(2024, 3, 4), limit=5
    )

    query, params = mock_cursor.execute.call_args[0]
    assert query.startswith("SELECT id, product_id, amount, date FROM inv_arrivals WHERE")
    assert "date >= %s AND date < %s" in query
    assert "ORDER BY date DESC LIMIT %s" in query
    assert params == (str(product_id), datetime(2024, 3, 1), datetime(2024, 3, 4), 5)


def test_group_sum_single_grouped_query(repo, mock_cursor) -> None:
    a, b = uuid.uuid4(), uuid.uuid4()
    mock_cursor.fetchall.return_value = [(str(a), Decimal("12"))]

    result = repo.group_sum(MovementKind.EXPENSE, [a, b])

    assert result == {a: 12}
    mock_cursor.execute.assert_called_once()
    query, params = mock_cursor.execute.call_args[0]
    assert "FROM inv_expenses" in query
    assert "GROUP BY product_id" in query
    assert "IN (%s,%s)" in query
    assert set(params) == {str(a), str(b)}


def test_group_sum_empty_ids_skips_query(repo, mock_connect, mock_cursor) -> None:
    assert repo.group_sum(MovementKind.ARRIVAL, []) == {}
    assert repo.group_last_date(MovementKind.ARRIVAL, []) == {}
    mock_connect.assert_not_called()


def test_group_last_date(repo, mock_cursor) -> None:
    a = uuid.uuid4()
    mock_cursor.fetchall.return_value = [(str(a), datetime(2024, 3, 3, 16, 45))]

    assert repo.group_last_date(MovementKind.ARRIVAL, [a]) == {a: datetime(2024, 3, 3, 16, 45)}
    assert "MAX(date)" in mock_cursor.execute.call_args[0][0]


def test_has_any_movement(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = [(1,)]

    assert repo.has_any_movement(uuid.uuid4()) is True


def test_count_products_since(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = [(7,)]

    assert repo.count_products(created_since=datetime(2024, 2, 16)) == 7
    query, params = mock_cursor.execute.call_args[0]
    assert query.endswith("WHERE created_at >= %s")
    assert params == (datetime(2024, 2, 16),)


def test_daily_totals(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = [(date(2024, 3, 1), Decimal("5")), (date(2024, 3, 2), Decimal("2"))]

    result = repo.daily_totals(MovementKind.ARRIVAL, datetime(2024, 2, 14), datetime(2024, 3, 16))

    assert result == {date(2024, 3, 1): 5, date(2024, 3, 2): 2}
    assert mock_cursor.execute.call_args[0][1] == (datetime(2024, 2, 14), datetime(2024, 3, 16))


@pytest.mark.parametrize("lock_result, expected", [(1, True), (0, False), (None, False)])
def test_acquire_uses_get_lock(repo, mock_cursor, lock_result, expected) -> None:
    mock_cursor.fetchall.return_value = [(lock_result,)]

    assert repo.acquire("stock:abc", 2.5) is expected
    assert mock_cursor.execute.call_args[0] == ("SELECT GET_LOCK(%s, %s)", ("stock:abc", 2.5))


def test_acquire_without_timeout_waits_forever(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = [(1,)]

    repo.acquire("catalog:titles", None)

    assert mock_cursor.execute.call_args[0][1] == ("catalog:titles", -1)


def test_release_uses_release_lock(repo, mock_cursor) -> None:
    mock_cursor.fetchall.return_value = [(1,)]

    repo.release("stock:abc")

    assert mock_cursor.execute.call_args[0] == ("SELECT RELEASE_LOCK(%s)", ("stock:abc",))
