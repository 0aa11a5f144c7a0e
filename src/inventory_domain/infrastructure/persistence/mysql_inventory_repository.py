# src/inventory_domain/infrastructure/persistence/mysql_inventory_repository.py
"""MySQL implementation of the Inventory repository."""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Iterable, Optional

import mysql.connector
from mysql.connector import Error, errorcode
from mysql.connector.constants import ClientFlag

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import (
    ConcurrencyConflictError,
    DatabaseError,
    DuplicateTitleError,
    HasDependentsError,
    ValidationError,
)
from src.inventory_domain.domain.entities.product import Product, normalize_title
from src.inventory_domain.domain.entities.stock_movement import MOVEMENT_TYPES, MovementKind, StockMovement
from src.inventory_domain.domain.repositories.inventory_repository import IInventoryRepository

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "inv_products"
MOVEMENT_TABLES = {
    MovementKind.ARRIVAL: "inv_arrivals",
    MovementKind.EXPENSE: "inv_expenses",
}


class MySQLInventoryRepository(IInventoryRepository):
    """
    MySQL implementation of the Inventory Repository.

    Holds a single connection, so an instance must not be shared between
    threads. Named locks use GET_LOCK/RELEASE_LOCK and are therefore shared by
    every process connected to the same server.
    """

    def __init__(self) -> None:
        """Initializes the repository."""
        self._connection = None

    def _get_connection(self):
        """Establishes or returns an active MySQL database connection."""
        if not self._connection or not self._connection.is_connected():
            try:
                self._connection = mysql.connector.connect(
                    host=settings.DB_HOST,
                    database=settings.DB_DATABASE,
                    user=settings.DB_USER,
                    password=settings.DB_PASSWORD,
                    autocommit=False,
                    charset="utf8mb4",
                    use_unicode=True,
                    # rowcount reports matched rows, not changed rows
                    client_flags=[ClientFlag.FOUND_ROWS],
                )
            except Error as e:
                raise DatabaseError(f"Failed to connect to MySQL: {e}", original_exception=e)
        return self._connection

    def create_tables(self) -> None:
        """Creates the product, arrival and expense tables with 'inv_' prefix."""
        create_products_table_query = f"""
        CREATE TABLE IF NOT EXISTS {PRODUCTS_TABLE} (
            id CHAR(36) PRIMARY KEY,
            title VARCHAR(100) COLLATE utf8mb4_0900_as_ci NOT NULL,
            created_at DATETIME NOT NULL,
            UNIQUE KEY uk_title (title), -- case-insensitive, accent-sensitive
            INDEX idx_created_at (created_at)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        movement_table_template = """
        CREATE TABLE IF NOT EXISTS {table} (
            id CHAR(36) PRIMARY KEY,
            product_id CHAR(36) NOT NULL,
            amount INT UNSIGNED NOT NULL,
            date DATETIME NOT NULL,
            INDEX idx_product_date (product_id, date),
            INDEX idx_date (date),
            CONSTRAINT fk_{table}_product FOREIGN KEY (product_id)
                REFERENCES {products} (id) ON DELETE RESTRICT,
            CONSTRAINT chk_{table}_amount CHECK (amount > 0)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
        """
        queries = [create_products_table_query] + [
            movement_table_template.format(table=table, products=PRODUCTS_TABLE) for table in MOVEMENT_TABLES.values()
        ]

        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            for query in queries:
                cursor.execute(query)
            conn.commit()
            logger.info("Inventory tables checked/created.")
        except Error as e:
            conn.rollback()
            raise DatabaseError(f"Error creating inventory tables: {e}", original_exception=e)
        finally:
            cursor.close()

    # Helpers

    def _write(self, query: str, params: tuple, context: str) -> int:
        """Executes one statement, commits it and returns the matched row count."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount
        except Error as e:
            conn.rollback()
            raise self._translate_error(e, context)
        finally:
            cursor.close()

    def _fetch_all(self, query: str, params: tuple, context: str, dictionary: bool = True) -> list:
        conn = self._get_connection()
        cursor = conn.cursor(dictionary=dictionary)
        try:
            cursor.execute(query, params)
            rows = cursor.fetchall()
            # End the read snapshot so the next read sees rows committed since
            conn.commit()
            return rows
        except Error as e:
            raise self._translate_error(e, context)
        finally:
            cursor.close()

    def _fetch_one(self, query: str, params: tuple, context: str, dictionary: bool = True) -> Optional[Any]:
        rows = self._fetch_all(query, params, context, dictionary=dictionary)
        return rows[0] if rows else None

    @staticmethod
    def _translate_error(e: Error, context: str) -> Exception:
        """Maps constraint and locking errors to domain errors; everything else is a DatabaseError."""
        errno = getattr(e, "errno", None)
        if errno == errorcode.ER_DUP_ENTRY:
            return DuplicateTitleError(context, original_exception=e)
        if errno == errorcode.ER_NO_REFERENCED_ROW_2:
            return ValidationError(f"{context}: product does not exist", field="product_id", original_exception=e)
        if errno == errorcode.ER_ROW_IS_REFERENCED_2:
            return HasDependentsError(context, original_exception=e)
        if errno in (errorcode.ER_LOCK_WAIT_TIMEOUT, errorcode.ER_LOCK_DEADLOCK):
            return ConcurrencyConflictError(f"{context}: {e}", original_exception=e)
        logger.error(f"{context}: {e}")
        return DatabaseError(f"{context}: {e}", original_exception=e)

    @staticmethod
    def _placeholders(values: list) -> str:
        return ",".join(["%s"] * len(values))

    @staticmethod
    def _row_to_product(row: dict) -> Product:
        return Product(title=row["title"], id=uuid.UUID(row["id"]), created_at=row["created_at"])

    @staticmethod
    def _row_to_movement(kind: MovementKind, row: dict) -> StockMovement:
        return MOVEMENT_TYPES[kind](
            product_id=uuid.UUID(row["product_id"]),
            amount=int(row["amount"]),
            date=row["date"],
            id=uuid.UUID(row["id"]),
        )

    # Products

    def add_product(self, product: Product) -> None:
        self._write(
            f"INSERT INTO {PRODUCTS_TABLE} (id, title, created_at) VALUES (%s, %s, %s)",
            (str(product.id), product.title, product.created_at),
            product.title,
        )

    def update_product(self, product: Product) -> None:
        matched = self._write(
            f"UPDATE {PRODUCTS_TABLE} SET title = %s WHERE id = %s",
            (product.title, str(product.id)),
            product.title,
        )
        if matched == 0:
            raise ConcurrencyConflictError(f"Product {product.id} no longer exists")

    def delete_product(self, product_id: uuid.UUID) -> None:
        self._write(f"DELETE FROM {PRODUCTS_TABLE} WHERE id = %s", (str(product_id),), str(product_id))

    def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        row = self._fetch_one(
            f"SELECT id, title, created_at FROM {PRODUCTS_TABLE} WHERE id = %s LIMIT 1",
            (str(product_id),),
            f"Error fetching product {product_id}",
        )
        return self._row_to_product(row) if row else None

    def get_products(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        ids = [str(pid) for pid in set(product_ids)]
        if not ids:
            return {}
        rows = self._fetch_all(
            f"SELECT id, title, created_at FROM {PRODUCTS_TABLE} WHERE id IN ({self._placeholders(ids)})",
            tuple(ids),
            "Error fetching products",
        )
        products = [self._row_to_product(row) for row in rows]
        return {p.id: p for p in products}

    def list_products(self, search: Optional[str] = None) -> list[Product]:
        query = f"SELECT id, title, created_at FROM {PRODUCTS_TABLE}"
        params: tuple = ()
        if search:
            query += " WHERE LOWER(title) LIKE %s"
            params = (f"%{search.lower()}%",)
        query += " ORDER BY created_at"
        rows = self._fetch_all(query, params, "Error listing products")
        return [self._row_to_product(row) for row in rows]

    def exists_by_title(self, title: str, excluding_id: Optional[uuid.UUID] = None) -> bool:
        query = f"SELECT 1 FROM {PRODUCTS_TABLE} WHERE LOWER(TRIM(title)) = %s"
        params: tuple = (normalize_title(title),)
        if excluding_id is not None:
            query += " AND id <> %s"
            params += (str(excluding_id),)
        query += " LIMIT 1"
        return self._fetch_one(query, params, f"Error checking title '{title}'", dictionary=False) is not None

    def count_products(self, created_since: Optional[datetime] = None) -> int:
        query = f"SELECT COUNT(*) FROM {PRODUCTS_TABLE}"
        params: tuple = ()
        if created_since is not None:
            query += " WHERE created_at >= %s"
            params = (created_since,)
        row = self._fetch_one(query, params, "Error counting products", dictionary=False)
        return int(row[0]) if row else 0

    # Arrivals and expenses

    def add_movement(self, movement: StockMovement) -> None:
        table = MOVEMENT_TABLES[movement.kind]
        self._write(
            f"INSERT INTO {table} (id, product_id, amount, date) VALUES (%s, %s, %s, %s)",
            (str(movement.id), str(movement.product_id), movement.amount, movement.date),
            f"Error saving {movement.kind.value} {movement.id}",
        )

    def update_movement(self, movement: StockMovement) -> None:
        table = MOVEMENT_TABLES[movement.kind]
        matched = self._write(
            f"UPDATE {table} SET product_id = %s, amount = %s, date = %s WHERE id = %s",
            (str(movement.product_id), movement.amount, movement.date, str(movement.id)),
            f"Error updating {movement.kind.value} {movement.id}",
        )
        if matched == 0:
            raise ConcurrencyConflictError(f"{movement.kind.value.capitalize()} {movement.id} no longer exists")

    def delete_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> bool:
        deleted = self._write(
            f"DELETE FROM {MOVEMENT_TABLES[kind]} WHERE id = %s",
            (str(movement_id),),
            f"Error deleting {kind.value} {movement_id}",
        )
        return deleted > 0

    def get_movement(self, kind: MovementKind, movement_id: uuid.UUID) -> Optional[StockMovement]:
        row = self._fetch_one(
            f"SELECT id, product_id, amount, date FROM {MOVEMENT_TABLES[kind]} WHERE id = %s LIMIT 1",
            (str(movement_id),),
            f"Error fetching {kind.value} {movement_id}",
        )
        return self._row_to_movement(kind, row) if row else None

    def list_movements(
        self,
        kind: MovementKind,
        product_id: Optional[uuid.UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[StockMovement]:
        conditions = []
        params: list = []
        if product_id is not None:
            conditions.append("product_id = %s")
            params.append(str(product_id))
        if start is not None:
            conditions.append("date >= %s")
            params.append(start)
        if end is not None:
            conditions.append("date < %s")
            params.append(end)

        query = f"SELECT id, product_id, amount, date FROM {MOVEMENT_TABLES[kind]}"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += f" ORDER BY date {'DESC' if newest_first else 'ASC'}"
        if limit is not None:
            query += " LIMIT %s"
            params.append(int(limit))

        rows = self._fetch_all(query, tuple(params), f"Error listing {kind.value}s")
        return [self._row_to_movement(kind, row) for row in rows]

    def group_sum(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, int]:
        ids = [str(pid) for pid in set(product_ids)]
        if not ids:
            return {}
        rows = self._fetch_all(
            f"""
            SELECT product_id, COALESCE(SUM(amount), 0)
            FROM {MOVEMENT_TABLES[kind]}
            WHERE product_id IN ({self._placeholders(ids)})
            GROUP BY product_id
            """,
            tuple(ids),
            f"Error summing {kind.value}s",
            dictionary=False,
        )
        return {uuid.UUID(row[0]): int(row[1]) for row in rows}

    def group_last_date(self, kind: MovementKind, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, datetime]:
        ids = [str(pid) for pid in set(product_ids)]
        if not ids:
            return {}
        rows = self._fetch_all(
            f"""
            SELECT product_id, MAX(date)
            FROM {MOVEMENT_TABLES[kind]}
            WHERE product_id IN ({self._placeholders(ids)})
            GROUP BY product_id
            """,
            tuple(ids),
            f"Error fetching last {kind.value} dates",
            dictionary=False,
        )
        return {uuid.UUID(row[0]): row[1] for row in rows}

    def has_any_movement(self, product_id: uuid.UUID) -> bool:
        row = self._fetch_one(
            f"""
            SELECT EXISTS(SELECT 1 FROM {MOVEMENT_TABLES[MovementKind.ARRIVAL]} WHERE product_id = %s)
                OR EXISTS(SELECT 1 FROM {MOVEMENT_TABLES[MovementKind.EXPENSE]} WHERE product_id = %s)
            """,
            (str(product_id), str(product_id)),
            f"Error checking movements of product {product_id}",
            dictionary=False,
        )
        return bool(row and row[0])

    def count_movements(self, kind: MovementKind, since: Optional[datetime] = None) -> int:
        query = f"SELECT COUNT(*) FROM {MOVEMENT_TABLES[kind]}"
        params: tuple = ()
        if since is not None:
            query += " WHERE date >= %s"
            params = (since,)
        row = self._fetch_one(query, params, f"Error counting {kind.value}s", dictionary=False)
        return int(row[0]) if row else 0

    def daily_totals(self, kind: MovementKind, start: datetime, end: datetime) -> dict[date, int]:
        rows = self._fetch_all(
            f"""
            SELECT DATE(date) AS day, SUM(amount)
            FROM {MOVEMENT_TABLES[kind]}
            WHERE date >= %s AND date < %s
            GROUP BY DATE(date)
            """,
            (start, end),
            f"Error fetching daily {kind.value} totals",
            dictionary=False,
        )
        return {row[0]: int(row[1]) for row in rows}

    # Lock backend

    def acquire(self, key: str, timeout: Optional[float]) -> bool:
        """Takes a MySQL named lock; timeout None waits indefinitely."""
        row = self._fetch_one(
            "SELECT GET_LOCK(%s, %s)",
            (key, -1 if timeout is None else timeout),
            f"Error acquiring lock '{key}'",
            dictionary=False,
        )
        return bool(row and row[0] == 1)

    def release(self, key: str) -> None:
        """Releases a named lock. MySQL ignores locks not held by this session."""
        self._fetch_one("SELECT RELEASE_LOCK(%s)", (key,), f"Error releasing lock '{key}'", dictionary=False)

    def __del__(self) -> None:
        """Closes the database connection when the object is destroyed."""
        if self._connection and self._connection.is_connected():
            self._connection.close()
