"""
Database operations for receipt records.
Handles SQLite database initialization, record creation and the two read
patterns used by search and analytics.
"""

import base64
import binascii
import json
import sqlite3
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional, Tuple

from .models import Receipt, ReceiptCreate, SearchCriteria

logger = logging.getLogger(__name__)

# Largest value an SQLite INTEGER column can hold
SQLITE_MAX_INTEGER = 2 ** 63 - 1


class StorageUnavailable(Exception):
    """Raised when the record store cannot be read or written."""


def encode_page_token(receipt: Receipt) -> str:
    """Build an opaque cursor pointing just after ``receipt`` in search order."""
    raw = f"{receipt.timestamp}:{receipt.id}".encode("ascii")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_page_token(token: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return ``(timestamp, id)`` for a cursor, or None if it is missing or malformed."""
    if not token:
        return None
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("ascii")
        timestamp, receipt_id = (int(part) for part in raw.split(":"))
        if not (0 < timestamp <= SQLITE_MAX_INTEGER and 0 < receipt_id <= SQLITE_MAX_INTEGER):
            raise ValueError("cursor position out of range")
        return timestamp, receipt_id
    except (UnicodeError, binascii.Error, ValueError) as e:
        logger.warning(f"Ignoring malformed page token {token!r}: {e}")
        return None


class DatabaseManager:
    """Manages all database operations for receipt records."""

    def __init__(self, db_path: str = "receipts.db"):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.logger = logger

    @contextmanager
    def get_connection(self):
        """Context manager for database connections with automatic cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error(f"Database error: {str(e)}")
            raise StorageUnavailable(f"Receipt store unavailable: {e}") from e
        finally:
            if conn:
                conn.close()

    def initialize_database(self) -> None:
        """Initialize database with schema and indexes."""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS receipts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    timestamp INTEGER NOT NULL CHECK (timestamp > 0),
                    image_ref TEXT NOT NULL,
                    price TEXT NOT NULL,
                    store TEXT NOT NULL DEFAULT '',
                    store_key TEXT NOT NULL DEFAULT '',
                    categories TEXT NOT NULL DEFAULT '[]',
                    raw_text TEXT NOT NULL DEFAULT '',
                    label TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Search order is (timestamp DESC, id ASC) within one user
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_timestamp ON receipts(user_id, timestamp DESC, id)"
            )
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_user_store ON receipts(user_id, store_key)")

            conn.commit()
            self.logger.info("Database initialized successfully")

    def add_receipt(self, receipt: ReceiptCreate) -> int:
        """Add a new receipt to the database.

        Args:
            receipt: Receipt data to add

        Returns:
            ID of the newly created receipt

        Raises:
            StorageUnavailable: If the insert fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO receipts (
                        user_id, timestamp, image_ref, price, store, store_key,
                        categories, raw_text, label
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    receipt.user_id,
                    receipt.timestamp,
                    receipt.image_ref,
                    str(receipt.price),
                    receipt.store,
                    receipt.store_key,
                    json.dumps(sorted(receipt.categories)),
                    receipt.raw_text,
                    receipt.label,
                ))

                receipt_id = cursor.lastrowid
                conn.commit()

                self.logger.info(f"Added receipt with ID: {receipt_id}")
                return receipt_id

        except StorageUnavailable:
            self.logger.error(f"Failed to add receipt for user {receipt.user_id}")
            raise

    def get_receipt(self, receipt_id: int) -> Optional[Receipt]:
        """Get a receipt by ID, or None if it does not exist."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM receipts WHERE id = ?", (receipt_id,))
            row = cursor.fetchone()
            return self._row_to_receipt(row) if row else None

    def get_user_receipts(self, user_id: str) -> List[Receipt]:
        """Get every receipt owned by a user. No ordering is promised."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM receipts WHERE user_id = ?", (user_id,))
            return [self._row_to_receipt(row) for row in cursor.fetchall()]

    def query_receipts(
        self,
        user_id: str,
        criteria: SearchCriteria,
        page_token: Optional[str] = None,
        page_size: int = 10,
    ) -> Tuple[List[Receipt], Optional[str]]:
        """Fetch one page of a user's receipts, newest first.

        Only the date interval and store predicates are evaluated here; price
        bounds and categories are left to the caller.

        Args:
            user_id: Owner of the receipts
            criteria: Normalized search criteria
            page_token: Cursor returned by a previous call, or None to start over
            page_size: Maximum number of receipts to return

        Returns:
            Tuple of (receipts, next page token or None when exhausted)
        """
        conditions = ["user_id = ?"]
        params: list = [user_id]

        if criteria.start_timestamp is not None:
            conditions.append("timestamp >= ?")
            params.append(criteria.start_timestamp)

        if criteria.end_timestamp is not None:
            conditions.append("timestamp < ?")
            params.append(criteria.end_timestamp)

        if criteria.store is not None:
            conditions.append("store_key = ?")
            params.append(criteria.store)

        cursor_position = decode_page_token(page_token)
        if cursor_position is not None:
            timestamp, receipt_id = cursor_position
            conditions.append("(timestamp < ? OR (timestamp = ? AND id > ?))")
            params.extend([timestamp, timestamp, receipt_id])

        query = (
            "SELECT * FROM receipts WHERE " + " AND ".join(conditions)
            + " ORDER BY timestamp DESC, id ASC LIMIT ?"
        )
        # One extra row tells whether another page exists
        params.append(page_size + 1)

        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params)
                rows = cursor.fetchall()
        except StorageUnavailable:
            self.logger.error(f"Failed to query receipts for user {user_id}")
            raise

        receipts = [self._row_to_receipt(row) for row in rows[:page_size]]
        next_token = encode_page_token(receipts[-1]) if len(rows) > page_size else None
        return receipts, next_token

    def _row_to_receipt(self, row: sqlite3.Row) -> Receipt:
        """Convert database row to Receipt object."""
        return Receipt(
            id=row["id"],
            user_id=row["user_id"],
            timestamp=row["timestamp"],
            image_ref=row["image_ref"],
            price=Decimal(row["price"]),
            store=row["store"],
            categories=json.loads(row["categories"]),
            raw_text=row["raw_text"],
            label=row["label"],
        )
