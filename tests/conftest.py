"""
Shared pytest fixtures: a temporary SQLite record store and a receipt factory.
"""

import os
import tempfile
from decimal import Decimal

import pytest

from receipt_insights.database import DatabaseManager
from receipt_insights.models import ReceiptCreate


@pytest.fixture
def temp_db():
    """Create temporary database for testing."""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
    temp_file.close()

    db_manager = DatabaseManager(temp_file.name)
    db_manager.initialize_database()

    yield db_manager

    os.unlink(temp_file.name)


@pytest.fixture
def add_receipt(temp_db):
    """Insert a receipt and return it as stored."""
    def _add(user_id="123", timestamp=1560193140000, price="10.00", store="",
             categories=(), raw_text="", label=None, image_ref="/serve-image?blob-key=test"):
        receipt_id = temp_db.add_receipt(ReceiptCreate(
            user_id=user_id,
            timestamp=timestamp,
            image_ref=image_ref,
            price=Decimal(price),
            store=store,
            categories=categories,
            raw_text=raw_text,
            label=label,
        ))
        return temp_db.get_receipt(receipt_id)
    return _add
