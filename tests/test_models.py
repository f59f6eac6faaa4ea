"""
Unit tests for Pydantic models.
Tests validation, normalization and serialized field names.
"""

import pytest
from decimal import Decimal
from pydantic import ValidationError

from receipt_insights.models import (
    Receipt, ReceiptCreate, ReceiptFields, SearchCriteria, SpendingAnalytics
)


def make_receipt(**overrides):
    data = dict(
        id=1,
        user_id="123",
        timestamp=1560193140000,
        image_ref="/serve-image?blob-key=abc",
        price=Decimal("14.51"),
        store="Contoso",
        categories={"cappuccino", "food"},
        raw_text="CONTOSO\nTOTAL 14.51",
        label="Lunch",
    )
    data.update(overrides)
    return Receipt(**data)


class TestReceiptModel:
    """Test cases for the Receipt model."""

    def test_valid_receipt_creation(self):
        receipt = make_receipt()

        assert receipt.id == 1
        assert receipt.user_id == "123"
        assert receipt.price == Decimal("14.51")
        assert receipt.categories == frozenset({"cappuccino", "food"})
        assert receipt.store_key == "contoso"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            make_receipt(price=Decimal("-0.01"))
        assert "Price cannot be negative" in str(exc_info.value)

    def test_zero_price_allowed(self):
        assert make_receipt(price=Decimal("0")).price == Decimal("0")

    def test_timestamp_must_be_positive(self):
        with pytest.raises(ValidationError) as exc_info:
            make_receipt(timestamp=0)
        assert "Timestamp must be positive" in str(exc_info.value)

    def test_categories_are_stripped_and_deduplicated(self):
        receipt = make_receipt(categories=["food", " food ", "", "Food", "  "])
        assert receipt.categories == frozenset({"food", "Food"})

    def test_store_is_trimmed_but_case_preserved(self):
        receipt = make_receipt(store="  Main Street Restaurant ")
        assert receipt.store == "Main Street Restaurant"
        assert receipt.store_key == "main street restaurant"

    def test_empty_store_allowed(self):
        assert make_receipt(store="").store_key == ""

    def test_long_store_name_allowed(self):
        name = "Main Street Restaurant " * 20
        assert make_receipt(store=name).store == name.strip()

    def test_receipt_is_immutable(self):
        receipt = make_receipt()
        with pytest.raises(ValidationError):
            receipt.price = Decimal("1.00")

    def test_serialized_field_names(self):
        data = make_receipt().model_dump(by_alias=True)
        assert set(data) == {
            "id", "userId", "timestamp", "imageRef", "price", "store",
            "categories", "rawText", "label",
        }

    def test_accepts_camel_case_input(self):
        receipt = ReceiptCreate(
            userId="123", timestamp=1, imageRef="img", price="5.89", rawText="text"
        )
        assert receipt.user_id == "123"
        assert receipt.image_ref == "img"
        assert receipt.raw_text == "text"


class TestReceiptFields:
    """Test cases for ReceiptFields."""

    def test_defaults(self):
        fields = ReceiptFields()
        assert fields.price == Decimal("0")
        assert fields.store == ""
        assert fields.categories == frozenset()

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            ReceiptFields(price=Decimal("-1"))


class TestSearchCriteria:
    """Test cases for SearchCriteria.matches."""

    def test_empty_criteria_match_everything(self):
        assert SearchCriteria().matches(make_receipt())

    def test_date_interval_is_half_open(self):
        criteria = SearchCriteria(start_timestamp=1000, end_timestamp=2000)
        assert criteria.matches(make_receipt(timestamp=1000))
        assert criteria.matches(make_receipt(timestamp=1999))
        assert not criteria.matches(make_receipt(timestamp=2000))
        assert not criteria.matches(make_receipt(timestamp=999))

    def test_price_bounds_are_inclusive(self):
        criteria = SearchCriteria(min_price=Decimal("14.51"), max_price=Decimal("20"))
        assert criteria.matches(make_receipt(price=Decimal("14.51")))
        assert criteria.matches(make_receipt(price=Decimal("20.00")))
        assert not criteria.matches(make_receipt(price=Decimal("14.50")))
        assert not criteria.matches(make_receipt(price=Decimal("20.01")))

    def test_store_matches_case_insensitively(self):
        criteria = SearchCriteria(store="contoso")
        assert criteria.matches(make_receipt(store="CONTOSO"))
        assert not criteria.matches(make_receipt(store="Contoso Cafe"))

    def test_categories_must_all_be_present(self):
        criteria = SearchCriteria(categories={"food", "cappuccino"})
        assert criteria.matches(make_receipt(categories={"food", "cappuccino", "lunch"}))
        assert not criteria.matches(make_receipt(categories={"food"}))

    def test_starts_over(self):
        assert SearchCriteria().starts_over
        assert not SearchCriteria(page_token="abc").starts_over
        assert SearchCriteria(page_token="abc", is_new_search=True).starts_over
        assert SearchCriteria(page_token="abc", is_page_load=True).starts_over


class TestSpendingAnalytics:
    """Test cases for SpendingAnalytics serialization."""

    def test_serialized_field_names(self):
        analytics = SpendingAnalytics(store_totals={"contoso": Decimal("14.51")})
        data = analytics.model_dump(by_alias=True)
        assert data == {"storeTotals": {"contoso": Decimal("14.51")}, "categoryTotals": {}}
