"""
Unit tests for spending analytics.
"""

import pytest
from decimal import Decimal

from receipt_insights.algorithms import AnalyticsEngine


class TestAnalyticsEngine:
    """Test cases for AnalyticsEngine."""

    @pytest.fixture
    def engine(self, temp_db):
        return AnalyticsEngine(temp_db)

    @pytest.fixture
    def test_receipts(self, add_receipt):
        # Walmart: $26.12, Contoso: $14.51, Main Street Restaurant: $29.01
        return [
            add_receipt(timestamp=1045237591000, price="26.12", store="Walmart",
                        categories={"candy", "drink"}),
            add_receipt(timestamp=1560193140000, price="14.51", store="Contoso",
                        categories={"cappuccino", "food"}),
            add_receipt(timestamp=1491582960000, price="29.01", store="Main Street Restaurant",
                        categories={"food"}),
        ]

    def test_totals_with_receipts(self, engine, test_receipts):
        analytics = engine.compute_analytics("123")

        assert analytics.store_totals == {
            "walmart": Decimal("26.12"),
            "contoso": Decimal("14.51"),
            "main street restaurant": Decimal("29.01"),
        }
        assert analytics.category_totals == {
            "candy": Decimal("26.12"),
            "drink": Decimal("26.12"),
            "cappuccino": Decimal("14.51"),
            "food": Decimal("43.52"),
        }

    def test_no_receipts(self, engine):
        analytics = engine.compute_analytics("123")

        assert analytics.store_totals == {}
        assert analytics.category_totals == {}

    def test_only_the_users_receipts_count(self, engine, test_receipts, add_receipt):
        add_receipt(user_id="456", price="100.00", store="Walmart", categories={"food"})

        analytics = engine.compute_analytics("123")

        assert analytics.store_totals["walmart"] == Decimal("26.12")
        assert analytics.category_totals["food"] == Decimal("43.52")

    def test_store_names_merge_case_insensitively(self, engine, add_receipt):
        add_receipt(price="1.10", store="Walmart")
        add_receipt(price="2.20", store="WALMART ")

        assert engine.compute_analytics("123").store_totals == {"walmart": Decimal("3.30")}

    def test_blank_store_is_skipped(self, engine, add_receipt):
        add_receipt(price="5.00", store="", categories={"food"})
        add_receipt(price="6.00", store="   ", categories={"food"})

        analytics = engine.compute_analytics("123")

        assert analytics.store_totals == {}
        assert analytics.category_totals == {"food": Decimal("11.00")}

    def test_receipt_without_categories(self, engine, add_receipt):
        add_receipt(price="5.00", store="Contoso", categories=set())

        analytics = engine.compute_analytics("123")

        assert analytics.store_totals == {"contoso": Decimal("5.00")}
        assert analytics.category_totals == {}

    def test_sums_are_exact(self, engine, add_receipt):
        for _ in range(100):
            add_receipt(price="0.10", store="Contoso", categories={"coffee"})

        analytics = engine.compute_analytics("123")

        assert analytics.store_totals["contoso"] == Decimal("10.00")
        assert str(analytics.category_totals["coffee"]) == "10.00"

    def test_aggregate_in_memory(self, engine, test_receipts):
        analytics = engine.aggregate(test_receipts[:2])

        assert analytics.store_totals == {"walmart": Decimal("26.12"), "contoso": Decimal("14.51")}
        assert analytics.category_totals["food"] == Decimal("14.51")

    def test_serialized_output(self, engine, test_receipts):
        data = engine.compute_analytics("123").model_dump(mode="json", by_alias=True)

        assert data["storeTotals"]["walmart"] == "26.12"
        assert data["categoryTotals"]["food"] == "43.52"
