"""
Search and analytics algorithms for receipt records.
Implements filtered, paginated search and spending aggregation by store and category.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

from .config import settings
from .criteria import parse_search_criteria
from .database import DatabaseManager, StorageUnavailable, encode_page_token
from .models import Receipt, SearchCriteria, SearchPage, SpendingAnalytics

logger = logging.getLogger(__name__)


class SearchEngine:
    """Filtered, paginated search over a user's receipts."""

    def __init__(self, db_manager: DatabaseManager, page_size: Optional[int] = None):
        """Initialize search engine.

        Args:
            db_manager: Database manager instance
            page_size: Receipts per page, defaults to the configured page size
        """
        self.db_manager = db_manager
        self.page_size = page_size or settings.SEARCH_PAGE_SIZE
        if self.page_size < 1:
            raise ValueError("Page size must be at least 1")
        self.logger = logger

    def search(
        self, user_id: str, raw_params: Mapping[str, Any], now: Optional[datetime] = None
    ) -> SearchPage:
        """Search a user's receipts with raw request parameters.

        Args:
            user_id: Owner of the receipts
            raw_params: Unvalidated parameters (see ``parse_search_criteria``)
            now: Reference time for relative date ranges

        Returns:
            SearchPage with up to ``page_size`` receipts, newest first
        """
        criteria = parse_search_criteria(raw_params, now=now)
        return self.run_search(user_id, criteria)

    def run_search(self, user_id: str, criteria: SearchCriteria) -> SearchPage:
        """Execute normalized criteria against the store.

        The store evaluates the date and store predicates; price bounds and
        categories are checked here, pulling further store pages until the
        page is full or the collection is exhausted.
        """
        token = None if criteria.starts_over else criteria.page_token
        page: List[Receipt] = []

        try:
            while True:
                batch, store_token = self.db_manager.query_receipts(
                    user_id, criteria, token, self.page_size
                )
                for index, receipt in enumerate(batch):
                    if not criteria.matches(receipt):
                        continue
                    page.append(receipt)
                    if len(page) == self.page_size:
                        has_more = self._has_more(user_id, criteria, batch[index + 1:], store_token)
                        return self._page(user_id, page, has_more)

                if store_token is None:
                    return self._page(user_id, page, False)
                token = store_token

        except StorageUnavailable as e:
            self.logger.error(f"Search failed for user {user_id}: {str(e)}")
            raise

    def _has_more(
        self,
        user_id: str,
        criteria: SearchCriteria,
        remaining: List[Receipt],
        store_token: Optional[str],
    ) -> bool:
        """Whether any record after a full page still matches the criteria."""
        while True:
            if any(criteria.matches(r) for r in remaining):
                return True
            if store_token is None:
                return False
            remaining, store_token = self.db_manager.query_receipts(
                user_id, criteria, store_token, self.page_size
            )

    def _page(self, user_id: str, receipts: List[Receipt], has_more: bool) -> SearchPage:
        next_token = encode_page_token(receipts[-1]) if has_more and receipts else None
        self.logger.info(
            f"Search for user {user_id} returned {len(receipts)} receipts"
            f"{' (more available)' if next_token else ''}"
        )
        return SearchPage(receipts=receipts, next_page_token=next_token)


class AnalyticsEngine:
    """Spending aggregation over a user's receipts."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize analytics engine.

        Args:
            db_manager: Database manager instance
        """
        self.db_manager = db_manager
        self.logger = logger

    def compute_analytics(self, user_id: str) -> SpendingAnalytics:
        """Total spending per store and per category for one user.

        An empty collection yields two empty mappings.
        """
        try:
            receipts = self.db_manager.get_user_receipts(user_id)
        except StorageUnavailable as e:
            self.logger.error(f"Analytics failed for user {user_id}: {str(e)}")
            raise

        analytics = self.aggregate(receipts)
        self.logger.info(
            f"Computed analytics for user {user_id} over {len(receipts)} receipts: "
            f"{len(analytics.store_totals)} stores, {len(analytics.category_totals)} categories"
        )
        return analytics

    def aggregate(self, receipts: Iterable[Receipt]) -> SpendingAnalytics:
        """Sum receipt prices by store and by category.

        Stores are keyed lower-cased and blank stores are skipped. Categories
        are tags rather than a partition, so a receipt adds its full price to
        every one of its categories.
        """
        store_totals = defaultdict(Decimal)
        category_totals = defaultdict(Decimal)

        for receipt in receipts:
            if receipt.store_key:
                store_totals[receipt.store_key] += receipt.price
            for category in receipt.categories:
                category_totals[category] += receipt.price

        return SpendingAnalytics(
            store_totals=dict(store_totals),
            category_totals=dict(category_totals),
        )
