"""
Ingestion Agent.

Fetches new reviews for a hotel, drops known and invalid ones, and stores
the rest together with the API-reported total.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Set

from src.agents.fetcher import ReviewFetchClient
from src.errors import StoreReadError
from src.models.markers import TotalCountMarker
from src.models.review import Review
from src.registry.entity_registry import Entity
from src.utils.cancellation import CancellationToken
from src.utils.storage import ReviewStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def filter_new_reviews(items: Iterable[dict], existing_ids: Set[str]) -> List[Review]:
    """
    Convert raw API items into new, valid reviews.

    Invalid items are dropped, as are ids already stored or repeated
    within items. Order of first appearance is kept.
    """
    reviews = []
    seen: Set[str] = set()
    for item in items:
        review = Review.from_api_payload(item)
        if review is None:
            continue
        if review.review_id in existing_ids or review.review_id in seen:
            continue
        seen.add(review.review_id)
        reviews.append(review)
    return reviews


class IngestionAgent:
    """
    Dedup & ingestion for one hotel at a time.

    The store is the source of truth for dedup; the existing-id check here
    is what keeps review_id unique.
    """

    def __init__(
        self,
        fetch_client: ReviewFetchClient,
        store: ReviewStore,
        clock: Callable[[], datetime] = _utcnow
    ):
        """
        Initialize ingestion agent.

        Args:
            fetch_client: Paginated review API client
            store: Durable review store
            clock: Returns the current aware UTC time
        """
        self.fetch_client = fetch_client
        self.store = store
        self.clock = clock

    def _load_existing_ids(self, entity: Entity) -> Optional[Set[str]]:
        """Existing ids, or None when the store could not be read."""
        try:
            return self.store.get_existing_review_ids(entity)
        except StoreReadError as e:
            logger.warning(
                f"[{entity.name}] Error fetching existing review IDs, "
                f"continuing with empty set: {e}"
            )
            return None

    def _load_latest_entry_date(self, entity: Entity) -> Optional[datetime]:
        try:
            return self.store.get_latest_entry_date(entity)
        except StoreReadError as e:
            logger.warning(f"[{entity.name}] Could not read latest entry date: {e}")
            return None

    def ingest(
        self,
        entity: Entity,
        cancel_token: Optional[CancellationToken] = None
    ) -> int:
        """
        Ingest new reviews for a hotel.

        The total-count marker is written before the insert so a failed
        insert keeps the count baseline. When the first existing-id read
        failed, the ids are read again right before the insert; if that
        read fails too, nothing is inserted.

        Args:
            entity: Hotel to ingest
            cancel_token: Checked before network calls and store writes

        Returns:
            Number of reviews inserted

        Raises:
            StoreReadError: If existing ids cannot be read before the insert
            StoreWriteError: If the batch insert fails
        """
        cancel_token = cancel_token or CancellationToken()

        existing_ids = self._load_existing_ids(entity)
        latest_entry_date = self._load_latest_entry_date(entity)
        logger.info(
            f"[{entity.name}] Latest review date in store: "
            f"{latest_entry_date.isoformat() if latest_entry_date else 'None'}"
        )

        result = self.fetch_client.fetch_all(
            entity,
            known_latest=latest_entry_date,
            existing_ids=existing_ids if existing_ids is not None else set(),
            cancel_token=cancel_token
        )
        logger.info(
            f"[{entity.name}] Fetch stopped ({result.stop_reason.value}) after "
            f"{result.pages_fetched} pages with {len(result.new_items)} candidate reviews"
        )

        if result.reported_total is not None:
            cancel_token.raise_if_cancelled("total count insert")
            self.store.append_total_count(
                TotalCountMarker(
                    entity_id=entity.id,
                    entity_name=entity.name,
                    total_reviews=result.reported_total,
                    last_updated=self.clock()
                )
            )
        else:
            logger.warning(f"[{entity.name}] API did not report a total, no marker written")

        if existing_ids is None and result.new_items:
            logger.info(f"[{entity.name}] Re-reading existing review IDs before insert")
            existing_ids = self.store.get_existing_review_ids(entity)

        new_reviews = filter_new_reviews(result.new_items, existing_ids or set())
        dropped = len(result.new_items) - len(new_reviews)
        if dropped:
            logger.info(f"[{entity.name}] Dropped {dropped} invalid or duplicate reviews")

        if not new_reviews:
            logger.info(f"[{entity.name}] No new reviews found to insert.")
            return 0

        cancel_token.raise_if_cancelled("review insert")
        return self.store.insert_reviews(entity, new_reviews)
