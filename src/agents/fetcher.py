"""
Paginated Fetch Client.

Walks the review API newest-first, page by page, until the local store is
caught up, the API is exhausted, or the offset ceiling is reached.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Set

import httpx

from src.errors import RateLimited, UpstreamError
from src.models.review import parse_timestamp
from src.registry.entity_registry import Entity
from src.utils.cancellation import CancellationToken
from src.utils.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)


REVIEW_FIELDS = (
    "id,title,texts,ratings,travelDate,entryDate,user,"
    "travelReason,traveledWith,children"
)


class StopReason(str, Enum):
    EXHAUSTED = "exhausted"  # Empty page
    CAUGHT_UP = "caught_up"  # Whole page older than the newest stored review
    MAX_OFFSET = "max_offset"  # Hard pagination ceiling
    RATE_LIMITED = "rate_limited"  # Retries exhausted
    UPSTREAM_ERROR = "upstream_error"


@dataclass
class ReviewPage:
    """One page of raw review items plus the API-reported total."""
    items: List[dict]
    total: Optional[int]


@dataclass
class FetchResult:
    """Outcome of a paginated walk. new_items are raw, unvalidated payloads."""
    new_items: List[dict] = field(default_factory=list)
    reported_total: Optional[int] = None
    pages_fetched: int = 0
    stop_reason: Optional[StopReason] = None


def _item_id(item) -> Optional[str]:
    if isinstance(item, dict) and item.get("id") is not None:
        return str(item["id"])
    return None


def _page_is_known(items: List[dict], known_latest: datetime) -> bool:
    """True when every item's entry date is at or before known_latest."""
    for item in items:
        entry_date = parse_timestamp(item.get("entryDate")) if isinstance(item, dict) else None
        if entry_date is None or entry_date > known_latest:
            return False
    return True


class ReviewFetchClient:
    """
    Fetches hotel reviews from the review API.

    Pages are requested sequentially; a page that answers HTTP 429 is
    retried at the same offset with exponential backoff.
    """

    def __init__(
        self,
        base_url: str,
        locale: str = "de",
        page_size: int = 50,
        max_offset: int = 1000,
        retry_policy: Optional[RetryPolicy] = None,
        page_delay: float = 1.0,
        timeout_seconds: float = 30,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize fetch client.

        Args:
            base_url: Review API base URL (without /hotelreview)
            locale: Review locale
            page_size: Items per request
            max_offset: Offset ceiling for a single walk
            retry_policy: Backoff for rate-limited pages
            page_delay: Seconds slept between successful pages
            timeout_seconds: HTTP timeout
            http_client: Pre-built httpx client (tests pass a MockTransport)
            sleep: Sleep function, injectable for tests
        """
        self.base_url = base_url.rstrip("/")
        self.locale = locale
        self.page_size = page_size
        self.max_offset = max_offset
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_delay = page_delay
        self.sleep = sleep
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=timeout_seconds)

        logger.info(
            f"Initialized ReviewFetchClient: page_size={page_size}, "
            f"max_offset={max_offset}, max_retries={self.retry_policy.max_retries}"
        )

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def __enter__(self) -> "ReviewFetchClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def fetch_page(
        self,
        entity: Entity,
        offset: int,
        page_size: Optional[int] = None
    ) -> ReviewPage:
        """
        Fetch one page of reviews for a hotel.

        Raises:
            RateLimited: On HTTP 429
            UpstreamError: On any other failure
        """
        params = {
            "select": REVIEW_FIELDS,
            "filter": f"hotel.id:{entity.id}",
            "sort": "entryDate:desc",
            "limit": page_size or self.page_size,
            "offset": offset,
            "locale": self.locale,
        }
        headers = {"Partner-ID": entity.partner_id}

        try:
            response = self.http_client.get(
                f"{self.base_url}/hotelreview",
                params=params,
                headers=headers
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request failed at offset {offset}: {e}") from e

        if response.status_code == 429:
            raise RateLimited(f"Rate limit exceeded at offset {offset}")
        if not response.is_success:
            raise UpstreamError(
                f"HTTP {response.status_code} at offset {offset}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON at offset {offset}: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected response body at offset {offset}")

        items = data.get("items") or []
        if not isinstance(items, list):
            raise UpstreamError(f"'items' is not a list at offset {offset}")

        total = data.get("total")
        try:
            total = int(total) if total is not None else None
        except (TypeError, ValueError):
            logger.warning(f"[{entity.name}] Ignoring non-numeric total: {total!r}")
            total = None

        return ReviewPage(items=items, total=total)

    def fetch_all(
        self,
        entity: Entity,
        known_latest: Optional[datetime],
        existing_ids: Set[str],
        cancel_token: Optional[CancellationToken] = None
    ) -> FetchResult:
        """
        Walk the API from offset 0 and collect reviews not yet stored.

        Args:
            entity: Hotel to fetch
            known_latest: Newest entry date already stored (None if empty)
            existing_ids: Review ids already stored
            cancel_token: Checked before each request and sleep

        Returns:
            FetchResult with new raw items, the offset-0 total and why the
            walk stopped. Partial results are kept on rate limiting or
            upstream errors.
        """
        cancel_token = cancel_token or CancellationToken()
        result = FetchResult()
        seen: Set[str] = set()
        offset = 0

        while True:
            if offset >= self.max_offset:
                logger.info(f"[{entity.name}] Reached max offset {self.max_offset}. Stopping fetch.")
                result.stop_reason = StopReason.MAX_OFFSET
                break

            try:
                page = retry_call(
                    self.fetch_page,
                    entity,
                    offset,
                    policy=self.retry_policy,
                    retry_on=(RateLimited,),
                    cancel_token=cancel_token,
                    sleep=self.sleep,
                    label=f"[{entity.name}] fetch offset {offset}"
                )
            except RateLimited:
                logger.error(f"[{entity.name}] Rate limit retries exhausted at offset {offset}. Stopping fetch.")
                result.stop_reason = StopReason.RATE_LIMITED
                break
            except UpstreamError as e:
                logger.error(f"[{entity.name}] Error fetching reviews: {e}. Stopping fetch.")
                result.stop_reason = StopReason.UPSTREAM_ERROR
                break

            result.pages_fetched += 1
            if offset == 0:
                result.reported_total = page.total

            if not page.items:
                logger.info(f"[{entity.name}] No more reviews available from API.")
                result.stop_reason = StopReason.EXHAUSTED
                break

            if known_latest is not None and _page_is_known(page.items, known_latest):
                logger.info(
                    f"[{entity.name}] All reviews in batch are older than latest stored review. "
                    f"Stopping fetch."
                )
                result.stop_reason = StopReason.CAUGHT_UP
                break

            new_count = 0
            for item in page.items:
                review_id = _item_id(item)
                if review_id is not None:
                    if review_id in existing_ids or review_id in seen:
                        continue
                    seen.add(review_id)
                result.new_items.append(item)
                new_count += 1

            logger.info(
                f"[{entity.name}] Fetched {len(page.items)} reviews, {new_count} are new. "
                f"Total: {len(result.new_items)}"
            )

            offset += self.page_size
            if offset < self.max_offset:
                cancel_token.sleep(self.page_delay, sleep=self.sleep)

        return result
