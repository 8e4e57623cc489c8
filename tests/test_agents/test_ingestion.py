"""
Unit tests for the Ingestion Agent.

Uses a real JsonReviewStore in a temp directory and a mocked fetch client.
"""

import pytest
import httpx
from datetime import datetime, timezone
from unittest.mock import Mock, MagicMock

from src.agents.fetcher import FetchResult, ReviewFetchClient, StopReason
from src.agents.ingestion import IngestionAgent, filter_new_reviews
from src.errors import StoreReadError, StoreWriteError
from src.registry.entity_registry import Entity
from src.utils.retry import RetryPolicy
from src.utils.storage import JsonReviewStore


ENTITY = Entity(id="hotel-1", name="Testhof", partner_id="1798", table_id="Testhof")
NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def make_item(review_id, entry_date="2024-06-10T10:00:00Z", **overrides):
    item = {
        "id": review_id,
        "title": f"Review {review_id}",
        "texts": {"GENERAL": "Nice stay"},
        "ratings": {"GENERAL": {"GENERAL": 5}},
        "entryDate": entry_date,
        "travelDate": "2024-06-01T00:00:00Z",
        "user": {"id": 99},
        "children": "TWO",
    }
    item.update(overrides)
    return item


@pytest.fixture
def store(tmp_path):
    return JsonReviewStore(str(tmp_path))


def fetch_result(items, total=10):
    return FetchResult(
        new_items=items,
        reported_total=total,
        pages_fetched=2,
        stop_reason=StopReason.EXHAUSTED
    )


def test_filter_new_reviews_dedup_and_validity():
    items = [
        make_item(5),
        make_item(6),
        make_item(7),
        make_item(8),
        make_item(9, title=""),  # invalid: no title
        make_item(10, user={}),  # invalid: no user id
        {"title": "no id", "user": {"id": 1}},  # invalid: no id
    ]

    reviews = filter_new_reviews(items, existing_ids={"5", "7"})

    assert [r.review_id for r in reviews] == ["6", "8"]


def test_filter_new_reviews_converts_payload():
    reviews = filter_new_reviews([make_item(123)], existing_ids=set())

    review = reviews[0]
    assert review.review_id == "123"
    assert review.user_id == "99"
    assert review.rating_general == 5
    assert review.general_text == "Nice stay"
    assert review.children == 2
    assert review.entry_date == datetime(2024, 6, 10, 10, 0, tzinfo=timezone.utc)


def test_ingest_persists_new_reviews_and_total(store):
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([make_item(1), make_item(2)], total=17)
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    inserted = agent.ingest(ENTITY)

    assert inserted == 2
    assert store.get_existing_review_ids(ENTITY) == {"1", "2"}
    assert store.get_latest_total_count(ENTITY) == 17


def test_ingest_passes_stop_inputs_to_fetcher(store):
    store.insert_reviews(ENTITY, filter_new_reviews(
        [make_item(1, "2024-06-01T00:00:00Z"), make_item(2, "2024-06-03T00:00:00Z")],
        existing_ids=set()
    ))
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([])
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    agent.ingest(ENTITY)

    kwargs = fetch_client.fetch_all.call_args.kwargs
    assert kwargs["existing_ids"] == {"1", "2"}
    assert kwargs["known_latest"] == datetime(2024, 6, 3, tzinfo=timezone.utc)


def test_ingest_invalid_reviews_not_counted(store):
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([make_item(1), make_item(2, title=None)])
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    assert agent.ingest(ENTITY) == 1
    assert store.get_existing_review_ids(ENTITY) == {"1"}


def test_ingest_twice_against_unchanged_upstream_is_idempotent(store):
    """Second run over the same upstream inserts nothing."""
    items = [
        make_item(3, "2024-06-12T00:00:00Z"),
        make_item(2, "2024-06-11T00:00:00Z"),
        make_item(1, "2024-06-10T00:00:00Z"),
    ]

    def handler(request):
        offset = int(request.url.params["offset"])
        page = items if offset == 0 else []
        return httpx.Response(200, json={"items": page, "total": 3})

    client = ReviewFetchClient(
        base_url="https://api.example.com/v3",
        page_size=3,
        retry_policy=RetryPolicy(max_retries=0),
        page_delay=0,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=Mock()
    )
    agent = IngestionAgent(client, store, clock=lambda: NOW)

    assert agent.ingest(ENTITY) == 3
    assert agent.ingest(ENTITY) == 0
    assert len(store.query_reviews(ENTITY)) == 3


class FlakyIdStore(JsonReviewStore):
    """JsonReviewStore whose first `failures` existing-id reads fail."""

    def __init__(self, data_root, failures=1):
        super().__init__(data_root)
        self.failures = failures

    def get_existing_review_ids(self, entity):
        if self.failures > 0:
            self.failures -= 1
            raise StoreReadError("transient")
        return super().get_existing_review_ids(entity)


def test_existing_id_read_error_does_not_store_duplicates(tmp_path):
    store = FlakyIdStore(str(tmp_path), failures=1)
    store.insert_reviews(ENTITY, filter_new_reviews([make_item(1)], existing_ids=set()))
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([make_item(1), make_item(2)])
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    assert agent.ingest(ENTITY) == 1
    assert fetch_client.fetch_all.call_args.kwargs["existing_ids"] == set()
    stored_ids = [r.review_id for r in store.query_reviews(ENTITY)]
    assert sorted(stored_ids) == ["1", "2"]


def test_second_existing_id_read_failure_inserts_nothing(tmp_path):
    store = FlakyIdStore(str(tmp_path), failures=2)
    store.insert_reviews(ENTITY, filter_new_reviews([make_item(1)], existing_ids=set()))
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([make_item(1), make_item(2)], total=12)
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    with pytest.raises(StoreReadError):
        agent.ingest(ENTITY)

    assert [r.review_id for r in store.query_reviews(ENTITY)] == ["1"]
    assert store.get_latest_total_count(ENTITY) == 12


def test_write_failure_propagates_and_keeps_total():
    store = MagicMock()
    store.get_existing_review_ids.return_value = set()
    store.get_latest_entry_date.return_value = None
    store.insert_reviews.side_effect = StoreWriteError("disk full")
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = fetch_result([make_item(1)], total=10)
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    with pytest.raises(StoreWriteError):
        agent.ingest(ENTITY)
    store.append_total_count.assert_called_once()
    assert store.append_total_count.call_args.args[0].total_reviews == 10


@pytest.mark.parametrize("overrides", [
    {"texts": "plain"},
    {"texts": ["GENERAL"]},
    {"ratings": {"GENERAL": 5}},
    {"ratings": "5"},
    {"ratings": {"GENERAL": {"GENERAL": "five"}}},
    {"children": ["TWO"]},
    {"children": {"n": 2}},
    {"entryDate": ["2024-06-10"]},
    {"travelReason": {"x": 1}},
])
def test_oddly_shaped_item_falls_back_to_defaults(overrides):
    reviews = filter_new_reviews([make_item(1, **overrides), make_item(2)], existing_ids=set())

    assert [r.review_id for r in reviews] == ["1", "2"]
    review = reviews[0]
    assert isinstance(review.general_text, str)
    assert review.rating_general in (None, 5)
    assert review.children in (0, 2)


def test_no_total_marker_when_first_page_failed(store):
    fetch_client = Mock()
    fetch_client.fetch_all.return_value = FetchResult(stop_reason=StopReason.UPSTREAM_ERROR)
    agent = IngestionAgent(fetch_client, store, clock=lambda: NOW)

    assert agent.ingest(ENTITY) == 0
    assert store.get_latest_total_count(ENTITY) is None


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
