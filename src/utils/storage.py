"""
Storage utility.

Durable store interface used by ingestion and analysis, plus a JSON Lines
implementation rooted at a data directory.
"""

import json
import os
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Set

from src.errors import EntityLockedError, StoreReadError, StoreWriteError
from src.models.analysis import AnalysisResult
from src.models.markers import AnalyzedMarker, TotalCountMarker
from src.models.review import Review
from src.registry.entity_registry import Entity

logger = logging.getLogger(__name__)


TOTALS_TABLE = "ReviewTotals"
ANALYZED_IDS_TABLE = "AnalyzedReviewIDs"


class ReviewStore(ABC):
    """
    Durable store capabilities the pipeline depends on.

    Reads raise StoreReadError, writes raise StoreWriteError.
    """

    @abstractmethod
    def ensure_tables(self, entity: Entity) -> None:
        """Idempotently provision review, analysis and marker tables."""

    @abstractmethod
    def get_existing_review_ids(self, entity: Entity) -> Set[str]:
        """All review ids stored for the hotel."""

    @abstractmethod
    def get_latest_entry_date(self, entity: Entity) -> Optional[datetime]:
        """Newest stored entry date for the hotel, or None."""

    @abstractmethod
    def insert_reviews(self, entity: Entity, reviews: List[Review]) -> int:
        """Insert reviews in one batch. Returns number of rows written."""

    @abstractmethod
    def query_reviews(
        self,
        entity: Entity,
        since: Optional[datetime] = None,
        exclude_ids: Optional[Set[str]] = None,
        limit: Optional[int] = None
    ) -> List[Review]:
        """Reviews ordered newest-first by entry date."""

    @abstractmethod
    def append_total_count(self, marker: TotalCountMarker) -> None:
        pass

    @abstractmethod
    def get_latest_total_count(self, entity: Entity) -> Optional[int]:
        pass

    @abstractmethod
    def get_analyzed_review_ids(self) -> Set[str]:
        pass

    @abstractmethod
    def append_analysis_result(self, entity: Entity, result: AnalysisResult) -> None:
        pass

    @abstractmethod
    def append_analyzed_markers(self, markers: List[AnalyzedMarker]) -> None:
        pass

    @abstractmethod
    def load_analysis_results(self, entity: Entity) -> List[AnalysisResult]:
        pass

    @abstractmethod
    def lock(self, entity: Entity):
        """Context manager holding an exclusive per-hotel lease."""


class JsonReviewStore(ReviewStore):
    """
    ReviewStore backed by append-only JSON Lines files.

    Layout under data_root:
    - reviews/<table_id>.jsonl
    - totals/ReviewTotals.jsonl
    - analysis/<table_id>_analysis.jsonl
    - analysis/AnalyzedReviewIDs.jsonl
    - locks/<table_id>.lock
    """

    def __init__(self, data_root: str):
        """
        Initialize store.

        Args:
            data_root: Root data directory (e.g., /path/to/data)
        """
        self.data_root = str(data_root)
        self.reviews_dir = os.path.join(self.data_root, "reviews")
        self.totals_dir = os.path.join(self.data_root, "totals")
        self.analysis_dir = os.path.join(self.data_root, "analysis")
        self.locks_dir = os.path.join(self.data_root, "locks")

        logger.info(f"Initialized JsonReviewStore with data_root={self.data_root}")

    # Paths

    def _reviews_path(self, entity: Entity) -> str:
        return os.path.join(self.reviews_dir, f"{entity.table_id}.jsonl")

    def _totals_path(self) -> str:
        return os.path.join(self.totals_dir, f"{TOTALS_TABLE}.jsonl")

    def _analysis_path(self, entity: Entity) -> str:
        return os.path.join(self.analysis_dir, f"{entity.analysis_table_id}.jsonl")

    def _analyzed_ids_path(self) -> str:
        return os.path.join(self.analysis_dir, f"{ANALYZED_IDS_TABLE}.jsonl")

    def _lock_path(self, entity: Entity) -> str:
        return os.path.join(self.locks_dir, f"{entity.table_id}.lock")

    # Low-level I/O

    def _read_rows(self, path: str) -> List[dict]:
        if not os.path.exists(path):
            return []

        try:
            rows = []
            with open(path, "r", encoding="utf-8") as f:
                for line_number, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    rows.append(json.loads(line))
            return rows
        except json.JSONDecodeError as e:
            raise StoreReadError(f"Corrupt row {line_number} in {path}: {e}") from e
        except OSError as e:
            raise StoreReadError(f"Failed to read {path}: {e}") from e

    def _append_rows(self, path: str, rows: Iterable[dict]) -> int:
        lines = [json.dumps(row, ensure_ascii=False) + "\n" for row in rows]
        if not lines:
            return 0

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            # Single write so a batch becomes visible as a whole
            with open(path, "a", encoding="utf-8") as f:
                f.write("".join(lines))
            return len(lines)
        except OSError as e:
            raise StoreWriteError(f"Failed to write {path}: {e}") from e

    # Provisioning

    def ensure_tables(self, entity: Entity) -> None:
        paths = [
            self._reviews_path(entity),
            self._totals_path(),
            self._analysis_path(entity),
            self._analyzed_ids_path(),
        ]
        try:
            for path in paths:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                if not os.path.exists(path):
                    open(path, "a", encoding="utf-8").close()
                    logger.info(f"[{entity.name}] Created table {path}")
        except OSError as e:
            raise StoreWriteError(f"Failed to provision tables for {entity.name}: {e}") from e

    # Reviews

    def _load_reviews(self, entity: Entity) -> List[Review]:
        return [Review.from_dict(row) for row in self._read_rows(self._reviews_path(entity))]

    def get_existing_review_ids(self, entity: Entity) -> Set[str]:
        ids = {
            str(row["review_id"])
            for row in self._read_rows(self._reviews_path(entity))
            if row.get("review_id") is not None
        }
        logger.info(f"[{entity.name}] Fetched {len(ids)} existing review IDs")
        return ids

    def get_latest_entry_date(self, entity: Entity) -> Optional[datetime]:
        dates = [r.entry_date for r in self._load_reviews(entity) if r.entry_date]
        return max(dates) if dates else None

    def insert_reviews(self, entity: Entity, reviews: List[Review]) -> int:
        written = self._append_rows(
            self._reviews_path(entity),
            (review.to_dict() for review in reviews)
        )
        logger.info(f"[{entity.name}] Inserted {written} reviews")
        return written

    def query_reviews(
        self,
        entity: Entity,
        since: Optional[datetime] = None,
        exclude_ids: Optional[Set[str]] = None,
        limit: Optional[int] = None
    ) -> List[Review]:
        exclude_ids = exclude_ids or set()
        reviews = [
            r for r in self._load_reviews(entity)
            if r.review_id not in exclude_ids
            and (since is None or (r.entry_date is not None and r.entry_date >= since))
        ]
        # Newest first; reviews without entry date sort last
        reviews.sort(
            key=lambda r: (r.entry_date is not None, r.entry_date or datetime.min),
            reverse=True
        )
        if limit is not None:
            reviews = reviews[:limit]
        return reviews

    # Totals

    def append_total_count(self, marker: TotalCountMarker) -> None:
        self._append_rows(self._totals_path(), [marker.to_dict()])
        logger.info(
            f"[{marker.entity_name}] Added total review count: {marker.total_reviews}"
        )

    def get_latest_total_count(self, entity: Entity) -> Optional[int]:
        markers = [
            TotalCountMarker.from_dict(row)
            for row in self._read_rows(self._totals_path())
            if row.get("hotel_id") == entity.id
        ]
        if not markers:
            return None
        return max(markers, key=lambda m: m.last_updated).total_reviews

    # Analysis

    def get_analyzed_review_ids(self) -> Set[str]:
        return {
            str(row["review_id"])
            for row in self._read_rows(self._analyzed_ids_path())
        }

    def append_analysis_result(self, entity: Entity, result: AnalysisResult) -> None:
        self._append_rows(self._analysis_path(entity), [result.to_dict()])

    def append_analyzed_markers(self, markers: List[AnalyzedMarker]) -> None:
        written = self._append_rows(
            self._analyzed_ids_path(),
            (marker.to_dict() for marker in markers)
        )
        logger.info(f"Stored {written} analyzed review IDs")

    def load_analysis_results(self, entity: Entity) -> List[AnalysisResult]:
        return [
            AnalysisResult.from_dict(row)
            for row in self._read_rows(self._analysis_path(entity))
        ]

    # Locking

    @contextmanager
    def lock(self, entity: Entity) -> Iterator[None]:
        path = self._lock_path(entity)
        try:
            os.makedirs(self.locks_dir, exist_ok=True)
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise EntityLockedError(
                f"{entity.name} is locked by another run ({path})"
            ) from e
        except OSError as e:
            raise StoreWriteError(f"Failed to create lock {path}: {e}") from e

        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
            os.close(fd)
            yield
        finally:
            try:
                os.remove(path)
            except OSError as e:
                logger.error(f"[{entity.name}] Failed to release lock {path}: {e}")
