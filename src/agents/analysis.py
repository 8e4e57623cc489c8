"""
Analysis Run Coordinator.

Selects unanalyzed reviews for a hotel, summarizes them, and stores one
AnalysisResult plus one AnalyzedMarker per analyzed review.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional

from src.agents.summarizer import BatchSummarizer, format_bullets
from src.errors import MissingTotalCount
from src.models.analysis import AnalysisResult, MergedSummary
from src.models.markers import AnalyzedMarker
from src.models.review import Review
from src.registry.entity_registry import Entity
from src.utils.cancellation import CancellationToken
from src.utils.storage import ReviewStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, Enum):
    SELECTING = "selecting"
    SUMMARIZING = "summarizing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def window_start(now: datetime, days: int) -> datetime:
    """Start (00:00 UTC) of the calendar day `days` days before now."""
    start_day = now.astimezone(timezone.utc).date() - timedelta(days=days)
    return datetime.combine(start_day, time.min, tzinfo=timezone.utc)


class AnalysisRunCoordinator:
    """
    Runs one analysis for one hotel, by recency window or by review count.

    Runs: SELECTING -> SUMMARIZING -> PERSISTING -> DONE, or FAILED on any
    error, which is re-raised to the caller.
    """

    def __init__(
        self,
        store: ReviewStore,
        summarizer: BatchSummarizer,
        window_limit: int = 50,
        clock: Callable[[], datetime] = _utcnow
    ):
        """
        Initialize coordinator.

        Args:
            store: Durable review store
            summarizer: Batch summarizer
            window_limit: Maximum candidates for window-based runs
            clock: Returns the current aware UTC time
        """
        self.store = store
        self.summarizer = summarizer
        self.window_limit = window_limit
        self.clock = clock
        self.state: Optional[RunState] = None

    def _transition(self, entity: Entity, state: RunState) -> None:
        self.state = state
        logger.debug(f"[{entity.name}] Analysis run -> {state.value}")

    def run_by_window(
        self,
        entity: Entity,
        days: int,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[AnalysisResult]:
        """
        Analyze unanalyzed reviews from the last `days` days (max window_limit).

        Returns:
            The stored AnalysisResult, or None when there was nothing to analyze
        """
        if days < 0:
            raise ValueError(f"days must not be negative, got {days}")

        def select() -> List[Review]:
            return self.store.query_reviews(
                entity,
                since=window_start(self.clock(), days),
                exclude_ids=self.store.get_analyzed_review_ids(),
                limit=self.window_limit
            )

        logger.info(f"[{entity.name}] Starting analysis of the last {days} days")
        return self._run(entity, select, days_analyzed=days, cancel_token=cancel_token)

    def run_by_count(
        self,
        entity: Entity,
        count: int,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[AnalysisResult]:
        """
        Analyze the `count` newest unanalyzed reviews.

        Returns:
            The stored AnalysisResult, or None when there was nothing to analyze
        """
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")

        def select() -> List[Review]:
            return self.store.query_reviews(
                entity,
                exclude_ids=self.store.get_analyzed_review_ids(),
                limit=count
            )

        logger.info(f"[{entity.name}] Starting analysis of the {count} most recent reviews")
        return self._run(entity, select, days_analyzed=0, cancel_token=cancel_token)

    def _run(
        self,
        entity: Entity,
        select: Callable[[], List[Review]],
        days_analyzed: int,
        cancel_token: Optional[CancellationToken]
    ) -> Optional[AnalysisResult]:
        cancel_token = cancel_token or CancellationToken()
        self._transition(entity, RunState.SELECTING)

        try:
            cancel_token.raise_if_cancelled("table provisioning")
            self.store.ensure_tables(entity)

            total_count = self.store.get_latest_total_count(entity)
            if total_count is None:
                raise MissingTotalCount(
                    f"Could not get total review count for {entity.name}"
                )
            logger.info(f"[{entity.name}] Total reviews reported by API: {total_count}")

            cancel_token.raise_if_cancelled("review selection")
            reviews = select()
            if not reviews:
                logger.info(f"[{entity.name}] No new reviews to analyze")
                self._transition(entity, RunState.DONE)
                return None

            logger.info(f"[{entity.name}] Analyzing {len(reviews)} reviews")

            self._transition(entity, RunState.SUMMARIZING)
            summary = self.summarizer.summarize(reviews, cancel_token=cancel_token)
            if summary.is_empty():
                logger.warning(f"[{entity.name}] No batch produced a usable summary")

            self._transition(entity, RunState.PERSISTING)
            result = self._persist(entity, reviews, summary, total_count, days_analyzed, cancel_token)

        except Exception:
            self._transition(entity, RunState.FAILED)
            raise

        self._transition(entity, RunState.DONE)
        logger.info(f"[{entity.name}] Analysis completed and stored")
        return result

    def _persist(
        self,
        entity: Entity,
        reviews: List[Review],
        summary: MergedSummary,
        total_count: int,
        days_analyzed: int,
        cancel_token: CancellationToken
    ) -> AnalysisResult:
        now = self.clock()
        result = AnalysisResult(
            analysis_date=now,
            total_reviews=total_count,
            analyzed_reviews=len(reviews),
            days_analyzed=days_analyzed,
            overall_sentiment=summary.overall_sentiment,
            positive_points=format_bullets(summary.positive_points),
            negative_points=format_bullets(summary.negative_points),
            common_themes=format_bullets(summary.common_themes),
            areas_for_improvement=format_bullets(summary.areas_for_improvement),
        )
        markers = [
            AnalyzedMarker(review_id=review.review_id, analysis_timestamp=now)
            for review in reviews
        ]

        cancel_token.raise_if_cancelled("result insert")
        self.store.append_analysis_result(entity, result)
        try:
            self.store.append_analyzed_markers(markers)
        except Exception:
            logger.error(
                f"[{entity.name}] Analysis result stored but analyzed markers were not; "
                f"these {len(markers)} reviews may be analyzed again"
            )
            raise

        return result
