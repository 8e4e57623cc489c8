"""
Pipeline Orchestrator.

Runs ingestion and analysis sweeps over the tracked hotels, one hotel at a
time, isolating per-hotel failures.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from src.agents.analysis import AnalysisRunCoordinator
from src.agents.fetcher import ReviewFetchClient
from src.agents.ingestion import IngestionAgent
from src.agents.summarizer import BatchSummarizer
from src.errors import RunCancelled
from src.registry.entity_registry import Entity
from src.utils.cancellation import CancellationToken
from src.utils.llm import GeminiSummarizationEngine
from src.utils.retry import RetryPolicy
from src.utils.storage import JsonReviewStore, ReviewStore
import config.settings as settings

logger = logging.getLogger(__name__)


@dataclass
class EntityOutcome:
    """Result of one operation for one hotel."""
    entity_name: str
    operation: str
    success: bool
    new_reviews: Optional[int] = None
    analyzed_reviews: Optional[int] = None
    error: Optional[str] = None

    def status_line(self) -> str:
        if not self.success:
            return f"[{self.entity_name}] {self.operation} failed: {self.error}"
        details = []
        if self.new_reviews is not None:
            details.append(f"{self.new_reviews} new reviews")
        if self.analyzed_reviews is not None:
            details.append(f"{self.analyzed_reviews} reviews analyzed")
        suffix = f" ({', '.join(details)})" if details else ""
        return f"[{self.entity_name}] {self.operation} succeeded{suffix}"


@dataclass
class SweepReport:
    """Per-hotel outcomes of one sweep."""
    outcomes: List[EntityOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failures(self) -> List[EntityOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def total_new_reviews(self) -> int:
        return sum(o.new_reviews or 0 for o in self.outcomes if o.success)

    def summary(self) -> str:
        succeeded = len(self.outcomes) - len(self.failures)
        text = (
            f"{succeeded}/{len(self.outcomes)} operations succeeded, "
            f"{self.total_new_reviews} new reviews"
        )
        if self.cancelled:
            text += " (sweep cancelled)"
        return text


class PipelineOrchestrator:
    """
    Coordinates sweeps across hotels.

    Hotels are processed strictly sequentially since the review API and the
    summarization engine are shared, rate-limited resources. Each hotel runs
    under the store's per-hotel lock.
    """

    def __init__(
        self,
        store: ReviewStore,
        ingestion_agent: IngestionAgent,
        analysis_coordinator: Optional[AnalysisRunCoordinator] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            store: Durable review store
            ingestion_agent: Dedup & ingestion engine
            analysis_coordinator: Analysis run coordinator (needed for analysis sweeps)
            cancel_token: Shared token that stops the sweep
        """
        self.store = store
        self.ingestion_agent = ingestion_agent
        self.analysis_coordinator = analysis_coordinator
        self.cancel_token = cancel_token or CancellationToken()

    @classmethod
    def from_settings(
        cls,
        api_key: Optional[str] = None,
        data_root: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> "PipelineOrchestrator":
        """
        Build all components from config/settings.py.

        The analysis coordinator is only built when an API key is given.
        """
        logger.info("Initializing pipeline components...")

        store = JsonReviewStore(data_root or str(settings.DATA_ROOT))

        fetch_client = ReviewFetchClient(
            base_url=settings.REVIEW_API_BASE_URL,
            locale=settings.REVIEW_API_LOCALE,
            page_size=settings.REVIEW_API_PAGE_SIZE,
            max_offset=settings.REVIEW_API_MAX_OFFSET,
            retry_policy=RetryPolicy(
                max_retries=settings.REVIEW_API_MAX_RETRIES,
                initial_delay=settings.REVIEW_API_INITIAL_RETRY_DELAY
            ),
            page_delay=settings.REVIEW_API_PAGE_DELAY,
            timeout_seconds=settings.REVIEW_API_TIMEOUT_SECONDS
        )
        ingestion_agent = IngestionAgent(fetch_client=fetch_client, store=store)

        analysis_coordinator = None
        if api_key:
            engine = GeminiSummarizationEngine(
                api_key=api_key,
                model_name=settings.SUMMARY_MODEL
            )
            summarizer = BatchSummarizer(
                engine=engine,
                chunk_size=settings.SUMMARY_CHUNK_SIZE,
                chunk_delay=settings.SUMMARY_CHUNK_DELAY,
                temperature=settings.SUMMARY_TEMPERATURE,
                language=settings.SUMMARY_LANGUAGE,
                rating_scale=settings.RATING_SCALE,
                retry_policy=RetryPolicy(
                    max_retries=settings.SUMMARY_MAX_RETRIES,
                    initial_delay=settings.SUMMARY_RETRY_DELAY
                )
            )
            analysis_coordinator = AnalysisRunCoordinator(
                store=store,
                summarizer=summarizer,
                window_limit=settings.WINDOW_CANDIDATE_LIMIT
            )

        logger.info("Pipeline initialized successfully")
        return cls(
            store=store,
            ingestion_agent=ingestion_agent,
            analysis_coordinator=analysis_coordinator,
            cancel_token=cancel_token
        )

    def _require_coordinator(self) -> AnalysisRunCoordinator:
        if self.analysis_coordinator is None:
            raise RuntimeError("Analysis requires a summarization engine (set GOOGLE_API_KEY)")
        return self.analysis_coordinator

    def _sweep(
        self,
        entities: List[Entity],
        operation: str,
        process: Callable[[Entity, EntityOutcome], None]
    ) -> SweepReport:
        report = SweepReport()

        for entity in entities:
            logger.info(f"Processing hotel: {entity.name}")
            outcome = EntityOutcome(entity_name=entity.name, operation=operation, success=False)
            report.outcomes.append(outcome)

            try:
                self.cancel_token.raise_if_cancelled(f"{operation} of {entity.name}")
                with self.store.lock(entity):
                    process(entity, outcome)
                outcome.success = True
            except RunCancelled as e:
                outcome.error = str(e)
                report.cancelled = True
                logger.warning(f"[{entity.name}] {operation} cancelled, stopping sweep")
                break
            except Exception as e:
                outcome.error = str(e)
                logger.error(f"[{entity.name}] {operation} failed: {e}", exc_info=True)
                continue

            logger.info(outcome.status_line())

        logger.info(f"Sweep '{operation}' finished: {report.summary()}")
        return report

    def run_ingestion(self, entities: List[Entity]) -> SweepReport:
        """Ingest new reviews for every hotel."""
        def process(entity: Entity, outcome: EntityOutcome) -> None:
            outcome.new_reviews = self.ingestion_agent.ingest(entity, cancel_token=self.cancel_token)

        return self._sweep(entities, "ingestion", process)

    def run_analysis(
        self,
        entities: List[Entity],
        days: Optional[int] = None,
        count: Optional[int] = None
    ) -> SweepReport:
        """
        Run one analysis per hotel.

        Uses a day window when days is given, otherwise the `count` most
        recent unanalyzed reviews (default settings.DEFAULT_REVIEW_COUNT).
        """
        coordinator = self._require_coordinator()
        if days is None and count is None:
            count = settings.DEFAULT_REVIEW_COUNT

        def process(entity: Entity, outcome: EntityOutcome) -> None:
            if days is not None:
                result = coordinator.run_by_window(entity, days, cancel_token=self.cancel_token)
            else:
                result = coordinator.run_by_count(entity, count, cancel_token=self.cancel_token)
            outcome.analyzed_reviews = result.analyzed_reviews if result else 0

        return self._sweep(entities, "analysis", process)

    def run_daily_update(self, entities: List[Entity], today: date) -> SweepReport:
        """
        Ingest every hotel; on the configured day of month also run a
        window analysis over the default window.
        """
        run_analysis = today.day == settings.MONTHLY_ANALYSIS_DAY
        coordinator = self._require_coordinator() if run_analysis else None
        logger.info(f"Daily update for {today.isoformat()} (monthly analysis: {run_analysis})")

        def process(entity: Entity, outcome: EntityOutcome) -> None:
            outcome.new_reviews = self.ingestion_agent.ingest(entity, cancel_token=self.cancel_token)
            if coordinator is not None:
                result = coordinator.run_by_window(
                    entity,
                    settings.DEFAULT_WINDOW_DAYS,
                    cancel_token=self.cancel_token
                )
                outcome.analyzed_reviews = result.analyzed_reviews if result else 0

        return self._sweep(entities, "daily update", process)

    def setup_tables(self, entities: List[Entity]) -> SweepReport:
        """Provision store tables for every hotel (idempotent)."""
        return self._sweep(
            entities,
            "setup",
            lambda entity, outcome: self.store.ensure_tables(entity)
        )
