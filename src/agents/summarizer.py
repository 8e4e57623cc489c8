"""
Batch Summarizer.

Sends reviews to the summarization engine in fixed-size chunks and folds
the structured partial results into one MergedSummary.
"""

import json
import logging
import re
import time
from typing import Callable, List, Optional, Sequence

from src.errors import MalformedSummaryResponse, SummarizationError
from src.models.analysis import LIST_FIELDS, MergedSummary
from src.models.review import Review
from src.utils.cancellation import CancellationToken
from src.utils.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)


SYSTEM_PROMPT_TEMPLATE = """You are an expert in hotel reviews. Analyze the following reviews and write a summary in {language}.

Respond with a single JSON object in exactly this format (no Markdown formatting):
{{
  "overall_sentiment": "Overall impression of the reviews",
  "positive_points": ["Positive point 1", "Positive point 2", ...],
  "negative_points": ["Negative point 1", "Negative point 2", ...],
  "common_themes": ["Main theme 1", "Main theme 2", ...],
  "areas_for_improvement": ["Area for improvement 1", "Area for improvement 2", ...]
}}"""

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)


def build_system_prompt(language: str = "German") -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(language=language)


def build_review_prompt(chunk: Sequence[Review], rating_scale: int = 6) -> str:
    """Render one chunk of reviews as the user prompt."""
    blocks = []
    for review in chunk:
        rating = review.rating_general if review.rating_general is not None else "n/a"
        blocks.append(
            f"Rating: {rating}/{rating_scale}\n"
            f"Title: {review.title}\n"
            f"Comment: {review.general_text}\n"
        )
    return "Analyze these hotel reviews:\n\n" + "\n".join(blocks)


def chunk_reviews(reviews: Sequence[Review], chunk_size: int) -> List[List[Review]]:
    """Split reviews into consecutive chunks of at most chunk_size."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [list(reviews[i:i + chunk_size]) for i in range(0, len(reviews), chunk_size)]


def _coerce_string_list(value) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def parse_chunk_response(response_text: str) -> MergedSummary:
    """
    Parse one engine response into a MergedSummary.

    Code fences around the JSON are stripped. Missing or non-list list
    fields become empty lists.

    Raises:
        MalformedSummaryResponse: If the text is not a JSON object
    """
    cleaned = CODE_FENCE_PATTERN.sub("", response_text or "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedSummaryResponse(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedSummaryResponse(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    sentiment = data.get("overall_sentiment")
    return MergedSummary(
        overall_sentiment=sentiment if isinstance(sentiment, str) else "",
        **{name: _coerce_string_list(data.get(name)) for name in LIST_FIELDS}
    )


def _union(first: List[str], second: List[str]) -> List[str]:
    return list(dict.fromkeys(first + second))


def merge_summaries(accumulator: MergedSummary, chunk: MergedSummary) -> MergedSummary:
    """
    Fold one chunk result into the accumulator.

    Sentiment is last-write-wins; list fields are an order-preserving,
    case-sensitive union.
    """
    return MergedSummary(
        overall_sentiment=chunk.overall_sentiment,
        **{
            name: _union(getattr(accumulator, name), getattr(chunk, name))
            for name in LIST_FIELDS
        }
    )


def format_bullets(items: Sequence[str]) -> str:
    """Render list items as a bulleted multi-line string."""
    return "\n".join(f"• {item}" for item in items)


class BatchSummarizer:
    """
    Summarizes reviews chunk by chunk.

    Chunks are processed strictly in sequence with a fixed pause between
    engine calls; at most one call is in flight.
    """

    def __init__(
        self,
        engine,
        chunk_size: int = 10,
        chunk_delay: float = 60.0,
        temperature: float = 0.7,
        language: str = "German",
        rating_scale: int = 6,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize batch summarizer.

        Args:
            engine: Object with complete(system_prompt, user_prompt, temperature) -> str
            chunk_size: Reviews per engine call
            chunk_delay: Seconds between engine calls
            temperature: Sampling temperature passed to the engine
            language: Language the summary is written in
            rating_scale: Upper bound of the review rating scale
            retry_policy: Retries for failed engine calls
            sleep: Sleep function, injectable for tests
        """
        self.engine = engine
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.temperature = temperature
        self.rating_scale = rating_scale
        self.system_prompt = build_system_prompt(language)
        self.retry_policy = retry_policy or RetryPolicy(max_retries=0)
        self.sleep = sleep

    def summarize_chunk(
        self,
        chunk: Sequence[Review],
        cancel_token: Optional[CancellationToken] = None
    ) -> MergedSummary:
        """
        Summarize one chunk.

        Raises:
            MalformedSummaryResponse: If the response cannot be used
            SummarizationError: If the engine keeps failing
        """
        response_text = retry_call(
            self.engine.complete,
            self.system_prompt,
            build_review_prompt(chunk, self.rating_scale),
            policy=self.retry_policy,
            retry_on=(SummarizationError,),
            cancel_token=cancel_token,
            sleep=self.sleep,
            label="summarization request",
            temperature=self.temperature
        )
        try:
            return parse_chunk_response(response_text)
        except MalformedSummaryResponse:
            logger.debug(f"Raw response: {response_text!r}")
            raise

    def summarize(
        self,
        reviews: Sequence[Review],
        cancel_token: Optional[CancellationToken] = None
    ) -> MergedSummary:
        """
        Summarize all reviews into one merged result.

        A chunk with a malformed response is skipped; the run continues.
        """
        cancel_token = cancel_token or CancellationToken()
        chunks = chunk_reviews(reviews, self.chunk_size)
        merged = MergedSummary()

        for i, chunk in enumerate(chunks):
            logger.info(f"Processing batch {i + 1}/{len(chunks)} ({len(chunk)} reviews)")

            try:
                merged = merge_summaries(merged, self.summarize_chunk(chunk, cancel_token))
            except MalformedSummaryResponse as e:
                logger.error(f"Skipping batch {i + 1}/{len(chunks)}: {e}")

            if i < len(chunks) - 1:
                cancel_token.sleep(self.chunk_delay, sleep=self.sleep)

        return merged
