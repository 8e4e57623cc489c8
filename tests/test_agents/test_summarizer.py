"""
Unit tests for the Batch Summarizer.

The summarization engine is a Mock; no LLM calls are made.
"""

import pytest
import json
from unittest.mock import Mock

from src.agents.summarizer import (
    BatchSummarizer,
    build_review_prompt,
    chunk_reviews,
    format_bullets,
    merge_summaries,
    parse_chunk_response,
)
from src.errors import MalformedSummaryResponse, SummarizationError
from src.models.analysis import MergedSummary
from src.models.review import Review
from src.utils.retry import RetryPolicy


def make_reviews(n):
    return [
        Review(review_id=str(i), title=f"Title {i}", general_text=f"Text {i}", rating_general=5)
        for i in range(n)
    ]


def response(**fields):
    return json.dumps(fields)


def make_summarizer(responses, sleep=None, **kwargs):
    engine = Mock()
    engine.complete.side_effect = responses
    summarizer = BatchSummarizer(
        engine=engine,
        chunk_size=10,
        chunk_delay=60.0,
        sleep=sleep or Mock(),
        **kwargs
    )
    return summarizer, engine


def test_chunk_reviews_sizes():
    chunks = chunk_reviews(make_reviews(25), 10)
    assert [len(c) for c in chunks] == [10, 10, 5]
    assert chunk_reviews([], 10) == []


def test_build_review_prompt_lists_each_review():
    prompt = build_review_prompt(make_reviews(2), rating_scale=6)

    assert "Rating: 5/6" in prompt
    assert "Title: Title 0" in prompt
    assert "Comment: Text 1" in prompt


def test_parse_strips_code_fences():
    text = '```json\n{"overall_sentiment": "good", "positive_points": ["pool"]}\n```'

    summary = parse_chunk_response(text)

    assert summary.overall_sentiment == "good"
    assert summary.positive_points == ["pool"]
    assert summary.negative_points == []


def test_parse_coerces_missing_and_invalid_list_fields():
    text = response(
        overall_sentiment="mixed",
        positive_points="not a list",
        negative_points=["noise", 3, None],
        common_themes=None
    )

    summary = parse_chunk_response(text)

    assert summary.positive_points == []
    assert summary.negative_points == ["noise"]
    assert summary.common_themes == []
    assert summary.areas_for_improvement == []


def test_parse_rejects_non_object():
    with pytest.raises(MalformedSummaryResponse):
        parse_chunk_response("[1, 2, 3]")

    with pytest.raises(MalformedSummaryResponse):
        parse_chunk_response("Sorry, I cannot help with that.")


def test_merge_preserves_first_seen_order():
    """["clean rooms"] + ["clean rooms", "friendly staff"] -> 2 entries."""
    a = MergedSummary(overall_sentiment="A", positive_points=["clean rooms"])
    b = MergedSummary(overall_sentiment="B", positive_points=["clean rooms", "friendly staff"])

    merged = merge_summaries(merge_summaries(MergedSummary(), a), b)

    assert merged.positive_points == ["clean rooms", "friendly staff"]
    assert merged.overall_sentiment == "B"


def test_merge_is_case_sensitive_and_pure():
    a = MergedSummary(common_themes=["Breakfast"])
    b = MergedSummary(common_themes=["breakfast"])

    merged = merge_summaries(a, b)

    assert merged.common_themes == ["Breakfast", "breakfast"]
    assert a.common_themes == ["Breakfast"]


def test_summarize_merges_chunks_in_order():
    summarizer, engine = make_summarizer([
        response(overall_sentiment="first", positive_points=["clean rooms"]),
        response(overall_sentiment="second", positive_points=["clean rooms", "friendly staff"],
                 negative_points=["parking"]),
    ])

    merged = summarizer.summarize(make_reviews(15))

    assert engine.complete.call_count == 2
    assert merged.overall_sentiment == "second"
    assert merged.positive_points == ["clean rooms", "friendly staff"]
    assert merged.negative_points == ["parking"]


def test_malformed_chunk_is_skipped():
    summarizer, engine = make_summarizer([
        response(overall_sentiment="first", positive_points=["spa"]),
        "this is not json",
        response(overall_sentiment="third", negative_points=["wifi"]),
    ])

    merged = summarizer.summarize(make_reviews(30))

    assert engine.complete.call_count == 3
    assert merged.overall_sentiment == "third"
    assert merged.positive_points == ["spa"]
    assert merged.negative_points == ["wifi"]


def test_pacing_delay_between_chunks_only():
    sleep = Mock()
    summarizer, _ = make_summarizer(
        [response(overall_sentiment="x")] * 3,
        sleep=sleep
    )

    summarizer.summarize(make_reviews(25))

    assert [c.args[0] for c in sleep.call_args_list] == [60.0, 60.0]


def test_single_chunk_has_no_delay():
    sleep = Mock()
    summarizer, _ = make_summarizer([response(overall_sentiment="x")], sleep=sleep)

    summarizer.summarize(make_reviews(3))

    sleep.assert_not_called()


def test_engine_error_is_retried_then_propagates():
    summarizer, engine = make_summarizer(
        [SummarizationError("timeout")] * 3,
        retry_policy=RetryPolicy(max_retries=2, initial_delay=1.0)
    )

    with pytest.raises(SummarizationError):
        summarizer.summarize(make_reviews(5))
    assert engine.complete.call_count == 3


def test_engine_called_with_prompts_and_temperature():
    summarizer, engine = make_summarizer(
        [response(overall_sentiment="x")],
        temperature=0.3,
        language="English"
    )

    summarizer.summarize(make_reviews(1))

    args, kwargs = engine.complete.call_args
    assert "English" in args[0]
    assert "Title: Title 0" in args[1]
    assert kwargs["temperature"] == 0.3


def test_format_bullets():
    assert format_bullets(["a", "b"]) == "• a\n• b"
    assert format_bullets([]) == ""


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
