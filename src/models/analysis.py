"""
Analysis data models.

MergedSummary is the in-memory accumulator of the batch summarizer;
AnalysisResult is the persisted, display-formatted row of one run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from src.models.review import parse_timestamp, format_timestamp


LIST_FIELDS = (
    "positive_points",
    "negative_points",
    "common_themes",
    "areas_for_improvement",
)


@dataclass(frozen=True)
class MergedSummary:
    """
    Structured summary of one or more review chunks.
    List fields are duplicate-free and keep first-seen order.
    """
    overall_sentiment: str = ""
    positive_points: List[str] = field(default_factory=list)
    negative_points: List[str] = field(default_factory=list)
    common_themes: List[str] = field(default_factory=list)
    areas_for_improvement: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.overall_sentiment and not any(
            getattr(self, name) for name in LIST_FIELDS
        )


@dataclass(frozen=True)
class AnalysisResult:
    """One completed analysis run for a hotel."""
    analysis_date: datetime
    total_reviews: int
    analyzed_reviews: int
    days_analyzed: int  # 0 for count-based runs
    overall_sentiment: str
    positive_points: str
    negative_points: str
    common_themes: str
    areas_for_improvement: str

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        return cls(
            analysis_date=parse_timestamp(data["analysis_date"]),
            total_reviews=int(data["total_reviews"]),
            analyzed_reviews=int(data["analyzed_reviews"]),
            days_analyzed=int(data.get("days_analyzed", 0)),
            overall_sentiment=data.get("overall_sentiment", ""),
            positive_points=data.get("positive_points", ""),
            negative_points=data.get("negative_points", ""),
            common_themes=data.get("common_themes", ""),
            areas_for_improvement=data.get("areas_for_improvement", ""),
        )

    def to_dict(self) -> dict:
        return {
            "analysis_date": format_timestamp(self.analysis_date),
            "total_reviews": self.total_reviews,
            "analyzed_reviews": self.analyzed_reviews,
            "days_analyzed": self.days_analyzed,
            "overall_sentiment": self.overall_sentiment,
            "positive_points": self.positive_points,
            "negative_points": self.negative_points,
            "common_themes": self.common_themes,
            "areas_for_improvement": self.areas_for_improvement,
        }
