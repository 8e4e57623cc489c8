"""
Marker data models.

Append-only fact rows: reported review totals and analyzed review ids.
"""

from dataclasses import dataclass
from datetime import datetime

from src.models.review import parse_timestamp, format_timestamp


@dataclass(frozen=True)
class TotalCountMarker:
    """
    Total review count reported by the API at fetch time.
    The newest marker per hotel is authoritative; values may go down.
    """
    entity_id: str
    entity_name: str
    total_reviews: int
    last_updated: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "TotalCountMarker":
        return cls(
            entity_id=data["hotel_id"],
            entity_name=data.get("hotel_name", ""),
            total_reviews=int(data["total_reviews"]),
            last_updated=parse_timestamp(data["last_updated"]),
        )

    def to_dict(self) -> dict:
        return {
            "hotel_id": self.entity_id,
            "hotel_name": self.entity_name,
            "total_reviews": self.total_reviews,
            "last_updated": format_timestamp(self.last_updated),
        }


@dataclass(frozen=True)
class AnalyzedMarker:
    """A review that has been included in a completed analysis run."""
    review_id: str
    analysis_timestamp: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzedMarker":
        return cls(
            review_id=str(data["review_id"]),
            analysis_timestamp=parse_timestamp(data["analysis_timestamp"]),
        )

    def to_dict(self) -> dict:
        return {
            "review_id": self.review_id,
            "analysis_timestamp": format_timestamp(self.analysis_timestamp),
        }
