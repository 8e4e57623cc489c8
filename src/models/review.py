"""
Review data model.

Represents a hotel review ingested from the review API.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


CHILDREN_MAPPING = {
    "NO": 0,
    "ONE": 1,
    "TWO": 2,
    "THREE": 3,
    "FOUR": 4,
    "MORE": 5,
}


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts datetimes, strings with a trailing 'Z' or an offset, and naive
    strings (treated as UTC). Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage (None passes through)."""
    return value.isoformat() if value else None


def parse_children(value) -> int:
    """Map the API's children enum to a count. Unknown values map to 0."""
    if not isinstance(value, str):
        return 0
    return CHILDREN_MAPPING.get(value, 0)


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _as_rating(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _as_optional_str(value) -> Optional[str]:
    return value if isinstance(value, str) else None


@dataclass
class Review:
    """
    A single hotel review.
    review_id is the API identifier as a string and the dedup key.
    """
    review_id: str
    title: str
    general_text: str = ""
    rating_general: Optional[int] = None  # 1-6 scale, may be missing
    travel_date: Optional[datetime] = None
    entry_date: Optional[datetime] = None
    user_id: str = ""
    travel_reason: Optional[str] = None
    traveled_with: Optional[str] = None
    children: int = 0

    @staticmethod
    def is_valid_payload(payload) -> bool:
        """An API item needs an id, a title and a user id."""
        if not isinstance(payload, dict):
            return False
        user = payload.get("user")
        return bool(
            payload.get("id")
            and payload.get("title")
            and isinstance(user, dict)
            and user.get("id")
        )

    @classmethod
    def from_api_payload(cls, payload: dict) -> Optional["Review"]:
        """
        Build a Review from a review API item.

        Returns None (and logs) for invalid items. Optional fields with an
        unexpected shape fall back to their defaults.
        """
        if not cls.is_valid_payload(payload):
            logger.warning(f"Dropping invalid review payload: {payload!r}")
            return None

        texts = _as_dict(payload.get("texts"))
        ratings = _as_dict(payload.get("ratings"))
        general_rating = _as_rating(_as_dict(ratings.get("GENERAL")).get("GENERAL"))
        general_text = texts.get("GENERAL")

        return cls(
            review_id=str(payload["id"]),
            title=str(payload["title"]),
            general_text=general_text if isinstance(general_text, str) else "",
            rating_general=general_rating,
            travel_date=parse_timestamp(payload.get("travelDate")),
            entry_date=parse_timestamp(payload.get("entryDate")),
            user_id=str(payload["user"]["id"]),
            travel_reason=_as_optional_str(payload.get("travelReason")),
            traveled_with=_as_optional_str(payload.get("traveledWith")),
            children=parse_children(payload.get("children")),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Review":
        """Create Review from a stored row."""
        return cls(
            review_id=str(data["review_id"]),
            title=data.get("title", ""),
            general_text=data.get("general_text", ""),
            rating_general=data.get("rating_general"),
            travel_date=parse_timestamp(data.get("travel_date")),
            entry_date=parse_timestamp(data.get("entry_date")),
            user_id=data.get("user_id", ""),
            travel_reason=data.get("travel_reason"),
            traveled_with=data.get("traveled_with"),
            children=data.get("children", 0),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable row."""
        return {
            "review_id": self.review_id,
            "title": self.title,
            "general_text": self.general_text,
            "rating_general": self.rating_general,
            "travel_date": format_timestamp(self.travel_date),
            "entry_date": format_timestamp(self.entry_date),
            "user_id": self.user_id,
            "travel_reason": self.travel_reason,
            "traveled_with": self.traveled_with,
            "children": self.children,
        }
