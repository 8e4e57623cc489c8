"""
Exception hierarchy for HotelPulse.

Retryable vs. fatal is decided by the caller: RateLimited is retried by the
fetch client, MalformedSummaryResponse is skipped per chunk, and everything
else propagates to the sweep, which logs it against the hotel.
"""


class HotelPulseError(Exception):
    """Base class for all pipeline errors."""


class RateLimited(HotelPulseError):
    """Review API answered HTTP 429."""


class UpstreamError(HotelPulseError):
    """Review API failed with a non-retryable response."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(HotelPulseError):
    """Durable store failure."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class EntityLockedError(StoreError):
    """Another process is already working on this hotel."""


class MissingTotalCount(HotelPulseError):
    """No total-count marker exists for the hotel."""


class MalformedSummaryResponse(HotelPulseError):
    """Summarization engine returned something that is not a JSON object."""


class SummarizationError(HotelPulseError):
    """Summarization engine call failed."""


class RunCancelled(HotelPulseError):
    """Cancellation token fired or the deadline passed."""
