"""
Configuration settings for HotelPulse.

Centralized configuration for ingestion, analysis and the sweep runner.
"""

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_ROOT = Path(os.getenv("HOTELPULSE_DATA_ROOT", str(PROJECT_ROOT / "data")))
OUTPUT_ROOT = PROJECT_ROOT / "output"

# API Configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# Review API
REVIEW_API_BASE_URL = os.getenv(
    "REVIEW_API_BASE_URL",
    "https://www.holidaycheck.de/svc/api-hotelreview/v3"
)
REVIEW_API_LOCALE = "de"
REVIEW_API_PAGE_SIZE = 50
REVIEW_API_MAX_OFFSET = 1000  # Hard ceiling on pagination
REVIEW_API_MAX_RETRIES = 3  # Retries per page on HTTP 429
REVIEW_API_INITIAL_RETRY_DELAY = 1.0  # Seconds, doubled per retry
REVIEW_API_PAGE_DELAY = 1.0  # Seconds between successful pages
REVIEW_API_TIMEOUT_SECONDS = 30

# Summarization
SUMMARY_MODEL = "gemini-1.5-flash"
SUMMARY_TEMPERATURE = 0.7
SUMMARY_CHUNK_SIZE = 10
SUMMARY_CHUNK_DELAY = 60.0  # Seconds between chunks
SUMMARY_MAX_RETRIES = 2
SUMMARY_RETRY_DELAY = 5.0
SUMMARY_LANGUAGE = "German"
RATING_SCALE = 6

# Analysis runs
DEFAULT_WINDOW_DAYS = 30
DEFAULT_REVIEW_COUNT = 30
WINDOW_CANDIDATE_LIMIT = 50
MONTHLY_ANALYSIS_DAY = 1  # Day of month the daily update also runs analysis

# Logging
LOG_LEVEL = "INFO"  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "hotelpulse.log"
