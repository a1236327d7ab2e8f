"""Application constants and configuration values."""

from decimal import Decimal

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",
    FRONTEND_URL,
]

# Filter out empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Recurrence rules
RECURRENCE_MAX_SPAN_DAYS = 366  # A series may not span more than one year
SERIES_MAX_OCCURRENCES = 35  # Upper bound on bookings created by one series call

# Batch processing
BATCH_MAX_SIZE = 50  # Keeps a single batch request well inside request timeouts
BATCH_MAX_DENIED_RATIO = 0.5  # Abort when more than half the batch is not modifiable
SESSION_SYNC_CHUNK_SIZE = 10  # Bookings per session-propagation chunk

# Revenue share (tenure-based payout tiers)
TENURE_THRESHOLD_DAYS = 365.25
SHARE_TIER_JUNIOR_PERCENT = Decimal("45")
SHARE_TIER_SENIOR_PERCENT = Decimal("50")

# Standalone sessions may list up to this many occurrence dates
MAX_SESSION_OCCURRENCE_DATES = 6

# Financial dashboard
FINANCIAL_HISTORY_DEFAULT_MONTHS = 6
FINANCIAL_HISTORY_MAX_MONTHS = 24
MONEY_QUANTUM = Decimal("0.01")
