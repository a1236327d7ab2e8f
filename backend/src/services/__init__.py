"""
Services package for the booking and ledger engine.

This package contains service classes that encapsulate the business logic
shared by the API routers, scheduled jobs and scripts.
"""

from .recurrence_service import RecurrenceExpander
from .share_calculator import ShareCalculator
from .session_sync_service import SessionSynchronizer
from .series_service import SeriesService
from .booking_service import BookingService
from .session_ledger_service import SessionLedgerService
from .batch_operation_service import BatchOperationService
from .cache_service import TTLCache
from .financial_service import (
    FinancialAggregator,
    NaiveFinancialAggregator,
    OptimizedFinancialAggregator,
)

__all__ = [
    "RecurrenceExpander",
    "ShareCalculator",
    "SessionSynchronizer",
    "SeriesService",
    "BookingService",
    "SessionLedgerService",
    "BatchOperationService",
    "TTLCache",
    "FinancialAggregator",
    "NaiveFinancialAggregator",
    "OptimizedFinancialAggregator",
]
