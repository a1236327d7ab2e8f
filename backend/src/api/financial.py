# pyright: reportMissingTypeStubs=false
"""
Financial dashboard API endpoints.

All figures come from the financial aggregator through the application's
TTL cache; ``refresh=true`` recomputes and replaces the cached entry.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, require_admin, require_staff
from core.constants import FINANCIAL_HISTORY_DEFAULT_MONTHS, FINANCIAL_HISTORY_MAX_MONTHS
from core.database import get_db
from services.cache_service import TTLCache
from services.financial_service import FinancialAggregator, get_financial_aggregator
from api.responses import FinancialSummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class HistoryResponse(BaseModel):
    months: List[FinancialSummaryResponse]


class YearlyResponse(BaseModel):
    year: int
    months: List[FinancialSummaryResponse]
    totals: FinancialSummaryResponse


class ComparisonResponse(BaseModel):
    current: FinancialSummaryResponse
    previous: FinancialSummaryResponse
    variations: Dict[str, float]


class CacheClearResponse(BaseModel):
    cleared: int


def get_financial_cache(request: Request) -> TTLCache:
    """Application-wide financial cache (created in the lifespan)."""
    cache = getattr(request.app.state, "financial_cache", None)
    if cache is None:
        cache = TTLCache()
        request.app.state.financial_cache = cache
    return cache


def get_aggregator(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_financial_cache),
) -> FinancialAggregator:
    return get_financial_aggregator(db, cache=cache)


@router.get("/summary", summary="Financial summary of one month")
async def get_summary(
    period: str = Query(..., description="YYYY-MM"),
    refresh: bool = Query(False, description="Bypass and refresh the cache"),
    current_user: UserContext = Depends(require_staff),
    aggregator: FinancialAggregator = Depends(get_aggregator),
) -> FinancialSummaryResponse:
    summary = aggregator.summarize_period(period, use_cache=not refresh)
    return FinancialSummaryResponse.from_summary(summary)


@router.get("/current", summary="Financial summary of the current month")
async def get_current_metrics(
    refresh: bool = Query(False),
    current_user: UserContext = Depends(require_staff),
    aggregator: FinancialAggregator = Depends(get_aggregator),
) -> FinancialSummaryResponse:
    return FinancialSummaryResponse.from_summary(aggregator.current_metrics(use_cache=not refresh))


@router.get("/history", summary="Monthly summaries of the last N months")
async def get_history(
    months: int = Query(FINANCIAL_HISTORY_DEFAULT_MONTHS, ge=1, le=FINANCIAL_HISTORY_MAX_MONTHS),
    refresh: bool = Query(False),
    current_user: UserContext = Depends(require_staff),
    aggregator: FinancialAggregator = Depends(get_aggregator),
) -> HistoryResponse:
    summaries = aggregator.history_last_n_months(months, use_cache=not refresh)
    return HistoryResponse(months=[FinancialSummaryResponse.from_summary(s) for s in summaries])


@router.get("/yearly/{year}", summary="Monthly summaries and totals of one year")
async def get_yearly(
    year: int,
    refresh: bool = Query(False),
    current_user: UserContext = Depends(require_staff),
    aggregator: FinancialAggregator = Depends(get_aggregator),
) -> YearlyResponse:
    yearly = aggregator.yearly_summary(year, use_cache=not refresh)
    return YearlyResponse(
        year=yearly.year,
        months=[FinancialSummaryResponse.from_summary(m) for m in yearly.months],
        totals=FinancialSummaryResponse.from_summary(yearly.totals),
    )


@router.get("/comparison", summary="Current month compared with the previous one")
async def get_comparison(
    refresh: bool = Query(False),
    current_user: UserContext = Depends(require_staff),
    aggregator: FinancialAggregator = Depends(get_aggregator),
) -> ComparisonResponse:
    comparison = aggregator.monthly_comparison(use_cache=not refresh)
    return ComparisonResponse(
        current=FinancialSummaryResponse.from_summary(comparison.current),
        previous=FinancialSummaryResponse.from_summary(comparison.previous),
        variations=comparison.variations,
    )


@router.get("/cache", summary="List cached financial entries")
async def describe_cache(
    current_user: UserContext = Depends(require_admin),
    cache: TTLCache = Depends(get_financial_cache),
) -> List[Dict[str, Any]]:
    return cache.describe()


@router.delete("/cache", summary="Clear the financial cache")
async def clear_cache(
    current_user: UserContext = Depends(require_staff),
    cache: TTLCache = Depends(get_financial_cache),
) -> CacheClearResponse:
    cleared = cache.clear()
    logger.info(f"Financial cache cleared by user {current_user.user_id}")
    return CacheClearResponse(cleared=cleared)
