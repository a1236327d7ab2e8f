"""
Financial aggregation over the session ledger and manual transactions.

A month summary combines:
- revenue: value of paid (``payment_done``) sessions
- payouts: provider share of sessions whose payout was made (``share_done``),
  from ``ShareCalculator`` (override or tenure tier at evaluation time)
- manual income/expense entries dated in the month

and derives ``net = (revenue + manual_in) - (payouts + manual_out)``.

A session belongs to the month of its linked booking's date, or of its first
occurrence date when it has no booking. Cancelled sessions never count.

Two implementations share everything except how the month totals are read:
``NaiveFinancialAggregator`` loads rows and sums them in Python,
``OptimizedFinancialAggregator`` pushes filtering and sums into SQL. Both
must return the same figures for the same data.
"""

import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from core.constants import (
    FINANCIAL_HISTORY_DEFAULT_MONTHS,
    FINANCIAL_HISTORY_MAX_MONTHS,
    MONEY_QUANTUM,
)
from core.exceptions import ValidationError
from models import BillableSession, Booking, ManualTransaction, Provider
from models.enums import SessionStatus, TransactionKind
from services.cache_service import TTLCache
from services.share_calculator import ShareCalculator
from shared_types.financial import FinancialPeriodSummary, MonthlyComparison, YearlySummary
from utils.datetime_utils import clinic_now, format_period, month_bounds, parse_period, shift_month

logger = logging.getLogger(__name__)

T = TypeVar("T")

ZERO = Decimal("0")


def _money(value: Any) -> Decimal:
    """Normalize a DB aggregate (Decimal, float, int or None) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _round(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def _variation(current: Decimal, previous: Decimal) -> float:
    """Percentage change; a zero baseline reports 100 when current grew, else 0."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return float(((current - previous) / abs(previous) * 100).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP))


class FinancialAggregator:
    """
    Month summaries, history, yearly totals and month-over-month comparison.

    Args:
        db: Database session
        cache: Optional TTL cache shared across requests
        clock: Current clinic-local datetime; also the tenure evaluation instant
    """

    implementation = "base"

    def __init__(
        self,
        db: Session,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.db = db
        self.cache = cache
        self.clock = clock

    # Totals readers, implemented by subclasses

    def _session_totals(self, start: date, end: date, evaluated_at: datetime) -> Tuple[Decimal, Decimal, int]:
        """(revenue, payouts, paid session count) for sessions in [start, end]."""
        raise NotImplementedError

    def _manual_totals(self, start: date, end: date) -> Tuple[Decimal, Decimal]:
        """(manual income, manual expense) for entries dated in [start, end]."""
        raise NotImplementedError

    # Shared assembly

    def _cached(
        self,
        operation: str,
        params: Mapping[str, Hashable],
        compute: Callable[[], T],
        use_cache: bool,
    ) -> T:
        if self.cache is None:
            return compute()
        return self.cache.get_or_compute(f"{self.implementation}.{operation}", params, compute, use_cache)

    def _build_summary(self, year: int, month: int) -> FinancialPeriodSummary:
        start, end = month_bounds(year, month)
        revenue, payouts, session_count = self._session_totals(start, end, self.clock())
        manual_in, manual_out = self._manual_totals(start, end)
        net = (revenue + manual_in) - (payouts + manual_out)
        return FinancialPeriodSummary(
            period=format_period(year, month),
            revenue=_round(revenue),
            payouts=_round(payouts),
            manual_in=_round(manual_in),
            manual_out=_round(manual_out),
            net=_round(net),
            session_count=session_count,
        )

    def summarize_period(self, period: str, use_cache: bool = True) -> FinancialPeriodSummary:
        """
        Summary of one month.

        Args:
            period: "YYYY-MM"
            use_cache: False bypasses the cache and refreshes the stored entry

        Raises:
            ValidationError: malformed period
        """
        try:
            year, month = parse_period(period)
        except ValueError as e:
            raise ValidationError(str(e), action="Send the period as YYYY-MM.") from e
        return self._cached(
            "summary",
            {"period": period},
            lambda: self._build_summary(year, month),
            use_cache,
        )

    def current_metrics(self, use_cache: bool = True) -> FinancialPeriodSummary:
        """Summary of the current month."""
        today = self.clock()
        return self.summarize_period(format_period(today.year, today.month), use_cache)

    def history_last_n_months(
        self,
        months: int = FINANCIAL_HISTORY_DEFAULT_MONTHS,
        use_cache: bool = True,
    ) -> List[FinancialPeriodSummary]:
        """Summaries of the last ``months`` months including the current one, oldest first."""
        if not 1 <= months <= FINANCIAL_HISTORY_MAX_MONTHS:
            raise ValidationError(
                f"History length must be between 1 and {FINANCIAL_HISTORY_MAX_MONTHS} months"
            )
        today = self.clock()
        periods = [shift_month(today.year, today.month, -offset) for offset in range(months - 1, -1, -1)]
        return [self.summarize_period(format_period(y, m), use_cache) for y, m in periods]

    def yearly_summary(self, year: int, use_cache: bool = True) -> YearlySummary:
        """Twelve month summaries of ``year`` plus a totals row."""
        if not 1900 <= year <= 9999:
            raise ValidationError(f"Invalid year: {year}")
        months = [self.summarize_period(format_period(year, m), use_cache) for m in range(1, 13)]
        totals = FinancialPeriodSummary(
            period=f"{year:04d}",
            revenue=sum((m.revenue for m in months), ZERO),
            payouts=sum((m.payouts for m in months), ZERO),
            manual_in=sum((m.manual_in for m in months), ZERO),
            manual_out=sum((m.manual_out for m in months), ZERO),
            net=sum((m.net for m in months), ZERO),
            session_count=sum(m.session_count for m in months),
        )
        return YearlySummary(year=year, months=months, totals=totals)

    def monthly_comparison(self, use_cache: bool = True) -> MonthlyComparison:
        """Current month against the previous one, with percentage variations."""
        today = self.clock()
        prev_year, prev_month = shift_month(today.year, today.month, -1)
        current = self.summarize_period(format_period(today.year, today.month), use_cache)
        previous = self.summarize_period(format_period(prev_year, prev_month), use_cache)
        variations = {
            "total_in": _variation(current.total_in, previous.total_in),
            "total_out": _variation(current.total_out, previous.total_out),
            "net": _variation(current.net, previous.net),
            "session_count": _variation(Decimal(current.session_count), Decimal(previous.session_count)),
        }
        return MonthlyComparison(current=current, previous=previous, variations=variations)


class NaiveFinancialAggregator(FinancialAggregator):
    """Loads ledger rows and computes every total in application code."""

    implementation = "naive"

    def _session_totals(self, start: date, end: date, evaluated_at: datetime) -> Tuple[Decimal, Decimal, int]:
        sessions = (
            self.db.query(BillableSession)
            .options(joinedload(BillableSession.booking), joinedload(BillableSession.provider))
            .filter(BillableSession.status != SessionStatus.CANCELLED)
            .all()
        )
        revenue, payouts, count = ZERO, ZERO, 0
        for session in sessions:
            period_date = session.booking.date if session.booking is not None else session.occurrence_date_1
            if period_date is None or not start <= period_date <= end:
                continue
            if session.payment_done:
                revenue += _money(session.value)
                count += 1
            if session.share_done:
                share = ShareCalculator.calculate(
                    _money(session.value),
                    session.provider.start_of_service,
                    evaluated_at,
                    session.override_share,
                )
                payouts += share.amount
        return revenue, payouts, count

    def _manual_totals(self, start: date, end: date) -> Tuple[Decimal, Decimal]:
        entries = (
            self.db.query(ManualTransaction)
            .filter(ManualTransaction.date >= start, ManualTransaction.date <= end)
            .all()
        )
        manual_in = sum((_money(e.amount) for e in entries if e.kind == TransactionKind.INCOME), ZERO)
        manual_out = sum((_money(e.amount) for e in entries if e.kind == TransactionKind.EXPENSE), ZERO)
        return manual_in, manual_out


class OptimizedFinancialAggregator(FinancialAggregator):
    """
    Pushes period filtering and sums into SQL.

    Payouts without an override are summed per provider and the provider's
    tier is applied once to each sum, which equals summing per-session
    payouts because the tier only depends on the provider.
    """

    implementation = "optimized"

    def _period_sessions(self, start: date, end: date):
        period_date = func.coalesce(Booking.date, BillableSession.occurrence_date_1)
        return (
            self.db.query(BillableSession)
            .outerjoin(Booking, BillableSession.booking_id == Booking.id)
            .filter(
                BillableSession.status != SessionStatus.CANCELLED,
                period_date >= start,
                period_date <= end,
            )
        )

    def _session_totals(self, start: date, end: date, evaluated_at: datetime) -> Tuple[Decimal, Decimal, int]:
        paid = self._period_sessions(start, end).filter(BillableSession.payment_done.is_(True))
        revenue, count = paid.with_entities(
            func.coalesce(func.sum(BillableSession.value), 0),
            func.count(BillableSession.id),
        ).one()

        shared = self._period_sessions(start, end).filter(BillableSession.share_done.is_(True))
        override_total = shared.filter(BillableSession.override_share.isnot(None)).with_entities(
            func.coalesce(func.sum(BillableSession.override_share), 0)
        ).scalar()

        per_provider: Dict[int, Decimal] = defaultdict(lambda: ZERO)
        rows = (
            shared.filter(BillableSession.override_share.is_(None))
            .with_entities(BillableSession.provider_id, func.sum(BillableSession.value))
            .group_by(BillableSession.provider_id)
            .all()
        )
        for provider_id, total in rows:
            per_provider[provider_id] += _money(total)

        payouts = _money(override_total)
        if per_provider:
            starts = dict(
                self.db.query(Provider.id, Provider.start_of_service)
                .filter(Provider.id.in_(list(per_provider)))
                .all()
            )
            for provider_id, total in per_provider.items():
                percentage = ShareCalculator.tier_percentage(starts.get(provider_id), evaluated_at)
                payouts += total * percentage / 100

        return _money(revenue), payouts, int(count or 0)

    def _manual_totals(self, start: date, end: date) -> Tuple[Decimal, Decimal]:
        rows = (
            self.db.query(ManualTransaction.kind, func.sum(ManualTransaction.amount))
            .filter(ManualTransaction.date >= start, ManualTransaction.date <= end)
            .group_by(ManualTransaction.kind)
            .all()
        )
        totals = {kind: _money(total) for kind, total in rows}
        return totals.get(TransactionKind.INCOME, ZERO), totals.get(TransactionKind.EXPENSE, ZERO)


def get_financial_aggregator(
    db: Session,
    cache: Optional[TTLCache] = None,
    optimized: bool = True,
    clock: Callable[[], datetime] = clinic_now,
) -> FinancialAggregator:
    """Aggregator used by the API: the SQL implementation unless ``optimized`` is False."""
    cls = OptimizedFinancialAggregator if optimized else NaiveFinancialAggregator
    return cls(db, cache=cache, clock=clock)
