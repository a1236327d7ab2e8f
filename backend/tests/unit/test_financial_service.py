"""
Unit tests for the financial aggregators.

Both implementations run against the same fixture ledger and must report
identical figures. The clock is frozen at FIXED_NOW (2024-03-15), so the
junior provider (started 2024-01-02) is paid at 45% and the senior one at 50%.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, given, settings, strategies as st

from core.database import Base
from core.exceptions import ValidationError
from models.enums import SessionStatus, TransactionKind
from services.cache_service import TTLCache
from services.financial_service import (
    NaiveFinancialAggregator,
    OptimizedFinancialAggregator,
    get_financial_aggregator,
)
from tests.conftest import (
    FIXED_NOW,
    create_booking,
    create_client,
    create_manual_transaction,
    create_provider,
    create_session,
)

AGGREGATORS = [NaiveFinancialAggregator, OptimizedFinancialAggregator]


@pytest.fixture
def ledger(db_session, senior_provider, junior_provider, clinic_client):
    """
    March 2024: revenue 500.00, payouts 197.50, manual 500.00 in / 120.50 out.
    February 2024: one paid session worth 90.00.
    """
    senior_booking = create_booking(
        db_session, senior_provider, clinic_client, date(2024, 3, 5), value=Decimal("200.00"),
    )
    create_session(
        db_session, senior_provider, clinic_client, value=Decimal("200.00"),
        booking=senior_booking, payment_done=True, share_done=True,
    )
    junior_booking = create_booking(
        db_session, junior_provider, clinic_client, date(2024, 3, 6), value=Decimal("150.00"),
    )
    create_session(
        db_session, junior_provider, clinic_client, value=Decimal("150.00"),
        booking=junior_booking, payment_done=True, share_done=True,
    )
    # Override wins over the senior tier
    create_session(
        db_session, senior_provider, clinic_client, value=Decimal("100.00"),
        occurrence_date=date(2024, 3, 12), payment_done=True, share_done=True,
        override_share=Decimal("30.00"),
    )
    # Unpaid and unshared
    create_session(
        db_session, senior_provider, clinic_client, value=Decimal("80.00"), occurrence_date=date(2024, 3, 10),
    )
    # Cancelled sessions never count
    create_session(
        db_session, senior_provider, clinic_client, value=Decimal("999.00"), occurrence_date=date(2024, 3, 11),
        payment_done=True, share_done=True, status=SessionStatus.CANCELLED,
    )
    # Paid, payout not yet made
    create_session(
        db_session, junior_provider, clinic_client, value=Decimal("50.00"),
        occurrence_date=date(2024, 3, 20), payment_done=True,
    )
    # Booking date decides the period, not the occurrence date
    february_booking = create_booking(
        db_session, senior_provider, clinic_client, date(2024, 2, 28), value=Decimal("90.00"),
    )
    create_session(
        db_session, senior_provider, clinic_client, value=Decimal("90.00"),
        booking=february_booking, occurrence_date=date(2024, 3, 1), payment_done=True,
    )
    create_manual_transaction(db_session, TransactionKind.INCOME, Decimal("500.00"), date(2024, 3, 1), "grant")
    create_manual_transaction(db_session, TransactionKind.EXPENSE, Decimal("120.50"), date(2024, 3, 31))
    create_manual_transaction(db_session, TransactionKind.EXPENSE, Decimal("75.00"), date(2024, 4, 1))


@pytest.mark.parametrize("aggregator_cls", AGGREGATORS)
class TestSummarizePeriod:
    """Test month summaries for both implementations."""

    def test_march_summary(self, db_session, ledger, fixed_clock, aggregator_cls):
        summary = aggregator_cls(db_session, clock=fixed_clock).summarize_period("2024-03")

        assert summary.period == "2024-03"
        assert summary.revenue == Decimal("500.00")
        assert summary.payouts == Decimal("197.50")
        assert summary.manual_in == Decimal("500.00")
        assert summary.manual_out == Decimal("120.50")
        assert summary.net == Decimal("682.00")
        assert summary.session_count == 4
        assert summary.total_in == Decimal("1000.00")
        assert summary.total_out == Decimal("318.00")

    def test_booking_date_assigns_period(self, db_session, ledger, fixed_clock, aggregator_cls):
        summary = aggregator_cls(db_session, clock=fixed_clock).summarize_period("2024-02")

        assert summary.revenue == Decimal("90.00")
        assert summary.session_count == 1
        assert summary.net == Decimal("90.00")

    def test_empty_month(self, db_session, ledger, fixed_clock, aggregator_cls):
        summary = aggregator_cls(db_session, clock=fixed_clock).summarize_period("2023-07")

        assert summary.revenue == summary.payouts == summary.net == Decimal("0.00")
        assert summary.session_count == 0

    def test_manual_entries_only(self, db_session, ledger, fixed_clock, aggregator_cls):
        summary = aggregator_cls(db_session, clock=fixed_clock).summarize_period("2024-04")

        assert summary.manual_out == Decimal("75.00")
        assert summary.net == Decimal("-75.00")

    @pytest.mark.parametrize("period", ["2024-13", "March", "2024-3", ""])
    def test_invalid_period(self, db_session, fixed_clock, aggregator_cls, period):
        with pytest.raises(ValidationError):
            aggregator_cls(db_session, clock=fixed_clock).summarize_period(period)

    def test_payout_tier_follows_clock(self, db_session, ledger, aggregator_cls):
        """A year later the junior provider is paid at the senior rate."""
        later = FIXED_NOW + timedelta(days=400)
        summary = aggregator_cls(db_session, clock=lambda: later).summarize_period("2024-03")

        assert summary.payouts == Decimal("205.00")


@pytest.mark.parametrize("aggregator_cls", AGGREGATORS)
class TestDerivedReports:
    """Test history, yearly totals and comparison."""

    def test_history_oldest_first(self, db_session, ledger, fixed_clock, aggregator_cls):
        history = aggregator_cls(db_session, clock=fixed_clock).history_last_n_months(3)

        assert [s.period for s in history] == ["2024-01", "2024-02", "2024-03"]
        assert history[-1].revenue == Decimal("500.00")

    def test_history_crosses_year(self, db_session, fixed_clock, aggregator_cls):
        history = aggregator_cls(db_session, clock=fixed_clock).history_last_n_months(6)

        assert [s.period for s in history] == [
            "2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03",
        ]

    @pytest.mark.parametrize("months", [0, 25])
    def test_history_bounds(self, db_session, fixed_clock, aggregator_cls, months):
        with pytest.raises(ValidationError):
            aggregator_cls(db_session, clock=fixed_clock).history_last_n_months(months)

    def test_current_metrics(self, db_session, ledger, fixed_clock, aggregator_cls):
        assert aggregator_cls(db_session, clock=fixed_clock).current_metrics().period == "2024-03"

    def test_yearly_summary(self, db_session, ledger, fixed_clock, aggregator_cls):
        yearly = aggregator_cls(db_session, clock=fixed_clock).yearly_summary(2024)

        assert len(yearly.months) == 12
        assert yearly.totals.period == "2024"
        assert yearly.totals.revenue == Decimal("590.00")
        assert yearly.totals.session_count == 5
        assert yearly.totals.net == Decimal("697.00")

    def test_monthly_comparison(self, db_session, ledger, fixed_clock, aggregator_cls):
        comparison = aggregator_cls(db_session, clock=fixed_clock).monthly_comparison()

        assert comparison.current.period == "2024-03"
        assert comparison.previous.period == "2024-02"
        assert comparison.variations == {
            "total_in": 1011.11,
            "total_out": 100.0,
            "net": 657.78,
            "session_count": 300.0,
        }

    def test_comparison_with_empty_months(self, db_session, fixed_clock, aggregator_cls):
        comparison = aggregator_cls(db_session, clock=fixed_clock).monthly_comparison()

        assert set(comparison.variations.values()) == {0.0}


money = st.decimals(min_value=Decimal("0"), max_value=Decimal("500"), places=2)

session_strategy = st.fixed_dictionaries({
    "provider": st.integers(min_value=0, max_value=2),
    "day": st.integers(min_value=0, max_value=180),
    # None: standalone session; otherwise booking date relative to the occurrence
    "booking_shift": st.one_of(st.none(), st.integers(min_value=-20, max_value=20)),
    "value": money,
    "payment_done": st.booleans(),
    "share_done": st.booleans(),
    "override": st.one_of(st.none(), st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)),
    "cancelled": st.booleans(),
})

manual_entry_strategy = st.fixed_dictionaries({
    "kind": st.sampled_from(list(TransactionKind)),
    "amount": st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000"), places=2),
    "day": st.integers(min_value=0, max_value=180),
})

start_dates = st.lists(
    st.one_of(st.none(), st.dates(min_value=date(2018, 1, 1), max_value=FIXED_NOW.date())),
    min_size=3,
    max_size=3,
)

LEDGER_START = date(2023, 11, 1)
LEDGER_PERIODS = ["2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03", "2024-04", "2024-05"]


def reset_ledger(db_session):
    """Empty every table; hypothesis reuses the test's session across examples."""
    for table in reversed(Base.metadata.sorted_tables):
        db_session.execute(table.delete())
    db_session.commit()


class TestImplementationsAgree:
    """Property-based tests for naive vs SQL aggregation."""

    @settings(
        max_examples=30,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
    )
    @given(
        starts=start_dates,
        sessions=st.lists(session_strategy, max_size=25),
        entries=st.lists(manual_entry_strategy, max_size=8),
    )
    def test_summaries_are_equal(self, db_session, fixed_clock, starts, sessions, entries):
        """
        Property: both implementations report the same summary for every period.
        """
        reset_ledger(db_session)
        providers = [
            create_provider(db_session, f"Dr. {index}", start_of_service=start)
            for index, start in enumerate(starts)
        ]
        client = create_client(db_session)

        for drawn in sessions:
            provider = providers[drawn["provider"]]
            occurrence = LEDGER_START + timedelta(days=drawn["day"])
            booking = None
            if drawn["booking_shift"] is not None:
                booking = create_booking(
                    db_session, provider, client, occurrence + timedelta(days=drawn["booking_shift"]),
                    value=drawn["value"],
                )
            create_session(
                db_session, provider, client,
                value=drawn["value"],
                booking=booking,
                occurrence_date=occurrence,
                payment_done=drawn["payment_done"],
                share_done=drawn["share_done"],
                override_share=drawn["override"],
                status=SessionStatus.CANCELLED if drawn["cancelled"] else SessionStatus.PAYMENT_PENDING,
            )
        for drawn in entries:
            create_manual_transaction(
                db_session, drawn["kind"], drawn["amount"], LEDGER_START + timedelta(days=drawn["day"]),
            )

        naive = NaiveFinancialAggregator(db_session, clock=fixed_clock)
        optimized = OptimizedFinancialAggregator(db_session, clock=fixed_clock)
        for period in LEDGER_PERIODS:
            assert naive.summarize_period(period) == optimized.summarize_period(period), period


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCaching:
    """Test TTL caching of summaries."""

    def test_cached_until_ttl_expires(self, db_session, ledger, senior_provider, clinic_client, fixed_clock):
        ticks = FakeClock()
        aggregator = OptimizedFinancialAggregator(
            db_session, cache=TTLCache(ttl_seconds=300, clock=ticks), clock=fixed_clock,
        )

        first = aggregator.summarize_period("2024-03")
        create_session(
            db_session, senior_provider, clinic_client, value=Decimal("10.00"),
            occurrence_date=date(2024, 3, 25), payment_done=True,
        )
        ticks.now = 299
        second = aggregator.summarize_period("2024-03")
        ticks.now = 300
        third = aggregator.summarize_period("2024-03")

        assert first.revenue == second.revenue == Decimal("500.00")
        assert third.revenue == Decimal("510.00")

    def test_bypass_refreshes_entry(self, db_session, ledger, senior_provider, clinic_client, fixed_clock):
        cache = TTLCache(ttl_seconds=300, clock=FakeClock())
        aggregator = OptimizedFinancialAggregator(db_session, cache=cache, clock=fixed_clock)
        aggregator.summarize_period("2024-03")
        create_session(
            db_session, senior_provider, clinic_client, value=Decimal("10.00"),
            occurrence_date=date(2024, 3, 25), payment_done=True,
        )

        refreshed = aggregator.summarize_period("2024-03", use_cache=False)

        assert refreshed.revenue == Decimal("510.00")
        assert aggregator.summarize_period("2024-03").revenue == Decimal("510.00")

    def test_implementations_do_not_share_entries(self, db_session, fixed_clock):
        cache = TTLCache(ttl_seconds=300, clock=FakeClock())

        NaiveFinancialAggregator(db_session, cache=cache, clock=fixed_clock).summarize_period("2024-03")
        OptimizedFinancialAggregator(db_session, cache=cache, clock=fixed_clock).summarize_period("2024-03")

        assert {entry["operation"] for entry in cache.describe()} == {"naive.summary", "optimized.summary"}

    def test_factory(self, db_session):
        assert isinstance(get_financial_aggregator(db_session), OptimizedFinancialAggregator)
        assert isinstance(get_financial_aggregator(db_session, optimized=False), NaiveFinancialAggregator)
