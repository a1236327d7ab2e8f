"""
Unit tests for SeriesService.

Series operations commit booking by booking and synchronize sessions
afterwards, so these tests run against the SQLite database from conftest.
"""

import pytest
from datetime import date, time
from decimal import Decimal
from unittest.mock import patch

from core.exceptions import NotFoundError, ValidationError
from models import BillableSession, Booking
from models.enums import BookingStatus, Periodicity, SessionStatus, Weekday
from services.series_service import SeriesService, shift_to_weekday
from shared_types.booking import BookingTemplate
from tests.conftest import create_booking, create_session, sessions_for_booking


def make_template(provider, client, start=date(2024, 1, 1), **overrides):
    fields = dict(
        provider_id=provider.id,
        client_id=client.id,
        start_date=start,
        value=Decimal("100.00"),
        time=time(14, 0),
        location="Room 2",
    )
    fields.update(overrides)
    return BookingTemplate(**fields)


def series_bookings(db_session, recurrence_id):
    db_session.expire_all()
    return (
        db_session.query(Booking)
        .filter(Booking.recurrence_id == recurrence_id)
        .order_by(Booking.date)
        .all()
    )


def make_series(db_session, provider, client, weekdays=(Weekday.MONDAY,), end=date(2024, 1, 15), **overrides):
    return SeriesService(db_session).create_series(
        make_template(provider, client, **overrides), list(weekdays), Periodicity.WEEKLY, end,
    )


class TestShiftToWeekday:
    def test_forward_within_week(self):
        assert shift_to_weekday(date(2024, 1, 1), Weekday.WEDNESDAY) == date(2024, 1, 3)

    def test_backward_within_week(self):
        assert shift_to_weekday(date(2024, 1, 5), Weekday.MONDAY) == date(2024, 1, 1)

    def test_sunday_starts_the_week(self):
        assert shift_to_weekday(date(2024, 1, 1), Weekday.SUNDAY) == date(2023, 12, 31)
        assert shift_to_weekday(date(2024, 1, 7), Weekday.SATURDAY) == date(2024, 1, 13)


class TestCreateSeries:
    """Test creating a recurrence series."""

    def test_creates_bookings_and_sessions(self, db_session, senior_provider, clinic_client):
        result = make_series(
            db_session, senior_provider, clinic_client,
            weekdays=(Weekday.MONDAY, Weekday.WEDNESDAY),
        )

        assert [b.date for b in result.created] == [
            date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 15),
        ]
        assert result.failed == []
        assert result.sync.created == 5
        assert result.metadata == {
            "estimated_count": 5,
            "final_count": 5,
            "truncated": False,
            "end_date": "2024-01-15",
        }

        stored = series_bookings(db_session, result.recurrence_id)
        assert len(stored) == 5
        assert all(b.time == time(14, 0) and b.location == "Room 2" for b in stored)
        for booking in stored:
            assert len(sessions_for_booking(db_session, booking.id)) == 1

    def test_explicit_recurrence_id(self, db_session, senior_provider, clinic_client):
        result = SeriesService(db_session).create_series(
            make_template(senior_provider, clinic_client), [Weekday.MONDAY], Periodicity.WEEKLY,
            date(2024, 1, 8), recurrence_id="series-abc",
        )

        assert result.recurrence_id == "series-abc"
        assert len(series_bookings(db_session, "series-abc")) == 2

    def test_cancelled_template_creates_no_sessions(self, db_session, senior_provider, clinic_client):
        result = make_series(db_session, senior_provider, clinic_client, status=BookingStatus.CANCELLED)

        assert len(result.created) == 3
        assert result.sync.created == 0
        assert db_session.query(BillableSession).count() == 0

    def test_long_series_is_truncated(self, db_session, senior_provider, clinic_client):
        result = make_series(
            db_session, senior_provider, clinic_client,
            weekdays=(Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY),
            end=date(2024, 12, 30),
        )

        assert len(result.created) == 33
        assert result.metadata["truncated"] is True
        assert result.metadata["estimated_count"] == 157
        assert result.metadata["end_date"] == "2024-03-17"

    def test_missing_provider(self, db_session, senior_provider, clinic_client):
        template = make_template(senior_provider, clinic_client, provider_id=9999)

        with pytest.raises(NotFoundError):
            SeriesService(db_session).create_series(template, [1], Periodicity.WEEKLY, date(2024, 1, 15))

        assert db_session.query(Booking).count() == 0

    def test_invalid_rule_creates_nothing(self, db_session, senior_provider, clinic_client):
        with pytest.raises(ValidationError):
            make_series(db_session, senior_provider, clinic_client, weekdays=())

        assert db_session.query(Booking).count() == 0

    def test_failed_occurrence_does_not_abort_series(self, db_session, senior_provider, clinic_client):
        """One failing occurrence is reported and the others are kept."""
        real_commit = db_session.commit
        calls = {"count": 0}

        def flaky_commit():
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("unique violation")
            return real_commit()

        with patch.object(db_session, "commit", side_effect=flaky_commit):
            result = make_series(db_session, senior_provider, clinic_client)

        assert len(result.created) == 2
        assert len(result.failed) == 1
        assert result.failed[0].item_id == "2024-01-08"
        assert result.sync.created == 2
        assert [b.date for b in series_bookings(db_session, result.recurrence_id)] == [
            date(2024, 1, 1), date(2024, 1, 15),
        ]


class TestUpdateSeries:
    """Test applying one change set to a whole series."""

    def test_value_change_keeps_dates_and_updates_sessions(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client, weekdays=(1, 3))
        original_dates = [b.date for b in created.created]

        result = SeriesService(db_session).update_series(
            created.recurrence_id, {"value": Decimal("140.00"), "notes": "new rate"},
        )

        assert len(result.updated) == 5
        assert result.sessions_updated_count == 5
        assert result.sync.ok
        stored = series_bookings(db_session, created.recurrence_id)
        assert [b.date for b in stored] == original_dates
        assert all(b.value == Decimal("140.00") and b.notes == "new rate" for b in stored)
        for booking in stored:
            assert sessions_for_booking(db_session, booking.id)[0].value == Decimal("140.00")

    def test_date_in_changes_is_ignored_by_default(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)

        SeriesService(db_session).update_series(
            created.recurrence_id, {"date": date(2024, 6, 1), "location": "Room 5"},
        )

        stored = series_bookings(db_session, created.recurrence_id)
        assert [b.date for b in stored] == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]
        assert all(b.location == "Room 5" for b in stored)

    def test_date_applied_when_requested(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)

        SeriesService(db_session).update_series(
            created.recurrence_id, {"date": date(2024, 6, 1)}, apply_date_to_all=True,
        )

        stored = series_bookings(db_session, created.recurrence_id)
        assert {b.date for b in stored} == {date(2024, 6, 1)}

    def test_new_weekday_moves_each_occurrence_within_its_week(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client, end=date(2024, 1, 8))

        SeriesService(db_session).update_series(created.recurrence_id, {}, new_weekday=Weekday.WEDNESDAY)

        stored = series_bookings(db_session, created.recurrence_id)
        assert [b.date for b in stored] == [date(2024, 1, 3), date(2024, 1, 10)]

    def test_cancelling_series_removes_sessions(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)

        result = SeriesService(db_session).update_series(
            created.recurrence_id, {"status": BookingStatus.CANCELLED},
        )

        assert result.sync.removed == 3
        assert db_session.query(BillableSession).count() == 0

    def test_restoring_series_recreates_sessions(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client, status=BookingStatus.CANCELLED)

        result = SeriesService(db_session).update_series(
            created.recurrence_id, {"status": BookingStatus.CONFIRMED},
        )

        assert result.sync.created == 3
        sessions = db_session.query(BillableSession).all()
        assert len(sessions) == 3
        assert all(s.status == SessionStatus.PAYMENT_PENDING for s in sessions)

    def test_unknown_series(self, db_session):
        with pytest.raises(NotFoundError):
            SeriesService(db_session).update_series("missing", {"value": Decimal("1")})

    def test_unknown_field(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)

        with pytest.raises(ValidationError):
            SeriesService(db_session).update_series(created.recurrence_id, {"provider_id": 2})

    def test_invalid_weekday(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)

        with pytest.raises(ValidationError):
            SeriesService(db_session).update_series(created.recurrence_id, {}, new_weekday=9)


class TestDeleteSeries:
    def test_deletes_bookings_and_sessions(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client, weekdays=(1, 3))
        standalone = create_session(
            db_session, senior_provider, clinic_client, occurrence_date=date(2024, 1, 2),
        )
        other = create_booking(db_session, senior_provider, clinic_client, date(2024, 1, 2))

        result = SeriesService(db_session).delete_series(created.recurrence_id)

        assert result.deleted_bookings_count == 5
        assert result.deleted_sessions_count == 5
        assert result.errors == []
        assert series_bookings(db_session, created.recurrence_id) == []
        assert db_session.query(BillableSession).filter(BillableSession.id == standalone.id).count() == 1
        assert db_session.query(Booking).filter(Booking.id == other.id).count() == 1

    def test_delete_twice(self, db_session, senior_provider, clinic_client):
        created = make_series(db_session, senior_provider, clinic_client)
        SeriesService(db_session).delete_series(created.recurrence_id)

        with pytest.raises(NotFoundError):
            SeriesService(db_session).delete_series(created.recurrence_id)
