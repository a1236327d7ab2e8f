"""
Unit tests for standalone session entry and bulk flag updates.
"""

import pytest
from datetime import date
from decimal import Decimal

from core.exceptions import NotFoundError, ValidationError
from models import BillableSession
from models.enums import SessionType
from services.session_ledger_service import SessionLedgerService
from tests.conftest import create_session


class TestCreateSession:
    def test_dates_are_sorted_into_slots(self, db_session, senior_provider, clinic_client):
        session = SessionLedgerService(db_session).create_session(
            senior_provider.id, clinic_client.id, SessionType.SCHOOL_VISIT, Decimal("300.00"),
            [date(2024, 3, 20), date(2024, 3, 6), date(2024, 3, 13), date(2024, 3, 6)],
        )

        assert session.booking_id is None
        assert session.occurrence_dates == [date(2024, 3, 6), date(2024, 3, 13), date(2024, 3, 20)]
        assert session.occurrence_date_4 is None
        assert session.payment_done is False

    def test_override_and_flags(self, db_session, senior_provider, clinic_client):
        session = SessionLedgerService(db_session).create_session(
            senior_provider.id, clinic_client.id, SessionType.CARE, Decimal("100.00"),
            [date(2024, 3, 6)], override_share=Decimal("30.00"), payment_done=True,
        )

        assert session.override_share == Decimal("30.00")
        assert session.payment_done is True

    @pytest.mark.parametrize("count", [0, 7])
    def test_occurrence_date_bounds(self, db_session, senior_provider, clinic_client, count):
        dates = [date(2024, 3, day) for day in range(1, count + 1)]

        with pytest.raises(ValidationError):
            SessionLedgerService(db_session).create_session(
                senior_provider.id, clinic_client.id, SessionType.CARE, Decimal("100.00"), dates,
            )

    def test_negative_value(self, db_session, senior_provider, clinic_client):
        with pytest.raises(ValidationError):
            SessionLedgerService(db_session).create_session(
                senior_provider.id, clinic_client.id, SessionType.CARE, Decimal("-1"), [date(2024, 3, 1)],
            )

    def test_unknown_client(self, db_session, senior_provider):
        with pytest.raises(NotFoundError):
            SessionLedgerService(db_session).create_session(
                senior_provider.id, 9999, SessionType.CARE, Decimal("100.00"), [date(2024, 3, 1)],
            )


class TestBulkFlags:
    def test_bulk_payment(self, db_session, senior_provider, clinic_client):
        sessions = [
            create_session(db_session, senior_provider, clinic_client, occurrence_date=date(2024, 3, day))
            for day in (1, 2, 3)
        ]

        updated = SessionLedgerService(db_session).bulk_set_payment_done(
            [sessions[0].id, sessions[1].id, 9999], True,
        )

        assert updated == 2
        db_session.expire_all()
        flags = {s.id: s.payment_done for s in db_session.query(BillableSession).all()}
        assert flags == {sessions[0].id: True, sessions[1].id: True, sessions[2].id: False}

    def test_bulk_share_can_clear(self, db_session, senior_provider, clinic_client):
        session = create_session(
            db_session, senior_provider, clinic_client, occurrence_date=date(2024, 3, 1), share_done=True,
        )

        assert SessionLedgerService(db_session).bulk_set_share_done([session.id], False) == 1
        db_session.expire_all()
        assert db_session.query(BillableSession).one().share_done is False

    def test_empty_ids(self, db_session):
        with pytest.raises(ValidationError):
            SessionLedgerService(db_session).bulk_set_payment_done([], True)
