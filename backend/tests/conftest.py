"""
Test configuration and shared fixtures for the Clinic Ledger test suite.

Tests run against an in-memory SQLite database by default; set
TEST_DATABASE_URL to run them against PostgreSQL. The schema is created from
the model metadata for every test and dropped afterwards, because the
services under test commit their own work item by item.
"""

import os
import pytest
from datetime import date, datetime, time
from decimal import Decimal
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from core.database import Base

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models import BillableSession, Booking, Client, ManualTransaction, Provider
from models.enums import (
    BookingStatus, BookingType, InvoiceStatus, SessionStatus, SessionType, TransactionKind,
)
from utils.datetime_utils import CLINIC_TZ


# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

# Frozen "now" used by aggregator and tenure tests
FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=CLINIC_TZ)


@pytest.fixture
def db_engine():
    """
    Create a database engine with a fresh schema for one test.

    SQLite in-memory databases live per connection, so StaticPool keeps one
    shared connection for the whole test (including TestClient threads).
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL, poolclass=NullPool)

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session configured like the application's SessionLocal."""
    TestingSession = sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = TestingSession()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def fixed_clock():
    """Clock returning FIXED_NOW."""
    return lambda: FIXED_NOW


# Helper functions for creating records

def create_provider(
    db_session: Session,
    full_name: str = "Dr. Test",
    start_of_service: Optional[date] = None,
) -> Provider:
    provider = Provider(full_name=full_name, start_of_service=start_of_service)
    db_session.add(provider)
    db_session.commit()
    return provider


def create_client(db_session: Session, full_name: str = "Test Client") -> Client:
    client = Client(full_name=full_name)
    db_session.add(client)
    db_session.commit()
    return client


def create_booking(
    db_session: Session,
    provider: Provider,
    client: Client,
    booking_date: date,
    value: Decimal = Decimal("100.00"),
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_type: BookingType = BookingType.SESSION,
    recurrence_id: Optional[str] = None,
    booking_time: Optional[time] = time(10, 0),
) -> Booking:
    """
    Create a committed booking.

    Returns:
        Created Booking instance
    """
    booking = Booking(
        provider_id=provider.id,
        client_id=client.id,
        recurrence_id=recurrence_id,
        date=booking_date,
        time=booking_time,
        type=booking_type,
        value=value,
        status=status,
    )
    db_session.add(booking)
    db_session.commit()
    return booking


def create_session(
    db_session: Session,
    provider: Provider,
    client: Client,
    value: Decimal = Decimal("100.00"),
    booking: Optional[Booking] = None,
    occurrence_date: Optional[date] = None,
    payment_done: bool = False,
    share_done: bool = False,
    override_share: Optional[Decimal] = None,
    status: SessionStatus = SessionStatus.PAYMENT_PENDING,
) -> BillableSession:
    """
    Create a committed billable session.

    Linked sessions take their first occurrence date from the booking unless
    one is given.
    """
    session = BillableSession(
        provider_id=provider.id,
        client_id=client.id,
        booking_id=booking.id if booking else None,
        type=SessionType.CARE,
        value=value,
        override_share=override_share,
        status=status,
        payment_done=payment_done,
        share_done=share_done,
        invoice_status=InvoiceStatus.NOT_ISSUED,
        occurrence_date_1=occurrence_date or (booking.date if booking else None),
    )
    db_session.add(session)
    db_session.commit()
    return session


def create_manual_transaction(
    db_session: Session,
    kind: TransactionKind,
    amount: Decimal,
    entry_date: date,
    category: str = "rent",
) -> ManualTransaction:
    entry = ManualTransaction(
        kind=kind,
        category=category,
        description=f"{category} entry",
        amount=amount,
        date=entry_date,
    )
    db_session.add(entry)
    db_session.commit()
    return entry


def sessions_for_booking(db_session: Session, booking_id: int) -> list[BillableSession]:
    """Fresh query of the sessions linked to a booking."""
    db_session.expire_all()
    return db_session.query(BillableSession).filter(BillableSession.booking_id == booking_id).all()


@pytest.fixture
def senior_provider(db_session):
    """Provider with several years of service (50% tier)."""
    return create_provider(db_session, "Dr. Senior", start_of_service=date(2020, 1, 1))


@pytest.fixture
def junior_provider(db_session):
    """Provider who started recently (45% tier)."""
    return create_provider(db_session, "Dr. Junior", start_of_service=date(2024, 1, 2))


@pytest.fixture
def clinic_client(db_session):
    return create_client(db_session, "Ana Client")
