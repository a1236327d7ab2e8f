"""
Booking model representing scheduled appointments between providers and clients.

Bookings created by one recurrence call share a ``recurrence_id`` and are
edited or deleted together unless an operation targets a single occurrence.
A booking may have at most one linked billable session while it is billable.
"""

from datetime import date as date_type, datetime, time as time_type
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, ForeignKey, Index, TIMESTAMP, Boolean, Date, Time, Numeric, Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import BookingStatus, BookingType, Modality, enum_column_values


class Booking(Base):
    """
    Booking entity (a calendar appointment).

    Attendance is tracked with two flags next to the lifecycle status:
    ``session_done`` marks the appointment as completed and ``no_show`` marks
    a missed appointment. Both drive the billable-session side effects of
    batch updates.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the booking."""

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    """Provider who delivers the appointment."""

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"))
    """Client who attends the appointment."""

    recurrence_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    """Group key shared by all occurrences of one recurrence series. NULL for one-off bookings."""

    date: Mapped[date_type] = mapped_column(Date)
    """Calendar date of the appointment (clinic local)."""

    time: Mapped[Optional[time_type]] = mapped_column(Time, nullable=True)
    """Start time of the appointment."""

    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    modality: Mapped[Modality] = mapped_column(
        SAEnum(Modality, native_enum=False, length=30, values_callable=enum_column_values),
        default=Modality.IN_PERSON,
    )

    type: Mapped[BookingType] = mapped_column(
        SAEnum(BookingType, native_enum=False, length=30, values_callable=enum_column_values),
        default=BookingType.SESSION,
    )
    """Kind of appointment. Mapped onto the session type when billed."""

    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    """Amount charged for the appointment."""

    status: Mapped[BookingStatus] = mapped_column(
        SAEnum(BookingStatus, native_enum=False, length=30, values_callable=enum_column_values),
        default=BookingStatus.CONFIRMED,
    )
    """Lifecycle status. Cancelled bookings are never billable."""

    session_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Completed flag set by staff once the appointment took place."""

    no_show: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Set when the client missed the appointment."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    provider = relationship("Provider", back_populates="bookings")
    client = relationship("Client", back_populates="bookings")
    sessions = relationship("BillableSession", back_populates="booking")
    """Linked billable sessions (relation only; sessions are not owned by the booking)."""

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    __table_args__ = (
        Index('idx_bookings_recurrence', 'recurrence_id'),
        Index('idx_bookings_date_status', 'date', 'status'),
        Index('idx_bookings_provider_date', 'provider_id', 'date'),
    )
