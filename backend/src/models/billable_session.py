"""
Billable session model.

A session is the billable unit of work. It is usually derived from a booking
(``booking_id`` set) and kept in lockstep with it by the session
synchronizer, but it may also be entered manually with up to six occurrence
dates and no booking at all.

The payout owed to the provider is never stored as a derived value: it is
``override_share`` when set, otherwise computed from the provider's tenure at
evaluation time by the share calculator.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import ForeignKey, Index, TIMESTAMP, Boolean, Date, Numeric, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import SessionType, SessionStatus, InvoiceStatus, enum_column_values


class BillableSession(Base):
    """Billable session entity (ledger row)."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id"))
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"))

    booking_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
    )
    """Back-reference to the booking this session was derived from (relation only, not ownership)."""

    type: Mapped[SessionType] = mapped_column(
        SAEnum(SessionType, native_enum=False, length=30, values_callable=enum_column_values),
        default=SessionType.CARE,
    )

    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    """Billable amount."""

    override_share: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    """Explicit payout amount. NULL means the tenure rule applies."""

    status: Mapped[SessionStatus] = mapped_column(
        SAEnum(SessionStatus, native_enum=False, length=30, values_callable=enum_column_values),
        default=SessionStatus.PAYMENT_PENDING,
    )

    payment_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Client payment received."""

    share_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Provider payout made."""

    invoice_status: Mapped[InvoiceStatus] = mapped_column(
        SAEnum(InvoiceStatus, native_enum=False, length=30, values_callable=enum_column_values),
        default=InvoiceStatus.NOT_ISSUED,
    )

    occurrence_date_1: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occurrence_date_2: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occurrence_date_3: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occurrence_date_4: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occurrence_date_5: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    occurrence_date_6: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    provider = relationship("Provider", back_populates="sessions")
    booking = relationship("Booking", back_populates="sessions")

    @property
    def occurrence_dates(self) -> List[date]:
        """Non-empty occurrence dates in slot order."""
        slots = [
            self.occurrence_date_1, self.occurrence_date_2, self.occurrence_date_3,
            self.occurrence_date_4, self.occurrence_date_5, self.occurrence_date_6,
        ]
        return [d for d in slots if d is not None]

    __table_args__ = (
        Index('idx_sessions_booking', 'booking_id'),
        Index('idx_sessions_flags', 'payment_done', 'share_done'),
        Index('idx_sessions_provider', 'provider_id'),
    )
