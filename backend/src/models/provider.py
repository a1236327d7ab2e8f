"""
Provider model representing the practitioners who deliver sessions.

Only the fields the ledger engine reads are modelled here; the start of
service date drives the tenure tier used for revenue-share payouts.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, Date, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Provider(Base):
    """Practitioner entity. Read-only from the point of view of the share calculator."""

    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the provider."""

    full_name: Mapped[str] = mapped_column(String(255))
    """Display name of the provider."""

    start_of_service: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """
    Date the provider started working at the clinic.

    NULL means unknown; the share calculator then falls back to the junior tier.
    """

    user_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Login account linked to this provider (owned by the auth layer)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    bookings = relationship("Booking", back_populates="provider")
    sessions = relationship("BillableSession", back_populates="provider")
