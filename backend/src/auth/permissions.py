# pyright: reportMissingTypeStubs=false
"""
Record-level access checks for provider accounts.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from auth.dependencies import UserContext
from models import Booking


def is_restricted(user: UserContext) -> bool:
    """Providers may only touch their own bookings."""
    return user.is_provider()


def restricted_provider_id(user: UserContext) -> Optional[int]:
    """Provider id to scope queries by, or None for unrestricted users."""
    return user.provider_id if is_restricted(user) else None


def can_modify_booking(user: UserContext, booking: Booking) -> bool:
    if not is_restricted(user):
        return True
    return booking.provider_id == user.provider_id


def ensure_provider_scope(user: UserContext, provider_id: int) -> None:
    """Raise 403 when a restricted user acts on another provider's records."""
    if is_restricted(user) and provider_id != user.provider_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: you can only manage your own bookings"
        )


def ensure_booking_access(user: UserContext, booking: Booking) -> None:
    if not can_modify_booking(user, booking):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied to booking {booking.id}"
        )


def ensure_series_access(db: Session, user: UserContext, recurrence_id: str) -> None:
    """
    Raise 403 when a restricted user does not own every booking of a series.

    A series with no bookings passes; the service reports it as not found.
    """
    if not is_restricted(user):
        return
    owners = {
        provider_id
        for (provider_id,) in db.query(Booking.provider_id)
        .filter(Booking.recurrence_id == recurrence_id)
        .distinct()
        .all()
    }
    if owners and owners != {user.provider_id}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: series belongs to another provider"
        )
