"""
Booking → session vocabulary mapping.

Both tables are total functions over closed enums: adding a member to
``BookingStatus`` or ``BookingType`` without extending the match below makes
the mapping raise instead of silently falling through to a default.
"""

from models.enums import BookingStatus, BookingType, SessionStatus, SessionType


def session_status_for(status: BookingStatus) -> SessionStatus:
    """Session status mirrored from a booking status."""
    match status:
        case BookingStatus.CONFIRMED | BookingStatus.RESCHEDULED:
            return SessionStatus.PAYMENT_PENDING
        case BookingStatus.CANCELLED:
            return SessionStatus.CANCELLED
    raise ValueError(f"Unmapped booking status: {status!r}")


def session_type_for(booking_type: BookingType) -> SessionType:
    """Session type mirrored from a booking type."""
    match booking_type:
        case BookingType.SESSION | BookingType.OTHER:
            return SessionType.CARE
        case BookingType.PARENTAL_GUIDANCE:
            return SessionType.GUIDANCE
        case BookingType.SCHOOL_VISIT:
            return SessionType.SCHOOL_VISIT
        case BookingType.SUPERVISION:
            return SessionType.SUPERVISION
    raise ValueError(f"Unmapped booking type: {booking_type!r}")


def is_billable_status(status: BookingStatus) -> bool:
    """Only non-cancelled bookings produce a billable session."""
    return status != BookingStatus.CANCELLED
