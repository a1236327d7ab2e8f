"""
Single-occurrence booking changes.

Same two-phase shape as the series operations: the booking change is
committed first, then its session is brought in line and the outcome of that
second phase is returned next to the booking.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import Booking
from services.series_service import UPDATABLE_SERIES_FIELDS
from services.session_sync_service import SYNCED_BOOKING_FIELDS, SessionSynchronizer
from shared_types.results import ItemError, SyncReport, TwoPhaseResult

logger = logging.getLogger(__name__)


class BookingService:
    """Update or delete one booking and keep its session consistent."""

    def __init__(self, db: Session):
        self.db = db
        self.synchronizer = SessionSynchronizer(db)

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def update_booking(self, booking_id: int, changes: Dict[str, Any]) -> TwoPhaseResult[Booking]:
        """
        Update one booking, then mirror the change onto its session.

        Returns:
            TwoPhaseResult whose ``primary`` is the committed booking. A sync
            failure leaves the booking change in place and is reported in
            ``sync``.

        Raises:
            NotFoundError: booking does not exist
            ValidationError: unknown field
        """
        unknown = set(changes) - UPDATABLE_SERIES_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        booking = self.get_booking(booking_id)
        for field_name, value in changes.items():
            setattr(booking, field_name, value)
        self.db.commit()

        sync = SyncReport()
        session_changes = {k: v for k, v in changes.items() if k in SYNCED_BOOKING_FIELDS}
        try:
            sessions = self.synchronizer.sessions_by_booking([booking.id]).get(booking.id, [])
            sync.updated = self.synchronizer.propagate_field_change(sessions, session_changes)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Session propagation failed for booking {booking.id}: {e}")
            sync.updated = 0
            sync.errors.append(ItemError(booking.id, str(e), stage="session"))

        if "status" in changes:
            sync.merge(self.synchronizer.ensure(booking))

        return TwoPhaseResult(primary=booking, sync=sync)

    def delete_booking(self, booking_id: int) -> TwoPhaseResult[Optional[int]]:
        """
        Delete one booking after removing its sessions.

        Returns:
            TwoPhaseResult whose ``primary`` is the deleted booking id and
            whose ``sync.removed`` counts deleted sessions

        Raises:
            NotFoundError: booking does not exist
        """
        booking = self.get_booking(booking_id)
        removed, errors = self.synchronizer.remove_for_bookings([booking.id])

        self.db.delete(booking)
        self.db.commit()
        logger.info(f"Deleted booking {booking_id} and {removed} linked sessions")
        return TwoPhaseResult(primary=booking_id, sync=SyncReport(removed=removed, errors=errors))
