"""
Session ledger synchronization.

Keeps billable sessions in lockstep with booking lifecycle changes. A
billable (non-cancelled) booking has exactly one linked session; a
non-billable booking has none.

Synchronization always runs after the booking change has been committed.
Failures here are logged and reported through ``SyncReport``; they never
undo the booking write, so callers can retry the sync phase on its own.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from core.constants import SESSION_SYNC_CHUNK_SIZE
from core.exceptions import NotFoundError, ValidationError
from models import Booking, BillableSession
from models.enums import BookingStatus, BookingType, InvoiceStatus
from shared_types.results import ItemError, SyncReport
from utils.batch_executor import chunked, run_bulk_with_fallback
from utils.booking_mappings import is_billable_status, session_status_for, session_type_for

logger = logging.getLogger(__name__)

# Booking fields that have a counterpart on the session
SYNCED_BOOKING_FIELDS = ("type", "value", "status")


def session_values_for_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Translate booking field changes into session column values.

    Only keys present in ``changes`` are returned, so unrelated session
    columns are never overwritten.
    """
    values: Dict[str, Any] = {}
    if "type" in changes:
        values["type"] = session_type_for(BookingType(changes["type"]))
    if "value" in changes:
        values["value"] = changes["value"]
    if "status" in changes:
        values["status"] = session_status_for(BookingStatus(changes["status"]))
    return values


def build_session(booking: Booking) -> BillableSession:
    """New ledger row derived from a booking (flags start cleared)."""
    return BillableSession(
        provider_id=booking.provider_id,
        client_id=booking.client_id,
        booking_id=booking.id,
        type=session_type_for(booking.type),
        value=booking.value,
        status=session_status_for(booking.status),
        payment_done=False,
        share_done=False,
        invoice_status=InvoiceStatus.NOT_ISSUED,
        occurrence_date_1=booking.date,
    )


class SessionSynchronizer:
    """Creates, updates and removes sessions as bookings change."""

    def __init__(self, db: Session):
        self.db = db

    def sessions_by_booking(self, booking_ids: Iterable[int]) -> Dict[int, List[BillableSession]]:
        """Existing sessions grouped by booking id, fetched in one query."""
        ids = list(set(booking_ids))
        grouped: Dict[int, List[BillableSession]] = defaultdict(list)
        if not ids:
            return grouped
        rows = (
            self.db.query(BillableSession)
            .filter(BillableSession.booking_id.in_(ids))
            .order_by(BillableSession.id)
            .all()
        )
        for row in rows:
            if row.booking_id is not None:
                grouped[row.booking_id].append(row)
        return grouped

    def ensure(self, booking: Booking, billable: Optional[bool] = None) -> SyncReport:
        """
        Reconcile the session linked to one booking.

        Args:
            booking: Committed booking
            billable: Desired billing state; defaults to "not cancelled"

        Returns:
            SyncReport with at most one creation or the removals performed.
            Calling it again with the same state is a no-op.
        """
        wants_session = is_billable_status(booking.status) if billable is None else billable
        report = SyncReport()
        try:
            existing = self.sessions_by_booking([booking.id]).get(booking.id, [])
            if wants_session and not existing:
                self.db.add(build_session(booking))
                report.created = 1
            elif wants_session and len(existing) > 1:
                # Keep the oldest row, drop duplicates left by earlier races
                for duplicate in existing[1:]:
                    self.db.delete(duplicate)
                report.removed = len(existing) - 1
            elif not wants_session and existing:
                for session in existing:
                    self.db.delete(session)
                report.removed = len(existing)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Session sync failed for booking {booking.id}: {e}")
            report = SyncReport(errors=[ItemError(booking.id, str(e), stage="session")])
        return report

    def batch_ensure(
        self,
        bookings: Sequence[Booking],
        billable: Optional[Mapping[int, bool]] = None,
    ) -> SyncReport:
        """
        Reconcile sessions for many bookings.

        Existing sessions are looked up once for the whole id set, creations
        and removals are each attempted as one grouped write, and a failed
        group is retried booking by booking.

        Args:
            bookings: Committed bookings
            billable: Optional per-booking desired billing state; bookings not
                listed fall back to "not cancelled"
        """
        report = SyncReport()
        if not bookings:
            return report

        overrides = billable or {}

        def wants_session(booking: Booking) -> bool:
            if booking.id in overrides:
                return overrides[booking.id]
            return is_billable_status(booking.status)

        existing = self.sessions_by_booking(b.id for b in bookings)
        to_create = [b for b in bookings if wants_session(b) and b.id not in existing]
        to_remove = [b.id for b in bookings if not wants_session(b) and b.id in existing]
        # Keep the oldest row, drop duplicates left by earlier races
        duplicate_ids = {
            b.id: [s.id for s in existing[b.id][1:]]
            for b in bookings
            if wants_session(b) and len(existing.get(b.id, [])) > 1
        }

        def create_all(items: Sequence[Booking]) -> int:
            self.db.add_all([build_session(b) for b in items])
            self.db.flush()
            return len(items)

        def create_one(booking: Booking) -> int:
            self.db.add(build_session(booking))
            self.db.flush()
            return 1

        created = run_bulk_with_fallback(
            self.db, to_create, create_all, create_one,
            item_key=lambda b: b.id, label="Session creation", stage="session",
        )
        report.created = created.processed
        report.errors.extend(created.errors)

        removed = run_bulk_with_fallback(
            self.db, to_remove, self._delete_for_bookings,
            lambda booking_id: self._delete_for_bookings([booking_id]),
            item_key=lambda booking_id: booking_id, label="Session removal", stage="session",
        )
        report.removed = removed.affected
        report.errors.extend(removed.errors)

        def delete_duplicates(booking_ids: Sequence[int]) -> int:
            session_ids = [sid for booking_id in booking_ids for sid in duplicate_ids[booking_id]]
            return (
                self.db.query(BillableSession)
                .filter(BillableSession.id.in_(session_ids))
                .delete(synchronize_session="fetch")
            )

        deduplicated = run_bulk_with_fallback(
            self.db, list(duplicate_ids), delete_duplicates,
            lambda booking_id: delete_duplicates([booking_id]),
            item_key=lambda booking_id: booking_id, label="Duplicate session removal", stage="session",
        )
        report.removed += deduplicated.affected
        report.errors.extend(deduplicated.errors)

        logger.info(
            f"Batch session sync over {len(bookings)} bookings: "
            f"created={report.created} removed={report.removed} errors={len(report.errors)}"
        )
        return report

    def _delete_for_bookings(self, booking_ids: Sequence[int]) -> int:
        return (
            self.db.query(BillableSession)
            .filter(BillableSession.booking_id.in_(list(booking_ids)))
            .delete(synchronize_session="fetch")
        )

    def remove_for_bookings(self, booking_ids: Sequence[int]) -> Tuple[int, List[ItemError]]:
        """
        Delete every session linked to the given bookings.

        Returns:
            (number of sessions deleted, per-booking errors)
        """
        outcome = run_bulk_with_fallback(
            self.db, list(booking_ids), self._delete_for_bookings,
            lambda booking_id: self._delete_for_bookings([booking_id]),
            item_key=lambda booking_id: booking_id, label="Session removal", stage="session",
        )
        return outcome.affected, outcome.errors

    def propagate_field_change(
        self,
        sessions: Iterable[BillableSession],
        changes: Mapping[str, Any],
    ) -> int:
        """
        Mirror booking field changes onto already-loaded sessions.

        Only the mapped counterparts of keys present in ``changes`` are set.
        The caller commits.

        Returns:
            Number of sessions touched
        """
        values = session_values_for_changes(changes)
        if not values:
            return 0
        touched = 0
        for session in sessions:
            for column, value in values.items():
                setattr(session, column, value)
            touched += 1
        return touched

    def propagate_to_bookings(
        self,
        booking_ids: Sequence[int],
        changes: Mapping[str, Any],
        chunk_size: int = SESSION_SYNC_CHUNK_SIZE,
    ) -> Tuple[int, SyncReport]:
        """
        Mirror booking field changes onto the sessions of many bookings.

        Bookings are processed in chunks; each chunk is one UPDATE statement
        and a failed chunk is retried booking by booking.

        Returns:
            (number of session rows updated, report with per-booking errors)
        """
        report = SyncReport()
        values = session_values_for_changes(changes)
        if not values or not booking_ids:
            return 0, report

        def update_sessions(ids: Sequence[int]) -> int:
            return (
                self.db.query(BillableSession)
                .filter(BillableSession.booking_id.in_(list(ids)))
                .update(values, synchronize_session="fetch")
            )

        updated_rows = 0
        for chunk in chunked(list(booking_ids), chunk_size):
            outcome = run_bulk_with_fallback(
                self.db, chunk, update_sessions,
                lambda booking_id: update_sessions([booking_id]),
                item_key=lambda booking_id: booking_id,
                label="Session propagation", stage="session",
            )
            updated_rows += outcome.affected
            report.errors.extend(outcome.errors)

        report.updated = updated_rows
        return updated_rows, report

    def upsert_from_booking(self, booking_id: int) -> Tuple[BillableSession, bool]:
        """
        Create the session for a booking, or refresh the existing one.

        Returns:
            (session, created) where ``created`` is False when an existing
            session was refreshed from the booking's current fields

        Raises:
            NotFoundError: booking does not exist
            ValidationError: booking is cancelled
        """
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        if not is_billable_status(booking.status):
            raise ValidationError(
                f"Booking {booking_id} is cancelled and cannot be billed",
                action="Restore the booking before creating its session.",
            )

        existing = self.sessions_by_booking([booking.id]).get(booking.id, [])
        if existing:
            session = existing[0]
            session.provider_id = booking.provider_id
            session.client_id = booking.client_id
            session.type = session_type_for(booking.type)
            session.value = booking.value
            session.status = session_status_for(booking.status)
            session.occurrence_date_1 = booking.date
            created = False
        else:
            session = build_session(booking)
            self.db.add(session)
            created = True

        self.db.commit()
        self.db.refresh(session)
        logger.info(f"{'Created' if created else 'Refreshed'} session {session.id} from booking {booking.id}")
        return session, created
