"""
Recurrence series lifecycle.

A series is every booking sharing one ``recurrence_id``. It is created from
a weekday/periodicity rule in one call, then updated or deleted as a whole.
Booking writes commit first; the session ledger is synchronized afterwards
and its outcome is reported alongside, never rolled into, the booking result.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import Booking, Client, Provider
from models.enums import Periodicity, Weekday
from services.recurrence_service import RecurrenceExpander
from services.session_sync_service import SYNCED_BOOKING_FIELDS, SessionSynchronizer
from shared_types.booking import BookingTemplate
from shared_types.results import (
    ItemError,
    SeriesCreateResult,
    SeriesDeleteResult,
    SeriesUpdateResult,
    SyncReport,
)
from utils.batch_executor import run_bulk_with_fallback
from utils.datetime_utils import sunday_based_weekday

logger = logging.getLogger(__name__)

# Booking columns a series update may change
UPDATABLE_SERIES_FIELDS = frozenset({
    "date", "time", "location", "modality", "type", "value", "status",
    "notes", "session_done", "no_show",
})


def shift_to_weekday(d: date, weekday: int) -> date:
    """Date with the given weekday in the same Sunday-start week as ``d``."""
    return d + timedelta(days=int(weekday) - sunday_based_weekday(d))


class SeriesService:
    """Create, update and delete whole recurrence series."""

    def __init__(self, db: Session):
        self.db = db
        self.synchronizer = SessionSynchronizer(db)

    def _get_series(self, recurrence_id: str) -> List[Booking]:
        bookings = (
            self.db.query(Booking)
            .filter(Booking.recurrence_id == recurrence_id)
            .order_by(Booking.date, Booking.id)
            .all()
        )
        if not bookings:
            raise NotFoundError(f"No bookings found for recurrence {recurrence_id}")
        return bookings

    def create_series(
        self,
        template: BookingTemplate,
        weekdays: Iterable[int],
        periodicity: Periodicity,
        end_date: date,
        recurrence_id: Optional[str] = None,
    ) -> SeriesCreateResult:
        """
        Create one booking per date of the recurrence rule.

        Each occurrence is committed on its own; a failing occurrence is
        logged and reported without aborting the rest. Sessions are then
        ensured for the non-cancelled bookings in one batch.

        Raises:
            ValidationError: invalid rule (see RecurrenceExpander)
            NotFoundError: provider or client does not exist
        """
        if not self.db.query(Provider.id).filter(Provider.id == template.provider_id).first():
            raise NotFoundError(f"Provider {template.provider_id} not found")
        if not self.db.query(Client.id).filter(Client.id == template.client_id).first():
            raise NotFoundError(f"Client {template.client_id} not found")

        plan = RecurrenceExpander.plan_series(template.start_date, weekdays, periodicity, end_date)
        series_id = recurrence_id or str(uuid.uuid4())
        fields = template.booking_fields()

        created: List[Booking] = []
        failed: List[ItemError] = []
        for occurrence_date in plan.dates:
            try:
                booking = Booking(recurrence_id=series_id, date=occurrence_date, **fields)
                self.db.add(booking)
                self.db.commit()
                created.append(booking)
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Failed to create occurrence {occurrence_date} of series {series_id}: {e}")
                failed.append(ItemError(occurrence_date.isoformat(), str(e)))

        sync = self.synchronizer.batch_ensure(created)
        logger.info(
            f"Series {series_id}: created {len(created)}/{plan.final_count} bookings "
            f"(estimated {plan.estimated_count}, truncated={plan.truncated}), "
            f"{sync.created} sessions"
        )
        return SeriesCreateResult(
            recurrence_id=series_id,
            created=created,
            failed=failed,
            plan=plan,
            sync=sync,
        )

    def update_series(
        self,
        recurrence_id: str,
        changes: Dict[str, Any],
        new_weekday: Optional[int] = None,
        apply_date_to_all: bool = False,
    ) -> SeriesUpdateResult:
        """
        Apply one change set to every booking of a series.

        Each occurrence keeps its own date: a ``date`` key in ``changes`` is
        ignored unless ``apply_date_to_all`` is set. ``new_weekday`` moves each
        occurrence to that weekday within its own Sunday-start week.

        Linked sessions then receive the mapped type/value/status changes in
        chunks, and billability is reconciled when the status changed.

        Raises:
            NotFoundError: no booking carries ``recurrence_id``
            ValidationError: unknown field or invalid weekday
        """
        unknown = set(changes) - UPDATABLE_SERIES_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated on a series: {', '.join(sorted(unknown))}")
        if new_weekday is not None:
            try:
                new_weekday = Weekday(int(new_weekday))
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid weekday: {new_weekday!r}") from e

        bookings = self._get_series(recurrence_id)

        applied = dict(changes)
        if not apply_date_to_all:
            applied.pop("date", None)

        updated: List[Booking] = []
        failed: List[ItemError] = []
        for booking in bookings:
            try:
                for field_name, value in applied.items():
                    setattr(booking, field_name, value)
                if new_weekday is not None:
                    booking.date = shift_to_weekday(booking.date, new_weekday)
                self.db.commit()
                updated.append(booking)
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Failed to update booking {booking.id} of series {recurrence_id}: {e}")
                failed.append(ItemError(booking.id, str(e)))

        sync = SyncReport()
        session_changes = {k: v for k, v in applied.items() if k in SYNCED_BOOKING_FIELDS}
        sessions_updated, propagation = self.synchronizer.propagate_to_bookings(
            [b.id for b in updated], session_changes
        )
        sync.merge(propagation)
        if "status" in applied:
            sync.merge(self.synchronizer.batch_ensure(updated))

        logger.info(
            f"Series {recurrence_id}: updated {len(updated)}/{len(bookings)} bookings, "
            f"{sessions_updated} sessions"
        )
        return SeriesUpdateResult(
            recurrence_id=recurrence_id,
            updated=updated,
            failed=failed,
            sessions_updated_count=sessions_updated,
            sync=sync,
        )

    def delete_series(self, recurrence_id: str) -> SeriesDeleteResult:
        """
        Delete every booking of a series, linked sessions first.

        Session removal is best-effort: its failures are reported, and the
        bookings are still deleted.

        Raises:
            NotFoundError: no booking carries ``recurrence_id``
        """
        bookings = self._get_series(recurrence_id)
        booking_ids = [b.id for b in bookings]

        deleted_sessions, errors = self.synchronizer.remove_for_bookings(booking_ids)

        def delete_bookings(ids) -> int:
            return (
                self.db.query(Booking)
                .filter(Booking.id.in_(list(ids)))
                .delete(synchronize_session="fetch")
            )

        outcome = run_bulk_with_fallback(
            self.db, booking_ids, delete_bookings,
            lambda booking_id: delete_bookings([booking_id]),
            item_key=lambda booking_id: booking_id, label="Series deletion",
        )
        deleted_bookings = outcome.affected
        errors.extend(outcome.errors)

        logger.info(
            f"Series {recurrence_id} deleted: {deleted_bookings} bookings, {deleted_sessions} sessions"
        )
        return SeriesDeleteResult(
            recurrence_id=recurrence_id,
            deleted_bookings_count=deleted_bookings,
            deleted_sessions_count=deleted_sessions,
            errors=errors,
        )
