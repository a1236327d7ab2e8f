"""
Batch booking updates.

Applies one flag or status change to many bookings in a single request:

1. validate the operation type and batch size
2. load the targeted bookings in one query; unknown ids become item errors
3. for callers restricted to their own bookings, drop the others and abort
   when more than half of the batch is out of scope
4. update every remaining booking with one UPDATE statement, falling back
   to one update per booking when the statement fails
5. reconcile the session ledger for the updated bookings

Per-item problems never fail the whole batch; they are returned with the
counts so the API can answer 207 Multi-Status.
"""

import logging
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from core.constants import BATCH_MAX_DENIED_RATIO, BATCH_MAX_SIZE
from core.exceptions import AccessError, ValidationError
from models import Booking
from models.enums import BatchOperationType, BookingStatus
from services.session_sync_service import SessionSynchronizer
from shared_types.booking import BatchOperation
from shared_types.results import BatchOperationResult, ItemError, PhaseResult, SyncReport
from utils.batch_executor import run_bulk_with_fallback

logger = logging.getLogger(__name__)


def _column_for(operation_type: BatchOperationType) -> str:
    match operation_type:
        case BatchOperationType.COMPLETED:
            return "session_done"
        case BatchOperationType.NO_SHOW:
            return "no_show"
        case BatchOperationType.STATUS:
            return "status"
    raise ValueError(f"Unmapped batch operation type: {operation_type!r}")


def _coerce_value(operation_type: BatchOperationType, value: Any) -> Any:
    if operation_type == BatchOperationType.STATUS:
        return BookingStatus(value)
    if not isinstance(value, bool):
        raise ValueError(f"Expected true or false, got {value!r}")
    return value


class BatchOperationService:
    """Bulk flag/status updates on bookings with session side effects."""

    def __init__(self, db: Session):
        self.db = db
        self.synchronizer = SessionSynchronizer(db)

    def process(
        self,
        operations: Sequence[BatchOperation],
        operation_type: Any,
        restrict_to_provider_id: Optional[int] = None,
    ) -> BatchOperationResult:
        """
        Run a batch operation.

        Args:
            operations: ``{id, value}`` entries; a repeated id keeps its last value
            operation_type: A BatchOperationType (or its value)
            restrict_to_provider_id: When set, only bookings of this provider
                may be modified

        Returns:
            BatchOperationResult with processed count, per-item errors,
            per-phase results and timing metadata

        Raises:
            ValidationError: unknown type, empty batch or batch over the size limit
            AccessError: more than half of the batch is outside the caller's scope
        """
        started = time.perf_counter()

        try:
            op_type = BatchOperationType(operation_type)
        except ValueError as e:
            allowed = ", ".join(t.value for t in BatchOperationType)
            raise ValidationError(f"Operation type must be one of: {allowed}") from e
        if not operations:
            raise ValidationError("Batch contains no operations")
        if len(operations) > BATCH_MAX_SIZE:
            raise ValidationError(
                f"Batch of {len(operations)} operations exceeds the maximum of {BATCH_MAX_SIZE}",
                action="Split the operations into smaller batches.",
            )

        column = _column_for(op_type)
        errors: List[ItemError] = []

        requested: Dict[int, Any] = {}
        for op in operations:
            try:
                requested[op.booking_id] = _coerce_value(op_type, op.value)
            except ValueError as e:
                errors.append(ItemError(op.booking_id, str(e), stage="validation"))

        bookings = {
            b.id: b
            for b in self.db.query(Booking).filter(Booking.id.in_(list(requested))).all()
        } if requested else {}

        out_of_scope = 0
        for booking_id in list(requested):
            booking = bookings.get(booking_id)
            if booking is None:
                errors.append(ItemError(booking_id, f"Booking {booking_id} not found"))
                del requested[booking_id]
                out_of_scope += 1
            elif restrict_to_provider_id is not None and booking.provider_id != restrict_to_provider_id:
                errors.append(ItemError(booking_id, f"Access denied to booking {booking_id}", stage="access"))
                del requested[booking_id]
                out_of_scope += 1

        if restrict_to_provider_id is not None and out_of_scope > len(operations) * BATCH_MAX_DENIED_RATIO:
            raise AccessError(
                f"{out_of_scope} of {len(operations)} bookings are not accessible",
                action="Only include your own bookings in the batch.",
            )

        targets = list(requested.items())

        def bulk_update(items: Sequence[tuple]) -> int:
            # Enum members are bound by value to match the stored column text
            mapping = {
                booking_id: value.value if isinstance(value, BookingStatus) else value
                for booking_id, value in items
            }
            stmt = (
                update(Booking)
                .where(Booking.id.in_(list(mapping)))
                .values({column: case(mapping, value=Booking.id)})
                .execution_options(synchronize_session="fetch")
            )
            return self.db.execute(stmt).rowcount

        def single_update(item: tuple) -> int:
            booking_id, value = item
            setattr(bookings[booking_id], column, value)
            self.db.flush()
            return 1

        outcome = run_bulk_with_fallback(
            self.db, targets, bulk_update, single_update,
            item_key=lambda item: item[0], label=f"Batch {op_type.value} update",
        )
        errors.extend(outcome.errors)
        results = [PhaseResult("bookings", outcome.processed, list(outcome.errors), outcome.strategy)]

        failed_ids = {e.item_id for e in outcome.errors}
        updated = [bookings[booking_id] for booking_id, _ in targets if booking_id not in failed_ids]
        if updated:
            sync = self._sync_sessions(op_type, updated, requested)
            errors.extend(sync.errors)
            results.append(PhaseResult("sessions", sync.created + sync.removed + sync.updated, list(sync.errors)))

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Batch {op_type.value}: {outcome.processed}/{len(operations)} operations "
            f"in {duration_ms}ms via {outcome.strategy}, {len(errors)} errors"
        )
        return BatchOperationResult(
            operation_type=op_type.value,
            total_operations=len(operations),
            processed_count=outcome.processed,
            errors=errors,
            results=results,
            duration_ms=duration_ms,
            strategy=outcome.strategy,
        )

    def _sync_sessions(
        self,
        op_type: BatchOperationType,
        bookings: List[Booking],
        requested: Dict[int, Any],
    ) -> SyncReport:
        """
        Session side effects of the batch.

        Completed and no-show flags bill the booking when set (unless it is
        cancelled) and stop billing it when cleared. A status change is
        mirrored onto existing sessions and then billability is reconciled.
        """
        if op_type in (BatchOperationType.COMPLETED, BatchOperationType.NO_SHOW):
            desired = {
                b.id: bool(requested[b.id]) and not b.is_cancelled
                for b in bookings
            }
            return self.synchronizer.batch_ensure(bookings, billable=desired)

        report = SyncReport()
        by_status: Dict[BookingStatus, List[int]] = defaultdict(list)
        for booking in bookings:
            by_status[requested[booking.id]].append(booking.id)
        for status, booking_ids in by_status.items():
            _, propagation = self.synchronizer.propagate_to_bookings(booking_ids, {"status": status})
            report.merge(propagation)
        return report.merge(self.synchronizer.batch_ensure(bookings))
