"""
Bulk-then-individual execution strategy.

Every multi-record write in the engine (batch booking updates, session
creation/removal, series propagation) goes through ``run_bulk_with_fallback``:
the whole group is attempted as one statement, and if that fails the
uncommitted work is rolled back and each item is retried on its own with its
own commit. Per-item failures are collected as ``ItemError`` values, never
re-raised, so one bad record cannot abort the rest of the batch.
"""

import logging
from typing import Callable, Hashable, List, Sequence, TypeVar

from sqlalchemy.orm import Session

from shared_types.results import BulkOutcome, ItemError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_bulk_with_fallback(
    db: Session,
    items: Sequence[T],
    bulk: Callable[[Sequence[T]], int],
    single: Callable[[T], int],
    item_key: Callable[[T], Hashable],
    label: str,
    stage: str = "booking",
) -> BulkOutcome:
    """
    Apply ``bulk`` to all items, falling back to ``single`` per item on failure.

    Args:
        db: Session used for commit/rollback around each strategy
        items: Items to process
        bulk: Applies the whole group, returns the number of affected rows
        single: Applies one item, returns the number of affected rows (raises on failure)
        item_key: Identifier reported in ``ItemError.item_id``
        label: Human-readable operation name for logs
        stage: Stage recorded on collected errors

    Returns:
        BulkOutcome with processed item count, affected rows, per-item errors
        and the strategy that produced the result
    """
    if not items:
        return BulkOutcome(strategy="bulk")

    try:
        affected = bulk(items)
        db.commit()
        logger.info(f"{label}: bulk path processed {len(items)} items ({affected} rows)")
        return BulkOutcome(processed=len(items), affected=affected, strategy="bulk")
    except Exception as e:
        db.rollback()
        logger.warning(f"{label}: bulk path failed ({e}), retrying {len(items)} items individually")

    outcome = BulkOutcome(strategy="individual")
    for item in items:
        key = item_key(item)
        try:
            affected = single(item)
            db.commit()
            outcome.processed += 1
            outcome.affected += affected
        except Exception as e:
            db.rollback()
            logger.exception(f"{label}: item {key} failed: {e}")
            outcome.errors.append(ItemError(item_id=key, message=str(e), stage=stage))
    return outcome


def chunked(items: Sequence[T], size: int) -> List[Sequence[T]]:
    """Split a sequence into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]
