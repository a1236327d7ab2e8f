"""
Result types for multi-record operations.

Booking writes and their session side effects are not wrapped in one
database transaction. Instead every multi-record operation returns its
primary outcome together with a ``SyncReport`` describing the ledger phase,
so callers can detect a partial failure and retry the sync phase.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from models.booking import Booking

T = TypeVar("T")

SYNC_STATUS_OK = "ok"
SYNC_STATUS_PARTIAL = "partial_failure"


@dataclass
class ItemError:
    """A single failed sub-operation."""
    item_id: Optional[Union[int, str]]
    message: str
    stage: str = "booking"  # "booking" | "session" | "access"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.item_id, "message": self.message, "stage": self.stage}


@dataclass
class SyncReport:
    """
    Outcome of a session-ledger synchronization pass.

    ``status`` is ``ok`` when every item synced, ``partial_failure`` otherwise.
    """
    created: int = 0
    updated: int = 0
    removed: int = 0
    errors: List[ItemError] = field(default_factory=lambda: [])

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def status(self) -> str:
        return SYNC_STATUS_OK if self.ok else SYNC_STATUS_PARTIAL

    def merge(self, other: "SyncReport") -> "SyncReport":
        """Accumulate another report into this one and return self."""
        self.created += other.created
        self.updated += other.updated
        self.removed += other.removed
        self.errors.extend(other.errors)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "removed": self.removed,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class TwoPhaseResult(Generic[T]):
    """Committed primary write plus the best-effort sync phase that followed it."""
    primary: T
    sync: SyncReport

    @property
    def needs_sync_retry(self) -> bool:
        return not self.sync.ok


@dataclass
class BulkOutcome:
    """Result of a bulk-then-individual execution."""
    processed: int = 0
    affected: int = 0
    errors: List[ItemError] = field(default_factory=lambda: [])
    strategy: str = "bulk"  # "bulk" | "individual"


@dataclass
class RecurrencePlan:
    """Dates produced for a new series after the occurrence cap was applied."""
    dates: List[date]
    estimated_count: int
    final_count: int
    truncated: bool
    end_date: date


@dataclass
class SeriesCreateResult:
    recurrence_id: str
    created: List[Booking]
    failed: List[ItemError]
    plan: RecurrencePlan
    sync: SyncReport

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "estimated_count": self.plan.estimated_count,
            "final_count": self.plan.final_count,
            "truncated": self.plan.truncated,
            "end_date": self.plan.end_date.isoformat(),
        }


@dataclass
class SeriesUpdateResult:
    recurrence_id: str
    updated: List[Booking]
    failed: List[ItemError]
    sessions_updated_count: int
    sync: SyncReport


@dataclass
class SeriesDeleteResult:
    recurrence_id: str
    deleted_bookings_count: int
    deleted_sessions_count: int
    errors: List[ItemError] = field(default_factory=lambda: [])


@dataclass
class PhaseResult:
    """Per-phase counters reported by the batch processor."""
    phase: str  # "bookings" | "sessions"
    processed: int
    errors: List[ItemError] = field(default_factory=lambda: [])
    strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.phase,
            "processed": self.processed,
            "strategy": self.strategy,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class BatchOperationResult:
    operation_type: str
    total_operations: int
    processed_count: int
    errors: List[ItemError]
    results: List[PhaseResult]
    duration_ms: int
    strategy: str

    @property
    def http_status(self) -> int:
        """200 when everything succeeded, 207 (multi-status) on partial failure."""
        return 207 if self.errors else 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": f"{self.processed_count} {self.operation_type} operations processed",
            "processed_count": self.processed_count,
            "total_operations": self.total_operations,
            "errors": [e.to_dict() for e in self.errors],
            "results": [r.to_dict() for r in self.results],
            "metadata": {
                "duration_ms": self.duration_ms,
                "type": self.operation_type,
                "strategy": self.strategy,
            },
        }
