"""
Closed enumerations for booking and ledger state.

Values are the strings persisted in the database. Mapping between booking and
session vocabularies lives in ``utils.booking_mappings`` and must cover every
member listed here.
"""

import enum


class Weekday(enum.IntEnum):
    """Day of week, 0=Sunday .. 6=Saturday."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


class Periodicity(str, enum.Enum):
    """Spacing between occurrences of the same weekday in a series."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"

    @property
    def days(self) -> int:
        match self:
            case Periodicity.WEEKLY:
                return 7
            case Periodicity.BIWEEKLY:
                return 14
        raise ValueError(f"Unmapped periodicity: {self!r}")


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"


class BookingType(str, enum.Enum):
    SESSION = "session"
    PARENTAL_GUIDANCE = "parental_guidance"
    SCHOOL_VISIT = "school_visit"
    SUPERVISION = "supervision"
    OTHER = "other"


class Modality(str, enum.Enum):
    IN_PERSON = "in_person"
    ONLINE = "online"


class SessionType(str, enum.Enum):
    CARE = "care"
    GUIDANCE = "guidance"
    SCHOOL_VISIT = "school_visit"
    SUPERVISION = "supervision"


class SessionStatus(str, enum.Enum):
    PAYMENT_PENDING = "payment_pending"
    CANCELLED = "cancelled"


class InvoiceStatus(str, enum.Enum):
    NOT_ISSUED = "not_issued"
    ISSUED = "issued"
    SENT = "sent"


class TransactionKind(str, enum.Enum):
    """Direction of a manual ledger entry."""

    INCOME = "in"
    EXPENSE = "out"


class BatchOperationType(str, enum.Enum):
    """Booking attribute targeted by a batch update request."""

    COMPLETED = "session_done"
    NO_SHOW = "no_show"
    STATUS = "status"


def enum_column_values(enum_cls: type[enum.Enum]) -> list[str]:
    """values_callable for SQLAlchemy Enum columns (persist values, not names)."""
    return [str(member.value) for member in enum_cls]
