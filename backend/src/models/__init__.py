# Package initialization
# Import all models to ensure relationships are properly established
from .provider import Provider
from .client import Client
from .booking import Booking
from .billable_session import BillableSession
from .manual_transaction import ManualTransaction
from .enums import (
    Weekday,
    Periodicity,
    BookingStatus,
    BookingType,
    Modality,
    SessionType,
    SessionStatus,
    InvoiceStatus,
    TransactionKind,
    BatchOperationType,
)

__all__ = [
    "Provider",
    "Client",
    "Booking",
    "BillableSession",
    "ManualTransaction",
    "Weekday",
    "Periodicity",
    "BookingStatus",
    "BookingType",
    "Modality",
    "SessionType",
    "SessionStatus",
    "InvoiceStatus",
    "TransactionKind",
    "BatchOperationType",
]
