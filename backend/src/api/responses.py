"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
the booking, session and financial routers to keep payloads consistent.
"""

from datetime import date as date_type, datetime, time as time_type
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from models.enums import (
    BookingStatus, BookingType, InvoiceStatus, Modality, SessionStatus, SessionType,
)
from shared_types.financial import FinancialPeriodSummary
from shared_types.results import ItemError, SyncReport


class ItemErrorResponse(BaseModel):
    """One failed sub-operation."""
    id: Optional[Union[int, str]] = None
    message: str
    stage: str

    @classmethod
    def from_error(cls, error: ItemError) -> "ItemErrorResponse":
        return cls(id=error.item_id, message=error.message, stage=error.stage)


class SyncReportResponse(BaseModel):
    """Outcome of the session-ledger phase that follows a booking write."""
    status: str  # "ok" or "partial_failure"
    created: int
    updated: int
    removed: int
    errors: List[ItemErrorResponse]

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncReportResponse":
        return cls(
            status=report.status,
            created=report.created,
            updated=report.updated,
            removed=report.removed,
            errors=[ItemErrorResponse.from_error(e) for e in report.errors],
        )


class BookingResponse(BaseModel):
    """Response model for booking information."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    client_id: int
    recurrence_id: Optional[str] = None
    date: date_type
    time: Optional[time_type] = None
    location: Optional[str] = None
    modality: Modality
    type: BookingType
    value: Decimal
    status: BookingStatus
    session_done: bool
    no_show: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionResponse(BaseModel):
    """Response model for billable session information."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    client_id: int
    booking_id: Optional[int] = None
    type: SessionType
    value: Decimal
    override_share: Optional[Decimal] = None
    status: SessionStatus
    payment_done: bool
    share_done: bool
    invoice_status: InvoiceStatus
    occurrence_dates: List[date_type]


class SeriesCreateResponse(BaseModel):
    """Response model for series creation."""
    message: str
    recurrence_id: str
    created: List[BookingResponse]
    failed: List[ItemErrorResponse]
    metadata: Dict[str, Any]  # estimated_count, final_count, truncated, end_date
    sync: SyncReportResponse


class SeriesUpdateResponse(BaseModel):
    """Response model for updating every booking of a series."""
    message: str
    updated: List[BookingResponse]
    failed: List[ItemErrorResponse]
    sessions_updated_count: int
    sync: SyncReportResponse


class SeriesDeleteResponse(BaseModel):
    """Response model for series deletion."""
    message: str
    deleted_bookings_count: int
    deleted_sessions_count: int
    errors: List[ItemErrorResponse]


class BookingUpdateResponse(BaseModel):
    booking: BookingResponse
    sync: SyncReportResponse


class BookingDeleteResponse(BaseModel):
    deleted_booking_id: int
    sync: SyncReportResponse


class FinancialSummaryResponse(BaseModel):
    """Monthly financial summary."""
    period: str
    revenue: Decimal
    payouts: Decimal
    manual_in: Decimal
    manual_out: Decimal
    total_in: Decimal
    total_out: Decimal
    net: Decimal
    session_count: int

    @classmethod
    def from_summary(cls, summary: FinancialPeriodSummary) -> "FinancialSummaryResponse":
        return cls(**summary.to_dict())
