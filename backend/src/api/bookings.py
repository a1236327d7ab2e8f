# pyright: reportMissingTypeStubs=false
"""
Booking API endpoints: recurrence series, single occurrences and batch updates.
"""

import logging
from datetime import date as date_type, time as time_type
from decimal import Decimal
from typing import Any, Dict, List, NoReturn, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user
from auth.permissions import (
    ensure_booking_access,
    ensure_provider_scope,
    ensure_series_access,
    restricted_provider_id,
)
from core.constants import MAX_NOTES_LENGTH, MAX_STRING_LENGTH
from core.database import get_db
from core.exceptions import DomainError
from models.enums import BookingStatus, BookingType, Modality, Periodicity, Weekday
from services import BatchOperationService, BookingService, SeriesService
from shared_types.booking import BatchOperation, BookingTemplate
from api.responses import (
    BookingDeleteResponse,
    BookingResponse,
    BookingUpdateResponse,
    ItemErrorResponse,
    SeriesCreateResponse,
    SeriesDeleteResponse,
    SeriesUpdateResponse,
    SyncReportResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class BookingTemplateRequest(BaseModel):
    """Fields shared by every occurrence of a new series."""
    provider_id: int
    client_id: int
    date: date_type  # First day of the series
    time: Optional[time_type] = None
    location: Optional[str] = Field(None, max_length=MAX_STRING_LENGTH)
    modality: Modality = Modality.IN_PERSON
    type: BookingType = BookingType.SESSION
    value: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    def to_template(self) -> BookingTemplate:
        return BookingTemplate(
            provider_id=self.provider_id,
            client_id=self.client_id,
            start_date=self.date,
            value=self.value,
            time=self.time,
            location=self.location,
            modality=self.modality,
            type=self.type,
            status=self.status,
            notes=self.notes,
        )


class SeriesCreateRequest(BaseModel):
    """Request model for creating a recurrence series."""
    booking: BookingTemplateRequest
    weekdays: List[Weekday]  # 0=Sunday .. 6=Saturday
    periodicity: Periodicity
    end_date: date_type
    recurrence_id: Optional[str] = Field(None, max_length=36)


class BookingChangesRequest(BaseModel):
    """Partial booking update; only fields sent by the client are applied."""
    date: Optional[date_type] = None
    time: Optional[time_type] = None
    location: Optional[str] = Field(None, max_length=MAX_STRING_LENGTH)
    modality: Optional[Modality] = None
    type: Optional[BookingType] = None
    value: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: Optional[BookingStatus] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    session_done: Optional[bool] = None
    no_show: Optional[bool] = None

    @field_validator("date", "modality", "type", "value", "status", "session_done", "no_show")
    @classmethod
    def reject_explicit_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(
            exclude_unset=True,
            include=set(BookingChangesRequest.model_fields),
        )


class SeriesUpdateRequest(BookingChangesRequest):
    """Request model for updating every booking of a series."""
    update_all_in_series: bool = False
    new_weekday: Optional[Weekday] = None
    apply_date_to_all: bool = False  # Without it, each occurrence keeps its own date


class BatchOperationItem(BaseModel):
    id: int
    value: Union[bool, str]  # Flag value, or a booking status for "status" batches


class BatchUpdateRequest(BaseModel):
    """Request model for batch booking updates."""
    type: str  # "session_done", "no_show" or "status"
    operations: List[BatchOperationItem]


def _raise_unexpected(action: str, e: Exception) -> NoReturn:
    logger.exception(f"Failed to {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


# ===== Recurrence series =====

@router.post(
    "/recurrences",
    summary="Create a recurrence series",
    status_code=status.HTTP_201_CREATED,
)
async def create_series(
    request: SeriesCreateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SeriesCreateResponse:
    """Create one booking per date of the weekday/periodicity rule (capped)."""
    ensure_provider_scope(current_user, request.booking.provider_id)
    try:
        result = SeriesService(db).create_series(
            template=request.booking.to_template(),
            weekdays=request.weekdays,
            periodicity=request.periodicity,
            end_date=request.end_date,
            recurrence_id=request.recurrence_id,
        )
        return SeriesCreateResponse(
            message=f"{len(result.created)} recurring bookings created",
            recurrence_id=result.recurrence_id,
            created=[BookingResponse.model_validate(b) for b in result.created],
            failed=[ItemErrorResponse.from_error(e) for e in result.failed],
            metadata=result.metadata,
            sync=SyncReportResponse.from_report(result.sync),
        )
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("create recurrence series", e)


@router.put(
    "/recurrences/{recurrence_id}",
    summary="Update every booking of a series",
)
async def update_series(
    recurrence_id: str,
    request: SeriesUpdateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SeriesUpdateResponse:
    """Apply the same change to every occurrence, keeping each occurrence's date."""
    if not request.update_all_in_series:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="To update a single booking, use PATCH /api/bookings/{booking_id}"
        )
    ensure_series_access(db, current_user, recurrence_id)
    try:
        result = SeriesService(db).update_series(
            recurrence_id,
            request.changes(),
            new_weekday=request.new_weekday,
            apply_date_to_all=request.apply_date_to_all,
        )
        return SeriesUpdateResponse(
            message=f"{len(result.updated)} recurring bookings updated",
            updated=[BookingResponse.model_validate(b) for b in result.updated],
            failed=[ItemErrorResponse.from_error(e) for e in result.failed],
            sessions_updated_count=result.sessions_updated_count,
            sync=SyncReportResponse.from_report(result.sync),
        )
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("update recurrence series", e)


@router.delete(
    "/recurrences/{recurrence_id}",
    summary="Delete every booking of a series",
)
async def delete_series(
    recurrence_id: str,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SeriesDeleteResponse:
    """Delete linked sessions, then every booking of the series."""
    ensure_series_access(db, current_user, recurrence_id)
    try:
        result = SeriesService(db).delete_series(recurrence_id)
        return SeriesDeleteResponse(
            message=f"{result.deleted_bookings_count} recurring bookings deleted",
            deleted_bookings_count=result.deleted_bookings_count,
            deleted_sessions_count=result.deleted_sessions_count,
            errors=[ItemErrorResponse.from_error(e) for e in result.errors],
        )
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("delete recurrence series", e)


# ===== Batch updates =====

@router.post(
    "/batch-update",
    summary="Apply a flag or status change to many bookings",
    responses={207: {"description": "Some operations failed"}},
)
async def batch_update(
    request: BatchUpdateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """200 when every operation succeeded, 207 when some failed."""
    try:
        result = BatchOperationService(db).process(
            [BatchOperation(op.id, op.value) for op in request.operations],
            request.type,
            restrict_to_provider_id=restricted_provider_id(current_user),
        )
        return JSONResponse(status_code=result.http_status, content=result.to_dict())
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("process batch update", e)


# ===== Single occurrence =====

@router.patch(
    "/{booking_id}",
    summary="Update one booking",
)
async def update_booking(
    booking_id: int,
    request: BookingChangesRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingUpdateResponse:
    service = BookingService(db)
    ensure_booking_access(current_user, service.get_booking(booking_id))
    try:
        result = service.update_booking(booking_id, request.changes())
        return BookingUpdateResponse(
            booking=BookingResponse.model_validate(result.primary),
            sync=SyncReportResponse.from_report(result.sync),
        )
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("update booking", e)


@router.delete(
    "/{booking_id}",
    summary="Delete one booking",
)
async def delete_booking(
    booking_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingDeleteResponse:
    service = BookingService(db)
    ensure_booking_access(current_user, service.get_booking(booking_id))
    try:
        result = service.delete_booking(booking_id)
        return BookingDeleteResponse(
            deleted_booking_id=booking_id,
            sync=SyncReportResponse.from_report(result.sync),
        )
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        _raise_unexpected("delete booking", e)
