# pyright: reportMissingTypeStubs=false
"""
Session ledger API endpoints.
"""

import logging
from datetime import date as date_type
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user, require_staff
from auth.permissions import ensure_booking_access, ensure_provider_scope
from core.constants import MAX_SESSION_OCCURRENCE_DATES
from core.database import get_db
from core.exceptions import DomainError
from models.enums import InvoiceStatus, SessionType
from services import BookingService, SessionLedgerService, SessionSynchronizer
from api.responses import SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionFromBookingRequest(BaseModel):
    booking_id: int


class SessionFromBookingResponse(BaseModel):
    session: SessionResponse
    created: bool


class SessionCreateRequest(BaseModel):
    """Request model for a manually entered session."""
    provider_id: int
    client_id: int
    type: SessionType = SessionType.CARE
    value: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    override_share: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    occurrence_dates: List[date_type] = Field(..., min_length=1, max_length=MAX_SESSION_OCCURRENCE_DATES)
    payment_done: bool = False
    share_done: bool = False
    invoice_status: InvoiceStatus = InvoiceStatus.NOT_ISSUED


class BulkFlagRequest(BaseModel):
    session_ids: List[int]
    value: bool


class BulkFlagResponse(BaseModel):
    updated_count: int


@router.post(
    "/from-booking",
    summary="Create or refresh the session of a booking",
)
async def session_from_booking(
    request: SessionFromBookingRequest,
    response: Response,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionFromBookingResponse:
    """201 when a session was created, 200 when the existing one was refreshed."""
    ensure_booking_access(current_user, BookingService(db).get_booking(request.booking_id))
    session, created = SessionSynchronizer(db).upsert_from_booking(request.booking_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return SessionFromBookingResponse(session=SessionResponse.model_validate(session), created=created)


@router.post(
    "",
    summary="Create a standalone session",
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    request: SessionCreateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionResponse:
    ensure_provider_scope(current_user, request.provider_id)
    try:
        session = SessionLedgerService(db).create_session(
            provider_id=request.provider_id,
            client_id=request.client_id,
            session_type=request.type,
            value=request.value,
            occurrence_dates=request.occurrence_dates,
            override_share=request.override_share,
            payment_done=request.payment_done,
            share_done=request.share_done,
            invoice_status=request.invoice_status,
        )
        return SessionResponse.model_validate(session)
    except (HTTPException, DomainError):
        raise
    except Exception as e:
        logger.exception(f"Failed to create session: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session"
        )


@router.patch(
    "/bulk-payment",
    summary="Set the payment flag on many sessions",
)
async def bulk_payment(
    request: BulkFlagRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BulkFlagResponse:
    updated = SessionLedgerService(db).bulk_set_payment_done(request.session_ids, request.value)
    return BulkFlagResponse(updated_count=updated)


@router.patch(
    "/bulk-share",
    summary="Set the provider payout flag on many sessions",
)
async def bulk_share(
    request: BulkFlagRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BulkFlagResponse:
    updated = SessionLedgerService(db).bulk_set_share_done(request.session_ids, request.value)
    return BulkFlagResponse(updated_count=updated)
