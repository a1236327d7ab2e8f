"""
Standalone session ledger operations.

Sessions entered by hand (not derived from one booking) and the bulk
payment/payout flag updates used by the billing screens.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.constants import MAX_SESSION_OCCURRENCE_DATES
from core.exceptions import NotFoundError, ValidationError
from models import BillableSession, Client, Provider
from models.enums import InvoiceStatus, SessionStatus, SessionType

logger = logging.getLogger(__name__)


class SessionLedgerService:
    """Manual session entry and bulk flag updates."""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        provider_id: int,
        client_id: int,
        session_type: SessionType,
        value: Decimal,
        occurrence_dates: Sequence[date],
        override_share: Optional[Decimal] = None,
        payment_done: bool = False,
        share_done: bool = False,
        invoice_status: InvoiceStatus = InvoiceStatus.NOT_ISSUED,
    ) -> BillableSession:
        """
        Create a session that is not linked to a booking.

        Occurrence dates are stored sorted in the six date slots; the first
        one decides the financial period of the session.

        Raises:
            ValidationError: no dates, too many dates, or a negative amount
            NotFoundError: provider or client does not exist
        """
        dates = sorted(set(occurrence_dates))
        if not dates:
            raise ValidationError("At least one occurrence date is required")
        if len(dates) > MAX_SESSION_OCCURRENCE_DATES:
            raise ValidationError(
                f"A session may list at most {MAX_SESSION_OCCURRENCE_DATES} occurrence dates"
            )
        if value < 0 or (override_share is not None and override_share < 0):
            raise ValidationError("Session amounts must not be negative")

        if not self.db.query(Provider.id).filter(Provider.id == provider_id).first():
            raise NotFoundError(f"Provider {provider_id} not found")
        if not self.db.query(Client.id).filter(Client.id == client_id).first():
            raise NotFoundError(f"Client {client_id} not found")

        session = BillableSession(
            provider_id=provider_id,
            client_id=client_id,
            booking_id=None,
            type=session_type,
            value=value,
            override_share=override_share,
            status=SessionStatus.PAYMENT_PENDING,
            payment_done=payment_done,
            share_done=share_done,
            invoice_status=invoice_status,
        )
        for slot, occurrence in enumerate(dates, start=1):
            setattr(session, f"occurrence_date_{slot}", occurrence)

        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Created standalone session {session.id} with {len(dates)} occurrence dates")
        return session

    def _bulk_set_flag(self, session_ids: Sequence[int], column: str, value: bool) -> int:
        ids: List[int] = list(set(session_ids))
        if not ids:
            raise ValidationError("No session ids provided")
        updated = (
            self.db.query(BillableSession)
            .filter(BillableSession.id.in_(ids))
            .update({column: value}, synchronize_session="fetch")
        )
        self.db.commit()
        logger.info(f"Set {column}={value} on {updated} of {len(ids)} sessions")
        return updated

    def bulk_set_payment_done(self, session_ids: Sequence[int], value: bool) -> int:
        """Mark client payment received (or not) on many sessions. Returns updated count."""
        return self._bulk_set_flag(session_ids, "payment_done", value)

    def bulk_set_share_done(self, session_ids: Sequence[int], value: bool) -> int:
        """Mark provider payout made (or not) on many sessions. Returns updated count."""
        return self._bulk_set_flag(session_ids, "share_done", value)
