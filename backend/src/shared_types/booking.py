"""
Validated booking input passed from the API layer into the series services.
"""

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, Optional

from models.enums import BookingStatus, BookingType, Modality


@dataclass
class BookingTemplate:
    """Fields copied onto every occurrence of a new series."""
    provider_id: int
    client_id: int
    start_date: date
    value: Decimal
    time: Optional[time] = None
    location: Optional[str] = None
    modality: Modality = Modality.IN_PERSON
    type: BookingType = BookingType.SESSION
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: Optional[str] = None

    def booking_fields(self) -> Dict[str, Any]:
        """Column values for a Booking row, excluding the per-occurrence date."""
        return {
            "provider_id": self.provider_id,
            "client_id": self.client_id,
            "time": self.time,
            "location": self.location,
            "modality": self.modality,
            "type": self.type,
            "value": self.value,
            "status": self.status,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class BatchOperation:
    """One ``{id, value}`` entry of a batch booking update."""
    booking_id: int
    value: Any
