"""
Booking schemas.

``CanonicalBooking`` is the platform-independent shape every adapter
translates into; the orchestrator and the conflict resolver only ever see
this shape for incoming data.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.enums import BookingStatus
from app.schemas.base import BaseSchema, TimestampedSchema


class CanonicalBooking(BaseModel):
    external_id: Optional[str] = None
    guest_name: str = "Guest"
    start_date: date
    end_date: date
    total_fare: Decimal = Decimal("0")
    currency: str = "USD"
    status: BookingStatus = BookingStatus.CONFIRMED
    source: str

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError(
                f"end_date {self.end_date} must be after start_date {self.start_date}"
            )
        return self

    def overlaps(self, other) -> bool:
        """Half-open range overlap with anything that has start_date/end_date."""
        return self.start_date < other.end_date and other.start_date < self.end_date


class BookingCreate(BaseModel):
    """Manual booking entered by an owner"""
    villa_id: int
    guest_name: str = Field(min_length=1)
    start_date: date
    end_date: date
    total_fare: Decimal = Decimal("0")
    currency: str = "USD"
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BookingRead(TimestampedSchema):
    id: int
    villa_id: int
    guest_name: str
    start_date: date
    end_date: date
    total_fare: Decimal
    currency: str
    status: str
    source: str
    external_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None
