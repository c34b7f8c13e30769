from datetime import date
from typing import Optional

from pydantic import BaseModel, model_validator


class CalendarBlock(BaseModel):
    """A run of unavailable nights on a platform calendar, half-open like bookings."""
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CalendarImportRequest(BaseModel):
    """Either a feed URL to fetch or raw iCal text"""
    source: str
    url: Optional[str] = None
    ical: Optional[str] = None

    @model_validator(mode="after")
    def _one_of(self):
        if bool(self.url) == bool(self.ical):
            raise ValueError("Provide exactly one of 'url' or 'ical'")
        return self
