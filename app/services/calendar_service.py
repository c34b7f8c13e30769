# app/services/calendar_service.py
"""
iCal export and import.

Export publishes a villa's Confirmed bookings as all-day VEVENTs so any
platform that accepts a calendar feed can block the dates. Import reads a
feed (by URL or uploaded text), turns each VEVENT into a CanonicalBooking and
hands the batch to the sync orchestrator so it goes through the same
classification, upsert and sync log as an API sync.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import List, Optional

import httpx
from icalendar import Calendar, Event
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.enums import MANUAL_SOURCE, BookingStatus, PlatformName, SyncTrigger
from app.core.exceptions import CalendarImportError, VillaNotFoundError
from app.core.utils import utcnow
from app.database import async_session
from app.integrations import http
from app.models.booking import Booking
from app.models.villa import Villa
from app.schemas.booking import CanonicalBooking
from app.schemas.sync import SyncResult

logger = logging.getLogger(__name__)

ICAL_STATUS_MAP = {
    "CONFIRMED": BookingStatus.CONFIRMED,
    "TENTATIVE": BookingStatus.PENDING,
    "CANCELLED": BookingStatus.CANCELLED,
}

# Summary shapes used by the big platforms' feeds
GUEST_NAME_PATTERNS = [
    re.compile(r"^Reserved[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Booked[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Guest[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Reservation[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Not available\)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Airbnb\)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Booking\.com\)$", re.IGNORECASE),
]

SOURCE_KEYWORDS = [
    ("airbnb", PlatformName.AIRBNB.value),
    ("booking.com", PlatformName.BOOKING_COM.value),
    ("vrbo", PlatformName.VRBO.value),
    ("homeaway", PlatformName.VRBO.value),
    ("expedia", PlatformName.EXPEDIA.value),
]

KNOWN_SOURCES = {p.value for p in PlatformName} | {MANUAL_SOURCE}


def extract_guest_name(summary: Optional[str]) -> str:
    if not summary:
        return "iCal Guest"
    for pattern in GUEST_NAME_PATTERNS:
        match = pattern.match(summary.strip())
        if match:
            return match.group(1).strip()
    return summary.strip()


def _categories(component) -> List[str]:
    value = component.get("categories")
    if value is None:
        return []
    values = value if isinstance(value, list) else [value]
    names = []
    for item in values:
        for cat in getattr(item, "cats", [item]):
            names.append(str(cat).strip())
    return names


def identify_source(summary: str, description: str, categories: List[str], default_source: str) -> str:
    """Categories we wrote ourselves win, then platform names mentioned in the text."""
    for category in categories:
        if category.lower() in KNOWN_SOURCES:
            return category.lower()
    text = f"{summary} {description}".lower()
    for keyword, source in SOURCE_KEYWORDS:
        if keyword in text:
            return source
    for category in categories:
        for keyword, source in SOURCE_KEYWORDS:
            if keyword in category.lower():
                return source
    return default_source


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_ical(ical_text: str, default_source: str) -> List[CanonicalBooking]:
    """
    Translate VEVENTs into canonical bookings.

    Events without DTSTART are skipped; a missing DTEND means a one-night
    stay. Events without a UID get a deterministic id from source and dates
    so re-importing the same feed stays idempotent.

    Raises:
        CalendarImportError: the text is not an iCalendar document
    """
    try:
        calendar = Calendar.from_ical(ical_text)
    except (ValueError, IndexError, KeyError) as e:
        raise CalendarImportError(f"Invalid iCal data: {e}") from e

    if calendar.name != "VCALENDAR":
        raise CalendarImportError("iCal data has no VCALENDAR")

    bookings: List[CanonicalBooking] = []
    for component in calendar.walk("VEVENT"):
        dtstart = component.get("dtstart")
        if dtstart is None:
            logger.warning("Skipping VEVENT without DTSTART")
            continue
        start_date = _as_date(dtstart.dt)
        dtend = component.get("dtend")
        end_date = _as_date(dtend.dt) if dtend is not None else start_date + timedelta(days=1)
        if end_date <= start_date:
            # Same-day datetime events still block the night
            end_date = start_date + timedelta(days=1)

        summary = str(component.get("summary", "") or "")
        description = str(component.get("description", "") or "")
        source = identify_source(summary, description, _categories(component), default_source)
        uid = str(component.get("uid", "") or "").strip()

        bookings.append(CanonicalBooking(
            external_id=uid or f"{source}-{start_date.isoformat()}-{end_date.isoformat()}",
            guest_name=extract_guest_name(summary),
            start_date=start_date,
            end_date=end_date,
            status=ICAL_STATUS_MAP.get(str(component.get("status", "") or "").upper(), BookingStatus.CONFIRMED),
            source=source,
        ))
    return bookings


class CalendarService:
    def __init__(self, sync_service, session_factory: async_sessionmaker = async_session,
                 settings: Optional[Settings] = None):
        self.sync_service = sync_service
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def booking_uid(self, booking: Booking) -> str:
        if booking.external_id:
            return booking.external_id
        return f"{booking.source}-{booking.id}@{self.settings.ICAL_UID_DOMAIN}"

    async def export_calendar(self, villa_id: int) -> str:
        async with self.session_factory() as session:
            villa = await session.get(Villa, villa_id)
            if villa is None:
                raise VillaNotFoundError(f"Villa {villa_id} not found")
            stmt = (
                select(Booking)
                .where(Booking.villa_id == villa_id, Booking.status == BookingStatus.CONFIRMED.value)
                .order_by(Booking.start_date, Booking.id)
            )
            bookings = (await session.execute(stmt)).scalars().all()
            villa_name = villa.name

        calendar = Calendar()
        calendar.add("prodid", self.settings.ICAL_PRODID)
        calendar.add("version", "2.0")
        calendar.add("calscale", "GREGORIAN")
        calendar.add("x-wr-calname", f"{villa_name} - Availability Calendar")
        calendar.add("x-wr-caldesc", f"Booking calendar for {villa_name}")

        stamp = utcnow()
        for booking in bookings:
            event = Event()
            event.add("uid", self.booking_uid(booking))
            event.add("dtstamp", stamp)
            event.add("dtstart", booking.start_date)
            event.add("dtend", booking.end_date)
            event.add("summary", f"Booked: {booking.guest_name or 'Guest'}")
            event.add(
                "description",
                f"Booking from {booking.source}\nStatus: {booking.status}\n"
                f"Total: {booking.total_fare} {booking.currency or 'USD'}",
            )
            event.add("status", "CONFIRMED")
            event.add("transp", "OPAQUE")
            event.add("categories", [booking.source])
            calendar.add_component(event)

        logger.info(f"Exported {len(bookings)} bookings for villa {villa_id}")
        return calendar.to_ical().decode("utf-8")

    async def import_ical(self, villa_id: int, source: str, ical_text: str) -> SyncResult:
        bookings = parse_ical(ical_text, source)
        logger.info(f"Parsed {len(bookings)} events from '{source}' feed for villa {villa_id}")
        return await self.sync_service.import_bookings(villa_id, source, bookings, trigger=SyncTrigger.ICAL_IMPORT)

    async def import_feed(self, villa_id: int, source: str, url: str) -> SyncResult:
        ical_text = await self.fetch_feed(url)
        return await self.import_ical(villa_id, source, ical_text)

    async def fetch_feed(self, url: str) -> str:
        """Download a feed, refusing anything larger than ICAL_MAX_BYTES."""
        limit = self.settings.ICAL_MAX_BYTES
        try:
            async with http.build_client(self.settings.ADAPTER_TIMEOUT_SECONDS) as client:
                async with client.stream("GET", url, follow_redirects=True) as response:
                    if response.status_code >= 400:
                        raise CalendarImportError(f"Feed returned HTTP {response.status_code}")
                    received = bytearray()
                    async for chunk in response.aiter_bytes():
                        received.extend(chunk)
                        if len(received) > limit:
                            raise CalendarImportError(f"Feed is larger than {limit} bytes")
                    encoding = response.encoding or "utf-8"
        except httpx.HTTPError as e:
            raise CalendarImportError(f"Could not fetch feed: {e}") from e
        return bytes(received).decode(encoding, errors="replace")
