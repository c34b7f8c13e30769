"""
Booking.com adapter.

Uses HTTP basic auth with the connectivity username/password and addresses
everything by hotel id. Reservation pages are numbered and the response says
whether another page follows in ``meta.next_page``.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import get_settings
from app.core.enums import BookingStatus, PlatformName
from app.integrations.base import PlatformAdapter
from app.integrations.http import request_json
from app.integrations.platforms.common import (
    TranslationError,
    collapse_unavailable_days,
    map_status,
    parse_amount,
    parse_date,
    resolve_listing_id,
    translate_all,
)
from app.integrations.results import AdapterErrorKind, AdapterResult, Err, Ok
from app.schemas.booking import CanonicalBooking
from app.schemas.calendar import CalendarBlock
from app.schemas.credentials import CredentialSetData
from app.schemas.listing import ListingPayload
from app.schemas.sync import SyncWindow

logger = logging.getLogger(__name__)

PLATFORM = PlatformName.BOOKING_COM

STATUS_MAP = {
    "booked": BookingStatus.CONFIRMED,
    "modified": BookingStatus.CONFIRMED,
    "cancelled": BookingStatus.CANCELLED,
    "cancelled_by_hotel": BookingStatus.CANCELLED,
    "cancelled_by_guest": BookingStatus.CANCELLED,
    "no_show": BookingStatus.CANCELLED,
}

HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _auth(credentials: CredentialSetData) -> Optional[Tuple[str, str]]:
    username = credentials.reveal("username")
    password = credentials.reveal("password")
    if not username or not password:
        return None
    return username, password


def translate_reservation(record: Dict[str, Any]) -> CanonicalBooking:
    reservation_id = record.get("reservation_id") or record.get("id")
    if not reservation_id:
        raise TranslationError("Reservation has no id")
    booker = record.get("booker") or {}
    guest_name = " ".join(
        part for part in (booker.get("first_name"), booker.get("last_name")) if part
    ) or record.get("guest_name") or "Guest"
    return CanonicalBooking(
        external_id=str(reservation_id),
        guest_name=guest_name,
        start_date=parse_date(record["checkin"]),
        end_date=parse_date(record["checkout"]),
        total_fare=parse_amount(record.get("total_price")),
        currency=record.get("currency_code") or "EUR",
        status=map_status(record.get("status"), STATUS_MAP),
        source=PLATFORM.value,
    )


async def fetch_bookings(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Booking.com username or password missing")
    hotel = resolve_listing_id(listing_id, credentials, "hotel_id", PLATFORM.display_name)
    if not hotel.ok:
        return hotel

    settings = get_settings()
    url = f"{settings.BOOKING_COM_API_BASE_URL}/hotels/{hotel.value}/reservations"
    bookings: List[CanonicalBooking] = []
    page_number = 1

    for _ in range(settings.ADAPTER_MAX_PAGES):
        result = await request_json(
            "GET", url, headers=HEADERS, auth=auth,
            params={
                "checkin_from": window.start_date.isoformat(),
                "checkin_to": window.end_date.isoformat(),
                "page": page_number,
                "rows": settings.ADAPTER_PAGE_SIZE,
            },
        )
        if not result.ok:
            return result

        payload = result.value
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Booking.com response has no 'data' list")

        page = translate_all(payload["data"], translate_reservation)
        if not page.ok:
            return page
        bookings.extend(page.value)

        next_page = (payload.get("meta") or {}).get("next_page")
        if not next_page or not payload["data"]:
            break
        page_number = int(next_page)
    else:
        logger.warning(f"Booking.com hotel {hotel.value}: stopped after {settings.ADAPTER_MAX_PAGES} pages")

    logger.info(f"Booking.com hotel {hotel.value}: fetched {len(bookings)} reservations")
    return Ok(bookings)


async def fetch_calendar(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CalendarBlock]]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Booking.com username or password missing")
    hotel = resolve_listing_id(listing_id, credentials, "hotel_id", PLATFORM.display_name)
    if not hotel.ok:
        return hotel

    result = await request_json(
        "GET",
        f"{get_settings().BOOKING_COM_API_BASE_URL}/hotels/{hotel.value}/availability",
        headers=HEADERS, auth=auth,
        params={"date_from": window.start_date.isoformat(), "date_to": window.end_date.isoformat()},
    )
    if not result.ok:
        return result
    days = result.value.get("data") if isinstance(result.value, dict) else None
    if not isinstance(days, list):
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Booking.com availability has no 'data' list")
    try:
        # rooms_to_sell == 0 means closed for the night
        rows = [{"date": d["date"], "open": bool(d.get("rooms_to_sell", 0))} for d in days]
        return Ok(collapse_unavailable_days(rows, date_key="date", available_key="open"))
    except (TranslationError, KeyError, TypeError, ValueError) as e:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Invalid Booking.com availability row: {e}")


def _listing_body(payload: ListingPayload) -> Dict[str, Any]:
    return {
        "property_name": payload.name,
        "description": payload.description or "",
        "address": payload.location or "",
        "facilities": payload.amenities,
        "base_rate": str(payload.price) if payload.price is not None else None,
    }


async def publish_listing(credentials: CredentialSetData, payload: ListingPayload) -> AdapterResult[str]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Booking.com username or password missing")
    result = await request_json(
        "POST", f"{get_settings().BOOKING_COM_API_BASE_URL}/hotels",
        headers=HEADERS, auth=auth, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    hotel_id = result.value.get("hotel_id") if isinstance(result.value, dict) else None
    if not hotel_id:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Booking.com did not return a hotel id")
    return Ok(str(hotel_id))


async def update_listing(credentials: CredentialSetData, listing_id: str,
                         payload: ListingPayload) -> AdapterResult[str]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Booking.com username or password missing")
    result = await request_json(
        "PUT", f"{get_settings().BOOKING_COM_API_BASE_URL}/hotels/{listing_id}",
        headers=HEADERS, auth=auth, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    return Ok(listing_id)


async def delete_listing(credentials: CredentialSetData, listing_id: str) -> AdapterResult[None]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Booking.com username or password missing")
    # Booking.com closes a property rather than deleting it
    result = await request_json(
        "POST", f"{get_settings().BOOKING_COM_API_BASE_URL}/hotels/{listing_id}/close",
        headers=HEADERS, auth=auth,
    )
    if not result.ok:
        return result
    return Ok(None)


ADAPTER = PlatformAdapter(
    platform=PLATFORM,
    fetch_bookings=fetch_bookings,
    fetch_calendar=fetch_calendar,
    publish_listing=publish_listing,
    update_listing=update_listing,
    delete_listing=delete_listing,
)
