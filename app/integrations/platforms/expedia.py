"""
Expedia adapter.

Partner Central credentials are an API key/secret pair sent as basic auth.
Reservation pages are numbered and report ``totalPages``.
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

PLATFORM = PlatformName.EXPEDIA

STATUS_MAP = {
    "confirmed": BookingStatus.CONFIRMED,
    "in_house": BookingStatus.CONFIRMED,
    "checked_out": BookingStatus.CONFIRMED,
    "pending": BookingStatus.PENDING,
    "cancelled": BookingStatus.CANCELLED,
    "canceled": BookingStatus.CANCELLED,
    "no_show": BookingStatus.CANCELLED,
}

HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def _auth(credentials: CredentialSetData) -> Optional[Tuple[str, str]]:
    key = credentials.reveal("api_key")
    secret = credentials.reveal("api_secret")
    if not key or not secret:
        return None
    return key, secret


def translate_reservation(record: Dict[str, Any]) -> CanonicalBooking:
    reservation_id = record.get("reservationId") or record.get("id")
    if not reservation_id:
        raise TranslationError("Reservation has no reservationId")
    guest = record.get("primaryGuest") or {}
    guest_name = " ".join(p for p in (guest.get("firstName"), guest.get("lastName")) if p) or "Guest"
    amounts = record.get("totalAmount") or {}
    return CanonicalBooking(
        external_id=str(reservation_id),
        guest_name=guest_name,
        start_date=parse_date(record["checkInDate"]),
        end_date=parse_date(record["checkOutDate"]),
        total_fare=parse_amount(amounts.get("value")),
        currency=amounts.get("currency") or "USD",
        status=map_status(record.get("status"), STATUS_MAP),
        source=PLATFORM.value,
    )


async def fetch_bookings(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Expedia API key or secret missing")
    prop = resolve_listing_id(listing_id, credentials, "property_id", PLATFORM.display_name)
    if not prop.ok:
        return prop

    settings = get_settings()
    url = f"{settings.EXPEDIA_API_BASE_URL}/properties/{prop.value}/reservations"
    bookings: List[CanonicalBooking] = []
    page_number = 1

    for _ in range(settings.ADAPTER_MAX_PAGES):
        result = await request_json(
            "GET", url, headers=HEADERS, auth=auth,
            params={
                "checkInDateFrom": window.start_date.isoformat(),
                "checkInDateTo": window.end_date.isoformat(),
                "page": page_number,
                "pageSize": settings.ADAPTER_PAGE_SIZE,
            },
        )
        if not result.ok:
            return result

        payload = result.value
        if not isinstance(payload, dict) or not isinstance(payload.get("reservations"), list):
            return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Expedia response has no 'reservations' list")

        page = translate_all(payload["reservations"], translate_reservation)
        if not page.ok:
            return page
        bookings.extend(page.value)

        total_pages = payload.get("totalPages") or 1
        if page_number >= total_pages or not payload["reservations"]:
            break
        page_number += 1
    else:
        logger.warning(f"Expedia property {prop.value}: stopped after {settings.ADAPTER_MAX_PAGES} pages")

    logger.info(f"Expedia property {prop.value}: fetched {len(bookings)} reservations")
    return Ok(bookings)


async def fetch_calendar(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CalendarBlock]]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Expedia API key or secret missing")
    prop = resolve_listing_id(listing_id, credentials, "property_id", PLATFORM.display_name)
    if not prop.ok:
        return prop

    result = await request_json(
        "GET",
        f"{get_settings().EXPEDIA_API_BASE_URL}/properties/{prop.value}/availability",
        headers=HEADERS, auth=auth,
        params={"startDate": window.start_date.isoformat(), "endDate": window.end_date.isoformat()},
    )
    if not result.ok:
        return result
    days = result.value.get("availability") if isinstance(result.value, dict) else None
    if not isinstance(days, list):
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Expedia response has no 'availability' list")
    try:
        rows = [{"date": d["date"], "open": d.get("status") != "closed"} for d in days]
        return Ok(collapse_unavailable_days(rows, date_key="date", available_key="open"))
    except (TranslationError, KeyError, TypeError, ValueError) as e:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Invalid Expedia availability row: {e}")


def _listing_body(payload: ListingPayload) -> Dict[str, Any]:
    return {
        "name": payload.name,
        "description": payload.description or "",
        "address": {"line1": payload.location or ""},
        "amenities": [{"code": amenity} for amenity in payload.amenities],
        "baseRate": str(payload.price) if payload.price is not None else None,
    }


async def publish_listing(credentials: CredentialSetData, payload: ListingPayload) -> AdapterResult[str]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Expedia API key or secret missing")
    result = await request_json(
        "POST", f"{get_settings().EXPEDIA_API_BASE_URL}/properties",
        headers=HEADERS, auth=auth, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    property_id = result.value.get("propertyId") if isinstance(result.value, dict) else None
    if not property_id:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Expedia did not return a propertyId")
    return Ok(str(property_id))


async def update_listing(credentials: CredentialSetData, listing_id: str,
                         payload: ListingPayload) -> AdapterResult[str]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Expedia API key or secret missing")
    result = await request_json(
        "PUT", f"{get_settings().EXPEDIA_API_BASE_URL}/properties/{listing_id}",
        headers=HEADERS, auth=auth, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    return Ok(listing_id)


async def delete_listing(credentials: CredentialSetData, listing_id: str) -> AdapterResult[None]:
    auth = _auth(credentials)
    if auth is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Expedia API key or secret missing")
    result = await request_json(
        "DELETE", f"{get_settings().EXPEDIA_API_BASE_URL}/properties/{listing_id}",
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
