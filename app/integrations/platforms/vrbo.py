"""
VRBO adapter.

Bearer-token auth, properties addressed by property id, cursor pagination
via ``nextCursor``. VRBO status words are upper case.
"""

import logging
from typing import Any, Dict, List, Optional

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

PLATFORM = PlatformName.VRBO

STATUS_MAP = {
    "CONFIRMED": BookingStatus.CONFIRMED,
    "PENDING": BookingStatus.PENDING,
    "CANCELLED": BookingStatus.CANCELLED,
    "CANCELLED_BY_OWNER": BookingStatus.CANCELLED,
    "CANCELLED_BY_TRAVELER": BookingStatus.CANCELLED,
    "DECLINED": BookingStatus.CANCELLED,
    "EXPIRED": BookingStatus.CANCELLED,
}


def _headers(credentials: CredentialSetData) -> Optional[Dict[str, str]]:
    token = credentials.reveal("access_token")
    if not token:
        return None
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def translate_reservation(record: Dict[str, Any]) -> CanonicalBooking:
    reservation_id = record.get("reservationId")
    if not reservation_id:
        raise TranslationError("Reservation has no reservationId")
    guest = record.get("primaryGuest") or {}
    guest_name = " ".join(p for p in (guest.get("firstName"), guest.get("lastName")) if p) or "Guest"
    total = record.get("totalAmount") or {}
    return CanonicalBooking(
        external_id=str(reservation_id),
        guest_name=guest_name,
        start_date=parse_date(record["arrivalDate"]),
        end_date=parse_date(record["departureDate"]),
        total_fare=parse_amount(total.get("amount") if isinstance(total, dict) else total),
        currency=(total.get("currency") if isinstance(total, dict) else None) or "USD",
        status=map_status(record.get("status"), STATUS_MAP, lowercase=False),
        source=PLATFORM.value,
    )


async def fetch_bookings(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "VRBO access token missing")
    prop = resolve_listing_id(listing_id, credentials, "property_id", PLATFORM.display_name)
    if not prop.ok:
        return prop

    settings = get_settings()
    url = f"{settings.VRBO_API_BASE_URL}/properties/{prop.value}/reservations"
    bookings: List[CanonicalBooking] = []
    cursor = None

    for _ in range(settings.ADAPTER_MAX_PAGES):
        params = {
            "arrivalStartDate": window.start_date.isoformat(),
            "arrivalEndDate": window.end_date.isoformat(),
            "limit": settings.ADAPTER_PAGE_SIZE,
        }
        if cursor:
            params["cursor"] = cursor
        result = await request_json("GET", url, headers=headers, params=params)
        if not result.ok:
            return result

        payload = result.value
        if not isinstance(payload, dict) or not isinstance(payload.get("reservations"), list):
            return Err(AdapterErrorKind.MALFORMED_RESPONSE, "VRBO response has no 'reservations' list")

        page = translate_all(payload["reservations"], translate_reservation)
        if not page.ok:
            return page
        bookings.extend(page.value)

        cursor = payload.get("nextCursor")
        if not cursor:
            break
    else:
        logger.warning(f"VRBO property {prop.value}: stopped after {settings.ADAPTER_MAX_PAGES} pages")

    logger.info(f"VRBO property {prop.value}: fetched {len(bookings)} reservations")
    return Ok(bookings)


async def fetch_calendar(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CalendarBlock]]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "VRBO access token missing")
    prop = resolve_listing_id(listing_id, credentials, "property_id", PLATFORM.display_name)
    if not prop.ok:
        return prop

    result = await request_json(
        "GET",
        f"{get_settings().VRBO_API_BASE_URL}/properties/{prop.value}/availability",
        headers=headers,
        params={"startDate": window.start_date.isoformat(), "endDate": window.end_date.isoformat()},
    )
    if not result.ok:
        return result
    days = result.value.get("availability") if isinstance(result.value, dict) else None
    if not isinstance(days, list):
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "VRBO response has no 'availability' list")
    try:
        return Ok(collapse_unavailable_days(days, date_key="date", available_key="available", reason_key="reason"))
    except (TranslationError, KeyError, ValueError) as e:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Invalid VRBO availability row: {e}")


def _listing_body(payload: ListingPayload) -> Dict[str, Any]:
    return {
        "headline": payload.name,
        "description": payload.description or "",
        "location": {"address": payload.location or ""},
        "amenities": payload.amenities,
        "nightlyRate": {"amount": str(payload.price)} if payload.price is not None else None,
    }


async def publish_listing(credentials: CredentialSetData, payload: ListingPayload) -> AdapterResult[str]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "VRBO access token missing")
    result = await request_json(
        "POST", f"{get_settings().VRBO_API_BASE_URL}/properties",
        headers=headers, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    property_id = result.value.get("propertyId") if isinstance(result.value, dict) else None
    if not property_id:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "VRBO did not return a propertyId")
    return Ok(str(property_id))


async def update_listing(credentials: CredentialSetData, listing_id: str,
                         payload: ListingPayload) -> AdapterResult[str]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "VRBO access token missing")
    result = await request_json(
        "PUT", f"{get_settings().VRBO_API_BASE_URL}/properties/{listing_id}",
        headers=headers, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    return Ok(listing_id)


async def delete_listing(credentials: CredentialSetData, listing_id: str) -> AdapterResult[None]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "VRBO access token missing")
    result = await request_json(
        "DELETE", f"{get_settings().VRBO_API_BASE_URL}/properties/{listing_id}", headers=headers,
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
