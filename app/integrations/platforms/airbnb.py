"""
Airbnb adapter.

Reservations are paged with ``_limit`` / ``_offset`` and report the total in
``metadata.total_count``. Auth is a bearer access token.
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

PLATFORM = PlatformName.AIRBNB

STATUS_MAP = {
    "confirmed": BookingStatus.CONFIRMED,
    "accepted": BookingStatus.CONFIRMED,
    "pending": BookingStatus.PENDING,
    "cancelled": BookingStatus.CANCELLED,
    "declined": BookingStatus.CANCELLED,
}


def _headers(credentials: CredentialSetData) -> Optional[Dict[str, str]]:
    token = credentials.reveal("access_token")
    if not token:
        return None
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def translate_reservation(record: Dict[str, Any]) -> CanonicalBooking:
    guest = record.get("guest") or {}
    pricing = record.get("pricing") or {}
    code = record.get("confirmation_code") or record.get("id")
    if not code:
        raise TranslationError("Reservation has no confirmation code")
    return CanonicalBooking(
        external_id=str(code),
        guest_name=guest.get("full_name") or guest.get("first_name") or "Guest",
        start_date=parse_date(record["start_date"]),
        end_date=parse_date(record["end_date"]),
        total_fare=parse_amount(pricing.get("total_price", record.get("total_price"))),
        currency=pricing.get("currency") or record.get("currency") or "USD",
        status=map_status(record.get("status"), STATUS_MAP),
        source=PLATFORM.value,
    )


async def fetch_bookings(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Airbnb access token missing")
    listing = resolve_listing_id(listing_id, credentials, "listing_id", PLATFORM.display_name)
    if not listing.ok:
        return listing

    settings = get_settings()
    base_url = settings.AIRBNB_API_BASE_URL
    bookings: List[CanonicalBooking] = []
    offset = 0

    for _ in range(settings.ADAPTER_MAX_PAGES):
        result = await request_json(
            "GET",
            f"{base_url}/reservations",
            headers=headers,
            params={
                "listing_id": listing.value,
                "start_date": window.start_date.isoformat(),
                "end_date": window.end_date.isoformat(),
                "_limit": settings.ADAPTER_PAGE_SIZE,
                "_offset": offset,
            },
        )
        if not result.ok:
            return result

        payload = result.value
        if not isinstance(payload, dict) or not isinstance(payload.get("reservations"), list):
            return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Airbnb response has no 'reservations' list")

        page = translate_all(payload["reservations"], translate_reservation)
        if not page.ok:
            return page
        bookings.extend(page.value)

        total = (payload.get("metadata") or {}).get("total_count", 0)
        offset += len(payload["reservations"])
        if not payload["reservations"] or offset >= total:
            break
    else:
        logger.warning(f"Airbnb listing {listing.value}: stopped after {settings.ADAPTER_MAX_PAGES} pages")

    logger.info(f"Airbnb listing {listing.value}: fetched {len(bookings)} reservations")
    return Ok(bookings)


async def fetch_calendar(credentials: CredentialSetData, listing_id: Optional[str],
                         window: SyncWindow) -> AdapterResult[List[CalendarBlock]]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Airbnb access token missing")
    listing = resolve_listing_id(listing_id, credentials, "listing_id", PLATFORM.display_name)
    if not listing.ok:
        return listing

    result = await request_json(
        "GET",
        f"{get_settings().AIRBNB_API_BASE_URL}/calendar_days",
        headers=headers,
        params={
            "listing_id": listing.value,
            "start_date": window.start_date.isoformat(),
            "end_date": window.end_date.isoformat(),
        },
    )
    if not result.ok:
        return result
    days = (result.value or {}).get("calendar_days") if isinstance(result.value, dict) else None
    if not isinstance(days, list):
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Airbnb response has no 'calendar_days' list")
    try:
        return Ok(collapse_unavailable_days(days, date_key="date", available_key="available", reason_key="reason"))
    except (TranslationError, KeyError, ValueError) as e:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Invalid Airbnb calendar day: {e}")


def _listing_body(payload: ListingPayload) -> Dict[str, Any]:
    body = {
        "name": payload.name,
        "description": payload.description or "",
        "city": payload.location or "",
        "amenities": payload.amenities,
    }
    if payload.price is not None:
        body["listing_price"] = str(payload.price)
    return body


def _listing_id_from(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        listing = payload.get("listing") or payload
        if listing.get("id") is not None:
            return str(listing["id"])
    return None


async def publish_listing(credentials: CredentialSetData, payload: ListingPayload) -> AdapterResult[str]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Airbnb access token missing")
    result = await request_json(
        "POST", f"{get_settings().AIRBNB_API_BASE_URL}/listings",
        headers=headers, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    new_id = _listing_id_from(result.value)
    if new_id is None:
        return Err(AdapterErrorKind.MALFORMED_RESPONSE, "Airbnb did not return a listing id")
    return Ok(new_id)


async def update_listing(credentials: CredentialSetData, listing_id: str,
                         payload: ListingPayload) -> AdapterResult[str]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Airbnb access token missing")
    result = await request_json(
        "PUT", f"{get_settings().AIRBNB_API_BASE_URL}/listings/{listing_id}",
        headers=headers, json_body=_listing_body(payload),
    )
    if not result.ok:
        return result
    return Ok(_listing_id_from(result.value) or listing_id)


async def delete_listing(credentials: CredentialSetData, listing_id: str) -> AdapterResult[None]:
    headers = _headers(credentials)
    if headers is None:
        return Err(AdapterErrorKind.AUTH_FAILURE, "Airbnb access token missing")
    result = await request_json(
        "DELETE", f"{get_settings().AIRBNB_API_BASE_URL}/listings/{listing_id}", headers=headers,
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
