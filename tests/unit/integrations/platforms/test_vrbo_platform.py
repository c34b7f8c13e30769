# tests/unit/integrations/platforms/test_vrbo_platform.py
from datetime import date
from decimal import Decimal

import pytest

from app.core.enums import BookingStatus, PlatformName
from app.integrations.platforms import vrbo
from app.integrations.results import AdapterErrorKind
from app.schemas.listing import ListingPayload


def reservation(reservation_id, arrival, departure, status="CONFIRMED"):
    return {
        "reservationId": reservation_id,
        "arrivalDate": arrival,
        "departureDate": departure,
        "status": status,
        "primaryGuest": {"firstName": "Dana", "lastName": "Reyes"},
        "totalAmount": {"amount": 640, "currency": "USD"},
    }


@pytest.fixture
def credentials(credentials_for):
    return credentials_for(PlatformName.VRBO)


@pytest.mark.asyncio
async def test_fetch_bookings_follows_cursor(platform_api, credentials, window):
    platform_api.reply(200, {
        "reservations": [reservation("V-1", "2026-06-01", "2026-06-06")],
        "nextCursor": "abc",
    })
    platform_api.reply(200, {
        "reservations": [reservation("V-2", "2026-07-01", "2026-07-03", status="CANCELLED_BY_TRAVELER")],
    })

    result = await vrbo.fetch_bookings(credentials, "PROP-1", window)

    first, second = result.value
    assert first.external_id == "V-1"
    assert first.guest_name == "Dana Reyes"
    assert first.total_fare == Decimal("640")
    assert (first.start_date, first.end_date) == (date(2026, 6, 1), date(2026, 6, 6))
    assert first.source == "vrbo"
    assert second.status is BookingStatus.CANCELLED

    assert "cursor" not in platform_api.params(0)
    assert platform_api.params(1)["cursor"] == "abc"
    assert platform_api.requests[0].url.path == "/v1/properties/PROP-1/reservations"
    assert platform_api.requests[0].headers["Authorization"] == "Bearer vrbo-token-secret"


@pytest.mark.asyncio
async def test_status_words_are_case_sensitive(platform_api, credentials, window):
    platform_api.reply(200, {"reservations": [reservation("V-1", "2026-06-01", "2026-06-06", status="confirmed")]})

    result = await vrbo.fetch_bookings(credentials, "PROP-1", window)

    assert result.value[0].status is BookingStatus.PENDING


@pytest.mark.asyncio
async def test_rate_limit_passes_through(platform_api, credentials, window):
    platform_api.reply(429, headers={"Retry-After": "30"})

    result = await vrbo.fetch_bookings(credentials, "PROP-1", window)

    assert result.kind is AdapterErrorKind.RATE_LIMITED


@pytest.mark.asyncio
async def test_fetch_calendar(platform_api, credentials, window):
    platform_api.reply(200, {"availability": [
        {"date": "2026-06-01", "available": False, "reason": "booked"},
        {"date": "2026-06-02", "available": True},
    ]})

    result = await vrbo.fetch_calendar(credentials, "PROP-1", window)

    [block] = result.value
    assert (block.start_date, block.end_date, block.reason) == (date(2026, 6, 1), date(2026, 6, 2), "booked")


@pytest.mark.asyncio
async def test_publish_listing(platform_api, credentials):
    platform_api.reply(201, {"propertyId": "PROP-9"})

    result = await vrbo.publish_listing(credentials, ListingPayload(name="Casa Mar", price=Decimal("199")))

    assert result.value == "PROP-9"
    assert platform_api.body()["headline"] == "Casa Mar"
    assert platform_api.body()["nightlyRate"] == {"amount": "199"}
