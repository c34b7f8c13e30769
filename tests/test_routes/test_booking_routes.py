# tests/test_routes/test_booking_routes.py
import pytest

from tests.fixtures.auth import OWNER_1, OWNER_2
from tests.fixtures.factories import store_booking


def booking_body(villa_id, start, end, **fields):
    body = {"villa_id": villa_id, "guest_name": "Walk-in", "start_date": start, "end_date": end,
            "total_fare": "300.00"}
    body.update(fields)
    return body


@pytest.mark.asyncio
async def test_create_manual_booking(client, villa):
    response = await client.post("/bookings", json=booking_body(villa.id, "2026-09-01", "2026-09-04"), auth=OWNER_1)

    assert response.status_code == 201
    data = response.json()
    assert data["source"] == "manual"
    assert data["status"] == "Confirmed"
    assert data["external_id"] is None


@pytest.mark.asyncio
async def test_double_booking_is_refused(client, session_factory, villa):
    existing = await store_booking(session_factory, villa.id, "2026-09-01", "2026-09-05", source="vrbo",
                                   external_id="V1")

    response = await client.post("/bookings", json=booking_body(villa.id, "2026-09-03", "2026-09-06"), auth=OWNER_1)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["conflicting_booking_id"] == existing.id
    assert detail["reason"] == "cross_platform_conflict"


@pytest.mark.asyncio
async def test_booking_validation(client, villa):
    backwards = await client.post("/bookings", json=booking_body(villa.id, "2026-09-04", "2026-09-01"), auth=OWNER_1)
    foreign = await client.post("/bookings", json=booking_body(villa.id, "2026-09-01", "2026-09-04"), auth=OWNER_2)

    assert backwards.status_code == 422
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_cancel_booking(client, session_factory, villa):
    booking = await store_booking(session_factory, villa.id, "2026-09-01", "2026-09-05")

    foreign = await client.post(f"/bookings/{booking.id}/cancel", auth=OWNER_2)
    cancelled = await client.post(f"/bookings/{booking.id}/cancel", auth=OWNER_1)
    missing = await client.post("/bookings/9999/cancel", auth=OWNER_1)

    assert foreign.status_code == 404
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "Cancelled"
    assert missing.status_code == 404
