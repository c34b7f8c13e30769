# tests/test_routes/test_platform_routes.py
import asyncio

import pytest

from app.core.enums import PlatformName
from app.integrations.results import AdapterErrorKind, Err
from tests.fixtures.auth import ADMIN, OWNER_1, OWNER_2
from tests.fixtures.factories import create_villa, incoming, log_entries


@pytest.mark.asyncio
async def test_list_platforms(client, villa, airbnb_integration):
    response = await client.get("/platforms", auth=OWNER_1)

    data = response.json()
    assert [p["name"] for p in data["platforms"]] == ["airbnb", "booking_com", "vrbo", "expedia"]
    assert data["platforms"][1]["required_secrets"] == ["username", "password"]
    assert [i["platform"] for i in data["integrations"]] == ["airbnb"]
    # Only credential references leave the service
    assert "secrets" not in data["integrations"][0]


@pytest.mark.asyncio
async def test_connect_platform(client, villa):
    response = await client.post("/platforms/connect", json={
        "villa_id": villa.id,
        "platform": "vrbo",
        "secrets": {"access_token": "tok-123456"},
        "listing_id": "PROP-1",
    }, auth=OWNER_1)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "active"
    assert data["listing_id"] == "PROP-1"
    assert "tok-123456" not in response.text


@pytest.mark.asyncio
async def test_connect_errors(client, villa):
    missing_secret = await client.post("/platforms/connect", json={
        "villa_id": villa.id, "platform": "expedia", "secrets": {"api_key": "k-123456"},
    }, auth=OWNER_1)
    foreign_villa = await client.post("/platforms/connect", json={
        "villa_id": villa.id, "platform": "vrbo", "secrets": {"access_token": "tok-123456"},
    }, auth=OWNER_2)
    unknown_platform = await client.post("/platforms/connect", json={
        "villa_id": villa.id, "platform": "myspace", "secrets": {},
    }, auth=OWNER_1)

    assert missing_secret.status_code == 400
    assert foreign_villa.status_code == 404
    assert unknown_platform.status_code == 422


@pytest.mark.asyncio
async def test_sync_platform(client, villa, airbnb, airbnb_integration):
    airbnb.bookings = [incoming("HM1", "2026-03-10", "2026-03-15")]

    response = await client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_1)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["new_bookings"] == 1
    assert data["platform"] == "airbnb"


@pytest.mark.asyncio
async def test_sync_reports_failures_in_the_result(client, villa, airbnb, airbnb_integration):
    airbnb.responses.append(Err(AdapterErrorKind.AUTH_FAILURE, "expired token airbnb-token-secret"))

    response = await client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_1)

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["errors"][0]["kind"] == "auth_failure"
    assert "airbnb-token-secret" not in response.text


@pytest.mark.asyncio
async def test_sync_not_connected(client, villa, airbnb_integration):
    own_villa_other_platform = await client.post("/platforms/vrbo/sync", params={"villa_id": villa.id}, auth=OWNER_1)
    someone_elses_villa = await client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_2)
    admin_unknown_villa = await client.post("/platforms/airbnb/sync", params={"villa_id": 999}, auth=ADMIN)

    assert own_villa_other_platform.status_code == 404
    assert someone_elses_villa.status_code == 404
    assert admin_unknown_villa.status_code == 404


@pytest.mark.asyncio
async def test_concurrent_sync_is_rejected_and_can_be_cancelled(client, session_factory, villa, airbnb,
                                                                airbnb_integration):
    airbnb.gate = asyncio.Event()
    first = asyncio.create_task(
        client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_1)
    )
    await airbnb.started.wait()

    second = await client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_1)
    assert second.status_code == 409

    cancel = await client.post("/platforms/airbnb/sync/cancel", params={"villa_id": villa.id}, auth=OWNER_1)
    assert cancel.json()["status"] == "cancelling"

    response = await first
    assert response.status_code == 409
    assert response.json()["detail"] == "Sync was cancelled"
    [entry] = await log_entries(session_factory)
    assert entry.status == "cancelled"

    nothing_running = await client.post("/platforms/airbnb/sync/cancel", params={"villa_id": villa.id}, auth=OWNER_1)
    assert nothing_running.status_code == 404


@pytest.mark.asyncio
async def test_sync_all(client, session_factory, villa, airbnb, booking_com, airbnb_integration,
                        booking_com_integration):
    airbnb.bookings = [incoming("HM1", "2026-03-10", "2026-03-15")]
    booking_com.responses.append(Err(AdapterErrorKind.MALFORMED_RESPONSE, "broken"))

    response = await client.post("/platforms/sync-all", auth=OWNER_1)

    data = response.json()
    assert response.status_code == 200
    assert data["owner_id"] == "owner-1"
    assert data["status"] == "partial"
    assert (data["successful"], data["failed"]) == (1, 1)


@pytest.mark.asyncio
async def test_sync_all_needs_an_owner(client, session_factory):
    await create_villa(session_factory, owner_id="owner-2")

    without_owner = await client.post("/platforms/sync-all", auth=ADMIN)
    for_owner = await client.post("/platforms/sync-all", params={"owner_id": "owner-2"}, auth=ADMIN)

    assert without_owner.status_code == 400
    assert for_owner.json()["owner_id"] == "owner-2"
    assert for_owner.json()["total_platforms"] == 0


@pytest.mark.asyncio
async def test_platform_calendar_and_disconnect(client, villa, airbnb, airbnb_integration):
    calendar = await client.get("/platforms/airbnb/calendar", params={"villa_id": villa.id}, auth=OWNER_1)
    assert calendar.status_code == 200
    assert calendar.json() == []

    foreign = await client.delete(f"/platforms/{airbnb_integration.id}", auth=OWNER_2)
    disconnected = await client.delete(f"/platforms/{airbnb_integration.id}", auth=OWNER_1)
    assert foreign.status_code == 404
    assert disconnected.json()["status"] == "inactive"

    after = await client.post("/platforms/airbnb/sync", params={"villa_id": villa.id}, auth=OWNER_1)
    assert after.status_code == 404
    assert PlatformName.AIRBNB.display_name in after.json()["detail"]
