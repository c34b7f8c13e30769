# tests/test_routes/test_calendar_routes.py
import pytest
from icalendar import Calendar

from tests.fixtures.auth import OWNER_1, OWNER_2
from tests.fixtures.factories import bookings_for, store_booking

FEED = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example Channel Manager//EN
BEGIN:VEVENT
UID:stay-77@vrbo.com
DTSTART;VALUE=DATE:20260701
DTEND;VALUE=DATE:20260708
SUMMARY:Reserved: Tom Baker
END:VEVENT
END:VCALENDAR
"""


@pytest.mark.asyncio
async def test_export_calendar(client, session_factory, villa):
    await store_booking(session_factory, villa.id, "2026-05-01", "2026-05-04", source="airbnb", external_id="HM1",
                        guest_name="Ana")

    response = await client.get(f"/calendar/{villa.id}.ics", auth=OWNER_1)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert response.headers["content-disposition"] == f'attachment; filename="villa-{villa.id}.ics"'
    events = Calendar.from_ical(response.text).walk("VEVENT")
    assert len(events) == 1


@pytest.mark.asyncio
async def test_export_is_owner_scoped(client, villa):
    assert (await client.get(f"/calendar/{villa.id}.ics", auth=OWNER_2)).status_code == 404
    assert (await client.get(f"/calendar/{villa.id}.ics")).status_code == 401


@pytest.mark.asyncio
async def test_import_ical_text(client, session_factory, villa):
    response = await client.post(f"/calendar/{villa.id}/import", json={"source": "vrbo", "ical": FEED}, auth=OWNER_1)

    assert response.status_code == 200
    assert response.json()["new_bookings"] == 1
    [booking] = await bookings_for(session_factory, villa.id)
    assert booking.guest_name == "Tom Baker"
    assert booking.external_id == "stay-77@vrbo.com"

    repeat = await client.post(f"/calendar/{villa.id}/import", json={"source": "vrbo", "ical": FEED}, auth=OWNER_1)
    assert repeat.json()["new_bookings"] == 0
    assert repeat.json()["unchanged_bookings"] == 1


@pytest.mark.asyncio
async def test_import_rejects_bad_requests(client, villa):
    garbage = await client.post(f"/calendar/{villa.id}/import",
                                json={"source": "vrbo", "ical": "this is not a calendar"}, auth=OWNER_1)
    both = await client.post(f"/calendar/{villa.id}/import",
                             json={"source": "vrbo", "ical": FEED, "url": "https://example.com/feed.ics"},
                             auth=OWNER_1)
    neither = await client.post(f"/calendar/{villa.id}/import", json={"source": "vrbo"}, auth=OWNER_1)
    foreign = await client.post(f"/calendar/{villa.id}/import", json={"source": "vrbo", "ical": FEED}, auth=OWNER_2)

    assert garbage.status_code == 400
    assert both.status_code == 422
    assert neither.status_code == 422
    assert foreign.status_code == 404
