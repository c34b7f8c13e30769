# tests/unit/services/test_scheduler.py
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from app import scheduler as scheduler_module
from app.core.enums import IntegrationStatus, PlatformName
from app.scheduler import (
    calendar_sync_villas,
    create_scheduler,
    due_integrations,
    flush_sync_log,
    get_scheduler_status,
    is_due,
    run_calendar_imports,
    run_due_syncs,
    start_scheduler,
    stop_scheduler,
)
from tests.fixtures.factories import bookings_for, connect_platform, create_villa, incoming, log_entries

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_scheduler(monkeypatch):
    monkeypatch.setattr(scheduler_module, "scheduler", None)
    yield
    if scheduler_module.scheduler is not None and scheduler_module.scheduler.running:
        scheduler_module.scheduler.shutdown(wait=False)


def test_is_due():
    assert is_due(SimpleNamespace(last_sync=None, sync_frequency_hours=2), NOW)
    assert is_due(SimpleNamespace(last_sync=NOW - timedelta(hours=2), sync_frequency_hours=2), NOW)
    assert not is_due(SimpleNamespace(last_sync=NOW - timedelta(minutes=90), sync_frequency_hours=2), NOW)
    # SQLite hands back naive datetimes
    assert is_due(SimpleNamespace(last_sync=datetime(2026, 3, 1, 9, 0), sync_frequency_hours=2), NOW)


@pytest.mark.asyncio
async def test_due_integrations(session_factory):
    villa = await create_villa(session_factory)
    await connect_platform(session_factory, villa, PlatformName.AIRBNB)
    await connect_platform(session_factory, villa, PlatformName.VRBO, last_sync=NOW - timedelta(minutes=10))
    await connect_platform(session_factory, villa, PlatformName.EXPEDIA, auto_sync=False)
    await connect_platform(session_factory, villa, PlatformName.BOOKING_COM, status=IntegrationStatus.ERROR)

    assert await due_integrations(session_factory, NOW) == [(villa.id, "airbnb")]


@pytest.mark.asyncio
async def test_run_due_syncs(sync_service, session_factory, villa, airbnb, booking_com, airbnb_integration,
                             booking_com_integration):
    airbnb.bookings = [incoming("HM1", "2030-03-10", "2030-03-15")]
    # A manual run holding the pair is skipped, not waited for
    sync_service.locks.acquire(villa.id, "booking_com", "manual-run")

    completed = await run_due_syncs(sync_service)

    assert completed == 1
    [entry] = await log_entries(session_factory)
    assert entry.trigger == "scheduled"
    assert entry.platform == "airbnb"
    assert booking_com.calls == []


@pytest.mark.asyncio
async def test_run_due_syncs_with_nothing_due(sync_service):
    assert await run_due_syncs(sync_service) == 0


FEED = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example Channel Manager//EN
BEGIN:VEVENT
UID:feed-1@airbnb.com
DTSTART;VALUE=DATE:20300601
DTEND;VALUE=DATE:20300605
SUMMARY:Reserved: Ana
END:VEVENT
END:VCALENDAR
"""


@pytest.mark.asyncio
async def test_calendar_sync_villas(session_factory):
    enabled = await create_villa(session_factory, ical_url="https://feeds.example.com/a.ics",
                                 calendar_sync_enabled=True)
    await create_villa(session_factory, name="No feed", calendar_sync_enabled=True)
    await create_villa(session_factory, name="Switched off", ical_url="https://feeds.example.com/b.ics")

    assert await calendar_sync_villas(session_factory) == [(enabled.id, "https://feeds.example.com/a.ics")]


@pytest.mark.asyncio
async def test_run_calendar_imports_isolates_failing_feeds(sync_service, session_factory, mocker):
    broken = await create_villa(session_factory, name="Broken feed", ical_url="https://feeds.example.com/gone.ics",
                                calendar_sync_enabled=True)
    working = await create_villa(session_factory, name="Working feed", ical_url="https://feeds.example.com/ok.ics",
                                 calendar_sync_enabled=True)

    def handler(request):
        if request.url.path == "/gone.ics":
            return httpx.Response(404, text="gone")
        return httpx.Response(200, text=FEED, headers={"content-type": "text/calendar; charset=utf-8"})

    mocker.patch(
        "app.integrations.http.build_client",
        side_effect=lambda timeout: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    completed = await run_calendar_imports(sync_service)

    assert completed == 1
    assert await bookings_for(session_factory, broken.id) == []
    [booking] = await bookings_for(session_factory, working.id)
    assert booking.external_id == "feed-1@airbnb.com"
    [entry] = await log_entries(session_factory)
    assert entry.villa_id == working.id
    assert entry.trigger == "ical_import"


@pytest.mark.asyncio
async def test_run_calendar_imports_survives_unexpected_errors(sync_service, session_factory, mocker):
    first = await create_villa(session_factory, ical_url="https://feeds.example.com/1.ics", calendar_sync_enabled=True)
    second = await create_villa(session_factory, ical_url="https://feeds.example.com/2.ics", calendar_sync_enabled=True)
    import_feed = mocker.patch(
        "app.scheduler.CalendarService.import_feed",
        side_effect=[RuntimeError("boom"), SimpleNamespace(status="success", new_bookings=0, conflicts=[])],
    )

    assert await run_calendar_imports(sync_service) == 1
    assert [c.args[0] for c in import_feed.await_args_list] == [first.id, second.id]


@pytest.mark.asyncio
async def test_run_calendar_imports_with_nothing_enabled(sync_service, villa):
    assert await run_calendar_imports(sync_service) == 0


@pytest.mark.asyncio
async def test_flush_sync_log(mocker):
    sync_log = mocker.MagicMock()
    sync_log.pending_count = 0
    sync_log.flush = mocker.AsyncMock(return_value=0)

    assert await flush_sync_log(sync_log) == 0
    sync_log.flush.assert_not_called()

    sync_log.pending_count = 2
    sync_log.flush.return_value = 2
    assert await flush_sync_log(sync_log) == 2
    sync_log.flush.assert_awaited_once()


def test_create_scheduler_jobs(sync_service, settings, mocker):
    mocker.patch("app.scheduler.get_settings", return_value=settings.model_copy(update={"SCHEDULER_ENABLED": True}))

    scheduler = create_scheduler(sync_service)

    assert {job.id for job in scheduler.get_jobs()} == {"run_due_syncs", "run_calendar_imports", "flush_sync_log"}
    calendar_job = scheduler.get_job("run_calendar_imports")
    assert calendar_job.trigger.interval.total_seconds() == settings.CALENDAR_SYNC_INTERVAL_MINUTES * 60
    # Created once per process
    assert create_scheduler(sync_service) is scheduler


def test_disabled_scheduler_still_flushes_the_log(sync_service, settings, mocker):
    mocker.patch("app.scheduler.get_settings", return_value=settings.model_copy(update={"SCHEDULER_ENABLED": False}))

    scheduler = create_scheduler(sync_service)

    assert [job.id for job in scheduler.get_jobs()] == ["flush_sync_log"]


@pytest.mark.asyncio
async def test_scheduler_lifecycle(sync_service, settings, mocker):
    mocker.patch("app.scheduler.get_settings", return_value=settings)
    assert (await get_scheduler_status())["status"] == "not_initialized"

    await start_scheduler(sync_service)
    status = await get_scheduler_status()
    assert status["status"] == "running"
    assert [job["id"] for job in status["jobs"]] == ["flush_sync_log"]
    assert status["jobs"][0]["next_run"] is not None

    await stop_scheduler()
    assert (await get_scheduler_status())["status"] == "not_initialized"
