# tests/unit/services/test_conflict_service.py
import pytest

from app.core.enums import ConflictResolution, ConflictStatus, PlatformName
from app.core.exceptions import ConflictNotFoundError, ValidationError
from app.services.conflict_service import ConflictService
from tests.fixtures.factories import bookings_for, confirmed_overlaps, create_villa, incoming


@pytest.fixture
async def flagged(sync_service, session_factory, villa, airbnb, booking_com, airbnb_integration,
                  booking_com_integration):
    """Airbnb HM1 stored, Booking.com BC1 waiting in the inbox."""
    airbnb.bookings = [incoming("HM1", "2026-03-10", "2026-03-15", guest_name="Ana")]
    await sync_service.sync_platform(villa.id, PlatformName.AIRBNB)
    booking_com.bookings = [incoming("BC1", "2026-03-12", "2026-03-18", source="booking_com", guest_name="Carl")]
    await sync_service.sync_platform(villa.id, PlatformName.BOOKING_COM)

    [conflict] = await ConflictService(session_factory).list_conflicts(villa_id=villa.id)
    return conflict


@pytest.mark.asyncio
async def test_list_conflicts_scopes_by_owner_and_status(session_factory, flagged):
    service = ConflictService(session_factory)

    assert [c.id for c in await service.list_conflicts(owner_id="owner-1")] == [flagged.id]
    assert await service.list_conflicts(owner_id="owner-2") == []
    assert await service.list_conflicts(status=ConflictStatus.RESOLVED.value) == []
    assert len(await service.list_conflicts(status=None)) == 1


@pytest.mark.asyncio
async def test_keep_existing_leaves_calendar_alone(session_factory, villa, flagged):
    service = ConflictService(session_factory)

    resolved = await service.resolve(flagged.id, "keep_existing", note="Airbnb guest paid first")

    assert resolved.status == ConflictStatus.RESOLVED.value
    assert resolved.resolution == ConflictResolution.KEEP_EXISTING.value
    assert resolved.resolution_note == "Airbnb guest paid first"
    assert resolved.resolved_at is not None
    assert [(b.external_id, b.status) for b in await bookings_for(session_factory, villa.id)] == [
        ("HM1", "Confirmed"),
    ]


@pytest.mark.asyncio
async def test_accept_incoming_swaps_the_booking(session_factory, villa, flagged):
    service = ConflictService(session_factory)

    await service.resolve(flagged.id, ConflictResolution.ACCEPT_INCOMING.value)

    stored = {b.external_id: b for b in await bookings_for(session_factory, villa.id)}
    assert stored["HM1"].status == "Cancelled"
    assert stored["BC1"].status == "Confirmed"
    assert stored["BC1"].source == "booking_com"
    assert stored["BC1"].guest_name == "Carl"
    assert confirmed_overlaps(list(stored.values())) == []


@pytest.mark.asyncio
async def test_resolve_rejects_bad_input(session_factory, flagged):
    service = ConflictService(session_factory)

    with pytest.raises(ValidationError):
        await service.resolve(flagged.id, "toss_a_coin")
    with pytest.raises(ConflictNotFoundError):
        await service.resolve(9999, "keep_existing")

    await service.resolve(flagged.id, "keep_existing")
    with pytest.raises(ValidationError, match="already resolved"):
        await service.resolve(flagged.id, "accept_incoming")


@pytest.mark.asyncio
async def test_other_owners_cannot_resolve(session_factory, flagged):
    await create_villa(session_factory, owner_id="owner-2")

    with pytest.raises(ConflictNotFoundError):
        await ConflictService(session_factory).resolve(flagged.id, "keep_existing", owner_id="owner-2")
