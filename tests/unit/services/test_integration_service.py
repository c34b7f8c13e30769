# tests/unit/services/test_integration_service.py
from datetime import date

import pytest

from app.core.enums import IntegrationStatus, PlatformName
from app.core.exceptions import (
    IntegrationError,
    IntegrationNotFoundError,
    NotConnectedError,
    ValidationError,
    VillaNotFoundError,
)
from app.integrations.results import AdapterErrorKind, Err
from app.schemas.calendar import CalendarBlock
from app.schemas.integration import IntegrationConnect
from app.services.credential_vault import CredentialVault
from app.services.integration_service import IntegrationService
from tests.fixtures.factories import connect_platform, create_villa


@pytest.fixture
def integrations(session_factory, platforms, settings):
    return IntegrationService(
        session_factory,
        vault=CredentialVault(session_factory),
        adapters={platform: fake.adapter for platform, fake in platforms.items()},
        settings=settings,
    )


def connect_request(villa_id, platform=PlatformName.AIRBNB, **fields):
    return IntegrationConnect(
        villa_id=villa_id,
        platform=platform,
        secrets=fields.pop("secrets", {"access_token": "tok-abcdef"}),
        **fields,
    )


@pytest.mark.asyncio
async def test_connect_creates_active_integration(integrations, villa):
    integration = await integrations.connect(connect_request(villa.id, listing_id="HM-LISTING"), owner_id="owner-1")

    assert integration.status == IntegrationStatus.ACTIVE.value
    assert integration.owner_id == "owner-1"
    assert integration.listing_id == "HM-LISTING"
    credentials = await integrations.vault.get(integration.credential_id)
    assert credentials.reveal("access_token") == "tok-abcdef"


@pytest.mark.asyncio
async def test_connect_requires_platform_secrets(integrations, villa):
    with pytest.raises(ValidationError, match="password"):
        await integrations.connect(connect_request(
            villa.id, PlatformName.BOOKING_COM, secrets={"username": "hotelier"},
        ))


@pytest.mark.asyncio
async def test_connect_to_someone_elses_villa(integrations, villa):
    with pytest.raises(VillaNotFoundError):
        await integrations.connect(connect_request(villa.id), owner_id="owner-2")


@pytest.mark.asyncio
async def test_reconnect_reactivates_and_rotates(integrations, villa):
    first = await integrations.connect(connect_request(villa.id))
    await integrations.disconnect(first.id)

    second = await integrations.connect(connect_request(villa.id, secrets={"access_token": "tok-rotated"}))

    assert second.id == first.id
    assert second.status == IntegrationStatus.ACTIVE.value
    assert (await integrations.vault.get(second.credential_id)).reveal("access_token") == "tok-rotated"


@pytest.mark.asyncio
async def test_connect_reuses_published_listing_id(integrations, session_factory):
    villa = await create_villa(session_factory, external_listing_ids={"vrbo": "VRBO-77"})

    integration = await integrations.connect(connect_request(villa.id, PlatformName.VRBO))

    assert integration.listing_id == "VRBO-77"


@pytest.mark.asyncio
async def test_disconnect_unpublishes(integrations, session_factory):
    villa = await create_villa(session_factory, published_platforms=["airbnb", "vrbo"])
    integration = await connect_platform(session_factory, villa, PlatformName.AIRBNB)

    disconnected = await integrations.disconnect(integration.id, owner_id="owner-1")

    assert disconnected.status == IntegrationStatus.INACTIVE.value
    async with session_factory() as session:
        refreshed = await session.get(type(villa), villa.id)
        assert refreshed.published_platforms == ["vrbo"]


@pytest.mark.asyncio
async def test_disconnect_checks_owner(integrations, session_factory, airbnb_integration):
    with pytest.raises(IntegrationNotFoundError):
        await integrations.disconnect(airbnb_integration.id, owner_id="owner-2")
    with pytest.raises(IntegrationNotFoundError):
        await integrations.disconnect(999)


@pytest.mark.asyncio
async def test_list_integrations(integrations, session_factory, villa, airbnb_integration, booking_com_integration):
    other = await create_villa(session_factory, owner_id="owner-2")
    await connect_platform(session_factory, other, PlatformName.VRBO)

    mine = await integrations.list_integrations(owner_id="owner-1")
    assert [i.platform for i in mine] == ["airbnb", "booking_com"]
    assert len(await integrations.list_integrations()) == 3
    assert len(await integrations.list_integrations(villa_id=other.id)) == 1


@pytest.mark.asyncio
async def test_platform_calendar(integrations, villa, airbnb, airbnb_integration):
    airbnb.blocks = [CalendarBlock(start_date=date(2026, 5, 1), end_date=date(2026, 5, 4), reason="reserved")]

    blocks = await integrations.platform_calendar(villa.id, PlatformName.AIRBNB)

    assert blocks == airbnb.blocks
    assert airbnb.calls[0]["listing_id"] == "L-100"


@pytest.mark.asyncio
async def test_platform_calendar_errors(integrations, villa, airbnb, airbnb_integration):
    airbnb.responses.append(Err(AdapterErrorKind.AUTH_FAILURE, "bad token airbnb-token-secret"))

    with pytest.raises(IntegrationError) as exc_info:
        await integrations.platform_calendar(villa.id, PlatformName.AIRBNB)
    assert "airbnb-token-secret" not in str(exc_info.value)

    with pytest.raises(NotConnectedError):
        await integrations.platform_calendar(villa.id, PlatformName.EXPEDIA)
