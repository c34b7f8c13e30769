# app/services/villa_publishing_service.py
"""
Villa records and their listings on the platforms.

``published_platforms`` may only name platforms the villa has an active
integration with, so publishing goes through the integration's credentials
and unpublishing (or disconnecting) removes the platform again.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import IntegrationStatus, PlatformName
from app.core.exceptions import IntegrationError, NotConnectedError, VillaNotFoundError
from app.database import async_session
from app.integrations.base import PlatformAdapter
from app.integrations.registry import ADAPTERS, get_adapter
from app.models.platform_integration import PlatformIntegration
from app.models.villa import Villa
from app.schemas.listing import ListingPayload
from app.schemas.villa import VillaCreate
from app.services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


class VillaPublishingService:
    def __init__(self, session_factory: async_sessionmaker = async_session,
                 vault: Optional[CredentialVault] = None,
                 adapters: Optional[Dict[PlatformName, PlatformAdapter]] = None):
        self.session_factory = session_factory
        self.vault = vault or CredentialVault(session_factory)
        self.adapters = ADAPTERS if adapters is None else adapters

    async def create_villa(self, owner_id: str, data: VillaCreate) -> Villa:
        async with self.session_factory() as session:
            villa = Villa(
                owner_id=owner_id,
                name=data.name,
                location=data.location,
                description=data.description,
                price=data.price,
                amenities=list(data.amenities),
                published_platforms=[],
                external_listing_ids={},
                ical_url=data.ical_url or None,
                calendar_sync_enabled=data.calendar_sync_enabled,
            )
            session.add(villa)
            await session.commit()
            await session.refresh(villa)
        logger.info(f"Created villa {villa.id} '{villa.name}' for owner {owner_id}")
        return villa

    async def get_villa(self, villa_id: int, owner_id: Optional[str] = None) -> Villa:
        async with self.session_factory() as session:
            villa = await session.get(Villa, villa_id)
        if villa is None or (owner_id is not None and villa.owner_id != owner_id):
            raise VillaNotFoundError(f"Villa {villa_id} not found")
        return villa

    async def list_villas(self, owner_id: Optional[str] = None) -> List[Villa]:
        stmt = select(Villa).order_by(Villa.id)
        if owner_id is not None:
            stmt = stmt.where(Villa.owner_id == owner_id)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def publish(self, villa_id: int, platform: PlatformName, owner_id: Optional[str] = None) -> Villa:
        """Create the listing, or push the current villa details if it already exists."""
        async with self.session_factory() as session:
            villa, integration = await self._load(session, villa_id, platform, owner_id)
            credentials = await self.vault.get(integration.credential_id)
            adapter = get_adapter(platform, self.adapters)
            payload = ListingPayload.from_villa(villa)

            listing_ids = dict(villa.external_listing_ids or {})
            existing_id = listing_ids.get(platform.value) or integration.listing_id
            if existing_id:
                result = await adapter.update_listing(credentials, existing_id, payload)
            else:
                result = await adapter.publish_listing(credentials, payload)
            if not result.ok:
                raise IntegrationError(
                    f"Publishing villa {villa_id} to {platform.display_name} failed ({result.kind.value}): "
                    f"{CredentialVault.redact(result.message, credentials)}"
                )

            listing_ids[platform.value] = result.value
            villa.external_listing_ids = listing_ids
            if platform.value not in (villa.published_platforms or []):
                villa.published_platforms = list(villa.published_platforms or []) + [platform.value]
            if not integration.listing_id:
                integration.listing_id = result.value
            await session.commit()
            await session.refresh(villa)

        logger.info(f"Villa {villa_id} published to {platform.display_name} as listing {result.value}")
        return villa

    async def unpublish(self, villa_id: int, platform: PlatformName, owner_id: Optional[str] = None) -> Villa:
        async with self.session_factory() as session:
            villa, integration = await self._load(session, villa_id, platform, owner_id)
            listing_ids = dict(villa.external_listing_ids or {})
            listing_id = listing_ids.get(platform.value)

            if listing_id:
                credentials = await self.vault.get(integration.credential_id)
                result = await get_adapter(platform, self.adapters).delete_listing(credentials, listing_id)
                if not result.ok:
                    raise IntegrationError(
                        f"Unpublishing villa {villa_id} from {platform.display_name} failed "
                        f"({result.kind.value}): {CredentialVault.redact(result.message, credentials)}"
                    )
                listing_ids.pop(platform.value)
                villa.external_listing_ids = listing_ids

            villa.published_platforms = [p for p in (villa.published_platforms or []) if p != platform.value]
            await session.commit()
            await session.refresh(villa)

        logger.info(f"Villa {villa_id} unpublished from {platform.display_name}")
        return villa

    async def _load(self, session, villa_id: int, platform: PlatformName, owner_id: Optional[str]):
        villa = await session.get(Villa, villa_id)
        if villa is None or (owner_id is not None and villa.owner_id != owner_id):
            raise VillaNotFoundError(f"Villa {villa_id} not found")
        stmt = select(PlatformIntegration).where(
            PlatformIntegration.villa_id == villa_id,
            PlatformIntegration.platform == platform.value,
            PlatformIntegration.status == IntegrationStatus.ACTIVE.value,
        )
        integration = (await session.execute(stmt)).scalar_one_or_none()
        if integration is None:
            raise NotConnectedError(f"Villa {villa_id} is not connected to {platform.display_name}")
        return villa, integration
