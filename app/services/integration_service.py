# app/services/integration_service.py
"""
Platform integrations: connecting a villa to a platform, disconnecting it and
reading a platform's availability calendar through the adapter.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.enums import IntegrationStatus, PlatformName
from app.core.exceptions import (
    IntegrationError,
    IntegrationNotFoundError,
    NotConnectedError,
    ValidationError,
    VillaNotFoundError,
)
from app.core.utils import utcnow
from app.database import async_session
from app.integrations.base import PlatformAdapter
from app.integrations.registry import ADAPTERS, REQUIRED_SECRETS, get_adapter
from app.models.platform_integration import PlatformIntegration
from app.models.villa import Villa
from app.schemas.calendar import CalendarBlock
from app.schemas.integration import IntegrationConnect
from app.services.booking_sync_service import build_sync_window
from app.services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


class IntegrationService:
    def __init__(self, session_factory: async_sessionmaker = async_session,
                 vault: Optional[CredentialVault] = None,
                 adapters: Optional[Dict[PlatformName, PlatformAdapter]] = None,
                 settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.vault = vault or CredentialVault(session_factory)
        self.adapters = ADAPTERS if adapters is None else adapters
        self.settings = settings or get_settings()

    async def connect(self, data: IntegrationConnect, owner_id: Optional[str] = None) -> PlatformIntegration:
        """
        Store the credentials and create (or reactivate) the villa's
        integration with the platform. ``owner_id=None`` skips the ownership
        check (admin).
        """
        missing = [key for key in REQUIRED_SECRETS[data.platform] if not data.secrets.get(key)]
        if missing:
            raise ValidationError(f"{data.platform.display_name} credentials need: {', '.join(missing)}")

        async with self.session_factory() as session:
            villa = await session.get(Villa, data.villa_id)
            if villa is None or (owner_id is not None and villa.owner_id != owner_id):
                raise VillaNotFoundError(f"Villa {data.villa_id} not found")

            credential = await self.vault.store(
                villa.owner_id, data.platform.value, data.credential_name, data.secrets, session=session
            )

            stmt = select(PlatformIntegration).where(
                PlatformIntegration.villa_id == villa.id,
                PlatformIntegration.platform == data.platform.value,
            )
            integration = (await session.execute(stmt)).scalar_one_or_none()
            if integration is None:
                integration = PlatformIntegration(villa_id=villa.id, platform=data.platform.value)
                session.add(integration)

            integration.owner_id = villa.owner_id
            integration.credential_id = credential.id
            integration.listing_id = data.listing_id or (villa.external_listing_ids or {}).get(data.platform.value)
            integration.sync_frequency_hours = data.sync_frequency_hours
            integration.auto_sync = data.auto_sync
            integration.status = IntegrationStatus.ACTIVE.value
            integration.error_message = None

            await session.commit()
            await session.refresh(integration)

        logger.info(f"Connected villa {data.villa_id} to {data.platform.display_name} (integration {integration.id})")
        return integration

    async def disconnect(self, integration_id: int, owner_id: Optional[str] = None) -> PlatformIntegration:
        """Deactivate the integration and unpublish the platform from the villa's published list."""
        async with self.session_factory() as session:
            integration = await session.get(PlatformIntegration, integration_id)
            if integration is None or (owner_id is not None and integration.owner_id != owner_id):
                raise IntegrationNotFoundError(f"Integration {integration_id} not found")

            integration.status = IntegrationStatus.INACTIVE.value
            villa = await session.get(Villa, integration.villa_id)
            if villa is not None and integration.platform in (villa.published_platforms or []):
                # Reassign so the JSON column is marked dirty
                villa.published_platforms = [p for p in villa.published_platforms if p != integration.platform]

            await session.commit()

        logger.info(f"Disconnected integration {integration_id} ({integration.platform}, villa {integration.villa_id})")
        return integration

    async def list_integrations(self, owner_id: Optional[str] = None,
                                villa_id: Optional[int] = None) -> List[PlatformIntegration]:
        stmt = select(PlatformIntegration).order_by(PlatformIntegration.villa_id, PlatformIntegration.platform)
        if owner_id is not None:
            stmt = stmt.where(PlatformIntegration.owner_id == owner_id)
        if villa_id is not None:
            stmt = stmt.where(PlatformIntegration.villa_id == villa_id)
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def get_active(self, villa_id: int, platform: PlatformName) -> PlatformIntegration:
        async with self.session_factory() as session:
            stmt = select(PlatformIntegration).where(
                PlatformIntegration.villa_id == villa_id,
                PlatformIntegration.platform == platform.value,
                PlatformIntegration.status == IntegrationStatus.ACTIVE.value,
            )
            integration = (await session.execute(stmt)).scalar_one_or_none()
        if integration is None:
            raise NotConnectedError(f"Villa {villa_id} is not connected to {platform.display_name}")
        return integration

    async def platform_calendar(self, villa_id: int, platform: PlatformName) -> List[CalendarBlock]:
        """Blocked date ranges as the platform currently sees them."""
        integration = await self.get_active(villa_id, platform)
        credentials = await self.vault.get(integration.credential_id)
        window = build_sync_window(utcnow().date(), self.settings)
        result = await get_adapter(platform, self.adapters).fetch_calendar(credentials, integration.listing_id, window)
        if not result.ok:
            raise IntegrationError(
                f"{platform.display_name} calendar unavailable ({result.kind.value}): "
                f"{CredentialVault.redact(result.message, credentials)}"
            )
        return result.value
