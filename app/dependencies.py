from typing import Optional

from fastapi import Depends, Query, Request

from app.core.security import get_current_username, is_admin
from app.services.booking_service import BookingService
from app.services.booking_sync_service import BookingSyncService
from app.services.calendar_service import CalendarService
from app.services.conflict_service import ConflictService
from app.services.integration_service import IntegrationService
from app.services.villa_publishing_service import VillaPublishingService


def get_owner_scope(
    owner_id: Optional[str] = Query(None, description="Admin only: act on behalf of this owner"),
    username: str = Depends(get_current_username),
) -> Optional[str]:
    """
    Owner whose data a request may touch. Owners are pinned to themselves;
    the admin sees everything unless ``owner_id`` narrows it.
    """
    if is_admin(username):
        return owner_id
    return username


def get_sync_service(request: Request) -> BookingSyncService:
    """The process-wide orchestrator created at startup; its lock registry must be shared."""
    return request.app.state.sync_service


def get_integration_service(sync_service: BookingSyncService = Depends(get_sync_service)) -> IntegrationService:
    return IntegrationService(sync_service.session_factory, sync_service.vault, sync_service.adapters,
                              sync_service.settings)


def get_calendar_service(sync_service: BookingSyncService = Depends(get_sync_service)) -> CalendarService:
    return CalendarService(sync_service, sync_service.session_factory, sync_service.settings)


def get_conflict_service(sync_service: BookingSyncService = Depends(get_sync_service)) -> ConflictService:
    return ConflictService(sync_service.session_factory)


def get_booking_service(sync_service: BookingSyncService = Depends(get_sync_service)) -> BookingService:
    return BookingService(sync_service.session_factory)


def get_villa_service(sync_service: BookingSyncService = Depends(get_sync_service)) -> VillaPublishingService:
    return VillaPublishingService(sync_service.session_factory, sync_service.vault, sync_service.adapters)
