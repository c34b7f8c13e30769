# app/routes/platform_sync.py
"""
Platform connections and sync triggers.

A sync runs inside the request, but as its own task registered under
(villa, platform) so that it can be cancelled from another request or when
the caller goes away. Cancellation still leaves a 'cancelled' sync log entry.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.enums import PlatformName
from app.core.exceptions import (
    AlreadySyncingError,
    CredentialNotFoundError,
    IntegrationError,
    IntegrationNotFoundError,
    NotConnectedError,
    ValidationError,
    VillaNotFoundError,
)
from app.dependencies import get_integration_service, get_owner_scope, get_sync_service
from app.integrations.registry import REQUIRED_SECRETS
from app.schemas.calendar import CalendarBlock
from app.schemas.integration import IntegrationConnect, IntegrationRead
from app.schemas.sync import SyncAllResult, SyncResult
from app.services.booking_sync_service import BookingSyncService
from app.services.integration_service import IntegrationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/platforms", tags=["platforms"])

_active_sync_tasks: Dict[Tuple[int, str], asyncio.Task] = {}


async def _ensure_owner(villa_id: int, owner_id: Optional[str], integrations: IntegrationService) -> None:
    if owner_id is None:
        return
    owned = await integrations.list_integrations(owner_id=owner_id, villa_id=villa_id)
    if not owned:
        raise HTTPException(status_code=404, detail=f"Villa {villa_id} is not connected to any platform")


@router.get("")
async def list_platforms(
    villa_id: Optional[int] = None,
    owner_id: Optional[str] = Depends(get_owner_scope),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Supported platforms and the caller's integrations with them."""
    connected = await integrations.list_integrations(owner_id=owner_id, villa_id=villa_id)
    return {
        "platforms": [
            {"name": p.value, "display_name": p.display_name, "required_secrets": list(REQUIRED_SECRETS[p])}
            for p in PlatformName
        ],
        "integrations": [IntegrationRead.model_validate(i) for i in connected],
    }


@router.post("/connect", response_model=IntegrationRead, status_code=201)
async def connect_platform(
    data: IntegrationConnect,
    owner_id: Optional[str] = Depends(get_owner_scope),
    integrations: IntegrationService = Depends(get_integration_service),
):
    try:
        integration = await integrations.connect(data, owner_id=owner_id)
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return IntegrationRead.model_validate(integration)


@router.post("/sync-all", response_model=SyncAllResult)
async def sync_all_platforms(
    max_concurrent: Optional[int] = Query(None, ge=1, le=10),
    owner_id: Optional[str] = Depends(get_owner_scope),
    sync_service: BookingSyncService = Depends(get_sync_service),
):
    if owner_id is None:
        raise HTTPException(status_code=400, detail="owner_id is required")
    return await sync_service.sync_all(owner_id, max_concurrent=max_concurrent)


@router.delete("/{integration_id}", response_model=IntegrationRead)
async def disconnect_platform(
    integration_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    integrations: IntegrationService = Depends(get_integration_service),
):
    try:
        integration = await integrations.disconnect(integration_id, owner_id=owner_id)
    except IntegrationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return IntegrationRead.model_validate(integration)


@router.post("/{platform}/sync", response_model=SyncResult)
async def sync_platform(
    platform: PlatformName,
    villa_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    sync_service: BookingSyncService = Depends(get_sync_service),
    integrations: IntegrationService = Depends(get_integration_service),
):
    await _ensure_owner(villa_id, owner_id, integrations)

    key = (villa_id, platform.value)
    task = asyncio.create_task(sync_service.sync_platform(villa_id, platform))
    _active_sync_tasks.setdefault(key, task)
    try:
        await asyncio.wait({task})
    except asyncio.CancelledError:
        # The request itself went away; stop the sync with it
        task.cancel()
        raise
    finally:
        if _active_sync_tasks.get(key) is task:
            _active_sync_tasks.pop(key, None)

    if task.cancelled():
        raise HTTPException(status_code=409, detail="Sync was cancelled")
    try:
        return task.result()
    except NotConnectedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadySyncingError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{platform}/sync/cancel")
async def cancel_sync(
    platform: PlatformName,
    villa_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    integrations: IntegrationService = Depends(get_integration_service),
):
    await _ensure_owner(villa_id, owner_id, integrations)
    task = _active_sync_tasks.get((villa_id, platform.value))
    if task is None or task.done():
        raise HTTPException(status_code=404, detail="No sync in progress")
    task.cancel()
    logger.info(f"Cancellation requested for sync of villa {villa_id} with {platform.value}")
    return {"status": "cancelling", "villa_id": villa_id, "platform": platform.value}


@router.get("/{platform}/calendar", response_model=List[CalendarBlock])
async def platform_calendar(
    platform: PlatformName,
    villa_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Unavailable date ranges as currently shown on the platform."""
    await _ensure_owner(villa_id, owner_id, integrations)
    try:
        return await integrations.platform_calendar(villa_id, platform)
    except NotConnectedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=str(e))
