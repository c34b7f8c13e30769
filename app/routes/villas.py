# app/routes/villas.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.core.enums import BookingStatus, PlatformName
from app.core.exceptions import CredentialNotFoundError, IntegrationError, NotConnectedError, VillaNotFoundError
from app.core.security import get_current_username
from app.dependencies import get_booking_service, get_owner_scope, get_villa_service
from app.schemas.booking import BookingRead
from app.schemas.villa import VillaCreate, VillaRead
from app.services.booking_service import BookingService
from app.services.villa_publishing_service import VillaPublishingService

router = APIRouter(prefix="/villas", tags=["villas"])


@router.post("", response_model=VillaRead, status_code=201)
async def create_villa(
    data: VillaCreate,
    owner_id: Optional[str] = Depends(get_owner_scope),
    username: str = Depends(get_current_username),
    villas: VillaPublishingService = Depends(get_villa_service),
):
    villa = await villas.create_villa(owner_id or username, data)
    return VillaRead.model_validate(villa)


@router.get("", response_model=List[VillaRead])
async def list_villas(
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
):
    return [VillaRead.model_validate(v) for v in await villas.list_villas(owner_id)]


@router.get("/{villa_id}", response_model=VillaRead)
async def get_villa(
    villa_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
):
    try:
        return VillaRead.model_validate(await villas.get_villa(villa_id, owner_id=owner_id))
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{villa_id}/bookings", response_model=List[BookingRead])
async def list_villa_bookings(
    villa_id: int,
    status: Optional[BookingStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    owner_id: Optional[str] = Depends(get_owner_scope),
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        rows = await bookings.list_villa_bookings(
            villa_id, owner_id=owner_id, status=status.value if status else None,
            date_from=date_from, date_to=date_to,
        )
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [BookingRead.model_validate(b) for b in rows]


@router.post("/{villa_id}/publish/{platform}", response_model=VillaRead)
async def publish_villa(
    villa_id: int,
    platform: PlatformName,
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
):
    try:
        villa = await villas.publish(villa_id, platform, owner_id=owner_id)
    except (VillaNotFoundError, NotConnectedError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return VillaRead.model_validate(villa)


@router.delete("/{villa_id}/publish/{platform}", response_model=VillaRead)
async def unpublish_villa(
    villa_id: int,
    platform: PlatformName,
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
):
    try:
        villa = await villas.unpublish(villa_id, platform, owner_id=owner_id)
    except (VillaNotFoundError, NotConnectedError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CredentialNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return VillaRead.model_validate(villa)
