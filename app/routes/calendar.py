# app/routes/calendar.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from app.core.exceptions import AlreadySyncingError, CalendarImportError, VillaNotFoundError
from app.dependencies import get_calendar_service, get_owner_scope, get_villa_service
from app.schemas.calendar import CalendarImportRequest
from app.schemas.sync import SyncResult
from app.services.calendar_service import CalendarService
from app.services.villa_publishing_service import VillaPublishingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/{villa_id}.ics")
async def export_calendar(
    villa_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
    calendar: CalendarService = Depends(get_calendar_service),
):
    """iCal feed of the villa's Confirmed bookings."""
    try:
        await villas.get_villa(villa_id, owner_id=owner_id)
        ical = await calendar.export_calendar(villa_id)
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(
        content=ical,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="villa-{villa_id}.ics"'},
    )


@router.post("/{villa_id}/import", response_model=SyncResult)
async def import_calendar(
    villa_id: int,
    request: CalendarImportRequest,
    owner_id: Optional[str] = Depends(get_owner_scope),
    villas: VillaPublishingService = Depends(get_villa_service),
    calendar: CalendarService = Depends(get_calendar_service),
):
    """Import an iCal feed by URL or as raw text; bookings go through normal conflict checks."""
    try:
        await villas.get_villa(villa_id, owner_id=owner_id)
        if request.url:
            return await calendar.import_feed(villa_id, request.source, request.url)
        return await calendar.import_ical(villa_id, request.source, request.ical)
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CalendarImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AlreadySyncingError as e:
        raise HTTPException(status_code=409, detail=str(e))
