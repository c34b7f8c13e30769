# app/routes/sync.py
"""
Sync history, statistics and the conflict inbox.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.enums import ConflictStatus, SyncRunStatus
from app.core.exceptions import ConflictNotFoundError, ValidationError
from app.dependencies import get_conflict_service, get_owner_scope, get_sync_service
from app.schemas.sync import ConflictRead, ConflictResolveRequest, SyncHistoryPage, SyncLogRead, SyncStatistics
from app.services.booking_sync_service import BookingSyncService
from app.services.conflict_service import ConflictService
from app.services.sync_log_service import SyncLogFilters

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/history", response_model=SyncHistoryPage)
async def sync_history(
    villa_id: Optional[int] = None,
    platform: Optional[str] = None,
    status: Optional[SyncRunStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    owner_id: Optional[str] = Depends(get_owner_scope),
    sync_service: BookingSyncService = Depends(get_sync_service),
):
    """Sync log entries, newest first."""
    filters = SyncLogFilters(
        owner_id=owner_id,
        villa_id=villa_id,
        platform=platform,
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
    )
    entries, total = await sync_service.sync_log.history(filters, limit=limit, offset=offset)
    return SyncHistoryPage(
        logs=[SyncLogRead.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/statistics", response_model=SyncStatistics)
async def sync_statistics(
    owner_id: Optional[str] = Depends(get_owner_scope),
    sync_service: BookingSyncService = Depends(get_sync_service),
):
    return SyncStatistics(**await sync_service.sync_log.statistics(owner_id))


@router.get("/conflicts", response_model=List[ConflictRead])
async def list_conflicts(
    villa_id: Optional[int] = None,
    status: Optional[ConflictStatus] = ConflictStatus.OPEN,
    owner_id: Optional[str] = Depends(get_owner_scope),
    conflicts: ConflictService = Depends(get_conflict_service),
):
    """Flagged double bookings waiting for (or past) an owner's decision."""
    rows = await conflicts.list_conflicts(owner_id=owner_id, villa_id=villa_id,
                                          status=status.value if status else None)
    return [ConflictRead.model_validate(r) for r in rows]


@router.post("/conflicts/{conflict_id}/resolve", response_model=ConflictRead)
async def resolve_conflict(
    conflict_id: int,
    request: ConflictResolveRequest,
    owner_id: Optional[str] = Depends(get_owner_scope),
    conflicts: ConflictService = Depends(get_conflict_service),
):
    try:
        conflict = await conflicts.resolve(conflict_id, request.resolution, request.note, owner_id=owner_id)
    except ConflictNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ConflictRead.model_validate(conflict)
