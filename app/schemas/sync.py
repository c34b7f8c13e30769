"""
Schemas describing sync runs: the window requested from a platform, the
per-run result returned to callers and the read models over the sync log.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.schemas.base import BaseSchema


class SyncWindow(BaseModel):
    start_date: date
    end_date: date


class ConflictDetail(BaseModel):
    """One flagged or rejected incoming booking, ready to show to an owner"""
    external_id: Optional[str] = None
    source: str
    start_date: date
    end_date: date
    guest_name: Optional[str] = None
    reason: str
    decision: str
    conflicts_with: Optional[Dict[str, Any]] = None


class SyncErrorDetail(BaseModel):
    kind: str
    message: str
    external_id: Optional[str] = None


class SyncResult(BaseModel):
    run_id: str
    villa_id: int
    platform: str
    status: str
    new_bookings: int = 0
    updated_bookings: int = 0
    unchanged_bookings: int = 0
    conflicts: List[ConflictDetail] = []
    errors: List[SyncErrorDetail] = []
    retries: int = 0
    started_at: datetime
    finished_at: datetime


class PlatformSyncSummary(BaseModel):
    villa_id: int
    platform: str
    status: str
    message: Optional[str] = None
    result: Optional[SyncResult] = None


class SyncAllResult(BaseModel):
    run_id: str
    owner_id: str
    status: str
    total_platforms: int
    successful: int
    partial: int
    failed: int
    skipped: int
    total_new_bookings: int
    total_updated_bookings: int
    total_conflicts: int
    details: List[PlatformSyncSummary] = []


class SyncLogRead(BaseSchema):
    id: int
    run_id: str
    owner_id: Optional[str] = None
    villa_id: int
    platform: str
    trigger: str
    status: str
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    new_bookings: int
    updated_bookings: int
    unchanged_bookings: int
    conflicted_bookings: int
    rejected_bookings: int
    failed_bookings: int
    conflicts: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    created_at: datetime


class SyncHistoryPage(BaseModel):
    logs: List[SyncLogRead]
    total: int
    limit: int
    offset: int


class SyncStatistics(BaseModel):
    total_integrations: int = 0
    active_integrations: int = 0
    total_syncs: int = 0
    successful_syncs: int = 0
    partial_syncs: int = 0
    failed_syncs: int = 0
    cancelled_syncs: int = 0
    total_new_bookings: int = 0
    total_updated_bookings: int = 0
    total_conflicts: int = 0
    total_errors: int = 0
    pending_log_writes: int = 0
    platform_stats: Dict[str, Dict[str, Any]] = {}


class ConflictRead(BaseSchema):
    id: int
    villa_id: int
    source: str
    external_id: str
    reason: str
    incoming: Dict[str, Any]
    conflicting_booking_id: Optional[int] = None
    status: str
    resolution: Optional[str] = None
    resolution_note: Optional[str] = None
    detected_at: datetime
    last_seen_at: datetime
    resolved_at: Optional[datetime] = None


class ConflictResolveRequest(BaseModel):
    resolution: str
    note: Optional[str] = None
