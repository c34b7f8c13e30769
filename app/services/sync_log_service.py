# app/services/sync_log_service.py
"""
Sync Log service.

Writes one immutable entry per sync run and answers history and statistics
queries. ``record`` must never fail a sync: entries go into a write-ahead
buffer first and are flushed in a dedicated session. If the database is
unavailable they stay buffered until the next ``flush`` (the scheduler calls
it periodically) instead of being lost.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import IntegrationStatus, SyncRunStatus
from app.database import async_session
from app.models.platform_integration import PlatformIntegration
from app.models.sync_log import SyncLogEntry

logger = logging.getLogger(__name__)


@dataclass
class SyncLogFilters:
    owner_id: Optional[str] = None
    villa_id: Optional[int] = None
    platform: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class SyncLogService:
    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory
        self._pending: Deque[Dict[str, Any]] = deque()
        self._flush_lock = asyncio.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def record(self, entry: Dict[str, Any]) -> bool:
        """
        Append an entry. Returns True when it reached the database now,
        False when it is still buffered. Never raises.
        """
        buffered = dict(entry)
        self._pending.append(buffered)
        try:
            await self.flush()
        except Exception as e:
            # flush() already logs storage errors; this only guards against bugs in it
            logger.error(f"Unexpected error flushing sync log: {e}", exc_info=True)
        return not any(pending is buffered for pending in self._pending)

    async def flush(self) -> int:
        """Write buffered entries in order. Returns how many were written."""
        written = 0
        async with self._flush_lock:
            while self._pending:
                entry = self._pending[0]
                try:
                    async with self.session_factory() as session:
                        session.add(SyncLogEntry(**entry))
                        await session.commit()
                except Exception as e:
                    logger.error(
                        f"Could not write sync log entry for villa {entry.get('villa_id')}/"
                        f"{entry.get('platform')} ({len(self._pending)} buffered): {e}"
                    )
                    break
                self._pending.popleft()
                written += 1
        if written:
            logger.debug(f"Flushed {written} sync log entries")
        return written

    async def history(self, filters: Optional[SyncLogFilters] = None, limit: int = 50,
                      offset: int = 0) -> Tuple[List[SyncLogEntry], int]:
        """Newest first, with the total matching count for pagination."""
        filters = filters or SyncLogFilters()
        conditions = []
        if filters.owner_id is not None:
            conditions.append(SyncLogEntry.owner_id == filters.owner_id)
        if filters.villa_id is not None:
            conditions.append(SyncLogEntry.villa_id == filters.villa_id)
        if filters.platform:
            conditions.append(SyncLogEntry.platform == filters.platform)
        if filters.status:
            conditions.append(SyncLogEntry.status == filters.status)
        if filters.date_from is not None:
            conditions.append(SyncLogEntry.started_at >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(SyncLogEntry.started_at <= filters.date_to)

        async with self.session_factory() as session:
            total = await session.scalar(select(func.count(SyncLogEntry.id)).where(*conditions))
            stmt = (
                select(SyncLogEntry)
                .where(*conditions)
                .order_by(SyncLogEntry.started_at.desc(), SyncLogEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
            entries = (await session.execute(stmt)).scalars().all()
            return list(entries), total or 0

    async def statistics(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        async with self.session_factory() as session:
            integration_stmt = select(PlatformIntegration.status, func.count(PlatformIntegration.id)).group_by(
                PlatformIntegration.status
            )
            log_stmt = select(
                SyncLogEntry.platform,
                SyncLogEntry.status,
                func.count(SyncLogEntry.id),
                func.coalesce(func.sum(SyncLogEntry.new_bookings), 0),
                func.coalesce(func.sum(SyncLogEntry.updated_bookings), 0),
                func.coalesce(func.sum(SyncLogEntry.conflicted_bookings + SyncLogEntry.rejected_bookings), 0),
            ).group_by(SyncLogEntry.platform, SyncLogEntry.status)
            if owner_id is not None:
                integration_stmt = integration_stmt.where(PlatformIntegration.owner_id == owner_id)
                log_stmt = log_stmt.where(SyncLogEntry.owner_id == owner_id)

            integration_rows = (await session.execute(integration_stmt)).all()
            log_rows = (await session.execute(log_stmt)).all()

            error_stmt = select(SyncLogEntry.errors)
            if owner_id is not None:
                error_stmt = error_stmt.where(SyncLogEntry.owner_id == owner_id)
            total_errors = sum(len(errors or []) for errors in (await session.execute(error_stmt)).scalars())

        stats: Dict[str, Any] = {
            "total_integrations": sum(count for _, count in integration_rows),
            "active_integrations": sum(
                count for status, count in integration_rows if status == IntegrationStatus.ACTIVE.value
            ),
            "total_syncs": 0,
            "successful_syncs": 0,
            "partial_syncs": 0,
            "failed_syncs": 0,
            "cancelled_syncs": 0,
            "total_new_bookings": 0,
            "total_updated_bookings": 0,
            "total_conflicts": 0,
            "total_errors": total_errors,
            "pending_log_writes": self.pending_count,
            "platform_stats": {},
        }
        status_keys = {
            SyncRunStatus.SUCCESS.value: "successful_syncs",
            SyncRunStatus.PARTIAL.value: "partial_syncs",
            SyncRunStatus.FAILED.value: "failed_syncs",
            SyncRunStatus.CANCELLED.value: "cancelled_syncs",
        }
        for platform, status, count, new, updated, conflicts in log_rows:
            stats["total_syncs"] += count
            if status in status_keys:
                stats[status_keys[status]] += count
            stats["total_new_bookings"] += int(new)
            stats["total_updated_bookings"] += int(updated)
            stats["total_conflicts"] += int(conflicts)

            platform_stats = stats["platform_stats"].setdefault(
                platform, {"total_syncs": 0, "new_bookings": 0, "updated_bookings": 0, "conflicts": 0, "by_status": {}}
            )
            platform_stats["total_syncs"] += count
            platform_stats["new_bookings"] += int(new)
            platform_stats["updated_bookings"] += int(updated)
            platform_stats["conflicts"] += int(conflicts)
            platform_stats["by_status"][status] = platform_stats["by_status"].get(status, 0) + count

        return stats
