# app/models/sync_log.py
"""
Sync Log Model

One immutable row per sync run. Rows are appended by the sync orchestrator
and read by the reporting endpoints; nothing updates them afterwards.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, event

from app.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class SyncLogEntry(Base):
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Groups the entries written by a single sync-all fan-out
    run_id = Column(String(36), nullable=False, index=True)

    owner_id = Column(String(100), nullable=True, index=True)
    villa_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    trigger = Column(String(20), nullable=False, default="manual")
    status = Column(String(20), nullable=False, index=True)  # success, partial, failed, cancelled

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)
    duration_ms = Column(Integer, nullable=False, default=0)

    new_bookings = Column(Integer, nullable=False, default=0)
    updated_bookings = Column(Integer, nullable=False, default=0)
    unchanged_bookings = Column(Integer, nullable=False, default=0)
    conflicted_bookings = Column(Integer, nullable=False, default=0)
    rejected_bookings = Column(Integer, nullable=False, default=0)
    failed_bookings = Column(Integer, nullable=False, default=0)

    # [{"external_id", "start_date", "end_date", "reason", "conflicts_with": {...}}]
    conflicts = Column(JSON, nullable=False, default=list)
    # [{"kind", "message", "external_id"}]
    errors = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self):
        return (f"<SyncLogEntry(id={self.id}, villa={self.villa_id}, platform='{self.platform}', "
                f"status='{self.status}', new={self.new_bookings}, updated={self.updated_bookings})>")


@event.listens_for(SyncLogEntry, "before_update")
def _refuse_sync_log_update(mapper, connection, target):
    raise ValueError("Sync log entries are append-only and cannot be modified")
