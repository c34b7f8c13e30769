# app/models/booking_conflict.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint

from app.database import Base
from app.core.enums import ConflictStatus


def _utcnow():
    return datetime.now(timezone.utc)


class BookingConflict(Base):
    """
    A flagged incoming booking waiting for an owner's decision.

    The incoming booking is kept as a snapshot rather than a Booking row so it
    never enters the Confirmed set until someone accepts it.
    """
    __tablename__ = "booking_conflicts"
    __table_args__ = (
        UniqueConstraint("villa_id", "source", "external_id", name="uq_booking_conflicts_incoming"),
    )

    id = Column(Integer, primary_key=True)
    villa_id = Column(Integer, ForeignKey("villas.id"), nullable=False, index=True)
    source = Column(String(50), nullable=False)
    external_id = Column(String(255), nullable=False)
    reason = Column(String(50), nullable=False)

    incoming = Column(JSON, nullable=False)
    conflicting_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)

    status = Column(String(20), nullable=False, default=ConflictStatus.OPEN.value, index=True)
    resolution = Column(String(50), nullable=True)
    resolution_note = Column(Text, nullable=True)

    detected_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_seen_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (f"<BookingConflict(id={self.id}, villa={self.villa_id}, source='{self.source}', "
                f"external_id='{self.external_id}', status='{self.status}')>")
