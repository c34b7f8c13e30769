# app/models/booking.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from app.database import Base
from app.core.enums import BookingStatus


def _utcnow():
    return datetime.now(timezone.utc)


class Booking(Base):
    """
    Canonical reservation for a villa, whatever platform it came from.

    Dates are half-open: the guest occupies ``start_date`` up to but not
    including ``end_date``. Rows are never deleted; a cancellation only flips
    ``status`` so the history stays auditable.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        # Upsert key for synced bookings; NULL external ids (manual entries) never collide
        UniqueConstraint("villa_id", "source", "external_id", name="uq_bookings_villa_source_external"),
        Index("ix_bookings_villa_status_dates", "villa_id", "status", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True)
    villa_id = Column(Integer, ForeignKey("villas.id"), nullable=False, index=True)

    guest_name = Column(String(255), nullable=False, default="Guest")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_fare = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    # 'manual' or a PlatformName value
    source = Column(String(50), nullable=False, index=True)
    external_id = Column(String(255), nullable=True, index=True)

    notes = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    villa = relationship("Villa", back_populates="bookings")

    def __repr__(self):
        return (f"<Booking(id={self.id}, villa={self.villa_id}, {self.start_date}->{self.end_date}, "
                f"status='{self.status}', source='{self.source}', external_id='{self.external_id}')>")
