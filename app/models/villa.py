# app/models/villa.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Villa(Base):
    """
    A rentable property with exactly one owner.

    ``published_platforms`` lists the platforms the villa is live on and must
    only contain platforms with an active integration for this villa.
    ``external_listing_ids`` maps platform name to that platform's listing id.
    With ``calendar_sync_enabled`` set, the scheduler imports ``ical_url``
    (a channel manager or platform export feed) every calendar sync interval.
    """
    __tablename__ = "villas"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(100), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=True)
    amenities = Column(JSON, nullable=False, default=list)

    published_platforms = Column(JSON, nullable=False, default=list)
    external_listing_ids = Column(JSON, nullable=False, default=dict)

    ical_url = Column(String(1024), nullable=True)
    calendar_sync_enabled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    bookings = relationship("Booking", back_populates="villa")
    integrations = relationship("PlatformIntegration", back_populates="villa")

    def __repr__(self):
        return f"<Villa(id={self.id}, name='{self.name}', owner='{self.owner_id}')>"
