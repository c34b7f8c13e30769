# app/models/platform_integration.py
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.database import Base
from app.core.enums import IntegrationStatus


def _utcnow():
    return datetime.now(timezone.utc)


class PlatformIntegration(Base):
    __tablename__ = "platform_integrations"
    __table_args__ = (
        # One row per (villa, platform); reconnecting reactivates the same row
        UniqueConstraint("villa_id", "platform", name="uq_platform_integrations_villa_platform"),
    )

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(100), nullable=False, index=True)
    villa_id = Column(Integer, ForeignKey("villas.id"), nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    credential_id = Column(Integer, ForeignKey("credential_sets.id"), nullable=False)
    listing_id = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default=IntegrationStatus.PENDING.value, index=True)
    sync_frequency_hours = Column(Integer, nullable=False, default=2)
    auto_sync = Column(Boolean, nullable=False, default=True)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    last_sync_result = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    total_bookings_synced = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    villa = relationship("Villa", back_populates="integrations")

    def __repr__(self):
        return (f"<PlatformIntegration(id={self.id}, villa={self.villa_id}, platform='{self.platform}', "
                f"status='{self.status}')>")
