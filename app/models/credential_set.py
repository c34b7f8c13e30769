# app/models/credential_set.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, UniqueConstraint

from app.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CredentialSet(Base):
    """
    Platform-specific secret fields owned by an owner or an admin.

    Integrations reference a credential set by id and never copy its secrets.
    """
    __tablename__ = "credential_sets"
    __table_args__ = (
        UniqueConstraint("platform", "name", "owner_id", name="uq_credential_sets_platform_name_owner"),
    )

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    secrets = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    rotated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        # Never include secrets here
        return f"<CredentialSet(id={self.id}, platform='{self.platform}', name='{self.name}')>"
