"""
Base schemas for read models built straight from ORM rows.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from app.core.utils import ensure_aware


class BaseSchema(BaseModel):
    """Reads attributes off SQLAlchemy objects"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True
    )


class TimestampedSchema(BaseSchema):
    """Rows with created_at/updated_at; both are reported in UTC"""
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_aware(value)
