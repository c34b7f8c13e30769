from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.core.enums import PlatformName
from app.schemas.base import TimestampedSchema


class IntegrationConnect(BaseModel):
    """Payload for connecting a villa to a platform"""
    villa_id: int
    platform: PlatformName
    credential_name: str = "default"
    secrets: Dict[str, str]
    listing_id: Optional[str] = None
    sync_frequency_hours: int = Field(default=2, ge=1, le=168)
    auto_sync: bool = True


class IntegrationRead(TimestampedSchema):
    id: int
    owner_id: str
    villa_id: int
    platform: str
    credential_id: int
    listing_id: Optional[str] = None
    status: str
    sync_frequency_hours: int
    auto_sync: bool
    last_sync: Optional[datetime] = None
    last_sync_result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    total_bookings_synced: int
