from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import TimestampedSchema


class VillaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    amenities: List[str] = []
    ical_url: Optional[str] = Field(default=None, max_length=1024)
    calendar_sync_enabled: bool = False


class VillaRead(TimestampedSchema):
    id: int
    owner_id: str
    name: str
    location: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    amenities: List[str] = []
    published_platforms: List[str] = []
    external_listing_ids: Dict[str, str] = {}
    ical_url: Optional[str] = None
    calendar_sync_enabled: bool = False
