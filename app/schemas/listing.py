from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class ListingPayload(BaseModel):
    """Villa attributes sent to a platform when publishing or updating a listing"""
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    price: Optional[Decimal] = None
    amenities: List[str] = []

    @classmethod
    def from_villa(cls, villa) -> "ListingPayload":
        return cls(
            name=villa.name,
            description=villa.description,
            location=villa.location,
            price=villa.price,
            amenities=list(villa.amenities or []),
        )
