"""
Capability record every platform adapter provides.

An adapter is a plain value: a frozen dataclass whose fields are the async
functions implementing each capability for one platform. The registry picks
the adapter by ``PlatformName``; nothing subclasses anything.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from app.core.enums import PlatformName
from app.integrations.results import AdapterResult
from app.schemas.booking import CanonicalBooking
from app.schemas.calendar import CalendarBlock
from app.schemas.credentials import CredentialSetData
from app.schemas.listing import ListingPayload
from app.schemas.sync import SyncWindow

FetchBookings = Callable[
    [CredentialSetData, Optional[str], SyncWindow],
    Awaitable[AdapterResult[List[CanonicalBooking]]],
]
FetchCalendar = Callable[
    [CredentialSetData, Optional[str], SyncWindow],
    Awaitable[AdapterResult[List[CalendarBlock]]],
]
PublishListing = Callable[[CredentialSetData, ListingPayload], Awaitable[AdapterResult[str]]]
UpdateListing = Callable[[CredentialSetData, str, ListingPayload], Awaitable[AdapterResult[str]]]
DeleteListing = Callable[[CredentialSetData, str], Awaitable[AdapterResult[None]]]


@dataclass(frozen=True)
class PlatformAdapter:
    platform: PlatformName
    fetch_bookings: FetchBookings
    fetch_calendar: FetchCalendar
    publish_listing: PublishListing
    update_listing: UpdateListing
    delete_listing: DeleteListing
