"""
Shared enums and constants used across the application.
"""

from enum import Enum


class PlatformName(str, Enum):
    AIRBNB = "airbnb"
    BOOKING_COM = "booking_com"
    VRBO = "vrbo"
    EXPEDIA = "expedia"

    @property
    def display_name(self):
        return {
            "airbnb": "Airbnb",
            "booking_com": "Booking.com",
            "vrbo": "VRBO",
            "expedia": "Expedia",
        }[self.value]


# Bookings entered by an owner carry this source instead of a platform name
MANUAL_SOURCE = "manual"


class BookingStatus(str, Enum):
    """Booking status values used in both models and schemas"""
    CONFIRMED = "Confirmed"
    PENDING = "Pending"
    CANCELLED = "Cancelled"


class IntegrationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    PENDING = "pending"


class SyncRunStatus(str, Enum):
    """Outcome of one sync run as written to the sync log."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SyncTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    ICAL_IMPORT = "ical_import"


class ConflictReason(str, Enum):
    SOURCE_INCONSISTENCY = "source_inconsistency"
    CROSS_PLATFORM_CONFLICT = "cross_platform_conflict"


class ConflictStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class ConflictResolution(str, Enum):
    KEEP_EXISTING = "keep_existing"
    ACCEPT_INCOMING = "accept_incoming"
