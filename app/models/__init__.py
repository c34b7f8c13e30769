from .villa import Villa
from .booking import Booking
from .credential_set import CredentialSet
from .platform_integration import PlatformIntegration
from .sync_log import SyncLogEntry
from .booking_conflict import BookingConflict

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'Villa',
    'Booking',
    'CredentialSet',
    'PlatformIntegration',
    'SyncLogEntry',
    'BookingConflict',
]
