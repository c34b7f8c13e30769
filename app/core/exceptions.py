class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class VillaNotFoundError(BaseServiceError):
    """Raised when a villa is not found."""
    pass

class BookingNotFoundError(BaseServiceError):
    """Raised when a booking is not found."""
    pass

class BookingConflictError(BaseServiceError):
    """Raised when a manual booking would double-book a villa."""

    def __init__(self, message: str, conflicting_booking_id=None, reason=None):
        super().__init__(message)
        self.conflicting_booking_id = conflicting_booking_id
        self.reason = reason

class ConflictNotFoundError(BaseServiceError):
    """Raised when a booking conflict record is not found."""
    pass

class CredentialNotFoundError(BaseServiceError):
    """Raised when a credential reference does not resolve to an active credential set."""
    pass

class IntegrationError(BaseServiceError):
    """Raised when a platform integration cannot be created or used."""
    pass

class IntegrationNotFoundError(IntegrationError):
    """Raised when a platform integration is not found."""
    pass

class SyncError(BaseServiceError):
    """Raised when platform synchronization cannot start."""
    pass

class NotConnectedError(SyncError):
    """Raised when no active integration exists for a villa/platform pair."""
    pass

class AlreadySyncingError(SyncError):
    """Raised when a sync for the same villa/platform pair is already in flight."""
    pass

class CalendarImportError(BaseServiceError):
    """Raised when an iCal feed cannot be fetched or parsed."""
    pass

class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    pass
