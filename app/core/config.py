# app/core/config.py

import os
from functools import lru_cache
from typing import Dict, Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Security
    SECRET_KEY: str
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: Optional[str] = None
    # Owner logins as a JSON object {"owner_id": "password"}; an owner only sees their own villas
    OWNER_ACCOUNTS: Dict[str, str] = {}

    # Platform APIs
    AIRBNB_API_BASE_URL: str = "https://api.airbnb.com/v2"
    BOOKING_COM_API_BASE_URL: str = "https://supply-xml.booking.com/api/v1"
    VRBO_API_BASE_URL: str = "https://api.vrbo.com/v1"
    EXPEDIA_API_BASE_URL: str = "https://services.expediapartnercentral.com/v1"
    ADAPTER_TIMEOUT_SECONDS: float = 30.0
    ADAPTER_PAGE_SIZE: int = 50
    ADAPTER_MAX_PAGES: int = 100

    # Sync window and retry policy
    SYNC_GRACE_DAYS: int = 30       # look back for late cancellations
    SYNC_HORIZON_DAYS: int = 365    # how far ahead to request bookings
    SYNC_MAX_RETRIES: int = 3
    SYNC_BACKOFF_BASE_SECONDS: float = 1.0
    SYNC_BACKOFF_MAX_SECONDS: float = 30.0
    SYNC_LOCK_TTL_SECONDS: int = 600
    SYNC_ALL_MAX_CONCURRENT: int = 2

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_INTERVAL_MINUTES: int = 15
    CALENDAR_SYNC_INTERVAL_MINUTES: int = 60

    # iCal
    ICAL_MAX_BYTES: int = 10 * 1024 * 1024
    ICAL_PRODID: str = "-//Villa Booking Platform//Calendar Sync//EN"
    ICAL_UID_DOMAIN: str = "villa-sync.local"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
