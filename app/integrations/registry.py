"""
Adapter lookup by platform.

The sync orchestrator receives this mapping (or a test double of it) at
construction time and dispatches on ``PlatformName``.
"""

from typing import Dict, Tuple, Union

from app.core.enums import PlatformName
from app.core.exceptions import IntegrationError
from app.integrations.base import PlatformAdapter
from app.integrations.platforms import airbnb, booking_com, expedia, vrbo

ADAPTERS: Dict[PlatformName, PlatformAdapter] = {
    PlatformName.AIRBNB: airbnb.ADAPTER,
    PlatformName.BOOKING_COM: booking_com.ADAPTER,
    PlatformName.VRBO: vrbo.ADAPTER,
    PlatformName.EXPEDIA: expedia.ADAPTER,
}

# Secret fields each platform needs before a connection is accepted
REQUIRED_SECRETS: Dict[PlatformName, Tuple[str, ...]] = {
    PlatformName.AIRBNB: ("access_token",),
    PlatformName.BOOKING_COM: ("username", "password"),
    PlatformName.VRBO: ("access_token",),
    PlatformName.EXPEDIA: ("api_key", "api_secret"),
}


def get_adapter(platform: Union[PlatformName, str], adapters: Dict[PlatformName, PlatformAdapter] = None) -> PlatformAdapter:
    registry = ADAPTERS if adapters is None else adapters
    try:
        return registry[PlatformName(platform)]
    except (KeyError, ValueError):
        raise IntegrationError(f"No adapter registered for platform '{platform}'")
