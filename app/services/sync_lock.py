# app/services/sync_lock.py
"""
In-process exclusivity for sync runs.

One run per (villa_id, platform) at a time. ``acquire`` never waits: a second
caller gets False straight away and the orchestrator reports AlreadySyncing.
A lock older than the TTL belongs to a run that died without releasing it and
may be taken over.
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

LockKey = Tuple[int, str]


def _key(villa_id: int, platform) -> LockKey:
    return (villa_id, getattr(platform, "value", platform))


class SyncLockRegistry:
    def __init__(self, ttl_seconds: float = 600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> (token, acquired_at)
        self._held: Dict[LockKey, Tuple[str, float]] = {}

    def acquire(self, villa_id: int, platform: str, token: str) -> bool:
        # No await between the check and the write, so this is atomic on one event loop
        key = _key(villa_id, platform)
        now = self._clock()
        held = self._held.get(key)
        if held is not None:
            holder, acquired_at = held
            if now - acquired_at < self.ttl_seconds:
                return False
            logger.warning(
                f"Taking over stale sync lock for villa {villa_id}/{platform} "
                f"held by run {holder} for {now - acquired_at:.0f}s"
            )
        self._held[key] = (token, now)
        return True

    def release(self, villa_id: int, platform: str, token: str) -> None:
        key = _key(villa_id, platform)
        held = self._held.get(key)
        # A run whose lock was taken over must not release the new holder's lock
        if held is not None and held[0] == token:
            del self._held[key]

    def holder(self, villa_id: int, platform: str) -> Optional[str]:
        held = self._held.get(_key(villa_id, platform))
        return held[0] if held else None

    def is_locked(self, villa_id: int, platform: str) -> bool:
        held = self._held.get(_key(villa_id, platform))
        return held is not None and self._clock() - held[1] < self.ttl_seconds
