# app/services/conflict_resolver.py
"""
Conflict Resolver

Pure decision function for one incoming booking against the villa's current
bookings. No I/O; the sync orchestrator re-reads the Confirmed set before
each call and applies the decision.

Rules, in order:

1. Same source + external id as an existing booking is an update of that
   booking. It never conflicts with itself.
2. An incoming cancellation is always accepted; it frees the dates.
3. Anything not Confirmed is accepted; only Confirmed bookings occupy dates.
4. Bookings accepted earlier in the same batch count as existing ones.
5. Overlap with a Confirmed booking from another source is flagged.
6. Overlap with a booking accepted earlier in the same batch is flagged,
   whatever its source: the later arrival waits for the owner.
7. Overlap with a different Confirmed booking of the same source that was
   stored before this batch is rejected; the platform itself is
   inconsistent.
8. Otherwise accept.

Flags win over rejects so a cross-platform double booking always reaches a
human.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from app.core.enums import BookingStatus, ConflictReason


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    FLAG = "flag"


@dataclass(frozen=True)
class Classification:
    decision: Decision
    reason: Optional[ConflictReason] = None
    conflicts_with: List[Any] = field(default_factory=list)
    # Existing booking this incoming one updates, if any
    matches: Optional[Any] = None

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT


def _status(booking) -> str:
    status = booking.status
    return status.value if isinstance(status, BookingStatus) else str(status)


def _is_confirmed(booking) -> bool:
    return _status(booking) == BookingStatus.CONFIRMED.value


def overlaps(a, b) -> bool:
    """Half-open date ranges [start, end) intersect"""
    return a.start_date < b.end_date and b.start_date < a.end_date


def same_booking(a, b) -> bool:
    return (
        a.external_id is not None
        and a.source == b.source
        and a.external_id == b.external_id
    )


def classify(existing: Sequence[Any], incoming, batch: Sequence[Any] = ()) -> Classification:
    """
    Decide what to do with ``incoming``.

    Args:
        existing: the villa's stored bookings (any status; non-Confirmed ones are ignored for overlap)
        incoming: a CanonicalBooking
        batch: bookings accepted earlier in the same sync run or import, stored or not

    Returns:
        Classification with the decision, the reason for a reject/flag and the bookings it collides with
    """
    match = next((b for b in existing if same_booking(b, incoming)), None)

    if _status(incoming) == BookingStatus.CANCELLED.value or not _is_confirmed(incoming):
        return Classification(Decision.ACCEPT, matches=match)

    def in_batch(booking) -> bool:
        return any(same_booking(booking, b) for b in batch)

    stored = [b for b in existing if b is not match and not same_booking(b, incoming)]
    # Batch entries may already be persisted; the stored row stands in for them
    pending = [b for b in batch if not same_booking(b, incoming) and not any(same_booking(b, e) for e in existing)]

    stored_hits = [b for b in stored if _is_confirmed(b) and overlaps(b, incoming)]
    batch_hits = [b for b in pending if _is_confirmed(b) and overlaps(b, incoming)]
    flagged = [b for b in stored_hits if b.source != incoming.source or in_batch(b)] + batch_hits
    if flagged:
        return Classification(Decision.FLAG, ConflictReason.CROSS_PLATFORM_CONFLICT, flagged, match)

    if stored_hits:
        return Classification(Decision.REJECT, ConflictReason.SOURCE_INCONSISTENCY, stored_hits, match)

    return Classification(Decision.ACCEPT, matches=match)
