# tests/unit/services/test_conflict_resolver.py
from types import SimpleNamespace

from app.core.enums import BookingStatus, ConflictReason
from app.services.conflict_resolver import Decision, classify, overlaps, same_booking
from tests.fixtures.factories import as_date, incoming


def stored(id, start, end, source="airbnb", external_id=None, status=BookingStatus.CONFIRMED):
    """Stand-in for a Booking row: string status like the ORM column."""
    return SimpleNamespace(
        id=id,
        source=source,
        external_id=external_id,
        start_date=as_date(start),
        end_date=as_date(end),
        status=status.value,
    )


def test_overlap_is_half_open():
    a = incoming("A", "2026-03-10", "2026-03-15")
    assert overlaps(a, incoming("B", "2026-03-14", "2026-03-16"))
    # Checkout day is free for the next arrival
    assert not overlaps(a, incoming("B", "2026-03-15", "2026-03-18"))
    assert not overlaps(a, incoming("B", "2026-03-05", "2026-03-10"))


def test_same_booking_needs_an_external_id():
    assert same_booking(incoming("A", "2026-03-10", "2026-03-12"), incoming("A", "2026-04-01", "2026-04-03"))
    assert not same_booking(incoming(None, "2026-03-10", "2026-03-12", source="manual"),
                            incoming(None, "2026-03-10", "2026-03-12", source="manual"))
    assert not same_booking(incoming("A", "2026-03-10", "2026-03-12", source="airbnb"),
                            incoming("A", "2026-03-10", "2026-03-12", source="vrbo"))


def test_free_dates_are_accepted():
    existing = [stored(1, "2026-03-01", "2026-03-05")]
    result = classify(existing, incoming("NEW", "2026-03-05", "2026-03-09", source="booking_com"))

    assert result.decision is Decision.ACCEPT
    assert result.accepted
    assert result.matches is None


def test_cross_platform_overlap_is_flagged():
    airbnb_stay = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    result = classify([airbnb_stay], incoming("BC1", "2026-03-12", "2026-03-18", source="booking_com"))

    assert result.decision is Decision.FLAG
    assert result.reason is ConflictReason.CROSS_PLATFORM_CONFLICT
    assert result.conflicts_with == [airbnb_stay]


def test_manual_booking_counts_as_another_source():
    manual = stored(1, "2026-03-10", "2026-03-15", source="manual")
    result = classify([manual], incoming("HM2", "2026-03-11", "2026-03-12"))

    assert result.decision is Decision.FLAG


def test_same_source_overlap_is_rejected():
    first = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    result = classify([first], incoming("HM2", "2026-03-12", "2026-03-14", source="airbnb"))

    assert result.decision is Decision.REJECT
    assert result.reason is ConflictReason.SOURCE_INCONSISTENCY


def test_flag_wins_over_reject():
    same_source = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    other_source = stored(2, "2026-03-15", "2026-03-20", source="vrbo", external_id="V1")
    result = classify([same_source, other_source], incoming("HM2", "2026-03-12", "2026-03-17"))

    assert result.decision is Decision.FLAG
    assert result.conflicts_with == [other_source]


def test_update_of_existing_booking_never_conflicts_with_itself():
    original = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    result = classify([original], incoming("HM1", "2026-03-11", "2026-03-16"))

    assert result.decision is Decision.ACCEPT
    assert result.matches is original


def test_cancellation_is_always_accepted():
    other = stored(1, "2026-03-10", "2026-03-15", source="vrbo", external_id="V1")
    mine = stored(2, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1", status=BookingStatus.CANCELLED)
    result = classify([other, mine], incoming("HM1", "2026-03-10", "2026-03-15", status=BookingStatus.CANCELLED))

    assert result.decision is Decision.ACCEPT
    assert result.matches is mine


def test_pending_bookings_do_not_occupy_dates():
    pending = stored(1, "2026-03-10", "2026-03-15", source="vrbo", external_id="V1", status=BookingStatus.PENDING)
    assert classify([pending], incoming("HM1", "2026-03-10", "2026-03-15")).decision is Decision.ACCEPT

    confirmed = stored(2, "2026-03-10", "2026-03-15", source="vrbo", external_id="V2")
    tentative = incoming("HM2", "2026-03-10", "2026-03-15", status=BookingStatus.PENDING)
    assert classify([confirmed], tentative).decision is Decision.ACCEPT


def test_cancelled_existing_bookings_are_ignored():
    cancelled = stored(1, "2026-03-10", "2026-03-15", source="vrbo", external_id="V1",
                       status=BookingStatus.CANCELLED)
    assert classify([cancelled], incoming("HM1", "2026-03-10", "2026-03-15")).decision is Decision.ACCEPT


def test_earlier_batch_entries_count_before_they_are_stored():
    batch = [incoming("EV1", "2026-05-01", "2026-05-05", source="airbnb")]
    result = classify([], incoming("EV2", "2026-05-03", "2026-05-06", source="vrbo"), batch)

    assert result.decision is Decision.FLAG
    assert result.conflicts_with == batch


def test_batch_entry_already_stored_is_not_counted_twice():
    row = stored(1, "2026-05-01", "2026-05-05", source="airbnb", external_id="EV1")
    batch = [incoming("EV1", "2026-05-01", "2026-05-05", source="airbnb")]
    # A second copy of the same reservation in the feed is an update, not an overlap
    result = classify([row], incoming("EV1", "2026-05-01", "2026-05-05"), batch)

    assert result.decision is Decision.ACCEPT
    assert result.matches is row


def test_same_source_overlap_within_batch_is_flagged():
    first = incoming("HM1", "2026-03-10", "2026-03-15")
    result = classify([], incoming("HM2", "2026-03-12", "2026-03-18"), [first])

    assert result.decision is Decision.FLAG
    assert result.reason is ConflictReason.CROSS_PLATFORM_CONFLICT
    assert result.conflicts_with == [first]


def test_stored_copy_of_batch_entry_is_flagged_not_rejected():
    row = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    batch = [incoming("HM1", "2026-03-10", "2026-03-15")]
    result = classify([row], incoming("HM2", "2026-03-12", "2026-03-18"), batch)

    assert result.decision is Decision.FLAG
    assert result.conflicts_with == [row]


def test_same_source_booking_stored_before_the_batch_is_still_rejected():
    earlier = stored(1, "2026-03-10", "2026-03-15", source="airbnb", external_id="HM1")
    batch = [incoming("HM3", "2026-04-01", "2026-04-05")]
    result = classify([earlier], incoming("HM2", "2026-03-12", "2026-03-18"), batch)

    assert result.decision is Decision.REJECT
    assert result.conflicts_with == [earlier]
