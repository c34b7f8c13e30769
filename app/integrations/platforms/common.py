"""
Translation helpers shared by the platform adapters.

Each adapter raises ``TranslationError`` (or lets KeyError/TypeError/ValueError
escape) while converting a native record; ``translate_all`` turns that into a
single malformed_response result for the whole page.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.core.enums import BookingStatus
from app.integrations.results import AdapterErrorKind, AdapterResult, Err, Ok
from app.schemas.calendar import CalendarBlock


class TranslationError(ValueError):
    """A platform record could not be mapped onto the canonical model."""


def parse_date(value: Any) -> date:
    """Accept 'YYYY-MM-DD', ISO datetimes (with or without Z) or date objects."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        raise TranslationError(f"Missing or invalid date: {value!r}")
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise TranslationError(f"Unparseable date {value!r}") from e


def parse_amount(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise TranslationError(f"Invalid amount {value!r}") from e


def map_status(raw: Any, table: Dict[str, BookingStatus], *, lowercase: bool = True) -> BookingStatus:
    """Map a platform status word onto the canonical vocabulary; unknown words are Pending."""
    if raw is None:
        return BookingStatus.PENDING
    key = str(raw).strip()
    if lowercase:
        key = key.lower()
    return table.get(key, BookingStatus.PENDING)


def translate_all(records: Iterable[Dict[str, Any]], translate: Callable[[Dict[str, Any]], Any]) -> AdapterResult[List[Any]]:
    translated = []
    for record in records:
        try:
            translated.append(translate(record))
        except (TranslationError, KeyError, TypeError, ValueError) as e:
            record_id = record.get("id") if isinstance(record, dict) else None
            return Err(
                AdapterErrorKind.MALFORMED_RESPONSE,
                f"Could not translate record {record_id!r}: {e}",
            )
    return Ok(translated)


def collapse_unavailable_days(days: Iterable[Dict[str, Any]], *, date_key: str, available_key: str,
                              reason_key: Optional[str] = None) -> List[CalendarBlock]:
    """Fold per-day availability rows into half-open blocks of consecutive unavailable nights."""
    unavailable = []
    for day in days:
        if not day.get(available_key, True):
            unavailable.append((parse_date(day[date_key]), day.get(reason_key) if reason_key else None))
    unavailable.sort(key=lambda item: item[0])

    blocks: List[CalendarBlock] = []
    start = end = None
    reason = None
    for night, night_reason in unavailable:
        if start is not None and night == end:
            end = night + timedelta(days=1)
            continue
        if start is not None:
            blocks.append(CalendarBlock(start_date=start, end_date=end, reason=reason))
        start, end, reason = night, night + timedelta(days=1), night_reason
    if start is not None:
        blocks.append(CalendarBlock(start_date=start, end_date=end, reason=reason))
    return blocks


def resolve_listing_id(listing_id: Optional[str], credentials, secret_key: str, platform: str) -> AdapterResult[str]:
    """Integration listing id first, then the id stored alongside the credentials."""
    resolved = listing_id or credentials.reveal(secret_key)
    if not resolved:
        # A configuration problem the owner has to fix, same handling as bad credentials
        return Err(AdapterErrorKind.AUTH_FAILURE, f"No {platform} listing id configured")
    return Ok(resolved)
