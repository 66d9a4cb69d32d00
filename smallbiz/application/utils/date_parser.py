from __future__ import annotations

import math
from datetime import datetime, timezone

# Portal epochs arrive as seconds or milliseconds with no marker. Values above this are milliseconds.
BOOKING_EPOCH_MS_THRESHOLD = 10_000_000_000
# Portal status timestamps use a stricter cut-off (year 33658 in seconds).
PORTAL_EPOCH_MS_THRESHOLD = 1_000_000_000_000

DISTANT_PAST = datetime(1, 1, 1, tzinfo=timezone.utc)


def _finite_float(value: int | float) -> float | None:
    try:
        converted = float(value)
    except (OverflowError, TypeError, ValueError):
        return None
    return converted if math.isfinite(converted) else None


def epoch_to_datetime(value: int | float, ms_threshold: float = BOOKING_EPOCH_MS_THRESHOLD) -> datetime | None:
    """Convert a seconds-or-milliseconds epoch to an aware UTC datetime."""
    converted = _finite_float(value)
    if converted is None:
        return None
    seconds = converted / 1000.0 if converted > ms_threshold else converted
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def ms_to_datetime(value_ms: int | float) -> datetime | None:
    converted = _finite_float(value_ms)
    if converted is None:
        return None
    return epoch_to_datetime(converted / 1000.0, ms_threshold=math.inf)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(round(value.timestamp() * 1000.0))


def parse_iso8601(text: str | None) -> datetime | None:
    """Parse an internet date-time (with or without fractional seconds). Requires an offset."""
    if not text:
        return None
    trimmed = text.strip()
    if "T" not in trimmed and "t" not in trimmed:
        return None
    try:
        parsed = datetime.fromisoformat(trimmed.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def parse_number(text: str | None) -> float | None:
    if text is None:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    try:
        value = float(trimmed)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_booking_start(text: str | None) -> datetime | None:
    """ISO-8601 first, then a raw numeric epoch (seconds or ms)."""
    if text is None or not text.strip():
        return None
    parsed = parse_iso8601(text)
    if parsed is not None:
        return parsed
    raw = parse_number(text)
    if raw is None:
        return None
    return epoch_to_datetime(raw)


def parse_portal_date(raw: str | int | float | None) -> datetime | None:
    """Dates in portal status responses: numeric epoch or ISO-8601."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return epoch_to_datetime(raw, ms_threshold=PORTAL_EPOCH_MS_THRESHOLD)
    value = parse_number(str(raw))
    if value is not None:
        return epoch_to_datetime(value, ms_threshold=PORTAL_EPOCH_MS_THRESHOLD)
    return parse_iso8601(str(raw))


def parse_epoch_ms(raw: str | None) -> int | None:
    """Deep-link decidedAt values: epoch ms, epoch seconds, or ISO-8601. Returns epoch ms."""
    if raw is None:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None

    try:
        as_int = int(trimmed)
    except ValueError:
        as_int = None
    if as_int is not None:
        return as_int if as_int > PORTAL_EPOCH_MS_THRESHOLD else as_int * 1000

    as_float = parse_number(trimmed)
    if as_float is not None:
        if as_float > PORTAL_EPOCH_MS_THRESHOLD:
            return int(round(as_float))
        return int(round(as_float * 1000.0))

    parsed = parse_iso8601(trimmed)
    if parsed is not None:
        return to_epoch_ms(parsed)
    return None
