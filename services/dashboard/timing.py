from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

# Request times arrive labelled as UTC but carry plant wall-clock time (UTC-6).
PLANT_UTC_OFFSET_HOURS = 6

WARNING_AFTER_MINUTES = 5
CRITICAL_AFTER_MINUTES = 15

NOMINAL = "nominal"
WARNING = "warning"
CRITICAL = "critical"

# Literal calendar fields only; whatever follows the seconds (Z, +00:00, ...) is ignored.
_LITERAL_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?")


class TimestampError(ValueError):
    pass


@dataclass(frozen=True)
class ElapsedReading:
    text: str
    band: str
    minutes: float


def _shift(fields: datetime) -> datetime:
    try:
        return fields.replace(tzinfo=timezone.utc) + timedelta(hours=PLANT_UTC_OFFSET_HOURS)
    except OverflowError as e:
        # e.g. a 9999-12-31T23:59:59 "never" placeholder
        raise TimestampError(f"timestamp out of range: {fields.isoformat()}") from e


def normalize_request_time(value: Union[str, datetime]) -> datetime:
    """Return the true UTC instant of a stored request time.

    The literal year..fraction fields are read as plant local time and shifted
    by the fixed offset. Strings that do not match the literal pattern go
    through generic ISO parsing with no correction.
    """
    if isinstance(value, datetime):
        return _shift(value.replace(tzinfo=None))
    if not isinstance(value, str):
        raise TimestampError(f"unsupported timestamp: {value!r}")

    m = _LITERAL_RE.match(value)
    if m:
        year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
        frac = m.group(7) or "0"
        micros = int(frac[:6].ljust(6, "0"))
        try:
            literal = datetime(year, month, day, hour, minute, second, micros)
        except ValueError as e:
            raise TimestampError(f"invalid timestamp {value!r}: {e}") from e
        return _shift(literal)

    # Best effort: trust whatever offset the string states.
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as e:
        raise TimestampError(f"unparseable timestamp {value!r}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise TimestampError(f"timestamp out of range: {value!r}") from e


def elapsed_seconds(now: datetime, start: datetime) -> float:
    # Clock skew can put a fresh request slightly in the future.
    return max(0.0, (now - start).total_seconds())


def format_elapsed(seconds: float) -> str:
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def urgency_band(minutes: float) -> str:
    if minutes < WARNING_AFTER_MINUTES:
        return NOMINAL
    if minutes < CRITICAL_AFTER_MINUTES:
        return WARNING
    return CRITICAL


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def measure(request_time: Union[str, datetime], now: Optional[datetime] = None) -> ElapsedReading:
    """Elapsed text and urgency band, both derived from one `now` read."""
    if now is None:
        now = utcnow()
    seconds = elapsed_seconds(now, normalize_request_time(request_time))
    return measure_seconds(seconds)


def measure_seconds(seconds: float) -> ElapsedReading:
    minutes = seconds / 60.0
    return ElapsedReading(text=format_elapsed(seconds), band=urgency_band(minutes), minutes=minutes)
