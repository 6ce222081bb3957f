from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from .errors import InvalidTimeRange

logger = logging.getLogger(__name__)

DEFAULT_RANGE_SECONDS = 900
MAX_RANGE_SECONDS = 31_536_000  # 365 days

# Exact-case lookup first so "M" (months) is not folded into "m" (minutes).
TIME_UNITS: Dict[str, int] = {
    "s": 1,
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    "M": 2_592_000,
    "month": 2_592_000,
    "months": 2_592_000,
    "y": MAX_RANGE_SECONDS,
    "year": MAX_RANGE_SECONDS,
    "years": MAX_RANGE_SECONDS,
}

_RELATIVE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-zA-Z]+)$")
_BARE_NUMBER_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")

# Epoch values at or above this are taken as milliseconds.
_EPOCH_MILLIS_THRESHOLD = 100_000_000_000

TimeInput = Union[str, int, float, datetime]


@dataclass(frozen=True)
class RelativeWindow:
    """Window covering the last ``seconds`` seconds."""

    seconds: int

    @property
    def duration_seconds(self) -> float:
        return float(self.seconds)

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "relative", "range": self.seconds}


@dataclass(frozen=True)
class AbsoluteWindow:
    """Window bounded by two UTC instants, ``start < end``."""

    start: datetime
    end: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "absolute", "from": format_instant(self.start), "to": format_instant(self.end)}


TimeWindow = Union[RelativeWindow, AbsoluteWindow]


def format_instant(value: datetime) -> str:
    """Render an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_relative_time(value: Union[str, int, float]) -> int:
    """Parse ``"1h"``, ``"30m"``, ``"2d"`` or a bare number of seconds."""
    if isinstance(value, bool):
        raise InvalidTimeRange(f"expected a duration, got {value!r}", value, InvalidTimeRange.MALFORMED)

    if isinstance(value, str):
        text = value.strip()
        if _BARE_NUMBER_PATTERN.match(text):
            return _check_seconds(float(text), value)

        match = _RELATIVE_PATTERN.match(text)
        if not match:
            raise InvalidTimeRange(
                f'invalid time format {value!r}, use formats like "1h", "30m", "2d"',
                value,
                InvalidTimeRange.MALFORMED,
            )

        amount, unit = match.groups()
        unit_seconds = TIME_UNITS.get(unit) or TIME_UNITS.get(unit.lower())
        if not unit_seconds:
            raise InvalidTimeRange(
                f"invalid time unit {unit!r}, valid units: s, m, h, d, w, M, y",
                value,
                InvalidTimeRange.MALFORMED,
            )
        return _check_seconds(float(amount) * unit_seconds, value)

    if isinstance(value, (int, float)):
        return _check_seconds(value, value)

    raise InvalidTimeRange(
        f"expected a string or number, got {type(value).__name__}", value, InvalidTimeRange.MALFORMED
    )


def _check_seconds(seconds: float, raw: Any) -> int:
    # Floats may be nan or inf; ints are compared exactly, however large.
    if isinstance(seconds, float) and math.isnan(seconds):
        raise InvalidTimeRange("duration must be a finite number", raw, InvalidTimeRange.MALFORMED)
    if seconds < 0:
        raise InvalidTimeRange("time range cannot be negative", raw, InvalidTimeRange.NEGATIVE)
    if seconds > MAX_RANGE_SECONDS:
        raise InvalidTimeRange(
            f"time range cannot exceed 1 year ({MAX_RANGE_SECONDS} seconds)", raw, InvalidTimeRange.TOO_LONG
        )

    total = int(seconds)
    if total <= 0:
        raise InvalidTimeRange("time range must be greater than 0", raw, InvalidTimeRange.NON_POSITIVE)
    return total


def parse_absolute_time(value: TimeInput) -> datetime:
    """Parse an ISO-8601 string, epoch number or datetime into an aware UTC datetime."""
    if isinstance(value, bool):
        raise InvalidTimeRange(f"invalid absolute time {value!r}", value, InvalidTimeRange.MALFORMED)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = _from_epoch(value)
    elif isinstance(value, str):
        text = value.strip()
        if _BARE_NUMBER_PATTERN.match(text):
            parsed = _from_epoch(float(text))
        else:
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise InvalidTimeRange(
                    f"invalid absolute time {value!r}", value, InvalidTimeRange.MALFORMED
                ) from None
    else:
        raise InvalidTimeRange(f"invalid absolute time {value!r}", value, InvalidTimeRange.MALFORMED)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _from_epoch(value: float) -> datetime:
    try:
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise InvalidTimeRange(f"invalid epoch time {value!r}", value, InvalidTimeRange.MALFORMED) from None


def resolve_time_range(
    time_range: Optional[Union[str, int, float]] = None,
    last: Optional[Union[str, int, float]] = None,
    from_time: Optional[TimeInput] = None,
    to_time: Optional[TimeInput] = None,
    default_seconds: int = DEFAULT_RANGE_SECONDS,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """
    Resolve user time inputs into a ``TimeWindow``.

    Absolute bounds take precedence over a relative ``time_range``/``last``, which
    takes precedence over the ``default_seconds`` window.

    Raises
    ------
    InvalidTimeRange
        For malformed input, non-positive or over-long durations, a missing
        ``from_time``, or inverted/over-long absolute bounds.
    """
    if _present(from_time) or _present(to_time):
        if not _present(from_time):
            raise InvalidTimeRange(
                "from time is required for absolute time range", to_time, InvalidTimeRange.MISSING_FROM
            )
        start = parse_absolute_time(from_time)
        end = parse_absolute_time(to_time) if _present(to_time) else (now or datetime.now(timezone.utc))

        if start >= end:
            raise InvalidTimeRange(
                "from time must be before to time",
                f"{format_instant(start)} .. {format_instant(end)}",
                InvalidTimeRange.INVERTED,
            )
        if end - start > timedelta(seconds=MAX_RANGE_SECONDS):
            raise InvalidTimeRange(
                "absolute time range cannot exceed 1 year",
                f"{format_instant(start)} .. {format_instant(end)}",
                InvalidTimeRange.TOO_LONG,
            )
        return AbsoluteWindow(start=start, end=end)

    relative = time_range if _present(time_range) else last
    if _present(relative):
        return RelativeWindow(seconds=parse_relative_time(relative))

    logger.debug("No time range supplied, defaulting to last %d seconds", default_seconds)
    return RelativeWindow(seconds=default_seconds)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


__all__ = [
    "DEFAULT_RANGE_SECONDS",
    "MAX_RANGE_SECONDS",
    "TIME_UNITS",
    "RelativeWindow",
    "AbsoluteWindow",
    "TimeWindow",
    "format_instant",
    "parse_relative_time",
    "parse_absolute_time",
    "resolve_time_range",
]
