from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .timerange import TimeWindow

logger = logging.getLogger(__name__)

AUTO_INTERVAL = "auto"
DEFAULT_INTERVAL_MS = 60_000

# (max window seconds, bucket size), checked in ascending order.
AUTO_THRESHOLDS = (
    (3600, "1m"),
    (86400, "5m"),
    (604800, "1h"),
)
AUTO_FALLBACK = "1d"

UNIT_MILLISECONDS: Dict[str, int] = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

_INTERVAL_PATTERN = re.compile(r"^(\d+)([a-zA-Z])$")


@dataclass(frozen=True)
class Interval:
    """A bucket size in both the symbolic and the millisecond form.

    ``lenient`` is set when ``symbol`` could not be parsed and
    ``milliseconds`` fell back to ``DEFAULT_INTERVAL_MS``.
    """

    symbol: str
    milliseconds: int
    lenient: bool = False
    auto: bool = False

    def duration_object(self) -> Dict[str, Any]:
        return {"type": "interval", "value": self.milliseconds}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"interval": self.symbol, "interval_ms": self.milliseconds}
        if self.auto:
            result["interval_auto"] = True
        if self.lenient:
            result["interval_lenient"] = True
        return result


def select_auto_interval(duration_seconds: float) -> str:
    for threshold, symbol in AUTO_THRESHOLDS:
        if duration_seconds <= threshold:
            return symbol
    return AUTO_FALLBACK


def parse_interval_ms(symbol: str) -> Tuple[int, bool]:
    """Return ``(milliseconds, lenient)`` for an interval like ``"5m"``."""
    match = _INTERVAL_PATTERN.match(symbol.strip()) if isinstance(symbol, str) else None
    if match:
        unit = match.group(2).lower()
        multiplier = UNIT_MILLISECONDS.get(unit)
        if multiplier is not None:
            return int(match.group(1)) * multiplier, False
    logger.warning("Unparseable interval %r, using %d ms", symbol, DEFAULT_INTERVAL_MS)
    return DEFAULT_INTERVAL_MS, True


def resolve_interval(window: TimeWindow, requested: Optional[str] = AUTO_INTERVAL) -> Interval:
    """Pick a concrete bucket size, deriving one from the window size for ``auto``."""
    if requested is None or (isinstance(requested, str) and requested.strip().lower() in ("", AUTO_INTERVAL)):
        symbol = select_auto_interval(window.duration_seconds)
        milliseconds, lenient = parse_interval_ms(symbol)
        return Interval(symbol=symbol, milliseconds=milliseconds, lenient=lenient, auto=True)

    symbol = requested.strip() if isinstance(requested, str) else str(requested)
    milliseconds, lenient = parse_interval_ms(symbol)
    return Interval(symbol=symbol, milliseconds=milliseconds, lenient=lenient)


__all__ = [
    "AUTO_INTERVAL",
    "DEFAULT_INTERVAL_MS",
    "Interval",
    "parse_interval_ms",
    "resolve_interval",
    "select_auto_interval",
]
