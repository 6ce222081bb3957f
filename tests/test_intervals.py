from __future__ import annotations

from datetime import datetime, timezone

import pytest

from graylog_mcp.search.intervals import (
    DEFAULT_INTERVAL_MS,
    Interval,
    parse_interval_ms,
    resolve_interval,
    select_auto_interval,
)
from graylog_mcp.search.timerange import AbsoluteWindow, RelativeWindow


class TestAutoInterval:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (60, "1m"),
            (3600, "1m"),
            (3601, "5m"),
            (86400, "5m"),
            (86401, "1h"),
            (604800, "1h"),
            (604801, "1d"),
            (31_536_000, "1d"),
        ],
    )
    def test_thresholds(self, seconds, expected):
        assert select_auto_interval(seconds) == expected

    def test_relative_window(self):
        interval = resolve_interval(RelativeWindow(seconds=3600), "auto")
        assert interval == Interval(symbol="1m", milliseconds=60_000, auto=True)

    def test_absolute_window_uses_span(self):
        window = AbsoluteWindow(
            start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end=datetime(2024, 1, 3, tzinfo=timezone.utc),
        )
        assert resolve_interval(window, "auto").symbol == "1h"

    @pytest.mark.parametrize("requested", [None, "", "AUTO"])
    def test_missing_or_any_case_auto(self, requested):
        assert resolve_interval(RelativeWindow(seconds=900), requested).auto


class TestExplicitInterval:
    def test_passes_through_unchanged(self):
        interval = resolve_interval(RelativeWindow(seconds=900), "15m")
        assert interval.symbol == "15m"
        assert interval.milliseconds == 15 * 60_000
        assert not interval.auto
        assert not interval.lenient

    @pytest.mark.parametrize(
        "symbol, expected",
        [("30s", 30_000), ("5m", 300_000), ("2h", 7_200_000), ("1d", 86_400_000)],
    )
    def test_parse(self, symbol, expected):
        assert parse_interval_ms(symbol) == (expected, False)

    @pytest.mark.parametrize("symbol", ["5x", "fast", "1.5h", "10"])
    def test_unparseable_falls_back_leniently(self, symbol):
        assert parse_interval_ms(symbol) == (DEFAULT_INTERVAL_MS, True)

    def test_lenient_flag_is_reported(self):
        interval = resolve_interval(RelativeWindow(seconds=900), "every-minute")
        assert interval.symbol == "every-minute"
        assert interval.to_dict() == {
            "interval": "every-minute",
            "interval_ms": DEFAULT_INTERVAL_MS,
            "interval_lenient": True,
        }

    def test_duration_object(self):
        assert Interval(symbol="5m", milliseconds=300_000).duration_object() == {"type": "interval", "value": 300_000}
