"""Tests for the shared usage model and formatting rules."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from usage_bar.models import (
    ExtraUsage,
    UsageData,
    UsageMetric,
    as_float,
    format_reset_at,
    format_reset_seconds,
    format_tray_title,
    mark_limit_reached,
    window_label,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _data(session=42.0, weekly=17.0) -> UsageData:
    return UsageData(
        session=UsageMetric("Current session", session, "Resets in 1h 0m"),
        weekly_all=UsageMetric("All models", weekly, "Resets in 2h 0m"),
        weekly_sonnet=UsageMetric("Sonnet only", 3.0, "---"),
        extra=ExtraUsage(),
        fetched_at=NOW.isoformat(),
    )


class TestFormatResetSeconds:
    @pytest.mark.parametrize("secs,expected", [
        (0, "Resets soon"),
        (-10, "Resets soon"),
        (300, "Resets in 5m"),
        (5400, "Resets in 1h 30m"),
        (3600, "Resets in 1h 0m"),
        (59, "Resets in 0m"),
        (90061, "Resets in 25h 1m"),
    ])
    def test_durations(self, secs, expected):
        assert format_reset_seconds(secs) == expected


class TestFormatResetAt:
    def test_future_timestamp(self):
        ts = (NOW + timedelta(hours=2, minutes=5, seconds=30)).isoformat()
        assert format_reset_at(ts, now=NOW) == "Resets in 2h 5m"

    def test_z_suffix(self):
        assert format_reset_at("2026-03-01T12:45:00Z", now=NOW) == "Resets in 45m"

    def test_fractional_seconds_and_offset(self):
        assert format_reset_at("2026-03-01T14:30:00.123456+01:00", now=NOW) == "Resets in 1h 30m"

    def test_naive_timestamp_is_utc(self):
        assert format_reset_at("2026-03-01T13:00:00", now=NOW) == "Resets in 1h 0m"

    def test_past_timestamp(self):
        assert format_reset_at("2026-03-01T11:00:00Z", now=NOW) == "Resets soon"

    def test_under_a_minute_is_soon(self):
        assert format_reset_at("2026-03-01T12:00:40Z", now=NOW) == "Resets soon"

    def test_unparsable_passes_through(self):
        assert format_reset_at("next tuesday", now=NOW) == "next tuesday"

    @pytest.mark.parametrize("val", [None, ""])
    def test_missing(self, val):
        assert format_reset_at(val) == "---"


class TestWindowLabel:
    @pytest.mark.parametrize("secs,expected", [
        (18000, "5-hour window"),
        (604800, "7-day window"),
        (86400, "1-day window"),
        (129600, "36-hour window"),
        (3600, "1-hour window"),
    ])
    def test_labels(self, secs, expected):
        assert window_label(secs, "Session") == expected

    @pytest.mark.parametrize("secs", [0, -1, 1800])
    def test_short_or_missing_uses_fallback(self, secs):
        assert window_label(secs, "Session") == "Session"


class TestUsageMetric:
    def test_display_percent_is_clamped(self):
        assert UsageMetric("x", 104.2, "r").display_percent == 100.0
        assert UsageMetric("x", -3, "r").display_percent == 0.0
        assert UsageMetric("x", 55.5, "r").display_percent == 55.5

    def test_percent_used_is_not_clamped(self):
        assert UsageMetric("x", 104.2, "r").percent_used == 104.2

    def test_missing_has_sentinel(self):
        m = UsageMetric.missing("Weekly")
        assert (m.percent_used, m.reset_info) == (0.0, "No data")

    def test_limit_reached_prefix(self):
        m = mark_limit_reached(UsageMetric("5-hour window", 100, "Resets in 5m"))
        assert m.reset_info == "LIMIT REACHED - Resets in 5m"


class TestUsageData:
    def test_to_dict_is_flat_json(self):
        d = _data().to_dict()
        assert set(d) == {"session", "weekly_all", "weekly_sonnet", "extra", "fetched_at"}
        assert d["session"] == {
            "label": "Current session", "percent_used": 42.0, "reset_info": "Resets in 1h 0m",
        }
        assert d["extra"] == {
            "dollars_spent": 0.0, "percent_used": 0.0, "reset_date": "---", "enabled": False,
        }
        json.dumps(d)


class TestAsFloat:
    @pytest.mark.parametrize("val,expected", [
        (3, 3.0), ("4.5", 4.5), (None, 0.0), ("abc", 0.0), ([1], 0.0), (True, 0.0),
    ])
    def test_values(self, val, expected):
        assert as_float(val) == expected

    @pytest.mark.parametrize("val", [float("inf"), float("-inf"), float("nan"), "NaN", "inf", "1e999"])
    def test_non_finite_falls_back(self, val):
        assert as_float(val) == 0.0
        assert as_float(val, 5.0) == 5.0

    def test_json_overflow_is_default(self):
        assert as_float(json.loads("1e999")) == 0.0


class TestTrayTitle:
    def test_both_providers(self):
        assert format_tray_title(_data(42.4, 17.6), _data(5, 60)) == "C:42/18%  X:5/60%"

    def test_one_provider(self):
        assert format_tray_title(None, _data(5, 160)) == "X:5/100%"

    def test_no_data(self):
        assert format_tray_title(None, None) == "Usage: --%"
