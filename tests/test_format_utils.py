import re

import pytest

import steward.util.format_utils as format_utils


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("30s", 30_000),
        ("1m", 60_000),
        ("1h", 3_600_000),
        ("1H", 3_600_000),
        ("2d", 172_800_000),
        ("1w", 604_800_000),
        ("0m", 0),
        ("  15m  ", 900_000),
        ("30d", 2_592_000_000),
    ],
)
def test_parse_time_string_accepts_single_unit_durations(text, expected):
    assert format_utils.parse_time_string(text) == expected


@pytest.mark.parametrize("text", ["", "h", "10", "-1h", "1h30m", "1.5h", "1y", "1 h", "one hour", "١h"])
def test_parse_time_string_rejects_invalid_input(text):
    assert format_utils.parse_time_string(text) is None


def test_parse_time_string_rejects_non_strings():
    assert format_utils.parse_time_string(None) is None  # type: ignore[arg-type]
    assert format_utils.parse_time_string(60) is None  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("milliseconds", "expected"),
    [
        (0, "0 secs"),
        (1_000, "1 sec"),
        (59_999, "59 secs"),
        (60_000, "1 min"),
        (300_000, "5 mins"),
        (3_600_000, "1 hour"),
        (7_200_000, "2 hours"),
        (86_400_000, "1 day"),
        (2_592_000_000, "30 days"),
        (-5_000, "0 secs"),
    ],
)
def test_format_duration_uses_largest_whole_unit(milliseconds, expected):
    assert format_utils.format_duration(milliseconds) == expected


def test_generate_id_shape_and_uniqueness(monkeypatch):
    monkeypatch.setattr(format_utils, "now_ms", lambda: 1_700_000_000_123)

    ids = {format_utils.generate_id() for _ in range(200)}

    assert len(ids) == 200
    for value in ids:
        assert re.fullmatch(r"1700000000123-[0-9a-z]{9}", value)


def test_discord_timestamp_truncates_to_seconds():
    assert format_utils.discord_timestamp(1_700_000_000_999) == "<t:1700000000:R>"
    assert format_utils.discord_timestamp(1_700_000_000_000, "f") == "<t:1700000000:f>"


def test_now_ms_tracks_wall_clock(monkeypatch):
    monkeypatch.setattr(format_utils.time, "time", lambda: 1_700_000_000.5)

    assert format_utils.now_ms() == 1_700_000_000_500
