import pytest

from modules.scheduling.time_model import (
    duration_minutes,
    format_duration,
    format_hour,
    interval_for,
    intervals_overlap,
    minutes_to_time_string,
    parse_time_to_minutes,
)
from schemas.scheduling import TimeInterval


@pytest.mark.parametrize("value,expected", [
    ("09:30", 570),
    ("09:30:45", 570),
    ("9:05", 545),
    ("00:00", 0),
    ("23:59:59", 1439),
])
def test_parse_valid(value, expected):
    assert parse_time_to_minutes(value) == expected


@pytest.mark.parametrize("value", ["24:00", "12:60", "9:5", "noon", "", None, 930, "12:00:61"])
def test_parse_invalid_returns_none(value):
    assert parse_time_to_minutes(value) is None


def test_format_parse_round_trip_whole_day():
    for m in range(1440):
        assert parse_time_to_minutes(minutes_to_time_string(m)) == m


def test_format_clamps_and_rounds():
    assert minutes_to_time_string(-5) == "00:00:00"
    assert minutes_to_time_string(2000) == "23:59:00"
    assert minutes_to_time_string(90.6) == "01:31:00"
    assert minutes_to_time_string(61) == "01:01:00"


def test_interval_for_requires_ordered_times():
    assert interval_for("09:00", "10:00") == TimeInterval(540, 600)
    assert interval_for("10:00", "09:00") is None
    assert interval_for("10:00", "10:00") is None
    assert interval_for(None, "10:00") is None


def test_touching_intervals_do_not_overlap():
    assert not intervals_overlap(TimeInterval(540, 600), TimeInterval(600, 660))
    assert intervals_overlap(TimeInterval(540, 601), TimeInterval(600, 660))


def test_duration_handles_overnight_and_bad_input():
    assert duration_minutes("09:00", "10:30") == 90
    assert duration_minutes("23:00", "01:00") == 120
    assert duration_minutes("bad", "01:00") == 0


def test_format_duration():
    assert format_duration(45) == "45m"
    assert format_duration(180) == "3h"
    assert format_duration(150) == "2h 30m"
    assert format_duration(-1) == "0m"


def test_format_hour():
    assert format_hour(0) == "12 AM"
    assert format_hour(9) == "9 AM"
    assert format_hour(12) == "12 PM"
    assert format_hour(15) == "3 PM"
