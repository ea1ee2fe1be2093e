from datetime import date, datetime, timezone

import pytest

from common.time_utils import (
    ensure_utc,
    time_ranges_overlap,
    to_end_time_string,
    to_minutes,
    to_time_string,
    week_bounds,
)


@pytest.mark.parametrize(
    "a, b",
    [
        (("09:00", "10:00"), ("09:30", "11:00")),
        (("09:00", "10:00"), ("10:00", "11:00")),
        (("09:00", "12:00"), ("10:00", "11:00")),
        (("13:00", "14:00"), ("09:00", "10:00")),
        ((0, 1440), (720, 750)),
    ],
)
def test_overlap_is_symmetric(a, b):
    assert time_ranges_overlap(*a, *b) == time_ranges_overlap(*b, *a)


def test_touching_ranges_do_not_overlap():
    assert not time_ranges_overlap("09:00", "10:00", "10:00", "11:00")
    assert time_ranges_overlap("09:00", "10:01", "10:00", "11:00")


def test_minutes_round_trip_and_iso_input():
    assert to_minutes("07:45") == 465
    assert to_minutes("2026-10-12T14:30:00.000Z") == 870
    assert to_minutes(90) == 90
    assert to_time_string(465) == "07:45"
    assert to_time_string(1440 + 30) == "00:30"


def test_range_end_at_midnight_is_not_wrapped():
    assert to_end_time_string(1440) == "24:00"
    assert to_end_time_string(1410) == "23:30"
    assert to_minutes(to_end_time_string(1440)) == 1440


def test_week_bounds_run_monday_to_sunday():
    assert week_bounds(date(2026, 10, 18)) == (date(2026, 10, 12), date(2026, 10, 18))
    assert week_bounds(date(2026, 10, 12)) == (date(2026, 10, 12), date(2026, 10, 18))


def test_ensure_utc_attaches_timezone():
    naive = datetime(2026, 10, 12, 9, 0)
    assert ensure_utc(naive).tzinfo is timezone.utc
