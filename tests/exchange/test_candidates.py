from datetime import date

from app.core.exchange.candidates import find_candidates
from app.core.exchange.schedule import Interval
from common.weekdays import Weekday

MONDAY = date(2026, 10, 12)


def test_same_day_windows_come_first_and_skip_negotiated_range():
    schedule = {
        Weekday.MONDAY: [Interval(600, 660), Interval(780, 840)],
        Weekday.TUESDAY: [Interval(600, 660)],
    }

    found = find_candidates(schedule, Weekday.MONDAY, MONDAY, 600, 60, 600, 660, step=30)

    assert [(c.weekday, c.start_minutes) for c in found] == [
        (Weekday.MONDAY, 780),
        (Weekday.TUESDAY, 600),
    ]
    assert found[1].date == date(2026, 10, 13)
    assert found[1].distance == 1440


def test_sunday_candidates_land_at_the_end_of_the_week():
    found = find_candidates({Weekday.SUNDAY: [Interval(600, 660)]}, Weekday.MONDAY, MONDAY, 600, 60, 0, 0)

    assert [c.date for c in found] == [date(2026, 10, 18)]


def test_windows_step_through_longer_blocks():
    found = find_candidates({Weekday.MONDAY: [Interval(540, 660)]}, Weekday.MONDAY, MONDAY, 600, 60, 0, 0, step=30)

    assert [c.start_minutes for c in found] == [600, 570, 540]
    for candidate in found:
        window = candidate.to_range(60)
        assert 540 <= window.start_minutes and window.end_minutes <= 660


def test_no_candidates_for_empty_duration():
    assert find_candidates({Weekday.MONDAY: [Interval(540, 660)]}, Weekday.MONDAY, MONDAY, 600, 0, 0, 0) == []
