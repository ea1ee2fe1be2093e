from datetime import date

from app.core.exchange.schedule import Availability, AvailabilityEntry, Interval, build_schedule_by_day
from app.core.rooms.slots import TimeRange
from common.weekdays import Weekday

MONDAY = date(2026, 10, 12)


def entry(**fields) -> AvailabilityEntry:
    return AvailabilityEntry.model_validate(fields)


def test_overlapping_and_touching_windows_are_merged():
    schedule = build_schedule_by_day(
        [
            entry(dayOfWeek=1, startTime="09:00", endTime="10:00"),
            entry(dayOfWeek=1, startTime="09:30", endTime="11:00"),
            entry(dayOfWeek=1, startTime="11:00", endTime="12:00"),
            entry(dayOfWeek=1, startTime="14:00", endTime="15:00"),
        ],
        MONDAY,
    )

    assert schedule[Weekday.MONDAY] == [Interval(540, 720), Interval(840, 900)]
    for intervals in schedule.values():
        for a, b in zip(intervals, intervals[1:]):
            assert a.end < b.start


def test_date_entries_count_only_inside_reference_week():
    schedule = build_schedule_by_day(
        [
            entry(specificDate="2026-10-14", startTime="09:00", endTime="10:00"),
            entry(specificDate="2026-10-21", startTime="11:00", endTime="12:00"),
        ],
        MONDAY,
    )

    assert schedule == {Weekday.WEDNESDAY: [Interval(540, 600)]}


def test_exception_with_iso_times_derives_its_date():
    item = entry(startTime="2026-10-15T08:00:00.000Z", endTime="2026-10-15T09:30:00.000Z")

    assert item.specific_date == date(2026, 10, 15)
    assert build_schedule_by_day([item], MONDAY) == {Weekday.THURSDAY: [Interval(480, 570)]}


def test_duplicates_and_empty_windows_are_ignored():
    schedule = build_schedule_by_day(
        [
            entry(dayOfWeek=2, startTime="09:00", endTime="10:00"),
            entry(dayOfWeek=2, startTime="09:00", endTime="10:00"),
            entry(dayOfWeek=2, startTime="12:00", endTime="12:00"),
        ],
        MONDAY,
    )

    assert schedule == {Weekday.TUESDAY: [Interval(540, 600)]}


def test_availability_unions_recurring_and_dated_entries():
    availability = Availability(
        [
            entry(dayOfWeek=1, startTime="09:00", endTime="10:00"),
            entry(specificDate="2026-10-12", startTime="10:00", endTime="11:00"),
        ],
        MONDAY,
    )

    this_week = TimeRange(weekday=Weekday.MONDAY, date=MONDAY, start_time="09:30", end_time="10:30")
    next_week = TimeRange(weekday=Weekday.MONDAY, date=date(2026, 10, 19), start_time="09:30", end_time="10:30")
    assert availability.covers(this_week)
    assert not availability.covers(next_week)


def test_windows_are_clamped_to_the_day():
    schedule = build_schedule_by_day(
        [
            entry(dayOfWeek=1, startTime="23:00", endTime="24:00"),
            entry(dayOfWeek=2, startTime="22:00", endTime="25:00"),
        ],
        MONDAY,
    )

    assert schedule[Weekday.MONDAY] == [Interval(1380, 1440)]
    assert schedule[Weekday.TUESDAY] == [Interval(1320, 1440)]
