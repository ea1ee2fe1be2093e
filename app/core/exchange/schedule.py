from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from common.time_utils import to_minutes, week_bounds
from common.weekdays import Weekday
from config import MINUTES_PER_DAY
from app.core.rooms.slots import TimeRange


class AvailabilityEntry(BaseModel):
    """One recurring (weekday) or date-specific availability window from a user profile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    day_of_week: Optional[Weekday] = None
    specific_date: Optional[dt.date] = None
    start_time: str
    end_time: str
    priority: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def derive_specific_date(cls, data):
        # schedule exceptions store full ISO datetimes instead of HH:MM
        if isinstance(data, dict):
            start = data.get("startTime", data.get("start_time"))
            has_date = data.get("specificDate") or data.get("specific_date")
            if not has_date and isinstance(start, str) and "T" in start:
                data = {**data, "specificDate": start.split("T", 1)[0]}
        return data


@dataclass(frozen=True)
class Interval:
    start: int
    end: int


ScheduleByDay = Dict[Weekday, List[Interval]]


def build_schedule_by_day(
    entries: Iterable[AvailabilityEntry],
    reference_date: dt.date,
) -> ScheduleByDay:
    """Fold availability into merged, sorted minute intervals per weekday.

    Date-specific entries only count when they fall inside the Monday-Sunday
    week of ``reference_date``; recurring entries always count.
    """
    monday, sunday = week_bounds(reference_date)
    seen: set[tuple[Weekday, int, int]] = set()
    by_day: ScheduleByDay = {}

    for entry in entries:
        weekday = entry.day_of_week
        if entry.specific_date is not None:
            if not monday <= entry.specific_date <= sunday:
                continue
            if weekday is None:
                weekday = Weekday.from_date(entry.specific_date)
        if weekday is None:
            continue

        start = to_minutes(entry.start_time)
        end = min(to_minutes(entry.end_time), MINUTES_PER_DAY)
        if end <= start:
            continue
        key = (weekday, start, end)
        if key in seen:
            continue
        seen.add(key)
        by_day.setdefault(weekday, []).append(Interval(start, end))

    for weekday, intervals in by_day.items():
        merged: List[Interval] = []
        for interval in sorted(intervals, key=lambda item: item.start):
            if merged and interval.start <= merged[-1].end:
                last = merged[-1]
                merged[-1] = Interval(last.start, max(last.end, interval.end))
            else:
                merged.append(interval)
        by_day[weekday] = merged

    return by_day


def covers(schedule: ScheduleByDay, weekday: Weekday, start: int, end: int) -> bool:
    return any(
        interval.start <= start and end <= interval.end
        for interval in schedule.get(weekday, [])
    )


class Availability:
    """A user's availability with per-week schedules built on demand."""

    def __init__(self, entries: Sequence[AvailabilityEntry], reference_date: dt.date) -> None:
        self._entries = list(entries)
        self._reference_date = reference_date
        self._weeks: Dict[dt.date, ScheduleByDay] = {}

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def schedule_for(self, on: Optional[dt.date]) -> ScheduleByDay:
        monday, _ = week_bounds(on or self._reference_date)
        if monday not in self._weeks:
            self._weeks[monday] = build_schedule_by_day(self._entries, monday)
        return self._weeks[monday]

    def covers(self, time_range: TimeRange) -> bool:
        schedule = self.schedule_for(time_range.date)
        return covers(schedule, time_range.weekday, time_range.start_minutes, time_range.end_minutes)
