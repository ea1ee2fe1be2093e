from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List

from common.time_utils import week_bounds
from common.weekdays import Weekday
from config import MINUTES_PER_DAY, SLOT_UNIT_MINUTES
from app.core.exchange.schedule import ScheduleByDay
from app.core.rooms.slots import TimeRange


@dataclass(frozen=True)
class Candidate:
    weekday: Weekday
    date: dt.date
    start_minutes: int
    distance: int

    def to_range(self, duration: int) -> TimeRange:
        return TimeRange.from_minutes(
            self.weekday, self.date, self.start_minutes, self.start_minutes + duration
        )


def find_candidates(
    schedule_by_day: ScheduleByDay,
    origin_weekday: Weekday,
    origin_date: dt.date,
    origin_start: int,
    duration: int,
    negotiated_start: int,
    negotiated_end: int,
    *,
    step: int = SLOT_UNIT_MINUTES,
) -> List[Candidate]:
    """Windows of ``duration`` minutes inside the schedule, nearest to the origin first.

    Same-day windows that intersect the negotiated range are skipped so the
    displaced user is never offered the time being handed over. Other weekdays
    are pushed back by a full day per weekday of separation.
    """
    if duration <= 0:
        return []

    monday, _ = week_bounds(origin_date)
    candidates: List[Candidate] = []

    for block in schedule_by_day.get(origin_weekday, []):
        start = block.start
        while start + duration <= block.end:
            if not (start < negotiated_end and negotiated_start < start + duration):
                candidates.append(
                    Candidate(
                        weekday=origin_weekday,
                        date=origin_date,
                        start_minutes=start,
                        distance=abs(start - origin_start),
                    )
                )
            start += step

    for weekday, blocks in schedule_by_day.items():
        if weekday == origin_weekday:
            continue
        target_date = Weekday(weekday).date_in_week(monday)
        for block in blocks:
            start = block.start
            while start + duration <= block.end:
                candidates.append(
                    Candidate(
                        weekday=Weekday(weekday),
                        date=target_date,
                        start_minutes=start,
                        distance=MINUTES_PER_DAY * abs(weekday - origin_weekday)
                        + abs(start - origin_start),
                    )
                )
                start += step

    candidates.sort(key=lambda candidate: candidate.distance)
    return candidates
