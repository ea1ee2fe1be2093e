from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from common.time_utils import time_ranges_overlap, to_end_time_string, to_minutes, to_time_string
from common.weekdays import Weekday


def new_id() -> str:
    return uuid.uuid4().hex


class SlotStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CONFLICT = "conflict"


class TimeRange(BaseModel):
    """A weekday (optionally date-bound) window expressed as ``"HH:MM"`` bounds."""

    weekday: Weekday
    date: Optional[dt.date] = None
    start_time: str
    end_time: str

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes

    @classmethod
    def from_minutes(
        cls,
        weekday: Weekday,
        on: Optional[dt.date],
        start: int,
        end: int,
    ) -> "TimeRange":
        return cls(
            weekday=weekday,
            date=on,
            start_time=to_time_string(start),
            end_time=to_end_time_string(end),
        )

    def as_range(self) -> "TimeRange":
        return TimeRange(
            weekday=self.weekday,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    def same_day(self, other: "TimeRange") -> bool:
        if self.date is not None and other.date is not None:
            return self.date == other.date
        return self.weekday == other.weekday

    def overlaps(self, other: "TimeRange") -> bool:
        return self.same_day(other) and time_ranges_overlap(
            self.start_minutes, self.end_minutes, other.start_minutes, other.end_minutes
        )

    def contains(self, other: "TimeRange") -> bool:
        return (
            self.same_day(other)
            and self.start_minutes <= other.start_minutes
            and other.end_minutes <= self.end_minutes
        )

    def split(self, unit_minutes: int) -> List["TimeRange"]:
        """Cut the range into ``unit_minutes`` pieces; the last piece may be shorter."""
        pieces: List[TimeRange] = []
        start, end = self.start_minutes, self.end_minutes
        while start < end:
            stop = min(start + unit_minutes, end)
            pieces.append(TimeRange.from_minutes(self.weekday, self.date, start, stop))
            start = stop
        return pieces


class TimeSlot(TimeRange):
    """One concrete assignment of a user to a dated occurrence."""

    id: str = Field(default_factory=new_id)
    date: dt.date
    user_id: int
    subject: str = "Auto assignment"
    status: SlotStatus = SlotStatus.CONFIRMED
    assigned_by: Optional[int] = None
    assigned_at: Optional[dt.datetime] = None


def sort_slots(slots: List[TimeSlot]) -> List[TimeSlot]:
    return sorted(slots, key=lambda slot: (slot.date, slot.start_minutes))


def total_minutes(slots: List[TimeRange]) -> int:
    return sum(slot.duration for slot in slots)


def contiguous_blocks(slots: List[TimeSlot]) -> List[List[TimeSlot]]:
    """Group slots into runs that share a date and touch end-to-start."""
    blocks: List[List[TimeSlot]] = []
    for slot in sort_slots(slots):
        if blocks:
            last = blocks[-1][-1]
            if last.date == slot.date and last.end_minutes == slot.start_minutes:
                blocks[-1].append(slot)
                continue
        blocks.append([slot])
    return blocks
