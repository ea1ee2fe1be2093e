from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping


class Weekday(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        return cls((value.weekday() + 1) % 7)

    def date_in_week(self, monday: date) -> date:
        """Concrete date of this weekday in the Monday-Sunday week starting at ``monday``."""
        return monday + timedelta(days=(self.value - 1) % 7)


@dataclass(frozen=True)
class DayNames:
    """Immutable lookup between weekdays and their interface labels."""

    labels: Mapping[Weekday, str]
    display: Mapping[Weekday, str]

    def label(self, weekday: Weekday) -> str:
        return self.labels[Weekday(weekday)]

    def display_name(self, weekday: Weekday) -> str:
        return self.display[Weekday(weekday)]

    def parse(self, label: str | int) -> Weekday:
        if isinstance(label, int):
            return Weekday(label)
        normalised = label.strip().lower()
        if normalised.isdigit():
            return Weekday(int(normalised))
        for weekday, known in self.labels.items():
            if known == normalised:
                return weekday
        raise ValueError(f"Unknown day label: {label!r}")


def english_day_names() -> DayNames:
    labels = {weekday: weekday.name.lower() for weekday in Weekday}
    display = {weekday: weekday.name.capitalize() for weekday in Weekday}
    return DayNames(labels=MappingProxyType(labels), display=MappingProxyType(display))
