from __future__ import annotations

from typing import Collection, Iterable, List

from app.core.rooms.slots import TimeRange, TimeSlot


def find_overlapping_slots(
    time_slots: Iterable[TimeSlot],
    user_id: int,
    time_range: TimeRange,
) -> List[TimeSlot]:
    """Slots of ``user_id`` intersecting ``time_range``.

    Dates are compared when the range carries one; otherwise the weekday is
    used, so weekday-only requests match every week's occurrence.
    """
    return [
        slot
        for slot in time_slots
        if slot.user_id == user_id and slot.overlaps(time_range)
    ]


def find_conflicting_slots(
    time_slots: Iterable[TimeSlot],
    time_range: TimeRange,
    *,
    exclude_ids: Collection[str] = (),
) -> List[TimeSlot]:
    """Slots of any user intersecting ``time_range``."""
    return [
        slot
        for slot in time_slots
        if slot.id not in exclude_ids and slot.overlaps(time_range)
    ]
