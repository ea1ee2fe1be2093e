from __future__ import annotations

from typing import Optional, Sequence

from common.weekdays import DayNames
from app.core.rooms.slots import TimeRange, TimeSlot, sort_slots


class MessageBuilder:
    """Human-readable texts for requests, responses and chain hops."""

    def __init__(self, day_names: DayNames) -> None:
        self._days = day_names

    def describe(self, rng: TimeRange) -> str:
        day = self._days.display_name(rng.weekday)
        if rng.date is not None:
            return f"{day} {rng.date:%m/%d} {rng.start_time}-{rng.end_time}"
        return f"{day} {rng.start_time}-{rng.end_time}"

    def describe_block(self, slots: Sequence[TimeSlot]) -> str:
        if not slots:
            return ""
        ordered = sort_slots(list(slots))
        first, last = ordered[0], ordered[-1]
        return self.describe(
            TimeRange(
                weekday=first.weekday,
                date=first.date,
                start_time=first.start_time,
                end_time=last.end_time,
            )
        )

    def time_request(
        self,
        requester_name: str,
        requested: TimeRange,
        requester_slots: Sequence[TimeSlot],
    ) -> str:
        message = (
            f"{requester_name} would like to take your "
            f"{self.describe(requested)} slot."
        )
        if requester_slots:
            first_date = sort_slots(list(requester_slots))[0].date
            block = [slot for slot in requester_slots if slot.date == first_date]
            message += f" You would move to {self.describe_block(block)}."
        return message

    def slot_swap(
        self,
        requester_name: str,
        requested: TimeRange,
        offered: TimeRange,
    ) -> str:
        return (
            f"{requester_name} would like to swap slots with you. "
            f"{requester_name} moves from {self.describe(offered)} to {self.describe(requested)}, "
            f"and you move from {self.describe(requested)} to {self.describe(offered)}."
        )

    def slot_release(self, requester_name: str, released: TimeRange) -> str:
        return f"{requester_name} would like to release the {self.describe(released)} slot."

    def chain_hop(self, mover_name: str, window: TimeRange) -> str:
        return (
            f"[Chain request] {mover_name} needs your {self.describe(window)} slot "
            f"to make room for another member. You would be moved to a free time. "
            f"Do you accept?"
        )

    def chain_started(self, mover_name: str, candidate_name: str) -> str:
        return (
            f"{mover_name} has no free time to move to, "
            f"so a chain request was sent to {candidate_name}."
        )

    def chain_needs_confirmation(self, mover_name: str, candidate_name: str) -> str:
        return (
            f"{mover_name} has no free time to move to. "
            f"Confirm to ask {candidate_name} to join a chain adjustment."
        )

    def chain_completed(self, approver_name: str) -> str:
        return f"Chain adjustment completed: {approver_name} approved."

    def chain_rejected(self, rejecter_name: str, window: Optional[TimeRange]) -> str:
        where = f" {self.describe(window)}" if window else ""
        return f"Chain adjustment rejected: {rejecter_name} declined to give up{where}."

    def chain_exhausted(self, user_name: str) -> str:
        return (
            f"Chain adjustment failed: {user_name} has no available time this week. "
            f"Please check {user_name}'s availability."
        )

    def no_alternative(self) -> str:
        return (
            "No alternative time was found and no member could join a chain adjustment, "
            "so the request cannot be fulfilled."
        )

    def relocated(self, target_name: str, before: Sequence[TimeSlot], after: TimeRange, beneficiary: str) -> str:
        return (
            f"{target_name}: {self.describe_block(before)} -> {self.describe(after)} "
            f"(yielded to {beneficiary})"
        )
