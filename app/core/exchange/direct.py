from __future__ import annotations

from typing import List, Sequence

from app.core.exchange.moves import DirectMove
from app.core.exchange.schedule import Availability
from app.core.rooms.slots import TimeSlot

DIRECT_EXCHANGE_SUBJECT = "Direct exchange"


def is_mutually_compatible(
    requester_availability: Availability,
    target_availability: Availability,
    requester_slots: Sequence[TimeSlot],
    target_slots: Sequence[TimeSlot],
) -> bool:
    """Both parties can live in each other's slots.

    Every target slot must sit inside the requester's availability and every
    requester slot inside the target's. A requester with nothing to give back
    is never compatible: the target would be left without a slot.
    """
    if not requester_slots or not target_slots:
        return False
    return all(requester_availability.covers(slot) for slot in target_slots) and all(
        target_availability.covers(slot) for slot in requester_slots
    )


def plan_direct_exchange(
    requester_id: int,
    target_id: int,
    requester_slots: Sequence[TimeSlot],
    target_slots: Sequence[TimeSlot],
) -> List[DirectMove]:
    return [
        DirectMove(
            user_id=requester_id,
            from_slots=list(requester_slots),
            to_ranges=[slot.as_range() for slot in target_slots],
            subject=DIRECT_EXCHANGE_SUBJECT,
        ),
        DirectMove(
            user_id=target_id,
            from_slots=list(target_slots),
            to_ranges=[slot.as_range() for slot in requester_slots],
            subject=DIRECT_EXCHANGE_SUBJECT,
        ),
    ]
