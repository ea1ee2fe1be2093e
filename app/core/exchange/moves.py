from __future__ import annotations

import datetime as dt
import logging
from typing import Annotated, Iterable, List, Literal, Sequence, Set, Union

from pydantic import BaseModel, Field

from app.core.exchange.errors import StalePlanError
from app.core.exchange.overlap import find_conflicting_slots
from app.core.rooms.slots import TimeRange, TimeSlot


class DirectMove(BaseModel):
    """User takes over exact ranges (their own requested range or a swap partner's slots)."""

    kind: Literal["direct"] = "direct"
    user_id: int
    from_slots: List[TimeSlot] = Field(default_factory=list)
    to_ranges: List[TimeRange]
    subject: str = "Direct exchange"


class DisplacementMove(BaseModel):
    """User is relocated into a free candidate window of their own availability."""

    kind: Literal["displacement"] = "displacement"
    user_id: int
    from_slots: List[TimeSlot]
    to_range: TimeRange
    subject: str = "Auto relocation"


class ChainHop(BaseModel):
    """User moves into the window vacated by the next member of the chain."""

    kind: Literal["chain_hop"] = "chain_hop"
    user_id: int
    from_slots: List[TimeSlot]
    to_range: TimeRange
    next_user_id: int
    subject: str = "Chain adjustment"


Move = Annotated[Union[DirectMove, DisplacementMove, ChainHop], Field(discriminator="kind")]


def destinations(move: Move, unit_minutes: int) -> List[TimeRange]:
    if isinstance(move, DirectMove):
        return list(move.to_ranges)
    return move.to_range.split(unit_minutes)


class PlanState:
    """Slots a plan frees up and the ranges it has already promised to someone."""

    def __init__(self, moves: Iterable[Move] = ()) -> None:
        self.moves: List[Move] = list(moves)
        self.released: Set[str] = {slot.id for move in self.moves for slot in move.from_slots}
        self.claimed: List[TimeRange] = [
            rng
            for move in self.moves
            for rng in ([*move.to_ranges] if isinstance(move, DirectMove) else [move.to_range])
        ]
        self.participants: Set[int] = {move.user_id for move in self.moves}

    def extended(self, move: Move) -> "PlanState":
        return PlanState([*self.moves, move])

    def is_claimed(self, candidate: TimeRange) -> bool:
        return any(candidate.overlaps(rng) for rng in self.claimed)


def apply_moves(
    time_slots: List[TimeSlot],
    moves: Sequence[Move],
    *,
    actor_id: int,
    now: dt.datetime,
    unit_minutes: int,
) -> List[TimeSlot]:
    """Return the slot table after every move, or raise ``StalePlanError``.

    Validation happens before anything is written, so a stale plan leaves
    ``time_slots`` untouched.
    """
    existing_ids = {slot.id for slot in time_slots}
    released = [slot for move in moves for slot in move.from_slots]
    missing = [slot for slot in released if slot.id not in existing_ids]
    if missing:
        raise StalePlanError(
            "Slot "
            + ", ".join(f"{slot.date} {slot.start_time}-{slot.end_time}" for slot in missing)
            + " no longer exists"
        )

    released_ids = {slot.id for slot in released}
    remaining = [slot for slot in time_slots if slot.id not in released_ids]
    added: List[TimeSlot] = []
    for move in moves:
        targets = destinations(move, unit_minutes)
        if move.from_slots and not targets:
            raise StalePlanError(f"User {move.user_id} has no destination for the released slots")
        for rng in targets:
            if rng.end_minutes <= rng.start_minutes:
                raise StalePlanError(f"Destination {rng.start_time}-{rng.end_time} is empty")
            if rng.date is None:
                raise StalePlanError(f"Destination {rng.start_time}-{rng.end_time} has no date")
            clashes = find_conflicting_slots([*remaining, *added], rng)
            if clashes:
                raise StalePlanError(
                    f"{rng.date} {rng.start_time}-{rng.end_time} is already taken"
                )
            added.append(
                TimeSlot(
                    weekday=rng.weekday,
                    date=rng.date,
                    start_time=rng.start_time,
                    end_time=rng.end_time,
                    user_id=move.user_id,
                    subject=move.subject,
                    assigned_by=actor_id,
                    assigned_at=now,
                )
            )

    logging.info(
        "Applied %s move(s): released %s slot(s), assigned %s slot(s)",
        len(moves),
        len(released_ids),
        len(added),
    )
    return [*remaining, *added]
