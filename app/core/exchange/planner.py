from __future__ import annotations

import datetime as dt
import logging
from typing import Collection, Dict, List, Optional, Sequence

from common.time_utils import time_ranges_overlap, to_minutes
from config import MINUTES_PER_DAY
from app.core.exchange.candidates import find_candidates
from app.core.exchange.moves import ChainHop, DisplacementMove, PlanState
from app.core.exchange.overlap import find_conflicting_slots
from app.core.exchange.schedule import Availability
from app.core.rooms.document import ChainCandidate, RoomAggregate
from app.core.rooms.slots import (
    TimeRange,
    TimeSlot,
    contiguous_blocks,
    sort_slots,
    total_minutes,
)


class DisplacementPlanner:
    """Finds where a displaced member can go.

    Either a free window inside their own availability (a displacement), or a
    block held by another member that they could take over (a chain hop).
    Every window must stay inside the owner's availability and the room's
    blocked times and business hours.
    """

    def __init__(self, aggregate: RoomAggregate, *, unit_minutes: int, reference_date: dt.date) -> None:
        self._aggregate = aggregate
        self._room = aggregate.room
        self._unit = unit_minutes
        self._reference_date = reference_date
        self._availability: Dict[int, Availability] = {}

    def availability(self, user_id: int) -> Availability:
        if user_id not in self._availability:
            self._availability[user_id] = Availability(
                self._aggregate.profile(user_id).availability_entries(),
                self._reference_date,
            )
        return self._availability[user_id]

    def within_room_bounds(self, rng: TimeRange) -> bool:
        owner = self.availability(self._room.owner_id)
        # an owner without any availability does not restrict the room
        if not owner.is_empty and not owner.covers(rng):
            return False
        settings = self._room.settings
        for blocked in settings.blocked_times:
            if time_ranges_overlap(rng.start_minutes, rng.end_minutes, blocked.start_time, blocked.end_time):
                return False
        hours = settings.business_hours
        if hours is not None:
            if rng.start_minutes < to_minutes(hours.start_time) or rng.end_minutes > to_minutes(hours.end_time):
                return False
        return True

    def is_placeable(
        self,
        rng: TimeRange,
        state: PlanState,
        also_released: Collection[str] = (),
    ) -> bool:
        if rng.date is None or not self.within_room_bounds(rng):
            return False
        if state.is_claimed(rng):
            return False
        released = set(state.released) | set(also_released)
        return not find_conflicting_slots(self._room.time_slots, rng, exclude_ids=released)

    def relocation_for(
        self,
        user_id: int,
        vacated: Sequence[TimeSlot],
        negotiated: TimeRange,
        state: PlanState,
    ) -> Optional[DisplacementMove]:
        if not vacated:
            return None
        ordered = sort_slots(list(vacated))
        origin = ordered[0]
        duration = total_minutes(ordered)
        schedule = self.availability(user_id).schedule_for(origin.date)
        candidates = find_candidates(
            schedule,
            origin.weekday,
            origin.date,
            origin.start_minutes,
            duration,
            negotiated.start_minutes,
            negotiated.end_minutes,
            step=self._unit,
        )
        vacated_ids = [slot.id for slot in ordered]
        for candidate in candidates:
            rng = candidate.to_range(duration)
            if self.is_placeable(rng, state, vacated_ids):
                logging.info(
                    "Relocation for user %s: %s %s-%s (distance %s)",
                    user_id,
                    rng.date,
                    rng.start_time,
                    rng.end_time,
                    candidate.distance,
                )
                return DisplacementMove(user_id=user_id, from_slots=ordered, to_range=rng)
        return None

    def chain_candidates(
        self,
        mover_id: int,
        vacated: Sequence[TimeSlot],
        state: PlanState,
        exclude_users: Collection[int],
        *,
        require_relocatable: bool,
    ) -> List[ChainCandidate]:
        """Members whose block the mover could take over, nearest first.

        Candidates that can themselves be relocated come before those who
        would need a further hop.
        """
        if not vacated:
            return []
        ordered = sort_slots(list(vacated))
        origin = ordered[0]
        duration = total_minutes(ordered)
        mover_availability = self.availability(mover_id)
        freed = set(state.released) | {slot.id for slot in ordered}
        skipped = set(exclude_users) | {mover_id, self._room.owner_id}

        results: List[ChainCandidate] = []
        for user_id in self._room.member_ids:
            if user_id in skipped:
                continue
            own = [slot for slot in self._room.slots_of(user_id) if slot.id not in freed]
            for block in contiguous_blocks(own):
                start = block[0].start_minutes
                while start + duration <= block[-1].end_minutes:
                    window = TimeRange.from_minutes(block[0].weekday, block[0].date, start, start + duration)
                    start += self._unit
                    covered = [slot for slot in block if slot.overlaps(window)]
                    if total_minutes(covered) != duration or not all(window.contains(slot) for slot in covered):
                        continue
                    if not mover_availability.covers(window) or not self.within_room_bounds(window):
                        continue
                    if state.is_claimed(window):
                        continue
                    hop = ChainHop(
                        user_id=mover_id,
                        from_slots=ordered,
                        to_range=window,
                        next_user_id=user_id,
                    )
                    relocatable = (
                        self.relocation_for(user_id, covered, window, state.extended(hop)) is not None
                    )
                    if require_relocatable and not relocatable:
                        continue
                    results.append(
                        ChainCandidate(
                            user_id=user_id,
                            user_name=self._aggregate.name_of(user_id),
                            window=window,
                            slots=covered,
                            distance=MINUTES_PER_DAY * abs(window.weekday - origin.weekday)
                            + abs(window.start_minutes - origin.start_minutes),
                            relocatable=relocatable,
                        )
                    )

        results.sort(key=lambda candidate: (not candidate.relocatable, candidate.distance))
        return results
