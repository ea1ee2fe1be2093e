from __future__ import annotations

import datetime as dt
import logging
from typing import List, Sequence

from app.core.exchange.messages import MessageBuilder
from app.core.exchange.moves import (
    ChainHop,
    DisplacementMove,
    Move,
    PlanState,
    apply_moves,
)
from app.core.exchange.errors import StalePlanError
from app.core.exchange.outcome import Outcome
from app.core.exchange.overlap import find_overlapping_slots
from app.core.exchange.planner import DisplacementPlanner
from app.core.rooms.document import (
    ChainData,
    Request,
    RequestStatus,
    RequestType,
    RoomAggregate,
)
from app.core.rooms.slots import TimeSlot, sort_slots


class ChainOrchestrator:
    """Opens, resolves and unwinds multi-hop displacement chains.

    A chain starts when the target of a request has nowhere to go. Each hop is
    its own request against one more member; the pending moves travel with the
    hop in ``chain_data`` and are only written to the slot table once the
    deepest member approves and can be relocated. Any rejection marks every
    suspended ancestor rejected without touching the slot table.
    """

    def __init__(
        self,
        aggregate: RoomAggregate,
        planner: DisplacementPlanner,
        messages: MessageBuilder,
        outcome: Outcome,
        *,
        unit_minutes: int,
        max_depth: int,
        confirmation_required: bool,
        now: dt.datetime,
    ) -> None:
        self._aggregate = aggregate
        self._room = aggregate.room
        self._planner = planner
        self._messages = messages
        self._outcome = outcome
        self._unit = unit_minutes
        self._max_depth = max_depth
        self._confirmation_required = confirmation_required
        self._now = now

    def origin_of(self, request: Request) -> Request:
        if request.chain_data is None:
            return request
        return self._room.find_request(request.chain_data.origin_request_id) or request

    def ancestors(self, request: Request) -> List[Request]:
        chain: List[Request] = []
        seen = {request.id}
        current = request
        while current.chain_data is not None:
            parent = self._room.find_request(current.chain_data.parent_request_id)
            if parent is None or parent.id in seen:
                break
            chain.append(parent)
            seen.add(parent.id)
            current = parent
        return chain

    def open_chain(
        self,
        parent: Request,
        moves: Sequence[Move],
        mover_id: int,
        vacated: Sequence[TimeSlot],
        depth: int,
        actor_id: int,
    ) -> None:
        """The mover has no free window: look for a member to take over from."""
        origin = self.origin_of(parent)
        state = PlanState(moves)
        mover_name = self._aggregate.name_of(mover_id)

        candidates = []
        if depth <= self._max_depth:
            candidates = self._planner.chain_candidates(
                mover_id,
                vacated,
                state,
                state.participants | {origin.requester_id},
                require_relocatable=depth >= self._max_depth,
            )

        if not candidates:
            logging.info(
                "No chain candidate for user %s (request %s, depth %s)", mover_id, parent.id, depth
            )
            reason = (
                self._messages.chain_exhausted(mover_name)
                if parent.is_chain_hop
                else self._messages.no_alternative()
            )
            self.fail(parent, reason, actor_id)
            return

        first = candidates[0]
        chain_data = ChainData(
            origin_request_id=origin.id,
            parent_request_id=parent.id,
            original_requester_id=origin.requester_id,
            intermediate_user_id=mover_id,
            intermediate_slot=parent.time_slot,
            depth=depth,
            moves=list(moves),
            requester_original_slots=list(origin.requester_slots),
            intermediate_original_slots=sort_slots(list(vacated)),
            first_candidate=first,
            candidate_users=candidates[1:],
        )

        if self._confirmation_required and not parent.is_chain_hop:
            parent.chain_data = chain_data
            parent.status = RequestStatus.NEEDS_CHAIN_CONFIRMATION
            parent.response = self._messages.chain_needs_confirmation(mover_name, first.user_name)
            self._outcome.notify(parent.requester_id, parent.response)
            logging.info("Request %s waits for chain confirmation", parent.id)
            return

        self.spawn_hop(parent, chain_data)
        parent.status = RequestStatus.WAITING_FOR_CHAIN
        parent.response = self._messages.chain_started(mover_name, first.user_name)

    def spawn_hop(self, parent: Request, chain_data: ChainData) -> Request:
        first = chain_data.first_candidate
        mover_id = chain_data.intermediate_user_id
        hop_move = ChainHop(
            user_id=mover_id,
            from_slots=chain_data.intermediate_original_slots,
            to_range=first.window,
            next_user_id=first.user_id,
        )
        hop = Request(
            requester_id=mover_id,
            type=(
                RequestType.CHAIN_REQUEST
                if chain_data.depth <= 1
                else RequestType.CHAIN_EXCHANGE_REQUEST
            ),
            target_user_id=first.user_id,
            time_slot=first.window,
            requester_slots=chain_data.intermediate_original_slots,
            message=self._messages.chain_hop(self._aggregate.name_of(mover_id), first.window),
            chain_data=chain_data.model_copy(
                update={
                    "parent_request_id": parent.id,
                    "chain_user_id": first.user_id,
                    "chain_slot": first.window,
                    "moves": [*chain_data.moves, hop_move],
                }
            ),
            created_at=self._now,
        )
        self._room.requests.append(hop)
        self._outcome.notify(first.user_id, hop.message)
        logging.info(
            "Chain hop %s: user %s -> user %s (depth %s, parent %s)",
            hop.id,
            mover_id,
            first.user_id,
            chain_data.depth,
            parent.id,
        )
        return hop

    def proceed(self, request: Request, actor_id: int) -> None:
        """Requester opted into the chain prepared for them."""
        hop = self.spawn_hop(request, request.chain_data)
        request.status = RequestStatus.PENDING
        request.response = (
            f"Chain adjustment in progress - request sent to "
            f"{self._aggregate.name_of(hop.target_user_id)}."
        )
        request.responded_at = self._now

    def resolve_hop(self, hop: Request, actor_id: int) -> None:
        """The chain member approved: relocate them, or go one hop deeper."""
        data = hop.chain_data
        if data is None:
            self.fail(hop, "Chain adjustment data is missing.", actor_id)
            return

        chain_user = hop.target_user_id
        vacated = sort_slots(find_overlapping_slots(self._room.time_slots, chain_user, hop.time_slot))
        if not vacated:
            self.fail(
                hop,
                f"The slot of {self._aggregate.name_of(chain_user)} could not be found.",
                actor_id,
            )
            return

        state = PlanState(data.moves)
        relocation = self._planner.relocation_for(chain_user, vacated, hop.time_slot, state)
        if relocation is None:
            self.open_chain(hop, data.moves, chain_user, vacated, data.depth + 1, actor_id)
            return

        self.complete(hop, [*data.moves, relocation], actor_id)

    def complete(self, hop: Request, moves: Sequence[Move], actor_id: int) -> None:
        try:
            self._room.time_slots = apply_moves(
                self._room.time_slots,
                moves,
                actor_id=actor_id,
                now=self._now,
                unit_minutes=self._unit,
            )
        except StalePlanError as exc:
            logging.warning("Chain hop %s is stale: %s", hop.id, exc)
            self.fail(hop, f"The chain adjustment could not be applied: {exc}.", actor_id)
            return

        approver = self._aggregate.name_of(hop.target_user_id)
        message = self._messages.chain_completed(approver)
        hop.resolve(RequestStatus.APPROVED, message, responded_by=actor_id, now=self._now)
        for ancestor in self.ancestors(hop):
            if ancestor.is_terminal:
                continue
            # the origin keeps the member who first approved it
            responder = ancestor.responded_by or actor_id
            ancestor.resolve(RequestStatus.APPROVED, message, responded_by=responder, now=self._now)
            if not ancestor.is_chain_hop:
                self.record_approval(ancestor, responder)

        for move in moves:
            self._outcome.notify(move.user_id, message)
            if isinstance(move, (DisplacementMove, ChainHop)):
                name = self._aggregate.name_of(move.user_id)
                self._outcome.record(
                    move.user_id,
                    name,
                    "slot_swap",
                    f"{name}: {self._messages.describe_block(move.from_slots)} -> "
                    f"{self._messages.describe(move.to_range)} ({move.subject})",
                    chainRequest=hop.id,
                )
        logging.info("Chain resolved at hop %s with %s move(s)", hop.id, len(moves))

    def record_approval(self, request: Request, responder_id: int) -> None:
        """Activity entries for an approved request: the responder's and the requester's move."""
        responder = self._aggregate.name_of(responder_id)
        requester = self._aggregate.name_of(request.requester_id)
        slot = self._messages.describe(request.time_slot)
        self._outcome.record(
            responder_id,
            responder,
            "change_approve",
            f"Approved the request of {requester} ({slot})",
            requestId=request.id,
        )
        previous = self._messages.describe_block(request.requester_slots) or "no slot"
        self._outcome.record(
            request.requester_id,
            requester,
            "slot_swap",
            f"{requester}: {previous} -> {slot} (approved by {responder})",
            requestId=request.id,
        )

    def fail(self, request: Request, reason: str, actor_id: int) -> None:
        request.resolve(RequestStatus.REJECTED, reason, responded_by=actor_id, now=self._now)
        self.cascade_rejection(request, reason)

    def cascade_rejection(self, request: Request, reason: str) -> None:
        """Mark every suspended ancestor rejected; the slot table stays untouched."""
        for ancestor in self.ancestors(request):
            if ancestor.is_terminal:
                continue
            ancestor.resolve(RequestStatus.REJECTED, reason, now=self._now)
            logging.info("Request %s rejected through chain hop %s", ancestor.id, request.id)
        origin = self.origin_of(request)
        if origin is not request:
            self._outcome.notify(origin.requester_id, reason)

    def cancel_open_hops(self, request: Request, actor_id: int) -> None:
        for hop in self._room.open_hops_of(request.id):
            hop.resolve(
                RequestStatus.CANCELLED,
                "The originating request was cancelled.",
                responded_by=actor_id,
                now=self._now,
            )
            self._outcome.notify(hop.target_user_id, hop.response)
            self.cancel_open_hops(hop, actor_id)
