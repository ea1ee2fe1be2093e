from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from common.time_utils import week_bounds
from common.weekdays import DayNames, english_day_names
from config import CHAIN_CONFIRMATION_REQUIRED, MAX_CHAIN_DEPTH, SLOT_UNIT_MINUTES
from app.core.exchange.chain import ChainOrchestrator
from app.core.exchange.direct import is_mutually_compatible, plan_direct_exchange
from app.core.exchange.errors import (
    ERROR_MESSAGES,
    NotFound,
    PermissionDenied,
    StalePlanError,
    ValidationFailed,
)
from app.core.exchange.messages import MessageBuilder
from app.core.exchange.moves import DirectMove, Move, PlanState, apply_moves
from app.core.exchange.outcome import Outcome
from app.core.exchange.overlap import find_overlapping_slots
from app.core.exchange.planner import DisplacementPlanner
from app.core.rooms.document import (
    CHAIN_TYPES,
    TARGETED_TYPES,
    Request,
    RequestStatus,
    RequestType,
    RoomAggregate,
)
from app.core.rooms.slots import TimeRange, TimeSlot, contiguous_blocks, sort_slots

APPROVE = "approved"
REJECT = "rejected"
PROCEED = "proceed"
CANCEL = "cancel"

REQUESTED_SLOT_SUBJECT = "Requested time"
SWAP_SUBJECT = "Slot swap"


@dataclass(frozen=True)
class EngineConfig:
    day_names: DayNames = field(default_factory=english_day_names)
    unit_minutes: int = SLOT_UNIT_MINUTES
    max_chain_depth: int = MAX_CHAIN_DEPTH
    chain_confirmation_required: bool = CHAIN_CONFIRMATION_REQUIRED


@dataclass
class NewRequest:
    type: RequestType
    time_slot: TimeRange
    target_user_id: Optional[int] = None
    target_slot: Optional[TimeRange] = None
    message: Optional[str] = None


class RequestStateMachine:
    """Applies one user action to a loaded room.

    Works purely on the in-memory aggregate; persistence, locking and delivery
    of the collected ``outcome`` are the caller's job.
    """

    def __init__(self, aggregate: RoomAggregate, config: EngineConfig, *, now: dt.datetime) -> None:
        self._aggregate = aggregate
        self._room = aggregate.room
        self._config = config
        self._now = now
        self.outcome = Outcome()
        self._messages = MessageBuilder(config.day_names)
        self._planner = DisplacementPlanner(
            aggregate,
            unit_minutes=config.unit_minutes,
            reference_date=now.date(),
        )
        confirmation = config.chain_confirmation_required or bool(
            self._room.settings.chain_confirmation_required
        )
        self._chains = ChainOrchestrator(
            aggregate,
            self._planner,
            self._messages,
            self.outcome,
            unit_minutes=config.unit_minutes,
            max_depth=config.max_chain_depth,
            confirmation_required=confirmation,
            now=now,
        )

    # ------------------------------------------------------------------ create

    def create(self, requester_id: int, new: NewRequest) -> Request:
        room = self._room
        self.validate_create(requester_id, new)

        snapshot = self.snapshot_requester_slots(requester_id, new.time_slot)
        request = Request(
            requester_id=requester_id,
            type=new.type,
            target_user_id=new.target_user_id,
            target_slot=new.target_slot,
            time_slot=new.time_slot,
            requester_slots=[slot.model_copy() for slot in snapshot],
            message=new.message or self._default_message(requester_id, new, snapshot),
            created_at=self._now,
        )
        room.requests.append(request)

        # Releases go to the owner, everything else to the target.
        recipient = room.owner_id if new.type is RequestType.SLOT_RELEASE else new.target_user_id
        self.outcome.notify(recipient, request.message)
        logging.info(
            "Request %s created in room %s: %s by user %s -> user %s",
            request.id,
            room.id,
            request.type.value,
            requester_id,
            request.target_user_id,
        )
        return request

    def validate_create(self, requester_id: int, new: NewRequest) -> None:
        """Permission, shape and duplicate checks for a new request; mutates nothing."""
        room = self._room
        if room.is_owner(requester_id):
            raise PermissionDenied(ERROR_MESSAGES["OWNER_CANNOT_REQUEST"])
        if not room.is_member(requester_id):
            raise PermissionDenied(ERROR_MESSAGES["NOT_A_MEMBER"])
        if new.type in CHAIN_TYPES:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_REQUEST_TYPE"])
        if new.time_slot.duration <= 0:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_TIME_RANGE"])
        if new.target_slot is not None and new.target_slot.duration <= 0:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_TIME_RANGE"])

        if new.type in TARGETED_TYPES:
            target = new.target_user_id
            if target is None:
                raise ValidationFailed(ERROR_MESSAGES["TARGET_REQUIRED"])
            if target == requester_id:
                raise ValidationFailed(ERROR_MESSAGES["SELF_TARGET"])
            if room.is_owner(target):
                raise ValidationFailed(ERROR_MESSAGES["OWNER_NOT_TARGETABLE"])
            if not room.is_member(target):
                raise ValidationFailed(ERROR_MESSAGES["TARGET_NOT_MEMBER"])

        if self.find_duplicate(requester_id, new) is not None:
            raise ValidationFailed(ERROR_MESSAGES["DUPLICATE_REQUEST"], duplicate_request=True)

    def find_duplicate(self, requester_id: int, new: NewRequest) -> Optional[Request]:
        rng = new.time_slot
        for request in self._room.requests:
            if request.requester_id != requester_id or request.status is not RequestStatus.PENDING:
                continue
            if request.type is not new.type:
                continue
            existing = request.time_slot
            if (
                existing.weekday != rng.weekday
                or existing.date != rng.date
                or existing.start_minutes != rng.start_minutes
                or existing.end_minutes != rng.end_minutes
            ):
                continue
            if new.type in TARGETED_TYPES and request.target_user_id != new.target_user_id:
                continue
            return request
        return None

    def snapshot_requester_slots(self, requester_id: int, rng: TimeRange) -> List[TimeSlot]:
        """The requester's block that the requested range would replace.

        Prefers the block on the requested date, then the earliest block of
        the same week. Weekday-only requests consider every week.
        """
        own = self._room.slots_of(requester_id)
        if rng.date is not None:
            week = week_bounds(rng.date)
            own = [slot for slot in own if week_bounds(slot.date) == week]
        blocks = contiguous_blocks(own)
        if not blocks:
            return []
        same_day = [block for block in blocks if block[0].same_day(rng)]
        return (same_day or blocks)[0]

    def _default_message(self, requester_id: int, new: NewRequest, snapshot: Sequence[TimeSlot]) -> str:
        name = self._aggregate.name_of(requester_id)
        if new.type is RequestType.SLOT_RELEASE:
            return self._messages.slot_release(name, new.time_slot)
        if new.type is RequestType.SLOT_SWAP and new.target_slot is not None:
            return self._messages.slot_swap(name, new.time_slot, new.target_slot)
        return self._messages.time_request(name, new.time_slot, snapshot)

    # ------------------------------------------------------------------ handle

    def handle(self, actor_id: int, request_id: str, action: str, message: Optional[str] = None) -> Request:
        if action not in (APPROVE, REJECT):
            raise ValidationFailed(ERROR_MESSAGES["INVALID_ACTION"])
        room = self._room
        request = room.find_request(request_id)
        if request is None:
            raise NotFound(ERROR_MESSAGES["REQUEST_NOT_FOUND"])
        if not (room.is_owner(actor_id) or request.target_user_id == actor_id):
            raise PermissionDenied(ERROR_MESSAGES["NO_PERMISSION"])
        if request.status is not RequestStatus.PENDING:
            raise ValidationFailed(ERROR_MESSAGES["ALREADY_PROCESSED"])
        if room.open_hops_of(request.id):
            raise ValidationFailed(ERROR_MESSAGES["CHAIN_IN_PROGRESS"])

        request.responded_by = actor_id
        request.responded_at = self._now
        request.response = message or ""

        if action == REJECT:
            self._reject(request, actor_id)
        elif request.type is RequestType.SLOT_RELEASE:
            self._approve_release(request)
        elif request.type is RequestType.SLOT_SWAP:
            self._approve_swap(request, actor_id)
        elif request.is_chain_hop:
            self._chains.resolve_hop(request, actor_id)
        else:
            self._approve_time_request(request, actor_id)

        if request.status is RequestStatus.APPROVED and not request.is_chain_hop:
            self._chains.record_approval(request, actor_id)
        if request.status in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            self.outcome.notify(request.requester_id, self._status_notice(request))
        logging.info(
            "Request %s handled by user %s: %s -> %s",
            request.id,
            actor_id,
            action,
            request.status.value,
        )
        return request

    def _reject(self, request: Request, actor_id: int) -> None:
        request.status = RequestStatus.REJECTED
        responder = self._aggregate.name_of(actor_id)
        self.outcome.record(
            actor_id,
            responder,
            "change_reject",
            f"Rejected the request of {self._aggregate.name_of(request.requester_id)} "
            f"({self._messages.describe(request.time_slot)})",
            requestId=request.id,
        )
        if request.is_chain_hop:
            self._chains.cascade_rejection(
                request,
                self._messages.chain_rejected(responder, request.time_slot),
            )

    def _approve_release(self, request: Request) -> None:
        released = find_overlapping_slots(self._room.time_slots, request.requester_id, request.time_slot)
        self._room.remove_slots(slot.id for slot in released)
        request.status = RequestStatus.APPROVED
        logging.info("Released %s slot(s) of user %s", len(released), request.requester_id)

    def _approve_swap(self, request: Request, actor_id: int) -> None:
        requester, target = request.requester_id, request.target_user_id
        taken = find_overlapping_slots(self._room.time_slots, target, request.time_slot)
        if not taken:
            request.resolve(
                RequestStatus.REJECTED,
                f"{self._aggregate.name_of(target)} no longer holds "
                f"{self._messages.describe(request.time_slot)}.",
                now=self._now,
            )
            return
        given: List[TimeSlot] = []
        if request.target_slot is not None:
            given = find_overlapping_slots(self._room.time_slots, requester, request.target_slot)

        for slot, owner in [*((slot, requester) for slot in taken), *((slot, target) for slot in given)]:
            slot.user_id = owner
            slot.subject = SWAP_SUBJECT
            slot.assigned_by = actor_id
            slot.assigned_at = self._now
        request.status = RequestStatus.APPROVED

    def _approve_time_request(self, request: Request, actor_id: int) -> None:
        requester, target = request.requester_id, request.target_user_id
        rng = request.time_slot
        if any(slot.overlaps(rng) for slot in self._room.slots_of(requester)):
            request.status = RequestStatus.APPROVED
            request.response = request.response or "You already hold this time."
            return

        overlapping = sort_slots(find_overlapping_slots(self._room.time_slots, target, rng))
        placement_date = rng.date or (overlapping[0].date if overlapping else None)
        if placement_date is None:
            request.resolve(
                RequestStatus.REJECTED,
                "The requested time has no concrete date in this room.",
                now=self._now,
            )
            return
        requested = rng.model_copy(update={"date": placement_date})
        own = self._live_requester_slots(request)
        requester_move = DirectMove(
            user_id=requester,
            from_slots=own,
            to_ranges=[requested],
            subject=REQUESTED_SLOT_SUBJECT,
        )

        if not overlapping:
            if not self._planner.within_room_bounds(requested):
                request.resolve(
                    RequestStatus.REJECTED,
                    "The requested time is outside the room's available hours.",
                    now=self._now,
                )
                return
            self._apply(request, [requester_move], actor_id)
            return

        if is_mutually_compatible(
            self._planner.availability(requester),
            self._planner.availability(target),
            own,
            overlapping,
        ):
            logging.info("Direct exchange between user %s and user %s", requester, target)
            self._apply(request, plan_direct_exchange(requester, target, own, overlapping), actor_id)
            return

        relocation = self._planner.relocation_for(target, overlapping, requested, PlanState([requester_move]))
        if relocation is not None:
            if self._apply(request, [requester_move, relocation], actor_id):
                target_name = self._aggregate.name_of(target)
                details = self._messages.relocated(
                    target_name,
                    overlapping,
                    relocation.to_range,
                    self._aggregate.name_of(requester),
                )
                self.outcome.record(target, target_name, "slot_swap", details, requestId=request.id)
                self.outcome.notify(target, details)
            return

        self._chains.open_chain(request, [requester_move], target, overlapping, 1, actor_id)

    def _live_requester_slots(self, request: Request) -> List[TimeSlot]:
        """Current slots matching the creation-time snapshot."""
        live: List[TimeSlot] = []
        own = self._room.slots_of(request.requester_id)
        for snap in request.requester_slots:
            match = self._room.find_slot(snap.id)
            if match is None or match.user_id != request.requester_id:
                match = next(
                    (
                        slot
                        for slot in own
                        if slot.date == snap.date
                        and slot.start_minutes == snap.start_minutes
                        and slot.end_minutes == snap.end_minutes
                    ),
                    None,
                )
            if match is not None and match not in live:
                live.append(match)
        return live

    def _apply(self, request: Request, moves: List[Move], actor_id: int) -> bool:
        try:
            self._room.time_slots = apply_moves(
                self._room.time_slots,
                moves,
                actor_id=actor_id,
                now=self._now,
                unit_minutes=self._config.unit_minutes,
            )
        except StalePlanError as exc:
            logging.warning("Request %s could not be applied: %s", request.id, exc)
            request.resolve(
                RequestStatus.REJECTED,
                f"The schedule changed before approval: {exc}.",
                now=self._now,
            )
            return False
        request.status = RequestStatus.APPROVED
        return True

    def _status_notice(self, request: Request) -> str:
        verdict = "approved" if request.status is RequestStatus.APPROVED else "rejected"
        text = f"Your request for {self._messages.describe(request.time_slot)} was {verdict}."
        if request.response:
            text += f" {request.response}"
        return text

    # ------------------------------------------------------------------ cancel / confirm

    def cancel(self, actor_id: int, request_id: str) -> Request:
        request = self._room.find_request(request_id)
        if request is None:
            raise NotFound(ERROR_MESSAGES["REQUEST_NOT_FOUND"])
        if request.is_chain_hop:
            raise ValidationFailed(ERROR_MESSAGES["CHAIN_HOP_NOT_CANCELLABLE"])
        if request.requester_id != actor_id:
            raise PermissionDenied(ERROR_MESSAGES["CANCEL_REQUESTER_ONLY"])
        if request.status is not RequestStatus.PENDING:
            raise ValidationFailed(ERROR_MESSAGES["CANCEL_PENDING_ONLY"])

        request.resolve(
            RequestStatus.CANCELLED,
            "Cancelled by the requester.",
            responded_by=actor_id,
            now=self._now,
        )
        self._chains.cancel_open_hops(request, actor_id)
        self.outcome.notify(request.target_user_id, f"{self._aggregate.name_of(actor_id)} cancelled a request.")
        logging.info("Request %s cancelled by user %s", request.id, actor_id)
        return request

    def confirm_chain(self, actor_id: int, request_id: str, action: str) -> Request:
        if action not in (PROCEED, CANCEL):
            raise ValidationFailed(ERROR_MESSAGES["INVALID_CHAIN_ACTION"])
        request = self._room.find_request(request_id)
        if request is None:
            raise NotFound(ERROR_MESSAGES["REQUEST_NOT_FOUND"])
        if request.requester_id != actor_id:
            raise PermissionDenied(ERROR_MESSAGES["CHAIN_CONFIRM_REQUESTER_ONLY"])
        if request.status is not RequestStatus.NEEDS_CHAIN_CONFIRMATION:
            raise ValidationFailed(ERROR_MESSAGES["CHAIN_CONFIRMATION_NOT_NEEDED"])
        if request.chain_data is None or request.chain_data.first_candidate is None:
            raise ValidationFailed(ERROR_MESSAGES["CHAIN_DATA_MISSING"])

        if action == CANCEL:
            request.resolve(
                RequestStatus.CANCELLED,
                "The requester cancelled the chain adjustment.",
                responded_by=actor_id,
                now=self._now,
            )
        else:
            self._chains.proceed(request, actor_id)
        logging.info("Chain confirmation for request %s: %s", request.id, action)
        return request
