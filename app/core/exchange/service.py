from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from common.time_utils import ensure_utc
from config import SAVE_RETRY_ATTEMPTS
from app.core.exchange.engine import EngineConfig, NewRequest, RequestStateMachine
from app.core.exchange.errors import (
    ERROR_MESSAGES,
    ConcurrentModification,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from app.core.rooms.document import (
    Request,
    RequestType,
    RoomAggregate,
    RoomDocument,
)
from app.core.rooms.repository import RoomLocks, RoomRepository, VersionConflict
from app.core.rooms.slots import TimeRange

NowCallable = Callable[[], datetime]
T = TypeVar("T")

# Travel checks only make sense where the requester actually moves somewhere new.
TRAVEL_CHECKED_TYPES = frozenset({RequestType.TIME_REQUEST, RequestType.SLOT_SWAP})


@dataclass
class SimulationResult:
    feasible: bool
    reason: Optional[str] = None


class TravelSimulator:
    async def simulate(
        self, room: RoomDocument, user_id: int, time_range: TimeRange
    ) -> SimulationResult:  # pragma: no cover - protocol
        raise NotImplementedError


@dataclass
class RequestEntry:
    room_id: int
    room_name: str
    request: Request


class RequestService:
    """Entry point for every request operation on a room.

    Each mutation runs under the room's lock: load, apply through
    ``RequestStateMachine``, save with a version check. A version conflict
    reloads and replays the operation. Notifications and activity entries go
    out only after the save succeeded.
    """

    def __init__(
        self,
        repository: RoomRepository,
        *,
        locks: RoomLocks | None = None,
        message_service=None,
        activity_log=None,
        travel_simulator: TravelSimulator | None = None,
        config: EngineConfig | None = None,
        retry_attempts: int = SAVE_RETRY_ATTEMPTS,
        now_func: NowCallable | None = None,
    ) -> None:
        self._repository = repository
        self._locks = locks or RoomLocks()
        self._message_service = message_service
        self._activity_log = activity_log
        self._travel = travel_simulator
        self._config = config or EngineConfig()
        self._retry_attempts = retry_attempts
        self._now = now_func or (lambda: ensure_utc(datetime.now(timezone.utc)))

    async def create_request(self, user_id: int, room_id: int, new: NewRequest) -> Request:
        if self._travel is not None and new.type in TRAVEL_CHECKED_TYPES:
            aggregate = await self._repository.load(room_id)
            # permission and duplicate errors win over the travel verdict
            RequestStateMachine(aggregate, self._config, now=self._now()).validate_create(user_id, new)
            await self._check_travel(aggregate, user_id, new)
        return await self._mutate(room_id, lambda machine: machine.create(user_id, new))

    async def handle_request(
        self,
        user_id: int,
        request_id: str,
        action: str,
        message: Optional[str] = None,
    ) -> Request:
        room_id = await self._room_of(request_id)
        return await self._mutate(
            room_id, lambda machine: machine.handle(user_id, request_id, action, message)
        )

    async def cancel_request(self, user_id: int, request_id: str) -> Request:
        room_id = await self._room_of(request_id)
        return await self._mutate(room_id, lambda machine: machine.cancel(user_id, request_id))

    async def confirm_chain(self, user_id: int, request_id: str, action: str) -> Request:
        room_id = await self._room_of(request_id)
        return await self._mutate(
            room_id, lambda machine: machine.confirm_chain(user_id, request_id, action)
        )

    async def sent_requests(self, user_id: int) -> List[RequestEntry]:
        return await self._collect(user_id, lambda room, request: request.requester_id == user_id)

    async def received_requests(self, user_id: int) -> List[RequestEntry]:
        def addressed(room: RoomDocument, request: Request) -> bool:
            if request.target_user_id is not None:
                return request.target_user_id == user_id
            return room.is_owner(user_id)

        return await self._collect(user_id, addressed)

    async def get_room(self, user_id: int, room_id: int) -> RoomAggregate:
        aggregate = await self._repository.load(room_id)
        if not aggregate.room.is_member(user_id):
            raise PermissionDenied(ERROR_MESSAGES["NOT_A_MEMBER"])
        return aggregate

    async def _collect(self, user_id: int, predicate) -> List[RequestEntry]:
        entries: List[RequestEntry] = []
        for aggregate in await self._repository.rooms_for_user(user_id):
            room = aggregate.room
            entries.extend(
                RequestEntry(room_id=room.id, room_name=room.name, request=request)
                for request in room.requests
                if predicate(room, request)
            )
        entries.sort(key=lambda entry: entry.request.created_at, reverse=True)
        return entries

    async def _room_of(self, request_id: str) -> int:
        room_id = await self._repository.find_room_id(request_id)
        if room_id is None:
            raise NotFound(ERROR_MESSAGES["REQUEST_NOT_FOUND"])
        return room_id

    async def _check_travel(self, aggregate: RoomAggregate, user_id: int, new: NewRequest) -> None:
        room_id = aggregate.room.id
        mode = aggregate.room.settings.travel_mode
        if not mode or mode == "normal":
            return
        result = await self._travel.simulate(aggregate.room, user_id, new.time_slot)
        if not result.feasible:
            logging.info(
                "Travel check rejected user %s in room %s: %s", user_id, room_id, result.reason
            )
            raise ValidationFailed(ERROR_MESSAGES["INFEASIBLE_SLOT"])

    async def _mutate(self, room_id: int, operation: Callable[[RequestStateMachine], T]) -> T:
        async with self._locks.for_room(room_id):
            for attempt in range(1, self._retry_attempts + 1):
                aggregate = await self._repository.load(room_id)
                machine = RequestStateMachine(aggregate, self._config, now=self._now())
                result = operation(machine)
                try:
                    await self._repository.save(aggregate)
                except VersionConflict as exc:
                    logging.warning(
                        "Save conflict on room %s (attempt %s/%s): %s",
                        room_id,
                        attempt,
                        self._retry_attempts,
                        exc,
                    )
                    continue
                break
            else:
                raise ConcurrentModification(ERROR_MESSAGES["CONCURRENT_MODIFICATION"])

        await self._after_commit(aggregate, machine)
        return result

    async def _after_commit(self, aggregate: RoomAggregate, machine: RequestStateMachine) -> None:
        outcome = machine.outcome
        if self._activity_log is not None:
            await self._activity_log.record(aggregate.room.id, outcome.activity)
        if self._message_service is not None:
            await self._message_service.deliver(outcome.notices, aggregate.profiles)
