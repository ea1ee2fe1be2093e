from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from common.time_utils import utc_now
from app.core.exchange.moves import Move
from app.core.exchange.schedule import AvailabilityEntry
from app.core.rooms.slots import TimeRange, TimeSlot, new_id


class RequestType(str, Enum):
    SLOT_SWAP = "slot_swap"
    TIME_REQUEST = "time_request"
    TIME_CHANGE = "time_change"
    SLOT_RELEASE = "slot_release"
    CHAIN_REQUEST = "chain_request"
    CHAIN_EXCHANGE_REQUEST = "chain_exchange_request"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    WAITING_FOR_CHAIN = "waiting_for_chain"
    NEEDS_CHAIN_CONFIRMATION = "needs_chain_confirmation"


TERMINAL_STATUSES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.CANCELLED}
)
CHAIN_TYPES = frozenset({RequestType.CHAIN_REQUEST, RequestType.CHAIN_EXCHANGE_REQUEST})
TARGETED_TYPES = frozenset(
    {RequestType.SLOT_SWAP, RequestType.TIME_REQUEST, RequestType.TIME_CHANGE}
)


class ChainCandidate(BaseModel):
    """A member whose block could absorb the displaced user."""

    user_id: int
    user_name: str
    window: TimeRange
    slots: List[TimeSlot]
    distance: int
    relocatable: bool = True


class ChainData(BaseModel):
    origin_request_id: str
    parent_request_id: str
    original_requester_id: int
    intermediate_user_id: int
    intermediate_slot: TimeRange
    chain_user_id: Optional[int] = None
    chain_slot: Optional[TimeRange] = None
    depth: int = 1
    moves: List[Move] = Field(default_factory=list)
    requester_original_slots: List[TimeSlot] = Field(default_factory=list)
    intermediate_original_slots: List[TimeSlot] = Field(default_factory=list)
    first_candidate: Optional[ChainCandidate] = None
    candidate_users: List[ChainCandidate] = Field(default_factory=list)
    rejected_users: List[int] = Field(default_factory=list)


class Request(BaseModel):
    id: str = Field(default_factory=new_id)
    requester_id: int
    type: RequestType
    target_user_id: Optional[int] = None
    target_slot: Optional[TimeRange] = None
    time_slot: TimeRange
    requester_slots: List[TimeSlot] = Field(default_factory=list)
    message: str = ""
    status: RequestStatus = RequestStatus.PENDING
    chain_data: Optional[ChainData] = None
    created_at: dt.datetime = Field(default_factory=utc_now)
    responded_at: Optional[dt.datetime] = None
    responded_by: Optional[int] = None
    response: Optional[str] = None

    @property
    def is_chain_hop(self) -> bool:
        return self.type in CHAIN_TYPES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def resolve(
        self,
        status: RequestStatus,
        response: str,
        *,
        responded_by: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> None:
        self.status = status
        self.response = response
        self.responded_at = now or utc_now()
        if responded_by is not None:
            self.responded_by = responded_by


class Member(BaseModel):
    user_id: int
    joined_at: dt.datetime = Field(default_factory=utc_now)
    color: str = "#6B7280"


class BlockedTime(BaseModel):
    name: str = ""
    start_time: str
    end_time: str


class BusinessHours(BaseModel):
    start_time: str
    end_time: str


class RoomSettings(BaseModel):
    blocked_times: List[BlockedTime] = Field(default_factory=list)
    business_hours: Optional[BusinessHours] = None
    travel_mode: Optional[str] = None
    chain_confirmation_required: Optional[bool] = None


class RoomDocument(BaseModel):
    """The room aggregate: sole owner of its members, slots and requests."""

    id: int
    name: str
    owner_id: int
    members: List[Member] = Field(default_factory=list)
    time_slots: List[TimeSlot] = Field(default_factory=list)
    requests: List[Request] = Field(default_factory=list)
    settings: RoomSettings = Field(default_factory=RoomSettings)

    @property
    def member_ids(self) -> List[int]:
        return [member.user_id for member in self.members]

    def participant_ids(self) -> List[int]:
        ids = [self.owner_id]
        ids.extend(user_id for user_id in self.member_ids if user_id != self.owner_id)
        return ids

    def is_owner(self, user_id: int) -> bool:
        return self.owner_id == user_id

    def is_member(self, user_id: int) -> bool:
        return self.is_owner(user_id) or user_id in self.member_ids

    def find_request(self, request_id: str) -> Optional[Request]:
        return next((request for request in self.requests if request.id == request_id), None)

    def slots_of(self, user_id: int) -> List[TimeSlot]:
        return [slot for slot in self.time_slots if slot.user_id == user_id]

    def find_slot(self, slot_id: str) -> Optional[TimeSlot]:
        return next((slot for slot in self.time_slots if slot.id == slot_id), None)

    def remove_slots(self, slot_ids) -> None:
        ids = set(slot_ids)
        self.time_slots = [slot for slot in self.time_slots if slot.id not in ids]

    def open_hops_of(self, request_id: str) -> List[Request]:
        return [
            request
            for request in self.requests
            if request.chain_data is not None
            and request.id != request_id
            and request.chain_data.parent_request_id == request_id
            and not request.is_terminal
        ]


class UserProfile(BaseModel):
    """Read-only view of a user profile: names, chat id and availability."""

    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    tg_id: Optional[int] = None
    default_schedule: List[AvailabilityEntry] = Field(default_factory=list)
    schedule_exceptions: List[AvailabilityEntry] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.email or f"User {self.id}"

    def availability_entries(self) -> List[AvailabilityEntry]:
        return [*self.default_schedule, *self.schedule_exceptions]


@dataclass
class RoomAggregate:
    """A loaded room together with its persisted version and the member profiles."""

    room: RoomDocument
    version: int
    profiles: Dict[int, UserProfile] = field(default_factory=dict)

    def profile(self, user_id: int) -> UserProfile:
        return self.profiles.get(user_id) or UserProfile(id=user_id)

    def name_of(self, user_id: Optional[int]) -> str:
        if user_id is None:
            return "Unknown"
        return self.profile(user_id).display_name
