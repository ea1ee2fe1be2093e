from __future__ import annotations

import datetime as dt
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from common.time_utils import to_minutes
from common.weekdays import DayNames, Weekday
from config import MINUTES_PER_DAY
from app.core.exchange.engine import NewRequest
from app.core.exchange.errors import ERROR_MESSAGES, ValidationFailed
from app.core.rooms.document import (
    ChainData,
    Request,
    RequestType,
    RoomAggregate,
)
from app.core.rooms.slots import TimeRange, TimeSlot


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeSlotPayload(CamelModel):
    """Client time range: a day label (or index) and/or a concrete date."""

    day: Optional[Union[int, str]] = None
    date: Optional[dt.date] = None
    start_time: str
    end_time: str

    def to_time_range(self, day_names: DayNames) -> TimeRange:
        if self.day is None and self.date is None:
            raise ValidationFailed(ERROR_MESSAGES["REQUIRED_FIELDS_MISSING"])
        try:
            weekday = Weekday.from_date(self.date) if self.day is None else day_names.parse(self.day)
            start, end = to_minutes(self.start_time), to_minutes(self.end_time)
        except ValueError:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_TIME_RANGE"])
        if not 0 <= start < end <= MINUTES_PER_DAY:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_TIME_RANGE"])
        if self.date is not None and Weekday.from_date(self.date) != weekday:
            raise ValidationFailed(ERROR_MESSAGES["INVALID_TIME_RANGE"])
        return TimeRange.from_minutes(weekday, self.date, start, end)


class CreateRequestBody(CamelModel):
    room_id: int
    type: RequestType
    target_user_id: Optional[int] = None
    target_slot: Optional[TimeSlotPayload] = None
    time_slot: TimeSlotPayload
    message: Optional[str] = None

    def to_new_request(self, day_names: DayNames) -> NewRequest:
        return NewRequest(
            type=self.type,
            time_slot=self.time_slot.to_time_range(day_names),
            target_user_id=self.target_user_id,
            target_slot=self.target_slot.to_time_range(day_names) if self.target_slot else None,
            message=self.message,
        )


class RespondBody(CamelModel):
    message: Optional[str] = None


class ChainConfirmBody(CamelModel):
    action: str


class TimeRangeView(CamelModel):
    day: str
    date: Optional[dt.date] = None
    start_time: str
    end_time: str


class SlotView(TimeRangeView):
    id: str
    user_id: int
    subject: str
    status: str


class ChainView(CamelModel):
    origin_request_id: str
    parent_request_id: str
    original_requester_id: int
    intermediate_user_id: int
    chain_user_id: Optional[int] = None
    depth: int


class RequestView(CamelModel):
    id: str
    room_id: Optional[int] = None
    room_name: Optional[str] = None
    type: RequestType
    status: str
    requester_id: int
    target_user_id: Optional[int] = None
    time_slot: TimeRangeView
    target_slot: Optional[TimeRangeView] = None
    requester_slots: List[SlotView] = []
    message: str = ""
    response: Optional[str] = None
    responded_by: Optional[int] = None
    responded_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    chain_data: Optional[ChainView] = None


class MemberView(CamelModel):
    user_id: int
    name: str
    color: str
    joined_at: dt.datetime


class RoomView(CamelModel):
    id: int
    name: str
    owner_id: int
    owner_name: str
    version: int
    members: List[MemberView]
    time_slots: List[SlotView]
    requests: List[RequestView]


def range_view(rng: TimeRange, day_names: DayNames) -> TimeRangeView:
    return TimeRangeView(
        day=day_names.label(rng.weekday),
        date=rng.date,
        start_time=rng.start_time,
        end_time=rng.end_time,
    )


def slot_view(slot: TimeSlot, day_names: DayNames) -> SlotView:
    return SlotView(
        id=slot.id,
        user_id=slot.user_id,
        subject=slot.subject,
        status=slot.status.value,
        day=day_names.label(slot.weekday),
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
    )


def chain_view(data: Optional[ChainData]) -> Optional[ChainView]:
    if data is None:
        return None
    return ChainView(
        origin_request_id=data.origin_request_id,
        parent_request_id=data.parent_request_id,
        original_requester_id=data.original_requester_id,
        intermediate_user_id=data.intermediate_user_id,
        chain_user_id=data.chain_user_id,
        depth=data.depth,
    )


def request_view(
    request: Request,
    day_names: DayNames,
    *,
    room_id: Optional[int] = None,
    room_name: Optional[str] = None,
) -> RequestView:
    return RequestView(
        id=request.id,
        room_id=room_id,
        room_name=room_name,
        type=request.type,
        status=request.status.value,
        requester_id=request.requester_id,
        target_user_id=request.target_user_id,
        time_slot=range_view(request.time_slot, day_names),
        target_slot=range_view(request.target_slot, day_names) if request.target_slot else None,
        requester_slots=[slot_view(slot, day_names) for slot in request.requester_slots],
        message=request.message,
        response=request.response,
        responded_by=request.responded_by,
        responded_at=request.responded_at,
        created_at=request.created_at,
        chain_data=chain_view(request.chain_data),
    )


def room_view(aggregate: RoomAggregate, day_names: DayNames) -> RoomView:
    room = aggregate.room
    return RoomView(
        id=room.id,
        name=room.name,
        owner_id=room.owner_id,
        owner_name=aggregate.name_of(room.owner_id),
        version=aggregate.version,
        members=[
            MemberView(
                user_id=member.user_id,
                name=aggregate.name_of(member.user_id),
                color=member.color,
                joined_at=member.joined_at,
            )
            for member in room.members
        ],
        time_slots=[slot_view(slot, day_names) for slot in room.time_slots],
        requests=[
            request_view(request, day_names, room_id=room.id, room_name=room.name)
            for request in room.requests
        ],
    )
