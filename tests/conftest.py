from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Tuple

import pytest

from app.core.exchange.engine import EngineConfig
from app.core.exchange.errors import ERROR_MESSAGES, NotFound
from app.core.exchange.service import RequestService
from app.core.messaging.service import MessageService
from app.core.rooms.document import Member, RoomAggregate, RoomDocument, RoomSettings, UserProfile
from app.core.rooms.repository import RoomRepository, VersionConflict
from app.core.rooms.slots import TimeSlot, contiguous_blocks
from common.weekdays import Weekday, english_day_names

MONDAY = date(2026, 10, 12)
TUESDAY = MONDAY + timedelta(days=1)
NOW = datetime(2026, 10, 12, 7, 0, tzinfo=timezone.utc)

ROOM_ID = 10
OWNER, ALICE, BOB, CAROL, DAVE = 1, 2, 3, 4, 5


def weekly(day: Weekday, start: str, end: str) -> dict:
    return {"dayOfWeek": int(day), "startTime": start, "endTime": end, "priority": 2}


def slot(user_id: int, on: date, start: str, end: str) -> TimeSlot:
    return TimeSlot(
        weekday=Weekday.from_date(on),
        date=on,
        start_time=start,
        end_time=end,
        user_id=user_id,
    )


def profile(user_id: int, name: str, *windows: dict) -> UserProfile:
    return UserProfile.model_validate(
        {
            "id": user_id,
            "first_name": name,
            "tg_id": 1000 + user_id,
            "default_schedule": list(windows),
        }
    )


def blocks_of(room: RoomDocument, user_id: int) -> List[Tuple[date, str, str]]:
    """The user's slots merged into contiguous (date, start, end) blocks."""
    return [
        (block[0].date, block[0].start_time, block[-1].end_time)
        for block in contiguous_blocks(room.slots_of(user_id))
    ]


def minutes_of(room: RoomDocument, user_ids) -> int:
    return sum(slot.duration for slot in room.time_slots if slot.user_id in user_ids)


class InMemoryRoomRepository(RoomRepository):
    """Keeps deep copies so every load sees only what was saved."""

    def __init__(self) -> None:
        self.rooms: Dict[int, RoomDocument] = {}
        self.versions: Dict[int, int] = {}
        self.profiles: Dict[int, UserProfile] = {}
        self.conflicts_remaining = 0
        self.saves = 0

    def add_room(self, room: RoomDocument, profiles: List[UserProfile]) -> None:
        self.rooms[room.id] = room.model_copy(deep=True)
        self.versions[room.id] = 0
        self.profiles.update({item.id: item for item in profiles})

    def room(self, room_id: int = ROOM_ID) -> RoomDocument:
        return self.rooms[room_id]

    async def load(self, room_id: int) -> RoomAggregate:
        if room_id not in self.rooms:
            raise NotFound(ERROR_MESSAGES["ROOM_NOT_FOUND"])
        return RoomAggregate(
            room=self.rooms[room_id].model_copy(deep=True),
            version=self.versions[room_id],
            profiles=dict(self.profiles),
        )

    async def save(self, aggregate: RoomAggregate) -> None:
        room_id = aggregate.room.id
        if self.conflicts_remaining:
            # another writer got there first
            self.conflicts_remaining -= 1
            self.versions[room_id] += 1
        if self.versions[room_id] != aggregate.version:
            raise VersionConflict(room_id, aggregate.version)
        self.rooms[room_id] = aggregate.room.model_copy(deep=True)
        self.versions[room_id] += 1
        aggregate.version = self.versions[room_id]
        self.saves += 1

    async def find_room_id(self, request_id: str):
        for room_id, room in self.rooms.items():
            if room.find_request(request_id) is not None:
                return room_id
        return None

    async def rooms_for_user(self, user_id: int) -> List[RoomAggregate]:
        return [
            await self.load(room_id)
            for room_id, room in sorted(self.rooms.items())
            if room.is_member(user_id)
        ]


class FakeActivityLog:
    def __init__(self) -> None:
        self.entries = []

    async def record(self, room_id, records) -> None:
        self.entries.extend((room_id, record) for record in records)

    def actions(self) -> List[str]:
        return [record.action for _, record in self.entries]


@pytest.fixture
def fake_bot():
    class _Bot:
        def __init__(self):
            self.sent_messages = []

        async def send_message(self, chat_id, text, **kwargs):
            self.sent_messages.append(
                {"chat_id": chat_id, "text": text, "kwargs": kwargs}
            )

    return _Bot()


@pytest.fixture
def message_service(fake_bot):
    return MessageService(fake_bot)


@pytest.fixture
def activity_log():
    return FakeActivityLog()


@pytest.fixture
def day_names():
    return english_day_names()


@pytest.fixture
def repository():
    return InMemoryRoomRepository()


@pytest.fixture
def make_room(repository):
    """Register a room with the owner plus Alice, Bob, Carol and Dave.

    The owner is available Monday to Friday 08:00-20:00 unless ``availability``
    overrides it; member availability is passed per test.
    """

    def _make(*slots: TimeSlot, availability=None, settings=None) -> RoomDocument:
        availability = availability or {}
        room = RoomDocument(
            id=ROOM_ID,
            name="Studio A",
            owner_id=OWNER,
            members=[Member(user_id=user_id) for user_id in (ALICE, BOB, CAROL, DAVE)],
            time_slots=list(slots),
            settings=settings or RoomSettings(),
        )
        owner_hours = [weekly(day, "08:00", "20:00") for day in Weekday if day not in (Weekday.SATURDAY, Weekday.SUNDAY)]
        profiles = [
            profile(OWNER, "Olga", *availability.get(OWNER, owner_hours)),
            profile(ALICE, "Alice", *availability.get(ALICE, [])),
            profile(BOB, "Bob", *availability.get(BOB, [])),
            profile(CAROL, "Carol", *availability.get(CAROL, [])),
            profile(DAVE, "Dave", *availability.get(DAVE, [])),
        ]
        repository.add_room(room, profiles)
        return room

    return _make


@pytest.fixture
def make_service(repository, message_service, activity_log):
    def _make(**overrides) -> RequestService:
        config = EngineConfig(
            unit_minutes=overrides.pop("unit_minutes", 30),
            max_chain_depth=overrides.pop("max_chain_depth", 2),
            chain_confirmation_required=overrides.pop("chain_confirmation_required", False),
        )
        return RequestService(
            repository,
            message_service=message_service,
            activity_log=activity_log,
            config=config,
            now_func=lambda: NOW,
            **overrides,
        )

    return _make


@pytest.fixture
def request_service(make_service):
    return make_service()
