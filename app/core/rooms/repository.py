from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update

from app.core.exchange.errors import ERROR_MESSAGES, NotFound
from app.core.rooms.document import RoomAggregate, RoomDocument, UserProfile
from db.models import Room, RoomMember, RoomRequestIndex, User


class VersionConflict(Exception):
    """The room was saved by someone else since it was loaded."""

    def __init__(self, room_id: int, expected_version: int) -> None:
        super().__init__(f"room {room_id} is no longer at version {expected_version}")
        self.room_id = room_id
        self.expected_version = expected_version


class RoomRepository:
    async def load(self, room_id: int) -> RoomAggregate:  # pragma: no cover - protocol
        raise NotImplementedError

    async def save(self, aggregate: RoomAggregate) -> None:  # pragma: no cover - protocol
        raise NotImplementedError

    async def find_room_id(self, request_id: str) -> Optional[int]:  # pragma: no cover - protocol
        raise NotImplementedError

    async def rooms_for_user(self, user_id: int) -> List[RoomAggregate]:  # pragma: no cover - protocol
        raise NotImplementedError


class RoomLocks:
    """One asyncio lock per room; serialises mutations inside this process.

    Locks are held weakly, so a room's lock is dropped once nobody holds or
    waits on it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_room(self, room_id: int) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock


def profile_from_user(user: User) -> UserProfile:
    return UserProfile.model_validate(
        {
            "id": user.id,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "email": user.email,
            "tg_id": user.tg_id,
            "default_schedule": user.default_schedule or [],
            "schedule_exceptions": user.schedule_exceptions or [],
        }
    )


class SqlRoomRepository(RoomRepository):
    """Rooms stored as one JSON document per row, guarded by a version column."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def load(self, room_id: int) -> RoomAggregate:
        async with self._session_factory() as session:
            room = await session.get(Room, room_id)
            if room is None:
                raise NotFound(ERROR_MESSAGES["ROOM_NOT_FOUND"])
            document = RoomDocument.model_validate(
                {
                    **(room.document or {}),
                    "id": room.id,
                    "name": room.name,
                    "owner_id": room.owner_id,
                }
            )
            profiles = await self._load_profiles(session, document.participant_ids())
            return RoomAggregate(room=document, version=room.version, profiles=profiles)

    async def save(self, aggregate: RoomAggregate) -> None:
        document = aggregate.room
        payload = document.model_dump(mode="json", exclude={"id", "name", "owner_id"})
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Room)
                    .where(Room.id == document.id, Room.version == aggregate.version)
                    .values(document=payload, version=Room.version + 1)
                )
                if result.rowcount != 1:
                    raise VersionConflict(document.id, aggregate.version)
                await self._sync_members(session, document)
                await self._sync_request_index(session, document)
        aggregate.version += 1
        logging.info("Room %s saved at version %s", document.id, aggregate.version)

    async def find_room_id(self, request_id: str) -> Optional[int]:
        async with self._session_factory() as session:
            entry = await session.get(RoomRequestIndex, request_id)
            return entry.room_id if entry else None

    async def rooms_for_user(self, user_id: int) -> List[RoomAggregate]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RoomMember.room_id).where(RoomMember.user_id == user_id)
            )
            room_ids = sorted(set(result.scalars().all()))
        return [await self.load(room_id) for room_id in room_ids]

    async def _load_profiles(self, session, user_ids: Iterable[int]) -> Dict[int, UserProfile]:
        ids = list(user_ids)
        if not ids:
            return {}
        result = await session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: profile_from_user(user) for user in result.scalars().all()}

    async def _sync_members(self, session, document: RoomDocument) -> None:
        await session.execute(delete(RoomMember).where(RoomMember.room_id == document.id))
        session.add_all(
            RoomMember(room_id=document.id, user_id=user_id)
            for user_id in document.participant_ids()
        )

    async def _sync_request_index(self, session, document: RoomDocument) -> None:
        result = await session.execute(
            select(RoomRequestIndex.request_id).where(RoomRequestIndex.room_id == document.id)
        )
        known = set(result.scalars().all())
        session.add_all(
            RoomRequestIndex(request_id=request.id, room_id=document.id)
            for request in document.requests
            if request.id not in known
        )
