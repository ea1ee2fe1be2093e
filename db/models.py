# db/models.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, JSON, func, Index, BigInteger, UniqueConstraint
from sqlalchemy.orm import relationship

from db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    tg_id = Column(BigInteger, unique=True, nullable=True)
    first_name = Column(Text)
    last_name = Column(Text)
    email = Column(Text, unique=True, nullable=True)
    # [{"dayOfWeek": 1, "startTime": "09:00", "endTime": "12:00", "priority": 2}, ...]
    default_schedule = Column(JSON, default=list)
    # date-specific windows, ISO datetimes in startTime/endTime
    schedule_exceptions = Column(JSON, default=list)
    created_at = Column(DateTime(), default=func.now())

    __table_args__ = (
        Index('idx_users_tg_id', 'tg_id'),
    )


class Room(Base):
    """One scheduling room; members, slots, requests and settings live in ``document``."""

    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete='CASCADE'), nullable=False)
    document = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(), default=func.now())
    updated_at = Column(DateTime(), default=func.now(), onupdate=func.now())

    owner = relationship("User")
    members = relationship("RoomMember", back_populates="room", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_rooms_owner_id', 'owner_id'),
    )


class RoomMember(Base):
    """Lookup of rooms per user, kept in sync with the room document on save."""

    __tablename__ = "room_members"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete='CASCADE'), nullable=False)

    room = relationship("Room", back_populates="members")

    __table_args__ = (
        UniqueConstraint('room_id', 'user_id', name='uq_room_members_room_user'),
        Index('idx_room_members_user_id', 'user_id'),
    )


class RoomRequestIndex(Base):
    """Maps request ids to their room so a request can be addressed without the room id."""

    __tablename__ = "room_request_index"

    request_id = Column(String(32), primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete='CASCADE'), nullable=False)

    __table_args__ = (
        Index('idx_room_request_index_room_id', 'room_id'),
    )


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete='SET NULL'), nullable=True)
    user_name = Column(Text)
    action = Column(String(64), nullable=False)
    details = Column(Text)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime(), default=func.now())

    __table_args__ = (
        Index('idx_activity_logs_room_created', 'room_id', 'created_at'),
    )
