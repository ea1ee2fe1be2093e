from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from aiogram import Bot

from app.config.settings import get_settings, Settings
from app.core.activity.service import ActivityLogService
from app.core.exchange.engine import EngineConfig
from app.core.exchange.service import RequestService
from app.core.messaging.service import MessageService
from app.core.rooms.repository import RoomLocks, SqlRoomRepository
from common.weekdays import DayNames, english_day_names
from db.database import async_session


@dataclass
class AppContainer:
    settings: Settings
    bot: Optional[Bot]
    day_names: DayNames
    message_service: MessageService
    activity_log: ActivityLogService
    room_repository: SqlRoomRepository
    request_service: RequestService


@lru_cache()
def get_container() -> AppContainer:
    settings = get_settings()
    bot = Bot(token=settings.bot_token) if settings.bot_token else None
    day_names = english_day_names()

    message_service = MessageService(bot)
    activity_log = ActivityLogService(async_session)
    room_repository = SqlRoomRepository(async_session)

    request_service = RequestService(
        room_repository,
        locks=RoomLocks(),
        message_service=message_service,
        activity_log=activity_log,
        config=EngineConfig(
            day_names=day_names,
            unit_minutes=settings.slot_unit_minutes,
            max_chain_depth=settings.max_chain_depth,
            chain_confirmation_required=settings.chain_confirmation_required,
        ),
        retry_attempts=settings.save_retry_attempts,
    )

    return AppContainer(
        settings=settings,
        bot=bot,
        day_names=day_names,
        message_service=message_service,
        activity_log=activity_log,
        room_repository=room_repository,
        request_service=request_service,
    )
