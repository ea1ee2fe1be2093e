from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from aiogram import Bot

from app.core.exchange.outcome import Notice
from app.core.rooms.document import UserProfile


class MessageService:
    """Thin wrapper over aiogram Bot that delivers request notices to members."""

    def __init__(self, bot: Optional[Bot]):
        self._bot = bot

    async def deliver(
        self,
        notices: Sequence[Notice],
        profiles: Mapping[int, UserProfile],
    ) -> None:
        for notice in notices:
            profile = profiles.get(notice.user_id)
            if not profile or not profile.tg_id:
                logging.debug("No chat for user %s; notice dropped", notice.user_id)
                continue
            await self._send(profile, notice.text)

    async def _send(self, user: UserProfile, text: str) -> None:
        if self._bot is None:
            logging.info("Bot disabled, message to user %s not sent", user.id)
            return
        try:
            await self._bot.send_message(chat_id=user.tg_id, text=text)
        except Exception as exc:  # pragma: no cover - logging only
            logging.error(
                "Failed to deliver message to %s (%s): %s",
                user.display_name,
                user.tg_id,
                exc,
            )
