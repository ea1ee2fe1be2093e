from __future__ import annotations

import logging
from typing import Sequence

from app.core.exchange.outcome import ActivityRecord
from db.models import ActivityLog


class ActivityLogService:
    """Appends room activity entries; failures are logged and never propagate."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def record(self, room_id: int, records: Sequence[ActivityRecord]) -> None:
        if not records:
            return
        try:
            async with self._session_factory() as session:
                session.add_all(
                    ActivityLog(
                        room_id=room_id,
                        user_id=record.user_id,
                        user_name=record.user_name,
                        action=record.action,
                        details=record.details,
                        payload=record.payload,
                    )
                    for record in records
                )
                await session.commit()
        except Exception as exc:  # pragma: no cover - logging only
            logging.error("Failed to write activity log for room %s: %s", room_id, exc)
            return
        logging.info("Recorded %s activity entr(ies) for room %s", len(records), room_id)
