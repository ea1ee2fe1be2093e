from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Notice:
    user_id: int
    text: str


@dataclass
class ActivityRecord:
    user_id: int
    user_name: str
    action: str
    details: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Outcome:
    """Side effects collected while mutating a room, delivered after the save commits."""

    notices: List[Notice] = field(default_factory=list)
    activity: List[ActivityRecord] = field(default_factory=list)

    def notify(self, user_id: int | None, text: str) -> None:
        if user_id is None or not text:
            return
        self.notices.append(Notice(user_id=user_id, text=text))

    def record(self, user_id: int, user_name: str, action: str, details: str, **payload: Any) -> None:
        self.activity.append(ActivityRecord(user_id, user_name, action, details, dict(payload)))
