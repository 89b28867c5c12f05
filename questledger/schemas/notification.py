"""Notification-related Pydantic schemas."""
from datetime import datetime, UTC
from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from questledger.schemas.base import BaseSchema


class NotificationKind(str, Enum):
    """Outcome of a quest command worth telling the player about."""
    COMPLETED = "Completed"
    SKIPPED = "Skipped"
    UNDONE = "Undone"


class QuestTransitionEvent(BaseSchema):
    """Structured event published by the quest engine after a command commits."""
    kind: NotificationKind
    player_id: str
    quest_id: str
    title: str
    reward_deltas: dict[str, int] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NotificationItem(BaseSchema):
    """A rendered notification kept in the player's recent history."""
    id: str
    type: Literal["quest", "stat"]
    quest_status: Optional[NotificationKind] = None
    quest_title: Optional[str] = None
    stat_label: Optional[str] = None
    amount: Optional[int] = None
    created_at: datetime


class NotificationListResponse(BaseSchema):
    """Recent notifications for the current player."""
    notifications: list[NotificationItem]
