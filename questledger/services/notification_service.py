"""In-process quest event bus and the notification history built on top of it.

The quest engine publishes one :class:`QuestTransitionEvent` per committed
command. Delivery is fire-and-forget: a failing subscriber is logged and never
affects the command that produced the event.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from datetime import datetime, UTC
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from questledger.config import get_settings
from questledger.schemas.notification import NotificationItem, NotificationKind, QuestTransitionEvent

logger = logging.getLogger(__name__)

QuestEventHandler = Callable[[QuestTransitionEvent], Awaitable[None]]


class QuestEventBus:
    """Publish quest transition events to registered async handlers."""

    def __init__(self) -> None:
        self._handlers: List[QuestEventHandler] = []

    def subscribe(self, handler: QuestEventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: QuestEventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: QuestTransitionEvent) -> None:
        """Deliver ``event`` to every handler in subscription order."""
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Quest event handler {getattr(handler, '__qualname__', handler)!r} failed "
                    f"for {event.kind.value} on quest {event.quest_id}: {e}",
                    exc_info=True,
                )


class NotificationService:
    """Keeps the most recent notifications per player.

    Each transition event becomes one quest notification, followed by a stat
    notification for every reward that went up. Older items fall off once the
    history limit is reached.
    """

    def __init__(self, history_limit: Optional[int] = None):
        self.history_limit = history_limit or get_settings().notification_history_limit
        self._history: Dict[str, Deque[NotificationItem]] = {}

    def _player_history(self, player_id: str) -> Deque[NotificationItem]:
        history = self._history.get(player_id)
        if history is None:
            history = deque(maxlen=self.history_limit)
            self._history[player_id] = history
        return history

    async def handle_event(self, event: QuestTransitionEvent) -> None:
        """Event bus subscriber."""
        self.add_quest_notification(event.player_id, event.kind, event.title)
        for label, amount in event.reward_deltas.items():
            self.add_stat_notification(event.player_id, label, amount)

    def add_quest_notification(self, player_id: str, kind: NotificationKind, title: str) -> NotificationItem:
        item = NotificationItem(
            id=str(uuid.uuid4()),
            type="quest",
            quest_status=kind,
            quest_title=title,
            created_at=datetime.now(UTC),
        )
        self._player_history(player_id).append(item)
        logger.debug(f"Quest notification for {player_id=}: {kind.value} {title!r}")
        return item

    def add_stat_notification(self, player_id: str, label: str, amount: int) -> Optional[NotificationItem]:
        """Record a stat increase. Decreases are not announced."""
        if amount <= 0:
            return None
        item = NotificationItem(
            id=str(uuid.uuid4()),
            type="stat",
            stat_label=label,
            amount=amount,
            created_at=datetime.now(UTC),
        )
        self._player_history(player_id).append(item)
        return item

    def list_notifications(self, player_id: str) -> List[NotificationItem]:
        """Newest first."""
        return list(reversed(self._history.get(player_id, ())))

    def clear_notifications(self, player_id: str) -> None:
        self._history.pop(player_id, None)


_event_bus = QuestEventBus()
_notification_service = NotificationService()


def get_event_bus() -> QuestEventBus:
    """Return the process-wide quest event bus."""
    return _event_bus


def get_notification_service() -> NotificationService:
    """Return the process-wide notification history."""
    return _notification_service
