"""Tests for the quest event bus and notification history."""
import logging

import pytest

from questledger.schemas.notification import NotificationKind, QuestTransitionEvent
from questledger.services import NotificationService, QuestEventBus


def _event(kind=NotificationKind.COMPLETED, title="Meditate", player_id="p1", **kwargs):
    return QuestTransitionEvent(kind=kind, player_id=player_id, quest_id="q1", title=title, **kwargs)


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_delivery(caplog):
    bus = QuestEventBus()
    received = []

    async def broken(event):
        raise RuntimeError("boom")

    async def working(event):
        received.append(event)

    bus.subscribe(broken)
    bus.subscribe(working)

    with caplog.at_level(logging.ERROR):
        await bus.publish(_event())

    assert len(received) == 1
    assert "failed" in caplog.text


@pytest.mark.asyncio
async def test_subscribe_is_idempotent():
    bus = QuestEventBus()

    async def handler(event):
        pass

    bus.subscribe(handler)
    bus.subscribe(handler)
    assert bus.subscriber_count == 1

    bus.unsubscribe(handler)
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_event_renders_quest_and_positive_stat_notifications():
    service = NotificationService(history_limit=5)

    await service.handle_event(_event(reward_deltas={"DIS": 1, "INT": 2}))
    await service.handle_event(_event(kind=NotificationKind.UNDONE, reward_deltas={"DIS": -1, "INT": -2}))

    items = service.list_notifications("p1")
    assert [item.type for item in items] == ["quest", "stat", "stat", "quest"]
    assert items[0].quest_status == NotificationKind.UNDONE
    assert items[0].quest_title == "Meditate"
    assert {(item.stat_label, item.amount) for item in items[1:3]} == {("DIS", 1), ("INT", 2)}


@pytest.mark.asyncio
async def test_history_is_capped_per_player():
    service = NotificationService(history_limit=5)

    for index in range(7):
        await service.handle_event(_event(title=f"Quest {index}"))
    await service.handle_event(_event(player_id="p2"))

    titles = [item.quest_title for item in service.list_notifications("p1")]
    assert titles == ["Quest 6", "Quest 5", "Quest 4", "Quest 3", "Quest 2"]
    assert len(service.list_notifications("p2")) == 1


def test_clear_notifications():
    service = NotificationService()
    service.add_quest_notification("p1", NotificationKind.SKIPPED, "Swim")
    assert service.add_stat_notification("p1", "VIT", 0) is None

    service.clear_notifications("p1")

    assert service.list_notifications("p1") == []
