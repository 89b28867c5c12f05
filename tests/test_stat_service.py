"""Tests for the SQL-backed stat and profile service."""
import pytest

from questledger.services import StatService


@pytest.mark.asyncio
async def test_missing_stats_use_defaults(session_factory, player_id):
    stats = await StatService(session_factory).get_stats(player_id)

    assert list(stats) == ["STR", "INT", "VIT", "CHA", "DIS", "CAR", "CRE"]
    assert all(entry.base == 5 and entry.bonus == 0 and entry.total == 5 for entry in stats.values())


@pytest.mark.asyncio
async def test_initial_base_stats_reset_bonus(session_factory, player_id):
    service = StatService(session_factory)

    await service.set_initial_base_stats(player_id, {"str": 8, "INT": 3})
    await service.increment_stat_bonus(player_id, "STR", 2)
    stats = await service.get_stats(player_id)
    assert (stats["STR"].base, stats["STR"].bonus, stats["STR"].total) == (8, 2, 10)

    stats = await service.set_initial_base_stats(player_id, {"STR": 6})
    assert (stats["STR"].base, stats["STR"].bonus) == (6, 0)
    assert stats["INT"].base == 3


@pytest.mark.asyncio
async def test_unknown_labels_are_rejected(session_factory, player_id):
    with pytest.raises(ValueError):
        await StatService(session_factory).set_initial_base_stats(player_id, {"LUCK": 3})


@pytest.mark.asyncio
async def test_bonus_increments_accumulate(session_factory, player_id):
    service = StatService(session_factory)

    await service.increment_stat_bonus(player_id, "cha", 3)
    await service.increment_stat_bonus(player_id, "CHA", -1)
    await service.increment_discipline_bonus(player_id, 2)
    stats = await service.get_stats(player_id)

    assert (stats["CHA"].base, stats["CHA"].bonus) == (5, 2)
    assert stats["DIS"].bonus == 2


@pytest.mark.asyncio
async def test_profile_counter(session_factory, player_id):
    service = StatService(session_factory)

    assert (await service.get_profile(player_id)).completed_quests_count == 0

    await service.update_profile(player_id, completed_quests_count=3)
    profile = await service.get_profile(player_id)

    assert profile.player_id == player_id
    assert profile.completed_quests_count == 3
