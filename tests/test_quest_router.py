"""Tests for the HTTP surface."""
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from questledger.models.quest import Goal
from questledger.services import InMemoryQuestRepository, QuestServiceRegistry, StatService
from questledger.utils.cache import DurableCache


def _headers(player_id: str) -> dict:
    return {"X-Player-Id": player_id}


async def _seed_quests(client: AsyncClient, player_id: str, goal_id: str | None = None) -> list[dict]:
    response = await client.post(
        "/quests",
        headers=_headers(player_id),
        json={
            "quests": [
                {
                    "title": "Read 20 pages",
                    "goal_id": goal_id,
                    "stat_tags": ["INT"],
                    "progress_total": 2,
                    "stat_increments": [{"category": "INT", "amount": 2}],
                },
                {
                    "title": "Cold shower",
                    "stat_tags": ["VIT", "CHA"],
                    "stat_increments": [{"category": "VIT", "amount": 1}],
                    "discipline_increment_amount": 3,
                },
            ]
        },
    )
    assert response.status_code == 201
    return response.json()["quests"]


@pytest.mark.asyncio
async def test_get_quests_joins_goal_titles(test_app, db_session, player_id):
    goal_id = str(uuid.uuid4())
    db_session.add(Goal(goal_id=goal_id, player_id=player_id, title="Finish the novel", category="INT"))
    await db_session.commit()

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        await _seed_quests(client, player_id, goal_id=goal_id)
        response = await client.get("/quests", headers=_headers(player_id))

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert data["active_count"] == 2
    reading = next(q for q in data["quests"] if q["title"] == "Read 20 pages")
    assert reading["goal_title"] == "Finish the novel"
    assert reading["progress_percentage"] == 0
    assert reading["discipline_increment_amount"] == 1
    assert reading["can_undo"] is False


@pytest.mark.asyncio
async def test_complete_and_undo_round_trip(test_app, player_id):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        quests = await _seed_quests(client, player_id)
        quest_id = next(q["id"] for q in quests if q["title"] == "Cold shower")

        response = await client.post(f"/quests/{quest_id}/complete", headers=_headers(player_id))
        assert response.status_code == 200
        body = response.json()
        assert body["quest"]["status"] == "completed"
        assert body["quest"]["completed_at"].endswith("Z")
        assert body["quest"]["can_undo"] is True
        assert body["requires_reward_update"] is True

        stats = (await client.get("/stats", headers=_headers(player_id))).json()["stats"]
        assert stats["DIS"]["bonus"] == 3
        assert stats["VIT"]["total"] == 6
        profile = (await client.get("/profile", headers=_headers(player_id))).json()
        assert profile["completed_quests_count"] == 1

        notifications = (await client.get("/notifications", headers=_headers(player_id))).json()["notifications"]
        assert any(n["type"] == "quest" and n["quest_status"] == "Completed" for n in notifications)

        again = await client.post(f"/quests/{quest_id}/complete", headers=_headers(player_id))
        assert again.status_code == 409

        undo = await client.post(f"/quests/{quest_id}/undo", headers=_headers(player_id))
        assert undo.status_code == 200
        assert undo.json()["quest"]["status"] == "active"
        assert undo.json()["requires_reward_reversal"] is True

        stats = (await client.get("/stats", headers=_headers(player_id))).json()["stats"]
        assert stats["DIS"]["bonus"] == 0
        assert stats["VIT"]["bonus"] == 0
        profile = (await client.get("/profile", headers=_headers(player_id))).json()
        assert profile["completed_quests_count"] == 0

        second_undo = await client.post(f"/quests/{quest_id}/undo", headers=_headers(player_id))
        assert second_undo.status_code == 409


@pytest.mark.asyncio
async def test_progress_endpoints(test_app, player_id):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        quests = await _seed_quests(client, player_id)
        quest_id = next(q["id"] for q in quests if q["title"] == "Read 20 pages")

        response = await client.post(f"/quests/{quest_id}/increment", headers=_headers(player_id))
        assert response.json()["quest"]["progress_current"] == 1
        assert response.json()["quest"]["progress_percentage"] == 50

        response = await client.post(f"/quests/{quest_id}/decrement", headers=_headers(player_id))
        assert response.json()["quest"]["progress_current"] == 0

        response = await client.post(f"/quests/{quest_id}/decrement", headers=_headers(player_id))
        assert response.json()["changed"] is False

        response = await client.put(f"/quests/{quest_id}/progress", headers=_headers(player_id), json={"count": 9})
        assert response.json()["quest"]["status"] == "completed"
        assert response.json()["quest"]["progress_current"] == 2

        response = await client.post(f"/quests/{quest_id}/skip", headers=_headers(player_id))
        assert response.json()["quest"]["status"] == "skipped"

        listing = (await client.post("/quests/refresh", headers=_headers(player_id))).json()
        assert listing["skipped_count"] == 1


@pytest.mark.asyncio
async def test_unknown_quest_is_404(test_app, player_id):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.post("/quests/does-not-exist/skip", headers=_headers(player_id))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_missing_player_header_is_rejected(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.get("/quests")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_validation_errors_are_field_level(test_app, player_id):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.post(
            "/quests",
            headers=_headers(player_id),
            json={"quests": [{"title": "Plank", "stat_tags": ["DIS"]}]},
        )

    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Request validation failed"
    assert any("stat_tags" in error["field"] for error in data["errors"])


@pytest.mark.asyncio
async def test_store_failure_is_502_and_rolled_back(test_app, session_factory, player_id, make_quest):
    from questledger.dependencies import get_quest_service_registry

    repository = InMemoryQuestRepository()
    repository.seed(player_id, make_quest("q1"))
    repository.fail_updates = True
    registry = QuestServiceRegistry(
        repository=repository,
        cache=DurableCache(None),
        stat_service=StatService(session_factory),
        event_bus=test_app.state.test_registry.event_bus,
    )
    test_app.dependency_overrides[get_quest_service_registry] = lambda: registry

    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.post("/quests/q1/complete", headers=_headers(player_id))
        listing = await client.get("/quests", headers=_headers(player_id))

    assert response.status_code == 502
    assert listing.json()["quests"][0]["status"] == "active"
    assert listing.json()["completed_count"] == 0


@pytest.mark.asyncio
async def test_base_stats_and_notifications_clear(test_app, player_id):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.put("/stats/base", headers=_headers(player_id), json={"base_stats": {"STR": 9}})
        assert response.status_code == 200
        assert response.json()["stats"]["STR"]["total"] == 9

        bad = await client.put("/stats/base", headers=_headers(player_id), json={"base_stats": {"LUCK": 1}})
        assert bad.status_code == 400

        quests = await _seed_quests(client, player_id)
        await client.post(f"/quests/{quests[0]['id']}/skip", headers=_headers(player_id))
        assert (await client.get("/notifications", headers=_headers(player_id))).json()["notifications"]

        cleared = await client.delete("/notifications", headers=_headers(player_id))
        assert cleared.status_code == 204
        assert (await client.get("/notifications", headers=_headers(player_id))).json()["notifications"] == []


@pytest.mark.asyncio
async def test_health(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["cache"] == "memory"
