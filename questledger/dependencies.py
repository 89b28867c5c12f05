"""FastAPI dependencies."""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from questledger.database import AsyncSessionLocal
from questledger.services import (
    QuestService,
    QuestServiceRegistry,
    SqlQuestRepository,
    StatService,
    get_event_bus,
)
from questledger.utils import durable_cache

logger = logging.getLogger(__name__)

MAX_PLAYER_ID_LENGTH = 36

_stat_service: Optional[StatService] = None
_registry: Optional[QuestServiceRegistry] = None


def _mask_identifier(identifier: str) -> str:
    """Mask a player id for logging."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


async def get_current_player_id(
        player_id: str | None = Header(default=None, alias="X-Player-Id"),
) -> str:
    """Resolve the acting player from the ``X-Player-Id`` header."""
    player_id = (player_id or "").strip()
    if not player_id:
        logger.warning("Request without X-Player-Id header")
        raise HTTPException(status_code=401, detail="Missing X-Player-Id header")
    if len(player_id) > MAX_PLAYER_ID_LENGTH:
        logger.warning(f"Rejected oversized player id {_mask_identifier(player_id)}")
        raise HTTPException(status_code=400, detail="Invalid X-Player-Id header")
    return player_id


def get_stat_service() -> StatService:
    global _stat_service
    if _stat_service is None:
        _stat_service = StatService(AsyncSessionLocal)
    return _stat_service


def get_quest_service_registry(stat_service: StatService = Depends(get_stat_service)) -> QuestServiceRegistry:
    """Process-wide registry of per-player quest engines."""
    global _registry
    if _registry is None:
        _registry = QuestServiceRegistry(
            repository=SqlQuestRepository(AsyncSessionLocal),
            cache=durable_cache,
            stat_service=stat_service,
            event_bus=get_event_bus(),
        )
    return _registry


async def get_quest_service(
        player_id: str = Depends(get_current_player_id),
        registry: QuestServiceRegistry = Depends(get_quest_service_registry),
) -> QuestService:
    return registry.get(player_id)
