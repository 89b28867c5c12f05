"""Quest lifecycle endpoints."""
import logging
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questledger.database import get_db
from questledger.dependencies import get_quest_service
from questledger.models.quest import Goal, QuestStatus
from questledger.schemas.quest import (
    Quest,
    QuestCommandResponse,
    QuestCreateRequest,
    QuestListResponse,
    QuestResponse,
    SetProgressRequest,
)
from questledger.services import QuestService
from questledger.services.quest_transitions import TransitionResult
from questledger.utils.exceptions import (
    InvalidStateError,
    NoSnapshotError,
    QuestNotFoundError,
    QuestServiceError,
    RemoteError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(error: QuestServiceError) -> HTTPException:
    """Translate an engine error into the matching HTTP status."""
    if isinstance(error, QuestNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InvalidStateError, NoSnapshotError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, RemoteError):
        return HTTPException(status_code=502, detail="Quest store unavailable, change was rolled back")
    return HTTPException(status_code=400, detail=str(error))


async def _goal_titles(db: AsyncSession, quests: Iterable[Quest]) -> Dict[str, str]:
    goal_ids = {quest.goal_id for quest in quests if quest.goal_id}
    if not goal_ids:
        return {}
    result = await db.execute(select(Goal.goal_id, Goal.title).where(Goal.goal_id.in_(goal_ids)))
    return {goal_id: title for goal_id, title in result.all()}


def _map_quest_to_response(quest: Quest, goal_titles: Dict[str, str], can_undo: bool) -> QuestResponse:
    """Map an engine quest to the API response, joining the goal title."""
    progress = quest.progress
    percentage = progress.current / progress.total * 100 if progress.total > 0 else 0
    return QuestResponse(
        id=quest.id,
        title=quest.title,
        description=quest.description,
        goal_id=quest.goal_id,
        goal_title=goal_titles.get(quest.goal_id) if quest.goal_id else None,
        stat_tags=list(quest.stat_tags),
        status=quest.status.value,
        progress_current=progress.current,
        progress_total=progress.total,
        progress_percentage=min(percentage, 100),
        stat_increments=list(quest.stat_increments),
        discipline_increment_amount=quest.discipline_reward,
        completed_at=quest.completed_at,
        can_undo=can_undo,
    )


async def _list_response(service: QuestService, quests: List[Quest], db: AsyncSession) -> QuestListResponse:
    goal_titles = await _goal_titles(db, quests)
    return QuestListResponse(
        quests=[_map_quest_to_response(q, goal_titles, service.can_undo(q.id)) for q in quests],
        total_count=len(quests),
        active_count=sum(1 for q in quests if q.status == QuestStatus.ACTIVE),
        completed_count=sum(1 for q in quests if q.status == QuestStatus.COMPLETED),
        skipped_count=sum(1 for q in quests if q.status == QuestStatus.SKIPPED),
    )


async def _command_response(service: QuestService, result: TransitionResult, db: AsyncSession) -> QuestCommandResponse:
    goal_titles = await _goal_titles(db, [result.quest])
    return QuestCommandResponse(
        quest=_map_quest_to_response(result.quest, goal_titles, service.can_undo(result.quest.id)),
        changed=result.changed,
        requires_reward_update=result.requires_reward_update,
        requires_reward_reversal=result.requires_reward_reversal,
    )


@router.get("", response_model=QuestListResponse)
async def get_quests(service: QuestService = Depends(get_quest_service), db: AsyncSession = Depends(get_db)):
    """Get today's quests for the current player."""
    quests = await service.get_quests()
    return await _list_response(service, quests, db)


@router.post("", response_model=QuestListResponse, status_code=201)
async def add_generated_quests(
    request: QuestCreateRequest,
    service: QuestService = Depends(get_quest_service),
    db: AsyncSession = Depends(get_db),
):
    """Store quests produced by the content generator."""
    try:
        await service.add_generated_quests(request.quests)
    except QuestServiceError as e:
        raise _http_error(e)
    return await _list_response(service, service.quests, db)


@router.post("/refresh", response_model=QuestListResponse)
async def refresh_quests(service: QuestService = Depends(get_quest_service), db: AsyncSession = Depends(get_db)):
    """Discard the cached quest list and reload it from the store."""
    quests = await service.refresh()
    return await _list_response(service, quests, db)


async def _run(command, service: QuestService, db: AsyncSession, *args) -> QuestCommandResponse:
    try:
        result = await command(*args)
    except QuestServiceError as e:
        raise _http_error(e)
    return await _command_response(service, result, db)


@router.post("/{quest_id}/complete", response_model=QuestCommandResponse)
async def complete_quest(quest_id: str, service: QuestService = Depends(get_quest_service),
                         db: AsyncSession = Depends(get_db)):
    """Mark a quest completed and pay out its rewards."""
    return await _run(service.complete_quest, service, db, quest_id)


@router.post("/{quest_id}/skip", response_model=QuestCommandResponse)
async def skip_quest(quest_id: str, service: QuestService = Depends(get_quest_service),
                     db: AsyncSession = Depends(get_db)):
    """Skip a quest for today."""
    return await _run(service.skip_quest, service, db, quest_id)


@router.post("/{quest_id}/increment", response_model=QuestCommandResponse)
async def increment_quest(quest_id: str, service: QuestService = Depends(get_quest_service),
                          db: AsyncSession = Depends(get_db)):
    """Advance quest progress by one."""
    return await _run(service.increment_quest_progress, service, db, quest_id)


@router.post("/{quest_id}/decrement", response_model=QuestCommandResponse)
async def decrement_quest(quest_id: str, service: QuestService = Depends(get_quest_service),
                          db: AsyncSession = Depends(get_db)):
    """Step quest progress back by one."""
    return await _run(service.decrement_quest_progress, service, db, quest_id)


@router.put("/{quest_id}/progress", response_model=QuestCommandResponse)
async def set_quest_progress(quest_id: str, request: SetProgressRequest,
                             service: QuestService = Depends(get_quest_service),
                             db: AsyncSession = Depends(get_db)):
    """Set quest progress to an absolute count."""
    return await _run(service.set_quest_progress, service, db, quest_id, request.count)


@router.post("/{quest_id}/undo", response_model=QuestCommandResponse)
async def undo_quest(quest_id: str, service: QuestService = Depends(get_quest_service),
                     db: AsyncSession = Depends(get_db)):
    """Return a completed or skipped quest to active."""
    return await _run(service.undo_quest_status, service, db, quest_id)
