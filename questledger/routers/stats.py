"""Reward ledger and profile endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from questledger.dependencies import get_current_player_id, get_stat_service
from questledger.schemas.stats import BaseStatsRequest, ProfileResponse, StatsResponse
from questledger.services import StatService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(player_id: str = Depends(get_current_player_id),
                    stat_service: StatService = Depends(get_stat_service)):
    """Base, bonus and total for every stat label."""
    return StatsResponse(stats=await stat_service.get_stats(player_id))


@router.put("/stats/base", response_model=StatsResponse)
async def set_base_stats(request: BaseStatsRequest,
                         player_id: str = Depends(get_current_player_id),
                         stat_service: StatService = Depends(get_stat_service)):
    """Set initial base stats. Bonuses for the given labels start over at zero."""
    try:
        stats = await stat_service.set_initial_base_stats(player_id, request.base_stats)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StatsResponse(stats=stats)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(player_id: str = Depends(get_current_player_id),
                      stat_service: StatService = Depends(get_stat_service)):
    """Profile counters for the current player."""
    return await stat_service.get_profile(player_id)
