"""Recent quest and stat notifications."""
from fastapi import APIRouter, Depends

from questledger.dependencies import get_current_player_id
from questledger.schemas.notification import NotificationListResponse
from questledger.services import NotificationService, get_notification_service

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(player_id: str = Depends(get_current_player_id),
                             notifications: NotificationService = Depends(get_notification_service)):
    """Most recent notifications, newest first."""
    return NotificationListResponse(notifications=notifications.list_notifications(player_id))


@router.delete("/notifications", status_code=204)
async def clear_notifications(player_id: str = Depends(get_current_player_id),
                              notifications: NotificationService = Depends(get_notification_service)):
    """Dismiss all notifications."""
    notifications.clear_notifications(player_id)
