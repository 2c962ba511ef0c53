"""
StreamStar Notification Routes
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from ...database.schemas import NotificationResponse
from ...services.notification_service import NotificationService
from ..dependencies import get_notification_service

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def list_unread_notifications(
    user_id: str = Query(..., min_length=1),
    service: NotificationService = Depends(get_notification_service)
):
    """Unread notifications for a user, newest first"""
    notifications = await service.get_unread_notifications(user_id)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    notification = await service.mark_notification_read(notification_id)
    return NotificationResponse.model_validate(notification)
