"""
Notification API endpoints.

Battle outcome messages, one per participant per resolved battle.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db import list_notifications, mark_notification_read
from cardarena.db.database import get_session
from cardarena.models.db import BattleNotificationDB

router = APIRouter(tags=["notifications"])


class NotificationResponse(BaseModel):
    """Response model for a single notification."""

    id: int
    battle_id: str
    user_id: str
    message: str
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Response model for a user's notifications."""

    user_id: str
    notifications: list[NotificationResponse]
    unread: int


def notification_response(notification: BattleNotificationDB) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        battle_id=notification.battle_id,
        user_id=notification.user_id,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


@router.get("/players/{player_id}/notifications", response_model=NotificationListResponse)
async def get_notifications(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    unread_only: Annotated[bool, Query()] = False,
) -> NotificationListResponse:
    """Get a player's battle notifications, newest first."""
    notifications = await list_notifications(session, player_id, unread_only=unread_only)
    return NotificationListResponse(
        user_id=player_id,
        notifications=[notification_response(n) for n in notifications],
        unread=sum(1 for n in notifications if not n.is_read),
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def read_notification(
    notification_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> NotificationResponse:
    """Mark a notification as read."""
    notification = await mark_notification_read(session, notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )
    return notification_response(notification)
