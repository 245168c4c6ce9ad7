#!/usr/bin/env python3
"""
Notification endpoints - in-app notifications and queue status.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.app_context import AppContext
from ..dependencies import get_db, get_app_context
from ..services.marketplace_service import MarketplaceQueryService
from ..models.responses import (
    NotificationsResponse,
    MarkReadResponse,
    QueueStatusResponse
)
from ..utils import parse_uuid

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/users/{user_id}/notifications", response_model=NotificationsResponse)
def get_notifications(
    user_id: str,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """A user's in-app notifications, newest first."""
    data = MarketplaceQueryService(db).list_notifications(
        parse_uuid(user_id, "user_id"),
        unread_only=unread_only,
        limit=limit
    )
    return NotificationsResponse(
        success=True,
        count=len(data['notifications']),
        unread=data['unread'],
        notifications=data['notifications']
    )


@router.post("/notifications/{notification_id}/read", response_model=MarkReadResponse)
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db)
):
    """Mark a notification read. The first read time is kept."""
    notification = MarketplaceQueryService(db).mark_notification_read(
        parse_uuid(notification_id, "notification_id")
    )
    return MarkReadResponse(success=True, notification=notification)


@router.get("/notifications/queue-status", response_model=QueueStatusResponse)
def get_queue_status(ctx: AppContext = Depends(get_app_context)):
    """
    Get the status of the notification queue.

    Shows queue length and Redis connection status.
    """
    status = ctx.notification_service.get_queue_status()

    return QueueStatusResponse(
        success=True,
        status=status.get('status', 'unknown'),
        queue_length=status.get('queue_length', 0),
        redis_connected=status.get('redis_connected', False)
    )
