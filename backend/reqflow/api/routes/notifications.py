"""User Notifications API - notification feed endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..deps import get_current_user_dep, get_notification_service_dep
from ...domain.enums import NotificationType
from ...domain.errors import DomainError
from ...domain.models import ActorContext, Notification
from ...services.notification_service import NotificationService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class NotificationListResponse(BaseModel):
    """List of notifications with metadata"""
    items: List[Notification]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    """Response after marking notifications read"""
    success: bool
    marked_count: int


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    notification_type: Optional[NotificationType] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    service: NotificationService = Depends(get_notification_service_dep)
):
    """
    Get notifications for the current user.

    - Sorted by newest first
    - Supports filtering by unread only and by type
    """
    items, total, unread = service.list_notifications(
        actor,
        unread_only=unread_only,
        notification_type=notification_type,
        skip=skip,
        limit=limit,
    )
    return NotificationListResponse(items=items, unread_count=unread, total=total)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    actor: ActorContext = Depends(get_current_user_dep),
    service: NotificationService = Depends(get_notification_service_dep)
):
    """Lightweight endpoint for polling the notification badge"""
    return UnreadCountResponse(unread_count=service.get_unread_count(actor))


@router.post("/read-all", response_model=MarkReadResponse)
async def mark_all_read(
    actor: ActorContext = Depends(get_current_user_dep),
    service: NotificationService = Depends(get_notification_service_dep)
):
    count = service.mark_all_as_read(actor)
    return MarkReadResponse(success=True, marked_count=count)


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: NotificationService = Depends(get_notification_service_dep)
):
    """Mark a single notification as read; repeating it is harmless"""
    try:
        return service.mark_as_read(notification_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
