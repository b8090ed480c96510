"""Notification Service - Read side of the notification feed

Notifications are written by the lifecycle engine together with the
request change that caused them; this service only lists them and lets
the recipient mark them read.
"""
from typing import List, Optional, Tuple

from ..config.settings import settings
from ..domain.enums import NotificationType
from ..domain.models import ActorContext, Notification, NotificationFilters
from ..repositories.store import RequestStore, get_request_store
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Notification feed operations for the current user"""

    def __init__(self, store: Optional[RequestStore] = None):
        self.store = store if store is not None else get_request_store()

    def list_notifications(
        self,
        actor: ActorContext,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Notification], int, int]:
        """
        Get the actor's notifications, newest first

        Returns:
            (page, total matching, unread count)
        """
        filters = NotificationFilters(
            unread_only=unread_only,
            notification_type=notification_type,
            skip=skip,
            limit=min(limit, settings.notification_feed_max_limit),
        )
        items = self.store.list_notifications(actor.user_id, filters)
        total = self.store.count_notifications(actor.user_id, filters)
        unread = self.store.count_unread(actor.user_id)
        return items, total, unread

    def get_unread_count(self, actor: ActorContext) -> int:
        return self.store.count_unread(actor.user_id)

    def mark_as_read(self, notification_id: str, actor: ActorContext) -> Notification:
        """Mark one notification read; only its recipient may do this"""
        notification = self.store.mark_notification_read(notification_id, actor.user_id, utc_now())
        logger.info(
            f"Notification {notification_id} marked read",
            extra={"notification_id": notification_id, "actor_id": actor.user_id}
        )
        return notification

    def mark_all_as_read(self, actor: ActorContext) -> int:
        return self.store.mark_all_notifications_read(actor.user_id, utc_now())
