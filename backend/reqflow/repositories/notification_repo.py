"""Notification Repository - Data access for the notification feed"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import NOTIFICATIONS, get_collection
from ..domain.errors import NotificationNotFoundError
from ..domain.models import Notification, NotificationFilters
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification feed operations"""

    def __init__(self):
        self._notifications: Collection = get_collection(NOTIFICATIONS)

    def create_notifications(
        self,
        notifications: List[Notification],
        session: Optional[ClientSession] = None
    ) -> List[Notification]:
        """Insert notifications"""
        if not notifications:
            return []

        docs = []
        for notification in notifications:
            doc = notification.model_dump(mode="python")
            doc["_id"] = notification.notification_id
            docs.append(doc)

        self._notifications.insert_many(docs, ordered=True, session=session)
        logger.info(
            f"Created {len(notifications)} notifications",
            extra={"request_id": notifications[0].related_entity_id}
        )
        return notifications

    def get_notifications_for_user(
        self,
        recipient_id: str,
        filters: NotificationFilters
    ) -> List[Notification]:
        """Get notifications for a user, newest first"""
        cursor = (
            self._notifications.find(self._build_query(recipient_id, filters))
            .sort("created_at", DESCENDING)
            .skip(filters.skip)
            .limit(filters.limit)
        )
        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(Notification.model_validate(doc))
        return notifications

    def count_for_user(self, recipient_id: str, filters: NotificationFilters) -> int:
        return self._notifications.count_documents(self._build_query(recipient_id, filters))

    def get_unread_count(self, recipient_id: str) -> int:
        """Get count of unread notifications for a user"""
        return self._notifications.count_documents({
            "recipient_id": recipient_id,
            "is_read": False
        })

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        doc = self._notifications.find_one({"notification_id": notification_id})
        if doc:
            doc.pop("_id", None)
            return Notification.model_validate(doc)
        return None

    def mark_as_read(self, notification_id: str, recipient_id: str, read_at: datetime) -> Notification:
        """Mark a notification read; already-read notifications keep their read_at"""
        result = self._notifications.find_one_and_update(
            {"notification_id": notification_id, "recipient_id": recipient_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": read_at}},
            return_document=ReturnDocument.AFTER,
        )
        if result is None:
            result = self._notifications.find_one(
                {"notification_id": notification_id, "recipient_id": recipient_id}
            )
        if result is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found",
                details={"notification_id": notification_id}
            )
        result.pop("_id", None)
        return Notification.model_validate(result)

    def mark_all_as_read(self, recipient_id: str, read_at: datetime) -> int:
        """Mark all of a user's notifications read"""
        result = self._notifications.update_many(
            {"recipient_id": recipient_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": read_at}}
        )
        logger.info(f"Marked {result.modified_count} notifications read for {recipient_id}")
        return result.modified_count

    def _build_query(self, recipient_id: str, filters: NotificationFilters) -> Dict[str, Any]:
        query: Dict[str, Any] = {"recipient_id": recipient_id}
        if filters.unread_only:
            query["is_read"] = False
        if filters.notification_type:
            query["notification_type"] = filters.notification_type.value
        return query
