"""Request Store - Persistence collaborator used by the lifecycle engine"""
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional, Protocol

from ..config.settings import settings
from ..domain.models import (
    AuditLogEntry, Notification, NotificationFilters, RequestFilters, UserProfile,
)
from ..domain.request import Request
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RequestStore(Protocol):
    """
    Storage contract

    Writes that touch a request also carry its audit entries and
    notifications and commit all of them or none of them.
    save_request_transaction() is conditional on the version the caller
    loaded and raises ConflictError when another writer got there first.
    Audit entries have no update or delete path.
    """

    def load_request(self, request_id: str) -> Request:
        """Raises RequestNotFoundError"""
        ...

    def insert_request(
        self,
        request: Request,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> None:
        ...

    def save_request_transaction(
        self,
        request: Request,
        expected_version: int,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> int:
        """Returns the new version. Raises ConflictError / PersistenceError"""
        ...

    def list_requests(self, filters: RequestFilters) -> List[Request]:
        ...

    def count_requests(self, filters: RequestFilters) -> int:
        ...

    def list_audit_entries(self, entity_id: str) -> List[AuditLogEntry]:
        """Oldest first"""
        ...

    def list_notifications(
        self,
        recipient_id: str,
        filters: NotificationFilters
    ) -> List[Notification]:
        """Newest first"""
        ...

    def count_notifications(self, recipient_id: str, filters: NotificationFilters) -> int:
        ...

    def count_unread(self, recipient_id: str) -> int:
        ...

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        ...

    def mark_notification_read(
        self,
        notification_id: str,
        recipient_id: str,
        read_at: datetime
    ) -> Notification:
        """Raises NotificationNotFoundError when it is not the recipient's"""
        ...

    def mark_all_notifications_read(self, recipient_id: str, read_at: datetime) -> int:
        ...

    def upsert_user(self, profile: UserProfile) -> None:
        ...

    def get_users(self, user_ids: List[str]) -> Dict[str, UserProfile]:
        ...

    def list_user_ids_by_role(self, role: str) -> List[str]:
        """Known users holding the role, sorted by id"""
        ...

    def health_check(self) -> Dict[str, Any]:
        ...


@lru_cache()
def get_request_store() -> RequestStore:
    """Get the configured store (cached)"""
    backend = settings.storage_backend.lower()
    if backend == "memory":
        from .memory_store import InMemoryRequestStore
        logger.info("Using in-memory request store")
        return InMemoryRequestStore()
    if backend == "mongo":
        from .mongo_store import MongoRequestStore
        logger.info("Using MongoDB request store")
        return MongoRequestStore()
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
