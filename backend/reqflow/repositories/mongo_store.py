"""Mongo Request Store - Transactional writes across request, audit and notifications"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from .audit_repo import AuditRepository
from .mongo_client import get_client, health_check
from .notification_repo import NotificationRepository
from .request_repo import RequestRepository
from .user_repo import UserRepository
from ..domain.errors import ConflictError, PersistenceError
from ..domain.models import (
    AuditLogEntry, Notification, NotificationFilters, RequestFilters, UserProfile,
)
from ..domain.request import Request
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class MongoRequestStore:
    """
    RequestStore backed by MongoDB

    Writes run inside session.with_transaction(), which retries transient
    transaction errors on its own; everything else surfaces as
    ConflictError or PersistenceError. Requires a replica set.
    """

    def __init__(self):
        self.request_repo = RequestRepository()
        self.audit_repo = AuditRepository()
        self.notification_repo = NotificationRepository()
        self.user_repo = UserRepository()

    # =========================================================================
    # Writes
    # =========================================================================

    def insert_request(
        self,
        request: Request,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> None:
        def _write(session: ClientSession) -> None:
            self.request_repo.create_request(request, session=session)
            self.audit_repo.create_entries(audit_entries, session=session)
            self.notification_repo.create_notifications(notifications, session=session)

        self._run_transaction(_write, request.request_id)

    def save_request_transaction(
        self,
        request: Request,
        expected_version: int,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> int:
        def _write(session: ClientSession) -> int:
            new_version = self.request_repo.replace_request(request, expected_version, session=session)
            self.audit_repo.create_entries(audit_entries, session=session)
            self.notification_repo.create_notifications(notifications, session=session)
            return new_version

        return self._run_transaction(_write, request.request_id)

    def _run_transaction(self, callback: Callable[[ClientSession], T], request_id: str) -> T:
        try:
            with get_client().start_session() as session:
                return session.with_transaction(callback)
        except DuplicateKeyError as e:
            logger.warning(
                f"Duplicate write rejected for request {request_id}: {e}",
                extra={"request_id": request_id}
            )
            raise ConflictError(
                "This change has already been recorded",
                details={"request_id": request_id}
            )
        except PyMongoError as e:
            logger.error(
                f"Transaction failed for request {request_id}: {e}",
                extra={"request_id": request_id}
            )
            raise PersistenceError(
                "Could not save the request. Please try again.",
                details={"request_id": request_id}
            )

    # =========================================================================
    # Reads
    # =========================================================================

    def load_request(self, request_id: str) -> Request:
        return self._read(lambda: self.request_repo.get_request_or_raise(request_id))

    def list_requests(self, filters: RequestFilters) -> List[Request]:
        return self._read(lambda: self.request_repo.list_requests(filters))

    def count_requests(self, filters: RequestFilters) -> int:
        return self._read(lambda: self.request_repo.count_requests(filters))

    def list_audit_entries(self, entity_id: str) -> List[AuditLogEntry]:
        return self._read(lambda: self.audit_repo.get_entries_for_entity(entity_id))

    def list_notifications(
        self,
        recipient_id: str,
        filters: NotificationFilters
    ) -> List[Notification]:
        return self._read(lambda: self.notification_repo.get_notifications_for_user(recipient_id, filters))

    def count_notifications(self, recipient_id: str, filters: NotificationFilters) -> int:
        return self._read(lambda: self.notification_repo.count_for_user(recipient_id, filters))

    def count_unread(self, recipient_id: str) -> int:
        return self._read(lambda: self.notification_repo.get_unread_count(recipient_id))

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        return self._read(lambda: self.notification_repo.get_notification(notification_id))

    def mark_notification_read(
        self,
        notification_id: str,
        recipient_id: str,
        read_at: datetime
    ) -> Notification:
        return self._read(lambda: self.notification_repo.mark_as_read(notification_id, recipient_id, read_at))

    def mark_all_notifications_read(self, recipient_id: str, read_at: datetime) -> int:
        return self._read(lambda: self.notification_repo.mark_all_as_read(recipient_id, read_at))

    def upsert_user(self, profile: UserProfile) -> None:
        self._read(lambda: self.user_repo.upsert_user(profile))

    def get_users(self, user_ids: List[str]) -> Dict[str, UserProfile]:
        return self._read(lambda: self.user_repo.get_users(user_ids))

    def list_user_ids_by_role(self, role: str) -> List[str]:
        return self._read(lambda: self.user_repo.get_user_ids_by_role(role))

    def health_check(self) -> Dict[str, Any]:
        return health_check()

    def _read(self, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except PyMongoError as e:
            logger.error(f"MongoDB operation failed: {e}")
            raise PersistenceError("Storage is unavailable. Please try again.")
