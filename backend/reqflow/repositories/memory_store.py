"""In-Memory Request Store - Process-local storage for tests and local runs"""
import copy
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..domain.errors import (
    ConflictError, NotificationNotFoundError, RequestNotFoundError, ValidationError,
)
from ..domain.models import (
    AuditLogEntry, Notification, NotificationFilters, RequestFilters, UserProfile,
)
from ..domain.request import Request
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryRequestStore:
    """
    Dict-backed store with the same write semantics as the Mongo store

    A single lock makes every write a compare-and-swap on the request
    version plus the audit/notification appends. Reads return copies so
    callers never share state with the store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests: Dict[str, Dict[str, Any]] = {}
        self._audit_entries: List[AuditLogEntry] = []
        self._notifications: Dict[str, Notification] = {}
        self._notification_keys: set = set()
        self._users: Dict[str, UserProfile] = {}

    # =========================================================================
    # Requests
    # =========================================================================

    def load_request(self, request_id: str) -> Request:
        with self._lock:
            doc = self._requests.get(request_id)
            if doc is None:
                raise RequestNotFoundError(
                    f"Request {request_id} not found",
                    details={"request_id": request_id}
                )
            return Request.model_validate(copy.deepcopy(doc))

    def insert_request(
        self,
        request: Request,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise ValidationError(
                    f"Request {request.request_id} already exists",
                    details={"request_id": request.request_id}
                )
            self._check_notification_keys(notifications)
            self._requests[request.request_id] = request.model_dump()
            self._append(audit_entries, notifications)

    def save_request_transaction(
        self,
        request: Request,
        expected_version: int,
        audit_entries: List[AuditLogEntry],
        notifications: List[Notification]
    ) -> int:
        with self._lock:
            current = self._requests.get(request.request_id)
            if current is None:
                raise RequestNotFoundError(
                    f"Request {request.request_id} not found",
                    details={"request_id": request.request_id}
                )
            if current["version"] != expected_version:
                raise ConflictError(
                    f"Request {request.request_id} was modified. Please refresh and try again.",
                    details={
                        "expected_version": expected_version,
                        "current_version": current["version"],
                    }
                )
            self._check_notification_keys(notifications)

            new_version = expected_version + 1
            doc = request.model_dump()
            doc["version"] = new_version
            self._requests[request.request_id] = doc
            self._append(audit_entries, notifications)
            return new_version

    def list_requests(self, filters: RequestFilters) -> List[Request]:
        with self._lock:
            matches = [d for d in self._requests.values() if _matches(d, filters)]
        matches.sort(key=lambda d: d["updated_at"], reverse=True)
        page = matches[filters.skip:filters.skip + filters.limit]
        return [Request.model_validate(copy.deepcopy(d)) for d in page]

    def count_requests(self, filters: RequestFilters) -> int:
        with self._lock:
            return sum(1 for d in self._requests.values() if _matches(d, filters))

    # =========================================================================
    # Audit (append-only)
    # =========================================================================

    def list_audit_entries(self, entity_id: str) -> List[AuditLogEntry]:
        with self._lock:
            entries = [e for e in self._audit_entries if e.entity_id == entity_id]
        # stable sort keeps insertion order for identical timestamps
        entries.sort(key=lambda e: e.created_at)
        return [e.model_copy(deep=True) for e in entries]

    # =========================================================================
    # Notifications
    # =========================================================================

    def list_notifications(
        self,
        recipient_id: str,
        filters: NotificationFilters
    ) -> List[Notification]:
        matches = self._notifications_for(recipient_id, filters)
        matches.sort(key=lambda n: n.created_at, reverse=True)
        page = matches[filters.skip:filters.skip + filters.limit]
        return [n.model_copy(deep=True) for n in page]

    def count_notifications(self, recipient_id: str, filters: NotificationFilters) -> int:
        return len(self._notifications_for(recipient_id, filters))

    def count_unread(self, recipient_id: str) -> int:
        return len(self._notifications_for(recipient_id, NotificationFilters(unread_only=True)))

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            notification = self._notifications.get(notification_id)
            return notification.model_copy(deep=True) if notification else None

    def mark_notification_read(
        self,
        notification_id: str,
        recipient_id: str,
        read_at: datetime
    ) -> Notification:
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None or notification.recipient_id != recipient_id:
                raise NotificationNotFoundError(
                    f"Notification {notification_id} not found",
                    details={"notification_id": notification_id}
                )
            if not notification.is_read:
                notification = notification.model_copy(update={"is_read": True, "read_at": read_at})
                self._notifications[notification_id] = notification
            return notification.model_copy(deep=True)

    def mark_all_notifications_read(self, recipient_id: str, read_at: datetime) -> int:
        marked = 0
        with self._lock:
            for notification_id, notification in self._notifications.items():
                if notification.recipient_id == recipient_id and not notification.is_read:
                    self._notifications[notification_id] = notification.model_copy(
                        update={"is_read": True, "read_at": read_at}
                    )
                    marked += 1
        return marked

    # =========================================================================
    # Users
    # =========================================================================

    def upsert_user(self, profile: UserProfile) -> None:
        with self._lock:
            self._users[profile.user_id] = profile.model_copy(deep=True)

    def get_users(self, user_ids: List[str]) -> Dict[str, UserProfile]:
        with self._lock:
            return {
                user_id: self._users[user_id].model_copy(deep=True)
                for user_id in user_ids if user_id in self._users
            }

    def list_user_ids_by_role(self, role: str) -> List[str]:
        role = role.upper()
        with self._lock:
            return sorted(
                user_id for user_id, profile in self._users.items()
                if role in {r.upper() for r in profile.roles}
            )

    def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": "memory", "requests": len(self._requests)}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_notification_keys(self, notifications: List[Notification]) -> None:
        """Mirror of the unique (source_event_id, recipient_id) index"""
        keys = [_notification_key(n) for n in notifications]
        for key in keys:
            if key[0] and key in self._notification_keys:
                raise ConflictError(
                    "Notification already recorded for this event",
                    details={"source_event_id": key[0], "recipient_id": key[1]}
                )

    def _append(self, audit_entries: List[AuditLogEntry], notifications: List[Notification]) -> None:
        self._audit_entries.extend(e.model_copy(deep=True) for e in audit_entries)
        for notification in notifications:
            self._notifications[notification.notification_id] = notification.model_copy(deep=True)
            self._notification_keys.add(_notification_key(notification))

    def _notifications_for(
        self,
        recipient_id: str,
        filters: NotificationFilters
    ) -> List[Notification]:
        with self._lock:
            return [
                n for n in self._notifications.values()
                if n.recipient_id == recipient_id
                and (not filters.unread_only or not n.is_read)
                and (filters.notification_type is None or n.notification_type == filters.notification_type)
            ]


def _notification_key(notification: Notification) -> Tuple[Optional[str], str]:
    return notification.source_event_id, notification.recipient_id


def _matches(doc: Dict[str, Any], filters: RequestFilters) -> bool:
    if filters.requester_id and doc["requester_id"] != filters.requester_id:
        return False
    if filters.assignee_id and doc.get("assignee_id") != filters.assignee_id:
        return False
    if filters.participant_id:
        participants = {
            doc["requester_id"], doc.get("assignee_id"), doc.get("reviewer_id"),
            *doc.get("watcher_ids", []),
        }
        if filters.participant_id not in participants:
            return False
    if filters.status and doc["status"] != filters.status:
        return False
    if filters.statuses and doc["status"] not in filters.statuses:
        return False
    if filters.exclude_requester_id and doc["requester_id"] == filters.exclude_requester_id:
        return False
    if filters.request_type and doc["request_type"] != filters.request_type:
        return False
    if filters.priority and doc["priority"] != filters.priority:
        return False
    return True
