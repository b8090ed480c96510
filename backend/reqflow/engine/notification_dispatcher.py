"""Notification Dispatcher - Derive recipient notifications from domain events"""
from typing import List, Optional, Tuple

from ..domain.enums import EntityType, NotificationType, RequestPriority
from ..domain.events import (
    DomainEvent, RequestApproved, RequestAssigned, RequestCancelled,
    RequestRejected, RequestReopened, RequestSubmitted, RequestUpdated,
)
from ..domain.models import Notification
from ..domain.request import Request
from ..utils.idgen import generate_notification_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

# (recipient_id, title, message)
Draft = Tuple[str, str, str]


class NotificationDispatcher:
    """
    Fan a domain event out to its recipients

    Rules:
    - Submitted -> assignee, or the reviewer and admin pool while unassigned
    - Assigned -> the new assignee
    - Approved / Rejected -> requester, then watchers
    - Cancelled -> assignee and watchers
    - Reopened -> previous reviewer and assignee
    - Priority changed -> requester; admins too when raised to URGENT
    - The acting user is never notified about their own action
    - A recipient appears at most once per event

    Pure: the lifecycle engine persists the result with the request.
    """

    def derive_notifications(
        self,
        event: DomainEvent,
        request: Request,
        actor_name: Optional[str] = None,
        reviewer_ids: Optional[List[str]] = None,
        admin_ids: Optional[List[str]] = None
    ) -> List[Notification]:
        """
        Build the notifications for one event, in a stable order

        reviewer_ids and admin_ids are only consulted for events where
        needs_role_pools() is true.
        """
        notification_type, drafts = self._drafts_for(
            event, request, actor_name or "a reviewer", reviewer_ids or [], admin_ids or []
        )

        notifications: List[Notification] = []
        seen = set()
        for recipient_id, title, message in drafts:
            if not recipient_id or recipient_id in seen:
                continue
            if event.actor_id and recipient_id == event.actor_id:
                continue
            seen.add(recipient_id)
            notifications.append(Notification(
                notification_id=generate_notification_id(),
                notification_type=notification_type,
                title=title,
                message=message,
                recipient_id=recipient_id,
                related_entity_type=EntityType.REQUEST,
                related_entity_id=request.request_id,
                source_event_id=event.event_id,
                created_at=event.occurred_at,
            ))

        if notifications:
            logger.debug(
                f"Derived {len(notifications)} notification(s) for {event.event_type.value}",
                extra={"request_id": request.request_id}
            )
        return notifications

    def needs_role_pools(self, event: DomainEvent) -> bool:
        """True when the recipients depend on who holds the reviewer or admin role"""
        if isinstance(event, RequestSubmitted):
            return not event.assignee_id
        return _escalated_to_urgent(event)

    def _drafts_for(
        self,
        event: DomainEvent,
        request: Request,
        actor_name: str,
        reviewer_ids: List[str],
        admin_ids: List[str]
    ) -> Tuple[NotificationType, List[Draft]]:
        title = request.title

        if isinstance(event, RequestSubmitted):
            message = (
                f"A new {request.priority.value.lower()} priority request has been "
                f"submitted and awaits your review"
            )
            recipients = [event.assignee_id] if event.assignee_id else reviewer_ids + admin_ids
            return NotificationType.REQUEST_SUBMITTED, [
                (recipient_id, f"New Request: {title}", message) for recipient_id in recipients
            ]

        if isinstance(event, RequestAssigned):
            return NotificationType.REQUEST_ASSIGNED, [(
                event.assignee_id,
                "Request Assigned",
                f'You have been assigned to request "{title}"',
            )]

        if isinstance(event, RequestApproved):
            drafts = [(
                event.requester_id,
                "Request Approved",
                f'Your request "{title}" has been approved by {actor_name}',
            )]
            drafts += [
                (watcher_id, "Request Approved", f'Request "{title}" has been approved by {actor_name}')
                for watcher_id in request.watcher_ids
            ]
            return NotificationType.REQUEST_APPROVED, drafts

        if isinstance(event, RequestRejected):
            suffix = f". Reason: {event.reason}" if event.reason else ""
            drafts = [(
                event.requester_id,
                "Request Rejected",
                f'Your request "{title}" has been rejected by {actor_name}{suffix}',
            )]
            drafts += [
                (watcher_id, "Request Rejected", f'Request "{title}" has been rejected by {actor_name}{suffix}')
                for watcher_id in request.watcher_ids
            ]
            return NotificationType.REQUEST_REJECTED, drafts

        if isinstance(event, RequestCancelled):
            suffix = f". Reason: {event.reason}" if event.reason else ""
            message = f'Request "{title}" has been cancelled{suffix}'
            recipients = [request.assignee_id] + list(request.watcher_ids)
            return NotificationType.SYSTEM, [
                (recipient_id, "Request Cancelled", message) for recipient_id in recipients
            ]

        if isinstance(event, RequestReopened):
            message = f'Request "{title}" has been reopened and returned to draft'
            recipients = [event.previous_reviewer_id, request.assignee_id]
            return NotificationType.SYSTEM, [
                (recipient_id, f"Request reopened: {title}", message) for recipient_id in recipients
            ]

        if isinstance(event, RequestUpdated) and "priority" in event.changes:
            change = event.changes["priority"]
            drafts = [(
                request.requester_id,
                "Request Priority Changed",
                f'Request "{title}" priority changed from {change["old"]} to {change["new"]}',
            )]
            if _escalated_to_urgent(event):
                drafts += [
                    (admin_id, f"Urgent Request: {title}", "Request priority has been elevated to URGENT")
                    for admin_id in admin_ids
                ]
            return NotificationType.SYSTEM, drafts

        # Created, other edits and attachment events notify nobody
        return NotificationType.SYSTEM, []


def _escalated_to_urgent(event: DomainEvent) -> bool:
    if not isinstance(event, RequestUpdated):
        return False
    change = event.changes.get("priority")
    if not change:
        return False
    urgent = RequestPriority.URGENT.value
    return change.get("new") == urgent and change.get("old") != urgent
