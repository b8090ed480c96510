"""Request Aggregate - Owns status, guards transitions, produces events

Every operation checks its preconditions before touching any field, then
appends exactly one event to the pending queue and returns the events it
produced. The queue survives until the lifecycle engine has persisted the
derived audit entries and notifications and calls clear_pending_events().
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .enums import RequestOperation, RequestPriority, RequestStatus, RequestType
from .errors import ValidationError
from .events import (
    AttachmentAdded, AttachmentRemoved, DomainEvent, RequestApproved,
    RequestAssigned, RequestCancelled, RequestCreated, RequestRejected,
    RequestReopened, RequestSubmitted, RequestUpdated,
)
from .state_machine import resolve_transition
from ..utils.idgen import generate_request_id
from ..utils.time import utc_now


EDITABLE_FIELDS = ("title", "description", "request_type", "priority")


class Request(BaseModel):
    """Request aggregate root"""
    model_config = ConfigDict(extra="ignore")

    request_id: str = Field(default_factory=generate_request_id)
    title: str
    description: str
    request_type: RequestType = RequestType.OTHER
    priority: RequestPriority = RequestPriority.MEDIUM
    status: RequestStatus = RequestStatus.DRAFT

    requester_id: str
    assignee_id: Optional[str] = None
    reviewer_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    attachment_ids: List[str] = Field(default_factory=list)
    watcher_ids: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    # Optimistic concurrency revision
    version: int = 1

    _pending_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    # =========================================================================
    # Factory
    # =========================================================================

    @classmethod
    def create(
        cls,
        requester_id: str,
        title: str,
        description: str,
        request_type: RequestType = RequestType.OTHER,
        priority: RequestPriority = RequestPriority.MEDIUM,
        watcher_ids: Optional[List[str]] = None,
        assignee_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "Request":
        """Create a DRAFT request with a queued RequestCreated event"""
        _require_text("title", title)
        _require_text("description", description)
        now = now or utc_now()

        request = cls(
            title=title.strip(),
            description=description.strip(),
            request_type=request_type,
            priority=priority,
            requester_id=requester_id,
            assignee_id=assignee_id,
            watcher_ids=_unique([w for w in (watcher_ids or []) if w != requester_id]),
            created_at=now,
            updated_at=now,
        )
        request._record(RequestCreated(
            aggregate_id=request.request_id,
            actor_id=requester_id,
            occurred_at=now,
            new_status=RequestStatus.DRAFT,
            requester_id=requester_id,
            title=request.title,
            request_type=request_type,
            priority=priority,
        ))
        return request

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def pending_events(self) -> List[DomainEvent]:
        """Snapshot of queued events"""
        return list(self._pending_events)

    def clear_pending_events(self) -> List[DomainEvent]:
        """Drop queued events after a durable write, returning what was dropped"""
        cleared = self._pending_events
        self._pending_events = []
        return cleared

    def is_requester(self, user_id: str) -> bool:
        return self.requester_id == user_id

    def participant_ids(self) -> List[str]:
        """Requester, assignee, reviewer and watchers (deduplicated)"""
        ids = [self.requester_id, self.assignee_id, self.reviewer_id] + list(self.watcher_ids)
        return _unique([i for i in ids if i])

    # =========================================================================
    # Transitions
    # =========================================================================

    def submit(self, actor_id: str, now: Optional[datetime] = None) -> List[DomainEvent]:
        """DRAFT -> SUBMITTED"""
        target = resolve_transition(self.status, RequestOperation.SUBMIT)
        now = now or utc_now()
        previous = self.status

        self.status = target
        if self.submitted_at is None:
            self.submitted_at = now
        self.updated_at = now

        return self._record(RequestSubmitted(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            requester_id=self.requester_id,
            submitted_at=self.submitted_at,
            assignee_id=self.assignee_id,
        ))

    def begin_review(
        self,
        actor_id: str,
        assignee_id: str,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """SUBMITTED -> IN_REVIEW, setting or replacing the assignee"""
        target = resolve_transition(self.status, RequestOperation.BEGIN_REVIEW)
        _require_text("assignee_id", assignee_id)
        if assignee_id == self.requester_id:
            raise ValidationError(
                "The requester cannot review their own request",
                details={"assignee_id": assignee_id}
            )
        now = now or utc_now()
        previous = self.status
        previous_assignee = self.assignee_id

        self.status = target
        self.assignee_id = assignee_id
        self.updated_at = now

        return self._record(RequestAssigned(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            assignee_id=assignee_id,
            previous_assignee_id=previous_assignee,
        ))

    def approve(
        self,
        reviewer_id: str,
        comment: Optional[str] = None,
        allow_direct_review: bool = True,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """IN_REVIEW (or SUBMITTED) -> APPROVED"""
        target = resolve_transition(self.status, RequestOperation.APPROVE, allow_direct_review)
        now = now or utc_now()
        previous = self.status

        self.status = target
        self.reviewer_id = reviewer_id
        self.reviewed_at = now
        self.updated_at = now

        return self._record(RequestApproved(
            aggregate_id=self.request_id,
            actor_id=reviewer_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            reviewer_id=reviewer_id,
            requester_id=self.requester_id,
            approved_at=now,
            comment=comment,
        ))

    def reject(
        self,
        reviewer_id: str,
        reason: Optional[str] = None,
        allow_direct_review: bool = True,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """IN_REVIEW (or SUBMITTED) -> REJECTED"""
        target = resolve_transition(self.status, RequestOperation.REJECT, allow_direct_review)
        now = now or utc_now()
        previous = self.status

        self.status = target
        self.reviewer_id = reviewer_id
        self.reviewed_at = now
        self.rejection_reason = reason
        self.updated_at = now

        return self._record(RequestRejected(
            aggregate_id=self.request_id,
            actor_id=reviewer_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            reviewer_id=reviewer_id,
            requester_id=self.requester_id,
            rejected_at=now,
            reason=reason,
        ))

    def cancel(
        self,
        actor_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """DRAFT/SUBMITTED/IN_REVIEW -> CANCELLED"""
        target = resolve_transition(self.status, RequestOperation.CANCEL)
        now = now or utc_now()
        previous = self.status

        self.status = target
        self.updated_at = now

        return self._record(RequestCancelled(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            reason=reason,
        ))

    def reopen(self, actor_id: str, now: Optional[datetime] = None) -> List[DomainEvent]:
        """REJECTED/CANCELLED -> DRAFT, clearing the previous decision"""
        target = resolve_transition(self.status, RequestOperation.REOPEN)
        now = now or utc_now()
        previous = self.status
        previous_reviewer = self.reviewer_id

        self.status = target
        self.reviewer_id = None
        self.reviewed_at = None
        self.submitted_at = None
        self.rejection_reason = None
        self.updated_at = now

        return self._record(RequestReopened(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            previous_status=previous,
            new_status=target,
            previous_reviewer_id=previous_reviewer,
        ))

    # =========================================================================
    # Draft edits
    # =========================================================================

    def update(
        self,
        actor_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        request_type: Optional[RequestType] = None,
        priority: Optional[RequestPriority] = None,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """Edit draft fields; at least one value must actually change"""
        resolve_transition(self.status, RequestOperation.UPDATE)
        if title is not None:
            _require_text("title", title)
            title = title.strip()
        if description is not None:
            _require_text("description", description)
            description = description.strip()

        proposed = {
            "title": title,
            "description": description,
            "request_type": request_type,
            "priority": priority,
        }
        changes: Dict[str, Dict[str, Any]] = {}
        for field in EDITABLE_FIELDS:
            new_value = proposed[field]
            old_value = getattr(self, field)
            if new_value is not None and new_value != old_value:
                changes[field] = {"old": _plain(old_value), "new": _plain(new_value)}

        if not changes:
            raise ValidationError("No changes to apply")

        now = now or utc_now()
        for field in changes:
            setattr(self, field, proposed[field])
        self.updated_at = now

        return self._record(RequestUpdated(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            changes=changes,
        ))

    def add_attachment(
        self,
        actor_id: str,
        attachment_id: str,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        resolve_transition(self.status, RequestOperation.ADD_ATTACHMENT)
        _require_text("attachment_id", attachment_id)
        if attachment_id in self.attachment_ids:
            raise ValidationError(
                f"Attachment {attachment_id} is already linked",
                details={"attachment_id": attachment_id}
            )
        now = now or utc_now()

        self.attachment_ids.append(attachment_id)
        self.updated_at = now

        return self._record(AttachmentAdded(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            attachment_id=attachment_id,
        ))

    def remove_attachment(
        self,
        actor_id: str,
        attachment_id: str,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        resolve_transition(self.status, RequestOperation.REMOVE_ATTACHMENT)
        if attachment_id not in self.attachment_ids:
            raise ValidationError(
                f"Attachment {attachment_id} is not linked to this request",
                details={"attachment_id": attachment_id}
            )
        now = now or utc_now()

        self.attachment_ids.remove(attachment_id)
        self.updated_at = now

        return self._record(AttachmentRemoved(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            attachment_id=attachment_id,
        ))

    def change_priority(
        self,
        actor_id: str,
        priority: RequestPriority,
        now: Optional[datetime] = None
    ) -> List[DomainEvent]:
        """Re-prioritise a request that is waiting on review"""
        resolve_transition(self.status, RequestOperation.CHANGE_PRIORITY)
        if priority == self.priority:
            raise ValidationError(
                f"Priority is already {priority.value}",
                details={"field": "priority"}
            )
        now = now or utc_now()

        changes = {"priority": {"old": _plain(self.priority), "new": _plain(priority)}}
        self.priority = priority
        self.updated_at = now

        return self._record(RequestUpdated(
            aggregate_id=self.request_id,
            actor_id=actor_id,
            occurred_at=now,
            changes=changes,
        ))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _record(self, event: DomainEvent) -> List[DomainEvent]:
        self._pending_events.append(event)
        return [event]


def _require_text(field: str, value: Optional[str]) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", details={"field": field})


def _plain(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def _unique(values: List[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
