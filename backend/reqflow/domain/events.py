"""Domain Events - Immutable facts emitted by the request aggregate

Events are transient: the lifecycle engine turns them into audit entries
and notifications, persists those together with the request, and then
discards the events.
"""
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from .enums import AuditEventType, RequestPriority, RequestStatus, RequestType
from ..utils.idgen import generate_event_id
from ..utils.time import utc_now


class DomainEvent(BaseModel):
    """Base event - one per successful aggregate operation"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    event_type: ClassVar[AuditEventType]

    event_id: str = Field(default_factory=generate_event_id)
    aggregate_id: str = Field(..., description="Request ID")
    actor_id: Optional[str] = Field(None, description="None for system actions")
    occurred_at: datetime = Field(default_factory=utc_now)
    previous_status: Optional[RequestStatus] = None
    new_status: Optional[RequestStatus] = None

    @property
    def is_status_change(self) -> bool:
        return (
            self.previous_status is not None
            and self.new_status is not None
            and self.previous_status != self.new_status
        )


class RequestCreated(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_CREATED

    requester_id: str
    title: str
    request_type: RequestType
    priority: RequestPriority


class RequestUpdated(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_UPDATED

    changes: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="field -> {old, new}"
    )


class RequestSubmitted(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_SUBMITTED

    requester_id: str
    submitted_at: datetime
    assignee_id: Optional[str] = None


class RequestAssigned(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_ASSIGNED

    assignee_id: str
    previous_assignee_id: Optional[str] = None


class RequestApproved(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_APPROVED

    reviewer_id: str
    requester_id: str
    approved_at: datetime
    comment: Optional[str] = None


class RequestRejected(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_REJECTED

    reviewer_id: str
    requester_id: str
    rejected_at: datetime
    reason: Optional[str] = None


class RequestCancelled(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_CANCELLED

    reason: Optional[str] = None


class RequestReopened(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.REQUEST_REOPENED

    previous_reviewer_id: Optional[str] = None


class AttachmentAdded(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.ATTACHMENT_UPLOADED

    attachment_id: str


class AttachmentRemoved(DomainEvent):
    event_type: ClassVar[AuditEventType] = AuditEventType.ATTACHMENT_DELETED

    attachment_id: str
