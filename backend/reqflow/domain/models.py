"""Domain Models - Pydantic schemas for audit, notification and view entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import (
    BaseModel, ConfigDict, Discriminator, EmailStr, Field, Tag,
    ValidationError as PydanticValidationError,
)

from .enums import (
    AuditAction, AuditEventType, EntityType, NotificationType, RequestOperation,
    RequestPriority, RequestStatus, RequestType, UserRole,
)
from .events import DomainEvent
from .request import Request
from ..utils.time import ensure_utc, parse_iso


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Current actor context from the bearer token"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="Stable user ID (token subject)")
    display_name: str = Field(..., description="User display name")
    email: Optional[EmailStr] = Field(None, description="User email")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")

    def has_role(self, role: UserRole) -> bool:
        return role.value in {r.upper() for r in self.roles}

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    @property
    def is_reviewer(self) -> bool:
        return self.has_role(UserRole.REVIEWER) or self.is_admin


class UserProfile(BaseModel):
    """Directory entry remembered from authenticated actors"""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    display_name: str
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    last_seen_at: Optional[datetime] = None


class AuditRequestContext(BaseModel):
    """Where a command came from - preserved in audit metadata"""
    model_config = ConfigDict(extra="forbid")

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None


# ============================================================================
# Audit Metadata (tagged by fine-grained event type)
# ============================================================================

class AuditMetadataBase(BaseModel):
    """Fields every metadata variant carries"""
    model_config = ConfigDict(extra="ignore")

    description: str = ""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None
    source_event_id: Optional[str] = None
    occurred_at: Optional[datetime] = None


class CreatedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_CREATED"] = "REQUEST_CREATED"
    title: Optional[str] = None
    request_type: Optional[RequestType] = None
    priority: Optional[RequestPriority] = None


class UpdatedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_UPDATED"] = "REQUEST_UPDATED"
    changed_fields: List[str] = Field(default_factory=list)


class SubmittedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_SUBMITTED"] = "REQUEST_SUBMITTED"
    requester_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    assignee_id: Optional[str] = None


class AssignedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_ASSIGNED"] = "REQUEST_ASSIGNED"
    assignee_id: Optional[str] = None
    previous_assignee_id: Optional[str] = None


class ApprovedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_APPROVED"] = "REQUEST_APPROVED"
    reviewer_id: Optional[str] = None
    requester_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    comment: Optional[str] = None


class RejectedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_REJECTED"] = "REQUEST_REJECTED"
    reviewer_id: Optional[str] = None
    requester_id: Optional[str] = None
    rejected_at: Optional[datetime] = None
    reason: Optional[str] = None


class CancelledMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_CANCELLED"] = "REQUEST_CANCELLED"
    reason: Optional[str] = None
    previous_status: Optional[RequestStatus] = None


class ReopenedMetadata(AuditMetadataBase):
    event_type: Literal["REQUEST_REOPENED"] = "REQUEST_REOPENED"
    previous_status: Optional[RequestStatus] = None
    previous_reviewer_id: Optional[str] = None


class AttachmentUploadedMetadata(AuditMetadataBase):
    event_type: Literal["ATTACHMENT_UPLOADED"] = "ATTACHMENT_UPLOADED"
    attachment_id: Optional[str] = None


class AttachmentDeletedMetadata(AuditMetadataBase):
    event_type: Literal["ATTACHMENT_DELETED"] = "ATTACHMENT_DELETED"
    attachment_id: Optional[str] = None


class GenericAuditMetadata(AuditMetadataBase):
    """Fallback for event types without a dedicated variant"""
    model_config = ConfigDict(extra="allow")

    event_type: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


METADATA_VARIANTS: Dict[str, type] = {
    "REQUEST_CREATED": CreatedMetadata,
    "REQUEST_UPDATED": UpdatedMetadata,
    "REQUEST_SUBMITTED": SubmittedMetadata,
    "REQUEST_ASSIGNED": AssignedMetadata,
    "REQUEST_APPROVED": ApprovedMetadata,
    "REQUEST_REJECTED": RejectedMetadata,
    "REQUEST_CANCELLED": CancelledMetadata,
    "REQUEST_REOPENED": ReopenedMetadata,
    "ATTACHMENT_UPLOADED": AttachmentUploadedMetadata,
    "ATTACHMENT_DELETED": AttachmentDeletedMetadata,
}


def _metadata_tag(value: Any) -> str:
    if isinstance(value, GenericAuditMetadata):
        return "generic"
    if isinstance(value, dict):
        event_type = value.get("event_type")
    else:
        event_type = getattr(value, "event_type", None)
    if isinstance(event_type, AuditEventType):
        event_type = event_type.value
    return event_type if event_type in METADATA_VARIANTS else "generic"


AuditMetadata = Annotated[
    Union[
        Annotated[CreatedMetadata, Tag("REQUEST_CREATED")],
        Annotated[UpdatedMetadata, Tag("REQUEST_UPDATED")],
        Annotated[SubmittedMetadata, Tag("REQUEST_SUBMITTED")],
        Annotated[AssignedMetadata, Tag("REQUEST_ASSIGNED")],
        Annotated[ApprovedMetadata, Tag("REQUEST_APPROVED")],
        Annotated[RejectedMetadata, Tag("REQUEST_REJECTED")],
        Annotated[CancelledMetadata, Tag("REQUEST_CANCELLED")],
        Annotated[ReopenedMetadata, Tag("REQUEST_REOPENED")],
        Annotated[AttachmentUploadedMetadata, Tag("ATTACHMENT_UPLOADED")],
        Annotated[AttachmentDeletedMetadata, Tag("ATTACHMENT_DELETED")],
        Annotated[GenericAuditMetadata, Tag("generic")],
    ],
    Discriminator(_metadata_tag),
]


# ============================================================================
# Audit Log
# ============================================================================

class AuditLogEntry(BaseModel):
    """Audit log entry (append-only)"""
    model_config = ConfigDict(extra="ignore")

    audit_id: str
    action: AuditAction
    entity_type: EntityType = EntityType.REQUEST
    entity_id: str
    actor_id: str = Field("system", description="'system' when no user acted")
    changes: Optional[Dict[str, Dict[str, Any]]] = None
    metadata: Optional[AuditMetadata] = None
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuditLogEntry":
        """
        Build an entry from a stored document

        Metadata that no longer fits its variant is kept as generic metadata
        so older rows still render; metadata that is not a mapping at all is
        dropped and reconstruction falls back to the coarse action.
        created_at may be an ISO string in imported rows and is normalised
        to UTC either way.
        """
        doc = dict(doc)
        doc.pop("_id", None)
        created_at = doc.get("created_at")
        if isinstance(created_at, str):
            doc["created_at"] = parse_iso(created_at)
        elif isinstance(created_at, datetime):
            doc["created_at"] = ensure_utc(created_at)
        try:
            return cls.model_validate(doc)
        except PydanticValidationError:
            raw = doc.get("metadata")
            if isinstance(raw, dict):
                doc["metadata"] = GenericAuditMetadata(
                    event_type=str(raw.get("event_type")) if raw.get("event_type") else None,
                    description=str(raw.get("description") or ""),
                    extra={k: v for k, v in raw.items() if k not in ("event_type", "description")},
                )
            else:
                doc["metadata"] = None
            return cls.model_validate(doc)


class DisplayEvent(BaseModel):
    """History item rendered from an audit entry"""
    model_config = ConfigDict(extra="forbid")

    audit_id: str
    event_type: AuditEventType
    action: AuditAction
    entity_type: EntityType
    entity_id: str
    actor_id: str
    actor_name: Optional[str] = None
    description: str
    changes: Optional[Dict[str, Dict[str, Any]]] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime
    is_inferred: bool = Field(
        False,
        description="True when the event type was inferred from the coarse action"
    )


# ============================================================================
# Notifications
# ============================================================================

class Notification(BaseModel):
    """Notification feed item"""
    model_config = ConfigDict(extra="ignore")

    notification_id: str
    notification_type: NotificationType
    title: str
    message: str
    recipient_id: str
    related_entity_type: EntityType = EntityType.REQUEST
    related_entity_id: Optional[str] = None
    source_event_id: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationFilters(BaseModel):
    """Feed query options"""
    unread_only: bool = False
    notification_type: Optional[NotificationType] = None
    skip: int = Field(0, ge=0)
    limit: int = Field(20, ge=1)


# ============================================================================
# Requests - queries and views
# ============================================================================

class RequestFilters(BaseModel):
    """List query options; all set filters must match"""
    requester_id: Optional[str] = None
    assignee_id: Optional[str] = None
    participant_id: Optional[str] = Field(
        None,
        description="Requester, assignee, reviewer or watcher"
    )
    status: Optional[RequestStatus] = None
    statuses: List[RequestStatus] = Field(
        default_factory=list,
        description="Any of these statuses"
    )
    exclude_requester_id: Optional[str] = None
    request_type: Optional[RequestType] = None
    priority: Optional[RequestPriority] = None
    skip: int = Field(0, ge=0)
    limit: int = Field(20, ge=1)


class RequestDetailView(BaseModel):
    """Request as presented to a specific viewer"""
    model_config = ConfigDict(extra="forbid")

    request_id: str
    title: str
    description: str
    request_type: RequestType
    priority: RequestPriority
    status: RequestStatus
    version: int

    requester_id: str
    requester_name: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewer_name: Optional[str] = None
    rejection_reason: Optional[str] = None
    attachment_ids: List[str] = Field(default_factory=list)
    watcher_ids: List[str] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    available_operations: List[RequestOperation] = Field(default_factory=list)
    next_statuses: List[RequestStatus] = Field(default_factory=list)
    is_terminal: bool = False


class WorkflowStatusView(BaseModel):
    """What can happen next to a request"""
    request_id: str
    status: RequestStatus
    is_terminal: bool
    available_operations: List[RequestOperation]
    next_statuses: List[RequestStatus]


# ============================================================================
# Commands
# ============================================================================

class CommandEnvelope(BaseModel):
    """Command submitted by the presentation layer"""
    model_config = ConfigDict(extra="forbid")

    request_id: str
    command: RequestOperation
    actor_id: Optional[str] = Field(
        None,
        description="Must match the authenticated actor when given"
    )
    payload: Dict[str, Any] = Field(default_factory=dict)


class CommandPayload(BaseModel):
    """Recognised payload keys; which ones apply depends on the command"""
    model_config = ConfigDict(extra="forbid")

    assignee_id: Optional[str] = None
    comment: Optional[str] = Field(None, max_length=2000)
    reason: Optional[str] = Field(None, max_length=2000)
    attachment_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    request_type: Optional[RequestType] = None
    priority: Optional[RequestPriority] = None


class CommandResult(BaseModel):
    """Outcome of a submitted command; errors are reported, not raised"""
    success: bool
    request_id: str
    command: RequestOperation
    status: Optional[RequestStatus] = None
    version: Optional[int] = None
    event_types: List[AuditEventType] = Field(default_factory=list)
    error_kind: Optional[str] = None
    error_class: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class CommandOutcome(BaseModel):
    """Everything a successful command committed"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: Request
    events: List[DomainEvent]
    audit_entries: List[AuditLogEntry]
    notifications: List[Notification]
