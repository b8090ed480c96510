"""Audit Recorder - Domain events to audit entries and back

record() projects a fine-grained event onto a coarse audit action and
keeps the fine-grained type in tagged metadata. reconstruct() reads the
metadata back; when it is missing it falls back to ACTION_TO_EVENT, which
is deliberately lossy (UPDATE always renders as REQUEST_UPDATED, and so on).
"""
from typing import Any, Dict, Optional

from ..domain.enums import AuditAction, AuditEventType, EntityType
from ..domain.errors import UnsupportedOperationError
from ..domain.events import (
    AttachmentAdded, AttachmentRemoved, DomainEvent, RequestApproved,
    RequestAssigned, RequestCancelled, RequestCreated, RequestRejected,
    RequestReopened, RequestSubmitted, RequestUpdated,
)
from ..domain.models import (
    ApprovedMetadata, AssignedMetadata, AttachmentDeletedMetadata,
    AttachmentUploadedMetadata, AuditLogEntry, AuditRequestContext,
    CancelledMetadata, CreatedMetadata, DisplayEvent, GenericAuditMetadata,
    RejectedMetadata, ReopenedMetadata, SubmittedMetadata, UpdatedMetadata,
)
from ..utils.idgen import generate_audit_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


# Fine-grained event -> coarse action. Anything unlisted is VIEW.
EVENT_TO_ACTION: Dict[AuditEventType, AuditAction] = {
    AuditEventType.USER_CREATED: AuditAction.CREATE,
    AuditEventType.REQUEST_CREATED: AuditAction.CREATE,
    AuditEventType.ATTACHMENT_UPLOADED: AuditAction.CREATE,
    AuditEventType.COMMENT_CREATED: AuditAction.CREATE,

    AuditEventType.USER_UPDATED: AuditAction.UPDATE,
    AuditEventType.USER_STATUS_CHANGED: AuditAction.UPDATE,
    AuditEventType.USER_ROLE_ASSIGNED: AuditAction.UPDATE,
    AuditEventType.USER_ROLE_REMOVED: AuditAction.UPDATE,
    AuditEventType.REQUEST_UPDATED: AuditAction.UPDATE,
    AuditEventType.REQUEST_ASSIGNED: AuditAction.UPDATE,
    AuditEventType.REQUEST_STATUS_CHANGED: AuditAction.UPDATE,
    AuditEventType.REQUEST_REOPENED: AuditAction.UPDATE,
    AuditEventType.COMMENT_EDITED: AuditAction.UPDATE,

    AuditEventType.ATTACHMENT_DELETED: AuditAction.DELETE,
    AuditEventType.COMMENT_DELETED: AuditAction.DELETE,

    AuditEventType.REQUEST_SUBMITTED: AuditAction.SUBMIT,
    AuditEventType.REQUEST_APPROVED: AuditAction.APPROVE,
    AuditEventType.REQUEST_REJECTED: AuditAction.REJECT,
    AuditEventType.REQUEST_CANCELLED: AuditAction.CANCEL,
}

# Coarse action -> representative event, used only without metadata
ACTION_TO_EVENT: Dict[AuditAction, AuditEventType] = {
    AuditAction.CREATE: AuditEventType.REQUEST_CREATED,
    AuditAction.UPDATE: AuditEventType.REQUEST_UPDATED,
    AuditAction.DELETE: AuditEventType.COMMENT_DELETED,
    AuditAction.SUBMIT: AuditEventType.REQUEST_SUBMITTED,
    AuditAction.APPROVE: AuditEventType.REQUEST_APPROVED,
    AuditAction.REJECT: AuditEventType.REQUEST_REJECTED,
    AuditAction.CANCEL: AuditEventType.REQUEST_CANCELLED,
    AuditAction.VIEW: AuditEventType.SYSTEM_ERROR,
}

DESCRIPTIONS: Dict[AuditEventType, str] = {
    AuditEventType.REQUEST_CREATED: "Request created",
    AuditEventType.REQUEST_UPDATED: "Request updated",
    AuditEventType.REQUEST_SUBMITTED: "Request submitted for review",
    AuditEventType.REQUEST_ASSIGNED: "Request assigned for review",
    AuditEventType.REQUEST_STATUS_CHANGED: "Request status changed",
    AuditEventType.REQUEST_APPROVED: "Request approved",
    AuditEventType.REQUEST_REJECTED: "Request rejected",
    AuditEventType.REQUEST_CANCELLED: "Request cancelled",
    AuditEventType.REQUEST_REOPENED: "Request reopened",
    AuditEventType.ATTACHMENT_UPLOADED: "Attachment added",
    AuditEventType.ATTACHMENT_DELETED: "Attachment removed",
    AuditEventType.COMMENT_CREATED: "Comment added",
    AuditEventType.COMMENT_EDITED: "Comment edited",
    AuditEventType.COMMENT_DELETED: "Comment deleted",
    AuditEventType.SYSTEM_ERROR: "Unknown activity",
}


def action_for_event(event_type: AuditEventType) -> AuditAction:
    """Coarse action for a fine-grained event type"""
    return EVENT_TO_ACTION.get(event_type, AuditAction.VIEW)


def event_for_action(action: AuditAction) -> AuditEventType:
    """Representative event type for a coarse action"""
    return ACTION_TO_EVENT.get(action, AuditEventType.SYSTEM_ERROR)


def describe(event_type: AuditEventType) -> str:
    return DESCRIPTIONS.get(event_type, event_type.value.replace("_", " ").capitalize())


class AuditRecorder:
    """
    Build audit entries from domain events (no I/O)

    Persistence belongs to the lifecycle engine, which writes the entries
    in the same transaction as the request.
    """

    def record(
        self,
        event: DomainEvent,
        context: Optional[AuditRequestContext] = None
    ) -> AuditLogEntry:
        """Build the audit entry for one event"""
        context = context or AuditRequestContext()
        event_type = event.event_type

        entry = AuditLogEntry(
            audit_id=generate_audit_id(),
            action=action_for_event(event_type),
            entity_type=EntityType.REQUEST,
            entity_id=event.aggregate_id,
            actor_id=event.actor_id or SYSTEM_ACTOR,
            changes=self._build_changes(event),
            metadata=self._build_metadata(event, context),
            created_at=event.occurred_at,
        )

        logger.debug(
            f"Recorded audit entry {entry.audit_id} for {event_type.value}",
            extra={"request_id": event.aggregate_id, "actor_id": entry.actor_id}
        )
        return entry

    def reconstruct(self, entry: AuditLogEntry) -> DisplayEvent:
        """Turn a stored entry back into a display event"""
        metadata = entry.metadata
        event_type = self._event_type_from_metadata(metadata)
        is_inferred = event_type is None
        if event_type is None:
            event_type = event_for_action(entry.action)

        details: Dict[str, Any] = {}
        description = ""
        if metadata is not None:
            details = metadata.model_dump(
                mode="json",
                exclude={"event_type", "description", "ip_address", "user_agent", "session_id"},
                exclude_none=True,
            )
            description = metadata.description

        return DisplayEvent(
            audit_id=entry.audit_id,
            event_type=event_type,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            actor_id=entry.actor_id,
            description=description or describe(event_type),
            changes=entry.changes,
            details=details,
            occurred_at=entry.created_at,
            is_inferred=is_inferred,
        )

    def delete(self, audit_id: str) -> None:
        """Audit entries are append-only"""
        raise UnsupportedOperationError(
            "Audit logs cannot be deleted",
            details={"audit_id": audit_id}
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _event_type_from_metadata(self, metadata: Any) -> Optional[AuditEventType]:
        if metadata is None or not metadata.event_type:
            return None
        try:
            return AuditEventType(metadata.event_type)
        except ValueError:
            return None

    def _build_changes(self, event: DomainEvent) -> Optional[Dict[str, Dict[str, Any]]]:
        changes: Dict[str, Dict[str, Any]] = {}
        if isinstance(event, RequestUpdated):
            changes.update(event.changes)
        if event.is_status_change:
            changes["status"] = {
                "old": event.previous_status.value,
                "new": event.new_status.value,
            }
        if isinstance(event, RequestAssigned) and event.previous_assignee_id != event.assignee_id:
            changes["assignee_id"] = {
                "old": event.previous_assignee_id,
                "new": event.assignee_id,
            }
        return changes or None

    def _build_metadata(self, event: DomainEvent, context: AuditRequestContext):
        common = {
            "description": describe(event.event_type),
            "ip_address": context.ip_address,
            "user_agent": context.user_agent,
            "session_id": context.session_id,
            "correlation_id": context.correlation_id,
            "source_event_id": event.event_id,
            "occurred_at": event.occurred_at,
        }

        if isinstance(event, RequestCreated):
            return CreatedMetadata(
                title=event.title,
                request_type=event.request_type,
                priority=event.priority,
                **common,
            )
        if isinstance(event, RequestUpdated):
            return UpdatedMetadata(changed_fields=sorted(event.changes), **common)
        if isinstance(event, RequestSubmitted):
            return SubmittedMetadata(
                requester_id=event.requester_id,
                submitted_at=event.submitted_at,
                assignee_id=event.assignee_id,
                **common,
            )
        if isinstance(event, RequestAssigned):
            return AssignedMetadata(
                assignee_id=event.assignee_id,
                previous_assignee_id=event.previous_assignee_id,
                **common,
            )
        if isinstance(event, RequestApproved):
            return ApprovedMetadata(
                reviewer_id=event.reviewer_id,
                requester_id=event.requester_id,
                approved_at=event.approved_at,
                comment=event.comment,
                **common,
            )
        if isinstance(event, RequestRejected):
            return RejectedMetadata(
                reviewer_id=event.reviewer_id,
                requester_id=event.requester_id,
                rejected_at=event.rejected_at,
                reason=event.reason,
                **common,
            )
        if isinstance(event, RequestCancelled):
            return CancelledMetadata(
                reason=event.reason,
                previous_status=event.previous_status,
                **common,
            )
        if isinstance(event, RequestReopened):
            return ReopenedMetadata(
                previous_status=event.previous_status,
                previous_reviewer_id=event.previous_reviewer_id,
                **common,
            )
        if isinstance(event, AttachmentAdded):
            return AttachmentUploadedMetadata(attachment_id=event.attachment_id, **common)
        if isinstance(event, AttachmentRemoved):
            return AttachmentDeletedMetadata(attachment_id=event.attachment_id, **common)

        return GenericAuditMetadata(
            event_type=event.event_type.value,
            extra=event.model_dump(
                mode="json",
                exclude={"event_id", "aggregate_id", "actor_id", "occurred_at"},
            ),
            **common,
        )
