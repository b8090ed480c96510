"""
Lifecycle Engine - The transactional boundary for request commands

Every command runs the same pipeline:

1. Load the request (RequestNotFoundError)
2. Authorize the actor (ForbiddenError)
3. Validate the payload (ValidationError)
4. Apply the aggregate operation (InvalidTransitionError)
5. Record one audit entry and derive notifications per pending event
6. Persist request + audit entries + notifications in one conditional write
   (ConflictError / PersistenceError)
7. Clear the pending events

Nothing is retried here. A failed write leaves no trace in storage, so the
caller may reload and resubmit the same command.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from pydantic import ValidationError as PydanticValidationError

from ..config.settings import settings
from ..domain.enums import RequestOperation, RequestPriority, RequestType, UserRole
from ..domain.errors import DomainError, ForbiddenError, ValidationError
from ..domain.models import (
    ActorContext, AuditRequestContext, CommandOutcome, CommandPayload,
)
from ..domain.events import DomainEvent
from ..domain.request import Request
from ..repositories.store import RequestStore, get_request_store
from .audit_recorder import AuditRecorder
from .notification_dispatcher import NotificationDispatcher
from .permission_guard import PermissionGuard
from ..utils.time import utc_now
from ..utils.logger import get_context_logger, get_logger

logger = get_logger(__name__)


FORBIDDEN_MESSAGES: Dict[RequestOperation, str] = {
    RequestOperation.SUBMIT: "Only the requester can submit this request",
    RequestOperation.CANCEL: "Only the requester can cancel this request",
    RequestOperation.REOPEN: "Only the requester can reopen this request",
    RequestOperation.UPDATE: "Only the requester can edit this request",
    RequestOperation.ADD_ATTACHMENT: "Only the requester can change attachments",
    RequestOperation.REMOVE_ATTACHMENT: "Only the requester can change attachments",
    RequestOperation.BEGIN_REVIEW: "You cannot assign this request",
    RequestOperation.APPROVE: "Only the assigned reviewer can approve this request",
    RequestOperation.REJECT: "Only the assigned reviewer can reject this request",
    RequestOperation.CHANGE_PRIORITY: "Only the assigned reviewer can change the priority",
}


class LifecycleEngine:
    """
    Central orchestrator for request commands

    Collaborators are injectable so tests can swap the store; by default
    the configured store and policy settings are used.
    """

    def __init__(
        self,
        store: Optional[RequestStore] = None,
        recorder: Optional[AuditRecorder] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        permission_guard: Optional[PermissionGuard] = None,
        allow_direct_review: Optional[bool] = None,
        reject_reason_required: Optional[bool] = None
    ):
        self.store = store if store is not None else get_request_store()
        self.recorder = recorder or AuditRecorder()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.allow_direct_review = (
            settings.allow_direct_review if allow_direct_review is None else allow_direct_review
        )
        self.reject_reason_required = (
            settings.reject_reason_required if reject_reason_required is None else reject_reason_required
        )
        self.permission_guard = permission_guard or PermissionGuard(self.allow_direct_review)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_request(
        self,
        actor: ActorContext,
        title: str,
        description: str,
        request_type: RequestType = RequestType.OTHER,
        priority: RequestPriority = RequestPriority.MEDIUM,
        watcher_ids: Optional[List[str]] = None,
        assignee_id: Optional[str] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        """Create a DRAFT request owned by the actor"""
        self._validate_text_limits(title, description)
        if assignee_id and assignee_id == actor.user_id:
            raise ValidationError("You cannot be the reviewer of your own request")

        request = Request.create(
            requester_id=actor.user_id,
            title=title,
            description=description,
            request_type=request_type,
            priority=priority,
            watcher_ids=watcher_ids,
            assignee_id=assignee_id,
        )
        try:
            return self._commit(request, actor, "create", context, expected_version=None)
        except DomainError as e:
            self._log_failure("create", request.request_id, actor, e)
            raise

    # =========================================================================
    # Transitions
    # =========================================================================

    def submit(
        self,
        request_id: str,
        actor: ActorContext,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.SUBMIT, actor, {}, context)

    def begin_review(
        self,
        request_id: str,
        actor: ActorContext,
        assignee_id: Optional[str] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(
            request_id, RequestOperation.BEGIN_REVIEW, actor, {"assignee_id": assignee_id}, context
        )

    def approve(
        self,
        request_id: str,
        actor: ActorContext,
        comment: Optional[str] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.APPROVE, actor, {"comment": comment}, context)

    def reject(
        self,
        request_id: str,
        actor: ActorContext,
        reason: Optional[str] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.REJECT, actor, {"reason": reason}, context)

    def cancel(
        self,
        request_id: str,
        actor: ActorContext,
        reason: Optional[str] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.CANCEL, actor, {"reason": reason}, context)

    def reopen(
        self,
        request_id: str,
        actor: ActorContext,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.REOPEN, actor, {}, context)

    def change_priority(
        self,
        request_id: str,
        actor: ActorContext,
        priority: RequestPriority,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(
            request_id, RequestOperation.CHANGE_PRIORITY, actor, {"priority": priority}, context
        )

    # =========================================================================
    # Draft edits
    # =========================================================================

    def update_request(
        self,
        request_id: str,
        actor: ActorContext,
        changes: Dict[str, Any],
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(request_id, RequestOperation.UPDATE, actor, changes, context)

    def add_attachment(
        self,
        request_id: str,
        actor: ActorContext,
        attachment_id: str,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(
            request_id, RequestOperation.ADD_ATTACHMENT, actor, {"attachment_id": attachment_id}, context
        )

    def remove_attachment(
        self,
        request_id: str,
        actor: ActorContext,
        attachment_id: str,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        return self.execute(
            request_id, RequestOperation.REMOVE_ATTACHMENT, actor, {"attachment_id": attachment_id}, context
        )

    # =========================================================================
    # Pipeline
    # =========================================================================

    def execute(
        self,
        request_id: str,
        operation: RequestOperation,
        actor: ActorContext,
        payload: Optional[Dict[str, Any]] = None,
        context: Optional[AuditRequestContext] = None
    ) -> CommandOutcome:
        """Run one command through load, authorize, validate, apply and commit"""
        try:
            request = self.store.load_request(request_id)
            loaded_version = request.version

            parsed = self._parse_payload(payload)
            if not self.permission_guard.can_perform(actor, request, operation, parsed.assignee_id):
                raise ForbiddenError(
                    FORBIDDEN_MESSAGES.get(operation, "You cannot perform this action"),
                    details={"request_id": request_id, "operation": operation.value}
                )

            apply = self._prepare(operation, actor, parsed)
            apply(request)

            return self._commit(request, actor, operation.value, context, expected_version=loaded_version)
        except DomainError as e:
            self._log_failure(operation.value, request_id, actor, e)
            raise

    def _prepare(
        self,
        operation: RequestOperation,
        actor: ActorContext,
        payload: CommandPayload
    ) -> Callable[[Request], Any]:
        """Validate the payload and bind the aggregate operation"""
        now = utc_now()

        if operation == RequestOperation.SUBMIT:
            return lambda r: r.submit(actor.user_id, now=now)

        if operation == RequestOperation.BEGIN_REVIEW:
            assignee_id = payload.assignee_id or actor.user_id
            return lambda r: r.begin_review(actor.user_id, assignee_id, now=now)

        if operation == RequestOperation.APPROVE:
            return lambda r: r.approve(
                actor.user_id, payload.comment, self.allow_direct_review, now=now
            )

        if operation == RequestOperation.REJECT:
            reason = (payload.reason or "").strip() or None
            if reason is None and self.reject_reason_required:
                raise ValidationError(
                    "A reason is required to reject a request",
                    details={"field": "reason"}
                )
            return lambda r: r.reject(actor.user_id, reason, self.allow_direct_review, now=now)

        if operation == RequestOperation.CANCEL:
            return lambda r: r.cancel(actor.user_id, payload.reason, now=now)

        if operation == RequestOperation.REOPEN:
            return lambda r: r.reopen(actor.user_id, now=now)

        if operation == RequestOperation.CHANGE_PRIORITY:
            if payload.priority is None:
                raise ValidationError("priority is required", details={"field": "priority"})
            return lambda r: r.change_priority(actor.user_id, payload.priority, now=now)

        if operation == RequestOperation.UPDATE:
            self._validate_text_limits(payload.title, payload.description)
            return lambda r: r.update(
                actor.user_id,
                title=payload.title,
                description=payload.description,
                request_type=payload.request_type,
                priority=payload.priority,
                now=now,
            )

        if operation in (RequestOperation.ADD_ATTACHMENT, RequestOperation.REMOVE_ATTACHMENT):
            if not payload.attachment_id:
                raise ValidationError("attachment_id is required", details={"field": "attachment_id"})
            if operation == RequestOperation.ADD_ATTACHMENT:
                return lambda r: r.add_attachment(actor.user_id, payload.attachment_id, now=now)
            return lambda r: r.remove_attachment(actor.user_id, payload.attachment_id, now=now)

        raise ValidationError(f"Unknown command {operation}")

    def _commit(
        self,
        request: Request,
        actor: ActorContext,
        command: str,
        context: Optional[AuditRequestContext],
        expected_version: Optional[int]
    ) -> CommandOutcome:
        """Derive projections from pending events and persist them atomically"""
        events = request.pending_events
        audit_entries = [self.recorder.record(event, context) for event in events]
        reviewer_ids, admin_ids = self._role_pools(events)
        notifications = []
        for event in events:
            notifications.extend(self.dispatcher.derive_notifications(
                event, request, actor.display_name, reviewer_ids=reviewer_ids, admin_ids=admin_ids
            ))

        if expected_version is None:
            self.store.insert_request(request, audit_entries, notifications)
        else:
            request.version = self.store.save_request_transaction(
                request, expected_version, audit_entries, notifications
            )

        # Only after the durable write
        request.clear_pending_events()

        log = get_context_logger(
            __name__, request_id=request.request_id, actor_id=actor.user_id, command=command
        )
        log.info(
            f"Request {command} committed",
            extra={
                "status": request.status.value,
                "version": request.version,
                "event_count": len(events),
            }
        )

        return CommandOutcome(
            request=request,
            events=events,
            audit_entries=audit_entries,
            notifications=notifications,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _role_pools(self, events: List[DomainEvent]) -> Tuple[List[str], List[str]]:
        """Reviewer and admin ids, looked up only when an event fans out to them"""
        if not any(self.dispatcher.needs_role_pools(event) for event in events):
            return [], []
        return (
            self.store.list_user_ids_by_role(UserRole.REVIEWER.value),
            self.store.list_user_ids_by_role(UserRole.ADMIN.value),
        )

    def _parse_payload(self, payload: Optional[Dict[str, Any]]) -> CommandPayload:
        try:
            return CommandPayload.model_validate(payload or {})
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid command payload",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )

    def _validate_text_limits(self, title: Optional[str], description: Optional[str]) -> None:
        if title is not None and len(title.strip()) > settings.title_max_length:
            raise ValidationError(
                f"Title must be at most {settings.title_max_length} characters",
                details={"field": "title"}
            )
        if description is not None and len(description.strip()) > settings.description_max_length:
            raise ValidationError(
                f"Description must be at most {settings.description_max_length} characters",
                details={"field": "description"}
            )

    def _log_failure(self, command: str, request_id: str, actor: ActorContext, error: DomainError) -> None:
        log = get_context_logger(__name__, request_id=request_id, actor_id=actor.user_id, command=command)
        log.warning(
            f"Request {command} failed: {error.message}",
            extra={"error_code": error.error_code}
        )
