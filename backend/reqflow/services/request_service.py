"""Request Service - Business logic for request commands and read views"""
from typing import Any, Dict, List, Optional, Tuple

from ..domain.enums import (
    RequestOperation, RequestPriority, RequestStatus, RequestType,
)
from ..domain.errors import DomainError, ForbiddenError, ValidationError
from ..domain.models import (
    ActorContext, AuditRequestContext, CommandEnvelope, CommandResult,
    DisplayEvent, RequestDetailView, RequestFilters, WorkflowStatusView,
)
from ..domain.request import Request
from ..domain.state_machine import is_terminal, next_possible_statuses
from ..engine.audit_recorder import SYSTEM_ACTOR
from ..engine.engine import LifecycleEngine
from ..repositories.store import RequestStore, get_request_store
from .directory_service import DirectoryService
from ..utils.logger import get_logger

logger = get_logger(__name__)

SCOPES = ("mine", "assigned", "all")

PENDING_STATUSES = (RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW)


class RequestService:
    """Service layer between the API and the lifecycle engine"""

    def __init__(
        self,
        store: Optional[RequestStore] = None,
        engine: Optional[LifecycleEngine] = None
    ):
        self.store = store if store is not None else get_request_store()
        self.engine = engine or LifecycleEngine(store=self.store)
        self.permission_guard = self.engine.permission_guard
        self.recorder = self.engine.recorder
        self.directory = DirectoryService(self.store)

    # =========================================================================
    # Commands
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
    ) -> RequestDetailView:
        """Create a draft request"""
        self.directory.remember_actor(actor)
        outcome = self.engine.create_request(
            actor=actor,
            title=title,
            description=description,
            request_type=request_type,
            priority=priority,
            watcher_ids=watcher_ids,
            assignee_id=assignee_id,
            context=context,
        )
        return self._build_detail_view(outcome.request, actor)

    def run_command(
        self,
        request_id: str,
        operation: RequestOperation,
        actor: ActorContext,
        payload: Optional[Dict[str, Any]] = None,
        context: Optional[AuditRequestContext] = None
    ) -> RequestDetailView:
        """Apply a command and return the updated view; domain errors propagate"""
        self.directory.remember_actor(actor)
        outcome = self.engine.execute(request_id, operation, actor, payload, context)
        return self._build_detail_view(outcome.request, actor)

    def update_request(
        self,
        request_id: str,
        actor: ActorContext,
        changes: Dict[str, Any],
        context: Optional[AuditRequestContext] = None
    ) -> RequestDetailView:
        """Edit draft fields; omitted fields stay unchanged"""
        return self.run_command(request_id, RequestOperation.UPDATE, actor, changes, context)

    def submit_command(
        self,
        envelope: CommandEnvelope,
        actor: ActorContext,
        context: Optional[AuditRequestContext] = None
    ) -> CommandResult:
        """
        Command-submission interface

        Always returns a CommandResult; failures carry the error kind and
        message class instead of raising.
        """
        try:
            if envelope.actor_id and envelope.actor_id != actor.user_id:
                raise ForbiddenError(
                    "Commands can only be submitted on your own behalf",
                    details={"actor_id": envelope.actor_id}
                )
            self.directory.remember_actor(actor)
            outcome = self.engine.execute(
                envelope.request_id, envelope.command, actor, envelope.payload, context
            )
        except DomainError as e:
            return CommandResult(
                success=False,
                request_id=envelope.request_id,
                command=envelope.command,
                error_kind=e.kind.value,
                error_class=e.message_class.value,
                error_code=e.error_code,
                message=e.message,
                details=e.details,
            )

        return CommandResult(
            success=True,
            request_id=envelope.request_id,
            command=envelope.command,
            status=outcome.request.status,
            version=outcome.request.version,
            event_types=[event.event_type for event in outcome.events],
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_request_detail(self, request_id: str, actor: ActorContext) -> RequestDetailView:
        request = self._load_visible(request_id, actor)
        return self._build_detail_view(request, actor)

    def list_requests(
        self,
        actor: ActorContext,
        scope: str = "mine",
        status: Optional[RequestStatus] = None,
        request_type: Optional[RequestType] = None,
        priority: Optional[RequestPriority] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[RequestDetailView], int]:
        """
        List requests visible to the actor

        Scopes:
            mine: requests the actor raised
            assigned: requests assigned to the actor
            all: every request for reviewers, otherwise anything the actor takes part in
        """
        if scope not in SCOPES:
            raise ValidationError(f"Unknown scope {scope}", details={"allowed": list(SCOPES)})

        filters = RequestFilters(
            status=status,
            request_type=request_type,
            priority=priority,
            skip=skip,
            limit=limit,
        )
        if scope == "mine":
            filters.requester_id = actor.user_id
        elif scope == "assigned":
            filters.assignee_id = actor.user_id
        elif not actor.is_reviewer:
            filters.participant_id = actor.user_id

        return self._page(filters, actor)

    def list_pending_approvals(
        self,
        actor: ActorContext,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[RequestDetailView], int]:
        """
        Requests waiting on a decision: SUBMITTED or IN_REVIEW, excluding
        the actor's own. Users without a review role get an empty page.
        Reviewers who open the queue join the pool notified of new submissions.
        """
        if not actor.is_reviewer:
            return [], 0
        self.directory.remember_actor(actor)

        filters = RequestFilters(
            statuses=list(PENDING_STATUSES),
            exclude_requester_id=actor.user_id,
            skip=skip,
            limit=limit,
        )
        return self._page(filters, actor)

    def get_history(self, request_id: str, actor: ActorContext) -> List[DisplayEvent]:
        """Audit trail of a request, oldest first, with actor names resolved"""
        self._load_visible(request_id, actor)
        entries = self.store.list_audit_entries(request_id)
        events = [self.recorder.reconstruct(entry) for entry in entries]

        names = self.directory.resolve_names(e.actor_id for e in events if e.actor_id != SYSTEM_ACTOR)
        for event in events:
            event.actor_name = "System" if event.actor_id == SYSTEM_ACTOR else names.get(event.actor_id)
        return events

    def get_workflow_status(self, request_id: str, actor: ActorContext) -> WorkflowStatusView:
        request = self._load_visible(request_id, actor)
        return WorkflowStatusView(
            request_id=request.request_id,
            status=request.status,
            is_terminal=is_terminal(request.status),
            available_operations=self.permission_guard.get_available_operations(actor, request),
            next_statuses=next_possible_statuses(request.status, self.engine.allow_direct_review),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _page(
        self,
        filters: RequestFilters,
        actor: ActorContext
    ) -> Tuple[List[RequestDetailView], int]:
        requests = self.store.list_requests(filters)
        total = self.store.count_requests(filters)
        names = self.directory.resolve_names(
            user_id for r in requests for user_id in (r.requester_id, r.assignee_id, r.reviewer_id)
        )
        return [self._build_detail_view(r, actor, names) for r in requests], total

    def _load_visible(self, request_id: str, actor: ActorContext) -> Request:
        request = self.store.load_request(request_id)
        if not self.permission_guard.can_view_request(actor, request):
            raise ForbiddenError(
                "You do not have access to this request",
                details={"request_id": request_id}
            )
        return request

    def _build_detail_view(
        self,
        request: Request,
        actor: ActorContext,
        names: Optional[Dict[str, str]] = None
    ) -> RequestDetailView:
        if names is None:
            names = self.directory.resolve_names(
                [request.requester_id, request.assignee_id, request.reviewer_id]
            )
        return RequestDetailView(
            request_id=request.request_id,
            title=request.title,
            description=request.description,
            request_type=request.request_type,
            priority=request.priority,
            status=request.status,
            version=request.version,
            requester_id=request.requester_id,
            requester_name=names.get(request.requester_id),
            assignee_id=request.assignee_id,
            assignee_name=names.get(request.assignee_id) if request.assignee_id else None,
            reviewer_id=request.reviewer_id,
            reviewer_name=names.get(request.reviewer_id) if request.reviewer_id else None,
            rejection_reason=request.rejection_reason,
            attachment_ids=list(request.attachment_ids),
            watcher_ids=list(request.watcher_ids),
            created_at=request.created_at,
            updated_at=request.updated_at,
            submitted_at=request.submitted_at,
            reviewed_at=request.reviewed_at,
            available_operations=self.permission_guard.get_available_operations(actor, request),
            next_statuses=next_possible_statuses(request.status, self.engine.allow_direct_review),
            is_terminal=is_terminal(request.status),
        )
