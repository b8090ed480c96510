"""
Request Routes

Create, read and drive requests through their lifecycle:
- Create / list / get / update drafts
- Submit, assign, approve, reject, cancel, reopen, re-prioritise
- Pending approvals queue
- Attachments
- History and workflow status
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..deps import (
    get_audit_context_dep, get_current_user_dep, get_request_service_dep,
)
from ...domain.enums import (
    RequestOperation, RequestPriority, RequestStatus, RequestType,
)
from ...domain.errors import DomainError
from ...domain.models import (
    ActorContext, AuditRequestContext, DisplayEvent, RequestDetailView,
    WorkflowStatusView,
)
from ...services.request_service import RequestService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class CreateRequestBody(BaseModel):
    """Request to create a new draft"""
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    request_type: RequestType = RequestType.OTHER
    priority: RequestPriority = RequestPriority.MEDIUM
    watcher_ids: List[str] = Field(default_factory=list)
    assignee_id: Optional[str] = None


class UpdateRequestBody(BaseModel):
    """Partial edit of a draft; omitted fields stay unchanged"""
    title: Optional[str] = None
    description: Optional[str] = None
    request_type: Optional[RequestType] = None
    priority: Optional[RequestPriority] = None


class AssignBody(BaseModel):
    """Begin review; defaults to assigning the caller"""
    assignee_id: Optional[str] = None


class DecisionBody(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class ReasonBody(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class AttachmentBody(BaseModel):
    attachment_id: str = Field(..., min_length=1)


class PriorityBody(BaseModel):
    priority: RequestPriority


class RequestListResponse(BaseModel):
    """Paged list of requests"""
    items: List[RequestDetailView]
    skip: int
    limit: int
    total: int


class HistoryResponse(BaseModel):
    request_id: str
    events: List[DisplayEvent]


# =============================================================================
# CRUD
# =============================================================================

@router.post("", response_model=RequestDetailView, status_code=status.HTTP_201_CREATED)
async def create_request(
    body: CreateRequestBody,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """
    Create a request in DRAFT.

    The caller becomes the requester. Watchers are notified of decisions.
    """
    try:
        return service.create_request(
            actor=actor,
            title=body.title,
            description=body.description,
            request_type=body.request_type,
            priority=body.priority,
            watcher_ids=body.watcher_ids,
            assignee_id=body.assignee_id,
            context=context,
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=RequestListResponse)
async def list_requests(
    scope: str = Query("mine", description="mine | assigned | all"),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    request_type: Optional[RequestType] = Query(None),
    priority: Optional[RequestPriority] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """List requests visible to the caller, newest first"""
    try:
        items, total = service.list_requests(
            actor=actor,
            scope=scope,
            status=status_filter,
            request_type=request_type,
            priority=priority,
            skip=skip,
            limit=limit,
        )
        return RequestListResponse(items=items, skip=skip, limit=limit, total=total)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/pending-approvals", response_model=RequestListResponse)
async def list_pending_approvals(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """Submitted and in-review requests raised by someone else (reviewers only)"""
    try:
        items, total = service.list_pending_approvals(actor, skip=skip, limit=limit)
        return RequestListResponse(items=items, skip=skip, limit=limit, total=total)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{request_id}", response_model=RequestDetailView)
async def get_request(
    request_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    try:
        return service.get_request_detail(request_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{request_id}", response_model=RequestDetailView)
async def update_request(
    request_id: str,
    body: UpdateRequestBody,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """Edit a draft. Only the requester may edit, and only while in DRAFT."""
    try:
        return service.update_request(request_id, actor, body.model_dump(exclude_none=True), context)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Lifecycle
# =============================================================================

@router.post("/{request_id}/submit", response_model=RequestDetailView)
async def submit_request(
    request_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    return _run(service, request_id, RequestOperation.SUBMIT, actor, context)


@router.post("/{request_id}/assign", response_model=RequestDetailView)
async def begin_review(
    request_id: str,
    body: Optional[AssignBody] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """
    Move a submitted request into review.

    Reviewers may only take the request themselves; admins may assign anyone.
    """
    payload = body.model_dump(exclude_none=True) if body else {}
    return _run(service, request_id, RequestOperation.BEGIN_REVIEW, actor, context, payload)


@router.post("/{request_id}/approve", response_model=RequestDetailView)
async def approve_request(
    request_id: str,
    body: Optional[DecisionBody] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    payload = body.model_dump(exclude_none=True) if body else {}
    return _run(service, request_id, RequestOperation.APPROVE, actor, context, payload)


@router.post("/{request_id}/reject", response_model=RequestDetailView)
async def reject_request(
    request_id: str,
    body: Optional[ReasonBody] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    payload = body.model_dump(exclude_none=True) if body else {}
    return _run(service, request_id, RequestOperation.REJECT, actor, context, payload)


@router.post("/{request_id}/cancel", response_model=RequestDetailView)
async def cancel_request(
    request_id: str,
    body: Optional[ReasonBody] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    payload = body.model_dump(exclude_none=True) if body else {}
    return _run(service, request_id, RequestOperation.CANCEL, actor, context, payload)


@router.post("/{request_id}/reopen", response_model=RequestDetailView)
async def reopen_request(
    request_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """Return a rejected or cancelled request to DRAFT"""
    return _run(service, request_id, RequestOperation.REOPEN, actor, context)


@router.post("/{request_id}/priority", response_model=RequestDetailView)
async def change_priority(
    request_id: str,
    body: PriorityBody,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """
    Re-prioritise a submitted or in-review request.

    The requester is told; raising to URGENT also alerts admins.
    """
    return _run(
        service, request_id, RequestOperation.CHANGE_PRIORITY, actor, context,
        {"priority": body.priority}
    )


# =============================================================================
# Attachments
# =============================================================================

@router.post("/{request_id}/attachments", response_model=RequestDetailView)
async def add_attachment(
    request_id: str,
    body: AttachmentBody,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    return _run(
        service, request_id, RequestOperation.ADD_ATTACHMENT, actor, context,
        {"attachment_id": body.attachment_id}
    )


@router.delete("/{request_id}/attachments/{attachment_id}", response_model=RequestDetailView)
async def remove_attachment(
    request_id: str,
    attachment_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    return _run(
        service, request_id, RequestOperation.REMOVE_ATTACHMENT, actor, context,
        {"attachment_id": attachment_id}
    )


# =============================================================================
# Read views
# =============================================================================

@router.get("/{request_id}/history", response_model=HistoryResponse)
async def get_history(
    request_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """Audit trail, oldest first"""
    try:
        events = service.get_history(request_id, actor)
        return HistoryResponse(request_id=request_id, events=events)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{request_id}/workflow-status", response_model=WorkflowStatusView)
async def get_workflow_status(
    request_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    try:
        return service.get_workflow_status(request_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


def _run(
    service: RequestService,
    request_id: str,
    operation: RequestOperation,
    actor: ActorContext,
    context: AuditRequestContext,
    payload: Optional[Dict[str, Any]] = None
) -> RequestDetailView:
    try:
        return service.run_command(request_id, operation, actor, payload or {}, context)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
