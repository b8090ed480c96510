"""Permission Guard - Authorization enforcement for request operations"""
from typing import List, Optional

from ..config.settings import settings
from ..domain.enums import RequestOperation
from ..domain.models import ActorContext
from ..domain.request import Request
from ..domain.state_machine import available_operations
from ..utils.logger import get_logger

logger = get_logger(__name__)


EDIT_OPERATIONS = frozenset({
    RequestOperation.UPDATE,
    RequestOperation.ADD_ATTACHMENT,
    RequestOperation.REMOVE_ATTACHMENT,
})


class PermissionGuard:
    """
    Permission enforcement for request operations

    Rules:
    - Only the requester may edit, submit, cancel or reopen their request
    - A reviewer never acts on a request they raised
    - begin_review: reviewers pick up unassigned requests for themselves;
      admins may assign any reviewer and take over assigned requests
    - approve/reject: the assignee; unassigned requests (direct review)
      may be decided by any reviewer
    - change_priority: the assignee or an admin; any reviewer while the
      request is unassigned
    """

    def __init__(self, allow_direct_review: Optional[bool] = None):
        self.allow_direct_review = (
            settings.allow_direct_review if allow_direct_review is None else allow_direct_review
        )

    def _is_same_user(self, actor: ActorContext, user_id: Optional[str]) -> bool:
        return bool(user_id) and actor.user_id == user_id

    def can_view_request(self, actor: ActorContext, request: Request) -> bool:
        """Participants and reviewers can read a request and its history"""
        if actor.is_reviewer:
            return True
        return actor.user_id in request.participant_ids()

    def can_edit(self, actor: ActorContext, request: Request) -> bool:
        return self._is_same_user(actor, request.requester_id)

    def can_submit(self, actor: ActorContext, request: Request) -> bool:
        return self._is_same_user(actor, request.requester_id)

    def can_cancel(self, actor: ActorContext, request: Request) -> bool:
        return self._is_same_user(actor, request.requester_id)

    def can_reopen(self, actor: ActorContext, request: Request) -> bool:
        return self._is_same_user(actor, request.requester_id)

    def can_begin_review(
        self,
        actor: ActorContext,
        request: Request,
        assignee_id: Optional[str] = None
    ) -> bool:
        """Check if actor can move the request into review with the given assignee"""
        if self._is_same_user(actor, request.requester_id):
            return False
        if not actor.is_reviewer:
            return False

        target = assignee_id or actor.user_id
        if actor.is_admin:
            return True

        # Non-admin reviewers only pick requests up for themselves
        if target != actor.user_id:
            return False
        return request.assignee_id is None or self._is_same_user(actor, request.assignee_id)

    def can_decide(self, actor: ActorContext, request: Request) -> bool:
        """Check if actor can approve or reject"""
        if self._is_same_user(actor, request.requester_id):
            return False
        if request.assignee_id:
            return self._is_same_user(actor, request.assignee_id)
        return actor.is_reviewer

    def can_change_priority(self, actor: ActorContext, request: Request) -> bool:
        if self._is_same_user(actor, request.requester_id) or not actor.is_reviewer:
            return False
        if request.assignee_id and not actor.is_admin:
            return self._is_same_user(actor, request.assignee_id)
        return True

    def can_perform(
        self,
        actor: ActorContext,
        request: Request,
        operation: RequestOperation,
        assignee_id: Optional[str] = None
    ) -> bool:
        """Single entry point used by the lifecycle engine"""
        if operation == RequestOperation.SUBMIT:
            return self.can_submit(actor, request)
        if operation == RequestOperation.CANCEL:
            return self.can_cancel(actor, request)
        if operation == RequestOperation.REOPEN:
            return self.can_reopen(actor, request)
        if operation in EDIT_OPERATIONS:
            return self.can_edit(actor, request)
        if operation == RequestOperation.BEGIN_REVIEW:
            return self.can_begin_review(actor, request, assignee_id)
        if operation in (RequestOperation.APPROVE, RequestOperation.REJECT):
            return self.can_decide(actor, request)
        if operation == RequestOperation.CHANGE_PRIORITY:
            return self.can_change_priority(actor, request)
        logger.warning(f"No permission rule for operation {operation.value}")
        return False

    def get_available_operations(
        self,
        actor: ActorContext,
        request: Request
    ) -> List[RequestOperation]:
        """Operations that are both legal now and permitted for this actor"""
        operations = []
        for operation in available_operations(request.status, self.allow_direct_review):
            if operation == RequestOperation.REMOVE_ATTACHMENT and not request.attachment_ids:
                continue
            if self.can_perform(actor, request, operation):
                operations.append(operation)
        return operations
