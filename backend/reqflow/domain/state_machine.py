"""Request State Machine - Fixed transition table

    DRAFT --submit--> SUBMITTED --begin_review--> IN_REVIEW
    SUBMITTED/IN_REVIEW --approve--> APPROVED
    SUBMITTED/IN_REVIEW --reject--> REJECTED
    DRAFT/SUBMITTED/IN_REVIEW --cancel--> CANCELLED
    REJECTED/CANCELLED --reopen--> DRAFT

approve/reject from SUBMITTED only when direct review is enabled.
Edits (update, attachments) are allowed in DRAFT and keep the status.
Reviewers may re-prioritise SUBMITTED and IN_REVIEW requests in place.
"""
from typing import Dict, FrozenSet, List, NamedTuple, Optional

from .enums import RequestOperation, RequestStatus
from .errors import InvalidTransitionError


class Transition(NamedTuple):
    allowed_from: FrozenSet[RequestStatus]
    target: Optional[RequestStatus]  # None keeps the current status


TRANSITIONS: Dict[RequestOperation, Transition] = {
    RequestOperation.SUBMIT: Transition(
        frozenset({RequestStatus.DRAFT}), RequestStatus.SUBMITTED
    ),
    RequestOperation.BEGIN_REVIEW: Transition(
        frozenset({RequestStatus.SUBMITTED}), RequestStatus.IN_REVIEW
    ),
    RequestOperation.APPROVE: Transition(
        frozenset({RequestStatus.IN_REVIEW}), RequestStatus.APPROVED
    ),
    RequestOperation.REJECT: Transition(
        frozenset({RequestStatus.IN_REVIEW}), RequestStatus.REJECTED
    ),
    RequestOperation.CANCEL: Transition(
        frozenset({RequestStatus.DRAFT, RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW}),
        RequestStatus.CANCELLED
    ),
    RequestOperation.REOPEN: Transition(
        frozenset({RequestStatus.REJECTED, RequestStatus.CANCELLED}), RequestStatus.DRAFT
    ),
    RequestOperation.UPDATE: Transition(frozenset({RequestStatus.DRAFT}), None),
    RequestOperation.ADD_ATTACHMENT: Transition(frozenset({RequestStatus.DRAFT}), None),
    RequestOperation.REMOVE_ATTACHMENT: Transition(frozenset({RequestStatus.DRAFT}), None),
    RequestOperation.CHANGE_PRIORITY: Transition(
        frozenset({RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW}), None
    ),
}

# Operations that may skip IN_REVIEW when direct review is enabled
DIRECT_REVIEW_OPERATIONS = frozenset({RequestOperation.APPROVE, RequestOperation.REJECT})

TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.CANCELLED})

DECIDED_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED})


def allowed_from(
    operation: RequestOperation,
    allow_direct_review: bool = True
) -> FrozenSet[RequestStatus]:
    """Statuses from which an operation may be applied"""
    sources = TRANSITIONS[operation].allowed_from
    if allow_direct_review and operation in DIRECT_REVIEW_OPERATIONS:
        sources = sources | {RequestStatus.SUBMITTED}
    return sources


def resolve_transition(
    status: RequestStatus,
    operation: RequestOperation,
    allow_direct_review: bool = True
) -> RequestStatus:
    """
    Resolve the status an operation leads to

    Raises:
        InvalidTransitionError: If the operation is not allowed from status
    """
    if status not in allowed_from(operation, allow_direct_review):
        raise InvalidTransitionError(status.value, operation.value)
    target = TRANSITIONS[operation].target
    return target if target is not None else status


def available_operations(
    status: RequestStatus,
    allow_direct_review: bool = True
) -> List[RequestOperation]:
    """Operations legal in the given status, in table order"""
    return [
        operation for operation in TRANSITIONS
        if status in allowed_from(operation, allow_direct_review)
    ]


def next_possible_statuses(
    status: RequestStatus,
    allow_direct_review: bool = True
) -> List[RequestStatus]:
    """Distinct statuses reachable in one transition"""
    result: List[RequestStatus] = []
    for operation in available_operations(status, allow_direct_review):
        target = TRANSITIONS[operation].target
        if target is not None and target != status and target not in result:
            result.append(target)
    return result


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_STATUSES
