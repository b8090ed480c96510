"""Tests for request authorization rules."""

import pytest

from reqflow.domain.enums import RequestOperation
from reqflow.domain.request import Request
from reqflow.engine.permission_guard import PermissionGuard


@pytest.fixture
def guard() -> PermissionGuard:
    return PermissionGuard(allow_direct_review=True)


@pytest.fixture
def draft(requester) -> Request:
    request = Request.create(requester_id=requester.user_id, title="Laptop", description="Please")
    request.clear_pending_events()
    return request


@pytest.fixture
def submitted(draft) -> Request:
    draft.submit(draft.requester_id)
    draft.clear_pending_events()
    return draft


def test_only_requester_edits_and_submits(guard, draft, requester, reviewer, admin):
    for operation in (RequestOperation.UPDATE, RequestOperation.SUBMIT, RequestOperation.CANCEL):
        assert guard.can_perform(requester, draft, operation)
        assert not guard.can_perform(reviewer, draft, operation)
        assert not guard.can_perform(admin, draft, operation)


def test_reviewer_picks_up_unassigned_request(guard, submitted, reviewer):
    assert guard.can_begin_review(reviewer, submitted)
    assert guard.can_begin_review(reviewer, submitted, reviewer.user_id)


def test_reviewer_cannot_assign_someone_else(guard, submitted, reviewer, second_reviewer):
    assert not guard.can_begin_review(reviewer, submitted, second_reviewer.user_id)


def test_admin_assigns_anyone(guard, submitted, admin, reviewer):
    assert guard.can_begin_review(admin, submitted, reviewer.user_id)


def test_plain_user_cannot_review(guard, submitted, outsider):
    assert not guard.can_begin_review(outsider, submitted)
    assert not guard.can_decide(outsider, submitted)


def test_requester_never_reviews_own_request(guard, admin):
    request = Request.create(requester_id=admin.user_id, title="Laptop", description="Please")
    request.submit(admin.user_id)

    assert not guard.can_begin_review(admin, request)
    assert not guard.can_decide(admin, request)


def test_only_assignee_decides_once_assigned(guard, submitted, reviewer, second_reviewer):
    submitted.begin_review(reviewer.user_id, reviewer.user_id)

    assert guard.can_decide(reviewer, submitted)
    assert not guard.can_decide(second_reviewer, submitted)


def test_visibility(guard, submitted, requester, reviewer, outsider):
    assert guard.can_view_request(requester, submitted)
    assert guard.can_view_request(reviewer, submitted)
    assert not guard.can_view_request(outsider, submitted)


def test_available_operations(guard, draft, requester, reviewer):
    assert guard.get_available_operations(requester, draft) == [
        RequestOperation.SUBMIT,
        RequestOperation.CANCEL,
        RequestOperation.UPDATE,
        RequestOperation.ADD_ATTACHMENT,
    ]
    assert guard.get_available_operations(reviewer, draft) == []


def test_priority_changes(guard, submitted, requester, reviewer, second_reviewer, admin):
    assert guard.can_change_priority(reviewer, submitted)
    assert not guard.can_change_priority(requester, submitted)

    submitted.begin_review(reviewer.user_id, reviewer.user_id)

    assert guard.can_change_priority(reviewer, submitted)
    assert guard.can_change_priority(admin, submitted)
    assert not guard.can_change_priority(second_reviewer, submitted)
