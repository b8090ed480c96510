"""Tests for the request and notification services."""

import pytest

from reqflow.domain.enums import (
    AuditEventType, MessageClass, RequestOperation, RequestStatus,
)
from reqflow.domain.errors import ForbiddenError, ValidationError
from reqflow.domain.models import CommandEnvelope
from reqflow.services.notification_service import NotificationService
from reqflow.services.request_service import RequestService


@pytest.fixture
def service(store, engine) -> RequestService:
    return RequestService(store=store, engine=engine)


@pytest.fixture
def created(service, requester):
    return service.create_request(requester, title="Laptop", description="Please")


def test_detail_view_lists_permitted_operations(service, created, requester, reviewer):
    assert created.status == RequestStatus.DRAFT
    assert created.requester_name == "Alice"
    assert RequestOperation.SUBMIT in created.available_operations
    assert created.next_statuses == [RequestStatus.SUBMITTED, RequestStatus.CANCELLED]

    view = service.run_command(created.request_id, RequestOperation.SUBMIT, requester)
    reviewer_view = service.get_request_detail(view.request_id, reviewer)

    assert RequestOperation.APPROVE in reviewer_view.available_operations
    assert RequestOperation.BEGIN_REVIEW in reviewer_view.available_operations


def test_submit_command_success(service, created, requester):
    result = service.submit_command(
        CommandEnvelope(request_id=created.request_id, command=RequestOperation.SUBMIT),
        requester,
    )

    assert result.success
    assert result.status == RequestStatus.SUBMITTED
    assert result.version == 2
    assert result.event_types == [AuditEventType.REQUEST_SUBMITTED]


def test_submit_command_reports_failure(service, created, reviewer):
    result = service.submit_command(
        CommandEnvelope(request_id=created.request_id, command=RequestOperation.APPROVE),
        reviewer,
    )

    assert not result.success
    assert result.error_code == "INVALID_TRANSITION"
    assert result.error_class == MessageClass.NOT_PERMITTED.value


def test_submit_command_on_behalf_of_someone_else(service, created, requester, reviewer):
    result = service.submit_command(
        CommandEnvelope(
            request_id=created.request_id,
            command=RequestOperation.SUBMIT,
            actor_id=requester.user_id,
        ),
        reviewer,
    )

    assert not result.success
    assert result.error_code == "FORBIDDEN"


def test_outsider_cannot_read(service, created, outsider):
    with pytest.raises(ForbiddenError):
        service.get_request_detail(created.request_id, outsider)


def test_history_resolves_names(service, created, requester, reviewer):
    service.run_command(created.request_id, RequestOperation.SUBMIT, requester)
    service.run_command(created.request_id, RequestOperation.BEGIN_REVIEW, reviewer)
    service.run_command(created.request_id, RequestOperation.APPROVE, reviewer, {"comment": "ok"})

    history = service.get_history(created.request_id, requester)

    assert [e.event_type for e in history] == [
        AuditEventType.REQUEST_CREATED,
        AuditEventType.REQUEST_SUBMITTED,
        AuditEventType.REQUEST_ASSIGNED,
        AuditEventType.REQUEST_APPROVED,
    ]
    assert history[-1].actor_name == "Bob"
    assert not any(e.is_inferred for e in history)


def test_list_scopes(service, created, requester, reviewer, outsider):
    service.run_command(created.request_id, RequestOperation.SUBMIT, requester)
    service.run_command(created.request_id, RequestOperation.BEGIN_REVIEW, reviewer)

    mine, _ = service.list_requests(requester, scope="mine")
    assigned, _ = service.list_requests(reviewer, scope="assigned")
    everything, total = service.list_requests(outsider, scope="all")

    assert [v.request_id for v in mine] == [created.request_id]
    assert [v.request_id for v in assigned] == [created.request_id]
    assert everything == [] and total == 0

    with pytest.raises(ValidationError):
        service.list_requests(requester, scope="everyone")


def test_workflow_status(service, created, requester):
    status = service.get_workflow_status(created.request_id, requester)
    assert status.status == RequestStatus.DRAFT
    assert status.is_terminal is False


def test_notification_service(store, service, created, requester, reviewer):
    service.run_command(created.request_id, RequestOperation.SUBMIT, requester)
    service.run_command(created.request_id, RequestOperation.REJECT, reviewer, {"reason": "Budget"})
    notifications = NotificationService(store=store)

    items, total, unread = notifications.list_notifications(requester)
    assert total == 1 and unread == 1
    assert notifications.get_unread_count(reviewer) == 0

    read = notifications.mark_as_read(items[0].notification_id, requester)
    assert read.is_read
    assert notifications.get_unread_count(requester) == 0
    assert notifications.mark_all_as_read(requester) == 0


def test_pending_approvals(service, requester, reviewer, admin):
    submitted = service.create_request(requester, title="Laptop", description="Please")
    service.run_command(submitted.request_id, RequestOperation.SUBMIT, requester)
    in_review = service.create_request(requester, title="Monitor", description="Please")
    service.run_command(in_review.request_id, RequestOperation.SUBMIT, requester)
    service.run_command(in_review.request_id, RequestOperation.BEGIN_REVIEW, reviewer)
    service.create_request(requester, title="Draft only", description="Later")
    own = service.create_request(reviewer, title="Chair", description="Mine")
    service.run_command(own.request_id, RequestOperation.SUBMIT, reviewer)

    items, total = service.list_pending_approvals(reviewer)

    assert total == 2
    assert {v.request_id for v in items} == {submitted.request_id, in_review.request_id}
    assert {v.status for v in items} == {RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW}

    _, admin_total = service.list_pending_approvals(admin)
    assert admin_total == 3
    assert service.list_pending_approvals(requester) == ([], 0)


def test_submit_reaches_reviewers_who_opened_the_queue(store, service, requester, reviewer):
    service.list_pending_approvals(reviewer)
    created = service.create_request(requester, title="Laptop", description="Please")

    service.run_command(created.request_id, RequestOperation.SUBMIT, requester)

    items, total, _ = NotificationService(store=store).list_notifications(reviewer)
    assert total == 1
    assert items[0].title == "New Request: Laptop"
