"""Tests for notification fan-out rules."""

import pytest

from reqflow.domain.enums import EntityType, NotificationType, RequestPriority
from reqflow.domain.request import Request
from reqflow.engine.notification_dispatcher import NotificationDispatcher


@pytest.fixture
def dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


@pytest.fixture
def submitted() -> Request:
    request = Request.create(
        requester_id="u-alice",
        title="Laptop",
        description="Please",
        watcher_ids=["u-frank"],
    )
    request.submit("u-alice")
    request.clear_pending_events()
    return request


def test_submit_without_assignee_or_known_reviewers_notifies_nobody(dispatcher):
    request = Request.create(requester_id="u-alice", title="Laptop", description="Please")
    [event] = request.submit("u-alice")

    assert dispatcher.derive_notifications(event, request) == []


def test_submit_with_preassigned_reviewer(dispatcher):
    request = Request.create(
        requester_id="u-alice", title="Laptop", description="Please", assignee_id="u-bob"
    )
    [event] = request.submit("u-alice")

    [notification] = dispatcher.derive_notifications(event, request)

    assert notification.recipient_id == "u-bob"
    assert notification.notification_type == NotificationType.REQUEST_SUBMITTED
    assert notification.title == "New Request: Laptop"


def test_assignment_notifies_new_assignee(dispatcher, submitted):
    [event] = submitted.begin_review("u-carol", "u-bob")

    [notification] = dispatcher.derive_notifications(event, submitted, "Carol")

    assert notification.recipient_id == "u-bob"
    assert notification.notification_type == NotificationType.REQUEST_ASSIGNED
    assert notification.message == 'You have been assigned to request "Laptop"'
    assert notification.related_entity_type == EntityType.REQUEST
    assert notification.related_entity_id == submitted.request_id
    assert notification.source_event_id == event.event_id


def test_self_assignment_is_silent(dispatcher, submitted):
    [event] = submitted.begin_review("u-bob", "u-bob")
    assert dispatcher.derive_notifications(event, submitted, "Bob") == []


def test_rejection_notifies_requester_then_watchers(dispatcher, submitted):
    [event] = submitted.reject("u-bob", reason="Budget")

    notifications = dispatcher.derive_notifications(event, submitted, "Bob")

    assert [n.recipient_id for n in notifications] == ["u-alice", "u-frank"]
    assert all(n.notification_type == NotificationType.REQUEST_REJECTED for n in notifications)
    assert notifications[0].message == 'Your request "Laptop" has been rejected by Bob. Reason: Budget'
    assert notifications[0].created_at == event.occurred_at


def test_actor_is_never_notified(dispatcher):
    request = Request.create(
        requester_id="u-alice", title="Laptop", description="Please", watcher_ids=["u-bob"]
    )
    request.submit("u-alice")
    [event] = request.approve("u-bob")

    notifications = dispatcher.derive_notifications(event, request, "Bob")

    assert [n.recipient_id for n in notifications] == ["u-alice"]


def test_cancel_notifies_assignee_and_watchers(dispatcher, submitted):
    submitted.begin_review("u-bob", "u-bob")
    [event] = submitted.cancel("u-alice", reason="Not needed")

    notifications = dispatcher.derive_notifications(event, submitted, "Alice")

    assert [n.recipient_id for n in notifications] == ["u-bob", "u-frank"]
    assert all(n.notification_type == NotificationType.SYSTEM for n in notifications)


def test_reopen_notifies_previous_reviewer(dispatcher, submitted):
    submitted.reject("u-bob", reason="Budget")
    [event] = submitted.reopen("u-alice")

    [notification] = dispatcher.derive_notifications(event, submitted, "Alice")

    assert notification.recipient_id == "u-bob"
    assert notification.title == "Request reopened: Laptop"


def test_recipients_are_deduplicated(dispatcher):
    request = Request.create(
        requester_id="u-alice", title="Laptop", description="Please", watcher_ids=["u-bob"]
    )
    request.submit("u-alice")
    request.begin_review("u-carol", "u-bob")
    [event] = request.cancel("u-alice")

    notifications = dispatcher.derive_notifications(event, request, "Alice")

    assert [n.recipient_id for n in notifications] == ["u-bob"]


def test_unassigned_submit_goes_to_reviewer_and_admin_pool(dispatcher):
    request = Request.create(requester_id="u-alice", title="Laptop", description="Please")
    [event] = request.submit("u-alice")

    assert dispatcher.needs_role_pools(event)
    notifications = dispatcher.derive_notifications(
        event, request, reviewer_ids=["u-bob", "u-carol"], admin_ids=["u-carol", "u-alice"]
    )

    assert [n.recipient_id for n in notifications] == ["u-bob", "u-carol"]
    assert all(n.notification_type == NotificationType.REQUEST_SUBMITTED for n in notifications)
    assert notifications[0].message == (
        "A new medium priority request has been submitted and awaits your review"
    )


def test_assigned_submit_ignores_pool(dispatcher):
    request = Request.create(
        requester_id="u-alice", title="Laptop", description="Please", assignee_id="u-bob"
    )
    [event] = request.submit("u-alice")

    assert not dispatcher.needs_role_pools(event)
    notifications = dispatcher.derive_notifications(event, request, reviewer_ids=["u-dana"])
    assert [n.recipient_id for n in notifications] == ["u-bob"]


def test_priority_change_notifies_requester(dispatcher, submitted):
    [event] = submitted.change_priority("u-bob", RequestPriority.HIGH)

    assert not dispatcher.needs_role_pools(event)
    [notification] = dispatcher.derive_notifications(event, submitted, "Bob", admin_ids=["u-carol"])

    assert notification.recipient_id == "u-alice"
    assert notification.title == "Request Priority Changed"
    assert notification.message == 'Request "Laptop" priority changed from MEDIUM to HIGH'


def test_escalation_to_urgent_alerts_admins(dispatcher, submitted):
    [event] = submitted.change_priority("u-bob", RequestPriority.URGENT)

    assert dispatcher.needs_role_pools(event)
    notifications = dispatcher.derive_notifications(
        event, submitted, "Bob", admin_ids=["u-carol", "u-bob"]
    )

    assert [n.recipient_id for n in notifications] == ["u-alice", "u-carol"]
    assert notifications[1].title == "Urgent Request: Laptop"
    assert notifications[1].message == "Request priority has been elevated to URGENT"


def test_draft_edit_without_priority_is_silent(dispatcher):
    request = Request.create(requester_id="u-alice", title="Laptop", description="Please")
    [event] = request.update("u-alice", title="Two laptops")

    assert not dispatcher.needs_role_pools(event)
    assert dispatcher.derive_notifications(event, request, admin_ids=["u-carol"]) == []
