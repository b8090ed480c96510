"""Tests for the Mongo repositories against a mocked collection."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from reqflow.domain.enums import NotificationType, RequestStatus
from reqflow.domain.errors import (
    ConflictError, NotificationNotFoundError, PersistenceError, RequestNotFoundError,
)
from reqflow.domain.models import Notification, RejectedMetadata, RequestFilters
from reqflow.domain.request import Request
from reqflow.engine.audit_recorder import AuditRecorder
from reqflow.repositories import (
    audit_repo, mongo_store, notification_repo, request_repo, user_repo,
)
from reqflow.repositories.mongo_client import AUDIT_LOGS, NOTIFICATIONS, REQUESTS, USERS


@pytest.fixture
def collection(monkeypatch) -> MagicMock:
    mock = MagicMock()
    monkeypatch.setattr(request_repo, "get_collection", lambda name: mock)
    return mock


@pytest.fixture
def request_obj() -> Request:
    return Request.create(requester_id="u-alice", title="Laptop", description="Please")


def test_replace_is_conditional_on_version(collection, request_obj):
    collection.update_one.return_value.matched_count = 1

    new_version = request_repo.RequestRepository().replace_request(request_obj, 3)

    assert new_version == 4
    query, update = collection.update_one.call_args.args
    assert query == {"request_id": request_obj.request_id, "version": 3}
    assert update["$set"]["version"] == 4
    assert "request_id" not in update["$set"]


def test_replace_conflict_when_version_moved(collection, request_obj):
    collection.update_one.return_value.matched_count = 0
    collection.find_one.return_value = {"version": 5}

    with pytest.raises(ConflictError) as exc_info:
        request_repo.RequestRepository().replace_request(request_obj, 3)
    assert exc_info.value.details["current_version"] == 5


def test_replace_not_found_when_document_gone(collection, request_obj):
    collection.update_one.return_value.matched_count = 0
    collection.find_one.return_value = None

    with pytest.raises(RequestNotFoundError):
        request_repo.RequestRepository().replace_request(request_obj, 3)


def test_participant_query(collection):
    query = request_repo.RequestRepository()._build_query(RequestFilters(participant_id="u-bob"))
    assert {"watcher_ids": "u-bob"} in query["$or"]


def _store_with_client(monkeypatch, error) -> mongo_store.MongoRequestStore:
    session = MagicMock()
    session.__enter__.return_value = session
    session.with_transaction.side_effect = error
    client = MagicMock()
    client.start_session.return_value = session
    monkeypatch.setattr(mongo_store, "get_client", lambda: client)

    store = mongo_store.MongoRequestStore.__new__(mongo_store.MongoRequestStore)
    return store


def test_duplicate_key_becomes_conflict(monkeypatch, request_obj):
    store = _store_with_client(monkeypatch, DuplicateKeyError("dup"))
    with pytest.raises(ConflictError):
        store.save_request_transaction(request_obj, 1, [], [])


def test_driver_failure_becomes_persistence_error(monkeypatch, request_obj):
    store = _store_with_client(monkeypatch, ServerSelectionTimeoutError("down"))
    with pytest.raises(PersistenceError):
        store.save_request_transaction(request_obj, 1, [], [])


T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def mongo(monkeypatch):
    """Store over per-collection mocks; with_transaction runs the callback."""
    collections = {}

    def fake_get_collection(name):
        return collections.setdefault(name, MagicMock(name=name))

    for module in (request_repo, audit_repo, notification_repo, user_repo):
        monkeypatch.setattr(module, "get_collection", fake_get_collection)

    session = MagicMock()
    session.__enter__.return_value = session
    session.with_transaction.side_effect = lambda callback: callback(session)
    client = MagicMock()
    client.start_session.return_value = session
    monkeypatch.setattr(mongo_store, "get_client", lambda: client)

    return mongo_store.MongoRequestStore(), collections, session


def _rejected(request_obj):
    request_obj.clear_pending_events()
    request_obj.submit("u-alice", now=T0)
    request_obj.reject("u-bob", reason="Budget", now=T0)
    events = request_obj.pending_events
    entries = [AuditRecorder().record(event) for event in events]
    notification = Notification(
        notification_id="NTF-1",
        notification_type=NotificationType.REQUEST_REJECTED,
        title="Request Rejected",
        message="No",
        recipient_id="u-alice",
        related_entity_id=request_obj.request_id,
        source_event_id=events[-1].event_id,
        created_at=T0,
    )
    return entries, [notification]


def test_transaction_writes_everything_in_one_session(mongo, request_obj):
    store, collections, session = mongo
    collections[REQUESTS].update_one.return_value.matched_count = 1
    entries, notifications = _rejected(request_obj)

    new_version = store.save_request_transaction(request_obj, 1, entries, notifications)

    assert new_version == 2
    assert collections[REQUESTS].update_one.call_args.kwargs["session"] is session

    audit_docs = collections[AUDIT_LOGS].insert_many.call_args.args[0]
    assert collections[AUDIT_LOGS].insert_many.call_args.kwargs["session"] is session
    assert [d["_id"] for d in audit_docs] == [e.audit_id for e in entries]

    notification_docs = collections[NOTIFICATIONS].insert_many.call_args.args[0]
    assert collections[NOTIFICATIONS].insert_many.call_args.kwargs["session"] is session
    assert notification_docs[0]["_id"] == "NTF-1"


def test_insert_runs_in_the_same_session(mongo, request_obj):
    store, collections, session = mongo
    entries = [AuditRecorder().record(event) for event in request_obj.pending_events]

    store.insert_request(request_obj, entries, [])

    assert collections[REQUESTS].insert_one.call_args.kwargs["session"] is session
    assert collections[AUDIT_LOGS].insert_many.call_args.kwargs["session"] is session
    collections[NOTIFICATIONS].insert_many.assert_not_called()


def test_version_miss_stops_before_any_insert(mongo, request_obj):
    store, collections, _ = mongo
    collections[REQUESTS].update_one.return_value.matched_count = 0
    collections[REQUESTS].find_one.return_value = {"version": 2}
    entries, notifications = _rejected(request_obj)

    with pytest.raises(ConflictError):
        store.save_request_transaction(request_obj, 1, entries, notifications)

    collections[AUDIT_LOGS].insert_many.assert_not_called()
    collections[NOTIFICATIONS].insert_many.assert_not_called()


def test_audit_metadata_survives_storage(mongo, request_obj):
    store, collections, _ = mongo
    entries, _ = _rejected(request_obj)
    store.audit_repo.create_entries(entries)
    stored_docs = collections[AUDIT_LOGS].insert_many.call_args.args[0]
    collections[AUDIT_LOGS].find.return_value.sort.return_value = [dict(d) for d in stored_docs]

    loaded = store.list_audit_entries(request_obj.request_id)

    assert loaded == entries
    assert isinstance(loaded[-1].metadata, RejectedMetadata)
    assert loaded[-1].metadata.reason == "Budget"
    assert loaded[-1].changes["status"] == {
        "old": RequestStatus.SUBMITTED.value, "new": RequestStatus.REJECTED.value,
    }


def test_empty_batches_are_not_written(mongo):
    store, collections, _ = mongo

    assert store.audit_repo.create_entries([]) == []
    assert store.notification_repo.create_notifications([]) == []
    collections[AUDIT_LOGS].insert_many.assert_not_called()
    collections[NOTIFICATIONS].insert_many.assert_not_called()


def _notification_doc(**overrides):
    doc = {
        "_id": "NTF-1",
        "notification_id": "NTF-1",
        "notification_type": "SYSTEM",
        "title": "Hello",
        "message": "World",
        "recipient_id": "u-alice",
        "related_entity_type": "REQUEST",
        "related_entity_id": "req-1",
        "source_event_id": "evt-1",
        "is_read": False,
        "created_at": T0,
    }
    doc.update(overrides)
    return doc


def test_mark_as_read_updates_unread_notification(mongo):
    store, collections, _ = mongo
    read_at = datetime(2024, 5, 2, tzinfo=timezone.utc)
    collections[NOTIFICATIONS].find_one_and_update.return_value = _notification_doc(
        is_read=True, read_at=read_at
    )

    notification = store.mark_notification_read("NTF-1", "u-alice", read_at)

    query, update = collections[NOTIFICATIONS].find_one_and_update.call_args.args
    assert query == {"notification_id": "NTF-1", "recipient_id": "u-alice", "is_read": False}
    assert update == {"$set": {"is_read": True, "read_at": read_at}}
    assert notification.is_read and notification.read_at == read_at


def test_mark_as_read_keeps_first_read_time(mongo):
    store, collections, _ = mongo
    first_read = datetime(2024, 5, 2, tzinfo=timezone.utc)
    collections[NOTIFICATIONS].find_one_and_update.return_value = None
    collections[NOTIFICATIONS].find_one.return_value = _notification_doc(is_read=True, read_at=first_read)

    notification = store.mark_notification_read("NTF-1", "u-alice", datetime(2024, 6, 1, tzinfo=timezone.utc))

    assert notification.read_at == first_read


def test_mark_as_read_of_someone_elses_notification(mongo):
    store, collections, _ = mongo
    collections[NOTIFICATIONS].find_one_and_update.return_value = None
    collections[NOTIFICATIONS].find_one.return_value = None

    with pytest.raises(NotificationNotFoundError):
        store.mark_notification_read("NTF-1", "u-bob", T0)


def test_role_lookup_query(mongo):
    store, collections, _ = mongo
    collections[USERS].find.return_value.sort.return_value = [{"user_id": "u-bob"}]

    assert store.list_user_ids_by_role("reviewer") == ["u-bob"]
    assert collections[USERS].find.call_args.args[0] == {"roles": "REVIEWER"}


def test_pending_query(collection):
    query = request_repo.RequestRepository()._build_query(RequestFilters(
        statuses=[RequestStatus.SUBMITTED, RequestStatus.IN_REVIEW],
        exclude_requester_id="u-bob",
    ))
    assert query == {
        "status": {"$in": ["SUBMITTED", "IN_REVIEW"]},
        "requester_id": {"$ne": "u-bob"},
    }


def test_exclusion_combines_with_exact_requester(collection):
    query = request_repo.RequestRepository()._build_query(RequestFilters(
        requester_id="u-alice", exclude_requester_id="u-bob",
    ))
    assert query["requester_id"] == {"$eq": "u-alice", "$ne": "u-bob"}
