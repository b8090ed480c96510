"""API tests for the request workflow endpoints."""

from fastapi.testclient import TestClient

BASE = "/api/v1"


def _create(client, headers, **body):
    body.setdefault("title", "New laptop")
    body.setdefault("description", "Mine is five years old")
    response = client.post(f"{BASE}/requests", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_no_auth_required(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"]["backend"] == "memory"
    assert "X-Correlation-Id" in response.headers


def test_correlation_id_is_echoed(client, auth_headers, requester):
    headers = {**auth_headers(requester), "X-Correlation-Id": "COR-from-client"}
    response = client.get(f"{BASE}/requests", headers=headers)
    assert response.headers["X-Correlation-Id"] == "COR-from-client"


def test_missing_token(client):
    response = client.get(f"{BASE}/requests")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


def test_bad_signature(client, requester):
    import jwt
    token = jwt.encode({"sub": requester.user_id}, "wrong-secret", algorithm="HS256")
    response = client.get(f"{BASE}/requests", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_full_lifecycle(client, auth_headers, requester, reviewer):
    alice, bob = auth_headers(requester), auth_headers(reviewer)
    created = _create(client, alice, priority="HIGH")
    request_id = created["request_id"]
    assert created["status"] == "DRAFT"
    assert created["version"] == 1

    response = client.post(f"{BASE}/requests/{request_id}/submit", headers=alice)
    assert response.json()["status"] == "SUBMITTED"

    response = client.post(f"{BASE}/requests/{request_id}/assign", headers=bob)
    assert response.status_code == 200, response.text
    assert response.json()["assignee_id"] == reviewer.user_id

    response = client.post(
        f"{BASE}/requests/{request_id}/approve", json={"comment": "Enjoy"}, headers=bob
    )
    body = response.json()
    assert body["status"] == "APPROVED"
    assert body["reviewer_name"] == "Bob"
    assert body["is_terminal"] is True
    assert body["available_operations"] == []

    history = client.get(f"{BASE}/requests/{request_id}/history", headers=alice).json()
    assert [e["event_type"] for e in history["events"]] == [
        "REQUEST_CREATED", "REQUEST_SUBMITTED", "REQUEST_ASSIGNED", "REQUEST_APPROVED",
    ]
    assert [e["action"] for e in history["events"]] == ["CREATE", "SUBMIT", "UPDATE", "APPROVE"]

    feed = client.get(f"{BASE}/notifications", headers=alice).json()
    assert feed["total"] == 1
    assert feed["unread_count"] == 1
    assert feed["items"][0]["notification_type"] == "REQUEST_APPROVED"
    assert feed["items"][0]["related_entity_id"] == request_id


def test_forbidden_approve(client, auth_headers, requester, reviewer, second_reviewer):
    alice = auth_headers(requester)
    created = _create(client, alice, assignee_id=reviewer.user_id)
    request_id = created["request_id"]
    client.post(f"{BASE}/requests/{request_id}/submit", headers=alice)

    response = client.post(
        f"{BASE}/requests/{request_id}/approve", headers=auth_headers(second_reviewer)
    )

    assert response.status_code == 403
    error = response.json()["error"]
    assert error["code"] == "FORBIDDEN"
    assert error["message_class"] == "NOT_PERMITTED"
    history = client.get(f"{BASE}/requests/{request_id}/history", headers=alice).json()
    assert len(history["events"]) == 2


def test_invalid_transition(client, auth_headers, requester):
    alice = auth_headers(requester)
    request_id = _create(client, alice)["request_id"]

    response = client.post(f"{BASE}/requests/{request_id}/reopen", headers=alice)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"] == {"current_status": "DRAFT", "operation": "reopen"}


def test_reject_reopen_and_edit(client, auth_headers, requester, reviewer):
    alice, bob = auth_headers(requester), auth_headers(reviewer)
    request_id = _create(client, alice)["request_id"]
    client.post(f"{BASE}/requests/{request_id}/submit", headers=alice)

    response = client.post(f"{BASE}/requests/{request_id}/reject", headers=bob)
    assert response.status_code == 400

    response = client.post(
        f"{BASE}/requests/{request_id}/reject", json={"reason": "insufficient budget"}, headers=bob
    )
    assert response.json()["rejection_reason"] == "insufficient budget"

    response = client.post(f"{BASE}/requests/{request_id}/reopen", headers=alice)
    assert response.json()["status"] == "DRAFT"

    response = client.patch(
        f"{BASE}/requests/{request_id}", json={"description": "Cheaper model"}, headers=alice
    )
    assert response.json()["description"] == "Cheaper model"

    response = client.post(
        f"{BASE}/requests/{request_id}/attachments", json={"attachment_id": "att-1"}, headers=alice
    )
    assert response.json()["attachment_ids"] == ["att-1"]
    response = client.delete(f"{BASE}/requests/{request_id}/attachments/att-1", headers=alice)
    assert response.json()["attachment_ids"] == []

    feed = client.get(f"{BASE}/notifications", headers=bob).json()
    assert [n["title"] for n in feed["items"]] == ["Request reopened: New laptop"]


def test_not_found_and_hidden(client, auth_headers, requester, outsider):
    response = client.get(f"{BASE}/requests/missing", headers=auth_headers(requester))
    assert response.status_code == 404
    assert response.json()["error"]["message_class"] == "GONE"

    request_id = _create(client, auth_headers(requester))["request_id"]
    response = client.get(f"{BASE}/requests/{request_id}", headers=auth_headers(outsider))
    assert response.status_code == 403


def test_schema_validation_error(client, auth_headers, requester):
    response = client.post(f"{BASE}/requests", json={"title": ""}, headers=auth_headers(requester))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_command_endpoint(client, auth_headers, requester, reviewer):
    alice = auth_headers(requester)
    request_id = _create(client, alice)["request_id"]

    ok = client.post(
        f"{BASE}/commands", json={"request_id": request_id, "command": "submit"}, headers=alice
    ).json()
    failed = client.post(
        f"{BASE}/commands", json={"request_id": request_id, "command": "submit"}, headers=alice
    ).json()

    assert ok["success"] is True
    assert ok["status"] == "SUBMITTED"
    assert failed["success"] is False
    assert failed["error_kind"] == "INVALID_TRANSITION"


def test_notification_read_flow(client, auth_headers, requester, reviewer):
    alice, bob = auth_headers(requester), auth_headers(reviewer)
    request_id = _create(client, alice)["request_id"]
    client.post(f"{BASE}/requests/{request_id}/submit", headers=alice)
    client.post(f"{BASE}/requests/{request_id}/reject", json={"reason": "No"}, headers=bob)

    notification_id = client.get(f"{BASE}/notifications", headers=alice).json()["items"][0]["notification_id"]

    response = client.post(f"{BASE}/notifications/{notification_id}/read", headers=bob)
    assert response.status_code == 404

    response = client.post(f"{BASE}/notifications/{notification_id}/read", headers=alice)
    assert response.json()["is_read"] is True
    assert client.get(f"{BASE}/notifications/unread-count", headers=alice).json() == {"unread_count": 0}

    response = client.post(f"{BASE}/notifications/read-all", headers=alice)
    assert response.json() == {"success": True, "marked_count": 0}


def test_pending_approvals_and_priority(client, auth_headers, requester, reviewer, admin):
    alice, bob, carol = auth_headers(requester), auth_headers(reviewer), auth_headers(admin)
    # Seen before the submit, so both are in the review pool
    client.get(f"{BASE}/requests/pending-approvals", headers=bob)
    client.get(f"{BASE}/requests/pending-approvals", headers=carol)
    request_id = _create(client, alice)["request_id"]
    client.post(f"{BASE}/requests/{request_id}/submit", headers=alice)

    pending = client.get(f"{BASE}/requests/pending-approvals", headers=bob).json()
    assert pending["total"] == 1
    assert pending["items"][0]["request_id"] == request_id
    assert client.get(f"{BASE}/requests/pending-approvals", headers=alice).json()["total"] == 0

    feed = client.get(f"{BASE}/notifications", headers=bob).json()
    assert [n["title"] for n in feed["items"]] == ["New Request: New laptop"]

    response = client.post(
        f"{BASE}/requests/{request_id}/priority", json={"priority": "URGENT"}, headers=bob
    )
    assert response.status_code == 200, response.text
    assert response.json()["priority"] == "URGENT"
    assert response.json()["status"] == "SUBMITTED"

    alice_feed = client.get(f"{BASE}/notifications", headers=alice).json()
    assert [n["title"] for n in alice_feed["items"]] == ["Request Priority Changed"]
    carol_titles = [n["title"] for n in client.get(f"{BASE}/notifications", headers=carol).json()["items"]]
    assert "Urgent Request: New laptop" in carol_titles

    response = client.post(
        f"{BASE}/requests/{request_id}/priority", json={"priority": "LOW"}, headers=alice
    )
    assert response.status_code == 403
