"""Pytest configuration and fixtures."""

import os
from typing import Callable, Generator, List, Optional

import jwt
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("DEBUG", "true")

from reqflow.api.deps import get_store_dep  # noqa: E402
from reqflow.domain.models import ActorContext  # noqa: E402
from reqflow.engine.engine import LifecycleEngine  # noqa: E402
from reqflow.main import app  # noqa: E402
from reqflow.repositories.memory_store import InMemoryRequestStore  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET"]


@pytest.fixture
def store() -> InMemoryRequestStore:
    """Fresh in-memory store per test."""
    return InMemoryRequestStore()


@pytest.fixture
def engine(store: InMemoryRequestStore) -> LifecycleEngine:
    return LifecycleEngine(store=store, allow_direct_review=True, reject_reason_required=True)


@pytest.fixture
def requester() -> ActorContext:
    return ActorContext(user_id="u-alice", display_name="Alice", email="alice@acme.com")


@pytest.fixture
def reviewer() -> ActorContext:
    return ActorContext(
        user_id="u-bob", display_name="Bob", email="bob@acme.com", roles=["REVIEWER"]
    )


@pytest.fixture
def second_reviewer() -> ActorContext:
    return ActorContext(
        user_id="u-dana", display_name="Dana", email="dana@acme.com", roles=["REVIEWER"]
    )


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(
        user_id="u-carol", display_name="Carol", email="carol@acme.com", roles=["ADMIN"]
    )


@pytest.fixture
def outsider() -> ActorContext:
    return ActorContext(user_id="u-eve", display_name="Eve", email="eve@acme.com")


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Mint HS256 bearer tokens signed with the test secret."""
    def _make(
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        roles: Optional[List[str]] = None
    ) -> str:
        claims = {"sub": user_id, "name": name or user_id, "roles": roles or []}
        if email:
            claims["email"] = email
        return jwt.encode(claims, TEST_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[[ActorContext], dict]:
    """Authorization headers for an actor."""
    def _headers(actor: ActorContext) -> dict:
        token = make_token(actor.user_id, actor.display_name, actor.email, actor.roles)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def client(store: InMemoryRequestStore) -> Generator[TestClient, None, None]:
    """Test client wired to the per-test store."""
    app.dependency_overrides[get_store_dep] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
