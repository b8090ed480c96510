"""Tests for bearer token validation."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from reqflow.domain.errors import AuthenticationError
from reqflow.utils.jwt import JWTValidator

SECRET = "unit-secret"


@pytest.fixture
def validator() -> JWTValidator:
    return JWTValidator(secret=SECRET, algorithm="HS256", verify_signature=True)


def test_actor_context_from_claims(validator):
    token = jwt.encode(
        {"sub": "u-bob", "name": "Bob", "email": "bob@acme.com", "roles": ["reviewer"]},
        SECRET,
        algorithm="HS256",
    )

    actor = validator.get_actor_context(f"Bearer {token}")

    assert actor.user_id == "u-bob"
    assert actor.display_name == "Bob"
    assert actor.roles == ["REVIEWER"]
    assert actor.is_reviewer and not actor.is_admin


def test_expired_token(validator):
    token = jwt.encode(
        {"sub": "u-bob", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError, match="expired"):
        validator.validate_token(token)


def test_token_without_subject(validator):
    token = jwt.encode({"name": "Nobody"}, SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        validator.get_actor_context(token)


def test_unverified_mode_skips_signature():
    token = jwt.encode({"sub": "u-dev", "name": "Dev"}, "any-secret", algorithm="HS256")
    actor = JWTValidator(secret=SECRET, verify_signature=False).get_actor_context(token)
    assert actor.user_id == "u-dev"


def test_username_that_is_not_an_address_is_not_used_as_email(validator):
    token = jwt.encode(
        {"sub": "u-1", "name": "Bob", "preferred_username": "bob"},
        SECRET,
        algorithm="HS256",
    )

    actor = validator.get_actor_context(token)

    assert actor.user_id == "u-1"
    assert actor.email is None
    assert actor.display_name == "Bob"


def test_username_that_is_an_address_is_used_as_email(validator):
    token = jwt.encode(
        {"sub": "u-1", "preferred_username": "bob@acme.com"},
        SECRET,
        algorithm="HS256",
    )

    actor = validator.get_actor_context(token)

    assert actor.email == "bob@acme.com"
    assert actor.display_name == "bob@acme.com"
