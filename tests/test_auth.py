"""Tests for the auth module."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth import (
    AuthManager,
    AuthValidationError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidTokenError,
    UnauthenticatedError,
    UserNotFoundError,
    extract_token,
)
from database import MemoryStore

SECRET = "auth-test-secret"


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager(store):
    return AuthManager(store, SECRET, rounds=4)


@pytest.mark.asyncio
async def test_register_stores_only_a_hash(manager, store):
    user_id = await manager.register("alice", "Alice@Example.com", "s3cret")

    user = await store.find_by_id('users', user_id)
    assert user['email'] == "alice@example.com"
    assert user['username'] == "alice"
    assert user['password_hash'] != "s3cret"
    assert user['password_hash'].startswith("$2")


@pytest.mark.asyncio
async def test_register_rejects_duplicate_email(manager):
    await manager.register("alice", "alice@example.com", "pw1")

    with pytest.raises(DuplicateEmailError):
        await manager.register("other", "ALICE@example.com", "pw2")


@pytest.mark.asyncio
async def test_register_requires_fields(manager):
    with pytest.raises(AuthValidationError):
        await manager.register("", "bob@example.com", "pw")
    with pytest.raises(AuthValidationError):
        await manager.register("bob", "not-an-email", "pw")
    with pytest.raises(AuthValidationError):
        await manager.register("bob", "bob@example.com", "x" * 73)


@pytest.mark.asyncio
async def test_authenticate_issues_verifiable_token(manager):
    user_id = await manager.register("alice", "alice@example.com", "s3cret")

    token = await manager.authenticate("alice@example.com", "s3cret")

    assert manager.verify(token) == {'user_id': user_id}
    claims = jwt.get_unverified_claims(token)
    assert claims['exp'] - claims['iat'] == 3600


@pytest.mark.asyncio
async def test_authenticate_failures(manager):
    await manager.register("alice", "alice@example.com", "s3cret")

    with pytest.raises(InvalidCredentialsError):
        await manager.authenticate("alice@example.com", "wrong")
    with pytest.raises(UserNotFoundError):
        await manager.authenticate("nobody@example.com", "s3cret")
    with pytest.raises(AuthValidationError):
        await manager.authenticate("alice@example.com", "")


def test_verify_rejects_missing_token(manager):
    with pytest.raises(UnauthenticatedError):
        manager.verify(None)


def test_verify_rejects_tampered_token(manager):
    token = manager.issue_token("user-1")
    forged = manager.issue_token("user-2")
    header, _, signature = token.split('.')
    tampered = '.'.join([header, forged.split('.')[1], signature])

    with pytest.raises(InvalidTokenError):
        manager.verify(tampered)


def test_verify_rejects_foreign_secret(manager):
    token = AuthManager(MemoryStore(), "other-secret").issue_token("user-1")

    with pytest.raises(InvalidTokenError):
        manager.verify(token)


def test_verify_rejects_expired_token(manager):
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = manager.issue_token("user-1", now=issued)

    with pytest.raises(InvalidTokenError):
        manager.verify(token)


def test_extract_token():
    assert extract_token("Bearer abc.def.ghi") == "abc.def.ghi"
    assert extract_token("bearer abc") == "abc"
    assert extract_token("abc.def.ghi") == "abc.def.ghi"
    assert extract_token("  ") is None
    assert extract_token(None) is None
