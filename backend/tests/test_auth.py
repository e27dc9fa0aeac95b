"""
Tests for authentication: registration, login and caller tokens.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import TEST_PASSWORD, TEST_PASSWORD_HASH
from ticketbooth.core.exceptions import AuthenticationError, ConflictError, ForbiddenError
from ticketbooth.core.security import (
    Caller,
    Role,
    create_access_token,
    create_caller_token,
    decode_caller,
    ensure_role,
    hash_password,
    verify_password,
)
from ticketbooth.models import User
from ticketbooth.schemas.user import UserCreate
from ticketbooth.services import auth_service


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns user data."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "New User",
        "email": "new@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["role"] == "user"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_admin_email(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(auth_service.settings, "ADMIN_EMAILS", ["Boss@Example.com"])

    response = await client.post("/api/v1/auth/register", json={
        "name": "Boss",
        "email": "boss@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, users):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "Copycat",
        "email": users[0].email,
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "User already exists"


@pytest.mark.asyncio
async def test_register_loses_race_for_email(session_factory, monkeypatch):
    """A sign-up that lands between the lookup and the insert still gets 409."""
    async with session_factory() as db:
        def hash_after_competing_signup(password):
            db.add(User(name="Early", email="race@example.com", hashed_password=TEST_PASSWORD_HASH))
            return TEST_PASSWORD_HASH

        monkeypatch.setattr(auth_service, "hash_password", hash_after_competing_signup)
        with pytest.raises(ConflictError) as exc_info:
            await auth_service.register_user(
                db, UserCreate(name="Late", email="race@example.com", password="securepassword123")
            )

    assert exc_info.value.message == "User already exists"
    async with session_factory() as db:
        count = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars is a validation error."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "Weak",
        "email": "weak@example.com",
        "password": "short",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, users):
    """Valid credentials return a token that resolves to the caller."""
    response = await client.post("/api/v1/auth/login", json={
        "email": users[0].email,
        "password": TEST_PASSWORD,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    caller = decode_caller(data["access_token"])
    assert caller.id == users[0].id
    assert caller.role == Role.USER


@pytest.mark.asyncio
async def test_login_admin_token_carries_role(client: AsyncClient, admin_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": admin_user.email,
        "password": TEST_PASSWORD,
    })
    assert decode_caller(response.json()["access_token"]).role == Role.ADMIN


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, users):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": users[0].email,
        "password": "wrongpassword",
    })
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "whatever123",
    })
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("correct horse", "")


def test_caller_token_round_trip():
    token = create_caller_token(42, Role.ADMIN, "admin@example.com")
    assert decode_caller(token) == Caller(id=42, role=Role.ADMIN, email="admin@example.com")


def test_expired_token():
    token = create_access_token({"sub": "1", "role": "user"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(AuthenticationError) as exc_info:
        decode_caller(token)
    assert exc_info.value.message == "Token expired"


def test_token_without_subject():
    token = create_access_token({"role": "user"})
    with pytest.raises(AuthenticationError):
        decode_caller(token)


def test_ensure_role():
    ensure_role(Caller(id=1, role=Role.ADMIN), Role.ADMIN)
    with pytest.raises(ForbiddenError):
        ensure_role(Caller(id=1, role=Role.USER), Role.ADMIN)
    with pytest.raises(ForbiddenError):
        ensure_role(Caller(id=1, role=Role.ADMIN), Role.USER)
