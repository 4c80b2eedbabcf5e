"""
Tests for accounts, sessions and the login/signup/logout form actions
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.config import settings
from app.db import Session, async_session_maker, utcnow
from app.services import (
    authenticate_user, create_session, delete_session, get_session,
    get_user_by_email, hash_password, register_user, verify_password,
)
from app.services.auth_service import INVALID_CREDENTIALS, generate_session_token


# ============ Passwords & tokens ============

def test_password_hash_is_sha256_hex():
    assert hash_password("password123") == (
        "ef92b778bafe771e89245b89ecbc08a44a4e166c06659911881f383d4473e94f"
    )
    assert verify_password("password123", hash_password("password123"))
    assert not verify_password("password124", hash_password("password123"))


def test_session_token_is_64_hex_chars():
    token = generate_session_token()
    assert len(token) == 64
    int(token, 16)
    assert token != generate_session_token()


# ============ Registration & authentication ============

@pytest.mark.asyncio
async def test_register_lowercases_email_and_sets_avatar(db_session):
    result = await register_user(db_session, "  Carol@Example.COM ", "longpassword", "Carol King")
    assert result.success
    assert result.user.email == "carol@example.com"
    assert result.user.password_hash == hash_password("longpassword")
    assert result.user.avatar.endswith("seed=Carol%20King")

    found = await get_user_by_email(db_session, "CAROL@example.com")
    assert found is not None and found.id == result.user.id


@pytest.mark.asyncio
async def test_register_duplicate_email(db_session, user):
    result = await register_user(db_session, "ALICE@example.com", "whatever123", "Other Alice")
    assert not result.success
    assert result.error == "Email already registered"


@pytest.mark.asyncio
async def test_authenticate_uses_one_message_for_both_failures(db_session, user):
    unknown = await authenticate_user(db_session, "nobody@example.com", "correct-horse")
    wrong = await authenticate_user(db_session, "alice@example.com", "wrong-horse")
    assert unknown.error == wrong.error == INVALID_CREDENTIALS

    ok = await authenticate_user(db_session, "Alice@Example.com", "correct-horse")
    assert ok.success and ok.user.id == user.id


# ============ Sessions ============

@pytest.mark.asyncio
async def test_session_lifecycle(db_session, user):
    session = await create_session(db_session, user.id)
    expected = utcnow() + timedelta(days=settings.session_duration_days)
    assert abs((session.expires_at - expected).total_seconds()) < 5

    found = await get_session(db_session, session.token)
    assert found is not None
    assert found.user.email == "alice@example.com"

    await delete_session(db_session, session.token)
    assert await get_session(db_session, session.token) is None


@pytest.mark.asyncio
async def test_expired_session_is_removed(db_session, user):
    session = await create_session(db_session, user.id)
    session.expires_at = utcnow() - timedelta(seconds=1)
    await db_session.commit()

    assert await get_session(db_session, session.token) is None

    async with async_session_maker() as fresh:
        result = await fresh.execute(select(Session).where(Session.token == session.token))
        assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_get_session_without_token(db_session):
    assert await get_session(db_session, None) is None
    assert await get_session(db_session, "") is None


# ============ Form actions ============

@pytest.mark.asyncio
async def test_signup_sets_cookie_and_redirects(client: AsyncClient):
    response = await client.post(
        "/api/auth/signup",
        data={
            "firstName": "Dana",
            "lastName": "Scully",
            "email": "Dana@FBI.gov",
            "password": "trustno1!",
        },
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == settings.dashboard_path

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{settings.session_cookie_name}=")
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Path=/" in cookie

    token = cookie.split(";", 1)[0].split("=", 1)[1]
    client.cookies.set(settings.session_cookie_name, token)
    me = await client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "dana@fbi.gov"
    assert me.json()["name"] == "Dana Scully"
    assert "password_hash" not in me.json()


@pytest.mark.asyncio
async def test_signup_requires_all_fields(client: AsyncClient):
    response = await client.post(
        "/api/auth/signup",
        data={"firstName": "Dana", "email": "dana@fbi.gov", "password": "trustno1!"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "All fields are required"}


@pytest.mark.asyncio
async def test_signup_rejects_short_password(client: AsyncClient):
    response = await client.post(
        "/api/auth/signup",
        data={"firstName": "A", "lastName": "B", "email": "ab@example.com", "password": "short"},
    )
    assert response.status_code == 400
    assert "at least 8" in response.json()["error"]


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: AsyncClient, user):
    response = await client.post(
        "/api/auth/signup",
        data={"firstName": "A", "lastName": "B", "email": "alice@example.com", "password": "long-enough"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Email already registered"


@pytest.mark.asyncio
async def test_login_requires_both_fields(client: AsyncClient):
    response = await client.post("/api/auth/login", data={"email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Email and password are required"


@pytest.mark.asyncio
async def test_login_failure_is_generic(client: AsyncClient, user):
    response = await client.post(
        "/api/auth/login",
        data={"email": "alice@example.com", "password": "nope-nope"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_logout_deletes_session(client: AsyncClient, user, login_as):
    token = await login_as(client, "alice@example.com", "correct-horse")

    response = await client.post("/api/auth/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == settings.login_path

    async with async_session_maker() as fresh:
        assert await get_session(fresh, token) is None


@pytest.mark.asyncio
async def test_me_requires_session(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
