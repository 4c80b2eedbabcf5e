"""
Tests for API key issuance, masking and verification
"""

import re
from datetime import timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.db import ApiKey, async_session_maker, utcnow
from app.services import create_api_key, delete_api_key, get_user_api_keys, mask_api_key, verify_api_key
from app.services.api_key_service import generate_api_key, hash_api_key, normalize_permissions


def test_generated_key_format():
    key = generate_api_key()
    assert re.fullmatch(r"pk_live_[0-9a-f]{48}", key)
    assert generate_api_key() != key


def test_mask_keeps_prefix_and_tail():
    key = "pk_live_" + "a" * 44 + "wxyz"
    masked = mask_api_key(key)
    assert masked.startswith("pk_live_")
    assert masked.endswith("wxyz")
    assert len(masked) == len(key)
    assert set(masked[8:-4]) == {"*"}
    assert mask_api_key("short") == "short"


def test_normalize_permissions():
    assert normalize_permissions(None) == ["read", "write"]
    assert normalize_permissions(["read", "read", "execute"]) == ["read", "execute"]
    with pytest.raises(ValueError):
        normalize_permissions(["admin"])


@pytest.mark.asyncio
async def test_create_stores_only_hash(db_session, user):
    api_key, plain = await create_api_key(db_session, user.id, "CI")

    assert api_key.key_hash == hash_api_key(plain)
    assert api_key.key_prefix == plain[:8] == "pk_live_"
    assert plain not in (api_key.key_hash, api_key.key_prefix)
    assert api_key.permissions == ["read", "write"]
    assert api_key.request_count == 0

    listed = await get_user_api_keys(db_session, user.id)
    assert [k.name for k in listed] == ["CI"]
    assert not hasattr(listed[0], "key_hash")


@pytest.mark.asyncio
async def test_verify_counts_each_use(db_session, user):
    api_key, plain = await create_api_key(db_session, user.id, "CI", permissions=["read"])

    for _ in range(3):
        result = await verify_api_key(db_session, plain)
        assert result.valid
        assert result.user_id == user.id
        assert result.key_id == api_key.id
        assert result.permissions == ["read"]

    async with async_session_maker() as fresh:
        stored = (await fresh.execute(select(ApiKey).where(ApiKey.id == api_key.id))).scalar_one()
        assert stored.request_count == 3
        assert stored.last_used_at is not None


@pytest.mark.asyncio
async def test_verify_rejects_unknown_and_expired(db_session, user):
    _, expired = await create_api_key(
        db_session, user.id, "Old", expires_at=utcnow() - timedelta(minutes=1)
    )

    assert not (await verify_api_key(db_session, expired)).valid
    assert not (await verify_api_key(db_session, "pk_live_" + "0" * 48)).valid
    assert not (await verify_api_key(db_session, "")).valid


@pytest.mark.asyncio
async def test_delete_is_owner_only(db_session, user, other_user):
    api_key, plain = await create_api_key(db_session, user.id, "Mine")

    assert await delete_api_key(db_session, api_key.id, other_user.id) is False
    assert await delete_api_key(db_session, api_key.id, user.id) is True
    assert not (await verify_api_key(db_session, plain)).valid


# ============ HTTP ============

@pytest.mark.asyncio
async def test_issue_list_and_revoke(auth_client: AsyncClient):
    created = await auth_client.post("/api/keys", json={"name": "Deploy bot", "permissions": ["read", "execute"]})
    assert created.status_code == 201
    body = created.json()
    assert re.fullmatch(r"pk_live_[0-9a-f]{48}", body["key"])
    assert body["masked_key"] == mask_api_key(body["key"])
    assert body["permissions"] == ["read", "execute"]

    listing = await auth_client.get("/api/keys")
    assert listing.status_code == 200
    assert [k["name"] for k in listing.json()] == ["Deploy bot"]
    assert "key" not in listing.json()[0]

    revoked = await auth_client.delete(f"/api/keys/{body['id']}")
    assert revoked.status_code == 204
    assert (await auth_client.delete(f"/api/keys/{body['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_issue_rejects_unknown_permission(auth_client: AsyncClient):
    response = await auth_client.post("/api/keys", json={"name": "Bad", "permissions": ["root"]})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_whoami_with_api_key(client: AsyncClient, db_session, user):
    _, plain = await create_api_key(db_session, user.id, "CI", permissions=["read"])
    _, write_only = await create_api_key(db_session, user.id, "Writer", permissions=["write"])

    by_header = await client.get("/api/v1/whoami", headers={"X-API-Key": plain})
    assert by_header.status_code == 200
    assert by_header.json()["user_id"] == user.id

    by_bearer = await client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {plain}"})
    assert by_bearer.status_code == 200

    assert (await client.get("/api/v1/whoami")).status_code == 401
    assert (await client.get("/api/v1/whoami", headers={"X-API-Key": "pk_live_nope"})).status_code == 401
    assert (await client.get("/api/v1/whoami", headers={"X-API-Key": write_only})).status_code == 403

    async with async_session_maker() as fresh:
        stored = (await fresh.execute(select(ApiKey).where(ApiKey.name == "CI"))).scalar_one()
        assert stored.request_count == 2


@pytest.mark.asyncio
async def test_issue_with_offset_expiry_is_stored_as_utc(auth_client: AsyncClient):
    plus_five = timezone(timedelta(hours=5))
    past = (utcnow() - timedelta(hours=1)).replace(tzinfo=timezone.utc).astimezone(plus_five)

    created = await auth_client.post("/api/keys", json={"name": "Expired", "expires_at": past.isoformat()})
    assert created.status_code == 201

    async with async_session_maker() as fresh:
        stored = (await fresh.execute(select(ApiKey).where(ApiKey.name == "Expired"))).scalar_one()
        assert stored.expires_at.tzinfo is None
        assert stored.expires_at < utcnow()
        assert not (await verify_api_key(fresh, created.json()["key"])).valid

    response = await auth_client.get("/api/v1/whoami", headers={"X-API-Key": created.json()["key"]})
    assert response.status_code == 401
