"""API key issuance and verification. Only SHA-256 hashes are stored."""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import hashlib
import logging
import secrets

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import ApiKey, ApiKeyPermission, to_naive_utc, utcnow
from app.schemas import ApiKeySummary, ApiKeyVerification

logger = logging.getLogger(__name__)

KEY_PREFIX_LENGTH = 8
MASK_TAIL_LENGTH = 4


def generate_api_key(prefix: Optional[str] = None) -> str:
    """``pk_live_`` followed by 24 random bytes as 48 hex characters"""
    return f"{prefix or settings.api_key_prefix}{secrets.token_hex(24)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def mask_api_key(key: str) -> str:
    """Keep the first 8 and last 4 characters visible."""
    hidden = len(key) - KEY_PREFIX_LENGTH - MASK_TAIL_LENGTH
    if hidden <= 0:
        return key
    return key[:KEY_PREFIX_LENGTH] + "*" * hidden + key[-MASK_TAIL_LENGTH:]


def normalize_permissions(permissions: Optional[Iterable[str]]) -> List[str]:
    """Validate permission tokens, dropping duplicates but keeping order."""
    if permissions is None:
        permissions = settings.api_key_default_permissions

    allowed = {p.value for p in ApiKeyPermission}
    normalized: List[str] = []
    for permission in permissions:
        value = permission.value if isinstance(permission, ApiKeyPermission) else str(permission)
        if value not in allowed:
            raise ValueError(f"Unknown permission: {value}")
        if value not in normalized:
            normalized.append(value)
    return normalized


async def get_user_api_keys(db: AsyncSession, user_id: str) -> List[ApiKeySummary]:
    """All of a user's keys, newest first. Never includes key material."""
    result = await db.execute(
        select(ApiKey)
        .where(ApiKey.user_id == user_id)
        .order_by(ApiKey.created_at.desc())
    )
    return [ApiKeySummary.model_validate(key) for key in result.scalars().all()]


async def create_api_key(
    db: AsyncSession,
    user_id: str,
    name: str,
    permissions: Optional[Iterable[str]] = None,
    expires_at: Optional[datetime] = None,
) -> Tuple[ApiKey, str]:
    """
    Issue a new key. Returns the stored row and the plaintext key;
    the plaintext cannot be recovered afterwards.
    """
    plain_key = generate_api_key()
    api_key = ApiKey(
        user_id=user_id,
        name=name,
        key_hash=hash_api_key(plain_key),
        key_prefix=plain_key[:KEY_PREFIX_LENGTH],
        permissions=normalize_permissions(permissions),
        expires_at=to_naive_utc(expires_at),
        request_count=0,
    )
    db.add(api_key)
    await db.commit()
    await db.refresh(api_key)
    logger.info("Created API key %s for user %s", api_key.id, user_id)
    return api_key, plain_key


async def delete_api_key(db: AsyncSession, key_id: str, user_id: str) -> bool:
    result = await db.execute(
        select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == user_id)
    )
    api_key = result.scalar_one_or_none()
    if api_key is None:
        return False

    await db.delete(api_key)
    await db.commit()
    logger.info("Deleted API key %s", key_id)
    return True


async def verify_api_key(db: AsyncSession, plain_key: str) -> ApiKeyVerification:
    """
    Check a presented key. Unknown and expired keys are invalid.
    Every successful check counts as a use: request_count goes up by one
    and last_used_at moves to now.
    """
    if not plain_key:
        return ApiKeyVerification(valid=False)

    result = await db.execute(
        select(ApiKey).where(ApiKey.key_hash == hash_api_key(plain_key))
    )
    api_key = result.scalar_one_or_none()
    if api_key is None:
        logger.warning("Rejected unknown API key with prefix %s", plain_key[:KEY_PREFIX_LENGTH])
        return ApiKeyVerification(valid=False)

    now = utcnow()
    if api_key.expires_at and api_key.expires_at < now:
        logger.warning("Rejected expired API key %s", api_key.id)
        return ApiKeyVerification(valid=False)

    await db.execute(
        update(ApiKey)
        .where(ApiKey.id == api_key.id)
        .values(request_count=ApiKey.request_count + 1, last_used_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    return ApiKeyVerification(
        valid=True,
        user_id=api_key.user_id,
        key_id=api_key.id,
        permissions=list(api_key.permissions or []),
    )
