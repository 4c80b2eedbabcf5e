"""Authentication service - password hashing, registration and cookie sessions"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import quote
import hashlib
import logging
import secrets

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.db.models import Session, User, utcnow
from app.schemas import UserResponse

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class AuthResult:
    """Outcome of registration or login: a user, or a user-safe error."""
    user: Optional[User] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.user is not None


def hash_password(password: str) -> str:
    """Single-round SHA-256 hex digest, the format existing accounts were stored with."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash in constant time."""
    return secrets.compare_digest(hash_password(plain_password), password_hash)


def generate_session_token() -> str:
    """32 random bytes as 64 hex characters"""
    return secrets.token_hex(32)


def avatar_url(name: str) -> Optional[str]:
    if not settings.avatar_url_template:
        return None
    return settings.avatar_url_template.format(seed=quote(name, safe=""))


def to_safe_user(user: User) -> UserResponse:
    """Public view of an account, without the password hash"""
    return UserResponse.model_validate(user)


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """Get a user by ID"""
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get a user by email (case-insensitive)"""
    result = await db.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
) -> AuthResult:
    """Create a new account. Emails are compared and stored lowercased."""
    try:
        existing = await get_user_by_email(db, email)
        if existing:
            return AuthResult(error="Email already registered")

        user = User(
            email=email.strip().lower(),
            password_hash=hash_password(password),
            name=name,
            avatar=avatar_url(name),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except Exception:
        await db.rollback()
        logger.exception("Failed to register user %s", email)
        return AuthResult(error="Failed to create account")

    logger.info("Registered user %s", user.id)
    return AuthResult(user=user)


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
) -> AuthResult:
    """
    Authenticate a user by email and password.
    Unknown email and wrong password give the same message.
    """
    try:
        user = await get_user_by_email(db, email)
    except Exception:
        logger.exception("Authentication lookup failed")
        return AuthResult(error="Authentication failed")

    if not user or not verify_password(password, user.password_hash):
        return AuthResult(error=INVALID_CREDENTIALS)
    return AuthResult(user=user)


async def create_session(db: AsyncSession, user_id: str) -> Session:
    """Store a new login session that expires after the configured number of days."""
    session = Session(
        token=generate_session_token(),
        user_id=user_id,
        expires_at=utcnow() + timedelta(days=settings.session_duration_days),
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    logger.info("Created session for user %s", user_id)
    return session


async def get_session(db: AsyncSession, token: Optional[str]) -> Optional[Session]:
    """
    Look up a session by token, with its user loaded.
    An expired session is deleted and treated as logged out.
    """
    if not token:
        return None

    result = await db.execute(
        select(Session)
        .where(Session.token == token)
        .options(selectinload(Session.user))
    )
    session = result.scalar_one_or_none()
    if session is None:
        return None

    if session.expires_at < utcnow():
        await db.delete(session)
        await db.commit()
        logger.info("Removed expired session for user %s", session.user_id)
        return None

    return session


async def delete_session(db: AsyncSession, token: Optional[str]) -> None:
    """Delete the session with this token, if any (logout)."""
    if not token:
        return
    await db.execute(delete(Session).where(Session.token == token))
    await db.commit()
