"""Authentication endpoints - login/signup/logout form actions and session guards"""

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db, User
from app.schemas import ActionState, UserResponse
from app.services import (
    authenticate_user, create_session, delete_session, get_session, register_user,
    to_safe_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

MIN_PASSWORD_LENGTH = 8


class LoginRequired(Exception):
    """Raised by page guards; answered with a redirect to the login page."""


def set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_duration_days * 24 * 60 * 60,
        expires=expires_at.strftime("%a, %d %b %Y %H:%M:%S GMT"),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.session_cookie_name, path="/")


def cleared_cookie_header() -> dict:
    """Set-Cookie header that expires the session cookie, for responses built elsewhere."""
    response = Response()
    clear_session_cookie(response)
    return {"set-cookie": response.headers["set-cookie"]}


def has_stale_cookie(request: Request, user: Optional[User]) -> bool:
    """A session cookie was sent but resolved to no live session."""
    return user is None and bool(request.cookies.get(settings.session_cookie_name))


def action_error(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    """Form action failure in the shape the dashboard forms expect."""
    return JSONResponse(
        status_code=status_code,
        content=ActionState(error=message).model_dump(exclude_none=True),
    )


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """The user behind the session cookie, or None (expired sessions are removed)."""
    session = await get_session(db, request.cookies.get(settings.session_cookie_name))
    return session.user if session else None


async def get_current_user(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """Dependency for JSON endpoints: 401 without a valid session. A stale cookie is cleared."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=cleared_cookie_header() if has_stale_cookie(request, user) else None,
        )
    return user


async def require_auth(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Dependency for pages and form actions: redirect to login without a valid session."""
    if user is None:
        raise LoginRequired()
    return user


async def _start_session(db: AsyncSession, user: User) -> RedirectResponse:
    session = await create_session(db, user.id)
    response = RedirectResponse(url=settings.dashboard_path, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session.token, session.expires_at)
    return response


@router.post("/signup")
async def signup(
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """Create an account, log it in and redirect to the dashboard."""
    if not first_name or not last_name or not email or not password:
        return action_error("All fields are required")

    if len(password) < MIN_PASSWORD_LENGTH:
        return action_error(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    result = await register_user(db, email, password, f"{first_name} {last_name}")
    if not result.success:
        return action_error(result.error)

    return await _start_session(db, result.user)


@router.post("/login")
async def login(
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """Check credentials, start a session and redirect to the dashboard."""
    if not email or not password:
        return action_error("Email and password are required")

    result = await authenticate_user(db, email, password)
    if not result.success:
        return action_error(result.error, status.HTTP_401_UNAUTHORIZED)

    return await _start_session(db, result.user)


@router.post("/logout")
async def logout(request: Request, db: AsyncSession = Depends(get_db)):
    """End the current session and redirect to the login page."""
    await delete_session(db, request.cookies.get(settings.session_cookie_name))
    response = RedirectResponse(url=settings.login_path, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return to_safe_user(current_user)
