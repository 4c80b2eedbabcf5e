"""
Shared fixtures for the Pilot dashboard tests
"""

import os

# Must be set before app.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.config import settings
from app.main import app
from app.db import init_db, drop_db, async_session_maker
from app.db.database import engine
from app.services import register_user


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create a fresh database for each test"""
    await init_db()
    yield
    await drop_db()
    # Each test runs on its own event loop; don't carry the connection over
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session():
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    """Create an async test client"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def user(db_session):
    result = await register_user(db_session, "alice@example.com", "correct-horse", "Alice Smith")
    assert result.success
    return result.user


@pytest_asyncio.fixture
async def other_user(db_session):
    result = await register_user(db_session, "bob@example.com", "battery-staple", "Bob Jones")
    assert result.success
    return result.user


def session_cookie_from(response) -> str:
    """Value of the session cookie set by a form action response."""
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name == settings.session_cookie_name:
            return rest.split(";", 1)[0]
    raise AssertionError("session cookie not set")


async def login(client: AsyncClient, email: str, password: str) -> str:
    response = await client.post(
        "/api/auth/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )
    assert response.status_code == 303
    token = session_cookie_from(response)
    client.cookies.set(settings.session_cookie_name, token)
    return token


@pytest.fixture
def login_as():
    """Log a client in through the form action; returns the session token."""
    return login


@pytest_asyncio.fixture
async def auth_client(client: AsyncClient, user):
    """Client logged in as ``user``"""
    await login(client, "alice@example.com", "correct-horse")
    return client
