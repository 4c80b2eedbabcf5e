"""
Tests for the application wiring: health, page guards and page data
"""

import pytest
from httpx import AsyncClient

from app.config import settings
from app.schemas import AgentCreate
from app.services import create_agent, create_funding_event, create_project


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["version"] == settings.app_version


@pytest.mark.asyncio
async def test_root_redirects_to_dashboard(client: AsyncClient):
    response = await client.get("/", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == settings.dashboard_path


@pytest.mark.asyncio
async def test_pages_redirect_anonymous_visitors(client: AsyncClient):
    for path in [settings.dashboard_path, f"{settings.dashboard_path}/projects/anything"]:
        response = await client.get(path, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == settings.login_path


@pytest.mark.asyncio
async def test_stale_cookie_is_cleared(client: AsyncClient):
    client.cookies.set(settings.session_cookie_name, "0" * 64)
    response = await client.get(settings.dashboard_path, follow_redirects=False)
    assert response.status_code == 303
    cleared = response.headers["set-cookie"]
    assert cleared.startswith(f"{settings.session_cookie_name}=")
    assert "Max-Age=0" in cleared


@pytest.mark.asyncio
async def test_login_page_state(client: AsyncClient, user, login_as):
    anonymous = await client.get(settings.login_path)
    assert anonymous.json() == {"authenticated": False, "redirect": None}

    await login_as(client, "alice@example.com", "correct-horse")
    logged_in = await client.get(settings.login_path)
    assert logged_in.json() == {"authenticated": True, "redirect": settings.dashboard_path}


@pytest.mark.asyncio
async def test_dashboard_page(auth_client: AsyncClient, db_session, user):
    project = await create_project(db_session, user.id, "Support")
    await create_funding_event(db_session, project.id, user.id, 10_000_000, tx_hash="0x1")

    response = await auth_client.get(settings.dashboard_path)
    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_balance"] == 10_000_000
    assert data["projects"][0]["name"] == "Support"
    assert data["activity"][0]["type"] == "funding"
    assert len(data["spend_chart"]) == settings.default_chart_days

    account = await auth_client.get(f"{settings.dashboard_path}/account")
    assert account.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_project_and_agent_pages(auth_client: AsyncClient, db_session, user, other_user):
    project = await create_project(db_session, user.id, "Support")
    agent = await create_agent(
        db_session, project.id, user.id,
        AgentCreate(name="Classifier", daily_limit=1_000_000, per_tx_limit=100_000),
    )
    other = await create_project(db_session, other_user.id, "Elsewhere")

    page = await auth_client.get(f"{settings.dashboard_path}/projects/{project.id}")
    assert page.status_code == 200
    assert page.json()["project"]["vault"]["balance"] == 0
    assert page.json()["project"]["agents"][0]["name"] == "Classifier"
    assert page.json()["activity"] == []

    agent_page = await auth_client.get(
        f"{settings.dashboard_path}/projects/{project.id}/agents/{agent.id}"
    )
    assert agent_page.status_code == 200
    assert agent_page.json()["project"] == {"id": project.id, "name": "Support"}
    assert len(agent_page.json()["performance"]) == settings.default_performance_days

    wrong_project = await auth_client.get(
        f"{settings.dashboard_path}/projects/{other.id}/agents/{agent.id}"
    )
    assert wrong_project.status_code == 404

    foreign = await auth_client.get(f"{settings.dashboard_path}/projects/{other.id}")
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_stale_cookie_is_cleared_on_json_and_login(client: AsyncClient):
    fresh = await client.get("/api/auth/me")
    assert fresh.status_code == 401
    assert "set-cookie" not in fresh.headers

    client.cookies.set(settings.session_cookie_name, "0" * 64)

    me = await client.get("/api/auth/me")
    assert me.status_code == 401
    assert me.headers["set-cookie"].startswith(f"{settings.session_cookie_name}=")
    assert "Max-Age=0" in me.headers["set-cookie"]

    login_page = await client.get(settings.login_path)
    assert login_page.json() == {"authenticated": False, "redirect": None}
    assert "Max-Age=0" in login_page.headers["set-cookie"]
