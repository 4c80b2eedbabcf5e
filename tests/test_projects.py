"""
Tests for projects, vaults and the ownership gate
"""

import re

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.config import settings
from app.db import Agent, AgentStatus, Event, Vault, async_session_maker
from app.schemas import AgentCreate, AgentUpdate, ProjectUpdate
from app.services import (
    create_agent, create_project, delete_project, get_agent, get_project,
    get_user_project_stats, get_user_projects, update_agent, update_project,
)
from app.services.access import owned_agent, owned_project
from app.services.event_service import build_spend_event


def _agent(name: str, daily: int = 100_000_000) -> AgentCreate:
    return AgentCreate(name=name, provider="openai", model="gpt-4o", daily_limit=daily, per_tx_limit=10_000_000)


# ============ Service layer ============

@pytest.mark.asyncio
async def test_create_project_creates_empty_vault(db_session, user):
    project = await create_project(db_session, user.id, "Support", "Tickets")

    assert project.vault is not None
    assert project.vault.balance == 0
    assert re.fullmatch(r"vault_[0-9a-f]{32}", project.vault.address)

    count = await db_session.execute(select(func.count()).select_from(Vault))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_get_project_loads_agents_with_budget(db_session, user):
    project = await create_project(db_session, user.id, "Support")
    await create_agent(db_session, project.id, user.id, _agent("Classifier"))

    async with async_session_maker() as fresh:
        loaded = await get_project(fresh, project.id, user.id)
        assert loaded.vault.id == project.vault.id
        assert [a.name for a in loaded.agents] == ["Classifier"]
        assert loaded.agents[0].budget_rule.daily_limit == 100_000_000
        assert loaded.agents[0].events == []


@pytest.mark.asyncio
async def test_projects_are_isolated_between_users(db_session, user, other_user):
    project = await create_project(db_session, user.id, "Private")
    agent = await create_agent(db_session, project.id, user.id, _agent("Secret"))

    assert await owned_project(db_session, project.id, other_user.id) is None
    assert await owned_agent(db_session, agent.id, other_user.id) is None
    assert await get_agent(db_session, agent.id, other_user.id) is None
    assert await get_project(db_session, project.id, other_user.id) is None
    assert await get_user_projects(db_session, other_user.id) == []
    assert await create_agent(db_session, project.id, other_user.id, _agent("Intruder")) is None
    assert await update_agent(db_session, agent.id, other_user.id, AgentUpdate(name="Hijacked")) is None
    assert await update_project(db_session, project.id, other_user.id, ProjectUpdate(name="Hijacked")) is None
    assert await delete_project(db_session, project.id, other_user.id) is False

    assert await get_project(db_session, project.id, user.id) is not None


@pytest.mark.asyncio
async def test_missing_and_foreign_projects_look_the_same(db_session, user, other_user):
    project = await create_project(db_session, user.id, "Mine")
    assert await owned_project(db_session, "does-not-exist", user.id) is None
    assert await owned_project(db_session, project.id, other_user.id) is None


@pytest.mark.asyncio
async def test_project_summaries_and_stats(db_session, user):
    first = await create_project(db_session, user.id, "First")
    second = await create_project(db_session, user.id, "Second")
    agent = await create_agent(db_session, first.id, user.id, _agent("Worker"))
    await create_agent(db_session, first.id, user.id, _agent("Idle"))
    await update_agent(db_session, agent.id, user.id, AgentUpdate(status=AgentStatus.ACTIVE))

    agent.budget_rule.monthly_spent = 7_000_000
    first.vault.balance = 50_000_000
    db_session.add(build_spend_event(first.vault.id, agent, amount=1_500_000, tokens=10))
    db_session.add(build_spend_event(first.vault.id, agent, amount=500_000, tokens=10))
    await db_session.commit()

    async with async_session_maker() as fresh:
        summaries = await get_user_projects(fresh, user.id)
        stats = await get_user_project_stats(fresh, user.id)

    assert {s.name for s in summaries} == {"First", "Second"}
    by_name = {s.name: s for s in summaries}
    assert by_name["First"].vault_balance == 50_000_000
    assert by_name["First"].agent_count == 2
    assert by_name["First"].active_agent_count == 1
    assert by_name["First"].total_spent == 2_000_000
    assert by_name["First"].monthly_spent == 7_000_000
    assert by_name["Second"].total_spent == 0
    assert second.id == by_name["Second"].id

    assert stats.total_projects == 2
    assert stats.total_agents == 2
    assert stats.active_agents == 1
    assert stats.needs_setup_agents == 1
    assert stats.total_balance == 50_000_000
    assert stats.total_monthly_spent == 7_000_000


@pytest.mark.asyncio
async def test_delete_project_cascades(db_session, user):
    project = await create_project(db_session, user.id, "Doomed")
    agent = await create_agent(db_session, project.id, user.id, _agent("Worker"))
    db_session.add(build_spend_event(project.vault.id, agent, amount=1_000, tokens=1))
    await db_session.commit()

    assert await delete_project(db_session, project.id, user.id) is True

    async with async_session_maker() as fresh:
        for model in (Vault, Agent, Event):
            count = await fresh.execute(select(func.count()).select_from(model))
            assert count.scalar() == 0


@pytest.mark.asyncio
async def test_update_project(db_session, user):
    project = await create_project(db_session, user.id, "Old")
    updated = await update_project(db_session, project.id, user.id, ProjectUpdate(name="New"))
    assert updated.name == "New"
    assert updated.description is None


# ============ HTTP ============

@pytest.mark.asyncio
async def test_create_project_action_redirects(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/projects",
        data={"name": "  Support  ", "description": ""},
        follow_redirects=False,
    )
    assert response.status_code == 303
    match = re.fullmatch(rf"{settings.dashboard_path}/projects/([0-9a-f-]+)", response.headers["location"])
    assert match

    detail = await auth_client.get(f"/api/projects/{match.group(1)}")
    assert detail.status_code == 200
    body = detail.json()
    assert body["name"] == "Support"
    assert body["description"] is None
    assert body["vault"]["balance"] == 0
    assert body["agents"] == []


@pytest.mark.asyncio
async def test_create_project_action_requires_name(auth_client: AsyncClient):
    response = await auth_client.post("/api/projects", data={"name": "   "})
    assert response.status_code == 400
    assert response.json() == {"error": "Project name is required"}


@pytest.mark.asyncio
async def test_create_project_action_redirects_anonymous_to_login(client: AsyncClient):
    response = await client.post("/api/projects", data={"name": "X"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == settings.login_path


@pytest.mark.asyncio
async def test_foreign_project_is_404(auth_client: AsyncClient, db_session, other_user):
    project = await create_project(db_session, other_user.id, "Theirs")
    for method, path in [
        ("GET", f"/api/projects/{project.id}"),
        ("DELETE", f"/api/projects/{project.id}"),
        ("GET", "/api/projects/missing"),
    ]:
        response = await auth_client.request(method, path)
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_fund_project_endpoint(auth_client: AsyncClient, db_session, user):
    project = await create_project(db_session, user.id, "Funded")

    response = await auth_client.post(
        f"/api/projects/{project.id}/fund",
        json={"amount": "250.50", "tx_hash": "0xabc", "source": "wire"},
    )
    assert response.status_code == 201
    event = response.json()
    assert event["type"] == "funding"
    assert event["amount"] == 250_500_000
    assert event["status"] == "confirmed"
    assert '"source":"wire"' in event["metadata"]

    listing = await auth_client.get("/api/projects")
    assert listing.json()[0]["vault_balance"] == 250_500_000

    bad = await auth_client.post(f"/api/projects/{project.id}/fund", json={"amount": "-5"})
    assert bad.status_code == 400
    junk = await auth_client.post(f"/api/projects/{project.id}/fund", json={"amount": "lots"})
    assert junk.status_code == 400


@pytest.mark.asyncio
async def test_fund_project_rejects_oversized_amount(auth_client: AsyncClient, db_session, user):
    project = await create_project(db_session, user.id, "Funded")

    for amount in ["1e20", "1e999999"]:
        response = await auth_client.post(f"/api/projects/{project.id}/fund", json={"amount": amount})
        assert response.status_code == 400

    listing = await auth_client.get("/api/projects")
    assert listing.json()[0]["vault_balance"] == 0
