"""Agent data access - CRUD with budget rules and per-day performance"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.db.models import (
    Agent, AgentBudgetRule, AgentStatus, Event, EventStatus, EventType, utcnow,
)
from app.schemas import AgentCreate, AgentSummary, AgentUpdate, PerformancePoint
from app.services.access import owned_agent, owned_project
from app.services.project_service import attach_recent_events

logger = logging.getLogger(__name__)


def day_keys(days: int, now: Optional[datetime] = None) -> List[str]:
    """
    ``days`` consecutive UTC calendar dates ending today, oldest first,
    as YYYY-MM-DD strings.
    """
    now = now or utcnow()
    return [(now - timedelta(days=days - 1 - i)).date().isoformat() for i in range(days)]


def day_key(timestamp: datetime) -> str:
    """Calendar date (UTC) an event timestamp falls into"""
    return timestamp.date().isoformat()


async def get_project_agents(db: AsyncSession, project_id: str, user_id: str) -> List[AgentSummary]:
    """Agents of an owned project, newest first. Empty if the project is not owned."""
    project = await owned_project(db, project_id, user_id)
    if project is None:
        return []

    result = await db.execute(
        select(Agent)
        .where(Agent.project_id == project_id)
        .options(selectinload(Agent.budget_rule))
        .order_by(Agent.created_at.desc())
    )
    agents = result.scalars().all()

    totals: Dict[str, int] = {}
    if agents:
        spend = await db.execute(
            select(Event.agent_id, func.sum(func.abs(Event.amount)))
            .where(
                and_(
                    Event.agent_id.in_([a.id for a in agents]),
                    Event.type == EventType.SPEND.value,
                    Event.status == EventStatus.CONFIRMED.value,
                )
            )
            .group_by(Event.agent_id)
        )
        totals = {agent_id: int(total or 0) for agent_id, total in spend.all()}

    summaries = []
    for agent in agents:
        rule = agent.budget_rule
        summaries.append(
            AgentSummary(
                id=agent.id,
                name=agent.name,
                description=agent.description,
                provider=agent.provider,
                model=agent.model,
                status=agent.status,
                created_at=agent.created_at,
                project_id=agent.project_id,
                daily_limit=rule.daily_limit if rule else 0,
                daily_spent=rule.daily_spent if rule else 0,
                monthly_spent=rule.monthly_spent if rule else 0,
                total_spent=totals.get(agent.id, 0),
            )
        )
    return summaries


async def get_agent(db: AsyncSession, agent_id: str, user_id: str) -> Optional[Agent]:
    """An agent with budget rule, project and recent events, or None."""
    agent = await owned_agent(
        db, agent_id, user_id,
        selectinload(Agent.budget_rule),
        selectinload(Agent.project),
    )
    if agent is None:
        return None

    await attach_recent_events(db, [agent])
    return agent


async def create_agent(
    db: AsyncSession,
    project_id: str,
    user_id: str,
    data: AgentCreate,
) -> Optional[Agent]:
    """
    Create an agent in ``needs_setup`` state together with its budget rule.
    None if the project is not owned by ``user_id``.
    """
    project = await owned_project(db, project_id, user_id)
    if project is None:
        return None

    agent = Agent(
        project_id=project_id,
        name=data.name,
        description=data.description,
        provider=data.provider,
        model=data.model,
        status=AgentStatus.NEEDS_SETUP.value,
        budget_rule=AgentBudgetRule(
            daily_limit=data.daily_limit,
            per_tx_limit=data.per_tx_limit,
            monthly_limit=data.monthly_limit,
            daily_spent=0,
            monthly_spent=0,
        ),
    )
    db.add(agent)
    await db.commit()
    await db.refresh(agent, attribute_names=["budget_rule"])
    logger.info("Created agent %s in project %s", agent.id, project_id)
    return agent


async def update_agent(
    db: AsyncSession,
    agent_id: str,
    user_id: str,
    data: AgentUpdate,
) -> Optional[Agent]:
    """Update agent fields. None if the agent is not owned."""
    agent = await owned_agent(db, agent_id, user_id, selectinload(Agent.budget_rule))
    if agent is None:
        return None

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(agent, field, value.value if hasattr(value, "value") else value)

    await db.commit()
    return agent


async def update_agent_budget(
    db: AsyncSession,
    agent_id: str,
    user_id: str,
    daily_limit: Optional[int] = None,
    per_tx_limit: Optional[int] = None,
    monthly_limit: Optional[int] = None,
) -> Optional[AgentBudgetRule]:
    """Change budget limits (micro-dollars). None if not owned or no budget rule."""
    agent = await owned_agent(db, agent_id, user_id, selectinload(Agent.budget_rule))
    if agent is None or agent.budget_rule is None:
        return None

    limits = {
        "daily_limit": daily_limit,
        "per_tx_limit": per_tx_limit,
        "monthly_limit": monthly_limit,
    }
    for field, value in limits.items():
        if value is None:
            continue
        if value < 0:
            raise ValueError(f"{field} must not be negative")
        setattr(agent.budget_rule, field, value)

    await db.commit()
    return agent.budget_rule


async def delete_agent(db: AsyncSession, agent_id: str, user_id: str) -> bool:
    """Delete an agent and its budget rule; its events stay on the vault ledger."""
    agent = await owned_agent(db, agent_id, user_id)
    if agent is None:
        return False

    await db.delete(agent)
    await db.commit()
    logger.info("Deleted agent %s", agent_id)
    return True


async def get_agent_performance(
    db: AsyncSession,
    agent_id: str,
    user_id: str,
    days: int = settings.default_performance_days,
    now: Optional[datetime] = None,
) -> List[PerformancePoint]:
    """
    Requests and spend per day for the trailing ``days`` calendar days.

    Every confirmed event counts as one request; confirmed spend events
    also add |amount| to that day's spend. Days without events are zero.
    Empty list if the agent is not owned.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    agent = await owned_agent(db, agent_id, user_id)
    if agent is None:
        return []

    now = now or utcnow()
    buckets = {key: {"requests": 0, "spend": 0} for key in day_keys(days, now)}

    result = await db.execute(
        select(Event)
        .where(
            and_(
                Event.agent_id == agent_id,
                Event.created_at >= now - timedelta(days=days),
                Event.status == EventStatus.CONFIRMED.value,
            )
        )
        .order_by(Event.created_at.asc())
    )
    for event in result.scalars().all():
        bucket = buckets.get(day_key(event.created_at))
        if bucket is None:
            continue
        bucket["requests"] += 1
        if event.type == EventType.SPEND.value:
            bucket["spend"] += abs(event.amount)

    return [
        PerformancePoint(date=date, requests=data["requests"], spend=data["spend"])
        for date, data in buckets.items()
    ]
