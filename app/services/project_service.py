"""Project data access - listing, summaries, creation with vault"""

from typing import Dict, Iterable, List, Optional
import logging
import uuid

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.config import settings
from app.db.models import (
    Agent, AgentStatus, Event, EventStatus, EventType, Project, Vault,
)
from app.schemas import ProjectStats, ProjectSummary, ProjectUpdate
from app.services.access import owned_project

logger = logging.getLogger(__name__)


def generate_vault_address() -> str:
    """Synthetic vault identifier (not an on-chain address)"""
    return f"vault_{uuid.uuid4().hex}"


async def confirmed_spend_by_vault(db: AsyncSession, vault_ids: Iterable[str]) -> Dict[str, int]:
    """Sum of |amount| over confirmed spend events, keyed by vault id."""
    vault_ids = list(vault_ids)
    if not vault_ids:
        return {}
    result = await db.execute(
        select(Event.vault_id, func.sum(func.abs(Event.amount)))
        .where(
            and_(
                Event.vault_id.in_(vault_ids),
                Event.type == EventType.SPEND.value,
                Event.status == EventStatus.CONFIRMED.value,
            )
        )
        .group_by(Event.vault_id)
    )
    return {vault_id: int(total or 0) for vault_id, total in result.all()}


async def attach_recent_events(db: AsyncSession, agents: List[Agent]) -> None:
    """Load each agent's most recent events onto ``agent.events`` without marking it dirty."""
    for agent in agents:
        result = await db.execute(
            select(Event)
            .where(Event.agent_id == agent.id)
            .order_by(Event.created_at.desc())
            .limit(settings.recent_events_limit)
        )
        set_committed_value(agent, "events", list(result.scalars().all()))


def _monthly_spent(agents: Iterable[Agent]) -> int:
    return sum(agent.budget_rule.monthly_spent if agent.budget_rule else 0 for agent in agents)


async def get_user_projects(db: AsyncSession, user_id: str) -> List[ProjectSummary]:
    """All of a user's projects, newest first, with balance and spend totals."""
    result = await db.execute(
        select(Project)
        .where(Project.user_id == user_id)
        .options(
            selectinload(Project.vault),
            selectinload(Project.agents).selectinload(Agent.budget_rule),
        )
        .order_by(Project.created_at.desc())
    )
    projects = result.scalars().all()

    spend = await confirmed_spend_by_vault(db, (p.vault.id for p in projects if p.vault))

    return [
        ProjectSummary(
            id=project.id,
            name=project.name,
            description=project.description,
            status=project.status,
            created_at=project.created_at,
            vault_balance=project.vault.balance if project.vault else 0,
            agent_count=len(project.agents),
            active_agent_count=sum(1 for a in project.agents if a.status == AgentStatus.ACTIVE.value),
            total_spent=spend.get(project.vault.id, 0) if project.vault else 0,
            monthly_spent=_monthly_spent(project.agents),
        )
        for project in projects
    ]


async def get_project(db: AsyncSession, project_id: str, user_id: str) -> Optional[Project]:
    """A project with its vault and agents (budget rule and recent events each), or None."""
    project = await owned_project(
        db, project_id, user_id,
        selectinload(Project.vault),
        selectinload(Project.agents).selectinload(Agent.budget_rule),
    )
    if project is None:
        return None

    await attach_recent_events(db, project.agents)
    return project


async def get_user_project_stats(db: AsyncSession, user_id: str) -> ProjectStats:
    """Dashboard totals: counts by agent status, vault balances and monthly spend."""
    result = await db.execute(
        select(Project)
        .where(Project.user_id == user_id)
        .options(
            selectinload(Project.vault),
            selectinload(Project.agents).selectinload(Agent.budget_rule),
        )
    )
    projects = result.scalars().all()
    agents = [agent for project in projects for agent in project.agents]

    def count(status: AgentStatus) -> int:
        return sum(1 for a in agents if a.status == status.value)

    return ProjectStats(
        total_projects=len(projects),
        total_agents=len(agents),
        active_agents=count(AgentStatus.ACTIVE),
        paused_agents=count(AgentStatus.PAUSED),
        error_agents=count(AgentStatus.ERROR),
        needs_setup_agents=count(AgentStatus.NEEDS_SETUP),
        total_balance=sum(p.vault.balance for p in projects if p.vault),
        total_monthly_spent=_monthly_spent(agents),
    )


async def create_project(
    db: AsyncSession,
    user_id: str,
    name: str,
    description: Optional[str] = None,
) -> Project:
    """Create a project and its empty vault in one transaction."""
    project = Project(
        user_id=user_id,
        name=name,
        description=description,
        vault=Vault(address=generate_vault_address(), balance=0),
        agents=[],
    )
    db.add(project)
    await db.commit()
    await db.refresh(project, attribute_names=["vault"])
    logger.info("Created project %s for user %s", project.id, user_id)
    return project


async def update_project(
    db: AsyncSession,
    project_id: str,
    user_id: str,
    data: ProjectUpdate,
) -> Optional[Project]:
    """Update name, description or status. None if the project is not owned."""
    project = await owned_project(db, project_id, user_id, selectinload(Project.vault))
    if project is None:
        return None

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(project, field, value.value if hasattr(value, "value") else value)

    await db.commit()
    await db.refresh(project, attribute_names=["vault"])
    return project


async def delete_project(db: AsyncSession, project_id: str, user_id: str) -> bool:
    """Delete a project with its vault, agents and ledger."""
    project = await owned_project(db, project_id, user_id)
    if project is None:
        return False

    await db.delete(project)
    await db.commit()
    logger.info("Deleted project %s", project_id)
    return True
