"""
Ownership gate.

Every read and write goes through the Agent -> Project -> User chain.
A resource that does not exist and a resource owned by someone else
both resolve to None, so callers cannot tell the two apart.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Agent, Project


async def owned_project(
    db: AsyncSession,
    project_id: str,
    user_id: str,
    *options,
) -> Optional[Project]:
    """Return the project if ``user_id`` owns it, else None."""
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id, Project.user_id == user_id)
        .options(*options)
    )
    return result.scalar_one_or_none()


async def owned_agent(
    db: AsyncSession,
    agent_id: str,
    user_id: str,
    *options,
) -> Optional[Agent]:
    """Return the agent if its project belongs to ``user_id``, else None."""
    result = await db.execute(
        select(Agent)
        .join(Project, Agent.project_id == Project.id)
        .where(Agent.id == agent_id, Project.user_id == user_id)
        .options(*options)
    )
    return result.scalar_one_or_none()
