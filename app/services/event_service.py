"""Event ledger access - activity feeds, funding and spend charts"""

from datetime import date, datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.db.models import (
    Agent, Event, EventStatus, EventType, Project, Vault, utcnow,
)
from app.schemas import (
    ActivityItem, FundingMetadata, ProjectComparison, SpendChartPoint,
    SpendMetadata, dump_event_metadata, parse_event_metadata,
)
from app.services.access import owned_project
from app.services.agent_service import day_key, day_keys
from app.services.money import format_usd, minor_to_usd

logger = logging.getLogger(__name__)


def chart_label(day: str) -> str:
    """Short label for a YYYY-MM-DD key, e.g. ``Mon, Oct 19``."""
    d = date.fromisoformat(day)
    return f"{d:%a}, {d:%b} {d.day}"


def to_activity_item(event: Event) -> ActivityItem:
    """Flatten an event (with agent and vault.project loaded) for feeds."""
    return ActivityItem(
        id=event.id,
        type=event.type,
        amount=event.amount,
        status=event.status,
        tx_hash=event.tx_hash,
        metadata=event.metadata_json,
        details=parse_event_metadata(event.metadata_json),
        created_at=event.created_at,
        agent_name=event.agent.name if event.agent else None,
        project_name=event.vault.project.name,
    )


def _activity_query():
    return (
        select(Event)
        .options(
            selectinload(Event.agent),
            selectinload(Event.vault).selectinload(Vault.project),
        )
        .order_by(Event.created_at.desc())
    )


async def get_user_activity(
    db: AsyncSession,
    user_id: str,
    limit: int = settings.default_activity_limit,
) -> List[ActivityItem]:
    """Most recent events across all of a user's vaults."""
    result = await db.execute(
        _activity_query()
        .join(Vault, Event.vault_id == Vault.id)
        .join(Project, Vault.project_id == Project.id)
        .where(Project.user_id == user_id)
        .limit(limit)
    )
    return [to_activity_item(e) for e in result.scalars().all()]


async def get_project_activity(
    db: AsyncSession,
    project_id: str,
    user_id: str,
    limit: int = settings.project_activity_limit,
) -> List[ActivityItem]:
    """Most recent events of one project's vault. Empty if not owned."""
    project = await owned_project(db, project_id, user_id, selectinload(Project.vault))
    if project is None or project.vault is None:
        return []

    result = await db.execute(
        _activity_query()
        .where(Event.vault_id == project.vault.id)
        .limit(limit)
    )
    return [to_activity_item(e) for e in result.scalars().all()]


async def create_funding_event(
    db: AsyncSession,
    project_id: str,
    user_id: str,
    amount: int,
    tx_hash: Optional[str] = None,
    metadata: Optional[FundingMetadata] = None,
) -> Optional[Event]:
    """
    Credit a project's vault.

    The event insert and the balance increment commit together. The event
    is confirmed when a transaction hash is supplied, pending otherwise.
    None if the project is not owned or has no vault.
    """
    if amount <= 0:
        raise ValueError("Funding amount must be positive")

    project = await owned_project(db, project_id, user_id, selectinload(Project.vault))
    if project is None or project.vault is None:
        return None

    vault_id = project.vault.id
    event = Event(
        type=EventType.FUNDING.value,
        amount=amount,
        status=EventStatus.CONFIRMED.value if tx_hash else EventStatus.PENDING.value,
        tx_hash=tx_hash,
        metadata_json=dump_event_metadata(metadata),
        vault_id=vault_id,
    )
    try:
        db.add(event)
        await db.execute(
            update(Vault)
            .where(Vault.id == vault_id)
            .values(balance=Vault.balance + amount)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(project.vault)
    logger.info("Funded vault %s with %s", vault_id, format_usd(amount))
    return event


def build_spend_event(
    vault_id: str,
    agent: Agent,
    amount: int,
    tokens: int,
    created_at: Optional[datetime] = None,
    status: EventStatus = EventStatus.CONFIRMED,
) -> Event:
    """A spend ledger row with validated usage metadata. Amount is stored negative."""
    metadata = SpendMetadata(tokens=tokens, model=agent.model, provider=agent.provider)
    return Event(
        type=EventType.SPEND.value,
        amount=-abs(amount),
        status=status.value,
        metadata_json=dump_event_metadata(metadata),
        vault_id=vault_id,
        agent_id=agent.id,
        created_at=created_at or utcnow(),
    )


async def get_user_spend_chart_data(
    db: AsyncSession,
    user_id: str,
    days: int = settings.default_chart_days,
    now: Optional[datetime] = None,
) -> List[SpendChartPoint]:
    """
    Confirmed spend per day across all of a user's vaults for the trailing
    ``days`` calendar days, zero-filled, in USD. Sums stay in integer
    micro-dollars until the final conversion.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    now = now or utcnow()
    buckets = {key: 0 for key in day_keys(days, now)}

    result = await db.execute(
        select(Event.amount, Event.created_at)
        .join(Vault, Event.vault_id == Vault.id)
        .join(Project, Vault.project_id == Project.id)
        .where(
            and_(
                Project.user_id == user_id,
                Event.type == EventType.SPEND.value,
                Event.status == EventStatus.CONFIRMED.value,
                Event.created_at >= now - timedelta(days=days),
            )
        )
        .order_by(Event.created_at.asc())
    )
    for amount, created_at in result.all():
        key = day_key(created_at)
        if key in buckets:
            buckets[key] += abs(amount)

    return [
        SpendChartPoint(date=key, value=minor_to_usd(total), label=chart_label(key))
        for key, total in buckets.items()
    ]


async def get_project_comparison_data(db: AsyncSession, user_id: str) -> List[ProjectComparison]:
    """Monthly spend (USD) and agent count per project."""
    result = await db.execute(
        select(Project)
        .where(Project.user_id == user_id)
        .options(selectinload(Project.agents).selectinload(Agent.budget_rule))
        .order_by(Project.created_at.asc())
    )
    comparison = []
    for project in result.scalars().all():
        total = sum(
            a.budget_rule.monthly_spent if a.budget_rule else 0 for a in project.agents
        )
        comparison.append(
            ProjectComparison(name=project.name, spend=minor_to_usd(total), bots=len(project.agents))
        )
    return comparison
