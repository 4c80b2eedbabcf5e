"""
Seed script to populate the database with the demo dataset.

    python -m app.scripts.seed_data

Every table is wiped first, so running it twice leaves one copy of the
data. Random amounts, offsets, hashes and the API key come from a
fixed-seed generator, so repeated runs produce the same ledger.
"""

import asyncio
import random
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import (
    init_db, async_session_maker, utcnow,
    User, Session, ApiKey, Project, Vault, Agent, AgentBudgetRule, Event,
    AgentStatus, EventStatus, EventType,
)
from app.services.auth_service import hash_password, avatar_url
from app.services.api_key_service import KEY_PREFIX_LENGTH, hash_api_key
from app.services.event_service import build_spend_event
from app.services.money import MICRO_UNITS_PER_USD

# Children before parents
WIPE_ORDER = [Event, AgentBudgetRule, Agent, Vault, Project, ApiKey, Session, User]

SPEND_EVENT_COUNT = 50
SPEND_WINDOW_DAYS = 14


def usd(amount: float) -> int:
    return int(amount * MICRO_UNITS_PER_USD)


SAMPLE_PROJECTS = [
    {
        "name": "Customer Support",
        "description": "AI-powered customer support automation",
        "balance": usd(50_000),
        "funded_days_ago": 7,
        "agents": [
            {
                "name": "Ticket Classifier",
                "description": "Automatically classifies and routes support tickets",
                "provider": "openai",
                "model": "gpt-4o",
                "status": AgentStatus.ACTIVE,
                "budget": dict(daily_limit=usd(500), per_tx_limit=usd(5), monthly_limit=usd(10_000),
                               daily_spent=usd(320), monthly_spent=usd(4_500)),
            },
            {
                "name": "FAQ Responder",
                "description": "Answers common customer questions automatically",
                "provider": "openai",
                "model": "gpt-4o-mini",
                "status": AgentStatus.ACTIVE,
                "budget": dict(daily_limit=usd(300), per_tx_limit=usd(2), monthly_limit=usd(6_000),
                               daily_spent=usd(180), monthly_spent=usd(2_800)),
            },
            {
                "name": "Sentiment Analyzer",
                "description": "Analyzes customer sentiment in real-time",
                "provider": "anthropic",
                "model": "claude-3-sonnet",
                "status": AgentStatus.PAUSED,
                "budget": dict(daily_limit=usd(200), per_tx_limit=usd(1), monthly_limit=None,
                               daily_spent=0, monthly_spent=usd(1_200)),
            },
        ],
    },
    {
        "name": "Content Generation",
        "description": "Marketing content and copy generation",
        "balance": usd(25_000),
        "funded_days_ago": 5,
        "agents": [
            {
                "name": "Blog Writer",
                "description": "Generates SEO-optimized blog posts",
                "provider": "openai",
                "model": "gpt-4o",
                "status": AgentStatus.ACTIVE,
                "budget": dict(daily_limit=usd(200), per_tx_limit=usd(10), monthly_limit=usd(4_000),
                               daily_spent=usd(145), monthly_spent=usd(2_100)),
            },
            {
                "name": "Social Media Bot",
                "description": "Creates social media content",
                "provider": "openai",
                "model": "gpt-4o-mini",
                "status": AgentStatus.ACTIVE,
                "budget": dict(daily_limit=usd(100), per_tx_limit=usd(1), monthly_limit=None,
                               daily_spent=usd(65), monthly_spent=usd(950)),
            },
        ],
    },
    {
        "name": "Data Analysis",
        "description": "Automated data analysis and reporting",
        "balance": usd(15_000),
        "funded_days_ago": None,
        "agents": [
            {
                "name": "Report Generator",
                "description": "Creates automated data reports",
                "provider": "openai",
                "model": "gpt-4o",
                "status": AgentStatus.NEEDS_SETUP,
                "budget": dict(daily_limit=usd(300), per_tx_limit=usd(15), monthly_limit=usd(5_000),
                               daily_spent=0, monthly_spent=0),
            },
        ],
    },
]


def _hex(rng: random.Random, nbytes: int) -> str:
    return f"{rng.getrandbits(nbytes * 8):0{nbytes * 2}x}"


async def wipe_database(db: AsyncSession) -> None:
    for model in WIPE_ORDER:
        await db.execute(delete(model))
    await db.commit()


async def seed(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, object]:
    """
    Wipe and repopulate the database. Returns the demo credentials and the
    plaintext API key, which is not recoverable afterwards.
    """
    rng = random.Random(settings.seed_random_seed)
    now = now or utcnow()

    await wipe_database(db)

    user = User(
        email=settings.seed_demo_email,
        password_hash=hash_password(settings.seed_demo_password),
        name="Demo User",
        avatar=avatar_url("Demo"),
    )
    db.add(user)
    await db.flush()

    spending_agents: List[Agent] = []
    vault_by_project: Dict[str, Vault] = {}
    events: List[Event] = []

    for project_data in SAMPLE_PROJECTS:
        vault = Vault(
            address=f"vault_{uuid.UUID(int=rng.getrandbits(128)).hex}",
            balance=project_data["balance"],
        )
        project = Project(
            user_id=user.id,
            name=project_data["name"],
            description=project_data["description"],
            vault=vault,
        )
        db.add(project)

        for agent_data in project_data["agents"]:
            agent = Agent(
                project=project,
                name=agent_data["name"],
                description=agent_data["description"],
                provider=agent_data["provider"],
                model=agent_data["model"],
                status=agent_data["status"].value,
                budget_rule=AgentBudgetRule(**agent_data["budget"]),
            )
            db.add(agent)
            if agent.status == AgentStatus.ACTIVE.value:
                spending_agents.append(agent)

        await db.flush()
        vault_by_project[project.id] = vault

        if project_data["funded_days_ago"] is not None:
            events.append(Event(
                type=EventType.FUNDING.value,
                amount=project_data["balance"],
                status=EventStatus.CONFIRMED.value,
                tx_hash=f"0x{_hex(rng, 16)}",
                vault_id=vault.id,
                created_at=now - timedelta(days=project_data["funded_days_ago"]),
            ))

    # Round-robin over the active agents, amounts $0.10 - $5.10
    for i in range(SPEND_EVENT_COUNT):
        agent = spending_agents[i % len(spending_agents)]
        days_ago = rng.randrange(SPEND_WINDOW_DAYS)
        amount = rng.randrange(5_000_000) + 100_000
        tokens = rng.randrange(10_000) + 100
        seconds_into_day = rng.randrange(24 * 60 * 60)
        events.append(build_spend_event(
            vault_id=vault_by_project[agent.project_id].id,
            agent=agent,
            amount=amount,
            tokens=tokens,
            created_at=now - timedelta(days=days_ago, seconds=seconds_into_day),
        ))

    db.add_all(events)

    plain_key = f"{settings.api_key_prefix}{_hex(rng, 24)}"
    db.add(ApiKey(
        user_id=user.id,
        name="Development API Key",
        key_hash=hash_api_key(plain_key),
        key_prefix=plain_key[:KEY_PREFIX_LENGTH],
        permissions=["read", "write", "execute"],
    ))

    await db.commit()

    return {
        "email": settings.seed_demo_email,
        "password": settings.seed_demo_password,
        "api_key": plain_key,
        "projects": len(SAMPLE_PROJECTS),
        "agents": sum(len(p["agents"]) for p in SAMPLE_PROJECTS),
        "events": len(events),
    }


async def seed_database():
    """Seed the database with the demo dataset"""
    print("🌱 Starting database seed...")

    await init_db()
    print("✅ Database initialized")

    async with async_session_maker() as db:
        print("Clearing existing data...")
        summary = await seed(db)

    print(f"✓ Created {summary['projects']} projects")
    print(f"✓ Created {summary['agents']} agents")
    print(f"✓ Created {summary['events']} events")
    print("✓ Created API key")

    print("\n✅ Seeding complete!")
    print("\n📝 Test credentials:")
    print(f"   Email: {summary['email']}")
    print(f"   Password: {summary['password']}")
    print(f"   API key: {summary['api_key']}")


if __name__ == "__main__":
    asyncio.run(seed_database())
