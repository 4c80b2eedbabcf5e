from app.db.models import (
    Base, utcnow, to_naive_utc,
    User, Session, ApiKey,
    Project, Vault, Agent, AgentBudgetRule, Event,
    ProjectStatus, AgentStatus, EventType, EventStatus, ApiKeyPermission,
)
from app.db.database import get_db, init_db, drop_db, async_session_maker, engine

__all__ = [
    "Base",
    "utcnow",
    "to_naive_utc",
    # Accounts
    "User",
    "Session",
    "ApiKey",
    # Projects & budgets
    "Project",
    "Vault",
    "Agent",
    "AgentBudgetRule",
    "Event",
    # Enums
    "ProjectStatus",
    "AgentStatus",
    "EventType",
    "EventStatus",
    "ApiKeyPermission",
    # Database
    "get_db",
    "init_db",
    "drop_db",
    "async_session_maker",
    "engine",
]
