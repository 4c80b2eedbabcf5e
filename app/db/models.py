"""
Database models for the Pilot dashboard

Multi-tenant layout:
- Users own projects, API keys and login sessions
- Each project owns exactly one vault and any number of agents
- Each agent owns exactly one budget rule
- Events form an append-only ledger of funding and spend against a vault

All money columns hold integer micro-dollars (1,000,000 = 1 USD).
"""

from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum
import uuid

from sqlalchemy import (
    String, Text, DateTime, Integer, BigInteger, ForeignKey, JSON, Index
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.ext.declarative import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class AgentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ERROR = "error"
    NEEDS_SETUP = "needs_setup"   # Freshly created, not yet wired to a provider


class EventType(str, Enum):
    FUNDING = "funding"   # Credit to a vault, positive amount
    SPEND = "spend"       # Debit by an agent, negative amount


class EventStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class ApiKeyPermission(str, Enum):
    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    WEBHOOK = "webhook"


class User(Base):
    """Dashboard account, the root of every ownership chain"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)  # Always lowercased
    password_hash: Mapped[str] = mapped_column(String(128))
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    projects: Mapped[List["Project"]] = relationship(
        "Project", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    sessions: Mapped[List["Session"]] = relationship(
        "Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    api_keys: Mapped[List["ApiKey"]] = relationship(
        "ApiKey", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Session(Base):
    """Cookie-backed login session"""
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)  # 32 random bytes, hex
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship("User", back_populates="sessions")


class ApiKey(Base):
    """API keys for machine access. Only the SHA-256 hash of the key is kept."""
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)  # e.g. "Development API Key"
    key_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # SHA-256 hash
    key_prefix: Mapped[str] = mapped_column(String(10), nullable=False)  # First 8 chars for display
    permissions: Mapped[List[str]] = mapped_column(JSON, default=list)  # read | write | execute | webhook
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    request_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship("User", back_populates="api_keys")


class Project(Base):
    """A group of agents sharing one vault"""
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ProjectStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="projects")
    vault: Mapped[Optional["Vault"]] = relationship(
        "Vault", back_populates="project", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    agents: Mapped[List["Agent"]] = relationship(
        "Agent", back_populates="project", order_by="Agent.created_at.desc()",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class Vault(Base):
    """Per-project balance holder, funded by funding events"""
    __tablename__ = "vaults"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)  # vault_<32 hex>
    balance: Mapped[int] = mapped_column(BigInteger, default=0)  # Micro-dollars
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    project: Mapped["Project"] = relationship("Project", back_populates="vault")
    events: Mapped[List["Event"]] = relationship(
        "Event", back_populates="vault", cascade="all, delete-orphan", passive_deletes=True
    )


class Agent(Base):
    """An AI model/provider binding that spends from its project's vault"""
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # openai, anthropic, ...
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # e.g. "gpt-4o"
    status: Mapped[str] = mapped_column(String(20), default=AgentStatus.NEEDS_SETUP.value, index=True)
    webhook_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="agents")
    budget_rule: Mapped[Optional["AgentBudgetRule"]] = relationship(
        "AgentBudgetRule", back_populates="agent", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    events: Mapped[List["Event"]] = relationship(
        "Event", back_populates="agent", passive_deletes=True
    )


class AgentBudgetRule(Base):
    """Spend limits for one agent. Spent totals are stored, not derived."""
    __tablename__ = "agent_budget_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    daily_limit: Mapped[int] = mapped_column(BigInteger, default=0)
    per_tx_limit: Mapped[int] = mapped_column(BigInteger, default=0)
    monthly_limit: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    daily_spent: Mapped[int] = mapped_column(BigInteger, default=0)
    monthly_spent: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    agent: Mapped["Agent"] = relationship("Agent", back_populates="budget_rule")


class Event(Base):
    """
    Append-only ledger entry against a vault.
    Funding events carry positive amounts, spend events negative ones.
    """
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    type: Mapped[str] = mapped_column(String(20), index=True)  # EventType value
    amount: Mapped[int] = mapped_column(BigInteger)  # Signed micro-dollars
    status: Mapped[str] = mapped_column(String(20), default=EventStatus.PENDING.value)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)  # JSON stored as text
    vault_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("vaults.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True
    )  # Null for vault-level funding
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    vault: Mapped["Vault"] = relationship("Vault", back_populates="events")
    agent: Mapped[Optional["Agent"]] = relationship("Agent", back_populates="events")

    __table_args__ = (
        Index("ix_events_vault_created", "vault_id", "created_at"),
        Index("ix_events_agent_created", "agent_id", "created_at"),
    )
