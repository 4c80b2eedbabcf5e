"""Pydantic schemas for API request/response validation"""

import json
from datetime import datetime
from typing import Optional, List, Union, Literal
from typing_extensions import Annotated
from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from app.db.models import ProjectStatus, AgentStatus, EventType, EventStatus, ApiKeyPermission


# ============ Action State ============

class ActionState(BaseModel):
    """Result of a form action that did not redirect."""
    error: Optional[str] = None


# ============ User Schemas ============

class UserResponse(BaseModel):
    """User without the password hash"""
    id: str
    email: str
    name: Optional[str]
    avatar: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============ Event Metadata ============

class SpendMetadata(BaseModel):
    """Usage details attached to a spend event"""
    kind: Literal["spend"] = "spend"
    tokens: int = Field(ge=0)
    model: Optional[str] = None
    provider: Optional[str] = None


class FundingMetadata(BaseModel):
    """Origin details attached to a funding event"""
    kind: Literal["funding"] = "funding"
    source: Optional[str] = None  # e.g. "wire", "card", "onchain"
    note: Optional[str] = Field(None, max_length=500)


EventMetadata = Annotated[Union[SpendMetadata, FundingMetadata], Field(discriminator="kind")]

_event_metadata_adapter = TypeAdapter(EventMetadata)


def dump_event_metadata(metadata: Optional[Union[SpendMetadata, FundingMetadata]]) -> Optional[str]:
    """Serialize validated metadata to the JSON text stored on Event."""
    if metadata is None:
        return None
    return metadata.model_dump_json(exclude_none=True)


def parse_event_metadata(raw: Optional[str]) -> Optional[Union[SpendMetadata, FundingMetadata]]:
    """Parse stored metadata text. Unknown or malformed payloads read as None."""
    if not raw:
        return None
    try:
        return _event_metadata_adapter.validate_python(json.loads(raw))
    except (ValueError, ValidationError):
        return None


# ============ Vault & Event Schemas ============

class VaultResponse(BaseModel):
    id: str
    address: str
    balance: int  # Micro-dollars
    created_at: datetime

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    id: str
    type: EventType
    amount: int  # Signed micro-dollars
    status: EventStatus
    tx_hash: Optional[str] = None
    metadata_json: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("metadata_json", "metadata"),
        serialization_alias="metadata",
    )
    vault_id: str
    agent_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityItem(BaseModel):
    """One ledger entry as shown in activity feeds"""
    id: str
    type: EventType
    amount: int
    status: EventStatus
    tx_hash: Optional[str] = None
    metadata: Optional[str] = None
    details: Optional[EventMetadata] = None
    created_at: datetime
    agent_name: Optional[str] = None
    project_name: str


class FundingRequest(BaseModel):
    amount: str = Field(description="Amount in USD, e.g. \"250.00\"")
    tx_hash: Optional[str] = Field(None, max_length=100)
    source: Optional[str] = None
    note: Optional[str] = Field(None, max_length=500)


# ============ Budget Schemas ============

class BudgetRuleResponse(BaseModel):
    id: str
    daily_limit: int
    per_tx_limit: int
    monthly_limit: Optional[int] = None
    daily_spent: int
    monthly_spent: int
    updated_at: datetime

    class Config:
        from_attributes = True


class BudgetUpdate(BaseModel):
    """Budget limits in USD strings; omitted fields stay unchanged."""
    daily_limit: Optional[str] = None
    per_tx_limit: Optional[str] = None
    monthly_limit: Optional[str] = None


# ============ Agent Schemas ============

class AgentCreate(BaseModel):
    """Validated agent input with limits already in micro-dollars"""
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    provider: Optional[str] = Field(None, max_length=50)
    model: Optional[str] = Field(None, max_length=100)
    daily_limit: int = Field(ge=0)
    per_tx_limit: int = Field(ge=0)
    monthly_limit: Optional[int] = Field(None, ge=0)


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    provider: Optional[str] = Field(None, max_length=50)
    model: Optional[str] = Field(None, max_length=100)
    status: Optional[AgentStatus] = None
    webhook_url: Optional[str] = Field(None, max_length=500)


class AgentResponse(BaseModel):
    id: str
    project_id: str
    name: str
    description: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    status: AgentStatus
    webhook_url: Optional[str] = None
    created_at: datetime
    budget_rule: Optional[BudgetRuleResponse] = None

    class Config:
        from_attributes = True


class AgentDetail(AgentResponse):
    events: List[EventResponse] = []


class AgentSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    status: AgentStatus
    created_at: datetime
    project_id: str
    daily_limit: int
    daily_spent: int
    monthly_spent: int
    total_spent: int


class PerformancePoint(BaseModel):
    date: str  # YYYY-MM-DD (UTC)
    requests: int
    spend: int  # Micro-dollars


# ============ Project Schemas ============

class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_at: datetime
    vault: Optional[VaultResponse] = None

    class Config:
        from_attributes = True


class ProjectDetail(ProjectResponse):
    agents: List[AgentDetail] = []


class ProjectSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_at: datetime
    vault_balance: int
    agent_count: int
    active_agent_count: int
    total_spent: int
    monthly_spent: int


class ProjectStats(BaseModel):
    total_projects: int = 0
    total_agents: int = 0
    active_agents: int = 0
    paused_agents: int = 0
    error_agents: int = 0
    needs_setup_agents: int = 0
    total_balance: int = 0
    total_monthly_spent: int = 0


# ============ Chart Schemas ============

class SpendChartPoint(BaseModel):
    date: str  # YYYY-MM-DD (UTC)
    value: float  # USD
    label: str  # e.g. "Mon, Oct 19"


class ProjectComparison(BaseModel):
    name: str
    spend: float  # USD
    bots: int


class DashboardResponse(BaseModel):
    stats: ProjectStats
    projects: List[ProjectSummary]
    activity: List[ActivityItem]
    spend_chart: List[SpendChartPoint]
    comparison: List[ProjectComparison]


# ============ API Key Schemas ============

class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    permissions: Optional[List[ApiKeyPermission]] = None
    expires_at: Optional[datetime] = None


class ApiKeySummary(BaseModel):
    id: str
    name: str
    key_prefix: str
    created_at: datetime
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    permissions: List[str]
    request_count: int

    class Config:
        from_attributes = True


class ApiKeyCreated(ApiKeySummary):
    key: str  # Plaintext, returned exactly once
    masked_key: str


class ApiKeyVerification(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    key_id: Optional[str] = None
    permissions: List[str] = []
