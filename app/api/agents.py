"""Agent endpoints - create form action, CRUD, budget limits and performance"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import action_error, get_current_user, require_auth
from app.config import settings
from app.db import get_db, User
from app.schemas import (
    AgentCreate, AgentDetail, AgentResponse, AgentSummary, AgentUpdate,
    BudgetRuleResponse, BudgetUpdate, PerformancePoint,
)
from app.services import (
    create_agent, delete_agent, get_agent, get_agent_performance,
    get_project_agents, update_agent, update_agent_budget, usd_to_minor,
)
from app.services.access import owned_agent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Agents"])

DEFAULT_DAILY_LIMIT_USD = "100"
DEFAULT_PER_TX_LIMIT_USD = "10"


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")


def _clean(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


@router.post("/projects/{project_id}/agents")
async def create_agent_action(
    project_id: str,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    provider: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
    daily_limit: Optional[str] = Form(None, alias="dailyLimit"),
    per_tx_limit: Optional[str] = Form(None, alias="perTxLimit"),
    monthly_limit: Optional[str] = Form(None, alias="monthlyLimit"),
    current_user: User = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Create an agent with its budget rule, then redirect to its page. Limits are USD."""
    if not name or not name.strip():
        return action_error("Agent name is required")

    try:
        data = AgentCreate(
            name=name.strip(),
            description=_clean(description),
            provider=_clean(provider),
            model=_clean(model),
            daily_limit=usd_to_minor(daily_limit, default=DEFAULT_DAILY_LIMIT_USD),
            per_tx_limit=usd_to_minor(per_tx_limit, default=DEFAULT_PER_TX_LIMIT_USD),
            monthly_limit=usd_to_minor(monthly_limit),
        )
    except (ValueError, ValidationError):
        return action_error("Invalid budget amount")

    try:
        agent = await create_agent(db, project_id, current_user.id, data)
    except Exception:
        logger.exception("Failed to create agent in project %s", project_id)
        return action_error("Failed to create agent", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if agent is None:
        return action_error("Project not found or you don't have access", status.HTTP_404_NOT_FOUND)

    return RedirectResponse(
        url=f"{settings.dashboard_path}/projects/{project_id}/agents/{agent.id}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/projects/{project_id}/agents", response_model=List[AgentSummary])
async def list_project_agents(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_project_agents(db, project_id, current_user.id)


@router.get("/agents/{agent_id}", response_model=AgentDetail)
async def read_agent(
    agent_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    agent = await get_agent(db, agent_id, current_user.id)
    if agent is None:
        raise _not_found()
    return AgentDetail.model_validate(agent)


@router.patch("/agents/{agent_id}", response_model=AgentResponse)
async def patch_agent(
    agent_id: str,
    body: AgentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    agent = await update_agent(db, agent_id, current_user.id, body)
    if agent is None:
        raise _not_found()
    return AgentResponse.model_validate(agent)


@router.patch("/agents/{agent_id}/budget", response_model=BudgetRuleResponse)
async def patch_agent_budget(
    agent_id: str,
    body: BudgetUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change budget limits. Values are USD strings; omitted limits stay as they are."""
    try:
        rule = await update_agent_budget(
            db,
            agent_id,
            current_user.id,
            daily_limit=usd_to_minor(body.daily_limit),
            per_tx_limit=usd_to_minor(body.per_tx_limit),
            monthly_limit=usd_to_minor(body.monthly_limit),
        )
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid budget amount")

    if rule is None:
        raise _not_found()
    return BudgetRuleResponse.model_validate(rule)


@router.delete("/agents/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_agent(
    agent_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_agent(db, agent_id, current_user.id):
        raise _not_found()


@router.get("/agents/{agent_id}/performance", response_model=List[PerformancePoint])
async def agent_performance(
    agent_id: str,
    days: int = Query(settings.default_performance_days, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Daily requests and spend for the trailing window. 404 if the agent is not owned."""
    if await owned_agent(db, agent_id, current_user.id) is None:
        raise _not_found()
    return await get_agent_performance(db, agent_id, current_user.id, days=days)
