"""
Page data routes.

These back the dashboard pages the form actions redirect to. Each one is
guarded by `require_auth`, so an anonymous visitor is sent to the login
page instead of getting a 401.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import clear_session_cookie, get_optional_user, has_stale_cookie, require_auth
from app.api.dashboard import build_dashboard
from app.config import settings
from app.db import get_db, User
from app.schemas import AgentDetail, DashboardResponse, ProjectDetail, UserResponse
from app.services import (
    get_agent, get_agent_performance, get_project, get_project_activity,
    to_safe_user,
)

router = APIRouter(tags=["Pages"])


@router.get(settings.login_path)
async def login_page(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    """Login page state: whether the visitor already has a live session."""
    user = await get_optional_user(request, db)
    if has_stale_cookie(request, user):
        clear_session_cookie(response)
    return {
        "authenticated": user is not None,
        "redirect": settings.dashboard_path if user else None,
    }


@router.get(settings.dashboard_path, response_model=DashboardResponse)
async def dashboard_page(
    current_user: User = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await build_dashboard(db, current_user.id)


@router.get(settings.dashboard_path + "/account", response_model=UserResponse)
async def account_page(current_user: User = Depends(require_auth)):
    return to_safe_user(current_user)


@router.get(settings.dashboard_path + "/projects/{project_id}")
async def project_page(
    project_id: str,
    current_user: User = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    project = await get_project(db, project_id, current_user.id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    activity = await get_project_activity(db, project_id, current_user.id)
    return {
        "project": ProjectDetail.model_validate(project).model_dump(mode="json", by_alias=True),
        "activity": [item.model_dump(mode="json") for item in activity],
    }


@router.get(settings.dashboard_path + "/projects/{project_id}/agents/{agent_id}")
async def agent_page(
    project_id: str,
    agent_id: str,
    current_user: User = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    agent = await get_agent(db, agent_id, current_user.id)
    if agent is None or agent.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")

    performance = await get_agent_performance(db, agent_id, current_user.id)
    return {
        "agent": AgentDetail.model_validate(agent).model_dump(mode="json", by_alias=True),
        "project": {"id": agent.project.id, "name": agent.project.name},
        "performance": [point.model_dump() for point in performance],
    }
