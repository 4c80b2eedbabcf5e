"""
Project endpoints.

POST   /api/projects                 - create project form action (redirects)
GET    /api/projects                 - project summaries
GET    /api/projects/stats           - dashboard totals
GET    /api/projects/{id}            - project with vault and agents
PATCH  /api/projects/{id}            - rename / archive
DELETE /api/projects/{id}            - delete with vault, agents and ledger
GET    /api/projects/{id}/activity   - recent ledger entries
POST   /api/projects/{id}/fund       - credit the vault
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import action_error, get_current_user, require_auth
from app.config import settings
from app.db import get_db, User
from app.schemas import (
    ActivityItem, EventResponse, FundingMetadata, FundingRequest, ProjectDetail,
    ProjectResponse, ProjectStats, ProjectSummary, ProjectUpdate,
)
from app.services import (
    create_funding_event, create_project, delete_project, get_project,
    get_project_activity, get_user_project_stats, get_user_projects,
    update_project, usd_to_minor,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")


@router.post("")
async def create_project_action(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    current_user: User = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Create a project with its vault, then redirect to its page."""
    if not name or not name.strip():
        return action_error("Project name is required")

    try:
        project = await create_project(
            db,
            current_user.id,
            name=name.strip(),
            description=(description or "").strip() or None,
        )
    except Exception:
        logger.exception("Failed to create project for user %s", current_user.id)
        return action_error("Failed to create project", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return RedirectResponse(
        url=f"{settings.dashboard_path}/projects/{project.id}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("", response_model=List[ProjectSummary])
async def list_projects(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_projects(db, current_user.id)


@router.get("/stats", response_model=ProjectStats)
async def project_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_project_stats(db, current_user.id)


@router.get("/{project_id}", response_model=ProjectDetail)
async def read_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await get_project(db, project_id, current_user.id)
    if project is None:
        raise _not_found()
    return ProjectDetail.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def patch_project(
    project_id: str,
    body: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await update_project(db, project_id, current_user.id, body)
    if project is None:
        raise _not_found()
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_project(db, project_id, current_user.id):
        raise _not_found()


@router.get("/{project_id}/activity", response_model=List[ActivityItem])
async def project_activity(
    project_id: str,
    limit: int = Query(settings.project_activity_limit, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_project_activity(db, project_id, current_user.id, limit=limit)


@router.post("/{project_id}/fund", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def fund_project(
    project_id: str,
    body: FundingRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record a funding event and credit the project's vault."""
    try:
        amount = usd_to_minor(body.amount)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid amount")
    if amount is None or amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be positive")

    metadata = None
    if body.source or body.note:
        metadata = FundingMetadata(source=body.source, note=body.note)

    event = await create_funding_event(
        db, project_id, current_user.id, amount, tx_hash=body.tx_hash, metadata=metadata
    )
    if event is None:
        raise _not_found()
    return EventResponse.model_validate(event)
