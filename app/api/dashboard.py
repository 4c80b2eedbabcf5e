"""Dashboard analytics endpoints - activity feed, spend charts, combined overview"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user
from app.config import settings
from app.db import get_db, User
from app.schemas import ActivityItem, DashboardResponse, ProjectComparison, SpendChartPoint
from app.services import (
    get_project_comparison_data, get_user_activity, get_user_project_stats,
    get_user_projects, get_user_spend_chart_data,
)

router = APIRouter(tags=["Dashboard"])


async def build_dashboard(db: AsyncSession, user_id: str, days: int = settings.default_chart_days) -> DashboardResponse:
    """Everything the overview page shows, in one round trip."""
    return DashboardResponse(
        stats=await get_user_project_stats(db, user_id),
        projects=await get_user_projects(db, user_id),
        activity=await get_user_activity(db, user_id),
        spend_chart=await get_user_spend_chart_data(db, user_id, days=days),
        comparison=await get_project_comparison_data(db, user_id),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    days: int = Query(settings.default_chart_days, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await build_dashboard(db, current_user.id, days=days)


@router.get("/activity", response_model=List[ActivityItem])
async def activity(
    limit: int = Query(settings.default_activity_limit, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recent ledger entries across all projects."""
    return await get_user_activity(db, current_user.id, limit=limit)


@router.get("/charts/spend", response_model=List[SpendChartPoint])
async def spend_chart(
    days: int = Query(settings.default_chart_days, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Daily confirmed spend in USD, one point per day, oldest first."""
    return await get_user_spend_chart_data(db, current_user.id, days=days)


@router.get("/charts/projects", response_model=List[ProjectComparison])
async def project_comparison(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_project_comparison_data(db, current_user.id)
