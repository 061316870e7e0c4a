from __future__ import annotations
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.db import get_session
from dailychallenge.auth_deps import get_current_user, require_admin
from dailychallenge.services.reporting import aggregate_stats, recent_activity, generation_trend, user_daily_stats

router = APIRouter(tags=["admin"])

@router.get("/admin/stats")
async def stats(
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    return await aggregate_stats(session)

@router.get("/admin/activity")
async def activity(
    limit: int = Query(default=20, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    return await recent_activity(session, limit)

@router.get("/admin/trends")
async def trends(
    days: int = Query(default=30, ge=1, le=365, description="Number of days to look back"),
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    return {"period_days": days, "challenges_created": await generation_trend(session, days)}

@router.get("/me/daily-stats")
async def my_daily_stats(
    days: int = Query(default=30, ge=1, le=365),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
):
    return await user_daily_stats(session, user.id, days)
