from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.db import get_session
from dailychallenge.auth_deps import get_current_user, require_admin
from dailychallenge.schemas.ledger import (
    LedgerEntryPublic, PointsSnapshot, PointsHistory, AwardRequest, AwardResponse, ReconcileResponse,
    PointsLeaderboardRow,
)
from dailychallenge.services.points import (
    AwardPersistenceFailure, award, history, leaderboard, reconcile_total, total_points,
)

router = APIRouter(prefix="/points", tags=["points"])

@router.get("/me", response_model=PointsSnapshot)
async def my_points(
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
):
    _, recent = await history(session, user.id, limit=10)
    return PointsSnapshot(
        user_id=user.id,
        total=await total_points(session, user.id),
        entries=[LedgerEntryPublic.model_validate(e, from_attributes=True) for e in recent],
    )

@router.get("/history", response_model=PointsHistory)
async def my_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
):
    count, entries = await history(session, user.id, limit=limit, offset=(page - 1) * limit)
    return PointsHistory(
        total_entries=count,
        page=page,
        total_pages=(count + limit - 1) // limit,
        entries=[LedgerEntryPublic.model_validate(e, from_attributes=True) for e in entries],
    )

@router.post("/award", response_model=AwardResponse)
async def manual_award(
    payload: AwardRequest,
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    """Grant (or re-grant) a keyed award. Re-posting the same key is a no-op that returns the original entry."""
    try:
        res = await award(session, payload.user_id, payload.source_ref, payload.points, payload.reason, payload.note)
    except AwardPersistenceFailure:
        raise HTTPException(status_code=503, detail="Award could not be recorded, retry later")
    return AwardResponse(created=res.created, entry=LedgerEntryPublic.model_validate(res.entry, from_attributes=True))

@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    user_id: UUID | None = Query(default=None, description="Admins may reconcile another user"),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
):
    target = user.id
    if user_id is not None and user_id != user.id:
        if user.role != "admin":
            raise HTTPException(status_code=403, detail="Admin access required")
        target = user_id
    cached, actual, corrected = await reconcile_total(session, target)
    return ReconcileResponse(user_id=target, cached_total=cached, ledger_total=actual, corrected=corrected)

@router.get("/leaderboard", response_model=list[PointsLeaderboardRow])
async def points_leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return [
        PointsLeaderboardRow(rank=rank, user_id=user_id, total=total)
        for (rank, user_id, total) in await leaderboard(session, limit)
    ]
