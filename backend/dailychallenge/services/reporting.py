from __future__ import annotations
from datetime import date, datetime, timedelta, timezone as dt_tz
from uuid import UUID

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.models.challenge import Challenge
from dailychallenge.models.submission import Submission
from dailychallenge.services.points import current_streak

# ---------- admin projections (read-only) ----------

async def _grouped(session: AsyncSession, col) -> dict[str, int]:
    rows = (await session.execute(
        select(col, func.count()).group_by(col).order_by(func.count().desc())
    )).all()
    return {str(k): int(n) for (k, n) in rows}


async def aggregate_stats(session: AsyncSession) -> dict:
    total_challenges = await session.scalar(select(func.count()).select_from(Challenge)) or 0
    total_submissions = await session.scalar(select(func.count()).select_from(Submission)) or 0
    by_category = await _grouped(session, Challenge.category)
    by_difficulty = await _grouped(session, Challenge.difficulty)
    return {
        "total_challenges": int(total_challenges),
        "total_submissions": int(total_submissions),
        "submissions_by_status": await _grouped(session, Submission.status),
        "challenges_by_difficulty": by_difficulty,
        "challenges_by_category": by_category,
        "most_used_category": next(iter(by_category), None),
        "most_used_difficulty": next(iter(by_difficulty), None),
    }


async def recent_activity(session: AsyncSession, limit: int = 20) -> list[dict]:
    rows = (await session.execute(
        select(Submission, Challenge.title, Challenge.date)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .order_by(Submission.submitted_at.desc())
        .limit(limit)
    )).all()
    return [
        {
            "submission_id": str(s.id),
            "user_id": str(s.user_id),
            "challenge_id": str(s.challenge_id),
            "challenge_title": title,
            "challenge_date": ch_date.isoformat(),
            "status": s.status,
            "score": s.score_total,
            "submitted_at": s.submitted_at,
        }
        for (s, title, ch_date) in rows
    ]


async def generation_trend(session: AsyncSession, days: int = 30) -> list[dict]:
    """Challenges created per UTC day over the last `days` days, zero-filled."""
    today = datetime.now(dt_tz.utc).date()
    start = today - timedelta(days=days - 1)
    created = (await session.scalars(
        select(Challenge.created_at).where(
            Challenge.created_at >= datetime(start.year, start.month, start.day, tzinfo=dt_tz.utc)
        )
    )).all()
    counts: dict[date, int] = {}
    for ts in created:
        d = ts.date()
        counts[d] = counts.get(d, 0) + 1
    return [
        {"date": (start + timedelta(days=i)).isoformat(), "count": counts.get(start + timedelta(days=i), 0)}
        for i in range(days)
    ]

# ---------- per-user ----------

async def user_daily_stats(session: AsyncSession, user_id: UUID, days: int = 30) -> dict:
    today = datetime.now(dt_tz.utc).date()
    since = today - timedelta(days=days)
    row = (await session.execute(
        select(
            func.count(Submission.id),
            func.coalesce(func.sum(case((Submission.status == "passed", 1), else_=0)), 0),
            func.avg(Submission.score_total),
            func.max(Submission.score_total),
        )
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.user_id == user_id, Challenge.date >= since)
    )).one()
    prizes_won = await session.scalar(
        select(func.count()).select_from(Submission).where(
            Submission.user_id == user_id, Submission.prize_eligible.is_(True), Submission.rank <= 3
        )
    ) or 0
    today_sub = await session.scalar(
        select(Submission)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.user_id == user_id, Challenge.date == today)
    )
    total, passed, avg_score, best = row
    return {
        "period_days": days,
        "total_submissions": int(total or 0),
        "passed_submissions": int(passed or 0),
        "average_score": round(float(avg_score), 2) if avg_score is not None else 0,
        "best_score": int(best or 0),
        "prizes_won": int(prizes_won),
        "current_streak": await current_streak(session, user_id),
        "today_submission_id": str(today_sub.id) if today_sub else None,
    }
