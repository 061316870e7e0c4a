from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, Uuid, func
from dailychallenge.db import Base, JSONType


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    challenge_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # Identity lives in the auth service; no FK
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    code: Mapped[str] = mapped_column(Text(), nullable=False)
    language: Mapped[str] = mapped_column(String(32), nullable=False, default="javascript")

    test_results: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    score_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0..100
    score_breakdown: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    rating: Mapped[str] = mapped_column(String(16), nullable=False, default="Beginner")

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completion_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    hints_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="submitted")  # 'submitted'|'passed'|'failed'

    # Derived by the ranking engine; recomputable from score_total + completion_time_seconds
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prize_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_submission_one_per_challenge"),
    )


# (challenge, status, score desc, time asc) range scan used by reranking
Index(
    "ix_submissions_ranking",
    Submission.challenge_id,
    Submission.status,
    Submission.score_total.desc(),
    Submission.completion_time_seconds,
)
