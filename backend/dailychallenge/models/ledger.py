from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, UniqueConstraint, CheckConstraint, Uuid, func
from dailychallenge.db import Base

class LedgerEntry(Base):
    """
    Append-only reward entries per user.
    source_ref identifies what earned the points:
      - "submission:<uuid>"  => participation / perfect_score / rank_N
      - "streak"             => streak_7 / streak_14 / streak_30 (once per user, ever)

    A user's points = Σ(points) over their entries; user_points.total is a cache of that sum.
    """
    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    source_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)

    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        # Insert-if-absent key: one award per (user, source, reason)
        UniqueConstraint("user_id", "source_ref", "reason", name="uq_ledger_award_once"),
        CheckConstraint("points >= 0", name="ck_ledger_points_non_negative"),
    )


class UserPoints(Base):
    """Cached running total; reconcile_total() rebuilds it from ledger_entries."""
    __tablename__ = "user_points"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
