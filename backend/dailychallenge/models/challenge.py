from __future__ import annotations
import uuid
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Date, DateTime, Text, Uuid, func
from dailychallenge.db import Base, JSONType

class Challenge(Base):
    """
    One scheduled problem per calendar date.
    test_cases: ordered list of {input, expected_output, weight}
    scoring_criteria: {factor: {weight, description}} (bare numbers accepted too)
    prizes: {first|second|third: {amount, type, currency}}
    winners: written only by the prize engine, at most 3 rows
    """
    __tablename__ = "challenges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[date] = mapped_column(Date, unique=True, index=True, nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text(), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)  # Easy|Medium|Hard
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    time_limit_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    scoring_criteria: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    test_cases: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    examples: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    constraints: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    hint: Mapped[str | None] = mapped_column(Text(), nullable=True)

    prizes: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    winners: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
