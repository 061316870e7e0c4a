from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

from dailychallenge.schemas.challenge import Prize

SubmissionStatus = Literal["submitted", "passed", "failed"]
Rating = Literal["Expert", "Advanced", "Intermediate", "Competent", "Beginner"]


class SubmitRequest(BaseModel):
    code: str = Field(min_length=1)
    language: str = Field(default="javascript", max_length=32)
    started_at: datetime | None = None
    hints_used: int = Field(default=0, ge=0)


class TestResult(BaseModel):
    __test__ = False  # not a pytest class

    test_case_index: int
    input: str
    expected_output: str
    actual_output: str = ""
    passed: bool
    execution_time: float = Field(default=0, ge=0)  # ms
    memory_usage: float = Field(default=0, ge=0)    # MB
    error: str | None = None


class ScoreResult(BaseModel):
    total: int = Field(ge=0, le=100)
    rating: Rating
    breakdown: dict


class SubmissionPublic(BaseModel):
    id: UUID
    challenge_id: UUID
    user_id: UUID
    language: str
    status: SubmissionStatus
    score: int
    rating: Rating
    breakdown: dict = Field(default_factory=dict)
    test_results: list[TestResult] = Field(default_factory=list)
    completion_time_seconds: int
    submitted_at: datetime
    rank: int | None = None
    prize_eligible: bool = False


class LeaderboardRow(BaseModel):
    rank: int
    user_id: UUID
    submission_id: UUID
    score: int
    completion_time: int
    breakdown: dict = Field(default_factory=dict)
    is_winner: bool
    prize: Prize | None = None


class RerankResult(BaseModel):
    challenge_id: UUID
    ranked: int
