from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, List
from uuid import UUID
import datetime as dt

Difficulty = Literal["Easy", "Medium", "Hard"]
PrizeType = Literal["mobile_card", "cash", "other"]
PrizeStatus = Literal["pending", "claimed", "expired"]

class TestCase(BaseModel):
    __test__ = False  # not a pytest class

    input: str
    expected_output: str
    weight: float = Field(default=1, ge=0)

class Example(BaseModel):
    input: str
    output: str
    explanation: str | None = None

class ScoringFactor(BaseModel):
    weight: float = Field(ge=0)
    description: str | None = None

class ScoringCriteria(BaseModel):
    correctness: ScoringFactor | None = None
    speed: ScoringFactor | None = None
    efficiency: ScoringFactor | None = None

    @field_validator("correctness", "speed", "efficiency", mode="before")
    @classmethod
    def bare_weight(cls, v):
        # {"speed": 0.3} is shorthand for {"speed": {"weight": 0.3}}
        if isinstance(v, (int, float)):
            return {"weight": v}
        return v

class Prize(BaseModel):
    amount: float = Field(ge=0)
    type: PrizeType = "mobile_card"
    currency: str = "ETB"

class Prizes(BaseModel):
    first: Prize | None = None
    second: Prize | None = None
    third: Prize | None = None

class Winner(BaseModel):
    rank: int = Field(ge=1, le=3)
    user_id: UUID
    submission_id: UUID
    score: int
    completion_time: int
    prize: Prize | None = None
    prize_status: PrizeStatus = "pending"

class ChallengeCreate(BaseModel):
    date: dt.date
    title: str = Field(min_length=3, max_length=200)
    description: str
    difficulty: Difficulty = "Medium"
    category: str = Field(default="Algorithms", max_length=64)
    time_limit_minutes: int = Field(default=30, ge=1)
    max_points: int = Field(default=100, ge=1, le=100)
    scoring_criteria: ScoringCriteria = Field(default_factory=ScoringCriteria)
    test_cases: List[TestCase]
    examples: List[Example] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    hint: str | None = None
    prizes: Prizes = Field(default_factory=Prizes)
    is_active: bool = True

    @field_validator("test_cases")
    @classmethod
    def non_empty(cls, v: list[TestCase]):
        if not v:
            raise ValueError("test_cases must not be empty")
        return v

class ChallengePublic(BaseModel):
    id: UUID
    date: dt.date
    title: str
    description: str
    difficulty: Difficulty
    category: str
    time_limit_minutes: int
    max_points: int
    scoring_criteria: ScoringCriteria
    examples: List[Example]
    constraints: List[str]
    hint: str | None = None
    test_case_count: int
    prizes: Prizes
    winners: List[Winner]
    is_active: bool
    created_at: dt.datetime

class ScheduleResponse(BaseModel):
    requested_date: dt.date
    scheduled_date: dt.date
    scheduling_conflict: bool
    challenge: ChallengePublic

class DateAvailability(BaseModel):
    date: dt.date
    day_name: str
    is_available: bool
    challenge_id: UUID | None = None
    challenge_title: str | None = None

class WeeklySchedule(BaseModel):
    week_start: dt.date
    week_end: dt.date
    reserved_count: int
    available_count: int
    is_fully_booked: bool
    needs_attention: bool
    days: List[DateAvailability]
