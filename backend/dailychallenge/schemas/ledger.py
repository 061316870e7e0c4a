from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime

class LedgerEntryPublic(BaseModel):
    id: UUID
    user_id: UUID
    source_ref: str
    reason: str
    points: int
    note: str | None = None
    awarded_at: datetime

class PointsSnapshot(BaseModel):
    user_id: UUID
    total: int
    entries: list[LedgerEntryPublic]

class PointsHistory(BaseModel):
    total_entries: int
    page: int
    total_pages: int
    entries: list[LedgerEntryPublic]

class AwardRequest(BaseModel):
    user_id: UUID
    source_ref: str = Field(min_length=1, max_length=64)
    reason: str = Field(min_length=1, max_length=32)
    points: int = Field(ge=0)
    note: str | None = Field(default=None, max_length=255)

class AwardResponse(BaseModel):
    created: bool
    entry: LedgerEntryPublic

class ReconcileResponse(BaseModel):
    user_id: UUID
    cached_total: int
    ledger_total: int
    corrected: bool

class PointsLeaderboardRow(BaseModel):
    rank: int
    user_id: UUID
    total: int
