"""Pydantic schemas for balance analysis and suggestions."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from flowtrack.services.plan_models import ActivityEvent, BalanceResult


class BalanceAnalyzeRequest(BaseModel):
    events: List[ActivityEvent] = Field(default_factory=list)


class BalanceResponse(BaseModel):
    day: Optional[date] = None
    result: BalanceResult
    request_id: Optional[str] = None


class SuggestionsResponse(BaseModel):
    day: date
    suggestions: List[str]
    fallback_used: bool
    request_id: Optional[str] = None


class BalanceSnapshot(BaseModel):
    day: date
    result: BalanceResult


class LatestBalanceResponse(BaseModel):
    snapshot: Optional[BalanceSnapshot] = None
    request_id: Optional[str] = None


class BalanceHistoryResponse(BaseModel):
    days: int
    snapshots: List[BalanceSnapshot]
    request_id: Optional[str] = None
