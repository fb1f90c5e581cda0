"""Pydantic schemas for schedule generation."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from flowtrack.services.plan_models import Preferences, SchedulePlanResponse


class ScheduleRequest(BaseModel):
    user_id: UUID
    goals: str = Field(..., min_length=1, max_length=2000)
    preferences: Optional[Preferences] = None
    day: Optional[date] = Field(default=None, description="Day the generated events are saved on (defaults to today, UTC).")
    save: bool = True


class ScheduleResponse(BaseModel):
    plan: SchedulePlanResponse
    event_ids: List[UUID] = Field(default_factory=list)
    fallback_used: bool
    request_id: Optional[str] = None
