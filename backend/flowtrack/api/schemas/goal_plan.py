"""Pydantic schemas for goal planning."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from flowtrack.services.plan_models import GoalPlan, Preferences


class GoalPlanRequest(BaseModel):
    user_id: UUID
    description: str = Field(..., min_length=1, max_length=2000)
    title: Optional[str] = Field(default=None, max_length=200)
    timeframe: Optional[str] = Field(default=None, max_length=100, description='Free text such as "2 months".')
    preferences: Optional[Preferences] = None
    start_date: Optional[date] = None
    save: bool = True


class GoalPlanResponse(BaseModel):
    plan: GoalPlan
    goal_id: Optional[UUID] = None
    milestone_ids: List[UUID] = Field(default_factory=list)
    event_ids: List[UUID] = Field(default_factory=list)
    fallback_used: bool
    request_id: Optional[str] = None
