"""Value objects produced by the balance scorer, AI pipeline and fallback generator.

The camelCase aliases match the JSON contract given to the model, so the same classes
validate model output and serialize API responses.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from flowtrack.services.taxonomy import CATEGORIES, normalize_category

CategoryName = Literal["work", "health", "leisure", "social", "learning"]
Priority = Literal["low", "medium", "high"]

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*([aApP][mM])?\s*$")


def normalize_clock(value: object) -> Optional[str]:
    """Return ``HH:MM`` (24-hour) for inputs like ``7:00``, ``07:00:00`` or ``7:30 pm``."""
    if not isinstance(value, str):
        return None
    match = _CLOCK_PATTERN.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    meridiem = (match.group(3) or "").lower()
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def clock_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class _ValueModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ActivityEvent(_ValueModel):
    """A tracked calendar block as seen by the balance scorer."""

    category: str
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")

    @property
    def duration_minutes(self) -> float:
        start, end = self.start_time, self.end_time
        if (start.tzinfo is None) != (end.tzinfo is None):
            start = start.replace(tzinfo=start.tzinfo or timezone.utc)
            end = end.replace(tzinfo=end.tzinfo or timezone.utc)
        return max(0.0, (end - start).total_seconds() / 60)


class CategoryBreakdown(_ValueModel):
    work: int = Field(default=0, ge=0, le=100)
    health: int = Field(default=0, ge=0, le=100)
    leisure: int = Field(default=0, ge=0, le=100)
    social: int = Field(default=0, ge=0, le=100)
    learning: int = Field(default=0, ge=0, le=100)

    def as_dict(self) -> Dict[str, int]:
        return {category: getattr(self, category) for category in CATEGORIES}

    @property
    def total(self) -> int:
        return sum(self.as_dict().values())


class BalanceResult(_ValueModel):
    score: int = Field(..., ge=0, le=100)
    breakdown: CategoryBreakdown
    suggestions: List[str] = Field(default_factory=list, max_length=3)


class ScheduleItem(_ValueModel):
    title: str = Field(..., min_length=1)
    category: CategoryName
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    description: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _canonical_category(cls, value: object) -> object:
        return normalize_category(value) or value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _clock_format(cls, value: object) -> str:
        normalized = normalize_clock(value)
        if normalized is None:
            raise ValueError("time must be HH:MM (24-hour)")
        return normalized

    @model_validator(mode="after")
    def _ordered(self) -> "ScheduleItem":
        if clock_minutes(self.end_time) < clock_minutes(self.start_time):
            raise ValueError("endTime must not be before startTime")
        return self

    @property
    def duration_minutes(self) -> int:
        return clock_minutes(self.end_time) - clock_minutes(self.start_time)


class DatedScheduleItem(ScheduleItem):
    day: date = Field(alias="date")


class BalanceAnalysis(_ValueModel):
    work_percentage: int = Field(alias="workPercentage", ge=0, le=100)
    health_percentage: int = Field(alias="healthPercentage", ge=0, le=100)
    leisure_percentage: int = Field(alias="leisurePercentage", ge=0, le=100)
    social_percentage: int = Field(alias="socialPercentage", ge=0, le=100)
    learning_percentage: int = Field(alias="learningPercentage", ge=0, le=100)

    @classmethod
    def from_breakdown(cls, breakdown: CategoryBreakdown) -> "BalanceAnalysis":
        return cls(**{f"{category}_percentage": value for category, value in breakdown.as_dict().items()})


class SchedulePlanResponse(_ValueModel):
    schedule: List[ScheduleItem] = Field(..., min_length=1)
    balance_analysis: BalanceAnalysis = Field(alias="balanceAnalysis")
    suggestions: List[str] = Field(default_factory=list)


class Milestone(_ValueModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    week_index: int = Field(alias="weekIndex", ge=1)
    due_date: date = Field(alias="dueDate")
    priority: Priority = "medium"


class DailyTask(_ValueModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: CategoryName = "learning"
    duration_minutes: int = Field(alias="durationMinutes", ge=5, le=8 * 60)

    @field_validator("category", mode="before")
    @classmethod
    def _canonical_category(cls, value: object) -> object:
        return normalize_category(value) or value


class PlanAnalysis(_ValueModel):
    feasibility_score: int = Field(alias="feasibilityScore", ge=0, le=100)
    estimated_success_rate: int = Field(alias="estimatedSuccessRate", ge=0, le=100)
    key_success_factors: List[str] = Field(alias="keySuccessFactors", min_length=1)
    potential_challenges: List[str] = Field(alias="potentialChallenges", min_length=1)
    recommended_adjustments: List[str] = Field(alias="recommendedAdjustments", min_length=1)


class TrackingMetric(_ValueModel):
    name: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    frequency: str = "weekly"


class GoalPlan(_ValueModel):
    goal_title: str = Field(alias="goalTitle", min_length=1)
    description: str
    category: CategoryName = "learning"
    timeframe_days: int = Field(alias="timeframeDays", ge=1)
    daily_hours: float = Field(alias="dailyHours", ge=1, le=8)
    milestones: List[Milestone] = Field(..., min_length=1)
    daily_tasks: List[DailyTask] = Field(alias="dailyTasks", min_length=1)
    schedule: List[DatedScheduleItem] = Field(..., min_length=1)
    analysis: PlanAnalysis
    tracking_metrics: List[TrackingMetric] = Field(alias="trackingMetrics", min_length=1)


class ExtractedEvent(_ValueModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: CategoryName = "work"
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")

    @field_validator("category", mode="before")
    @classmethod
    def _canonical_category(cls, value: object) -> object:
        if value is None or value == "":
            return "work"
        return normalize_category(value) or value

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @model_validator(mode="after")
    def _ordered(self) -> "ExtractedEvent":
        if self.end_time < self.start_time:
            raise ValueError("endTime must not be before startTime")
        return self


class EventExtraction(_ValueModel):
    events: List[ExtractedEvent] = Field(..., min_length=1)
    suggestions: List[str] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ChatTurn(_ValueModel):
    role: Literal["user", "ai"]
    text: str


class Preferences(_ValueModel):
    """Free-text scheduling preferences; every field is optional."""

    work_hours: Optional[str] = Field(default=None, alias="workHours")
    workout_time: Optional[str] = Field(default=None, alias="workoutTime")
    available_time: Optional[str] = Field(default=None, alias="availableTime")
    restrictions: Optional[str] = None
    daily_time: Optional[str] = Field(default=None, alias="dailyTime")
    preferred_time: Optional[str] = Field(default=None, alias="preferredTime")
    experience_level: Optional[str] = Field(default=None, alias="experienceLevel")


ResponseType = Literal["conversational", "educational", "coaching", "technical", "creative"]
Tone = Literal["professional", "friendly", "motivational", "casual", "expert"]
DetailLevel = Literal["brief", "moderate", "detailed", "comprehensive"]


class ChatOptions(_ValueModel):
    enhance: bool = False
    response_type: ResponseType = Field(default="conversational", alias="responseType")
    tone: Tone = "friendly"
    detail_level: DetailLevel = Field(default="moderate", alias="detailLevel")
