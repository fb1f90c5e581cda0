"""Prompt templates for every AI-assisted task.

Each task kind is a small dataclass whose ``render`` returns the complete instruction
block. Rendering is pure: no I/O, no clock reads (callers pass dates in) and no failures.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Sequence, Tuple

from flowtrack.services.plan_models import BalanceResult, ChatOptions, ChatTurn, Preferences, ScheduleItem
from flowtrack.services.taxonomy import CATEGORIES, OPTIMAL_DISTRIBUTION

MAX_CONTEXT_TURNS = 5
MAX_CONTEXT_EVENTS = 10
MAX_CONTEXT_GOALS = 5
DEFAULT_TIMEFRAME_DAYS = 30
MAX_TIMEFRAME_DAYS = 365
DEFAULT_DAILY_HOURS = 2.0
MIN_DAILY_HOURS = 1.0
MAX_DAILY_HOURS = 8.0

CATEGORY_LIST = "|".join(CATEGORIES)
TIME_RULE = "All times must use 24-hour HH:MM format (for example 07:30 or 18:00)."


class PromptKind(str, Enum):
    SCHEDULE = "schedule"
    CHAT = "chat"
    GOAL_PLAN = "goal_plan"
    EVENT_EXTRACTION = "event_extraction"
    SUGGESTIONS = "suggestions"


# ---------------------------------------------------------------------------
# Free-text parameter parsing
# ---------------------------------------------------------------------------

_NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "couple of": 2,
    "few": 3,
}
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}
_QUANTITY = r"(\d+(?:\.\d+)?|" + "|".join(sorted(map(re.escape, _NUMBER_WORDS), key=len, reverse=True)) + r")"
_TIMEFRAME_PATTERN = re.compile(r"\b" + _QUANTITY + r"\s*-?\s*(day|week|month|year)s?\b", re.IGNORECASE)
_HOURS_PATTERN = re.compile(r"\b" + _QUANTITY + r"\s*-?\s*(hours?|hrs?|h\b|minutes?|mins?)", re.IGNORECASE)


def _quantity(token: str) -> float:
    token = token.lower()
    if token in _NUMBER_WORDS:
        return float(_NUMBER_WORDS[token])
    return float(token)


def parse_timeframe_days(timeframe: Optional[str]) -> int:
    """Translate "2 months" / "3 weeks" / "10 days" into a day count (30 if unparseable, at most a year)."""
    if not timeframe:
        return DEFAULT_TIMEFRAME_DAYS
    match = _TIMEFRAME_PATTERN.search(timeframe)
    if not match:
        return DEFAULT_TIMEFRAME_DAYS
    days = _quantity(match.group(1)) * _UNIT_DAYS[match.group(2).lower()]
    if days >= MAX_TIMEFRAME_DAYS:
        return MAX_TIMEFRAME_DAYS
    days = int(round(days))
    return days if days > 0 else DEFAULT_TIMEFRAME_DAYS


def parse_daily_hours(text: Optional[str]) -> float:
    """Daily time budget in hours, clamped to [1, 8]; 2 when nothing usable is found."""
    if not text:
        return DEFAULT_DAILY_HOURS
    match = _HOURS_PATTERN.search(text)
    if not match:
        return DEFAULT_DAILY_HOURS
    value = _quantity(match.group(1))
    if match.group(2).lower().startswith("m"):
        value = value / 60
    return min(MAX_DAILY_HOURS, max(MIN_DAILY_HOURS, value))


def format_hours(hours: float) -> str:
    return f"{hours:g}"


# ---------------------------------------------------------------------------
# Chat message classification
# ---------------------------------------------------------------------------

MESSAGE_TYPE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("technical_career", ("dsa", "algorithm", "leetcode", "coding", "programming", "interview")),
    ("planning", ("schedule", "plan", "time management")),
    ("goal_setting", ("goal", "achieve", "target")),
    ("wellness", ("stress", "overwhelmed", "anxiety")),
    ("learning", ("learn", "study", "education")),
)

SPECIALIST_INSTRUCTIONS: Dict[str, str] = {
    "technical_career": (
        "You are an expert career coach specializing in software engineering careers. "
        "Focus on technical interview preparation, coding practice strategies, career progression "
        "and realistic timelines. Provide actionable steps and resources."
    ),
    "planning": (
        "You are a productivity expert and time management coach. Focus on realistic schedules, "
        "prioritization, time blocking and sustainable habits. Provide structured plans."
    ),
    "goal_setting": (
        "You are a goal-achievement specialist. Focus on SMART goals, breaking objectives into "
        "milestones, motivation and overcoming obstacles. Make goals specific and measurable."
    ),
    "wellness": (
        "You are a wellness coach who understands work-life balance. Focus on stress management, "
        "self-care and building resilience. Be empathetic and supportive."
    ),
    "learning": (
        "You are an educational expert and learning strategist. Focus on effective study methods, "
        "resource recommendations and structured learning paths."
    ),
    "general": (
        "You are a knowledgeable assistant who adapts to the user's needs. "
        "Give helpful, relevant information tailored to the question."
    ),
}

RECOMMENDED_SETTINGS: Dict[str, Dict[str, str]] = {
    "technical_career": {"response_type": "coaching", "tone": "professional", "detail_level": "detailed"},
    "planning": {"response_type": "coaching", "tone": "professional", "detail_level": "comprehensive"},
    "goal_setting": {"response_type": "coaching", "tone": "motivational", "detail_level": "detailed"},
    "wellness": {"response_type": "coaching", "tone": "friendly", "detail_level": "moderate"},
    "learning": {"response_type": "educational", "tone": "expert", "detail_level": "comprehensive"},
    "general": {"response_type": "conversational", "tone": "friendly", "detail_level": "moderate"},
}

RESPONSE_TYPE_PROMPTS = {
    "conversational": "You are a helpful AI assistant focused on natural conversation.",
    "educational": "You are an expert tutor who explains concepts clearly with examples.",
    "coaching": "You are a personal coach who provides actionable advice, motivation, and structured guidance.",
    "technical": "You are a technical expert who provides precise, accurate information with practical solutions.",
    "creative": "You are a creative assistant who thinks outside the box and offers innovative ideas.",
}

TONE_PROMPTS = {
    "professional": "Maintain a professional, business-appropriate tone.",
    "friendly": "Use a warm, approachable, and friendly tone.",
    "motivational": "Be encouraging, inspiring, and energetic.",
    "casual": "Keep it relaxed, informal, and conversational.",
    "expert": "Demonstrate deep expertise and authority.",
}

DETAIL_PROMPTS = {
    "brief": "Keep your response concise (1-2 sentences).",
    "moderate": "Provide a balanced response with key points (2-4 sentences).",
    "detailed": "Give a thorough explanation with examples (1-2 paragraphs).",
    "comprehensive": "Provide an in-depth response covering all aspects.",
}

ENHANCEMENT_OPTIONS = {
    "make_more_specific": "Add specific requirements, timelines, and constraints",
    "add_context": "Include your current situation, experience level, or background",
    "clarify_goals": "Specify what success looks like and your ultimate objective",
    "request_structure": "Ask for step-by-step plans, frameworks, or organized responses",
    "seek_resources": "Request specific tools, links, or additional learning materials",
}

EXAMPLE_ENHANCEMENTS = {
    "technical_career": [
        "Break this down into weekly milestones",
        "Include specific resources and practice schedules",
        "Consider my current skill level and time constraints",
    ],
    "planning": [
        "Create a detailed daily schedule",
        "Account for potential obstacles and backup plans",
        "Include time for review and adjustment",
    ],
}
DEFAULT_EXAMPLE_ENHANCEMENTS = [
    "Make this more specific to my situation",
    "Provide actionable steps I can take today",
    "Include examples or case studies",
]


def detect_message_type(message: str) -> str:
    lowered = message.lower()
    for message_type, keywords in MESSAGE_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return message_type
    return "general"


def analyze_prompt(message: str) -> Dict[str, Any]:
    """Describe how a chat message would be classified and which settings suit it."""
    message_type = detect_message_type(message)
    return {
        "detected_type": message_type,
        "recommended_settings": dict(RECOMMENDED_SETTINGS[message_type]),
        "enhancement_options": dict(ENHANCEMENT_OPTIONS),
        "examples": list(EXAMPLE_ENHANCEMENTS.get(message_type, DEFAULT_EXAMPLE_ENHANCEMENTS)),
    }


# ---------------------------------------------------------------------------
# Shared rendering helpers
# ---------------------------------------------------------------------------


def _or_default(value: Optional[str], default: str) -> str:
    cleaned = (value or "").strip()
    return cleaned or default


def _preferences_block(preferences: Optional[Preferences]) -> str:
    prefs = preferences or Preferences()
    lines = [
        f"- Work hours: {_or_default(prefs.work_hours, 'Standard 9-5')}",
        f"- Workout time: {_or_default(prefs.workout_time, 'Flexible')}",
        f"- Available time: {_or_default(prefs.available_time, 'Evenings and weekends')}",
        f"- Restrictions: {_or_default(prefs.restrictions, 'None')}",
    ]
    if prefs.preferred_time:
        lines.append(f"- Preferred session time: {prefs.preferred_time.strip()}")
    if prefs.experience_level:
        lines.append(f"- Experience level: {prefs.experience_level.strip()}")
    return "\n".join(lines)


def _conversation_block(turns: Sequence[ChatTurn]) -> str:
    recent = list(turns)[-MAX_CONTEXT_TURNS:]
    if not recent:
        return "No previous conversation."
    return "\n".join(f"{'User' if turn.role == 'user' else 'AI'}: {turn.text.strip()}" for turn in recent)


def _bullets(lines: Sequence[str], empty: str) -> str:
    cleaned = [line.strip() for line in lines if line and line.strip()]
    if not cleaned:
        return empty
    return "\n".join(f"- {line}" for line in cleaned)


def _json_skeleton(example: Dict[str, Any]) -> str:
    return json.dumps(example, indent=2)


def _optimal_line() -> str:
    return ", ".join(f"{category} {share}%" for category, share in OPTIMAL_DISTRIBUTION.items())


SCHEDULE_SKELETON = {
    "schedule": [
        {
            "title": "Morning workout",
            "category": "health",
            "startTime": "07:00",
            "endTime": "08:00",
            "description": "30 min cardio + 15 min stretching",
        }
    ],
    "balanceAnalysis": {
        "workPercentage": 40,
        "healthPercentage": 25,
        "leisurePercentage": 20,
        "socialPercentage": 10,
        "learningPercentage": 5,
    },
    "suggestions": ["Take regular breaks", "Schedule social activities"],
}

EVENT_EXTRACTION_SKELETON = {
    "events": [
        {
            "title": "Gym session",
            "description": "Leg day",
            "category": "health",
            "startTime": "2025-01-15T18:00:00",
            "endTime": "2025-01-15T19:00:00",
        }
    ],
    "suggestions": ["Pack your gym bag the night before"],
    "clarifications": ["Should this repeat every week?"],
}

SUGGESTIONS_SKELETON = {"suggestions": ["Block 30 minutes for a walk after lunch"]}


def _goal_plan_skeleton(daily_minutes: int) -> Dict[str, Any]:
    return {
        "goalTitle": "Learn conversational Spanish",
        "description": "Reach comfortable everyday conversation",
        "category": "learning",
        "milestones": [
            {
                "title": "Master core vocabulary",
                "description": "Learn the 300 most common words",
                "weekIndex": 1,
                "dueDate": "YYYY-MM-DD",
                "priority": "high",
            }
        ],
        "dailyTasks": [
            {
                "title": "Flashcard review",
                "description": "Spaced-repetition deck",
                "category": "learning",
                "durationMinutes": min(daily_minutes, 30),
            }
        ],
        "schedule": [
            {
                "date": "YYYY-MM-DD",
                "title": "Vocabulary session",
                "category": "learning",
                "startTime": "19:00",
                "endTime": "20:00",
                "description": "New words + review",
            }
        ],
        "analysis": {
            "feasibilityScore": 80,
            "estimatedSuccessRate": 70,
            "keySuccessFactors": ["Daily consistency"],
            "potentialChallenges": ["Busy weeks"],
            "recommendedAdjustments": ["Shorter sessions on workdays"],
        },
        "trackingMetrics": [{"name": "Words learned", "target": "300", "frequency": "weekly"}],
    }


# ---------------------------------------------------------------------------
# Prompt variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchedulePrompt:
    kind: ClassVar[PromptKind] = PromptKind.SCHEDULE

    goals: str
    preferences: Optional[Preferences] = None
    current_schedule: Sequence[ScheduleItem] = ()
    existing_goals: Sequence[str] = ()

    def render(self) -> str:
        existing = _bullets(
            [f"{item.start_time}-{item.end_time} {item.title} ({item.category})" for item in self.current_schedule],
            "Nothing scheduled yet.",
        )
        return (
            "You are a personal productivity and life balance assistant. Based on the following goals and "
            "preferences, create a balanced daily schedule.\n\n"
            f"Goals: {self.goals.strip()}\n\n"
            f"Preferences:\n{_preferences_block(self.preferences)}\n\n"
            f"Existing goals:\n{_bullets(list(self.existing_goals)[:MAX_CONTEXT_GOALS], 'None recorded.')}\n\n"
            f"Already scheduled today (keep these, do not overlap them):\n{existing}\n\n"
            "Rules:\n"
            f"- Every item's category must be one of: {CATEGORY_LIST}.\n"
            f"- {TIME_RULE}\n"
            "- endTime must be later than startTime and items must not overlap.\n"
            f"- Aim for roughly this distribution of tracked time: {_optimal_line()}.\n\n"
            "Return ONLY a valid JSON object with this exact structure, no commentary:\n"
            f"{_json_skeleton(SCHEDULE_SKELETON)}\n\n"
            "Focus on creating a balanced schedule that promotes work-life balance and addresses the stated goals."
        )


@dataclass(frozen=True)
class ChatPrompt:
    kind: ClassVar[PromptKind] = PromptKind.CHAT

    message: str
    context: Sequence[ChatTurn] = ()
    options: ChatOptions = field(default_factory=ChatOptions)

    def render(self) -> str:
        if self.options.enhance:
            return self._render_enhanced()
        return (
            "You are FlowTrack AI, a personal productivity and life balance assistant. "
            "Help the user with their scheduling and balance questions.\n\n"
            f"Previous context:\n{_conversation_block(self.context)}\n\n"
            f"User message: {self.message.strip()}\n\n"
            "Provide a helpful, encouraging response focused on productivity and life balance:"
        )

    def _render_enhanced(self) -> str:
        message_type = detect_message_type(self.message)
        header = "\n".join(
            [
                RESPONSE_TYPE_PROMPTS[self.options.response_type],
                TONE_PROMPTS[self.options.tone],
                DETAIL_PROMPTS[self.options.detail_level],
            ]
        )
        context = ""
        if self.context:
            context = f"Previous conversation context:\n{_conversation_block(self.context)}\n\n"
        return (
            f"{header}\n\n"
            f"{context}"
            f"{SPECIALIST_INSTRUCTIONS[message_type]}\n\n"
            f'User message: "{self.message.strip()}"\n\n'
            "Please respond appropriately:"
        )


@dataclass(frozen=True)
class GoalPlanPrompt:
    kind: ClassVar[PromptKind] = PromptKind.GOAL_PLAN

    description: str
    timeframe: Optional[str]
    start_date: date
    preferences: Optional[Preferences] = None
    existing_goals: Sequence[str] = ()
    existing_events: Sequence[str] = ()

    @property
    def timeframe_days(self) -> int:
        return parse_timeframe_days(self.timeframe)

    @property
    def daily_hours(self) -> float:
        prefs = self.preferences or Preferences()
        return parse_daily_hours(prefs.daily_time or prefs.available_time)

    @property
    def milestone_count(self) -> int:
        return max(1, min(12, self.timeframe_days // 7))

    def render(self) -> str:
        days = self.timeframe_days
        hours = self.daily_hours
        daily_minutes = int(round(hours * 60))
        return (
            "You are an expert goal-planning coach. Turn the user's objective into a realistic, "
            "measurable plan made of weekly milestones, daily tasks and a dated two-week schedule.\n\n"
            f"Goal: {self.description.strip()}\n"
            f"Requested timeframe: {_or_default(self.timeframe, 'Not specified')}\n"
            f"Plan start date: {self.start_date.isoformat()}\n\n"
            f"Preferences:\n{_preferences_block(self.preferences)}\n\n"
            f"Existing goals (stay consistent with them):\n"
            f"{_bullets(list(self.existing_goals)[:MAX_CONTEXT_GOALS], 'None recorded.')}\n\n"
            f"Upcoming events (avoid clashes):\n"
            f"{_bullets(list(self.existing_events)[:MAX_CONTEXT_EVENTS], 'None recorded.')}\n\n"
            "Plan parameters you must respect:\n"
            f"- Total plan duration: {days} days.\n"
            f"- Daily time budget: {format_hours(hours)} hours ({daily_minutes} minutes); "
            "daily tasks together must fit inside it.\n"
            f"- Create {self.milestone_count} milestones, one per week, with weekIndex starting at 1.\n"
            "- The schedule covers the first 14 days, one or two sessions per day.\n"
            f"- Every category must be one of: {CATEGORY_LIST}.\n"
            f"- {TIME_RULE}\n"
            "- Dates use YYYY-MM-DD; priority is low, medium or high; scores are integers 0-100.\n\n"
            "Return ONLY a valid JSON object with this exact structure, no commentary:\n"
            f"{_json_skeleton(_goal_plan_skeleton(daily_minutes))}"
        )


@dataclass(frozen=True)
class EventExtractionPrompt:
    kind: ClassVar[PromptKind] = PromptKind.EVENT_EXTRACTION

    message: str
    now: datetime
    recent_events: Sequence[str] = ()
    goals: Sequence[str] = ()
    preferences: Optional[Preferences] = None

    def render(self) -> str:
        prefs = (self.preferences or Preferences()).model_dump(exclude_none=True)
        return (
            "You are an AI assistant that helps users create calendar events from natural language descriptions.\n\n"
            f"User's recent events for context:\n"
            f"{_bullets(list(self.recent_events)[:MAX_CONTEXT_EVENTS], 'None recorded.')}\n\n"
            f"User's current goals:\n{_bullets(list(self.goals)[:MAX_CONTEXT_GOALS], 'None recorded.')}\n\n"
            f"User preferences: {json.dumps(prefs)}\n\n"
            "Parse the following message and extract event details. "
            "Return ONLY a valid JSON object with this exact structure:\n"
            f"{_json_skeleton(EVENT_EXTRACTION_SKELETON)}\n\n"
            f"- category must be one of: {CATEGORY_LIST}.\n"
            "- startTime and endTime are ISO 8601 datetimes; endTime must be after startTime.\n"
            "- If the message is unclear about timing, suggest reasonable defaults based on the activity type.\n"
            "- If multiple events are mentioned, include all of them in the events array.\n"
            f"Current time reference: {self.now.isoformat()}\n\n"
            f'User message: "{self.message.strip()}"\n\n'
            "Respond with valid JSON only:"
        )


@dataclass(frozen=True)
class SuggestionsPrompt:
    kind: ClassVar[PromptKind] = PromptKind.SUGGESTIONS

    balance: BalanceResult
    goals: Sequence[str] = ()

    def render(self) -> str:
        breakdown = ", ".join(f"{category} {share}%" for category, share in self.balance.breakdown.as_dict().items())
        return (
            "You are FlowTrack AI, a life balance coach. Review today's time distribution and give up to three "
            "short, concrete suggestions (one sentence each) that move the user toward a healthier balance.\n\n"
            f"Balance score: {self.balance.score}/100\n"
            f"Time distribution: {breakdown}\n"
            f"Target distribution: {_optimal_line()}\n"
            f"Rule-based observations:\n{_bullets(self.balance.suggestions, 'None.')}\n\n"
            f"User goals:\n{_bullets(list(self.goals)[:MAX_CONTEXT_GOALS], 'None recorded.')}\n\n"
            "Return ONLY a valid JSON object with this exact structure:\n"
            f"{_json_skeleton(SUGGESTIONS_SKELETON)}"
        )


def render_prompt(prompt: Any) -> str:
    """Render any prompt variant; kept as a single seam for tracing and tests."""
    return prompt.render()
