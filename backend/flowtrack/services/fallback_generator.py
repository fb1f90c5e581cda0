"""Rule-based stand-ins for every AI-backed output.

Everything here is deterministic apart from the optional random pick of a chat reply,
never touches the network, and produces objects that satisfy the same models the
response parser enforces for model output.
"""
from __future__ import annotations

import random
import re
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from flowtrack.services.plan_models import (
    BalanceAnalysis,
    BalanceResult,
    CategoryBreakdown,
    DailyTask,
    DatedScheduleItem,
    EventExtraction,
    ExtractedEvent,
    GoalPlan,
    Milestone,
    PlanAnalysis,
    ScheduleItem,
    SchedulePlanResponse,
    TrackingMetric,
)
from flowtrack.services.prompt_builder import detect_message_type
from flowtrack.services.taxonomy import OPTIMAL_DISTRIBUTION

DEFAULT_BALANCE_SCORE = 60
MAX_PLAN_WEEKS = 12
SAMPLE_SCHEDULE_DAYS = 14
MAX_EVENT_TITLE = 100

DEFAULT_SUGGESTIONS = [
    "Try to maintain a consistent sleep schedule",
    "Take regular breaks during work blocks",
    "Schedule social activities on weekends",
]

# Block lengths follow the optimal 40/25/20/10/5 split of 400 tracked minutes.
_SCHEDULE_TEMPLATE = [
    ("Morning Workout", "health", "07:00", "08:40", "Cardio, strength and a proper stretch"),
    ("Focus Work Block", "work", "09:00", "11:40", "Deep work on the most important tasks"),
    ("Learning Sprint", "learning", "12:30", "12:50", "Read or practice something new"),
    ("Catch Up With a Friend", "social", "18:30", "19:10", "Call, walk or dinner with someone you like"),
    ("Relaxation", "leisure", "20:00", "21:20", "Unwind and enjoy personal time"),
]

CHAT_REPLIES: Dict[str, List[str]] = {
    "general": [
        "I'm here to help you build better habits and maintain work-life balance. "
        "Could you tell me more about your specific goals?",
        "Great question! For optimal balance, focus on work productivity, physical health, "
        "social connections, and personal growth.",
        "Building sustainable habits takes time. Start small and gradually increase the complexity of your schedule.",
        "Work-life balance is about finding what works for you. What aspects of your current routine would you like to improve?",
    ],
    "wellness": [
        "It sounds like a lot right now. Try protecting one short break today, a walk or a few slow breaths, "
        "and let one non-urgent task wait until tomorrow.",
    ],
    "planning": [
        "A good first step is to block your three most important tasks on the calendar before anything else, "
        "then fit exercise and downtime around them.",
    ],
}

# word-start pattern -> (skill label, category)
SKILL_KEYWORDS: Tuple[Tuple[str, str, str], ...] = (
    ("python", "Python", "learning"),
    ("javascript", "JavaScript", "learning"),
    ("dsa", "data structures and algorithms", "learning"),
    ("algorithm", "data structures and algorithms", "learning"),
    ("leetcode", "coding interview problems", "learning"),
    ("spanish", "Spanish", "learning"),
    ("french", "French", "learning"),
    ("german", "German", "learning"),
    ("guitar", "guitar", "learning"),
    ("piano", "piano", "learning"),
    ("marathon", "running", "health"),
    ("5k", "running", "health"),
    (r"run(?:s|ning|ners?)?\b", "running", "health"),
    ("yoga", "yoga", "health"),
    ("weight", "fitness", "health"),
    ("fitness", "fitness", "health"),
    ("meditat", "meditation", "health"),
    ("writ", "writing", "learning"),
    ("design", "design", "learning"),
    ("business", "business", "work"),
    ("startup", "business", "work"),
    ("promotion", "career growth", "work"),
    ("network", "networking", "social"),
    ("friends", "friendships", "social"),
)
_SKILL_PATTERNS = tuple((re.compile(r"\b" + pattern), skill, category) for pattern, skill, category in SKILL_KEYWORDS)
DEFAULT_SKILL = "your target skill"


def fallback_schedule() -> SchedulePlanResponse:
    """Fixed five-block day that covers every category at the optimal proportions."""
    return SchedulePlanResponse(
        schedule=[
            ScheduleItem(title=title, category=category, start_time=start, end_time=end, description=description)
            for title, category, start, end, description in _SCHEDULE_TEMPLATE
        ],
        balance_analysis=BalanceAnalysis.from_breakdown(CategoryBreakdown(**OPTIMAL_DISTRIBUTION)),
        suggestions=list(DEFAULT_SUGGESTIONS),
    )


def fallback_chat_reply(message: str = "", rng: Optional[random.Random] = None) -> str:
    pool = CHAT_REPLIES.get(detect_message_type(message or ""), CHAT_REPLIES["general"])
    return (rng or random).choice(pool)


def fallback_balance_result() -> BalanceResult:
    """Result used when a day has no tracked time at all."""
    return BalanceResult(
        score=DEFAULT_BALANCE_SCORE,
        breakdown=CategoryBreakdown(),
        suggestions=list(DEFAULT_SUGGESTIONS),
    )


def fallback_suggestions() -> List[str]:
    return list(DEFAULT_SUGGESTIONS)


def detect_skill(description: str) -> Tuple[str, str]:
    """Return (skill label, category) for the first keyword found in the goal text."""
    lowered = (description or "").lower()
    for pattern, skill, category in _SKILL_PATTERNS:
        if pattern.search(lowered):
            return skill, category
    return DEFAULT_SKILL, "learning"


def fallback_goal_plan(
    description: str,
    *,
    timeframe_days: int,
    daily_hours: float,
    start_date: date,
    title: Optional[str] = None,
) -> GoalPlan:
    skill, category = detect_skill(description)
    weeks = max(1, min(MAX_PLAN_WEEKS, timeframe_days // 7))
    daily_minutes = int(round(daily_hours * 60))
    goal_title = (title or "").strip() or _title_from_description(description)

    return GoalPlan(
        goal_title=goal_title,
        description=description.strip(),
        category=category,
        timeframe_days=timeframe_days,
        daily_hours=daily_hours,
        milestones=_fallback_milestones(skill, weeks, start_date),
        daily_tasks=_fallback_daily_tasks(skill, category, daily_minutes),
        schedule=_fallback_sample_schedule(skill, category, daily_minutes, start_date),
        analysis=PlanAnalysis(
            feasibility_score=75,
            estimated_success_rate=70,
            key_success_factors=[
                f"Practicing {skill} every day, even briefly",
                "Tracking progress against weekly milestones",
                "Reviewing and adjusting the plan each weekend",
            ],
            potential_challenges=[
                "Busy days that crowd out practice time",
                f"Plateaus while {skill} gets harder",
            ],
            recommended_adjustments=[
                "Shorten sessions instead of skipping them on busy days",
                "Add a buffer day each week for catch-up",
            ],
        ),
        tracking_metrics=[
            TrackingMetric(name="Sessions completed", target="6 per week", frequency="weekly"),
            TrackingMetric(name=f"Hours spent on {skill}", target=f"{daily_hours * 7:g} hours", frequency="weekly"),
            TrackingMetric(name="Milestones reached", target=f"{weeks} milestones", frequency="monthly"),
        ],
    )


def fallback_event_extraction(message: str, now: datetime) -> EventExtraction:
    """One-hour work block starting an hour from now, titled after the message."""
    start = now + timedelta(hours=1)
    title = message.strip()[:MAX_EVENT_TITLE] or "New event"
    return EventExtraction(
        events=[
            ExtractedEvent(
                title=title,
                description=f'Created from: "{message.strip()}"',
                category="work",
                start_time=start,
                end_time=start + timedelta(hours=1),
            )
        ],
        suggestions=["I created a basic event from your message. You can edit the details as needed."],
        clarifications=["Please specify the exact time and duration for better scheduling."],
    )


def _title_from_description(description: str) -> str:
    words = description.strip().split()
    snippet = " ".join(words[:8])
    return snippet[:1].upper() + snippet[1:] if snippet else "New goal"


def _fallback_milestones(skill: str, weeks: int, start_date: date) -> List[Milestone]:
    phases = [
        ("Foundations", f"Set up resources and learn the fundamentals of {skill}", "high"),
        ("Build consistency", f"Practice {skill} daily and fix weak spots", "high"),
        ("Apply and stretch", f"Use {skill} on a small real project or challenge", "medium"),
        ("Review and consolidate", f"Assess progress in {skill} and plan the next step", "medium"),
    ]
    milestones = []
    for week in range(1, weeks + 1):
        phase_title, phase_description, priority = phases[min(len(phases) - 1, (week - 1) * len(phases) // weeks)]
        milestones.append(
            Milestone(
                title=f"Week {week}: {phase_title}",
                description=phase_description,
                week_index=week,
                due_date=start_date + timedelta(days=week * 7),
                priority=priority,
            )
        )
    return milestones


def _fallback_daily_tasks(skill: str, category: str, daily_minutes: int) -> List[DailyTask]:
    practice = max(5, int(daily_minutes * 0.6))
    study = max(5, int(daily_minutes * 0.3))
    review = max(5, daily_minutes - practice - study)
    return [
        DailyTask(title=f"Focused {skill} practice", description="Work on the hardest part first", category=category, duration_minutes=practice),
        DailyTask(title=f"Study {skill} material", description="Read, watch or take notes on one topic", category="learning", duration_minutes=study),
        DailyTask(title="Log progress", description="Write down one win and one thing to fix", category="learning", duration_minutes=review),
    ]


def _fallback_sample_schedule(skill: str, category: str, daily_minutes: int, start_date: date) -> List[DatedScheduleItem]:
    start_minutes = 19 * 60
    end_minutes = min(start_minutes + daily_minutes, 23 * 60 + 59)
    start_clock = f"{start_minutes // 60:02d}:{start_minutes % 60:02d}"
    end_clock = f"{end_minutes // 60:02d}:{end_minutes % 60:02d}"
    items = []
    for offset in range(SAMPLE_SCHEDULE_DAYS):
        day = start_date + timedelta(days=offset)
        is_review_day = offset % 7 == 6
        items.append(
            DatedScheduleItem(
                day=day,
                title="Weekly review" if is_review_day else f"{skill[:1].upper()}{skill[1:]} session",
                category="learning" if is_review_day else category,
                start_time=start_clock,
                end_time=end_clock,
                description="Check milestones and adjust next week" if is_review_day else "Daily practice block",
            )
        )
    return items
