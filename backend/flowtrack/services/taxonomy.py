"""Activity categories and the reference distribution used for balance scoring."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class Category(str, Enum):
    WORK = "work"
    HEALTH = "health"
    LEISURE = "leisure"
    SOCIAL = "social"
    LEARNING = "learning"


CATEGORIES = tuple(category.value for category in Category)

OPTIMAL_DISTRIBUTION: Dict[str, int] = {
    "work": 40,
    "health": 25,
    "leisure": 20,
    "social": 10,
    "learning": 5,
}

# Multipliers applied to each category's deviation from the optimal share.
CATEGORY_WEIGHTS: Dict[str, float] = {
    "work": 1.0,
    "health": 1.2,
    "leisure": 0.8,
    "social": 0.6,
    "learning": 0.7,
}


def normalize_category(value: object) -> Optional[str]:
    """Return the canonical category name, or None if the value is not one of the five."""
    if isinstance(value, Category):
        return value.value
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    return cleaned if cleaned in CATEGORIES else None
