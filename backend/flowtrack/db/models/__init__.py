"""ORM models exposed for metadata discovery."""
from flowtrack.db.models.chat_message import ChatMessage
from flowtrack.db.models.daily_balance import DailyBalance
from flowtrack.db.models.event import Event
from flowtrack.db.models.goal import Goal
from flowtrack.db.models.user import User

__all__ = [
    "ChatMessage",
    "DailyBalance",
    "Event",
    "Goal",
    "User",
]
