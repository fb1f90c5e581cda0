"""Daily balance snapshot ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, UniqueConstraint, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from flowtrack.db.base import Base
from flowtrack.db.types import JSONBCompat


class DailyBalance(Base):
    __tablename__ = "daily_balance"
    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_daily_balance_user_day"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day = Column(Date, nullable=False)
    work_percentage = Column(Integer, nullable=False, server_default=sa_text("0"))
    health_percentage = Column(Integer, nullable=False, server_default=sa_text("0"))
    leisure_percentage = Column(Integer, nullable=False, server_default=sa_text("0"))
    social_percentage = Column(Integer, nullable=False, server_default=sa_text("0"))
    learning_percentage = Column(Integer, nullable=False, server_default=sa_text("0"))
    overall_score = Column(Integer, nullable=False, server_default=sa_text("0"))
    suggestions = Column(JSONBCompat, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
