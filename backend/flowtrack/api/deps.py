"""FastAPI dependencies shared by the AI and chat routes."""
from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowtrack.core.config import settings
from flowtrack.services.orchestrator import BalanceOrchestrator


@lru_cache
def _default_orchestrator() -> BalanceOrchestrator:
    return BalanceOrchestrator.from_settings(settings)


def get_orchestrator() -> BalanceOrchestrator:
    """Orchestrator built from settings; tests replace it through ``dependency_overrides``."""
    return _default_orchestrator()


def commit_or_500(db: Session, detail: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from exc
