"""Resolve the calling user; accounts are provisioned lazily on first contact."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flowtrack.core.context import bind_user_id
from flowtrack.db.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Return the user row for ``user_id`` and bind it to the logging context."""
    bind_user_id(user_id)
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Another request created the row between the lookup and the flush.
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise
    logger.info("Provisioned user %s", user_id)
    return user
