"""Database utilities and models."""

from flowtrack.db.base import Base
from flowtrack.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
