"""
Shared FastAPI dependencies.

Tests override these through app.dependency_overrides to pin time or
point at an in-memory database.
"""

from coach_engine.clock import Clock, SystemClock
from coach_engine.database import get_db_session

__all__ = ["get_clock", "get_db_session"]


def get_clock() -> Clock:
    """Time source for request handlers."""
    return SystemClock()
