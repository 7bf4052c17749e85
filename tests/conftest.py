"""Shared fixtures: an in-memory database, a pinned clock and a stored athlete."""

from datetime import datetime, timezone

import pytest

from coach_engine.clock import FixedClock
from coach_engine.database import init_database
from coach_engine.repositories import AthleteRepository
from coach_engine.schemas import AthleteProfile, HeartRateZones, PrimarySport, SwimLevel


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite session with all tables created."""
    session = init_database("sqlite://")
    yield session
    session.close()
    session.get_bind().dispose()


@pytest.fixture
def clock():
    """Clock pinned to Wednesday 2025-03-12 08:00 UTC."""
    return FixedClock(datetime(2025, 3, 12, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def profile():
    return AthleteProfile(
        athlete_id="athlete-1",
        primary_sport=PrimarySport.TRIATHLON,
        swim_level=SwimLevel.INTERMEDIATE,
        hr_zones=HeartRateZones(z2=(130, 145), z3=(146, 160)),
        ftp=250,
        timezone="UTC",
    )


@pytest.fixture
def athlete(db_session, profile):
    """Profile stored in the database."""
    AthleteRepository(db_session).upsert_profile(profile)
    db_session.commit()
    return profile
