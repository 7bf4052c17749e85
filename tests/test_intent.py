"""
Tests for the keyword intent resolver and its field parsers.
"""

from datetime import date

import pytest

from coach_engine.context import CoachContext
from coach_engine.intent import (
    KeywordIntentResolver,
    is_session_request,
    parse_date,
    parse_duration,
    parse_sport,
    parse_target_meters,
)
from coach_engine.schemas import PrimarySport, Sport


TODAY = date(2025, 3, 12)


# Fixtures

@pytest.fixture
def context(profile):
    return CoachContext(profile=profile, today=TODAY)


@pytest.fixture
def resolver():
    return KeywordIntentResolver()


# Tests

@pytest.mark.parametrize(
    "text,expected",
    [
        ("easy run please", Sport.RUN),
        ("long ride on saturday", Sport.BIKE),
        ("swimming drills", Sport.SWIM),
        ("gym session", Sport.STRENGTH),
        ("how was my week?", None),
    ],
)
def test_parse_sport(text, expected):
    assert parse_sport(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("swim on 2025-03-20", date(2025, 3, 20)),
        ("swim tomorrow", date(2025, 3, 13)),
        ("run today", TODAY),
        ("bike in 3 days", date(2025, 3, 15)),
        ("bike in 45 days", TODAY),
        ("swim on 2025-02-30", TODAY),
        ("just a run", TODAY),
    ],
)
def test_parse_date(text, expected):
    assert parse_date(text, TODAY) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("45 min run", 45),
        ("a 60-minute ride", 60),
        ("1.5 hours on the bike", 90),
        ("2 min", None),
        ("no duration here", None),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("swim 3500m", 3500),
        ("swim 2000 meters", 2000),
        ("swim 1.5km", 1500),
        ("4x50m sprints", None),
        ("swim 20000m", None),
    ],
)
def test_parse_target_meters(text, expected):
    assert parse_target_meters(text) == expected


def test_session_request_detection():
    assert is_session_request("give me a workout", None)
    assert is_session_request("swim for tomorrow", Sport.SWIM)
    assert not is_session_request("I slept badly", None)


def test_resolve_swim_with_distance(resolver, context):
    intent = resolver.resolve("Give me a 2500m swim tomorrow", context)

    assert intent.sport == Sport.SWIM
    assert intent.date == date(2025, 3, 13)
    assert intent.target_meters == 2500
    assert intent.add_to_calendar is True
    assert intent.replace_existing is False


def test_distance_without_sport_implies_swim(resolver, context):
    intent = resolver.resolve("plan a session of 1800m", context)
    assert intent.sport == Sport.SWIM
    assert intent.target_meters == 1800


def test_distance_dropped_for_other_sports(resolver, context):
    intent = resolver.resolve("run 5000m tomorrow", context)
    assert intent.sport == Sport.RUN
    assert intent.target_meters is None


def test_falls_back_to_primary_sport(resolver, profile):
    cyclist = profile.model_copy(update={"primary_sport": PrimarySport.BIKE})
    intent = resolver.resolve("plan a workout for tomorrow", CoachContext(profile=cyclist, today=TODAY))
    assert intent.sport == Sport.BIKE


def test_triathlete_defaults_to_run(resolver, context):
    intent = resolver.resolve("give me a workout", context)
    assert intent.sport == Sport.RUN


def test_request_flags(resolver, context):
    intent = resolver.resolve(
        "Replace tomorrow's run with a 45 min run, don't add it to the calendar", context
    )
    assert intent.replace_existing is True
    assert intent.add_to_calendar is False
    assert intent.duration_min_hint == 45

    separate = resolver.resolve("add another session: bike today", context)
    assert separate.create_separate is True


def test_pain_forces_mobility_only(resolver, context):
    intent = resolver.resolve("my knee hurts, give me a strength session", context)
    assert intent.sport == Sport.STRENGTH
    assert intent.strength_mobility_only is True


def test_chat_without_request_returns_none(resolver, context):
    assert resolver.resolve("I feel great this morning", context) is None
    assert resolver.resolve("", context) is None
