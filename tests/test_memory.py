"""
Tests for layered athlete memory.

Covers confidence scoring, the weekly summary and monthly trait jobs,
versioned upserts, expiry, explanations and athlete edits.
"""

from datetime import date, datetime, timedelta

import pytest

from coach_engine.memory import (
    AuditAction,
    MemoryEngine,
    MemoryLayer,
    MemorySources,
    MemoryType,
    calculate_confidence,
    calculate_expires_at,
    detect_contradiction,
    summarize_readiness,
)
from coach_engine.repositories import (
    CheckInRepository,
    DiaryRepository,
    FeedbackRepository,
    MemoryRepository,
)
from coach_engine.schemas import CheckIn, MuscleSoreness, ReadinessDecision, VisibilityLevel


WEEK_START = date(2025, 3, 3)
WEEK_END = date(2025, 3, 9)
NOW = datetime(2025, 3, 12, 8, 0)


def _tired_check_in(db_session, day, overridden=False):
    repo = CheckInRepository(db_session)
    record = repo.create(
        "athlete-1",
        CheckIn(
            sleep_duration=5.5,
            sleep_quality=2,
            physical_fatigue=4,
            mental_readiness=2,
            motivation=2,
            muscle_soreness=MuscleSoreness.SEVERE,
            stress_level=4,
        ),
        day,
    )
    repo.attach_decision(record, 25, ReadinessDecision.REST, 80)
    if overridden:
        repo.record_override(record, accepted=False, reason="Felt fine")
    return record


def _stored_memory(db_session, memory_type, summary, period_end, layer=MemoryLayer.SHORT_TERM,
                   title="Weekly pattern", data_points=4):
    return MemoryRepository(db_session).create(
        "athlete-1",
        layer=layer.value,
        type=memory_type.value,
        title=title,
        summary=summary,
        confidence=40,
        data_points=data_points,
        sources={"check_ins": [1], "feedback": [], "diary": []},
        period_start=period_end - timedelta(days=6),
        period_end=period_end,
        expires_at=None,
        version=1,
    )


# Fixtures

@pytest.fixture
def engine(db_session, clock):
    return MemoryEngine(db_session, clock)


@pytest.fixture
def tired_week(db_session, athlete):
    """Three tired check-ins (two overridden) and two feedback comments."""
    check_ins = [
        _tired_check_in(db_session, date(2025, 3, 3), overridden=True),
        _tired_check_in(db_session, date(2025, 3, 4), overridden=True),
        _tired_check_in(db_session, date(2025, 3, 5)),
    ]
    feedback = FeedbackRepository(db_session)
    feedback.create(
        "athlete-1",
        perceived_difficulty="hard",
        enjoyment=2,
        comment="Heavy legs again",
        created_at=datetime(2025, 3, 4, 18, 0),
    )
    feedback.create(
        "athlete-1",
        perceived_difficulty="very_hard",
        enjoyment=1,
        comment="heavy legs and went out too fast",
        created_at=datetime(2025, 3, 6, 18, 0),
    )
    db_session.commit()
    return check_ins


def _upsert_short(engine, memory_type=MemoryType.PSYCHOLOGICAL, title="Readiness", summary="Stable"):
    return engine.upsert_memory(
        "athlete-1",
        MemoryLayer.SHORT_TERM,
        memory_type,
        title,
        summary,
        3,
        MemorySources(check_ins=[1, 2, 3]),
        datetime(2025, 3, 3),
        datetime(2025, 3, 9),
    )


# Tests

def test_confidence_with_all_adjustments():
    confidence, explanation = calculate_confidence(10, True, 0, 2, MemoryLayer.SHORT_TERM)

    assert confidence == 65
    assert explanation == (
        "Base: 50 (10 data points × 5), +10 (recent data), "
        "+15 (consistent pattern), -10 (2 weeks decay)"
    )


def test_confidence_is_clamped_and_long_term_does_not_decay():
    confidence, explanation = calculate_confidence(3, False, 2, 4, MemoryLayer.LONG_TERM)

    assert confidence == 0
    assert explanation == "Base: 15 (3 data points × 5), -40 (2 contradictions)"
    assert calculate_confidence(40, True, 0, 0, MemoryLayer.MID_TERM)[0] == 100


@pytest.mark.parametrize("has_recent,contradictions,weeks", [
    (True, 0, 0),
    (False, 0, 0),
    (True, 1, 0),
    (False, 2, 3),
])
def test_confidence_never_drops_with_more_data(has_recent, contradictions, weeks):
    scores = [
        calculate_confidence(points, has_recent, contradictions, weeks, MemoryLayer.SHORT_TERM)[0]
        for points in range(0, 30)
    ]
    assert scores == sorted(scores)
    assert scores[-1] <= 100


def test_expiry_per_layer():
    assert calculate_expires_at(MemoryLayer.SHORT_TERM, NOW) == NOW + timedelta(days=7)
    assert calculate_expires_at(MemoryLayer.MID_TERM, NOW) == NOW + timedelta(days=30)
    assert calculate_expires_at(MemoryLayer.LONG_TERM, NOW) is None


def test_detect_contradiction():
    assert detect_contradiction("Recovers well after blocks", "Overreaches easily")
    assert detect_contradiction("High motivation", "LOW MOTIVATION lately")
    assert not detect_contradiction("Recovers well", "Stress-sensitive")


def test_readiness_summary_needs_three_check_ins(db_session, athlete):
    records = [_tired_check_in(db_session, date(2025, 3, 3))]
    assert summarize_readiness(records) is None


def test_weekly_summary(engine, db_session, tired_week):
    result = engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)

    assert result.memories_created == 4
    assert result.memories_updated == 0
    assert result.patterns == [
        "Readiness patterns: 4 concerns",
        "Tends to override REST recommendations",
        "Language patterns: heavy legs",
        "Elevated fatigue this week",
    ]

    overview = engine.get_active_memories("athlete-1")
    by_type = {m.type: m for m in overview.short_term}
    assert len(by_type) == 4

    readiness = by_type[MemoryType.PSYCHOLOGICAL]
    assert readiness.summary == (
        "This week: sleep averaging 5.5h (below optimal); elevated fatigue (4.0/5); "
        "low motivation (2.0/5); high stress (4.0/5)."
    )
    assert readiness.confidence == 25
    assert readiness.period_start == datetime(2025, 3, 3)
    assert readiness.period_end == datetime(2025, 3, 9)
    assert readiness.expires_at == NOW + timedelta(days=7)

    overrides = by_type[MemoryType.OVERRIDE_PATTERN]
    assert overrides.summary == (
        "Overrode AI 2 times this week, most commonly when REST was suggested (2 times)."
    )
    assert overrides.sources.check_ins == [tired_week[0].id, tired_week[1].id]

    fatigue = by_type[MemoryType.FATIGUE_RESPONSE]
    assert fatigue.summary == "Average fatigue 4.0/5, soreness 0.0/5. 3 days with severe soreness."

    audits = MemoryRepository(db_session).audits("athlete-1", AuditAction.WEEKLY_SUMMARY.value)
    assert len(audits) == 1
    assert audits[0].details["message"].startswith("Week 2025-03-03: 4 memories, patterns: ")


def test_weekly_summary_rerun_is_unchanged(engine, db_session, tired_week):
    engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)
    rerun = engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)

    assert rerun.memories_created == 0
    assert rerun.memories_updated == 0
    assert len(rerun.patterns) == 4
    assert len(MemoryRepository(db_session).find_active("athlete-1")) == 4


def test_weekly_summary_new_data_supersedes(engine, db_session, tired_week):
    engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)
    CheckInRepository(db_session).create(
        "athlete-1",
        CheckIn(
            sleep_duration=8,
            sleep_quality=4,
            physical_fatigue=2,
            mental_readiness=4,
            motivation=4,
            stress_level=2,
        ),
        date(2025, 3, 6),
    )
    db_session.commit()

    result = engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)

    # Readiness and fatigue averages moved; overrides and language did not
    assert result.memories_updated == 2
    assert result.memories_created == 0

    repo = MemoryRepository(db_session)
    current = repo.find_current("athlete-1", MemoryType.PSYCHOLOGICAL.value, MemoryLayer.SHORT_TERM.value)
    assert current.version == 2
    assert "sleep averaging 6.1h" in current.summary
    assert len(repo.find_active("athlete-1")) == 4


def test_weekly_summary_skips_sparse_weeks(engine, db_session, athlete):
    _tired_check_in(db_session, date(2025, 3, 3))
    _tired_check_in(db_session, date(2025, 3, 4))
    DiaryRepository(db_session).create(
        "athlete-1", date=date(2025, 3, 5), mood=2, visibility_level=VisibilityLevel.HIDDEN.value
    )
    db_session.commit()

    result = engine.generate_weekly_summary("athlete-1", WEEK_START, WEEK_END)

    assert result.memories_created == 0
    assert result.patterns == []
    assert MemoryRepository(db_session).audits("athlete-1") == []


def test_monthly_traits(engine, db_session, athlete):
    for day in (2, 9, 16):
        _stored_memory(
            db_session,
            MemoryType.FATIGUE_RESPONSE,
            "Average fatigue 4.0/5. Elevated load all week.",
            datetime(2025, 3, day),
        )
    _stored_memory(db_session, MemoryType.PSYCHOLOGICAL, "This week: high stress (4.0/5).", datetime(2025, 3, 9))
    db_session.commit()

    result = engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))

    assert result.traits_inferred == 1
    assert result.traits_updated == 0
    assert result.traits == ["Overreaches easily"]

    trait = MemoryRepository(db_session).find_current(
        "athlete-1", MemoryType.FATIGUE_RESPONSE.value, MemoryLayer.LONG_TERM.value
    )
    # 12 data points: 60 + 10 recent + 15 consistent
    assert trait.confidence == 85
    assert trait.expires_at is None
    assert trait.sources["check_ins"] == [1, 1, 1]


def test_monthly_traits_rerun_is_unchanged(engine, db_session, athlete):
    for day in (2, 9, 16, 23):
        _stored_memory(db_session, MemoryType.FATIGUE_RESPONSE, "Elevated fatigue.", datetime(2025, 3, day))
    db_session.commit()

    engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))
    rerun = engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))

    assert rerun.traits_inferred == 0
    assert rerun.traits_updated == 0
    assert rerun.traits == ["Overreaches easily"]
    trait = MemoryRepository(db_session).find_current(
        "athlete-1", MemoryType.FATIGUE_RESPONSE.value, MemoryLayer.LONG_TERM.value
    )
    assert trait.version == 1


def test_monthly_trait_contradiction_lowers_confidence(engine, db_session, athlete):
    _stored_memory(
        db_session,
        MemoryType.FATIGUE_RESPONSE,
        "Athlete consistently shows good recovery.",
        datetime(2025, 2, 28),
        layer=MemoryLayer.LONG_TERM,
        title="Recovers well",
    )
    for day in (2, 9, 16, 23):
        _stored_memory(db_session, MemoryType.FATIGUE_RESPONSE, "Elevated fatigue again.", datetime(2025, 3, day),
                       data_points=3)
    db_session.commit()

    result = engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))

    assert result.traits_updated == 1
    trait = MemoryRepository(db_session).find_current(
        "athlete-1", MemoryType.FATIGUE_RESPONSE.value, MemoryLayer.LONG_TERM.value
    )
    # 12 data points: 60 + 10 recent - 20 contradiction
    assert trait.confidence == 50
    assert trait.title == "Overreaches easily"
    assert trait.summary.endswith("(Note: This contradicts earlier observations. Confidence reduced.)")
    assert trait.version == 2


def test_monthly_traits_skip_low_confidence(engine, db_session, athlete):
    for day in (2, 9, 16, 23):
        _stored_memory(db_session, MemoryType.FATIGUE_RESPONSE, "Elevated fatigue.", datetime(2025, 3, day),
                       data_points=1)
    db_session.commit()

    result = engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))

    assert result.traits == []
    audits = MemoryRepository(db_session).audits("athlete-1", AuditAction.MONTHLY_TRAITS.value)
    assert len(audits) == 1


def test_monthly_traits_need_four_memories(engine, db_session, athlete):
    for day in (2, 9, 16):
        _stored_memory(db_session, MemoryType.FATIGUE_RESPONSE, "Elevated fatigue.", datetime(2025, 3, day))
    db_session.commit()

    result = engine.infer_monthly_traits("athlete-1", date(2025, 3, 1), date(2025, 3, 31))
    assert result.traits == []
    assert MemoryRepository(db_session).audits("athlete-1") == []


def test_active_memories_exclude_expired(engine, clock, athlete):
    _upsert_short(engine)
    engine.upsert_memory(
        "athlete-1",
        MemoryLayer.LONG_TERM,
        MemoryType.PREFERENCE,
        "Prefers mornings",
        "Trains before work.",
        10,
        MemorySources(),
        datetime(2025, 3, 1),
        datetime(2025, 3, 31),
        confidence_override=80,
    )

    overview = engine.get_active_memories("athlete-1")
    assert len(overview.short_term) == 1
    assert len(overview.long_term) == 1
    # (25 + 80) / 2 rounds half up
    assert overview.total_confidence == 53

    clock.advance(days=6)
    assert len(engine.get_active_memories("athlete-1").short_term) == 1

    clock.advance(days=2)
    overview = engine.get_active_memories("athlete-1")
    assert overview.short_term == []
    assert overview.total_confidence == 80


def test_cleanup_expired(engine, db_session, clock, athlete):
    _upsert_short(engine)
    db_session.commit()
    assert engine.cleanup_expired("athlete-1") == 0

    clock.advance(days=8)
    assert engine.cleanup_expired("athlete-1") == 1
    assert engine.cleanup_expired("athlete-1") == 0

    audits = MemoryRepository(db_session).audits("athlete-1", AuditAction.EXPIRED.value)
    assert len(audits) == 1
    assert audits[0].details == {"message": "1 expired memories cleaned up", "count": 1}


def test_explain_uses_safe_snippets(engine, db_session, athlete):
    check_in = _tired_check_in(db_session, date(2025, 3, 3))
    feedback = FeedbackRepository(db_session).create(
        "athlete-1",
        perceived_difficulty="hard",
        enjoyment=2,
        comment="Heavy legs, my coach is the worst",
        created_at=datetime(2025, 3, 4, 18, 0),
    )
    diary = DiaryRepository(db_session)
    visible = diary.create("athlete-1", date=date(2025, 3, 5), mood=2, energy=3, notes="dead legs today")
    hidden = diary.create(
        "athlete-1", date=date(2025, 3, 6), mood=1, visibility_level=VisibilityLevel.HIDDEN.value
    )
    memory, _ = engine.upsert_memory(
        "athlete-1",
        MemoryLayer.SHORT_TERM,
        MemoryType.FATIGUE_RESPONSE,
        "Elevated fatigue this week",
        "Average fatigue 4.0/5.",
        3,
        MemorySources(check_ins=[check_in.id], feedback=[feedback.id], diary=[visible.id, hidden.id]),
        datetime(2025, 3, 3),
        datetime(2025, 3, 9),
    )
    db_session.commit()

    explanation = engine.explain("athlete-1", memory.id)

    snippets = [(s.type, s.snippet) for s in explanation.sources]
    assert snippets == [
        ("check_in", "Check-in: sleep 5.5h, fatigue 4/5, AI suggested REST"),
        ("feedback", "Feedback: hard, enjoyment 2/5; themes: heavy legs"),
        ("diary", "Diary metrics: mood=2/5, energy=3/5; themes: heavy legs"),
    ]
    assert explanation.confidence == 25
    assert explanation.confidence_explanation == "Base: 15 (3 data points × 5), +10 (recent data)"
    assert explanation.can_edit is True
    assert all("worst" not in s.snippet for s in explanation.sources)


def test_explain_unknown_memory(engine, athlete):
    assert engine.explain("athlete-1", 999) is None


def test_delete_memory(engine, db_session, athlete):
    memory, _ = _upsert_short(engine, title="Readiness week")
    db_session.commit()

    assert engine.delete_memory("athlete-1", memory.id) is True
    assert engine.delete_memory("athlete-1", memory.id) is False

    audit = MemoryRepository(db_session).audits("athlete-1", AuditAction.DELETED.value)[0]
    assert audit.details == {"message": "Deleted: Readiness week"}
    assert audit.memory_id == memory.id


def test_correct_memory(engine, db_session, athlete):
    memory, _ = _upsert_short(engine, title="Old title")
    db_session.commit()

    assert engine.correct_memory("athlete-1", memory.id, title="New title") is True

    corrected = MemoryRepository(db_session).get("athlete-1", memory.id)
    assert corrected.title == "New title"
    assert corrected.summary == "Stable"
    # 25 - 20 is floored at 30
    assert corrected.confidence == 30
    assert corrected.version == 2

    audit = MemoryRepository(db_session).audits("athlete-1", AuditAction.CORRECTED.value)[0]
    assert audit.details["message"] == "Corrected: Old title → New title"


def test_promote_memory(engine, db_session, athlete):
    memory, _ = _upsert_short(engine)
    db_session.commit()

    assert engine.promote_memory("athlete-1", memory.id) is True
    promoted = MemoryRepository(db_session).get("athlete-1", memory.id)
    assert promoted.layer == MemoryLayer.MID_TERM.value
    assert promoted.expires_at == NOW + timedelta(days=30)

    # Only short-term memories can be promoted
    assert engine.promote_memory("athlete-1", memory.id) is False
