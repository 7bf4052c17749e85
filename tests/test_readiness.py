"""
Tests for pre-training readiness evaluation.

Covers the check-in score, the score-to-decision table, confidence,
decision-keyed adaptations, multi-day check-in patterns and the
estimated readiness used on days without a check-in.
"""

import re
from datetime import date

import pytest

from coach_engine.readiness import (
    AdaptationType,
    CheckInPatternType,
    ReadinessStatus,
    calculate_readiness_score,
    detect_check_in_patterns,
    estimate_readiness,
    evaluate_pre_training,
    get_decision_display,
    get_readiness_explanation,
    limit_sentences,
    map_score_to_decision,
)
from coach_engine.schemas import (
    CheckIn,
    DiaryEntry,
    ExplainLevel,
    MuscleSoreness,
    ReadinessDecision,
    Severity,
    TrainingContext,
)


# Fixtures

@pytest.fixture
def great_check_in():
    """Perfect signals on every scale."""
    return CheckIn(
        sleep_duration=8,
        sleep_quality=5,
        physical_fatigue=1,
        mental_readiness=5,
        motivation=5,
        muscle_soreness=MuscleSoreness.NONE,
        stress_level=1,
    )


@pytest.fixture
def average_check_in():
    """Middle-of-the-road signals that produce no reasons."""
    return CheckIn(
        sleep_duration=7,
        sleep_quality=3,
        physical_fatigue=3,
        mental_readiness=3,
        motivation=3,
        muscle_soreness=MuscleSoreness.MILD,
        stress_level=3,
    )


@pytest.fixture
def wrecked_check_in():
    """Worst value on every scale."""
    return CheckIn(
        sleep_duration=0,
        sleep_quality=1,
        physical_fatigue=5,
        mental_readiness=1,
        motivation=1,
        muscle_soreness=MuscleSoreness.SEVERE,
        stress_level=5,
    )


# Tests

def test_perfect_check_in_scores_100(great_check_in):
    assert calculate_readiness_score(great_check_in) == 100


def test_worst_check_in_scores_14(wrecked_check_in):
    """Sleep 3 + physical 3 + mental 8 = 14."""
    assert calculate_readiness_score(wrecked_check_in) == 14


def test_average_check_in_score(average_check_in):
    """22.125 + 19 + 24 rounds to 65."""
    assert calculate_readiness_score(average_check_in) == 65


def test_sleep_beyond_eight_hours_is_capped(great_check_in):
    long_sleep = great_check_in.model_copy(update={"sleep_duration": 11})
    assert calculate_readiness_score(long_sleep) == 100


@pytest.mark.parametrize("sleep", [0, 24])
@pytest.mark.parametrize("low,high", [(1, 5), (5, 1), (1, 1), (5, 5)])
@pytest.mark.parametrize("soreness", [MuscleSoreness.NONE, MuscleSoreness.SEVERE])
def test_score_stays_in_range_at_input_bounds(sleep, low, high, soreness):
    check_in = CheckIn(
        sleep_duration=sleep,
        sleep_quality=low,
        physical_fatigue=high,
        mental_readiness=low,
        motivation=low,
        muscle_soreness=soreness,
        stress_level=high,
    )
    assert 0 <= calculate_readiness_score(check_in) <= 100


@pytest.mark.parametrize(
    "score,expected",
    [
        (100, ReadinessDecision.PROCEED),
        (70, ReadinessDecision.PROCEED),
        (69, ReadinessDecision.REDUCE_INTENSITY),
        (50, ReadinessDecision.REDUCE_INTENSITY),
        (49, ReadinessDecision.SHORTEN),
        (40, ReadinessDecision.SHORTEN),
        (39, ReadinessDecision.SWAP_RECOVERY),
        (30, ReadinessDecision.SWAP_RECOVERY),
        (29, ReadinessDecision.REST),
        (0, ReadinessDecision.REST),
    ],
)
def test_score_to_decision_boundaries(score, expected):
    assert map_score_to_decision(score) == expected


def test_proceed_evaluation(great_check_in):
    result = evaluate_pre_training(great_check_in, TrainingContext())

    assert result.readiness_score == 100
    assert result.decision == ReadinessDecision.PROCEED
    # Five positive reasons push past the cap
    assert result.confidence == 95
    assert result.adaptations == []
    assert result.explanation.startswith("You're in a good place today!")
    assert "8 hours of quality rest" in result.explanation


def test_rest_evaluation(wrecked_check_in):
    result = evaluate_pre_training(wrecked_check_in, TrainingContext(workout_type="Intervals"))

    assert result.decision == ReadinessDecision.REST
    assert result.confidence == 35
    assert len(result.negative_reasons) == 7
    assert len(result.adaptations) == 1
    assert result.adaptations[0].type == AdaptationType.REST
    assert result.adaptations[0].original_value == "Intervals"
    assert result.explanation.startswith("I'm recommending a rest day today.")


def test_reduce_intensity_without_reasons(average_check_in):
    result = evaluate_pre_training(average_check_in, TrainingContext())

    assert result.decision == ReadinessDecision.REDUCE_INTENSITY
    assert result.reasons == []
    assert result.confidence == 70
    assert result.adaptations[0].adapted_value == "80-85%"
    assert "some signals suggest caution" in result.explanation


def test_shorten_adaptation_uses_planned_duration():
    check_in = CheckIn(
        sleep_duration=5,
        sleep_quality=2,
        physical_fatigue=4,
        mental_readiness=2,
        motivation=2,
        muscle_soreness=MuscleSoreness.MODERATE,
        stress_level=4,
    )
    result = evaluate_pre_training(check_in, TrainingContext(planned_duration=60))

    assert result.readiness_score == 42
    assert result.decision == ReadinessDecision.SHORTEN
    duration = result.adaptations[0]
    assert duration.type == AdaptationType.DURATION
    assert duration.original_value == "60 min"
    assert duration.adapted_value == "42 min"


def test_training_load_reasons(average_check_in):
    context = TrainingContext(ctl=60, atl=90, tsb=-30, yesterday_tss=150)
    result = evaluate_pre_training(average_check_in, context)

    factors = {r.factor for r in result.negative_reasons}
    assert "Training Form (TSB)" in factors
    assert "Yesterday's Load" in factors


def test_explanation_is_at_most_three_sentences(great_check_in, wrecked_check_in):
    for check_in in (great_check_in, wrecked_check_in):
        result = evaluate_pre_training(check_in, TrainingContext())
        assert len(re.split(r"(?<=[.!?])\s+", result.explanation)) <= 3


def test_limit_sentences_normalizes_whitespace():
    assert limit_sentences("One.  Two!\nThree? Four.", 3) == "One. Two! Three?"
    assert limit_sentences("   ", 3) == ""


def test_decision_display():
    assert get_decision_display(ReadinessDecision.SWAP_RECOVERY) == "Recovery Session"


def test_check_in_patterns_need_three_days(wrecked_check_in):
    assert detect_check_in_patterns([wrecked_check_in, wrecked_check_in]) == []


def test_check_in_patterns_detected():
    tired = CheckIn(
        sleep_duration=5.5,
        sleep_quality=2,
        physical_fatigue=4,
        mental_readiness=2,
        motivation=2,
        stress_level=4,
    )
    patterns = detect_check_in_patterns([tired, tired, tired])

    types = [p.type for p in patterns]
    assert types == [
        CheckInPatternType.CHRONIC_FATIGUE,
        CheckInPatternType.MOTIVATION_DROP,
        CheckInPatternType.STRESS_ACCUMULATION,
        CheckInPatternType.SLEEP_DEFICIT,
    ]
    assert all(p.severity == Severity.HIGH for p in patterns)
    assert patterns[0].description == "Average fatigue level of 4.0/5 over the past 3 days"


def test_positive_trend_pattern(great_check_in):
    patterns = detect_check_in_patterns([great_check_in] * 4)
    assert [p.type for p in patterns] == [CheckInPatternType.POSITIVE_TREND]
    assert patterns[0].severity == Severity.LOW


def test_estimated_readiness_baseline():
    result = estimate_readiness(None)

    assert result.score == 70
    assert result.status == ReadinessStatus.OPTIMAL
    assert result.factors == []
    assert result.confidence == 20


def test_estimated_readiness_from_journal():
    diary = DiaryEntry(date=date(2025, 3, 12), sleep_qual=1, mood=2)
    result = estimate_readiness(diary)

    # 70 - 16 - 6
    assert result.score == 48
    assert result.status == ReadinessStatus.CAUTION
    assert result.factors[0].factor == "sleep_quality"
    assert result.confidence == 45


def test_estimated_readiness_from_load():
    result = estimate_readiness(None, TrainingContext(ctl=50, atl=80, tsb=-30))

    # 70 - 15 (balance, capped) - 10 (acute ratio 1.6)
    assert result.score == 45
    assert result.status == ReadinessStatus.CAUTION
    descriptions = [f.description for f in result.factors]
    assert "Accumulated fatigue" in descriptions
    assert "High acute load" in descriptions


def test_readiness_explanation_levels():
    result = estimate_readiness(None, TrainingContext(tsb=10))

    assert get_readiness_explanation(result, ExplainLevel.MINIMAL) == "Readiness: optimal"
    assert get_readiness_explanation(result, ExplainLevel.STANDARD) == "78/100 - Well recovered"
    deep = get_readiness_explanation(result, ExplainLevel.DEEP)
    assert deep.startswith("Readiness 78/100")
    assert "Well recovered (+8)" in deep
