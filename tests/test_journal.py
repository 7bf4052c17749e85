"""
Tests for journal pattern detection, correlations and the 14-day comparison.
"""

from datetime import date, timedelta

import pytest

from coach_engine.journal import (
    CorrelationDirection,
    CorrelationStrength,
    InsightType,
    Trend,
    analyze_correlations,
    compare_last_14_days,
    detect_all_patterns,
    detect_burnout_signal,
    detect_motivation_drop,
    detect_negative_streak,
    detect_positive_trend,
    detect_sleep_pattern,
    detect_stress_pattern,
    format_comparison,
    format_correlation,
    pearson_correlation,
)
from coach_engine.schemas import DiaryEntry, MetricPoint, Severity, VisibilityLevel


TODAY = date(2025, 3, 12)


def _day(offset: int) -> date:
    """Date `offset` days before TODAY."""
    return TODAY - timedelta(days=offset)


def _entries(**series):
    """One entry per day ending TODAY; each keyword is a list of values, oldest first."""
    length = len(next(iter(series.values())))
    return [
        DiaryEntry(date=_day(length - 1 - i), **{k: v[i] for k, v in series.items()})
        for i in range(length)
    ]


# Fixtures

@pytest.fixture
def rough_week():
    """Seven days sliding from fine to worn out."""
    return _entries(
        mood=[4, 4, 3, 2, 2, 2, 2],
        motivation=[5, 4, 4, 3, 3, 2, 2],
        stress=[2, 2, 3, 4, 4, 4, 5],
        energy=[4, 4, 3, 2, 2, 2, 1],
    )


# Tests

def test_negative_streak_skips_hidden_entries():
    entries = [
        DiaryEntry(date=_day(4), mood=4),
        DiaryEntry(date=_day(3), mood=2),
        DiaryEntry(date=_day(2), mood=2),
        DiaryEntry(date=_day(1), mood=5, visibility_level=VisibilityLevel.HIDDEN),
        DiaryEntry(date=_day(0), mood=1),
    ]
    insight = detect_negative_streak(entries)

    assert insight.type == InsightType.NEGATIVE_STREAK
    assert insight.severity == Severity.LOW
    assert insight.start_date == _day(3)
    assert insight.end_date == TODAY
    assert [p.value for p in insight.data_points] == [1, 2, 2]
    assert insight.message.startswith("You've had 3 consecutive days with low mood.")


def test_negative_streak_needs_three_days():
    assert detect_negative_streak(_entries(mood=[1, 3, 2, 2])) is None


def test_burnout_signal(rough_week):
    insight = detect_burnout_signal(rough_week)

    assert insight.severity == Severity.MEDIUM
    assert insight.message.startswith("4 of your last 7 days show signs of burnout")
    # stress minus energy, newest first
    assert [p.value for p in insight.data_points] == [4, 2, 2, 2]


def test_motivation_drop(rough_week):
    insight = detect_motivation_drop(rough_week)

    assert insight.severity == Severity.HIGH
    assert insight.message == "Your motivation has dropped from 5/5 to 2/5 over the past week."
    assert insight.start_date == _day(6)


def test_motivation_drop_needs_low_finish():
    assert detect_motivation_drop(_entries(motivation=[5, 4, 4, 3, 3])) is None


def test_sleep_pattern_counts_quality_or_duration():
    entries = _entries(
        sleep_qual=[4, 2, 4, 4, 1, 4, 4],
        sleep_hrs=[8, 8, 5.5, 8, 8, 8, 7],
    )
    insight = detect_sleep_pattern(entries)

    assert insight.severity == Severity.LOW
    assert insight.message == "3 of your last 7 days had poor sleep quality or duration."


def test_stress_pattern(rough_week):
    insight = detect_stress_pattern(rough_week)
    assert insight.severity == Severity.LOW
    assert insight.message == "You've reported high stress on 4 of the last 7 days."


def test_positive_trend():
    entries = _entries(mood=[2, 2, 2, 4, 4, 4], energy=[2, 2, 2, 4, 4, 4])
    insight = detect_positive_trend(entries)

    assert insight.severity == Severity.LOW
    assert insight.type == InsightType.POSITIVE_TREND
    assert len(insight.data_points) == 6


def test_all_patterns_sorted_by_severity(rough_week):
    insights = detect_all_patterns(rough_week)

    assert [i.type for i in insights] == [
        InsightType.MOTIVATION_DROP,
        InsightType.NEGATIVE_STREAK,
        InsightType.BURNOUT_SIGNAL,
        InsightType.STRESS_PATTERN,
    ]
    assert [i.severity for i in insights] == [
        Severity.HIGH,
        Severity.MEDIUM,
        Severity.MEDIUM,
        Severity.LOW,
    ]


def test_no_patterns_for_empty_journal():
    assert detect_all_patterns([]) == []


def test_pearson_edge_cases():
    assert pearson_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
    assert pearson_correlation([1, 2], [1, 2]) == 0.0
    assert pearson_correlation([1, 2, 3], [1, 2]) == 0.0
    assert pearson_correlation([3, 3, 3], [1, 2, 3]) == 0.0


def test_format_correlation():
    moderate = format_correlation("Mood", "Readiness", 0.456)
    assert moderate.correlation == 0.46
    assert moderate.strength == CorrelationStrength.MODERATE
    assert moderate.direction == CorrelationDirection.POSITIVE

    weak = format_correlation("Mood", "Readiness", 0.15)
    assert weak.strength == CorrelationStrength.NONE
    assert weak.insight == "No clear relationship between mood and readiness."


def test_correlations_pair_by_day():
    entries = _entries(mood=[1, 2, 3, 4, 5, 3], stress=[5, 4, 3, 2, 1, 3])
    metrics = [
        MetricPoint(date=e.date, readiness=e.mood * 20, atl=100 - e.stress * 10)
        for e in entries
    ]
    # A metric day with no journal entry is ignored
    metrics.append(MetricPoint(date=_day(30), readiness=0, atl=0))

    results = analyze_correlations(entries, metrics)

    assert [(r.metric1, r.metric2) for r in results] == [("Mood", "Readiness"), ("Stress", "Training Load")]
    assert results[0].correlation == 1.0
    assert results[0].strength == CorrelationStrength.STRONG
    assert results[0].insight == "Higher mood tends to coincide with higher readiness."
    assert results[1].correlation == -1.0
    assert results[1].direction == CorrelationDirection.NEGATIVE
    assert results[1].insight == "Higher stress tends to coincide with lower training load."


def test_correlations_need_five_common_days():
    entries = _entries(mood=[1, 2, 3, 4])
    metrics = [MetricPoint(date=e.date, readiness=50) for e in entries]
    assert analyze_correlations(entries, metrics) == []


def test_compare_last_14_days():
    entries = [
        DiaryEntry(date=_day(10), mood=3, stress=4),
        DiaryEntry(date=_day(8), mood=3, stress=4, energy=3),
        DiaryEntry(date=_day(3), mood=4, stress=2, energy=3),
        DiaryEntry(date=_day(0), mood=4, stress=2, energy=3),
        # Outside both weeks
        DiaryEntry(date=_day(20), mood=1, motivation=1),
    ]
    comparisons = {c.metric: c for c in compare_last_14_days(entries, TODAY)}

    assert set(comparisons) == {"Mood", "Energy", "Stress"}

    mood = comparisons["Mood"]
    assert (mood.current, mood.previous, mood.change) == (4.0, 3.0, 1.0)
    assert mood.change_percent == 33
    assert mood.trend == Trend.UP
    assert mood.emoji == "😊"

    stress = comparisons["Stress"]
    assert stress.change_percent == -50
    assert stress.trend == Trend.DOWN
    assert stress.emoji == "😌"

    assert comparisons["Energy"].trend == Trend.STABLE
    assert comparisons["Energy"].emoji == "➡️"


def test_comparison_without_previous_week():
    comparison = format_comparison("Mood", 3.5, 0.0, "😊", "😔")
    assert comparison.change_percent == 0
    assert comparison.trend == Trend.UP


def test_rising_stress_is_worse():
    comparison = format_comparison("Stress", 4.0, 2.0, "😌", "😰", lower_is_better=True)
    assert comparison.trend == Trend.UP
    assert comparison.emoji == "😰"
