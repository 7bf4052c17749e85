"""
Journal pattern detection and correlation analysis.

All detectors are deterministic and read only entries the athlete has not
hidden from the coach (visibility other than HIDDEN). They look at the
most recent week of entries and return at most one insight each.
"""

import math
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from coach_engine.numeric import clamp, round_half_up, round_to
from coach_engine.schemas import (
    SEVERITY_ORDER,
    DiaryEntry,
    MetricPoint,
    Severity,
    VisibilityLevel,
)

MIN_CORRELATION_PAIRS = 5
STABLE_CHANGE = 0.3


class InsightType(str, Enum):
    NEGATIVE_STREAK = "NEGATIVE_STREAK"
    BURNOUT_SIGNAL = "BURNOUT_SIGNAL"
    MOTIVATION_DROP = "MOTIVATION_DROP"
    SLEEP_PATTERN = "SLEEP_PATTERN"
    STRESS_PATTERN = "STRESS_PATTERN"
    POSITIVE_TREND = "POSITIVE_TREND"


class CorrelationStrength(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"
    NONE = "NONE"


class CorrelationDirection(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NONE = "NONE"


class Trend(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    STABLE = "STABLE"


class DataPoint(BaseModel):
    date: date
    value: float


class DetectedInsight(BaseModel):
    """A pattern found in the journal."""

    type: InsightType
    severity: Severity
    title: str
    message: str
    suggestion: str
    start_date: date
    end_date: date
    data_points: List[DataPoint] = Field(default_factory=list)


class CorrelationResult(BaseModel):
    metric1: str
    metric2: str
    correlation: float = Field(..., ge=-1, le=1, description="Pearson r, 2 decimals")
    strength: CorrelationStrength
    direction: CorrelationDirection
    insight: str


class PeriodComparison(BaseModel):
    """One metric, this week against last week."""

    metric: str
    current: float
    previous: float
    change: float
    change_percent: int
    trend: Trend
    emoji: str


# ============================================================================
# Helpers
# ============================================================================

def visible_entries(entries: List[DiaryEntry]) -> List[DiaryEntry]:
    return [e for e in entries if e.visibility_level != VisibilityLevel.HIDDEN]


def _newest_first(entries: List[DiaryEntry]) -> List[DiaryEntry]:
    return sorted(entries, key=lambda e: e.date, reverse=True)


def _oldest_first(entries: List[DiaryEntry]) -> List[DiaryEntry]:
    return sorted(entries, key=lambda e: e.date)


def _count_severity(count: int, high: int, medium: int) -> Severity:
    if count >= high:
        return Severity.HIGH
    if count >= medium:
        return Severity.MEDIUM
    return Severity.LOW


def entry_wellbeing(entry: DiaryEntry) -> float:
    """Mean of mood, energy and motivation; 0 when none is recorded."""
    scores = [s for s in (entry.mood, entry.energy, entry.motivation) if s is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def average_wellbeing(entries: List[DiaryEntry]) -> float:
    scores = [s for s in (entry_wellbeing(e) for e in entries) if s > 0]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


# ============================================================================
# Pattern Detectors
# ============================================================================

def detect_negative_streak(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """Three or more consecutive latest entries with mood <= 2."""
    with_mood = _newest_first([e for e in visible_entries(entries) if e.mood is not None])

    streak: List[DiaryEntry] = []
    for entry in with_mood:
        if entry.mood > 2:
            break
        streak.append(entry)

    if len(streak) < 3:
        return None

    return DetectedInsight(
        type=InsightType.NEGATIVE_STREAK,
        severity=_count_severity(len(streak), high=5, medium=4),
        title="Low mood pattern detected",
        message=(
            f"You've had {len(streak)} consecutive days with low mood. "
            "This is worth paying attention to."
        ),
        suggestion=(
            "Consider a lighter training day or some active recovery. "
            "Sometimes a break helps more than pushing through."
        ),
        start_date=streak[-1].date,
        end_date=streak[0].date,
        data_points=[DataPoint(date=e.date, value=e.mood) for e in streak],
    )


def detect_burnout_signal(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """At least 3 of the last 7 entries with two of: stress >= 4, energy <= 2, motivation <= 2."""
    recent = _newest_first(visible_entries(entries))[:7]
    if len(recent) < 3:
        return None

    burnout: List[DiaryEntry] = []
    for entry in recent:
        indicators = [
            entry.stress is not None and entry.stress >= 4,
            entry.energy is not None and entry.energy <= 2,
            entry.motivation is not None and entry.motivation <= 2,
        ]
        if sum(indicators) >= 2:
            burnout.append(entry)

    if len(burnout) < 3:
        return None

    return DetectedInsight(
        type=InsightType.BURNOUT_SIGNAL,
        severity=_count_severity(len(burnout), high=5, medium=4),
        title="Burnout warning signs",
        message=(
            f"{len(burnout)} of your last 7 days show signs of burnout: "
            "high stress combined with low energy or motivation."
        ),
        suggestion=(
            "This is your body asking for rest. Consider reducing training volume "
            "this week and prioritizing sleep."
        ),
        start_date=burnout[-1].date,
        end_date=burnout[0].date,
        # stress-energy gap
        data_points=[
            DataPoint(date=e.date, value=(e.stress or 0) - (e.energy or 0)) for e in burnout
        ],
    )


def detect_motivation_drop(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """Declining motivation over the last 5-7 entries ending at 2 or below."""
    window = _oldest_first([e for e in visible_entries(entries) if e.motivation is not None])[-7:]
    if len(window) < 5:
        return None

    declines = sum(
        1 for prev, cur in zip(window, window[1:]) if cur.motivation < prev.motivation
    )
    start = window[0].motivation
    current = window[-1].motivation

    if declines < 3 or current > 2 or start <= current:
        return None

    drop = start - current
    return DetectedInsight(
        type=InsightType.MOTIVATION_DROP,
        severity=_count_severity(drop, high=3, medium=2),
        title="Motivation trending down",
        message=f"Your motivation has dropped from {start}/5 to {current}/5 over the past week.",
        suggestion=(
            "Try mixing up your training with something fun, or set a small "
            "achievable goal to rebuild momentum."
        ),
        start_date=window[0].date,
        end_date=window[-1].date,
        data_points=[DataPoint(date=e.date, value=e.motivation) for e in window],
    )


def detect_sleep_pattern(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """At least 3 of the last 7 entries with sleep quality <= 2 or under 6 hours."""
    recent = _newest_first(visible_entries(entries))[:7]

    poor = [
        e
        for e in recent
        if (e.sleep_qual is not None and e.sleep_qual <= 2)
        or (e.sleep_hrs is not None and e.sleep_hrs < 6)
    ]
    if len(poor) < 3:
        return None

    return DetectedInsight(
        type=InsightType.SLEEP_PATTERN,
        severity=_count_severity(len(poor), high=5, medium=4),
        title="Sleep needs attention",
        message=f"{len(poor)} of your last 7 days had poor sleep quality or duration.",
        suggestion=(
            "Sleep is when your body adapts to training. Try setting a consistent "
            "bedtime and limiting screens before bed."
        ),
        start_date=poor[-1].date,
        end_date=poor[0].date,
        data_points=[DataPoint(date=e.date, value=e.sleep_qual or 0) for e in poor],
    )


def detect_stress_pattern(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """At least 4 of the last 7 stress readings at 4 or above."""
    recent = _newest_first([e for e in visible_entries(entries) if e.stress is not None])[:7]

    high = [e for e in recent if e.stress >= 4]
    if len(high) < 4:
        return None

    return DetectedInsight(
        type=InsightType.STRESS_PATTERN,
        severity=_count_severity(len(high), high=6, medium=5),
        title="Elevated stress levels",
        message=f"You've reported high stress on {len(high)} of the last 7 days.",
        suggestion=(
            "High stress impacts recovery. Consider adding some relaxation practices "
            "or reducing training intensity."
        ),
        start_date=high[-1].date,
        end_date=high[0].date,
        data_points=[DataPoint(date=e.date, value=e.stress) for e in high],
    )


def detect_positive_trend(entries: List[DiaryEntry]) -> Optional[DetectedInsight]:
    """Second half of the last week clearly better than the first. Always LOW severity."""
    window = _oldest_first(visible_entries(entries))[-7:]
    if len(window) < 5:
        return None

    midpoint = len(window) // 2
    avg_first = average_wellbeing(window[:midpoint])
    avg_second = average_wellbeing(window[midpoint:])

    if not (avg_second > avg_first + 0.5 and avg_second >= 3.5):
        return None

    return DetectedInsight(
        type=InsightType.POSITIVE_TREND,
        severity=Severity.LOW,
        title="Things are looking up! 🌟",
        message="Your overall wellbeing has improved over the past week. Keep up the good work!",
        suggestion=(
            "You're in a good place. This might be a good time to push a bit harder "
            "if you're feeling it."
        ),
        start_date=window[0].date,
        end_date=window[-1].date,
        data_points=[DataPoint(date=e.date, value=entry_wellbeing(e)) for e in window],
    )


DETECTORS: List[Callable[[List[DiaryEntry]], Optional[DetectedInsight]]] = [
    detect_negative_streak,
    detect_burnout_signal,
    detect_motivation_drop,
    detect_sleep_pattern,
    detect_stress_pattern,
    detect_positive_trend,
]


def detect_all_patterns(entries: List[DiaryEntry]) -> List[DetectedInsight]:
    """Run every detector; insights come back HIGH first, then MEDIUM, then LOW."""
    insights = [insight for insight in (d(entries) for d in DETECTORS) if insight]
    # sorted() is stable, so detector order breaks ties
    return sorted(insights, key=lambda i: SEVERITY_ORDER[i.severity])


# ============================================================================
# Correlations
# ============================================================================

def pearson_correlation(x: List[float], y: List[float]) -> float:
    """Pearson r; 0 for mismatched, too short or constant series."""
    if len(x) != len(y) or len(x) < 3:
        return 0.0

    n = len(x)
    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)

    numerator = n * sum_xy - sum_x * sum_y
    denominator = math.sqrt((n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y))
    if denominator == 0:
        return 0.0
    return numerator / denominator


def format_correlation(metric1: str, metric2: str, correlation: float) -> CorrelationResult:
    magnitude = abs(correlation)
    if magnitude >= 0.7:
        strength = CorrelationStrength.STRONG
    elif magnitude >= 0.4:
        strength = CorrelationStrength.MODERATE
    elif magnitude >= 0.2:
        strength = CorrelationStrength.WEAK
    else:
        strength = CorrelationStrength.NONE

    if correlation > 0.1:
        direction = CorrelationDirection.POSITIVE
    elif correlation < -0.1:
        direction = CorrelationDirection.NEGATIVE
    else:
        direction = CorrelationDirection.NONE

    first, second = metric1.lower(), metric2.lower()
    if strength == CorrelationStrength.NONE:
        insight = f"No clear relationship between {first} and {second}."
    elif direction == CorrelationDirection.POSITIVE:
        insight = f"Higher {first} tends to coincide with higher {second}."
    else:
        insight = f"Higher {first} tends to coincide with lower {second}."

    return CorrelationResult(
        metric1=metric1,
        metric2=metric2,
        correlation=clamp(round_to(correlation, 2), -1.0, 1.0),
        strength=strength,
        direction=direction,
        insight=insight,
    )


CORRELATION_PAIRS = [
    ("Mood", "Readiness", "mood", "readiness"),
    ("Sleep Quality", "Form (TSB)", "sleep_qual", "tsb"),
    ("Stress", "Training Load", "stress", "atl"),
]


def analyze_correlations(
    entries: List[DiaryEntry], metrics: List[MetricPoint]
) -> List[CorrelationResult]:
    """
    Correlate journal values with training metrics on the same calendar day.

    Only days where both values exist are paired; a pair needs at least five
    such days to be reported.

    Args:
        entries: Journal entries (HIDDEN ones are ignored)
        metrics: Daily readiness and load metrics

    Returns:
        List of CorrelationResult for mood-readiness, sleep quality-TSB and
        stress-ATL, in that order
    """
    journal_by_day: Dict[date, DiaryEntry] = {e.date: e for e in visible_entries(entries)}
    metrics_by_day: Dict[date, MetricPoint] = {m.date: m for m in metrics}
    common_days = sorted(set(journal_by_day) & set(metrics_by_day))
    if len(common_days) < MIN_CORRELATION_PAIRS:
        return []

    results = []
    for label1, label2, journal_field, metric_field in CORRELATION_PAIRS:
        xs, ys = [], []
        for day in common_days:
            x = getattr(journal_by_day[day], journal_field)
            y = getattr(metrics_by_day[day], metric_field)
            if x is not None and y is not None:
                xs.append(float(x))
                ys.append(float(y))
        if len(xs) >= MIN_CORRELATION_PAIRS:
            results.append(format_correlation(label1, label2, pearson_correlation(xs, ys)))
    return results


# ============================================================================
# 14-Day Comparison
# ============================================================================

# (label, field, emoji when better, emoji when worse, lower is better)
COMPARISON_METRICS = [
    ("Mood", "mood", "😊", "😔", False),
    ("Energy", "energy", "⚡", "🔋", False),
    ("Motivation", "motivation", "🔥", "💤", False),
    ("Sleep Quality", "sleep_qual", "😴", "😫", False),
    ("Stress", "stress", "😌", "😰", True),
]


def _average_1dp(values: List[float]) -> float:
    if not values:
        return 0.0
    return round_to(sum(values) / len(values), 1)


def format_comparison(
    metric: str,
    current: float,
    previous: float,
    better_emoji: str,
    worse_emoji: str,
    lower_is_better: bool = False,
) -> PeriodComparison:
    change = round_to(current - previous, 1)
    change_percent = round_half_up(change / previous * 100) if previous > 0 else 0

    if abs(change) < STABLE_CHANGE:
        trend = Trend.STABLE
    elif change > 0:
        trend = Trend.UP
    else:
        trend = Trend.DOWN

    improved = trend == (Trend.DOWN if lower_is_better else Trend.UP)
    if improved:
        emoji = better_emoji
    elif trend == Trend.STABLE:
        emoji = "➡️"
    else:
        emoji = worse_emoji

    return PeriodComparison(
        metric=metric,
        current=current,
        previous=previous,
        change=change,
        change_percent=change_percent,
        trend=trend,
        emoji=emoji,
    )


def compare_last_14_days(entries: List[DiaryEntry], today: date) -> List[PeriodComparison]:
    """
    This week (today and the 6 days before) against the 7 days before that.

    Metrics with no data in either week are left out.
    """
    visible = visible_entries(entries)
    current_start = today - timedelta(days=6)
    previous_start = today - timedelta(days=13)
    current_week = [e for e in visible if current_start <= e.date <= today]
    previous_week = [e for e in visible if previous_start <= e.date < current_start]

    comparisons = []
    for label, field, better, worse, lower_is_better in COMPARISON_METRICS:
        current = _average_1dp([getattr(e, field) for e in current_week if getattr(e, field)])
        previous = _average_1dp([getattr(e, field) for e in previous_week if getattr(e, field)])
        if current > 0 or previous > 0:
            comparisons.append(
                format_comparison(label, current, previous, better, worse, lower_is_better)
            )
    return comparisons
