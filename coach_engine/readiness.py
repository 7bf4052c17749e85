"""
Pre-training readiness evaluation.

Turns a daily check-in into:
- A 0-100 readiness score (sleep 0-30, physical 0-30, mental 0-40)
- A decision (PROCEED / REDUCE_INTENSITY / SHORTEN / SWAP_RECOVERY / REST)
- Decision-keyed workout adaptations and a short coaching explanation

Also provides an estimated readiness for days without a check-in, built
from journal signals and training load.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from loguru import logger
from pydantic import BaseModel, Field

from coach_engine.numeric import clamp, fmt_number, round_half_up
from coach_engine.schemas import (
    CheckIn,
    DiaryEntry,
    ExplainLevel,
    MuscleSoreness,
    ReadinessDecision,
    Severity,
    TrainingContext,
)


SORENESS_SCORES: Dict[MuscleSoreness, int] = {
    MuscleSoreness.NONE: 15,
    MuscleSoreness.MILD: 10,
    MuscleSoreness.MODERATE: 5,
    MuscleSoreness.SEVERE: 0,
}

DECISION_LABELS: Dict[ReadinessDecision, str] = {
    ReadinessDecision.PROCEED: "Proceed as Planned",
    ReadinessDecision.REDUCE_INTENSITY: "Reduce Intensity",
    ReadinessDecision.SHORTEN: "Shorten Session",
    ReadinessDecision.SWAP_RECOVERY: "Recovery Session",
    ReadinessDecision.REST: "Rest Day",
}


class Impact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class AdaptationType(str, Enum):
    INTENSITY = "intensity"
    DURATION = "duration"
    TYPE = "type"
    REST = "rest"


class EvaluationReason(BaseModel):
    """One signal that pushed the decision up or down."""

    factor: str
    value: Union[float, str]
    impact: Impact
    description: str


class WorkoutAdaptation(BaseModel):
    """Proposed change to today's planned workout."""

    type: AdaptationType
    original_value: Union[int, str]
    adapted_value: Union[int, str]
    reason: str


class EvaluationResult(BaseModel):
    """Output of the pre-training evaluation."""

    readiness_score: int = Field(..., ge=0, le=100)
    decision: ReadinessDecision
    confidence: int = Field(..., ge=35, le=95)
    explanation: str
    reasons: List[EvaluationReason] = Field(default_factory=list)
    adaptations: List[WorkoutAdaptation] = Field(default_factory=list)

    @property
    def negative_reasons(self) -> List[EvaluationReason]:
        return [r for r in self.reasons if r.impact == Impact.NEGATIVE]


# ===== SCORE AND DECISION =====


def calculate_readiness_score(check_in: CheckIn) -> int:
    """
    Readiness score from a check-in.

    Logic:
    - Sleep (0-30): min(hours/8, 1) x 15 + quality/5 x 15
    - Physical (0-30): (6 - fatigue)/5 x 15 + soreness lookup
    - Mental (0-40): readiness/5 x 15 + motivation/5 x 15 + (6 - stress)/5 x 10

    Returns:
        Rounded total, 0-100 for in-range inputs
    """
    sleep_score = min(check_in.sleep_duration / 8, 1) * 15 + (check_in.sleep_quality / 5) * 15
    physical_score = ((6 - check_in.physical_fatigue) / 5) * 15 + SORENESS_SCORES[check_in.muscle_soreness]
    mental_score = (
        (check_in.mental_readiness / 5) * 15
        + (check_in.motivation / 5) * 15
        + ((6 - check_in.stress_level) / 5) * 10
    )
    return round_half_up(sleep_score + physical_score + mental_score)


def map_score_to_decision(score: float) -> ReadinessDecision:
    """
    Map a readiness score to a decision.

    | Score   | Decision          |
    |---------|-------------------|
    | >= 70   | PROCEED           |
    | 50 - 69 | REDUCE_INTENSITY  |
    | 40 - 49 | SHORTEN           |
    | 30 - 39 | SWAP_RECOVERY     |
    | < 30    | REST              |
    """
    if score >= 70:
        return ReadinessDecision.PROCEED
    if score >= 50:
        return ReadinessDecision.REDUCE_INTENSITY
    if score >= 40:
        return ReadinessDecision.SHORTEN
    if score >= 30:
        return ReadinessDecision.SWAP_RECOVERY
    return ReadinessDecision.REST


def get_decision_display(decision: ReadinessDecision) -> str:
    return DECISION_LABELS.get(decision, decision.value)


def evaluate_pre_training(check_in: CheckIn, context: TrainingContext) -> EvaluationResult:
    """
    Evaluate readiness and decide how to adapt today's workout.

    Args:
        check_in: Today's check-in
        context: Training load context for today

    Returns:
        EvaluationResult with decision, confidence, reasons, adaptations and explanation
    """
    score = calculate_readiness_score(check_in)
    reasons: List[EvaluationReason] = []
    reasons.extend(_analyze_sleep(check_in))
    reasons.extend(_analyze_physical_state(check_in))
    reasons.extend(_analyze_mental_state(check_in))
    reasons.extend(_analyze_training_load(context))

    decision = map_score_to_decision(score)
    confidence = _calculate_confidence(score, reasons)
    logger.debug(f"Readiness {score} -> {decision.value} (confidence {confidence})")

    return EvaluationResult(
        readiness_score=score,
        decision=decision,
        confidence=confidence,
        explanation=_generate_explanation(decision, score, reasons),
        reasons=reasons,
        adaptations=_generate_adaptations(decision, context),
    )


def _reason(factor: str, value, impact: Impact, description: str) -> EvaluationReason:
    return EvaluationReason(factor=factor, value=value, impact=impact, description=description)


def _analyze_sleep(check_in: CheckIn) -> List[EvaluationReason]:
    reasons = []
    hours = fmt_number(check_in.sleep_duration)
    if check_in.sleep_duration < 6:
        reasons.append(_reason(
            "Sleep Duration", check_in.sleep_duration, Impact.NEGATIVE,
            f"Only {hours} hours of sleep - below optimal recovery threshold",
        ))
    elif check_in.sleep_duration >= 7.5:
        reasons.append(_reason(
            "Sleep Duration", check_in.sleep_duration, Impact.POSITIVE,
            f"{hours} hours of quality rest",
        ))

    if check_in.sleep_quality <= 2:
        reasons.append(_reason(
            "Sleep Quality", check_in.sleep_quality, Impact.NEGATIVE,
            "Poor sleep quality affects recovery and performance",
        ))
    elif check_in.sleep_quality >= 4:
        reasons.append(_reason(
            "Sleep Quality", check_in.sleep_quality, Impact.POSITIVE,
            "Good sleep quality supports optimal performance",
        ))
    return reasons


def _analyze_physical_state(check_in: CheckIn) -> List[EvaluationReason]:
    reasons = []
    if check_in.physical_fatigue >= 4:
        reasons.append(_reason(
            "Physical Fatigue", check_in.physical_fatigue, Impact.NEGATIVE,
            "High physical fatigue - body needs more recovery time",
        ))
    elif check_in.physical_fatigue <= 2:
        reasons.append(_reason(
            "Physical Fatigue", check_in.physical_fatigue, Impact.POSITIVE,
            "Feeling physically fresh and recovered",
        ))

    if check_in.muscle_soreness == MuscleSoreness.SEVERE:
        reasons.append(_reason(
            "Muscle Soreness", check_in.muscle_soreness.value, Impact.NEGATIVE,
            "Severe muscle soreness - training may worsen recovery",
        ))
    elif check_in.muscle_soreness == MuscleSoreness.MODERATE:
        reasons.append(_reason(
            "Muscle Soreness", check_in.muscle_soreness.value, Impact.NEGATIVE,
            "Moderate soreness - consider reducing intensity",
        ))
    return reasons


def _analyze_mental_state(check_in: CheckIn) -> List[EvaluationReason]:
    reasons = []
    if check_in.mental_readiness <= 2:
        reasons.append(_reason(
            "Mental Readiness", check_in.mental_readiness, Impact.NEGATIVE,
            "Low mental readiness - forcing training may be counterproductive",
        ))
    elif check_in.mental_readiness >= 4:
        reasons.append(_reason(
            "Mental Readiness", check_in.mental_readiness, Impact.POSITIVE,
            "Mentally prepared and focused",
        ))

    if check_in.motivation <= 2:
        reasons.append(_reason(
            "Motivation", check_in.motivation, Impact.NEGATIVE,
            "Low motivation - consider a lighter or more enjoyable session",
        ))
    elif check_in.motivation >= 4:
        reasons.append(_reason(
            "Motivation", check_in.motivation, Impact.POSITIVE,
            "High motivation - great mindset for training",
        ))

    if check_in.stress_level >= 4:
        reasons.append(_reason(
            "Stress Level", check_in.stress_level, Impact.NEGATIVE,
            "High stress levels - training may add to overall load",
        ))
    return reasons


def _analyze_training_load(context: TrainingContext) -> List[EvaluationReason]:
    reasons = []
    if context.tsb < -20:
        reasons.append(_reason(
            "Training Form (TSB)", context.tsb, Impact.NEGATIVE,
            "Deep fatigue state - accumulated training load is high",
        ))
    elif context.tsb > 10:
        reasons.append(_reason(
            "Training Form (TSB)", context.tsb, Impact.POSITIVE,
            "Fresh and well-recovered",
        ))

    if context.yesterday_tss is not None and context.yesterday_tss > 100:
        reasons.append(_reason(
            "Yesterday's Load", context.yesterday_tss, Impact.NEGATIVE,
            "Heavy training yesterday - may still be recovering",
        ))
    return reasons


def _calculate_confidence(score: int, reasons: Sequence[EvaluationReason]) -> int:
    """
    Confidence in the decision.

    Logic:
    - Base is the readiness score
    - Agreement between reasons moves it by 3 per net reason (-10..+8)
    - Clamped to 35-95
    """
    positive = sum(1 for r in reasons if r.impact == Impact.POSITIVE)
    negative = sum(1 for r in reasons if r.impact == Impact.NEGATIVE)
    adjustment = clamp((positive - negative) * 3, -10, 8)
    return int(clamp(round_half_up(score) + adjustment + 5, 35, 95))


def _generate_adaptations(
    decision: ReadinessDecision, context: TrainingContext
) -> List[WorkoutAdaptation]:
    planned_duration = context.planned_duration or 0
    workout_type = context.workout_type or "planned workout"

    if decision == ReadinessDecision.REDUCE_INTENSITY:
        return [
            WorkoutAdaptation(
                type=AdaptationType.INTENSITY,
                original_value="100%",
                adapted_value="80-85%",
                reason="Reducing intensity to match current readiness",
            )
        ]
    if decision == ReadinessDecision.SHORTEN:
        reduced = round_half_up(planned_duration * 0.7)
        return [
            WorkoutAdaptation(
                type=AdaptationType.DURATION,
                original_value=f"{planned_duration} min",
                adapted_value=f"{reduced} min",
                reason="Shortening session to prevent overreaching",
            ),
            WorkoutAdaptation(
                type=AdaptationType.INTENSITY,
                original_value="100%",
                adapted_value="85-90%",
                reason="Slightly reducing intensity for shorter session",
            ),
        ]
    if decision == ReadinessDecision.SWAP_RECOVERY:
        return [
            WorkoutAdaptation(
                type=AdaptationType.TYPE,
                original_value=workout_type,
                adapted_value="Recovery",
                reason="Swapping to recovery session for optimal adaptation",
            ),
            WorkoutAdaptation(
                type=AdaptationType.DURATION,
                original_value=f"{planned_duration} min",
                adapted_value="30-45 min",
                reason="Light movement to promote blood flow and recovery",
            ),
        ]
    if decision == ReadinessDecision.REST:
        return [
            WorkoutAdaptation(
                type=AdaptationType.REST,
                original_value=workout_type,
                adapted_value="Rest Day",
                reason="Complete rest recommended for recovery",
            )
        ]
    return []


def _generate_explanation(
    decision: ReadinessDecision, score: int, reasons: Sequence[EvaluationReason]
) -> str:
    negative = [r for r in reasons if r.impact == Impact.NEGATIVE]
    positive = [r for r in reasons if r.impact == Impact.POSITIVE]

    if decision == ReadinessDecision.PROCEED:
        if positive:
            text = (
                f"You're in a good place today! Your readiness score is {score}/100. "
                f"{positive[0].description}. Let's make the most of this session."
            )
        else:
            text = (
                f"Your readiness looks solid at {score}/100. "
                "You're good to go with today's planned workout."
            )
    elif decision == ReadinessDecision.REDUCE_INTENSITY:
        lead = negative[0].description if negative else "some signals suggest caution"
        text = (
            f"I'd suggest dialing back the intensity a bit today. {lead}. Training at 80-85% "
            "will still give you a quality session while respecting your body's signals."
        )
    elif decision == ReadinessDecision.SHORTEN:
        lead = negative[0].description if negative else "your body is asking for a lighter day"
        text = (
            f"Let's make today a shorter session. {lead}. A focused 70% duration workout "
            "will keep you on track without pushing too hard."
        )
    elif decision == ReadinessDecision.SWAP_RECOVERY:
        lead = " and ".join(r.description.lower() for r in negative[:2])
        text = (
            "Today might be better as a recovery day. "
            f"{lead or 'Multiple signals suggest your body needs gentler movement'}. "
            "Light activity will actually help you bounce back faster."
        )
    else:
        text = (
            "I'm recommending a rest day today. Your body is sending clear signals that it "
            "needs recovery. Taking today off will help you come back stronger for your next session."
        )

    return limit_sentences(text, 3)


_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def limit_sentences(text: str, max_sentences: int) -> str:
    """Keep at most max_sentences sentences, normalizing whitespace."""
    normalized = " ".join(text.split())
    if not normalized:
        return ""
    sentences = [s for s in _SENTENCE_BREAK.split(normalized) if s]
    return " ".join(sentences[:max_sentences])


# ===== CHECK-IN PATTERNS =====


class CheckInPatternType(str, Enum):
    CHRONIC_FATIGUE = "CHRONIC_FATIGUE"
    MOTIVATION_DROP = "MOTIVATION_DROP"
    STRESS_ACCUMULATION = "STRESS_ACCUMULATION"
    SLEEP_DEFICIT = "SLEEP_DEFICIT"
    POSITIVE_TREND = "POSITIVE_TREND"


class CheckInPattern(BaseModel):
    type: CheckInPatternType
    severity: Severity
    description: str
    recommendation: str


def detect_check_in_patterns(check_ins: Sequence[CheckIn]) -> List[CheckInPattern]:
    """
    Detect multi-day patterns across check-ins.

    Args:
        check_ins: Recent check-ins (typically one week)

    Returns:
        Detected patterns; empty with fewer than 3 check-ins
    """
    if len(check_ins) < 3:
        return []

    n = len(check_ins)
    avg_fatigue = sum(c.physical_fatigue for c in check_ins) / n
    avg_motivation = sum(c.motivation for c in check_ins) / n
    avg_stress = sum(c.stress_level for c in check_ins) / n
    avg_sleep = sum(c.sleep_duration for c in check_ins) / n

    patterns: List[CheckInPattern] = []
    if avg_fatigue >= 3.5:
        patterns.append(CheckInPattern(
            type=CheckInPatternType.CHRONIC_FATIGUE,
            severity=Severity.HIGH if avg_fatigue >= 4 else Severity.MEDIUM,
            description=f"Average fatigue level of {avg_fatigue:.1f}/5 over the past {n} days",
            recommendation="Consider a deload week or additional recovery days",
        ))
    if avg_motivation <= 2.5:
        patterns.append(CheckInPattern(
            type=CheckInPatternType.MOTIVATION_DROP,
            severity=Severity.HIGH if avg_motivation <= 2 else Severity.MEDIUM,
            description=f"Motivation averaging {avg_motivation:.1f}/5 - below optimal levels",
            recommendation="Mix up training with enjoyable activities or take a mental break",
        ))
    if avg_stress >= 3.5:
        patterns.append(CheckInPattern(
            type=CheckInPatternType.STRESS_ACCUMULATION,
            severity=Severity.HIGH if avg_stress >= 4 else Severity.MEDIUM,
            description=f"Elevated stress levels averaging {avg_stress:.1f}/5",
            recommendation="Prioritize stress management and consider reducing training volume",
        ))
    if avg_sleep < 6.5:
        patterns.append(CheckInPattern(
            type=CheckInPatternType.SLEEP_DEFICIT,
            severity=Severity.HIGH if avg_sleep < 6 else Severity.MEDIUM,
            description=f"Average sleep of {avg_sleep:.1f} hours - below recovery threshold",
            recommendation="Focus on sleep hygiene and aim for 7-8 hours nightly",
        ))
    if avg_fatigue <= 2 and avg_motivation >= 4 and avg_stress <= 2:
        patterns.append(CheckInPattern(
            type=CheckInPatternType.POSITIVE_TREND,
            severity=Severity.LOW,
            description="Great balance of recovery, motivation, and stress management",
            recommendation="Keep up the good work! You're in a great training state",
        ))
    return patterns


# ===== ESTIMATED READINESS =====


class ReadinessStatus(str, Enum):
    OPTIMAL = "OPTIMAL"
    CAUTION = "CAUTION"
    FATIGUED = "FATIGUED"


class ReadinessFactor(BaseModel):
    factor: str
    impact: float
    description: str


class EstimatedReadiness(BaseModel):
    """Readiness estimated from journal and load signals."""

    score: int = Field(..., ge=0, le=100)
    status: ReadinessStatus
    factors: List[ReadinessFactor] = Field(default_factory=list)
    confidence: int = Field(..., ge=0, le=100)


MAX_ESTIMATE_DATA_POINTS = 8


def estimate_readiness(
    diary: Optional[DiaryEntry],
    context: Optional[TrainingContext] = None,
    hrv: Optional[float] = None,
    hrv_baseline: Optional[float] = None,
) -> EstimatedReadiness:
    """
    Estimate readiness when no check-in exists.

    Starts from a neutral-good baseline of 70 and adds one term per
    available signal. Confidence grows with the number of signals.

    Args:
        diary: Today's journal entry, if any
        context: Training load context, if any
        hrv: Today's HRV reading
        hrv_baseline: Rolling HRV baseline

    Returns:
        EstimatedReadiness with score, status, top-5 factors and confidence
    """
    factors: List[ReadinessFactor] = []
    score = 70.0

    def add(name: str, impact: float, description: str, shown: Optional[float] = None) -> None:
        nonlocal score
        score += impact
        factors.append(ReadinessFactor(
            factor=name, impact=impact if shown is None else shown, description=description
        ))

    if diary is not None:
        if diary.sleep_qual is not None:
            q = diary.sleep_qual
            add("sleep_quality", (q - 3) * 8,
                "Good sleep quality" if q >= 4 else "Poor sleep quality" if q <= 2 else "Average sleep")
        if diary.sleep_hrs is not None:
            h = diary.sleep_hrs
            impact = clamp((h - 7.5) * 4, -12, 8)
            add("sleep_duration", impact,
                f"{h:.1f}h sleep" if h >= 7 else f"Only {h:.1f}h sleep", round_half_up(impact))
        if diary.mood is not None:
            m = diary.mood
            add("mood", (m - 3) * 6,
                "Positive mood" if m >= 4 else "Low mood" if m <= 2 else "Neutral mood")
        if diary.energy is not None:
            e = diary.energy
            add("energy", (e - 3) * 6,
                "High energy" if e >= 4 else "Low energy" if e <= 2 else "Normal energy")
        if diary.stress is not None:
            s = diary.stress
            add("stress", (3 - s) * 5,
                "Low stress" if s <= 2 else "High stress" if s >= 4 else "Moderate stress")
        if diary.soreness is not None:
            s = diary.soreness
            add("soreness", (3 - s) * 6,
                "Fresh muscles" if s <= 2 else "Significant soreness" if s >= 4 else "Some soreness")

    if context is not None:
        tsb = context.tsb
        impact = clamp(tsb * 0.8, -15, 15)
        add("training_balance", impact,
            "Well recovered" if tsb > 5 else "Accumulated fatigue" if tsb < -10 else "Normal training load",
            round_half_up(impact))
        if context.ctl > 0:
            ratio = context.atl / context.ctl
            if ratio > 1.4:
                ratio_impact = -10
            elif ratio > 1.2:
                ratio_impact = -5
            elif ratio < 0.6:
                ratio_impact = -3
            else:
                ratio_impact = 3
            add("load_ratio", ratio_impact,
                "High acute load" if ratio > 1.3 else "Low recent training" if ratio < 0.7 else "Balanced load")

    if hrv is not None and hrv_baseline is not None and hrv_baseline > 0:
        pct = (hrv - hrv_baseline) / hrv_baseline * 100
        impact = clamp(pct * 0.5, -15, 10)
        add("hrv", impact,
            "HRV above baseline" if pct > 5 else "HRV below baseline" if pct < -10 else "HRV normal",
            round_half_up(impact))

    final_score = int(clamp(round_half_up(score), 0, 100))
    if final_score >= 70:
        status = ReadinessStatus.OPTIMAL
    elif final_score >= 45:
        status = ReadinessStatus.CAUTION
    else:
        status = ReadinessStatus.FATIGUED

    confidence = min(100, round_half_up(len(factors) / MAX_ESTIMATE_DATA_POINTS * 100 + 20))
    factors.sort(key=lambda f: abs(f.impact), reverse=True)

    return EstimatedReadiness(
        score=final_score, status=status, factors=factors[:5], confidence=confidence
    )


def get_readiness_explanation(result: EstimatedReadiness, explain_level: ExplainLevel) -> str:
    """Render an estimated readiness at the requested explanation depth."""
    if explain_level == ExplainLevel.MINIMAL:
        return f"Readiness: {result.status.value.lower()}"

    if explain_level == ExplainLevel.STANDARD:
        top = result.factors[0].description if result.factors else result.status.value
        return f"{result.score}/100 - {top}"

    parts = ", ".join(
        f"{f.description} ({'+' if f.impact > 0 else ''}{fmt_number(f.impact)})"
        for f in result.factors[:3]
    )
    return f"Readiness {result.score}/100 ({result.confidence}% confidence). Key factors: {parts}"
