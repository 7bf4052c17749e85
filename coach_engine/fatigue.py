"""
Fatigue type classification.

Scores four fatigue types from orthogonal signal subsets:
- CNS: sleep quality, persistent low energy, repeated high intensity
- MUSCULAR: soreness, acute/chronic load ratio, consecutive training days
- METABOLIC: training stress balance, absolute acute load, low energy
- PSYCHOLOGICAL: mood, stress, poor sleep combined with low mood

The dominant type wins when its score reaches 40; below that the athlete
is considered fresh.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from coach_engine.schemas import ExplainLevel

FATIGUE_THRESHOLD = 40
HIGH_SEVERITY = 60


class FatigueType(str, Enum):
    CNS = "CNS"
    MUSCULAR = "MUSCULAR"
    METABOLIC = "METABOLIC"
    PSYCHOLOGICAL = "PSYCHOLOGICAL"
    NONE = "NONE"


class FatigueInputs(BaseModel):
    """Signals available for fatigue classification. All optional."""

    mood: Optional[int] = Field(None, ge=1, le=5)
    energy: Optional[int] = Field(None, ge=1, le=5)
    sleep_quality: Optional[int] = Field(None, ge=1, le=5)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    stress: Optional[int] = Field(None, ge=1, le=5)
    soreness: Optional[int] = Field(None, ge=1, le=5)

    atl: Optional[float] = None
    ctl: Optional[float] = None
    tsb: Optional[float] = None
    recent_high_intensity_days: Optional[int] = Field(
        None, ge=0, description="Hard sessions in the last 7 days"
    )
    consecutive_training_days: Optional[int] = Field(None, ge=0)
    persistent_fatigue_days: Optional[int] = Field(
        None, ge=0, description="Recent days with energy <= 2"
    )


class FatigueReason(BaseModel):
    reason: str
    weight: int


class FatigueResult(BaseModel):
    """Dominant fatigue type with its causes."""

    type: FatigueType
    reasons: List[FatigueReason] = Field(default_factory=list)
    severity: int = Field(..., ge=0, le=100)
    recommendation: str


RECOMMENDATIONS: Dict[FatigueType, Dict[bool, str]] = {
    FatigueType.CNS: {
        True: "Rest day recommended. Avoid any high-intensity work. Focus on sleep and recovery.",
        False: "Light activity only. No intervals or heavy lifting. Consider a nap.",
    },
    FatigueType.MUSCULAR: {
        True: "Active recovery or rest. Foam rolling and stretching. Avoid loaded exercises.",
        False: "Low-impact activity preferred. Swimming or easy cycling. Avoid running.",
    },
    FatigueType.METABOLIC: {
        True: "Reduce training volume. Focus on nutrition and hydration. Consider a deload week.",
        False: "Shorter sessions at lower intensity. Ensure adequate fueling.",
    },
    FatigueType.PSYCHOLOGICAL: {
        True: "Take a mental break from structured training. Do something enjoyable instead.",
        False: "Flexible training today. Skip anything that feels like a chore.",
    },
}


def detect_fatigue_type(inputs: FatigueInputs) -> FatigueResult:
    """
    Classify the athlete's dominant fatigue type.

    Args:
        inputs: Available wellbeing and load signals

    Returns:
        FatigueResult; type NONE with no reasons when no score reaches 40
    """
    # Insertion order breaks ties: CNS, MUSCULAR, METABOLIC, PSYCHOLOGICAL
    scores: Dict[FatigueType, int] = {
        FatigueType.CNS: 0,
        FatigueType.MUSCULAR: 0,
        FatigueType.METABOLIC: 0,
        FatigueType.PSYCHOLOGICAL: 0,
    }
    reasons: List[FatigueReason] = []

    def hit(fatigue_type: FatigueType, weight: int, reason: str) -> None:
        scores[fatigue_type] += weight
        reasons.append(FatigueReason(reason=reason, weight=weight))

    # CNS
    if inputs.sleep_quality is not None and inputs.sleep_quality <= 2:
        hit(FatigueType.CNS, 25, "Poor sleep quality affecting neural recovery")
    if inputs.persistent_fatigue_days is not None and inputs.persistent_fatigue_days >= 3:
        hit(FatigueType.CNS, 30, "Persistent fatigue over multiple days")
    if (
        inputs.energy is not None
        and inputs.energy <= 2
        and inputs.sleep_hours is not None
        and inputs.sleep_hours >= 7
    ):
        hit(FatigueType.CNS, 20, "Low energy despite adequate sleep")
    if inputs.recent_high_intensity_days is not None and inputs.recent_high_intensity_days >= 3:
        hit(FatigueType.CNS, 15, "Multiple high-intensity sessions recently")

    # Muscular
    if inputs.soreness is not None and inputs.soreness >= 4:
        hit(FatigueType.MUSCULAR, 35, "Significant muscle soreness")
    if inputs.atl is not None and inputs.ctl is not None and inputs.ctl > 0:
        if inputs.atl / inputs.ctl > 1.3:
            hit(FatigueType.MUSCULAR, 25, "High acute training load")
    if inputs.consecutive_training_days is not None and inputs.consecutive_training_days >= 5:
        hit(FatigueType.MUSCULAR, 15, "Many consecutive training days")

    # Metabolic
    if inputs.tsb is not None and inputs.tsb < -15:
        hit(FatigueType.METABOLIC, 30, "Deep negative training balance")
    if inputs.atl is not None and inputs.atl > 80:
        hit(FatigueType.METABOLIC, 20, "Very high acute training load")
    if inputs.energy is not None and inputs.energy <= 2:
        hit(FatigueType.METABOLIC, 15, "Low energy levels")

    # Psychological
    if inputs.mood is not None and inputs.mood <= 2:
        hit(FatigueType.PSYCHOLOGICAL, 30, "Low mood")
    if inputs.stress is not None and inputs.stress >= 4:
        hit(FatigueType.PSYCHOLOGICAL, 25, "High stress levels")
    if (
        inputs.sleep_quality is not None
        and inputs.sleep_quality <= 2
        and inputs.mood is not None
        and inputs.mood <= 3
    ):
        hit(FatigueType.PSYCHOLOGICAL, 15, "Poor sleep affecting mental state")

    top_type, top_score = max(scores.items(), key=lambda item: item[1])
    if top_score < FATIGUE_THRESHOLD:
        return FatigueResult(
            type=FatigueType.NONE,
            reasons=[],
            severity=0,
            recommendation="No significant fatigue detected. Continue training as planned.",
        )

    severity = min(100, top_score)
    relevant = sorted(
        (r for r in reasons if r.weight >= 15), key=lambda r: r.weight, reverse=True
    )[:3]

    return FatigueResult(
        type=top_type,
        reasons=relevant,
        severity=severity,
        recommendation=RECOMMENDATIONS[top_type][severity >= HIGH_SEVERITY],
    )


def get_fatigue_explanation(result: FatigueResult, explain_level: ExplainLevel) -> str:
    """Render a fatigue result at the requested explanation depth."""
    if result.type == FatigueType.NONE:
        return "Fresh" if explain_level == ExplainLevel.MINIMAL else "No fatigue detected"

    if explain_level == ExplainLevel.MINIMAL:
        return result.type.value.lower()

    if explain_level == ExplainLevel.STANDARD:
        return f"{result.type.value} fatigue - {result.recommendation.split('.')[0]}"

    causes = "; ".join(r.reason for r in result.reasons)
    return (
        f"{result.type.value} fatigue (severity {result.severity}%). "
        f"Causes: {causes}. {result.recommendation}"
    )
