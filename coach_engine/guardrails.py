"""
Training load safety guardrails.

Monitors week-over-week load ramp, back-to-back hard days and missing rest
days, and proposes duration/intensity adjustments when the planned week
would ramp too fast.

Every function here is total: missing history yields safe defaults and a
"no baseline" flag rather than an error.
"""

from enum import Enum
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from coach_engine.numeric import round_half_up, round_to
from coach_engine.schemas import ExplainLevel, Intensity, PlannedWorkout

DEFAULT_RAMP_THRESHOLD = 15.0
MIN_ADJUSTED_DURATION = 20

_INTENSITY_ORDER = {Intensity.HARD: 3, Intensity.MODERATE: 2, Intensity.EASY: 1}


class RampStatus(str, Enum):
    """Week-over-week load ramp classification."""
    SAFE = "SAFE"
    WARNING = "WARNING"
    DANGER = "DANGER"


class WarningType(str, Enum):
    """Kinds of guardrail warnings."""
    RAMP_RATE = "RAMP_RATE"
    CONSECUTIVE_HARD = "CONSECUTIVE_HARD"
    NO_REST = "NO_REST"
    OVERREACHING = "OVERREACHING"


class WarningSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LoadMetrics(BaseModel):
    """Current vs previous week load."""

    current_week_load: float
    previous_week_load: float
    ramp_rate: Optional[float] = Field(
        None, description="Percent change, rounded to 0.1; None without a baseline"
    )
    status: RampStatus
    no_baseline: bool


class GuardrailWarning(BaseModel):
    """A single guardrail finding."""

    type: WarningType
    message: str
    severity: WarningSeverity
    recommendation: str


class WorkoutAdjustment(BaseModel):
    """Proposed change to one planned workout."""

    workout_id: Optional[str] = None
    date: str = Field(..., description="ISO date of the workout")
    original_duration: int
    adjusted_duration: int
    original_intensity: Intensity
    adjusted_intensity: Intensity
    reason: str


class GuardrailResult(BaseModel):
    """Combined guardrail verdict for a planned week."""

    is_within_limits: bool
    warnings: List[GuardrailWarning] = Field(default_factory=list)
    adjustments: List[WorkoutAdjustment] = Field(default_factory=list)
    risk_score: int = Field(..., ge=0, le=100)

    def adjustment_for(self, workout_id: str) -> Optional[WorkoutAdjustment]:
        """Adjustment proposed for a specific workout, if any."""
        for adjustment in self.adjustments:
            if adjustment.workout_id == workout_id:
                return adjustment
        return None


class DeloadResult(BaseModel):
    adjusted: List[PlannedWorkout]
    description: str


# ===== LOAD ARITHMETIC =====


def workout_load(tss: Optional[float], duration_min: Optional[int]) -> float:
    """TSS when known, else a duration estimate of 0.8 per minute."""
    if tss is not None:
        return tss
    if duration_min is not None:
        return round_half_up(duration_min * 0.8)
    return 0


def calculate_weekly_load(workouts: Iterable[PlannedWorkout]) -> float:
    """
    Sum the load of a set of workouts.

    Args:
        workouts: Workouts with optional TSS and a duration

    Returns:
        Total load (0 for an empty input)
    """
    return sum(workout_load(w.tss, w.duration_min) for w in workouts)


def calculate_ramp_rate(current_week: float, previous_week: float) -> Optional[float]:
    """
    Percent change from previous to current week.

    Returns:
        Ramp rate in percent, or None when there is no baseline (previous == 0)
    """
    if previous_week == 0:
        return None
    return (current_week - previous_week) / previous_week * 100


def get_ramp_status(
    ramp_rate: Optional[float],
    threshold: float = DEFAULT_RAMP_THRESHOLD,
    current_week_load: float = 0,
    previous_week_load: float = 0,
) -> RampStatus:
    """
    Classify a ramp rate.

    Without a baseline the absolute load decides instead: SAFE below 200,
    WARNING up to 400, DANGER above.
    """
    if ramp_rate is None:
        if previous_week_load == 0 and current_week_load > 400:
            return RampStatus.DANGER
        if previous_week_load == 0 and current_week_load >= 200:
            return RampStatus.WARNING
        return RampStatus.SAFE
    if ramp_rate <= threshold:
        return RampStatus.SAFE
    if ramp_rate <= threshold * 1.5:
        return RampStatus.WARNING
    return RampStatus.DANGER


def get_load_metrics(
    current_week: Sequence[PlannedWorkout],
    previous_week: Sequence[PlannedWorkout],
    threshold: float = DEFAULT_RAMP_THRESHOLD,
) -> LoadMetrics:
    """Load metrics for two consecutive weeks of workouts."""
    current_load = calculate_weekly_load(current_week)
    previous_load = calculate_weekly_load(previous_week)
    ramp_rate = calculate_ramp_rate(current_load, previous_load)

    return LoadMetrics(
        current_week_load=current_load,
        previous_week_load=previous_load,
        ramp_rate=round_to(ramp_rate, 1) if ramp_rate is not None else None,
        status=get_ramp_status(ramp_rate, threshold, current_load, previous_load),
        no_baseline=previous_load == 0,
    )


# ===== GUARDRAIL CHECK =====


def check_guardrails(
    planned: Sequence[PlannedWorkout],
    previous_week_load: float,
    recent: Sequence[PlannedWorkout] = (),
    threshold: float = DEFAULT_RAMP_THRESHOLD,
) -> GuardrailResult:
    """
    Evaluate a planned week against the safety guardrails.

    Checks:
    - Ramp rate vs previous week (or absolute load without a baseline)
    - Back-to-back hard days across recent + planned workouts
    - A full week with no rest day

    When the ramp rate is exceeded, adjustments trim the hardest sessions
    first until the projected load is back at the threshold. No session is
    reduced below 20 minutes.

    Args:
        planned: Planned workouts for the week
        previous_week_load: Realized load of the previous week
        recent: Recently completed workouts
        threshold: Maximum ramp rate in percent

    Returns:
        GuardrailResult with risk score, warnings and adjustments
    """
    warnings: List[GuardrailWarning] = []
    adjustments: List[WorkoutAdjustment] = []
    risk_score = 0

    planned_load = calculate_weekly_load(planned)
    ramp_rate = calculate_ramp_rate(planned_load, previous_week_load)
    no_baseline = previous_week_load == 0

    if no_baseline and planned_load > 0:
        if planned_load > 400:
            risk_score += 30
            severity = WarningSeverity.HIGH
        elif planned_load > 200:
            risk_score += 15
            severity = WarningSeverity.MEDIUM
        else:
            risk_score += 5
            severity = WarningSeverity.LOW
        warnings.append(
            GuardrailWarning(
                type=WarningType.RAMP_RATE,
                message=f"No baseline last week. This week load: {planned_load:g}",
                severity=severity,
                recommendation="Load increased from 0 last week; be conservative and monitor how you feel.",
            )
        )
    elif ramp_rate is not None and ramp_rate > threshold:
        severity = WarningSeverity.HIGH if ramp_rate > threshold * 1.5 else WarningSeverity.MEDIUM
        risk_score += 40 if severity == WarningSeverity.HIGH else 25
        warnings.append(
            GuardrailWarning(
                type=WarningType.RAMP_RATE,
                message=f"Weekly load increase of {round_half_up(ramp_rate)}% exceeds {threshold:g}% threshold",
                severity=severity,
                recommendation=f"Reduce planned volume by {round_half_up(ramp_rate - threshold)}% to stay within safe limits",
            )
        )
        target_load = previous_week_load * (1 + threshold / 100)
        adjustments = _trim_to_target(planned, planned_load - target_load)

    back_to_back = _count_back_to_back_hard([*recent, *planned])
    if back_to_back > 0:
        risk_score += 20
        warnings.append(
            GuardrailWarning(
                type=WarningType.CONSECUTIVE_HARD,
                message=f"{back_to_back} back-to-back hard sessions detected",
                severity=WarningSeverity.MEDIUM,
                recommendation="Add recovery day between hard sessions",
            )
        )

    if len({w.date for w in planned}) >= 7:
        risk_score += 15
        warnings.append(
            GuardrailWarning(
                type=WarningType.NO_REST,
                message="No rest days planned this week",
                severity=WarningSeverity.LOW,
                recommendation="Consider adding at least one complete rest day",
            )
        )

    return GuardrailResult(
        is_within_limits=all(w.severity == WarningSeverity.LOW for w in warnings),
        warnings=warnings,
        adjustments=adjustments,
        risk_score=min(100, risk_score),
    )


def _trim_to_target(
    planned: Sequence[PlannedWorkout], excess_load: float
) -> List[WorkoutAdjustment]:
    """
    Greedily trim planned sessions, hardest first.

    Logic:
    - Each session gives up at most 30% of its load
    - A hard session losing more than 20% of its load drops to moderate
    - Sessions without load are skipped
    """
    adjustments: List[WorkoutAdjustment] = []
    remaining = excess_load
    ordered = sorted(planned, key=lambda w: _INTENSITY_ORDER[w.intensity], reverse=True)

    for workout in ordered:
        if remaining <= 0:
            break

        load = workout_load(workout.tss, workout.duration_min)
        if load <= 0:
            continue

        reduction = min(remaining, load * 0.3)
        new_duration = round_half_up(workout.duration_min * (1 - reduction / load))

        new_intensity = workout.intensity
        if workout.intensity == Intensity.HARD and reduction > load * 0.2:
            new_intensity = Intensity.MODERATE

        if new_duration != workout.duration_min or new_intensity != workout.intensity:
            adjustments.append(
                WorkoutAdjustment(
                    workout_id=workout.workout_id,
                    date=workout.date.isoformat(),
                    original_duration=workout.duration_min,
                    adjusted_duration=max(MIN_ADJUSTED_DURATION, new_duration),
                    original_intensity=workout.intensity,
                    adjusted_intensity=new_intensity,
                    reason="Guardrail: ramp rate capped",
                )
            )
            remaining -= reduction

    return adjustments


def _count_back_to_back_hard(workouts: Sequence[PlannedWorkout]) -> int:
    """Count adjacent-calendar-day pairs where both sessions are hard."""
    ordered = sorted(workouts, key=lambda w: w.date)
    count = 0
    for prev, curr in zip(ordered, ordered[1:]):
        if (
            (curr.date - prev.date).days == 1
            and prev.intensity == Intensity.HARD
            and curr.intensity == Intensity.HARD
        ):
            count += 1
    return count


# ===== DELOAD AND DISPLAY =====


def apply_deload(workouts: Sequence[PlannedWorkout], deload_percent: float = 40) -> DeloadResult:
    """
    Reduce volume and drop intensity one step for a deload week.

    Args:
        workouts: Planned workouts
        deload_percent: Volume reduction in percent

    Returns:
        DeloadResult with adjusted workouts and a description
    """
    factor = 1 - deload_percent / 100
    step_down = {
        Intensity.HARD: Intensity.MODERATE,
        Intensity.MODERATE: Intensity.EASY,
        Intensity.EASY: Intensity.EASY,
    }

    adjusted = [
        w.model_copy(
            update={
                "duration_min": round_half_up(w.duration_min * factor),
                "intensity": step_down[w.intensity],
                "tss": round_half_up(w.tss * factor * 0.8) if w.tss else None,
            }
        )
        for w in workouts
    ]
    removed = sum(w.duration_min for w in workouts) - sum(w.duration_min for w in adjusted)

    return DeloadResult(
        adjusted=adjusted,
        description=f"Deload applied: {deload_percent:g}% volume reduction ({removed} min removed), intensities lowered",
    )


def get_risk_description(risk_score: float) -> str:
    if risk_score < 20:
        return "Low risk"
    if risk_score < 50:
        return "Moderate risk"
    if risk_score < 75:
        return "High risk"
    return "Very high risk"


def format_guardrail_warnings(result: GuardrailResult, explain_level: ExplainLevel) -> str:
    """Render guardrail warnings at the requested explanation depth."""
    if not result.warnings:
        return "OK" if explain_level == ExplainLevel.MINIMAL else "Training load within safe limits"

    if explain_level == ExplainLevel.MINIMAL:
        return f"{len(result.warnings)} warning(s)"

    if explain_level == ExplainLevel.STANDARD:
        return ". ".join(w.message for w in result.warnings)

    return "\n\n".join(f"⚠️ {w.message}\n   → {w.recommendation}" for w in result.warnings)
