"""
Pydantic models for coach engine inputs.

This module defines the core data structures for:
- Athlete profiles: sport, experience and zone tables used to tailor sessions
- Daily check-ins: self-reported readiness signals
- Training context: CTL/ATL/TSB derived from workout history
- Journal entries and workout feedback consumed by the memory engine
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enumerations
# ============================================================================

class Sport(str, Enum):
    """Sports a single session can be prescribed for."""
    RUN = "RUN"
    BIKE = "BIKE"
    SWIM = "SWIM"
    STRENGTH = "STRENGTH"


class PrimarySport(str, Enum):
    """Athlete's main discipline."""
    RUN = "RUN"
    BIKE = "BIKE"
    SWIM = "SWIM"
    STRENGTH = "STRENGTH"
    TRIATHLON = "TRIATHLON"

    def default_session_sport(self) -> Sport:
        """Sport used when a request names none."""
        if self == PrimarySport.TRIATHLON:
            return Sport.RUN
        return Sport(self.value)


class ExperienceLevel(str, Enum):
    """Overall training experience."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SwimLevel(str, Enum):
    """Swim skill level; selects the default distance band."""
    BEGINNER = "beginner"
    AGE_GROUP = "age_group"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class MuscleSoreness(str, Enum):
    """Self-reported muscle soreness."""
    NONE = "NONE"
    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"

    @property
    def level(self) -> int:
        """Numeric soreness (1-4); 4 means severe."""
        return {
            MuscleSoreness.NONE: 1,
            MuscleSoreness.MILD: 2,
            MuscleSoreness.MODERATE: 3,
            MuscleSoreness.SEVERE: 4,
        }[self]


class ReadinessDecision(str, Enum):
    """What to do with today's planned training."""
    PROCEED = "PROCEED"
    REDUCE_INTENSITY = "REDUCE_INTENSITY"
    SHORTEN = "SHORTEN"
    SWAP_RECOVERY = "SWAP_RECOVERY"
    REST = "REST"


class Intensity(str, Enum):
    """Coarse session intensity tag."""
    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"


class ExplainLevel(str, Enum):
    """How much explanation to render for the athlete."""
    MINIMAL = "minimal"
    STANDARD = "standard"
    DEEP = "deep"


class VisibilityLevel(str, Enum):
    """How much of a journal entry the coach may read."""
    FULL_AI_ACCESS = "FULL_AI_ACCESS"
    METRICS_ONLY = "METRICS_ONLY"
    HIDDEN = "HIDDEN"


class Severity(str, Enum):
    """Severity tag for patterns and insights."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


SEVERITY_ORDER = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


# ============================================================================
# Athlete Profile
# ============================================================================

class HeartRateZones(BaseModel):
    """Heart rate ranges (bpm) used for endurance targets."""

    z2: Optional[Tuple[int, int]] = Field(None, description="Zone 2 range (low, high)")
    z3: Optional[Tuple[int, int]] = Field(None, description="Zone 3 range (low, high)")

    @field_validator("z2", "z3")
    @classmethod
    def validate_range(cls, v: Optional[Tuple[int, int]]) -> Optional[Tuple[int, int]]:
        """Zone ranges must be ascending."""
        if v is not None and v[0] > v[1]:
            raise ValueError(f"Zone range must be ascending, got {v}")
        return v


class AthleteProfile(BaseModel):
    """Athlete fields the coach needs to tailor a session."""

    athlete_id: str = Field(..., description="Unique athlete identifier")
    primary_sport: PrimarySport = Field(PrimarySport.RUN, description="Main discipline")
    experience_level: ExperienceLevel = Field(
        ExperienceLevel.INTERMEDIATE, description="Training experience"
    )
    identity_mode: str = Field(
        "balanced", description="Coaching persona (e.g. 'competitive', 'balanced')"
    )
    swim_level: SwimLevel = Field(SwimLevel.INTERMEDIATE, description="Swim skill level")
    swim_pool_length_m: int = Field(25, ge=10, le=100, description="Pool length in meters")
    hr_zones: Optional[HeartRateZones] = Field(None, description="Heart rate zone table")
    ftp: Optional[int] = Field(None, gt=0, description="Functional threshold power (W)")
    timezone: str = Field("UTC", description="IANA timezone name")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names zoneinfo cannot resolve."""
        from zoneinfo import ZoneInfo

        try:
            ZoneInfo(v)
        except Exception:
            raise ValueError(f"Unknown timezone: {v}")
        return v


# ============================================================================
# Daily Check-in
# ============================================================================

class CheckIn(BaseModel):
    """
    Pre-training daily check-in.

    All 1-5 scales are "higher is more": a fatigue of 5 means very tired,
    a motivation of 5 means very motivated.
    """

    id: Optional[int] = Field(None, description="Stored check-in id")
    day: Optional[date] = Field(None, description="Local calendar date")
    sleep_duration: float = Field(..., ge=0, le=24, description="Hours slept")
    sleep_quality: int = Field(..., ge=1, le=5)
    physical_fatigue: int = Field(..., ge=1, le=5)
    mental_readiness: int = Field(..., ge=1, le=5)
    motivation: int = Field(..., ge=1, le=5)
    muscle_soreness: MuscleSoreness = Field(MuscleSoreness.NONE)
    stress_level: int = Field(..., ge=1, le=5)
    notes: Optional[str] = Field(None, max_length=2000)

    # Set once a decision is attached
    readiness_score: Optional[int] = Field(None, ge=0, le=100)
    decision: Optional[ReadinessDecision] = None
    confidence: Optional[int] = Field(None, ge=0, le=100)
    locked: bool = Field(False, description="Derived fields are frozen once locked")
    user_accepted: Optional[bool] = Field(
        None, description="False when the athlete overrode the decision"
    )
    user_override_reason: Optional[str] = None


class TrainingContext(BaseModel):
    """Load metrics for the day of a check-in."""

    ctl: float = Field(0.0, description="Chronic training load (42-day EMA)")
    atl: float = Field(0.0, description="Acute training load (7-day EMA)")
    tsb: float = Field(0.0, description="Training stress balance (CTL - ATL)")
    yesterday_tss: Optional[float] = Field(None, ge=0)
    planned_tss: Optional[float] = Field(None, ge=0)
    planned_duration: Optional[int] = Field(None, ge=0, description="Minutes")
    workout_type: Optional[str] = None


# ============================================================================
# Journal and Feedback
# ============================================================================

class DiaryEntry(BaseModel):
    """Journal entry with optional 1-5 wellbeing metrics."""

    id: Optional[int] = None
    date: date
    mood: Optional[int] = Field(None, ge=1, le=5)
    energy: Optional[int] = Field(None, ge=1, le=5)
    sleep_hrs: Optional[float] = Field(None, ge=0, le=24)
    sleep_qual: Optional[int] = Field(None, ge=1, le=5)
    stress: Optional[int] = Field(None, ge=1, le=5)
    soreness: Optional[int] = Field(None, ge=1, le=5)
    motivation: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None
    visibility_level: VisibilityLevel = VisibilityLevel.FULL_AI_ACCESS


class WorkoutFeedbackEntry(BaseModel):
    """Post-workout feedback."""

    id: Optional[int] = None
    workout_id: Optional[int] = None
    created_at: Optional[datetime] = None
    visible_to_ai: bool = True
    perceived_difficulty: Optional[str] = Field(
        None, description="e.g. 'easy', 'about_right', 'hard', 'very_hard'"
    )
    enjoyment: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


class PlannedWorkout(BaseModel):
    """A workout as seen by the guardrail evaluator."""

    workout_id: Optional[str] = Field(None, description="Identifier carried into adjustments")
    date: date
    duration_min: int = Field(..., ge=0)
    intensity: Intensity = Intensity.MODERATE
    tss: Optional[float] = Field(None, ge=0)
    title: Optional[str] = None


class MetricPoint(BaseModel):
    """Daily training metrics paired with journal entries for correlation."""

    date: date
    readiness: Optional[float] = None
    ctl: Optional[float] = None
    atl: Optional[float] = None
    tsb: Optional[float] = None


def non_null(values: List[Optional[float]]) -> List[float]:
    """Drop missing values from a series."""
    return [v for v in values if v is not None]
