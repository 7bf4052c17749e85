"""
Coach context: everything the prescription pipeline reads about an athlete.

The context is assembled once per request (see coach.load_coach_context)
and passed unchanged through generate -> adapt -> validate.
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from coach_engine.guardrails import DEFAULT_RAMP_THRESHOLD, LoadMetrics
from coach_engine.schemas import (
    AthleteProfile,
    PlannedWorkout,
    ReadinessDecision,
    Sport,
    TrainingContext,
)


class ReadinessSnapshot(BaseModel):
    """Today's check-in signals as seen by the generator."""

    score: int = Field(100, ge=0, le=100)
    soreness_level: int = Field(0, ge=0, le=4, description="0 when unknown, 4 = severe")
    sleep_quality: int = Field(5, ge=1, le=5)
    decision: Optional[ReadinessDecision] = None

    @property
    def is_low(self) -> bool:
        """Low readiness: score below 50 or severe soreness."""
        return self.score < 50 or self.soreness_level >= 4


class CoachContext(BaseModel):
    """Snapshot of athlete state for one coaching request."""

    profile: AthleteProfile
    today: date
    readiness: Optional[ReadinessSnapshot] = None
    recent_workouts: List[PlannedWorkout] = Field(
        default_factory=list, description="Workouts from the last 14 days"
    )
    planned_this_week: List[PlannedWorkout] = Field(
        default_factory=list, description="Planned workouts from Monday on"
    )
    load_metrics: Optional[LoadMetrics] = None
    hard_sessions_this_week: int = Field(0, ge=0)
    session_counts: Dict[Sport, int] = Field(
        default_factory=dict, description="Historical sessions per sport"
    )
    training: TrainingContext = Field(default_factory=TrainingContext)
    ramp_threshold: float = DEFAULT_RAMP_THRESHOLD
    max_hard_sessions: int = 2

    @property
    def previous_week_load(self) -> float:
        return self.load_metrics.previous_week_load if self.load_metrics else 0.0

    @property
    def ramp_rate(self) -> Optional[float]:
        return self.load_metrics.ramp_rate if self.load_metrics else None

    def sessions_of(self, sport: Sport) -> int:
        return self.session_counts.get(sport, 0)
