"""
API Request Models

Pydantic models for API request validation.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from coach_engine.fatigue import FatigueInputs
from coach_engine.guardrails import DEFAULT_RAMP_THRESHOLD
from coach_engine.plan_schemas import SessionIntent
from coach_engine.save_engine import SaveMode
from coach_engine.schemas import (
    CheckIn,
    DiaryEntry,
    ExplainLevel,
    MetricPoint,
    PlannedWorkout,
    TrainingContext,
)


class ReadinessRequest(BaseModel):
    """Request model for a stateless readiness evaluation."""

    check_in: CheckIn = Field(..., description="Today's check-in")
    context: TrainingContext = Field(default_factory=TrainingContext)
    explain_level: ExplainLevel = ExplainLevel.STANDARD


class CheckInSubmitRequest(BaseModel):
    """Request model for storing today's check-in."""

    check_in: CheckIn = Field(..., description="Check-in values")
    lock: bool = Field(True, description="Lock the derived decision once attached")


class OverrideRequest(BaseModel):
    """Athlete accepted or rejected the coach's decision."""

    accepted: bool
    reason: Optional[str] = Field(None, max_length=500)


class FatigueRequest(BaseModel):
    inputs: FatigueInputs
    explain_level: ExplainLevel = ExplainLevel.STANDARD


class PrescriptionRequest(BaseModel):
    """Request model for generating (and saving) a session."""

    message: Optional[str] = Field(None, description="Free-text request, e.g. 'swim 2000m tomorrow'")
    intent: Optional[SessionIntent] = Field(None, description="Pre-resolved intent; wins over message")
    mode: Optional[SaveMode] = Field(None, description="Save mode; default upsert")
    explain_level: ExplainLevel = ExplainLevel.STANDARD
    source: str = Field("AI", description="Provenance tag: AI or AI_DRAFT")
    include_result_template: bool = False


class GuardrailRequest(BaseModel):
    """Request model for checking a planned week."""

    planned: List[PlannedWorkout] = Field(..., description="This week's planned workouts")
    previous_week_load: float = Field(0, ge=0)
    recent: List[PlannedWorkout] = Field(default_factory=list, description="Recent completed workouts")
    threshold: float = Field(DEFAULT_RAMP_THRESHOLD, gt=0, description="Ramp threshold (%)")
    explain_level: ExplainLevel = ExplainLevel.STANDARD


class DeloadRequest(BaseModel):
    planned: List[PlannedWorkout]
    deload_percent: float = Field(40, gt=0, lt=100)


class JournalRequest(BaseModel):
    """Journal entries (and optional metrics) to analyse."""

    entries: List[DiaryEntry] = Field(default_factory=list)
    metrics: List[MetricPoint] = Field(default_factory=list)
    today: Optional[date] = Field(None, description="Anchor day for the 14-day comparison")


class PeriodRequest(BaseModel):
    """Inclusive date range for a memory job."""

    start: date
    end: date


class MemoryCorrectionRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    summary: Optional[str] = Field(None, max_length=2000)
