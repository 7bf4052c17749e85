"""
API Response Models

Pydantic models for API responses.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from coach_engine.fatigue import FatigueResult
from coach_engine.guardrails import GuardrailResult
from coach_engine.journal import CorrelationResult, DetectedInsight, PeriodComparison
from coach_engine.readiness import CheckInPattern, EstimatedReadiness, EvaluationResult
from coach_engine.schemas import ReadinessDecision


class ReadinessResponse(BaseModel):
    """Response for POST /api/readiness/evaluate."""

    evaluation: EvaluationResult
    display: str = Field(..., description="Decision label for display")


class CheckInResponse(BaseModel):
    """Response for a stored check-in."""

    check_in_id: int
    readiness_score: int
    decision: ReadinessDecision
    confidence: int
    locked: bool
    explanation: str


class ReadinessTodayResponse(BaseModel):
    """Response for GET /api/athletes/{athlete_id}/readiness."""

    date: date
    source: str = Field(..., description="check_in or estimate")
    score: int
    decision: Optional[ReadinessDecision] = None
    estimate: Optional[EstimatedReadiness] = Field(
        None, description="Journal and load estimate, when no check-in exists"
    )
    explanation: str
    patterns: List[CheckInPattern] = Field(
        default_factory=list, description="Patterns across the last 7 days of check-ins"
    )


class FatigueResponse(BaseModel):
    result: FatigueResult
    explanation: str


class GuardrailResponse(BaseModel):
    """Response for POST /api/guardrails/check."""

    result: GuardrailResult
    summary: str = Field(..., description="Warnings rendered at the requested depth")


class JournalResponse(BaseModel):
    """Response for POST /api/journal/analyze."""

    insights: List[DetectedInsight] = Field(default_factory=list)
    correlations: List[CorrelationResult] = Field(default_factory=list)
    comparisons: List[PeriodComparison] = Field(default_factory=list)


class ActionResponse(BaseModel):
    """Generic outcome of a memory edit or job."""

    success: bool
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    reason: Optional[str] = Field(None, description="Machine-readable reason")
