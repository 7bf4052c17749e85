"""
Memory API Routes

Endpoints for viewing, explaining and editing athlete memories, and for
running the weekly, monthly and cleanup jobs on demand.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coach_engine.api.dependencies import get_clock, get_db_session
from coach_engine.api.models.requests import MemoryCorrectionRequest, PeriodRequest
from coach_engine.api.models.responses import ActionResponse
from coach_engine.clock import Clock
from coach_engine.memory import (
    MemoryEngine,
    MemoryExplanation,
    MemoryOverview,
    MonthlyTraitResult,
    WeeklySummaryResult,
)

router = APIRouter()


def _check_period(period: PeriodRequest) -> None:
    if period.end < period.start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Period end must not be before its start",
        )


@router.get("/athletes/{athlete_id}/memories", response_model=MemoryOverview)
def list_memories(
    athlete_id: str,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> MemoryOverview:
    """Current memories grouped by layer, with the average confidence."""
    return MemoryEngine(db, clock).get_active_memories(athlete_id)


@router.get("/athletes/{athlete_id}/memories/{memory_id}/explain", response_model=MemoryExplanation)
def explain_memory(
    athlete_id: str,
    memory_id: int,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> MemoryExplanation:
    """
    Explain why the coach knows something.

    Sources are described with privacy-safe snippets; raw notes and
    comments are never returned.
    """
    explanation = MemoryEngine(db, clock).explain(athlete_id, memory_id)
    if explanation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Memory {memory_id} not found",
        )
    return explanation


@router.delete("/athletes/{athlete_id}/memories/{memory_id}", response_model=ActionResponse)
def delete_memory(
    athlete_id: str,
    memory_id: int,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ActionResponse:
    if not MemoryEngine(db, clock).delete_memory(athlete_id, memory_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Memory {memory_id} not found",
        )
    return ActionResponse(success=True, message=f"Memory {memory_id} deleted")


@router.patch("/athletes/{athlete_id}/memories/{memory_id}", response_model=ActionResponse)
def correct_memory(
    athlete_id: str,
    memory_id: int,
    request: MemoryCorrectionRequest,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ActionResponse:
    """Apply an athlete correction. Corrections lower the memory's confidence."""
    if not request.title and not request.summary:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide a title or a summary",
        )
    engine = MemoryEngine(db, clock)
    if not engine.correct_memory(athlete_id, memory_id, request.title, request.summary):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Memory {memory_id} not found",
        )
    return ActionResponse(success=True, message=f"Memory {memory_id} corrected")


@router.post("/athletes/{athlete_id}/memories/{memory_id}/promote", response_model=ActionResponse)
def promote_memory(
    athlete_id: str,
    memory_id: int,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ActionResponse:
    """Promote a short-term memory to mid-term."""
    if not MemoryEngine(db, clock).promote_memory(athlete_id, memory_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Short-term memory {memory_id} not found",
        )
    return ActionResponse(success=True, message=f"Memory {memory_id} promoted to MID_TERM")


@router.post("/athletes/{athlete_id}/memories/weekly", response_model=WeeklySummaryResult)
def run_weekly_summary(
    athlete_id: str,
    period: PeriodRequest,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> WeeklySummaryResult:
    _check_period(period)
    try:
        return MemoryEngine(db, clock).generate_weekly_summary(athlete_id, period.start, period.end)
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Weekly summary failed: {str(e)}",
        )


@router.post("/athletes/{athlete_id}/memories/monthly", response_model=MonthlyTraitResult)
def run_monthly_traits(
    athlete_id: str,
    period: PeriodRequest,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> MonthlyTraitResult:
    _check_period(period)
    try:
        return MemoryEngine(db, clock).infer_monthly_traits(athlete_id, period.start, period.end)
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Trait inference failed: {str(e)}",
        )


@router.post("/athletes/{athlete_id}/memories/cleanup", response_model=ActionResponse)
def cleanup_memories(
    athlete_id: str,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ActionResponse:
    count = MemoryEngine(db, clock).cleanup_expired(athlete_id)
    return ActionResponse(success=True, message=f"{count} expired memories cleaned up")
