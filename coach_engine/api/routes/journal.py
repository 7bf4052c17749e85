"""
Journal API Routes

Stateless pattern detection over journal entries.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from coach_engine.api.dependencies import get_clock
from coach_engine.api.models.requests import JournalRequest
from coach_engine.api.models.responses import JournalResponse
from coach_engine.clock import Clock
from coach_engine.journal import analyze_correlations, compare_last_14_days, detect_all_patterns

router = APIRouter()


@router.post("/journal/analyze", response_model=JournalResponse)
async def analyze_journal(
    request: JournalRequest, clock: Clock = Depends(get_clock)
) -> JournalResponse:
    """
    Detect patterns, correlations and week-over-week changes.

    HIDDEN entries are ignored by every analysis. Without an explicit
    anchor day the comparison uses today's UTC date.

    Args:
        request: JournalRequest with entries and optional daily metrics

    Returns:
        JournalResponse with insights sorted HIGH to LOW
    """
    try:
        today = request.today or clock.now().date()
        return JournalResponse(
            insights=detect_all_patterns(request.entries),
            correlations=analyze_correlations(request.entries, request.metrics),
            comparisons=compare_last_14_days(request.entries, today),
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Journal analysis failed: {str(e)}",
        )
