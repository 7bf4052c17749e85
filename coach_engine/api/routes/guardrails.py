"""
Guardrail API Routes

Stateless load checks for a planned week.
"""

from fastapi import APIRouter, HTTPException, status

from coach_engine.api.models.requests import DeloadRequest, GuardrailRequest
from coach_engine.api.models.responses import GuardrailResponse
from coach_engine.guardrails import (
    DeloadResult,
    apply_deload,
    check_guardrails,
    format_guardrail_warnings,
)

router = APIRouter()


@router.post("/guardrails/check", response_model=GuardrailResponse)
async def check_week(request: GuardrailRequest) -> GuardrailResponse:
    """
    Check a planned week for ramp, back-to-back hard days and missing rest.

    Args:
        request: GuardrailRequest with planned workouts and last week's load

    Returns:
        GuardrailResponse with risk score, warnings and duration adjustments
    """
    try:
        result = check_guardrails(
            request.planned,
            request.previous_week_load,
            recent=request.recent,
            threshold=request.threshold,
        )
        return GuardrailResponse(
            result=result, summary=format_guardrail_warnings(result, request.explain_level)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Guardrail check failed: {str(e)}",
        )


@router.post("/guardrails/deload", response_model=DeloadResult)
async def deload_week(request: DeloadRequest) -> DeloadResult:
    """Reduce a planned week for recovery."""
    try:
        return apply_deload(request.planned, request.deload_percent)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Deload failed: {str(e)}",
        )
