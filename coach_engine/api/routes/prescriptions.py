"""
Prescription API Routes

Endpoint for generating and saving a single session.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coach_engine.api.dependencies import get_clock, get_db_session
from coach_engine.api.models.requests import PrescriptionRequest
from coach_engine.clock import Clock
from coach_engine.coach import CoachDecisionEngine, CoachResponse
from coach_engine.errors import AthleteNotFoundError

router = APIRouter()


@router.post("/athletes/{athlete_id}/prescriptions", response_model=CoachResponse)
def create_prescription(
    athlete_id: str,
    request: PrescriptionRequest,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> CoachResponse:
    """
    Generate a session for the athlete and save it to the calendar.

    Workflow:
    1. Resolve the request into a session intent
    2. Generate the prescription
    3. Adapt it to today's readiness
    4. Validate it against the week's guardrails
    5. Save it idempotently (create, replace or reuse)

    Args:
        athlete_id: Athlete making the request
        request: PrescriptionRequest with message or intent and save options

    Returns:
        CoachResponse with save outcome, rendered Markdown and warnings

    Raises:
        HTTPException: 404 unknown athlete, 400 no resolvable intent,
            422 swim distance mismatch, 500 storage or unexpected failure
    """
    try:
        engine = CoachDecisionEngine(db, clock=clock)
        response = engine.generate_and_save(
            athlete_id,
            message=request.message,
            intent=request.intent,
            mode=request.mode,
            explain_level=request.explain_level,
            source=request.source,
            include_result_template=request.include_result_template,
        )

        if not response.success:
            if response.reason == "no_intent":
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "error": "No Intent",
                        "message": "Could not find a session request in the message",
                        "reason": response.reason,
                    },
                )
            if response.reason == "distance_mismatch":
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail={
                        "error": "Distance Mismatch",
                        "message": "; ".join(response.warnings),
                        "reason": response.reason,
                    },
                )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={
                    "error": "Save Failed",
                    "message": "; ".join(response.warnings),
                    "reason": response.reason,
                },
            )

        return response

    except HTTPException:
        raise
    except AthleteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Prescription failed: {str(e)}",
        )
