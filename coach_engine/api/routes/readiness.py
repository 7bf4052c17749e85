"""
Readiness API Routes

Endpoints for check-ins, readiness evaluation and fatigue classification.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy.orm import Session

from coach_engine.api.dependencies import get_clock, get_db_session
from coach_engine.api.models.requests import (
    CheckInSubmitRequest,
    FatigueRequest,
    OverrideRequest,
    ReadinessRequest,
)
from coach_engine.api.models.responses import (
    CheckInResponse,
    FatigueResponse,
    ReadinessResponse,
    ReadinessTodayResponse,
)
from coach_engine.clock import Clock
from coach_engine.coach import load_coach_context
from coach_engine.errors import AthleteNotFoundError
from coach_engine.fatigue import detect_fatigue_type, get_fatigue_explanation
from coach_engine.readiness import (
    detect_check_in_patterns,
    estimate_readiness,
    evaluate_pre_training,
    get_decision_display,
    get_readiness_explanation,
)
from coach_engine.repositories import CheckInRepository, DiaryRepository
from coach_engine.schemas import ExplainLevel

router = APIRouter()


@router.post("/readiness/evaluate", response_model=ReadinessResponse)
async def evaluate_readiness(request: ReadinessRequest) -> ReadinessResponse:
    """
    Evaluate a check-in without storing it.

    Args:
        request: ReadinessRequest with check-in and training context

    Returns:
        ReadinessResponse with score, decision, reasons and adaptations
    """
    try:
        evaluation = evaluate_pre_training(request.check_in, request.context)
        return ReadinessResponse(
            evaluation=evaluation, display=get_decision_display(evaluation.decision)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Readiness evaluation failed: {str(e)}",
        )


@router.post("/athletes/{athlete_id}/check-ins", response_model=CheckInResponse)
def submit_check_in(
    athlete_id: str,
    request: CheckInSubmitRequest,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> CheckInResponse:
    """
    Store today's check-in and attach the readiness decision.

    A day holds at most one locked check-in; submitting again after the
    decision was locked is rejected with 409.

    Raises:
        HTTPException: 404 for an unknown athlete, 409 when today is locked
    """
    try:
        context = load_coach_context(db, athlete_id, clock)
        repo = CheckInRepository(db)

        existing = repo.get_for_day(athlete_id, context.today)
        if existing is not None and existing.locked:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Check-in for {context.today} is already locked",
            )

        evaluation = evaluate_pre_training(request.check_in, context.training)
        record = repo.create(athlete_id, request.check_in, context.today)
        repo.attach_decision(
            record,
            evaluation.readiness_score,
            evaluation.decision,
            evaluation.confidence,
            lock=request.lock,
        )
        db.commit()
        logger.info(
            f"Check-in {record.id} for {athlete_id}: {evaluation.decision.value} "
            f"({evaluation.readiness_score})"
        )

        return CheckInResponse(
            check_in_id=record.id,
            readiness_score=evaluation.readiness_score,
            decision=evaluation.decision,
            confidence=evaluation.confidence,
            locked=record.locked,
            explanation=evaluation.explanation,
        )

    except HTTPException:
        raise
    except AthleteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Check-in failed: {str(e)}",
        )


@router.get("/athletes/{athlete_id}/readiness", response_model=ReadinessTodayResponse)
def get_readiness_today(
    athlete_id: str,
    explain_level: ExplainLevel = ExplainLevel.STANDARD,
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ReadinessTodayResponse:
    """
    Today's readiness for an athlete.

    Uses today's check-in when there is one. Otherwise readiness is
    estimated from today's journal entry and the training load. Patterns
    are detected across the last 7 days of check-ins either way.

    Raises:
        HTTPException: 404 for an unknown athlete
    """
    try:
        context = load_coach_context(db, athlete_id, clock)
    except AthleteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    today = context.today
    week = CheckInRepository(db).find_in_range(athlete_id, today - timedelta(days=6), today)
    patterns = detect_check_in_patterns([record.to_check_in() for record in week])

    if context.readiness is not None:
        return ReadinessTodayResponse(
            date=today,
            source="check_in",
            score=context.readiness.score,
            decision=context.readiness.decision,
            explanation=get_decision_display(context.readiness.decision),
            patterns=patterns,
        )

    entries = DiaryRepository(db).find_in_range(athlete_id, today, today)
    diary = entries[-1].to_entry() if entries else None
    estimate = estimate_readiness(diary, context.training)
    logger.debug(f"Estimated readiness for {athlete_id} on {today}: {estimate.score}")

    return ReadinessTodayResponse(
        date=today,
        source="estimate",
        score=estimate.score,
        estimate=estimate,
        explanation=get_readiness_explanation(estimate, explain_level),
        patterns=patterns,
    )


@router.post("/athletes/{athlete_id}/check-ins/{check_in_id}/override", response_model=CheckInResponse)
def override_check_in(
    athlete_id: str,
    check_in_id: int,
    request: OverrideRequest,
    db: Session = Depends(get_db_session),
) -> CheckInResponse:
    """
    Record that the athlete accepted or overrode the decision.

    Derived fields (score, decision, confidence) are never changed here.
    """
    repo = CheckInRepository(db)
    records = repo.get_many(athlete_id, [check_in_id])
    if not records:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Check-in {check_in_id} not found",
        )

    record = records[0]
    if record.decision is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Check-in has no decision to override",
        )

    repo.record_override(record, request.accepted, request.reason)
    db.commit()
    logger.info(f"Check-in {check_in_id} override: accepted={request.accepted}")

    check_in = record.to_check_in()
    return CheckInResponse(
        check_in_id=record.id,
        readiness_score=record.readiness_score,
        decision=check_in.decision,
        confidence=record.confidence,
        locked=record.locked,
        explanation=request.reason or "",
    )


@router.post("/fatigue/detect", response_model=FatigueResponse)
async def detect_fatigue(request: FatigueRequest) -> FatigueResponse:
    """Classify the dominant fatigue type from the given signals."""
    try:
        result = detect_fatigue_type(request.inputs)
        return FatigueResponse(
            result=result, explanation=get_fatigue_explanation(result, request.explain_level)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Fatigue detection failed: {str(e)}",
        )
