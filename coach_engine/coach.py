"""
Coach orchestration.

Loads an athlete's context from the database, resolves the request into a
session intent and runs generate -> adapt -> validate -> save in that
order. This is the single entry point used by the CLI and the API.
"""

import re
from datetime import timedelta
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from coach_engine.clock import Clock, SystemClock, local_day_bounds, today_in, week_start
from coach_engine.config import Settings, settings as default_settings
from coach_engine.context import CoachContext, ReadinessSnapshot
from coach_engine.errors import AthleteNotFoundError, SaveRefusedError
from coach_engine.guardrails import get_load_metrics
from coach_engine.intent import IntentResolver, KeywordIntentResolver
from coach_engine.plan_schemas import SessionIntent, WorkoutPrescription
from coach_engine.prescription import PrescriptionGenerator
from coach_engine.readiness import evaluate_pre_training
from coach_engine.rendering import render_markdown
from coach_engine.repositories import AthleteRepository, CheckInRepository, WorkoutRepository
from coach_engine.save_engine import IdempotentSaveEngine, KeyedLockRegistry, SaveMode
from coach_engine.schemas import (
    ExplainLevel,
    Intensity,
    MuscleSoreness,
    PlannedWorkout,
    ReadinessDecision,
)
from coach_engine.training_load import build_training_context

HARD_KEYWORDS = re.compile(r"interval|vo2|threshold|tempo|hard|quality", re.IGNORECASE)
RECENT_DAYS = 14
HISTORY_DAYS = 90


def is_hard(workout: PlannedWorkout) -> bool:
    """Hard by intensity tag or by a hard-session keyword in the title."""
    if workout.intensity == Intensity.HARD:
        return True
    return bool(workout.title and HARD_KEYWORDS.search(workout.title))


def load_coach_context(
    session: Session,
    athlete_id: str,
    clock: Clock,
    settings: Settings = default_settings,
    exclude_workout_id: Optional[int] = None,
) -> CoachContext:
    """
    Assemble the coach context for an athlete's current local day.

    Args:
        session: Database session
        athlete_id: Athlete to load
        clock: Time source; "today" is resolved in the athlete's timezone
        settings: Ramp threshold and hard-session limits
        exclude_workout_id: Workout left out of every load and count, used
            when the request will replace that record

    Returns:
        CoachContext

    Raises:
        AthleteNotFoundError: If no profile is stored
    """
    athlete = AthleteRepository(session).get(athlete_id)
    if athlete is None:
        raise AthleteNotFoundError(athlete_id)

    profile = athlete.to_profile()
    tz_name = profile.timezone or settings.default_timezone
    today = today_in(clock, tz_name)
    monday = week_start(today)
    sunday = monday + timedelta(days=6)

    history_start = min(today - timedelta(days=HISTORY_DAYS), monday - timedelta(days=7))
    start, _ = local_day_bounds(history_start, tz_name)
    _, end = local_day_bounds(sunday, tz_name)
    workouts = WorkoutRepository(session)
    rows = workouts.find_in_range(athlete_id, start, end)

    all_workouts: List[PlannedWorkout] = []
    completed: List[PlannedWorkout] = []
    for row in rows:
        if row.id == exclude_workout_id:
            continue
        workout = row.to_planned(tz_name)
        # Generated rows carry the intensity they were prescribed at
        if not row.ai_generated and is_hard(workout) and workout.intensity != Intensity.HARD:
            workout = workout.model_copy(update={"intensity": Intensity.HARD})
        all_workouts.append(workout)
        if row.completed:
            completed.append(workout)

    recent = [w for w in all_workouts if today - timedelta(days=RECENT_DAYS) <= w.date < today]
    this_week = [w for w in all_workouts if monday <= w.date <= sunday]
    previous_week = [
        w for w in all_workouts if monday - timedelta(days=7) <= w.date < monday
    ]
    planned_today = next((w for w in this_week if w.date == today), None)

    training = build_training_context(completed, today, planned_today, HISTORY_DAYS)
    load_metrics = get_load_metrics(this_week, previous_week, settings.ramp_threshold_percent)

    day_start, _ = local_day_bounds(today, tz_name)
    context = CoachContext(
        profile=profile,
        today=today,
        readiness=_readiness_snapshot(session, athlete_id, today, training),
        recent_workouts=recent,
        planned_this_week=this_week,
        load_metrics=load_metrics,
        hard_sessions_this_week=sum(1 for w in this_week if w.intensity == Intensity.HARD),
        session_counts=workouts.count_by_sport(
            athlete_id, before=day_start, exclude_id=exclude_workout_id
        ),
        training=training,
        ramp_threshold=settings.ramp_threshold_percent,
        max_hard_sessions=settings.max_hard_sessions_per_week,
    )
    logger.debug(
        f"Context for {athlete_id} on {today}: {len(this_week)} sessions this week, "
        f"ramp={load_metrics.ramp_rate}, hard={context.hard_sessions_this_week}"
    )
    return context


def _readiness_snapshot(session, athlete_id, today, training) -> Optional[ReadinessSnapshot]:
    record = CheckInRepository(session).get_for_day(athlete_id, today)
    if record is None:
        return None

    check_in = record.to_check_in()
    score = record.readiness_score
    decision = ReadinessDecision(record.decision) if record.decision else None
    if score is None or decision is None:
        # Evaluated on the fly; persisting the decision is left to the check-in flow
        result = evaluate_pre_training(check_in, training)
        score, decision = result.readiness_score, result.decision

    return ReadinessSnapshot(
        score=score,
        soreness_level=MuscleSoreness(check_in.muscle_soreness).level,
        sleep_quality=check_in.sleep_quality,
        decision=decision,
    )


class CoachResponse(BaseModel):
    """Outcome of one coaching request."""

    success: bool
    reason: Optional[str] = Field(None, description="Failure reason or save outcome")
    workout_id: Optional[int] = None
    created: bool = False
    updated: bool = False
    reused: bool = False
    saved: bool = False
    title: Optional[str] = None
    duration_min: Optional[int] = None
    markdown: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    decision: Optional[ReadinessDecision] = None
    decisions: List[str] = Field(default_factory=list, description="Pipeline decision log")
    prescription: Optional[WorkoutPrescription] = None


class CoachDecisionEngine:
    """
    Turns a request into a saved, safety-checked session.

    Dependencies are injected so tests can pin time, swap the intent
    resolver or share a lock registry between engines.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        resolver: Optional[IntentResolver] = None,
        locks: Optional[KeyedLockRegistry] = None,
        settings: Settings = default_settings,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.resolver = resolver or KeywordIntentResolver()
        self.locks = locks
        self.settings = settings

    def generate_and_save(
        self,
        athlete_id: str,
        message: Optional[str] = None,
        intent: Optional[SessionIntent] = None,
        mode: Optional[SaveMode] = None,
        explain_level: ExplainLevel = ExplainLevel.STANDARD,
        source: str = "AI",
        include_result_template: bool = False,
    ) -> CoachResponse:
        """
        Resolve, prescribe and save one session.

        Args:
            athlete_id: Athlete making the request
            message: Free-text request; ignored when an intent is given
            intent: Pre-resolved intent
            mode: Save mode; defaults to REPLACE when the request asks to
                replace, UPSERT otherwise
            explain_level: Depth of the rendered explanation
            source: Provenance tag stored on the workout
            include_result_template: Append a result-logging block

        Returns:
            CoachResponse. success is False with reason "no_intent" when the
            request cannot be resolved, or with the refusal reason (for
            example "distance_mismatch") when the save is refused.

        Raises:
            AthleteNotFoundError: If no profile is stored
        """
        context = load_coach_context(self.session, athlete_id, self.clock, self.settings)
        decision = context.readiness.decision if context.readiness else None

        if intent is None:
            intent = self.resolver.resolve(message or "", context)
        if intent is None:
            logger.info(f"No session intent in request from {athlete_id}")
            return CoachResponse(success=False, reason="no_intent", decision=decision)

        if mode is None:
            mode = SaveMode.REPLACE if intent.replace_existing else SaveMode.UPSERT

        replaced = self._replaced_workout_id(athlete_id, intent, mode, context)
        if replaced is not None:
            # The record being replaced must not count toward this week's load
            context = load_coach_context(
                self.session, athlete_id, self.clock, self.settings, exclude_workout_id=replaced
            )

        generator = PrescriptionGenerator(include_result_template=include_result_template)
        prescription, warnings = generator.prescribe(intent, context)
        markdown = render_markdown(prescription, explain_level)

        response = CoachResponse(
            success=True,
            title=prescription.title,
            duration_min=prescription.duration_min,
            markdown=markdown,
            warnings=warnings,
            decision=decision,
            decisions=list(generator.decisions),
            prescription=prescription,
        )

        if not intent.add_to_calendar:
            response.reason = "not_saved"
            return response

        engine = IdempotentSaveEngine(self.session, self.locks)
        try:
            result = engine.save(
                athlete_id,
                prescription,
                mode=mode,
                create_separate=intent.create_separate,
                tz_name=context.profile.timezone,
                source=source,
            )
        except SaveRefusedError as e:
            logger.warning(f"Save refused for {athlete_id}: {e.reason}")
            response.success = False
            response.reason = e.reason
            response.warnings.append(e.message)
            return response

        response.saved = True
        response.workout_id = result.workout_id
        response.created = result.created
        response.updated = result.updated
        response.reused = result.reused
        response.reason = result.reason
        return response

    def _replaced_workout_id(
        self, athlete_id: str, intent: SessionIntent, mode: SaveMode, context: CoachContext
    ) -> Optional[int]:
        """Id of the stored workout the save will match, if any."""
        if not intent.add_to_calendar or mode == SaveMode.CREATE:
            return None
        if mode == SaveMode.UPSERT and intent.create_separate:
            return None
        existing = WorkoutRepository(self.session).find_first_for_day(
            athlete_id, intent.date, intent.sport, context.profile.timezone
        )
        return existing.id if existing is not None else None
