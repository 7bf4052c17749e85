"""
Idempotent workout save.

A prescription is saved against the key (athlete, local calendar day,
sport). Depending on the mode the engine creates a new record, updates
the existing one in place, or reuses it untouched when the stored payload
hashes to the same value. Saves for the same key are serialised with a
per-key lock so concurrent requests cannot create duplicates.
"""

import hashlib
import json
import threading
from enum import Enum
from typing import Any, Dict, Hashable, Optional

from loguru import logger
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coach_engine.clock import local_noon_utc
from coach_engine.database import Workout
from coach_engine.errors import DistanceMismatchError, StorageError
from coach_engine.plan_schemas import WorkoutPrescription
from coach_engine.rendering import render_markdown, to_structured_plan
from coach_engine.repositories import WorkoutRepository
from coach_engine.schemas import ExplainLevel


class SaveMode(str, Enum):
    """How to treat an existing workout for the same day and sport."""
    CREATE = "create"
    REPLACE = "replace"
    UPSERT = "upsert"


class SaveResult(BaseModel):
    """Outcome of a save. Exactly one of created/updated/reused is set."""

    workout_id: int
    created: bool = False
    updated: bool = False
    reused: bool = False
    reason: str = Field(..., description="Why this outcome was chosen")

    @model_validator(mode="after")
    def validate_single_outcome(self) -> "SaveResult":
        """Outcome flags are mutually exclusive and one must be set."""
        if sum([self.created, self.updated, self.reused]) != 1:
            raise ValueError("Exactly one of created, updated, reused must be true")
        return self


class CalendarItem(BaseModel):
    """What gets written to the workouts table for a prescription."""

    title: str
    duration_min: int
    distance_m: Optional[int] = None
    description_md: str
    plan: Dict[str, Any]


def calendar_item(
    prescription: WorkoutPrescription, explain_level: ExplainLevel = ExplainLevel.STANDARD
) -> CalendarItem:
    """Rendered Markdown plus structured plan payload for a prescription."""
    return CalendarItem(
        title=prescription.title,
        duration_min=prescription.duration_min,
        distance_m=prescription.total_distance_m(),
        description_md=render_markdown(prescription, explain_level),
        plan=to_structured_plan(prescription).model_dump(mode="json"),
    )


def payload_hash(
    title: Optional[str],
    duration_min: Optional[int],
    distance_m: Optional[int],
    description_md: Optional[str],
    plan: Optional[Dict[str, Any]],
) -> str:
    """SHA-256 of the canonical JSON (sorted keys, compact) of the saved fields."""
    canonical = json.dumps(
        {
            "title": title,
            "duration_min": duration_min,
            "distance_m": distance_m,
            "description_md": description_md,
            "plan": plan,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _stored_hash(workout: Workout) -> str:
    return payload_hash(
        workout.title,
        workout.duration_min,
        workout.distance_m,
        workout.description_md,
        workout.prescription_json,
    )


class KeyedLockRegistry:
    """One threading.Lock per key, created on first use."""

    def __init__(self):
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]


_default_locks = KeyedLockRegistry()


class IdempotentSaveEngine:
    """
    Saves prescriptions as workouts without duplicating them.

    Modes:
    - create: always inserts
    - replace: updates the day's workout of the same sport, or reuses it when
      the payload is unchanged; creates when there is none
    - upsert: like replace unless create_separate is requested
    """

    def __init__(self, session: Session, locks: Optional[KeyedLockRegistry] = None):
        self.session = session
        self.workouts = WorkoutRepository(session)
        self.locks = locks or _default_locks

    def save(
        self,
        athlete_id: str,
        prescription: WorkoutPrescription,
        mode: SaveMode = SaveMode.UPSERT,
        create_separate: bool = False,
        tz_name: str = "UTC",
        source: str = "AI",
        reason: Optional[str] = None,
    ) -> SaveResult:
        """
        Save a prescription.

        Args:
            athlete_id: Owner of the workout
            prescription: Final (adapted, validated) prescription
            mode: Save mode
            create_separate: With upsert, add a second session instead of matching
            tz_name: Athlete timezone; defines the local day
            source: Provenance tag stored on the workout ("AI" or "AI_DRAFT")
            reason: Caller's reason, carried into the result

        Returns:
            SaveResult with exactly one outcome flag set

        Raises:
            DistanceMismatchError: Swim steps do not add up to target_meters
            StorageError: The write failed and was rolled back
        """
        if prescription.target_meters is not None:
            total = prescription.total_distance_m()
            if total != prescription.target_meters:
                logger.warning(
                    f"Refusing save for {athlete_id}: steps total {total}m, "
                    f"target {prescription.target_meters}m"
                )
                raise DistanceMismatchError(prescription.target_meters, total)

        item = calendar_item(prescription)
        key = (athlete_id, prescription.date.isoformat(), prescription.sport.value)

        with self.locks.lock_for(key):
            try:
                result = self._save_locked(
                    athlete_id, prescription, item, mode, create_separate, tz_name, source, reason
                )
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.exception(f"Workout save failed for {athlete_id}")
                raise StorageError(f"Workout save failed: {str(e)}") from e

        logger.info(
            f"Saved {prescription.sport.value} {prescription.date} for {athlete_id}: "
            f"workout={result.workout_id} created={result.created} "
            f"updated={result.updated} reused={result.reused}"
        )
        return result

    def _save_locked(
        self,
        athlete_id: str,
        prescription: WorkoutPrescription,
        item: CalendarItem,
        mode: SaveMode,
        create_separate: bool,
        tz_name: str,
        source: str,
        reason: Optional[str],
    ) -> SaveResult:
        match_existing = mode == SaveMode.REPLACE or (mode == SaveMode.UPSERT and not create_separate)
        existing = None
        if match_existing:
            existing = self.workouts.find_first_for_day(
                athlete_id, prescription.date, prescription.sport, tz_name
            )

        if existing is None:
            workout = self.workouts.create(
                athlete_id,
                date=local_noon_utc(prescription.date, tz_name),
                type=prescription.sport.value,
                title=item.title,
                duration_min=item.duration_min,
                distance_m=item.distance_m,
                intensity=prescription.intensity.value,
                planned=True,
                completed=False,
                ai_generated=True,
                source=source,
                description_md=item.description_md,
                prescription_json=item.plan,
            )
            if mode == SaveMode.CREATE:
                why = "mode=create"
            elif create_separate and mode == SaveMode.UPSERT:
                why = "separate session requested"
            else:
                why = "no existing session for this day and sport"
            return SaveResult(workout_id=workout.id, created=True, reason=reason or why)

        new_hash = payload_hash(
            item.title, item.duration_min, item.distance_m, item.description_md, item.plan
        )
        if new_hash == _stored_hash(existing):
            return SaveResult(workout_id=existing.id, reused=True, reason="payload unchanged")

        self.workouts.update(
            existing,
            title=item.title,
            duration_min=item.duration_min,
            distance_m=item.distance_m,
            intensity=prescription.intensity.value,
            description_md=item.description_md,
            prescription_json=item.plan,
            source=source,
            ai_generated=True,
            planned=True,
        )
        why = "payload changed; replaced existing session"
        return SaveResult(
            workout_id=existing.id, updated=True, reason=f"{why} ({reason})" if reason else why
        )
