"""
Repositories for coach engine data access.

Every query is scoped to one athlete. Repositories flush but never
commit; the caller owns the transaction.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from coach_engine.clock import local_day_bounds
from coach_engine.database import (
    Athlete,
    CheckInRecord,
    DiaryEntryRecord,
    Memory,
    MemoryAudit,
    Workout,
    WorkoutFeedback,
)
from coach_engine.errors import CheckInLockedError
from coach_engine.schemas import AthleteProfile, CheckIn, ReadinessDecision, Sport, VisibilityLevel


class AthleteRepository:
    """Athlete profile access."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, athlete_id: str) -> Optional[Athlete]:
        return self.session.execute(
            select(Athlete).where(Athlete.athlete_id == athlete_id)
        ).scalar_one_or_none()

    def upsert_profile(self, profile: AthleteProfile) -> Athlete:
        """Create the athlete or overwrite its profile fields."""
        athlete = self.get(profile.athlete_id)
        if athlete is None:
            athlete = Athlete(athlete_id=profile.athlete_id)
            self.session.add(athlete)

        athlete.primary_sport = profile.primary_sport.value
        athlete.experience_level = profile.experience_level.value
        athlete.identity_mode = profile.identity_mode
        athlete.swim_level = profile.swim_level.value
        athlete.swim_pool_length_m = profile.swim_pool_length_m
        athlete.hr_zones = profile.hr_zones.model_dump(mode="json") if profile.hr_zones else None
        athlete.ftp = profile.ftp
        athlete.timezone = profile.timezone
        self.session.flush()
        return athlete


class CheckInRepository:
    """Daily check-ins."""

    def __init__(self, session: Session):
        self.session = session

    def get_for_day(self, athlete_id: str, day: date) -> Optional[CheckInRecord]:
        return self.session.execute(
            select(CheckInRecord)
            .where(CheckInRecord.athlete_id == athlete_id, CheckInRecord.day == day)
            .order_by(CheckInRecord.created_at.desc(), CheckInRecord.id.desc())
        ).scalars().first()

    def find_in_range(self, athlete_id: str, start: date, end: date) -> List[CheckInRecord]:
        """Check-ins with start <= day <= end, oldest first."""
        return list(
            self.session.execute(
                select(CheckInRecord)
                .where(
                    CheckInRecord.athlete_id == athlete_id,
                    CheckInRecord.day >= start,
                    CheckInRecord.day <= end,
                )
                .order_by(CheckInRecord.day, CheckInRecord.id)
            ).scalars()
        )

    def get_many(self, athlete_id: str, ids: Sequence[int]) -> List[CheckInRecord]:
        if not ids:
            return []
        return list(
            self.session.execute(
                select(CheckInRecord).where(
                    CheckInRecord.athlete_id == athlete_id, CheckInRecord.id.in_(ids)
                )
            ).scalars()
        )

    def create(self, athlete_id: str, check_in: CheckIn, day: date) -> CheckInRecord:
        record = CheckInRecord(
            athlete_id=athlete_id,
            day=check_in.day or day,
            sleep_duration=check_in.sleep_duration,
            sleep_quality=check_in.sleep_quality,
            physical_fatigue=check_in.physical_fatigue,
            mental_readiness=check_in.mental_readiness,
            motivation=check_in.motivation,
            muscle_soreness=check_in.muscle_soreness.value,
            stress_level=check_in.stress_level,
            notes=check_in.notes,
        )
        self.session.add(record)
        self.session.flush()
        return record

    def attach_decision(
        self,
        record: CheckInRecord,
        readiness_score: int,
        decision: ReadinessDecision,
        confidence: int,
        lock: bool = True,
    ) -> CheckInRecord:
        """
        Store the readiness decision on a check-in.

        Raises:
            CheckInLockedError: If the check-in was already locked
        """
        if record.locked:
            raise CheckInLockedError(record.id)
        record.readiness_score = readiness_score
        record.decision = decision.value
        record.confidence = confidence
        record.locked = lock
        self.session.flush()
        return record

    def record_override(
        self, record: CheckInRecord, accepted: bool, reason: Optional[str] = None
    ) -> CheckInRecord:
        """Athlete accepted or overrode the decision; derived fields stay untouched."""
        record.user_accepted = accepted
        record.user_override_reason = reason
        self.session.flush()
        return record


class WorkoutRepository:
    """Workouts, planned and completed."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, athlete_id: str, workout_id: int) -> Optional[Workout]:
        return self.session.execute(
            select(Workout).where(Workout.athlete_id == athlete_id, Workout.id == workout_id)
        ).scalar_one_or_none()

    def find_in_range(
        self,
        athlete_id: str,
        start: datetime,
        end: datetime,
        sport: Optional[Sport] = None,
    ) -> List[Workout]:
        """Workouts with start <= date < end (naive UTC), oldest first."""
        query = select(Workout).where(
            Workout.athlete_id == athlete_id, Workout.date >= start, Workout.date < end
        )
        if sport is not None:
            query = query.where(Workout.type == sport.value)
        return list(self.session.execute(query.order_by(Workout.date, Workout.id)).scalars())

    def find_first_for_day(
        self, athlete_id: str, day: date, sport: Sport, tz_name: str
    ) -> Optional[Workout]:
        """Most recently created workout of a sport on a local calendar day."""
        start, end = local_day_bounds(day, tz_name)
        return self.session.execute(
            select(Workout)
            .where(
                Workout.athlete_id == athlete_id,
                Workout.type == sport.value,
                Workout.date >= start,
                Workout.date < end,
            )
            .order_by(Workout.created_at.desc(), Workout.id.desc())
        ).scalars().first()

    def create(self, athlete_id: str, **fields) -> Workout:
        workout = Workout(athlete_id=athlete_id, **fields)
        self.session.add(workout)
        self.session.flush()
        return workout

    def update(self, workout: Workout, **fields) -> Workout:
        for name, value in fields.items():
            setattr(workout, name, value)
        self.session.flush()
        return workout

    def count_by_sport(
        self,
        athlete_id: str,
        before: Optional[datetime] = None,
        exclude_id: Optional[int] = None,
    ) -> Dict[Sport, int]:
        """Number of workouts per sport, optionally only those dated before a cutoff."""
        query = select(Workout.type, func.count(Workout.id)).where(Workout.athlete_id == athlete_id)
        if before is not None:
            query = query.where(Workout.date < before)
        if exclude_id is not None:
            query = query.where(Workout.id != exclude_id)
        counts: Dict[Sport, int] = {}
        for sport_name, count in self.session.execute(query.group_by(Workout.type)):
            if sport_name in Sport.__members__:
                counts[Sport(sport_name)] = count
        return counts


class FeedbackRepository:
    """Post-workout feedback."""

    def __init__(self, session: Session):
        self.session = session

    def find_in_range(
        self, athlete_id: str, start: datetime, end: datetime, visible_only: bool = True
    ) -> List[WorkoutFeedback]:
        """Feedback created in [start, end), oldest first."""
        query = select(WorkoutFeedback).where(
            WorkoutFeedback.athlete_id == athlete_id,
            WorkoutFeedback.created_at >= start,
            WorkoutFeedback.created_at < end,
        )
        if visible_only:
            query = query.where(WorkoutFeedback.visible_to_ai.is_(True))
        return list(self.session.execute(query.order_by(WorkoutFeedback.created_at)).scalars())

    def get_many(self, athlete_id: str, ids: Sequence[int]) -> List[WorkoutFeedback]:
        if not ids:
            return []
        return list(
            self.session.execute(
                select(WorkoutFeedback).where(
                    WorkoutFeedback.athlete_id == athlete_id, WorkoutFeedback.id.in_(ids)
                )
            ).scalars()
        )

    def create(self, athlete_id: str, **fields) -> WorkoutFeedback:
        feedback = WorkoutFeedback(athlete_id=athlete_id, **fields)
        self.session.add(feedback)
        self.session.flush()
        return feedback


class DiaryRepository:
    """Journal entries."""

    def __init__(self, session: Session):
        self.session = session

    def find_in_range(
        self, athlete_id: str, start: date, end: date, include_hidden: bool = False
    ) -> List[DiaryEntryRecord]:
        """Entries with start <= date <= end, oldest first. HIDDEN entries are skipped by default."""
        query = select(DiaryEntryRecord).where(
            DiaryEntryRecord.athlete_id == athlete_id,
            DiaryEntryRecord.date >= start,
            DiaryEntryRecord.date <= end,
        )
        if not include_hidden:
            query = query.where(DiaryEntryRecord.visibility_level != VisibilityLevel.HIDDEN.value)
        return list(self.session.execute(query.order_by(DiaryEntryRecord.date)).scalars())

    def get_many(self, athlete_id: str, ids: Sequence[int]) -> List[DiaryEntryRecord]:
        if not ids:
            return []
        return list(
            self.session.execute(
                select(DiaryEntryRecord).where(
                    DiaryEntryRecord.athlete_id == athlete_id, DiaryEntryRecord.id.in_(ids)
                )
            ).scalars()
        )

    def create(self, athlete_id: str, **fields) -> DiaryEntryRecord:
        entry = DiaryEntryRecord(athlete_id=athlete_id, **fields)
        self.session.add(entry)
        self.session.flush()
        return entry


class MemoryRepository:
    """Versioned memories and their audit trail."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, athlete_id: str, memory_id: int) -> Optional[Memory]:
        return self.session.execute(
            select(Memory).where(Memory.athlete_id == athlete_id, Memory.id == memory_id)
        ).scalar_one_or_none()

    def find_active(
        self,
        athlete_id: str,
        type: Optional[str] = None,
        layer: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Memory]:
        """
        Current memories: not superseded and, when now is given, not expired.

        Args:
            athlete_id: Owner
            type: Optional memory type filter
            layer: Optional layer filter
            now: Naive-UTC instant; records with expires_at <= now are excluded
        """
        query = select(Memory).where(Memory.athlete_id == athlete_id, Memory.superseded_by.is_(None))
        if type is not None:
            query = query.where(Memory.type == type)
        if layer is not None:
            query = query.where(Memory.layer == layer)
        if now is not None:
            query = query.where((Memory.expires_at.is_(None)) | (Memory.expires_at > now))
        return list(self.session.execute(query.order_by(Memory.created_at, Memory.id)).scalars())

    def find_current(self, athlete_id: str, type: str, layer: str) -> Optional[Memory]:
        """Latest non-superseded record for (athlete, type, layer), expired or not."""
        return self.session.execute(
            select(Memory)
            .where(
                Memory.athlete_id == athlete_id,
                Memory.type == type,
                Memory.layer == layer,
                Memory.superseded_by.is_(None),
            )
            .order_by(Memory.version.desc(), Memory.id.desc())
        ).scalars().first()

    def create(self, athlete_id: str, **fields) -> Memory:
        memory = Memory(athlete_id=athlete_id, **fields)
        self.session.add(memory)
        self.session.flush()
        return memory

    def supersede(self, old: Memory, new: Memory) -> None:
        old.superseded_by = new.id
        self.session.flush()

    def update(self, memory: Memory, **fields) -> Memory:
        for name, value in fields.items():
            setattr(memory, name, value)
        self.session.flush()
        return memory

    def delete(self, memory: Memory) -> None:
        self.session.delete(memory)
        self.session.flush()

    def delete_expired(self, athlete_id: str, now: datetime) -> int:
        """Delete records with expires_at < now. Returns the number deleted."""
        result = self.session.execute(
            delete(Memory).where(
                Memory.athlete_id == athlete_id,
                Memory.expires_at.is_not(None),
                Memory.expires_at < now,
            )
        )
        self.session.flush()
        return result.rowcount or 0

    def append_audit(
        self,
        athlete_id: str,
        action: str,
        memory_type: Optional[str] = None,
        memory_id: Optional[int] = None,
        details: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> MemoryAudit:
        audit = MemoryAudit(
            athlete_id=athlete_id,
            action=action,
            memory_type=memory_type,
            memory_id=memory_id,
            details=details,
        )
        if created_at is not None:
            audit.created_at = created_at
        self.session.add(audit)
        self.session.flush()
        return audit

    def audits(self, athlete_id: str, action: Optional[str] = None) -> List[MemoryAudit]:
        query = select(MemoryAudit).where(MemoryAudit.athlete_id == athlete_id)
        if action is not None:
            query = query.where(MemoryAudit.action == action)
        return list(self.session.execute(query.order_by(MemoryAudit.id)).scalars())
