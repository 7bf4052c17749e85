"""
SQLAlchemy Database Models for the Coach Engine

Provides persistent storage for:
- Athlete profiles (sport, zones, timezone)
- Daily check-ins with their readiness decisions
- Workouts (planned and completed) with prescription payloads
- Workout feedback and journal entries
- Long-term coach memories and their audit trail

All datetimes are stored as naive UTC.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from coach_engine.clock import local_date_of
from coach_engine.config import settings
from coach_engine.schemas import (
    AthleteProfile,
    CheckIn,
    DiaryEntry,
    HeartRateZones,
    Intensity,
    MuscleSoreness,
    PlannedWorkout,
    ReadinessDecision,
    VisibilityLevel,
    WorkoutFeedbackEntry,
)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Athlete(Base):
    """
    Athlete profile used to tailor prescriptions.

    Attributes:
        id: Primary key
        athlete_id: Unique identifier matching AthleteProfile.athlete_id
        primary_sport: RUN, BIKE, SWIM, STRENGTH or TRIATHLON
        experience_level: beginner, intermediate or advanced
        identity_mode: Coaching persona
        swim_level: Swim skill level
        swim_pool_length_m: Usual pool length
        hr_zones: {"z2": [low, high], "z3": [low, high]}
        ftp: Functional threshold power (W)
        timezone: IANA timezone name
        created_at: Account creation timestamp
    """

    __tablename__ = "athletes"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, unique=True, nullable=False, index=True)
    primary_sport = Column(String, default="RUN", nullable=False)
    experience_level = Column(String, default="intermediate", nullable=False)
    identity_mode = Column(String, default="balanced", nullable=False)
    swim_level = Column(String, default="intermediate", nullable=False)
    swim_pool_length_m = Column(Integer, default=25, nullable=False)
    hr_zones = Column(JSON, nullable=True)
    ftp = Column(Integer, nullable=True)
    timezone = Column(String, default="UTC", nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def to_profile(self) -> AthleteProfile:
        return AthleteProfile(
            athlete_id=self.athlete_id,
            primary_sport=self.primary_sport,
            experience_level=self.experience_level,
            identity_mode=self.identity_mode,
            swim_level=self.swim_level,
            swim_pool_length_m=self.swim_pool_length_m,
            hr_zones=HeartRateZones(**self.hr_zones) if self.hr_zones else None,
            ftp=self.ftp,
            timezone=self.timezone,
        )

    def __repr__(self):
        return f"<Athlete(athlete_id='{self.athlete_id}', primary_sport='{self.primary_sport}')>"


class CheckInRecord(Base):
    """
    Daily pre-training check-in.

    Once `locked` is set the derived fields (readiness_score, decision,
    confidence) are frozen; overrides only touch user_accepted and
    user_override_reason.
    """

    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, ForeignKey("athletes.athlete_id"), nullable=False, index=True)
    day = Column(Date, nullable=False, index=True)

    # Self-reported signals
    sleep_duration = Column(Float, nullable=False)
    sleep_quality = Column(Integer, nullable=False)
    physical_fatigue = Column(Integer, nullable=False)
    mental_readiness = Column(Integer, nullable=False)
    motivation = Column(Integer, nullable=False)
    muscle_soreness = Column(String, default="NONE", nullable=False)
    stress_level = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # Derived decision
    readiness_score = Column(Integer, nullable=True)
    decision = Column(String, nullable=True)
    confidence = Column(Integer, nullable=True)
    locked = Column(Boolean, default=False, nullable=False)
    user_accepted = Column(Boolean, nullable=True)
    user_override_reason = Column(String, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def to_check_in(self) -> CheckIn:
        return CheckIn(
            id=self.id,
            day=self.day,
            sleep_duration=self.sleep_duration,
            sleep_quality=self.sleep_quality,
            physical_fatigue=self.physical_fatigue,
            mental_readiness=self.mental_readiness,
            motivation=self.motivation,
            muscle_soreness=MuscleSoreness(self.muscle_soreness),
            stress_level=self.stress_level,
            notes=self.notes,
            readiness_score=self.readiness_score,
            decision=ReadinessDecision(self.decision) if self.decision else None,
            confidence=self.confidence,
            locked=self.locked,
            user_accepted=self.user_accepted,
            user_override_reason=self.user_override_reason,
        )

    def __repr__(self):
        return f"<CheckInRecord(athlete_id='{self.athlete_id}', day='{self.day}', decision='{self.decision}')>"


class Workout(Base):
    """
    Planned or completed workout.

    Attributes:
        date: Naive-UTC instant; AI-generated sessions use local noon
        type: Sport (RUN, BIKE, SWIM, STRENGTH)
        tss: Training stress score, when known
        description_md: Rendered prescription
        prescription_json: Structured plan payload
        source: Who wrote the record ("AI", "AI_DRAFT", "manual", ...)
    """

    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, ForeignKey("athletes.athlete_id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    duration_min = Column(Integer, nullable=True)
    distance_m = Column(Integer, nullable=True)
    tss = Column(Float, nullable=True)
    intensity = Column(String, default="moderate", nullable=False)

    planned = Column(Boolean, default=True, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    description_md = Column(Text, nullable=True)
    prescription_json = Column(JSON, nullable=True)

    ai_generated = Column(Boolean, default=False, nullable=False)
    source = Column(String, default="manual", nullable=False)
    confidence = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def to_planned(self, tz_name: str) -> PlannedWorkout:
        """Guardrail view of the workout, dated in the athlete's local calendar."""
        return PlannedWorkout(
            workout_id=str(self.id),
            date=local_date_of(self.date, tz_name),
            duration_min=self.duration_min or 0,
            intensity=Intensity(self.intensity),
            tss=self.tss,
            title=self.title,
        )

    def __repr__(self):
        return f"<Workout(id={self.id}, type='{self.type}', date='{self.date}', title='{self.title}')>"


class WorkoutFeedback(Base):
    """Post-workout feedback left by the athlete."""

    __tablename__ = "workout_feedback"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, ForeignKey("athletes.athlete_id"), nullable=False, index=True)
    workout_id = Column(Integer, ForeignKey("workouts.id"), nullable=True, index=True)
    visible_to_ai = Column(Boolean, default=True, nullable=False)
    perceived_difficulty = Column(String, nullable=True)
    enjoyment = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)

    def to_entry(self) -> WorkoutFeedbackEntry:
        return WorkoutFeedbackEntry(
            id=self.id,
            workout_id=self.workout_id,
            created_at=self.created_at,
            visible_to_ai=self.visible_to_ai,
            perceived_difficulty=self.perceived_difficulty,
            enjoyment=self.enjoyment,
            comment=self.comment,
        )

    def __repr__(self):
        return f"<WorkoutFeedback(id={self.id}, workout_id={self.workout_id})>"


class DiaryEntryRecord(Base):
    """Journal entry; visibility_level controls what the coach may read."""

    __tablename__ = "diary_entries"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, ForeignKey("athletes.athlete_id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    mood = Column(Integer, nullable=True)
    energy = Column(Integer, nullable=True)
    sleep_hrs = Column(Float, nullable=True)
    sleep_qual = Column(Integer, nullable=True)
    stress = Column(Integer, nullable=True)
    soreness = Column(Integer, nullable=True)
    motivation = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    visibility_level = Column(String, default="FULL_AI_ACCESS", nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def to_entry(self) -> DiaryEntry:
        return DiaryEntry(
            id=self.id,
            date=self.date,
            mood=self.mood,
            energy=self.energy,
            sleep_hrs=self.sleep_hrs,
            sleep_qual=self.sleep_qual,
            stress=self.stress,
            soreness=self.soreness,
            motivation=self.motivation,
            notes=self.notes,
            visibility_level=VisibilityLevel(self.visibility_level),
        )

    def __repr__(self):
        return f"<DiaryEntryRecord(athlete_id='{self.athlete_id}', date='{self.date}')>"


class Memory(Base):
    """
    Versioned coach memory.

    The current view of a memory is the record with superseded_by IS NULL
    that has not expired. Sources hold ids only: {"check_ins": [...],
    "feedback": [...], "diary": [...]}; they are weak references.
    """

    __tablename__ = "memories"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, ForeignKey("athletes.athlete_id"), nullable=False, index=True)
    layer = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    confidence = Column(Integer, nullable=False)
    data_points = Column(Integer, default=0, nullable=False)
    sources = Column(JSON, nullable=False, default=dict)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    version = Column(Integer, default=1, nullable=False)
    superseded_by = Column(Integer, ForeignKey("memories.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<Memory(id={self.id}, layer='{self.layer}', type='{self.type}', v{self.version})>"


class MemoryAudit(Base):
    """Audit trail of memory jobs and athlete edits."""

    __tablename__ = "memory_audit"

    id = Column(Integer, primary_key=True)
    athlete_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)
    memory_type = Column(String, nullable=True)
    memory_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<MemoryAudit(action='{self.action}', memory_type='{self.memory_type}')>"


# Database connection and session management

def get_engine(database_url: str = "sqlite:///coach_engine.db"):
    """
    Create SQLAlchemy engine.

    In-memory SQLite URLs share one connection so every session sees the
    same database.

    Args:
        database_url: Database connection string (default: SQLite file)

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=False)


def get_session_factory(engine):
    """
    Create session factory.

    Args:
        engine: SQLAlchemy Engine instance

    Returns:
        Session factory (sessionmaker)
    """
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_database(database_url: str = "sqlite:///coach_engine.db") -> Session:
    """
    Initialize database and create all tables.

    Args:
        database_url: Database connection string

    Returns:
        SQLAlchemy Session instance
    """
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    SessionFactory = get_session_factory(engine)
    return SessionFactory()


_session_factories = {}


def get_db_session():
    """
    Dependency for FastAPI to get database session.

    Yields:
        SQLAlchemy Session instance

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db_session)):
            ...
    """
    database_url = settings.database_url
    if database_url not in _session_factories:
        engine = get_engine(database_url)
        Base.metadata.create_all(engine)
        _session_factories[database_url] = get_session_factory(engine)

    db = _session_factories[database_url]()
    try:
        yield db
    finally:
        db.close()
