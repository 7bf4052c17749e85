"""
Layered athlete memory.

Check-ins, workout feedback and journal entries are condensed into
memories on three layers:

- SHORT_TERM: weekly summaries, expire after 7 days
- MID_TERM: promoted summaries, expire after 30 days
- LONG_TERM: monthly traits, never expire

Memories are append-only. An upsert writes a new version and points the
previous record of the same (athlete, type, layer) at it; the current view
is every record whose superseded_by is empty. Every job and edit leaves an
audit record.
"""

import math
from collections import Counter
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from coach_engine.clock import Clock, SystemClock, utc_naive
from coach_engine.database import CheckInRecord, DiaryEntryRecord, Memory
from coach_engine.numeric import clamp, round_half_up, round_to
from coach_engine.repositories import (
    CheckInRepository,
    DiaryRepository,
    FeedbackRepository,
    MemoryRepository,
)
from coach_engine.schemas import MuscleSoreness, VisibilityLevel
from coach_engine.semantic_tags import extract_semantic_tags

MIN_WEEKLY_DATA_POINTS = 3
MIN_MONTHLY_MEMORIES = 4
MIN_MEMORIES_PER_TYPE = 3
MIN_TRAIT_CONFIDENCE = 50
CONTRADICTION_NOTE = " (Note: This contradicts earlier observations. Confidence reduced.)"

CONTRADICTION_PAIRS = [
    ("overreaches easily", "recovers well"),
    ("push through fatigue", "respects recovery"),
    ("low motivation", "high motivation"),
    ("stress-sensitive", "handles stress well"),
]


class MemoryLayer(str, Enum):
    SHORT_TERM = "SHORT_TERM"
    MID_TERM = "MID_TERM"
    LONG_TERM = "LONG_TERM"


class MemoryType(str, Enum):
    PSYCHOLOGICAL = "PSYCHOLOGICAL"
    FATIGUE_RESPONSE = "FATIGUE_RESPONSE"
    PREFERENCE = "PREFERENCE"
    COMMUNICATION = "COMMUNICATION"
    OVERRIDE_PATTERN = "OVERRIDE_PATTERN"
    LANGUAGE_PATTERN = "LANGUAGE_PATTERN"


class AuditAction(str, Enum):
    EXPIRED = "EXPIRED"
    WEEKLY_SUMMARY = "WEEKLY_SUMMARY"
    MONTHLY_TRAITS = "MONTHLY_TRAITS"
    DELETED = "DELETED"
    CORRECTED = "CORRECTED"
    PROMOTED = "PROMOTED"


LAYER_TTL = {
    MemoryLayer.SHORT_TERM: timedelta(days=7),
    MemoryLayer.MID_TERM: timedelta(days=30),
}


# ============================================================================
# Result Models
# ============================================================================

class MemorySources(BaseModel):
    """Ids of the records a memory was derived from."""

    check_ins: List[int] = Field(default_factory=list)
    feedback: List[int] = Field(default_factory=list)
    diary: List[int] = Field(default_factory=list)


class MemoryRecord(BaseModel):
    """Read view of a stored memory."""

    id: int
    layer: MemoryLayer
    type: MemoryType
    title: str
    summary: str
    confidence: int
    data_points: int
    sources: MemorySources
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    version: int
    created_at: datetime

    @classmethod
    def from_row(cls, memory: Memory) -> "MemoryRecord":
        return cls(
            id=memory.id,
            layer=MemoryLayer(memory.layer),
            type=MemoryType(memory.type),
            title=memory.title,
            summary=memory.summary,
            confidence=memory.confidence,
            data_points=memory.data_points,
            sources=MemorySources(**(memory.sources or {})),
            period_start=memory.period_start,
            period_end=memory.period_end,
            expires_at=memory.expires_at,
            version=memory.version,
            created_at=memory.created_at,
        )


class MemoryOverview(BaseModel):
    """Current memories grouped by layer."""

    short_term: List[MemoryRecord] = Field(default_factory=list)
    mid_term: List[MemoryRecord] = Field(default_factory=list)
    long_term: List[MemoryRecord] = Field(default_factory=list)
    total_confidence: int = Field(0, description="Rounded mean confidence, 0 when empty")


class WeeklySummaryResult(BaseModel):
    memories_created: int = 0
    memories_updated: int = 0
    patterns: List[str] = Field(default_factory=list)


class MonthlyTraitResult(BaseModel):
    traits_inferred: int = 0
    traits_updated: int = 0
    traits: List[str] = Field(default_factory=list)


class SourceSnippet(BaseModel):
    """Privacy-safe description of one source record. Never raw text."""

    type: str = Field(..., description="check_in, feedback or diary")
    id: int
    day: Optional[date] = None
    snippet: str


class MemoryExplanation(BaseModel):
    """Why the coach knows something."""

    memory_id: int
    title: str
    summary: str
    confidence: int
    confidence_explanation: str
    sources: List[SourceSnippet] = Field(default_factory=list)
    can_delete: bool = True
    can_edit: bool = True


class PatternSummary(BaseModel):
    """Output of one weekly summarizer."""

    title: str
    summary: str
    source_ids: Optional[List[int]] = None


# ============================================================================
# Confidence and Expiry
# ============================================================================

def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


def calculate_confidence(
    data_points: int,
    has_recent_data: bool,
    contradiction_count: int,
    weeks_since_update: int,
    layer: MemoryLayer,
) -> Tuple[int, str]:
    """
    Confidence of a memory and how it was reached.

    Base is min(100, data_points * 5). Recent data adds 10, a consistent
    pattern (no contradictions, at least 5 data points) adds 15, each
    contradiction removes 20 and each week without update removes 5 for
    short and mid term memories. The result is clamped to 0-100.

    Returns:
        (confidence, explanation)
    """
    confidence = min(100, data_points * 5)
    parts = [f"Base: {confidence} ({data_points} data points × 5)"]

    if has_recent_data:
        confidence += 10
        parts.append("+10 (recent data)")

    if contradiction_count == 0 and data_points >= 5:
        confidence += 15
        parts.append("+15 (consistent pattern)")

    if contradiction_count > 0:
        penalty = contradiction_count * 20
        confidence -= penalty
        parts.append(f"-{penalty} ({_plural(contradiction_count, 'contradiction')})")

    if layer != MemoryLayer.LONG_TERM and weeks_since_update > 0:
        decay = weeks_since_update * 5
        confidence -= decay
        parts.append(f"-{decay} ({_plural(weeks_since_update, 'week')} decay)")

    return round_half_up(clamp(confidence, 0, 100)), ", ".join(parts)


def calculate_expires_at(layer: MemoryLayer, created_at: datetime) -> Optional[datetime]:
    """Expiry instant for a layer; LONG_TERM never expires."""
    ttl = LAYER_TTL.get(MemoryLayer(layer))
    return created_at + ttl if ttl else None


def detect_contradiction(existing_text: str, new_text: str) -> bool:
    """True when the two texts carry opposing trait keywords."""
    existing = existing_text.lower()
    new = new_text.lower()
    for a, b in CONTRADICTION_PAIRS:
        if (a in existing and b in new) or (b in existing and a in new):
            return True
    return False


# ============================================================================
# Weekly Summarizers
# ============================================================================

def _avg(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _one(value: float) -> str:
    return f"{round_to(value, 1):.1f}"


def summarize_readiness(check_ins: List[CheckInRecord]) -> Optional[PatternSummary]:
    """Sleep, fatigue, motivation and stress concerns across a week of check-ins."""
    if len(check_ins) < 3:
        return None

    avg_sleep = _avg([c.sleep_duration for c in check_ins])
    avg_fatigue = _avg([c.physical_fatigue for c in check_ins])
    avg_motivation = _avg([c.motivation for c in check_ins])
    avg_stress = _avg([c.stress_level for c in check_ins])

    concerns = []
    if avg_sleep < 6.5:
        concerns.append(f"sleep averaging {_one(avg_sleep)}h (below optimal)")
    if avg_fatigue >= 3.5:
        concerns.append(f"elevated fatigue ({_one(avg_fatigue)}/5)")
    if avg_motivation <= 2.5:
        concerns.append(f"low motivation ({_one(avg_motivation)}/5)")
    if avg_stress >= 3.5:
        concerns.append(f"high stress ({_one(avg_stress)}/5)")

    if not concerns:
        if avg_motivation >= 4 and avg_fatigue <= 2:
            return PatternSummary(
                title="Strong readiness week",
                summary=(
                    f"This week showed good readiness: motivation {_one(avg_motivation)}/5, "
                    f"fatigue {_one(avg_fatigue)}/5, sleep {_one(avg_sleep)}h."
                ),
            )
        return None

    return PatternSummary(
        title=f"Readiness patterns: {_plural(len(concerns), 'concern')}",
        summary=f"This week: {'; '.join(concerns)}.",
    )


def summarize_overrides(overrides: List[CheckInRecord]) -> Optional[PatternSummary]:
    """Which recommendation the athlete rejected most often."""
    if len(overrides) < 2:
        return None

    by_decision = Counter(o.decision for o in overrides if o.decision)
    if not by_decision:
        return None

    decision, count = by_decision.most_common(1)[0]
    return PatternSummary(
        title=f"Tends to override {decision} recommendations",
        summary=(
            f"Overrode AI {len(overrides)} times this week, most commonly when "
            f"{decision} was suggested ({count} times)."
        ),
        source_ids=[o.id for o in overrides],
    )


def summarize_language(comments: List[str], feedback_ids: List[int]) -> Optional[PatternSummary]:
    """Semantic tags that recur in at least two comments."""
    if len(comments) < 2:
        return None

    counts: Counter = Counter()
    for comment in comments:
        for signal in extract_semantic_tags(comment):
            counts[signal.tag] += 1

    dominant = [tag for tag, count in counts.most_common() if count >= 2]
    if not dominant:
        return None

    top = [tag.label for tag in dominant[:3]]
    return PatternSummary(
        title=f"Language patterns: {top[0]}",
        summary=(
            f"Recurring themes in feedback: {', '.join(top)}. "
            "These patterns help understand subjective experience."
        ),
        source_ids=feedback_ids,
    )


def summarize_fatigue(
    check_ins: List[CheckInRecord], diary: List[DiaryEntryRecord]
) -> Optional[PatternSummary]:
    """Elevated fatigue or good recovery from check-in fatigue and journal soreness."""
    fatigue = [c.physical_fatigue for c in check_ins]
    soreness = [d.soreness for d in diary if d.soreness is not None]
    if len(fatigue) < 3 and len(soreness) < 3:
        return None

    avg_fatigue = _avg(fatigue)
    avg_soreness = _avg(soreness)
    severe_days = sum(1 for c in check_ins if c.muscle_soreness == MuscleSoreness.SEVERE.value)

    if avg_fatigue >= 3.5 or severe_days >= 2:
        return PatternSummary(
            title="Elevated fatigue this week",
            summary=(
                f"Average fatigue {_one(avg_fatigue)}/5, soreness {_one(avg_soreness)}/5. "
                f"{severe_days} days with severe soreness."
            ),
        )

    if avg_fatigue <= 2 and avg_soreness <= 2:
        return PatternSummary(
            title="Good recovery this week",
            summary=(
                f"Low fatigue ({_one(avg_fatigue)}/5) and soreness ({_one(avg_soreness)}/5) "
                "indicate good recovery."
            ),
        )

    return None


# (type, keyword, minimum count, title, summary); first match per type wins
TRAIT_RULES = [
    (MemoryType.OVERRIDE_PATTERN, "rest", 3, "Tends to push through fatigue",
     "Athlete frequently overrides rest recommendations. "
     "Consider being more cautious with recovery suggestions."),
    (MemoryType.FATIGUE_RESPONSE, "elevated", 3, "Overreaches easily",
     "Athlete shows elevated fatigue frequently. May need more conservative load progression."),
    (MemoryType.FATIGUE_RESPONSE, "good recovery", 3, "Recovers well",
     "Athlete consistently shows good recovery. Can handle moderate load increases."),
    (MemoryType.LANGUAGE_PATTERN, "heavy legs", 3, "Muscular fatigue sensitive",
     "Athlete frequently reports heavy legs. May benefit from more recovery between hard sessions."),
    (MemoryType.LANGUAGE_PATTERN, "mental", 3, "Mental fatigue sensitive",
     "Athlete frequently reports mental fatigue. Consider variety and mental recovery strategies."),
    (MemoryType.PSYCHOLOGICAL, "low motivation", 3, "Motivation fluctuates",
     "Athlete shows recurring motivation dips. May benefit from variety and goal-setting."),
    (MemoryType.PSYCHOLOGICAL, "high stress", 3, "Stress-sensitive",
     "Athlete frequently reports high stress. Training load should account for life stress."),
]


def infer_trait(memory_type: MemoryType, memories: List[Memory]) -> Optional[PatternSummary]:
    """Long-term trait from keywords recurring across a type's summaries."""
    summaries = [m.summary.lower() for m in memories]
    for rule_type, keyword, minimum, title, summary in TRAIT_RULES:
        if rule_type != memory_type:
            continue
        if sum(1 for s in summaries if keyword in s) >= minimum:
            return PatternSummary(title=title, summary=summary)
    return None


# ============================================================================
# Snippets
# ============================================================================

def check_in_snippet(check_in: CheckInRecord) -> str:
    suggested = f", AI suggested {check_in.decision}" if check_in.decision else ""
    return (
        f"Check-in: sleep {round_to(check_in.sleep_duration, 1):g}h, "
        f"fatigue {check_in.physical_fatigue}/5{suggested}"
    )


def feedback_snippet(difficulty: Optional[str], enjoyment: Optional[int], comment: Optional[str]) -> str:
    """Difficulty and enjoyment plus tag labels; the comment itself is never included."""
    snippet = f"Feedback: {difficulty}, enjoyment {enjoyment}/5"
    themes = [signal.tag.label for signal in extract_semantic_tags(comment)]
    if themes:
        snippet += f"; themes: {', '.join(themes)}"
    return snippet


def diary_snippet(entry: DiaryEntryRecord) -> str:
    """
    Safe description of a journal entry.

    HIDDEN entries yield an empty string. FULL_AI_ACCESS entries may add
    semantic tags from the notes, never the notes themselves.
    """
    if entry.visibility_level not in (
        VisibilityLevel.FULL_AI_ACCESS.value,
        VisibilityLevel.METRICS_ONLY.value,
    ):
        return ""

    parts = []
    for label, value in (
        ("mood", entry.mood),
        ("energy", entry.energy),
        ("sleepQual", entry.sleep_qual),
        ("soreness", entry.soreness),
        ("stress", entry.stress),
        ("motivation", entry.motivation),
    ):
        if value is not None:
            parts.append(f"{label}={value}/5")
    snippet = f"Diary metrics: {', '.join(parts)}" if parts else "Diary entry (metrics only)"

    if entry.visibility_level == VisibilityLevel.FULL_AI_ACCESS.value:
        themes = [signal.tag.label for signal in extract_semantic_tags(entry.notes)]
        if themes:
            snippet += f"; themes: {', '.join(themes)}"
    return snippet


# ============================================================================
# Engine
# ============================================================================

class MemoryEngine:
    """
    Memory jobs and edits for one database session.

    Every public method commits its own unit of work. Time comes from the
    injected clock so jobs can be re-run deterministically.
    """

    def __init__(self, session: Session, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.memories = MemoryRepository(session)
        self.check_ins = CheckInRepository(session)
        self.feedback = FeedbackRepository(session)
        self.diary = DiaryRepository(session)

    def _now(self) -> datetime:
        return utc_naive(self.clock.now())

    # ----- expiry -----

    def cleanup_expired(self, athlete_id: str) -> int:
        """Delete expired memories. One audit record per non-empty batch."""
        now = self._now()
        count = self.memories.delete_expired(athlete_id, now)
        if count > 0:
            self.memories.append_audit(
                athlete_id,
                AuditAction.EXPIRED.value,
                details={"message": f"{count} expired memories cleaned up", "count": count},
                created_at=now,
            )
            logger.info(f"Cleaned up {count} expired memories for {athlete_id}")
        self.session.commit()
        return count

    # ----- upsert -----

    def upsert_memory(
        self,
        athlete_id: str,
        layer: MemoryLayer,
        memory_type: MemoryType,
        title: str,
        summary: str,
        data_points: int,
        sources: MemorySources,
        period_start: datetime,
        period_end: datetime,
        confidence_override: Optional[int] = None,
    ) -> Tuple[Memory, str]:
        """
        Append a new version of the (type, layer) memory.

        Returns:
            (memory, outcome) where outcome is "created", "updated" or
            "unchanged". An identical title, summary and period returns the
            current record untouched.
        """
        now = self._now()
        existing = self.memories.find_current(athlete_id, memory_type.value, layer.value)

        if (
            existing is not None
            and existing.title == title
            and existing.summary == summary
            and existing.period_start == period_start
            and existing.period_end == period_end
        ):
            return existing, "unchanged"

        if confidence_override is not None:
            confidence = confidence_override
        else:
            confidence, _ = calculate_confidence(data_points, True, 0, 0, layer)

        memory = self.memories.create(
            athlete_id,
            layer=layer.value,
            type=memory_type.value,
            title=title,
            summary=summary,
            confidence=confidence,
            data_points=data_points,
            sources=sources.model_dump(),
            period_start=period_start,
            period_end=period_end,
            expires_at=calculate_expires_at(layer, now),
            version=existing.version + 1 if existing else 1,
            created_at=now,
            updated_at=now,
        )
        if existing is not None:
            self.memories.supersede(existing, memory)
            return memory, "updated"
        return memory, "created"

    # ----- weekly job -----

    def generate_weekly_summary(
        self, athlete_id: str, week_start: date, week_end: date
    ) -> WeeklySummaryResult:
        """
        Summarize one week of check-ins, feedback and journal entries into
        SHORT_TERM memories.

        Args:
            athlete_id: Athlete to summarize
            week_start: First day (inclusive)
            week_end: Last day (inclusive)

        Returns:
            WeeklySummaryResult; empty when fewer than three data points exist
        """
        result = WeeklySummaryResult()

        check_ins = self.check_ins.find_in_range(athlete_id, week_start, week_end)
        feedback = self.feedback.find_in_range(
            athlete_id,
            datetime.combine(week_start, time.min),
            datetime.combine(week_end + timedelta(days=1), time.min),
            visible_only=True,
        )
        diary = self.diary.find_in_range(athlete_id, week_start, week_end)

        total = len(check_ins) + len(feedback) + len(diary)
        if total < MIN_WEEKLY_DATA_POINTS:
            logger.debug(f"Weekly summary skipped for {athlete_id}: {total} data points")
            return result

        period_start = datetime.combine(week_start, time.min)
        period_end = datetime.combine(week_end, time.min)
        all_sources = MemorySources(
            check_ins=[c.id for c in check_ins],
            feedback=[f.id for f in feedback],
            diary=[d.id for d in diary],
        )

        candidates: List[Tuple[MemoryType, Optional[PatternSummary], int, MemorySources]] = []

        if len(check_ins) >= 3:
            candidates.append((
                MemoryType.PSYCHOLOGICAL,
                summarize_readiness(check_ins),
                len(check_ins),
                MemorySources(check_ins=all_sources.check_ins),
            ))

        overrides = [c for c in check_ins if c.user_accepted is False]
        if len(overrides) >= 2:
            candidates.append((
                MemoryType.OVERRIDE_PATTERN,
                summarize_overrides(overrides),
                len(overrides),
                MemorySources(check_ins=[o.id for o in overrides]),
            ))

        commented = [f for f in feedback if f.comment and f.comment.strip()]
        if len(commented) >= 2:
            language = summarize_language([f.comment for f in commented], [f.id for f in commented])
            candidates.append((
                MemoryType.LANGUAGE_PATTERN,
                language,
                len(commented),
                MemorySources(feedback=language.source_ids if language else []),
            ))

        if len(check_ins) >= 3 or len(diary) >= 3:
            candidates.append((
                MemoryType.FATIGUE_RESPONSE,
                summarize_fatigue(check_ins, diary),
                len(check_ins) + len(diary),
                all_sources,
            ))

        for memory_type, pattern, data_points, sources in candidates:
            if pattern is None:
                continue
            _, outcome = self.upsert_memory(
                athlete_id,
                MemoryLayer.SHORT_TERM,
                memory_type,
                pattern.title,
                pattern.summary,
                data_points,
                sources,
                period_start,
                period_end,
            )
            if outcome == "created":
                result.memories_created += 1
            elif outcome == "updated":
                result.memories_updated += 1
            result.patterns.append(pattern.title)

        written = result.memories_created + result.memories_updated
        self.memories.append_audit(
            athlete_id,
            AuditAction.WEEKLY_SUMMARY.value,
            details={
                "message": (
                    f"Week {week_start.isoformat()}: {written} memories, "
                    f"patterns: {', '.join(result.patterns)}"
                ),
                "patterns": result.patterns,
            },
            created_at=self._now(),
        )
        self.session.commit()
        logger.info(
            f"Weekly summary for {athlete_id} ({week_start}): "
            f"{result.memories_created} created, {result.memories_updated} updated"
        )
        return result

    # ----- monthly job -----

    def infer_monthly_traits(
        self, athlete_id: str, month_start: date, month_end: date
    ) -> MonthlyTraitResult:
        """
        Infer LONG_TERM traits from the month's short and mid term memories.

        Needs at least four current memories whose period ends inside the
        month; only types with three or more are considered. A trait that
        contradicts the existing trait of its type loses 20 confidence and
        carries a note. Traits below 50 confidence are not stored.
        """
        result = MonthlyTraitResult()
        start = datetime.combine(month_start, time.min)
        end = datetime.combine(month_end, time.max)

        recent = [
            m
            for m in self.memories.find_active(athlete_id)
            if m.layer in (MemoryLayer.SHORT_TERM.value, MemoryLayer.MID_TERM.value)
            and m.period_end is not None
            and start <= m.period_end <= end
        ]
        if len(recent) < MIN_MONTHLY_MEMORIES:
            logger.debug(f"Monthly traits skipped for {athlete_id}: {len(recent)} memories")
            return result

        by_type: Dict[str, List[Memory]] = {}
        for memory in recent:
            by_type.setdefault(memory.type, []).append(memory)

        for type_name, memories in by_type.items():
            if len(memories) < MIN_MEMORIES_PER_TYPE:
                continue
            memory_type = MemoryType(type_name)
            trait = infer_trait(memory_type, memories)
            if trait is None:
                continue

            existing = self.memories.find_current(athlete_id, type_name, MemoryLayer.LONG_TERM.value)
            contradiction = existing is not None and detect_contradiction(
                f"{existing.title} {existing.summary}", f"{trait.title} {trait.summary}"
            )

            sources = MemorySources()
            for memory in memories:
                src = MemorySources(**(memory.sources or {}))
                sources.check_ins.extend(src.check_ins)
                sources.feedback.extend(src.feedback)
                sources.diary.extend(src.diary)

            data_points = sum(m.data_points for m in memories)
            confidence, _ = calculate_confidence(
                data_points, True, 1 if contradiction else 0, 0, MemoryLayer.LONG_TERM
            )
            if confidence < MIN_TRAIT_CONFIDENCE:
                continue

            _, outcome = self.upsert_memory(
                athlete_id,
                MemoryLayer.LONG_TERM,
                memory_type,
                trait.title,
                trait.summary + CONTRADICTION_NOTE if contradiction else trait.summary,
                data_points,
                sources,
                datetime.combine(month_start, time.min),
                datetime.combine(month_end, time.min),
                confidence_override=confidence,
            )
            if outcome == "created":
                result.traits_inferred += 1
            elif outcome == "updated":
                result.traits_updated += 1
            result.traits.append(trait.title)

        self.memories.append_audit(
            athlete_id,
            AuditAction.MONTHLY_TRAITS.value,
            details={
                "message": (
                    f"Month {month_start.isoformat()}: {result.traits_inferred} new, "
                    f"{result.traits_updated} updated. Traits: {', '.join(result.traits)}"
                ),
                "traits": result.traits,
            },
            created_at=self._now(),
        )
        self.session.commit()
        logger.info(f"Monthly traits for {athlete_id} ({month_start}): {result.traits}")
        return result

    # ----- queries -----

    def get_active_memories(self, athlete_id: str) -> MemoryOverview:
        """Current, unexpired memories grouped by layer."""
        overview = MemoryOverview()
        rows = self.memories.find_active(athlete_id, now=self._now())
        for row in sorted(rows, key=lambda m: (m.created_at, m.id), reverse=True):
            record = MemoryRecord.from_row(row)
            if record.layer == MemoryLayer.SHORT_TERM:
                overview.short_term.append(record)
            elif record.layer == MemoryLayer.MID_TERM:
                overview.mid_term.append(record)
            else:
                overview.long_term.append(record)

        if rows:
            overview.total_confidence = round_half_up(_avg([m.confidence for m in rows]))
        return overview

    def explain(self, athlete_id: str, memory_id: int) -> Optional[MemoryExplanation]:
        """
        Trace a memory back to its sources with privacy-safe snippets.

        At most five check-ins, five feedback entries and ten journal
        entries are described. Returns None for an unknown memory.
        """
        memory = self.memories.get(athlete_id, memory_id)
        if memory is None:
            return None

        sources = MemorySources(**(memory.sources or {}))
        snippets: List[SourceSnippet] = []

        for check_in in self.check_ins.get_many(athlete_id, sources.check_ins[:5]):
            snippets.append(SourceSnippet(
                type="check_in", id=check_in.id, day=check_in.day, snippet=check_in_snippet(check_in)
            ))

        for item in self.feedback.get_many(athlete_id, sources.feedback[:5]):
            snippets.append(SourceSnippet(
                type="feedback",
                id=item.id,
                day=item.created_at.date() if item.created_at else None,
                snippet=feedback_snippet(item.perceived_difficulty, item.enjoyment, item.comment),
            ))

        for entry in self.diary.get_many(athlete_id, sources.diary[:10]):
            snippet = diary_snippet(entry)
            if not snippet:
                continue
            snippets.append(SourceSnippet(type="diary", id=entry.id, day=entry.date, snippet=snippet))

        weeks = max(0, math.floor((self._now() - memory.updated_at) / timedelta(days=7)))
        _, explanation = calculate_confidence(
            memory.data_points,
            weeks == 0,
            1 if "contradicts" in memory.summary else 0,
            weeks,
            MemoryLayer(memory.layer),
        )

        return MemoryExplanation(
            memory_id=memory.id,
            title=memory.title,
            summary=memory.summary,
            confidence=memory.confidence,
            confidence_explanation=explanation,
            sources=snippets,
            can_delete=True,
            can_edit=memory.layer != MemoryLayer.LONG_TERM.value,
        )

    # ----- edits -----

    def delete_memory(self, athlete_id: str, memory_id: int) -> bool:
        memory = self.memories.get(athlete_id, memory_id)
        if memory is None:
            return False

        title, memory_type = memory.title, memory.type
        self.memories.delete(memory)
        self.memories.append_audit(
            athlete_id,
            AuditAction.DELETED.value,
            memory_type=memory_type,
            memory_id=memory_id,
            details={"message": f"Deleted: {title}"},
            created_at=self._now(),
        )
        self.session.commit()
        return True

    def correct_memory(
        self,
        athlete_id: str,
        memory_id: int,
        title: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> bool:
        """Apply an athlete's correction; corrections cost 20 confidence (floor 30)."""
        memory = self.memories.get(athlete_id, memory_id)
        if memory is None:
            return False

        old_title = memory.title
        self.memories.update(
            memory,
            title=title or memory.title,
            summary=summary or memory.summary,
            confidence=max(30, memory.confidence - 20),
            version=memory.version + 1,
            updated_at=self._now(),
        )
        self.memories.append_audit(
            athlete_id,
            AuditAction.CORRECTED.value,
            memory_type=memory.type,
            memory_id=memory.id,
            details={"message": f"Corrected: {old_title} → {memory.title}"},
            created_at=self._now(),
        )
        self.session.commit()
        return True

    def promote_memory(self, athlete_id: str, memory_id: int) -> bool:
        """Move a SHORT_TERM memory to MID_TERM with a fresh 30-day expiry."""
        memory = self.memories.get(athlete_id, memory_id)
        if memory is None or memory.layer != MemoryLayer.SHORT_TERM.value:
            return False

        now = self._now()
        self.memories.update(
            memory,
            layer=MemoryLayer.MID_TERM.value,
            expires_at=calculate_expires_at(MemoryLayer.MID_TERM, now),
            version=memory.version + 1,
            updated_at=now,
        )
        self.memories.append_audit(
            athlete_id,
            AuditAction.PROMOTED.value,
            memory_type=memory.type,
            memory_id=memory.id,
            details={"message": f"Promoted to MID_TERM: {memory.title}"},
            created_at=now,
        )
        self.session.commit()
        return True
