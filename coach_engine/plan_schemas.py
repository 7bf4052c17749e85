"""
Prescription and workout plan data models.

Defines:
- SessionIntent: what the athlete asked for (sport, date, optional distance)
- WorkoutPrescription: the generated rubric workout with step lists
- Versioned plan payloads (PrescriptionV1Plan | StructuredV2Plan) stored
  alongside saved workouts, plus the converter between versions
"""

import re
from datetime import date
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from coach_engine.schemas import Intensity, Sport


# ============================================================================
# Session Intent
# ============================================================================

class SessionIntent(BaseModel):
    """Resolved request for a single session."""

    sport: Sport = Field(..., description="Session sport")
    date: date
    duration_min_hint: Optional[int] = Field(
        None, ge=5, le=300, description="Requested duration in minutes"
    )
    target_meters: Optional[int] = Field(
        None, gt=0, description="Requested total swim distance"
    )
    replace_existing: bool = Field(False, description="Replace the day's session")
    create_separate: bool = Field(False, description="Add a second session that day")
    add_to_calendar: bool = Field(True, description="Persist the prescription")
    strength_mobility_only: bool = Field(
        False, description="Pain/injury mentioned; mobility work only"
    )


# ============================================================================
# Rubric Prescription
# ============================================================================

class IntensityTarget(BaseModel):
    """Intensity cues for a step or a whole session."""

    rpe: Optional[str] = Field(None, description="e.g. 'RPE 3–4'")
    hr: Optional[str] = Field(None, description="e.g. '130–145 bpm'")
    watts: Optional[str] = Field(None, description="e.g. '55–70% FTP'")
    pace: Optional[str] = Field(None, description="e.g. 'Conversational; talk test'")
    zone: Optional[str] = Field(None, description="e.g. 'Z2'")

    def summary_parts(self) -> List[str]:
        """Non-empty cues in display order."""
        return [v for v in (self.rpe, self.hr, self.watts) if v]


class RubricStep(BaseModel):
    """One step of a warm-up, main set or cool-down."""

    description: str = Field(..., min_length=1)
    duration_min: int = Field(..., ge=0)
    distance_m: Optional[int] = Field(None, ge=0)
    intensity_target: Optional[IntensityTarget] = None


class WhyDrivers(BaseModel):
    """Structured explanation of the prescription."""

    rationale: str
    guardrail_checks: List[str] = Field(default_factory=list)
    adaptation_reason: Optional[str] = None


class WorkoutPrescription(BaseModel):
    """
    Generated session.

    Step durations sum to duration_min. For SWIM with a target_meters, the
    step distances sum to target_meters exactly.
    """

    sport: Sport
    date: date
    title: str
    duration_min: int = Field(..., ge=0)
    goal: str
    intensity: Intensity = Intensity.MODERATE
    target_meters: Optional[int] = Field(None, gt=0)

    warmup: List[RubricStep] = Field(default_factory=list)
    main: List[RubricStep] = Field(default_factory=list)
    cooldown: List[RubricStep] = Field(default_factory=list)

    technique_cues: List[str] = Field(default_factory=list)
    intensity_targets: IntensityTarget = Field(default_factory=IntensityTarget)
    fueling_guidance: Optional[str] = None
    variant_a: str = ""
    variant_b: str = ""
    success_criteria: str = ""
    rationale: str = ""
    why: WhyDrivers
    progression_note: Optional[str] = None
    recovery_session: bool = False
    mobility_only: bool = False
    result_template: bool = Field(False, description="Append a result-logging block")

    def all_steps(self) -> List[RubricStep]:
        """Warm-up, main and cool-down steps in order."""
        return [*self.warmup, *self.main, *self.cooldown]

    def total_step_minutes(self) -> int:
        return sum(step.duration_min for step in self.all_steps())

    def total_distance_m(self) -> Optional[int]:
        """Summed step distance, or None when no step carries a distance."""
        distances = [s.distance_m for s in self.all_steps() if s.distance_m is not None]
        if not distances:
            return None
        return sum(distances)


# ============================================================================
# Versioned Plan Payloads
# ============================================================================

class IntensityUnit(str, Enum):
    """Units an intensity range can be expressed in."""
    WATTS = "w"
    BPM = "bpm"
    MIN_PER_KM = "min/km"
    SEC_PER_100M = "sec/100m"
    RPE = "rpe"


class IntensityType(str, Enum):
    """What kind of target a block uses."""
    PACE = "pace"
    POWER = "power"
    HR = "hr"
    RPE = "rpe"
    ZONE = "zone"


class SectionType(str, Enum):
    """Plan section types."""
    WARMUP = "warmup"
    MAIN = "main"
    COOLDOWN = "cooldown"
    STRENGTH = "strength"
    TECHNIQUE = "technique"


class IntensityRange(BaseModel):
    """Numeric target range."""

    min: Optional[float] = None
    max: Optional[float] = None
    unit: Optional[IntensityUnit] = None


class PlanBlock(BaseModel):
    """One block of a structured plan section."""

    id: str
    reps: Optional[int] = Field(None, ge=1)
    distance_m: Optional[int] = Field(None, ge=0)
    duration_sec: Optional[int] = Field(None, ge=0)
    intensity_type: Optional[IntensityType] = None
    intensity_label: Optional[str] = None
    intensity_range: Optional[IntensityRange] = None
    rest_sec: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class PlanSection(BaseModel):
    """Typed list of blocks."""

    id: str
    type: SectionType = SectionType.MAIN
    title: Optional[str] = None
    blocks: List[PlanBlock] = Field(default_factory=list)


class StructuredV2Plan(BaseModel):
    """Current structured plan format."""

    kind: Literal["structured_v2"] = "structured_v2"
    version: Literal[2] = 2
    objective: Optional[str] = None
    sections: List[PlanSection] = Field(..., min_length=1)


class TimedText(BaseModel):
    """Legacy text section with an optional duration."""

    minutes: Optional[int] = Field(None, ge=0)
    text: Optional[str] = None


class LabelValue(BaseModel):
    label: Optional[str] = None
    value: Optional[str] = None


class Overview(BaseModel):
    duration_min: Optional[int] = Field(None, ge=0)
    intensity: Optional[str] = None


class PrescriptionV1Plan(BaseModel):
    """Legacy text-first prescription format."""

    kind: Literal["prescription_v1"] = "prescription_v1"
    version: Literal[1] = 1
    overview: Optional[Overview] = None
    warm_up: Optional[TimedText] = None
    main_set: Optional[TimedText] = None
    cool_down: Optional[TimedText] = None
    targets: List[LabelValue] = Field(default_factory=list)
    why: Optional[str] = None
    context_used: List[LabelValue] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_has_content(self) -> "PrescriptionV1Plan":
        """A v1 prescription needs at least one text section."""
        texts = [s.text for s in (self.warm_up, self.main_set, self.cool_down) if s]
        if not any(t and t.strip() for t in texts):
            raise ValueError("Prescription v1 must have warm-up, main set or cool-down text")
        return self


AnyWorkoutPlan = Annotated[
    Union[PrescriptionV1Plan, StructuredV2Plan], Field(discriminator="kind")
]

_plan_adapter = TypeAdapter(AnyWorkoutPlan)


def parse_workout_plan_json(raw: Dict[str, Any]) -> Optional[Union[PrescriptionV1Plan, StructuredV2Plan]]:
    """
    Parse a stored plan payload into its versioned model.

    version == 1 selects the legacy format; anything else is read as a
    structured plan and must carry at least one section.

    Args:
        raw: Decoded JSON object

    Returns:
        PrescriptionV1Plan or StructuredV2Plan, or None if the payload is invalid
    """
    if not isinstance(raw, dict):
        return None
    payload = dict(raw)
    if payload.get("version") == 1:
        payload["kind"] = "prescription_v1"
    else:
        payload["kind"] = "structured_v2"
        payload["version"] = 2
    try:
        return _plan_adapter.validate_python(payload)
    except ValidationError:
        return None


_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_BULLET = re.compile(r"^[-*•]\s+")


def objective_from_why(why: Optional[str]) -> Optional[str]:
    """First sentence of a rationale, clipped to 140 characters."""
    if not why:
        return None
    cleaned = " ".join(why.split())
    if len(cleaned) < 6:
        return None
    first = _SENTENCE_SPLIT.split(cleaned)[0] or cleaned
    if len(first) > 140:
        return f"{first[:137].strip()}…"
    return first


def _text_lines(text: str) -> List[str]:
    lines = [line.strip() for line in text.replace("\r\n", "\n").split("\n")]
    return [_BULLET.sub("", line) for line in lines if line]


def convert_v1_to_structured(v1: PrescriptionV1Plan) -> StructuredV2Plan:
    """
    Convert a legacy prescription into the structured format.

    Each non-empty text section becomes a plan section; each line of text
    becomes a block. A single-line section carries the section's minutes.
    """
    sections: List[PlanSection] = []
    parts = [
        (SectionType.WARMUP, "Warm-up", v1.warm_up),
        (SectionType.MAIN, "Main set", v1.main_set),
        (SectionType.COOLDOWN, "Cool-down", v1.cool_down),
    ]
    for section_type, title, timed in parts:
        if timed is None or not timed.text or not timed.text.strip():
            continue
        lines = _text_lines(timed.text)
        blocks = []
        for i, line in enumerate(lines, start=1):
            duration_sec = None
            if len(lines) == 1 and timed.minutes is not None:
                duration_sec = timed.minutes * 60
            blocks.append(
                PlanBlock(id=f"{section_type.value}-{i}", notes=line, duration_sec=duration_sec)
            )
        sections.append(
            PlanSection(id=section_type.value, type=section_type, title=title, blocks=blocks)
        )

    return StructuredV2Plan(objective=objective_from_why(v1.why), sections=sections)


def ensure_structured(plan: Union[PrescriptionV1Plan, StructuredV2Plan]) -> StructuredV2Plan:
    """Normalize any plan version to the structured format."""
    if isinstance(plan, StructuredV2Plan):
        return plan
    if isinstance(plan, PrescriptionV1Plan):
        return convert_v1_to_structured(plan)
    raise TypeError(f"Unsupported plan type: {type(plan).__name__}")
