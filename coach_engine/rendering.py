"""
Prescription rendering and export.

Provides:
- Markdown rendering at three explanation depths
- Conversion to the structured (v2) plan payload stored with workouts
- File export (JSON or Markdown) and plan loading
"""

import json
import re
from pathlib import Path
from typing import List, Optional

from coach_engine.plan_schemas import (
    IntensityRange,
    IntensityType,
    IntensityUnit,
    PlanBlock,
    PlanSection,
    RubricStep,
    SectionType,
    StructuredV2Plan,
    WorkoutPrescription,
    ensure_structured,
    parse_workout_plan_json,
)
from coach_engine.schemas import ExplainLevel, Sport

_RPE_RANGE = re.compile(r"(\d+)\s*[–-]\s*(\d+)")


# ===== MARKDOWN =====


def _step_line(step: RubricStep, with_target: bool = False) -> str:
    duration = f" ({step.duration_min} min)" if step.duration_min else ""
    target = ""
    if with_target and step.intensity_target:
        parts = step.intensity_target.summary_parts()
        if parts:
            target = f" — {', '.join(parts)}"
    return f"- {step.description}{duration}{target}"


def render_markdown(prescription: WorkoutPrescription, explain_level: ExplainLevel) -> str:
    """
    Render a prescription as Markdown.

    Section order is fixed: title, goal, duration, why (not at minimal
    depth), warm-up, main set, cool-down, targets, technique, fueling,
    variants, progression, success criteria and the optional result block.

    Args:
        prescription: Prescription to render
        explain_level: MINIMAL skips the why section, DEEP adds guardrail checks

    Returns:
        Markdown text
    """
    lines: List[str] = []
    lines.append(f"## {prescription.title}")
    lines.append("")
    lines.append(f"**Goal:** {prescription.goal}")
    lines.append(f"**Duration:** {prescription.duration_min} min")
    if prescription.target_meters:
        lines.append(f"**Distance:** {prescription.target_meters} m")
    lines.append("")

    if explain_level != ExplainLevel.MINIMAL:
        lines.append("### Why")
        lines.append(prescription.rationale)
        if prescription.why.adaptation_reason:
            lines.append(prescription.why.adaptation_reason)
        if explain_level == ExplainLevel.DEEP and prescription.why.guardrail_checks:
            lines.append("")
            lines.append("Guardrail checks:")
            for check in prescription.why.guardrail_checks:
                lines.append(f"- {check}")
        lines.append("")

    lines.append("### Warm-up")
    lines.extend(_step_line(s) for s in prescription.warmup)
    lines.append("")
    lines.append("### Main set")
    lines.extend(_step_line(s, with_target=True) for s in prescription.main)
    lines.append("")
    lines.append("### Cool-down")
    lines.extend(_step_line(s) for s in prescription.cooldown)
    lines.append("")

    lines.append("### Targets")
    targets = prescription.intensity_targets
    if targets.rpe:
        lines.append(f"- RPE: {targets.rpe}")
    if targets.hr:
        lines.append(f"- HR: {targets.hr}")
    if targets.watts:
        lines.append(f"- Power: {targets.watts}")
    if targets.pace:
        lines.append(f"- Pace: {targets.pace}")
    lines.append("")

    lines.append("### Technique")
    for cue in prescription.technique_cues:
        lines.append(f"- {cue}")

    if prescription.fueling_guidance:
        lines.append("")
        lines.append("### Fueling")
        lines.append(prescription.fueling_guidance)

    lines.append("")
    lines.append("### Variants")
    lines.append(f"- **A (ideal):** {prescription.variant_a or 'Full session.'}")
    lines.append(f"- **B (low energy):** {prescription.variant_b or 'Reduce volume.'}")

    if prescription.progression_note:
        lines.append("")
        lines.append("### Progression")
        lines.append(prescription.progression_note)

    lines.append("")
    success = prescription.success_criteria or "Complete warm-up, main set, and cool-down within targets."
    lines.append(f"**Success criteria:** {success}")

    if prescription.result_template:
        lines.append("")
        lines.append("### Result")
        lines.append("- Completed: yes / partly / no")
        if prescription.sport == Sport.SWIM:
            lines.append("- Total meters:")
        lines.append("- Session RPE (1-10):")
        lines.append("- How it felt:")

    lines.append("")
    lines.append("---")
    lines.append("*Today's win: complete this session and note how you feel.*")
    return "\n".join(lines)


# ===== STRUCTURED PLAN =====


def _rpe_range(rpe: Optional[str]) -> Optional[IntensityRange]:
    if not rpe:
        return None
    match = _RPE_RANGE.search(rpe)
    if not match:
        return None
    return IntensityRange(min=float(match.group(1)), max=float(match.group(2)), unit=IntensityUnit.RPE)


def _blocks(section: SectionType, steps: List[RubricStep]) -> List[PlanBlock]:
    blocks = []
    for i, step in enumerate(steps, start=1):
        target = step.intensity_target
        blocks.append(
            PlanBlock(
                id=f"{section.value}-{i}",
                distance_m=step.distance_m,
                duration_sec=step.duration_min * 60,
                intensity_type=IntensityType.RPE if target and target.rpe else None,
                intensity_label=(target.zone or target.rpe) if target else None,
                intensity_range=_rpe_range(target.rpe) if target else None,
                notes=step.description,
            )
        )
    return blocks


def to_structured_plan(prescription: WorkoutPrescription) -> StructuredV2Plan:
    """
    Structured plan payload for a prescription.

    Sections are warmup, main and cooldown (empty ones are omitted); block
    ids are "<section>-<n>" so the payload is deterministic.
    """
    sections = []
    parts = [
        (SectionType.WARMUP, "Warm-up", prescription.warmup),
        (SectionType.MAIN, "Main set", prescription.main),
        (SectionType.COOLDOWN, "Cool-down", prescription.cooldown),
    ]
    for section_type, title, steps in parts:
        if steps:
            sections.append(
                PlanSection(
                    id=section_type.value,
                    type=section_type,
                    title=title,
                    blocks=_blocks(section_type, steps),
                )
            )
    return StructuredV2Plan(objective=prescription.goal, sections=sections)


# ===== EXPORT =====


class PrescriptionExporter:
    """Exports a prescription to JSON or Markdown files."""

    def __init__(
        self, prescription: WorkoutPrescription, explain_level: ExplainLevel = ExplainLevel.STANDARD
    ):
        self.prescription = prescription
        self.explain_level = explain_level

    def export_to_json(self) -> dict:
        """Prescription and its structured plan as a JSON-compatible dict."""
        return {
            "prescription": self.prescription.model_dump(mode="json"),
            "plan": to_structured_plan(self.prescription).model_dump(mode="json"),
        }

    def export_to_markdown(self) -> str:
        return render_markdown(self.prescription, self.explain_level)

    def save_to_file(self, output_dir: Path, format: str = "json") -> Path:
        """
        Save the prescription in the specified format.

        Args:
            output_dir: Directory to save the file in
            format: Output format ("json" or "markdown")

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{self.prescription.sport.value.lower()}_{self.prescription.date.isoformat()}"

        if format == "json":
            filepath = output_dir / f"{stem}.json"
            with open(filepath, "w") as f:
                json.dump(self.export_to_json(), f, indent=2, default=str)

        elif format == "markdown":
            filepath = output_dir / f"{stem}.md"
            with open(filepath, "w") as f:
                f.write(self.export_to_markdown())

        else:
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        return filepath


def load_plan_from_file(filepath: Path) -> StructuredV2Plan:
    """
    Load a plan from a JSON file and normalize it to the structured format.

    Accepts either a bare plan payload (v1 or v2) or an exported file with
    a "plan" key.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file holds no valid plan
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Plan file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    raw = data.get("plan", data) if isinstance(data, dict) else data
    plan = parse_workout_plan_json(raw)
    if plan is None:
        raise ValueError(f"Invalid plan file: {filepath}")
    return ensure_structured(plan)
