"""
Tests for Markdown rendering, structured plan conversion and export.
"""

import json
from datetime import date

import pytest

from coach_engine.context import CoachContext, ReadinessSnapshot
from coach_engine.plan_schemas import SectionType, SessionIntent
from coach_engine.prescription import PrescriptionGenerator
from coach_engine.rendering import (
    PrescriptionExporter,
    load_plan_from_file,
    render_markdown,
    to_structured_plan,
)
from coach_engine.schemas import ExplainLevel, ReadinessDecision, Sport


TODAY = date(2025, 3, 12)


# Fixtures

@pytest.fixture
def context(profile):
    return CoachContext(profile=profile, today=TODAY, session_counts={Sport.RUN: 10, Sport.SWIM: 10})


@pytest.fixture
def run(context):
    return PrescriptionGenerator().generate(SessionIntent(sport=Sport.RUN, date=TODAY), context)


@pytest.fixture
def swim(context):
    generator = PrescriptionGenerator(include_result_template=True)
    return generator.generate(SessionIntent(sport=Sport.SWIM, date=TODAY, target_meters=2000), context)


# Tests

def test_markdown_section_order(run):
    markdown = render_markdown(run, ExplainLevel.STANDARD)

    headings = [line for line in markdown.splitlines() if line.startswith("#")]
    assert headings == [
        "## Steady Run",
        "### Why",
        "### Warm-up",
        "### Main set",
        "### Cool-down",
        "### Targets",
        "### Technique",
        "### Variants",
    ]
    assert "**Duration:** 60 min" in markdown
    assert "- HR: 146–160 bpm" in markdown
    assert markdown.endswith("*Today's win: complete this session and note how you feel.*")


def test_minimal_skips_why(run):
    markdown = render_markdown(run, ExplainLevel.MINIMAL)
    assert "### Why" not in markdown
    assert run.rationale not in markdown


def test_deep_lists_guardrail_checks(run):
    markdown = render_markdown(run, ExplainLevel.DEEP)
    assert "Guardrail checks:" in markdown
    assert "- Ramp: n/a%" in markdown


def test_main_step_shows_targets(run):
    markdown = render_markdown(run, ExplainLevel.STANDARD)
    main_line = next(line for line in markdown.splitlines() if line.startswith("- Steady run"))
    assert main_line.endswith("(45 min) — RPE 5–6, 146–160 bpm")


def test_swim_markdown_has_distance_and_result_block(swim):
    markdown = render_markdown(swim, ExplainLevel.STANDARD)

    assert "**Distance:** 2000 m" in markdown
    assert "### Result" in markdown
    assert "- Total meters:" in markdown


def test_adaptation_reason_is_rendered(context):
    low = context.model_copy(
        update={"readiness": ReadinessSnapshot(score=35, decision=ReadinessDecision.SWAP_RECOVERY)}
    )
    prescription, _ = PrescriptionGenerator().prescribe(SessionIntent(sport=Sport.RUN, date=TODAY), low)
    markdown = render_markdown(prescription, ExplainLevel.STANDARD)

    assert "## Recovery Run" in markdown
    assert "Reduced volume." in markdown


def test_structured_plan(swim):
    plan = to_structured_plan(swim)

    assert plan.kind == "structured_v2"
    assert plan.objective == swim.goal
    assert [s.type for s in plan.sections] == [SectionType.WARMUP, SectionType.MAIN, SectionType.COOLDOWN]
    assert [b.id for b in plan.sections[0].blocks] == ["warmup-1", "warmup-2"]

    main = plan.sections[1].blocks[0]
    assert main.distance_m == 1600
    assert main.duration_sec == 31 * 60
    assert main.intensity_label == "Z2"
    assert main.intensity_range.min == 5
    assert main.intensity_range.max == 6

    total = sum(b.distance_m for s in plan.sections for b in s.blocks)
    assert total == 2000


def test_export_json_round_trips_plan(tmp_path, swim):
    path = PrescriptionExporter(swim).save_to_file(tmp_path, "json")

    assert path.name == "swim_2025-03-12.json"
    with open(path) as f:
        data = json.load(f)
    assert data["prescription"]["title"] == "Swim 2000m"

    plan = load_plan_from_file(path)
    assert plan == to_structured_plan(swim)


def test_export_markdown(tmp_path, run):
    path = PrescriptionExporter(run, ExplainLevel.MINIMAL).save_to_file(tmp_path, "markdown")
    assert path.suffix == ".md"
    assert path.read_text().startswith("## Steady Run")


def test_export_rejects_unknown_format(tmp_path, run):
    with pytest.raises(ValueError, match="Unsupported format"):
        PrescriptionExporter(run).save_to_file(tmp_path, "pdf")


def test_load_plan_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_plan_from_file(tmp_path / "missing.json")


def test_load_plan_converts_v1(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps({
        "version": 1,
        "warm_up": {"minutes": 10, "text": "Easy jog"},
        "main_set": {"text": "- 4x5 min steady\n- 2 min easy"},
        "why": "Build aerobic base. Keep it easy.",
    }))
    plan = load_plan_from_file(path)

    assert plan.objective == "Build aerobic base."
    assert plan.sections[0].blocks[0].duration_sec == 600
    assert [b.notes for b in plan.sections[1].blocks] == ["4x5 min steady", "2 min easy"]


def test_load_plan_rejects_garbage(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"sections": []}))
    with pytest.raises(ValueError, match="Invalid plan file"):
        load_plan_from_file(path)
