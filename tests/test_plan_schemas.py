"""
Tests for versioned plan payloads and prescription models.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from coach_engine.plan_schemas import (
    IntensityTarget,
    PrescriptionV1Plan,
    RubricStep,
    SectionType,
    SessionIntent,
    StructuredV2Plan,
    TimedText,
    WhyDrivers,
    WorkoutPrescription,
    convert_v1_to_structured,
    ensure_structured,
    objective_from_why,
    parse_workout_plan_json,
)
from coach_engine.schemas import Sport


# Fixtures

@pytest.fixture
def v2_payload():
    return {
        "objective": "Aerobic base",
        "sections": [
            {
                "id": "main",
                "type": "main",
                "blocks": [{"id": "main-1", "reps": 4, "distance_m": 400, "rest_sec": 30}],
            }
        ],
    }


# Tests

def test_parse_structured_without_kind(v2_payload):
    plan = parse_workout_plan_json(v2_payload)

    assert isinstance(plan, StructuredV2Plan)
    assert plan.version == 2
    assert plan.sections[0].blocks[0].reps == 4


def test_parse_legacy_by_version():
    plan = parse_workout_plan_json({"version": 1, "main_set": {"minutes": 40, "text": "Easy run"}})

    assert isinstance(plan, PrescriptionV1Plan)
    assert plan.main_set.minutes == 40


@pytest.mark.parametrize(
    "raw",
    [
        None,
        [],
        "plan",
        {"sections": []},
        {"version": 1},
        {"version": 1, "warm_up": {"text": "   "}},
        {"sections": [{"id": "main", "blocks": [{"id": "b", "reps": 0}]}]},
    ],
)
def test_parse_invalid_returns_none(raw):
    assert parse_workout_plan_json(raw) is None


def test_legacy_plan_requires_text():
    with pytest.raises(ValidationError):
        PrescriptionV1Plan(cool_down=TimedText(minutes=10))


def test_objective_from_why():
    assert objective_from_why("Build base.  Then add speed.") == "Build base."
    assert objective_from_why("  short ") is None
    assert objective_from_why(None) is None

    long_text = "a" * 200
    objective = objective_from_why(long_text)
    assert len(objective) == 138
    assert objective.endswith("…")


def test_convert_v1_to_structured():
    v1 = PrescriptionV1Plan(
        warm_up=TimedText(minutes=10, text="• Easy spin"),
        main_set=TimedText(minutes=40, text="* 3x10 min tempo\r\n\r\n* 5 min easy"),
        cool_down=TimedText(minutes=5, text=""),
        why="Tempo builds threshold.",
    )
    plan = convert_v1_to_structured(v1)

    assert plan.objective == "Tempo builds threshold."
    assert [s.type for s in plan.sections] == [SectionType.WARMUP, SectionType.MAIN]

    warmup = plan.sections[0].blocks
    assert warmup[0].id == "warmup-1"
    assert warmup[0].notes == "Easy spin"
    assert warmup[0].duration_sec == 600

    main = plan.sections[1].blocks
    assert [b.notes for b in main] == ["3x10 min tempo", "5 min easy"]
    # Multi-line sections do not guess per-line durations
    assert all(b.duration_sec is None for b in main)


def test_ensure_structured(v2_payload):
    structured = parse_workout_plan_json(v2_payload)
    assert ensure_structured(structured) is structured

    legacy = PrescriptionV1Plan(main_set=TimedText(text="Steady"))
    assert ensure_structured(legacy).sections[0].blocks[0].notes == "Steady"

    with pytest.raises(TypeError):
        ensure_structured({"sections": []})


def test_session_intent_bounds():
    with pytest.raises(ValidationError):
        SessionIntent(sport=Sport.RUN, date=date(2025, 3, 12), duration_min_hint=400)
    with pytest.raises(ValidationError):
        SessionIntent(sport=Sport.SWIM, date=date(2025, 3, 12), target_meters=0)

    intent = SessionIntent(sport=Sport.RUN, date=date(2025, 3, 12))
    assert intent.add_to_calendar is True
    assert intent.replace_existing is False


def test_intensity_summary_parts():
    target = IntensityTarget(rpe="RPE 5–6", watts="75–90% FTP", pace="steady", zone="Z3")
    assert target.summary_parts() == ["RPE 5–6", "75–90% FTP"]


def test_prescription_step_totals():
    prescription = WorkoutPrescription(
        sport=Sport.SWIM,
        date=date(2025, 3, 12),
        title="Swim",
        duration_min=30,
        goal="Swim",
        warmup=[RubricStep(description="200m easy", duration_min=5, distance_m=200)],
        main=[RubricStep(description="4x200m", duration_min=20, distance_m=800)],
        cooldown=[RubricStep(description="Easy", duration_min=5)],
        why=WhyDrivers(rationale="Base"),
    )

    assert prescription.total_step_minutes() == 30
    assert prescription.total_distance_m() == 1000
    assert [s.description for s in prescription.all_steps()][-1] == "Easy"

    dry = prescription.model_copy(update={"warmup": [], "main": []})
    assert dry.total_distance_m() is None
