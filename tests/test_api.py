"""
Tests for the HTTP API.

The database session and the clock are swapped through FastAPI
dependency overrides so every request sees the in-memory database and
the pinned Wednesday.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from coach_engine.api.dependencies import get_clock, get_db_session
from coach_engine.api.main import app
from coach_engine.repositories import CheckInRepository, DiaryRepository
from coach_engine.schemas import CheckIn, ReadinessDecision


GREAT_CHECK_IN = {
    "sleep_duration": 8,
    "sleep_quality": 5,
    "physical_fatigue": 1,
    "mental_readiness": 5,
    "motivation": 5,
    "muscle_soreness": "NONE",
    "stress_level": 1,
}

TIRED_CHECK_IN = {
    "sleep_duration": 5.5,
    "sleep_quality": 2,
    "physical_fatigue": 4,
    "mental_readiness": 2,
    "motivation": 2,
    "stress_level": 4,
}


# Fixtures

@pytest.fixture
def client(db_session, clock, athlete):
    def override_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# Tests

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "coach-engine-api"}


def test_evaluate_readiness(client):
    response = client.post("/api/readiness/evaluate", json={"check_in": GREAT_CHECK_IN})

    assert response.status_code == 200
    evaluation = response.json()["evaluation"]
    assert evaluation["readiness_score"] == 100
    assert evaluation["decision"] == "PROCEED"


def test_evaluate_readiness_rejects_out_of_range(client):
    bad = dict(GREAT_CHECK_IN, sleep_quality=7)
    response = client.post("/api/readiness/evaluate", json={"check_in": bad})
    assert response.status_code == 422


def test_check_in_is_locked_once_stored(client):
    first = client.post("/api/athletes/athlete-1/check-ins", json={"check_in": GREAT_CHECK_IN})

    assert first.status_code == 200
    body = first.json()
    assert body["decision"] == "PROCEED"
    assert body["locked"] is True

    second = client.post("/api/athletes/athlete-1/check-ins", json={"check_in": GREAT_CHECK_IN})
    assert second.status_code == 409
    assert second.json()["message"] == "Check-in for 2025-03-12 is already locked"


def test_check_in_override_keeps_decision(client):
    stored = client.post("/api/athletes/athlete-1/check-ins", json={"check_in": GREAT_CHECK_IN}).json()

    response = client.post(
        f"/api/athletes/athlete-1/check-ins/{stored['check_in_id']}/override",
        json={"accepted": False, "reason": "Travelling today"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["decision"] == "PROCEED"
    assert body["readiness_score"] == 100
    assert body["explanation"] == "Travelling today"

    missing = client.post(
        "/api/athletes/athlete-1/check-ins/999/override", json={"accepted": True}
    )
    assert missing.status_code == 404


def test_check_in_unknown_athlete(client):
    response = client.post("/api/athletes/nobody/check-ins", json={"check_in": GREAT_CHECK_IN})
    assert response.status_code == 404


def test_fatigue_detect(client):
    response = client.post(
        "/api/fatigue/detect",
        json={"inputs": {"mood": 2, "sleep_quality": 2}, "explain_level": "minimal"},
    )

    assert response.status_code == 200
    assert response.json()["result"]["type"] == "PSYCHOLOGICAL"
    assert response.json()["explanation"] == "psychological"


def test_create_prescription(client):
    response = client.post(
        "/api/athletes/athlete-1/prescriptions", json={"message": "Give me a 45 min run"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["created"] is True
    assert body["title"] == "Steady Run"
    assert body["prescription"]["duration_min"] == 45

    again = client.post(
        "/api/athletes/athlete-1/prescriptions", json={"message": "Give me a 45 min run"}
    ).json()
    assert again["reused"] is True
    assert again["workout_id"] == body["workout_id"]


def test_prescription_without_intent(client):
    response = client.post("/api/athletes/athlete-1/prescriptions", json={"message": "Thanks!"})

    assert response.status_code == 400
    assert response.json()["reason"] == "no_intent"


def test_prescription_unknown_athlete(client):
    response = client.post("/api/athletes/nobody/prescriptions", json={"message": "run today"})
    assert response.status_code == 404


def test_guardrail_check(client):
    planned = [
        {"workout_id": "intervals", "date": "2025-03-10", "duration_min": 60, "intensity": "hard", "tss": 100},
        {"workout_id": "easy", "date": "2025-03-12", "duration_min": 60, "intensity": "easy", "tss": 50},
    ]
    response = client.post(
        "/api/guardrails/check", json={"planned": planned, "previous_week_load": 100}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["is_within_limits"] is False
    assert body["result"]["risk_score"] == 40
    assert body["summary"].startswith("Weekly load increase of 50%")


def test_guardrail_deload(client):
    planned = [{"date": "2025-03-10", "duration_min": 60, "intensity": "hard", "tss": 100}]
    response = client.post("/api/guardrails/deload", json={"planned": planned, "deload_percent": 40})

    assert response.status_code == 200
    assert response.json()["adjusted"][0]["duration_min"] == 36


def test_journal_analyze_uses_clock_for_comparison(client):
    entries = [
        {"date": "2025-03-01", "mood": 3},
        {"date": "2025-03-11", "mood": 4},
    ]
    response = client.post("/api/journal/analyze", json={"entries": entries})

    assert response.status_code == 200
    body = response.json()
    assert body["insights"] == []
    assert body["correlations"] == []
    assert body["comparisons"][0]["metric"] == "Mood"
    assert body["comparisons"][0]["trend"] == "UP"


def test_memory_jobs_and_listing(client):
    weekly = client.post(
        "/api/athletes/athlete-1/memories/weekly", json={"start": "2025-03-03", "end": "2025-03-09"}
    )
    assert weekly.status_code == 200
    assert weekly.json() == {"memories_created": 0, "memories_updated": 0, "patterns": []}

    backwards = client.post(
        "/api/athletes/athlete-1/memories/monthly", json={"start": "2025-03-31", "end": "2025-03-01"}
    )
    assert backwards.status_code == 400

    listing = client.get("/api/athletes/athlete-1/memories")
    assert listing.status_code == 200
    assert listing.json()["total_confidence"] == 0

    cleanup = client.post("/api/athletes/athlete-1/memories/cleanup")
    assert cleanup.json() == {"success": True, "message": "0 expired memories cleaned up"}


def test_memory_edits_unknown_id(client):
    assert client.get("/api/athletes/athlete-1/memories/42/explain").status_code == 404
    assert client.delete("/api/athletes/athlete-1/memories/42").status_code == 404
    assert client.post("/api/athletes/athlete-1/memories/42/promote").status_code == 404

    empty = client.patch("/api/athletes/athlete-1/memories/42", json={})
    assert empty.status_code == 400


def test_readiness_today_is_estimated_without_check_in(client, db_session):
    DiaryRepository(db_session).create("athlete-1", date=date(2025, 3, 12), sleep_qual=1, mood=2)
    db_session.commit()

    response = client.get("/api/athletes/athlete-1/readiness")

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "estimate"
    assert body["score"] == 48
    assert body["decision"] is None
    assert body["estimate"]["status"] == "CAUTION"
    assert body["explanation"] == "48/100 - Poor sleep quality"
    assert body["patterns"] == []

    minimal = client.get("/api/athletes/athlete-1/readiness", params={"explain_level": "minimal"})
    assert minimal.json()["explanation"] == "Readiness: caution"


def test_readiness_today_uses_check_in_and_patterns(client, db_session):
    repo = CheckInRepository(db_session)
    for day in (10, 11, 12):
        record = repo.create("athlete-1", CheckIn(**TIRED_CHECK_IN), date(2025, 3, day))
    repo.attach_decision(record, 45, ReadinessDecision.SHORTEN, 60)
    db_session.commit()

    response = client.get("/api/athletes/athlete-1/readiness")

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "check_in"
    assert body["score"] == 45
    assert body["decision"] == "SHORTEN"
    assert body["explanation"] == "Shorten Session"
    assert body["estimate"] is None
    assert [p["type"] for p in body["patterns"]] == [
        "CHRONIC_FATIGUE",
        "MOTIVATION_DROP",
        "STRESS_ACCUMULATION",
        "SLEEP_DEFICIT",
    ]


def test_readiness_today_unknown_athlete(client):
    assert client.get("/api/athletes/nobody/readiness").status_code == 404
