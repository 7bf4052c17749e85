"""
Tests for swim distance bands, partitioning and step building.
"""

import pytest

from coach_engine.schemas import Intensity, SwimLevel
from coach_engine.swim import (
    build_swim_steps,
    default_total_meters,
    describe_main_set,
    distance_band,
    partition_swim_meters,
)


def test_distance_band_uses_beginner_phase():
    assert distance_band(SwimLevel.BEGINNER, 2) == (1200, 1800)
    assert distance_band(SwimLevel.BEGINNER) == (800, 1600)
    assert distance_band(SwimLevel.INTERMEDIATE, 2) == (1600, 2800)


@pytest.mark.parametrize(
    "duration,expected",
    [(30, 1600), (45, 2300), (60, 2800)],
)
def test_default_total_meters_clamped_to_band(duration, expected):
    assert default_total_meters(duration, SwimLevel.INTERMEDIATE) == expected


def test_partition_with_drills():
    parts = partition_swim_meters(2000, 25)

    assert parts.warmup_easy_m == 100
    assert parts.drills_m == 200
    assert parts.main_m == 1600
    assert parts.cooldown_m == 100


def test_partition_drops_drills_for_short_sessions():
    parts = partition_swim_meters(500, 25)
    assert (parts.warmup_easy_m, parts.drills_m, parts.main_m, parts.cooldown_m) == (100, 0, 300, 100)


def test_partition_tiny_total():
    parts = partition_swim_meters(250, 25)
    assert (parts.warmup_easy_m, parts.main_m, parts.cooldown_m) == (50, 175, 25)


@pytest.mark.parametrize("total", [250, 500, 1000, 1550, 2000, 3333, 5000])
def test_partition_always_sums_to_total(total):
    assert partition_swim_meters(total, 50).total_m == total


def test_main_set_descriptions():
    assert describe_main_set(1600) == "4×400m aerobic, 0:30 rest"
    assert describe_main_set(1000) == "5×200m steady, 0:20 rest"
    assert describe_main_set(300) == "3×100m steady, 0:15 rest"
    assert describe_main_set(175) == "175m continuous steady swim"


def test_swim_steps_cover_exact_distance():
    warmup, main, cooldown = build_swim_steps(2000, SwimLevel.INTERMEDIATE)
    steps = warmup + main + cooldown

    assert sum(s.distance_m for s in steps) == 2000
    assert len(warmup) == 2
    assert main[0].description == "4×400m aerobic, 0:30 rest"
    assert main[0].duration_min == 31
    assert main[0].intensity_target.rpe == "RPE 5–6"
    assert cooldown[0].description == "100m easy choice stroke"


def test_easy_swim_steps_use_easy_rpe():
    _, main, _ = build_swim_steps(1500, SwimLevel.ADVANCED, intensity=Intensity.EASY)
    assert main[0].intensity_target.rpe == "RPE 3–4"
