"""
Swim session arithmetic.

Swim sessions use a total-distance model:
- Level bands pick a default total distance (beginners use phase bands)
- A requested total distance is partitioned into warm-up, drills, main set
  and cool-down that always sum to the request exactly
- Step durations are estimated from a per-level pace
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from coach_engine.numeric import clamp, round_half_up
from coach_engine.plan_schemas import IntensityTarget, RubricStep
from coach_engine.schemas import Intensity, SwimLevel

COOLDOWN_M = 100
DRILL_REPS = 4
DRILL_M = 50
MIN_MAIN_WITH_DRILLS_M = 200
MIN_MAIN_M = 100

# Total meters per session by level
LEVEL_BANDS: Dict[SwimLevel, Tuple[int, int]] = {
    SwimLevel.BEGINNER: (800, 1600),
    SwimLevel.AGE_GROUP: (1600, 2800),
    SwimLevel.INTERMEDIATE: (1600, 2800),
    SwimLevel.ADVANCED: (2500, 4000),
    SwimLevel.EXPERT: (3500, 5500),
}

# Steady pace, seconds per 100m
LEVEL_PACE_SEC: Dict[SwimLevel, int] = {
    SwimLevel.BEGINNER: 150,
    SwimLevel.AGE_GROUP: 125,
    SwimLevel.INTERMEDIATE: 115,
    SwimLevel.ADVANCED: 100,
    SwimLevel.EXPERT: 90,
}

EASY_PACE_OFFSET_SEC = 10
DRILL_PACE_OFFSET_SEC = 20


class BeginnerSwimTarget(BaseModel):
    """Distance and drill share for one beginner phase."""

    min_meters: int
    max_meters: int
    drill_ratio_min: float
    drill_ratio_max: float


BEGINNER_SWIM_TARGETS: Dict[int, BeginnerSwimTarget] = {
    1: BeginnerSwimTarget(min_meters=900, max_meters=1400, drill_ratio_min=0.3, drill_ratio_max=0.4),
    2: BeginnerSwimTarget(min_meters=1200, max_meters=1800, drill_ratio_min=0.2, drill_ratio_max=0.3),
    3: BeginnerSwimTarget(min_meters=1500, max_meters=2200, drill_ratio_min=0.15, drill_ratio_max=0.25),
}


class SwimPartition(BaseModel):
    """Meters per part of a swim session. Parts may be zero for short totals."""

    warmup_easy_m: int = Field(..., ge=0)
    drills_m: int = Field(..., ge=0)
    main_m: int = Field(..., ge=0)
    cooldown_m: int = Field(..., ge=0)

    @property
    def total_m(self) -> int:
        return self.warmup_easy_m + self.drills_m + self.main_m + self.cooldown_m


# ===== DISTANCE MODEL =====


def distance_band(level: SwimLevel, beginner_phase: Optional[int] = None) -> Tuple[int, int]:
    """Default total-distance band; beginners use their phase band when known."""
    if level == SwimLevel.BEGINNER and beginner_phase in BEGINNER_SWIM_TARGETS:
        target = BEGINNER_SWIM_TARGETS[beginner_phase]
        return target.min_meters, target.max_meters
    return LEVEL_BANDS[level]


def default_total_meters(
    duration_min: int, level: SwimLevel, beginner_phase: Optional[int] = None
) -> int:
    """Distance swum in duration_min at the level's pace, rounded to 100 and clamped to the band."""
    raw = duration_min * 60 / LEVEL_PACE_SEC[level] * 100
    rounded = round_half_up(raw / 100) * 100
    low, high = distance_band(level, beginner_phase)
    return int(clamp(rounded, low, high))


def partition_swim_meters(total_m: int, pool_length_m: int = 25) -> SwimPartition:
    """
    Split a total distance into session parts.

    Logic:
    - Cool-down is 100m, warm-up is 4 pool lengths easy plus 4x50 drills
    - The main set takes the remainder
    - Drills are dropped when the main set would fall under 200m
    - Very short totals fall back to a 20/70/10 split in 25m units

    The parts always sum to total_m.
    """
    easy = pool_length_m * 4
    drills = DRILL_REPS * DRILL_M
    main = total_m - easy - drills - COOLDOWN_M
    if main >= MIN_MAIN_WITH_DRILLS_M:
        return SwimPartition(warmup_easy_m=easy, drills_m=drills, main_m=main, cooldown_m=COOLDOWN_M)

    main = total_m - easy - COOLDOWN_M
    if main >= MIN_MAIN_M:
        return SwimPartition(warmup_easy_m=easy, drills_m=0, main_m=main, cooldown_m=COOLDOWN_M)

    warmup = (total_m * 2 // 10) // 25 * 25
    cooldown = (total_m // 10) // 25 * 25
    return SwimPartition(
        warmup_easy_m=warmup, drills_m=0, main_m=total_m - warmup - cooldown, cooldown_m=cooldown
    )


def describe_main_set(main_m: int) -> str:
    """Main-set text. Rest is written as m:ss so only distances read as meters."""
    if main_m >= 1600 and main_m % 400 == 0:
        return f"{main_m // 400}×400m aerobic, 0:30 rest"
    if main_m >= 600 and main_m % 200 == 0:
        return f"{main_m // 200}×200m steady, 0:20 rest"
    if main_m >= 200 and main_m % 100 == 0:
        return f"{main_m // 100}×100m steady, 0:15 rest"
    return f"{main_m}m continuous steady swim"


def _minutes(distance_m: int, pace_sec: float) -> int:
    return max(1, round_half_up(distance_m / 100 * pace_sec / 60))


def build_swim_steps(
    total_m: int,
    level: SwimLevel,
    pool_length_m: int = 25,
    intensity: Intensity = Intensity.MODERATE,
) -> Tuple[List[RubricStep], List[RubricStep], List[RubricStep]]:
    """
    Warm-up, main and cool-down steps for a total distance.

    Args:
        total_m: Session distance in meters
        level: Swim level (selects the pace)
        pool_length_m: Pool length used for the easy warm-up
        intensity: Session intensity tag

    Returns:
        Tuple of (warmup, main, cooldown) step lists; distances sum to total_m
    """
    parts = partition_swim_meters(total_m, pool_length_m)
    pace = LEVEL_PACE_SEC[level]
    easy_pace = pace + EASY_PACE_OFFSET_SEC
    rpe = "RPE 3–4" if intensity == Intensity.EASY else "RPE 5–6"

    warmup: List[RubricStep] = []
    if parts.warmup_easy_m:
        warmup.append(
            RubricStep(
                description=f"{parts.warmup_easy_m}m easy freestyle, relaxed breathing",
                duration_min=_minutes(parts.warmup_easy_m, easy_pace),
                distance_m=parts.warmup_easy_m,
            )
        )
    if parts.drills_m:
        warmup.append(
            RubricStep(
                description=f"{DRILL_REPS}×{DRILL_M}m drills: catch-up, fingertip drag",
                duration_min=_minutes(parts.drills_m, pace + DRILL_PACE_OFFSET_SEC),
                distance_m=parts.drills_m,
            )
        )

    main = [
        RubricStep(
            description=describe_main_set(parts.main_m),
            duration_min=_minutes(parts.main_m, pace),
            distance_m=parts.main_m,
            intensity_target=IntensityTarget(rpe=rpe, pace=f"~{pace} s/100m", zone="Z2"),
        )
    ]

    cooldown: List[RubricStep] = []
    if parts.cooldown_m:
        cooldown.append(
            RubricStep(
                description=f"{parts.cooldown_m}m easy choice stroke",
                duration_min=_minutes(parts.cooldown_m, easy_pace),
                distance_m=parts.cooldown_m,
            )
        )
    return warmup, main, cooldown
