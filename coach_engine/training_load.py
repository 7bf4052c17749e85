"""
Chronic/acute training load (CTL/ATL/TSB).

Both loads are exponential moving averages of daily TSS with
alpha = 1 - exp(-1/tau): tau 42 days for CTL, 7 days for ATL.
TSB (form) is CTL - ATL.
"""

import math
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from coach_engine.guardrails import workout_load
from coach_engine.schemas import PlannedWorkout, TrainingContext

CTL_TAU = 42
ATL_TAU = 7


class DailyTSS(BaseModel):
    date: date
    tss: float = Field(..., ge=0)


class LoadPoint(BaseModel):
    date: date
    ctl: float
    atl: float
    tsb: float


class LoadSummary(BaseModel):
    """Latest load values plus the full series for charting."""

    ctl: float
    atl: float
    tsb: float
    series: List[LoadPoint] = Field(default_factory=list)


def compute_load_from_daily_tss(daily: Sequence[DailyTSS]) -> Optional[LoadSummary]:
    """
    Run the CTL/ATL moving averages over a daily TSS series.

    The series is seeded with the first day's TSS.

    Args:
        daily: Consecutive days of TSS, oldest first

    Returns:
        LoadSummary, or None when the series is empty or carries no load
    """
    if not daily or not any(d.tss > 0 for d in daily):
        return None

    alpha_ctl = 1 - math.exp(-1 / CTL_TAU)
    alpha_atl = 1 - math.exp(-1 / ATL_TAU)
    ctl = daily[0].tss
    atl = daily[0].tss
    series: List[LoadPoint] = []

    for day in daily:
        ctl = ctl + alpha_ctl * (day.tss - ctl)
        atl = atl + alpha_atl * (day.tss - atl)
        series.append(LoadPoint(date=day.date, ctl=ctl, atl=atl, tsb=ctl - atl))

    return LoadSummary(ctl=ctl, atl=atl, tsb=ctl - atl, series=series)


def daily_tss_series(
    workouts: Sequence[PlannedWorkout], start: date, end: date
) -> List[DailyTSS]:
    """
    Bucket workout load by calendar day, filling gaps with zero.

    Args:
        workouts: Workouts dated in local calendar days
        start: First day (inclusive)
        end: Last day (inclusive)
    """
    buckets: Dict[date, float] = {}
    for workout in workouts:
        if start <= workout.date <= end:
            buckets[workout.date] = buckets.get(workout.date, 0) + workout_load(
                workout.tss, workout.duration_min
            )

    days = (end - start).days + 1
    return [
        DailyTSS(date=start + timedelta(days=i), tss=buckets.get(start + timedelta(days=i), 0))
        for i in range(max(0, days))
    ]


def build_training_context(
    completed: Sequence[PlannedWorkout],
    today: date,
    planned_today: Optional[PlannedWorkout] = None,
    history_days: int = 90,
) -> TrainingContext:
    """
    Training context for today from completed workout history.

    Args:
        completed: Completed workouts (local dates)
        today: Local calendar date
        planned_today: Today's planned workout, if any
        history_days: Days of history fed into the moving averages
    """
    yesterday = today - timedelta(days=1)
    series = daily_tss_series(completed, today - timedelta(days=history_days), yesterday)
    summary = compute_load_from_daily_tss(series)
    yesterday_tss = series[-1].tss if series else 0

    return TrainingContext(
        ctl=summary.ctl if summary else 0.0,
        atl=summary.atl if summary else 0.0,
        tsb=summary.tsb if summary else 0.0,
        yesterday_tss=yesterday_tss,
        planned_tss=(
            workout_load(planned_today.tss, planned_today.duration_min) if planned_today else None
        ),
        planned_duration=planned_today.duration_min if planned_today else None,
        workout_type=planned_today.title if planned_today else None,
    )
