"""
Single-session workout prescription.

The generator runs three stages in a fixed order:
1. generate: sport-specific rubric (warm-up, main set, cool-down, targets)
   sized from the request and today's readiness
2. apply_readiness_adaptation: shortens the session on low readiness,
   soreness or poor sleep and swaps to recovery when the check-in says so
3. validate_guardrails: caps the duration when the new session would push
   the weekly ramp rate past the safe limit

Whenever the duration changes the steps are rebuilt so that they still sum
to the session duration. Swim distances never change after generation.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from coach_engine.context import CoachContext, ReadinessSnapshot
from coach_engine.guardrails import MIN_ADJUSTED_DURATION, check_guardrails
from coach_engine.numeric import clamp, fmt_number, round_half_up
from coach_engine.plan_schemas import (
    IntensityTarget,
    RubricStep,
    SessionIntent,
    WhyDrivers,
    WorkoutPrescription,
)
from coach_engine.schemas import (
    AthleteProfile,
    ExperienceLevel,
    Intensity,
    PlannedWorkout,
    PrimarySport,
    ReadinessDecision,
    Sport,
    SwimLevel,
)
from coach_engine.swim import (
    BEGINNER_SWIM_TARGETS,
    LEVEL_PACE_SEC,
    build_swim_steps,
    default_total_meters,
)

DEFAULT_DURATION = 60
MIN_DURATION = 20
MAX_DURATION = 120
LOW_READINESS_SCALE = 0.75
RECOVERY_MIN_DURATION = 30
RECOVERY_MAX_DURATION = 45
REST_DURATION = 20
MIN_RESIZED_SWIM_M = 300
NEW_SESSION_ID = "new"

LOW_READINESS_RATIONALE = (
    "Adapted for lower readiness: reduced volume and intensity to support recovery "
    "while keeping consistency."
)
FUELING_GUIDANCE = (
    "If session >60 min: 30–60 g carbs/hour, 500 ml water/hour, electrolytes if sweating heavily."
)
VARIANT_A = "Ideal day: full duration and target intensity."
VARIANT_B = "Low-energy day: reduce main set by 20% or swap to easy effort only."
SUCCESS_CRITERIA = "You stayed within target zones/RPE and completed warm-up and cool-down."
GUARDRAIL_CAP_NOTE = "Guardrail: duration capped for safe ramp."
RECOVERY_NOTE = "Check-in suggests a recovery session today: keep every minute easy."
REST_NOTE = (
    "Check-in recommends a rest day. If you still want to move, keep it to this easy "
    "20-minute session."
)

SPORT_NAMES: Dict[Sport, str] = {
    Sport.RUN: "Run",
    Sport.BIKE: "Ride",
    Sport.SWIM: "Swim",
    Sport.STRENGTH: "Strength",
}


# ===== STEP ARITHMETIC =====


def split_minutes(total: int, weights: Sequence[float]) -> List[int]:
    """
    Split total minutes by weight.

    Every part is at least 1 minute (for totals >= number of parts) and the
    parts always sum to total; rounding error lands in the last part.
    """
    parts = [max(1, round_half_up(total * w)) for w in weights[:-1]]
    parts.append(total - sum(parts))
    while parts[-1] < 1:
        largest = max(range(len(parts) - 1), key=lambda i: parts[i])
        if parts[largest] <= 1:
            break
        parts[largest] -= 1
        parts[-1] += 1
    return parts


def session_split(duration: int) -> Tuple[int, int, int]:
    """
    Warm-up, main and cool-down minutes.

    Logic:
    - Warm-up: max(5, 15% of duration)
    - Cool-down: max(5, 10% of duration)
    - Main: the remainder, at least 10
    """
    warmup = max(5, round_half_up(duration * 0.15))
    cooldown = max(5, round_half_up(duration * 0.1))
    main = max(10, duration - warmup - cooldown)
    return warmup, main, cooldown


def fit_step_durations(
    sections: Tuple[List[RubricStep], List[RubricStep], List[RubricStep]], total: int
) -> Tuple[List[RubricStep], List[RubricStep], List[RubricStep]]:
    """Rescale step minutes proportionally so they sum to total; distances are untouched."""
    steps = [*sections[0], *sections[1], *sections[2]]
    current = sum(s.duration_min for s in steps)
    if not steps or current == total:
        return sections

    minutes = [max(1, round_half_up(s.duration_min * total / current)) if current else 1 for s in steps]
    longest = max(range(len(minutes)), key=lambda i: minutes[i])
    minutes[longest] += total - sum(minutes)

    fitted = [s.model_copy(update={"duration_min": m}) for s, m in zip(steps, minutes)]
    w, m = len(sections[0]), len(sections[1])
    return fitted[:w], fitted[w:w + m], fitted[w + m:]


def beginner_phase(session_count: int) -> int:
    """Beginner phase from historical sessions: 0-2 -> 1, 3-5 -> 2, 6+ -> 3."""
    if session_count <= 2:
        return 1
    if session_count <= 5:
        return 2
    return 3


# ===== TARGETS =====


def rpe_target(intensity: Intensity) -> str:
    return "RPE 3–4" if intensity == Intensity.EASY else "RPE 5–6"


def hr_target(profile: AthleteProfile, intensity: Intensity) -> str:
    """Zone 2 range when easy, else zone 3, else a generic zone label."""
    zones = profile.hr_zones
    if zones and intensity == Intensity.EASY and zones.z2:
        return f"{zones.z2[0]}–{zones.z2[1]} bpm"
    if zones and zones.z3:
        return f"{zones.z3[0]}–{zones.z3[1]} bpm"
    return "HR Zone 2–3"


def power_target(profile: AthleteProfile, intensity: Intensity) -> str:
    """FTP-relative power band, or a generic zone label without FTP."""
    if not profile.ftp:
        return "Power Zone 2–3"
    if intensity == Intensity.EASY:
        low, high = round_half_up(profile.ftp * 0.55), round_half_up(profile.ftp * 0.7)
        return f"55–70% FTP ({low}–{high} W)"
    low, high = round_half_up(profile.ftp * 0.75), round_half_up(profile.ftp * 0.9)
    return f"75–90% FTP ({low}–{high} W)"


def session_targets(
    sport: Sport, profile: AthleteProfile, intensity: Intensity, mobility: bool = False
) -> IntensityTarget:
    """Session-level intensity targets."""
    if sport == Sport.RUN:
        return IntensityTarget(
            rpe=rpe_target(intensity),
            hr=hr_target(profile, intensity),
            pace="Conversational; talk test",
        )
    if sport == Sport.BIKE:
        return IntensityTarget(
            rpe=rpe_target(intensity),
            hr=hr_target(profile, intensity),
            watts=power_target(profile, intensity),
        )
    if sport == Sport.SWIM:
        return IntensityTarget(
            rpe=rpe_target(intensity), pace=f"~{LEVEL_PACE_SEC[profile.swim_level]} s/100m"
        )
    return IntensityTarget(rpe="RPE 3–4" if mobility else rpe_target(intensity))


# ===== SPORT TEMPLATES =====

TECHNIQUE_CUES: Dict[Sport, List[str]] = {
    Sport.RUN: [
        "Relaxed shoulders, tall posture",
        "Quick, light steps landing under the hips",
        "Breathe rhythmically and stay conversational",
    ],
    Sport.BIKE: [
        "Smooth pedal stroke, 85–95 rpm",
        "Relaxed upper body with soft elbows",
        "Stay seated on climbs at this intensity",
    ],
    Sport.SWIM: [
        "Long body line, head neutral",
        "Early vertical forearm on the catch",
        "Exhale fully underwater; breathe bilaterally",
    ],
    Sport.STRENGTH: [
        "Controlled tempo: 2 s down, 1 s up",
        "Brace your core before each rep",
        "Stop 2 reps short of failure",
    ],
}

MOBILITY_CUES = [
    "Move only through a pain-free range",
    "Slow, controlled breathing throughout",
    "Stop any movement that sharpens the pain",
]

# (title, main block, core block)
STRENGTH_TEMPLATES: Dict[str, Tuple[str, str, str]] = {
    "swimmer": (
        "Swim-Specific Strength",
        "Shoulder stability and pull strength: band external rotations, scap push-ups, "
        "single-arm rows, lat pulldowns. 3 rounds.",
        "Core: dead bugs, side planks, streamline hollow holds. 2–3 rounds.",
    ),
    "triathlete": (
        "Triathlon Strength",
        "Single-leg and posterior chain: split squats, single-leg RDLs, step-ups, rows. 3 rounds.",
        "Core: planks, Pallof presses, bird dogs. 2–3 rounds.",
    ),
    "runner": (
        "Runner Strength",
        "Runner strength: single-leg squats, calf raises, hip thrusts, lateral band walks. 3 rounds.",
        "Core: side planks, dead bugs, Copenhagen planks. 2–3 rounds.",
    ),
    "general": (
        "Full Body Strength",
        "Compound lifts: squat pattern, hinge, push, pull. 3×8–10 at controlled effort.",
        "Core: planks, Pallof presses, loaded carries. 2–3 rounds.",
    ),
}

MOBILITY_MAIN = (
    "Mobility and prehab circuit: cat-cow, hip airplanes, band pull-aparts, ankle rocks, "
    "thoracic rotations. No heavy loading."
)
MOBILITY_CORE = "Gentle core activation: dead bugs, bird dogs, breathing drills."


def strength_template_for(primary_sport: PrimarySport) -> str:
    """Template key for the athlete's main discipline."""
    return {
        PrimarySport.SWIM: "swimmer",
        PrimarySport.TRIATHLON: "triathlete",
        PrimarySport.RUN: "runner",
    }.get(primary_sport, "general")


def build_endurance_steps(
    sport: Sport,
    duration: int,
    intensity: Intensity,
    profile: AthleteProfile,
    recovery: bool = False,
) -> Tuple[List[RubricStep], List[RubricStep], List[RubricStep]]:
    """RUN/BIKE steps: 3-step warm-up, one main block, 2-step cool-down."""
    warmup_min, main_min, cooldown_min = session_split(duration)
    w1, w2, w3 = split_minutes(warmup_min, (0.3, 0.4, 0.3))
    c1, c2 = split_minutes(cooldown_min, (0.5, 0.5))
    target = IntensityTarget(
        rpe=rpe_target(intensity),
        hr=hr_target(profile, intensity),
        watts=power_target(profile, intensity) if sport == Sport.BIKE else None,
        zone="Z2",
    )

    if sport == Sport.BIKE:
        warmup = [
            RubricStep(description="Easy spin", duration_min=w1),
            RubricStep(description="3× 1 min gradual build", duration_min=w2),
            RubricStep(description="Settle into target cadence", duration_min=w3),
        ]
        main_text = (
            "Easy recovery spin in light gears."
            if recovery
            else "Steady ride at target power. Hold cadence 85–95 rpm."
        )
        cooldown = [
            RubricStep(description="Spin down", duration_min=c1),
            RubricStep(description="Easy spin to finish", duration_min=c2),
        ]
    else:
        warmup = [
            RubricStep(description="Easy jog", duration_min=w1),
            RubricStep(description="Dynamic drills: leg swings, skips, strides", duration_min=w2),
            RubricStep(description="Gradual build to target effort", duration_min=w3),
        ]
        main_text = (
            "Very easy recovery jog. Walk breaks are fine."
            if recovery
            else "Steady run at target intensity. Keep cadence 170–180 if possible."
        )
        cooldown = [
            RubricStep(description="Gradual decrease to easy jog", duration_min=c1),
            RubricStep(description="Walk and loosen up", duration_min=c2),
        ]

    main = [RubricStep(description=main_text, duration_min=main_min, intensity_target=target)]
    return warmup, main, cooldown


def build_strength_steps(
    duration: int, profile: AthleteProfile, mobility: bool = False
) -> Tuple[List[RubricStep], List[RubricStep], List[RubricStep]]:
    """STRENGTH steps: 2-step warm-up, main + core blocks, 2-step cool-down."""
    warmup_min, main_min, cooldown_min = session_split(duration)
    w1, w2 = split_minutes(warmup_min, (0.5, 0.5))
    c1, c2 = split_minutes(cooldown_min, (0.4, 0.6))
    block_min, core_min = split_minutes(main_min, (0.75, 0.25))

    if mobility:
        main_text, core_text = MOBILITY_MAIN, MOBILITY_CORE
        target = IntensityTarget(rpe="RPE 3–4")
    else:
        _, main_text, core_text = STRENGTH_TEMPLATES[strength_template_for(profile.primary_sport)]
        target = IntensityTarget(rpe="RPE 6–7")

    warmup = [
        RubricStep(description="Light cardio to raise temperature", duration_min=w1),
        RubricStep(description="Dynamic mobility: hips, thoracic spine, shoulders", duration_min=w2),
    ]
    main = [
        RubricStep(description=main_text, duration_min=block_min, intensity_target=target),
        RubricStep(description=core_text, duration_min=core_min),
    ]
    cooldown = [
        RubricStep(description="Easy walk or spin", duration_min=c1),
        RubricStep(description="Stretch the muscle groups you worked", duration_min=c2),
    ]
    return warmup, main, cooldown


def session_title(
    sport: Sport,
    intensity: Intensity,
    profile: AthleteProfile,
    target_meters: Optional[int] = None,
    mobility: bool = False,
    recovery: bool = False,
) -> str:
    if recovery:
        if sport == Sport.SWIM and target_meters:
            return f"Recovery Swim {target_meters}m"
        return f"Recovery {SPORT_NAMES[sport]}"
    if sport == Sport.RUN:
        return "Easy Run" if intensity == Intensity.EASY else "Steady Run"
    if sport == Sport.BIKE:
        return "Endurance Ride" if intensity == Intensity.EASY else "Tempo Ride"
    if sport == Sport.SWIM:
        return f"Swim {target_meters}m" if target_meters else "Technique & Endurance Swim"
    if mobility:
        return "Mobility & Prehab"
    return STRENGTH_TEMPLATES[strength_template_for(profile.primary_sport)][0]


def session_goal(
    sport: Sport,
    intensity: Intensity,
    target_meters: Optional[int] = None,
    mobility: bool = False,
) -> str:
    easy = intensity == Intensity.EASY
    if sport == Sport.RUN:
        return "Aerobic base at a relaxed, conversational effort." if easy else "Steady aerobic development at a controlled effort."
    if sport == Sport.BIKE:
        return "Aerobic endurance at a sustainable power." if easy else "Tempo endurance with controlled power."
    if sport == Sport.SWIM:
        if target_meters:
            return f"Complete {target_meters}m with smooth, efficient technique."
        return "Technique and aerobic endurance in the water."
    if mobility:
        return "Restore range of motion and keep moving while the pain settles."
    return "Build resilient strength that supports your endurance training."


def progression_note(sport: Sport, phase: int) -> str:
    """Beginner progression text for the sport and phase."""
    if sport == Sport.SWIM:
        target = BEGINNER_SWIM_TARGETS[phase]
        drills = f"{round_half_up(target.drill_ratio_min * 100)}–{round_half_up(target.drill_ratio_max * 100)}%"
        note = (
            f"Beginner phase {phase}: build to {target.min_meters}–{target.max_meters}m "
            f"per session with {drills} drills."
        )
        if phase < 3:
            return f"{note} Move to phase {phase + 1} after two comfortable weeks."
        return f"{note} Consolidate before adding volume."

    notes = {
        Sport.RUN: {
            1: "Beginner phase 1: run/walk intervals are fine; keep every run conversational.",
            2: "Beginner phase 2: extend continuous running by about 5 min per week.",
            3: "Beginner phase 3: add one steady segment per week while keeping most running easy.",
        },
        Sport.BIKE: {
            1: "Beginner phase 1: focus on comfortable cadence and bike handling in easy zones.",
            2: "Beginner phase 2: extend rides by about 10 min per week.",
            3: "Beginner phase 3: add short steady blocks at upper zone 2.",
        },
        Sport.STRENGTH: {
            1: "Beginner phase 1: learn the movement patterns with bodyweight or light load.",
            2: "Beginner phase 2: add load gradually once form is consistent.",
            3: "Beginner phase 3: progress to 3 sets while keeping 2 reps in reserve.",
        },
    }
    return notes[sport][phase]


# ===== GENERATOR =====


class PrescriptionGenerator:
    """
    Generates, adapts and safety-checks single-session prescriptions.

    Every stage returns a new prescription; inputs are never mutated.
    Decisions taken along the way are collected in `decisions` so callers
    can log or display them.
    """

    def __init__(self, include_result_template: bool = False):
        """
        Initialize the generator.

        Args:
            include_result_template: Mark prescriptions for a result-logging block
        """
        self.include_result_template = include_result_template
        self.decisions: List[str] = []

    def prescribe(
        self, intent: SessionIntent, context: CoachContext
    ) -> Tuple[WorkoutPrescription, List[str]]:
        """Run generate -> adapt -> validate in order. Returns (prescription, warnings)."""
        prescription = self.generate(intent, context)
        prescription = self.apply_readiness_adaptation(prescription, context)
        return self.validate_guardrails(prescription, context)

    def generate(self, intent: SessionIntent, context: CoachContext) -> WorkoutPrescription:
        """
        Build the rubric prescription for an intent.

        Args:
            intent: Resolved session intent
            context: Coach context (profile, readiness, load)

        Returns:
            WorkoutPrescription whose steps sum to its duration
        """
        profile = context.profile
        readiness = context.readiness or ReadinessSnapshot()
        low_readiness = readiness.is_low
        intensity = Intensity.EASY if low_readiness else Intensity.MODERATE

        duration = int(clamp(intent.duration_min_hint or DEFAULT_DURATION, MIN_DURATION, MAX_DURATION))
        if low_readiness:
            duration = max(MIN_DURATION, round_half_up(duration * LOW_READINESS_SCALE))

        sport = intent.sport
        mobility = sport == Sport.STRENGTH and intent.strength_mobility_only
        sessions = context.sessions_of(sport)
        phase = beginner_phase(sessions)

        if sport == Sport.SWIM:
            level_phase = phase if profile.swim_level == SwimLevel.BEGINNER else None
            total_m = intent.target_meters or default_total_meters(duration, profile.swim_level, level_phase)
            warmup, main, cooldown = build_swim_steps(
                total_m, profile.swim_level, profile.swim_pool_length_m, intensity
            )
            duration = sum(s.duration_min for s in [*warmup, *main, *cooldown])
        elif sport == Sport.STRENGTH:
            warmup, main, cooldown = build_strength_steps(duration, profile, mobility)
        else:
            warmup, main, cooldown = build_endurance_steps(sport, duration, intensity, profile)

        if low_readiness:
            rationale = LOW_READINESS_RATIONALE
        else:
            rationale = (
                f"Session aligned with {profile.identity_mode} mode and "
                f"{profile.experience_level.value} level."
            )

        ramp = context.ramp_rate
        why = WhyDrivers(
            rationale=rationale,
            guardrail_checks=[
                f"Hard sessions this week: {context.hard_sessions_this_week} (max {context.max_hard_sessions})",
                f"Ramp: {fmt_number(ramp) if ramp is not None else 'n/a'}%",
            ],
            adaptation_reason="Readiness/soreness triggered easier variant." if low_readiness else None,
        )

        note = None
        if profile.experience_level == ExperienceLevel.BEGINNER or sessions <= 1:
            note = progression_note(sport, phase)

        prescription = WorkoutPrescription(
            sport=sport,
            date=intent.date,
            title=session_title(sport, intensity, profile, intent.target_meters, mobility),
            duration_min=duration,
            goal=session_goal(sport, intensity, intent.target_meters, mobility),
            intensity=intensity,
            target_meters=intent.target_meters if sport == Sport.SWIM else None,
            warmup=warmup,
            main=main,
            cooldown=cooldown,
            technique_cues=list(MOBILITY_CUES if mobility else TECHNIQUE_CUES[sport]),
            intensity_targets=session_targets(sport, profile, intensity, mobility),
            fueling_guidance=FUELING_GUIDANCE if duration > 60 else None,
            variant_a=VARIANT_A,
            variant_b=VARIANT_B,
            success_criteria=SUCCESS_CRITERIA,
            rationale=rationale,
            why=why,
            progression_note=note,
            mobility_only=mobility,
            result_template=self.include_result_template,
        )
        self.decisions.append(
            f"Generated {prescription.title} ({duration} min, {intensity.value}) for {intent.date}"
        )
        logger.debug(f"Generated prescription: {prescription.title}, {duration} min")
        return prescription

    def apply_readiness_adaptation(
        self, prescription: WorkoutPrescription, context: CoachContext
    ) -> WorkoutPrescription:
        """
        Shorten or swap the session based on today's check-in.

        Logic:
        - No-op when readiness >= 55, soreness < 4 and sleep quality >= 3
        - Otherwise scale the duration by 0.6 (<40), 0.8 (<55) or 0.9, floor 20 min
        - A SWAP_RECOVERY decision turns the session into a 30-45 min recovery session
        - A REST decision turns it into a 20 min recovery session

        Args:
            prescription: Generated prescription
            context: Coach context carrying the readiness snapshot

        Returns:
            Adapted prescription (the input itself when nothing applies)
        """
        readiness = context.readiness or ReadinessSnapshot()
        needs_reduction = (
            readiness.score < 55 or readiness.soreness_level >= 4 or readiness.sleep_quality < 3
        )
        decision = readiness.decision
        swap = decision in (ReadinessDecision.SWAP_RECOVERY, ReadinessDecision.REST)
        if not needs_reduction and not swap:
            return prescription

        adapted = prescription
        if needs_reduction:
            if readiness.score < 40:
                factor = 0.6
            elif readiness.score < 55:
                factor = 0.8
            else:
                factor = 0.9
            duration = max(MIN_DURATION, round_half_up(prescription.duration_min * factor))
            adapted = self._resize(adapted, duration, context)
            adapted = self._annotate(
                adapted,
                f"Readiness/soreness/sleep triggered adaptation: reduced to {duration} min.",
                adaptation_reason=(
                    f"Readiness {readiness.score}, soreness {readiness.soreness_level}, "
                    f"sleep {readiness.sleep_quality}. Reduced volume."
                ),
            )
            self.decisions.append(f"Reduced duration to {duration} min (factor {factor})")

        if decision == ReadinessDecision.SWAP_RECOVERY:
            duration = int(clamp(adapted.duration_min, RECOVERY_MIN_DURATION, RECOVERY_MAX_DURATION))
            adapted = self._annotate(self._to_recovery(adapted, duration, context), RECOVERY_NOTE)
            self.decisions.append(f"Swapped to recovery session ({duration} min)")
        elif decision == ReadinessDecision.REST:
            adapted = self._annotate(self._to_recovery(adapted, REST_DURATION, context), REST_NOTE)
            self.decisions.append("Rest recommended; offered 20 min recovery session")

        logger.debug(f"Readiness adaptation: {prescription.duration_min} -> {adapted.duration_min} min")
        return adapted

    def validate_guardrails(
        self, prescription: WorkoutPrescription, context: CoachContext
    ) -> Tuple[WorkoutPrescription, List[str]]:
        """
        Check the week's ramp rate with the new session included.

        The new session counts as moderate with TSS = 0.8 per minute. When
        the week is outside the limits and the guardrail trims the new
        session, its duration is capped (never below 20 minutes).

        Returns:
            Tuple of (possibly capped prescription, warning messages)
        """
        new_session = PlannedWorkout(
            workout_id=NEW_SESSION_ID,
            date=prescription.date,
            duration_min=prescription.duration_min,
            intensity=Intensity.MODERATE,
            tss=round_half_up(prescription.duration_min * 0.8),
            title=prescription.title,
        )
        result = check_guardrails(
            [*context.planned_this_week, new_session],
            context.previous_week_load,
            threshold=context.ramp_threshold,
        )
        warnings = [w.message for w in result.warnings]

        if result.is_within_limits:
            return prescription, warnings

        adjustment = result.adjustment_for(NEW_SESSION_ID)
        if adjustment is None or adjustment.adjusted_duration >= prescription.duration_min:
            return prescription, warnings

        capped = max(MIN_ADJUSTED_DURATION, adjustment.adjusted_duration)
        validated = self._annotate(self._resize(prescription, capped, context), GUARDRAIL_CAP_NOTE)
        if not warnings:
            warnings.append("Ramp limit")
        self.decisions.append(f"Guardrail capped duration at {capped} min")
        logger.info(f"Guardrail capped {prescription.title}: {prescription.duration_min} -> {capped} min")
        return validated, warnings

    # ===== Internal helpers =====

    def _resize(
        self, prescription: WorkoutPrescription, duration: int, context: CoachContext
    ) -> WorkoutPrescription:
        """
        Rebuild steps for a new duration.

        Logic:
        - RUN/BIKE/STRENGTH: steps are regenerated from the split
        - SWIM with a target: distances kept, minutes rescaled
        - SWIM without a target: distance re-derived from the new duration
        """
        profile = context.profile
        sport = prescription.sport
        if sport == Sport.SWIM:
            sections = (prescription.warmup, prescription.main, prescription.cooldown)
            if prescription.target_meters is None:
                pace = LEVEL_PACE_SEC[profile.swim_level]
                total_m = max(MIN_RESIZED_SWIM_M, round_half_up(duration * 60 / pace) * 100)
                sections = build_swim_steps(
                    total_m, profile.swim_level, profile.swim_pool_length_m, prescription.intensity
                )
            warmup, main, cooldown = fit_step_durations(sections, duration)
        elif sport == Sport.STRENGTH:
            warmup, main, cooldown = build_strength_steps(
                duration, profile, prescription.mobility_only or prescription.recovery_session
            )
        else:
            warmup, main, cooldown = build_endurance_steps(
                sport, duration, prescription.intensity, profile, prescription.recovery_session
            )

        return prescription.model_copy(
            update={
                "duration_min": duration,
                "warmup": warmup,
                "main": main,
                "cooldown": cooldown,
                "fueling_guidance": FUELING_GUIDANCE if duration > 60 else None,
            }
        )

    def _to_recovery(
        self, prescription: WorkoutPrescription, duration: int, context: CoachContext
    ) -> WorkoutPrescription:
        profile = context.profile
        sport = prescription.sport
        recovery = prescription.model_copy(
            update={
                "title": session_title(
                    sport, Intensity.EASY, profile, prescription.target_meters, recovery=True
                ),
                "intensity": Intensity.EASY,
                "recovery_session": True,
                "intensity_targets": session_targets(
                    sport, profile, Intensity.EASY, mobility=sport == Sport.STRENGTH
                ),
                "technique_cues": list(
                    MOBILITY_CUES if sport == Sport.STRENGTH else TECHNIQUE_CUES[sport]
                ),
            }
        )
        return self._resize(recovery, duration, context)

    @staticmethod
    def _annotate(
        prescription: WorkoutPrescription, note: str, adaptation_reason: Optional[str] = None
    ) -> WorkoutPrescription:
        """Append a note to the rationale (and why), optionally replacing the adaptation reason."""
        rationale = f"{prescription.rationale} {note}".strip()
        why = prescription.why.model_copy(
            update={
                "rationale": rationale,
                "adaptation_reason": adaptation_reason or prescription.why.adaptation_reason,
            }
        )
        return prescription.model_copy(update={"rationale": rationale, "why": why})
