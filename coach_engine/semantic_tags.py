"""
Semantic tags for free-text workout comments.

Comments are reduced to a small vocabulary of tags with a confidence each.
Only the tags leave this module; the comment text itself is never stored
in memories or explanations.
"""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SemanticTag(str, Enum):
    HEAVY_LEGS = "heavy_legs"
    MENTAL_FATIGUE = "mental_fatigue"
    LOW_ENERGY = "low_energy"
    HIGH_ENERGY = "high_energy"
    PAIN_DISCOMFORT = "pain_discomfort"
    GREAT_SESSION = "great_session"
    STRUGGLED_TO_START = "struggled_to_start"
    FELT_STRONG = "felt_strong"
    BREATHING_ISSUES = "breathing_issues"
    MOTIVATION_LOW = "motivation_low"
    MOTIVATION_HIGH = "motivation_high"
    WEATHER_IMPACT = "weather_impact"
    EQUIPMENT_ISSUE = "equipment_issue"
    TECHNIQUE_FOCUS = "technique_focus"
    PACING_ISSUE = "pacing_issue"

    @property
    def label(self) -> str:
        """Human-readable form, e.g. "heavy legs"."""
        return self.value.replace("_", " ")


class SemanticSignal(BaseModel):
    """One tag found in a comment."""

    tag: SemanticTag
    confidence: int = Field(..., ge=0, le=100)
    source_phrase: str = Field(..., description="Matched fragment (lowercased)")


# (tag, base confidence, patterns); first matching pattern wins per tag
SEMANTIC_PATTERNS = [
    (SemanticTag.HEAVY_LEGS, 85, [
        r"heavy legs?",
        r"legs? (felt|were|are) heavy",
        r"legs? like (concrete|lead|bricks)",
        r"couldn'?t feel my legs",
        r"dead legs",
    ]),
    (SemanticTag.MENTAL_FATIGUE, 85, [
        r"mental(ly)? (tired|exhausted|drained|fatigued)",
        r"brain fog",
        r"couldn'?t focus",
        r"mind (was|felt) (tired|foggy|slow)",
        r"mentally (not|wasn'?t) there",
    ]),
    (SemanticTag.LOW_ENERGY, 80, [
        r"no energy",
        r"low energy",
        r"felt (flat|empty|drained)",
        r"running on (empty|fumes)",
        r"tank was empty",
    ]),
    (SemanticTag.HIGH_ENERGY, 85, [
        r"felt (great|amazing|strong|powerful)",
        r"tons? of energy",
        r"full of energy",
        r"energized",
        r"on fire",
    ]),
    (SemanticTag.PAIN_DISCOMFORT, 90, [
        r"pain in",
        r"hurt(s|ing)?",
        r"sharp pain",
        r"discomfort in",
        r"ache(s|d|ing)?",
        r"sore (knee|back|hip|shoulder|ankle)",
    ]),
    (SemanticTag.GREAT_SESSION, 85, [
        r"great (session|workout|run|ride)",
        r"best (session|workout|run|ride)",
        r"nailed it",
        r"crushed it",
        r"perfect (session|workout)",
    ]),
    (SemanticTag.STRUGGLED_TO_START, 80, [
        r"didn'?t want to (start|begin|go)",
        r"hard to (start|get going|begin)",
        r"struggled to (start|begin|get out)",
        r"almost (skipped|didn'?t go)",
        r"had to force myself",
    ]),
    (SemanticTag.FELT_STRONG, 80, [
        r"felt (strong|powerful)",
        r"feeling strong",
        r"legs? felt (good|great|strong)",
        r"power(ful)? (legs?|session)",
    ]),
    (SemanticTag.BREATHING_ISSUES, 85, [
        r"couldn'?t (breathe|catch my breath)",
        r"breathing (was|felt) (hard|difficult|labored)",
        r"out of breath",
        r"gasping",
        r"lungs? (burning|on fire)",
    ]),
    (SemanticTag.MOTIVATION_LOW, 80, [
        r"no motivation",
        r"zero motivation",
        r"didn'?t feel like",
        r"wasn'?t (feeling it|into it)",
        r"going through the motions",
    ]),
    (SemanticTag.MOTIVATION_HIGH, 80, [
        r"super motivated",
        r"really (wanted|excited) to",
        r"pumped (up)?",
        r"couldn'?t wait to",
        r"fired up",
    ]),
    (SemanticTag.WEATHER_IMPACT, 75, [
        r"too (hot|cold|windy|humid)",
        r"weather (was|made it)",
        r"rain(ing)?",
        r"heat (was|got to me)",
        r"freezing",
    ]),
    (SemanticTag.EQUIPMENT_ISSUE, 85, [
        r"bike (broke|issue|problem)",
        r"flat (tire|tyre)",
        r"equipment (issue|problem|failure)",
        r"watch (died|stopped|issue)",
        r"shoe(s)? (issue|problem|hurt)",
    ]),
    (SemanticTag.TECHNIQUE_FOCUS, 75, [
        r"work(ed|ing) on (form|technique)",
        r"focus(ed|ing) on (form|technique|cadence)",
        r"drill(s|ed)?",
        r"technique (work|session|focus)",
    ]),
    (SemanticTag.PACING_ISSUE, 80, [
        r"went out too (fast|hard)",
        r"pacing (was|issue|problem)",
        r"started too (fast|slow)",
        r"blew up",
        r"died (at the end|in the last)",
    ]),
]

_COMPILED = [
    (tag, confidence, [re.compile(p, re.IGNORECASE) for p in patterns])
    for tag, confidence, patterns in SEMANTIC_PATTERNS
]


def extract_semantic_tags(comment: Optional[str]) -> List[SemanticSignal]:
    """
    Extract semantic tags from a feedback comment.

    Each tag is reported at most once, in vocabulary order. Comments shorter
    than three characters yield nothing.

    Args:
        comment: Free-text comment, may be None

    Returns:
        List of SemanticSignal
    """
    if not comment or len(comment.strip()) < 3:
        return []

    text = comment.lower()
    signals: List[SemanticSignal] = []
    for tag, confidence, patterns in _COMPILED:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                signals.append(
                    SemanticSignal(tag=tag, confidence=confidence, source_phrase=match.group(0))
                )
                break
    return signals


def extract_tag_values(comment: Optional[str]) -> List[str]:
    """Tag names only, for callers that just count themes."""
    return [signal.tag.value for signal in extract_semantic_tags(comment)]
