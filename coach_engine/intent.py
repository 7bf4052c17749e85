"""
Session intent resolution.

Turns a free-text request ("write me a swim session for 3500m tomorrow")
into a SessionIntent. The resolver is an interface so that keyword
heuristics can be swapped for another strategy without touching the
prescription pipeline.
"""

import re
from datetime import date, timedelta
from typing import List, Optional, Protocol, Tuple

from loguru import logger

from coach_engine.context import CoachContext
from coach_engine.numeric import round_half_up
from coach_engine.plan_schemas import SessionIntent
from coach_engine.schemas import Sport

MAX_DAYS_AHEAD = 30
MIN_TARGET_METERS = 100
MAX_TARGET_METERS = 10000


class IntentResolver(Protocol):
    """Anything that can map a request to a single session intent."""

    def resolve(self, text: str, context: CoachContext) -> Optional[SessionIntent]:
        """Return the resolved intent, or None when the text is not a session request."""
        ...


# ===== KEYWORD PATTERNS =====

SPORT_PATTERNS: List[Tuple[Sport, "re.Pattern[str]"]] = [
    (Sport.RUN, re.compile(r"\b(run|running)\b", re.IGNORECASE)),
    (Sport.BIKE, re.compile(r"\b(bike|cycling|ride)\b", re.IGNORECASE)),
    (Sport.SWIM, re.compile(r"\b(swim|swimming)\b", re.IGNORECASE)),
    (Sport.STRENGTH, re.compile(r"\b(strength|gym|weights)\b", re.IGNORECASE)),
]

NO_CALENDAR = re.compile(
    r"\b(do not add|don't add|don't save|skip calendar|no calendar)\b", re.IGNORECASE
)
CREATE_SEPARATE = re.compile(
    r"\b(separate|another|additional|extra)\s+(session|workout)\b", re.IGNORECASE
)
REPLACE = re.compile(r"\b(change|replace|swap|update|instead)\b", re.IGNORECASE)
PAIN = re.compile(
    r"\b(pain|painful|hurts?|injury|injured|injuries|niggle|tweaked|strain(?:ed)?)\b",
    re.IGNORECASE,
)

SINGLE_REQUEST = re.compile(
    r"\b(give me|get me|plan|schedule|add|create|want|write me)\s+(a\s+)?"
    r"(run|bike|swim|strength|workout|session)\b",
    re.IGNORECASE,
)
DATE_WORD = re.compile(r"\b(for|on|tomorrow|today)\b", re.IGNORECASE)
ACTION_VERB = re.compile(
    r"\b(add|create|schedule|plan|write|give|get|change|replace|swap|update|make)\b",
    re.IGNORECASE,
)
SESSION_NOUN = re.compile(r"\b(workout|session|training)\b", re.IGNORECASE)

ISO_DATE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
TOMORROW = re.compile(r"\btomorrow\b", re.IGNORECASE)
TODAY = re.compile(r"\btoday\b", re.IGNORECASE)
IN_N_DAYS = re.compile(r"\bin\s+(\d{1,2})\s+days?\b", re.IGNORECASE)

DURATION_MIN = re.compile(r"\b(\d{1,3})[\s-]*min(?:ute)?s?\b", re.IGNORECASE)
DURATION_HOURS = re.compile(r"\b(\d(?:\.\d+)?)[\s-]*(?:h|hr|hrs|hour|hours)\b", re.IGNORECASE)
METERS = re.compile(r"\b(\d{3,5})\s*(?:m|meters?|metres?)\b", re.IGNORECASE)
KILOMETERS = re.compile(r"\b(\d{1,2}(?:\.\d{1,3})?)\s*km\b", re.IGNORECASE)


# ===== FIELD PARSERS =====


def parse_sport(text: str) -> Optional[Sport]:
    """First sport keyword in the text, in RUN, BIKE, SWIM, STRENGTH order."""
    for sport, pattern in SPORT_PATTERNS:
        if pattern.search(text):
            return sport
    return None


def parse_date(text: str, today: date) -> date:
    """
    Session date from the text.

    Logic:
    - An ISO date wins
    - Then "tomorrow", then "today"
    - Then "in N days" for N up to 30
    - Otherwise today
    """
    iso = ISO_DATE.search(text)
    if iso:
        try:
            return date.fromisoformat(iso.group(1))
        except ValueError:
            logger.debug(f"Ignoring invalid ISO date in request: {iso.group(1)}")
    if TOMORROW.search(text):
        return today + timedelta(days=1)
    if TODAY.search(text):
        return today
    ahead = IN_N_DAYS.search(text)
    if ahead and int(ahead.group(1)) <= MAX_DAYS_AHEAD:
        return today + timedelta(days=int(ahead.group(1)))
    return today


def parse_duration(text: str) -> Optional[int]:
    """Requested duration in minutes ("45 min", "60-minute", "1.5 hours")."""
    minutes = DURATION_MIN.search(text)
    if minutes:
        value = int(minutes.group(1))
    else:
        hours = DURATION_HOURS.search(text)
        if not hours:
            return None
        value = round_half_up(float(hours.group(1)) * 60)
    if 5 <= value <= 300:
        return value
    return None


def parse_target_meters(text: str) -> Optional[int]:
    """Total distance from "3500m", "3500 meters" or "3.5km" tokens."""
    meters = METERS.search(text)
    if meters:
        value = int(meters.group(1))
    else:
        km = KILOMETERS.search(text)
        if not km:
            return None
        value = round_half_up(float(km.group(1)) * 1000)
    if MIN_TARGET_METERS <= value <= MAX_TARGET_METERS:
        return value
    return None


def is_session_request(text: str, sport: Optional[Sport]) -> bool:
    """True when the text asks for a session rather than just mentioning one."""
    if SINGLE_REQUEST.search(text):
        return True
    if sport is not None and DATE_WORD.search(text):
        return True
    return bool(ACTION_VERB.search(text) and (sport is not None or SESSION_NOUN.search(text)))


# ===== RESOLVER =====


class KeywordIntentResolver:
    """Deterministic keyword-based resolver."""

    def resolve(self, text: str, context: CoachContext) -> Optional[SessionIntent]:
        """
        Resolve a request into a single-session intent.

        Args:
            text: The athlete's message
            context: Coach context (today's date and primary sport)

        Returns:
            SessionIntent, or None when the text names no sport and is not a request
        """
        text = text or ""
        sport = parse_sport(text)
        if sport is None and not is_session_request(text, None):
            return None

        target_meters = parse_target_meters(text)
        if sport is None:
            sport = Sport.SWIM if target_meters else context.profile.primary_sport.default_session_sport()
        if sport != Sport.SWIM:
            target_meters = None

        intent = SessionIntent(
            sport=sport,
            date=parse_date(text, context.today),
            duration_min_hint=parse_duration(text),
            target_meters=target_meters,
            replace_existing=bool(REPLACE.search(text)),
            create_separate=bool(CREATE_SEPARATE.search(text)),
            add_to_calendar=not NO_CALENDAR.search(text),
            strength_mobility_only=bool(PAIN.search(text)),
        )
        logger.debug(
            f"Resolved intent: sport={intent.sport.value} date={intent.date} "
            f"target={intent.target_meters} replace={intent.replace_existing}"
        )
        return intent
