import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from voyant.graph.cascade import HIGH, Classification, ExtractionResult
from voyant.graph.intent import SHORT_TIMEFRAME_RE, find_seasons
from voyant.utils.text import normalize_name

logger = logging.getLogger(__name__)

LANGUAGE_WARNING = "I work better with English, but I'll try to help. "
DAY_TRIP_NOTE = "For such a short trip, you'll likely need minimal packing. "
BUDGET_DISCLAIMER = (
    "I can't help with budget planning or costs, but I can provide travel destination information. "
)

GROUP_RE = re.compile(
    r"\b(family|families|kids?|children|toddlers?|adults?|people|group|friends|couple|"
    r"travell?ers|of us|family of \d+)\b",
    re.IGNORECASE,
)
BUDGET_WORDS_RE = re.compile(r"\b(budget|cheap|cheapest|affordable|under|afford|cost|price)\b", re.IGNORECASE)
TRANSPORT_RE = re.compile(
    r"\b(train|trains|rail|bus|buses|car rental|rent a car|drive|driving|road trip|ferry|"
    r"cruise|layover|stopover|connecting)\b",
    re.IGNORECASE,
)
PREFERENCE_RE = re.compile(
    r"\b(beach|beaches|museum|museums|hiking|nightlife|food|foodie|vegan|vegetarian|"
    r"wheelchair|accessible|quiet|romantic|adventure|shopping|dislikes?|avoid)\b",
    re.IGNORECASE,
)
FROM_TO_RE = re.compile(r"\bfrom\s+\S.*?\s+to\s+\S", re.IGNORECASE)
INTRODUCES_CITY_RE = re.compile(r"\b(?:let'?s\s+say|in|to|for|visit|about)\s+([A-Z][\w'\-]+(?:\s+[A-Z][\w'\-]+)*)")

COMPLEX_MIN_CATEGORIES = 3


@dataclass
class TurnSignals:
    language_warning: str = ""
    short_timeframe: bool = False
    budget_query: bool = False
    multi_city: list[str] = field(default_factory=list)
    multi_season: list[str] = field(default_factory=list)
    constraint_categories: list[str] = field(default_factory=list)
    complex_query: bool = False
    complexity_reasoning: str = ""

    @property
    def budget_disclaimer(self) -> str:
        return BUDGET_DISCLAIMER if self.budget_query else ""

    def disclaimers(self, dates_waived: bool = False) -> str:
        """Prefix for the handler reply; the day-trip note only when it waived a date question."""
        note = DAY_TRIP_NOTE if (dates_waived and self.short_timeframe) else ""
        return self.language_warning + note + self.budget_disclaimer

    def conflict_reply(self) -> Optional[str]:
        if self.multi_city:
            return (
                f"I see you've mentioned multiple cities: {', '.join(self.multi_city)}. "
                "Which specific destination would you like information about?"
            )
        if self.multi_season:
            return (
                f"I notice you mentioned multiple seasons ({', '.join(self.multi_season)}). "
                "Which season are you planning to travel in?"
            )
        return None


def constraint_categories(message: str, entities: ExtractionResult) -> list[str]:
    cats = []
    if entities.locations:
        cats.append("location")
    if entities.dates or entities.durations:
        cats.append("time")
    if entities.money or BUDGET_WORDS_RE.search(message):
        cats.append("budget")
    if GROUP_RE.search(message):
        cats.append("group")
    if TRANSPORT_RE.search(message):
        cats.append("transport")
    if PREFERENCE_RE.search(message):
        cats.append("preferences")
    return cats


def detect_complexity(message: str, entities: ExtractionResult, content: Classification) -> tuple[bool, list[str], str]:
    cats = constraint_categories(message, entities)
    if len(cats) >= COMPLEX_MIN_CATEGORIES:
        return True, cats, f"Multiple constraints detected: {', '.join(cats)}."
    if content.label == "budget":
        return True, cats, "Budget-focused request that needs current prices from several sources."
    return False, cats, ""


def _city_conflict(
    message: str,
    entities: ExtractionResult,
    prior_city: Optional[str],
    complex_query: bool,
    answered_origin: Optional[str] = None,
) -> list[str]:
    # the answer to "where are you flying from?" names a second place on purpose
    spans = [s for s in entities.locations if normalize_name(s.text) != normalize_name(answered_origin)]
    current = []
    for span in spans:
        if normalize_name(span.text) not in {normalize_name(c) for c in current}:
            current.append(span.text)

    if len(current) > 1:
        # "from NYC to Tokyo" names two places on purpose; so do long multi-constraint requests
        if FROM_TO_RE.search(message) or len(current) == 2 and re.search(r"\bbetween\b", message, re.IGNORECASE):
            return []
        if complex_query:
            return []
        return current

    if len(current) == 1 and prior_city and normalize_name(prior_city) != normalize_name(current[0]):
        span = spans[0]
        explicit = any(
            normalize_name(m.group(1)) == normalize_name(span.text)
            for m in INTRODUCES_CITY_RE.finditer(message)
        )
        # a single confident new city is a switch, not a conflict
        if explicit or span.score >= HIGH:
            return []
        return [current[0], prior_city]
    return []


async def derive_signals(
    message: str,
    entities: ExtractionResult,
    content: Classification,
    prior_slots: dict,
    language_detector=None,
    answered_origin: Optional[str] = None,
) -> TurnSignals:
    sig = TurnSignals()

    if language_detector is not None:
        try:
            lang = await asyncio.to_thread(language_detector.detect, message)
            language = (lang or {}).get("language") or "unknown"
            if (lang or {}).get("has_mixed_languages") or language not in ("en", "unknown"):
                sig.language_warning = LANGUAGE_WARNING
        except Exception as e:
            logger.warning("language detection failed: %s", e)

    sig.short_timeframe = bool(SHORT_TIMEFRAME_RE.search(message)) or any(
        SHORT_TIMEFRAME_RE.search(d.text) for d in entities.durations
    )
    sig.budget_query = content.label == "budget"

    sig.complex_query, sig.constraint_categories, sig.complexity_reasoning = detect_complexity(message, entities, content)

    sig.multi_city = _city_conflict(
        message, entities, (prior_slots or {}).get("city"), sig.complex_query, answered_origin
    )
    seasons = find_seasons(message)
    if len(seasons) > 1 and not sig.complex_query:
        sig.multi_season = seasons
    return sig
