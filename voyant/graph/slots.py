"""
Slot merge rules.

Incoming slot candidates are sanitized (placeholders, temporal words and
non-place strings never land in a location slot), then merged over the
thread's prior slots. A new primary location that isn't normalization-equal
to the old one drops the old time window and traveler profile.
"""
import re
from dataclasses import dataclass, field
from typing import Optional

from voyant.graph.intent import (
    ATTRACTIONS_RE,
    DATE_PLACEHOLDERS,
    LOCATION_PLACEHOLDERS,
    clean_location,
)
from voyant.utils.text import collapse_ws, normalize_name

LOCATION_KEYS = ("city", "destinationCity", "originCity", "country")
TIME_KEYS = ("dates", "month", "season", "startDate", "endDate", "departureDate", "returnDate", "duration")
PROFILE_KEYS = ("travelerProfile", "groupSize", "children", "interests")
FLIGHT_KEYS = ("originCity", "destinationCity", "departureDate", "returnDate")

NEEDS_CITY = {"weather", "packing", "destinations", "attractions", "flights"}

IMMEDIATE_CONTEXT_RE = re.compile(r"\b(today|now|currently|right now|tonight|what to wear)\b", re.IGNORECASE)
SPECIAL_CONTEXT_RE = re.compile(
    r"\b(kids?|children|family|business|work|summer|winter|spring|fall|autumn)\b", re.IGNORECASE
)
KID_CONTEXT_RE = re.compile(
    r"\b(kids?|children|family|make it kid|kid-friendly|kid friendly|toddlers?|\d\s*-?\s*years?[- ]old|stroller)\b",
    re.IGNORECASE,
)
FLIGHT_TIME_RE = re.compile(
    r"\b(flight time|shorten flight|shorter flights?|reduce travel time|quicker flights?|"
    r"shorten travel time|less layover|fewer stops)\b",
    re.IGNORECASE,
)
NEW_CITY_RE = re.compile(r"\b(?:let'?s\s+say|in|to)\s+[A-Z][A-Za-z\-]+")


def sanitize_patch(patch: Optional[dict], intent: Optional[str] = None) -> dict[str, str]:
    """Drop empty values and placeholders; location values must look like real places."""
    out: dict[str, str] = {}
    for key, value in (patch or {}).items():
        if value is None:
            continue
        s = collapse_ws(str(value))
        if not s:
            continue
        low = s.lower()
        if key in LOCATION_KEYS:
            if low in LOCATION_PLACEHOLDERS:
                continue
            loc = clean_location(s)
            if not loc:
                continue
            out[key] = loc
            continue
        if low in DATE_PLACEHOLDERS or low in LOCATION_PLACEHOLDERS:
            continue
        out[key] = s

    if intent == "weather":
        for k in FLIGHT_KEYS:
            out.pop(k, None)
    if "destinationCity" in out and "city" not in out and intent != "weather":
        out["city"] = out["destinationCity"]
    return out


def location_changed(old: Optional[str], new: Optional[str]) -> bool:
    return bool(old and new and normalize_name(old) != normalize_name(new))


def merge_slots(prior: Optional[dict], patch: Optional[dict], intent: Optional[str] = None) -> dict[str, str]:
    """
    prior + sanitized patch. Idempotent: merging the same patch twice gives the
    same slots as merging it once.
    """
    prior = dict(prior or {})
    clean = sanitize_patch(patch, intent)
    merged = dict(prior)

    old_city = prior.get("city")
    if location_changed(old_city, clean.get("city")):
        for k in TIME_KEYS + PROFILE_KEYS:
            if k not in clean:
                merged.pop(k, None)
        # destinationCity that mirrored the old city is stale too
        if "destinationCity" not in clean and not location_changed(old_city, prior.get("destinationCity")):
            merged.pop("destinationCity", None)

    merged.update(clean)
    return merged


@dataclass
class MissingCheck:
    missing: list[str] = field(default_factory=list)
    dates_waived_for_short_trip: bool = False


def has_when(slots: dict) -> bool:
    return any(slots.get(k) for k in ("dates", "month", "season", "startDate", "departureDate"))


def compute_missing(intent: str, slots: dict, message: str, short_timeframe: bool = False) -> MissingCheck:
    slots = slots or {}
    check = MissingCheck()

    if intent in NEEDS_CITY:
        has_city = bool(slots.get("city"))
        if intent == "flights":
            has_city = has_city or bool(slots.get("destinationCity"))
        elif intent == "destinations":
            has_city = has_city or bool(slots.get("originCity"))
        if not has_city:
            check.missing.append("city")

    needs_dates = False
    if intent == "destinations" and not has_when(slots):
        needs_dates = True
    elif intent == "packing" and not has_when(slots):
        immediate = bool(IMMEDIATE_CONTEXT_RE.search(message or ""))
        special = bool(SPECIAL_CONTEXT_RE.search(message or "")) or bool(slots.get("travelerProfile"))
        needs_dates = not (immediate or special)

    if needs_dates:
        if short_timeframe:
            check.dates_waived_for_short_trip = True
        else:
            check.missing.append("dates")
    return check


def resolve_intent(
    raw_intent: str,
    message: str,
    prior_slots: dict,
    last_intent: Optional[str],
    expected_missing: Optional[list] = None,
    new_city: Optional[str] = None,
) -> tuple[str, Optional[str]]:
    """
    Returns (intent, reason). reason names the rule that changed the intent, or None.
    """
    intent = raw_intent or "unknown"
    reason = None
    usable_last = last_intent if last_intent and last_intent not in ("unknown", "system") else None

    if intent == "unknown" and usable_last and (prior_slots or expected_missing):
        intent, reason = usable_last, "unknown_falls_back_to_last_intent"

    if usable_last and intent != usable_last:
        asks_attractions = bool(ATTRACTIONS_RE.search(message or "")) or bool(
            re.search(r"\b(what should we do|do in)\b", message or "", re.IGNORECASE)
        )
        introduces_city = bool(NEW_CITY_RE.search(message or "")) or location_changed(
            (prior_slots or {}).get("city"), new_city
        )
        short = len((message or "").split()) <= 12
        # an explicit packing/weather/policy question is a new request, not a tweak
        explicit = raw_intent in ("packing", "weather", "policy")
        if (
            short
            and not explicit
            and KID_CONTEXT_RE.search(message or "")
            and not asks_attractions
            and not introduces_city
        ):
            intent, reason = usable_last, "kid_context_refinement"
        elif FLIGHT_TIME_RE.search(message or ""):
            intent, reason = usable_last, "flight_time_refinement"
    return intent, reason
