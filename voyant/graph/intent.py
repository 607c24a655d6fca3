import re
from typing import Optional

from dateutil import parser as dtparser

from voyant.utils.text import normalize_name, collapse_ws

CITY_ALIASES = {
    "nyc": "New York",
    "ny": "New York",
    "new york city": "New York",
    "sf": "San Francisco",
    "san fran": "San Francisco",
    "la": "Los Angeles",
    "bos": "Boston",
    "dc": "Washington",
    "ldn": "London",
    "bombay": "Mumbai",
    "mumbai": "Mumbai",
    "delhi": "Delhi",
    "saigon": "Ho Chi Minh City",
    "peking": "Beijing",
}

KNOWN_LOCATIONS = {
    "amsterdam", "athens", "bali", "bangkok", "barcelona", "beijing", "berlin", "boston",
    "budapest", "buenos aires", "cairo", "cancun", "cape town", "chicago", "copenhagen",
    "delhi", "dubai", "dublin", "edinburgh", "florence", "geneva", "goa", "hanoi", "hawaii",
    "helsinki", "hong kong", "istanbul", "kyoto", "krakow", "las vegas", "lima", "lisbon",
    "london", "los angeles", "madrid", "marrakech", "maui", "miami", "milan", "montreal",
    "mumbai", "munich", "new york", "osaka", "oslo", "paris", "phuket", "prague",
    "reykjavik", "rio de janeiro", "rome", "san francisco", "santorini", "seattle", "seoul",
    "shanghai", "singapore", "stockholm", "sydney", "tokyo", "toronto", "vancouver", "venice",
    "vienna", "warsaw", "zurich",
    "canada", "china", "egypt", "france", "germany", "greece", "iceland", "india", "italy",
    "japan", "mexico", "morocco", "peru", "portugal", "spain", "thailand", "vietnam",
}

# values that models and routers like to emit when they have no city
LOCATION_PLACEHOLDERS = {
    "unknown", "there", "here", "clean_city_name", "normalized_name", "city", "destination",
    "n/a", "na", "none", "null", "somewhere", "anywhere", "everywhere",
}
DATE_PLACEHOLDERS = {"unknown", "next_week", "dates", "date", "n/a", "none", "null"}
TEMPORAL_WORDS = {
    "today", "tomorrow", "tonight", "now", "currently", "yesterday", "weekend",
    "this week", "next week", "this month", "next month", "this year", "next year",
}
GENERIC_PLACE_WORDS = {"city", "destination", "place", "town", "country", "location"}

# brands and short words NER models mislabel as places
LOCATION_DENYLIST = {
    "quick", "one", "do", "us", "need", "for", "the", "and", "or", "but", "in", "on", "at",
    "to", "from", "with", "by", "about", "into", "through", "during", "before", "after",
    "above", "below", "up", "down", "out", "off", "over", "under", "what", "where", "how",
    "weather", "trip", "travel", "flight", "flights", "hotel", "hotels", "pack", "packing",
    "uber", "lyft", "airbnb", "google", "expedia", "booking", "kayak", "tripadvisor",
    "marriott", "hilton", "amazon", "apple", "netflix", "delta", "ryanair", "easyjet",
}

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
SEASONS = ("spring", "summer", "autumn", "fall", "winter")

TYPO_CORRECTIONS = {
    "weher": "weather",
    "wether": "weather",
    "wheather": "weather",
    "weahter": "weather",
    "burlin": "berlin",
    "berln": "berlin",
    "packin": "packing",
    "packng": "packing",
    "atraction": "attraction",
    "atractions": "attractions",
    "destnation": "destination",
    "flihgt": "flight",
    "fligth": "flight",
}


def correct_spelling(text: str) -> tuple[str, list[tuple[str, str]]]:
    """Fix the travel typos we see most often. Returns (text, [(typo, fix), ...])."""
    fixed = text
    corrections = []
    for typo, repl in TYPO_CORRECTIONS.items():
        pattern = re.compile(rf"\b{typo}\b", re.IGNORECASE)
        if pattern.search(fixed):
            fixed = pattern.sub(repl, fixed)
            corrections.append((typo, repl))
    return fixed, corrections


def norm_city(x: str) -> str:
    if not x:
        return x
    k = collapse_ws(x).lower()
    if k in CITY_ALIASES:
        return CITY_ALIASES[k]
    # keep user casing for things like "Rio de Janeiro"; title-case all-lowercase input
    cleaned = collapse_ws(x).strip(" ,.!?")
    return cleaned.title() if cleaned.islower() else cleaned


def is_valid_location(name: Optional[str]) -> bool:
    n = normalize_name(name)
    if not n or len(n) <= 2:
        return False
    if n in LOCATION_PLACEHOLDERS or n in TEMPORAL_WORDS or n in LOCATION_DENYLIST:
        return False
    if any(ch.isdigit() for ch in n):
        return False
    words = n.split()
    if any(w in GENERIC_PLACE_WORDS for w in words):
        return False
    if any(w in TEMPORAL_WORDS for w in words):
        return False
    if n in MONTHS or n in SEASONS:
        return False
    return True


def clean_location(value: Optional[str]) -> Optional[str]:
    """Alias-map and strip trailing temporal words ('Paris today' -> 'Paris'); None if not a place."""
    if not value:
        return None
    v = collapse_ws(value).strip(" ,.!?")
    v = re.sub(r"^(?:the\s+)?(?:city|town)\s+of\s+", "", v, flags=re.IGNORECASE)
    v = re.sub(
        r"\s+(?:today|tomorrow|tonight|now|currently|this\s+\w+|next\s+\w+|in\s+\w+)$",
        "",
        v,
        flags=re.IGNORECASE,
    )
    v = norm_city(v)
    return v if is_valid_location(v) else None


def parse_date_maybe(text: str) -> str | None:
    try:
        d = dtparser.parse(text, fuzzy=True, dayfirst=False)
        return d.date().isoformat()
    except (ValueError, OverflowError):
        return None


# ---------------------------
# Consent tokens
# ---------------------------
YES = {"yes", "y", "yeah", "yep", "yup", "sure", "ok", "okay", "go ahead", "proceed",
       "continue", "please do", "do it", "search", "go for it"}
# exact-only: "search for hotels" is a request, not a yes
EXACT_ONLY = {"search", "n", "y"}
NO = {"no", "n", "nope", "nah", "skip", "pass", "cancel", "not now", "no thanks", "don't", "dont"}


def normalize_yes_no(text: str) -> str | None:
    """
    Exact consent tokens, also when followed by more words ('yes please', 'no thanks').
    """
    t = re.sub(r"[.!,]+$", "", (text or "").strip().lower())
    if not t:
        return None
    if t in YES:
        return "yes"
    if t in NO:
        return "no"
    for w in sorted(YES - EXACT_ONLY, key=len, reverse=True):
        if t.startswith(w + " ") or t.startswith(w + ","):
            return "yes"
    for w in sorted(NO - EXACT_ONLY, key=len, reverse=True):
        if t.startswith(w + " ") or t.startswith(w + ","):
            return "no"
    return None


# ---------------------------
# Content type / intent patterns
# ---------------------------
SYSTEM_RE = re.compile(
    r"\b(are you (?:a |an )?(?:real|human|person|bot|robot|ai|chatbot|machine|assistant)"
    r"|who (?:are|made|built|created) you|what are you)\b",
    re.IGNORECASE,
)
BUDGET_RE = re.compile(
    r"\b(budget|cost|costs|price|prices|pricing|money|expensive|cheap|cheaper|cheapest|"
    r"affordable|afford|spend|spending|how much)\b|[$€£]\s?\d|\b\d+\s*(?:dollars|usd|euros?|eur|pounds|gbp)\b",
    re.IGNORECASE,
)
UNRELATED_RE = re.compile(
    r"\b(recipe|recipes|cooking|bake|baking|programming|javascript|coding|software|"
    r"stock market|stocks|crypto|bitcoin|politics|election|homework|math problem|poem|"
    r"song lyrics|movie|movies|tv show)\b",
    re.IGNORECASE,
)
POLICY_RE = re.compile(
    r"\b(visa|visas|passport|baggage|carry[- ]on|luggage allowance|refund|refunds|"
    r"cancellation|change fee|fare rules|travel insurance|entry requirements?)\b",
    re.IGNORECASE,
)
FLIGHT_RE = re.compile(
    r"\b(flight|flights|fly|flying|airline|airlines|airfare|plane|nonstop|non-stop|layover|red-eye)\b",
    re.IGNORECASE,
)
REFINEMENT_RE = re.compile(
    r"^(?:what|how) about\b|^(?:and|also|instead|actually|make it|change it|what if)\b"
    r"|^(?:with|for) (?:kids|children|family|my family|toddlers|a toddler)\b",
    re.IGNORECASE,
)
TRAVEL_RE = re.compile(
    r"\b(trip|travel|travell?ing|vacation|holiday|visit|visiting|weather|forecast|pack|packing|"
    r"destination|destinations|attraction|attractions|things to do|hotel|tour|itinerary|"
    r"sightseeing|beach|flight|flights|getaway)\b",
    re.IGNORECASE,
)
WEB_SEARCH_RE = re.compile(
    r"\b(search (?:the )?(?:web|internet|online)|google (?:it|this|for)|look (?:it |this )?up online|"
    r"search for)\b",
    re.IGNORECASE,
)
WEATHER_RE = re.compile(
    r"\b(weather|temperature|temperatures|forecast|rain|raining|rainy|snow|snowing|sunny|"
    r"humid|humidity|climate|how (?:hot|cold|warm))\b",
    re.IGNORECASE,
)
PACKING_RE = re.compile(
    r"\b(pack|packing|bring|luggage|suitcase|what (?:should|do) (?:i|we) wear|what to wear|"
    r"clothes|clothing)\b",
    re.IGNORECASE,
)
ATTRACTIONS_RE = re.compile(
    r"\b(attraction|attractions|things to do|what to do|to see|sightseeing|museum|museums|"
    r"landmark|landmarks|activities|sights|places to visit|must[- ]see)\b",
    re.IGNORECASE,
)
DESTINATIONS_RE = re.compile(
    r"\b(destination|destinations|where (?:should|can|to) (?:i |we )?go|trip|vacation|holiday|"
    r"getaway|visit|travel to|itinerary|plan)\b",
    re.IGNORECASE,
)


def classify_content_pattern(text: str) -> tuple[str, float]:
    t = text or ""
    if SYSTEM_RE.search(t):
        return "system", 0.95
    travelish = bool(TRAVEL_RE.search(t))
    if UNRELATED_RE.search(t) and not travelish:
        return "unrelated", 0.9
    if BUDGET_RE.search(t):
        return "budget", 0.9
    if REFINEMENT_RE.search(t.strip()) and len(t.split()) <= 8:
        return "refinement", 0.8
    if POLICY_RE.search(t):
        return "policy", 0.85
    if FLIGHT_RE.search(t):
        return "flight", 0.85
    if travelish:
        return "travel", 0.85
    return "travel", 0.6


def classify_intent_pattern(text: str) -> tuple[str, float]:
    t = text or ""
    if SYSTEM_RE.search(t):
        return "system", 0.95
    if WEB_SEARCH_RE.search(t):
        return "web_search", 0.9
    if PACKING_RE.search(t):
        return "packing", 0.9
    if WEATHER_RE.search(t):
        return "weather", 0.95
    if POLICY_RE.search(t):
        return "policy", 0.85
    if FLIGHT_RE.search(t):
        return "flights", 0.85
    if ATTRACTIONS_RE.search(t):
        return "attractions", 0.85
    if DESTINATIONS_RE.search(t):
        return "destinations", 0.8
    return "unknown", 0.4


# ---------------------------
# Entity patterns
# ---------------------------
_ALIAS_RE = re.compile(r"\b(NYC|NY|SF|LA|DC|BOS|LDN)\b|\b(nyc)\b")
_PREP_LOC_RE = re.compile(
    r"\b(?:in|to|from|for|at|visit|visiting|near|about|around|of)\s+"
    r"([A-Z][\w'\-]*(?:\s+(?:(?:de|da|del|do|los|las|la)\s+)?[A-Z][\w'\-]*)*)"
)
_MONTH_RE = re.compile(
    # "May" and abbreviations only when capitalized
    r"\b((?i:january|february|march|april|june|july|august|september|october|november|december))\b"
    r"|\b(May)\b|\b(Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)\b\.?"
)
_MONTH_DAY_RE = re.compile(
    r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?"
    r"(?:\s*[-–]\s*\d{1,2}(?:st|nd|rd|th)?)?(?:,?\s+\d{4})?\b"
    r"|\b\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\b",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_RELATIVE_DATE_RE = re.compile(
    r"\b(today|tonight|tomorrow|(?:this|next) (?:weekend|week|month|year|summer|winter|spring|autumn|fall))\b",
    re.IGNORECASE,
)
_SEASON_RE = re.compile(r"\b(spring|summer|autumn|winter)\b|\b(?:in|this|next|during|the)\s+(fall)\b", re.IGNORECASE)
_DURATION_RE = re.compile(
    r"\b(?:\d+|a|an|one|two|three|four|five|six|seven|ten|couple of|few)\s*-?\s*"
    r"(?:hours?|hrs?|minutes?|mins?|days?|nights?|weeks?)\b"
    r"|\bday[\s-]?trip\b|\bweekend getaway\b|\bovernight\b",
    re.IGNORECASE,
)
_MONEY_RE = re.compile(
    r"[$€£]\s?\d[\d,]*(?:\.\d+)?(?:\s?[kK])?"
    r"|\b\d[\d,]*(?:\.\d+)?\s*(?:dollars|usd|euros?|eur|pounds|gbp|yen|jpy)\b"
    r"|\b(?:under|below|less than|max(?:imum)?|up to|budget of)\s+\d[\d,]*\b",
    re.IGNORECASE,
)
SHORT_TIMEFRAME_RE = re.compile(r"\b\d+\s*-?\s*(?:hours?|hrs?|minutes?|mins?)\b|\bday[\s-]?trip\b", re.IGNORECASE)


def _spans(regex: re.Pattern, text: str, score: float) -> list[dict]:
    out = []
    for m in regex.finditer(text):
        span = collapse_ws(m.group(0))
        if span and span.lower() not in {s["text"].lower() for s in out}:
            out.append({"text": span, "score": score})
    return out


def extract_locations_pattern(text: str) -> list[dict]:
    found: list[dict] = []
    seen: set[str] = set()

    def add(name: Optional[str], score: float):
        loc = clean_location(name)
        if not loc:
            return
        key = normalize_name(loc)
        if key in seen or any(key in s for s in seen):
            return
        seen.add(key)
        found.append({"text": loc, "score": score})

    for m in _ALIAS_RE.finditer(text):
        add(m.group(1) or m.group(2), 0.8)
    for m in _PREP_LOC_RE.finditer(text):
        add(m.group(1), 0.7)
    lowered = text.lower()
    for name in sorted(KNOWN_LOCATIONS, key=len, reverse=True):
        if re.search(rf"\b{re.escape(name)}\b", lowered):
            add(name, 0.8)
    return found


def extract_entities_pattern(text: str) -> dict:
    t = text or ""
    dates = _spans(_ISO_DATE_RE, t, 0.7) + _spans(_MONTH_DAY_RE, t, 0.7)
    for extra in (_spans(_RELATIVE_DATE_RE, t, 0.7), _spans(_MONTH_RE, t, 0.7), _spans(_SEASON_RE, t, 0.65)):
        for span in extra:
            if not any(span["text"].lower() in d["text"].lower() for d in dates):
                dates.append(span)
    return {
        "locations": extract_locations_pattern(t),
        "dates": dates,
        "money": _spans(_MONEY_RE, t, 0.7),
        "durations": _spans(_DURATION_RE, t, 0.7),
    }


def find_months(text: str) -> list[str]:
    out = []
    for m in _MONTH_RE.finditer(text or ""):
        token = m.group(0).rstrip(".").lower()
        for name in MONTHS:
            if name.startswith(token[:3]) and name.title() not in out:
                out.append(name.title())
                break
    return out


def find_seasons(text: str) -> list[str]:
    out = []
    for m in _SEASON_RE.finditer(text or ""):
        s = (m.group(1) or m.group(2)).lower()
        s = "autumn" if s == "fall" else s
        if s not in out:
            out.append(s)
    return out


# ---------------------------
# Slot extraction (router fallback)
# ---------------------------
_FROM_TO_RE = re.compile(
    r"\bfrom\s+(.+?)\s+to\s+(.+?)(?=\s+(?:on|in|at|for|next|this|under|with|around|during|by)\b|[,.?!]|$)",
    re.IGNORECASE,
)
_GROUP_RE = re.compile(
    r"\bfamily of (\d+)\b|\b(\d+)\s+(?:people|persons|adults|travell?ers|of us|guests)\b",
    re.IGNORECASE,
)
_CHILDREN_RE = re.compile(r"\b(\d+)\s+(?:kids|children|toddlers)\b", re.IGNORECASE)
_PROFILES = [
    (re.compile(r"\b(kids?|children|child|toddlers?|family|families|baby)\b", re.IGNORECASE), "family with kids"),
    (re.compile(r"\b(business|work trip|conference)\b", re.IGNORECASE), "business"),
    (re.compile(r"\b(honeymoon|couple|romantic|anniversary)\b", re.IGNORECASE), "couple"),
    (re.compile(r"\b(solo|alone|by myself)\b", re.IGNORECASE), "solo"),
    (re.compile(r"\b(seniors?|elderly|retirees?)\b", re.IGNORECASE), "seniors"),
]


def extract_slots(user_text: str) -> dict:
    t = user_text or ""
    slots: dict[str, str] = {}

    m = _FROM_TO_RE.search(t)
    if m:
        origin = clean_location(m.group(1))
        dest = clean_location(m.group(2))
        if origin:
            slots["originCity"] = origin
        if dest:
            slots["destinationCity"] = dest
            slots["city"] = dest

    ents = extract_entities_pattern(t)
    if "city" not in slots:
        for loc in ents["locations"]:
            if normalize_name(loc["text"]) != normalize_name(slots.get("originCity")):
                slots["city"] = loc["text"]
                break

    months = find_months(t)
    if months:
        slots["month"] = months[0]
    seasons = find_seasons(t)
    if seasons:
        slots["season"] = seasons[0]

    explicit = _spans(_ISO_DATE_RE, t, 0.7) + _spans(_MONTH_DAY_RE, t, 0.7)
    relative = _spans(_RELATIVE_DATE_RE, t, 0.7)
    if explicit:
        slots["dates"] = explicit[0]["text"]
        iso = parse_date_maybe(explicit[0]["text"])
        if iso:
            slots["departureDate"] = iso
    elif relative:
        slots["dates"] = relative[0]["text"].lower()

    for regex, profile in _PROFILES:
        if regex.search(t):
            slots["travelerProfile"] = profile
            break
    g = _GROUP_RE.search(t)
    if g:
        slots["groupSize"] = g.group(1) or g.group(2)
    c = _CHILDREN_RE.search(t)
    if c:
        slots["children"] = c.group(1)

    if ents["money"]:
        slots["budget"] = ents["money"][0]["text"]
    if ents["durations"]:
        slots["duration"] = ents["durations"][0]["text"].lower()

    return {k: v for k, v in slots.items() if v and str(v).strip()}


_ORIGIN_ANSWER_RE = re.compile(
    r"^\s*(?:(?:i'?m|we'?re|i am|we are)\s+)?(?:(?:flying|leaving|departing|coming)\s+)?(from\s+)?"
    r"([^\W\d_][\w'\- ]*?)\s*[.!?]*\s*$",
    re.IGNORECASE,
)


def origin_answer(user_text: str) -> Optional[str]:
    """
    The place in a reply to "where are you flying from?": 'from Boston',
    "we're leaving from NYC" or a bare known city. None for anything else.
    """
    t = user_text or ""
    if _FROM_TO_RE.search(t) or len(t.split()) > 6:
        return None
    m = _ORIGIN_ANSWER_RE.match(t)
    if not m:
        return None
    place = clean_location(m.group(2))
    if not place:
        return None
    if not m.group(1) and normalize_name(m.group(2)) not in KNOWN_LOCATIONS | set(CITY_ALIASES):
        return None
    return place


def detect_intent_and_slots(user_text: str) -> tuple[str, dict]:
    intent, conf = classify_intent_pattern(user_text)
    return (intent if conf >= 0.6 else "unknown"), extract_slots(user_text)
