from typing import Optional

from voyant.providers.base import AttractionsProvider, Geocoder
from voyant.providers.opentripmap import DEFAULT_KINDS, FAMILY_KINDS
from voyant.utils.text import normalize_name

SOURCE = "opentripmap.com"


def run_attractions_agent(
    geocoder: Geocoder,
    provider: AttractionsProvider,
    city: str,
    profile: Optional[str] = None,
    limit: int = 8,
) -> dict:
    place = geocoder.geocode(city)
    if not place or place.get("latitude") is None:
        return {"ok": False, "reason": "unknown_city"}

    family = bool(profile) and any(w in profile.lower() for w in ("kid", "family", "child"))
    pois = provider.search_pois(place["latitude"], place["longitude"], FAMILY_KINDS if family else DEFAULT_KINDS, limit * 2)

    names = []
    seen = set()
    for p in pois:
        key = normalize_name(p.get("name"))
        if key and key not in seen:
            seen.add(key)
            names.append(p["name"])
        if len(names) >= limit:
            break
    if not names:
        return {"ok": False, "reason": "no_results"}

    lead = "Kid-friendly spots" if family else "Popular spots"
    return {
        "ok": True,
        "summary": f"{lead} in {place.get('name') or city}: " + ", ".join(names) + ".",
        "names": names,
        "source": SOURCE,
        "url": "https://opentripmap.com",
    }
