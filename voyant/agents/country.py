from typing import Optional

from voyant.providers.base import CountryFactsProvider, Geocoder
from voyant.utils.country import iso2_to_country_name, lookup_country

SOURCE = "restcountries.com"


def resolve_country(place: str, geocoder: Optional[Geocoder] = None) -> Optional[str]:
    known = lookup_country(place)
    if known:
        return known["name"]
    if geocoder is None:
        return None
    geo = geocoder.geocode(place)
    if not geo:
        return None
    return iso2_to_country_name(geo.get("country_code") or "") or geo.get("country")


def run_country_agent(provider: CountryFactsProvider, place: str, geocoder: Optional[Geocoder] = None) -> dict:
    country = resolve_country(place, geocoder)
    if not country:
        return {"ok": False, "reason": "unknown_country"}
    facts = provider.country_facts(country)
    if not facts:
        return {"ok": False, "reason": "no_facts"}

    langs = ", ".join(facts.get("languages") or []) or "N/A"
    summary = (
        f"{facts.get('name') or country} • Capital: {facts.get('capital') or 'N/A'} • "
        f"Region: {facts.get('region') or 'N/A'} • Currency: {facts.get('currency') or 'N/A'} • Language: {langs}"
    )
    return {"ok": True, "summary": summary, "country": facts.get("name") or country, "facts": facts,
            "source": SOURCE, "url": "https://restcountries.com"}
