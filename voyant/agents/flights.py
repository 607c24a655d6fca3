from typing import Optional

from voyant.providers.base import FlightsProvider

SOURCE = "amadeus.com"


def describe_flight(f: dict) -> str:
    stops = "nonstop" if not f.get("stops") else f"{f['stops']} stop(s)"
    return (
        f"{f.get('flight_no') or f.get('airline')} {f.get('currency')} {f.get('price'):.2f}, "
        f"{stops} ({f.get('depart')} → {f.get('arrive')})"
    )


def run_flights_agent(
    provider: FlightsProvider,
    origin: str,
    destination: str,
    date_iso: str,
    top: int = 3,
) -> dict:
    """Offers sorted cheapest first, plus a short summary when anything came back."""
    flights = provider.search_flights(origin, destination, date_iso)
    cheapest: Optional[dict] = flights[0] if flights else None
    if not cheapest:
        return {"ok": False, "reason": "no_results", "flights": [], "cheapest": None}

    lines = [f"Flights from {origin} to {destination} on {date_iso} (cheapest first):"]
    lines += [f"- {describe_flight(f)}" for f in flights[:top]]
    return {
        "ok": True,
        "summary": "\n".join(lines),
        "flights": flights,
        "cheapest": cheapest,
        "source": SOURCE,
    }
