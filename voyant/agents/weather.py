from datetime import date
from typing import Optional

from voyant.graph.intent import MONTHS
from voyant.providers.base import WeatherProvider

SOURCE = "open-meteo.com"
SOURCE_URL = "https://open-meteo.com"


def month_number(month: Optional[str]) -> Optional[int]:
    if not month:
        return None
    m = month.strip().lower()[:3]
    for i, name in enumerate(MONTHS, start=1):
        if name.startswith(m):
            return i
    return None


def run_weather_agent(provider: WeatherProvider, city: str, month: Optional[str] = None) -> dict:
    place = provider.geocode(city)
    if not place or place.get("latitude") is None:
        return {"ok": False, "reason": "unknown_city"}

    lat, lon = place["latitude"], place["longitude"]
    label = place.get("name") or city
    if place.get("country"):
        label = f"{label}, {place['country']}"

    m = month_number(month)
    if m and m != date.today().month:
        clim = provider.monthly_climate(lat, lon, m)
        if clim:
            summary = (
                f"In {MONTHS[m - 1].title()}, {label} typically sees highs around {clim['avg_max_c']}°C "
                f"and lows around {clim['avg_min_c']}°C, with about {clim['rainy_days']} rainy days "
                f"(based on {clim['year']} data)."
            )
            return {
                "ok": True,
                "summary": summary,
                "max_c": clim["avg_max_c"],
                "min_c": clim["avg_min_c"],
                "source": SOURCE,
                "url": SOURCE_URL,
                "place": place,
            }

    days = (provider.forecast(lat, lon, days=3) or {}).get("days") or []
    days = [d for d in days if d.get("max_c") is not None and d.get("min_c") is not None]
    if not days:
        return {"ok": False, "reason": "no_forecast"}

    today = days[0]
    summary = f"{label}: {today['conditions'].lower()} today, high {today['max_c']}°C / low {today['min_c']}°C."
    if len(days) > 1:
        rest = "; ".join(f"{d['date']}: {d['conditions'].lower()}, {d['min_c']}–{d['max_c']}°C" for d in days[1:])
        summary += f" Next days: {rest}."
    return {
        "ok": True,
        "summary": summary,
        "max_c": max(d["max_c"] for d in days),
        "min_c": min(d["min_c"] for d in days),
        "source": SOURCE,
        "url": SOURCE_URL,
        "place": place,
    }
