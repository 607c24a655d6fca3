from typing import Optional

from voyant.agents.weather import run_weather_agent
from voyant.providers.base import WeatherProvider

PACKING = {
    "hot": ["Light breathable clothing", "Sunscreen", "Sunglasses", "Hat", "Refillable water bottle", "Sandals"],
    "mild": ["Layers (t-shirts and a light sweater)", "Light jacket", "Comfortable walking shoes", "Compact umbrella"],
    "cold": ["Warm coat", "Thermal base layers", "Gloves, scarf and hat", "Waterproof boots", "Lip balm"],
    "special": {
        "kids": ["Snacks and refillable bottles", "Small toys or tablet for transit", "Basic first-aid kit",
                 "Wet wipes", "Spare change of clothes"],
        "business": ["Business attire", "Laptop and chargers", "Travel adapter", "Business cards"],
        "beach": ["Swimwear", "Beach towel", "Reef-safe sunscreen", "Flip-flops"],
        "hiking": ["Hiking boots", "Daypack", "Rain shell", "Trail snacks"],
    },
}


def temperature_band(max_c: Optional[float], min_c: Optional[float]) -> str:
    max_c = 22 if max_c is None else max_c
    min_c = 12 if min_c is None else min_c
    if max_c >= 28:
        return "hot"
    if min_c <= 8:
        return "cold"
    return "mild"


def special_lists(profile: Optional[str], message: str = "", interests: Optional[str] = None) -> list[str]:
    text = " ".join(x for x in (profile, message, interests) if x).lower()
    keys = []
    if any(w in text for w in ("kid", "child", "family", "toddler", "baby")):
        keys.append("kids")
    for key in ("business", "beach", "hiking"):
        if key in text:
            keys.append(key)
    return keys


def run_packing_agent(
    provider: WeatherProvider,
    city: str,
    month: Optional[str] = None,
    profile: Optional[str] = None,
    message: str = "",
    interests: Optional[str] = None,
) -> dict:
    wx = run_weather_agent(provider, city, month)
    if not wx.get("ok"):
        return {"ok": False, "reason": wx.get("reason") or "weather_unavailable"}

    band = temperature_band(wx.get("max_c"), wx.get("min_c"))
    special = {k: PACKING["special"][k] for k in special_lists(profile, message, interests)}
    lines = [f"Packing for {city}: {band} conditions expected. {wx['summary']}", ""]
    lines += [f"- {item}" for item in PACKING[band]]
    for key, items in special.items():
        lines.append(f"\nFor {key}:")
        lines += [f"- {item}" for item in items]
    return {
        "ok": True,
        "summary": "\n".join(lines).strip(),
        "band": band,
        "items": {"base": list(PACKING[band]), "special": special},
        "weather": wx["summary"],
        "source": wx.get("source"),
        "url": wx.get("url"),
    }
