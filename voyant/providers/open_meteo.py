from __future__ import annotations

import calendar
import os
from datetime import date
from typing import Any, Dict, Optional

import requests

from voyant import config
from voyant.providers.base import ProviderError, WeatherProvider

WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def weather_code_to_text(code: Any) -> str:
    try:
        return WEATHER_CODES.get(int(code), "Unknown")
    except (TypeError, ValueError):
        return "Unknown"


class OpenMeteoProvider(WeatherProvider):
    """
    Uses Open-Meteo (no API key):
      - geocoding-api.open-meteo.com for city -> lat/lon
      - api.open-meteo.com for the short forecast
      - archive-api.open-meteo.com for last year's averages of a given month
    """

    GEOCODE_URL = os.getenv("OPEN_METEO_GEOCODE_URL", "https://geocoding-api.open-meteo.com/v1/search")
    FORECAST_URL = os.getenv("OPEN_METEO_FORECAST_URL", "https://api.open-meteo.com/v1/forecast")
    ARCHIVE_URL = os.getenv("OPEN_METEO_ARCHIVE_URL", "https://archive-api.open-meteo.com/v1/archive")

    def __init__(self, timeout: int = config.HTTP_TIMEOUT_SEC):
        self.timeout = timeout

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            r = requests.get(url, params=params or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Open-Meteo request failed: {e}") from e
        if r.status_code >= 400:
            raise ProviderError(f"Open-Meteo error {r.status_code}: {r.text[:200]}")
        return r.json()

    def geocode(self, name: str) -> Optional[dict]:
        data = self._get(self.GEOCODE_URL, {"name": name, "count": 1, "language": "en", "format": "json"})
        results = (data or {}).get("results") or []
        if not results:
            return None
        top = results[0]
        return {
            "name": top.get("name") or name,
            "latitude": top.get("latitude"),
            "longitude": top.get("longitude"),
            "country": top.get("country"),
            "country_code": top.get("country_code"),
        }

    def forecast(self, latitude: float, longitude: float, days: int = 3) -> dict:
        data = self._get(self.FORECAST_URL, {
            "latitude": latitude,
            "longitude": longitude,
            "daily": "weathercode,temperature_2m_max,temperature_2m_min,precipitation_probability_max",
            "forecast_days": days,
            "timezone": "auto",
        })
        daily = (data or {}).get("daily") or {}
        times = daily.get("time") or []
        out = []
        for i, day in enumerate(times):
            out.append({
                "date": day,
                "max_c": _at(daily.get("temperature_2m_max"), i),
                "min_c": _at(daily.get("temperature_2m_min"), i),
                "precip_prob": _at(daily.get("precipitation_probability_max"), i),
                "conditions": weather_code_to_text(_at(daily.get("weathercode"), i)),
            })
        return {"days": out}

    def monthly_climate(self, latitude: float, longitude: float, month: int) -> dict:
        year = date.today().year - 1
        last_day = calendar.monthrange(year, month)[1]
        data = self._get(self.ARCHIVE_URL, {
            "latitude": latitude,
            "longitude": longitude,
            "start_date": f"{year}-{month:02d}-01",
            "end_date": f"{year}-{month:02d}-{last_day:02d}",
            "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum",
            "timezone": "auto",
        })
        daily = (data or {}).get("daily") or {}
        maxes = [x for x in daily.get("temperature_2m_max") or [] if x is not None]
        mins = [x for x in daily.get("temperature_2m_min") or [] if x is not None]
        rain = [x for x in daily.get("precipitation_sum") or [] if x is not None]
        if not maxes or not mins:
            return {}
        return {
            "year": year,
            "month": month,
            "avg_max_c": round(sum(maxes) / len(maxes), 1),
            "avg_min_c": round(sum(mins) / len(mins), 1),
            "rainy_days": sum(1 for x in rain if x >= 1.0),
        }


def _at(seq: Optional[list], i: int) -> Any:
    if not seq or i >= len(seq):
        return None
    return seq[i]
