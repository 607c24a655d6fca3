import pytest

from voyant.graph.cascade import TurnCache
from voyant.llm.client import LLMClient
from voyant.providers.base import CountryFactsProvider, SearchProvider, WeatherProvider
from voyant.services import Services
from voyant.session_store import InMemorySlotStore

PLACES = {
    "tokyo": {"name": "Tokyo", "latitude": 35.68, "longitude": 139.69, "country": "Japan", "country_code": "JP"},
    "paris": {"name": "Paris", "latitude": 48.85, "longitude": 2.35, "country": "France", "country_code": "FR"},
    "rome": {"name": "Rome", "latitude": 41.89, "longitude": 12.48, "country": "Italy", "country_code": "IT"},
    "oslo": {"name": "Oslo", "latitude": 59.91, "longitude": 10.75, "country": "Norway", "country_code": "NO"},
}


class FakeWeather(WeatherProvider):
    def __init__(self, max_c=24.0, min_c=15.0):
        self.max_c = max_c
        self.min_c = min_c
        self.geocode_calls = []
        self.forecast_calls = 0
        self.climate_calls = 0

    def geocode(self, name):
        self.geocode_calls.append(name)
        return PLACES.get((name or "").strip().lower())

    def forecast(self, latitude, longitude, days=3):
        self.forecast_calls += 1
        return {"days": [
            {"date": f"2026-10-{19 + i}", "max_c": self.max_c, "min_c": self.min_c,
             "precip_prob": 10, "conditions": "Partly cloudy"}
            for i in range(days)
        ]}

    def monthly_climate(self, latitude, longitude, month):
        self.climate_calls += 1
        return {"year": 2025, "month": month, "avg_max_c": self.max_c, "avg_min_c": self.min_c, "rainy_days": 4}


class FakeSearch(SearchProvider):
    def __init__(self, results=None):
        self.results = results if results is not None else [
            {"title": "Rome on a budget", "url": "https://www.example.com/rome", "description": "Cheap flights and family tips."},
            {"title": "Family travel", "url": "https://travel.example.org/family", "description": "Where to stay with kids."},
        ]
        self.queries = []

    def search(self, query, count=5):
        self.queries.append(query)
        return list(self.results)


class FakeCountries(CountryFactsProvider):
    def country_facts(self, name):
        return {"name": name, "capital": "Paris" if name == "France" else "Tokyo", "region": "Somewhere",
                "subregion": None, "population": 1, "currency": "EUR", "languages": ["French"], "cca2": "FR"}


class ScriptedLLM(LLMClient):
    """Returns queued replies in order; raises when a queued item is an exception."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def complete(self, prompt, response_format="text", system=None):
        self.prompts.append(prompt)
        if not self.replies:
            return ""
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def cache():
    return TurnCache()


@pytest.fixture
def store():
    return InMemorySlotStore(ttl_sec=3600)


@pytest.fixture
def weather():
    return FakeWeather()


@pytest.fixture
def search():
    return FakeSearch()


@pytest.fixture
def services(store, weather, search):
    return Services(store=store, weather=weather, search=search, countries=FakeCountries())
