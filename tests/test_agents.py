import asyncio
import json
from datetime import date
from unittest.mock import Mock

from voyant.agents.attractions import run_attractions_agent
from voyant.agents.country import run_country_agent
from voyant.agents.flights import run_flights_agent
from voyant.agents.packing import PACKING, run_packing_agent, temperature_band
from voyant.agents.research import (
    NO_RESULTS_REPLY,
    RESEARCH_FAILED_REPLY,
    SEARCH_UNAVAILABLE_REPLY,
    enrich_query,
    optimize_search_query,
    perform_deep_research,
    perform_web_search,
)
from voyant.agents.weather import month_number, run_weather_agent
from voyant.graph.intent import MONTHS
from voyant.providers.base import AttractionsProvider, FlightsProvider, ProviderError, SearchProvider
from voyant.providers.opentripmap import FAMILY_KINDS

from conftest import FakeCountries, FakeSearch, FakeWeather, ScriptedLLM


class TestWeather:
    def test_unknown_city(self):
        assert run_weather_agent(FakeWeather(), "Atlantis") == {"ok": False, "reason": "unknown_city"}

    def test_forecast_without_month(self):
        weather = FakeWeather(max_c=25, min_c=14)
        res = run_weather_agent(weather, "Tokyo")
        assert res["ok"] is True
        assert "Tokyo, Japan" in res["summary"]
        assert (res["max_c"], res["min_c"]) == (25, 14)
        assert weather.forecast_calls == 1

    def test_month_uses_climate(self):
        weather = FakeWeather()
        next_month = MONTHS[date.today().month % 12]
        res = run_weather_agent(weather, "Tokyo", next_month)
        assert res["ok"] is True
        assert weather.climate_calls == 1
        assert "typically" in res["summary"]

    def test_month_number(self):
        assert month_number("sept") == 9
        assert month_number("May") == 5
        assert month_number("someday") is None


class TestPacking:
    def test_bands(self):
        assert temperature_band(30, 20) == "hot"
        assert temperature_band(15, 5) == "cold"
        assert temperature_band(22, 12) == "mild"
        assert temperature_band(None, None) == "mild"

    def test_kids_list_added_for_family(self):
        res = run_packing_agent(FakeWeather(max_c=31, min_c=22), "Tokyo", profile="family with kids")
        assert res["band"] == "hot"
        assert res["summary"].startswith("Packing for Tokyo: hot conditions expected.")
        assert res["items"]["special"] == {"kids": PACKING["special"]["kids"]}

    def test_interest_from_message(self):
        res = run_packing_agent(FakeWeather(), "Tokyo", message="packing for a hiking weekend")
        assert "hiking" in res["items"]["special"]

    def test_weather_failure(self):
        assert run_packing_agent(FakeWeather(), "Atlantis")["ok"] is False


class TestAttractions:
    def test_family_profile_uses_family_kinds_and_dedupes(self):
        provider = Mock(spec=AttractionsProvider)
        provider.search_pois.return_value = [
            {"name": "Ueno Zoo"}, {"name": "ueno zoo"}, {"name": ""}, {"name": "Tokyo Tower"},
        ]
        res = run_attractions_agent(FakeWeather(), provider, "Tokyo", "family with kids")
        assert res["names"] == ["Ueno Zoo", "Tokyo Tower"]
        assert res["summary"].startswith("Kid-friendly spots in Tokyo")
        assert provider.search_pois.call_args[0][2] == FAMILY_KINDS

    def test_nothing_found(self):
        provider = Mock(spec=AttractionsProvider)
        provider.search_pois.return_value = []
        assert run_attractions_agent(FakeWeather(), provider, "Tokyo")["reason"] == "no_results"


class TestCountry:
    def test_country_name(self):
        res = run_country_agent(FakeCountries(), "France")
        assert res["ok"] is True
        assert res["summary"].startswith("France • Capital: Paris")

    def test_city_resolved_through_geocoder(self):
        res = run_country_agent(FakeCountries(), "Paris", FakeWeather())
        assert res["country"] == "France"

    def test_unresolvable(self):
        assert run_country_agent(FakeCountries(), "Atlantis", FakeWeather())["ok"] is False


class TestFlights:
    def test_summary_lists_cheapest_first(self):
        provider = Mock(spec=FlightsProvider)
        provider.search_flights.return_value = [
            {"flight_no": "AZ1", "airline": "AZ", "price": 320.0, "currency": "USD", "stops": 0,
             "depart": "2026-11-01T09:00", "arrive": "2026-11-01T21:00"},
            {"flight_no": "DL2", "airline": "DL", "price": 410.5, "currency": "USD", "stops": 1,
             "depart": "2026-11-01T10:00", "arrive": "2026-11-02T06:00"},
        ]
        res = run_flights_agent(provider, "Boston", "Rome", "2026-11-01")
        assert res["cheapest"]["flight_no"] == "AZ1"
        assert "AZ1 USD 320.00, nonstop" in res["summary"]

    def test_no_results(self):
        provider = Mock(spec=FlightsProvider)
        provider.search_flights.return_value = []
        assert run_flights_agent(provider, "Boston", "Rome", "2026-11-01")["ok"] is False


class TestWebSearch:
    def test_fallback_formatting_without_llm(self):
        res = asyncio.run(perform_web_search(FakeSearch(), None, "cheap flights to Rome"))
        assert res["ok"] is True
        assert res["reply"].startswith("Based on web search results:")
        assert "Sources: Brave Search" in res["reply"]
        assert len(res["citations"]) == 2

    def test_llm_summary(self):
        res = asyncio.run(perform_web_search(FakeSearch(), ScriptedLLM("Rome is cheap in November [1]."), "q"))
        assert res["reply"] == "Rome is cheap in November [1]."

    def test_no_results(self):
        res = asyncio.run(perform_web_search(FakeSearch(results=[]), None, "q"))
        assert res == {"ok": False, "reply": NO_RESULTS_REPLY, "citations": []}

    def test_provider_error(self):
        search = Mock(spec=SearchProvider)
        search.search.side_effect = ProviderError("429")
        assert asyncio.run(perform_web_search(search, None, "q"))["reply"] == SEARCH_UNAVAILABLE_REPLY

    def test_unexpected_search_failure(self):
        search = Mock(spec=SearchProvider)
        search.search.side_effect = RuntimeError("upstream returned HTML")
        res = asyncio.run(perform_web_search(search, None, "q"))
        assert res == {"ok": False, "reply": SEARCH_UNAVAILABLE_REPLY, "citations": []}


class TestDeepResearch:
    def test_fans_out_and_dedupes_domains(self):
        search = FakeSearch()
        llm = ScriptedLLM(json.dumps({"queries": ["a", "b"]}), "Brief [1][2].")
        res = asyncio.run(perform_deep_research(search, llm, "cheap family trip to Rome"))
        assert res["ok"] is True
        assert search.queries == ["a", "b"]
        assert res["reply"] == "Brief [1][2]."
        assert [c["source"] for c in res["citations"]] == ["example.com", "travel.example.org"]

    def test_synthesis_failure(self):
        llm = ScriptedLLM(json.dumps({"queries": ["a"]}), RuntimeError("rate limited"))
        res = asyncio.run(perform_deep_research(FakeSearch(), llm, "q"))
        assert res["reply"] == RESEARCH_FAILED_REPLY

    def test_without_llm_degrades_to_search(self):
        res = asyncio.run(perform_deep_research(FakeSearch(), None, "q"))
        assert res["reply"].startswith("Based on web search results:")


class TestSearchQuery:
    def test_follow_up_gets_city_and_month(self):
        slots = {"city": "Rome", "month": "July"}
        assert enrich_query("any direct flights?", slots) == "any direct flights? Rome July"

    def test_details_already_in_query_are_not_repeated(self):
        assert enrich_query("weather in Rome in July", {"city": "Rome", "month": "July"}) == "weather in Rome in July"

    def test_family_profile(self):
        q = enrich_query("things to do", {"city": "Paris", "travelerProfile": "family with kids"})
        assert q == "things to do Paris family friendly"

    def test_no_slots_keeps_query(self):
        assert asyncio.run(optimize_search_query(None, "cheap flights to Rome", {})) == "cheap flights to Rome"

    def test_confident_llm_rewrite(self):
        llm = ScriptedLLM(json.dumps({"optimizedQuery": "direct flights to Rome July", "confidence": 0.9}))
        q = asyncio.run(optimize_search_query(llm, "any direct flights?", {"city": "Rome", "month": "July"}))
        assert q == "direct flights to Rome July"

    def test_unsure_or_failing_llm_falls_back(self):
        slots = {"city": "Rome"}
        unsure = ScriptedLLM(json.dumps({"optimizedQuery": "something else", "confidence": 0.2}))
        assert asyncio.run(optimize_search_query(unsure, "any direct flights?", slots)) == "any direct flights? Rome"
        failing = ScriptedLLM(RuntimeError("timeout"))
        assert asyncio.run(optimize_search_query(failing, "any direct flights?", slots)) == "any direct flights? Rome"
