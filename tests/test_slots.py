import pytest

from voyant.graph.slots import compute_missing, merge_slots, resolve_intent, sanitize_patch


class TestMergeSlots:
    def test_identical_patch_twice_is_idempotent(self):
        prior = {"city": "Paris", "month": "July"}
        patch = {"city": "Tokyo", "travelerProfile": "family with kids"}
        once = merge_slots(prior, patch)
        twice = merge_slots(once, patch)
        assert once == twice

    @pytest.mark.parametrize("placeholder", ["unknown", "there", "clean_city_name", "today", "next week", "  "])
    def test_placeholder_never_replaces_city(self, placeholder):
        merged = merge_slots({"city": "Paris"}, {"city": placeholder})
        assert merged["city"] == "Paris"

    def test_new_city_clears_time_and_profile(self):
        prior = {"city": "Paris", "dates": "July", "travelerProfile": "family"}
        assert merge_slots(prior, {"city": "Tokyo"}) == {"city": "Tokyo"}

    def test_same_city_different_spelling_keeps_slots(self):
        prior = {"city": "São Paulo", "month": "May"}
        merged = merge_slots(prior, {"city": "sao  paulo"})
        assert merged["month"] == "May"

    def test_new_city_keeps_dates_from_same_patch(self):
        prior = {"city": "Paris", "month": "July", "children": "2"}
        merged = merge_slots(prior, {"city": "Rome", "month": "August"})
        assert merged == {"city": "Rome", "month": "August"}

    def test_weather_never_writes_flight_slots(self):
        merged = merge_slots({}, {"city": "Tokyo", "originCity": "Boston", "departureDate": "2026-11-01"}, "weather")
        assert merged == {"city": "Tokyo"}

    def test_relative_word_stripped_from_location(self):
        assert sanitize_patch({"city": "Paris today"}) == {"city": "Paris"}

    def test_alias_is_expanded(self):
        assert sanitize_patch({"city": "nyc"}) == {"city": "New York"}


class TestComputeMissing:
    def test_weather_needs_city_only(self):
        assert compute_missing("weather", {"city": "Tokyo"}, "weather in Tokyo").missing == []

    def test_destinations_needs_city_and_dates(self):
        assert compute_missing("destinations", {}, "plan a trip").missing == ["city", "dates"]

    def test_origin_city_satisfies_destinations(self):
        assert compute_missing("destinations", {"originCity": "Boston", "month": "May"}, "x").missing == []

    def test_destination_city_satisfies_flights(self):
        assert compute_missing("flights", {"destinationCity": "Rome"}, "flights to Rome").missing == []

    def test_packing_dates_waived_for_special_context(self):
        assert compute_missing("packing", {"city": "Oslo"}, "what to pack for Oslo with kids").missing == []

    def test_packing_dates_waived_for_immediate_context(self):
        assert compute_missing("packing", {"city": "Oslo"}, "what to wear in Oslo today").missing == []

    def test_packing_short_trip_waives_dates(self):
        check = compute_missing("packing", {"city": "Oslo"}, "packing for a day trip to Oslo", short_timeframe=True)
        assert check.missing == []
        assert check.dates_waived_for_short_trip is True

    def test_packing_without_context_needs_dates(self):
        assert compute_missing("packing", {"city": "Oslo"}, "what should I pack for Oslo").missing == ["dates"]


class TestResolveIntent:
    def test_unknown_falls_back_to_last_intent(self):
        intent, reason = resolve_intent("unknown", "in July", {"city": "Paris"}, "destinations")
        assert intent == "destinations"
        assert reason == "unknown_falls_back_to_last_intent"

    def test_unknown_stays_unknown_on_empty_thread(self):
        assert resolve_intent("unknown", "hmm", {}, None) == ("unknown", None)

    def test_kid_refinement_keeps_last_intent(self):
        intent, reason = resolve_intent("destinations", "make it kid friendly", {"city": "Paris"}, "attractions")
        assert intent == "attractions"
        assert reason == "kid_context_refinement"

    def test_kid_refinement_does_not_hijack_new_city(self):
        intent, _ = resolve_intent("destinations", "family trip to Rome", {"city": "Paris"}, "weather", new_city="Rome")
        assert intent == "destinations"

    def test_kid_context_asking_attractions_is_not_a_refinement(self):
        intent, _ = resolve_intent("attractions", "things to do with kids", {"city": "Paris"}, "weather")
        assert intent == "attractions"

    def test_flight_time_refinement(self):
        intent, reason = resolve_intent("destinations", "can we shorten flight time?", {"city": "Tokyo"}, "flights")
        assert intent == "flights"
        assert reason == "flight_time_refinement"
