import asyncio
import json
from unittest.mock import Mock

from voyant.graph.cascade import ClassificationCascade, TurnCache
from voyant.providers.base import EntityExtractor, TextClassifier

from conftest import FakeWeather, ScriptedLLM


def _classifier(label="weather", confidence=0.95):
    clf = Mock(spec=TextClassifier)
    clf.classify_intent.return_value = {"label": label, "confidence": confidence}
    clf.classify_content.return_value = {"label": "travel", "confidence": confidence}
    return clf


class TestFallbackOrdering:
    def test_confident_classifier_skips_llm(self, cache):
        llm = ScriptedLLM(json.dumps({"label": "packing", "confidence": 0.9}))
        cascade = ClassificationCascade(classifier=_classifier(confidence=0.95), llm=llm)

        result = asyncio.run(cascade.classify_intent("weather in Tokyo", cache))

        assert result.label == "weather"
        assert result.stage == "classifier"
        assert result.confidence == 0.95
        assert llm.prompts == []

    def test_unsure_classifier_falls_through_to_llm(self, cache):
        llm = ScriptedLLM(json.dumps({"label": "weather", "confidence": 0.8}))
        clf = _classifier(confidence=0.5)
        cascade = ClassificationCascade(classifier=clf, llm=llm)

        result = asyncio.run(cascade.classify_intent("weather in Tokyo", cache))

        assert clf.classify_intent.call_count == 1
        assert len(llm.prompts) == 1
        assert result.stage == "llm"
        assert result.confidence == 0.8

    def test_failing_stages_fall_back_to_patterns(self, cache):
        clf = Mock(spec=TextClassifier)
        clf.classify_intent.side_effect = RuntimeError("model not loaded")
        llm = ScriptedLLM(RuntimeError("timeout"))
        cascade = ClassificationCascade(classifier=clf, llm=llm)

        result = asyncio.run(cascade.classify_intent("what should I pack for Oslo", cache))

        assert result.label == "packing"
        assert result.stage == "pattern"

    def test_below_low_everywhere_is_no_signal(self, cache):
        llm = ScriptedLLM(json.dumps({"label": "weather", "confidence": 0.3}))
        cascade = ClassificationCascade(classifier=_classifier(confidence=0.2), llm=llm)

        result = asyncio.run(cascade.classify_intent("hmm", cache))

        assert result.label is None
        assert result.confidence == 0.0
        assert not result.has_signal

    def test_llm_label_outside_the_set_is_ignored(self, cache):
        llm = ScriptedLLM(json.dumps({"label": "hotels", "confidence": 0.99}))
        cascade = ClassificationCascade(llm=llm)
        result = asyncio.run(cascade.classify_intent("weather in Tokyo", cache))
        assert result.stage == "pattern"
        assert result.label == "weather"


class TestTurnCache:
    def test_each_stage_runs_once_per_text(self):
        clf = _classifier(confidence=0.5)
        llm = ScriptedLLM(json.dumps({"label": "weather", "confidence": 0.8}))
        cascade = ClassificationCascade(classifier=clf, llm=llm)
        cache = TurnCache()

        first = asyncio.run(cascade.classify_intent("weather in Tokyo", cache))
        second = asyncio.run(cascade.classify_intent("weather in Tokyo", cache))

        assert first == second
        assert clf.classify_intent.call_count == 1
        assert len(llm.prompts) == 1
        assert cache.hits >= 2

    def test_fresh_cache_recomputes(self):
        clf = _classifier(confidence=0.95)
        cascade = ClassificationCascade(classifier=clf)
        asyncio.run(cascade.classify_intent("weather in Tokyo", TurnCache()))
        asyncio.run(cascade.classify_intent("weather in Tokyo", TurnCache()))
        assert clf.classify_intent.call_count == 2


class TestEntities:
    def test_pattern_entities(self, cache):
        cascade = ClassificationCascade()
        result = asyncio.run(cascade.extract("flights from NYC to Tokyo in March under $900", cache))
        assert result.location_names() == ["New York", "Tokyo"]
        assert [d.text for d in result.dates] == ["March"]
        assert [m.text for m in result.money] == ["$900"]
        assert result.types() == {"location", "date", "money"}

    def test_ner_spans_filtered_by_denylist_and_length(self, cache):
        ner = Mock(spec=EntityExtractor)
        ner.extract.return_value = {
            "locations": [{"text": "Uber", "score": 0.99}, {"text": "LA", "score": 0.99},
                          {"text": "Lisbon", "score": 0.97}, {"text": "Xy", "score": 0.99}],
            "dates": [], "money": [], "durations": [],
        }
        cascade = ClassificationCascade(extractor=ner)
        result = asyncio.run(cascade.extract("uber from LA to Lisbon", cache))
        assert result.stage == "ner"
        assert result.location_names() == ["Los Angeles", "Lisbon"]

    def test_ner_without_signal_falls_back(self, cache):
        ner = Mock(spec=EntityExtractor)
        ner.extract.return_value = {"locations": [], "dates": [], "money": [], "durations": []}
        cascade = ClassificationCascade(extractor=ner)
        result = asyncio.run(cascade.extract("weather in Tokyo", cache))
        assert result.stage == "pattern"
        assert result.location_names() == ["Tokyo"]

    def test_validation_is_fail_closed_and_cached(self, cache):
        weather = FakeWeather()
        cascade = ClassificationCascade(geocoder=weather, validate_locations=True)

        result = asyncio.run(cascade.extract("from Paris to Atlantis", cache))
        asyncio.run(cascade.extract("from Paris to Atlantis", cache))

        assert result.location_names() == ["Paris"]
        assert weather.geocode_calls == ["Paris", "Atlantis"]
