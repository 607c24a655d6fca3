"""
Classification cascade.

Each result kind (content type, intent, entities) is produced by an ordered
list of stages: structured model -> LLM prompt -> patterns. The first stage
whose confidence clears its own threshold wins; below LOW everywhere the
cascade reports "no signal". Every stage result is memoized per turn in a
TurnCache keyed by (kind, stage, text).
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from voyant import config
from voyant.graph import intent as patterns
from voyant.llm import prompts
from voyant.llm.client import safe_json_parse
from voyant.utils.text import normalize_name

logger = logging.getLogger(__name__)

HIGH = config.CASCADE_HIGH
MEDIUM = config.CASCADE_MEDIUM
LOW = config.CASCADE_LOW

CONTENT_TYPES = ("travel", "budget", "unrelated", "refinement", "system", "policy", "flight")
INTENT_LABELS = ("weather", "destinations", "packing", "attractions", "policy", "flights",
                 "system", "web_search", "unknown")


@dataclass
class Classification:
    label: Optional[str]
    confidence: float = 0.0
    stage: str = "none"

    @property
    def has_signal(self) -> bool:
        return self.label is not None


@dataclass
class Span:
    text: str
    score: float


@dataclass
class ExtractionResult:
    locations: list[Span] = field(default_factory=list)
    dates: list[Span] = field(default_factory=list)
    money: list[Span] = field(default_factory=list)
    durations: list[Span] = field(default_factory=list)
    confidence: float = 0.0
    stage: str = "none"

    @property
    def entities(self) -> list[Span]:
        return self.locations + self.dates + self.money + self.durations

    @property
    def has_signal(self) -> bool:
        return bool(self.entities)

    def types(self) -> set[str]:
        out = set()
        if self.locations:
            out.add("location")
        if self.dates:
            out.add("date")
        if self.money:
            out.add("money")
        return out

    def location_names(self) -> list[str]:
        return [s.text for s in self.locations]


NO_SIGNAL = Classification(label=None, confidence=0.0, stage="none")


class TurnCache:
    """
    Request-scoped memo. Built once per turn and dropped afterwards, so nothing
    leaks between turns or threads.
    """

    def __init__(self):
        self._values: dict[tuple, Any] = {}
        self.misses = 0
        self.hits = 0

    def __contains__(self, key: tuple) -> bool:
        return key in self._values

    def get(self, key: tuple, default: Any = None) -> Any:
        return self._values.get(key, default)

    def put(self, key: tuple, value: Any) -> None:
        self._values[key] = value

    async def memo(self, key: tuple, factory: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._values:
            self.hits += 1
            return self._values[key]
        self.misses += 1
        value = await factory()
        self._values[key] = value
        return value


# ---------------------------
# Stages
# ---------------------------
class Stage(ABC):
    name: str = "stage"
    threshold: float = LOW

    @abstractmethod
    async def attempt(self, text: str) -> Optional[Any]:
        """Return a Classification / ExtractionResult, or None for no signal."""


def _coerce_confidence(value: Any) -> float:
    try:
        c = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, c))


def _spans_from(raw: Any, min_score: float = 0.0) -> list[Span]:
    out = []
    for item in raw or []:
        if isinstance(item, str):
            item = {"text": item, "score": 0.7}
        if not isinstance(item, dict):
            continue
        text = (item.get("text") or "").strip()
        score = _coerce_confidence(item.get("score", 0.7))
        if text and score >= min_score:
            out.append(Span(text=text, score=score))
    return out


def build_extraction(raw: dict, stage: str, min_score: float = 0.0) -> ExtractionResult:
    """Turn a {locations, dates, money, durations} payload into a filtered ExtractionResult."""
    raw = raw or {}
    locations = []
    seen = set()
    for span in _spans_from(raw.get("locations"), min_score):
        loc = patterns.clean_location(span.text)
        if not loc or normalize_name(loc) in seen:
            continue
        seen.add(normalize_name(loc))
        locations.append(Span(text=loc, score=span.score))
    result = ExtractionResult(
        locations=locations,
        dates=_spans_from(raw.get("dates"), min_score),
        money=_spans_from(raw.get("money"), min_score),
        durations=_spans_from(raw.get("durations"), min_score),
        stage=stage,
    )
    scores = [s.score for s in result.entities]
    if scores:
        result.confidence = sum(scores) / len(scores)
    elif "confidence" in raw:
        result.confidence = _coerce_confidence(raw.get("confidence"))
    return result


class ClassifierStage(Stage):
    """Structured model (zero-shot classifier) for content type or intent."""

    threshold = MEDIUM

    def __init__(self, classifier, kind: str):
        self.classifier = classifier
        self.kind = kind
        self.name = "classifier"

    async def attempt(self, text: str) -> Optional[Classification]:
        fn = self.classifier.classify_content if self.kind == "content" else self.classifier.classify_intent
        res = await asyncio.to_thread(fn, text)
        if not res or not res.get("label"):
            return None
        return Classification(label=res["label"], confidence=_coerce_confidence(res.get("confidence")), stage=self.name)


class LLMClassificationStage(Stage):
    threshold = LOW
    name = "llm"

    def __init__(self, llm, kind: str):
        self.llm = llm
        self.kind = kind

    async def attempt(self, text: str) -> Optional[Classification]:
        if self.kind == "content":
            prompt, allowed = prompts.CONTENT_CLASSIFIER_PROMPT, CONTENT_TYPES
        else:
            prompt, allowed = prompts.INTENT_CLASSIFIER_PROMPT, INTENT_LABELS
        raw = await self.llm.complete(prompt.replace("{message}", text), response_format="json")
        data = safe_json_parse(raw)
        label = (data.get("label") or data.get(self.kind) or "").strip().lower()
        if label not in allowed:
            return None
        return Classification(label=label, confidence=_coerce_confidence(data.get("confidence")), stage=self.name)


class PatternClassificationStage(Stage):
    threshold = LOW
    name = "pattern"

    def __init__(self, kind: str):
        self.kind = kind

    async def attempt(self, text: str) -> Optional[Classification]:
        fn = patterns.classify_content_pattern if self.kind == "content" else patterns.classify_intent_pattern
        label, confidence = fn(text)
        return Classification(label=label, confidence=confidence, stage=self.name)


class NERStage(Stage):
    threshold = MEDIUM
    name = "ner"

    def __init__(self, extractor):
        self.extractor = extractor

    async def attempt(self, text: str) -> Optional[ExtractionResult]:
        raw = await asyncio.to_thread(self.extractor.extract, text)
        # low-scoring model spans are dropped outright, whatever the stage total says
        return build_extraction(raw, self.name, min_score=LOW)


class LLMEntityStage(Stage):
    threshold = LOW
    name = "llm"

    def __init__(self, llm):
        self.llm = llm

    async def attempt(self, text: str) -> Optional[ExtractionResult]:
        raw = await self.llm.complete(prompts.ENTITY_EXTRACTION_PROMPT.replace("{message}", text), response_format="json")
        return build_extraction(safe_json_parse(raw), self.name)


class PatternEntityStage(Stage):
    threshold = LOW
    name = "pattern"

    async def attempt(self, text: str) -> Optional[ExtractionResult]:
        return build_extraction(patterns.extract_entities_pattern(text), self.name)


# ---------------------------
# Cascade
# ---------------------------
class Cascade:
    def __init__(self, kind: str, stages: list[Stage], empty: Callable[[], Any]):
        self.kind = kind
        self.stages = stages
        self.empty = empty

    async def _safe_attempt(self, stage: Stage, text: str) -> Optional[Any]:
        try:
            return await stage.attempt(text)
        except Exception as e:
            logger.warning("cascade %s/%s failed: %s", self.kind, stage.name, e)
            return None

    async def run(self, text: str, cache: TurnCache) -> Any:
        for stage in self.stages:
            key = (self.kind, stage.name, text)
            result = await cache.memo(key, lambda s=stage: self._safe_attempt(s, text))
            if result is None:
                continue
            if result.confidence >= stage.threshold and (result.has_signal or self.kind != "entities"):
                logger.debug("cascade %s committed at %s (%.2f)", self.kind, stage.name, result.confidence)
                return result
            logger.debug(
                "cascade %s: %s below threshold (%.2f < %.2f)",
                self.kind, stage.name, result.confidence, stage.threshold,
            )
        return self.empty()


class LocationValidator:
    """
    Fail-closed geocoding check for extracted locations. Results are kept in the
    turn cache per normalized name, so a place is looked up at most once a turn.
    """

    def __init__(self, geocoder):
        self.geocoder = geocoder

    async def is_real_place(self, name: str, cache: TurnCache) -> bool:
        key = ("geocode", normalize_name(name))

        async def lookup() -> bool:
            try:
                place = await asyncio.to_thread(self.geocoder.geocode, name)
            except Exception as e:
                logger.warning("geocode validation failed for %r: %s", name, e)
                return False
            return bool(place)

        return await cache.memo(key, lookup)


class ClassificationCascade:
    """Content type, intent and entity cascades wired from the available collaborators."""

    def __init__(self, classifier=None, extractor=None, llm=None, geocoder=None, validate_locations: bool = False):
        content_stages: list[Stage] = []
        intent_stages: list[Stage] = []
        entity_stages: list[Stage] = []
        if classifier is not None:
            content_stages.append(ClassifierStage(classifier, "content"))
            intent_stages.append(ClassifierStage(classifier, "intent"))
        if extractor is not None:
            entity_stages.append(NERStage(extractor))
        if llm is not None:
            content_stages.append(LLMClassificationStage(llm, "content"))
            intent_stages.append(LLMClassificationStage(llm, "intent"))
            entity_stages.append(LLMEntityStage(llm))
        content_stages.append(PatternClassificationStage("content"))
        intent_stages.append(PatternClassificationStage("intent"))
        entity_stages.append(PatternEntityStage())

        self.content = Cascade("content", content_stages, lambda: NO_SIGNAL)
        self.intent = Cascade("intent", intent_stages, lambda: NO_SIGNAL)
        self.entities = Cascade("entities", entity_stages, ExtractionResult)
        self.validator = LocationValidator(geocoder) if (geocoder is not None and validate_locations) else None

    async def content_type(self, text: str, cache: TurnCache) -> Classification:
        return await self.content.run(text, cache)

    async def classify_intent(self, text: str, cache: TurnCache) -> Classification:
        return await self.intent.run(text, cache)

    async def extract(self, text: str, cache: TurnCache) -> ExtractionResult:
        key = ("entities", "validated", text)
        if key in cache:
            return cache.get(key)
        result = await self.entities.run(text, cache)
        if self.validator is not None and result.locations:
            kept = []
            for span in result.locations:
                if await self.validator.is_real_place(span.text, cache):
                    kept.append(span)
            result = ExtractionResult(
                locations=kept,
                dates=result.dates,
                money=result.money,
                durations=result.durations,
                confidence=result.confidence,
                stage=result.stage,
            )
        cache.put(key, result)
        return result
