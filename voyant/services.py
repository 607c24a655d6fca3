"""
Collaborator wiring. Everything optional is left as None when its key or
flag is missing; handlers and the cascade degrade around the gaps.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from voyant import config
from voyant.graph.cascade import ClassificationCascade
from voyant.llm.client import ChatLLM, LLMClient
from voyant.llm.dialogue_manager import DialogueRouter, IntentRouter
from voyant.providers.base import (
    AttractionsProvider,
    CountryFactsProvider,
    EntityExtractor,
    FlightsProvider,
    Geocoder,
    LanguageDetector,
    RagProvider,
    SearchProvider,
    TextClassifier,
    WeatherProvider,
)
from voyant.session_store import SlotStore, build_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: SlotStore
    llm: Optional[LLMClient] = None
    classifier: Optional[TextClassifier] = None
    extractor: Optional[EntityExtractor] = None
    language: Optional[LanguageDetector] = None
    router: Optional[IntentRouter] = None
    search: Optional[SearchProvider] = None
    rag: Optional[RagProvider] = None
    weather: Optional[WeatherProvider] = None
    attractions: Optional[AttractionsProvider] = None
    flights: Optional[FlightsProvider] = None
    countries: Optional[CountryFactsProvider] = None
    geocoder: Optional[Geocoder] = None
    deep_research_enabled: bool = True
    search_summary: bool = True
    validate_locations: bool = False
    cascade: Optional[ClassificationCascade] = None

    def __post_init__(self):
        if self.geocoder is None:
            self.geocoder = self.weather
        if self.router is None:
            self.router = DialogueRouter(self.llm)
        if self.cascade is None:
            self.cascade = ClassificationCascade(
                classifier=self.classifier,
                extractor=self.extractor,
                llm=self.llm,
                geocoder=self.geocoder,
                validate_locations=self.validate_locations,
            )


def build_services() -> Services:
    from voyant.providers.brave_search import BraveSearchProvider
    from voyant.providers.language import LangDetectLanguageDetector
    from voyant.providers.open_meteo import OpenMeteoProvider
    from voyant.providers.rest_countries import RestCountriesProvider

    llm = ChatLLM() if config.OPENAI_API_KEY else None
    if llm is None:
        logger.warning("OPENAI_API_KEY not set; LLM stages disabled")

    classifier = extractor = None
    if config.TRANSFORMERS_ENABLED:
        from voyant.providers.transformers_nlp import TransformersClassifier, TransformersEntityExtractor
        classifier = TransformersClassifier()
        extractor = TransformersEntityExtractor()

    flights = None
    if config.AMADEUS_CLIENT_ID and config.AMADEUS_CLIENT_SECRET:
        from voyant.providers.amadeus_flights import AmadeusFlightsProvider
        flights = AmadeusFlightsProvider()

    attractions = None
    if config.OPENTRIPMAP_API_KEY:
        from voyant.providers.opentripmap import OpenTripMapProvider
        attractions = OpenTripMapProvider()

    rag = None
    if config.VECTARA_API_KEY:
        from voyant.providers.vectara import VectaraProvider
        rag = VectaraProvider()

    weather = OpenMeteoProvider()
    return Services(
        store=build_store(),
        llm=llm,
        classifier=classifier,
        extractor=extractor,
        language=LangDetectLanguageDetector(),
        search=BraveSearchProvider() if config.BRAVE_API_KEY else None,
        rag=rag,
        weather=weather,
        attractions=attractions,
        flights=flights,
        countries=RestCountriesProvider(),
        geocoder=weather,
        deep_research_enabled=config.DEEP_RESEARCH_ENABLED,
        search_summary=config.SEARCH_SUMMARY,
        validate_locations=config.LOCATION_VALIDATION,
    )
