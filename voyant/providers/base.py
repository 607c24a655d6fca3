from abc import ABC, abstractmethod
from typing import Optional


class ProviderError(Exception):
    pass


class FlightsProvider(ABC):
    @abstractmethod
    def search_flights(self, origin: str, destination: str, date_iso: str) -> list[dict]:
        ...


class Geocoder(ABC):
    @abstractmethod
    def geocode(self, name: str) -> Optional[dict]:
        """{name, latitude, longitude, country, country_code} or None."""


class WeatherProvider(Geocoder):
    @abstractmethod
    def forecast(self, latitude: float, longitude: float, days: int = 3) -> dict:
        ...

    @abstractmethod
    def monthly_climate(self, latitude: float, longitude: float, month: int) -> dict:
        ...


class AttractionsProvider(ABC):
    @abstractmethod
    def search_pois(self, latitude: float, longitude: float, kinds: str, limit: int = 10) -> list[dict]:
        ...


class CountryFactsProvider(ABC):
    @abstractmethod
    def country_facts(self, name: str) -> Optional[dict]:
        ...


class SearchProvider(ABC):
    @abstractmethod
    def search(self, query: str, count: int = 5) -> list[dict]:
        """[{title, url, description}]; raises ProviderError when the service fails."""


class RagProvider(ABC):
    @abstractmethod
    def query(self, question: str, corpus_hint: Optional[str] = None) -> dict:
        """{summary, citations: [{url, title, snippet, score}]}"""


class TextClassifier(ABC):
    @abstractmethod
    def classify_content(self, text: str) -> dict:
        """{label, confidence}"""

    @abstractmethod
    def classify_intent(self, text: str) -> dict:
        """{label, confidence}"""


class EntityExtractor(ABC):
    @abstractmethod
    def extract(self, text: str) -> dict:
        """{locations, dates, money, durations}, each a list of {text, score}."""


class LanguageDetector(ABC):
    @abstractmethod
    def detect(self, text: str) -> dict:
        """{language, has_mixed_languages, confidence}"""
