"""
Local Hugging Face models for the first cascade stage.

Zero-shot classification handles content type and intent; a token
classification model handles place names. NER models don't tag dates or
amounts, so those come from the same patterns the fallback stage uses.
Install with the `nlp` extra.
"""
import logging
import threading
from typing import Optional

from transformers import pipeline as hf_pipeline

from voyant import config
from voyant.graph import intent as patterns
from voyant.providers.base import EntityExtractor, TextClassifier

logger = logging.getLogger(__name__)

CONTENT_LABELS = {
    "travel planning": "travel",
    "prices, costs or budget": "budget",
    "something unrelated to travel": "unrelated",
    "a follow-up adjusting a previous request": "refinement",
    "a question about the assistant itself": "system",
    "visa, baggage or refund policy": "policy",
    "flights and airlines": "flight",
}

INTENT_LABELS = {
    "weather forecast": "weather",
    "choosing a destination or planning a trip": "destinations",
    "what to pack": "packing",
    "things to do and attractions": "attractions",
    "visa, baggage or refund policy": "policy",
    "flight search": "flights",
    "a question about the assistant itself": "system",
    "search the web": "web_search",
}

LOCATION_GROUPS = {"LOC", "GPE"}


class TransformersClassifier(TextClassifier):
    def __init__(self, model: Optional[str] = None):
        self.model = model or config.ZERO_SHOT_MODEL
        self._pipe = None
        self._lock = threading.Lock()

    def _pipeline(self):
        with self._lock:
            if self._pipe is None:
                logger.info("loading zero-shot model %s", self.model)
                self._pipe = hf_pipeline("zero-shot-classification", model=self.model, device=-1)
        return self._pipe

    def _classify(self, text: str, labels: dict) -> dict:
        res = self._pipeline()(text, candidate_labels=list(labels.keys()))
        top, score = res["labels"][0], float(res["scores"][0])
        return {"label": labels[top], "confidence": score}

    def classify_content(self, text: str) -> dict:
        return self._classify(text, CONTENT_LABELS)

    def classify_intent(self, text: str) -> dict:
        return self._classify(text, INTENT_LABELS)


class TransformersEntityExtractor(EntityExtractor):
    def __init__(self, model: Optional[str] = None):
        self.model = model or config.NER_MODEL
        self._pipe = None
        self._lock = threading.Lock()

    def _pipeline(self):
        with self._lock:
            if self._pipe is None:
                logger.info("loading NER model %s", self.model)
                self._pipe = hf_pipeline("token-classification", model=self.model,
                                         aggregation_strategy="simple", device=-1)
        return self._pipe

    def extract(self, text: str) -> dict:
        locations = []
        for ent in self._pipeline()(text):
            group = (ent.get("entity_group") or "").upper()
            word = (ent.get("word") or "").replace(" ##", "").replace("##", "").strip()
            score = float(ent.get("score") or 0.0)
            if group in LOCATION_GROUPS and word:
                locations.append({"text": word, "score": score})
        rest = patterns.extract_entities_pattern(text)
        return {
            "locations": locations,
            "dates": rest["dates"],
            "money": rest["money"],
            "durations": rest["durations"],
        }
