from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from voyant import config
from voyant.providers.base import ProviderError, RagProvider


class VectaraProvider(RagProvider):
    """
    Vectara v2 query API over the travel policy corpora (airlines / hotels / visas).
    A corpus hint picks VECTARA_CORPUS_<HINT>; otherwise VECTARA_CORPUS_KEY is used.
    """

    BASE_URL = os.getenv("VECTARA_BASE_URL", "https://api.vectara.io/v2")

    def __init__(self, api_key: Optional[str] = None, corpus_key: Optional[str] = None,
                 timeout: int = config.HTTP_TIMEOUT_SEC):
        self.api_key = api_key or config.VECTARA_API_KEY
        self.corpus_key = corpus_key or config.VECTARA_CORPUS_KEY
        self.timeout = timeout

    def _corpus(self, hint: Optional[str]) -> Optional[str]:
        if hint:
            specific = os.getenv(f"VECTARA_CORPUS_{hint.upper()}")
            if specific:
                return specific
        return self.corpus_key

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        headers = {"x-api-key": self.api_key or "", "Content-Type": "application/json", "Accept": "application/json"}
        try:
            r = requests.post(f"{self.BASE_URL}{path}", json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Vectara request failed: {e}") from e
        if r.status_code >= 400:
            raise ProviderError(f"Vectara error {r.status_code}: {r.text[:200]}")
        return r.json()

    def query(self, question: str, corpus_hint: Optional[str] = None) -> dict:
        corpus = self._corpus(corpus_hint)
        if not self.api_key or not corpus:
            raise ProviderError("Vectara is not configured")
        data = self._post("/query", {
            "query": question,
            "search": {"corpora": [{"corpus_key": corpus}], "limit": 5},
            "generation": {"max_used_search_results": 5, "citations": {"style": "numeric"}},
        }) or {}
        citations = []
        for it in data.get("search_results") or []:
            meta = it.get("document_metadata") or {}
            citations.append({
                "url": meta.get("url") or "",
                "title": meta.get("title") or it.get("document_id") or "Policy document",
                "snippet": (it.get("text") or "")[:300],
                "score": it.get("score"),
            })
        return {"summary": (data.get("summary") or "").strip(), "citations": citations}
