from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from voyant import config
from voyant.providers.base import ProviderError, SearchProvider


class BraveSearchProvider(SearchProvider):
    """
    Brave Web Search API (needs BRAVE_API_KEY).
    """

    BASE_URL = os.getenv("BRAVE_SEARCH_URL", "https://api.search.brave.com/res/v1/web/search")

    def __init__(self, api_key: Optional[str] = None, timeout: int = config.HTTP_TIMEOUT_SEC):
        self.api_key = api_key or config.BRAVE_API_KEY
        self.timeout = timeout

    def _get(self, params: Dict[str, Any]) -> Any:
        if not self.api_key:
            raise ProviderError("BRAVE_API_KEY is not set")
        headers = {"Accept": "application/json", "X-Subscription-Token": self.api_key}
        try:
            r = requests.get(self.BASE_URL, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Brave search failed: {e}") from e
        if r.status_code >= 400:
            raise ProviderError(f"Brave search error {r.status_code}: {r.text[:200]}")
        try:
            return r.json()
        except ValueError as e:
            raise ProviderError(f"Brave search returned invalid JSON: {e}") from e

    def search(self, query: str, count: int = 5) -> list[dict]:
        data = self._get({"q": query, "count": max(1, min(20, count))})
        out = []
        for it in ((data or {}).get("web") or {}).get("results") or []:
            url = it.get("url")
            if not url:
                continue
            out.append({
                "title": it.get("title") or url,
                "url": url,
                "description": it.get("description") or "",
            })
        return out
