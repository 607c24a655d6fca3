from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from voyant import config
from voyant.providers.base import CountryFactsProvider, ProviderError
from voyant.utils.country import lookup_country


class RestCountriesProvider(CountryFactsProvider):
    """
    restcountries.com v3.1 (no API key). Names are normalized through pycountry
    first so 'uk' or 'Viet Nam' still resolve.
    """

    BASE_URL = os.getenv("REST_COUNTRIES_BASE_URL", "https://restcountries.com/v3.1")

    def __init__(self, timeout: int = config.HTTP_TIMEOUT_SEC):
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            r = requests.get(f"{self.BASE_URL}{path}", params=params or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"REST Countries request failed: {e}") from e
        if r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise ProviderError(f"REST Countries error {r.status_code}: {r.text[:200]}")
        return r.json()

    def country_facts(self, name: str) -> Optional[dict]:
        known = lookup_country(name)
        fields = {"fields": "name,capital,currencies,languages,region,subregion,population,cca2"}
        if known:
            data = self._get(f"/alpha/{known['alpha_2']}", fields)
        else:
            data = self._get(f"/name/{requests.utils.quote(name)}", fields)
        if not data:
            return None
        c = data[0] if isinstance(data, list) else data
        currencies = c.get("currencies") or {}
        cur_code = next(iter(currencies), None)
        cur_name = (currencies.get(cur_code) or {}).get("name") if cur_code else None
        return {
            "name": (c.get("name") or {}).get("common") or name,
            "capital": (c.get("capital") or [None])[0],
            "region": c.get("region"),
            "subregion": c.get("subregion"),
            "population": c.get("population"),
            "currency": f"{cur_name} ({cur_code})" if cur_name else cur_code,
            "languages": sorted((c.get("languages") or {}).values()),
            "cca2": c.get("cca2"),
        }
