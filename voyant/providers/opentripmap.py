from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from voyant import config
from voyant.providers.base import AttractionsProvider, ProviderError

DEFAULT_KINDS = (
    "interesting_places,cultural,historic,architecture,museums,fortifications,"
    "urban_environment,other_buildings_and_structures"
)
FAMILY_KINDS = "amusements,zoos,aquariums,theatres_and_entertainments,gardens_and_parks,museums,beaches"


class OpenTripMapProvider(AttractionsProvider):
    """
    OpenTripMap places around a point (needs OPENTRIPMAP_API_KEY).
    """

    BASE_URL = os.getenv("OPENTRIPMAP_BASE_URL", "https://api.opentripmap.com/0.1/en/places")

    def __init__(self, api_key: Optional[str] = None, timeout: int = config.HTTP_TIMEOUT_SEC):
        self.api_key = api_key or config.OPENTRIPMAP_API_KEY
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if not self.api_key:
            raise ProviderError("OPENTRIPMAP_API_KEY is not set")
        params = dict(params or {})
        params["apikey"] = self.api_key
        try:
            r = requests.get(f"{self.BASE_URL}{path}", params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(f"OpenTripMap request failed: {e}") from e
        if r.status_code >= 400:
            raise ProviderError(f"OpenTripMap error {r.status_code}: {r.text[:200]}")
        return r.json()

    def search_pois(self, latitude: float, longitude: float, kinds: str = DEFAULT_KINDS, limit: int = 10) -> list[dict]:
        data = self._get("/radius", {
            "lat": latitude,
            "lon": longitude,
            "radius": 5000,
            "format": "geojson",
            "limit": max(1, min(50, limit)),
            "kinds": kinds or DEFAULT_KINDS,
            "rate": 2,
        })
        out = []
        for f in (data or {}).get("features") or []:
            props = f.get("properties") or {}
            name = (props.get("name") or "").strip()
            if not name:
                continue
            out.append({
                "xid": props.get("xid"),
                "name": name,
                "kinds": props.get("kinds") or "",
                "rate": props.get("rate"),
            })
        return out
