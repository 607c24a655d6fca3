from typing import Dict, List, Optional

from amadeus import Client, ResponseError, Location

from voyant import config
from voyant.providers.base import FlightsProvider, ProviderError


class UnknownLocationError(ValueError):
    def __init__(self, field: str, query: str, suggestions: List[dict]):
        super().__init__(f"Unknown {field}: {query}")
        self.field = field
        self.query = query
        self.suggestions = suggestions


class AmadeusFlightsProvider(FlightsProvider):
    """
    Resolves origin/destination from free text with Airport & City Search,
    then calls Flight Offers Search.
    """

    def __init__(self, client: Optional[Client] = None, currency: str = "USD"):
        self.client = client or Client(
            client_id=config.AMADEUS_CLIENT_ID,
            client_secret=config.AMADEUS_CLIENT_SECRET,
            hostname=config.AMADEUS_HOSTNAME,
        )
        self.currency = currency
        # normalized text -> iata
        self._cache: Dict[str, str] = {}

    @staticmethod
    def _norm(s: str) -> str:
        return (s or "").strip().lower()

    def _search_locations(self, keyword: str, max_items: int = 6) -> List[dict]:
        """
        Returns list of candidates: [{name, iataCode, subType, countryCode, cityName}]
        """
        try:
            resp = self.client.reference_data.locations.get(keyword=keyword, subType=Location.ANY)
        except ResponseError:
            return []

        out = []
        for it in (resp.data or [])[: max_items * 2]:
            code = it.get("iataCode")
            if not code:
                continue
            address = it.get("address") or {}
            out.append({
                "name": it.get("name"),
                "iataCode": code,
                "subType": it.get("subType"),
                "countryCode": address.get("countryCode"),
                "cityName": address.get("cityName"),
            })

        # CITY before AIRPORT
        out.sort(key=lambda item: 1 if (item.get("subType") or "").upper() == "CITY" else 0, reverse=True)
        return out[:max_items]

    def resolve_to_iata(self, text: str, field: str) -> str:
        raw = (text or "").strip()
        if not raw:
            raise UnknownLocationError(field, text, [])

        if len(raw) == 3 and raw.isalpha() and raw.isupper():
            return raw

        key = self._norm(raw)
        if key in self._cache:
            return self._cache[key]

        # autocomplete behaves best on prefixes, so retry with the first 3 chars
        candidates = self._search_locations(raw)
        if not candidates and len(raw) >= 3:
            candidates = self._search_locations(raw[:3])
        if not candidates:
            raise UnknownLocationError(field, raw, [])

        code = candidates[0]["iataCode"].upper()
        self._cache[key] = code
        return code

    def search_flights(self, origin: str, destination: str, date_iso: str) -> list[dict]:
        o = self.resolve_to_iata(origin, "origin")
        d = self.resolve_to_iata(destination, "destination")

        try:
            resp = self.client.shopping.flight_offers_search.get(
                originLocationCode=o,
                destinationLocationCode=d,
                departureDate=date_iso,
                adults=1,
                currencyCode=self.currency,
                max=15,
            )
        except ResponseError as e:
            raise ProviderError(str(e)) from e

        out = []
        for off in resp.data or []:
            price = off.get("price", {}).get("grandTotal")
            if price is None:
                continue
            itineraries = off.get("itineraries", [])
            segments = itineraries[0].get("segments") if itineraries else []
            first = segments[0] if segments else {}
            last = segments[-1] if segments else {}
            carrier = first.get("carrierCode")
            number = first.get("number")
            out.append({
                "airline": carrier,
                "flight_no": f"{carrier}{number}" if carrier and number else None,
                "origin": o,
                "destination": d,
                "date": date_iso,
                "depart": first.get("departure", {}).get("at"),
                "arrive": last.get("arrival", {}).get("at"),
                "stops": max(0, len(segments) - 1),
                "price": float(price),
                "currency": self.currency,
            })

        return sorted(out, key=lambda x: x["price"])
