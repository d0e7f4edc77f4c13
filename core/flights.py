# =============================================================================
# core/flights.py  —  Flight Offer Search
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Resolves city names to IATA codes, searches flight offers and reshapes
#   them into the compact form the agent reasons over:
#
#     {ok, tool, query, flight_count, is_round_trip, currency,
#      flights: [{id, price{total,currency}, cabin_class,
#                 segments: [{departure{airport,time}, arrival{...},
#                             airline, flight_number, duration}]}]}
#
#   A provider failure does not raise: it comes back as
#     {ok: false, tool, error, query}
#   so the workflow can record it and keep going.
#
# TWO PROVIDERS, ONE INTERFACE:
#   USE_LIVE_FLIGHTS=true   → AmadeusFlightProvider (flight-offers API,
#                             needs AMADEUS_API_KEY / AMADEUS_API_SECRET)
#   USE_LIVE_FLIGHTS=false  → MockFlightProvider (deterministic, offline)
#
#   Both return raw offers in the Amadeus response shape, so the same
#   reshaping code handles either.
# =============================================================================

import asyncio
import hashlib
import logging
import os
import random
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from core.errors import ConfigurationError, InvalidResponse, TravelAgentError
from core.http import request_json

logger = logging.getLogger(__name__)

TOOL_NAME = "flight_search"
TRAVEL_CLASSES = ("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST")

CITY_CODES: dict[str, str] = {
    # Domestic
    "北京": "PEK", "上海": "SHA", "广州": "CAN", "深圳": "SZX", "成都": "CTU",
    "重庆": "CKG", "杭州": "HGH", "南京": "NKG", "西安": "XIY", "长沙": "CSX",
    "武汉": "WUH", "厦门": "XMN", "青岛": "TAO", "大连": "DLC", "天津": "TSN",
    "三亚": "SYX", "昆明": "KMG", "郑州": "CGO", "哈尔滨": "HRB",
    # International
    "东京": "HND", "大阪": "KIX", "首尔": "ICN", "香港": "HKG", "台北": "TPE",
    "新加坡": "SIN", "曼谷": "BKK", "吉隆坡": "KUL", "纽约": "JFK", "洛杉矶": "LAX",
    "伦敦": "LHR", "巴黎": "CDG", "悉尼": "SYD",
    # English names
    "beijing": "PEK", "shanghai": "SHA", "guangzhou": "CAN", "shenzhen": "SZX",
    "chengdu": "CTU", "hangzhou": "HGH", "xian": "XIY", "tokyo": "HND",
    "osaka": "KIX", "seoul": "ICN", "hong kong": "HKG", "singapore": "SIN",
    "bangkok": "BKK", "new york": "JFK", "los angeles": "LAX", "london": "LHR",
    "paris": "CDG", "sydney": "SYD",
}

_AIRLINES = (("CA", 1300), ("MU", 5100), ("CZ", 3500), ("HU", 7600), ("FM", 9200), ("9C", 8800))
_CLASS_MULTIPLIER = {"ECONOMY": 1.0, "PREMIUM_ECONOMY": 1.5, "BUSINESS": 3.0, "FIRST": 5.0}


def is_iata_code(code: str) -> bool:
    return len(code) == 3 and code.isalpha() and code.isupper()


def city_code(name: str) -> Optional[str]:
    key = name.strip()
    return CITY_CODES.get(key) or CITY_CODES.get(key.lower())


@dataclass(frozen=True)
class FlightQuery:
    origin_code: str
    destination_code: str
    departure_date: str
    return_date: Optional[str] = None
    adults: int = 1
    children: int = 0
    travel_class: str = "ECONOMY"
    max_results: int = 5
    currency: str = "CNY"


class FlightProvider(Protocol):
    async def lookup_airport(self, keyword: str) -> Optional[str]:
        ...

    async def search_offers(self, query: FlightQuery) -> list[dict]:
        ...


# =============================================================================
# MOCK PROVIDER
# =============================================================================
class MockFlightProvider:
    """Deterministic offers seeded by route and date."""

    async def lookup_airport(self, keyword: str) -> Optional[str]:
        letters = "".join(ch for ch in keyword.upper() if "A" <= ch <= "Z")
        return letters[:3] if len(letters) >= 3 else None

    @staticmethod
    def _leg(rng: random.Random, origin: str, dest: str, day: str, airline: tuple) -> dict:
        depart = datetime.strptime(day, "%Y-%m-%d") + timedelta(hours=rng.choice((7, 8, 10, 13, 16, 19, 21)),
                                                                 minutes=rng.choice((0, 15, 30, 45)))
        minutes = rng.randint(110, 230)
        arrive = depart + timedelta(minutes=minutes)
        return {
            "departure": {"iataCode": origin, "at": depart.isoformat()},
            "arrival": {"iataCode": dest, "at": arrive.isoformat()},
            "carrierCode": airline[0],
            "number": str(airline[1] + rng.randint(1, 99)),
            "duration": f"PT{minutes // 60}H{minutes % 60}M",
        }

    async def search_offers(self, query: FlightQuery) -> list[dict]:
        try:
            datetime.strptime(query.departure_date, "%Y-%m-%d")
            if query.return_date:
                datetime.strptime(query.return_date, "%Y-%m-%d")
        except ValueError as exc:
            raise InvalidResponse(f"日期格式应为 YYYY-MM-DD: {exc}") from exc

        seed = hashlib.md5(
            f"{query.origin_code}-{query.destination_code}-{query.departure_date}".encode()
        ).hexdigest()
        rng = random.Random(int(seed[:8], 16))
        passengers = query.adults + query.children * 0.75
        multiplier = _CLASS_MULTIPLIER.get(query.travel_class, 1.0)

        offers = []
        for index in range(min(query.max_results, len(_AIRLINES))):
            airline = _AIRLINES[(index + int(seed[8:10], 16)) % len(_AIRLINES)]
            itineraries = [{"segments": [self._leg(rng, query.origin_code, query.destination_code,
                                                   query.departure_date, airline)]}]
            base = rng.randint(480, 1480)
            if query.return_date:
                itineraries.append({"segments": [self._leg(rng, query.destination_code, query.origin_code,
                                                           query.return_date, airline)]})
                base = int(base * 1.9)
            offers.append({
                "id": str(index + 1),
                "price": {"total": f"{base * multiplier * passengers:.2f}", "currency": query.currency},
                "itineraries": itineraries,
                "travelerPricings": [{"fareDetailsBySegment": [{"cabin": query.travel_class}]}],
            })
        offers.sort(key=lambda offer: float(offer["price"]["total"]))
        return offers


# =============================================================================
# LIVE PROVIDER: Amadeus flight-offers API
# =============================================================================
class AmadeusFlightProvider:
    """Amadeus self-service APIs with a cached client-credentials token."""

    def __init__(self, api_key: str, api_secret: str, environment: str = "test", timeout: float = 15):
        if not api_key or not api_secret:
            raise ConfigurationError("AMADEUS_API_KEY / AMADEUS_API_SECRET are not set")
        self.api_key = api_key
        self.api_secret = api_secret
        host = "test.api.amadeus.com" if environment == "test" else "api.amadeus.com"
        self.host = f"https://{host}"
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._token_lock = asyncio.Lock()

    async def _access_token(self) -> str:
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expiry - 60:
                return self._token
            payload = await asyncio.to_thread(
                request_json,
                f"{self.host}/v1/security/oauth2/token",
                form={
                    "grant_type": "client_credentials",
                    "client_id": self.api_key,
                    "client_secret": self.api_secret,
                },
                timeout=self.timeout,
            )
            token = payload.get("access_token") if isinstance(payload, dict) else None
            if not token:
                raise InvalidResponse("Amadeus authentication returned no access_token")
            self._token = token
            self._token_expiry = time.monotonic() + int(payload.get("expires_in", 1799))
            return token

    async def _get(self, path: str, params: dict) -> dict:
        token = await self._access_token()
        payload = await asyncio.to_thread(
            request_json,
            f"{self.host}{path}",
            params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if not isinstance(payload, dict):
            raise InvalidResponse(f"Amadeus {path} returned {type(payload).__name__}")
        return payload

    async def lookup_airport(self, keyword: str) -> Optional[str]:
        payload = await self._get(
            "/v1/reference-data/locations",
            {"subType": "AIRPORT,CITY", "keyword": keyword, "page[limit]": 1},
        )
        data = payload.get("data") or []
        return data[0].get("iataCode") if data else None

    async def search_offers(self, query: FlightQuery) -> list[dict]:
        params = {
            "originLocationCode": query.origin_code,
            "destinationLocationCode": query.destination_code,
            "departureDate": query.departure_date,
            "returnDate": query.return_date,
            "adults": query.adults,
            "children": query.children or None,
            "travelClass": query.travel_class,
            "max": query.max_results,
            "currencyCode": query.currency,
        }
        payload = await self._get("/v2/shopping/flight-offers", params)
        return payload.get("data") or []


def get_flight_provider() -> FlightProvider:
    """Mock or Amadeus, chosen by USE_LIVE_FLIGHTS."""
    use_live = os.environ.get("USE_LIVE_FLIGHTS", "false").lower() == "true"
    if use_live:
        logger.info("Using live Amadeus flight provider")
        return AmadeusFlightProvider(
            os.environ.get("AMADEUS_API_KEY", ""),
            os.environ.get("AMADEUS_API_SECRET", ""),
            os.environ.get("AMADEUS_ENV", "test"),
        )
    return MockFlightProvider()


# =============================================================================
# Search
# =============================================================================
def _display_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d %H:%M")
    except (TypeError, ValueError):
        return iso or ""


def simplify_offer(offer: dict) -> dict:
    """Amadeus offer → the compact flight record."""
    segments = []
    for itinerary in offer.get("itineraries") or []:
        for segment in itinerary.get("segments") or []:
            segments.append({
                "departure": {
                    "airport": (segment.get("departure") or {}).get("iataCode", ""),
                    "time": _display_time((segment.get("departure") or {}).get("at", "")),
                },
                "arrival": {
                    "airport": (segment.get("arrival") or {}).get("iataCode", ""),
                    "time": _display_time((segment.get("arrival") or {}).get("at", "")),
                },
                "airline": segment.get("carrierCode", ""),
                "flight_number": f"{segment.get('carrierCode', '')}{segment.get('number', '')}",
                "duration": segment.get("duration", ""),
            })
    price = offer.get("price") or {}
    record = {
        "id": offer.get("id", ""),
        "price": {"total": price.get("total"), "currency": price.get("currency")},
        "segments": segments,
    }
    pricings = offer.get("travelerPricings") or []
    fares = (pricings[0].get("fareDetailsBySegment") or []) if pricings else []
    if fares:
        record["cabin_class"] = fares[0].get("cabin")
    return record


async def resolve_code(provider: FlightProvider, place: str) -> str:
    """IATA code for a city name or code; local table first, then the provider."""
    if is_iata_code(place):
        return place
    code = city_code(place)
    if code:
        return code
    code = await provider.lookup_airport(place)
    if not code:
        raise ConfigurationError(f"无法确定机场代码: {place}")
    return code


async def search_flights(
    provider: FlightProvider,
    origin: str,
    destination: str,
    departure_date: str,
    return_date: Optional[str] = None,
    adults: int = 1,
    children: int = 0,
    travel_class: str = "ECONOMY",
    max_results: int = 5,
    currency: str = "CNY",
) -> dict:
    """Search flights and return the compact result (or an ok:false error)."""
    if not origin or not destination or not departure_date:
        raise ValueError("origin, destination and departure_date are required")

    error_query = {"origin": origin, "destination": destination, "departure_date": departure_date}
    try:
        origin_code = await resolve_code(provider, origin)
        destination_code = await resolve_code(provider, destination)
        query = FlightQuery(
            origin_code=origin_code,
            destination_code=destination_code,
            departure_date=departure_date,
            return_date=return_date or None,
            adults=adults,
            children=children,
            travel_class=travel_class if travel_class in TRAVEL_CLASSES else "ECONOMY",
            max_results=max_results,
            currency=currency,
        )
        offers = await provider.search_offers(query)
    except TravelAgentError as exc:
        logger.warning("Flight search %s → %s failed: %s", origin, destination, exc)
        return {"ok": False, "tool": TOOL_NAME, "error": str(exc), "query": error_query}

    flights = [simplify_offer(offer) for offer in offers[:max_results]]
    return {
        "ok": True,
        "tool": TOOL_NAME,
        "query": {
            "origin": origin,
            "origin_code": origin_code,
            "destination": destination,
            "destination_code": destination_code,
            "departure_date": departure_date,
            "return_date": return_date or "无",
            "adults": adults,
            "children": children,
            "travel_class": query.travel_class,
        },
        "flight_count": len(flights),
        "flights": flights,
        "is_round_trip": bool(return_date),
        "currency": currency,
    }
