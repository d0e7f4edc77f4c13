# =============================================================================
# core/maps.py  —  Map Provider (geocoding, POI search, travel times)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Everything the hotel and route tools need from a mapping service:
#
#     geocode_station(city, station)      metro station → coordinates
#     geocode_poi(city, keyword)          any named place → coordinates
#     search_hotels_around(loc, r, n)     hotels within r metres
#     travel_seconds(mode, a, b, city)    walking / driving / transit time
#
# TWO PROVIDERS, ONE INTERFACE:
#   USE_LIVE_MAPS=true   → AMapProvider: the AMap (高德) web service,
#                          needs AMAP_API_KEY
#   USE_LIVE_MAPS=false  → MockMapProvider: deterministic, offline
#
#   The mock derives coordinates from an md5 of the place name around a
#   known city centre and computes travel times from great-circle distance,
#   so the same query always gets the same answer.
# =============================================================================

import asyncio
import hashlib
import logging
import math
import os
import random
from typing import Optional, Protocol

from core.errors import ConfigurationError, InvalidResponse, NetworkError
from core.http import request_json
from core.models import HotelPOI, LocationInfo

logger = logging.getLogger(__name__)

TRAVEL_MODES = ("walking", "driving", "transit")

_CITY_CENTRES: dict[str, tuple[float, float]] = {
    "北京": (116.397, 39.909),
    "上海": (121.473, 31.230),
    "广州": (113.264, 23.129),
    "深圳": (114.057, 22.543),
    "成都": (104.066, 30.573),
    "重庆": (106.551, 29.563),
    "杭州": (120.155, 30.274),
    "南京": (118.796, 32.060),
    "西安": (108.940, 34.341),
    "武汉": (114.305, 30.593),
    "厦门": (118.089, 24.479),
    "青岛": (120.383, 36.067),
    "三亚": (109.512, 18.252),
    "昆明": (102.833, 24.880),
    "东京": (139.692, 35.690),
}

_HOTEL_BRANDS = ("全季", "亚朵", "汉庭", "如家精选", "桔子水晶", "锦江之星", "维也纳", "希尔顿欢朋")


def haversine_m(a: LocationInfo, b: LocationInfo) -> float:
    """Great-circle distance in metres."""
    radius = 6371000.0
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dphi = phi2 - phi1
    dlmb = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * radius * math.asin(math.sqrt(h))


def parse_location(text: str) -> Optional[tuple[float, float]]:
    """'lng,lat' → (lng, lat), or None."""
    parts = (text or "").split(",")
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


class MapProvider(Protocol):
    async def geocode_station(self, city: str, station: str) -> LocationInfo:
        ...

    async def geocode_poi(self, city: str, keyword: str) -> LocationInfo:
        ...

    async def search_hotels_around(self, location: LocationInfo, radius: int, limit: int) -> list[HotelPOI]:
        ...

    async def travel_seconds(self, mode: str, origin: LocationInfo, dest: LocationInfo, city: str) -> int:
        ...


# =============================================================================
# MOCK PROVIDER
# =============================================================================
class MockMapProvider:
    """Deterministic offline map data."""

    WALK_SPEED = 1.25          # m/s
    DRIVE_SPEED = 8.0          # m/s, urban average
    DRIVE_OVERHEAD = 300       # s, parking and lights
    TRANSIT_SPEED = 5.0        # m/s
    TRANSIT_OVERHEAD = 600     # s, waiting and transfers

    @staticmethod
    def _seed(*parts: str) -> int:
        return int(hashlib.md5(":".join(parts).encode("utf-8")).hexdigest()[:8], 16)

    def _centre(self, city: str) -> tuple[float, float]:
        if city in _CITY_CENTRES:
            return _CITY_CENTRES[city]
        rng = random.Random(self._seed("city", city))
        return round(rng.uniform(100.0, 122.0), 6), round(rng.uniform(22.0, 40.0), 6)

    def _locate(self, city: str, name: str, spread: float) -> LocationInfo:
        lng, lat = self._centre(city)
        rng = random.Random(self._seed(city, name))
        return LocationInfo(
            name=name,
            lng=round(lng + rng.uniform(-spread, spread), 6),
            lat=round(lat + rng.uniform(-spread, spread), 6),
        )

    async def geocode_station(self, city: str, station: str) -> LocationInfo:
        return self._locate(city, f"{station}站", 0.05)

    async def geocode_poi(self, city: str, keyword: str) -> LocationInfo:
        return self._locate(city, keyword, 0.08)

    async def search_hotels_around(self, location: LocationInfo, radius: int, limit: int) -> list[HotelPOI]:
        rng = random.Random(self._seed("hotels", location.coordinates))
        count = min(limit, len(_HOTEL_BRANDS))
        hotels = []
        for index in range(count):
            # The first half sits well inside walking range.
            reach = radius * 0.5 if index < count // 2 else radius
            distance = rng.uniform(60, max(reach, 80))
            bearing = rng.uniform(0, 2 * math.pi)
            dlat = distance * math.cos(bearing) / 111320.0
            dlng = distance * math.sin(bearing) / (111320.0 * math.cos(math.radians(location.lat)))
            hotels.append(HotelPOI(
                name=f"{_HOTEL_BRANDS[index]}酒店({location.name}店)",
                location=f"{round(location.lng + dlng, 6)},{round(location.lat + dlat, 6)}",
                address=f"{location.name}附近{index + 1}号",
                distance=int(distance),
            ))
        hotels.sort(key=lambda h: h.distance or 0)
        return hotels

    async def travel_seconds(self, mode: str, origin: LocationInfo, dest: LocationInfo, city: str) -> int:
        distance = haversine_m(origin, dest)
        if mode == "walking":
            return int(math.ceil(distance / self.WALK_SPEED))
        if mode == "driving":
            return int(math.ceil(distance / self.DRIVE_SPEED)) + self.DRIVE_OVERHEAD
        if mode == "transit":
            return int(math.ceil(distance / self.TRANSIT_SPEED)) + self.TRANSIT_OVERHEAD
        raise ValueError(f"unknown transport mode: {mode}")


# =============================================================================
# LIVE PROVIDER: AMap web service
# =============================================================================
class AMapProvider:
    """AMap (高德) REST API v3.  Every call checks ``status == "1"``."""

    BASE_URL = "https://restapi.amap.com/v3"

    def __init__(self, api_key: str, timeout: float = 10):
        if not api_key:
            raise ConfigurationError("AMAP_API_KEY is not set")
        self.api_key = api_key
        self.timeout = timeout

    async def _get(self, path: str, **params) -> dict:
        params["key"] = self.api_key
        payload = await asyncio.to_thread(
            request_json, f"{self.BASE_URL}/{path}", params, timeout=self.timeout
        )
        if not isinstance(payload, dict):
            raise InvalidResponse(f"AMap {path} returned {type(payload).__name__}")
        if payload.get("status") != "1":
            raise NetworkError(f"AMap {path} failed: {payload.get('info', 'unknown error')}")
        return payload

    async def _first_poi(self, city: str, keyword: str, types: Optional[str] = None) -> LocationInfo:
        payload = await self._get(
            "place/text", keywords=keyword, city=city, citylimit="true",
            types=types, offset=1, page=1,
        )
        pois = payload.get("pois") or []
        parsed = parse_location(pois[0].get("location", "")) if pois else None
        if parsed is None:
            raise NetworkError(f"未找到地点：{keyword} in {city}")
        return LocationInfo(name=pois[0].get("name") or keyword, lng=parsed[0], lat=parsed[1])

    async def geocode_station(self, city: str, station: str) -> LocationInfo:
        return await self._first_poi(city, station, types="150500")

    async def geocode_poi(self, city: str, keyword: str) -> LocationInfo:
        return await self._first_poi(city, keyword)

    async def search_hotels_around(self, location: LocationInfo, radius: int, limit: int) -> list[HotelPOI]:
        payload = await self._get(
            "place/around", location=location.coordinates, radius=radius,
            types="1001", sortrule="distance", offset=min(limit, 50), page=1,
        )
        hotels = []
        for poi in payload.get("pois") or []:
            distance = poi.get("distance")
            address = poi.get("address")
            hotels.append(HotelPOI(
                name=poi.get("name", ""),
                location=poi.get("location", ""),
                address=address if isinstance(address, str) else "",
                distance=int(distance) if str(distance or "").isdigit() else None,
            ))
        return hotels

    async def travel_seconds(self, mode: str, origin: LocationInfo, dest: LocationInfo, city: str) -> int:
        if mode == "walking":
            payload = await self._get("direction/walking", origin=origin.coordinates, destination=dest.coordinates)
            paths = (payload.get("route") or {}).get("paths") or []
        elif mode == "driving":
            payload = await self._get("direction/driving", origin=origin.coordinates, destination=dest.coordinates)
            paths = (payload.get("route") or {}).get("paths") or []
        elif mode == "transit":
            payload = await self._get(
                "direction/transit/integrated",
                origin=origin.coordinates, destination=dest.coordinates, city=city,
            )
            paths = (payload.get("route") or {}).get("transits") or []
        else:
            raise ValueError(f"unknown transport mode: {mode}")
        try:
            return int(paths[0]["duration"])
        except (IndexError, KeyError, TypeError, ValueError) as exc:
            raise InvalidResponse(f"AMap {mode} route has no duration") from exc


# =============================================================================
# PUBLIC API: get_map_provider (dispatcher)
# =============================================================================
def get_map_provider() -> MapProvider:
    """Mock or AMap, chosen by USE_LIVE_MAPS."""
    use_live = os.environ.get("USE_LIVE_MAPS", "false").lower() == "true"
    if use_live:
        logger.info("Using live AMap provider")
        return AMapProvider(os.environ.get("AMAP_API_KEY", ""))
    return MockMapProvider()
