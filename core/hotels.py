# =============================================================================
# core/hotels.py  —  Hotels Within Walking Distance of a Metro Station
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   1. Geocodes the metro station.
#   2. Searches hotels within radius_meters of it.
#   3. Asks the map provider for the walking time to every hotel, all at
#      once (asyncio.gather), and keeps those within max_walk_minutes.
#   4. Returns them sorted by walking time, capped at max_results.
#
#   A hotel whose walking time cannot be computed is skipped; one bad
#   route never fails the whole search.
# =============================================================================

import asyncio
import logging
import math
from typing import Optional

from core.maps import MapProvider, parse_location
from core.models import HotelPOI, LocationInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_WALK_MINUTES = 5
DEFAULT_RADIUS_METERS = 600
DEFAULT_MAX_RESULTS = 10
SEARCH_LIMIT = 20

# Station used when a request names a city but no station.
DEFAULT_STATIONS: dict[str, str] = {
    "北京": "王府井",
    "上海": "人民广场",
    "广州": "体育西路",
    "深圳": "福田",
    "成都": "春熙路",
    "重庆": "解放碑",
    "杭州": "龙翔桥",
    "南京": "新街口",
    "西安": "钟楼",
    "武汉": "江汉路",
    "厦门": "中山公园",
    "青岛": "五四广场",
    "东京": "新宿",
}


def default_station(city: str) -> str:
    return DEFAULT_STATIONS.get(city, "市中心")


async def _walk_minutes(provider: MapProvider, origin: LocationInfo, hotel: HotelPOI, city: str) -> Optional[int]:
    coords = parse_location(hotel.location)
    if coords is None:
        return None
    target = LocationInfo(name=hotel.name, lng=coords[0], lat=coords[1])
    seconds = await provider.travel_seconds("walking", origin, target, city)
    return int(math.ceil(seconds / 60.0))


async def find_hotels_near_metro(
    provider: MapProvider,
    city: str,
    station: str,
    max_walk_minutes: int = DEFAULT_MAX_WALK_MINUTES,
    radius_meters: int = DEFAULT_RADIUS_METERS,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> dict:
    """Hotels reachable on foot from ``station`` within ``max_walk_minutes``.

    Returns:
        ``{station: {city, name, location}, maxWalkMinutes, hotels: [...]}``
        where each hotel is ``{name, address, location, walkMinutes,
        approxDistanceM}``.
    """
    origin = await provider.geocode_station(city, station)
    pois = await provider.search_hotels_around(origin, radius_meters, SEARCH_LIMIT)

    minutes = await asyncio.gather(
        *(_walk_minutes(provider, origin, poi, city) for poi in pois),
        return_exceptions=True,
    )

    hotels = []
    for poi, walk in zip(pois, minutes):
        if isinstance(walk, BaseException):
            logger.warning("Walking time to %s unavailable: %s", poi.name, walk)
            continue
        if walk is None or walk > max_walk_minutes:
            continue
        hotels.append({
            "name": poi.name,
            "address": poi.address,
            "location": poi.location,
            "walkMinutes": walk,
            "approxDistanceM": poi.distance or 0,
        })

    hotels.sort(key=lambda h: h["walkMinutes"])
    return {
        "station": {"city": city, "name": station, "location": origin.coordinates},
        "maxWalkMinutes": max_walk_minutes,
        "hotels": hotels[:max_results],
    }
