# =============================================================================
# core/routes.py  —  Multi-Attraction Route Planning
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Orders a list of attractions into a visiting sequence and builds a
#   step-by-step itinerary for it.
#
# THE ALGORITHM (greedy nearest neighbour):
#   1. Geocode every waypoint concurrently.  A place that cannot be found
#      is dropped with a warning; the rest still get planned.
#   2. Start at the first waypoint (the start location when one is given).
#   3. From the current point, evaluate the cost to every unvisited point
#      at the same time (asyncio.gather), pick the cheapest, move there.
#   4. Repeat until nothing is left.
#
#   Cost is travel time in seconds for the chosen mode, or great-circle
#   metres when optimize_for="distance".  An unreachable leg costs
#   infinity; it is only taken when every remaining leg is unreachable.
#   Equal costs go to the candidate listed first.
#
#   O(n²) provider calls; an approximation of the travelling-salesman
#   ordering, fine for the handful of stops one day holds.
# =============================================================================

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from core.maps import TRAVEL_MODES, MapProvider, haversine_m
from core.models import LocationInfo

logger = logging.getLogger(__name__)

STAY_MINUTES = 75
SUGGESTED_DURATION = "60-90分钟"
DAY_START = "09:00"

DEFAULT_ATTRACTIONS: dict[str, list[str]] = {
    "北京": ["故宫", "天坛", "颐和园", "南锣鼓巷"],
    "上海": ["外滩", "豫园", "东方明珠", "南京路步行街"],
    "广州": ["广州塔", "陈家祠", "沙面", "北京路步行街"],
    "深圳": ["世界之窗", "深圳湾公园", "东门老街"],
    "成都": ["宽窄巷子", "武侯祠", "锦里", "大熊猫繁育研究基地"],
    "重庆": ["洪崖洞", "解放碑", "磁器口古镇", "长江索道"],
    "杭州": ["西湖", "灵隐寺", "河坊街", "西溪湿地"],
    "南京": ["中山陵", "夫子庙", "玄武湖", "南京博物院"],
    "西安": ["钟楼", "大雁塔", "回民街", "城墙"],
    "厦门": ["鼓浪屿", "南普陀寺", "厦门大学", "曾厝垵"],
    "东京": ["浅草寺", "东京塔", "涩谷", "上野公园"],
}

_MODE_LABELS = {"walking": "步行", "driving": "驾车", "transit": "公共交通"}
_MODE_SUGGESTIONS = {
    "walking": "建议穿舒适的鞋子",
    "driving": "注意停车位置",
    "transit": "建议使用地铁+步行组合",
}
_MODE_TIPS = {
    "walking": ["建议穿舒适的步行鞋", "携带充足的水"],
    "transit": ["建议购买一日交通卡", "避开早晚高峰时段"],
    "driving": ["注意停车场位置", "预留停车费预算"],
}


def default_attractions(city: str) -> list[str]:
    return list(DEFAULT_ATTRACTIONS.get(city, [f"{city}博物馆", f"{city}老城区", f"{city}公园"]))


@dataclass(frozen=True)
class Leg:
    origin: LocationInfo
    dest: LocationInfo
    cost: float


async def geocode_all(provider: MapProvider, city: str, places: list[str]) -> list[LocationInfo]:
    """Coordinates for every place, in input order; failures are skipped."""
    names = [p for p in places if p and p.strip()]
    results = await asyncio.gather(
        *(provider.geocode_poi(city, name) for name in names),
        return_exceptions=True,
    )
    locations = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            logger.warning("Cannot locate %s in %s: %s", name, city, result)
            continue
        locations.append(LocationInfo(name=name, lng=result.lng, lat=result.lat))
    return locations


async def leg_cost(
    provider: MapProvider,
    origin: LocationInfo,
    dest: LocationInfo,
    mode: str,
    city: str,
    optimize_for: str = "time",
) -> float:
    """Cost of one leg; ``inf`` when it cannot be travelled."""
    if mode not in TRAVEL_MODES:
        return math.inf
    if optimize_for == "distance":
        return haversine_m(origin, dest)
    try:
        return float(await provider.travel_seconds(mode, origin, dest, city))
    except Exception as exc:
        logger.warning("No %s route %s → %s: %s", mode, origin.name, dest.name, exc)
        return math.inf


async def greedy_route(
    provider: MapProvider,
    locations: list[LocationInfo],
    mode: str,
    city: str,
    optimize_for: str = "time",
) -> tuple[list[LocationInfo], list[Leg]]:
    """Nearest-neighbour ordering starting from ``locations[0]``."""
    if len(locations) < 2:
        return list(locations), []

    route = [locations[0]]
    unvisited = list(locations[1:])
    legs: list[Leg] = []

    while unvisited:
        current = route[-1]
        costs = await asyncio.gather(
            *(leg_cost(provider, current, candidate, mode, city, optimize_for) for candidate in unvisited)
        )
        best_index, best_cost = 0, math.inf
        for index, cost in enumerate(costs):
            if cost < best_cost:
                best_index, best_cost = index, cost
        chosen = unvisited.pop(best_index)
        legs.append(Leg(current, chosen, best_cost))
        route.append(chosen)

    return route, legs


def _leg_info(leg: Leg, mode: str, optimize_for: str) -> dict:
    label = _MODE_LABELS.get(mode, mode)
    distance = int(haversine_m(leg.origin, leg.dest))
    if math.isinf(leg.cost):
        duration = "未知"
    elif optimize_for == "distance":
        duration = "—"
    else:
        duration = f"{int(leg.cost) // 60}分钟"
    info = {"duration": duration, "distance": f"约{distance}米", "transport": label}
    if mode in _MODE_SUGGESTIONS:
        info["suggestion"] = _MODE_SUGGESTIONS[mode]
    return info


def build_itinerary(
    route: list[LocationInfo],
    legs: list[Leg],
    mode: str,
    optimize_for: str = "time",
    start_time: str = DAY_START,
) -> list[dict]:
    clock = datetime.strptime(start_time, "%H:%M")
    steps = []
    for index, stop in enumerate(route):
        step = {
            "step": index + 1,
            "location": stop.name,
            "coordinates": stop.coordinates,
            "arrival_time": clock.strftime("%H:%M"),
            "suggested_duration": SUGGESTED_DURATION,
        }
        if index < len(legs):
            leg = legs[index]
            step["next_destination"] = leg.dest.name
            step["route_info"] = _leg_info(leg, mode, optimize_for)
            travel_minutes = 30 if math.isinf(leg.cost) or optimize_for == "distance" else leg.cost / 60
            clock += timedelta(minutes=STAY_MINUTES + travel_minutes)
        steps.append(step)
    return steps


def _format_minutes(minutes: float) -> str:
    total = int(round(minutes))
    return f"{total // 60}小时{total % 60}分钟"


def split_days(route: list[LocationInfo], days: int) -> list[dict]:
    per_day = max(1, math.ceil(len(route) / max(days, 1)))
    return [
        {"day": number, "stops": [stop.name for stop in route[start:start + per_day]]}
        for number, start in enumerate(range(0, len(route), per_day), start=1)
    ]


async def plan_route(
    provider: MapProvider,
    city: str,
    attractions: list[str],
    start_location: str = "",
    transport_mode: str = "transit",
    optimize_for: str = "time",
    days: Optional[int] = None,
) -> dict:
    """Plan a visiting order for ``attractions`` in ``city``."""
    places = ([start_location] if start_location else []) + list(attractions)
    locations = await geocode_all(provider, city, places)
    route, legs = await greedy_route(provider, locations, transport_mode, city, optimize_for)
    itinerary = build_itinerary(route, legs, transport_mode, optimize_for)

    travel_minutes = sum(
        (30 if math.isinf(leg.cost) or optimize_for == "distance" else leg.cost / 60) for leg in legs
    )
    distance_km = sum(haversine_m(leg.origin, leg.dest) for leg in legs) / 1000

    recommendations = list(_MODE_TIPS.get(transport_mode, []))
    if len(route) > 4:
        recommendations.append("景点较多，建议分两天游览")
    if any(math.isinf(leg.cost) for leg in legs):
        recommendations.append("部分路段无法规划，请预留额外交通时间")

    result = {
        "city": city,
        "transport_mode": transport_mode,
        "optimize_for": optimize_for,
        "optimized_route": [stop.name for stop in route],
        "total_duration": _format_minutes(len(route) * STAY_MINUTES + travel_minutes),
        "total_distance": f"约{distance_km:.1f}公里",
        "detailed_itinerary": itinerary,
        "recommendations": recommendations,
    }
    if days:
        # The start point is where each day begins, not a stop to visit.
        starts_at_origin = bool(start_location) and bool(route) and route[0].name == start_location
        result["daily_plan"] = split_days(route[1:] if starts_at_origin else route, days)
    return result
