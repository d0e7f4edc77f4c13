# =============================================================================
# tools/builtin.py  —  The Six Built-in Tools
# =============================================================================
#
# Each tool is a thin wrapper around a core/ function: it validates and
# coerces the model's arguments, calls core logic, and returns JSON text.
#
#   flight_search      core/flights.py     origin, destination, departure_date
#   hotel_near_metro   core/hotels.py      city, station
#   route_planner      core/routes.py      city, attractions
#   budget_analyzer    core/budget.py      total_budget, days, destination
#   calculator         core/calculator.py  expression
#   get_current_time   -                   (no arguments)
#
# Providers are resolved on first use (get_map_provider / get_flight_provider)
# unless one is injected, so a missing API key surfaces as a tool error
# rather than a startup crash.
# =============================================================================

import json
from datetime import datetime
from typing import Any, Optional

from core.budget import TRAVEL_TYPES, analyze_budget
from core.calculator import evaluate, format_number
from core.flights import TRAVEL_CLASSES, FlightProvider, get_flight_provider, search_flights
from core.hotels import (
    DEFAULT_MAX_RESULTS,
    DEFAULT_MAX_WALK_MINUTES,
    DEFAULT_RADIUS_METERS,
    find_hotels_near_metro,
)
from core.maps import TRAVEL_MODES, MapProvider, get_map_provider
from core.routes import plan_route
from tools.base import Tool
from tools.console import log_request, log_response, log_status

_WEEKDAYS = ("星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日")


def _dumps(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _as_int(arguments: dict, key: str, default: int) -> int:
    value = arguments.get(key)
    if value in (None, ""):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer, got {value!r}") from exc


def _as_float(arguments: dict, key: str) -> float:
    value = arguments.get(key)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc


def _as_str(arguments: dict, key: str, default: str = "") -> str:
    value = arguments.get(key)
    return str(value).strip() if value not in (None, "") else default


def _as_list(arguments: dict, key: str) -> list[str]:
    value = arguments.get(key)
    if isinstance(value, str):
        parts = value.replace("，", ",").replace("、", ",").split(",")
        return [p.strip() for p in parts if p.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


class _ValidatingTool(Tool):
    def check_required(self, arguments: dict[str, Any]) -> None:
        missing = self.missing_arguments(arguments)
        if missing:
            raise ValueError(f"{self.name} 缺少必填参数: {', '.join(missing)}")


# =============================================================================
# TOOL 1: flight_search
# =============================================================================
class FlightSearchTool(_ValidatingTool):
    name = "flight_search"
    description = "搜索指定日期和城市间的航班信息，支持单程和往返查询"
    parameters = {
        "origin": {"type": "string", "description": "出发城市或机场代码 (如: PEK, 北京)"},
        "destination": {"type": "string", "description": "目的地城市或机场代码 (如: SHA, 上海)"},
        "departure_date": {"type": "string", "description": "出发日期 (格式: YYYY-MM-DD)"},
        "return_date": {"type": "string", "description": "返程日期 (格式: YYYY-MM-DD, 可选)"},
        "adults": {"type": "integer", "description": "成人数量", "default": 1},
        "children": {"type": "integer", "description": "儿童数量 (2-11岁)", "default": 0},
        "travel_class": {
            "type": "string",
            "description": "舱位等级",
            "enum": list(TRAVEL_CLASSES),
            "default": "ECONOMY",
        },
        "max_results": {"type": "integer", "description": "最大结果数", "default": 5},
        "currency": {"type": "string", "description": "货币代码", "default": "CNY"},
    }
    required = ("origin", "destination", "departure_date")

    def __init__(self, provider: Optional[FlightProvider] = None):
        self._provider = provider

    async def execute(self, arguments: dict[str, Any]) -> str:
        self.check_required(arguments)
        log_request(self.name, **arguments)
        provider = self._provider or get_flight_provider()
        result = await search_flights(
            provider,
            origin=_as_str(arguments, "origin"),
            destination=_as_str(arguments, "destination"),
            departure_date=_as_str(arguments, "departure_date"),
            return_date=_as_str(arguments, "return_date") or None,
            adults=_as_int(arguments, "adults", 1),
            children=_as_int(arguments, "children", 0),
            travel_class=_as_str(arguments, "travel_class", "ECONOMY").upper(),
            max_results=_as_int(arguments, "max_results", 5),
            currency=_as_str(arguments, "currency", "CNY"),
        )
        if result.get("ok"):
            log_status(f"Found {result['flight_count']} flights")
        return _dumps(log_response(self.name, result))


# =============================================================================
# TOOL 2: hotel_near_metro
# =============================================================================
class HotelNearMetroTool(_ValidatingTool):
    name = "hotel_near_metro"
    description = "按地铁站筛选步行N分钟内的酒店，返回步行时间和大致距离。"
    parameters = {
        "city": {"type": "string", "description": "城市名"},
        "station": {"type": "string", "description": "地铁站名"},
        "maxWalkMinutes": {"type": "integer", "description": "最大步行分钟数", "default": DEFAULT_MAX_WALK_MINUTES},
        "radiusMeters": {"type": "integer", "description": "搜索半径（米）", "default": DEFAULT_RADIUS_METERS},
        "maxResults": {"type": "integer", "description": "最多返回酒店数量", "default": DEFAULT_MAX_RESULTS},
        "check_in": {"type": "string", "description": "入住日期 (YYYY-MM-DD, 可选)"},
        "check_out": {"type": "string", "description": "退房日期 (YYYY-MM-DD, 可选)"},
    }
    required = ("city", "station")

    def __init__(self, provider: Optional[MapProvider] = None):
        self._provider = provider

    async def execute(self, arguments: dict[str, Any]) -> str:
        self.check_required(arguments)
        log_request(self.name, **arguments)
        provider = self._provider or get_map_provider()
        result = await find_hotels_near_metro(
            provider,
            city=_as_str(arguments, "city"),
            station=_as_str(arguments, "station"),
            max_walk_minutes=_as_int(arguments, "maxWalkMinutes", DEFAULT_MAX_WALK_MINUTES),
            radius_meters=_as_int(arguments, "radiusMeters", DEFAULT_RADIUS_METERS),
            max_results=_as_int(arguments, "maxResults", DEFAULT_MAX_RESULTS),
        )
        for key in ("check_in", "check_out"):
            if _as_str(arguments, key):
                result[key] = _as_str(arguments, key)
        log_status(f"{len(result['hotels'])} hotels within {result['maxWalkMinutes']} min walk")
        return _dumps(log_response(self.name, result))


# =============================================================================
# TOOL 3: route_planner
# =============================================================================
class RoutePlannerTool(_ValidatingTool):
    name = "route_planner"
    description = "规划多景点最优游览顺序，支持步行、驾车、公交等方式"
    parameters = {
        "city": {"type": "string", "description": "城市名"},
        "attractions": {"type": "array", "description": "景点列表", "items": {"type": "string"}},
        "start_location": {"type": "string", "description": "起点（酒店名或地铁站）", "default": ""},
        "transport_mode": {
            "type": "string",
            "description": "交通方式",
            "enum": list(TRAVEL_MODES),
            "default": "transit",
        },
        "optimize_for": {"type": "string", "description": "优化目标", "enum": ["time", "distance"], "default": "time"},
        "days": {"type": "integer", "description": "游览天数（可选，用于按天拆分）"},
    }
    required = ("city", "attractions")

    def __init__(self, provider: Optional[MapProvider] = None):
        self._provider = provider

    async def execute(self, arguments: dict[str, Any]) -> str:
        self.check_required(arguments)
        attractions = _as_list(arguments, "attractions")
        if not attractions:
            raise ValueError("attractions must list at least one place")
        log_request(self.name, **arguments)
        provider = self._provider or get_map_provider()
        days = _as_int(arguments, "days", 0)
        result = await plan_route(
            provider,
            city=_as_str(arguments, "city"),
            attractions=attractions,
            start_location=_as_str(arguments, "start_location"),
            transport_mode=_as_str(arguments, "transport_mode", "transit").lower(),
            optimize_for=_as_str(arguments, "optimize_for", "time").lower(),
            days=days or None,
        )
        log_status(f"Route: {' → '.join(result['optimized_route'])}")
        return _dumps(log_response(self.name, result))


# =============================================================================
# TOOL 4: budget_analyzer
# =============================================================================
class BudgetAnalyzerTool(_ValidatingTool):
    name = "budget_analyzer"
    description = "分析旅行预算：按目的地消费水平和旅行类型给出分项预算、每日预算、风险评估和省钱建议"
    parameters = {
        "total_budget": {"type": "number", "description": "总预算（人民币）"},
        "days": {"type": "integer", "description": "旅行天数"},
        "destination": {"type": "string", "description": "目的地"},
        "travel_type": {
            "type": "string",
            "description": "旅行类型",
            "enum": list(TRAVEL_TYPES),
            "default": "comfort",
        },
        "travelers": {"type": "integer", "description": "出行人数", "default": 1},
        "departure_city": {"type": "string", "description": "出发城市", "default": "上海"},
    }
    required = ("total_budget", "days", "destination")

    async def execute(self, arguments: dict[str, Any]) -> str:
        self.check_required(arguments)
        log_request(self.name, **arguments)
        result = analyze_budget(
            total_budget=_as_float(arguments, "total_budget"),
            days=_as_int(arguments, "days", 0),
            destination=_as_str(arguments, "destination"),
            travel_type=_as_str(arguments, "travel_type", "comfort").lower(),
            travelers=_as_int(arguments, "travelers", 1),
            departure_city=_as_str(arguments, "departure_city", "上海"),
        )
        log_status(f"Risk level: {result['risk_assessment']['risk_level']}")
        return _dumps(log_response(self.name, result))


# =============================================================================
# TOOL 5: calculator
# =============================================================================
class CalculatorTool(_ValidatingTool):
    name = "calculator"
    description = "计算算术表达式，支持 + - * / // % ** 和括号"
    parameters = {
        "expression": {"type": "string", "description": "要计算的表达式，如 (1200+800)*2/3"},
    }
    required = ("expression",)

    async def execute(self, arguments: dict[str, Any]) -> str:
        self.check_required(arguments)
        expression = _as_str(arguments, "expression")
        log_request(self.name, expression=expression)
        value = evaluate(expression)
        result = {"ok": True, "tool": self.name, "expression": expression, "value": value,
                  "display": format_number(value)}
        return _dumps(log_response(self.name, result))


# =============================================================================
# TOOL 6: get_current_time
# =============================================================================
class CurrentTimeTool(Tool):
    name = "get_current_time"
    description = "获取当前日期和时间"
    parameters: dict[str, dict] = {}

    async def execute(self, arguments: dict[str, Any]) -> str:
        log_request(self.name)
        now = datetime.now().astimezone()
        display = f"{now.year}年{now.month}月{now.day}日 {_WEEKDAYS[now.weekday()]} {now:%H:%M}"
        result = {"ok": True, "tool": self.name, "display": display, "iso8601": now.isoformat()}
        return _dumps(log_response(self.name, result))


def builtin_tools(
    map_provider: Optional[MapProvider] = None,
    flight_provider: Optional[FlightProvider] = None,
) -> list[Tool]:
    return [
        FlightSearchTool(flight_provider),
        HotelNearMetroTool(map_provider),
        RoutePlannerTool(map_provider),
        BudgetAnalyzerTool(),
        CalculatorTool(),
        CurrentTimeTool(),
    ]
