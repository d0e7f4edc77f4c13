# =============================================================================
# tools/enhanced.py  —  Context-Driven Tool Adapters
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Wraps each basic tool for use inside a workflow.  An adapter adds:
#
#     can_handle(task)           keyword predicate the orchestrator uses to
#                                assign a subtask to a tool
#     build_arguments(ctx, task) pull the tool's arguments out of the
#                                subtask text, the original request and
#                                results earlier phases left in the context
#     execute(ctx, task)         build arguments, run the tool through the
#                                registry, store the tagged result under
#                                "result_<tool_name>" and return it
#
# DATA THREADING:
#   hotel_near_metro  check-in comes from the flight result's departure
#                     date when a flight result exists
#   route_planner     starts from the first hotel of the hotel result
#
# OVERRIDES:
#   A plain string stored in the context under a parameter name (for
#   example context.set("station", "静安寺")) wins over anything extracted.
#
# An adapter writes exactly one context key: its own result key.
# =============================================================================

import logging
import re
from datetime import date, timedelta
from typing import Any, Optional, Protocol

from core.context import WorkflowContext, classify_payload, result_key
from core.decomposition import TravelRequest, contains_any
from core.hotels import default_station
from core.models import FlightResult, HotelResult, ToolExecutionResult
from core.routes import default_attractions
from tools.base import Tool
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_ROUTE_PAIR = re.compile(r"从([^到]+)到([^的，,。；;\s]+)")
_STATION = re.compile(r"(?:靠近|临近|近|在)([一-鿿]{2,6}?)站")
_EXPRESSION = re.compile(r"[\d.\s+\-*/×÷()（）%]+")


class EnhancedTool(Protocol):
    name: str
    description: str

    def can_handle(self, task: str) -> bool:
        ...

    async def execute(self, context: WorkflowContext, task: str) -> ToolExecutionResult:
        ...


class ToolAdapter:
    """Base adapter: keyword matching plus registry execution."""

    keywords: tuple[str, ...] = ()

    def __init__(self, registry: ToolRegistry, tool_name: str):
        tool = registry.get(tool_name)
        if tool is None:
            raise ValueError(f"no tool named {tool_name!r} in the registry")
        self.registry = registry
        self.tool: Tool = tool

    @property
    def name(self) -> str:
        return self.tool.name

    @property
    def description(self) -> str:
        return self.tool.description

    def can_handle(self, task: str) -> bool:
        lowered = (task or "").lower()
        return contains_any(lowered, self.keywords) or self.name.lower() in lowered

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        return {}

    def build_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        arguments = self.extract_arguments(context, task)
        for parameter in self.tool.parameters:
            override = context.text_value(parameter)
            if override is not None:
                arguments[parameter] = override
        return arguments

    async def execute(self, context: WorkflowContext, task: str) -> ToolExecutionResult:
        arguments = self.build_arguments(context, task)
        logger.info("Running %s for %r with %s", self.name, task, arguments)
        result = await self.registry.run_tool(self.name, arguments)
        context.set(result_key(self.name), classify_payload(result.raw))
        return result

    @staticmethod
    def travel_request(context: WorkflowContext, task: str) -> TravelRequest:
        # The subtask names the route; the original request carries budget and days.
        return TravelRequest.parse(f"{task}，{context.user_request}")


class FlightSearchAdapter(ToolAdapter):
    keywords = ("机票", "航班", "飞机", "航空")

    def can_handle(self, task: str) -> bool:
        lowered = (task or "").lower()
        return super().can_handle(task) or ("从" in lowered and "到" in lowered)

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        params = self.travel_request(context, task)
        origin, destination = params.origin, params.destination
        for text in (task, context.user_request):
            match = _ROUTE_PAIR.search(text or "")
            if match:
                origin, destination = match.group(1).strip(), match.group(2).strip()
                break
        arguments = {"origin": origin, "destination": destination, "departure_date": params.departure_date}
        if params.return_date:
            arguments["return_date"] = params.return_date
        return arguments


class HotelNearMetroAdapter(ToolAdapter):
    keywords = ("酒店", "住宿", "旅馆", "宾馆")

    @staticmethod
    def check_in_date(context: WorkflowContext, fallback: str) -> str:
        flight = context.result_for("flight_search")
        if isinstance(flight, FlightResult):
            query = flight.data.get("query") or {}
            departure = query.get("departure_date")
            if isinstance(departure, str) and departure:
                return departure
        return fallback

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        params = self.travel_request(context, task)
        city = params.destination
        station = default_station(city)
        match = _STATION.search(context.user_request or "")
        if match and not match.group(1).endswith("地铁"):
            station = match.group(1)

        check_in = self.check_in_date(context, params.departure_date)
        try:
            check_out = (date.fromisoformat(check_in) + timedelta(days=params.nights)).isoformat()
        except ValueError:
            check_out = None
        arguments = {"city": city, "station": station, "check_in": check_in}
        if check_out:
            arguments["check_out"] = check_out
        return arguments


class RoutePlannerAdapter(ToolAdapter):
    keywords = ("路线", "行程", "规划", "景点", "游览")

    @staticmethod
    def first_hotel(context: WorkflowContext) -> Optional[str]:
        hotel = context.result_for("hotel_near_metro")
        if isinstance(hotel, HotelResult):
            hotels = hotel.data.get("hotels") or []
            if hotels and isinstance(hotels[0], dict) and hotels[0].get("name"):
                return hotels[0]["name"]
        return None

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        params = self.travel_request(context, task)
        arguments = {
            "city": params.destination,
            "attractions": default_attractions(params.destination),
            "days": params.days,
        }
        start = self.first_hotel(context)
        if start:
            arguments["start_location"] = start
        return arguments


class BudgetAnalyzerAdapter(ToolAdapter):
    keywords = ("预算", "花费", "费用", "元", "价格", "比较")

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        params = self.travel_request(context, task)
        return {
            "total_budget": params.budget,
            "days": params.days,
            "destination": params.destination,
            "departure_city": params.origin,
        }


class CalculatorAdapter(ToolAdapter):
    keywords = ("计算", "加", "减", "乘", "除")

    def extract_arguments(self, context: WorkflowContext, task: str) -> dict[str, Any]:
        for text in (task, context.user_request):
            candidates = [m.group(0).strip() for m in _EXPRESSION.finditer(text or "")]
            candidates = [c for c in candidates if re.search(r"\d", c) and re.search(r"[+\-*/×÷%]", c)]
            if candidates:
                return {"expression": max(candidates, key=len)}
        return {}


class CurrentTimeAdapter(ToolAdapter):
    keywords = ("时间", "几点", "日期")


_ADAPTERS = (
    ("flight_search", FlightSearchAdapter),
    ("hotel_near_metro", HotelNearMetroAdapter),
    ("route_planner", RoutePlannerAdapter),
    ("budget_analyzer", BudgetAnalyzerAdapter),
    ("calculator", CalculatorAdapter),
    ("get_current_time", CurrentTimeAdapter),
)


def enhanced_tools(registry: ToolRegistry) -> list[ToolAdapter]:
    """Adapters for every built-in tool present in ``registry``, in match order."""
    return [adapter(registry, name) for name, adapter in _ADAPTERS if name in registry]
