# =============================================================================
# tools/mcp_server.py  —  FastMCP Tool Server
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Serves the six built-in tools over MCP so any MCP client (an IDE, a
#   desktop assistant, another agent) can call them.  Each MCP tool is a
#   thin wrapper that forwards to the same ToolRegistry the agent uses, so
#   both paths share validation, normalization and logging.
#
# RUNNING THIS SERVER:
#   python -m tools.mcp_server          (stdio transport)
#
# Logging goes to STDERR: STDOUT carries the MCP protocol stream.
# =============================================================================

import json
import logging
import sys
from typing import Optional

from fastmcp import FastMCP

from tools.registry import ToolRegistry, default_registry

mcp = FastMCP("travel-master-tools")

_registry: Optional[ToolRegistry] = None


def get_registry() -> ToolRegistry:
    global _registry
    if _registry is None:
        _registry = default_registry()
    return _registry


async def _call(name: str, arguments: dict) -> dict:
    """Run a registry tool and hand MCP a dict (errors included)."""
    arguments = {k: v for k, v in arguments.items() if v is not None}
    result = await get_registry().run_tool(name, arguments)
    if result.data:
        return result.data
    return json.loads(result.raw)


# =============================================================================
# TOOL 1: flight_search
# =============================================================================
@mcp.tool()
async def flight_search(
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
    """Search flight offers between two cities.

    WHEN TO CALL THIS: the traveller needs to get to the destination by
    air, or asks about tickets, prices or schedules.

    Args:
        origin: Departure city or IATA code (e.g. "北京", "PEK").
        destination: Arrival city or IATA code (e.g. "上海", "SHA").
        departure_date: YYYY-MM-DD.
        return_date: YYYY-MM-DD for a round trip.
        travel_class: ECONOMY, PREMIUM_ECONOMY, BUSINESS or FIRST.

    Returns:
        {ok, query, flight_count, flights[...], is_round_trip, currency},
        or {ok: false, error, query} when the search failed.
    """
    return await _call("flight_search", locals())


# =============================================================================
# TOOL 2: hotel_near_metro
# =============================================================================
@mcp.tool()
async def hotel_near_metro(
    city: str,
    station: str,
    maxWalkMinutes: int = 5,
    radiusMeters: int = 600,
    maxResults: int = 10,
    check_in: Optional[str] = None,
    check_out: Optional[str] = None,
) -> dict:
    """Find hotels within a short walk of a metro station.

    Returns:
        {station{city,name,location}, maxWalkMinutes,
         hotels[{name, address, location, walkMinutes, approxDistanceM}]}
        sorted by walking time.
    """
    return await _call("hotel_near_metro", locals())


# =============================================================================
# TOOL 3: route_planner
# =============================================================================
@mcp.tool()
async def route_planner(
    city: str,
    attractions: list[str],
    start_location: str = "",
    transport_mode: str = "transit",
    optimize_for: str = "time",
    days: Optional[int] = None,
) -> dict:
    """Order attractions into an efficient visiting sequence.

    Uses a greedy nearest-neighbour heuristic over travel times for the
    chosen transport mode (walking, driving or transit).
    """
    return await _call("route_planner", locals())


# =============================================================================
# TOOL 4: budget_analyzer
# =============================================================================
@mcp.tool()
async def budget_analyzer(
    total_budget: float,
    days: int,
    destination: str,
    travel_type: str = "comfort",
    travelers: int = 1,
    departure_city: str = "上海",
) -> dict:
    """Split a trip budget into categories and assess how realistic it is."""
    return await _call("budget_analyzer", locals())


# =============================================================================
# TOOLS 5-6: calculator, get_current_time
# =============================================================================
@mcp.tool()
async def calculator(expression: str) -> dict:
    """Evaluate an arithmetic expression such as "(1200+800)*2/3"."""
    return await _call("calculator", locals())


@mcp.tool()
async def get_current_time() -> dict:
    """Current local date and time."""
    return await _call("get_current_time", {})


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [MCP] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    mcp.run()
