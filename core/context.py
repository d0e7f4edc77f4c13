# =============================================================================
# core/context.py  —  Workflow Context (per-request scratch space)
# =============================================================================
#
# One WorkflowContext exists per complex request.  Every tool that runs on
# its behalf writes exactly one key, "result_<tool_name>", so tools running
# side by side in the same phase never touch the same entry and no lock is
# needed.
#
# Values are tagged entries (core.models.ContextValue).  classify_payload()
# is the single place that decides which variant a tool's JSON text becomes.
# =============================================================================

import json
import uuid
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from core.models import (
    BudgetResult,
    ContextValue,
    ErrorEntry,
    FlightResult,
    HotelResult,
    OtherResult,
    RawText,
    RouteResult,
    WorkflowState,
)
from core.normalize import load_json_object

RESULT_PREFIX = "result_"


def result_key(tool_name: str) -> str:
    return f"{RESULT_PREFIX}{tool_name}"


def find_flights_array(value) -> Optional[list]:
    """Locate the first non-empty list of objects nested anywhere in ``value``."""
    if isinstance(value, list):
        if value and all(isinstance(item, dict) for item in value):
            return value
        for item in value:
            found = find_flights_array(item)
            if found:
                return found
        return None
    if isinstance(value, dict):
        for key in ("flights", "data", "itineraries", "results", "items"):
            if key in value:
                found = find_flights_array(value[key])
                if found:
                    return found
    return None


def classify_payload(payload: Union[str, dict]) -> ContextValue:
    """Tag a tool result by its structural signature.

    Strings that are not JSON become RawText; a JSON array or scalar becomes
    OtherResult({"value": ...}).  An object with ``ok: false`` becomes an
    ErrorEntry.  Otherwise the first matching signature wins: flights,
    hotels, route, budget, then OtherResult.
    """
    if isinstance(payload, str):
        data = load_json_object(payload)
        if data is None:
            try:
                decoded = json.loads(payload)
            except (TypeError, ValueError):
                return RawText(payload)
            return OtherResult({"value": decoded})
    else:
        data = payload

    if data.get("ok") is False:
        query = data.get("query")
        return ErrorEntry(
            error=str(data.get("error") or "工具执行失败"),
            query=query if isinstance(query, dict) else {},
        )

    if isinstance(data.get("flights"), list) or "flight_count" in data:
        return FlightResult(data)
    if "hotels" in data or "station" in data:
        return HotelResult(data)
    if "detailed_itinerary" in data or "optimized_route" in data or "days" in data:
        return RouteResult(data)
    if "budget_breakdown" in data or "daily_budget" in data or "allocations" in data:
        return BudgetResult(data)
    nested = data.get("data")
    if isinstance(nested, dict) and isinstance(nested.get("flights"), list):
        return FlightResult(data)
    return OtherResult(data)


@dataclass
class WorkflowContext:
    """Mutable state shared by every tool run for one request."""

    user_request: str
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: WorkflowState = WorkflowState.PENDING
    storage: dict = field(default_factory=dict)
    error: Optional[str] = None

    def set(self, key: str, value: Union[ContextValue, str]) -> None:
        self.storage[key] = value

    def get(self, key: str, default=None):
        return self.storage.get(key, default)

    def items(self) -> Iterator[tuple]:
        return iter(list(self.storage.items()))

    def result_entries(self) -> dict:
        """Entries written by tools, in insertion order."""
        return {k: v for k, v in self.storage.items() if k.startswith(RESULT_PREFIX)}

    def result_for(self, tool_name: str) -> Optional[ContextValue]:
        return self.storage.get(result_key(tool_name))

    def text_value(self, key: str) -> Optional[str]:
        """A caller-provided override stored as a plain string."""
        value = self.storage.get(key)
        return value if isinstance(value, str) and value.strip() else None

    def describe(self) -> str:
        keys = ", ".join(self.storage) or "-"
        return f"<WorkflowContext {self.task_id[:8]} {self.state.value} keys=[{keys}]>"
