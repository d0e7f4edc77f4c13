# =============================================================================
# core/aggregation.py  —  Workflow Result Aggregation
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Folds every "result_*" entry of a workflow context into one readable
#   travel plan:
#
#       为您生成的{城市}{N}天{N-1}夜旅行计划（预算：{B}元）
#
#       ## ✈️ 往返交通 ...        ← FlightResult
#       ## 🏨 住宿推荐 ...        ← HotelResult
#       ## 🗺️ 推荐行程路线 ...    ← RouteResult
#       ## 💰 预算分析 ...        ← BudgetResult
#       【其他: key】 ...         ← OtherResult (generic key/value dump)
#
#       ---
#       提示：部分子任务解析失败：  ← one line per unusable entry
#
# PARTIAL FAILURE:
#   An entry that is not JSON, carries a tool error, or cannot be rendered
#   becomes a failure line; it never stops the other sections.  Only when
#   *no* section could be rendered and at least one entry failed does
#   aggregation raise WorkflowAggregationFailed.
#
# ORDER:
#   Sections are emitted flight → hotel → route → budget → other, and
#   within a kind by key.  Failures follow, sorted by key.  The same
#   entries always produce the same text.
# =============================================================================

import json
import logging
import math
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

from core.context import RESULT_PREFIX, classify_payload, find_flights_array
from core.decomposition import DEFAULT_BUDGET, DEFAULT_DAYS, extract_budget, extract_days, extract_destination
from core.errors import WorkflowAggregationFailed
from core.models import (
    BudgetResult,
    ContextValue,
    ErrorEntry,
    FlightResult,
    HotelResult,
    OtherResult,
    RawText,
    RouteResult,
)

logger = logging.getLogger(__name__)

NOT_VALID_JSON = "not valid JSON"
SNIPPET_LIMIT = 1000

# Display labels for failure reasons; anything else is shown as-is.
_REASON_LABELS = {
    NOT_VALID_JSON: "不是有效的 JSON",
}

_SECTION_ORDER = {FlightResult: 0, HotelResult: 1, RouteResult: 2, BudgetResult: 3, OtherResult: 4}


@dataclass(frozen=True)
class AggregationFailure:
    key: str
    reason: str
    raw_snippet: Optional[str] = None

    @property
    def short_key(self) -> str:
        return self.key[len(RESULT_PREFIX):] if self.key.startswith(RESULT_PREFIX) else self.key

    @property
    def label(self) -> str:
        return _REASON_LABELS.get(self.reason, self.reason)


@dataclass(frozen=True)
class PlanHeader:
    destination: str
    days: int
    budget: int

    @property
    def nights(self) -> int:
        return max(self.days - 1, 1)

    @classmethod
    def from_request(cls, user_request: str) -> "PlanHeader":
        return cls(
            destination=extract_destination(user_request) or "目的地",
            days=extract_days(user_request) or DEFAULT_DAYS,
            budget=extract_budget(user_request) or DEFAULT_BUDGET,
        )

    def render(self) -> str:
        return (
            f"为您生成的{self.destination}{self.days}天{self.nights}夜旅行计划"
            f"（预算：{self.budget}元）\n\n"
        )


# =============================================================================
# Small value helpers
# =============================================================================
def to_number(value) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def percent(part: float, total: float) -> int:
    return int(part / total * 100) if total > 0 else 0


# =============================================================================
# Section formatters — each returns None when the data is incomplete
# =============================================================================
def format_flight_section(data: dict, header: PlanHeader) -> Optional[str]:
    flights = data.get("flights") if isinstance(data.get("flights"), list) else None
    flights = flights or find_flights_array(data)
    if not flights:
        return None

    lines = ["## ✈️ 往返交通（推荐选择）："]
    for index, flight in enumerate(flights[:2]):
        price_value = flight.get("price")
        if isinstance(price_value, dict):
            price_value = price_value.get("total")
        price = to_number(price_value or flight.get("fare") or flight.get("amount"))

        segments = flight.get("segments")
        if isinstance(segments, list) and segments and isinstance(segments[0], dict):
            segment = segments[0]
            departure = segment.get("departure") or {}
            arrival = segment.get("arrival") or {}
            number = segment.get("flight_number") or segment.get("number") or "—"
            summary = (
                f"{number} ({departure.get('time', '')} {departure.get('airport', '')} - "
                f"{arrival.get('time', '')} {arrival.get('airport', '')})"
            )
        else:
            number = flight.get("flight_number") or flight.get("flightNumber") or "—"
            summary = (
                f"{number} ({flight.get('departure', '')} {flight.get('origin', '')} - "
                f"{flight.get('arrival', '')} {flight.get('destination', '')})"
            )

        line = f"• 方案{index + 1}：{summary}"
        if price > 0:
            line += f"，票价 ¥{int(price)}"
        lines.append(line)

    first_price = flights[0].get("price")
    if isinstance(first_price, dict):
        first_price = first_price.get("total")
    if to_number(first_price) > header.budget * 0.3:
        lines.append("• （注：机票占比较大，建议考虑高铁等更经济的选项以平衡预算）")
    return "\n".join(lines)


def format_hotel_section(data: dict, header: PlanHeader) -> Optional[str]:
    hotels = data.get("hotels")
    if not isinstance(hotels, list) or not hotels:
        return None
    station = data.get("station") if isinstance(data.get("station"), dict) else {}
    station_name = station.get("name")

    lines = ["## 🏨 住宿推荐（靠近地铁站）："]
    for index, hotel in enumerate(hotels[:3], start=1):
        name = hotel.get("name") or f"酒店{index}"
        minutes = hotel.get("walkMinutes")
        if station_name and isinstance(minutes, (int, float)):
            lines.append(f"{index}. {name} - 距{station_name}站步行约{int(minutes)}分钟")
        elif station_name and to_number(hotel.get("approxDistanceM")) > 0:
            lines.append(f"{index}. {name} - 距{station_name}站约{int(to_number(hotel['approxDistanceM']))}米")
        else:
            lines.append(f"{index}. {name}")
    return "\n".join(lines)


def format_route_section(data: dict, header: PlanHeader) -> Optional[str]:
    steps = data.get("detailed_itinerary")
    if isinstance(steps, list) and steps:
        per_day = max(1, math.ceil(len(steps) / max(header.days, 1)))
        lines = ["## 🗺️ 推荐行程路线："]
        for day, start in enumerate(range(0, len(steps), per_day), start=1):
            stops = []
            for step in steps[start:start + per_day]:
                stop = step.get("location") or "未知地点"
                if step.get("suggested_duration"):
                    stop += f"（建议停留：{step['suggested_duration']}）"
                stops.append(stop)
            lines.append(f"**Day {day}:** " + " -> ".join(stops))
        lines.append("")
        lines.append("**（可根据您的兴趣调整）**")
        return "\n".join(lines)

    days = data.get("days")
    if isinstance(days, list) and days:
        lines = ["## 🗺️ 推荐行程路线："]
        for day, entry in enumerate(days[:header.days], start=1):
            if not isinstance(entry, dict):
                return None
            if isinstance(entry.get("attractions"), list):
                names = [a.get("name", "") for a in entry["attractions"] if isinstance(a, dict)]
            elif isinstance(entry.get("activities"), list):
                names = [str(a) for a in entry["activities"]]
            else:
                return None
            lines.append(f"**Day {day}:** " + " -> ".join(names))
        lines.append("")
        lines.append("**（可根据您的兴趣调整）**")
        return "\n".join(lines)

    route = data.get("optimized_route")
    if isinstance(route, list) and route:
        return "## 🗺️ 推荐行程路线：\n" + " -> ".join(str(stop) for stop in route)
    return None


_BUDGET_LABELS = (
    ("flight", "机票"),
    ("accommodation", "住宿"),
    ("food", "餐饮"),
    ("transport", "市内交通"),
    ("activities", "景点门票"),
    ("emergency", "应急备用"),
)


def format_budget_section(data: dict, header: PlanHeader) -> Optional[str]:
    total = header.budget
    lines = [f"## 💰 预算分析（总计¥{total}）："]

    breakdown = data.get("budget_breakdown")
    if isinstance(breakdown, dict) and breakdown:
        for key, label in _BUDGET_LABELS:
            item = breakdown.get(key)
            amount = to_number(item.get("amount") if isinstance(item, dict) else item)
            if amount <= 0:
                continue
            if key == "accommodation":
                lines.append(f"• {label}：~¥{int(amount)} ({header.nights}晚)")
            elif key == "food":
                lines.append(f"• {label}：~¥{int(amount / max(header.days, 1))}/天")
            else:
                lines.append(f"• {label}：~¥{int(amount)} ({percent(amount, total)}%)")
        return "\n".join(lines) if len(lines) > 1 else None

    daily = data.get("daily_budget")
    if isinstance(daily, dict) and daily:
        if to_number(daily.get("total")) > 0:
            lines.append(f"• 每日预算（总计/天）：¥{int(to_number(daily['total']))}")
        if to_number(daily.get("per_person")) > 0:
            lines.append(f"• 每人每日：¥{int(to_number(daily['per_person']))}")
        return "\n".join(lines) if len(lines) > 1 else None

    allocations = data.get("allocations")
    if isinstance(allocations, dict) and allocations:
        if "transportation" in allocations:
            amount = to_number(allocations["transportation"])
            lines.append(f"• 机票：~¥{int(amount)} ({percent(amount, total)}%)")
        if "accommodation" in allocations:
            amount = to_number(allocations["accommodation"])
            lines.append(f"• 住宿：~¥{int(amount)} ({header.nights}晚，{percent(amount, total)}%)")
        return "\n".join(lines) if len(lines) > 1 else None
    return None


def format_other_section(key: str, data: dict) -> str:
    short = key[len(RESULT_PREFIX):] if key.startswith(RESULT_PREFIX) else key
    pairs = []
    for name, value in data.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        pairs.append(f"{name}: {value}")
    return f"【其他: {short}】\n" + "\n".join(pairs)


_FORMATTERS: dict = {
    FlightResult: (format_flight_section, "航班字段不完整或未知结构"),
    HotelResult: (format_hotel_section, "酒店字段不完整或未知结构"),
    RouteResult: (format_route_section, "行程字段不完整或未知结构"),
    BudgetResult: (format_budget_section, "预算字段不完整或未知结构"),
}


# =============================================================================
# Aggregation
# =============================================================================
def collect_sections(
    entries: Mapping[str, Union[ContextValue, str]],
    header: PlanHeader,
) -> tuple[list[str], list[AggregationFailure]]:
    """Render every result entry, splitting successes from failures."""
    rendered: list[tuple[int, str, str]] = []
    failures: list[AggregationFailure] = []

    for key in sorted(k for k in entries if k.startswith(RESULT_PREFIX)):
        value = entries[key]
        if isinstance(value, str):
            value = classify_payload(value)

        if isinstance(value, RawText):
            failures.append(AggregationFailure(key, NOT_VALID_JSON, value.text[:SNIPPET_LIMIT]))
            continue
        if isinstance(value, ErrorEntry):
            failures.append(AggregationFailure(key, value.error))
            continue
        if isinstance(value, OtherResult):
            rendered.append((_SECTION_ORDER[OtherResult], key, format_other_section(key, value.data)))
            continue

        formatter, incomplete_reason = _FORMATTERS[type(value)]
        try:
            section = formatter(value.data, header)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Formatter for %s failed: %s", key, exc)
            section = None
        if section is None:
            snippet = json.dumps(value.data, ensure_ascii=False)[:SNIPPET_LIMIT]
            failures.append(AggregationFailure(key, incomplete_reason, snippet))
        else:
            rendered.append((_SECTION_ORDER[type(value)], key, section))

    rendered.sort(key=lambda item: (item[0], item[1]))
    return [section for _, _, section in rendered], failures


def render_failure_appendix(failures: list[AggregationFailure]) -> str:
    lines = ["", "", "---", "", "提示：部分子任务解析失败："]
    lines.extend(f"• {failure.short_key}: {failure.label}" for failure in failures)
    lines.append("")
    lines.append("（如需调试，请查看工具原始返回或在日志中查找相应的原始数据）")
    return "\n".join(lines)


def aggregate_results(
    entries: Mapping[str, Union[ContextValue, str]],
    user_request: str,
    on_failure: Optional[Callable[[AggregationFailure], None]] = None,
) -> str:
    """Build the final travel-plan text from the workflow's result entries.

    Args:
        entries: Context storage; only ``result_*`` keys are considered.
            Plain strings are classified first.
        user_request: The original request, used for the header line.
        on_failure: Optional hook called once per failure entry.

    Raises:
        WorkflowAggregationFailed: no section rendered and at least one
            entry failed.  With no result entries at all the plan is just
            the header line.
    """
    header = PlanHeader.from_request(user_request)
    sections, failures = collect_sections(entries, header)

    for failure in failures:
        logger.warning("Result %s unusable: %s", failure.key, failure.reason)
        if on_failure is not None:
            on_failure(failure)

    if not sections and failures:
        raise WorkflowAggregationFailed(failures[0].key)

    text = header.render() + "\n\n".join(sections)
    if failures:
        text += render_failure_appendix(failures)
    return text
