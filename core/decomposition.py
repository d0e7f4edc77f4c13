# =============================================================================
# core/decomposition.py  —  Rule-Based Request Decomposition
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Turns a free-text travel request into an ordered list of subtask
#   strings, and extracts the handful of parameters (origin, destination,
#   budget, days, dates) every other stage keys off.
#
#   The rules are a fixed keyword table, not a model call:
#
#     trigger                                  subtask
#     ───────────────────────────────────────  ──────────────────────────────
#     "到" destination marker / 机票 / 航班      搜索从{o}到{d}的机票
#     酒店 / 住宿 / 宾馆, or a stay of 2+ days   查找{d}(地铁站附近)的酒店
#     景点 / 游览 / 路线, or 规划 + 旅行/旅游      规划{d}的旅游路线
#     预算 / 元                                 分析{budget}元旅行预算
#
#   A request with no travel keyword at all gets the default three-step
#   plan (flights, hotel, route).  比较 / 比价 requests collapse to a
#   single comparison subtask.
#
# The orchestrator only ever sees the TaskDecomposer protocol, so a smarter
# classifier can replace RuleBasedDecomposer without touching it.
# =============================================================================

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Protocol

from core.errors import WorkflowDecompositionFailed

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = "北京"
DEFAULT_DESTINATION = "上海"
DEFAULT_BUDGET = 3000
DEFAULT_DAYS = 3
DEFAULT_DEPARTURE_OFFSET_DAYS = 7

DEFAULT_PLAN = ["搜索机票信息", "查找酒店信息", "规划旅游路线"]

TRAVEL_KEYWORDS = ("旅行", "行程", "规划", "旅游", "出行")
FLIGHT_KEYWORDS = ("机票", "航班", "飞机", "航空")
HOTEL_KEYWORDS = ("酒店", "住宿", "宾馆", "旅馆")
ROUTE_KEYWORDS = ("景点", "游览", "路线")
BUDGET_KEYWORDS = ("预算", "元")
COMPARE_KEYWORDS = ("比较", "比价")

_DESTINATION = re.compile(r"到([^的，,。；;\s]+)")
_DESTINATION_LOOSE = re.compile(r"到([^的，,。；;]+)")
_ORIGIN = re.compile(r"从([^到]+)到")
_BUDGET_EXPLICIT = re.compile(r"预算\s*(\d+)\s*元")
_BUDGET_ANY = re.compile(r"(\d+)\s*元")
_DAYS = re.compile(r"(\d+)\s*天")
_NIGHTS = re.compile(r"(\d+)\s*晚")
_ISO_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")


# =============================================================================
# Parameter extraction
# =============================================================================
def extract_destination(text: str) -> Optional[str]:
    """City after the first "到", or ``None``."""
    match = _DESTINATION.search(text)
    if match:
        city = match.group(1).strip()
        return city or None
    match = _DESTINATION_LOOSE.search(text)
    if match:
        city = re.sub(r"的.*$", "", match.group(1)).strip()
        return city or None
    return None


def extract_origin(text: str) -> Optional[str]:
    match = _ORIGIN.search(text)
    if match:
        city = match.group(1).strip()
        return city or None
    return None


def extract_budget(text: str) -> Optional[int]:
    """Budget in yuan: "预算N元" first, then any "N元"."""
    match = _BUDGET_EXPLICIT.search(text) or _BUDGET_ANY.search(text)
    return int(match.group(1)) if match else None


def extract_days(text: str) -> Optional[int]:
    match = _DAYS.search(text)
    if match:
        return int(match.group(1))
    match = _NIGHTS.search(text)
    if match:
        return int(match.group(1)) + 1
    return None


def extract_dates(text: str) -> list[str]:
    """Every ISO date (YYYY-MM-DD) in the text, in order of appearance."""
    return _ISO_DATE.findall(text)


def contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


# -----------------------------------------------------------------------------
# TravelRequest — the parameters one request implies
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class TravelRequest:
    origin: str
    destination: str
    budget: int
    days: int
    departure_date: str
    return_date: Optional[str] = None

    @property
    def nights(self) -> int:
        return max(self.days - 1, 1)

    @classmethod
    def parse(cls, text: str, today: Optional[date] = None) -> "TravelRequest":
        """Extract every parameter, filling the gaps with defaults."""
        today = today or date.today()
        days = extract_days(text) or DEFAULT_DAYS
        dates = extract_dates(text)
        departure = dates[0] if dates else (
            today + timedelta(days=DEFAULT_DEPARTURE_OFFSET_DAYS)
        ).isoformat()
        return cls(
            origin=extract_origin(text) or DEFAULT_ORIGIN,
            destination=extract_destination(text) or DEFAULT_DESTINATION,
            budget=extract_budget(text) or DEFAULT_BUDGET,
            days=days,
            departure_date=departure,
            return_date=dates[1] if len(dates) > 1 else None,
        )


# =============================================================================
# Decomposers
# =============================================================================
class TaskDecomposer(Protocol):
    def decompose(self, request: str) -> list[str]:
        ...


class RuleBasedDecomposer:
    """Fixed keyword table mapping a request to ordered subtasks."""

    def decompose(self, request: str) -> list[str]:
        text = (request or "").strip()
        if not text:
            raise WorkflowDecompositionFailed("请求内容为空")

        lowered = text.lower()

        if contains_any(lowered, COMPARE_KEYWORDS):
            return self._comparison_plan(lowered)

        if not contains_any(lowered, TRAVEL_KEYWORDS):
            logger.info("No travel keyword found, using the default plan")
            return list(DEFAULT_PLAN)

        params = TravelRequest.parse(text)
        destination = params.destination
        tasks: list[str] = []

        if "到" in lowered or contains_any(lowered, FLIGHT_KEYWORDS):
            if "从" in lowered and "到" in lowered:
                tasks.append(f"搜索从{params.origin}到{destination}的机票")
            else:
                tasks.append("搜索机票信息")

        if contains_any(lowered, HOTEL_KEYWORDS) or self._needs_stay(text):
            if "地铁" in lowered or "附近" in lowered:
                tasks.append(f"查找{destination}地铁站附近的酒店")
            else:
                tasks.append(f"查找{destination}的酒店")

        if contains_any(lowered, ROUTE_KEYWORDS) or (
            "规划" in lowered and contains_any(lowered, ("旅行", "旅游", "行程"))
        ):
            tasks.append(f"规划{destination}的旅游路线")

        if contains_any(lowered, BUDGET_KEYWORDS):
            tasks.append(f"分析{params.budget}元旅行预算")

        if not tasks:
            return list(DEFAULT_PLAN)
        logger.info("Decomposed into %d subtasks: %s", len(tasks), tasks)
        return tasks

    @staticmethod
    def _needs_stay(text: str) -> bool:
        days = extract_days(text)
        return days is not None and days >= 2

    @staticmethod
    def _comparison_plan(lowered: str) -> list[str]:
        if contains_any(lowered, FLIGHT_KEYWORDS):
            return ["比较不同航空公司的机票价格"]
        if contains_any(lowered, HOTEL_KEYWORDS):
            return ["比较不同酒店的价格和位置"]
        return ["比较旅行方案"]


def subtask_triggers(request: str) -> int:
    """How many distinct subtask kinds the request mentions."""
    lowered = (request or "").lower()
    triggers = [
        "到" in lowered or contains_any(lowered, FLIGHT_KEYWORDS),
        contains_any(lowered, HOTEL_KEYWORDS) or RuleBasedDecomposer._needs_stay(lowered),
        contains_any(lowered, ROUTE_KEYWORDS),
        contains_any(lowered, BUDGET_KEYWORDS),
    ]
    return sum(1 for hit in triggers if hit)


def is_complex_request(request: str) -> bool:
    """A travel-planning request touching at least two subtask kinds."""
    lowered = (request or "").lower()
    return contains_any(lowered, TRAVEL_KEYWORDS) and subtask_triggers(lowered) >= 2
