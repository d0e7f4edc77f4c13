import asyncio
import json
import os
from typing import Optional

# Keep litellm from fetching its model cost map over the network at import;
# its background retry thread can deadlock imports in offline test runs.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from core.context import classify_payload, result_key
from core.flights import MockFlightProvider
from core.maps import MockMapProvider
from core.models import ChatResponse, ToolCall, ToolExecutionResult
from tools.registry import default_registry

E2E_REQUEST = "帮我规划从北京到上海的3天旅行，预算5000元"


class FakeChatClient:
    """Scripted stand-in for ChatClient.

    Think calls (tools offered) pop responses from ``script``; the last
    entry repeats once the script runs out.  An Exception entry is raised.
    Synthesis calls (no tools) return ``synthesis``.
    """

    def __init__(self, script=(), synthesis="这是为您整理的结果。"):
        self.script = list(script)
        self.synthesis = synthesis
        self.calls = []

    async def complete(self, messages, tools=None, tool_choice=None):
        self.calls.append({"messages": list(messages), "tools": tools, "tool_choice": tool_choice})
        if tools is None:
            if isinstance(self.synthesis, Exception):
                raise self.synthesis
            return ChatResponse(content=self.synthesis)
        if not self.script:
            return ChatResponse(content="好的。")
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def think_calls(self):
        return [c for c in self.calls if c["tools"] is not None]

    @property
    def synthesis_calls(self):
        return [c for c in self.calls if c["tools"] is None]


def tool_call_response(name="calculator", arguments='{"expression": "1+1"}', call_id="call_1",
                       content: Optional[str] = None) -> ChatResponse:
    return ChatResponse(content=content, tool_calls=(ToolCall(call_id, name, arguments),))


class RecordingAdapter:
    """Enhanced-tool stand-in that logs when it starts and finishes."""

    def __init__(self, name, keyword, payload, log, delay=0.0):
        self.name = name
        self.description = f"fake {name}"
        self.keyword = keyword
        self.payload = payload
        self.log = log
        self.delay = delay

    def can_handle(self, task):
        return self.keyword in task

    async def execute(self, context, task):
        self.log.append(("start", self.name, sorted(context.result_entries())))
        await asyncio.sleep(self.delay)
        raw = self.payload if isinstance(self.payload, str) else json.dumps(self.payload, ensure_ascii=False)
        context.set(result_key(self.name), classify_payload(raw))
        self.log.append(("end", self.name))
        return ToolExecutionResult(tool_name=self.name, ok=True, raw=raw)


FLIGHT_PAYLOAD = {"flights": [{"flight_number": "CA1234", "price": {"total": "800"}}]}
BUDGET_PAYLOAD = {"budget_breakdown": {"flight": {"amount": 1250}}}
HOTEL_PAYLOAD = {"station": {"name": "人民广场"}, "hotels": [{"name": "测试酒店", "walkMinutes": 3}]}
ROUTE_PAYLOAD = {"optimized_route": ["外滩", "豫园"]}


def recording_adapters(log, delay=0.0, payloads=None):
    payloads = payloads or {}
    return [
        RecordingAdapter("route_planner", "路线", payloads.get("route", ROUTE_PAYLOAD), log, delay),
        RecordingAdapter("hotel_near_metro", "酒店", payloads.get("hotel", HOTEL_PAYLOAD), log, delay),
        RecordingAdapter("budget_analyzer", "预算", payloads.get("budget", BUDGET_PAYLOAD), log, delay),
        RecordingAdapter("flight_search", "机票", payloads.get("flight", FLIGHT_PAYLOAD), log, delay),
    ]


@pytest.fixture
def registry():
    return default_registry(map_provider=MockMapProvider(), flight_provider=MockFlightProvider())
