import asyncio
import json

import pytest

from core.errors import DecodingError, ToolNotFound
from tools.base import Tool
from tools.registry import ToolRegistry


class EchoTool(Tool):
    name = "echo"
    description = "returns its text argument"
    parameters = {"text": {"type": "string", "description": "what to echo"}}
    required = ("text",)

    async def execute(self, arguments):
        return f"计算结果：{arguments['text']}"


class FailingTool(Tool):
    name = "failing"
    description = "always raises"

    async def execute(self, arguments):
        raise RuntimeError("backend down")


@pytest.mark.parametrize("name", ["nope", "", "FLIGHT_SEARCH", "flight search"])
def test_unknown_tool_raises_tool_not_found(registry, name):
    with pytest.raises(ToolNotFound):
        asyncio.run(registry.execute_tool(name, {}))


def test_run_tool_turns_unknown_tool_into_error_result(registry):
    result = asyncio.run(registry.run_tool("nope", {"x": 1}))
    assert not result.ok
    payload = json.loads(result.raw)
    assert payload["ok"] is False
    assert "nope" in payload["error"]
    assert payload["query"] == {"x": 1}


def test_catalog_format(registry):
    catalog = registry.catalog()
    assert [entry["function"]["name"] for entry in catalog] == [
        "flight_search",
        "hotel_near_metro",
        "route_planner",
        "budget_analyzer",
        "calculator",
        "get_current_time",
    ]
    for entry in catalog:
        assert entry["type"] == "function"
        parameters = entry["function"]["parameters"]
        assert parameters["type"] == "object"
        assert isinstance(parameters["properties"], dict)
        assert set(parameters["required"]) <= set(parameters["properties"])
        assert entry["function"]["description"]

    flight = catalog[0]["function"]["parameters"]
    assert flight["required"] == ["origin", "destination", "departure_date"]


def test_non_json_tool_output_is_normalized():
    registry = ToolRegistry([EchoTool()])
    result = asyncio.run(registry.execute_tool("echo", '{"text": "24"}'))
    assert result.ok
    assert json.loads(result.raw) == {"ok": True, "tool": "echo", "data": {"text": "计算结果：24"}}


def test_malformed_arguments_raise_decoding_error():
    registry = ToolRegistry([EchoTool()])
    with pytest.raises(DecodingError):
        asyncio.run(registry.execute_tool("echo", "{text: 24"))


def test_tool_exception_becomes_error_result():
    registry = ToolRegistry([FailingTool()])
    result = asyncio.run(registry.run_tool("failing", {}))
    assert not result.ok
    assert result.error == "backend down"


def test_duplicate_registration_is_rejected():
    registry = ToolRegistry([EchoTool()])
    with pytest.raises(ValueError):
        registry.register(EchoTool())
    assert len(registry) == 1
    assert "echo" in registry


def test_calculator_through_registry(registry):
    result = asyncio.run(registry.execute_tool("calculator", {"expression": "(1200+800)*2/4"}))
    assert result.ok
    assert result.data["value"] == 1000
    assert result.data["display"] == "1000"


def test_missing_required_argument_is_a_tool_error(registry):
    result = asyncio.run(registry.run_tool("flight_search", {"origin": "北京"}))
    assert not result.ok
    assert "缺少必填参数" in result.error


def test_current_time_tool(registry):
    result = asyncio.run(registry.execute_tool("get_current_time", None))
    assert result.ok
    assert {"display", "iso8601"} <= set(result.data)


def test_hotel_tool_sorts_by_walking_time(registry):
    result = asyncio.run(registry.execute_tool("hotel_near_metro", {"city": "上海", "station": "人民广场"}))
    hotels = result.data["hotels"]
    assert hotels
    minutes = [h["walkMinutes"] for h in hotels]
    assert minutes == sorted(minutes)
    assert all(m <= 5 for m in minutes)
    assert result.data["station"]["name"] == "人民广场"


def test_flight_tool_with_mock_provider(registry):
    result = asyncio.run(registry.execute_tool(
        "flight_search", {"origin": "北京", "destination": "上海", "departure_date": "2030-05-01"}
    ))
    assert result.ok
    assert result.data["query"]["origin_code"] == "PEK"
    assert result.data["flight_count"] == len(result.data["flights"]) > 0
    assert result.data["flights"][0]["segments"][0]["departure"]["airport"] == "PEK"


def test_flight_tool_bad_date_is_reported_not_raised(registry):
    result = asyncio.run(registry.execute_tool(
        "flight_search", {"origin": "北京", "destination": "上海", "departure_date": "05/01/2030"}
    ))
    assert not result.ok
    assert result.data["query"]["departure_date"] == "05/01/2030"
