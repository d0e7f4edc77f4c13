import asyncio

import pytest

from core.flights import MockFlightProvider
from core.maps import MockMapProvider
from tools import mcp_server
from tools.registry import default_registry


@pytest.fixture(autouse=True)
def mock_registry(monkeypatch):
    registry = default_registry(map_provider=MockMapProvider(), flight_provider=MockFlightProvider())
    monkeypatch.setattr(mcp_server, "_registry", registry)
    return registry


def test_call_forwards_to_registry_and_drops_unset_arguments():
    result = asyncio.run(mcp_server._call("calculator", {"expression": "2*3", "unused": None}))
    assert result["ok"] is True
    assert result["value"] == 6


def test_call_reports_tool_errors_as_data():
    result = asyncio.run(mcp_server._call("budget_analyzer", {"total_budget": 0, "days": 3, "destination": "上海"}))
    assert result["ok"] is False
    assert result["tool"] == "budget_analyzer"
    assert "必填" in result["error"]


def test_get_registry_reuses_the_installed_registry(mock_registry):
    assert mcp_server.get_registry() is mock_registry
