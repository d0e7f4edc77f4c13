# =============================================================================
# tools/registry.py  —  Tool Registry
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Holds the named tools, resolves a call by name, and exposes the catalog
#   the chat-completion request carries.
#
#   execute_tool(name, args)  strict: unknown name → ToolNotFound, bad
#                             argument JSON → DecodingError, tool failure
#                             propagates.  The agent executor catches these
#                             and turns them into tool-role messages.
#
#   run_tool(name, args)      never raises: any failure becomes an
#                             ok=False result whose raw text is
#                             {"ok": false, "error": ..., "query": args}.
#                             The workflow orchestrator uses this one.
#
#   Every result's raw text has been through normalize_tool_result, so it
#   is always JSON.
#
# The registry is filled at startup and only read afterwards.
# =============================================================================

import logging
from typing import Any, Iterable, Optional, Union

from core.errors import ToolNotFound
from core.models import ToolExecutionResult
from core.normalize import dump_json, load_json_object, normalize_tool_result, parse_tool_arguments
from tools.base import Tool
from tools.builtin import builtin_tools

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError(f"{tool!r} has no name")
        if tool.name in self._tools:
            raise ValueError(f"tool {tool.name!r} is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def catalog(self) -> list[dict]:
        """Every tool in chat-completion function format."""
        return [tool.to_api_format() for tool in self._tools.values()]

    async def execute_tool(self, name: str, arguments: Union[str, bytes, dict, None]) -> ToolExecutionResult:
        """Run ``name`` with ``arguments`` (a dict or JSON object text).

        Raises:
            ToolNotFound: no tool is registered under ``name``.
            DecodingError: ``arguments`` text is not a JSON object.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFound(name)
        if arguments is None:
            arguments = {}
        elif not isinstance(arguments, dict):
            arguments = parse_tool_arguments(arguments)

        raw = normalize_tool_result(await tool.execute(arguments), name)
        data = load_json_object(raw) or {}
        ok = data.get("ok") is not False
        return ToolExecutionResult(
            tool_name=name,
            ok=ok,
            raw=raw,
            data=data,
            error=None if ok else str(data.get("error") or "unknown error"),
        )

    async def run_tool(self, name: str, arguments: dict[str, Any]) -> ToolExecutionResult:
        """Like execute_tool, but failures come back as an ok=False result."""
        try:
            return await self.execute_tool(name, arguments)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            payload = {"ok": False, "tool": name, "error": str(exc), "query": arguments}
            return ToolExecutionResult(
                tool_name=name,
                ok=False,
                raw=dump_json(payload),
                data=payload,
                error=str(exc),
            )


def default_registry(map_provider=None, flight_provider=None) -> ToolRegistry:
    """Registry holding the six built-in tools."""
    return ToolRegistry(builtin_tools(map_provider=map_provider, flight_provider=flight_provider))
