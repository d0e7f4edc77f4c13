# =============================================================================
# agent/executor.py  —  Think / Act / Synthesize
# =============================================================================
#
# One cycle of the agent loop, split into three calls the service drives:
#
#   think(messages)            ask the model what to do next; the tool
#                              catalog is offered with tool_choice="auto"
#   execute_tool_calls(calls)  run every requested tool concurrently and
#                              return (tool_call_id, content) pairs in call
#                              order; a failing call becomes the text
#                              "工具执行失败: ..." for that call only
#   synthesize(messages)       re-prompt on the reduced context (no tools)
#                              and clean the answer with finalize_reply
#
# Model failures propagate (they end the run); tool failures never do.
# =============================================================================

import asyncio
import logging
from typing import Optional, Protocol, Sequence

from agent.prompt import SUMMARY_INSTRUCTION, SYNTHESIS_SYSTEM_PROMPT
from core.models import ChatResponse, Message, ToolCall
from core.synthesis import build_synthesis_messages, finalize_reply
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_FAILURE_PREFIX = "工具执行失败: "


class ChatCompletion(Protocol):
    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict]] = None,
        tool_choice: Optional[str] = None,
    ) -> ChatResponse:
        ...


class AgentExecutor:
    def __init__(self, client: ChatCompletion, registry: ToolRegistry):
        self.client = client
        self.registry = registry

    async def think(self, messages: Sequence[Message]) -> ChatResponse:
        logger.info("Thinking over %d messages", len(messages))
        response = await self.client.complete(messages, tools=self.registry.catalog(), tool_choice="auto")
        logger.info(
            "Model replied with %d chars and %d tool calls",
            len(response.content or ""),
            len(response.tool_calls or ()),
        )
        return response

    @staticmethod
    def should_finish(response: ChatResponse) -> bool:
        """True when the model asked for no tools."""
        return not response.tool_calls

    async def _execute_one(self, call: ToolCall) -> tuple[str, str]:
        try:
            result = await self.registry.execute_tool(call.function_name, call.arguments_raw)
        except Exception as exc:
            logger.warning("Tool call %s (%s) failed: %s", call.id, call.function_name, exc)
            return call.id, f"{TOOL_FAILURE_PREFIX}{exc}"
        return call.id, result.raw

    async def execute_tool_calls(self, calls: Sequence[ToolCall]) -> list[tuple[str, str]]:
        logger.info("Executing %d tool calls: %s", len(calls), [c.function_name for c in calls])
        return list(await asyncio.gather(*(self._execute_one(c) for c in calls)))

    async def synthesize(self, messages: Sequence[Message]) -> str:
        reduced = build_synthesis_messages(messages, SYNTHESIS_SYSTEM_PROMPT, SUMMARY_INSTRUCTION)
        logger.info("Synthesizing final answer from %d messages", len(reduced))
        response = await self.client.complete(reduced)
        return finalize_reply(response.content)
