# =============================================================================
# agent/llm.py  —  Chat-Completion Client
# =============================================================================
#
# WHAT THIS FILE DOES:
#   One async call: send the ordered message list (plus, for the think
#   step, the tool catalog and tool_choice="auto") and get back the first
#   choice as a ChatResponse.
#
# WHY LITELLM?
#   litellm speaks one OpenAI-shaped API to every provider, so switching
#   from DeepSeek to OpenAI or a local model is a TRAVEL_AGENT_MODEL change:
#
#     deepseek/deepseek-chat
#     openai/gpt-4o
#     openrouter/openai/gpt-4o
#
# ERRORS:
#   Every litellm failure is mapped onto the agent's own taxonomy:
#     connection problems / timeouts  → NetworkError
#     anything carrying a status code → HTTPError(code)
#     everything else, or no choice   → InvalidResponse
# =============================================================================

import logging
from typing import Optional, Sequence

import litellm

from agent.config import AgentSettings
from core.errors import HTTPError, InvalidResponse, NetworkError
from core.models import ChatResponse, Message, ToolCall

logger = logging.getLogger(__name__)


def _tool_call_from_response(call) -> ToolCall:
    if isinstance(call, dict):
        return ToolCall.from_api(call)
    function = call.function
    return ToolCall(
        id=call.id,
        function_name=function.name or "",
        arguments_raw=function.arguments or "{}",
    )


def parse_completion(response) -> ChatResponse:
    """First-choice message of a litellm completion as a ChatResponse."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise InvalidResponse("no choices in completion")
    message = choices[0].message
    if message is None:
        raise InvalidResponse("first choice has no message")
    calls = getattr(message, "tool_calls", None)
    return ChatResponse(
        content=getattr(message, "content", None),
        tool_calls=tuple(_tool_call_from_response(c) for c in calls) if calls else None,
    )


class ChatClient:
    def __init__(self, settings: AgentSettings):
        self.settings = settings

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict]] = None,
        tool_choice: Optional[str] = None,
    ) -> ChatResponse:
        kwargs = {
            "model": self.settings.model,
            "messages": [m.to_api() for m in messages],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }
        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = tool_choice
        if self.settings.api_key:
            kwargs["api_key"] = self.settings.api_key
        if self.settings.api_base:
            kwargs["api_base"] = self.settings.api_base

        logger.info("Completion request: %d messages, %d tools", len(messages), len(tools or ()))
        try:
            response = await litellm.acompletion(**kwargs)
        except (litellm.APIConnectionError, litellm.Timeout) as exc:
            raise NetworkError(str(exc)) from exc
        except Exception as exc:
            code = getattr(exc, "status_code", None)
            if isinstance(code, int):
                raise HTTPError(code, str(exc)) from exc
            raise InvalidResponse(str(exc)) from exc

        result = parse_completion(response)
        logger.info(
            "Completion response: %d chars, %d tool calls",
            len(result.content or ""),
            len(result.tool_calls or ()),
        )
        return result
