import asyncio
from types import SimpleNamespace

import litellm
import pytest

from agent.config import AgentSettings
from agent.llm import ChatClient, parse_completion
from core.errors import HTTPError, InvalidResponse, NetworkError
from core.models import Message, MessageRole


def completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def api_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def test_parse_plain_answer():
    response = parse_completion(completion(content="你好"))
    assert response.content == "你好"
    assert response.tool_calls is None


def test_parse_tool_calls_keep_order_and_raw_arguments():
    response = parse_completion(completion(tool_calls=[
        api_tool_call("call_a", "calculator", '{"expression": "1+1"}'),
        {"id": "call_b", "type": "function", "function": {"name": "get_current_time", "arguments": ""}},
    ]))
    assert [c.id for c in response.tool_calls] == ["call_a", "call_b"]
    assert response.tool_calls[0].arguments_raw == '{"expression": "1+1"}'
    assert response.tool_calls[1].arguments_raw == "{}"


def test_completion_without_choices_is_invalid():
    with pytest.raises(InvalidResponse):
        parse_completion(SimpleNamespace(choices=[]))
    with pytest.raises(InvalidResponse):
        parse_completion(SimpleNamespace(choices=[SimpleNamespace(message=None)]))


def test_request_shape(monkeypatch):
    captured = {}

    async def fake_acompletion(**kwargs):
        captured.update(kwargs)
        return completion(content="好的")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    settings = AgentSettings(model="openai/gpt-4o", api_key="sk-test", max_tokens=100, temperature=0.2)
    client = ChatClient(settings)
    tools = [{"type": "function", "function": {"name": "calculator", "parameters": {}}}]
    messages = [Message(role=MessageRole.USER, content="你好")]

    asyncio.run(client.complete(messages, tools=tools, tool_choice="auto"))

    assert captured["model"] == "openai/gpt-4o"
    assert captured["messages"] == [{"role": "user", "content": "你好"}]
    assert captured["tools"] == tools
    assert captured["tool_choice"] == "auto"
    assert captured["api_key"] == "sk-test"
    assert captured["max_tokens"] == 100
    assert "api_base" not in captured


def test_synthesis_request_offers_no_tools(monkeypatch):
    captured = {}

    async def fake_acompletion(**kwargs):
        captured.update(kwargs)
        return completion(content="总结")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    asyncio.run(ChatClient(AgentSettings()).complete([Message(role=MessageRole.USER, content="hi")]))
    assert "tools" not in captured
    assert "tool_choice" not in captured


def failing(exc):
    async def fake_acompletion(**kwargs):
        raise exc
    return fake_acompletion


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"upstream returned {status_code}")
        self.status_code = status_code


def test_status_code_becomes_http_error(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", failing(StatusError(429)))
    with pytest.raises(HTTPError) as info:
        asyncio.run(ChatClient(AgentSettings()).complete([Message(role=MessageRole.USER, content="hi")]))
    assert info.value.code == 429


def test_timeout_becomes_network_error(monkeypatch):
    timeout = litellm.Timeout(message="too slow", model="deepseek/deepseek-chat", llm_provider="deepseek")
    monkeypatch.setattr(litellm, "acompletion", failing(timeout))
    with pytest.raises(NetworkError):
        asyncio.run(ChatClient(AgentSettings()).complete([Message(role=MessageRole.USER, content="hi")]))


def test_other_failures_become_invalid_response(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", failing(ValueError("garbled")))
    with pytest.raises(InvalidResponse):
        asyncio.run(ChatClient(AgentSettings()).complete([Message(role=MessageRole.USER, content="hi")]))
