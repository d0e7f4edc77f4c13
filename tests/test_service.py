import asyncio
import logging

from conftest import E2E_REQUEST, FakeChatClient, recording_adapters, tool_call_response
from agent.config import AgentSettings
from agent.executor import TOOL_FAILURE_PREFIX, AgentExecutor
from agent.prompt import SUMMARY_INSTRUCTION, SYNTHESIS_SYSTEM_PROMPT
from agent.service import AgentService
from agent.workflow import TIMEOUT_REPLY, WorkflowOrchestrator
from core.errors import InvalidResponse
from core.models import AgentState, ChatResponse, MessageRole
from core.storage import InMemoryConversationStore, JsonFileConversationStore
from core.synthesis import FALLBACK_REPLY
from tools.registry import ToolRegistry


def make_service(client, registry, **kwargs):
    return AgentService(client=client, registry=registry, store=InMemoryConversationStore(), **kwargs)


def test_single_step_finish(registry):
    client = FakeChatClient([ChatResponse(content="你好！有什么可以帮您？")])
    service = make_service(client, registry)

    reply = asyncio.run(service.send_message("你好"))

    assert reply == "你好！有什么可以帮您？"
    assert service.state == AgentState.FINISHED
    assert service.state_machine.step == 0
    assert len(client.calls) == 1
    assert AgentExecutor.should_finish(ChatResponse(content=reply))
    assert [m.content for m in service.visible_messages()] == ["你好", reply]


def test_loop_stops_after_ten_steps(registry):
    client = FakeChatClient([tool_call_response(content="我先算一下")], synthesis="算完了，结果是2。")
    service = make_service(client, registry)

    reply = asyncio.run(service.send_message("1+1等于几？"))

    assert reply == "算完了，结果是2。"
    assert len(client.think_calls) == 10
    assert len(client.synthesis_calls) == 1
    assert service.state == AgentState.FINISHED
    assert service.state_machine.step == 10
    tool_messages = [m for m in service.conversation.messages if m.role == MessageRole.TOOL]
    assert len(tool_messages) == 10


def test_synthesis_context_drops_draft_and_tools(registry):
    client = FakeChatClient(
        [tool_call_response(content="草稿：答案可能是2"), ChatResponse(content="无需更多工具")],
        synthesis="结果是2。",
    )
    service = make_service(client, registry)

    reply = asyncio.run(service.send_message("1+1等于几？"))

    assert reply == "结果是2。"
    synthesis = client.synthesis_calls[0]
    assert synthesis["tools"] is None
    assert synthesis["tool_choice"] is None
    messages = synthesis["messages"]
    assert messages[0].content == SYNTHESIS_SYSTEM_PROMPT
    assert messages[1].content == "1+1等于几？"
    assert messages[-1].content == SUMMARY_INSTRUCTION
    assistant = [m for m in messages if m.role == MessageRole.ASSISTANT]
    assert assistant and all(m.content is None for m in assistant if m.tool_calls)
    assert all("草稿" not in (m.content or "") for m in messages)


def test_think_offers_catalog_with_auto_choice(registry):
    client = FakeChatClient([ChatResponse(content="好的")])
    service = make_service(client, registry)
    asyncio.run(service.send_message("你好"))
    call = client.think_calls[0]
    assert call["tool_choice"] == "auto"
    assert len(call["tools"]) == 6
    assert call["messages"][0].role == MessageRole.SYSTEM


def test_failing_tool_becomes_tool_message(registry):
    client = FakeChatClient(
        [tool_call_response(name="no_such_tool"), tool_call_response(arguments="{broken"), ChatResponse(content="完毕")]
    )
    service = make_service(client, registry)

    asyncio.run(service.send_message("试试看"))

    tool_messages = [m for m in service.conversation.messages if m.role == MessageRole.TOOL]
    assert len(tool_messages) == 2
    assert all(m.content.startswith(TOOL_FAILURE_PREFIX) for m in tool_messages)
    assert all(m.tool_call_id == "call_1" for m in tool_messages)
    assert service.state == AgentState.FINISHED


def test_parallel_tool_calls_keep_call_order(registry):
    calls = ChatResponse(tool_calls=tuple(tool_call_response(
        arguments=f'{{"expression": "{n}*10"}}', call_id=f"call_{n}").tool_calls[0] for n in (1, 2, 3)))
    client = FakeChatClient([calls, ChatResponse(content="完毕")])
    service = make_service(client, registry)

    asyncio.run(service.send_message("分别算一下"))

    tool_messages = [m for m in service.conversation.messages if m.role == MessageRole.TOOL]
    assert [m.tool_call_id for m in tool_messages] == ["call_1", "call_2", "call_3"]
    assert '"value": 30' in tool_messages[2].content


def test_model_failure_ends_in_error_without_saving(registry):
    store = InMemoryConversationStore()
    client = FakeChatClient([InvalidResponse("no choices")])
    service = AgentService(client=client, registry=registry, store=store)

    reply = asyncio.run(service.send_message("你好"))

    assert reply == FALLBACK_REPLY
    assert service.state == AgentState.ERROR
    assert service.state_machine.error_message == "Invalid response: no choices"
    assert asyncio.run(store.load_conversations()) == []
    assert service.visible_messages()[-1].content == FALLBACK_REPLY


def test_next_message_after_error_starts_a_new_run(registry):
    client = FakeChatClient([InvalidResponse("down")])
    service = make_service(client, registry)
    asyncio.run(service.send_message("你好"))
    assert service.state == AgentState.ERROR

    client.script = [ChatResponse(content="恢复了")]
    assert asyncio.run(service.send_message("再试一次")) == "恢复了"
    assert service.state == AgentState.FINISHED


def test_tool_markers_never_reach_the_transcript(registry):
    client = FakeChatClient([ChatResponse(content="好的<|tool_calls_begin|>calculator{}<|tool_calls_end|>")])
    service = make_service(client, registry)
    reply = asyncio.run(service.send_message("你好"))
    assert "<|" not in reply
    assert reply.startswith("好的")


def test_blank_input_is_ignored(registry):
    client = FakeChatClient()
    service = make_service(client, registry)
    assert asyncio.run(service.send_message("   ")) is None
    assert service.conversation.messages == []
    assert service.state == AgentState.IDLE


def test_busy_machine_rejects_new_message(registry):
    client = FakeChatClient()
    service = make_service(client, registry)
    service.state_machine.start_thinking()
    assert asyncio.run(service.send_message("你好")) is None
    assert client.calls == []


def test_complex_request_goes_through_workflow(registry):
    client = FakeChatClient()
    store = InMemoryConversationStore()
    service = AgentService(client=client, registry=registry, store=store)

    reply = asyncio.run(service.send_message(E2E_REQUEST))

    assert reply.startswith("为您生成的上海3天2夜旅行计划（预算：5000元）")
    assert client.calls == []
    assert service.state == AgentState.FINISHED
    assistant = [m for m in service.conversation.messages if m.role == MessageRole.ASSISTANT]
    assert [m.content for m in assistant] == [reply]
    saved = asyncio.run(store.load_conversations())
    assert saved[-1][-1].content == reply
    assert service.orchestrator.context_of(service.last_task_id) is None
    assert service.orchestrator.status_of(service.last_task_id) is None


def test_workflow_timeout_forces_finished_state():
    log = []
    client = FakeChatClient()

    async def scenario():
        orchestrator = WorkflowOrchestrator(ToolRegistry(), adapters=recording_adapters(log, delay=5))
        service = AgentService(
            client=client,
            registry=ToolRegistry(),
            store=InMemoryConversationStore(),
            settings=AgentSettings(workflow_timeout=0.05),
            orchestrator=orchestrator,
        )
        reply = await service.send_message(E2E_REQUEST)
        state = service.state
        await service.shutdown()
        return reply, state

    reply, state = asyncio.run(scenario())
    assert reply == TIMEOUT_REPLY
    assert state == AgentState.FINISHED


def test_clear_conversation(registry):
    store = InMemoryConversationStore()
    client = FakeChatClient([ChatResponse(content="好的")])
    service = AgentService(client=client, registry=registry, store=store)
    asyncio.run(service.send_message("你好"))

    asyncio.run(service.clear_conversation())

    assert service.conversation.messages == []
    assert service.state == AgentState.IDLE
    assert asyncio.run(store.load_conversations()) == []


def test_unreadable_history_file_does_not_break_the_reply(registry, tmp_path, caplog):
    path = tmp_path / "conversations.json"
    path.write_text("{not json", encoding="utf-8")
    client = FakeChatClient([ChatResponse(content="你好！"), ChatResponse(content="再见！")])
    service = AgentService(client=client, registry=registry, store=JsonFileConversationStore(path))

    with caplog.at_level(logging.WARNING):
        first = asyncio.run(service.send_message("你好"))
        second = asyncio.run(service.send_message("再见"))

    assert first == "你好！"
    assert second == "再见！"
    assert service.state == AgentState.FINISHED
    assert "Could not save conversation history" in caplog.text
    assert path.read_text(encoding="utf-8") == "{not json"
