from core.models import Message, MessageRole, ToolCall
from core.synthesis import (
    FALLBACK_REPLY,
    NEUTRAL_ACKNOWLEDGEMENT,
    build_synthesis_messages,
    contains_tool_markers,
    finalize_reply,
    strip_tool_markers,
)

CALL = ToolCall("call_1", "calculator", '{"expression": "1+1"}')


def conversation():
    return [
        Message(role=MessageRole.SYSTEM, content="你是旅行助手"),
        Message(role=MessageRole.USER, content="第一个问题"),
        Message(role=MessageRole.ASSISTANT, content="第一个回答"),
        Message(role=MessageRole.USER, content="1+1等于几？"),
        Message(role=MessageRole.ASSISTANT, content="我来算一下，答案大概是2", tool_calls=(CALL,)),
        Message(role=MessageRole.TOOL, content='{"value": 2}', tool_call_id="call_1"),
    ]


def test_reduced_context_starts_at_last_user_message():
    reduced = build_synthesis_messages(conversation(), "规则", "请总结")
    assert [m.role for m in reduced] == [
        MessageRole.SYSTEM,
        MessageRole.USER,
        MessageRole.ASSISTANT,
        MessageRole.TOOL,
        MessageRole.USER,
    ]
    assert reduced[0].content == "规则"
    assert reduced[1].content == "1+1等于几？"
    assert reduced[-1].content == "请总结"


def test_draft_content_of_tool_calling_assistant_is_cleared():
    messages = conversation()
    reduced = build_synthesis_messages(messages, "规则", "请总结")
    assistant = reduced[2]
    assert assistant.content is None
    assert assistant.tool_calls == (CALL,)
    assert all("答案大概是2" not in (m.content or "") for m in reduced)
    # the log itself is untouched
    assert messages[4].content == "我来算一下，答案大概是2"


def test_reduced_context_without_user_message_keeps_everything_but_system():
    messages = [
        Message(role=MessageRole.SYSTEM, content="旧规则"),
        Message(role=MessageRole.ASSISTANT, content="草稿", tool_calls=(CALL,)),
    ]
    reduced = build_synthesis_messages(messages, "规则", "请总结")
    assert [m.content for m in reduced] == ["规则", None, "请总结"]


def test_full_width_markers_collapse_to_one_acknowledgement():
    text = (
        "好的<｜tool▁calls▁begin｜><｜tool▁call▁begin｜>function<｜tool▁sep｜>calculator\n"
        '{"expression": "1+1"}<｜tool▁call▁end｜><｜tool▁calls▁end｜>'
    )
    assert contains_tool_markers(text)
    cleaned = strip_tool_markers(text)
    assert cleaned == f"好的{NEUTRAL_ACKNOWLEDGEMENT}"
    assert "tool" not in cleaned


def test_ascii_markers_are_removed():
    text = "结果如下 <|tool_calls_begin|>calculator {}<|tool_calls_end|> 谢谢"
    cleaned = strip_tool_markers(text)
    assert "<|" not in cleaned
    assert NEUTRAL_ACKNOWLEDGEMENT in cleaned
    assert cleaned.endswith("谢谢")


def test_xml_tool_call_block_is_removed():
    cleaned = strip_tool_markers('<tool_call>{"name": "calculator"}</tool_call>答案是2')
    assert cleaned == f"{NEUTRAL_ACKNOWLEDGEMENT}答案是2"


def test_clean_text_is_left_alone():
    assert not contains_tool_markers("上海三日游建议如下")
    assert strip_tool_markers("  上海三日游建议如下  ") == "上海三日游建议如下"


def test_finalize_reply_falls_back_on_empty_content():
    assert finalize_reply(None) == FALLBACK_REPLY
    assert finalize_reply("") == FALLBACK_REPLY
    assert finalize_reply("   \n") == FALLBACK_REPLY
    assert finalize_reply(" 你好 ") == "你好"
