import json

import pytest

from core.errors import DecodingError
from core.normalize import dump_json, is_json, load_json_object, normalize_tool_result, parse_tool_arguments


@pytest.mark.parametrize("raw", ["计算结果：24", "plain text", "{broken", ""])
def test_non_json_output_is_wrapped(raw):
    normalized = json.loads(normalize_tool_result(raw, "calculator"))
    assert normalized == {"ok": True, "tool": "calculator", "data": {"text": raw}}


def test_json_output_passes_through_unchanged():
    raw = '{"ok": true, "value": 3}'
    assert normalize_tool_result(raw, "calculator") == raw
    assert normalize_tool_result("[1, 2]", "calculator") == "[1, 2]"


def test_parse_tool_arguments():
    assert parse_tool_arguments('{"city": "上海", "days": 3}') == {"city": "上海", "days": 3}
    assert parse_tool_arguments("") == {}
    assert parse_tool_arguments("   ") == {}
    assert parse_tool_arguments('{"a": 1}'.encode("utf-8")) == {"a": 1}


@pytest.mark.parametrize("bad", ["{not json", "[1, 2]", '"text"', b"\xff\xfe"])
def test_parse_tool_arguments_rejects_non_objects(bad):
    with pytest.raises(DecodingError):
        parse_tool_arguments(bad)


def test_json_helpers():
    assert is_json("null")
    assert not is_json("不是JSON")
    assert load_json_object("[1]") is None
    assert load_json_object('{"a": 1}') == {"a": 1}
    assert dump_json({"城市": "上海"}) == '{"城市":"上海"}'
    assert "\n" in dump_json({"a": 1}, pretty=True)
