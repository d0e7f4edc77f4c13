# =============================================================================
# core/normalize.py  —  Tool Argument / Result Protocol
# =============================================================================
#
# Two directions cross the tool boundary:
#
#   model → tool:  arguments arrive as JSON object text.  parse_tool_arguments
#                  decodes them into a dict or raises DecodingError.
#
#   tool → model:  a tool returns text.  normalize_tool_result guarantees the
#                  text is JSON: valid JSON passes through untouched, anything
#                  else is wrapped as
#                      {"ok": true, "tool": <name>, "data": {"text": <raw>}}
#
# Every result consumed downstream (conversation log, workflow context,
# aggregation) has been through normalize_tool_result.
# =============================================================================

import json
from typing import Any, Optional, Union

from core.errors import DecodingError


def is_json(text: str) -> bool:
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return False
    return True


def normalize_tool_result(raw: str, tool_name: str) -> str:
    """Return ``raw`` if it is JSON, else the ``{ok, tool, data:{text}}`` wrapper."""
    if is_json(raw):
        return raw
    wrapper = {"ok": True, "tool": tool_name, "data": {"text": raw}}
    return json.dumps(wrapper, ensure_ascii=False)


def parse_tool_arguments(arguments: Union[str, bytes]) -> dict[str, Any]:
    """Decode the model's argument text into a key/value map.

    Raises:
        DecodingError: the text is not UTF-8, not JSON, or not a JSON object.
    """
    if isinstance(arguments, bytes):
        try:
            arguments = arguments.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodingError("Invalid UTF-8") from exc
    if not arguments or not arguments.strip():
        return {}
    try:
        decoded = json.loads(arguments)
    except ValueError as exc:
        raise DecodingError(f"Invalid JSON format: {exc}") from exc
    if not isinstance(decoded, dict):
        raise DecodingError("Invalid JSON format: arguments must be a JSON object")
    return decoded


def load_json_object(text: str) -> Optional[dict]:
    """Decode ``text`` as a JSON object; ``None`` for anything else."""
    try:
        decoded = json.loads(text)
    except (TypeError, ValueError):
        return None
    return decoded if isinstance(decoded, dict) else None


def dump_json(payload: Any, pretty: bool = False) -> str:
    if pretty:
        return json.dumps(payload, ensure_ascii=False, indent=2)
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
