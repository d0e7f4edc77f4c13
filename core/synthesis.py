# =============================================================================
# core/synthesis.py  —  Final-Response Assembly
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Prepares the reduced context for the final-answer completion and cleans
#   up whatever text comes back.
#
#   1. build_synthesis_messages() keeps only the tail of the conversation that
#      starts at the last user message.  Any assistant message in that tail
#      that requested tools loses its draft content (the calls stay), so the
#      model cannot paste its own draft back.  A system instruction goes on
#      top and an explicit "summarize in natural language" user turn goes at
#      the end.
#
#   2. strip_tool_markers() removes tool-call delimiter sequences the model
#      may still emit, including the full-width / lower-one-eighth-block
#      look-alikes (<｜tool▁calls▁begin｜>).  A whole delimited block collapses
#      into one neutral acknowledgement phrase.
#
#   3. finalize_reply() applies the marker pass and substitutes the fixed
#      apology when nothing usable is left.
#
# Nothing here talks to a model; agent/executor.py owns the call.
# =============================================================================

import re
from typing import Optional, Sequence

from core.models import Message, MessageRole

FALLBACK_REPLY = "抱歉，处理您的请求时遇到了问题。"
NEUTRAL_ACKNOWLEDGEMENT = "（已根据查询结果为您整理）"

# "|" or full-width "｜"; "_" or "▁" (U+2581) or a plain space between words.
_BAR = r"[|｜]"
_SEP = r"[_▁ ]?"
_MARKER_BODY = rf"tool{_SEP}(?:calls?{_SEP})?(?:begin|end|sep|output{_SEP}begin|output{_SEP}end|outputs{_SEP}begin|outputs{_SEP}end)"

_MARKER = re.compile(rf"<\s*{_BAR}\s*{_MARKER_BODY}\s*{_BAR}\s*>", re.IGNORECASE)
_BLOCK = re.compile(
    rf"<\s*{_BAR}\s*tool{_SEP}calls?{_SEP}begin\s*{_BAR}\s*>.*?"
    rf"(?:<\s*{_BAR}\s*tool{_SEP}calls?{_SEP}end\s*{_BAR}\s*>|$)",
    re.IGNORECASE | re.DOTALL,
)
_XML_BLOCK = re.compile(r"<tool_call>.*?(?:</tool_call>|$)", re.IGNORECASE | re.DOTALL)
_REPEATED_ACK = re.compile(rf"(?:{re.escape(NEUTRAL_ACKNOWLEDGEMENT)}\s*){{2,}}")


def build_synthesis_messages(
    messages: Sequence[Message],
    system_instruction: str,
    summary_instruction: str,
) -> list[Message]:
    """Build the reduced context sent for the final answer.

    Args:
        messages: The full conversation log, oldest first.
        system_instruction: Prepended as a system turn.
        summary_instruction: Appended as a user turn.

    Returns:
        A new list; the input log is not modified.
    """
    last_user = None
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == MessageRole.USER:
            last_user = index
            break

    tail = list(messages) if last_user is None else list(messages[last_user:])
    reduced = [
        m.without_content() if m.role == MessageRole.ASSISTANT and m.tool_calls is not None else m
        for m in tail
        if m.role != MessageRole.SYSTEM
    ]
    return [
        Message(role=MessageRole.SYSTEM, content=system_instruction),
        *reduced,
        Message(role=MessageRole.USER, content=summary_instruction),
    ]


def strip_tool_markers(text: str) -> str:
    """Replace tool-call syntax with the neutral acknowledgement phrase."""
    cleaned = _BLOCK.sub(NEUTRAL_ACKNOWLEDGEMENT, text)
    cleaned = _XML_BLOCK.sub(NEUTRAL_ACKNOWLEDGEMENT, cleaned)
    cleaned = _MARKER.sub(NEUTRAL_ACKNOWLEDGEMENT, cleaned)
    cleaned = _REPEATED_ACK.sub(NEUTRAL_ACKNOWLEDGEMENT, cleaned)
    return cleaned.strip()


def contains_tool_markers(text: str) -> bool:
    return bool(_MARKER.search(text) or _XML_BLOCK.search(text))


def finalize_reply(content: Optional[str]) -> str:
    """Marker-strip ``content``; fall back to the apology if nothing remains."""
    if not content or not content.strip():
        return FALLBACK_REPLY
    cleaned = strip_tool_markers(content)
    return cleaned or FALLBACK_REPLY
