# =============================================================================
# core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the shape of every piece of information that
# flows through the agent: conversation turns, tool calls, tool results,
# the agent and workflow lifecycles, and the typed entries a workflow
# stores in its shared context.
#
# Conversation turns are frozen: once a Message is appended to the log it
# never changes.  Synthesis builds *new* messages when it needs a cleaned
# copy of an old one.
# =============================================================================

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AgentState(str, Enum):
    """Lifecycle of one think/act run."""

    IDLE = "idle"
    THINKING = "thinking"
    ACTING = "acting"
    FINISHED = "finished"
    ERROR = "error"


class WorkflowState(str, Enum):
    """Lifecycle of one workflow request."""

    PENDING = "pending"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# ToolCall — one function call requested by the model
# -----------------------------------------------------------------------------
# arguments_raw is the JSON object text exactly as the model produced it.
# It is decoded only when the tool runs (see core/normalize.py).
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ToolCall:
    id: str
    function_name: str
    arguments_raw: str = "{}"

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function_name, "arguments": self.arguments_raw},
        }

    @classmethod
    def from_api(cls, payload: dict) -> "ToolCall":
        function = payload.get("function") or {}
        return cls(
            id=payload.get("id") or f"call_{uuid.uuid4().hex[:12]}",
            function_name=function.get("name", ""),
            arguments_raw=function.get("arguments") or "{}",
        )


# -----------------------------------------------------------------------------
# Message — one conversation turn
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Message:
    """A single turn in the conversation log.

    Invariants:
      - a ``tool`` message always carries ``tool_call_id``
      - an ``assistant`` message with ``tool_calls`` may have no content
    """

    role: MessageRole
    content: Optional[str] = None
    tool_calls: Optional[tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.role == MessageRole.TOOL and not self.tool_call_id:
            raise ValueError("tool messages must reference the triggering tool call")
        if self.tool_calls is not None and not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def without_content(self) -> "Message":
        """Copy of this message with its draft text dropped."""
        return replace(self, content=None)

    def to_api(self) -> dict:
        """Render as a chat-completion request message."""
        payload: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_api() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload

    def to_dict(self) -> dict:
        """Render for persistence."""
        payload = self.to_api()
        payload["id"] = self.id
        payload["timestamp"] = self.timestamp.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "Message":
        calls = payload.get("tool_calls")
        timestamp = payload.get("timestamp")
        return cls(
            role=MessageRole(payload["role"]),
            content=payload.get("content"),
            tool_calls=tuple(ToolCall.from_api(c) for c in calls) if calls else None,
            tool_call_id=payload.get("tool_call_id"),
            id=payload.get("id") or str(uuid.uuid4()),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(),
        )


@dataclass(frozen=True)
class ChatResponse:
    """First-choice message of a chat completion."""

    content: Optional[str] = None
    tool_calls: Optional[tuple[ToolCall, ...]] = None


# -----------------------------------------------------------------------------
# ToolExecutionResult — what every tool invocation resolves to
# -----------------------------------------------------------------------------
# raw is always JSON text (normalized); data is the decoded object.
# -----------------------------------------------------------------------------
@dataclass
class ToolExecutionResult:
    tool_name: str
    ok: bool
    raw: str
    data: dict = field(default_factory=dict)
    error: Optional[str] = None


# -----------------------------------------------------------------------------
# Workflow context entries
# -----------------------------------------------------------------------------
# A workflow's shared storage holds one of these per key.  Each variant is
# a known result shape; OtherResult is the open-ended bag for valid JSON
# with no recognised signature.
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class FlightResult:
    data: dict


@dataclass(frozen=True)
class HotelResult:
    data: dict


@dataclass(frozen=True)
class RouteResult:
    data: dict


@dataclass(frozen=True)
class BudgetResult:
    data: dict


@dataclass(frozen=True)
class OtherResult:
    data: dict


@dataclass(frozen=True)
class RawText:
    text: str


@dataclass(frozen=True)
class ErrorEntry:
    error: str
    query: dict = field(default_factory=dict)


ContextValue = Union[
    FlightResult, HotelResult, RouteResult, BudgetResult, OtherResult, RawText, ErrorEntry
]


# -----------------------------------------------------------------------------
# LocationInfo — one geocoded waypoint
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class LocationInfo:
    name: str
    lng: float
    lat: float

    @property
    def coordinates(self) -> str:
        return f"{self.lng},{self.lat}"


# -----------------------------------------------------------------------------
# HotelPOI — a hotel found around a point
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class HotelPOI:
    name: str
    location: str                      # "lng,lat"
    address: str = ""
    distance: Optional[int] = None     # metres from the search centre
