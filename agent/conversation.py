# =============================================================================
# agent/conversation.py  —  Conversation Manager
# =============================================================================
#
# Owns the ordered message log for one conversation.  The log is
# append-only while a run is in progress; messages themselves are frozen.
#
# Persistence goes through a ConversationStore (core/storage.py).  Saving,
# loading and clearing errors are logged and leave the in-memory log as it
# was; a run never fails because the store did.
# =============================================================================

import logging
from typing import Optional, Sequence

from core.models import Message, MessageRole, ToolCall
from core.storage import ConversationStore, InMemoryConversationStore

logger = logging.getLogger(__name__)


class ConversationManager:
    def __init__(self, store: Optional[ConversationStore] = None):
        self.store: ConversationStore = store if store is not None else InMemoryConversationStore()
        self._messages: list[Message] = []

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def add_system(self, content: str) -> Message:
        return self.append(Message(role=MessageRole.SYSTEM, content=content))

    def add_user(self, content: str) -> Message:
        return self.append(Message(role=MessageRole.USER, content=content))

    def add_assistant(self, content: Optional[str], tool_calls: Optional[Sequence[ToolCall]] = None) -> Message:
        calls = tuple(tool_calls) if tool_calls else None
        return self.append(Message(role=MessageRole.ASSISTANT, content=content, tool_calls=calls))

    def add_tool(self, tool_call_id: str, content: str) -> Message:
        return self.append(Message(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id))

    def has_system_prompt(self) -> bool:
        return any(m.role == MessageRole.SYSTEM for m in self._messages)

    def visible_messages(self) -> list[Message]:
        """The transcript a user sees: no tool turns, no call-only assistant turns."""
        return [
            m
            for m in self._messages
            if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and not m.has_tool_calls
        ]

    def clear_messages(self) -> None:
        self._messages = []

    async def save_history(self) -> None:
        if not self._messages:
            return
        try:
            await self.store.save_conversation(self._messages)
        except Exception as exc:
            logger.warning("Could not save conversation history: %s", exc)

    async def load_history(self) -> bool:
        """Restore the most recent saved conversation.  Returns True if one was loaded."""
        try:
            conversations = await self.store.load_conversations()
        except Exception as exc:
            logger.warning("Could not load conversation history: %s", exc)
            return False
        if not conversations:
            return False
        self._messages = list(conversations[-1])
        logger.info("Loaded %d messages from history", len(self._messages))
        return True

    async def clear_history(self) -> None:
        self.clear_messages()
        try:
            await self.store.clear_conversations()
        except Exception as exc:
            logger.warning("Could not clear conversation history: %s", exc)
