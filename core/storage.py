# =============================================================================
# core/storage.py  —  Conversation Persistence
# =============================================================================
#
# The agent only needs three operations from storage:
#
#   save_conversation(messages)   append (or replace) one conversation
#   load_conversations()          every saved conversation, oldest first
#   clear_conversations()         forget everything
#
# A conversation is identified by the id of its first message, so saving
# the same growing conversation after every run replaces the earlier copy
# instead of piling up snapshots.
#
# JsonFileConversationStore keeps everything in one JSON file; file I/O runs
# in a worker thread so the event loop never blocks on disk.
# =============================================================================

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Protocol, Sequence

from core.errors import DecodingError
from core.models import Message

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    async def save_conversation(self, messages: Sequence[Message]) -> None:
        ...

    async def load_conversations(self) -> list[list[Message]]:
        ...

    async def clear_conversations(self) -> None:
        ...


def _merge(saved: list[list[Message]], messages: Sequence[Message]) -> list[list[Message]]:
    conversation = list(messages)
    if not conversation:
        return saved
    first_id = conversation[0].id
    for index, existing in enumerate(saved):
        if existing and existing[0].id == first_id:
            saved[index] = conversation
            return saved
    saved.append(conversation)
    return saved


class InMemoryConversationStore:
    """Keeps conversations for the lifetime of the process."""

    def __init__(self):
        self._conversations: list[list[Message]] = []

    async def save_conversation(self, messages: Sequence[Message]) -> None:
        self._conversations = _merge(self._conversations, messages)

    async def load_conversations(self) -> list[list[Message]]:
        return [list(c) for c in self._conversations]

    async def clear_conversations(self) -> None:
        self._conversations = []


class JsonFileConversationStore:
    """Stores every conversation as a list of message dicts in one file."""

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> list[list[Message]]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            return [[Message.from_dict(m) for m in conversation] for conversation in payload]
        except (ValueError, KeyError, TypeError) as exc:
            raise DecodingError(f"cannot read {self.path}: {exc}") from exc

    def _write(self, conversations: list[list[Message]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [[m.to_dict() for m in conversation] for conversation in conversations]
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def _save(self, messages: Sequence[Message]) -> None:
        self._write(_merge(self._read(), messages))

    def _clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    async def save_conversation(self, messages: Sequence[Message]) -> None:
        await asyncio.to_thread(self._save, list(messages))
        logger.info("Saved conversation (%d messages) to %s", len(messages), self.path)

    async def load_conversations(self) -> list[list[Message]]:
        return await asyncio.to_thread(self._read)

    async def clear_conversations(self) -> None:
        await asyncio.to_thread(self._clear)
