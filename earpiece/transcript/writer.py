"""
ConversationWriter: append-only persistence of saved conversation turns.

- One file per session: CONVERSATION_DIR/{session_id}.jsonl, one JSON object per turn.
- Append-only: turns are immutable once created, so lines are never rewritten.
- Worker task drains a queue so the session event path never blocks on disk.
- The core emits turns; only this consumer-side writer touches the filesystem.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from earpiece.config import get_settings
from earpiece.transcript.models import ConversationTurnSaved

logger = logging.getLogger(__name__)


class ConversationWriterBase(ABC):
    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    def append(self, saved: ConversationTurnSaved) -> None:
        """Queue one turn for writing. Non-blocking."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Drain and stop. Safe to call from finally."""
        ...


class NoOpConversationWriter(ConversationWriterBase):
    """When conversation saving is disabled. No file I/O."""

    async def start(self) -> None:
        pass

    def append(self, saved: ConversationTurnSaved) -> None:
        pass

    async def close(self) -> None:
        pass


class ConversationWriter(ConversationWriterBase):
    def __init__(self, conversation_dir: Optional[str] = None) -> None:
        self._dir = conversation_dir or get_settings().CONVERSATION_DIR
        self._queue: asyncio.Queue[Optional[tuple[str, str]]] = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None

    def path_for(self, session_id: str) -> str:
        return os.path.join(self._dir, f"{session_id}.jsonl")

    async def _worker(self) -> None:
        """Drain queue: append each line. None = stop. Log errors, never crash."""
        while True:
            item = await self._queue.get()
            if item is None:
                break
            path, line = item
            try:
                os.makedirs(self._dir, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.warning("Conversation write failed for %s: %s", path, e)

    async def start(self) -> None:
        if self._worker_task is None:
            self._worker_task = asyncio.create_task(self._worker())

    def append(self, saved: ConversationTurnSaved) -> None:
        line = json.dumps({"session_id": saved.session_id, **saved.turn.to_dict()}, ensure_ascii=False)
        self._queue.put_nowait((self.path_for(saved.session_id), line))
        logger.debug("Queued conversation turn for session %s", saved.session_id)

    async def close(self) -> None:
        if self._worker_task is None:
            return
        try:
            self._queue.put_nowait(None)
            await asyncio.wait_for(self._worker_task, timeout=5.0)
        except asyncio.TimeoutError:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None


def create_conversation_writer() -> ConversationWriterBase:
    """Create writer when CONVERSATION_SAVE_ENABLED is true; else no-op."""
    if not get_settings().CONVERSATION_SAVE_ENABLED:
        return NoOpConversationWriter()
    return ConversationWriter()
