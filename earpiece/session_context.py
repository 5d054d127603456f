"""
SessionContext: the conversation owned by one controller.

session_id is generated on the backend (millisecond timestamp string). Turns are
appended only by the manual response orchestrator; everything else reads snapshots.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from earpiece.transcript.models import ConversationTurn

logger = logging.getLogger(__name__)


def generate_session_id(clock: Callable[[], float] = time.time) -> str:
    """Millisecond timestamp string, e.g. '1718000000000'."""
    return str(int(clock() * 1000))


class SessionContext:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.session_id: Optional[str] = None
        self.conversation_history: list[ConversationTurn] = []

    def create(self) -> str:
        """Start a new conversation; previous history is dropped."""
        self.session_id = generate_session_id(self._clock)
        self.conversation_history = []
        logger.info("New conversation session started: %s", self.session_id)
        return self.session_id

    def reset(self) -> str:
        return self.create()

    def destroy(self) -> None:
        self.session_id = None
        self.conversation_history = []

    def add_turn(self, transcription: str, ai_response: str) -> ConversationTurn:
        if self.session_id is None:
            self.create()
        turn = ConversationTurn(
            timestamp=self._clock(),
            transcription=transcription.strip(),
            ai_response=ai_response.strip(),
        )
        self.conversation_history.append(turn)
        logger.info("Saved conversation turn (%d in session %s)", len(self.conversation_history), self.session_id)
        return turn

    def snapshot(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "history": [t.to_dict() for t in self.conversation_history],
        }
