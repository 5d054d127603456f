"""
ManualResponseOrchestrator: builds the context prompt on explicit user action and
collects the streamed answer.

- Single-flight: a request while one is awaiting is rejected without touching the
  in-flight timer.
- Deadline: RESPONSE_TIMEOUT_SEC via loop.call_later. Completion cancels the timer;
  the timer clears the awaiting flag. Whichever fires first disables the other.
- A ConversationTurn is created only when a completed response has content.
- Transcription events never trigger a response.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from earpiece.config import get_settings
from earpiece.consumer import ConsumerBase
from earpiece.errors import ErrorKind, OperationResult
from earpiece.services.prompts import build_manual_prompt
from earpiece.session_context import SessionContext
from earpiece.transcript.log import TranscriptLog
from earpiece.transcript.models import ConversationTurnSaved

if TYPE_CHECKING:
    from earpiece.session.state_machine import SessionStateMachine

logger = logging.getLogger(__name__)

ALREADY_PROCESSING = "Already processing a request"
TIMEOUT_STATUS = "Request timeout - ready for new requests"
REQUEST_CANCELLED = "Request cancelled by context reset"


class ManualResponseOrchestrator:
    def __init__(
        self,
        session: "SessionStateMachine",
        log: TranscriptLog,
        context: SessionContext,
        consumer: ConsumerBase,
        timeout_sec: float | None = None,
        screenshot_wait_sec: float | None = None,
    ) -> None:
        settings = get_settings()
        self._session = session
        self._log = log
        self._context = context
        self._consumer = consumer
        self._timeout = timeout_sec if timeout_sec is not None else settings.RESPONSE_TIMEOUT_SEC
        self._screenshot_wait = (
            screenshot_wait_sec if screenshot_wait_sec is not None else settings.SCREENSHOT_WAIT_SEC
        )
        self._awaiting = False
        self._buffer = ""
        self._timer: Optional[asyncio.TimerHandle] = None
        # Bumped per request and on reset
        self._generation = 0

    @property
    def awaiting(self) -> bool:
        return self._awaiting

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def timer(self) -> Optional[asyncio.TimerHandle]:
        return self._timer

    async def request(self, with_screenshot: bool = False) -> OperationResult:
        if not self._session.is_connected:
            return OperationResult.fail(ErrorKind.NO_SESSION, "No active Gemini session")
        if self._awaiting:
            logger.info("Already waiting for a manual response, skipping request")
            return OperationResult.fail(ErrorKind.ALREADY_IN_FLIGHT, ALREADY_PROCESSING)

        # Claimed before the first await so a concurrent request sees it
        self._awaiting = True
        self._buffer = ""
        self._generation += 1
        generation = self._generation
        try:
            if with_screenshot:
                self._consumer.on_screenshot_requested()
                await asyncio.sleep(self._screenshot_wait)
            if generation != self._generation:
                logger.info("Manual request superseded by a reset, not sending")
                return OperationResult.fail(ErrorKind.NO_SESSION, REQUEST_CANCELLED)

            lines, words = self._log.format_for_context(use_labels=True)
            focus = self._log.interviewer_statements()
            prompt = build_manual_prompt(lines, words, focus, with_screenshot=with_screenshot)

            self._start_timer()
            result = await self._session.send_text(prompt)
        except BaseException:
            self._release(generation)
            raise
        if not result.success:
            self._release(generation)
            return result
        logger.info("Sent manual context request (%d words)", words)
        return OperationResult.ok(word_count=words)

    def on_response_fragment(self, text: str) -> None:
        if not self._awaiting or not text:
            return
        self._buffer += text
        self._consumer.on_response_fragment(text)

    def on_response_complete(self) -> None:
        if not self._awaiting:
            return
        self._cancel_timer()
        if self._buffer:
            turn = self._context.add_turn(self._log.format_turn_context(), self._buffer)
            self._consumer.on_conversation_turn_saved(
                ConversationTurnSaved(
                    session_id=self._context.session_id,
                    turn=turn,
                    full_history=list(self._context.conversation_history),
                )
            )
        self._buffer = ""
        self._awaiting = False
        self._consumer.on_response_complete()

    def on_turn_complete(self) -> None:
        self._consumer.on_status("Listening...")

    def reset(self) -> None:
        """Drop the in-flight request; a request still preparing its prompt will not send."""
        self._generation += 1
        self._cancel_timer()
        self._awaiting = False
        self._buffer = ""

    def _release(self, generation: int) -> None:
        # A reset in between already released the flag; a newer request may own it now
        if generation != self._generation:
            return
        self._cancel_timer()
        self._awaiting = False
        self._buffer = ""

    def _start_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(self._timeout, self._on_timeout)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self) -> None:
        self._timer = None
        if not self._awaiting:
            return
        logger.warning("Manual response timeout - resetting flag")
        self._awaiting = False
        self._buffer = ""
        self._consumer.on_status(TIMEOUT_STATUS)
