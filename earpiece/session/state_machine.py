"""
SessionStateMachine: lifecycle of the connection to the live backend.

States: IDLE -> INITIALIZING -> CONNECTED -> {ERROR, CLOSED};
CONNECTED -> RECONNECTING -> CONNECTED | CLOSED.

- initialize() is single-flight: a concurrent call is rejected, not queued.
- Fresh initialize resets the attempt counter and, on success, stores SessionParams.
  Reconnection reuses stored params and never overwrites them.
- Authentication failure (pattern-matched) clears params and exhausts attempts:
  no reconnection until a new explicit initialize.
- Transient close/error: bounded reconnection, RECONNECT_MAX_ATTEMPTS tries spaced
  RECONNECT_DELAY_SEC apart, as a loop in one task.
- Every connection gets a generation number; events from an older connection are ignored.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from earpiece.config import get_settings
from earpiece.errors import ErrorKind, OperationResult, is_authentication_failure
from earpiece.services.prompts import build_system_prompt
from earpiece.session.backend import LiveSession, SessionCallbacks, SessionConnector, SessionParams

logger = logging.getLogger(__name__)

NO_SESSION_MESSAGE = "No active Gemini session"


class SessionState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    CLOSED = "closed"


def _noop(*_args) -> None:
    return None


async def _noop_async() -> None:
    return None


class SessionStateMachine:
    def __init__(
        self,
        connector: SessionConnector,
        on_status: Callable[[str], None] = _noop,
        on_initializing: Callable[[bool], None] = _noop,
        on_transcription: Callable[[str], None] = _noop,
        on_response_fragment: Callable[[str], None] = _noop,
        on_response_complete: Callable[[], None] = _noop,
        on_turn_complete: Callable[[], None] = _noop,
        on_reconnected: Callable[[], Awaitable[None]] = _noop_async,
        prompt_builder: Callable[[SessionParams], str] | None = None,
        max_attempts: int | None = None,
        reconnect_delay_sec: float | None = None,
    ) -> None:
        settings = get_settings()
        self._connector = connector
        self._on_status = on_status
        self._on_initializing = on_initializing
        self._on_transcription = on_transcription
        self._on_response_fragment = on_response_fragment
        self._on_response_complete = on_response_complete
        self._on_turn_complete = on_turn_complete
        self._on_reconnected = on_reconnected
        self._prompt_builder = prompt_builder or (lambda p: build_system_prompt(p.profile, p.custom_prompt))
        self.max_attempts = max_attempts if max_attempts is not None else settings.RECONNECT_MAX_ATTEMPTS
        self._delay = reconnect_delay_sec if reconnect_delay_sec is not None else settings.RECONNECT_DELAY_SEC

        self._state = SessionState.IDLE
        self._session: Optional[LiveSession] = None
        self._params: Optional[SessionParams] = None
        self._attempts = 0
        self._generation = 0
        self._initializing = False
        self._reconnecting = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing: set[asyncio.Task] = set()

    # --- Introspection ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def params(self) -> Optional[SessionParams]:
        return self._params

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def is_initializing(self) -> bool:
        return self._initializing

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED and self._session is not None

    @property
    def reconnect_task(self) -> Optional[asyncio.Task]:
        return self._reconnect_task

    # --- Lifecycle ---

    async def initialize(self, params: SessionParams, is_reconnection: bool = False) -> OperationResult:
        if self._initializing:
            logger.info("Session initialization already in progress")
            return OperationResult.fail(ErrorKind.ALREADY_IN_FLIGHT, "Session initialization already in progress")

        self._initializing = True
        self._emit(self._on_initializing, True)
        if not is_reconnection:
            self._attempts = 0
        self._state = SessionState.INITIALIZING
        try:
            generation = await self._retire_current()
            callbacks = self._callbacks_for(generation)
            session = await self._connector(params, self._prompt_builder(params), callbacks)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            if is_authentication_failure(message):
                logger.error("Live session rejected credentials: %s", message)
                self._block_reconnection()
                self._emit(self._on_status, "Error: Invalid API key")
                return OperationResult.fail(ErrorKind.AUTHENTICATION_FAILURE, "Invalid API key")
            logger.warning("Failed to initialize live session: %s", message)
            self._state = SessionState.ERROR
            return OperationResult.fail(ErrorKind.TRANSIENT_DISCONNECT, message)
        finally:
            self._initializing = False
            self._emit(self._on_initializing, False)

        if generation != self._generation:
            # Closed by the user while connecting
            await self._close_quietly(session)
            return OperationResult.fail(ErrorKind.NO_SESSION, "Session closed during initialization")

        self._session = session
        self._state = SessionState.CONNECTED
        if not is_reconnection:
            self._params = params
        logger.info("Live session connected (generation %d)", generation)
        self._emit(self._on_status, "Live session connected")
        return OperationResult.ok()

    async def close(self) -> OperationResult:
        """User close: clears params so nothing reconnects."""
        self._params = None
        self._generation += 1
        self._state = SessionState.CLOSED
        session, self._session = self._session, None
        if session is not None:
            await self._close_quietly(session)
        logger.info("Live session closed by user")
        return OperationResult.ok()

    # --- Outbound ---

    async def send_audio(self, data_b64: str, mime_type: str) -> OperationResult:
        return await self._send("audio", lambda s: s.send_audio(data_b64, mime_type))

    async def send_text(self, text: str) -> OperationResult:
        return await self._send("text", lambda s: s.send_text(text))

    async def send_image(self, data_b64: str, mime_type: str = "image/jpeg") -> OperationResult:
        return await self._send("image", lambda s: s.send_image(data_b64, mime_type))

    async def _send(self, kind: str, op: Callable[[LiveSession], Awaitable[None]]) -> OperationResult:
        session = self._session
        if session is None or self._state is not SessionState.CONNECTED:
            return OperationResult.fail(ErrorKind.NO_SESSION, NO_SESSION_MESSAGE)
        try:
            await op(session)
        except Exception as e:
            logger.warning("Failed to send %s: %s", kind, e)
            return OperationResult.fail(ErrorKind.TRANSIENT_DISCONNECT, str(e))
        return OperationResult.ok()

    # --- Transport events ---

    def _callbacks_for(self, generation: int) -> SessionCallbacks:
        def current(fn):
            def wrapper(*args):
                if generation != self._generation:
                    logger.debug("Ignoring event from stale session generation %d", generation)
                    return
                fn(*args)

            return wrapper

        return SessionCallbacks(
            on_transcription=current(lambda text: self._emit(self._on_transcription, text)),
            on_response_fragment=current(lambda text: self._emit(self._on_response_fragment, text)),
            on_response_complete=current(lambda: self._emit(self._on_response_complete)),
            on_turn_complete=current(lambda: self._emit(self._on_turn_complete)),
            on_error=current(self._handle_error),
            on_close=current(self._handle_close),
        )

    def _handle_error(self, message: str) -> None:
        message = message or "unknown error"
        if is_authentication_failure(message):
            logger.error("Live session error due to invalid API key; stopping reconnection")
            self._block_reconnection()
            self._emit(self._on_status, "Error: Invalid API key")
            return
        logger.warning("Live session error: %s", message)
        self._emit(self._on_status, f"Error: {message}")
        self._handle_disconnect()

    def _handle_close(self, reason: Optional[str]) -> None:
        if is_authentication_failure(reason):
            logger.error("Live session closed due to invalid API key; stopping reconnection")
            self._block_reconnection()
            self._emit(self._on_status, "Session closed: Invalid API key")
            return
        logger.info("Live session closed: %s", reason)
        self._handle_disconnect()

    def _handle_disconnect(self) -> None:
        self._drop_session()
        if self._reconnecting:
            return
        if self._params is not None and self._attempts < self.max_attempts:
            self._state = SessionState.RECONNECTING
            self._reconnecting = True
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_loop())
        else:
            self._state = SessionState.CLOSED
            self._emit(self._on_status, "Session closed")

    def _block_reconnection(self) -> None:
        self._params = None
        self._attempts = self.max_attempts
        self._drop_session()
        self._state = SessionState.CLOSED

    async def _reconnect_loop(self) -> bool:
        try:
            while True:
                params = self._params
                if params is None or self._attempts >= self.max_attempts:
                    logger.error("All reconnection attempts failed")
                    self._state = SessionState.CLOSED
                    self._emit(self._on_status, "Session closed")
                    return False
                self._attempts += 1
                logger.warning("Attempting reconnection %d/%d...", self._attempts, self.max_attempts)
                await asyncio.sleep(self._delay)
                if self._state is not SessionState.RECONNECTING:
                    # User closed or started a fresh session meanwhile
                    return False
                result = await self.initialize(params, is_reconnection=True)
                if result.success:
                    self._attempts = 0
                    logger.info("Live session reconnected")
                    break
                if result.kind in (ErrorKind.AUTHENTICATION_FAILURE, ErrorKind.ALREADY_IN_FLIGHT, ErrorKind.NO_SESSION):
                    return False
                logger.warning("Reconnection attempt %d failed: %s", self._attempts, result.error)
                self._state = SessionState.RECONNECTING
        finally:
            self._reconnecting = False
        try:
            await self._on_reconnected()
        except Exception:
            logger.exception("Error sending reconnection context")
        return True

    # --- Helpers ---

    async def _retire_current(self) -> int:
        """Bump generation and close any previous session best-effort. Returns the new generation."""
        self._generation += 1
        previous, self._session = self._session, None
        if previous is not None:
            await self._close_quietly(previous)
        return self._generation

    def _drop_session(self) -> None:
        """Forget the current handle and release it in the background (transport already gone)."""
        session, self._session = self._session, None
        if session is None:
            return
        task = asyncio.get_running_loop().create_task(self._close_quietly(session))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_quietly(self, session: LiveSession) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.debug("Error closing previous session: %s", e)

    def _emit(self, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Session listener failed")
