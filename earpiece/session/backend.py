"""
LiveSession: abstract interface for the streaming transcription/response backend.

The session is opaque: audio, text and images go in; transcription fragments, response
fragments and lifecycle events come back through SessionCallbacks. Implementations
must deliver callbacks on the event loop and never block it.

Implementations: GeminiLiveSession (google-genai). Tests use an in-memory fake.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional


@dataclass(frozen=True)
class SessionParams:
    """Last-known-good connection parameters, reused on reconnection."""

    credentials: str
    custom_prompt: str = ""
    profile: str = "interview"
    language: str = "en-US"


@dataclass
class SessionCallbacks:
    """Events delivered by a live session. All are plain functions; none may block."""

    on_transcription: Callable[[str], None]
    on_response_fragment: Callable[[str], None]
    on_response_complete: Callable[[], None]
    on_turn_complete: Callable[[], None]
    on_error: Callable[[str], None]
    on_close: Callable[[Optional[str]], None]


class LiveSession(ABC):
    """
    One connected session. send_* are async and may raise on transport failure;
    the state machine maps failures to TRANSIENT_DISCONNECT results.
    """

    @abstractmethod
    async def send_audio(self, data_b64: str, mime_type: str) -> None:
        ...

    @abstractmethod
    async def send_text(self, text: str) -> None:
        ...

    @abstractmethod
    async def send_image(self, data_b64: str, mime_type: str = "image/jpeg") -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        """User-side close. Must not report on_close back for a user close."""
        ...


# (params, system_prompt, callbacks) -> connected session; raises on failure
SessionConnector = Callable[[SessionParams, str, SessionCallbacks], Awaitable[LiveSession]]
