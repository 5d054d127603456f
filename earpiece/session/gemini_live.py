"""
GeminiLiveSession: LiveSession over the google-genai Live API.

- Text responses only; input audio transcription enabled so the backend reports what
  it hears (without a source; attribution happens in the tagger).
- Sliding-window context compression keeps long conversations inside the model window.
- One receive task per session maps server messages to SessionCallbacks. The task ends
  by reporting on_close(reason) unless the session was closed by the user.

google-genai is imported lazily so the rest of the service runs without it.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Optional

from earpiece.config import get_settings
from earpiece.session.backend import LiveSession, SessionCallbacks, SessionParams

logger = logging.getLogger(__name__)


def _load_genai():
    """Import google-genai. Called when the first session connects with LIVE_BACKEND=gemini."""
    try:
        from google import genai
        from google.genai import types
    except ImportError as err:
        raise ImportError(
            "google-genai is required for LIVE_BACKEND=gemini. "
            "Install with: pip install 'earpiece[gemini]'"
        ) from err
    return genai, types


def build_live_config(types: Any, system_prompt: str, language: str, google_search: bool = True) -> Any:
    tools = [types.Tool(google_search=types.GoogleSearch())] if google_search else []
    return types.LiveConnectConfig(
        response_modalities=["TEXT"],
        tools=tools,
        input_audio_transcription=types.AudioTranscriptionConfig(),
        context_window_compression=types.ContextWindowCompressionConfig(sliding_window=types.SlidingWindow()),
        speech_config=types.SpeechConfig(language_code=language),
        system_instruction=types.Content(parts=[types.Part(text=system_prompt)]),
    )


class GeminiLiveSession(LiveSession):
    def __init__(self, connection_ctx: Any, session: Any, types: Any, callbacks: SessionCallbacks) -> None:
        self._ctx = connection_ctx
        self._session = session
        self._types = types
        self._callbacks = callbacks
        self._closed = False
        self._receive_task: Optional[asyncio.Task] = asyncio.create_task(self._receive_loop())

    async def send_audio(self, data_b64: str, mime_type: str) -> None:
        blob = self._types.Blob(data=base64.b64decode(data_b64), mime_type=mime_type)
        await self._session.send_realtime_input(audio=blob)

    async def send_text(self, text: str) -> None:
        await self._session.send_realtime_input(text=text)

    async def send_image(self, data_b64: str, mime_type: str = "image/jpeg") -> None:
        blob = self._types.Blob(data=base64.b64decode(data_b64), mime_type=mime_type)
        await self._session.send_realtime_input(media=blob)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._receive_task is not None:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None
        await self._ctx.__aexit__(None, None, None)

    async def _receive_loop(self) -> None:
        reason: Optional[str] = None
        try:
            while not self._closed:
                # receive() yields until the end of one model turn
                async for message in self._session.receive():
                    self._dispatch(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = str(e)
            logger.debug("Gemini receive loop ended: %s", reason)
        if not self._closed:
            self._callbacks.on_close(reason)

    def _dispatch(self, message: Any) -> None:
        content = getattr(message, "server_content", None)
        if content is None:
            return
        transcription = getattr(content, "input_transcription", None)
        if transcription is not None and transcription.text:
            self._callbacks.on_transcription(transcription.text)
        model_turn = getattr(content, "model_turn", None)
        if model_turn is not None and model_turn.parts:
            for part in model_turn.parts:
                if part.text:
                    self._callbacks.on_response_fragment(part.text)
        if getattr(content, "generation_complete", False):
            self._callbacks.on_response_complete()
        if getattr(content, "turn_complete", False):
            self._callbacks.on_turn_complete()


async def connect_gemini(params: SessionParams, system_prompt: str, callbacks: SessionCallbacks) -> LiveSession:
    """SessionConnector for google-genai. Raises on failure (message carries auth errors)."""
    genai, types = _load_genai()
    settings = get_settings()
    client = genai.Client(api_key=params.credentials)
    ctx = client.aio.live.connect(
        model=settings.GEMINI_MODEL,
        config=build_live_config(types, system_prompt, params.language, settings.GOOGLE_SEARCH_ENABLED),
    )
    session = await ctx.__aenter__()
    return GeminiLiveSession(ctx, session, types, callbacks)
