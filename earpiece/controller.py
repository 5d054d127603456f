"""
AssistantController: wires capture -> routing -> session -> tagging -> orchestration.

Capture path (ingest): synchronous and bounded. Send units are encoded, recorded for
attribution, and queued; a sender task drains the queue to the live session, so the
capture callback never awaits network I/O.

Event path: the session state machine delivers transcription and response events
to the tagger and the orchestrator; status goes to the consumer.

Every public operation returns an OperationResult and never raises.
"""
from __future__ import annotations

import asyncio
import binascii
import functools
import inspect
import logging
import time
from typing import Any, Callable, Optional

import numpy as np

from earpiece.audio.codec import encode_audio_payload, from_base64, pcm16_to_float32, stereo_to_mono
from earpiece.audio.models import AudioSource, SendUnit
from earpiece.audio.pipeline import DualSourcePipeline
from earpiece.audio.recorder import DebugAudioRecorderBase, create_debug_recorder
from earpiece.config import get_settings
from earpiece.consumer import ConsumerBase, NoOpConsumer
from earpiece.errors import ErrorKind, OperationResult
from earpiece.services.orchestrator import ManualResponseOrchestrator
from earpiece.services.prompts import build_reconnection_context
from earpiece.session.backend import SessionConnector, SessionParams
from earpiece.session.state_machine import SessionStateMachine
from earpiece.session_context import SessionContext
from earpiece.transcript.attribution import SourceAttributor
from earpiece.transcript.log import TranscriptLog
from earpiece.transcript.tagger import TranscriptionTagger

logger = logging.getLogger(__name__)


def _never_raises(fn):
    """Log unexpected failures and report them as a transient, non-fatal result."""

    def _fail(self, e: Exception) -> OperationResult:
        logger.exception("%s failed", fn.__name__)
        self._status(f"Error: {e}")
        return OperationResult.fail(ErrorKind.TRANSIENT_DISCONNECT, str(e))

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def async_wrapper(self, *args, **kwargs):
            try:
                return await fn(self, *args, **kwargs)
            except Exception as e:
                return _fail(self, e)

        return async_wrapper

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except Exception as e:
            return _fail(self, e)

    return wrapper


class AssistantController:
    def __init__(
        self,
        connector: SessionConnector,
        consumer: ConsumerBase | None = None,
        clock: Callable[[], float] = time.time,
        pipeline: DualSourcePipeline | None = None,
        recorder: DebugAudioRecorderBase | None = None,
        session: SessionStateMachine | None = None,
        orchestrator: ManualResponseOrchestrator | None = None,
    ) -> None:
        settings = get_settings()
        self._clock = clock
        self._consumer = consumer or NoOpConsumer()
        self._transport = settings.AUDIO_TRANSPORT
        self._min_image_bytes = settings.MIN_IMAGE_BYTES

        self.context = SessionContext(clock=clock)
        self.log = TranscriptLog(clock=clock)
        self.attributor = SourceAttributor(clock=clock)
        self.pipeline = pipeline or DualSourcePipeline(on_source_changed=self._consumer.on_audio_source_changed)
        self.tagger = TranscriptionTagger(
            self.log,
            self.attributor,
            session_id=lambda: self.context.session_id,
            on_update=self._consumer.on_transcription_update,
        )
        self.session = session or SessionStateMachine(
            connector,
            on_status=self._status,
            on_initializing=self._consumer.on_session_initializing,
            on_transcription=self.tagger.on_transcription,
            on_response_fragment=lambda text: self.orchestrator.on_response_fragment(text),
            on_response_complete=lambda: self.orchestrator.on_response_complete(),
            on_turn_complete=lambda: self.orchestrator.on_turn_complete(),
            on_reconnected=self._send_reconnection_context,
        )
        self.orchestrator = orchestrator or ManualResponseOrchestrator(
            self.session, self.log, self.context, self._consumer
        )
        self._recorder = recorder or create_debug_recorder()
        self._outbox: asyncio.Queue[tuple[SendUnit, str, str]] = asyncio.Queue(maxsize=settings.AUDIO_OUTBOX_MAX)
        self._sender_task: Optional[asyncio.Task] = None

    # --- Session lifecycle ---

    @_never_raises
    async def initialize(
        self,
        credentials: str,
        custom_prompt: str = "",
        profile: str = "interview",
        language: str = "en-US",
    ) -> OperationResult:
        if not isinstance(credentials, str) or not credentials.strip():
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "API key is required")
        if self.session.is_initializing:
            return OperationResult.fail(ErrorKind.ALREADY_IN_FLIGHT, "Session initialization already in progress")
        params = SessionParams(
            credentials=credentials.strip(),
            custom_prompt=custom_prompt or "",
            profile=profile or "interview",
            language=language or "en-US",
        )
        self.context.create()
        result = await self.session.initialize(params)
        if result.success:
            self._ensure_sender()
            result.data["session_id"] = self.context.session_id
        return result

    @_never_raises
    async def close(self) -> OperationResult:
        """User close: no reconnection, transcript cleared, buffered audio discarded."""
        dropped = self.pipeline.flush()
        if dropped:
            logger.debug("Discarding %d buffered send units on close", len(dropped))
        self.pipeline.clear()
        self.orchestrator.reset()
        self.log.clear()
        self._drain_outbox()
        result = await self.session.close()
        self._status("Session closed")
        return result

    @_never_raises
    async def reset_context(self) -> OperationResult:
        params = self.session.params
        await self.session.close()
        self.orchestrator.reset()
        self.log.clear()
        self.attributor.clear()
        self.pipeline.clear()
        self._drain_outbox()
        self.context.reset()
        self._consumer.on_context_reset()
        self._status("Context reset - Ready to reinitialize")

        if params is None:
            return OperationResult.ok(reinitialized=False, session_id=self.context.session_id)
        result = await self.session.initialize(params)
        if not result.success:
            return result
        self._ensure_sender()
        self._status("Session reinitialized with updated settings")
        return OperationResult.ok(reinitialized=True, session_id=self.context.session_id)

    async def shutdown(self) -> None:
        await self.close()
        if self._sender_task is not None:
            self._sender_task.cancel()
            try:
                await self._sender_task
            except asyncio.CancelledError:
                pass
            self._sender_task = None

    # --- Capture path ---

    @_never_raises
    def ingest(self, source: Any, samples: Any, timestamp: float | None = None) -> OperationResult:
        """Feed float32 samples in [-1, 1] from one capture source. Never awaits."""
        try:
            source = AudioSource(source)
        except ValueError:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Unknown audio source: {source}")
        try:
            data = np.asarray(samples, dtype=np.float32).reshape(-1)
        except (TypeError, ValueError):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Invalid audio samples")
        ts = self._clock() if timestamp is None else timestamp
        units = self.pipeline.ingest(source, data, ts)
        queued = sum(1 for unit in units if self._dispatch(unit))
        return OperationResult.ok(queued=queued)

    @_never_raises
    def ingest_pcm16(self, source: Any, pcm: bytes, channels: int = 1, timestamp: float | None = None) -> OperationResult:
        """Feed PCM16 LE bytes; stereo input keeps the left channel."""
        if not isinstance(pcm, (bytes, bytearray, memoryview)):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Invalid audio data")
        data = bytes(pcm)
        if channels == 2:
            data = stereo_to_mono(data)
        elif channels != 1:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Unsupported channel count: {channels}")
        return self.ingest(source, pcm16_to_float32(data), timestamp)

    @_never_raises
    def set_microphone_enabled(self, enabled: bool) -> OperationResult:
        if not isinstance(enabled, bool):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "enabled must be a boolean")
        self.pipeline.mic_enabled = enabled
        if not enabled:
            self.pipeline.aggregator(AudioSource.INTERVIEWEE).clear()
        logger.info("Microphone %s", "enabled" if enabled else "disabled")
        return OperationResult.ok(enabled=enabled)

    @_never_raises
    def router_stats(self) -> OperationResult:
        return OperationResult.ok(**self.pipeline.router.stats())

    def _dispatch(self, unit: SendUnit) -> bool:
        if not self.session.is_connected:
            logger.debug("No live session, dropping %s send unit", unit.source.value)
            return False
        data, mime = encode_audio_payload(unit, self._transport)
        self.attributor.record(unit.source, len(data))
        try:
            self._outbox.put_nowait((unit, data, mime))
        except asyncio.QueueFull:
            logger.warning("Audio outbox full, dropping %s send unit", unit.source.value)
            return False
        return True

    def _ensure_sender(self) -> None:
        if self._sender_task is None or self._sender_task.done():
            self._sender_task = asyncio.get_running_loop().create_task(self._sender())

    async def _sender(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            unit, data, mime = await self._outbox.get()
            result = await self.session.send_audio(data, mime)
            if result.success:
                logger.debug("Sent %s audio: %d base64 chars (%.2fs)", unit.source.value, len(data), unit.duration)
                await loop.run_in_executor(None, self._recorder.record, unit)
            else:
                logger.warning("Failed to send %s audio: %s", unit.source.value, result.error)

    def _drain_outbox(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()

    # --- Text, image, manual response ---

    @_never_raises
    async def send_text(self, text: Any) -> OperationResult:
        if not isinstance(text, str) or not text.strip():
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Invalid text message")
        return await self.session.send_text(text.strip())

    @_never_raises
    async def send_image(self, data: Any) -> OperationResult:
        if not isinstance(data, str) or not data:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Invalid image data")
        try:
            raw = from_base64(data)
        except (binascii.Error, ValueError):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Invalid image data")
        if len(raw) < self._min_image_bytes:
            logger.warning("Image buffer too small: %d bytes", len(raw))
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Image buffer too small")
        return await self.session.send_image(data)

    @_never_raises
    async def process_context(self, with_screenshot: bool = False) -> OperationResult:
        return await self.orchestrator.request(with_screenshot=bool(with_screenshot))

    # --- Queries ---

    @_never_raises
    def get_recent_transcriptions(self) -> OperationResult:
        return OperationResult.ok(transcriptions=[e.to_dict() for e in self.log.get_recent()])

    @_never_raises
    def get_current_session(self) -> OperationResult:
        return OperationResult.ok(**self.context.snapshot())

    @_never_raises
    def start_new_session(self) -> OperationResult:
        return OperationResult.ok(session_id=self.context.create())

    # --- Internals ---

    def _status(self, status: str) -> None:
        try:
            self._consumer.on_status(status)
        except Exception:
            logger.exception("Status listener failed")

    async def _send_reconnection_context(self) -> None:
        text = build_reconnection_context(self.context.conversation_history, self.log.get_recent())
        if text is None:
            return
        logger.info("Sending reconnection context (%d chars)", len(text))
        result = await self.session.send_text(text)
        if not result.success:
            logger.warning("Error sending reconnection context: %s", result.error)
