"""
WebSocket surface for the assistant.

AppConsumer: receives assistant events and fans them out as JSON to every connected
client queue; saved turns also go to the conversation writer.

WebSocketManager: one client connection. Binary frames are
[1-byte source tag][PCM 16-bit LE mono @ SAMPLE_RATE] (tag 0 = interviewer,
1 = interviewee) and are ingested on the capture path. Events are pushed as
{ "type": ..., ... } JSON by a sender task so a slow client never blocks ingest.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

from earpiece.audio.models import AudioSource
from earpiece.consumer import ConsumerBase
from earpiece.controller import AssistantController
from earpiece.transcript.models import ConversationTurnSaved, TranscriptionUpdate
from earpiece.transcript.writer import ConversationWriterBase, NoOpConversationWriter

logger = logging.getLogger(__name__)

SOURCE_TAGS = {0: AudioSource.INTERVIEWER, 1: AudioSource.INTERVIEWEE}
CLIENT_QUEUE_MAX = 256


class AppConsumer(ConsumerBase):
    def __init__(self, writer: ConversationWriterBase | None = None) -> None:
        self._writer = writer or NoOpConversationWriter()
        self._clients: set[asyncio.Queue[dict[str, Any]]] = set()

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=CLIENT_QUEUE_MAX)
        self._clients.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._clients.discard(queue)

    def _broadcast(self, event: dict[str, Any]) -> None:
        for queue in list(self._clients):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Client event queue full, dropping %s event", event.get("type"))

    def on_status(self, status: str) -> None:
        self._broadcast({"type": "status", "status": status})

    def on_transcription_update(self, update: TranscriptionUpdate) -> None:
        self._broadcast({"type": "transcription", **update.to_dict()})

    def on_response_fragment(self, text: str) -> None:
        self._broadcast({"type": "response", "text": text})

    def on_response_complete(self) -> None:
        self._broadcast({"type": "response_complete"})

    def on_audio_source_changed(self, source: AudioSource) -> None:
        self._broadcast({"type": "audio_source", "source": source.value})

    def on_conversation_turn_saved(self, saved: ConversationTurnSaved) -> None:
        self._writer.append(saved)
        self._broadcast({"type": "turn_saved", "session_id": saved.session_id, "turn": saved.turn.to_dict()})

    def on_session_initializing(self, initializing: bool) -> None:
        self._broadcast({"type": "initializing", "initializing": initializing})

    def on_context_reset(self) -> None:
        self._broadcast({"type": "context_reset"})

    def on_screenshot_requested(self) -> None:
        self._broadcast({"type": "screenshot_requested"})


def parse_audio_frame(data: bytes) -> tuple[AudioSource, bytes] | None:
    """Split a binary frame into (source, pcm). None for an empty frame or unknown tag."""
    if not data:
        return None
    source = SOURCE_TAGS.get(data[0])
    if source is None:
        return None
    return source, data[1:]


class WebSocketManager:
    """One WebSocket client: ingest tagged audio, push assistant events."""

    def __init__(self, websocket: WebSocket, controller: AssistantController, consumer: AppConsumer) -> None:
        self._ws = websocket
        self._controller = controller
        self._consumer = consumer
        self._events = consumer.subscribe()
        self._closed = False
        self._sender_task: asyncio.Task[Any] | None = None
        self._dropped_frames = 0

    def detach(self) -> None:
        """Stop receiving events. Idempotent."""
        self._consumer.unsubscribe(self._events)

    async def _event_sender(self) -> None:
        while not self._closed:
            event = await self._events.get()
            try:
                await self._ws.send_text(json.dumps(event))
            except Exception:
                self._closed = True

    def _on_frame(self, data: bytes) -> None:
        parsed = parse_audio_frame(data)
        if parsed is None:
            self._dropped_frames += 1
            if self._dropped_frames == 1 or self._dropped_frames % 100 == 0:
                logger.warning("Dropped malformed audio frame (%d so far)", self._dropped_frames)
            return
        source, pcm = parsed
        result = self._controller.ingest_pcm16(source, pcm)
        if not result.success:
            logger.debug("Ingest rejected: %s", result.error)

    async def run(self) -> None:
        self._sender_task = asyncio.create_task(self._event_sender())
        try:
            while not self._closed:
                try:
                    msg = await self._ws.receive()
                    if msg.get("type") == "websocket.disconnect":
                        break
                    data = msg.get("bytes")
                    if data is None:
                        continue
                except Exception:
                    break
                self._on_frame(data)
        finally:
            self._closed = True
            self.detach()
            if self._sender_task:
                self._sender_task.cancel()
                try:
                    await self._sender_task
                except asyncio.CancelledError:
                    pass
