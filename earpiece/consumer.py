"""
Consumer: receives everything the assistant reports (status, transcripts, responses,
source changes, saved turns). All methods are synchronous and must not block;
the web layer queues them for its clients.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from earpiece.audio.models import AudioSource
from earpiece.transcript.models import ConversationTurnSaved, TranscriptionUpdate


class ConsumerBase(ABC):
    @abstractmethod
    def on_status(self, status: str) -> None:
        ...

    @abstractmethod
    def on_transcription_update(self, update: TranscriptionUpdate) -> None:
        ...

    @abstractmethod
    def on_response_fragment(self, text: str) -> None:
        """Called with each new fragment of the manual response."""
        ...

    @abstractmethod
    def on_response_complete(self) -> None:
        ...

    @abstractmethod
    def on_audio_source_changed(self, source: AudioSource) -> None:
        ...

    @abstractmethod
    def on_conversation_turn_saved(self, saved: ConversationTurnSaved) -> None:
        ...

    def on_session_initializing(self, initializing: bool) -> None:
        pass

    def on_context_reset(self) -> None:
        pass

    def on_screenshot_requested(self) -> None:
        """The next manual request wants a fresh screen capture via send_image."""
        pass


class NoOpConsumer(ConsumerBase):
    def on_status(self, status: str) -> None:
        pass

    def on_transcription_update(self, update: TranscriptionUpdate) -> None:
        pass

    def on_response_fragment(self, text: str) -> None:
        pass

    def on_response_complete(self) -> None:
        pass

    def on_audio_source_changed(self, source: AudioSource) -> None:
        pass

    def on_conversation_turn_saved(self, saved: ConversationTurnSaved) -> None:
        pass
