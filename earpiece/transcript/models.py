"""Transcript records: tagged transcription entries, source-vote records, conversation turns."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from earpiece.audio.models import AudioSource


@dataclass(frozen=True)
class TranscriptionEntry:
    timestamp: float  # unix seconds
    text: str  # trimmed, non-empty
    source: AudioSource
    session_id: str | None = None

    @property
    def speaker(self) -> str:
        return self.source.speaker

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "text": self.text,
            "source": self.source.value,
            "session_id": self.session_id,
        }


@dataclass(frozen=True)
class AudioSourceQueueEntry:
    """One transmitted send-unit: which source, when, and its payload size (base64 length)."""

    timestamp: float
    source: AudioSource
    size: int


@dataclass(frozen=True)
class ConversationTurn:
    timestamp: float
    transcription: str
    ai_response: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TranscriptionUpdate:
    """Consumer payload for one tagged transcription."""

    entry: TranscriptionEntry
    history: list[TranscriptionEntry]
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry": self.entry.to_dict(),
            "history": [e.to_dict() for e in self.history],
            "label": self.label,
        }


@dataclass(frozen=True)
class ConversationTurnSaved:
    """Persistence payload emitted after a manual response produced a turn."""

    session_id: str
    turn: ConversationTurn
    full_history: list[ConversationTurn] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "turn": self.turn.to_dict(),
            "full_history": [t.to_dict() for t in self.full_history],
        }
