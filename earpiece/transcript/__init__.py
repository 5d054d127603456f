"""Transcript handling: source attribution, windowed log, context formatting; optional turn persistence."""
from .attribution import SourceAttributor
from .log import TranscriptLog
from .models import ConversationTurn, ConversationTurnSaved, TranscriptionEntry, TranscriptionUpdate
from .tagger import TranscriptionTagger
from .writer import ConversationWriterBase, create_conversation_writer

__all__ = [
    "ConversationTurn",
    "ConversationTurnSaved",
    "ConversationWriterBase",
    "SourceAttributor",
    "TranscriptLog",
    "TranscriptionEntry",
    "TranscriptionTagger",
    "TranscriptionUpdate",
    "create_conversation_writer",
]
