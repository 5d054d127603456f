"""
TranscriptionTagger: attributes a source to each transcription event, logs it, and
notifies the consumer.

Runs on the session event path. Nothing here awaits, so an attribution vote and
the log append happen without interleaving with the capture path.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from earpiece.transcript.attribution import SourceAttributor
from earpiece.transcript.log import TranscriptLog
from earpiece.transcript.models import TranscriptionEntry, TranscriptionUpdate

logger = logging.getLogger(__name__)


class TranscriptionTagger:
    def __init__(
        self,
        log: TranscriptLog,
        attributor: SourceAttributor,
        session_id: Callable[[], Optional[str]] = lambda: None,
        on_update: Callable[[TranscriptionUpdate], None] | None = None,
    ) -> None:
        self.log = log
        self.attributor = attributor
        self._session_id = session_id
        self._on_update = on_update

    def on_transcription(self, text: str, now: float | None = None) -> Optional[TranscriptionEntry]:
        if not (text or "").strip():
            return None
        source = self.attributor.determine(now)
        entry = self.log.add(text, source, session_id=self._session_id(), timestamp=now)
        if entry is None:
            return None
        update = TranscriptionUpdate(entry=entry, history=self.log.get_recent(now=now), label=source.label)
        logger.info("%s: %s", update.label, entry.text[:50])
        if self._on_update is not None:
            try:
                self._on_update(update)
            except Exception:
                logger.exception("Transcription update listener failed")
        return entry
