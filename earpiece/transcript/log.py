"""
TranscriptLog: time-windowed, append-only log of tagged transcription entries.

- Entries are built fully before append; text is trimmed and empty text is ignored.
- Retention: TRANSCRIPTION_WINDOW_SEC (4 minutes). Pruned on append; queries filter
  by window as well, so stale entries are never returned even between appends.
- Context formatting selects most-recent-first under a word budget and renders
  oldest-first.
"""
from __future__ import annotations

import math
import time
from typing import Callable, Optional

from earpiece.audio.models import AudioSource
from earpiece.config import get_settings
from earpiece.transcript.models import TranscriptionEntry


def count_words(line: str) -> int:
    """Space-separated token count, the way the budget has always been measured."""
    return len(line.split(" "))


class TranscriptLog:
    def __init__(
        self,
        window_sec: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._window = window_sec if window_sec is not None else get_settings().TRANSCRIPTION_WINDOW_SEC
        self._clock = clock
        self._entries: list[TranscriptionEntry] = []

    @property
    def window_sec(self) -> float:
        return self._window

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        text: str,
        source: AudioSource,
        session_id: str | None = None,
        timestamp: float | None = None,
    ) -> Optional[TranscriptionEntry]:
        """Append one entry; returns it, or None when text is empty after trimming."""
        text = (text or "").strip()
        if not text:
            return None
        ts = self._clock() if timestamp is None else timestamp
        entry = TranscriptionEntry(timestamp=ts, text=text, source=source, session_id=session_id)
        cutoff = ts - self._window
        self._entries = [e for e in self._entries if e.timestamp > cutoff]
        self._entries.append(entry)
        return entry

    def get_recent(self, window_sec: float | None = None, now: float | None = None) -> list[TranscriptionEntry]:
        """Entries with now - timestamp <= window, ascending by timestamp."""
        window = self._window if window_sec is None else window_sec
        now = self._clock() if now is None else now
        recent = [e for e in self._entries if now - e.timestamp <= window]
        return sorted(recent, key=lambda e: e.timestamp)

    def format_for_context(
        self,
        window_sec: float | None = None,
        max_words: int | None = None,
        now: float | None = None,
        use_labels: bool = False,
    ) -> tuple[list[str], int]:
        """
        Lines "[Ns ago] Speaker: text" chosen backward from the newest entry until the
        next line would exceed max_words, returned oldest-first with their word count.
        use_labels renders "Interviewer says" instead of "Interviewer".
        """
        settings = get_settings()
        window = settings.CONTEXT_LOOKBACK_SEC if window_sec is None else window_sec
        budget = settings.CONTEXT_MAX_WORDS if max_words is None else max_words
        now = self._clock() if now is None else now

        lines = []
        for entry in self.get_recent(window, now):
            ago = math.floor(now - entry.timestamp)
            speaker = entry.source.label if use_labels else entry.source.speaker
            lines.append(f"[{ago}s ago] {speaker}: {entry.text}")

        selected: list[str] = []
        words = 0
        for line in reversed(lines):
            n = count_words(line)
            if words + n > budget:
                break
            selected.append(line)
            words += n
        selected.reverse()
        return selected, words

    def format_turn_context(self, window_sec: float | None = None, now: float | None = None) -> str:
        """'Speaker: text' lines saved alongside a conversation turn."""
        window = get_settings().TURN_CONTEXT_WINDOW_SEC if window_sec is None else window_sec
        return "\n".join(f"{e.speaker}: {e.text}" for e in self.get_recent(window, now))

    def interviewer_statements(
        self,
        limit: int | None = None,
        window_sec: float | None = None,
        now: float | None = None,
    ) -> list[TranscriptionEntry]:
        """Last `limit` interviewer entries in the window, oldest-first."""
        settings = get_settings()
        limit = settings.FOCUS_STATEMENTS if limit is None else limit
        window = settings.CONTEXT_LOOKBACK_SEC if window_sec is None else window_sec
        statements = [e for e in self.get_recent(window, now) if e.source is AudioSource.INTERVIEWER]
        return statements[-limit:] if limit > 0 else []

    def clear(self) -> None:
        self._entries = []
