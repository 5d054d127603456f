"""
Source attribution for transcription events.

The live backend transcribes a single mixed stream and returns text without a source.
We remember which source each transmitted send-unit came from and, when text arrives,
attribute it by majority vote over the recent transmissions.

- Queue bounded to SOURCE_QUEUE_MAX entries (oldest dropped).
- Vote over entries newer than SOURCE_VOTE_WINDOW_SEC.
- Tie: most recent entry's source wins.
- No recent entries: last known transmitted source (interviewer until anything is sent).

Limitations (MUST be kept in sync with product behavior):
- Best-effort heuristic with no ground truth; overlapping speech may be misattributed.
- Transcription latency longer than the vote window falls back to the last source.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

from earpiece.audio.models import AudioSource
from earpiece.config import get_settings
from earpiece.transcript.models import AudioSourceQueueEntry

logger = logging.getLogger(__name__)


class SourceAttributor:
    def __init__(
        self,
        max_entries: int | None = None,
        vote_window_sec: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = get_settings()
        self._vote_window = vote_window_sec if vote_window_sec is not None else settings.SOURCE_VOTE_WINDOW_SEC
        self._queue: deque[AudioSourceQueueEntry] = deque(maxlen=max_entries or settings.SOURCE_QUEUE_MAX)
        self._clock = clock
        self.last_source = AudioSource.INTERVIEWER

    def record(self, source: AudioSource, size: int, timestamp: float | None = None) -> None:
        """Called from the capture path for each transmitted send-unit. No awaits."""
        ts = self._clock() if timestamp is None else timestamp
        self._queue.append(AudioSourceQueueEntry(timestamp=ts, source=source, size=size))
        self.last_source = source

    def determine(self, now: float | None = None) -> AudioSource:
        """Most plausible source for a transcription arriving at `now`."""
        now = self._clock() if now is None else now
        cutoff = now - self._vote_window
        # Snapshot: the capture path may append while we count
        recent = [e for e in list(self._queue) if e.timestamp > cutoff]
        if not recent:
            return self.last_source
        interviewee = sum(1 for e in recent if e.source is AudioSource.INTERVIEWEE)
        interviewer = len(recent) - interviewee
        if interviewee > interviewer:
            return AudioSource.INTERVIEWEE
        if interviewer > interviewee:
            return AudioSource.INTERVIEWER
        return recent[-1].source

    def entries(self) -> list[AudioSourceQueueEntry]:
        return list(self._queue)

    def clear(self) -> None:
        self._queue.clear()
