"""
CaptureWindow: accumulates captured float32 samples for one source and yields
fixed-size analysis windows.

- Window size: ANALYSIS_WINDOW_SEC of samples (80ms at 24kHz = 1920 samples).
- Each window carries the capture timestamp of its first sample; timestamps advance
  by window length so they stay monotonic even when callers batch captures.
- Any remainder is kept for the next feed.
"""
from __future__ import annotations

import numpy as np

from earpiece.audio.models import AudioBlock, AudioSource
from earpiece.config import get_settings


class CaptureWindow:
    """
    Buffers capture callbacks into fixed-size AudioBlocks. feed() never blocks;
    the capture path calls drain_windows() right after.
    """

    def __init__(
        self,
        source: AudioSource,
        sample_rate: int | None = None,
        window_sec: float | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source
        self._sample_rate = sample_rate or settings.SAMPLE_RATE
        self._window_samples = max(1, int(round((window_sec or settings.ANALYSIS_WINDOW_SEC) * self._sample_rate)))
        self._buffer = np.zeros(0, dtype=np.float32)
        # Capture time of _buffer[0]
        self._start_ts: float | None = None

    @property
    def source(self) -> AudioSource:
        return self._source

    @property
    def window_samples(self) -> int:
        return self._window_samples

    def feed(self, samples: np.ndarray, timestamp: float) -> None:
        """Append captured samples; timestamp is the capture time of samples[0]."""
        data = np.asarray(samples, dtype=np.float32).reshape(-1)
        if data.size == 0:
            return
        if self._start_ts is None or self._buffer.size == 0:
            self._start_ts = timestamp
        self._buffer = np.concatenate([self._buffer, data])

    def drain_windows(self) -> list[AudioBlock]:
        """Drain all complete windows; the remainder stays buffered."""
        out: list[AudioBlock] = []
        step = self._window_samples / float(self._sample_rate)
        while self._buffer.size >= self._window_samples:
            out.append(
                AudioBlock.create(
                    self._buffer[: self._window_samples],
                    source=self._source,
                    timestamp=self._start_ts,
                    sample_rate=self._sample_rate,
                )
            )
            self._buffer = self._buffer[self._window_samples :]
            self._start_ts += step
        if self._buffer.size == 0:
            self._start_ts = None
        return out

    def remaining_samples(self) -> int:
        """Samples left in buffer (incomplete window)."""
        return int(self._buffer.size)

    def clear(self) -> None:
        self._buffer = np.zeros(0, dtype=np.float32)
        self._start_ts = None
