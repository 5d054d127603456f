"""
SendBuffer: accumulates accepted analysis windows for one source and emits
SendUnits for transmission.

- Flush when buffered audio reaches SEND_BUFFER_SEC (2s).
- Flush a non-empty buffer when more than SEND_TIMEOUT_SEC (3s) passed since the
  last flush, so short utterances are not held back indefinitely.
- Time is capture time (block timestamps / caller supplied), never wall-clock.
"""
from __future__ import annotations

import numpy as np

from earpiece.audio.models import AudioBlock, AudioSource, SendUnit, frozen_samples
from earpiece.config import get_settings


class SendBuffer:
    """One per source. push() and poll() return a SendUnit when a flush fires."""

    def __init__(
        self,
        source: AudioSource,
        sample_rate: int | None = None,
        buffer_sec: float | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        settings = get_settings()
        self._source = source
        self._sample_rate = sample_rate or settings.SAMPLE_RATE
        self._send_samples = int((buffer_sec or settings.SEND_BUFFER_SEC) * self._sample_rate)
        self._timeout = timeout_sec if timeout_sec is not None else settings.SEND_TIMEOUT_SEC
        self._blocks: list[AudioBlock] = []
        self._buffered = 0
        # Initialized on first observation
        self._last_flush: float | None = None

    @property
    def buffered_samples(self) -> int:
        return self._buffered

    def push(self, block: AudioBlock) -> SendUnit | None:
        """Buffer one accepted window. Returns a SendUnit when a flush condition is met."""
        if block.source is not self._source:
            raise ValueError(f"block from {block.source.value} pushed to {self._source.value} buffer")
        self._observe(block.timestamp)
        self._blocks.append(block)
        self._buffered += len(block.samples)
        if self._buffered >= self._send_samples:
            return self._flush(block.timestamp)
        return self.poll(block.timestamp)

    def poll(self, now: float) -> SendUnit | None:
        """Timeout check; call for rejected windows too so quiet sources still flush."""
        self._observe(now)
        if self._blocks and now - self._last_flush > self._timeout:
            return self._flush(now)
        return None

    def flush(self, now: float | None = None) -> SendUnit | None:
        """Force out whatever is buffered (e.g. on close). None when empty."""
        if not self._blocks:
            return None
        return self._flush(now if now is not None else self._blocks[-1].timestamp)

    def clear(self) -> None:
        self._blocks = []
        self._buffered = 0
        self._last_flush = None

    def _observe(self, now: float) -> None:
        if self._last_flush is None:
            self._last_flush = now

    def _flush(self, now: float) -> SendUnit:
        samples = np.concatenate([b.samples for b in self._blocks])
        unit = SendUnit(
            samples=frozen_samples(samples),
            source=self._source,
            timestamp=self._blocks[0].timestamp,
            sample_rate=self._sample_rate,
        )
        self._blocks = []
        self._buffered = 0
        self._last_flush = now
        return unit
