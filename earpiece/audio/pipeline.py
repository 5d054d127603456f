"""
Dual-source capture pipeline: capture window -> router -> send buffer, per source.

Each source owns its own CaptureWindow and SendBuffer; only the SourceRouter is
shared, since arbitration needs both sources. ingest() is synchronous, does no I/O,
and returns the SendUnits that became ready so the caller can dispatch them.
"""
from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from earpiece.audio.chunker import SendBuffer
from earpiece.audio.models import AudioSource, SendUnit
from earpiece.audio.receiver import CaptureWindow
from earpiece.audio.router import SourceRouter
from earpiece.config import get_settings

logger = logging.getLogger(__name__)


class SourceAggregator:
    """Stage 1 and stage 2 buffering for one source."""

    def __init__(
        self,
        source: AudioSource,
        sample_rate: int | None = None,
        window_sec: float | None = None,
        buffer_sec: float | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self.source = source
        self.capture = CaptureWindow(source, sample_rate=sample_rate, window_sec=window_sec)
        self.send_buffer = SendBuffer(
            source, sample_rate=sample_rate, buffer_sec=buffer_sec, timeout_sec=timeout_sec
        )

    def clear(self) -> None:
        self.capture.clear()
        self.send_buffer.clear()


class DualSourcePipeline:
    """Owns one SourceAggregator per source and the shared SourceRouter."""

    def __init__(
        self,
        router: SourceRouter | None = None,
        sample_rate: int | None = None,
        window_sec: float | None = None,
        buffer_sec: float | None = None,
        timeout_sec: float | None = None,
        mic_gain: float | None = None,
        mic_enabled: bool | None = None,
        on_source_changed: Callable[[AudioSource], None] | None = None,
    ) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate or settings.SAMPLE_RATE
        self.router = router or SourceRouter(on_source_changed=on_source_changed)
        self._aggregators = {
            source: SourceAggregator(
                source,
                sample_rate=self._sample_rate,
                window_sec=window_sec,
                buffer_sec=buffer_sec,
                timeout_sec=timeout_sec,
            )
            for source in AudioSource
        }
        self._mic_gain = mic_gain if mic_gain is not None else settings.MIC_GAIN
        self.mic_enabled = settings.MIC_ENABLED if mic_enabled is None else mic_enabled

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def aggregator(self, source: AudioSource) -> SourceAggregator:
        return self._aggregators[source]

    def ingest(self, source: AudioSource, samples: np.ndarray, timestamp: float) -> list[SendUnit]:
        """Feed one capture callback. Returns send units ready for transmission (maybe empty)."""
        if source is AudioSource.INTERVIEWEE:
            if not self.mic_enabled:
                return []
            samples = np.clip(np.asarray(samples, dtype=np.float32) * self._mic_gain, -1.0, 1.0)

        agg = self._aggregators[source]
        agg.capture.feed(samples, timestamp)

        ready: list[SendUnit] = []
        for block in agg.capture.drain_windows():
            decision = self.router.route(block)
            if decision.forward:
                unit = agg.send_buffer.push(block)
            else:
                unit = agg.send_buffer.poll(block.timestamp)
            if unit is not None:
                logger.debug(
                    "send unit ready: source=%s duration=%.2fs", unit.source.value, unit.duration
                )
                ready.append(unit)
        return ready

    def flush(self) -> list[SendUnit]:
        """Force out buffered audio from both sources (e.g. on close)."""
        out = []
        for agg in self._aggregators.values():
            unit = agg.send_buffer.flush()
            if unit is not None:
                out.append(unit)
        return out

    def clear(self) -> None:
        for agg in self._aggregators.values():
            agg.clear()
        self.router.reset()
