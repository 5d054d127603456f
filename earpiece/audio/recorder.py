"""
DebugAudioRecorder: optional dump of every transmitted send-unit.

- When DEBUG_AUDIO is off: no-op (record does nothing).
- When on: each send-unit is written as <prefix>.pcm (raw PCM16 LE), <prefix>.wav
  (same payload with a RIFF header) and <prefix>.json (source, timing, signal stats).
- Never raises; a failed write is logged and the audio path continues.
- record() does blocking file I/O; the sender runs it in an executor.
"""
from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Optional

from earpiece.audio.analyzer import analyze_pcm16
from earpiece.audio.codec import encode_wav, float32_to_pcm16
from earpiece.audio.models import SendUnit
from earpiece.config import get_settings

logger = logging.getLogger(__name__)


class DebugAudioRecorderBase(ABC):
    @abstractmethod
    def record(self, unit: SendUnit) -> Optional[str]:
        """Write one send-unit. Returns the file prefix written, or None."""
        ...


class NoOpDebugAudioRecorder(DebugAudioRecorderBase):
    """Recorder when DEBUG_AUDIO is off. No file I/O."""

    def record(self, unit: SendUnit) -> Optional[str]:
        return None


class DebugAudioRecorder(DebugAudioRecorderBase):
    def __init__(self, out_dir: str | None = None) -> None:
        self._dir = out_dir or get_settings().DEBUG_AUDIO_DIR
        self._count = 0

    def record(self, unit: SendUnit) -> Optional[str]:
        self._count += 1
        prefix = os.path.join(self._dir, f"{unit.source.value}_{int(time.time() * 1000)}_{self._count:05d}")
        pcm = float32_to_pcm16(unit.samples).astype("<i2").tobytes()
        metadata = {
            "source": unit.source.value,
            "timestamp": unit.timestamp,
            "sample_rate": unit.sample_rate,
            "duration_sec": unit.duration,
            "byte_length": len(pcm),
            **analyze_pcm16(pcm),
        }
        try:
            os.makedirs(self._dir, exist_ok=True)
            with open(prefix + ".pcm", "wb") as f:
                f.write(pcm)
            with open(prefix + ".wav", "wb") as f:
                f.write(encode_wav(float32_to_pcm16(unit.samples), unit.sample_rate))
            with open(prefix + ".json", "w", encoding="utf-8") as f:
                json.dump(metadata, f, indent=2)
        except OSError as e:
            logger.warning("Debug audio write failed for %s: %s", prefix, e)
            return None
        logger.debug("Debug audio saved: %s (%d bytes)", prefix, len(pcm))
        return prefix


def create_debug_recorder() -> DebugAudioRecorderBase:
    """Create recorder when DEBUG_AUDIO is true. Disabled by default."""
    if get_settings().DEBUG_AUDIO:
        return DebugAudioRecorder()
    return NoOpDebugAudioRecorder()
