"""
Signal analyzer: energy-based voice activity on one analysis window.

- RMS energy and raw silence ratio over float32 samples in [-1, 1].
- Per-source gate: speaker playback carries more ambient energy than close-mic speech
  at the same perceived loudness, so the interviewer gate is stricter (higher RMS
  threshold, lower silence tolerance).
- Confidence saturates at 5x threshold so one loud source does not always win arbitration.

Pure functions; identical input gives identical output.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from earpiece.audio.models import AudioBlock, AudioSource
from earpiece.config import get_settings

# Confidence = min(rms / threshold, CAP) * SCALE, clamped to 1.0
CONFIDENCE_RATIO_CAP = 10.0
CONFIDENCE_SCALE = 0.2

# Debug statistics over int16 PCM (capture scale)
PCM16_SILENCE_THRESHOLD = 100


@dataclass(frozen=True)
class SourceVadConfig:
    """VAD gate for one source."""

    vad_threshold: float
    max_silence_percent: float


@dataclass(frozen=True)
class VadResult:
    has_voice: bool
    confidence: float  # 0.0-1.0
    rms: float
    silence_percentage: float  # 0-100
    source: AudioSource
    min_value: float = 0.0
    max_value: float = 0.0


def default_source_configs() -> dict[AudioSource, SourceVadConfig]:
    """Per-source gates from settings."""
    settings = get_settings()
    return {
        AudioSource.INTERVIEWER: SourceVadConfig(
            vad_threshold=settings.INTERVIEWER_VAD_THRESHOLD,
            max_silence_percent=settings.INTERVIEWER_MAX_SILENCE_PERCENT,
        ),
        AudioSource.INTERVIEWEE: SourceVadConfig(
            vad_threshold=settings.INTERVIEWEE_VAD_THRESHOLD,
            max_silence_percent=settings.INTERVIEWEE_MAX_SILENCE_PERCENT,
        ),
    }


def calculate_rms(samples: np.ndarray) -> float:
    """sqrt(mean(sample^2)); 0.0 for an empty window."""
    if len(samples) == 0:
        return 0.0
    x = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.mean(x * x)))


def calculate_silence_percentage(samples: np.ndarray, amplitude_threshold: float) -> float:
    """Percent of samples with |sample| < amplitude_threshold; 100.0 for an empty window."""
    if len(samples) == 0:
        return 100.0
    x = np.abs(np.asarray(samples, dtype=np.float64))
    return float(np.count_nonzero(x < amplitude_threshold) * 100.0 / len(x))


def voice_confidence(rms: float, threshold: float) -> float:
    return min(1.0, min(rms / threshold, CONFIDENCE_RATIO_CAP) * CONFIDENCE_SCALE)


def analyze(
    block: AudioBlock,
    config: SourceVadConfig,
    silence_amplitude_threshold: float | None = None,
) -> VadResult:
    """Analyze one window against its source's gate."""
    if silence_amplitude_threshold is None:
        silence_amplitude_threshold = get_settings().SILENCE_AMPLITUDE_THRESHOLD
    samples = block.samples
    rms = calculate_rms(samples)
    silence = calculate_silence_percentage(samples, silence_amplitude_threshold)
    has_voice = rms > config.vad_threshold and silence < config.max_silence_percent
    confidence = voice_confidence(rms, config.vad_threshold) if has_voice else 0.0
    if len(samples):
        min_value = float(np.min(samples))
        max_value = float(np.max(samples))
    else:
        min_value = max_value = 0.0
    return VadResult(
        has_voice=has_voice,
        confidence=confidence,
        rms=rms,
        silence_percentage=silence,
        source=block.source,
        min_value=min_value,
        max_value=max_value,
    )


def analyze_pcm16(pcm_bytes: bytes) -> dict:
    """
    Debug statistics over PCM 16-bit samples: min, max, mean, rms, silence %, dynamic range.
    Used for debug-audio metadata only; routing uses analyze().
    """
    samples = np.frombuffer(pcm_bytes[: len(pcm_bytes) - len(pcm_bytes) % 2], dtype="<i2")
    if len(samples) == 0:
        return {
            "min_value": 0,
            "max_value": 0,
            "avg_value": 0.0,
            "rms_value": 0.0,
            "silence_percentage": 100.0,
            "dynamic_range_db": 0.0,
            "sample_count": 0,
        }
    x = samples.astype(np.float64)
    rms = float(np.sqrt(np.mean(x * x)))
    max_value = int(samples.max())
    silent = int(np.count_nonzero(np.abs(x) < PCM16_SILENCE_THRESHOLD))
    # Peak over RMS; guard the log against a zero peak
    dynamic_range = 20.0 * np.log10(max(abs(max_value), 1) / (rms or 1.0))
    return {
        "min_value": int(samples.min()),
        "max_value": max_value,
        "avg_value": float(np.mean(x)),
        "rms_value": rms,
        "silence_percentage": silent * 100.0 / len(samples),
        "dynamic_range_db": float(dynamic_range),
        "sample_count": int(len(samples)),
    }
