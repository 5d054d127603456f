"""
Audio transport encoding: PCM16 conversion, canonical 44-byte RIFF/WAVE, base64.

Wire contract: mono, signed 16-bit little-endian PCM at SAMPLE_RATE (24kHz), sent
either as raw PCM ("audio/pcm;rate=24000") or WAV-wrapped ("audio/wav").
"""
from __future__ import annotations

import base64
import io
import wave

import numpy as np

from earpiece.audio.models import SendUnit
from earpiece.config import get_settings

SAMPLE_WIDTH = 2
NCHANNELS = 1
WAV_HEADER_BYTES = 44


def float32_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1]; negative scaled by 0x8000, positive by 0x7FFF."""
    x = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(x < 0, x * 0x8000, x * 0x7FFF)
    return scaled.astype(np.int16)


def pcm16_to_float32(pcm: bytes | np.ndarray) -> np.ndarray:
    """PCM16 LE bytes (or int16 array) to float32 in [-1, 1)."""
    if isinstance(pcm, (bytes, bytearray, memoryview)):
        data = bytes(pcm)
        samples = np.frombuffer(data[: len(data) - len(data) % 2], dtype="<i2")
    else:
        samples = np.asarray(pcm, dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


def stereo_to_mono(pcm: bytes) -> bytes:
    """Interleaved stereo PCM16 LE to mono by taking the left channel."""
    frames = len(pcm) // 4
    samples = np.frombuffer(pcm[: frames * 4], dtype="<i2")
    return samples[0::2].tobytes()


def encode_wav(samples: np.ndarray, sample_rate: int | None = None) -> bytes:
    """int16 samples to a canonical 44-byte-header WAV file."""
    sample_rate = sample_rate or get_settings().SAMPLE_RATE
    pcm = np.asarray(samples, dtype="<i2").tobytes()
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(NCHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buf.getvalue()


def decode_wav(data: bytes) -> tuple[np.ndarray, int]:
    """WAV bytes to (int16 samples, sample_rate). Only mono 16-bit PCM is accepted."""
    with wave.open(io.BytesIO(data), "rb") as wav:
        if wav.getsampwidth() != SAMPLE_WIDTH or wav.getnchannels() != NCHANNELS:
            raise ValueError("expected mono 16-bit PCM WAV")
        sample_rate = wav.getframerate()
        frames = wav.readframes(wav.getnframes())
    return np.frombuffer(frames, dtype="<i2").copy(), sample_rate


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_base64(data: str) -> bytes:
    return base64.b64decode(data, validate=True)


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"


def encode_audio_payload(unit: SendUnit, transport: str | None = None) -> tuple[str, str]:
    """SendUnit to (base64 data, mime type) per AUDIO_TRANSPORT."""
    transport = transport or get_settings().AUDIO_TRANSPORT
    pcm = float32_to_pcm16(unit.samples)
    if transport == "wav":
        return to_base64(encode_wav(pcm, unit.sample_rate)), "audio/wav"
    return to_base64(pcm.astype("<i2").tobytes()), pcm_mime_type(unit.sample_rate)
