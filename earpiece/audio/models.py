"""
Audio data carried through the routing pipeline.

- AudioSource: which capture produced the samples. "interviewer" is system/speaker
  output, "interviewee" is the microphone.
- AudioBlock: one analysis window of float32 samples in [-1, 1]. Immutable once built;
  the sample array is marked read-only so nothing downstream can mutate it after send.
- SendUnit: a buffered run of accepted windows transmitted as one payload.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class AudioSource(str, Enum):
    INTERVIEWER = "interviewer"
    INTERVIEWEE = "interviewee"

    @property
    def other(self) -> "AudioSource":
        if self is AudioSource.INTERVIEWER:
            return AudioSource.INTERVIEWEE
        return AudioSource.INTERVIEWER

    @property
    def speaker(self) -> str:
        """Capitalized speaker name used in prompts, e.g. 'Interviewer'."""
        return self.value.capitalize()

    @property
    def label(self) -> str:
        """Human-readable label sent with transcription updates."""
        return f"{self.speaker} says"


def frozen_samples(samples: np.ndarray) -> np.ndarray:
    arr = np.array(samples, dtype=np.float32, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class AudioBlock:
    """One analysis window. timestamp = capture time (unix seconds) of the first sample."""

    samples: np.ndarray
    source: AudioSource
    timestamp: float
    sample_rate: int

    @classmethod
    def create(cls, samples, source: AudioSource, timestamp: float, sample_rate: int) -> "AudioBlock":
        return cls(samples=frozen_samples(samples), source=source, timestamp=timestamp, sample_rate=sample_rate)

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)


@dataclass(frozen=True)
class SendUnit:
    """Accumulated windows from one source, ready to encode and transmit."""

    samples: np.ndarray
    source: AudioSource
    timestamp: float
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)
