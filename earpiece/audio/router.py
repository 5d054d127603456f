"""
Source router: decides which of the two captures currently holds the floor.

Lightweight heuristic arbiter, not a classifier:
- Each source keeps a 2s trail of {timestamp, has_voice, confidence}.
- The active source (sticky incumbent) keeps priority while it has any voice.
- A challenger takes over only if it is reasonably confident AND the incumbent's
  recent mean confidence is weak.
- Switches are rate-limited by a cooldown so speech does not oscillate mid-sentence.

A window is forwarded only if it is voiced AND its source should be active; silent
windows from the incumbent are never transmitted.

Limitations:
- No ground truth; overlapping speech goes to whoever holds the floor.
- Energy only; loud playback noise can look like speech on the interviewer source.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from earpiece.audio.analyzer import SourceVadConfig, VadResult, analyze, default_source_configs
from earpiece.audio.models import AudioBlock, AudioSource
from earpiece.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivitySample:
    timestamp: float
    has_voice: bool
    confidence: float


@dataclass(frozen=True)
class RouterState:
    """Replaced as a whole on switch so speaker and switch time never disagree."""

    current_speaker: Optional[AudioSource] = None
    last_switch: Optional[float] = None


@dataclass(frozen=True)
class RoutingDecision:
    forward: bool
    active_source: Optional[AudioSource]
    vad: VadResult
    switched: bool = False


class SourceRouter:
    """
    Arbitrates between interviewer and interviewee windows. route() is synchronous and
    does no I/O; the change notification is fire-and-forget.
    """

    def __init__(
        self,
        configs: dict[AudioSource, SourceVadConfig] | None = None,
        cooldown_sec: float | None = None,
        activity_window_sec: float | None = None,
        activity_samples: int | None = None,
        challenger_min_confidence: float | None = None,
        incumbent_max_confidence: float | None = None,
        silence_amplitude_threshold: float | None = None,
        on_source_changed: Callable[[AudioSource], None] | None = None,
    ) -> None:
        settings = get_settings()
        self._configs = configs or default_source_configs()
        self._cooldown = cooldown_sec if cooldown_sec is not None else settings.ROUTER_SWITCH_COOLDOWN_SEC
        self._window = (
            activity_window_sec if activity_window_sec is not None else settings.ROUTER_ACTIVITY_WINDOW_SEC
        )
        self._activity_samples = activity_samples or settings.ROUTER_ACTIVITY_SAMPLES
        self._challenger_min = (
            challenger_min_confidence
            if challenger_min_confidence is not None
            else settings.ROUTER_CHALLENGER_MIN_CONFIDENCE
        )
        self._incumbent_max = (
            incumbent_max_confidence
            if incumbent_max_confidence is not None
            else settings.ROUTER_INCUMBENT_MAX_CONFIDENCE
        )
        self._silence_threshold = (
            silence_amplitude_threshold
            if silence_amplitude_threshold is not None
            else settings.SILENCE_AMPLITUDE_THRESHOLD
        )
        self._on_source_changed = on_source_changed
        self._activity: dict[AudioSource, deque[ActivitySample]] = {s: deque() for s in AudioSource}
        self._state = RouterState()

    @property
    def state(self) -> RouterState:
        return self._state

    @property
    def current_speaker(self) -> Optional[AudioSource]:
        return self._state.current_speaker

    def route(self, block: AudioBlock) -> RoutingDecision:
        """Analyze one window, update the source trail, maybe switch, and gate forwarding."""
        vad = analyze(block, self._configs[block.source], self._silence_threshold)
        now = block.timestamp

        trail = self._activity[block.source]
        trail.append(ActivitySample(timestamp=now, has_voice=vad.has_voice, confidence=vad.confidence))
        self._prune(block.source, now)

        should_activate = self._should_activate(vad, now)
        switched = False
        if should_activate and self._can_switch(now):
            switched = self._switch_to(block.source, now)

        forward = vad.has_voice and should_activate
        logger.debug(
            "route %s rms=%.4f silence=%.1f%% conf=%.2f forward=%s speaker=%s",
            block.source.value,
            vad.rms,
            vad.silence_percentage,
            vad.confidence,
            forward,
            self._state.current_speaker.value if self._state.current_speaker else None,
        )
        return RoutingDecision(
            forward=forward,
            active_source=self._state.current_speaker,
            vad=vad,
            switched=switched,
        )

    def _should_activate(self, vad: VadResult, now: float) -> bool:
        if not vad.has_voice:
            return False
        current = self._state.current_speaker
        if current is None:
            return True
        if current is vad.source:
            return True
        # Challenger: only when the incumbent is comparatively weak
        incumbent_strength = self.recent_activity(vad.source.other, now)
        return vad.confidence > self._challenger_min and incumbent_strength < self._incumbent_max

    def _can_switch(self, now: float) -> bool:
        last = self._state.last_switch
        return last is None or (now - last) >= self._cooldown

    def _switch_to(self, source: AudioSource, now: float) -> bool:
        # Same source: no-op, must not restart the cooldown
        if self._state.current_speaker is source:
            return False
        self._state = RouterState(current_speaker=source, last_switch=now)
        logger.info("Switching audio focus to: %s", source.value)
        self._notify(source)
        return True

    def _notify(self, source: AudioSource) -> None:
        if self._on_source_changed is None:
            return
        try:
            self._on_source_changed(source)
        except Exception:
            logger.exception("Audio source change listener failed")

    def _prune(self, source: AudioSource, now: float) -> None:
        trail = self._activity[source]
        while trail and now - trail[0].timestamp >= self._window:
            trail.popleft()

    def recent_activity(self, source: AudioSource, now: float | None = None) -> float:
        """Mean confidence over the last N voiced samples in the trailing window (0.0 if none)."""
        if now is not None:
            self._prune(source, now)
        voiced = [a.confidence for a in self._activity[source] if a.has_voice]
        recent = voiced[-self._activity_samples :]
        if not recent:
            return 0.0
        return sum(recent) / len(recent)

    def stats(self, now: float | None = None) -> dict:
        return {
            "interviewer": self.recent_activity(AudioSource.INTERVIEWER, now),
            "interviewee": self.recent_activity(AudioSource.INTERVIEWEE, now),
            "current_speaker": self._state.current_speaker.value if self._state.current_speaker else None,
            "last_switch": self._state.last_switch,
        }

    def reset(self) -> None:
        for trail in self._activity.values():
            trail.clear()
        self._state = RouterState()
