import asyncio

import numpy as np
import pytest

from earpiece.audio.models import AudioBlock, AudioSource
from earpiece.consumer import ConsumerBase
from earpiece.session.backend import LiveSession, SessionCallbacks, SessionParams

SAMPLE_RATE = 24000


class ManualClock:
    """Deterministic clock for windowing tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession(LiveSession):
    def __init__(self, callbacks: SessionCallbacks):
        self.callbacks = callbacks
        self.audio: list[tuple[str, str]] = []
        self.texts: list[str] = []
        self.images: list[str] = []
        self.closed = False
        self.fail_sends = False

    async def send_audio(self, data_b64, mime_type):
        if self.fail_sends:
            raise ConnectionError("socket closed")
        self.audio.append((data_b64, mime_type))

    async def send_text(self, text):
        if self.fail_sends:
            raise ConnectionError("socket closed")
        self.texts.append(text)

    async def send_image(self, data_b64, mime_type="image/jpeg"):
        if self.fail_sends:
            raise ConnectionError("socket closed")
        self.images.append(data_b64)

    async def close(self):
        self.closed = True


class FakeConnector:
    """Connector returning FakeSessions. failures: queue of exceptions (None = succeed)."""

    def __init__(self, failures=None):
        self.failures = list(failures or [])
        self.calls: list[tuple[SessionParams, str]] = []
        self.sessions: list[FakeSession] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, params, system_prompt, callbacks):
        self.calls.append((params, system_prompt))
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            exc = self.failures.pop(0)
            if exc is not None:
                raise exc
        session = FakeSession(callbacks)
        self.sessions.append(session)
        return session

    @property
    def last(self) -> FakeSession:
        return self.sessions[-1]


class RecordingConsumer(ConsumerBase):
    def __init__(self):
        self.statuses = []
        self.updates = []
        self.fragments = []
        self.completes = 0
        self.sources = []
        self.saved = []
        self.initializing = []
        self.resets = 0
        self.screenshots = 0

    def on_status(self, status):
        self.statuses.append(status)

    def on_transcription_update(self, update):
        self.updates.append(update)

    def on_response_fragment(self, text):
        self.fragments.append(text)

    def on_response_complete(self):
        self.completes += 1

    def on_audio_source_changed(self, source):
        self.sources.append(source)

    def on_conversation_turn_saved(self, saved):
        self.saved.append(saved)

    def on_session_initializing(self, initializing):
        self.initializing.append(initializing)

    def on_context_reset(self):
        self.resets += 1

    def on_screenshot_requested(self):
        self.screenshots += 1


def make_block(value, source=AudioSource.INTERVIEWER, timestamp=0.0, n=2400):
    return AudioBlock.create(np.full(n, value, dtype=np.float32), source, timestamp, SAMPLE_RATE)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def consumer():
    return RecordingConsumer()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def params():
    return SessionParams(credentials="test-key", custom_prompt="", profile="interview", language="en-US")


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep tests off the filesystem and away from a developer .env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CONVERSATION_SAVE_ENABLED", "false")
    monkeypatch.setenv("DEBUG_AUDIO", "false")
    monkeypatch.setenv("RECONNECT_DELAY_SEC", "0")
