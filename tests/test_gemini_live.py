import asyncio
import base64
from types import SimpleNamespace

import pytest

from earpiece.session.backend import SessionCallbacks
from earpiece.session.gemini_live import GeminiLiveSession, build_live_config


class Recorder:
    def __init__(self):
        self.events = []

    def callbacks(self):
        return SessionCallbacks(
            on_transcription=lambda text: self.events.append(("transcription", text)),
            on_response_fragment=lambda text: self.events.append(("fragment", text)),
            on_response_complete=lambda: self.events.append(("complete",)),
            on_turn_complete=lambda: self.events.append(("turn_complete",)),
            on_error=lambda message: self.events.append(("error", message)),
            on_close=lambda reason: self.events.append(("close", reason)),
        )


class FakeLive:
    """Stands in for the google-genai live session: one scripted turn, then the socket drops."""

    def __init__(self, messages):
        self.messages = messages
        self.sent = []
        self._turns = 0

    async def receive(self):
        self._turns += 1
        if self._turns > 1:
            raise ConnectionError("1011 internal error")
        for message in self.messages:
            yield message

    async def send_realtime_input(self, **kwargs):
        self.sent.append(kwargs)


class FakeContext:
    def __init__(self):
        self.exited = False

    async def __aexit__(self, *args):
        self.exited = True


FAKE_TYPES = SimpleNamespace(Blob=lambda data, mime_type: SimpleNamespace(data=data, mime_type=mime_type))


def _content(**fields):
    return SimpleNamespace(server_content=SimpleNamespace(**fields))


@pytest.mark.asyncio
async def test_server_messages_map_to_callbacks():
    recorder = Recorder()
    messages = [
        SimpleNamespace(server_content=None),
        _content(input_transcription=SimpleNamespace(text="How would you scale it?"), model_turn=None),
        _content(
            input_transcription=None,
            model_turn=SimpleNamespace(parts=[SimpleNamespace(text="Shard "), SimpleNamespace(text="by key.")]),
        ),
        _content(input_transcription=None, model_turn=None, generation_complete=True),
        _content(input_transcription=None, model_turn=None, turn_complete=True),
    ]
    session = GeminiLiveSession(FakeContext(), FakeLive(messages), FAKE_TYPES, recorder.callbacks())
    for _ in range(20):
        if recorder.events and recorder.events[-1][0] == "close":
            break
        await asyncio.sleep(0)

    assert recorder.events == [
        ("transcription", "How would you scale it?"),
        ("fragment", "Shard "),
        ("fragment", "by key."),
        ("complete",),
        ("turn_complete",),
        ("close", "1011 internal error"),
    ]
    await session.close()


@pytest.mark.asyncio
async def test_sends_and_user_close():
    recorder = Recorder()
    live = FakeLive([])
    ctx = FakeContext()
    session = GeminiLiveSession(ctx, live, FAKE_TYPES, recorder.callbacks())
    await session.close()

    audio = base64.b64encode(b"\x01\x02").decode()
    await session.send_audio(audio, "audio/pcm;rate=24000")
    await session.send_text("hello")
    assert live.sent[0]["audio"].data == b"\x01\x02"
    assert live.sent[0]["audio"].mime_type == "audio/pcm;rate=24000"
    assert live.sent[1] == {"text": "hello"}
    assert ctx.exited
    assert recorder.events == []


def _recording_types():
    def factory(name):
        return lambda *args, **kwargs: {"type": name, **kwargs}

    names = [
        "LiveConnectConfig",
        "Tool",
        "GoogleSearch",
        "AudioTranscriptionConfig",
        "ContextWindowCompressionConfig",
        "SlidingWindow",
        "SpeechConfig",
        "Content",
        "Part",
    ]
    return SimpleNamespace(**{name: factory(name) for name in names})


def test_live_config_search_tool_follows_setting():
    types = _recording_types()
    with_search = build_live_config(types, "be brief", "en-US", google_search=True)
    assert [tool["google_search"]["type"] for tool in with_search["tools"]] == ["GoogleSearch"]
    assert with_search["speech_config"]["language_code"] == "en-US"
    assert with_search["system_instruction"]["parts"][0]["text"] == "be brief"

    without_search = build_live_config(types, "be brief", "de-DE", google_search=False)
    assert without_search["tools"] == []
    assert without_search["response_modalities"] == ["TEXT"]
