import base64
import binascii
import struct

import numpy as np
import pytest

from earpiece.audio.codec import (
    decode_wav,
    encode_audio_payload,
    encode_wav,
    float32_to_pcm16,
    from_base64,
    pcm16_to_float32,
    stereo_to_mono,
)
from earpiece.audio.models import AudioSource, SendUnit, frozen_samples


def test_float32_to_pcm16_scaling_and_clamp():
    samples = np.array([-1.0, 1.0, 0.0, 0.5, -0.5, 2.0, -2.0], dtype=np.float32)
    assert float32_to_pcm16(samples).tolist() == [-32768, 32767, 0, 16383, -16384, 32767, -32768]


def test_pcm16_bytes_to_float32():
    pcm = struct.pack("<3h", -32768, 0, 16384)
    assert pcm16_to_float32(pcm).tolist() == [-1.0, 0.0, 0.5]
    # Trailing odd byte is ignored
    assert len(pcm16_to_float32(pcm + b"\x01")) == 3


def test_stereo_to_mono_keeps_left_channel():
    stereo = struct.pack("<6h", 1, -1, 2, -2, 3, -3)
    assert struct.unpack("<3h", stereo_to_mono(stereo)) == (1, 2, 3)


def test_wav_header_fields():
    samples = np.arange(10, dtype=np.int16)
    wav = encode_wav(samples, 24000)
    assert len(wav) == 44 + 20
    assert wav[0:4] == b"RIFF"
    assert struct.unpack("<I", wav[4:8])[0] == 20 + 36
    assert wav[8:16] == b"WAVEfmt "
    fmt_size, audio_format, channels, rate, byte_rate, block_align, bits = struct.unpack("<IHHIIHH", wav[16:36])
    assert (fmt_size, audio_format, channels) == (16, 1, 1)
    assert (rate, byte_rate, block_align, bits) == (24000, 48000, 2, 16)
    assert wav[36:40] == b"data"
    assert struct.unpack("<I", wav[40:44])[0] == 20
    assert wav[44:] == samples.astype("<i2").tobytes()


@pytest.mark.parametrize("size", [0, 1, 1920, 48000])
def test_wav_decode_returns_original_samples(size):
    rng = np.random.default_rng(size)
    samples = rng.integers(-32768, 32767, size=size, dtype=np.int16)
    decoded, rate = decode_wav(encode_wav(samples, 24000))
    assert rate == 24000
    assert np.array_equal(decoded, samples)


def test_decode_wav_rejects_stereo():
    import io
    import wave

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(24000)
        wav.writeframes(b"\x00" * 8)
    with pytest.raises(ValueError):
        decode_wav(buf.getvalue())


def _unit(values):
    return SendUnit(
        samples=frozen_samples(np.array(values, dtype=np.float32)),
        source=AudioSource.INTERVIEWER,
        timestamp=0.0,
        sample_rate=24000,
    )


def test_pcm_payload():
    data, mime = encode_audio_payload(_unit([0.0, 1.0]), transport="pcm")
    assert mime == "audio/pcm;rate=24000"
    assert base64.b64decode(data) == struct.pack("<2h", 0, 32767)


def test_wav_payload():
    data, mime = encode_audio_payload(_unit([0.0, -1.0]), transport="wav")
    assert mime == "audio/wav"
    decoded, rate = decode_wav(base64.b64decode(data))
    assert decoded.tolist() == [0, -32768]
    assert rate == 24000


def test_invalid_base64_is_rejected():
    with pytest.raises(binascii.Error):
        from_base64("not base64!!")
