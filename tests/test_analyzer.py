import struct

import numpy as np
import pytest

from earpiece.audio.analyzer import (
    SourceVadConfig,
    analyze,
    analyze_pcm16,
    calculate_rms,
    calculate_silence_percentage,
    default_source_configs,
)
from earpiece.audio.models import AudioBlock, AudioSource

from conftest import SAMPLE_RATE, make_block

INTERVIEWER = SourceVadConfig(vad_threshold=0.01, max_silence_percent=80.0)
INTERVIEWEE = SourceVadConfig(vad_threshold=0.003, max_silence_percent=85.0)


def test_default_configs_are_stricter_for_interviewer():
    configs = default_source_configs()
    assert configs[AudioSource.INTERVIEWER].vad_threshold > configs[AudioSource.INTERVIEWEE].vad_threshold
    assert (
        configs[AudioSource.INTERVIEWER].max_silence_percent
        < configs[AudioSource.INTERVIEWEE].max_silence_percent
    )


def test_rms_and_silence_of_constant_block():
    samples = np.full(100, -0.25, dtype=np.float32)
    assert calculate_rms(samples) == pytest.approx(0.25)
    assert calculate_silence_percentage(samples, 0.005) == 0.0


def test_empty_window_is_silent():
    block = AudioBlock.create(np.zeros(0), AudioSource.INTERVIEWER, 0.0, SAMPLE_RATE)
    vad = analyze(block, INTERVIEWER, 0.005)
    assert vad.rms == 0.0
    assert vad.silence_percentage == 100.0
    assert vad.has_voice is False
    assert vad.confidence == 0.0


@pytest.mark.parametrize("value", [0.0, 0.002, 0.005, 0.009])
def test_no_voice_at_or_below_threshold(value):
    vad = analyze(make_block(value), INTERVIEWER, 0.005)
    assert vad.has_voice is False
    assert vad.confidence == 0.0


def test_no_voice_for_noise_below_threshold():
    rng = np.random.default_rng(7)
    for _ in range(20):
        noise = rng.normal(size=2400)
        noise = noise / np.sqrt(np.mean(noise**2)) * 0.0099
        block = AudioBlock.create(noise, AudioSource.INTERVIEWER, 0.0, SAMPLE_RATE)
        assert analyze(block, INTERVIEWER, 0.005).has_voice is False


def test_confidence_is_linear_then_saturates():
    assert analyze(make_block(0.02), INTERVIEWER, 0.005).confidence == pytest.approx(0.4, rel=1e-5)
    assert analyze(make_block(0.04), INTERVIEWER, 0.005).confidence == pytest.approx(0.8, rel=1e-5)
    assert analyze(make_block(0.2), INTERVIEWER, 0.005).confidence == 1.0
    assert analyze(make_block(0.9), INTERVIEWER, 0.005).confidence == 1.0


def test_silence_ratio_gates_voice_per_source():
    samples = np.concatenate([np.zeros(820), np.full(180, 0.5)])
    interviewer = analyze(AudioBlock.create(samples, AudioSource.INTERVIEWER, 0.0, SAMPLE_RATE), INTERVIEWER, 0.005)
    interviewee = analyze(AudioBlock.create(samples, AudioSource.INTERVIEWEE, 0.0, SAMPLE_RATE), INTERVIEWEE, 0.005)
    assert interviewer.silence_percentage == pytest.approx(82.0)
    assert interviewer.has_voice is False
    assert interviewee.has_voice is True


def test_half_silent_block_is_voiced():
    samples = np.concatenate([np.zeros(500), np.full(500, 0.1)])
    vad = analyze(AudioBlock.create(samples, AudioSource.INTERVIEWER, 0.0, SAMPLE_RATE), INTERVIEWER, 0.005)
    assert vad.silence_percentage == pytest.approx(50.0)
    assert vad.has_voice is True
    assert vad.min_value == 0.0
    assert vad.max_value == pytest.approx(0.1)


def test_analyze_is_deterministic():
    rng = np.random.default_rng(1)
    block = AudioBlock.create(rng.uniform(-0.1, 0.1, 1920), AudioSource.INTERVIEWEE, 3.0, SAMPLE_RATE)
    assert analyze(block, INTERVIEWEE, 0.005) == analyze(block, INTERVIEWEE, 0.005)


def test_block_samples_are_read_only():
    block = make_block(0.1)
    with pytest.raises(ValueError):
        block.samples[0] = 0.0


def test_analyze_pcm16_statistics():
    pcm = struct.pack("<5h", 0, 50, -50, 1000, -1000)
    stats = analyze_pcm16(pcm)
    assert stats["min_value"] == -1000
    assert stats["max_value"] == 1000
    assert stats["sample_count"] == 5
    assert stats["silence_percentage"] == pytest.approx(60.0)
    assert stats["avg_value"] == pytest.approx(0.0)


def test_analyze_pcm16_empty():
    stats = analyze_pcm16(b"")
    assert stats["sample_count"] == 0
    assert stats["silence_percentage"] == 100.0
