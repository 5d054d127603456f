import numpy as np
import pytest

from earpiece.audio.models import AudioSource
from earpiece.audio.router import SourceRouter

from conftest import make_block

ER = AudioSource.INTERVIEWER
EE = AudioSource.INTERVIEWEE


@pytest.fixture
def changes():
    return []


@pytest.fixture
def router(changes):
    return SourceRouter(on_source_changed=changes.append)


def test_first_voiced_source_takes_the_floor(router, changes):
    decision = router.route(make_block(0.02, ER, 0.0))
    assert decision.forward is True
    assert decision.switched is True
    assert decision.active_source is ER
    assert changes == [ER]


def test_silent_block_from_incumbent_is_not_forwarded(router):
    router.route(make_block(0.05, ER, 0.0))
    decision = router.route(make_block(0.0, ER, 0.1))
    assert decision.forward is False
    assert router.current_speaker is ER


def test_challenger_waits_for_cooldown(router, changes):
    # interviewer voiced (RMS 0.02), interviewee voiced (RMS 0.05) 50ms later, alternating
    router.route(make_block(0.02, ER, 0.0))
    early = router.route(make_block(0.05, EE, 0.05))
    assert early.active_source is ER
    assert early.switched is False
    # challenger is confident and the incumbent is weak: forwarded, but no switch yet
    assert early.forward is True

    router.route(make_block(0.02, ER, 0.10))
    assert router.route(make_block(0.05, EE, 0.15)).active_source is ER
    router.route(make_block(0.02, ER, 0.20))

    late = router.route(make_block(0.05, EE, 0.25))
    assert late.switched is True
    assert late.active_source is EE
    assert changes == [ER, EE]
    assert router.state.last_switch == pytest.approx(0.25)


def test_strong_incumbent_blocks_challenger(router):
    router.route(make_block(0.05, ER, 0.0))
    for i in range(1, 20):
        router.route(make_block(0.05, ER, i * 0.1))
        decision = router.route(make_block(0.05, EE, i * 0.1 + 0.05))
        assert decision.forward is False
        assert decision.active_source is ER


def test_continuous_voice_from_one_source_never_switches(router, changes):
    for i in range(50):
        decision = router.route(make_block(0.03, ER, i * 0.08))
        assert decision.active_source is ER
        assert decision.forward is True
    assert changes == [ER]


def test_repeated_same_source_does_not_restart_cooldown(router):
    router.route(make_block(0.02, ER, 0.0))
    router.route(make_block(0.02, ER, 0.15))
    assert router.state.last_switch == 0.0
    decision = router.route(make_block(0.05, EE, 0.21))
    assert decision.switched is True


def test_no_two_switches_within_cooldown():
    rng = np.random.default_rng(42)
    router = SourceRouter()
    switch_times = []
    t = 0.0
    # Both sources weak (confidence 0.4), so every challenger block wants the floor
    amplitude = {ER: 0.02, EE: 0.006}
    for _ in range(2000):
        t += float(rng.uniform(0.01, 0.1))
        source = ER if rng.random() < 0.5 else EE
        decision = router.route(make_block(amplitude[source], source, t, n=480))
        if decision.switched:
            switch_times.append(t)
    assert len(switch_times) > 2
    gaps = np.diff(switch_times)
    assert np.all(gaps >= 0.2)


def test_recent_activity_is_mean_of_last_five_voiced(router):
    for i, value in enumerate([0.02, 0.03, 0.04, 0.05, 0.1, 0.02]):
        router.route(make_block(value, ER, i * 0.1))
    router.route(make_block(0.0, ER, 0.6))
    assert router.recent_activity(ER, now=0.6) == pytest.approx(0.76, rel=1e-5)


def test_activity_older_than_window_is_pruned(router):
    router.route(make_block(0.02, ER, 0.0))
    assert router.recent_activity(ER, now=1.0) == pytest.approx(0.4, rel=1e-5)
    assert router.recent_activity(ER, now=2.5) == 0.0


def test_listener_failure_does_not_break_routing():
    def boom(source):
        raise RuntimeError("ui gone")

    router = SourceRouter(on_source_changed=boom)
    decision = router.route(make_block(0.05, EE, 0.0))
    assert decision.active_source is EE


def test_stats_and_reset(router):
    router.route(make_block(0.02, ER, 0.0))
    stats = router.stats(now=0.1)
    assert stats["current_speaker"] == "interviewer"
    assert stats["interviewer"] == pytest.approx(0.4, rel=1e-5)
    assert stats["interviewee"] == 0.0
    router.reset()
    assert router.current_speaker is None
    assert router.stats()["last_switch"] is None
