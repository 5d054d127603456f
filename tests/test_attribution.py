from earpiece.audio.models import AudioSource
from earpiece.transcript.attribution import SourceAttributor

ER = AudioSource.INTERVIEWER
EE = AudioSource.INTERVIEWEE


def test_majority_wins(clock):
    attributor = SourceAttributor(clock=clock)
    attributor.record(ER, 100, clock.now - 4.5)
    for offset in (4.0, 3.0, 2.0, 1.0):
        attributor.record(EE, 100, clock.now - offset)
    assert attributor.determine() is EE


def test_tie_goes_to_most_recent(clock):
    attributor = SourceAttributor(clock=clock)
    attributor.record(EE, 100, clock.now - 3.0)
    attributor.record(ER, 100, clock.now - 2.0)
    assert attributor.determine() is ER
    attributor.record(EE, 100, clock.now - 1.0)
    attributor.record(ER, 100, clock.now - 0.5)
    attributor.record(EE, 100, clock.now - 0.1)
    # 3 interviewee vs 2 interviewer
    assert attributor.determine() is EE


def test_stale_entries_do_not_vote(clock):
    attributor = SourceAttributor(vote_window_sec=5.0, clock=clock)
    for offset in (30.0, 20.0, 10.0):
        attributor.record(EE, 100, clock.now - offset)
    attributor.record(ER, 100, clock.now - 1.0)
    attributor.record(EE, 100, clock.now - 5.0)  # exactly at the cutoff
    assert attributor.determine() is ER


def test_falls_back_to_last_source(clock):
    attributor = SourceAttributor(clock=clock)
    assert attributor.determine() is ER
    attributor.record(EE, 100, clock.now - 60.0)
    assert attributor.determine() is EE


def test_queue_is_bounded(clock):
    attributor = SourceAttributor(max_entries=50, clock=clock)
    for i in range(120):
        attributor.record(ER if i % 2 else EE, i)
    entries = attributor.entries()
    assert len(entries) == 50
    assert entries[0].size == 70
    assert entries[-1].size == 119


def test_record_uses_clock_by_default(clock):
    attributor = SourceAttributor(clock=clock)
    attributor.record(EE, 42)
    assert attributor.entries()[0].timestamp == clock.now
    attributor.clear()
    assert attributor.entries() == []
    assert attributor.last_source is EE
