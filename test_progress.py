from streamstat.progress import (COMPLETE, ERROR, HEADERS_DETECTED, PROCESSING_BATCH, READING,
                                 ProgressReporter)
from streamstat.state import ProcessingState


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _reporter(total_bytes=None, interval=1.0):
    clock = FakeClock()
    state = ProcessingState(start_time=clock.now, total_bytes=total_bytes)
    events = []
    return ProgressReporter(state, events.append, interval_s=interval, clock=clock), state, clock, events


def test_batch_events_are_rate_limited_but_phase_changes_are_not():
    rep, state, clock, events = _reporter()
    rep.report(READING)
    rep.report(HEADERS_DETECTED, columns=["a"])
    assert rep.report(PROCESSING_BATCH) is not None
    clock.now += 0.5
    assert rep.report(PROCESSING_BATCH) is None
    clock.now += 0.6
    assert rep.report(PROCESSING_BATCH) is not None
    assert [e.phase for e in events] == [READING, HEADERS_DETECTED, PROCESSING_BATCH, PROCESSING_BATCH]
    assert events[1].to_dict()["columns"] == ["a"]


def test_rate_and_eta_from_file_size():
    rep, state, clock, events = _reporter(total_bytes=1000)
    clock.now += 2.0
    state.rows_processed = 100
    state.bytes_read = 250
    ev = rep.report(PROCESSING_BATCH)
    assert ev.processing_rate_per_sec == 50.0
    assert ev.progress_percent == 25
    # 400 rows expected in total, 300 left at 50 rows/s
    assert ev.estimated_seconds_remaining == 6.0


def test_unknown_size_or_zero_elapsed_gives_no_estimates():
    rep, state, clock, events = _reporter()
    ev = rep.report(READING)
    assert ev.processing_rate_per_sec is None
    assert ev.estimated_seconds_remaining is None
    assert ev.progress_percent is None
    clock.now += 1
    state.rows_processed = 10
    state.bytes_read = 10
    ev = rep.report(PROCESSING_BATCH)
    assert ev.processing_rate_per_sec == 10.0
    assert ev.estimated_seconds_remaining is None


def test_nothing_is_emitted_after_a_terminal_event():
    rep, state, clock, events = _reporter()
    rep.report(ERROR, error="boom", kind="ReadError")
    assert rep.report(COMPLETE) is None
    assert rep.report(PROCESSING_BATCH) is None
    assert [e.phase for e in events] == [ERROR]
    assert events[0].to_dict()["kind"] == "ReadError"
