"""Tests for the locked state store and its persistence."""

import threading

import pytest

from keycounter.modes import GameMode, SequenceThresholds
from keycounter.sink import STATUS_BONUS, STATUS_NORMAL, FileSink
from keycounter.state import GameState, StateStore


class RecordingSink:
    def __init__(self, fail_writes=0):
        self.writes = []
        self.fail_writes = fail_writes

    def write_counter(self, value):
        self._write(("counter", value))

    def write_status(self, label):
        self._write(("status", label))

    def _write(self, entry):
        if self.fail_writes:
            self.fail_writes -= 1
            raise OSError("disk full")
        self.writes.append(entry)


def make_store(sink=None, **fields):
    state = GameState(mode=GameMode.TEST, target_keystrokes=1, **fields)
    return StateStore(state, sink or RecordingSink())


def test_mutate_persists_changed_counter():
    sink = RecordingSink()
    store = make_store(sink)
    with store.mutate() as state:
        state.counter = 3
    assert sink.writes == [("counter", 3)]


def test_mutate_without_visible_change_writes_nothing():
    sink = RecordingSink()
    store = make_store(sink)
    with store.mutate() as state:
        state.keystroke_buffer += 1
        state.backslash_count = 2
    assert sink.writes == []


def test_bonus_flag_drives_status_label():
    sink = RecordingSink()
    store = make_store(sink, counter=60)
    with store.mutate() as state:
        state.bonus_active = True
    with store.mutate() as state:
        state.bonus_active = False
    assert sink.writes == [("status", STATUS_BONUS), ("status", STATUS_NORMAL)]


def test_failed_write_propagates_and_is_retried():
    sink = RecordingSink(fail_writes=1)
    store = make_store(sink)
    with pytest.raises(OSError):
        with store.mutate() as state:
            state.counter = 1
    with store.mutate():
        pass
    assert sink.writes == [("counter", 1)]


def test_error_in_body_skips_persistence():
    sink = RecordingSink()
    store = make_store(sink)
    with pytest.raises(KeyError):
        with store.mutate() as state:
            state.counter = 9
            raise KeyError("boom")
    assert sink.writes == []


def test_snapshot_is_a_copy():
    store = make_store(counter=5)
    snap = store.snapshot()
    snap.counter = 100
    assert store.snapshot().counter == 5


def test_lock_is_released_after_mutate():
    store = make_store()
    with store.mutate():
        pass
    done = threading.Event()
    threading.Thread(target=lambda: (store.snapshot(), done.set())).start()
    assert done.wait(1.0)


def test_concurrent_mutations_do_not_lose_updates():
    store = make_store()

    def bump():
        for _ in range(500):
            with store.mutate() as state:
                state.counter += 1

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.snapshot().counter == 4000


def test_startup_resets_sink(tmp_path):
    sink = FileSink(tmp_path / "counter.txt", tmp_path / "status.txt")
    sink.write_counter(77)
    store = StateStore.startup(sink, GameMode.NORMAL, SequenceThresholds([12]))
    state = store.snapshot()
    assert state.counter == 0
    assert state.target_keystrokes == 12
    assert state.mode is GameMode.NORMAL
    assert sink.counter_path.read_text() == "0"
    assert sink.status_path.read_text() == STATUS_NORMAL


def test_startup_resumes_persisted_counter(tmp_path):
    sink = FileSink(tmp_path / "counter.txt", tmp_path / "status.txt")
    sink.write_counter(77)
    sink.write_status(STATUS_BONUS)
    store = StateStore.startup(sink, GameMode.TEST, SequenceThresholds([1]), reset=False)
    assert store.snapshot().counter == 77
    assert sink.status_path.read_text() == STATUS_NORMAL


def test_startup_resume_with_garbage_defaults_to_zero(tmp_path):
    sink = FileSink(tmp_path / "counter.txt", tmp_path / "status.txt")
    sink.counter_path.write_text("12abc")
    store = StateStore.startup(sink, GameMode.TEST, SequenceThresholds([1]), reset=False)
    assert store.snapshot().counter == 0


def test_startup_resume_without_file_resets(tmp_path):
    sink = FileSink(tmp_path / "counter.txt", tmp_path / "status.txt")
    store = StateStore.startup(sink, GameMode.TEST, SequenceThresholds([1]), reset=False)
    assert store.snapshot().counter == 0
    assert sink.counter_path.read_text() == "0"


def test_status_written_even_when_counter_write_fails():
    class CounterDownSink(RecordingSink):
        def write_counter(self, value):
            raise OSError("disk full")

    sink = CounterDownSink()
    store = make_store(sink, counter=1, bonus_active=True)
    with pytest.raises(OSError):
        with store.mutate() as state:
            state.counter = 0
            state.bonus_active = False
    assert sink.writes == [("status", STATUS_NORMAL)]


def test_startup_resume_with_undecodable_file_defaults_to_zero(tmp_path):
    sink = FileSink(tmp_path / "counter.txt", tmp_path / "status.txt")
    sink.counter_path.write_bytes(b"\xff\xfe12")
    store = StateStore.startup(sink, GameMode.TEST, SequenceThresholds([1]), reset=False)
    assert store.snapshot().counter == 0
