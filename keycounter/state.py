"""Shared game state behind one lock, persisted on every visible change."""

from __future__ import annotations

import dataclasses
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass

from keycounter.modes import GameMode
from keycounter.sink import STATUS_BONUS, STATUS_NORMAL

log = logging.getLogger(__name__)


@dataclass
class GameState:
    mode: GameMode
    target_keystrokes: int
    counter: int = 0
    backslash_count: int = 0
    bonus_active: bool = False
    keystroke_buffer: int = 0

    @property
    def status(self) -> str:
        return STATUS_BONUS if self.bonus_active else STATUS_NORMAL


class StateStore:
    """Owns the GameState; every read or write goes through mutate().

    The counter and status label are written to the sink before the lock
    is released, so in-process mutators never interleave their writes.
    """

    def __init__(self, state: GameState, sink):
        self._state = state
        self._sink = sink
        self._lock = threading.Lock()
        # Values the sink is known to hold
        self._saved_counter = state.counter
        self._saved_status = state.status

    @classmethod
    def startup(cls, sink, mode: GameMode, thresholds, reset: bool = True) -> StateStore:
        """Build the initial state, resetting or loading the persisted counter."""
        counter = 0
        if not reset:
            try:
                counter = sink.read_counter()
            except FileNotFoundError:
                reset = True
        if reset:
            sink.reset()
        else:
            # No bonus survives a restart
            sink.write_status(STATUS_NORMAL)
            log.info("Resuming from persisted counter %d", counter)

        state = GameState(mode=mode, target_keystrokes=thresholds.draw(mode), counter=counter)
        return cls(state, sink)

    @contextmanager
    def mutate(self):
        """Exclusive access to the state; persists visible changes on exit.

        If the body raises, nothing is persisted and the exception
        propagates. A failed write propagates too, once the other value has
        still been attempted; the failed one is retried on the next mutation.
        """
        with self._lock:
            yield self._state
            self._flush()

    def snapshot(self) -> GameState:
        with self._lock:
            return dataclasses.replace(self._state)

    def _flush(self):
        # Each value is written independently; the first failure is re-raised
        state = self._state
        error = None
        if state.counter != self._saved_counter:
            try:
                self._sink.write_counter(state.counter)
                self._saved_counter = state.counter
            except OSError as e:
                error = e
        status = state.status
        if status != self._saved_status:
            try:
                self._sink.write_status(status)
                self._saved_status = status
            except OSError as e:
                error = error or e
        if error is not None:
            raise error
