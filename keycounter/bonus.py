"""Bonus countdown: drains the counter to zero, one step per tick."""

import logging
import threading

from keycounter.audio import AudioBus, Stop

log = logging.getLogger(__name__)


class BonusTimer(threading.Thread):
    """Decrements the counter every interval until it reaches 0.

    Then clears bonus mode, sends Stop and exits. cancel() ends the
    thread early without touching state (used on shutdown).
    """

    def __init__(self, store, bus: AudioBus, interval: float = 1.0):
        super().__init__(daemon=True, name="bonus-timer")
        self.store = store
        self.bus = bus
        self.interval = interval
        self.finished = False
        self._cancel_event = threading.Event()

    def cancel(self):
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self):
        while not self.finished:
            if self._cancel_event.wait(self.interval):
                log.info("Bonus timer cancelled")
                return
            self.tick()

    def tick(self) -> bool:
        """One countdown step. Returns True once the countdown is over."""
        if self.finished:
            return True
        done = False
        try:
            with self.store.mutate() as state:
                if state.counter > 0:
                    state.counter -= 1
                if state.counter == 0:
                    state.bonus_active = False
                    # Set under the lock so a new round never sees a stale timer
                    self.finished = True
                    done = True
        except OSError as e:
            # A failed write must not leave the bonus stuck on
            log.error("Bonus tick could not persist: %s", e)

        if done:
            log.info("Bonus finished, back to normal")
            self.bus.send(Stop())
        return done

    def finish_now(self) -> None:
        """Run the remaining ticks immediately."""
        while not self.tick():
            pass
