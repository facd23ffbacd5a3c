"""Key-event state machine: counting, the trigger combo, and escape."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from keycounter.audio import AudioBus, Play, PlayAndLoop, Stop

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sounds:
    increment: str
    bonus_intro: str
    bonus_loop: str


class Dispatcher:
    """Applies one key press to the shared state.

    State changes and their persistence happen inside store.mutate();
    audio commands are only sent after that block has exited, so the
    persisted counter is never behind the sound cue.
    """

    def __init__(self, store, bus: AudioBus, sounds: Sounds, thresholds,
                 start_bonus: Callable[[], None],
                 trigger_key: int, stop_key: int,
                 bonus_threshold: int = 50, trigger_presses: int = 3):
        self.store = store
        self.bus = bus
        self.sounds = sounds
        self.thresholds = thresholds
        self.start_bonus = start_bonus
        self.trigger_key = trigger_key
        self.stop_key = stop_key
        self.bonus_threshold = bonus_threshold
        self.trigger_presses = trigger_presses

    def dispatch(self, key_code: int) -> list:
        """Handle one key press. Returns the audio commands sent.

        Persistence errors propagate to the caller.
        """
        if key_code == self.stop_key:
            log.info("ACTION: Escape pressed, stopping audio")
            self.bus.send(Stop())
            return [Stop()]

        commands = []
        bonus = False
        with self.store.mutate() as state:
            if state.bonus_active:
                # The bonus timer owns the counter until it finishes
                return commands

            # Threshold is checked on every press, not only the last one
            if key_code == self.trigger_key and state.counter >= self.bonus_threshold:
                state.backslash_count += 1
                log.debug("Trigger pressed, streak %d", state.backslash_count)
                if state.backslash_count >= self.trigger_presses:
                    state.bonus_active = True
                    state.backslash_count = 0
                    commands.append(PlayAndLoop(self.sounds.bonus_intro, self.sounds.bonus_loop))
                    bonus = True
                    log.info("ACTION: Bonus mode triggered at %d", state.counter)
            else:
                state.backslash_count = 0
                state.keystroke_buffer += 1
                if state.keystroke_buffer >= state.target_keystrokes:
                    state.keystroke_buffer = 0
                    state.counter += 1
                    state.target_keystrokes = self.thresholds.draw(state.mode)
                    commands.append(Play((self.sounds.increment,)))
                    log.info(
                        "ACTION: Counter incremented to %d, next in %d keystrokes",
                        state.counter, state.target_keystrokes,
                    )

        for command in commands:
            self.bus.send(command)
        if bonus:
            self.start_bonus()
        return commands
