"""Audio command bus and the single worker thread that consumes it.

Producers (dispatcher, bonus timer) never touch the sound device; they
enqueue a command and return. The worker owns the player and applies
commands strictly in arrival order.
"""

import logging
import queue
import threading
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Play:
    """Play each sound once, in order."""
    sounds: tuple[str, ...]


@dataclass(frozen=True)
class PlayAndLoop:
    """Play the intro once, then repeat the loop until the next command."""
    intro: str
    loop: str


@dataclass(frozen=True)
class Stop:
    """Halt current and queued playback."""


_CLOSE = object()


class AudioBus:
    """Unbounded FIFO of audio commands, many producers, one consumer."""

    def __init__(self):
        self._queue = queue.SimpleQueue()

    def send(self, command) -> None:
        self._queue.put(command)

    def receive(self, timeout: float | None = None):
        """Next command, or None once the bus is closed.

        Raises queue.Empty if the timeout expires.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSE:
            return None
        return item

    def close(self) -> None:
        """Wake the consumer and tell it to exit after queued commands."""
        self._queue.put(_CLOSE)


class AudioWorker(threading.Thread):
    """Sole consumer of the bus; owns the playback device."""

    def __init__(self, bus: AudioBus, player):
        super().__init__(daemon=True, name="audio-worker")
        self.bus = bus
        self.player = player
        self.handled = 0

    def run(self):
        try:
            self.player.open()
        except Exception as e:
            # Keep draining so producers are unaffected; just stay silent
            log.error("Could not open audio output: %s", e)
            self.player = None

        try:
            while True:
                command = self.bus.receive()
                if command is None:
                    break
                if self.player is not None:
                    self.apply(command)
                self.handled += 1
        finally:
            if self.player is not None:
                self.player.close()

    def apply(self, command) -> None:
        if isinstance(command, Play):
            log.debug("AUDIO: play %s", ", ".join(command.sounds))
            self.player.stop()
            for path in command.sounds:
                self._enqueue(path)

        elif isinstance(command, PlayAndLoop):
            log.debug("AUDIO: play %s, then loop %s", command.intro, command.loop)
            self.player.stop()
            self._enqueue(command.intro)
            self._enqueue(command.loop, loop=True)

        elif isinstance(command, Stop):
            log.debug("AUDIO: stop")
            self.player.stop()

        else:
            log.warning("Ignoring unknown audio command %r", command)

    def _enqueue(self, path: str, loop: bool = False) -> None:
        # soundfile reports missing/undecodable files as RuntimeError subclasses
        try:
            clip = self.player.load(path)
        except (OSError, RuntimeError, ValueError) as e:
            log.warning("Skipping sound %s: %s", path, e)
            return
        self.player.enqueue(clip, loop=loop)
