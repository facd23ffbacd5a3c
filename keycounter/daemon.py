# keycounter/daemon.py
"""Key counter — main daemon."""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path

from keycounter.audio import AudioBus, AudioWorker
from keycounter.bonus import BonusTimer
from keycounter.config import AppConfig, load_config
from keycounter.dispatcher import Dispatcher, Sounds
from keycounter.listener import DeviceListener, find_keyboards, key_code
from keycounter.modes import GameMode, RandomThresholds
from keycounter.player import SoundDevicePlayer
from keycounter.sink import FileSink
from keycounter.state import StateStore

log = logging.getLogger(__name__)


class KeyCounterDaemon:
    """Main application class: owns every thread and their shutdown."""

    def __init__(self, config: AppConfig, mode: GameMode, sink, player, thresholds=None):
        self.config = config
        self.mode = mode
        self.sink = sink
        self.player = player
        self.thresholds = thresholds or RandomThresholds()
        self.bus = AudioBus()
        self.store: StateStore | None = None
        self.dispatcher: Dispatcher | None = None
        self.worker: AudioWorker | None = None
        self.listeners: list[DeviceListener] = []
        self.bonus_timer: BonusTimer | None = None
        self._bonus_lock = threading.Lock()

    def start(self, devices: dict):
        """Initialize state and start the worker plus one listener per device."""
        game = self.config.game
        self.store = StateStore.startup(
            self.sink, self.mode, self.thresholds,
            reset=self.config.sink.reset_on_start,
        )

        self.worker = AudioWorker(self.bus, self.player)
        self.worker.start()

        sounds = self.config.sounds
        self.dispatcher = Dispatcher(
            store=self.store,
            bus=self.bus,
            sounds=Sounds(
                increment=os.path.expanduser(sounds.increment),
                bonus_intro=os.path.expanduser(sounds.bonus_intro),
                bonus_loop=os.path.expanduser(sounds.bonus_loop),
            ),
            thresholds=self.thresholds,
            start_bonus=self.start_bonus,
            trigger_key=key_code(game.trigger_key),
            stop_key=key_code(game.stop_key),
            bonus_threshold=game.bonus_threshold,
            trigger_presses=game.trigger_presses,
        )

        for hint, device in devices.items():
            listener = DeviceListener(device, self.dispatcher, hint=hint)
            listener.start()
            self.listeners.append(listener)

    def start_bonus(self):
        """Spawn the bonus countdown; at most one runs at a time."""
        with self._bonus_lock:
            timer = self.bonus_timer
            if timer is not None and timer.is_alive() and not timer.finished:
                log.warning("Bonus timer already running, not starting another")
                return
            self.bonus_timer = BonusTimer(
                self.store, self.bus, interval=self.config.game.tick_interval,
            )
            self.bonus_timer.start()

    def stop(self, timeout: float = 2.0):
        """Shutdown cleanly: timer, listeners, then the audio worker."""
        with self._bonus_lock:
            timer = self.bonus_timer
        if timer is not None:
            timer.cancel()
            timer.join(timeout)

        for listener in self.listeners:
            listener.stop()
        for listener in self.listeners:
            listener.join(timeout)

        if self.worker is not None:
            self.bus.close()
            self.worker.join(timeout)


def parse_args(argv=None):
    # No prefix matching: "--h" or "--te" must land in the unknown list
    parser = argparse.ArgumentParser(description="Keyboard counter daemon", allow_abbrev=False)
    for mode in GameMode:
        parser.add_argument(
            f"--{mode.value}", dest="modes", action="append_const", const=mode,
            help=f"{mode.value} difficulty",
        )
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser.parse_known_args(argv)


def resolve_mode(chosen: list[GameMode] | None, unknown: list[str], default: str) -> GameMode:
    """Pick the difficulty; the first mode flag wins, anything else only warns."""
    if chosen:
        mode = chosen[0]
        for extra in chosen[1:]:
            log.warning("Ignoring extra mode flag --%s. Using %s mode.", extra.value, mode.value)
    else:
        mode = GameMode.from_flag(default) or GameMode.NORMAL
    for arg in unknown:
        log.warning("Unknown argument '%s'. Using %s mode.", arg, mode.value)
    return mode


def main(argv=None):
    args, unknown = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(Path(args.config))
    mode = resolve_mode(args.modes, unknown, config.game.default_mode)
    log.info("Starting in %s mode.", mode.value)

    devices = find_keyboards(config.keyboards)
    if not devices:
        log.error("No keyboard matched any of %s", config.keyboards)
        sys.exit(1)

    player = SoundDevicePlayer(
        samplerate=config.audio.samplerate,
        channels=config.audio.channels,
        device=config.audio.device,
    )
    sink = FileSink(config.sink.counter_file, config.sink.status_file)

    app = KeyCounterDaemon(config=config, mode=mode, sink=sink, player=player)
    app.start(devices)

    try:
        # Block main thread
        threading.Event().wait()
    except KeyboardInterrupt:
        log.info("Shutting down...")
    finally:
        app.stop()


if __name__ == "__main__":
    main()
