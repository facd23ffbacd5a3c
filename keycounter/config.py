"""Config loader — YAML to dataclasses."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class SinkConfig:
    counter_file: str = "/tmp/waybar_counter.txt"
    status_file: str = "/tmp/waybar_status.txt"
    reset_on_start: bool = True


@dataclass
class SoundConfig:
    increment: str = "~/Music/Sonic-Ring.mp3"
    bonus_intro: str = "~/Music/Super-Sonic-Transform.mp3"
    bonus_loop: str = "~/Music/Super-sonic-song.mp3"


@dataclass
class GameConfig:
    trigger_key: str = "KEY_BACKSLASH"
    stop_key: str = "KEY_ESC"
    bonus_threshold: int = 50
    trigger_presses: int = 3
    tick_interval: float = 1.0
    default_mode: str = "normal"


@dataclass
class AudioConfig:
    device: str | int | None = None  # None = system default output
    samplerate: int = 44100
    channels: int = 2


@dataclass
class AppConfig:
    keyboards: list[str] = field(default_factory=lambda: ["GMMK Pro Keyboard", "Translated"])
    sink: SinkConfig = field(default_factory=SinkConfig)
    sounds: SoundConfig = field(default_factory=SoundConfig)
    game: GameConfig = field(default_factory=GameConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)


def load_config(path: Path | None) -> AppConfig:
    """Load config from YAML file. A missing file means all defaults."""
    if path is None or not path.exists():
        return AppConfig()
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    sink = SinkConfig(**(raw.get("sink") or {}))
    sounds = SoundConfig(**(raw.get("sounds") or {}))
    game = GameConfig(**(raw.get("game") or {}))
    audio = AudioConfig(**(raw.get("audio") or {}))
    keyboards = raw.get("keyboards")
    if keyboards is None:
        keyboards = AppConfig().keyboards

    return AppConfig(keyboards=list(keyboards), sink=sink, sounds=sounds, game=game, audio=audio)
