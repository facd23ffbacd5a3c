"""Difficulty modes and keystroke threshold sources."""

import enum
import itertools
import random


class GameMode(enum.Enum):
    TEST = "test"
    NORMAL = "normal"
    HARD = "hard"

    @classmethod
    def from_flag(cls, flag: str) -> "GameMode | None":
        """Map a CLI token like "--hard" (or "hard") to a mode."""
        name = flag.lstrip("-").lower()
        for mode in cls:
            if mode.value == name:
                return mode
        return None


# Inclusive upper bound of the uniform draw per mode
THRESHOLD_CEILING = {
    GameMode.TEST: 1,
    GameMode.NORMAL: 100,
    GameMode.HARD: 1000,
}


class RandomThresholds:
    """Draw the next keystroke target from the mode's distribution."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def draw(self, mode: GameMode) -> int:
        ceiling = THRESHOLD_CEILING[mode]
        if ceiling == 1:
            return 1
        return self.rng.randint(1, ceiling)


class SequenceThresholds:
    """Deterministic source: cycles through fixed values, ignoring the mode."""

    def __init__(self, values):
        values = list(values)
        if not values or min(values) < 1:
            raise ValueError("thresholds must be a non-empty list of values >= 1")
        self._values = itertools.cycle(values)

    def draw(self, mode: GameMode) -> int:
        return next(self._values)
