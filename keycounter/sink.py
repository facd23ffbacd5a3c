"""File-backed persistence sink read by the status bar.

Two tiny text files: the counter as a bare base-10 integer and a status
label. Every access takes an advisory flock so a display process reading
concurrently never sees a half-written value.
"""

import fcntl
import logging
from pathlib import Path

log = logging.getLogger(__name__)

STATUS_NORMAL = "flashing"
STATUS_BONUS = "super-charge-flash"


class FileSink:
    def __init__(self, counter_path: str | Path, status_path: str | Path):
        self.counter_path = Path(counter_path)
        self.status_path = Path(status_path)

    def read_counter(self) -> int:
        """Load the persisted counter. Unparseable contents count as 0."""
        try:
            # UnicodeDecodeError is a ValueError too
            value = int(self._read(self.counter_path).strip())
        except ValueError as e:
            log.warning("Counter file %s is unreadable (%s), starting from 0", self.counter_path, e)
            return 0
        return max(value, 0)

    def read_status(self) -> str:
        return self._read(self.status_path).strip()

    def write_counter(self, value: int) -> None:
        self._write(self.counter_path, str(value))

    def write_status(self, label: str) -> None:
        self._write(self.status_path, label)

    def reset(self) -> None:
        self.write_counter(0)
        self.write_status(STATUS_NORMAL)

    @staticmethod
    def _read(path: Path) -> str:
        with open(path) as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            return f.read()

    @staticmethod
    def _write(path: Path, content: str) -> None:
        # Truncate only once the lock is held; released on close
        with open(path, "a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            f.truncate(0)
            f.write(content)
