"""Decoded in-memory playback on a sounddevice output stream.

Sounds are decoded once with soundfile and kept as float32 frames at the
stream's rate and channel count. The stream callback pulls frames from a
playlist; a looping entry wraps its read position instead of finishing,
so the loop boundary has no gap.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass

import numpy as np
import soundfile as sf

log = logging.getLogger(__name__)


@dataclass
class Clip:
    path: str
    frames: np.ndarray  # shape (n, channels), float32


def resample_linear(x: np.ndarray, src: int, dst: int) -> np.ndarray:
    """Naive linear resampling of (n, channels) frames."""
    if src == dst or x.shape[0] == 0:
        return x
    n = x.shape[0]
    m = int(round(n * dst / src))
    t_src = np.linspace(0.0, 1.0, n, endpoint=False)
    t_dst = np.linspace(0.0, 1.0, m, endpoint=False)
    out = [np.interp(t_dst, t_src, x[:, c]) for c in range(x.shape[1])]
    return np.stack(out, axis=1).astype(np.float32)


def match_channels(x: np.ndarray, channels: int) -> np.ndarray:
    """Duplicate mono or drop extra channels to fit the output."""
    have = x.shape[1]
    if have == channels:
        return x
    if have == 1:
        return np.repeat(x, channels, axis=1)
    if have > channels:
        return x[:, :channels]
    pad = np.repeat(x[:, -1:], channels - have, axis=1)
    return np.hstack([x, pad])


class SoundDevicePlayer:
    def __init__(self, samplerate: int = 44100, channels: int = 2,
                 device: str | int | None = None):
        self.samplerate = samplerate
        self.channels = channels
        self.device = device
        self._cache: dict[str, Clip] = {}
        self._playlist: deque[tuple[Clip, bool]] = deque()
        self._pos = 0
        self._lock = threading.Lock()
        self._stream = None

    def open(self) -> None:
        # PortAudio is loaded on import, so keep it out of module import time
        import sounddevice as sd

        self._stream = sd.OutputStream(
            samplerate=self.samplerate,
            channels=self.channels,
            dtype="float32",
            device=self.device,
            callback=self._callback,
        )
        self._stream.start()
        log.info("Audio output open: %d Hz, %d channels", self.samplerate, self.channels)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def load(self, path: str) -> Clip:
        """Decode a file to frames at the output format, cached by path."""
        clip = self._cache.get(path)
        if clip is not None:
            return clip
        data, sr = sf.read(path, dtype="float32", always_2d=True)
        data = match_channels(data, self.channels)
        data = resample_linear(data, sr, self.samplerate)
        clip = Clip(path=path, frames=np.ascontiguousarray(data, dtype=np.float32))
        self._cache[path] = clip
        return clip

    def enqueue(self, clip: Clip, loop: bool = False) -> None:
        with self._lock:
            self._playlist.append((clip, loop))

    def stop(self) -> None:
        with self._lock:
            self._playlist.clear()
            self._pos = 0

    @property
    def playing(self) -> list[tuple[str, bool]]:
        with self._lock:
            return [(clip.path, loop) for clip, loop in self._playlist]

    def _callback(self, outdata, frames, time_info, status):
        outdata.fill(0)
        written = 0
        with self._lock:
            while written < frames and self._playlist:
                clip, loop = self._playlist[0]
                data = clip.frames
                if len(data) == 0:
                    self._playlist.popleft()
                    continue
                n = min(frames - written, len(data) - self._pos)
                outdata[written:written + n] = data[self._pos:self._pos + n]
                written += n
                self._pos += n
                if self._pos >= len(data):
                    self._pos = 0
                    if not loop:
                        self._playlist.popleft()
