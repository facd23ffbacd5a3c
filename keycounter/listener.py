"""Keyboard discovery and per-device listener threads (evdev)."""

import logging
import threading

import evdev
from evdev import ecodes

log = logging.getLogger(__name__)

KEY_PRESS = 1  # 0 = release, 2 = autorepeat


def key_code(name: str) -> int:
    """Resolve a key name like "KEY_BACKSLASH" to its evdev code."""
    try:
        return ecodes.ecodes[name]
    except KeyError:
        raise ValueError(f"Unknown key name: {name}") from None


def find_device(hint: str, devices=None):
    """Return the first input device whose name contains the hint."""
    if devices is None:
        devices = [evdev.InputDevice(path) for path in evdev.list_devices()]
    for device in devices:
        if hint in (device.name or ""):
            return device
    return None


def find_keyboards(hints: list[str], devices=None) -> dict:
    """Map each hint to a device; unmatched hints are warned about and left out."""
    opened = devices is None
    if opened:
        devices = [evdev.InputDevice(path) for path in evdev.list_devices()]
    found = {}
    for hint in hints:
        device = find_device(hint, devices)
        if device is None:
            log.warning("Could not find a keyboard device matching '%s'", hint)
            continue
        log.info("Found keyboard matching '%s' at %s", hint, device.path)
        found[hint] = device

    if opened:
        matched = {id(d) for d in found.values()}
        for device in devices:
            if id(device) not in matched:
                device.close()
    return found


class DeviceListener(threading.Thread):
    """Feeds key presses from one device into the dispatcher.

    Stops for good when the stream fails or a dispatch raises OSError;
    other listeners are unaffected.
    """

    def __init__(self, device, dispatcher, hint: str = ""):
        super().__init__(daemon=True, name=f"listener-{hint or device.path}")
        self.device = device
        self.dispatcher = dispatcher
        self.hint = hint
        self.error: Exception | None = None
        self._stop_event = threading.Event()

    def stop(self):
        """Close the device so the blocking read returns."""
        self._stop_event.set()
        try:
            self.device.close()
        except OSError:
            pass

    def run(self):
        log.info("Started listener on %s", self.device.path)
        try:
            for event in self.device.read_loop():
                if self._stop_event.is_set():
                    break
                if event.type != ecodes.EV_KEY or event.value != KEY_PRESS:
                    continue
                self.dispatcher.dispatch(event.code)
        except (OSError, ValueError) as e:
            # Closing the device from stop() surfaces here too
            if self._stop_event.is_set():
                return
            self.error = e
            log.error("Listener thread for %s failed: %s", self.hint or self.device.path, e)
            return
        log.info("Listener on %s stopped", self.device.path)
