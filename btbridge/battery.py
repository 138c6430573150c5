"""Battery level estimation and its publication over a battery service."""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, Optional

_TOP = 128.7445
_BOTTOM = 1.778399
_V_MID = 3.689705
_SLOPE = 116.3086
_EXPONENT = 0.1018804


def battery_percentage(millivolts: float) -> int:
    """Estimate the charge percentage from the divided-down battery voltage."""
    if millivolts < 0:
        raise ValueError("millivolts must not be negative")
    volts = millivolts * 2 / 1000
    try:
        spread = math.pow(1 + math.pow(volts / _V_MID, _SLOPE), _EXPONENT)
        percent = _TOP + (_BOTTOM - _TOP) / spread
    except OverflowError:
        percent = _TOP
    return int(min(max(percent, 0.0), 100.0))


class BatteryService:
    """Battery service state: a one-byte level characteristic with notifications."""

    SERVICE_UUID = 0x180F
    LEVEL_UUID = 0x2A19
    DEFAULT_LEVEL = 100

    def __init__(self, notify: Optional[Callable[[bytes], None]] = None) -> None:
        self._notify = notify
        self.device_name: Optional[str] = None
        self.level: Optional[int] = None
        self.advertising = False
        self.connected = False

    @property
    def started(self) -> bool:
        return self.device_name is not None

    def begin(self, device_name: str) -> None:
        """Create the service under ``device_name`` and start advertising."""
        self.device_name = device_name
        self.level = self.DEFAULT_LEVEL
        self.advertise()

    def advertise(self) -> None:
        if self.started:
            self.advertising = True

    def set_level(self, level: int) -> None:
        """Update the level value and notify subscribers; ignored before begin."""
        if not 0 <= level <= 0xFF:
            raise ValueError("level must fit in one byte")
        if not self.started:
            return
        self.level = level
        if self._notify is not None:
            self._notify(bytes([level]))


class BatteryMonitor:
    """Periodically publishes the battery level and reacts to client changes."""

    advertise_delay = 1.0

    def __init__(
        self,
        service: BatteryService,
        read_millivolts: Callable[[], float],
        log: Callable[[str], None] = print,
    ) -> None:
        self.service = service
        self._read_millivolts = read_millivolts
        self._log = log
        self._was_connected = False

    def _measure(self) -> int:
        return battery_percentage(self._read_millivolts())

    def step(self) -> int:
        """Handle a connection change, publish the level and return it."""
        connected = self.service.connected
        if connected and not self._was_connected:
            self._log("Bluetooth client connected.")
            self.service.set_level(self._measure())
        elif self._was_connected and not connected:
            self._log("Bluetooth client disconnected.")
            if self.advertise_delay > 0:
                time.sleep(self.advertise_delay)
            self.service.advertise()
        self._was_connected = connected

        level = self._measure()
        self.service.set_level(level)
        return level

    def run(self, stop: threading.Event, interval: float = 5.0) -> None:
        """Call :meth:`step` every ``interval`` seconds until ``stop`` is set."""
        while not stop.is_set():
            self.step()
            stop.wait(interval)