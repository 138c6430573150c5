"""Bridge between a local serial port, a Bluetooth serial link and a device port."""

from __future__ import annotations

import argparse
import re
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

import serial as pyserial

from .config import NAME_SIZE, Config, ConfigStore
from .menu import MenuCLI, MultiOutput

MAGIC_WORD = b"menu"
OWNER_TIMEOUT = 2.0
BUFFER_SIZE = 256
_MAX_BAUD = 0xFFFFFFFF
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SerialState(Enum):
    """Which side currently owns the device port, or whether the menu is active."""

    MENU = "menu"
    IDLE = "idle"
    SERIAL_FORWARD = "serial_forward"
    BLUETOOTH_FORWARD = "bluetooth_forward"


def _println(stream: Any, text: str) -> None:
    stream.write((text + "\r\n").encode("utf-8"))


def _to_int(text: str) -> int:
    """Parse a leading integer the lenient way: no digits gives 0."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _set_baud(stream: Any, baud: int) -> None:
    if hasattr(stream, "baudrate"):
        stream.baudrate = baud


@dataclass
class _Endpoint:
    stream: Any
    owner_state: SerialState
    error: str
    entry_delay: float
    matched: int = 0


class Bridge:
    """Routes data between the serial, Bluetooth and device ports."""

    def __init__(
        self,
        serial: Any,
        bluetooth: Any,
        serial1: Any,
        config: Optional[Config] = None,
        store: Optional[ConfigStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.serial = serial
        self.bluetooth = bluetooth
        self.serial1 = serial1
        self.config = config if config is not None else Config()
        self.store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._state = SerialState.IDLE
        self._last_activity = clock()
        self.restart: Optional[Callable[[], None]] = None

        self._serial_end = _Endpoint(
            serial,
            SerialState.SERIAL_FORWARD,
            "ERROR: Serial does not own Serial1.",
            0.0,
        )
        self._bluetooth_end = _Endpoint(
            bluetooth,
            SerialState.BLUETOOTH_FORWARD,
            "ERROR: SerialBT does not own Serial1.",
            0.01,
        )

        self.menu = MenuCLI()
        self.menu.attach_output(serial)
        self.menu.attach_output(bluetooth)
        self.menu.on_exit = lambda: self.set_state(SerialState.IDLE)
        self.register_menu_commands()

    @property
    def state(self) -> SerialState:
        with self._lock:
            return self._state

    def set_state(self, state: SerialState) -> None:
        with self._lock:
            self._state = state

    def check_owner_timeout(self) -> None:
        """Release ownership of the device port after a period without input."""
        with self._lock:
            state = self._state
            last = self._last_activity
        forwarding = state in (SerialState.SERIAL_FORWARD, SerialState.BLUETOOTH_FORWARD)
        if forwarding and self._clock() - last > OWNER_TIMEOUT:
            self.set_state(SerialState.IDLE)

    def on_serial1_data(self, data: bytes) -> None:
        """Forward device output to both the serial and Bluetooth sides."""
        payload = bytes(data)
        self.serial.write(payload)
        self.bluetooth.write(payload)

    def on_serial_data(self, data: bytes) -> None:
        self._handle(self._serial_end, self.bluetooth, bytes(data))

    def on_bluetooth_data(self, data: bytes) -> None:
        self._handle(self._bluetooth_end, self.serial, bytes(data))

    def _handle(self, end: _Endpoint, peer: Any, data: bytes) -> None:
        with self._lock:
            self._last_activity = self._clock()
            state = self._state

        if state is SerialState.IDLE:
            processed = 0
            while end.matched < len(MAGIC_WORD) and processed < len(data):
                byte = data[processed]
                processed += 1
                end.matched += 1
                if byte != MAGIC_WORD[end.matched - 1]:
                    self.set_state(end.owner_state)
                    end.matched = 0
                    self._handle(end, peer, data)
                    return
                if end.matched == len(MAGIC_WORD):
                    _println(end.stream, "\n[Menu mode entered]")
                    if end.entry_delay > 0:
                        time.sleep(end.entry_delay)
                    self.menu.begin()
                    self.set_state(SerialState.MENU)
                    end.matched = 0
                    if processed < len(data):
                        self._handle(end, peer, data[processed:])
                    return
            return

        if state is end.owner_state:
            peer.write(data)
            self.serial1.write(data)
        elif state is SerialState.MENU:
            self.menu.write(data)
            self._drain_into_menu(end.stream)
        else:
            peer.write(data)
            _println(end.stream, end.error)

    def _drain_into_menu(self, stream: Any) -> None:
        waiting = getattr(stream, "in_waiting", 0)
        while waiting:
            self.menu.write(stream.read(waiting))
            waiting = getattr(stream, "in_waiting", 0)

    def _save(self) -> None:
        if self.store is not None:
            self.store.save(self.config)

    def register_menu_commands(self) -> None:
        """Register the configuration commands with the menu."""
        menu = self.menu

        def get_serial1_baud(args: str, out: MultiOutput) -> None:
            out.write(f"Serial1 baudrate: {self.config.serial1_baud}\r\n")

        def set_serial1_baud(args: str, out: MultiOutput) -> None:
            baud = _to_int(args)
            if baud <= 0 or baud > _MAX_BAUD:
                out.write("Invalid baudrate. Usage: set baud serial1 <baudrate>\r\n")
                return
            self.config.serial1_baud = baud
            _set_baud(self.serial1, baud)
            out.write(f"Serial1 baudrate set to: {baud}\r\n")
            self._save()

        def get_serial_baud(args: str, out: MultiOutput) -> None:
            baud = getattr(self.serial, "baudrate", self.config.serial_baud)
            out.write(f"Serial baudrate: {baud}\r\n")

        def set_serial_baud(args: str, out: MultiOutput) -> None:
            baud = _to_int(args)
            if baud <= 0 or baud > _MAX_BAUD:
                out.write("Invalid baudrate. Usage: set baud serial <baudrate>\r\n")
                return
            self.config.serial_baud = baud
            _set_baud(self.serial, baud)
            out.write(f"Serial baudrate set to: {baud}\r\n")
            self._save()

        def get_bt_name(args: str, out: MultiOutput) -> None:
            out.write(f"Bluetooth device name: {self.config.bt_name}\r\n")

        def set_bt_name(args: str, out: MultiOutput) -> None:
            name = args.strip()
            if not name or len(name.encode("utf-8")) >= NAME_SIZE:
                out.write("Invalid name. Usage: set bt_name <name>\r\n")
                return
            self.config.bt_name = name
            out.write(f"Bluetooth device name set to: {name}\r\n")
            self._save()
            out.write("Restarting to apply new name...\r\n")
            if self.restart is not None:
                self.restart()

        def echo_on(args: str, out: MultiOutput) -> None:
            menu.echo = True
            out.write("Echo mode enabled.\r\n")

        def echo_off(args: str, out: MultiOutput) -> None:
            menu.echo = False
            out.write("Echo mode disabled.\r\n")

        menu.register_command("get baud serial1", "Show Serial1 baudrate", get_serial1_baud)
        menu.register_command(
            "set baud serial1",
            "Set Serial1 baudrate. Usage: set baud serial1 <baudrate>",
            set_serial1_baud,
        )
        menu.register_command("get baud serial", "Show Serial baudrate", get_serial_baud)
        menu.register_command(
            "set baud serial",
            "Set Serial baudrate. Usage: set baud serial <baudrate>",
            set_serial_baud,
        )
        menu.register_command("get bt_name", "Show Bluetooth device name", get_bt_name)
        menu.register_command(
            "set bt_name",
            "Set Bluetooth device name. Usage: set bt_name <name>",
            set_bt_name,
        )
        menu.register_command("echo on", "Enable echo mode", echo_on)
        menu.register_command("echo off", "Disable echo mode", echo_off)


def _pump(port: Any, callback: Callable[[bytes], None], stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            data = port.read(BUFFER_SIZE)
        except (pyserial.SerialException, OSError):
            stop.set()
            return
        if data:
            callback(data)


def _run_session(args: argparse.Namespace) -> bool:
    """Run the bridge until interrupted; return True if a restart was requested."""
    store = ConfigStore(args.config)
    result = store.load(Config())
    config = result.config

    ports: List[Any] = []
    try:
        serial_port = pyserial.Serial(args.serial, config.serial_baud, timeout=0.01)
        ports.append(serial_port)
        if not result.loaded:
            _println(serial_port, "Config CRC mismatch or uninitialized, using defaults.")
        serial1_port = pyserial.Serial(args.serial1, config.serial1_baud, timeout=0.01)
        ports.append(serial1_port)
        bluetooth_port = pyserial.Serial(args.bluetooth, timeout=0.01)
        ports.append(bluetooth_port)

        stop = threading.Event()
        restart = threading.Event()
        bridge = Bridge(serial_port, bluetooth_port, serial1_port, config, store)

        def request_restart() -> None:
            restart.set()
            stop.set()

        bridge.restart = request_restart

        workers = [
            threading.Thread(target=_pump, args=(port, handler, stop), daemon=True)
            for port, handler in (
                (serial_port, bridge.on_serial_data),
                (serial1_port, bridge.on_serial1_data),
                (bluetooth_port, bridge.on_bluetooth_data),
            )
        ]
        for worker in workers:
            worker.start()

        serial_port.write(
            f'The device with name "{config.bt_name}" is started.\n'
            "Now you can pair it with Bluetooth!\n".encode("utf-8")
        )
        try:
            while not stop.is_set():
                bridge.check_owner_timeout()
                stop.wait(0.01)
        except KeyboardInterrupt:
            stop.set()
        for worker in workers:
            worker.join(timeout=1.0)
        return restart.is_set()
    finally:
        for port in ports:
            port.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Start the bridge on the given ports."""
    parser = argparse.ArgumentParser(
        prog="btbridge",
        description="Bridge a serial port and a Bluetooth serial link to a device port.",
    )
    parser.add_argument("--serial", required=True, help="local console serial port")
    parser.add_argument("--serial1", required=True, help="device serial port")
    parser.add_argument("--bluetooth", required=True, help="Bluetooth serial port")
    parser.add_argument("--config", default="btbridge.cfg", help="configuration file")
    args = parser.parse_args(argv)

    try:
        while _run_session(args):
            pass
    except pyserial.SerialException as exc:
        parser.exit(1, f"btbridge: {exc}\n")
    return 0