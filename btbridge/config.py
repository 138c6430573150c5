"""Persistent bridge configuration stored as a CRC-protected binary record."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

NAME_SIZE = 32
_LAYOUT = struct.Struct(f"<{NAME_SIZE}s4I")
_CRC = struct.Struct("<I")

DATA_SIZE = _LAYOUT.size
TOTAL_SIZE = DATA_SIZE + _CRC.size

_ERASED = 0xFF


def crc32(data: bytes) -> int:
    """Return the reflected CRC-32 (polynomial 0xEDB88320) of ``data``."""
    return zlib.crc32(bytes(data)) & 0xFFFFFFFF


@dataclass
class Config:
    """Settings of the serial/Bluetooth bridge."""

    bt_name: str = "LC29HEA-BT"
    serial_baud: int = 460800
    serial1_baud: int = 460800
    serial1_rx: int = 7
    serial1_tx: int = 8

    def to_bytes(self) -> bytes:
        """Encode the configuration as its fixed-size binary record."""
        name = self.bt_name.encode("utf-8")
        if len(name) >= NAME_SIZE:
            raise ValueError(
                f"bt_name must be shorter than {NAME_SIZE} bytes, got {len(name)}"
            )
        try:
            return _LAYOUT.pack(
                name,
                self.serial_baud,
                self.serial1_baud,
                self.serial1_rx,
                self.serial1_tx,
            )
        except struct.error as exc:
            raise ValueError(f"configuration value out of range: {exc}") from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> "Config":
        """Decode a binary record produced by :meth:`to_bytes`."""
        if len(data) != DATA_SIZE:
            raise ValueError(f"expected {DATA_SIZE} bytes, got {len(data)}")
        raw_name, serial_baud, serial1_baud, rx, tx = _LAYOUT.unpack(bytes(data))
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(name, serial_baud, serial1_baud, rx, tx)


@dataclass(frozen=True)
class LoadResult:
    """Outcome of :meth:`ConfigStore.load`."""

    config: Config
    loaded: bool


class ConfigStore:
    """A configuration record kept at a fixed offset inside a file."""

    def __init__(self, path: Union[str, Path], offset: int = 0) -> None:
        if offset < 0:
            raise ValueError("offset must not be negative")
        self.path = Path(path)
        self.offset = offset
        self._config: Optional[Config] = None

    def _read_record(self) -> bytes:
        try:
            with self.path.open("rb") as handle:
                handle.seek(self.offset)
                return handle.read(TOTAL_SIZE)
        except FileNotFoundError:
            return b""

    def load(self, default: Config) -> LoadResult:
        """Load the stored record, or store and return ``default`` if it is invalid."""
        self._config = default
        raw = self._read_record()
        if len(raw) == TOTAL_SIZE:
            data = raw[:DATA_SIZE]
            (stored,) = _CRC.unpack(raw[DATA_SIZE:])
            if stored == crc32(data):
                config = Config.from_bytes(data)
                self._config = config
                return LoadResult(config, True)
        self.save(default)
        return LoadResult(default, False)

    def save(self, config: Optional[Config] = None) -> None:
        """Write ``config`` (or the last loaded one) together with its checksum."""
        config = config if config is not None else self._config
        if config is None:
            return
        data = config.to_bytes()
        record = data + _CRC.pack(crc32(data))

        try:
            contents = bytearray(self.path.read_bytes())
        except FileNotFoundError:
            contents = bytearray()
        end = self.offset + TOTAL_SIZE
        if len(contents) < end:
            contents.extend([_ERASED] * (end - len(contents)))
        contents[self.offset:end] = record
        self.path.write_bytes(bytes(contents))