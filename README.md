# btbridge

`btbridge` joins three byte streams: a host serial port, a Bluetooth serial
link (opened as an ordinary serial device) and a downstream device on a
second serial port, for example a GNSS receiver.

- Data from the device goes out to both the host and the Bluetooth link.
- Data from the host or from Bluetooth goes to the device. The side that
  sends first owns the device link; its data is also copied to the other side.
- While one side owns the link, data from the other side is still copied to
  the owner, but not to the device, and the sender gets
  `ERROR: Serial does not own Serial1.` (or `ERROR: SerialBT does not own Serial1.`).
- Ownership returns to idle after two seconds without input.

## Installation

```
pip install .
```

## Running

```
btbridge --serial /dev/ttyUSB0 --serial1 /dev/ttyUSB1 --bluetooth /dev/rfcomm0
btbridge --help
```

Options:

- `--serial` – host console serial port (required)
- `--serial1` – device serial port (required)
- `--bluetooth` – Bluetooth serial port (required)
- `--config` – configuration file, default `btbridge.cfg`

The command runs until interrupted with Ctrl-C. A failure to open a port ends
it with exit status 1.

## Configuration menu

While idle, a side whose data begins with the bytes `menu` enters a
line-oriented configuration menu instead of forwarding. Menu output goes to
both the host and the Bluetooth side. Commands:

- `get baud serial1` / `set baud serial1 <baudrate>`
- `get baud serial` / `set baud serial <baudrate>`
- `get bt_name` / `set bt_name <name>` (fewer than 32 bytes; saving it
  closes and reopens the ports with the stored settings)
- `echo on` / `echo off`
- `help`
- `exit` – leave the menu and return to idle

Backspace and DEL edit the current line; lines are limited to 127 printable
characters. Changed settings are saved at once.

## Configuration file

`btbridge.config.ConfigStore` keeps one record at a fixed offset in a file:
a 32-byte NUL-padded name, four little-endian 32-bit values (serial baud,
serial1 baud, serial1 RX pin, serial1 TX pin) and a CRC-32 of those bytes.
`ConfigStore.load(default)` returns a `LoadResult(config, loaded)`; if the
file is missing, short or the checksum does not match, the default is written
back and `loaded` is `False`. Defaults (`Config()`): name `LC29HEA-BT`, both
baud rates 460800, RX 7, TX 8.

## Library use

- `btbridge.config`: `crc32`, `Config` (`to_bytes`, `from_bytes`),
  `ConfigStore`, `LoadResult`
- `btbridge.menu`: `MenuCLI`, a line-editing command interpreter fed with raw
  bytes through `write`, writing to every output added with `attach_output`;
  `MultiOutput`, which writes to several outputs at once
- `btbridge.battery`: `battery_percentage(millivolts)`, which maps the
  halved battery voltage reading to a 0–100 estimate; `BatteryService`, which
  holds a one-byte level and hands each new level to a `notify` callback;
  `BatteryMonitor`, which reads millivolts from a callable and publishes the
  level on every `step` or periodically with `run`
- `btbridge.bridge`: `Bridge`, which routes the streams, `SerialState`, and
  `main`

```python
from btbridge.menu import MenuCLI

cli = MenuCLI()
cli.register_command("ping", "Reply with pong", lambda args, out: out.write(b"pong\n"))
```

## What it does not do

- It does not talk to a Bluetooth radio. The Bluetooth side is any serial
  device the system already provides, and `set bt_name` only stores the name.
- `BatteryService` and `BatteryMonitor` only keep state and call the
  functions they are given; they do not read a voltage or advertise anything
  themselves, and the `btbridge` command does not use them.

## Tests

```
pip install .[test]
pytest
```