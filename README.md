# lwnx

A small Python client for the LWNX packet protocol, which laser rangefinders
speak over a serial link.

The package can:

- build LWNX request packets and compute their 16-bit CRC
  (`lwnx.protocol.create_packet`, `lwnx.protocol.create_crc`),
- parse response packets one byte at a time (`lwnx.protocol.Response`),
- send commands with timeouts and retries, and decode the reply as a signed
  or unsigned 8, 16 or 32-bit integer, a string or raw bytes
  (`lwnx.protocol.DeviceContext`),
- open a serial port with the settings the devices expect: 8 data bits,
  no parity, 1 stop bit, no flow control and a 10 ms read timeout
  (`lwnx.serial_port.SerialPort`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
lwnx
```

The command lists the serial ports it can find and then opens the device
(`/dev/ttyACM0`, or `COM5` on Windows, at 921600 bit/s). It then sends the
packet that switches the device into LWNX mode and prints the device's model
name, hardware and firmware versions, serial number, user data and distance
output setting. By default every byte written and read is traced in hex.

Options:

- `--port PORT`: the serial port to open (a device name or a pyserial URL)
- `--bit-rate RATE`: the serial bit rate
- `--quiet`: do not trace packet bytes

If the port cannot be opened or the device does not answer, the error is
printed to standard error and the command exits with status 1.

## Library use

`DeviceContext` takes a platform object with `write(data)` returning the
number of bytes written and `read(size)` returning up to `size` bytes, which
may be none. `UserPlatform` is the abstract base for such objects and also
gives a `delay(duration_ms)` method. `lwnx.cli.SerialPlatform` is a platform
over a `SerialPort`:

```python
from lwnx.cli import SerialPlatform
from lwnx.protocol import DeviceContext, LwnxError
from lwnx.serial_port import SerialPort

with SerialPort() as port:
    port.connect("/dev/ttyACM0", 921600)
    context = DeviceContext(SerialPlatform(port))
    context.engage_lwnx_mode()
    try:
        print("Model:", context.read_string(0))
        print("Firmware:", context.read_u32(2))
    except LwnxError as error:
        print("Device did not answer:", error)
```

A command is sent again when no reply with a valid CRC and the same command
id arrives within `command_timeout` milliseconds (500 by default). After
`command_retries` attempts (4 by default), `CommandRetriesExhausted` is
raised. Failures of the platform surface as `ReadError` or `WriteError`; all
of these derive from `LwnxError`.

`read_string` reads a 16-byte NUL-terminated field; a field with no
terminator gives an empty string. `read_data(command_id, size)` returns the
first `size` data bytes of the reply. `handle_managed_cmd(command_id, write,
write_data)` sends any command, including writes, and returns the `Response`.

Packets can also be built and checked without a device:

```python
from lwnx.protocol import Response, create_packet

packet = create_packet(3, False, b"")
response = Response()
complete = [response.parse_byte(b) for b in packet]
assert complete[-1] and response.command == 3
```

## What it does not do

The package has no commands for a device's individual settings and does not
stream distance readings: the command line tool only reads the six identity
values above, and anything else goes through `DeviceContext` with the
command ids of the device in question.