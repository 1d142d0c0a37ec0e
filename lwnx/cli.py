"""Command line tool that lists serial ports and reads identity values from an LWNX device."""

from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass

from serial.tools import list_ports as _list_ports

from lwnx.protocol import DeviceContext, DeviceError, LwnxError, UserPlatform
from lwnx.serial_port import SerialPort, SerialPortError

DEFAULT_PORT = "COM5" if os.name == "nt" else "/dev/ttyACM0"
DEFAULT_BIT_RATE = 921600

_DEVICE_INFO = (
    ("Model name", 0, "string"),
    ("Hardware version", 1, "u32"),
    ("Firmware version", 2, "u32"),
    ("Serial number", 3, "string"),
    ("User data", 9, "string"),
    ("Distance output", 27, "u32"),
)


def _hex(data: bytes) -> str:
    return "[" + ", ".join(f"{byte:X}" for byte in data) + "]"


@dataclass
class SerialPlatform(UserPlatform):
    """Platform that moves bytes over a SerialPort, optionally tracing them."""

    port: SerialPort
    trace_packet: bool = False

    def write(self, data: bytes) -> int:
        if self.trace_packet:
            print(f"Writing bytes: {_hex(data)}")
        try:
            return self.port.write(data)
        except SerialPortError as exc:
            raise DeviceError(str(exc)) from exc

    def read(self, size: int) -> bytes:
        try:
            received = self.port.read(size)
        except SerialPortError as exc:
            raise DeviceError(str(exc)) from exc
        if self.trace_packet and received:
            print(f"Read: {_hex(received)}")
        return received

    def delay(self, duration_ms: int) -> None:
        if self.trace_packet:
            print(f"Delay for: {duration_ms} ms")
        time.sleep(duration_ms / 1000)


def list_ports() -> list:
    """Return information about the serial ports present on this machine."""
    return list(_list_ports.comports())


def read_device_info(context: DeviceContext) -> dict[str, str | int]:
    """Read the model, versions, serial number, user data and distance output."""
    info: dict[str, str | int] = {}
    for label, command_id, kind in _DEVICE_INFO:
        if kind == "string":
            info[label] = context.read_string(command_id)
        else:
            info[label] = context.read_u32(command_id)
    return info


def _print_ports() -> None:
    print("Serial port list:")
    for port in list_ports():
        print(f"{port.device} {port.description}")
        if getattr(port, "vid", None) is not None:
            print(f"Serial: {port.serial_number}")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lwnx", description="Read identity values from an LWNX device."
    )
    parser.add_argument("--port", default=DEFAULT_PORT, help="serial port to open")
    parser.add_argument(
        "--bit-rate", type=int, default=DEFAULT_BIT_RATE, help="serial bit rate"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="do not trace packet bytes"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _print_ports()
    try:
        with SerialPort() as port:
            port.connect(args.port, args.bit_rate)
            platform = SerialPlatform(port, trace_packet=not args.quiet)
            context = DeviceContext(platform)
            context.engage_lwnx_mode()
            for label, value in read_device_info(context).items():
                print(f"{label}: {value}")
    except (SerialPortError, LwnxError, UnicodeDecodeError) as exc:
        print(f"error: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())