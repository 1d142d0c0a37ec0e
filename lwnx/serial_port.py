"""Serial port transport configured for LWNX devices."""

from __future__ import annotations

import serial


class SerialPortError(Exception):
    """Base class for serial port errors."""


class InvalidSerialPort(SerialPortError):
    """The port is not connected."""


class OpenFailed(SerialPortError):
    """The port could not be opened."""


class WriteFailed(SerialPortError):
    """Writing to the port failed."""


class DidNotWriteAllBytes(SerialPortError):
    """Fewer bytes were written than requested."""


class ReadFailed(SerialPortError):
    """Reading from the port failed."""


_READ_TIMEOUT_S = 0.01


class SerialPort:
    """A serial connection at 8 data bits, no parity, one stop bit, no flow control."""

    def __init__(self) -> None:
        self._port: serial.SerialBase | None = None

    def is_invalid(self) -> bool:
        return self._port is None

    def connect(self, path: str, bit_rate: int) -> None:
        """Open ``path`` (a device name or a pyserial URL) at ``bit_rate``."""
        self.disconnect()
        try:
            self._port = serial.serial_for_url(
                path,
                baudrate=bit_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=_READ_TIMEOUT_S,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise OpenFailed(f"could not open port {path}: {exc}") from exc

    def disconnect(self) -> None:
        if self._port is not None:
            self._port.close()
        self._port = None

    def _require_port(self) -> serial.SerialBase:
        if self._port is None:
            raise InvalidSerialPort("serial port is not connected")
        return self._port

    def write(self, data: bytes) -> int:
        """Write all of ``data`` and return its length."""
        port = self._require_port()
        view = memoryview(bytes(data))
        total = 0
        while total < len(view):
            try:
                written = port.write(view[total:])
            except (serial.SerialException, OSError) as exc:
                raise WriteFailed(str(exc)) from exc
            if not written:
                raise WriteFailed("port accepted no bytes")
            total += written
        if total != len(view):
            raise DidNotWriteAllBytes(f"wrote {total} of {len(view)} bytes")
        return total

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; empty if none arrive within the read timeout."""
        port = self._require_port()
        try:
            return port.read(size)
        except (serial.SerialException, OSError) as exc:
            raise ReadFailed(str(exc)) from exc

    def __enter__(self) -> SerialPort:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()