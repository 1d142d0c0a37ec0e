"""LWNX packet framing, CRC and the managed command exchange with a device."""

from __future__ import annotations

import enum
import logging
import struct
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

START_BYTE = 0xAA
MAX_PACKET_SIZE = 1024

_HEADER_SIZE = 3
_DATA_OFFSET = 4
_CRC_SIZE = 2
_MAX_PAYLOAD = 1019
_MAX_WRITE_DATA = MAX_PACKET_SIZE - _DATA_OFFSET - _CRC_SIZE
_MAX_READ_DATA = MAX_PACKET_SIZE - _DATA_OFFSET
_STRING_FIELD_SIZE = 16


class LwnxError(Exception):
    """Base class for errors raised while talking to an LWNX device."""


class DeviceError(LwnxError):
    """The platform failed to move bytes to or from the device."""


class ReadError(LwnxError):
    """Reading from the device failed."""


class WriteError(LwnxError):
    """Writing to the device failed."""


class DeviceClosed(LwnxError):
    """The device connection is closed."""


class PacketTimeout(LwnxError):
    """No matching packet arrived before the timeout."""


class CommandRetriesExhausted(LwnxError):
    """Every attempt at a command timed out."""


def create_crc(data: bytes) -> int:
    """Return the 16-bit packet CRC of ``data``."""
    crc = 0
    for byte in data:
        code = (crc >> 8) ^ byte
        code ^= code >> 4
        crc = ((crc << 8) & 0xFFFF) ^ code
        code = (code << 5) & 0xFFFF
        crc ^= code
        code = (code << 7) & 0xFFFF
        crc ^= code
    return crc


def create_packet(command_id: int, write: bool, data: bytes = b"") -> bytes:
    """Build the wire bytes of a request packet."""
    data = bytes(data)
    if len(data) > _MAX_WRITE_DATA:
        raise ValueError(
            f"packet data of {len(data)} bytes exceeds {_MAX_WRITE_DATA} bytes"
        )
    payload_length = 1 + len(data)
    flags = ((payload_length << 6) | (1 if write else 0)) & 0xFFFF
    body = bytes([START_BYTE]) + flags.to_bytes(2, "little") + bytes([command_id]) + data
    return body + create_crc(body).to_bytes(2, "little")


class _ParseState(enum.Enum):
    START_BYTE = enum.auto()
    PAYLOAD_SIZE_0 = enum.auto()
    PAYLOAD_SIZE_1 = enum.auto()
    PAYLOAD = enum.auto()


class Response:
    """Incremental parser for a packet received from a device."""

    def __init__(self) -> None:
        self._data = bytearray(MAX_PACKET_SIZE)
        self._size = 0
        self._payload_size = 0
        self._state = _ParseState.START_BYTE

    def reset(self) -> None:
        """Forget any partly parsed packet."""
        self._size = 0
        self._payload_size = 0
        self._state = _ParseState.START_BYTE

    @property
    def command(self) -> int:
        """Command id of the last parsed packet."""
        return self._data[3]

    @property
    def size(self) -> int:
        """Number of packet bytes parsed so far, header included."""
        return self._size

    @property
    def payload(self) -> bytes:
        """Data bytes of the packet, without command id and CRC."""
        if self._size < _DATA_OFFSET + _CRC_SIZE:
            return b""
        return bytes(self._data[_DATA_OFFSET : self._size - _CRC_SIZE])

    @property
    def string_data(self) -> str | None:
        """The 16-byte string field decoded as UTF-8, or None if it is not valid."""
        try:
            return self._field(_STRING_FIELD_SIZE).decode("utf-8")
        except UnicodeDecodeError:
            return None

    @property
    def uint32_data(self) -> int:
        """The first four data bytes as a little-endian unsigned integer."""
        return int.from_bytes(self._field(4), "little")

    def _field(self, length: int) -> bytes:
        return bytes(self._data[_DATA_OFFSET : _DATA_OFFSET + length])

    def parse_byte(self, byte: int) -> bool:
        """Feed one byte; return True when it completes a packet with a valid CRC."""
        state = self._state
        if state is _ParseState.START_BYTE:
            if byte == START_BYTE:
                self._state = _ParseState.PAYLOAD_SIZE_0
                self._data[0] = byte
        elif state is _ParseState.PAYLOAD_SIZE_0:
            self._state = _ParseState.PAYLOAD_SIZE_1
            self._data[1] = byte
        elif state is _ParseState.PAYLOAD_SIZE_1:
            self._state = _ParseState.PAYLOAD
            self._data[2] = byte
            flags = self._data[1] | (self._data[2] << 8)
            self._payload_size = (flags >> 6) + _CRC_SIZE
            self._size = _HEADER_SIZE
            if self._payload_size > _MAX_PAYLOAD:
                self._state = _ParseState.START_BYTE
        else:
            self._data[self._size] = byte
            self._size += 1
            self._payload_size -= 1
            if self._payload_size == 0:
                self._state = _ParseState.START_BYTE
                end = self._size - _CRC_SIZE
                crc = int.from_bytes(self._data[end : self._size], "little")
                if crc == create_crc(self._data[:end]):
                    return True
                logger.warning("Packet has invalid CRC")
        return False


class UserPlatform(ABC):
    """Byte transport and timing used by a DeviceContext."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send ``data`` and return the number of bytes written."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Return up to ``size`` received bytes, possibly none."""

    def delay(self, duration_ms: int) -> None:
        """Sleep for ``duration_ms`` milliseconds."""
        time.sleep(duration_ms / 1000)


@dataclass
class DeviceContext:
    """A device reached through a platform, with command timeout and retries."""

    platform: UserPlatform
    command_timeout: int = 500
    command_retries: int = 4

    def engage_lwnx_mode(self) -> None:
        """Send a command 0 packet telling the device that LWNX mode is required.

        Any response to it is left unread.
        """
        self.write(create_packet(0, False, b""))

    def read(self, size: int) -> bytes:
        try:
            return self.platform.read(size)
        except Exception as exc:
            raise ReadError(str(exc)) from exc

    def write(self, data: bytes) -> int:
        try:
            return self.platform.write(data)
        except Exception as exc:
            raise WriteError(str(exc)) from exc

    def recv_packet(self, command_id: int, response: Response, timeout: int) -> Response:
        """Read bytes until a valid packet for ``command_id`` arrives or ``timeout`` ms pass."""
        response.reset()
        deadline = time.monotonic() + timeout / 1000
        while time.monotonic() < deadline:
            chunk = self.read(1)
            if chunk and response.parse_byte(chunk[0]) and response.command == command_id:
                return response
        raise PacketTimeout(f"no response to command {command_id} within {timeout} ms")

    def handle_managed_cmd(
        self, command_id: int, write: bool, write_data: bytes = b""
    ) -> Response:
        """Send a command and wait for its response, retrying on timeout."""
        packet = create_packet(command_id, write, write_data)
        response = Response()
        for _ in range(self.command_retries):
            self.write(packet)
            try:
                return self.recv_packet(command_id, response, self.command_timeout)
            except PacketTimeout:
                continue
        raise CommandRetriesExhausted(
            f"command {command_id} failed after {self.command_retries} attempts"
        )

    def _read_struct(self, command_id: int, fmt: str) -> int:
        response = self.handle_managed_cmd(command_id, False)
        (value,) = struct.unpack(fmt, response._field(struct.calcsize(fmt)))
        return value

    def read_i8(self, command_id: int) -> int:
        return self._read_struct(command_id, "<b")

    def read_i16(self, command_id: int) -> int:
        return self._read_struct(command_id, "<h")

    def read_i32(self, command_id: int) -> int:
        return self._read_struct(command_id, "<i")

    def read_u8(self, command_id: int) -> int:
        return self._read_struct(command_id, "<B")

    def read_u16(self, command_id: int) -> int:
        return self._read_struct(command_id, "<H")

    def read_u32(self, command_id: int) -> int:
        return self._read_struct(command_id, "<I")

    def read_string(self, command_id: int) -> str:
        """Read a 16-byte NUL-terminated string field.

        A field with no terminator yields an empty string.
        """
        response = self.handle_managed_cmd(command_id, False)
        field = response._field(_STRING_FIELD_SIZE)
        end = field.find(0)
        return field[: max(end, 0)].decode("utf-8")

    def read_data(self, command_id: int, size: int) -> bytes:
        """Read ``size`` raw data bytes from a command's response."""
        if not 0 <= size <= _MAX_READ_DATA:
            raise ValueError(f"size must be between 0 and {_MAX_READ_DATA}")
        response = self.handle_managed_cmd(command_id, False)
        return response._field(size)