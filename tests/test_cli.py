from types import SimpleNamespace
from unittest import mock

import pytest
import serial

from lwnx.cli import SerialPlatform, list_ports, main, read_device_info
from lwnx.protocol import DeviceContext, DeviceError, UserPlatform, create_packet
from lwnx.serial_port import SerialPort


def _u32(value):
    return value.to_bytes(4, "little")


REGISTERS = {
    0: b"LW20\x00",
    1: _u32(7),
    2: _u32(131842),
    3: b"TEST-0001\x00",
    9: b"hello\x00",
    27: _u32(3),
}


class FakeDevice:
    """Answers every request packet whose command id it knows."""

    def __init__(self, registers):
        self.registers = registers
        self.pending = bytearray()
        self.written = []
        self.closed = False

    def write(self, data):
        data = bytes(data)
        self.written.append(data)
        command_id = data[3]
        if command_id in self.registers:
            self.pending += create_packet(command_id, False, self.registers[command_id])
        return len(data)

    def read(self, size):
        chunk = bytes(self.pending[:size])
        del self.pending[:size]
        return chunk

    def close(self):
        self.closed = True


class FakePlatform(UserPlatform):
    def __init__(self, device):
        self.device = device

    def write(self, data):
        return self.device.write(data)

    def read(self, size):
        return self.device.read(size)


def _port_info(device, description, vid=None, serial_number=None):
    return SimpleNamespace(
        device=device, description=description, vid=vid, serial_number=serial_number
    )


def test_read_device_info_returns_values_in_order():
    context = DeviceContext(FakePlatform(FakeDevice(REGISTERS)))
    info = read_device_info(context)
    assert list(info) == [
        "Model name",
        "Hardware version",
        "Firmware version",
        "Serial number",
        "User data",
        "Distance output",
    ]
    assert info["Model name"] == "LW20"
    assert info["Hardware version"] == 7
    assert info["Firmware version"] == 131842
    assert info["Serial number"] == "TEST-0001"
    assert info["User data"] == "hello"
    assert info["Distance output"] == 3


def test_read_device_info_sends_expected_commands():
    device = FakeDevice(REGISTERS)
    read_device_info(DeviceContext(FakePlatform(device)))
    assert [packet[3] for packet in device.written] == [0, 1, 2, 3, 9, 27]
    assert all(packet[0] == 0xAA for packet in device.written)


def test_serial_platform_loopback_round_trip(capsys):
    port = SerialPort()
    port.connect("loop://", 921600)
    try:
        platform = SerialPlatform(port, trace_packet=True)
        assert platform.write(b"\x01\x02") == 2
        assert platform.read(2) == b"\x01\x02"
    finally:
        port.disconnect()
    out = capsys.readouterr().out.splitlines()
    assert out == ["Writing bytes: [1, 2]", "Read: [1, 2]"]


def test_serial_platform_without_trace_prints_nothing(capsys):
    port = SerialPort()
    port.connect("loop://", 9600)
    try:
        platform = SerialPlatform(port)
        platform.write(b"\xaa")
        assert platform.read(1) == b"\xaa"
    finally:
        port.disconnect()
    assert capsys.readouterr().out == ""


def test_serial_platform_trace_uses_uppercase_hex(capsys):
    port = SerialPort()
    port.connect("loop://", 9600)
    try:
        SerialPlatform(port, trace_packet=True).write(b"\x0a\xff")
    finally:
        port.disconnect()
    assert capsys.readouterr().out.strip() == "Writing bytes: [A, FF]"


def test_serial_platform_write_on_closed_port_raises_device_error():
    platform = SerialPlatform(SerialPort())
    with pytest.raises(DeviceError):
        platform.write(b"\x00")


def test_serial_platform_read_on_closed_port_raises_device_error():
    platform = SerialPlatform(SerialPort())
    with pytest.raises(DeviceError):
        platform.read(1)


def test_serial_platform_delay_sleeps_and_traces(capsys):
    platform = SerialPlatform(SerialPort(), trace_packet=True)
    with mock.patch("time.sleep") as sleep:
        platform.delay(250)
    sleep.assert_called_once_with(0.25)
    assert capsys.readouterr().out.strip() == "Delay for: 250 ms"


def test_list_ports_returns_detected_ports():
    ports = [_port_info("/dev/ttyACM0", "LW20", vid=0x1234, serial_number="TEST0001")]
    with mock.patch("serial.tools.list_ports.comports", return_value=ports):
        assert list_ports() == ports


def test_main_reads_device_and_prints_values(capsys):
    device = FakeDevice(REGISTERS)
    ports = [
        _port_info("/dev/ttyACM0", "LW20", vid=0x1234, serial_number="TEST0001"),
        _port_info("/dev/ttyS0", "n/a"),
    ]
    with mock.patch("serial.tools.list_ports.comports", return_value=ports), mock.patch(
        "serial.serial_for_url", return_value=device
    ):
        code = main(["--port", "/dev/ttyACM0", "--quiet"])
    assert code == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Serial port list:"
    assert "/dev/ttyACM0 LW20" in out
    assert "Serial: TEST0001" in out
    assert out.count("Serial: TEST0001") == 1
    assert "Model name: LW20" in out
    assert "Hardware version: 7" in out
    assert "Serial number: TEST-0001" in out
    assert "Distance output: 3" in out
    assert device.closed


def test_main_engages_lwnx_mode_first():
    device = FakeDevice(REGISTERS)
    with mock.patch("serial.tools.list_ports.comports", return_value=[]), mock.patch(
        "serial.serial_for_url", return_value=device
    ):
        assert main(["--quiet"]) == 0
    assert device.written[0] == create_packet(0, False, b"")


def test_main_traces_packets_by_default(capsys):
    device = FakeDevice(REGISTERS)
    with mock.patch("serial.tools.list_ports.comports", return_value=[]), mock.patch(
        "serial.serial_for_url", return_value=device
    ):
        assert main([]) == 0
    out = capsys.readouterr().out.splitlines()
    assert any(line.startswith("Writing bytes: [AA, ") for line in out)
    assert any(line.startswith("Read: [AA") for line in out)


def test_main_reports_open_failure():
    with mock.patch("serial.tools.list_ports.comports", return_value=[]), mock.patch(
        "serial.serial_for_url", side_effect=serial.SerialException("no such port")
    ):
        assert main(["--port", "/dev/does-not-exist"]) == 1


def test_main_open_failure_message_on_stderr(capsys):
    with mock.patch("serial.tools.list_ports.comports", return_value=[]), mock.patch(
        "serial.serial_for_url", side_effect=serial.SerialException("no such port")
    ):
        main(["--port", "/dev/does-not-exist"])
    err = capsys.readouterr().err
    assert "OpenFailed" in err
    assert "/dev/does-not-exist" in err