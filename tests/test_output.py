"""Tests for the serial transport with a fake port."""

import pytest

from spectrum_strip import output
from spectrum_strip.constants import END_MARKER
from spectrum_strip.output import SerialLEDOutput


class FakeSerial:

    def __init__(self, port, baud, timeout=None):
        self.port = port
        self.baud = baud
        self.written = []
        self.flushed = 0
        self.chatter = [b'fps: 60\n']
        self.closed = False

    @property
    def in_waiting(self):
        return len(self.chatter[0]) if self.chatter else 0

    def readline(self):
        return self.chatter.pop(0)

    def read(self, n):
        return self.chatter.pop(0)

    def write(self, data):
        self.written.append(bytes(data))

    def flush(self):
        self.flushed += 1

    def close(self):
        self.closed = True


@pytest.fixture
def fake_serial(monkeypatch):
    monkeypatch.setattr(output.serial, 'Serial', FakeSerial)


class TestSerialLEDOutput:

    def test_no_port_drops_frames(self):
        out = SerialLEDOutput(None, 24)
        assert not out.connected
        out.send_frame(b'\x00\xff')
        out.close()
        assert out.frames_sent == 0

    def test_open_drains_startup_chatter(self, fake_serial):
        out = SerialLEDOutput('/dev/ttyUSB0', 24, baud_rate=500000, reset_delay=0)
        assert out.connected
        assert out.ser.chatter == []
        assert out.ser.baud == 500000

    def test_send_writes_and_flushes(self, fake_serial):
        out = SerialLEDOutput('/dev/ttyUSB0', 2, reset_delay=0)
        out.send_frame(b'\x01' * 6 + bytes([END_MARKER]))
        assert out.ser.written == [b'\x01' * 6 + bytes([END_MARKER])]
        assert out.ser.flushed == 1
        assert out.frames_sent == 1

    def test_write_errors_propagate(self, fake_serial):
        out = SerialLEDOutput('/dev/ttyUSB0', 2, reset_delay=0)

        def broken(data):
            raise OSError("device reports readiness to read but returned no data")

        out.ser.write = broken
        with pytest.raises(OSError):
            out.send_frame(b'\xff')

    def test_close_blanks_strip(self, fake_serial):
        out = SerialLEDOutput('/dev/ttyUSB0', 2, reset_delay=0)
        ser = out.ser
        out.close()
        assert ser.written[-1] == bytes(6) + bytes([END_MARKER])
        assert ser.closed
        assert not out.connected

    def test_open_failure_falls_back_to_terminal(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise output.serial.SerialException("could not open port")

        monkeypatch.setattr(output.serial, 'Serial', refuse)
        out = SerialLEDOutput('/dev/ttyUSB9', 2, reset_delay=0)
        assert not out.connected
