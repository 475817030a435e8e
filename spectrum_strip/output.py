"""
Serial transport to the LED controller.

The controller reads GRB triplets until it sees END_MARKER, then latches
the frame. Frames are written whole and flushed before the scheduler
moves on.
"""

import glob
import logging
import time

import serial
from serial.tools import list_ports

from .constants import BAUD_RATE, END_MARKER

logger = logging.getLogger(__name__)


def find_serial_port():
    """Auto-detect a USB serial adapter."""
    for p in list_ports.comports():
        if p.vid is not None:
            return p.device
    candidates = sorted(glob.glob('/dev/ttyUSB*') + glob.glob('/dev/cu.usbserial-*'))
    if candidates:
        return candidates[0]
    return None


class SerialLEDOutput:
    """Sends serialized frames to the controller via serial.

    With port=None (or if the port cannot be opened) frames are dropped
    silently, which is how terminal-only mode runs.
    """

    def __init__(self, port, num_leds, baud_rate=BAUD_RATE, reset_delay=2.0):
        self.num_leds = num_leds
        self.port = port
        self.ser = None
        self.frames_sent = 0

        if port:
            try:
                if port.startswith('rfc2217://'):
                    self.ser = serial.serial_for_url(port, baudrate=baud_rate, timeout=1)
                else:
                    self.ser = serial.Serial(port, baud_rate, timeout=1)
                    time.sleep(reset_delay)  # controller resets on open
                while self.ser.in_waiting:
                    self.ser.readline()
                logger.info("LED output: %s (%d LEDs @ %d baud)", port, num_leds, baud_rate)
            except (serial.SerialException, OSError, ValueError) as e:
                logger.error("Serial connection to %s failed: %s", port, e)
                self.ser = None

    @property
    def connected(self):
        return self.ser is not None

    def send_frame(self, frame: bytes):
        """Write one frame (END_MARKER included) and flush.

        Serial errors propagate; the scheduler decides what a failed frame
        means.
        """
        if not self.ser:
            return
        self.ser.write(frame)
        self.ser.flush()
        # Drain controller chatter (fps stats) so its TX buffer never fills
        if self.ser.in_waiting:
            self.ser.read(self.ser.in_waiting)
        self.frames_sent += 1

    def close(self):
        if self.ser:
            try:
                self.send_frame(bytes(self.num_leds * 3) + bytes([END_MARKER]))
            finally:
                self.ser.close()
                self.ser = None
