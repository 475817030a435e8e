"""
FrameScheduler — the fixed-rate render loop.

Architecture (the strip cannot be fed from the audio callback):
  audio thread   SpectralExtractor.process_audio() — updates band windows
  main loop      render_frame() + output.send_frame() at frame_rate

Each frame is every band's strip, in band order, as GRB bytes followed by
END_MARKER. Strips are wired serpentine, so odd-numbered strips are sent
top-down.
"""

import logging
import time

from .constants import END_MARKER

logger = logging.getLogger(__name__)


def serialize_frame(strips, brightness=1.0) -> bytes:
    """Flatten per-strip colors into the wire buffer.

    Args:
        strips: list of color lists, one per band, base of strip first
        brightness: global scale applied to every LED (0-1)

    Returns:
        bytes of length 3 * leds + 1, ending in END_MARKER
    """
    buf = bytearray()
    for index, strip in enumerate(strips):
        ordered = reversed(strip) if index % 2 == 1 else strip
        for color in ordered:
            if brightness != 1.0:
                color = color.brightness(brightness)
            buf.extend(color.to_wire())
    buf.append(END_MARKER)
    return bytes(buf)


class FrameScheduler:
    """Renders band levels and pushes frames to the transport at frame_rate."""

    def __init__(self, settings, extractor, renderer, output, clock=time.monotonic,
                 sleep=time.sleep):
        self.settings = settings
        self.extractor = extractor
        self.renderer = renderer
        self.output = output
        self.clock = clock
        self.sleep = sleep
        self.frame_num = 0
        self.failed_frames = 0
        self.late_frames = 0

    def render_frame(self) -> bytes:
        """Render one frame from the current levels and store it in settings."""
        snap = self.settings.snapshot()
        levels = self.extractor.band_levels(snap.smoothing_depth)
        strips = self.renderer.render(levels, snap)
        frame = serialize_frame(strips, snap.brightness)
        self.settings.store_frame(frame)
        return frame

    def tick(self) -> bool:
        """Render and transmit one frame. Returns False if the transport failed."""
        frame = self.render_frame()
        self.frame_num += 1
        try:
            self.output.send_frame(frame)
        except Exception:
            self.failed_frames += 1
            logger.exception("Frame %d not sent", self.frame_num)
            return False
        return True

    def run(self, stop_event=None, max_frames=None, on_frame=None):
        """Loop until stop_event is set (or max_frames have been sent).

        on_frame, if given, is called with the scheduler after every frame.

        Pacing uses absolute targets so sleep jitter does not accumulate.
        A frame that is late is still rendered; the schedule then restarts
        from now instead of trying to catch up.
        """
        next_frame_time = self.clock()
        sent = 0
        while stop_event is None or not stop_event.is_set():
            self.tick()
            sent += 1
            if on_frame is not None:
                on_frame(self)
            if max_frames is not None and sent >= max_frames:
                break

            # Re-read every frame; the control plane may change it
            frame_interval = 1.0 / self.settings.frame_rate
            next_frame_time += frame_interval
            sleep_time = next_frame_time - self.clock()
            if sleep_time > 0:
                self.sleep(sleep_time)
            else:
                self.late_frames += 1
                next_frame_time = self.clock()

    def get_diagnostics(self) -> dict:
        diag = {
            'frame': self.frame_num,
            'failed': self.failed_frames,
            'late': self.late_frames,
        }
        diag.update(self.extractor.get_diagnostics())
        return diag
