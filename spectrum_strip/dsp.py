"""
Spectral band extraction.

Raw audio arrives from the capture callback in blocks of arbitrary size.
SpectralExtractor keeps the most recent samples in a RollingWindow and,
once it holds at least transform_size of them, runs one FFT per block and
reduces the magnitude spectrum to one level per configured band:

  1. centre bin    idx_c = round(f / df),  df = sample_rate / transform_size
  2. window radius r = max(1, round(0.15 * f / df))   (~±15% bandwidth)
  3. mean of |X[k]| over k in [idx_c - r, idx_c + r] inside the spectrum
  4. times weight(f, skew) = (f / nyquist) ** skew

Linear bin spacing under-samples bass and over-samples treble, so the
window widens with frequency. Each level is pushed into that band's own
RollingWindow, which the render loop reads as (average, max).
"""

import logging

import numpy as np

from .constants import BAND_HISTORY, MAX_TRANSFORM_SIZE, SAMPLE_RATE
from .window import RollingWindow

logger = logging.getLogger(__name__)

BANDWIDTH_FRACTION = 0.15


def _round_half_up(x):
    return int(np.floor(x + 0.5))


def magnitude_spectrum(samples: np.ndarray, sample_rate: int = SAMPLE_RATE):
    """Hann-windowed magnitude spectrum, scaled by 1/sqrt(N).

    Returns (frequencies, magnitudes), both of length N // 2 + 1, covering
    0 Hz to Nyquist.
    """
    samples = np.asarray(samples, dtype=np.float64)
    n = len(samples)
    if n < 2:
        raise ValueError(f"need at least 2 samples for a spectrum, got {n}")
    window = np.hanning(n)
    spectrum = np.fft.rfft(samples * window)
    magnitudes = np.abs(spectrum) / np.sqrt(n)
    freqs = np.fft.rfftfreq(n, d=1.0 / sample_rate)
    return freqs, magnitudes


def weight(freq_hz: float, skew: float, sample_rate: int = SAMPLE_RATE) -> float:
    """Exponential-law weighting across [0, nyquist].

    skew = 0 is flat; 0 < skew < 1 lifts highs relative to lows. Values
    around 0.35–0.55 give a gentle but audible lift above ~1 kHz.
    """
    nyquist = sample_rate / 2.0
    x = min(max(freq_hz / nyquist, 0.0), 1.0)
    if x == 0.0:
        # DC: 0 ** negative skew would blow up
        return 1.0 if skew == 0 else 0.0
    return float(x ** skew)


def half_window_bins(freq_hz: float, df: float) -> int:
    """Bins to average on each side of the centre bin (at least one)."""
    return max(1, _round_half_up(BANDWIDTH_FRACTION * freq_hz / df))


def band_level(magnitudes, freq_hz, df, skew, sample_rate=SAMPLE_RATE) -> float:
    """Weighted mean magnitude around freq_hz. Bins off the spectrum are skipped."""
    centre = _round_half_up(freq_hz / df)
    r = half_window_bins(freq_hz, df)
    lo = max(centre - r, 0)
    hi = min(centre + r, len(magnitudes) - 1)
    if lo > hi:
        return 0.0
    level = float(np.mean(magnitudes[lo:hi + 1]))
    return level * weight(freq_hz, skew, sample_rate)


class SpectralExtractor:
    """Turns raw audio blocks into smoothed per-band levels.

    process_audio() runs on the audio thread; band_levels() is read by the
    render loop. Both only touch RollingWindows, which lock internally.
    """

    def __init__(self, settings, sample_rate: int = SAMPLE_RATE,
                 transform=magnitude_spectrum):
        self.settings = settings
        self.sample_rate = sample_rate
        self.transform = transform
        self.samples = RollingWindow(MAX_TRANSFORM_SIZE)
        self.bands = [RollingWindow(BAND_HISTORY) for _ in range(settings.band_count)]
        self.frames_analyzed = 0
        self.transform_failures = 0

    @property
    def band_count(self):
        return len(self.bands)

    @property
    def ready(self):
        return len(self.samples) >= self.settings.transform_size

    def process_audio(self, mono_chunk) -> bool:
        """Feed one block of mono samples.

        Returns True if band levels were updated. Returns False while fewer
        than transform_size samples have arrived, and when the transform
        fails; in both cases the band levels keep their previous values.
        """
        self.samples.add_samples(mono_chunk)

        snap = self.settings.snapshot()
        n = snap.transform_size
        if len(self.samples) < n:
            return False

        frame = self.samples.latest(n)
        try:
            _, magnitudes = self.transform(frame, self.sample_rate)
        except Exception:
            self.transform_failures += 1
            logger.exception("Spectrum transform failed on %d samples", n)
            return False

        df = self.sample_rate / n
        for band, freq in zip(self.bands, snap.bands):
            band.add_sample(band_level(magnitudes, freq, df, snap.skew, self.sample_rate))
        self.frames_analyzed += 1
        return True

    def band_levels(self, depth: int):
        """(average, max) over the last `depth` levels of every band."""
        return [(band.average(depth), band.max(depth)) for band in self.bands]

    def get_diagnostics(self) -> dict:
        return {
            'buffered': len(self.samples),
            'frames': self.frames_analyzed,
            'fft_errors': self.transform_failures,
        }
