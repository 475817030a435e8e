"""Tests for spectrum helpers and SpectralExtractor (pure numpy, no hardware)."""

import numpy as np
import pytest

from spectrum_strip.constants import SAMPLE_RATE
from spectrum_strip.dsp import (
    SpectralExtractor,
    band_level,
    half_window_bins,
    magnitude_spectrum,
    weight,
)
from spectrum_strip.settings import Settings


def sine(freq, n, amplitude=0.5, sample_rate=SAMPLE_RATE):
    t = np.arange(n) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


class TestWeight:

    @pytest.mark.parametrize('freq', [0.0, 41.0, 1000.0, 13000.0, SAMPLE_RATE / 2])
    def test_flat_skew_is_unity(self, freq):
        assert weight(freq, 0.0) == 1.0

    def test_positive_skew_lifts_highs(self):
        assert weight(100.0, 0.5) < weight(5000.0, 0.5) < 1.0

    def test_clamped_above_nyquist(self):
        assert weight(SAMPLE_RATE, 0.5) == 1.0


class TestHalfWindow:

    def test_at_least_one_bin(self):
        for f in (0.1, 1.0, 20.0, 41.0):
            assert half_window_bins(f, 21.5) >= 1

    def test_grows_with_frequency(self):
        df = SAMPLE_RATE / 2048
        widths = [half_window_bins(f, df) for f in np.linspace(10, 20000, 200)]
        assert widths == sorted(widths)
        assert widths[-1] > widths[0]

    def test_fifteen_percent(self):
        # 0.15 * 10000 / 10 = 150
        assert half_window_bins(10000.0, 10.0) == 150


class TestBandLevel:

    def test_out_of_range_band_is_zero(self):
        mags = np.ones(1025)
        assert band_level(mags, 30000.0, SAMPLE_RATE / 2048, 0.0) == 0.0

    def test_partial_window_averages_valid_bins_only(self):
        mags = np.ones(1025)
        assert band_level(mags, 21000.0, SAMPLE_RATE / 2048, 0.0) == pytest.approx(1.0)


class TestMagnitudeSpectrum:

    def test_covers_dc_to_nyquist(self):
        freqs, mags = magnitude_spectrum(np.zeros(2048))
        assert len(freqs) == len(mags) == 1025
        assert freqs[0] == 0.0
        assert freqs[-1] == pytest.approx(SAMPLE_RATE / 2)

    def test_peak_at_tone(self):
        freqs, mags = magnitude_spectrum(sine(1000.0, 4096))
        assert abs(freqs[np.argmax(mags)] - 1000.0) < SAMPLE_RATE / 4096

    def test_too_short(self):
        with pytest.raises(ValueError):
            magnitude_spectrum(np.zeros(1))


class TestSpectralExtractor:

    def make(self, **kw):
        settings = Settings(bands=[1000.0, 5000.0], skew=0.0, transform_size=1024,
                            smoothing_depth=1)
        return SpectralExtractor(settings, **kw)

    def test_accumulating_until_transform_size(self):
        ex = self.make()
        assert ex.process_audio(np.zeros(512)) is False
        assert not ex.ready
        assert ex.band_levels(1) == [(0.0, 0.0), (0.0, 0.0)]
        assert ex.process_audio(np.zeros(512)) is True
        assert ex.ready

    def test_tone_lands_in_its_band(self):
        ex = self.make()
        ex.process_audio(sine(1000.0, 1024))
        (low, _), (high, _) = ex.band_levels(1)
        assert low > 10 * high

    def test_transform_failure_keeps_previous_levels(self):
        calls = []

        def flaky(samples, sample_rate):
            calls.append(len(samples))
            if len(calls) > 1:
                raise RuntimeError("boom")
            return magnitude_spectrum(samples, sample_rate)

        ex = self.make(transform=flaky)
        assert ex.process_audio(sine(1000.0, 1024)) is True
        before = ex.band_levels(1)
        assert ex.process_audio(sine(5000.0, 1024)) is False
        assert ex.band_levels(1) == before
        assert ex.transform_failures == 1
        assert ex.get_diagnostics()['fft_errors'] == 1

    def test_uses_most_recent_samples(self):
        seen = []

        def spy(samples, sample_rate):
            seen.append(np.array(samples))
            return magnitude_spectrum(samples, sample_rate)

        ex = self.make(transform=spy)
        ex.process_audio(np.arange(1500, dtype=np.float32))
        assert len(seen[0]) == 1024
        assert seen[0][0] == 476
        assert seen[0][-1] == 1499

    def test_transform_size_change_applies_next_block(self):
        ex = self.make()
        ex.process_audio(np.zeros(1024))
        ex.settings.update(transform_size=2048)
        assert ex.process_audio(np.zeros(512)) is False
        assert ex.process_audio(np.zeros(512)) is True
