"""Tests for runner configuration handling (no audio device is opened)."""

import numpy as np
import pytest

from spectrum_strip import runner
from spectrum_strip.color import Color
from spectrum_strip.settings import AnimationMode, SettingsError


class TestBuildSettings:

    def test_defaults(self):
        settings = runner.build_settings(runner.parse_args([]))
        assert settings.frame_rate == 60
        assert settings.gain == 1.0

    def test_flags_override(self):
        args = runner.parse_args([
            '--gain', '2', '--fps', '30', '--fft-size', '4096', '--smooth', '5',
            '--animation-mode', 'full-middle', '--color3', '#010203',
        ])
        settings = runner.build_settings(args)
        assert settings.gain == 2.0
        assert settings.frame_rate == 30
        assert settings.transform_size == 4096
        assert settings.smoothing_depth == 5
        assert settings.animation_mode is AnimationMode.FULL_MIDDLE
        assert settings.palette[2] == Color(1, 2, 3)
        assert settings.palette[0] == Color(0, 0, 254)

    def test_flags_override_config_file(self, tmp_path):
        path = tmp_path / 'stage.yaml'
        path.write_text('gain: 3.0\nframe_rate: 25\n')
        settings = runner.build_settings(runner.parse_args(['--config', str(path), '--fps', '40']))
        assert settings.gain == 3.0
        assert settings.frame_rate == 40

    def test_invalid_flag_value(self):
        with pytest.raises(SettingsError):
            runner.build_settings(runner.parse_args(['--brightness', '2']))


class TestHelpers:

    def test_to_mono(self):
        stereo = np.array([[1.0, 3.0], [2.0, 4.0]])
        assert list(runner.to_mono(stereo)) == [2.0, 3.0]

    def test_numeric_device(self):
        assert runner.find_input_device('3') == 3
        assert runner.find_input_device(None) is None
