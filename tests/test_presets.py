"""Tests for preset wire encoding and the YAML preset store."""

import pytest

from spectrum_strip.color import Color
from spectrum_strip.presets import (
    Preset,
    PresetError,
    PresetNotFound,
    PresetStore,
    decode_preset,
    encode_preset,
    name_from_bytes,
    name_to_bytes,
    preset_size,
)
from spectrum_strip.settings import AnimationMode, DisplayMode, Settings


@pytest.fixture
def preset():
    settings = Settings(gain=1.5, palette=['red', 'green', 'white'],
                        animation_mode=AnimationMode.POINTS, frame_rate=30)
    return Preset.from_settings(settings, 3, 'Chill')


class TestNames:

    def test_padded_to_sixteen_bytes(self):
        assert name_to_bytes('abc') == b'abc' + bytes(13)

    def test_truncated(self):
        raw = name_to_bytes('A very long preset name')
        assert len(raw) == 16
        assert name_from_bytes(raw) == 'A very long pres'

    def test_preset_name_is_normalized(self):
        assert Preset.from_settings(Settings(), 1, 'x' * 40).name == 'x' * 16


class TestWireFormat:

    def test_size_for_default_bands(self, preset):
        assert preset_size(22) == 222
        assert len(encode_preset(preset)) == 222

    def test_header_layout(self, preset):
        data = encode_preset(preset)
        assert data[0] == 3
        assert data[1:17] == name_to_bytes('Chill')
        # smoothing_depth u16, gain f32, frame_rate u16, then colors
        assert data[23:25] == (30).to_bytes(2, 'little')
        assert data[25:28] == bytes([254, 0, 0])
        assert data[-2] == int(DisplayMode.SPECTRUM)
        assert data[-1] == int(AnimationMode.POINTS)

    def test_round_trip(self, preset):
        decoded = decode_preset(encode_preset(preset), 22)
        assert decoded.index == 3
        assert decoded.name == 'Chill'
        assert decoded.palette == preset.palette
        assert decoded.animation_mode is AnimationMode.POINTS
        assert decoded.gain == pytest.approx(1.5)
        assert decoded.gains == pytest.approx(preset.gains)
        assert decoded.bands == pytest.approx(preset.bands)

    def test_wrong_length_rejected(self, preset):
        with pytest.raises(PresetError):
            decode_preset(encode_preset(preset)[:-1], 22)

    def test_unknown_mode_code_rejected(self, preset):
        data = bytearray(encode_preset(preset))
        data[-1] = 9
        with pytest.raises(PresetError):
            decode_preset(bytes(data), 22)

    def test_out_of_range_field_rejected_on_encode(self, preset):
        preset.frame_rate = 70000
        with pytest.raises(PresetError):
            encode_preset(preset)


class TestApply:

    def test_apply_loads_parameters_and_marks_active(self, preset):
        settings = Settings()
        preset.apply_to(settings)
        assert settings.gain == 1.5
        assert settings.palette[1] == Color(0, 254, 0)
        assert settings.active_preset == 3

    def test_invalid_preset_leaves_settings_untouched(self, preset):
        preset.brightness = 4.0
        settings = Settings()
        before = settings.snapshot()
        with pytest.raises(PresetError):
            preset.apply_to(settings)
        assert settings.snapshot() == before


class TestStore:

    def test_save_and_load(self, tmp_path, preset):
        store = PresetStore(str(tmp_path / 'presets'))
        store.save(preset)
        assert (tmp_path / 'presets' / 'preset_3.yaml').exists()
        assert store.load(3) == preset

    def test_list_sorted_and_skips_broken_files(self, tmp_path, preset):
        store = PresetStore(str(tmp_path))
        store.save(preset)
        store.save(Preset.from_settings(Settings(), 1, 'Default'))
        (tmp_path / 'preset_7.yaml').write_text('just a string\n')
        (tmp_path / 'notes.txt').write_text('ignored')
        assert [p.index for p in store.list()] == [1, 3]

    def test_empty_directory(self, tmp_path):
        assert PresetStore(str(tmp_path / 'missing')).list() == []

    def test_missing_preset(self, tmp_path):
        store = PresetStore(str(tmp_path))
        with pytest.raises(PresetNotFound):
            store.load(5)
        with pytest.raises(PresetNotFound):
            store.delete(5)

    def test_delete(self, tmp_path, preset):
        store = PresetStore(str(tmp_path))
        store.save(preset)
        store.delete(3)
        assert store.list() == []

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(PresetError):
            Preset.from_dict({'index': 1, 'name': 'x', 'volume': 3})
