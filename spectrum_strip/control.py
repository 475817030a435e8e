"""
Control plane — every tunable parameter as a fixed-width binary value.

Each characteristic is read and/or written as raw bytes, the way a remote
controller (BLE GATT, or the HTTP front in control_server.py) exchanges
them:

  u16 LE   smoothing_depth, frame_rate, transform_size, led_count
  f32 LE   gain, skew, brightness
  RGB888   color1 (primary), color2 (secondary), color3 (accent)
  B×f32 LE bands, gains          (B = configured band count)
  u8       display_mode, animation_mode, preset ids / indices

Writes check the exact byte length and decode before anything is applied,
then go through Settings.update(), so a rejected write never leaves a
partial change behind.
"""

import logging
import struct

from .color import Color
from .constants import LEDS_BUFFER_SPLIT, MAX_PRESETS_LISTED
from .presets import Preset, PresetError, decode_preset, encode_preset, name_to_bytes
from .settings import AnimationMode, DisplayMode, SettingsError

logger = logging.getLogger(__name__)


class ControlError(ValueError):
    """A control-plane request was rejected; settings are unchanged."""


class UnknownCharacteristic(ControlError):
    pass


class Characteristic:
    """One named value. `reader()` returns bytes, `writer(bytes)` applies."""

    def __init__(self, name, reader=None, writer=None, size=None, description=''):
        self.name = name
        self.reader = reader
        self.writer = writer
        self.size = size          # exact write length, None = variable
        self.description = description

    @property
    def flags(self):
        flags = []
        if self.reader:
            flags.append('read')
        if self.writer:
            flags.append('write')
        return flags

    def describe(self) -> dict:
        return {
            'name': self.name,
            'flags': self.flags,
            'size': self.size,
            'description': self.description,
        }


def _unpack(fmt, value, what):
    size = struct.calcsize(fmt)
    if len(value) != size:
        raise ControlError(f"{what} expects exactly {size} bytes, got {len(value)}")
    return struct.unpack(fmt, bytes(value))


class ControlPlane:
    """Byte-level read/write access to a Settings object and a PresetStore."""

    def __init__(self, settings, presets=None):
        self.settings = settings
        self.presets = presets
        self.band_count = settings.band_count
        self.characteristics = {}
        self._register_all()

    # ── Public API ─────────────────────────────────────────────────

    def names(self):
        return list(self.characteristics)

    def describe(self):
        return [c.describe() for c in self.characteristics.values()]

    def read(self, name) -> bytes:
        chrc = self._lookup(name)
        if chrc.reader is None:
            raise ControlError(f"{name} is write-only")
        return bytes(chrc.reader())

    def write(self, name, value):
        chrc = self._lookup(name)
        if chrc.writer is None:
            raise ControlError(f"{name} is read-only")
        value = bytes(value)
        if chrc.size is not None and len(value) != chrc.size:
            raise ControlError(
                f"{name} expects exactly {chrc.size} bytes, got {len(value)}")
        try:
            chrc.writer(value)
        except SettingsError as e:
            raise ControlError(f"{name}: {e}") from e
        except PresetError as e:
            raise ControlError(f"{name}: {e}") from e
        logger.debug("%s write <- %s", name, value.hex())

    def _lookup(self, name):
        try:
            return self.characteristics[name]
        except KeyError:
            raise UnknownCharacteristic(f"Unknown characteristic: {name}") from None

    # ── Registration ───────────────────────────────────────────────

    def _add(self, name, reader=None, writer=None, size=None, description=''):
        self.characteristics[name] = Characteristic(name, reader, writer, size, description)

    def _scalar(self, name, fmt, description):
        self._add(
            name,
            reader=lambda: struct.pack(fmt, self.settings.get(name)),
            writer=lambda v: self.settings.update(**{name: _unpack(fmt, v, name)[0]}),
            size=struct.calcsize(fmt),
            description=description,
        )

    def _float_array(self, name, description):
        fmt = f'<{self.band_count}f'
        self._add(
            name,
            reader=lambda: struct.pack(fmt, *self.settings.get(name)),
            writer=lambda v: self.settings.update(**{name: list(_unpack(fmt, v, name))}),
            size=struct.calcsize(fmt),
            description=description,
        )

    def _color(self, name, slot, description):
        def read():
            return self.settings.get('palette')[slot].to_rgb888()

        def write(value):
            self.settings.update_palette_slot(slot, Color.from_rgb888(value))

        self._add(name, reader=read, writer=write, size=3, description=description)

    def _mode(self, name, enum_cls, description):
        def write(value):
            code = value[0]
            try:
                mode = enum_cls(code)
            except ValueError:
                raise ControlError(f"Unknown {enum_cls.__name__} code: {code}") from None
            self.settings.update(**{name: mode})

        self._add(
            name,
            reader=lambda: bytes([int(self.settings.get(name))]),
            writer=write,
            size=1,
            description=description,
        )

    def _register_all(self):
        self._scalar('smoothing_depth', '<H', "level history averaged per frame")
        self._scalar('gain', '<f', "global gain")
        self._scalar('frame_rate', '<H', "frames per second")
        self._color('color1', 0, "primary palette color")
        self._color('color2', 1, "secondary palette color")
        self._color('color3', 2, "accent / peak marker color")
        self._scalar('transform_size', '<H', "FFT size in samples")
        self._float_array('bands', "band centre frequencies (Hz)")
        self._float_array('gains', "per-band gain trims")
        self._scalar('skew', '<f', "high-frequency weighting exponent")
        self._scalar('brightness', '<f', "global brightness 0-1")
        self._mode('display_mode', DisplayMode, "0 spectrum, 1 oscilloscope, 2 gradient")
        self._mode('animation_mode', AnimationMode, "spectrum animation style")
        self._add('led_count', reader=lambda: struct.pack('<H', self.settings.led_count),
                  description="LEDs driven")
        self._add('leds_buffer', reader=lambda: self.settings.last_frame[:LEDS_BUFFER_SPLIT],
                  description="last frame, first part")
        self._add('leds_buffer2', reader=lambda: self.settings.last_frame[LEDS_BUFFER_SPLIT:],
                  description="last frame, remainder")

        self._add('preset_list', reader=self._read_preset_list,
                  description="count + (id, 16-byte name) per preset")
        self._scalar('selected_preset', '<B', "preset index read by preset_read")
        self._add('preset_read', reader=self._read_selected_preset,
                  description="selected preset, encoded")
        self._add('preset_save', writer=self._save_preset,
                  description="encoded preset to store")
        self._add('preset_activate', writer=self._activate_preset, size=1,
                  description="load preset id into settings")
        self._add('preset_delete', writer=self._delete_preset, size=1,
                  description="delete preset id")
        self._add('active_preset', reader=lambda: bytes([self.settings.get('active_preset')]),
                  description="id of the last activated preset")
        self._add('settings_as_preset', reader=self._read_settings_as_preset,
                  description="current settings, encoded as preset 0")

    # ── Presets ────────────────────────────────────────────────────

    def _store(self):
        if self.presets is None:
            raise ControlError("no preset store configured")
        return self.presets

    def _read_preset_list(self):
        listed = self._store().list()[:MAX_PRESETS_LISTED]
        out = bytearray([len(listed)])
        for preset in listed:
            out.append(preset.index)
            out.extend(name_to_bytes(preset.name))
        return bytes(out)

    def _read_selected_preset(self):
        index = self.settings.get('selected_preset')
        try:
            return encode_preset(self._store().load(index))
        except PresetError as e:
            raise ControlError(f"preset_read: {e}") from e

    def _read_settings_as_preset(self):
        return encode_preset(Preset.from_settings(self.settings, 0, 'Current'))

    def _save_preset(self, value):
        preset = decode_preset(value, self.band_count)
        self._store().save(preset)

    def _activate_preset(self, value):
        preset = self._store().load(value[0])
        preset.apply_to(self.settings)
        logger.info("Activated preset %d (%s)", preset.index, preset.name)

    def _delete_preset(self, value):
        self._store().delete(value[0])
