"""
Presets — named snapshots of every tunable parameter.

Two encodings:
  wire   fixed little-endian layout used by the control plane
         (222 bytes with the default 22 bands)
  disk   one YAML file per preset, presets/preset_<index>.yaml

Runtime-only state (the frame buffer, which preset is selected) is never
part of a preset.
"""

import logging
import os
import re
import struct

import yaml

from .color import Color
from .constants import PRESET_NAME_SIZE
from .settings import AnimationMode, DisplayMode, SettingsError

logger = logging.getLogger(__name__)

PRESET_FILE_RE = re.compile(r'^preset_(\d+)\.yaml$')


class PresetError(ValueError):
    """Preset data could not be decoded or applied."""


class PresetNotFound(PresetError, LookupError):
    pass


def name_to_bytes(name) -> bytes:
    """UTF-8 name truncated/NUL-padded to PRESET_NAME_SIZE bytes."""
    raw = name.encode('utf-8') if isinstance(name, str) else bytes(name)
    raw = raw[:PRESET_NAME_SIZE]
    return raw + bytes(PRESET_NAME_SIZE - len(raw))


def name_from_bytes(raw) -> str:
    raw = bytes(raw).split(b'\x00', 1)[0]
    return raw.decode('utf-8', errors='replace')


def _layout(band_count):
    return struct.Struct(
        f'<B{PRESET_NAME_SIZE}sHfH3s3s3sH{band_count}f{band_count}fffBB')


def preset_size(band_count) -> int:
    return _layout(band_count).size


class Preset:
    """All parameters of a Settings object plus an index and a name."""

    def __init__(self, index, name, smoothing_depth, gain, frame_rate, palette,
                 transform_size, bands, gains, skew, brightness,
                 display_mode, animation_mode):
        self.index = int(index)
        self.name = name_from_bytes(name_to_bytes(name))
        self.smoothing_depth = smoothing_depth
        self.gain = gain
        self.frame_rate = frame_rate
        self.palette = tuple(Color.parse(c) for c in palette)
        self.transform_size = transform_size
        self.bands = list(bands)
        self.gains = list(gains)
        self.skew = skew
        self.brightness = brightness
        self.display_mode = DisplayMode.parse(display_mode)
        self.animation_mode = AnimationMode.parse(animation_mode)

    @classmethod
    def from_settings(cls, settings, index, name):
        """Capture a Settings (or SettingsSnapshot) as a preset."""
        snap = settings.snapshot() if hasattr(settings, 'snapshot') else settings
        return cls(
            index=index,
            name=name,
            smoothing_depth=snap.smoothing_depth,
            gain=snap.gain,
            frame_rate=snap.frame_rate,
            palette=snap.palette,
            transform_size=snap.transform_size,
            bands=snap.bands,
            gains=snap.gains,
            skew=snap.skew,
            brightness=snap.brightness,
            display_mode=snap.display_mode,
            animation_mode=snap.animation_mode,
        )

    def parameters(self) -> dict:
        return {
            'gain': self.gain,
            'gains': list(self.gains),
            'bands': list(self.bands),
            'smoothing_depth': self.smoothing_depth,
            'transform_size': self.transform_size,
            'skew': self.skew,
            'brightness': self.brightness,
            'palette': self.palette,
            'display_mode': self.display_mode,
            'animation_mode': self.animation_mode,
            'frame_rate': self.frame_rate,
        }

    def apply_to(self, settings):
        """Load every parameter into settings and mark this preset active."""
        try:
            settings.update(active_preset=self.index, **self.parameters())
        except SettingsError as e:
            raise PresetError(f"Preset {self.index} ({self.name!r}) cannot be applied: {e}") from e

    # ── Disk form ──────────────────────────────────────────────────

    def to_dict(self) -> dict:
        data = {'index': self.index, 'name': self.name}
        data.update(self.parameters())
        data['palette'] = [c.to_hex() for c in self.palette]
        data['display_mode'] = self.display_mode.label
        data['animation_mode'] = self.animation_mode.label
        return data

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise PresetError(f"Invalid preset data: {e}") from e

    def __eq__(self, other):
        if not isinstance(other, Preset):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def __repr__(self):
        return f'Preset({self.index}, {self.name!r})'


# ── Wire form ──────────────────────────────────────────────────────

def encode_preset(preset) -> bytes:
    n = len(preset.bands)
    if len(preset.gains) != n:
        raise PresetError(f"preset has {n} bands but {len(preset.gains)} gains")
    try:
        return _layout(n).pack(
            preset.index,
            name_to_bytes(preset.name),
            preset.smoothing_depth,
            preset.gain,
            preset.frame_rate,
            *(c.to_rgb888() for c in preset.palette),
            preset.transform_size,
            *preset.bands,
            *preset.gains,
            preset.skew,
            preset.brightness,
            int(preset.display_mode),
            int(preset.animation_mode),
        )
    except struct.error as e:
        raise PresetError(f"Preset {preset.index} does not fit the wire layout: {e}") from e


def decode_preset(data, band_count) -> Preset:
    layout = _layout(band_count)
    if len(data) != layout.size:
        raise PresetError(
            f"Preset with {band_count} bands needs {layout.size} bytes, got {len(data)}")
    fields = layout.unpack(bytes(data))
    index, name, smoothing_depth, gain, frame_rate = fields[:5]
    palette = [Color.from_rgb888(c) for c in fields[5:8]]
    transform_size = fields[8]
    bands = list(fields[9:9 + band_count])
    gains = list(fields[9 + band_count:9 + 2 * band_count])
    skew, brightness, display_code, animation_code = fields[9 + 2 * band_count:]
    try:
        return Preset(
            index=index,
            name=name,
            smoothing_depth=smoothing_depth,
            gain=gain,
            frame_rate=frame_rate,
            palette=palette,
            transform_size=transform_size,
            bands=bands,
            gains=gains,
            skew=skew,
            brightness=brightness,
            display_mode=display_code,
            animation_mode=animation_code,
        )
    except SettingsError as e:
        raise PresetError(str(e)) from e


# ── Persistence ────────────────────────────────────────────────────

class PresetStore:
    """Presets on disk, one YAML file each."""

    def __init__(self, directory):
        self.directory = directory

    def _path(self, index):
        return os.path.join(self.directory, f'preset_{int(index)}.yaml')

    def save(self, preset):
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(preset.index)
        with open(path, 'w') as f:
            yaml.safe_dump(preset.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info("Saved preset %d (%s) to %s", preset.index, preset.name, path)

    def load(self, index) -> Preset:
        path = self._path(index)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise PresetNotFound(f"No preset {index} in {self.directory}") from None
        except yaml.YAMLError as e:
            raise PresetError(f"{path}: {e}") from e
        if not isinstance(data, dict):
            raise PresetError(f"{path}: expected a mapping")
        return Preset.from_dict(data)

    def list(self):
        """All readable presets sorted by index. Broken files are skipped."""
        if not os.path.isdir(self.directory):
            return []
        indices = []
        for filename in os.listdir(self.directory):
            m = PRESET_FILE_RE.match(filename)
            if m:
                indices.append(int(m.group(1)))

        presets = []
        for index in sorted(indices):
            try:
                presets.append(self.load(index))
            except PresetError as e:
                logger.warning("Skipping preset %d: %s", index, e)
        return presets

    def delete(self, index):
        try:
            os.remove(self._path(index))
        except FileNotFoundError:
            raise PresetNotFound(f"No preset {index} in {self.directory}") from None
        logger.info("Deleted preset %d", index)
