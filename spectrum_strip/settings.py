"""
Settings — the shared, lock-protected configuration handle.

One Settings object is created at start-up and passed to the extractor,
the renderer, the scheduler and the control plane. Writers go through
update(), which validates every change before applying any of them;
readers take a snapshot() at the start of a unit of work.

Per-field consistency is all that is guaranteed: a snapshot taken between
two update() calls may see the first change and not the second.
"""

import enum
import math
import threading

import yaml

from .color import Color
from .constants import (
    BAND_HISTORY,
    DEFAULT_BAND_GAINS,
    DEFAULT_BANDS,
    DEFAULT_BRIGHTNESS,
    DEFAULT_FFT_SIZE,
    DEFAULT_FPS,
    DEFAULT_GAIN,
    DEFAULT_PALETTE,
    DEFAULT_SKEW,
    DEFAULT_SMOOTH_SIZE,
    LEDS_PER_STRIP,
    MAX_TRANSFORM_SIZE,
)


class SettingsError(ValueError):
    """A settings change violated an invariant; nothing was applied."""


def _mode_key(text):
    return ''.join(ch for ch in str(text).lower() if ch.isalnum())


class _CodedMode(enum.IntEnum):

    @classmethod
    def parse(cls, value):
        """Accept a member, a wire code or a name in any common spelling."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise SettingsError(f"Unknown {cls.__name__} code: {value}") from None
        key = _mode_key(value)
        for member in cls:
            if _mode_key(member.name) == key:
                return member
        raise SettingsError(f"Unknown {cls.__name__}: {value!r}")

    @property
    def label(self):
        return self.name.lower().replace('_', '-')


class DisplayMode(_CodedMode):
    SPECTRUM = 0
    OSCILLOSCOPE = 1
    COLOR_GRADIENT = 2


class AnimationMode(_CodedMode):
    FULL = 0
    FULL_WITH_MAX = 1
    POINTS = 2
    FULL_MIDDLE = 3
    FULL_MIDDLE_WITH_MAX = 4
    POINTS_MIDDLE = 5


# Parameter fields, in the order they appear in as_dict() and presets
FIELDS = (
    'gain', 'gains', 'bands', 'smoothing_depth', 'transform_size', 'skew',
    'brightness', 'palette', 'display_mode', 'animation_mode', 'frame_rate',
)
RUNTIME_FIELDS = ('selected_preset', 'active_preset')


# ── Validation ─────────────────────────────────────────────────────

def _finite(name, value):
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise SettingsError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise SettingsError(f"{name} must be finite, got {value}")
    return value


def _integer(name, value, lo, hi):
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        else:
            raise SettingsError(f"{name} must be an integer, got {value!r}")
    if not lo <= value <= hi:
        raise SettingsError(f"{name} must be in [{lo}, {hi}], got {value}")
    return value


def _float_list(name, values):
    if isinstance(values, (str, bytes)):
        raise SettingsError(f"{name} must be a sequence of numbers")
    try:
        return [_finite(name, v) for v in values]
    except TypeError:
        raise SettingsError(f"{name} must be a sequence of numbers") from None


def _validate_gain(v):
    v = _finite('gain', v)
    if v < 0:
        raise SettingsError(f"gain must be >= 0, got {v}")
    return v


def _validate_bands(v):
    bands = _float_list('bands', v)
    if not bands:
        raise SettingsError("at least one band is required")
    if any(f < 0 for f in bands):
        raise SettingsError("band frequencies must be >= 0")
    return bands


def _validate_brightness(v):
    v = _finite('brightness', v)
    if not 0.0 <= v <= 1.0:
        raise SettingsError(f"brightness must be in [0, 1], got {v}")
    return v


def _validate_palette(v):
    try:
        colors = tuple(Color.parse(c) for c in v)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"invalid palette: {e}") from None
    if len(colors) != 3:
        raise SettingsError(f"palette needs 3 colors, got {len(colors)}")
    return colors


_VALIDATORS = {
    'gain': _validate_gain,
    'gains': lambda v: _float_list('gains', v),
    'bands': _validate_bands,
    'smoothing_depth': lambda v: _integer('smoothing_depth', v, 1, BAND_HISTORY),
    'transform_size': lambda v: _integer('transform_size', v, 2, MAX_TRANSFORM_SIZE),
    'skew': lambda v: _finite('skew', v),
    'brightness': _validate_brightness,
    'palette': _validate_palette,
    'display_mode': DisplayMode.parse,
    'animation_mode': AnimationMode.parse,
    'frame_rate': lambda v: _integer('frame_rate', v, 1, 0xFFFF),
    'selected_preset': lambda v: _integer('selected_preset', v, 0, 255),
    'active_preset': lambda v: _integer('active_preset', v, 0, 255),
}


class SettingsSnapshot:
    """Read-only copy of every parameter, taken under one lock."""

    __slots__ = FIELDS + RUNTIME_FIELDS

    def __init__(self, values):
        for name in self.__slots__:
            object.__setattr__(self, name, values[name])

    def __setattr__(self, name, value):
        raise AttributeError("SettingsSnapshot is read-only")

    def __eq__(self, other):
        if not isinstance(other, SettingsSnapshot):
            return NotImplemented
        return all(getattr(self, n) == getattr(other, n) for n in self.__slots__)

    __hash__ = None

    @property
    def primary(self):
        return self.palette[0]

    @property
    def secondary(self):
        return self.palette[1]

    @property
    def accent(self):
        return self.palette[2]

    @property
    def led_count(self):
        return len(self.bands) * LEDS_PER_STRIP


class Settings:
    """Shared configuration handle. All access is serialized by one lock."""

    def __init__(self, **overrides):
        self._lock = threading.Lock()
        defaults = {
            'gain': DEFAULT_GAIN,
            'gains': list(DEFAULT_BAND_GAINS),
            'bands': list(DEFAULT_BANDS),
            'smoothing_depth': DEFAULT_SMOOTH_SIZE,
            'transform_size': DEFAULT_FFT_SIZE,
            'skew': DEFAULT_SKEW,
            'brightness': DEFAULT_BRIGHTNESS,
            'palette': DEFAULT_PALETTE,
            'display_mode': DisplayMode.SPECTRUM,
            'animation_mode': AnimationMode.FULL,
            'frame_rate': DEFAULT_FPS,
            'selected_preset': 0,
            'active_preset': 0,
        }
        unknown = set(overrides) - set(defaults)
        if unknown:
            raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")
        defaults.update(overrides)

        values = {name: _VALIDATORS[name](v) for name, v in defaults.items()}
        # A custom band list without gains gets unity trims
        if 'bands' in overrides and 'gains' not in overrides:
            values['gains'] = [1.0] * len(values['bands'])
        self._check_lengths(values)
        self._values = values
        self._last_frame = bytes(self.led_count * 3 + 1)

    @staticmethod
    def _check_lengths(values):
        if len(values['gains']) != len(values['bands']):
            raise SettingsError(
                f"gains has {len(values['gains'])} entries, "
                f"bands has {len(values['bands'])}")

    # ── Writes ─────────────────────────────────────────────────────

    def update(self, **changes):
        """Validate all changes, then apply them together.

        Raises SettingsError without touching anything if any change is
        invalid. The number of bands is fixed for the lifetime of the
        object.
        """
        unknown = set(changes) - set(_VALIDATORS)
        if unknown:
            raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")
        validated = {name: _VALIDATORS[name](v) for name, v in changes.items()}

        with self._lock:
            merged = dict(self._values)
            merged.update(validated)
            if len(merged['bands']) != len(self._values['bands']):
                raise SettingsError(
                    f"band count is fixed at {len(self._values['bands'])}, "
                    f"got {len(merged['bands'])}")
            self._check_lengths(merged)
            self._values = merged

    def update_palette_slot(self, slot, color):
        """Replace one palette color, leaving the other slots as they are now."""
        if not 0 <= slot < 3:
            raise SettingsError(f"palette slot must be 0, 1 or 2, got {slot}")
        try:
            color = Color.parse(color)
        except (TypeError, ValueError) as e:
            raise SettingsError(f"invalid palette color: {e}") from None
        with self._lock:
            palette = list(self._values['palette'])
            palette[slot] = color
            merged = dict(self._values)
            merged['palette'] = tuple(palette)
            self._values = merged

    def store_frame(self, frame):
        with self._lock:
            self._last_frame = bytes(frame)

    # ── Reads ──────────────────────────────────────────────────────

    def snapshot(self) -> SettingsSnapshot:
        with self._lock:
            values = dict(self._values)
        values['gains'] = tuple(values['gains'])
        values['bands'] = tuple(values['bands'])
        return SettingsSnapshot(values)

    def get(self, name):
        with self._lock:
            value = self._values[name]
        return list(value) if isinstance(value, list) else value

    @property
    def last_frame(self) -> bytes:
        with self._lock:
            return self._last_frame

    @property
    def band_count(self):
        with self._lock:
            return len(self._values['bands'])

    @property
    def led_count(self):
        return self.band_count * LEDS_PER_STRIP

    # ── Plain-data form (YAML config) ──────────────────────────────

    def as_dict(self):
        snap = self.snapshot()
        return {
            'gain': snap.gain,
            'gains': list(snap.gains),
            'bands': list(snap.bands),
            'smoothing_depth': snap.smoothing_depth,
            'transform_size': snap.transform_size,
            'skew': snap.skew,
            'brightness': snap.brightness,
            'palette': [c.to_hex() for c in snap.palette],
            'display_mode': snap.display_mode.label,
            'animation_mode': snap.animation_mode.label,
            'frame_rate': snap.frame_rate,
        }

    @classmethod
    def from_mapping(cls, mapping):
        unknown = set(mapping) - set(FIELDS)
        if unknown:
            raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return cls(**mapping)

    def __repr__(self):
        return f'Settings({self.as_dict()!r})'


# Property accessors for each parameter, e.g. settings.gain
for _name in FIELDS + RUNTIME_FIELDS:
    setattr(Settings, _name, property(lambda self, _n=_name: self.get(_n)))
del _name


def load_settings_file(path) -> Settings:
    """Build Settings from a YAML mapping of parameter names to values."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise SettingsError(f"{path}: expected a mapping at the top level")
    return Settings.from_mapping(data)


def save_settings_file(settings, path):
    with open(path, 'w') as f:
        yaml.safe_dump(settings.as_dict(), f, default_flow_style=False, sort_keys=False)
