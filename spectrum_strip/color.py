"""
Color — immutable RGB triple for strip rendering.

Channels are clamped to [0, MAX_CHANNEL] on construction because the
controller treats 255 as the end-of-frame marker. Blending and scaling
truncate toward zero, the same way the controller quantizes.
"""

from collections import namedtuple

from .constants import MAX_CHANNEL


def _channel(value):
    if value != value:  # NaN
        return 0
    return int(min(max(value, 0), MAX_CHANNEL))


class Color(namedtuple('Color', ['r', 'g', 'b'])):
    """RGB color with 8-bit channels capped at MAX_CHANNEL."""

    __slots__ = ()

    def __new__(cls, r, g, b):
        return super().__new__(cls, _channel(r), _channel(g), _channel(b))

    def mix(self, other, factor):
        """Blend toward `other`: factor 0 → self, factor 1 → other."""
        return Color(
            self.r * (1.0 - factor) + other.r * factor,
            self.g * (1.0 - factor) + other.g * factor,
            self.b * (1.0 - factor) + other.b * factor,
        )

    def brightness(self, factor):
        return Color(self.r * factor, self.g * factor, self.b * factor)

    # ── Encodings ──────────────────────────────────────────────────

    def to_wire(self) -> bytes:
        """Bytes in the strip's native GRB order."""
        return bytes((self.g, self.r, self.b))

    def to_rgb888(self) -> bytes:
        return bytes((self.r, self.g, self.b))

    def to_hex(self) -> str:
        return f'#{self.r:02x}{self.g:02x}{self.b:02x}'

    @classmethod
    def from_rgb888(cls, data):
        if len(data) != 3:
            raise ValueError(f"RGB888 color needs exactly 3 bytes, got {len(data)}")
        return cls(data[0], data[1], data[2])

    @classmethod
    def from_hex(cls, text):
        digits = text.strip().lstrip('#')
        if len(digits) != 6:
            raise ValueError(f"Invalid hex color: {text!r}")
        return cls(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))

    @classmethod
    def from_name(cls, name):
        """Named color lookup; unknown names give white."""
        return NAMED_COLORS.get(name.strip().lower(), WHITE)

    @classmethod
    def parse(cls, value):
        """Accept a Color, an [r, g, b] sequence, a hex string or a name."""
        if isinstance(value, Color):
            return value
        if isinstance(value, str):
            if value.strip().startswith('#'):
                return cls.from_hex(value)
            return cls.from_name(value)
        r, g, b = value
        return cls(r, g, b)

    def __repr__(self):
        return f'Color({self.to_hex()})'


BLACK = Color(0, 0, 0)
WHITE = Color(254, 254, 254)

NAMED_COLORS = {
    'red': Color(254, 0, 0),
    'green': Color(0, 254, 0),
    'blue': Color(0, 0, 254),
    'white': WHITE,
    'black': BLACK,
    'yellow': Color(254, 254, 0),
    'cyan': Color(0, 254, 254),
    'magenta': Color(254, 0, 254),
    'orange': Color(254, 165, 0),
    'purple': Color(128, 0, 128),
    'pink': Color(254, 100, 100),
    'brown': Color(165, 42, 42),
    'gray': Color(128, 128, 128),
    'light_gray': Color(211, 211, 211),
    'dark_gray': Color(169, 169, 169),
    'light_blue': Color(173, 216, 230),
    'light_green': Color(144, 238, 144),
    'light_yellow': Color(254, 254, 224),
    'light_cyan': Color(224, 254, 254),
    'light_magenta': Color(254, 224, 254),
    'light_orange': Color(254, 228, 181),
    'light_purple': Color(221, 160, 221),
    'light_pink': Color(254, 182, 193),
    'light_brown': Color(210, 180, 140),
}
