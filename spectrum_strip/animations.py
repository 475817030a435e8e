"""
Strip animations — per-band level → LED colors.

Every band owns one strip of LEDS_PER_STRIP LEDs and is rendered on its
own; nothing blends across bands. The display mode picks what a strip
shows:

  SPECTRUM        the band level, drawn by one of the StripAnimation
                  classes below (selected by animation mode)
  OSCILLOSCOPE    reserved, strips stay black
  COLOR_GRADIENT  static primary→secondary gradient, ignores audio

All animations share one interface so the set of modes stays closed:
ANIMATIONS maps every AnimationMode to exactly one instance.
"""

import math
from abc import ABC, abstractmethod

from .color import BLACK
from .constants import LEDS_PER_STRIP
from .settings import AnimationMode, DisplayMode

# Levels past this are all "off the top"; keeps floor/ceil finite
MAX_LEVEL = 1e6


def blank_strip():
    return [BLACK] * LEDS_PER_STRIP


def ramp(level, length, primary, secondary):
    """Lit colors for a bar of `length` LEDs filled to `level` (0-1).

    Returns the colors of the lit LEDs only, from the base outward. The
    outermost lit LED is dimmed by the fractional part of level * length,
    so the bar grows smoothly instead of in whole-LED steps. A single lit
    LED fades secondary → primary instead of using the ramp color.
    """
    lit_float = min(level * length, length)
    lit = math.ceil(lit_float)
    if lit <= 0:
        return []
    leftover = 1.0 - max(0.0, lit - lit_float)

    colors = []
    for k in range(lit):
        color = primary.mix(secondary, (k + 1) / lit)
        if lit == 1:
            color = secondary.mix(primary, leftover)
        if k == lit - 1:
            color = color.brightness(leftover)
        colors.append(color)
    return colors


class StripAnimation(ABC):
    """Renders one band's level onto one strip."""

    mode = None

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def render(self, level: float, max_level: float, settings) -> list:
        """Colors for one strip.

        Args:
            level: gain-adjusted average level (1.0 = full strip)
            max_level: gain-adjusted peak level over the same history
            settings: SettingsSnapshot (palette is read from it)

        Returns:
            list of LEDS_PER_STRIP Colors, base of the strip first.
        """


class FullAnimation(StripAnimation):
    """Solid bar from the base of the strip."""

    mode = AnimationMode.FULL

    def render(self, level, max_level, settings):
        strip = blank_strip()
        for i, color in enumerate(ramp(level, LEDS_PER_STRIP, settings.primary, settings.secondary)):
            strip[i] = color
        return strip


class FullWithMaxAnimation(FullAnimation):
    """Solid bar plus a peak marker pinned to the top LED."""

    mode = AnimationMode.FULL_WITH_MAX

    def render(self, level, max_level, settings):
        strip = super().render(level, max_level, settings)
        strip[-1] = settings.accent.brightness(min(max_level, 1.0))
        return strip


class PointsAnimation(StripAnimation):
    """A dot that slides up the strip, split across two LEDs."""

    mode = AnimationMode.POINTS

    def render(self, level, max_level, settings):
        strip = blank_strip()
        pos = level * LEDS_PER_STRIP
        lower = math.floor(pos)
        upper = math.ceil(pos)
        frac = pos - lower
        lower = min(max(lower, 0), LEDS_PER_STRIP - 1)

        color = settings.primary.mix(settings.secondary, level)
        strip[lower] = color.brightness(1.0 - frac)
        # At whole positions upper == lower and this write wins
        if upper < LEDS_PER_STRIP:
            strip[upper] = color.brightness(frac)
        return strip


class FullMiddleAnimation(StripAnimation):
    """Bar that grows outward from the middle in both directions."""

    mode = AnimationMode.FULL_MIDDLE

    def render(self, level, max_level, settings):
        strip = blank_strip()
        middle = LEDS_PER_STRIP // 2
        for k, color in enumerate(ramp(level, middle, settings.primary, settings.secondary)):
            strip[middle - k - 1] = color
            strip[middle + k] = color
        return strip


class FullMiddleWithMaxAnimation(FullMiddleAnimation):
    """Middle-out bar with peak markers on both ends."""

    mode = AnimationMode.FULL_MIDDLE_WITH_MAX

    def render(self, level, max_level, settings):
        strip = super().render(level, max_level, settings)
        marker = settings.accent.brightness(min(max_level, 1.0))
        strip[0] = marker
        strip[-1] = marker
        return strip


class PointsMiddleAnimation(FullAnimation):
    """Reserved mode; draws the same bar as FULL until it gets its own look."""

    mode = AnimationMode.POINTS_MIDDLE


ANIMATIONS = {cls.mode: cls() for cls in (
    FullAnimation,
    FullWithMaxAnimation,
    PointsAnimation,
    FullMiddleAnimation,
    FullMiddleWithMaxAnimation,
    PointsMiddleAnimation,
)}


def _sanitize(level):
    if math.isnan(level) or level <= 0.0:
        return 0.0
    return min(level, MAX_LEVEL)


def gradient_strip(settings):
    return [
        settings.primary.mix(settings.secondary, (i + 1) / LEDS_PER_STRIP)
        for i in range(LEDS_PER_STRIP)
    ]


class AnimationRenderer:
    """Applies gains and display mode, then renders every band's strip."""

    def __init__(self, animations=None):
        self.animations = dict(ANIMATIONS if animations is None else animations)

    def render_strip(self, average, max_level, settings, index):
        band_gain = settings.gain * settings.gains[index]
        level = _sanitize(average * band_gain)
        peak = _sanitize(max_level * band_gain)

        if settings.display_mode == DisplayMode.SPECTRUM:
            return self.animations[settings.animation_mode].render(level, peak, settings)
        if settings.display_mode == DisplayMode.COLOR_GRADIENT:
            return gradient_strip(settings)
        # OSCILLOSCOPE has no renderer yet
        return blank_strip()

    def render(self, levels, settings):
        """One strip per band from a list of (average, max) pairs."""
        return [
            self.render_strip(average, peak, settings, i)
            for i, (average, peak) in enumerate(levels)
        ]
