"""Audio spectrum visualizer for serpentine LED strips."""

from .animations import ANIMATIONS, AnimationRenderer
from .color import Color
from .control import ControlError, ControlPlane
from .dsp import SpectralExtractor
from .presets import Preset, PresetError, PresetStore
from .scheduler import FrameScheduler, serialize_frame
from .settings import AnimationMode, DisplayMode, Settings, SettingsError
from .window import RollingWindow

__version__ = '0.1.0'
