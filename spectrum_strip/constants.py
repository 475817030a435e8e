"""
Hardware layout and default tuning for the spectrum strip.

Every band drives one physical strip segment of LEDS_PER_STRIP LEDs. The
segments are daisy-chained in alternating direction, so the controller
sees NUM_BANDS * LEDS_PER_STRIP LEDs followed by a single END_MARKER byte.
"""

# ── LED layout ─────────────────────────────────────────────────────
LEDS_PER_STRIP = 12
END_MARKER = 0xFF          # terminates every frame on the wire
MAX_CHANNEL = 254          # 255 is reserved for END_MARKER

# ── Serial link ────────────────────────────────────────────────────
SERIAL_PORT = '/dev/ttyUSB0'
BAUD_RATE = 500_000

# ── Audio ──────────────────────────────────────────────────────────
SAMPLE_RATE = 44100
CHUNK_SIZE = 1024          # ~23ms per audio callback
MAX_TRANSFORM_SIZE = 8192  # raw sample history kept for the FFT
BAND_HISTORY = 100         # per-band level history

# ── Defaults ───────────────────────────────────────────────────────
DEFAULT_GAIN = 1.0
DEFAULT_FPS = 60
DEFAULT_SMOOTH_SIZE = 3
DEFAULT_FFT_SIZE = 2048
DEFAULT_SKEW = 0.5         # 0.35–0.55 lifts everything above ~1 kHz
DEFAULT_BRIGHTNESS = 1.0
DEFAULT_PALETTE = ('blue', 'red', 'magenta')

# Band centre frequencies (Hz), bass on the first strip
DEFAULT_BANDS = [
    41.0, 55.0, 65.0, 82.0, 110.0, 146.0, 220.0, 261.0, 329.0, 392.0,
    440.0, 523.0, 880.0, 987.0, 2000.0, 3000.0, 4000.0, 5000.0, 6000.0, 7500.0,
    9000.0, 13000.0,
]

# Per-band gain trims, tuned by ear against the default bands
DEFAULT_BAND_GAINS = [
    1.3, 1.2, 1.1, 1.0, 1.0, 1.0, 1.0, 0.85, 0.75, 0.75,
    0.75, 0.75, 0.75, 0.75, 1.0, 1.0, 1.0, 1.0, 1.2, 3.0,
    4.0, 4.0,
]

NUM_BANDS = len(DEFAULT_BANDS)
NUM_LEDS = NUM_BANDS * LEDS_PER_STRIP

# ── Control plane ──────────────────────────────────────────────────
CONTROL_PORT = 8765
LEDS_BUFFER_SPLIT = 500    # max bytes per frame-buffer read
MAX_PRESETS_LISTED = 24
PRESET_NAME_SIZE = 16
