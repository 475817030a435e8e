#!/usr/bin/env python3
"""
Spectrum Strip Runner

Captures audio, splits it into frequency bands and drives one LED strip
segment per band over serial. Every parameter can be changed while it
runs through the HTTP control plane.

Usage:
    # Live capture from the default input device
    spectrum-strip

    # Pick a capture device by index or name
    spectrum-strip --list-devices
    spectrum-strip --device blackhole

    # Terminal-only (no LEDs)
    spectrum-strip --no-leds

    # WAV file instead of live audio
    spectrum-strip --wav song.wav --no-leds

    # Tuning from a YAML file, with flags on top
    spectrum-strip --config stage.yaml --gain 1.5 --animation-mode full-with-max

Controls:
    Ctrl+C  - Quit (strip is blanked on exit)
"""

import argparse
import logging
import os
import sys
import threading
import time

import numpy as np

from .animations import AnimationRenderer
from .constants import (
    BAUD_RATE,
    CHUNK_SIZE,
    CONTROL_PORT,
    SAMPLE_RATE,
    SERIAL_PORT,
)
from .control import ControlPlane
from .control_server import start_control_server
from .dsp import SpectralExtractor
from .output import SerialLEDOutput, find_serial_port
from .presets import PresetStore
from .scheduler import FrameScheduler
from .settings import Settings, SettingsError, load_settings_file

logger = logging.getLogger(__name__)


# ── Audio input ────────────────────────────────────────────────────

def find_input_device(query=None):
    """Resolve --device to a sounddevice index.

    Accepts an index, or a case-insensitive substring of the device name.
    None selects the system default input.
    """
    if query is None:
        return None
    if str(query).isdigit():
        return int(query)
    import sounddevice as sd

    devices = sd.query_devices()
    for i, d in enumerate(devices):
        if query.lower() in d['name'].lower() and d['max_input_channels'] > 0:
            return i
    return None


def list_input_devices():
    import sounddevice as sd

    print("\n  Input devices:")
    print(f"  {'='*40}")
    for i, d in enumerate(sd.query_devices()):
        if d['max_input_channels'] > 0:
            print(f"  {i:3d}  {d['name']} ({d['max_input_channels']} ch)")
    print()


def to_mono(indata):
    return np.mean(indata, axis=1) if indata.ndim > 1 else indata.flatten()


def run_live(extractor, scheduler, device_id, on_frame=None):
    """Capture on the audio thread, render on this one.

    Architecture:
      Audio callback thread: process_audio() — FFT and band levels
      Main loop: scheduler renders and sends at frame_rate
    """
    import sounddevice as sd

    if device_id is None:
        channels = 1
    else:
        channels = min(2, sd.query_devices(device_id)['max_input_channels'])
    name = sd.query_devices(device_id, 'input')['name']
    print(f"  Audio: {name}" + (f" (#{device_id})" if device_id is not None else ""))

    def audio_callback(indata, frames, time_info, status):
        if status:
            logger.debug("Audio status: %s", status)
        extractor.process_audio(to_mono(indata))

    stream = sd.InputStream(
        device=device_id,
        channels=channels,
        samplerate=extractor.sample_rate,
        blocksize=CHUNK_SIZE,
        dtype='float32',
        callback=audio_callback,
    )

    print("  Listening... Ctrl+C to stop.\n")
    try:
        stream.start()
        scheduler.run(on_frame=on_frame)
    except KeyboardInterrupt:
        print("\n\n  Stopping...")
    finally:
        stream.stop()
        stream.close()


def run_wav(extractor, scheduler, wav_path, on_frame=None):
    """Replay a WAV file into the extractor at real-time pace."""
    import soundfile as sf

    audio, sr = sf.read(wav_path, dtype='float32')
    if sr != extractor.sample_rate:
        logger.warning("WAV sample rate %d != %d; band frequencies will be off",
                       sr, extractor.sample_rate)
    audio = to_mono(audio) if audio.ndim > 1 else audio

    duration = len(audio) / sr
    print(f"  Playing {os.path.basename(wav_path)} ({duration:.1f}s)")
    print("  Simulating real-time playback... Ctrl+C to stop.\n")

    done = threading.Event()

    def feed():
        start = time.monotonic()
        for chunk_idx in range(0, len(audio), CHUNK_SIZE):
            if done.is_set():
                return
            extractor.process_audio(audio[chunk_idx:chunk_idx + CHUNK_SIZE])
            # Pace to wall clock
            sleep_time = start + (chunk_idx + CHUNK_SIZE) / sr - time.monotonic()
            if sleep_time > 0:
                time.sleep(sleep_time)
        done.set()

    feeder = threading.Thread(target=feed, daemon=True, name="WavFeeder")
    feeder.start()
    try:
        scheduler.run(stop_event=done, on_frame=on_frame)
    except KeyboardInterrupt:
        print("\n\n  Stopping...")
    finally:
        done.set()
        feeder.join(timeout=1.0)

    print(f"\n  Finished. {scheduler.frame_num} frames rendered.")


# ── Terminal output ────────────────────────────────────────────────

def status_printer(every):
    """on_frame hook that rewrites one status line every `every` frames."""

    def print_diagnostics(scheduler):
        if scheduler.frame_num % every:
            return
        parts = ["  [spectrum]"]
        for key, val in scheduler.get_diagnostics().items():
            if isinstance(val, float):
                parts.append(f"{key}:{val:.2f}")
            else:
                parts.append(f"{key}:{val}")
        sys.stdout.write('\r' + ' '.join(parts) + '   ')
        sys.stdout.flush()

    return print_diagnostics


# ── Configuration ──────────────────────────────────────────────────

def build_settings(args):
    """Defaults, then the YAML file, then command-line flags."""
    settings = load_settings_file(args.config) if args.config else Settings()

    changes = {}
    for flag, field in (
        ('smooth', 'smoothing_depth'),
        ('gain', 'gain'),
        ('fps', 'frame_rate'),
        ('skew', 'skew'),
        ('fft_size', 'transform_size'),
        ('brightness', 'brightness'),
        ('display_mode', 'display_mode'),
        ('animation_mode', 'animation_mode'),
    ):
        value = getattr(args, flag)
        if value is not None:
            changes[field] = value

    colors = (args.color1, args.color2, args.color3)
    if any(c is not None for c in colors):
        palette = list(settings.palette)
        for slot, color in enumerate(colors):
            if color is not None:
                palette[slot] = color
        changes['palette'] = palette

    if changes:
        settings.update(**changes)
    return settings


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Audio spectrum LED strip driver')
    parser.add_argument('--config', help='YAML settings file')
    parser.add_argument('--smooth', type=int, help='Band level history averaged per frame')
    parser.add_argument('--gain', type=float, help='Global gain')
    parser.add_argument('--fps', type=int, help='Frames per second')
    parser.add_argument('--color1', help='Primary color (name or #rrggbb)')
    parser.add_argument('--color2', help='Secondary color')
    parser.add_argument('--color3', help='Accent / peak color')
    parser.add_argument('--skew', type=float, help='High-frequency weighting exponent')
    parser.add_argument('--fft-size', type=int, help='FFT size in samples')
    parser.add_argument('--brightness', type=float, help='Global brightness (0-1)')
    parser.add_argument('--display-mode', help='spectrum, oscilloscope or color-gradient')
    parser.add_argument('--animation-mode',
                        help='full, full-with-max, points, full-middle, '
                             'full-middle-with-max or points-middle')
    parser.add_argument('--port', default=None,
                        help=f'Serial port (auto-detect if omitted, usually {SERIAL_PORT})')
    parser.add_argument('--baud', type=int, default=BAUD_RATE, help='Serial baud rate')
    parser.add_argument('--no-leds', action='store_true', help='Terminal visualization only')
    parser.add_argument('--device', help='Audio input device (index or name)')
    parser.add_argument('--list-devices', action='store_true', help='List audio input devices')
    parser.add_argument('--wav', help='WAV file to play (instead of live audio)')
    parser.add_argument('--presets', default='presets', help='Preset directory')
    parser.add_argument('--control-port', type=int, default=CONTROL_PORT,
                        help='HTTP control plane port (0 disables)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if args.list_devices:
        list_input_devices()
        return

    try:
        settings = build_settings(args)
    except (SettingsError, OSError) as e:
        print(f"  Invalid configuration: {e}")
        sys.exit(1)

    snap = settings.snapshot()
    print("\n  Spectrum Strip")
    print(f"  {'='*40}")
    print(f"  Bands: {settings.band_count}  LEDs: {settings.led_count}")
    print(f"  Mode: {snap.display_mode.label} / {snap.animation_mode.label}")
    print(f"  FFT: {snap.transform_size}  FPS: {snap.frame_rate}  Gain: {snap.gain:.2f}")
    print(f"  Brightness: {snap.brightness*100:.0f}%")

    # LED output
    serial_port = None
    if not args.no_leds:
        serial_port = args.port or find_serial_port()
        if serial_port is None:
            print("  No serial port found — terminal-only mode")
    led_output = SerialLEDOutput(serial_port, settings.led_count, baud_rate=args.baud)

    extractor = SpectralExtractor(settings, sample_rate=SAMPLE_RATE)
    scheduler = FrameScheduler(settings, extractor, AnimationRenderer(), led_output)

    server = None
    if args.control_port:
        control = ControlPlane(settings, PresetStore(args.presets))
        try:
            server = start_control_server(control, port=args.control_port)
        except OSError as e:
            logger.error("Control plane not started on port %d: %s", args.control_port, e)
        else:
            print(f"  Control: http://127.0.0.1:{server.server_address[1]}/characteristics")

    on_frame = status_printer(every=max(1, snap.frame_rate // 4))
    try:
        if args.wav:
            run_wav(extractor, scheduler, args.wav, on_frame=on_frame)
        else:
            device_id = find_input_device(args.device)
            if args.device is not None and device_id is None:
                print(f"  Error: no input device matching {args.device!r}.")
                list_input_devices()
                sys.exit(1)
            run_live(extractor, scheduler, device_id, on_frame=on_frame)
    finally:
        if server is not None:
            server.shutdown()
            server.server_close()
        led_output.close()
        print(f"  Final: {scheduler.get_diagnostics()}")
        print("  Done!")


if __name__ == '__main__':
    main()
