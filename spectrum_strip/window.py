"""
RollingWindow — fixed-capacity sample history shared between threads.

Used twice in the pipeline:
  raw audio   — one window of MAX_TRANSFORM_SIZE samples feeding the FFT
  band levels — one short window per band, read back as (average, max)

The audio callback appends while the render loop reads, so every call
takes the lock for exactly one logical read or write. The ring buffer
itself never leaves the object; readers get copies.
"""

import threading

import numpy as np


class RollingWindow:
    """Thread-safe FIFO of float samples backed by a numpy ring buffer."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._buf = np.zeros(capacity, dtype=np.float64)
        self._pos = 0       # next write index
        self._filled = 0
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return self._filled

    # ── Writes ─────────────────────────────────────────────────────

    def add_sample(self, sample: float):
        with self._lock:
            self._buf[self._pos] = sample
            self._pos = (self._pos + 1) % self.capacity
            self._filled = min(self._filled + 1, self.capacity)

    def add_samples(self, samples):
        """Append a block in order, evicting the oldest samples once full."""
        block = np.asarray(samples, dtype=np.float64).ravel()
        n = len(block)
        if n == 0:
            return
        with self._lock:
            if n >= self.capacity:
                # Only the tail survives
                self._buf[:] = block[-self.capacity:]
                self._pos = 0
                self._filled = self.capacity
                return
            end = self._pos + n
            if end <= self.capacity:
                self._buf[self._pos:end] = block
            else:
                split = self.capacity - self._pos
                self._buf[self._pos:] = block[:split]
                self._buf[:n - split] = block[split:]
            self._pos = end % self.capacity
            self._filled = min(self._filled + n, self.capacity)

    def clear(self):
        with self._lock:
            self._pos = 0
            self._filled = 0

    # ── Reads ──────────────────────────────────────────────────────

    def _tail(self, n):
        """Last min(n, filled) samples, oldest first. Caller holds the lock."""
        n = min(n, self._filled)
        if n <= 0:
            return np.zeros(0, dtype=np.float64)
        start = (self._pos - n) % self.capacity
        if start + n <= self.capacity:
            return self._buf[start:start + n].copy()
        return np.concatenate([self._buf[start:], self._buf[:self._pos]])

    def latest(self, n: int) -> np.ndarray:
        with self._lock:
            return self._tail(n)

    def values(self) -> np.ndarray:
        with self._lock:
            return self._tail(self._filled)

    def average(self, n: int) -> float:
        """Sum of the last n samples divided by n.

        While the window is still filling the missing samples count as
        zero, so a cold start ramps up instead of spiking.
        """
        if n <= 0:
            return 0.0
        with self._lock:
            tail = self._tail(n)
        if len(tail) == 0:
            return 0.0
        return float(np.sum(tail) / n)

    def max(self, n: int) -> float:
        if n <= 0:
            return 0.0
        with self._lock:
            tail = self._tail(n)
        if len(tail) == 0:
            return 0.0
        return float(np.max(tail))
