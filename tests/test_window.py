"""Tests for RollingWindow (pure numpy, no threads)."""

import threading

import numpy as np
import pytest

from spectrum_strip.window import RollingWindow


class TestEviction:

    def test_keeps_last_capacity_samples_in_order(self):
        w = RollingWindow(5)
        for x in range(13):
            w.add_sample(x)
        assert len(w) == 5
        assert list(w.values()) == [8, 9, 10, 11, 12]

    def test_add_samples_wraps_around(self):
        w = RollingWindow(4)
        w.add_samples([1, 2, 3])
        w.add_samples([4, 5, 6])
        assert list(w.values()) == [3, 4, 5, 6]

    def test_block_larger_than_capacity_keeps_tail(self):
        w = RollingWindow(3)
        w.add_sample(99)
        w.add_samples(np.arange(10))
        assert list(w.values()) == [7, 8, 9]

    def test_empty_block_is_noop(self):
        w = RollingWindow(3)
        w.add_samples([])
        assert len(w) == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            RollingWindow(0)


    def test_clear_empties_and_restarts(self):
        w = RollingWindow(3)
        w.add_samples([1, 2, 3])
        w.clear()
        assert len(w) == 0
        assert w.max(3) == 0.0
        w.add_sample(5)
        assert list(w.values()) == [5]


class TestStatistics:

    def test_average_and_max_of_last_three(self):
        w = RollingWindow(10)
        w.add_samples([1, 2, 3, 4, 5])
        assert w.average(3) == 4.0
        assert w.max(3) == 5

    def test_max_uses_latest_samples(self):
        w = RollingWindow(10)
        w.add_samples([9, 1, 1])
        assert w.max(2) == 1

    def test_average_divides_by_requested_count_while_filling(self):
        w = RollingWindow(10)
        w.add_samples([3, 3])
        assert w.average(4) == 1.5

    def test_empty_and_zero_n(self):
        w = RollingWindow(4)
        assert w.average(3) == 0.0
        assert w.max(3) == 0.0
        w.add_sample(2.0)
        assert w.average(0) == 0.0
        assert w.max(0) == 0.0

    def test_latest_returns_copy(self):
        w = RollingWindow(4)
        w.add_samples([1, 2])
        tail = w.latest(2)
        tail[:] = 0
        assert list(w.latest(2)) == [1, 2]


class TestConcurrency:

    def test_parallel_writers_never_exceed_capacity(self):
        w = RollingWindow(64)

        def writer():
            for _ in range(200):
                w.add_samples(np.ones(7))

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(w) == 64
        assert np.all(w.values() == 1.0)
