import threading
import concurrent.futures
from unittest.mock import patch

import pytest

from conftest import FIB_VALUES, fib
from fibcursor.common import CacheConfigError
from fibcursor.sequence import GrowableTracker


def gate_growth(tracker):
    """Make the tracker's background grow wait until the returned event is set"""
    gate = threading.Event()
    original_fill = tracker._fill

    def gated_fill(start, target):
        gate.wait(5)
        original_fill(start, target)

    tracker._fill = gated_fill
    return gate


class TestGrowableTrackerValues:
    """Values served from the dense prefix store"""

    @pytest.mark.parametrize("index", sorted(FIB_VALUES))
    def test_get_known_values(self, index):
        tracker = GrowableTracker(2000)
        assert tracker.get(index) == FIB_VALUES[index]

    def test_starts_with_base_case(self):
        tracker = GrowableTracker(10)
        assert tracker.last_index == 1
        assert tracker.get(0) == 0
        assert tracker.get(1) == 1
        assert tracker.cache_stats.as_dict() == {'direct': 2, 'close': 0, 'miss': 0}

    def test_initial_fill(self):
        tracker = GrowableTracker(100, initial_fill=50)
        assert tracker.last_index == 49
        assert [tracker.get(i) for i in range(50)] == [fib(i) for i in range(50)]
        assert tracker.cache_stats.n_close_hit == 0
        assert not tracker.updating

    def test_initial_fill_clamped_to_capacity(self):
        tracker = GrowableTracker(20, initial_fill=500)
        assert tracker.last_index == 19

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            GrowableTracker(10).get(-3)


class TestGrowableTrackerGrowth:
    """Background growth of the dense store"""

    def test_grow_extends_last_index(self):
        tracker = GrowableTracker(1000, growth_factor=2)
        assert tracker.get(10) == 55

        assert tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 20
        assert [tracker.get(i) for i in range(21)] == [fib(i) for i in range(21)]

    def test_last_index_is_monotonic(self):
        tracker = GrowableTracker(5000, growth_factor=2)
        seen = [tracker.last_index]
        for index in [3, 50, 20, 400, 10, 1200, 5]:
            assert tracker.get(index) == fib(index)
            tracker.wait_for_growth(timeout=5)
            seen.append(tracker.last_index)

        assert seen == sorted(seen)
        assert seen[-1] == 2400

    def test_growth_clamped_to_capacity(self):
        tracker = GrowableTracker(50, growth_factor=2)
        assert tracker.get(100) == fib(100)
        tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 49

        # beyond capacity: served by recompute from the last stored index
        closes = tracker.cache_stats.n_close_hit
        assert tracker.get(120) == fib(120)
        assert tracker.cache_stats.n_close_hit == closes + 1
        assert not tracker.updating
        assert tracker.last_index == 49

    def test_only_one_grower_at_a_time(self):
        tracker = GrowableTracker(1000, growth_factor=2)
        gate = gate_growth(tracker)

        assert tracker.get(30) == fib(30)
        first_grower = tracker._grow_thread
        assert tracker.updating

        # a second lookup past last_index falls through instead of starting a grower
        assert tracker.get(40) == fib(40)
        assert tracker._grow_thread is first_grower
        assert tracker.last_index == 1

        gate.set()
        assert tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 60
        assert not tracker.updating

    def test_blocking_mode_waits_for_grow(self):
        tracker = GrowableTracker(1000, growth_factor=2, block_on_grow=True)
        gate = gate_growth(tracker)
        results = {}

        def lookup(index):
            results[index] = tracker.get(index)

        threads = [threading.Thread(target=lookup, args=(i,)) for i in (30, 45)]
        threads[0].start()
        threads[0].join(0.2)
        assert threads[0].is_alive()
        threads[1].start()

        gate.set()
        for t in threads:
            t.join(5)

        assert results == {30: fib(30), 45: fib(45)}
        assert tracker.last_index == 60
        assert tracker.cache_stats.n_direct_hit == 2
        assert tracker.cache_stats.n_close_hit == 0

    def test_blocking_mode_schedules_next_grow_past_target(self):
        tracker = GrowableTracker(1000, growth_factor=2, block_on_grow=True)
        gate = gate_growth(tracker)
        results = {}

        def lookup(index):
            results[index] = tracker.get(index)

        first = threading.Thread(target=lookup, args=(30,))
        first.start()
        first.join(0.2)
        assert first.is_alive()

        # 100 lies beyond the in-flight target of 60
        second = threading.Thread(target=lookup, args=(100,))
        second.start()
        second.join(0.2)
        assert second.is_alive()
        gate.set()
        first.join(5)
        second.join(5)

        assert results == {30: fib(30), 100: fib(100)}
        assert tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 200
        assert tracker.cache_stats.n_direct_hit == 1
        assert tracker.cache_stats.n_close_hit == 1

    @pytest.mark.parametrize("block_on_grow", [True, False])
    def test_failed_grow_start_returns_to_idle(self, block_on_grow):
        tracker = GrowableTracker(1000, growth_factor=2, block_on_grow=block_on_grow)

        with patch.object(threading.Thread, 'start', side_effect=RuntimeError("can't start new thread")):
            assert tracker.get(10) == fib(10)
            assert not tracker.updating
            assert tracker.get(10) == fib(10)

        assert tracker.last_index == 1
        assert tracker.cache_stats.n_close_hit == 2

        # growth resumes once threads can be started again
        assert tracker.get(10) == fib(10)
        assert tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 20

    def test_blocking_mode_beyond_capacity_recomputes(self):
        tracker = GrowableTracker(30, block_on_grow=True)
        assert tracker.get(100) == fib(100)
        assert tracker.last_index == 29
        assert tracker.cache_stats.n_close_hit == 1


class TestGrowableTrackerConcurrency:
    """Concurrent callers against one dense store"""

    def test_same_index_from_many_threads(self):
        tracker = GrowableTracker(2000)
        with concurrent.futures.ThreadPoolExecutor(max_workers=16) as executor:
            results = list(executor.map(tracker.get, [500] * 64))

        assert set(results) == {fib(500)}
        tracker.wait_for_growth(timeout=5)
        assert tracker.last_index == 1000

    def test_sequential_walk_while_growing(self):
        tracker = GrowableTracker(3000, growth_factor=2)
        with concurrent.futures.ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(tracker.get, range(1500)))

        assert results == [fib(i) for i in range(1500)]
        assert tracker.cache_stats.total == 1500


class TestGrowableTrackerConstruction:
    """Construction-time validation"""

    @pytest.mark.parametrize("capacity", [0, 1, -4, 10.0])
    def test_invalid_capacity(self, capacity):
        with pytest.raises(CacheConfigError):
            GrowableTracker(capacity)

    @pytest.mark.parametrize("growth_factor", [0, 0.5, -2, "2"])
    def test_invalid_growth_factor(self, growth_factor):
        with pytest.raises(CacheConfigError):
            GrowableTracker(10, growth_factor=growth_factor)
