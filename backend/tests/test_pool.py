"""Tests for the bounded worker pool and batch results."""

import threading
import time
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.pool import run_bounded
from services.results import BatchResult, Ok, Skipped


class TestRunBounded:
    """Test bounded fan-out."""

    def test_preserves_input_order(self):
        def slow_square(n):
            time.sleep(0.01 * (5 - n))
            return n * n

        results = run_bounded(slow_square, [1, 2, 3, 4], max_workers=4)

        assert results == [Ok(1, 1), Ok(2, 4), Ok(3, 9), Ok(4, 16)]

    def test_failures_are_skipped_not_raised(self):
        def check(n):
            if n == 2:
                raise ValueError("bad item")
            return n

        results = run_bounded(check, [1, 2, 3])

        assert results[1] == Skipped(2, "bad item")
        assert isinstance(results[0], Ok)
        assert isinstance(results[2], Ok)

    def test_never_exceeds_max_workers(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def work(_):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1

        run_bounded(work, range(12), max_workers=3)

        assert state["peak"] <= 3

    def test_empty_input(self):
        assert run_bounded(lambda x: x, []) == []


class TestBatchResult:
    """Test per-item outcome collection."""

    def test_collects_values_and_skips(self):
        result = BatchResult()
        result.add(Ok("PROJ-1", 1))
        result.add(Skipped("PROJ-2", "timeout"))

        assert result.get("PROJ-1") == 1
        assert result.get("PROJ-2") is None
        assert result.skipped_keys == ["PROJ-2"]
