"""Unit tests for BatchProcessor."""

import threading
import time

from sweeper.cleanup.batch_processor import BatchProcessor


class TestBatchProcessor:
    """Tests for BatchProcessor."""

    def test_empty_batch(self):
        """Test an empty batch does nothing."""
        result = BatchProcessor(max_workers=4).process_batch([], lambda item: None)

        assert result.completed == []
        assert result.failed == []

    def test_sequential_order(self):
        """Test max_workers=1 processes items in order."""
        seen = []

        result = BatchProcessor(max_workers=1).process_batch([1, 2, 3], seen.append)

        assert seen == [1, 2, 3]
        assert result.completed == [1, 2, 3]

    def test_non_positive_workers_means_sequential(self):
        """Test max_workers below 1 is clamped to 1."""
        assert BatchProcessor(max_workers=0).max_workers == 1

    def test_concurrent_items_overlap(self):
        """Test items run concurrently when max_workers > 1."""
        barrier = threading.Barrier(3, timeout=5)

        result = BatchProcessor(max_workers=3).process_batch([1, 2, 3], lambda item: barrier.wait())

        assert sorted(result.completed) == [1, 2, 3]

    def test_returns_after_all_items_finish(self):
        """Test process_batch is a barrier: every item is done on return."""
        done = []

        def slow(item):
            time.sleep(0.01 * item)
            done.append(item)

        BatchProcessor(max_workers=4).process_batch([3, 1, 2, 4], slow)

        assert sorted(done) == [1, 2, 3, 4]

    def test_failure_contained(self):
        """Test one raising item does not stop the others."""

        def func(item):
            if item == 2:
                raise ValueError("boom")

        for workers in (1, 3):
            result = BatchProcessor(max_workers=workers).process_batch(
                [1, 2, 3], func, label=lambda item: f"item-{item}"
            )

            assert sorted(result.completed) == [1, 3]
            assert result.failed == [2]
            assert result.errors == {"item-2": "ValueError: boom"}
