"""Batch processor for the work items of one category.

A category's work is a list of independent (adapter, scope) items. They run
concurrently on a ThreadPoolExecutor and process_batch returns only when every
item has finished, which is the barrier between categories.

Note: Uses ThreadPoolExecutor (not asyncio) because boto3 is synchronous.
asyncio.gather with blocking boto3 calls would execute sequentially.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchResult(Generic[T]):
    """Result of processing one batch.

    Attributes:
        completed: Items whose function returned normally
        failed: Items whose function raised
        errors: Dict mapping item label to error message
    """

    completed: List[T] = field(default_factory=list)
    failed: List[T] = field(default_factory=list)
    errors: dict = field(default_factory=dict)


class BatchProcessor:
    """Run independent work items, concurrently when max_workers > 1."""

    def __init__(self, max_workers: int = 1):
        """Initialize batch processor.

        Args:
            max_workers: Number of items to process concurrently.
                        Defaults to 1 (sequential).
        """
        self.max_workers = max(1, max_workers)
        logger.debug(f"BatchProcessor initialized with max_workers={self.max_workers}")

    def process_batch(
        self,
        items: List[T],
        func: Callable[[T], None],
        label: Callable[[T], str] = str,
    ) -> BatchResult[T]:
        """Run func over every item and wait for all of them.

        An exception from one item is logged and recorded; it never stops
        the other items.

        Args:
            items: Work items
            func: Function applied to each item
            label: Human-readable label for an item, used in logs and errors

        Returns:
            BatchResult with completed and failed items
        """
        result: BatchResult[T] = BatchResult()

        if not items:
            return result

        if self.max_workers > 1 and len(items) > 1:
            self._process_concurrent(items, func, label, result)
        else:
            for item in items:
                ok, error_msg = self._safe_call(func, item)
                self._merge(item, ok, error_msg, label, result)

        logger.debug(
            f"Batch complete: {len(result.completed)} completed, {len(result.failed)} failed"
        )
        return result

    def _process_concurrent(
        self,
        items: List[T],
        func: Callable[[T], None],
        label: Callable[[T], str],
        result: BatchResult[T],
    ) -> None:
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            future_to_item = {executor.submit(self._safe_call, func, item): item for item in items}

            for future in as_completed(future_to_item):
                item = future_to_item[future]
                ok, error_msg = future.result()
                self._merge(item, ok, error_msg, label, result)

    @staticmethod
    def _merge(
        item: T,
        ok: bool,
        error_msg: Optional[str],
        label: Callable[[T], str],
        result: BatchResult[T],
    ) -> None:
        if ok:
            result.completed.append(item)
            return
        result.failed.append(item)
        result.errors[label(item)] = error_msg
        logger.error(f"Work item {label(item)} failed: {error_msg}")

    @staticmethod
    def _safe_call(func: Callable[[T], None], item: T) -> Tuple[bool, Optional[str]]:
        """Run func, turning any exception into (False, message)."""
        try:
            func(item)
            return (True, None)
        except Exception as e:
            logger.exception(f"Unhandled error in work item: {e}")
            return (False, f"{type(e).__name__}: {e}")
