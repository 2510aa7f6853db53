"""Cleanup modules: orchestration, execution mode and batching."""

from sweeper.cleanup.batch_processor import BatchProcessor, BatchResult
from sweeper.cleanup.engine import SweepEngine
from sweeper.cleanup.execution import ExecutionMode

__all__ = [
    "SweepEngine",
    "ExecutionMode",
    "BatchProcessor",
    "BatchResult",
]
