"""Utility modules for AWS client management, configuration and logging."""

from sweeper.utils.aws_client import AWSClientManager, RetryStrategy
from sweeper.utils.config import ConfigurationError, SweeperConfig, configure_logging
from sweeper.utils.logging import ActionType, LogEntry, SweepLogger

__all__ = [
    "AWSClientManager",
    "RetryStrategy",
    "ConfigurationError",
    "SweeperConfig",
    "configure_logging",
    "ActionType",
    "LogEntry",
    "SweepLogger",
]
