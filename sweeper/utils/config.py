"""Configuration management for the account sweeper.

Configuration comes from environment variables (Lambda and scheduled runs) or
from the CLI, which builds the same dataclass. Key options:
- DRY_RUN: preview mode, on unless explicitly disabled
- PROTECT_TAG: optional KEY=VALUE protection rule
- SWEEP_REGIONS / SWEEP_KINDS: optional include-lists
- MAX_WORKERS: concurrent (adapter, scope) workers per category
- WAIT_TIMEOUT_SECONDS: bound on post-deletion polling
- PROTECTION_FAIL_MODE: "open" (default) or "closed"
- LOG_LEVEL: logging verbosity
- NOTIFICATION_TOPIC_ARN: optional SNS topic for the final report
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from sweeper.models import ProtectionRule, RunMode
from sweeper.utils.security import InputValidator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_FAIL_MODES = {"open", "closed"}

DEFAULT_WAIT_TIMEOUT_SECONDS = 600
MAX_WAIT_TIMEOUT_SECONDS = 3600

# Module logger for configuration warnings
_config_logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration validation errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class SweeperConfig:
    """Configuration for one sweep run.

    Attributes:
        dry_run: When True, mutating provider calls are only recorded.
        protect_tag: Optional KEY=VALUE protection rule text.
        regions: Restrict the sweep to these regions (empty means all enabled).
        kinds: Restrict the sweep to these adapter kinds (empty means all).
        max_workers: Concurrent workers within a category (1 is sequential).
        wait_timeout_seconds: Upper bound for each post-deletion wait.
        fail_closed: Skip resources whose protection check cannot be made.
        log_level: Log level for output.
        notification_topic_arn: SNS topic ARN for the final report.
        home_region: Region used for STS, region discovery and SNS.
        profile: Optional AWS named profile.
    """

    dry_run: bool = True
    protect_tag: str = ""
    regions: List[str] = field(default_factory=list)
    kinds: List[str] = field(default_factory=list)
    max_workers: int = 1
    wait_timeout_seconds: int = DEFAULT_WAIT_TIMEOUT_SECONDS
    fail_closed: bool = False
    log_level: str = "INFO"
    notification_topic_arn: str = ""
    home_region: str = "us-east-1"
    profile: Optional[str] = None

    @classmethod
    def from_environment(cls, validate: bool = True) -> "SweeperConfig":
        """Create configuration from environment variables.

        Args:
            validate: If True, validates the configuration and raises
                ConfigurationError if invalid.

        Returns:
            SweeperConfig instance populated from environment variables.

        Raises:
            ConfigurationError: If validation is enabled and configuration is invalid,
                or WAIT_TIMEOUT_SECONDS is not an integer.
        """
        config = cls()

        # Live mode needs an explicit "false"; anything else stays in preview
        dry_run_value = os.environ.get("DRY_RUN", "true").lower().strip()
        config.dry_run = dry_run_value not in ("false", "0", "no")

        config.protect_tag = os.environ.get("PROTECT_TAG", "").strip()
        config.regions = _split_list(os.environ.get("SWEEP_REGIONS", ""))
        config.kinds = _split_list(os.environ.get("SWEEP_KINDS", ""))

        workers_value = os.environ.get("MAX_WORKERS", "1").strip()
        try:
            parsed_workers = int(workers_value)
            if parsed_workers < 1:
                _config_logger.warning(
                    f"Invalid MAX_WORKERS '{parsed_workers}' (must be positive), defaulting to 1"
                )
                parsed_workers = 1
            config.max_workers = parsed_workers
        except ValueError:
            _config_logger.warning(
                f"Invalid MAX_WORKERS '{workers_value}' (not a valid integer), defaulting to 1"
            )
            config.max_workers = 1

        timeout_value = os.environ.get("WAIT_TIMEOUT_SECONDS")
        if timeout_value:
            try:
                config.wait_timeout_seconds = int(timeout_value)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid WAIT_TIMEOUT_SECONDS: '{timeout_value}' is not a valid integer"
                )

        fail_mode = os.environ.get("PROTECTION_FAIL_MODE", "open").lower().strip()
        if fail_mode not in VALID_FAIL_MODES:
            _config_logger.warning(
                f"Invalid PROTECTION_FAIL_MODE '{fail_mode}', defaulting to open"
            )
            fail_mode = "open"
        config.fail_closed = fail_mode == "closed"

        log_level_value = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
        if log_level_value in VALID_LOG_LEVELS:
            config.log_level = log_level_value
        else:
            _config_logger.warning(f"Invalid LOG_LEVEL '{log_level_value}', defaulting to INFO")
            config.log_level = "INFO"

        config.notification_topic_arn = os.environ.get("NOTIFICATION_TOPIC_ARN", "")
        if not config.notification_topic_arn:
            config.notification_topic_arn = os.environ.get("SNS_TOPIC_ARN", "")

        config.home_region = os.environ.get("AWS_REGION", "us-east-1")
        config.profile = os.environ.get("AWS_PROFILE") or None

        if validate:
            errors = config.validate()
            if errors:
                raise ConfigurationError(
                    f"Configuration validation failed: {errors}", errors=errors
                )

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages. Empty list if configuration is valid.
        """
        errors = []

        if self.protect_tag:
            try:
                rule = ProtectionRule.parse(self.protect_tag)
            except ValueError as e:
                errors.append(str(e))
            else:
                key_result = InputValidator.validate_tag_key(rule.key)
                errors.extend(f"Protection tag key: {e}" for e in key_result.errors)
                value_result = InputValidator.validate_tag_value(rule.value)
                errors.extend(f"Protection tag value: {e}" for e in value_result.errors)

        for region in self.regions:
            errors.extend(InputValidator.validate_region(region).errors)

        home_result = InputValidator.validate_region(self.home_region)
        errors.extend(f"Home region: {e}" for e in home_result.errors)

        if self.max_workers < 1:
            errors.append("MAX_WORKERS must be a positive integer")

        if self.wait_timeout_seconds < 1:
            errors.append("WAIT_TIMEOUT_SECONDS must be a positive integer")
        elif self.wait_timeout_seconds > MAX_WAIT_TIMEOUT_SECONDS:
            errors.append(
                f"WAIT_TIMEOUT_SECONDS should not exceed {MAX_WAIT_TIMEOUT_SECONDS}"
            )

        if self.notification_topic_arn and not self.notification_topic_arn.startswith(
            "arn:aws:sns:"
        ):
            errors.append(f"Invalid SNS topic ARN: {self.notification_topic_arn}")

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(f"Invalid log level: {self.log_level}")

        return errors

    @property
    def protection_rule(self) -> Optional[ProtectionRule]:
        """Parsed protection rule, or None when no rule is configured."""
        if not self.protect_tag:
            return None
        return ProtectionRule.parse(self.protect_tag)

    def to_run_mode(self) -> RunMode:
        """Freeze the dry-run switch for the engine."""
        return RunMode(dry_run=self.dry_run)

    def get_numeric_log_level(self) -> int:
        """Get the numeric log level for use with logging module."""
        return getattr(logging, self.log_level, logging.INFO)


def configure_logging(config: Optional[SweeperConfig] = None) -> logging.Logger:
    """Configure logging based on LOG_LEVEL environment variable or config.

    Args:
        config: Optional SweeperConfig instance. If not provided, reads from environment.

    Returns:
        Configured logger instance for the sweeper.
    """
    if config is None:
        log_level_str = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
        if log_level_str not in VALID_LOG_LEVELS:
            logging.warning(f"Invalid LOG_LEVEL '{log_level_str}', defaulting to INFO")
            log_level_str = "INFO"
        config = SweeperConfig(log_level=log_level_str)

    log_level = config.get_numeric_log_level()

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,  # Override any existing configuration
    )

    sweeper_logger = logging.getLogger("sweeper")
    sweeper_logger.setLevel(log_level)

    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(log_level, logging.INFO))

    return sweeper_logger
