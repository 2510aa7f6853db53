"""Run entry points for the account sweeper.

run_sweep() wires configuration, AWS clients, adapters and the engine
together for one run; lambda_handler() and the CLI are thin shells over it.

Each run is stateless: every invocation enumerates regions and discovers
resources afresh, so a re-run after a partial failure simply finds whatever
is left.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sweeper.adapters import default_adapters
from sweeper.adapters.base import ResourceAdapter
from sweeper.cleanup.engine import SweepEngine
from sweeper.errors import FatalStartupError
from sweeper.notifications.sns_notifier import SNSNotifier
from sweeper.regions import RegionEnumerator
from sweeper.reporting import Reporter, SweepSummary
from sweeper.utils.aws_client import AWSClientManager
from sweeper.utils.config import ConfigurationError, SweeperConfig, configure_logging
from sweeper.utils.security import InputValidator, LogSanitizer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


@dataclass
class SweepResult:
    """Outcome of one run_sweep call."""

    exit_code: int
    summary: Optional[SweepSummary] = None
    account_id: str = ""
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "exit_code": self.exit_code,
            "account_id": self.account_id,
            "errors": list(self.errors),
            "summary": self.summary.to_dict() if self.summary else None,
        }


def validate_config_security(config: SweeperConfig) -> List[str]:
    """
    Validate configuration for security concerns.

    Args:
        config: Sweeper configuration

    Returns:
        List of security validation errors
    """
    errors = []

    # home region and tag rule are covered by SweeperConfig.validate
    if config.notification_topic_arn:
        arn_result = InputValidator.validate_arn(config.notification_topic_arn)
        if not arn_result.is_valid:
            errors.extend(arn_result.errors)

    return errors


def run_sweep(
    config: SweeperConfig,
    client_manager: Optional[AWSClientManager] = None,
    adapters: Optional[Sequence[ResourceAdapter]] = None,
    reporter: Optional[Reporter] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SweepResult:
    """
    Run one sweep.

    Args:
        config: Sweeper configuration
        client_manager: AWS client manager (built from config if omitted)
        adapters: Adapters to run (the standard set if omitted)
        reporter: Outcome collector (created if omitted)
        cancel_event: Event that, once set, stops new deletions

    Returns:
        SweepResult; exit_code is 0 when the run completed (even with
        per-resource failures), 1 on a fatal startup error, 2 on invalid
        configuration
    """
    errors = config.validate() + validate_config_security(config)
    if errors:
        logger.error(f"Configuration errors: {LogSanitizer.sanitize(str(errors))}")
        return SweepResult(exit_code=EXIT_CONFIG, errors=errors)

    client_manager = client_manager or AWSClientManager(
        home_region=config.home_region,
        profile_name=config.profile,
    )
    enumerator = RegionEnumerator(client_manager, regions=config.regions)

    try:
        account_id = enumerator.verify_credentials()
    except FatalStartupError as e:
        logger.error(f"Cannot start sweep: {e}")
        return SweepResult(exit_code=EXIT_FATAL, errors=[str(e)])

    mode = "DRY RUN" if config.dry_run else "EXECUTE"
    logger.info(f"Starting account sweep ({mode}) for account {account_id}")

    if adapters is None:
        adapters = default_adapters(client_manager, config.notification_topic_arn or None)

    reporter = reporter or Reporter(dry_run=config.dry_run, account_id=account_id)
    engine = SweepEngine(
        adapters,
        enumerator,
        run_mode=config.to_run_mode(),
        protection_rule=config.protection_rule,
        fail_closed=config.fail_closed,
        max_workers=config.max_workers,
        wait_timeout_seconds=config.wait_timeout_seconds,
        reporter=reporter,
        retry_strategy=client_manager.retry_strategy,
        account_id=account_id,
        kinds=config.kinds,
        cancel_event=cancel_event,
    )

    try:
        summary = engine.run()
    except FatalStartupError as e:
        logger.error(f"Sweep aborted: {e}")
        return SweepResult(exit_code=EXIT_FATAL, account_id=account_id, errors=[str(e)])

    reporter.log_report(summary)

    if config.notification_topic_arn:
        notifier = SNSNotifier(
            sns_client=client_manager.sns,
            topic_arn=config.notification_topic_arn,
            region=config.home_region,
        )
        notifier.send_report(summary, reporter.render(summary))

    return SweepResult(exit_code=EXIT_OK, summary=summary, account_id=account_id)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda entry point for the account sweeper.

    Configuration comes from environment variables only; the event (typically
    an EventBridge schedule) carries nothing the sweep uses.

    Args:
        event: Lambda event
        context: Lambda context object

    Returns:
        Execution result summary with status code and details
    """
    try:
        config = SweeperConfig.from_environment(validate=False)
    except ConfigurationError as e:
        logging.getLogger().error(f"Configuration error: {e.message}")
        return {"statusCode": 400, "body": {"errors": [e.message]}}

    configure_logging(config)
    logger.debug(
        f"Configuration: dry_run={config.dry_run}, regions={config.regions or 'all'}, "
        f"kinds={config.kinds or 'all'}, max_workers={config.max_workers}"
    )

    result = run_sweep(config)

    status_code = {EXIT_OK: 200, EXIT_CONFIG: 400}.get(result.exit_code, 500)
    return {"statusCode": status_code, "body": result.to_dict()}
