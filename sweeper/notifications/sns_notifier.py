"""SNS notification of sweep reports.

Publishes the rendered report to a topic once a run finishes. Both preview
and execute runs are reported; the subject line says which.
"""

import logging
from typing import Any, List

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.reporting import SweepSummary
from sweeper.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

# SNS limits, in characters/bytes
MAX_SUBJECT_LENGTH = 100
MAX_MESSAGE_BYTES = 256 * 1024

TRUNCATION_NOTICE = "\n... report truncated; see the run logs for the full report"


class SNSNotifier:
    """Sends sweep reports via SNS."""

    AWS_CONSOLE_BASE_URL = "https://console.aws.amazon.com"

    def __init__(self, sns_client: Any, topic_arn: str, region: str = "us-east-1"):
        """
        Initialize SNS notifier.

        Args:
            sns_client: Boto3 SNS client
            topic_arn: ARN of the SNS topic
            region: Home region, for console links
        """
        self.sns = sns_client
        self.topic_arn = topic_arn
        self.region = region

    def send_report(self, summary: SweepSummary, report_lines: List[str]) -> bool:
        """
        Publish a finished run's report.

        Args:
            summary: Final run summary
            report_lines: Rendered report text

        Returns:
            True if notification sent successfully
        """
        if not self.topic_arn:
            logger.warning("No SNS topic ARN configured, skipping notification")
            return False

        try:
            self.sns.publish(
                TopicArn=self.topic_arn,
                Subject=self._build_subject(summary),
                Message=self._build_message(summary, report_lines),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error sending SNS notification: {LogSanitizer.sanitize(str(e))}")
            return False

        logger.info(f"Sent sweep report to {self.topic_arn}")
        return True

    def _build_subject(self, summary: SweepSummary) -> str:
        """Build notification subject line."""
        totals = summary.by_action()
        account = f" {summary.account_id}" if summary.account_id else ""
        if summary.dry_run:
            subject = f"[DRY RUN] Account sweep{account} - {totals['deleted']} resources would be deleted"
        else:
            subject = f"Account sweep{account} - deleted {totals['deleted']} resources"
            if totals["failed"]:
                subject += f" ({totals['failed']} failed)"
        return subject[:MAX_SUBJECT_LENGTH]

    def _build_message(self, summary: SweepSummary, report_lines: List[str]) -> str:
        """Report text plus a console link, kept under the SNS size limit."""
        lines = list(report_lines)
        lines.append("")
        lines.append(f"Billing console: {self.AWS_CONSOLE_BASE_URL}/billing/home?region={self.region}")
        message = "\n".join(lines)

        encoded = message.encode("utf-8")
        if len(encoded) <= MAX_MESSAGE_BYTES:
            return message

        budget = MAX_MESSAGE_BYTES - len(TRUNCATION_NOTICE.encode("utf-8"))
        return encoded[:budget].decode("utf-8", errors="ignore") + TRUNCATION_NOTICE
