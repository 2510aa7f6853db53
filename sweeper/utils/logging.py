"""Structured action logging for the account sweeper.

Every scan, protection decision, deletion and wait goes through SweepLogger.
Each line is emitted on the standard logger with the entry attached as
``extra={"sweep": {...}}`` for JSON handlers, and kept in memory so a run can
be inspected afterwards. Provider error text is sanitized before either.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sweeper.utils.security import LogSanitizer

logger = logging.getLogger(__name__)


class ActionType(Enum):
    """Kinds of sweep action."""

    SCAN = "SCAN"
    FILTER = "FILTER"
    DELETE = "DELETE"
    SKIP = "SKIP"
    WAIT = "WAIT"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LogEntry:
    """One sanitized action record."""

    level: int
    action: ActionType
    kind: str
    identity: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        record = {
            "at": self.timestamp.isoformat(),
            "level": logging.getLevelName(self.level),
            "action": self.action.value,
            "kind": self.kind,
            "identity": self.identity,
            "message": self.message,
        }
        if self.details:
            record["details"] = self.details
        return record

    def render(self, dry_run: bool) -> str:
        prefix = "[DRY RUN] " if dry_run else ""
        text = f"{prefix}[{self.action.value}] {self.kind} {self.identity}: {self.message}"
        if self.details:
            text += " (" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + ")"
        return text


class SweepLogger:
    """Structured, sanitized logging for sweep operations.

    Safe to share between worker threads.
    """

    def __init__(self, account_id: str = "", dry_run: bool = True):
        self.account_id = account_id
        self.dry_run = dry_run
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()

    def _emit(
        self,
        level: int,
        action: ActionType,
        kind: str,
        identity: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> LogEntry:
        entry = LogEntry(
            level=level,
            action=action,
            kind=kind,
            identity=LogSanitizer.sanitize(identity),
            message=LogSanitizer.sanitize(message),
            details=LogSanitizer.sanitize_dict(details) if details else {},
        )
        with self._lock:
            self._entries.append(entry)
        logger.log(level, entry.render(self.dry_run), extra={"sweep": entry.to_dict()})
        return entry

    def entries(self, action: Optional[ActionType] = None) -> List[LogEntry]:
        """Recorded entries in emission order, optionally of one action type."""
        with self._lock:
            return [e for e in self._entries if action is None or e.action is action]

    def log_scan_complete(self, kind: str, scope: str, total_found: int) -> None:
        self._emit(
            logging.INFO,
            ActionType.SCAN,
            kind,
            "*",
            f"Scan complete in {scope}: {total_found} found",
            {"scope": scope, "total_found": total_found},
        )

    def log_scan_failed(self, kind: str, scope: str, error: Exception) -> None:
        """Discovery failed for one (kind, scope); the pair is skipped."""
        self._emit(
            logging.WARNING,
            ActionType.SCAN,
            kind,
            "*",
            f"Scan failed in {scope}, skipping",
            {"scope": scope, "error": str(error)},
        )

    def log_protection_decision(self, kind: str, identity: str, protected: bool, reason: str) -> None:
        self._emit(
            logging.DEBUG,
            ActionType.FILTER,
            kind,
            identity,
            "protected" if protected else "not protected",
            {"reason": reason} if reason else None,
        )

    def log_action_skipped(self, kind: str, identity: str, reason: str) -> None:
        self._emit(logging.INFO, ActionType.SKIP, kind, identity, f"Skipped: {reason}")

    def log_action_complete(self, kind: str, identity: str, detail: str = "") -> None:
        """Deletion requested (or, in preview, planned)."""
        self._emit(
            logging.INFO,
            ActionType.DELETE,
            kind,
            identity,
            "Would delete resource" if self.dry_run else "Deletion requested",
            {"detail": detail} if detail else None,
        )

    def log_wait_degraded(self, kind: str, identity: str, detail: str) -> None:
        self._emit(
            logging.WARNING,
            ActionType.WAIT,
            kind,
            identity,
            "Terminal state not confirmed",
            {"detail": detail},
        )

    def log_error(
        self,
        kind: str,
        identity: str,
        error: Exception,
        action: Optional[ActionType] = None,
    ) -> None:
        """Log a failure, surfacing the AWS error code when one is underneath."""
        details = {"error_type": type(error).__name__, "error_message": str(error)}
        cause = getattr(error, "cause", None) or error
        response = getattr(cause, "response", None)
        if isinstance(response, dict):
            details["aws_error_code"] = response.get("Error", {}).get("Code", "Unknown")

        self._emit(
            logging.ERROR,
            action or ActionType.ERROR,
            kind,
            identity,
            f"Failed with {type(error).__name__}",
            details,
        )

    def log_execution_start(self, scope_count: int, adapter_count: int) -> None:
        mode = "DRY RUN" if self.dry_run else "LIVE"
        logger.info("=" * 60)
        logger.info(f"ACCOUNT SWEEPER - START ({mode})")
        logger.info("=" * 60)
        logger.info(f"Account: {self.account_id}")
        logger.info(f"Scopes: {scope_count}, adapters: {adapter_count}")
        logger.info(f"Started at: {datetime.now(timezone.utc).isoformat()}")
        logger.info("-" * 40)

    def log_execution_complete(
        self,
        total_deleted: int,
        total_skipped: int,
        total_failed: int,
        discovery_failures: int,
    ) -> None:
        mode = "DRY RUN" if self.dry_run else "LIVE"
        verb = "Would delete" if self.dry_run else "Deleted"
        logger.info("-" * 40)
        logger.info(f"SWEEP TOTALS ({mode})")
        logger.info(f"{verb}: {total_deleted}")
        logger.info(f"Skipped: {total_skipped}")
        logger.info(f"Failed: {total_failed}")
        logger.info(f"Discovery failures: {discovery_failures}")
        logger.info("=" * 60)
