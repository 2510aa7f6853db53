"""Outcome accumulation and run summary.

Reporter is the run's audit trail: an append-only, ordered log of Outcomes
written concurrently by scope workers and read once at the end.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from sweeper.models import CATEGORY_ORDER, DiscoveryFailure, Outcome, OutcomeAction

logger = logging.getLogger(__name__)

# Standing boundary of the tool's authority, printed at the end of every report
UNTOUCHED_RESOURCE_CLASSES: Tuple[str, ...] = (
    "EC2 instances",
    "EBS volumes attached to instances",
    "VPCs, subnets, route tables and security groups",
    "IAM users, roles and policies",
    "Route 53 hosted zones and registered domains",
    "AWS Organizations, SCPs and other account-level settings",
)


@dataclass
class SweepSummary:
    """Final, partitioned view of a run."""

    dry_run: bool
    account_id: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcomes: List[Outcome] = field(default_factory=list)
    discovery_failures: List[DiscoveryFailure] = field(default_factory=list)
    cancelled: bool = False

    def count(self, action: OutcomeAction) -> int:
        return sum(1 for o in self.outcomes if o.action is action)

    @property
    def deleted(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.action is OutcomeAction.DELETED]

    @property
    def skipped(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.action is OutcomeAction.SKIPPED]

    @property
    def failed(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.action is OutcomeAction.FAILED]

    def by_action(self) -> Dict[str, int]:
        """Counts per action, every action present."""
        return {action.value: self.count(action) for action in OutcomeAction}

    def by_category_and_kind(self) -> Dict[Tuple[str, str], Dict[str, int]]:
        """Counts per (category, kind), in sweep order."""
        counters: Dict[Tuple[str, str], Counter] = {}
        for outcome in self.outcomes:
            key = (outcome.category.value, outcome.descriptor.kind)
            counters.setdefault(key, Counter())[outcome.action.value] += 1

        order = {category.value: i for i, category in enumerate(CATEGORY_ORDER)}
        result = {}
        for key in sorted(counters, key=lambda k: (order.get(k[0], len(order)), k[1])):
            result[key] = {action.value: counters[key][action.value] for action in OutcomeAction}
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for serialization."""
        return {
            "dry_run": self.dry_run,
            "account_id": self.account_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "cancelled": self.cancelled,
            "totals": self.by_action(),
            "by_kind": [
                {"category": category, "kind": kind, **counts}
                for (category, kind), counts in self.by_category_and_kind().items()
            ],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "discovery_failures": [f.to_dict() for f in self.discovery_failures],
            "untouched": list(UNTOUCHED_RESOURCE_CLASSES),
        }


class Reporter:
    """Thread-safe, append-only collector of Outcomes."""

    def __init__(self, dry_run: bool = True, account_id: str = ""):
        self.dry_run = dry_run
        self.account_id = account_id
        self.started_at = datetime.now(timezone.utc)
        self.cancelled = False
        self._outcomes: List[Outcome] = []
        self._discovery_failures: List[DiscoveryFailure] = []
        self._lock = threading.Lock()

    def record(self, outcome: Outcome) -> None:
        """Append one Outcome."""
        with self._lock:
            self._outcomes.append(outcome)

    def record_discovery_failure(self, failure: DiscoveryFailure) -> None:
        """Append one failed (kind, scope) discovery."""
        with self._lock:
            self._discovery_failures.append(failure)

    @property
    def outcomes(self) -> List[Outcome]:
        """Snapshot of the outcome log in append order."""
        with self._lock:
            return list(self._outcomes)

    @property
    def discovery_failures(self) -> List[DiscoveryFailure]:
        with self._lock:
            return list(self._discovery_failures)

    def summary(self) -> SweepSummary:
        """Build the final summary."""
        return SweepSummary(
            dry_run=self.dry_run,
            account_id=self.account_id,
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
            outcomes=self.outcomes,
            discovery_failures=self.discovery_failures,
            cancelled=self.cancelled,
        )

    def render(self, summary: SweepSummary | None = None) -> List[str]:
        """Render the summary as plain text lines."""
        summary = summary or self.summary()
        mode = "DRY RUN" if summary.dry_run else "EXECUTE"
        totals = summary.by_action()

        lines = [
            "=" * 60,
            f"SWEEP REPORT ({mode})",
            "=" * 60,
        ]
        if summary.account_id:
            lines.append(f"Account: {summary.account_id}")
        lines.append(
            f"Deleted: {totals['deleted']}  Skipped: {totals['skipped']}  "
            f"Failed: {totals['failed']}  Discovery failures: {len(summary.discovery_failures)}"
        )
        if summary.cancelled:
            lines.append("Run was cancelled before completion")

        breakdown = summary.by_category_and_kind()
        if breakdown:
            lines.append("-" * 40)
            for (category, kind), counts in breakdown.items():
                lines.append(
                    f"[{category}] {kind}: deleted={counts['deleted']} "
                    f"skipped={counts['skipped']} failed={counts['failed']}"
                )

        for title, items in (
            ("Deleted" if not summary.dry_run else "Would delete", summary.deleted),
            ("Skipped", summary.skipped),
            ("Failed", summary.failed),
        ):
            if not items:
                continue
            lines.append("-" * 40)
            lines.append(f"{title}:")
            for outcome in items:
                line = f"  - {outcome.descriptor}"
                if outcome.detail:
                    line += f" ({outcome.detail})"
                lines.append(line)

        if summary.discovery_failures:
            lines.append("-" * 40)
            lines.append("Discovery failures:")
            for failure in summary.discovery_failures:
                lines.append(f"  - {failure.kind} in {failure.scope}: {failure.error}")

        lines.append("-" * 40)
        if summary.dry_run:
            lines.append("DRY RUN complete. No resources were deleted. Re-run with --execute to delete.")
        else:
            lines.append("Execution complete. Some deletions may take time to finish.")
        lines.append("Resources this tool never deletes (review manually):")
        lines.extend(f"  - {item}" for item in UNTOUCHED_RESOURCE_CLASSES)
        lines.append("=" * 60)
        return lines

    def log_report(self, summary: SweepSummary | None = None) -> None:
        """Write the rendered report to the log."""
        for line in self.render(summary):
            logger.info(line)
