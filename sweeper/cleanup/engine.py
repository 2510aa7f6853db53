"""Sweep orchestration engine with category-ordered sequencing.

The engine knows nothing about individual resource kinds. It groups the
adapters it is given by category and walks CATEGORY_ORDER:

1. COMPUTE   - clusters and their node groups, functions, gateways, stacks
2. DATA      - databases and their snapshots, caches, search domains, buckets
3. NETWORK   - unattached elastic IPs, NAT gateways, load balancers
4. PLATFORM  - registries, pipelines, queues, topics, workflows, log groups
5. ORPHANS   - storage snapshots no longer referenced by any image

Within a category every (adapter, scope) pair is an independent work item;
the items run concurrently and all of them finish before the next category
starts. Each work item runs discover -> protection filter -> delete (through
ExecutionMode) -> record, and contains its own failures.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.adapters.base import ResourceAdapter
from sweeper.cleanup.batch_processor import BatchProcessor
from sweeper.cleanup.execution import ExecutionMode
from sweeper.errors import DiscoveryError
from sweeper.filters.protection import ProtectionFilter
from sweeper.models import (
    CANCELLED_MARKER,
    CATEGORY_ORDER,
    Category,
    DiscoveryFailure,
    Outcome,
    OutcomeAction,
    ProtectionRule,
    ResourceDescriptor,
    RunMode,
    Scope,
)
from sweeper.reporting import Reporter, SweepSummary
from sweeper.utils.aws_client import RetryStrategy
from sweeper.utils.config import DEFAULT_WAIT_TIMEOUT_SECONDS
from sweeper.utils.logging import SweepLogger
from sweeper.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

WorkItem = Tuple[ResourceAdapter, Scope]


class SweepEngine:
    """Orchestrates discovery and deletion across categories and scopes.

    Run configuration (dry-run switch, protection rule) is passed in once and
    never read from the process environment, so the engine can be driven
    entirely by fakes in tests.
    """

    def __init__(
        self,
        adapters: Iterable[ResourceAdapter],
        region_enumerator: Any,
        run_mode: RunMode,
        protection_rule: Optional[ProtectionRule] = None,
        fail_closed: bool = False,
        max_workers: int = 1,
        wait_timeout_seconds: int = DEFAULT_WAIT_TIMEOUT_SECONDS,
        reporter: Optional[Reporter] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        account_id: str = "",
        kinds: Optional[Iterable[str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize sweep engine.

        Args:
            adapters: Adapters to run; one per resource kind
            region_enumerator: Anything with list_scopes() -> sequence of Scope
            run_mode: Frozen dry-run switch
            protection_rule: Optional tag rule exempting resources
            fail_closed: Skip resources whose protection check cannot be made
            max_workers: Concurrent work items within a category
            wait_timeout_seconds: Upper bound for each post-deletion wait
            reporter: Outcome collector (created if not given)
            retry_strategy: Retry strategy for live provider calls
            account_id: AWS account ID for reporting
            kinds: Optional include-list of adapter kinds to run
            cancel_event: Event that, once set, stops new deletions

        Raises:
            ValueError: If an adapter has no kind or two adapters share a kind
        """
        self.adapters = self._select(list(adapters), kinds)
        self.region_enumerator = region_enumerator
        self.run_mode = run_mode
        self.account_id = account_id

        self._by_category = self._group_by_category(self.adapters)

        self.sweep_logger = SweepLogger(account_id=account_id, dry_run=run_mode.dry_run)
        self.protection_filter = ProtectionFilter(protection_rule, fail_closed=fail_closed)
        self.execution = ExecutionMode(
            run_mode,
            retry_strategy=retry_strategy,
            wait_timeout_seconds=wait_timeout_seconds,
            sweep_logger=self.sweep_logger,
        )
        self.batch_processor = BatchProcessor(max_workers=max_workers)
        self.reporter = reporter or Reporter(dry_run=run_mode.dry_run, account_id=account_id)

        self._cancel_event = cancel_event or threading.Event()

    @staticmethod
    def _select(
        adapters: List[ResourceAdapter], kinds: Optional[Iterable[str]]
    ) -> List[ResourceAdapter]:
        wanted = set(kinds or ())
        if not wanted:
            return adapters
        known = {adapter.kind for adapter in adapters}
        for kind in sorted(wanted - known):
            logger.warning(f"Ignoring unknown resource kind: {kind}")
        return [adapter for adapter in adapters if adapter.kind in wanted]

    @staticmethod
    def _group_by_category(
        adapters: List[ResourceAdapter],
    ) -> Dict[Category, List[ResourceAdapter]]:
        grouped: Dict[Category, List[ResourceAdapter]] = defaultdict(list)
        seen_kinds = set()
        for adapter in adapters:
            if not adapter.kind:
                raise ValueError(f"Adapter {adapter!r} has no kind")
            if adapter.kind in seen_kinds:
                raise ValueError(f"Duplicate adapter kind: {adapter.kind}")
            if adapter.category not in CATEGORY_ORDER:
                raise ValueError(f"Adapter {adapter.kind} has unknown category {adapter.category}")
            seen_kinds.add(adapter.kind)
            grouped[adapter.category].append(adapter)
        return grouped

    def cancel(self) -> None:
        """Stop issuing new deletions. Submitted deletions are not rolled back."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested; no new deletions will be issued")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self) -> SweepSummary:
        """
        Sweep every category in order.

        Returns:
            SweepSummary of the run

        Raises:
            FatalStartupError: If scopes cannot be enumerated
        """
        scopes = list(self.region_enumerator.list_scopes())
        self.sweep_logger.log_execution_start(len(scopes), len(self.adapters))

        for category in CATEGORY_ORDER:
            if self.cancelled:
                logger.warning(f"Skipping category {category.value}: run cancelled")
                continue

            items = self.work_items(category, scopes)
            if not items:
                logger.debug(f"No work for category {category.value}")
                continue

            logger.info(f"Category {category.value}: {len(items)} work item(s)")
            self.batch_processor.process_batch(items, self._run_work_item, label=self._label)
            logger.info(f"Category {category.value} complete")

        self.reporter.cancelled = self.cancelled
        summary = self.reporter.summary()
        self.sweep_logger.log_execution_complete(
            total_deleted=summary.count(OutcomeAction.DELETED),
            total_skipped=summary.count(OutcomeAction.SKIPPED),
            total_failed=summary.count(OutcomeAction.FAILED),
            discovery_failures=len(summary.discovery_failures),
        )
        return summary

    def work_items(self, category: Category, scopes: List[Scope]) -> List[WorkItem]:
        """(adapter, scope) pairs for one category; global adapters get one item."""
        return [
            (adapter, scope)
            for adapter in self._by_category.get(category, [])
            for scope in scopes
            if adapter.applies_to(scope)
        ]

    @staticmethod
    def _label(item: WorkItem) -> str:
        adapter, scope = item
        return f"{adapter.kind}@{scope}"

    def _run_work_item(self, item: WorkItem) -> None:
        """Discover, filter and delete one kind in one scope."""
        adapter, scope = item
        if self.cancelled:
            return

        try:
            descriptors = list(adapter.discover(scope))
        except (DiscoveryError, ClientError, BotoCoreError) as e:
            cause = e.cause if isinstance(e, DiscoveryError) else e
            self._discovery_failed(adapter, scope, e, str(cause))
            return
        except Exception as e:
            logger.exception(f"Unexpected error discovering {adapter.kind} in {scope}")
            self._discovery_failed(adapter, scope, e, f"unexpected error: {type(e).__name__}: {e}")
            return

        self.sweep_logger.log_scan_complete(adapter.kind, str(scope), len(descriptors))

        for descriptor in descriptors:
            if self.cancelled:
                self.reporter.record(
                    Outcome(
                        descriptor=descriptor,
                        category=adapter.category,
                        action=OutcomeAction.SKIPPED,
                        detail=f"{CANCELLED_MARKER}: run cancelled before deletion",
                        dry_run=self.run_mode.dry_run,
                    )
                )
                continue
            try:
                outcome = self.process_resource(adapter, descriptor)
            except Exception as e:
                logger.exception(f"Unexpected error processing {descriptor}")
                outcome = Outcome(
                    descriptor=descriptor,
                    category=adapter.category,
                    action=OutcomeAction.FAILED,
                    detail=LogSanitizer.sanitize(f"unexpected error: {type(e).__name__}: {e}"),
                    dry_run=self.run_mode.dry_run,
                )
            self.reporter.record(outcome)

    def process_resource(self, adapter: ResourceAdapter, descriptor: ResourceDescriptor) -> Outcome:
        """Protection check then deletion for one resource."""
        decision = self.protection_filter.decide(adapter, descriptor)
        self.sweep_logger.log_protection_decision(
            descriptor.kind, descriptor.identity, not decision.proceed, decision.reason
        )

        if not decision.proceed:
            self.sweep_logger.log_action_skipped(descriptor.kind, descriptor.identity, decision.reason)
            return Outcome(
                descriptor=descriptor,
                category=adapter.category,
                action=OutcomeAction.SKIPPED,
                detail=decision.reason,
                dry_run=self.run_mode.dry_run,
            )

        return self.execution.apply(adapter, descriptor, adapter.category, note=decision.reason)

    def _discovery_failed(self, adapter: ResourceAdapter, scope: Scope, error: Exception, message: str) -> None:
        self.sweep_logger.log_scan_failed(adapter.kind, str(scope), error)
        self.reporter.record_discovery_failure(
            DiscoveryFailure(
                kind=adapter.kind,
                category=adapter.category,
                scope=scope,
                error=LogSanitizer.sanitize(message),
            )
        )
