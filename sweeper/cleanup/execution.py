"""Dry-run / execute duality for deletions.

Adapters never call a mutating provider operation directly: they go through
ExecutionMode.invoke (and ExecutionMode.wait for blocking waits inside a
deletion). In preview mode the call is recorded with its fully resolved
arguments and logged, and the client is never touched. In live mode the call
is issued through the retry strategy. Either way the adapter runs the exact
same code path, so the preview shows exactly what execute mode would send.

apply() contains failures: one resource's rejection becomes a FAILED Outcome
and never propagates to sibling work.
"""

import logging
import threading
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.adapters.base import ResourceAdapter
from sweeper.errors import DeletionError, WaitError, WaitTimeout
from sweeper.models import (
    DRY_RUN_MARKER,
    WAIT_ERROR_MARKER,
    WAIT_TIMEOUT_MARKER,
    Category,
    Outcome,
    OutcomeAction,
    PlannedCall,
    ResourceDescriptor,
    RunMode,
)
from sweeper.utils.aws_client import RetryStrategy
from sweeper.utils.config import DEFAULT_WAIT_TIMEOUT_SECONDS
from sweeper.utils.logging import ActionType, SweepLogger
from sweeper.utils.security import LogSanitizer

logger = logging.getLogger(__name__)


def service_name(client: Any) -> str:
    """Best-effort service name of a boto3 client, for audit records."""
    meta = getattr(client, "meta", None)
    name = getattr(getattr(meta, "service_model", None), "service_name", None)
    return name if isinstance(name, str) else type(client).__name__


class ExecutionMode:
    """Wraps every mutating provider call for preview or live execution."""

    def __init__(
        self,
        run_mode: RunMode,
        retry_strategy: Optional[RetryStrategy] = None,
        wait_timeout_seconds: int = DEFAULT_WAIT_TIMEOUT_SECONDS,
        sweep_logger: Optional[SweepLogger] = None,
    ):
        """
        Initialize execution mode.

        Args:
            run_mode: Frozen dry-run switch for the run
            retry_strategy: Retry strategy for live provider calls
            wait_timeout_seconds: Upper bound for each wait
            sweep_logger: Structured logger for actions
        """
        self.run_mode = run_mode
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.wait_timeout_seconds = wait_timeout_seconds
        self.sweep_logger = sweep_logger or SweepLogger(dry_run=run_mode.dry_run)
        self._local = threading.local()

    @property
    def dry_run(self) -> bool:
        return self.run_mode.dry_run

    def _record(self, call: PlannedCall) -> None:
        calls: Optional[List[PlannedCall]] = getattr(self._local, "calls", None)
        if calls is not None:
            calls.append(call)

    def invoke(self, client: Any, operation: str, **params: Any) -> Any:
        """Issue (or, in preview, record) one mutating provider call.

        Returns:
            The provider response in live mode, an empty dict in preview
        """
        call = PlannedCall.build(service_name(client), operation, params)
        self._record(call)

        if self.dry_run:
            logger.info(f"[DRY RUN] Would call {call.render()}")
            return {}

        logger.info(f"Calling {call.render()}")
        return self.retry_strategy.execute_with_retry(getattr(client, operation), **params)

    def wait(
        self,
        client: Any,
        waiter_name: str,
        timeout_seconds: Optional[int] = None,
        delay_seconds: int = 15,
        **params: Any,
    ) -> None:
        """Run (or, in preview, record) a blocking waiter inside a deletion.

        The wait is always bounded: MaxAttempts is derived from the timeout.
        """
        call = PlannedCall.build(service_name(client), f"wait:{waiter_name}", params)
        self._record(call)

        if self.dry_run:
            logger.info(f"[DRY RUN] Would wait {call.render()}")
            return

        timeout = timeout_seconds or self.wait_timeout_seconds
        waiter = client.get_waiter(waiter_name)
        waiter.wait(
            WaiterConfig={"Delay": delay_seconds, "MaxAttempts": max(1, timeout // delay_seconds)},
            **params,
        )

    def apply(
        self,
        adapter: ResourceAdapter,
        descriptor: ResourceDescriptor,
        category: Category,
        note: str = "",
    ) -> Outcome:
        """Delete one resource through the adapter and return its Outcome.

        Args:
            adapter: Adapter owning the resource kind
            descriptor: Resource to delete
            category: Category the adapter belongs to, for the report
            note: Extra detail to carry into the Outcome (e.g. a degraded
                protection check)

        Returns:
            Outcome with action DELETED or FAILED
        """
        details = [note] if note else []
        error: Optional[Exception] = None
        self._local.calls = []
        try:
            adapter.delete(descriptor, self)
        except (DeletionError, ClientError, BotoCoreError) as e:
            error = e
        finally:
            calls = tuple(self._local.calls)
            self._local.calls = None

        if error is not None:
            cause = error.cause if isinstance(error, DeletionError) else error
            self.sweep_logger.log_error(descriptor.kind, descriptor.identity, error, ActionType.DELETE)
            details.append(f"deletion failed: {LogSanitizer.sanitize(str(cause))}")
            return Outcome(
                descriptor=descriptor,
                category=category,
                action=OutcomeAction.FAILED,
                detail="; ".join(details),
                dry_run=self.dry_run,
                planned_calls=calls,
            )

        if self.dry_run:
            rendered = ", ".join(call.render() for call in calls) or "no calls"
            details.insert(0, f"{DRY_RUN_MARKER}: would call {rendered}")
        elif adapter.supports_wait:
            wait_note = self._await_terminal(adapter, descriptor)
            if wait_note:
                details.append(wait_note)

        detail = "; ".join(details)
        self.sweep_logger.log_action_complete(descriptor.kind, descriptor.identity, detail)
        return Outcome(
            descriptor=descriptor,
            category=category,
            action=OutcomeAction.DELETED,
            detail=detail,
            dry_run=self.dry_run,
            planned_calls=calls,
        )

    def _await_terminal(self, adapter: ResourceAdapter, descriptor: ResourceDescriptor) -> str:
        """Best-effort wait; failures come back as a detail note, never raised."""
        try:
            adapter.await_terminal(descriptor, self.wait_timeout_seconds)
        except WaitTimeout as e:
            note = f"{WAIT_TIMEOUT_MARKER}: not gone after {self.wait_timeout_seconds}s ({e.cause})"
        except WaitError as e:
            note = f"{WAIT_ERROR_MARKER}: {e.cause}"
        except (ClientError, BotoCoreError) as e:
            note = f"{WAIT_ERROR_MARKER}: {e}"
        else:
            return ""

        note = LogSanitizer.sanitize(note)
        self.sweep_logger.log_wait_degraded(descriptor.kind, descriptor.identity, note)
        return note
