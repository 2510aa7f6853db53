"""Tag-based protection filter.

A resource is protected when its tags contain the configured key with
exactly the configured value (case-sensitive, no wildcards). The check is
best-effort: by default a tag lookup that fails, or a kind that cannot look
up tags at all, lets the resource through (fail-open) and the degradation is
carried into the Outcome detail. fail_closed=True skips those resources
instead.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.adapters.base import ResourceAdapter
from sweeper.errors import TagLookupError
from sweeper.models import DEGRADED_MARKER, PROTECTED_MARKER, ProtectionRule, ResourceDescriptor
from sweeper.utils.security import LogSanitizer

logger = logging.getLogger(__name__)


class Verdict(Enum):
    """Protection filter result."""

    PROCEED = "proceed"
    SKIP = "skip"


@dataclass(frozen=True)
class ProtectionDecision:
    """Verdict plus the reason to put in the audit trail.

    Attributes:
        verdict: PROCEED or SKIP
        reason: Human-readable reason, empty when nothing noteworthy happened
        degraded: True when the tag check could not be made
    """

    verdict: Verdict
    reason: str = ""
    degraded: bool = False

    @property
    def proceed(self) -> bool:
        return self.verdict is Verdict.PROCEED


class ProtectionFilter:
    """Decides skip vs proceed for each discovered resource."""

    def __init__(self, rule: Optional[ProtectionRule] = None, fail_closed: bool = False):
        """
        Initialize protection filter.

        Args:
            rule: Protection rule; None disables filtering entirely
            fail_closed: Skip instead of proceed when the tag check cannot be made
        """
        self.rule = rule
        self.fail_closed = fail_closed

    def is_protected(self, tags: dict) -> bool:
        """Exact key/value match against the rule."""
        if self.rule is None:
            return False
        return self.rule.key in tags and tags[self.rule.key] == self.rule.value

    def decide(self, adapter: ResourceAdapter, descriptor: ResourceDescriptor) -> ProtectionDecision:
        """
        Decide whether a resource may be deleted.

        With no rule configured, tags are never fetched.

        Args:
            adapter: Adapter for the resource's kind
            descriptor: Resource to check

        Returns:
            ProtectionDecision
        """
        if self.rule is None:
            return ProtectionDecision(Verdict.PROCEED)

        if not adapter.supports_tag_lookup:
            return self._degraded(f"{descriptor.kind} does not support tag lookup")

        try:
            tags = adapter.lookup_tags(descriptor)
        except (TagLookupError, ClientError, BotoCoreError) as e:
            cause = e.cause if isinstance(e, TagLookupError) else e
            logger.warning(
                f"Tag lookup failed for {descriptor}: {LogSanitizer.sanitize(str(cause))}"
            )
            return self._degraded(f"tag lookup failed: {LogSanitizer.sanitize(str(cause))}")

        if self.is_protected(tags):
            return ProtectionDecision(Verdict.SKIP, f"{PROTECTED_MARKER}: tagged {self.rule}")

        return ProtectionDecision(Verdict.PROCEED)

    def _degraded(self, why: str) -> ProtectionDecision:
        if self.fail_closed:
            return ProtectionDecision(
                Verdict.SKIP,
                f"{DEGRADED_MARKER}: {why}; skipped (fail-closed)",
                degraded=True,
            )
        return ProtectionDecision(
            Verdict.PROCEED,
            f"{DEGRADED_MARKER}: {why}; proceeding (fail-open)",
            degraded=True,
        )
