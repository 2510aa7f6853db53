"""Data models for the account sweeper."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Markers written into Outcome.detail so audit consumers can grep for them
DRY_RUN_MARKER = "dry-run"
PROTECTED_MARKER = "protected"
DEGRADED_MARKER = "protection-check-degraded"
WAIT_TIMEOUT_MARKER = "wait-timeout"
WAIT_ERROR_MARKER = "wait-error"
CANCELLED_MARKER = "cancelled"


class ScopeKind(Enum):
    """Locality an adapter operates in."""

    GLOBAL = "global"
    REGIONAL = "regional"


@dataclass(frozen=True)
class Scope:
    """A unit of discovery/deletion locality: global or a single region."""

    region: Optional[str] = None

    @classmethod
    def regional(cls, region: str) -> "Scope":
        if not region:
            raise ValueError("region must be a non-empty string")
        return cls(region=region)

    @property
    def is_global(self) -> bool:
        return self.region is None

    @property
    def kind(self) -> ScopeKind:
        return ScopeKind.GLOBAL if self.is_global else ScopeKind.REGIONAL

    def __str__(self) -> str:
        return "global" if self.region is None else self.region


Scope.GLOBAL = Scope()  # type: ignore[attr-defined]


class Category(Enum):
    """Teardown tiers, in the order the engine sweeps them."""

    COMPUTE = "compute"
    DATA = "data"
    NETWORK = "network"
    PLATFORM = "platform"
    ORPHANS = "orphans"


# Fixed sweep order: control plane first, orphan scan last
CATEGORY_ORDER: Tuple[Category, ...] = (
    Category.COMPUTE,
    Category.DATA,
    Category.NETWORK,
    Category.PLATFORM,
    Category.ORPHANS,
)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Minimal handle for one discovered resource.

    Attributes:
        kind: Adapter kind that discovered the resource (e.g. "s3_bucket")
        scope: Scope the resource was discovered in
        identity: Human-readable label (bucket name, cluster id, ...)
        arn_or_key: Whatever the kind's tag lookup needs; may equal identity
    """

    kind: str
    scope: Scope
    identity: str
    arn_or_key: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.scope}:{self.identity}"


@dataclass(frozen=True)
class ProtectionRule:
    """Tag key/value pair that exempts matching resources from deletion."""

    key: str
    value: str

    @classmethod
    def parse(cls, text: str) -> "ProtectionRule":
        """Parse a KEY=VALUE string, splitting on the first '='."""
        if text is None or "=" not in text:
            raise ValueError(f"Invalid protection rule '{text}': use KEY=VALUE")
        key, value = text.split("=", 1)
        if not key:
            raise ValueError(f"Invalid protection rule '{text}': key cannot be empty")
        return cls(key=key, value=value)

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class RunMode:
    """Process-wide execution mode for one run."""

    dry_run: bool = True


class OutcomeAction(Enum):
    """What happened to a resource."""

    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PlannedCall:
    """A fully resolved provider call, issued or previewed."""

    service: str
    operation: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def build(cls, service: str, operation: str, params: Dict[str, Any]) -> "PlannedCall":
        return cls(service=service, operation=operation, params=tuple(sorted(params.items())))

    def render(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"{self.service}.{self.operation}({args})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "operation": self.operation,
            "params": {k: v for k, v in self.params},
        }


@dataclass(frozen=True)
class Outcome:
    """Audit record for one processed resource."""

    descriptor: ResourceDescriptor
    category: Category
    action: OutcomeAction
    detail: str = ""
    dry_run: bool = False
    planned_calls: Tuple[PlannedCall, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.descriptor.kind,
            "scope": str(self.descriptor.scope),
            "identity": self.descriptor.identity,
            "category": self.category.value,
            "action": self.action.value,
            "detail": self.detail,
            "dry_run": self.dry_run,
            "calls": [call.render() for call in self.planned_calls],
        }


@dataclass(frozen=True)
class DiscoveryFailure:
    """A (kind, scope) pair whose listing call failed."""

    kind: str
    category: Category
    scope: Scope
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "category": self.category.value,
            "scope": str(self.scope),
            "error": self.error,
        }
