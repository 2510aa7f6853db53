"""AWS account sweeper - category-ordered cleanup of billable resources."""

__version__ = "1.0.0"

from sweeper.models import (
    CATEGORY_ORDER,
    Category,
    DiscoveryFailure,
    Outcome,
    OutcomeAction,
    PlannedCall,
    ProtectionRule,
    ResourceDescriptor,
    RunMode,
    Scope,
    ScopeKind,
)

__all__ = [
    "CATEGORY_ORDER",
    "Category",
    "DiscoveryFailure",
    "Outcome",
    "OutcomeAction",
    "PlannedCall",
    "ProtectionRule",
    "ResourceDescriptor",
    "RunMode",
    "Scope",
    "ScopeKind",
]
