"""Exception taxonomy for the sweeper.

Everything except FatalStartupError is contained at (kind, scope, resource)
granularity by the engine and only surfaces in the final report.
"""

from typing import Optional

from sweeper.models import ResourceDescriptor, Scope


class SweepError(Exception):
    """Base class for sweeper errors."""


class DiscoveryError(SweepError):
    """Listing one kind in one scope failed."""

    def __init__(self, kind: str, scope: Scope, cause: Optional[BaseException] = None):
        self.kind = kind
        self.scope = scope
        self.cause = cause
        super().__init__(f"Discovery of {kind} in {scope} failed: {cause}")


class TagLookupError(SweepError):
    """Fetching tags for a resource failed."""

    def __init__(self, descriptor: ResourceDescriptor, cause: Optional[BaseException] = None):
        self.descriptor = descriptor
        self.cause = cause
        super().__init__(f"Tag lookup for {descriptor} failed: {cause}")


class DeletionError(SweepError):
    """The provider rejected deletion of one resource."""

    def __init__(self, resource: ResourceDescriptor, cause: Optional[BaseException] = None):
        self.resource = resource
        self.cause = cause
        super().__init__(f"Deletion of {resource} failed: {cause}")


class WaitError(SweepError):
    """Polling for a terminal state failed."""

    def __init__(self, descriptor: ResourceDescriptor, cause: Optional[BaseException] = None):
        self.descriptor = descriptor
        self.cause = cause
        super().__init__(f"Waiting on {descriptor} failed: {cause}")


class WaitTimeout(WaitError):
    """Polling for a terminal state ran out of time."""


class FatalStartupError(SweepError):
    """No credentials or no way to enumerate scopes; aborts the run."""
