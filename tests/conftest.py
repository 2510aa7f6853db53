"""Pytest configuration and shared fixtures."""

import itertools
import os
import threading
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional, Sequence
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sweeper.adapters.base import ResourceAdapter
from sweeper.errors import DiscoveryError, TagLookupError, WaitError, WaitTimeout
from sweeper.models import Category, ResourceDescriptor, Scope, ScopeKind
from sweeper.utils.aws_client import RetryStrategy

# Set AWS region for tests
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_REGION", "us-east-1")

ACCOUNT_ID = "123456789012"


def client_error(code: str = "AccessDenied", message: str = "denied", operation: str = "Op") -> ClientError:
    """Build a botocore ClientError."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class CountingBackend:
    """Stands in for a boto3 client and records every mutating call.

    A global sequence number orders calls across backends and threads.
    """

    _sequence = itertools.count()
    _sequence_lock = threading.Lock()

    def __init__(self, service: str = "fake", fail_for: Iterable[str] = ()):
        self.meta = SimpleNamespace(service_model=SimpleNamespace(service_name=service))
        self.fail_for = set(fail_for)
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def delete_thing(self, **params):
        with CountingBackend._sequence_lock:
            seq = next(CountingBackend._sequence)
        with self._lock:
            self.calls.append((seq, "delete_thing", params))
        if params.get("Name") in self.fail_for:
            raise client_error("DependencyViolation", f"{params['Name']} is in use", "DeleteThing")
        return {}


class FakeAdapter(ResourceAdapter):
    """Configurable in-memory adapter.

    Args:
        kind: Resource kind
        category: Category to run in
        resources: Identities per region name (key None for the global scope),
            or a flat list used for every scope
        tags: Tags per identity
        scope_kind: GLOBAL or REGIONAL
        discover_fails_in: Regions whose listing raises DiscoveryError
        tag_errors: Identities whose tag lookup raises TagLookupError
        wait_result: None, "timeout" or "error" for await_terminal
        backend: CountingBackend receiving deletions
    """

    def __init__(
        self,
        kind: str,
        category: Category = Category.COMPUTE,
        resources=None,
        tags: Optional[Dict[str, Dict[str, str]]] = None,
        scope_kind: ScopeKind = ScopeKind.REGIONAL,
        discover_fails_in: Sequence[Optional[str]] = (),
        tag_errors: Sequence[str] = (),
        supports_tag_lookup: bool = True,
        supports_wait: bool = False,
        wait_result: Optional[str] = None,
        backend: Optional[CountingBackend] = None,
    ):
        self.kind = kind
        self.category = category
        self.scope_kind = scope_kind
        self.resources = resources if resources is not None else []
        self.tags = tags or {}
        self.discover_fails_in = set(discover_fails_in)
        self.tag_errors = set(tag_errors)
        self.supports_tag_lookup = supports_tag_lookup
        self.supports_wait = supports_wait
        self.wait_result = wait_result
        self.backend = backend or CountingBackend()
        self.discover_calls: List[Scope] = []
        self.tag_lookups: List[str] = []
        self._lock = threading.Lock()

    def _identities(self, scope: Scope) -> List[str]:
        if isinstance(self.resources, dict):
            return list(self.resources.get(scope.region, []))
        return list(self.resources)

    def discover(self, scope: Scope):
        with self._lock:
            self.discover_calls.append(scope)
        if scope.region in self.discover_fails_in:
            raise DiscoveryError(self.kind, scope, client_error("UnauthorizedOperation", "no access"))
        return iter(
            ResourceDescriptor(kind=self.kind, scope=scope, identity=i, arn_or_key=f"arn:fake:{i}")
            for i in self._identities(scope)
        )

    def delete(self, descriptor, mode):
        mode.invoke(self.backend, "delete_thing", Name=descriptor.identity)

    def lookup_tags(self, descriptor):
        with self._lock:
            self.tag_lookups.append(descriptor.identity)
        if descriptor.identity in self.tag_errors:
            raise TagLookupError(descriptor, client_error("AccessDenied", "tags hidden"))
        return dict(self.tags.get(descriptor.identity, {}))

    def await_terminal(self, descriptor, timeout_seconds):
        if self.wait_result == "timeout":
            raise WaitTimeout(descriptor, Exception("Max attempts exceeded"))
        if self.wait_result == "error":
            raise WaitError(descriptor, Exception("describe failed"))


class StaticScopes:
    """Region enumerator returning a fixed scope list."""

    def __init__(self, regions: Sequence[str] = ("us-east-1",)):
        self.scopes = [Scope.GLOBAL] + [Scope.regional(r) for r in regions]
        self.calls = 0

    def list_scopes(self) -> List[Scope]:
        self.calls += 1
        return list(self.scopes)


@pytest.fixture
def two_regions() -> StaticScopes:
    return StaticScopes(["eu-west-1", "us-east-1"])


@pytest.fixture
def mock_client_manager() -> MagicMock:
    """AWSClientManager stand-in handing out one MagicMock client per (service, region)."""
    manager = MagicMock()
    clients: Dict[tuple, MagicMock] = {}

    def get_client(service, region=None):
        key = (service, region or "us-east-1")
        if key not in clients:
            client = MagicMock()
            client.meta.service_model.service_name = service
            clients[key] = client
        return clients[key]

    manager.get_client.side_effect = get_client
    manager.clients = clients
    manager.get_account_id.return_value = ACCOUNT_ID
    manager.ec2.describe_regions.return_value = {
        "Regions": [{"RegionName": "us-east-1"}, {"RegionName": "eu-west-1"}]
    }
    manager.retry_strategy = RetryStrategy(max_retries=0)
    return manager


def paginator_returning(pages: List[dict]) -> MagicMock:
    """A paginator mock whose paginate() yields the given pages."""
    paginator = MagicMock()
    paginator.paginate.return_value = pages
    return paginator
