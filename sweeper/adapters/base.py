"""Adapter interface for resource kinds.

Resource kinds share nothing structurally; what they share is this contract.
The engine only ever talks to ResourceAdapter, so a new kind is one new
adapter and no engine change.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from sweeper.errors import DeletionError, DiscoveryError, TagLookupError, WaitError, WaitTimeout
from sweeper.models import Category, ResourceDescriptor, Scope, ScopeKind

if TYPE_CHECKING:
    from sweeper.cleanup.execution import ExecutionMode
    from sweeper.utils.aws_client import AWSClientManager

logger = logging.getLogger(__name__)


class ResourceAdapter(ABC):
    """Capability set for one resource kind.

    Subclasses set the class attributes and implement discover/delete.
    lookup_tags and await_terminal are optional; a kind that provides them
    flips supports_tag_lookup / supports_wait.
    """

    kind: str = ""
    category: Category = Category.PLATFORM
    scope_kind: ScopeKind = ScopeKind.REGIONAL
    supports_tag_lookup: bool = False
    supports_wait: bool = False

    @abstractmethod
    def discover(self, scope: Scope) -> Iterator[ResourceDescriptor]:
        """List the live instances of this kind in scope.

        Raises:
            DiscoveryError: If the listing call fails
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, descriptor: ResourceDescriptor, mode: "ExecutionMode") -> None:
        """Delete one resource, routing every mutating call through mode.

        Raises:
            DeletionError: If the provider rejects the deletion
        """
        raise NotImplementedError

    def lookup_tags(self, descriptor: ResourceDescriptor) -> Dict[str, str]:
        """Return the resource's tags.

        Raises:
            TagLookupError: If the tags cannot be fetched
        """
        raise NotImplementedError(f"{self.kind} does not support tag lookup")

    def await_terminal(self, descriptor: ResourceDescriptor, timeout_seconds: int) -> None:
        """Block until the resource is gone or timeout_seconds elapse.

        Raises:
            WaitTimeout: If the resource is still present at the deadline
            WaitError: If polling itself failed
        """
        raise NotImplementedError(f"{self.kind} does not support waiting")

    def applies_to(self, scope: Scope) -> bool:
        """Whether this adapter runs in the given scope."""
        return scope.kind == self.scope_kind

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind} category={self.category.value}>"


def tags_from_list(tag_list: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, str]:
    """Convert an AWS [{'Key': k, 'Value': v}] tag list to a dict."""
    tags: Dict[str, str] = {}
    for tag in tag_list or []:
        key = tag.get("Key", tag.get("key"))
        if key is not None:
            tags[key] = tag.get("Value", tag.get("value", ""))
    return tags


class BotoAdapter(ResourceAdapter):
    """Helper base for adapters backed by one boto3 service.

    Resolves clients through AWSClientManager and translates botocore
    failures into the sweeper's error taxonomy. Subclasses implement
    _list(client, scope), _delete(client, descriptor, mode) and optionally
    _tags(client, descriptor) / _wait(client, descriptor, waiter_config).
    """

    service: str = ""

    # Seconds between polls; MaxAttempts is derived from the timeout
    wait_delay_seconds: int = 15

    def __init__(self, client_manager: "AWSClientManager"):
        self.client_manager = client_manager

    def client(self, scope: Scope) -> Any:
        return self.client_manager.get_client(self.service, scope.region)

    def discover(self, scope: Scope) -> Iterator[ResourceDescriptor]:
        try:
            descriptors = list(self._list(self.client(scope), scope))
        except (ClientError, BotoCoreError) as e:
            raise DiscoveryError(self.kind, scope, e) from e
        logger.debug(f"Discovered {len(descriptors)} {self.kind} in {scope}")
        return iter(descriptors)

    def delete(self, descriptor: ResourceDescriptor, mode: "ExecutionMode") -> None:
        try:
            self._delete(self.client(descriptor.scope), descriptor, mode)
        except (ClientError, BotoCoreError) as e:
            raise DeletionError(descriptor, e) from e

    def lookup_tags(self, descriptor: ResourceDescriptor) -> Dict[str, str]:
        try:
            return self._tags(self.client(descriptor.scope), descriptor)
        except (ClientError, BotoCoreError) as e:
            raise TagLookupError(descriptor, e) from e

    def await_terminal(self, descriptor: ResourceDescriptor, timeout_seconds: int) -> None:
        try:
            self._wait(
                self.client(descriptor.scope),
                descriptor,
                self.waiter_config(timeout_seconds),
            )
        except WaiterError as e:
            if "Max attempts exceeded" in str(e):
                raise WaitTimeout(descriptor, e) from e
            raise WaitError(descriptor, e) from e
        except (ClientError, BotoCoreError) as e:
            raise WaitError(descriptor, e) from e

    def waiter_config(self, timeout_seconds: int) -> Dict[str, int]:
        return {
            "Delay": self.wait_delay_seconds,
            "MaxAttempts": max(1, timeout_seconds // self.wait_delay_seconds),
        }

    def paginate(self, client: Any, operation: str, **params: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator(operation)
        yield from paginator.paginate(**params)

    def descriptor(self, scope: Scope, identity: str, arn_or_key: Optional[str] = None) -> ResourceDescriptor:
        return ResourceDescriptor(
            kind=self.kind,
            scope=scope,
            identity=identity,
            arn_or_key=arn_or_key or identity,
        )

    @abstractmethod
    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        raise NotImplementedError

    @abstractmethod
    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: "ExecutionMode") -> None:
        raise NotImplementedError

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        raise NotImplementedError(f"{self.kind} does not support tag lookup")

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        raise NotImplementedError(f"{self.kind} does not support waiting")


def chunked(items: List[Any], size: int) -> Iterator[List[Any]]:
    """Yield successive lists of at most size items."""
    for i in range(0, len(items), size):
        yield items[i : i + size]


def ec2_resource_tags(client: Any, resource_id: str) -> Dict[str, str]:
    """Tags of any EC2-family resource, looked up by resource ID."""
    tags: Dict[str, str] = {}
    paginator = client.get_paginator("describe_tags")
    for page in paginator.paginate(Filters=[{"Name": "resource-id", "Values": [resource_id]}]):
        tags.update(tags_from_list(page.get("Tags", [])))
    return tags
