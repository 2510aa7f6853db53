"""Compute adapters: EKS clusters, Lambda functions, API Gateway REST APIs
and CloudFormation stacks.

These run first so that nothing is still consuming the data stores,
network endpoints and platform services deleted in later categories.
"""

import logging
from typing import Any, Dict, Iterable

from sweeper.adapters.base import BotoAdapter, tags_from_list
from sweeper.models import Category, ResourceDescriptor, Scope

logger = logging.getLogger(__name__)


class EksClusterAdapter(BotoAdapter):
    """EKS clusters. Managed node groups are deleted and drained first."""

    kind = "eks_cluster"
    category = Category.COMPUTE
    service = "eks"
    supports_tag_lookup = True
    supports_wait = True
    wait_delay_seconds = 30

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_clusters"):
            for name in page.get("clusters", []):
                yield self.descriptor(scope, name)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        cluster = client.describe_cluster(name=descriptor.identity)["cluster"]
        return dict(cluster.get("tags") or {})

    def _nodegroups(self, client: Any, cluster_name: str) -> list[str]:
        nodegroups: list[str] = []
        for page in self.paginate(client, "list_nodegroups", clusterName=cluster_name):
            nodegroups.extend(page.get("nodegroups", []))
        return nodegroups

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        cluster_name = descriptor.identity
        nodegroups = self._nodegroups(client, cluster_name)

        for nodegroup in nodegroups:
            mode.invoke(client, "delete_nodegroup", clusterName=cluster_name, nodegroupName=nodegroup)

        # The cluster cannot be deleted while any node group still exists
        for nodegroup in nodegroups:
            mode.wait(
                client,
                "nodegroup_deleted",
                delay_seconds=self.wait_delay_seconds,
                clusterName=cluster_name,
                nodegroupName=nodegroup,
            )

        mode.invoke(client, "delete_cluster", name=cluster_name)

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("cluster_deleted").wait(name=descriptor.identity, WaiterConfig=waiter_config)


class LambdaFunctionAdapter(BotoAdapter):
    """Lambda functions (all versions and aliases go with the function)."""

    kind = "lambda_function"
    category = Category.COMPUTE
    service = "lambda"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_functions"):
            for function in page.get("Functions", []):
                yield self.descriptor(scope, function["FunctionName"], function.get("FunctionArn"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return dict(client.list_tags(Resource=descriptor.arn_or_key).get("Tags") or {})

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_function", FunctionName=descriptor.identity)


class ApiGatewayRestApiAdapter(BotoAdapter):
    """API Gateway REST APIs."""

    kind = "api_gateway_rest_api"
    category = Category.COMPUTE
    service = "apigateway"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "get_rest_apis"):
            for api in page.get("items", []):
                arn = f"arn:aws:apigateway:{scope.region}::/restapis/{api['id']}"
                yield self.descriptor(scope, api["id"], arn)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return dict(client.get_tags(resourceArn=descriptor.arn_or_key).get("tags") or {})

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_rest_api", restApiId=descriptor.identity)


class CloudFormationStackAdapter(BotoAdapter):
    """Top-level CloudFormation stacks.

    Nested stacks are left to their parent; deleting the parent removes them.
    """

    kind = "cloudformation_stack"
    category = Category.COMPUTE
    service = "cloudformation"
    supports_tag_lookup = True
    supports_wait = True
    wait_delay_seconds = 30

    SKIP_STATUSES = frozenset({"DELETE_COMPLETE", "DELETE_IN_PROGRESS"})

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_stacks"):
            for stack in page.get("Stacks", []):
                if stack.get("StackStatus") in self.SKIP_STATUSES:
                    continue
                if stack.get("ParentId") or stack.get("RootId"):
                    logger.debug(f"Skipping nested stack {stack['StackName']}")
                    continue
                yield self.descriptor(scope, stack["StackName"], stack.get("StackId"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        stacks = client.describe_stacks(StackName=descriptor.arn_or_key).get("Stacks", [])
        return tags_from_list(stacks[0].get("Tags")) if stacks else {}

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_stack", StackName=descriptor.identity)

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("stack_delete_complete").wait(
            StackName=descriptor.arn_or_key, WaiterConfig=waiter_config
        )
