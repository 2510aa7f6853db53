"""Network adapters: unattached Elastic IPs, NAT gateways and load balancers.

VPCs, subnets, route tables and security groups are never touched.
"""

import logging
from typing import Any, Dict, Iterable

from sweeper.adapters.base import BotoAdapter, ec2_resource_tags, tags_from_list
from sweeper.models import Category, ResourceDescriptor, Scope

logger = logging.getLogger(__name__)


class ElasticIpAdapter(BotoAdapter):
    """Elastic IP allocations that are not associated with anything."""

    kind = "elastic_ip"
    category = Category.NETWORK
    service = "ec2"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for address in client.describe_addresses(
            Filters=[{"Name": "domain", "Values": ["vpc"]}]
        ).get("Addresses", []):
            if address.get("AssociationId"):
                continue
            yield self.descriptor(scope, address["AllocationId"], address.get("PublicIp"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return ec2_resource_tags(client, descriptor.identity)

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "release_address", AllocationId=descriptor.identity)


class NatGatewayAdapter(BotoAdapter):
    """NAT gateways that are not already gone or going."""

    kind = "nat_gateway"
    category = Category.NETWORK
    service = "ec2"
    supports_tag_lookup = True
    supports_wait = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(
            client,
            "describe_nat_gateways",
            Filters=[{"Name": "state", "Values": ["pending", "available", "failed"]}],
        ):
            for gateway in page.get("NatGateways", []):
                yield self.descriptor(scope, gateway["NatGatewayId"])

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return ec2_resource_tags(client, descriptor.identity)

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_nat_gateway", NatGatewayId=descriptor.identity)

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("nat_gateway_deleted").wait(
            NatGatewayIds=[descriptor.identity], WaiterConfig=waiter_config
        )


class LoadBalancerAdapter(BotoAdapter):
    """Application, network and gateway load balancers (ELBv2)."""

    kind = "load_balancer"
    category = Category.NETWORK
    service = "elbv2"
    supports_tag_lookup = True
    supports_wait = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_load_balancers"):
            for lb in page.get("LoadBalancers", []):
                yield self.descriptor(scope, lb["LoadBalancerName"], lb["LoadBalancerArn"])

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        descriptions = client.describe_tags(ResourceArns=[descriptor.arn_or_key]).get("TagDescriptions", [])
        return tags_from_list(descriptions[0].get("Tags")) if descriptions else {}

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_load_balancer", LoadBalancerArn=descriptor.arn_or_key)

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("load_balancers_deleted").wait(
            LoadBalancerArns=[descriptor.arn_or_key], WaiterConfig=waiter_config
        )
