"""Orphan adapters.

An EBS snapshot is an orphan when the account owns it and no image owned by
the account references it. Snapshots backing a registered AMI are never
candidates; deregistering images is out of scope.
"""

import logging
from typing import Any, Dict, Iterable, Set

from sweeper.adapters.base import BotoAdapter, ec2_resource_tags
from sweeper.models import Category, ResourceDescriptor, Scope

logger = logging.getLogger(__name__)


class EbsSnapshotAdapter(BotoAdapter):
    kind = "ebs_snapshot"
    category = Category.ORPHANS
    service = "ec2"
    supports_tag_lookup = True

    def image_snapshot_ids(self, client: Any) -> Set[str]:
        """
        Get snapshot IDs referenced by AMIs the account owns.

        Args:
            client: EC2 client for the scope

        Returns:
            Set of snapshot IDs backing registered images
        """
        snapshot_ids: Set[str] = set()
        for page in self.paginate(client, "describe_images", Owners=["self"]):
            for image in page.get("Images", []):
                for mapping in image.get("BlockDeviceMappings", []):
                    snapshot_id = mapping.get("Ebs", {}).get("SnapshotId")
                    if snapshot_id:
                        snapshot_ids.add(snapshot_id)
        return snapshot_ids

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        referenced = self.image_snapshot_ids(client)
        for page in self.paginate(client, "describe_snapshots", OwnerIds=["self"]):
            for snapshot in page.get("Snapshots", []):
                snapshot_id = snapshot["SnapshotId"]
                if snapshot_id in referenced:
                    logger.debug(f"Snapshot {snapshot_id} backs a registered AMI, not an orphan")
                    continue
                yield self.descriptor(scope, snapshot_id)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return ec2_resource_tags(client, descriptor.identity)

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_snapshot", SnapshotId=descriptor.identity)
