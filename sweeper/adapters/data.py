"""Data adapters: RDS instances, clusters and snapshots, ElastiCache,
OpenSearch domains and S3 buckets.

RDS deletions never take a final snapshot and instances drop their
automated backups. S3 buckets are emptied of every object version and
delete marker before the bucket itself is removed.
"""

import logging
from typing import Any, Dict, Iterable, List

from botocore.exceptions import ClientError

from sweeper.adapters.base import BotoAdapter, chunked, tags_from_list
from sweeper.errors import DeletionError
from sweeper.models import Category, ResourceDescriptor, Scope, ScopeKind

logger = logging.getLogger(__name__)

# delete_objects accepts at most this many keys per request
S3_DELETE_BATCH_SIZE = 1000

# describe_domains accepts at most this many names per request
OPENSEARCH_DESCRIBE_BATCH_SIZE = 5


class _RdsTagsMixin:
    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        response = client.list_tags_for_resource(ResourceName=descriptor.arn_or_key)
        return tags_from_list(response.get("TagList"))


class RdsInstanceAdapter(_RdsTagsMixin, BotoAdapter):
    """Standalone RDS DB instances.

    Instances that belong to a cluster are deleted by RdsClusterAdapter,
    which has to remove members before the cluster.
    """

    kind = "rds_instance"
    category = Category.DATA
    service = "rds"
    supports_tag_lookup = True
    supports_wait = True
    wait_delay_seconds = 30

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_db_instances"):
            for instance in page.get("DBInstances", []):
                if instance.get("DBClusterIdentifier"):
                    continue
                if instance.get("DBInstanceStatus") == "deleting":
                    continue
                yield self.descriptor(
                    scope, instance["DBInstanceIdentifier"], instance.get("DBInstanceArn")
                )

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(
            client,
            "delete_db_instance",
            DBInstanceIdentifier=descriptor.identity,
            SkipFinalSnapshot=True,
            DeleteAutomatedBackups=True,
        )

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("db_instance_deleted").wait(
            DBInstanceIdentifier=descriptor.identity, WaiterConfig=waiter_config
        )


class RdsClusterAdapter(_RdsTagsMixin, BotoAdapter):
    """RDS/Aurora DB clusters together with their member instances."""

    kind = "rds_cluster"
    category = Category.DATA
    service = "rds"
    supports_tag_lookup = True
    supports_wait = True
    wait_delay_seconds = 30

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_db_clusters"):
            for cluster in page.get("DBClusters", []):
                if cluster.get("Status") == "deleting":
                    continue
                yield self.descriptor(
                    scope, cluster["DBClusterIdentifier"], cluster.get("DBClusterArn")
                )

    def _members(self, client: Any, cluster_id: str) -> List[str]:
        clusters = client.describe_db_clusters(DBClusterIdentifier=cluster_id).get("DBClusters", [])
        if not clusters:
            return []
        return [m["DBInstanceIdentifier"] for m in clusters[0].get("DBClusterMembers", [])]

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        members = self._members(client, descriptor.identity)
        for member in members:
            mode.invoke(
                client,
                "delete_db_instance",
                DBInstanceIdentifier=member,
                SkipFinalSnapshot=True,
                DeleteAutomatedBackups=True,
            )
        for member in members:
            mode.wait(
                client,
                "db_instance_deleted",
                delay_seconds=self.wait_delay_seconds,
                DBInstanceIdentifier=member,
            )

        mode.invoke(
            client,
            "delete_db_cluster",
            DBClusterIdentifier=descriptor.identity,
            SkipFinalSnapshot=True,
        )

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        client.get_waiter("db_cluster_deleted").wait(
            DBClusterIdentifier=descriptor.identity, WaiterConfig=waiter_config
        )


class RdsSnapshotAdapter(_RdsTagsMixin, BotoAdapter):
    """Manual RDS DB snapshots. Automated snapshots go with their instance."""

    kind = "rds_snapshot"
    category = Category.DATA
    service = "rds"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_db_snapshots", SnapshotType="manual"):
            for snapshot in page.get("DBSnapshots", []):
                yield self.descriptor(
                    scope, snapshot["DBSnapshotIdentifier"], snapshot.get("DBSnapshotArn")
                )

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_db_snapshot", DBSnapshotIdentifier=descriptor.identity)


class ElastiCacheClusterAdapter(BotoAdapter):
    """ElastiCache replication groups and standalone cache clusters.

    Clusters inside a replication group cannot be deleted on their own, so
    the group is the unit of deletion for them.
    """

    kind = "elasticache_cluster"
    category = Category.DATA
    service = "elasticache"
    supports_tag_lookup = True
    supports_wait = True
    wait_delay_seconds = 30

    @staticmethod
    def is_replication_group(descriptor: ResourceDescriptor) -> bool:
        return ":replicationgroup:" in descriptor.arn_or_key

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_replication_groups"):
            for group in page.get("ReplicationGroups", []):
                if group.get("Status") == "deleting":
                    continue
                yield self.descriptor(scope, group["ReplicationGroupId"], group.get("ARN"))

        for page in self.paginate(client, "describe_cache_clusters"):
            for cluster in page.get("CacheClusters", []):
                if cluster.get("ReplicationGroupId") or cluster.get("CacheClusterStatus") == "deleting":
                    continue
                yield self.descriptor(scope, cluster["CacheClusterId"], cluster.get("ARN"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        response = client.list_tags_for_resource(ResourceName=descriptor.arn_or_key)
        return tags_from_list(response.get("TagList"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        if self.is_replication_group(descriptor):
            mode.invoke(
                client,
                "delete_replication_group",
                ReplicationGroupId=descriptor.identity,
                RetainPrimaryCluster=False,
            )
        else:
            mode.invoke(client, "delete_cache_cluster", CacheClusterId=descriptor.identity)

    def _wait(self, client: Any, descriptor: ResourceDescriptor, waiter_config: Dict[str, int]) -> None:
        if self.is_replication_group(descriptor):
            client.get_waiter("replication_group_deleted").wait(
                ReplicationGroupId=descriptor.identity, WaiterConfig=waiter_config
            )
        else:
            client.get_waiter("cache_cluster_deleted").wait(
                CacheClusterId=descriptor.identity, WaiterConfig=waiter_config
            )


class OpenSearchDomainAdapter(BotoAdapter):
    """OpenSearch Service domains."""

    kind = "opensearch_domain"
    category = Category.DATA
    service = "opensearch"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        names = [d["DomainName"] for d in client.list_domain_names().get("DomainNames", [])]
        for batch in chunked(names, OPENSEARCH_DESCRIBE_BATCH_SIZE):
            for domain in client.describe_domains(DomainNames=batch).get("DomainStatusList", []):
                if domain.get("Deleted"):
                    continue
                yield self.descriptor(scope, domain["DomainName"], domain.get("ARN"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return tags_from_list(client.list_tags(ARN=descriptor.arn_or_key).get("TagList"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_domain", DomainName=descriptor.identity)


class S3BucketAdapter(BotoAdapter):
    """S3 buckets. Bucket names are global, so this adapter runs once per sweep."""

    kind = "s3_bucket"
    category = Category.DATA
    scope_kind = ScopeKind.GLOBAL
    service = "s3"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for bucket in client.list_buckets().get("Buckets", []):
            name = bucket["Name"]
            yield self.descriptor(scope, name, f"arn:aws:s3:::{name}")

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        try:
            response = client.get_bucket_tagging(Bucket=descriptor.identity)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "NoSuchTagSet":
                return {}
            raise
        return tags_from_list(response.get("TagSet"))

    def bucket_region(self, client: Any, bucket: str) -> str:
        """Region the bucket lives in; legacy location constraints normalized."""
        location = client.get_bucket_location(Bucket=bucket).get("LocationConstraint")
        if not location:
            return "us-east-1"
        if location == "EU":
            return "eu-west-1"
        return location

    def _object_versions(self, client: Any, bucket: str) -> List[Dict[str, str]]:
        objects: List[Dict[str, str]] = []
        for page in self.paginate(client, "list_object_versions", Bucket=bucket):
            for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
                objects.append({"Key": entry["Key"], "VersionId": entry["VersionId"]})
        return objects

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        bucket = descriptor.identity
        regional_client = self.client_manager.get_client(self.service, self.bucket_region(client, bucket))

        objects = self._object_versions(regional_client, bucket)
        if objects:
            logger.info(f"Emptying bucket {bucket}: {len(objects)} object version(s)")

        for batch in chunked(objects, S3_DELETE_BATCH_SIZE):
            response = mode.invoke(
                regional_client,
                "delete_objects",
                Bucket=bucket,
                Delete={"Objects": batch, "Quiet": True},
            )
            errors = (response or {}).get("Errors", [])
            if errors:
                first = errors[0]
                raise DeletionError(
                    descriptor,
                    RuntimeError(
                        f"{len(errors)} object(s) could not be deleted, "
                        f"first {first.get('Key')}: {first.get('Code')} {first.get('Message', '')}".strip()
                    ),
                )

        mode.invoke(regional_client, "delete_bucket", Bucket=bucket)
