"""Resource adapters, one per resource kind."""

from typing import Any, List, Optional

from sweeper.adapters.base import BotoAdapter, ResourceAdapter
from sweeper.adapters.compute import (
    ApiGatewayRestApiAdapter,
    CloudFormationStackAdapter,
    EksClusterAdapter,
    LambdaFunctionAdapter,
)
from sweeper.adapters.data import (
    ElastiCacheClusterAdapter,
    OpenSearchDomainAdapter,
    RdsClusterAdapter,
    RdsInstanceAdapter,
    RdsSnapshotAdapter,
    S3BucketAdapter,
)
from sweeper.adapters.network import ElasticIpAdapter, LoadBalancerAdapter, NatGatewayAdapter
from sweeper.adapters.orphans import EbsSnapshotAdapter
from sweeper.adapters.platform import (
    CodePipelineAdapter,
    EcrRepositoryAdapter,
    LogGroupAdapter,
    SnsTopicAdapter,
    SqsQueueAdapter,
    StepFunctionsStateMachineAdapter,
)


def default_adapters(client_manager: Any, notification_topic_arn: Optional[str] = None) -> List[ResourceAdapter]:
    """
    Build the standard adapter set.

    Args:
        client_manager: AWSClientManager shared by every adapter
        notification_topic_arn: Topic the sweeper reports to; never swept

    Returns:
        One adapter per supported resource kind
    """
    return [
        EksClusterAdapter(client_manager),
        LambdaFunctionAdapter(client_manager),
        ApiGatewayRestApiAdapter(client_manager),
        CloudFormationStackAdapter(client_manager),
        RdsInstanceAdapter(client_manager),
        RdsClusterAdapter(client_manager),
        RdsSnapshotAdapter(client_manager),
        ElastiCacheClusterAdapter(client_manager),
        OpenSearchDomainAdapter(client_manager),
        S3BucketAdapter(client_manager),
        ElasticIpAdapter(client_manager),
        NatGatewayAdapter(client_manager),
        LoadBalancerAdapter(client_manager),
        EcrRepositoryAdapter(client_manager),
        CodePipelineAdapter(client_manager),
        SqsQueueAdapter(client_manager),
        SnsTopicAdapter(client_manager, exclude_arns=[notification_topic_arn] if notification_topic_arn else None),
        StepFunctionsStateMachineAdapter(client_manager),
        LogGroupAdapter(client_manager),
        EbsSnapshotAdapter(client_manager),
    ]


__all__ = [
    "ResourceAdapter",
    "BotoAdapter",
    "default_adapters",
    "EksClusterAdapter",
    "LambdaFunctionAdapter",
    "ApiGatewayRestApiAdapter",
    "CloudFormationStackAdapter",
    "RdsInstanceAdapter",
    "RdsClusterAdapter",
    "RdsSnapshotAdapter",
    "ElastiCacheClusterAdapter",
    "OpenSearchDomainAdapter",
    "S3BucketAdapter",
    "ElasticIpAdapter",
    "NatGatewayAdapter",
    "LoadBalancerAdapter",
    "EcrRepositoryAdapter",
    "CodePipelineAdapter",
    "SqsQueueAdapter",
    "SnsTopicAdapter",
    "StepFunctionsStateMachineAdapter",
    "LogGroupAdapter",
    "EbsSnapshotAdapter",
]
