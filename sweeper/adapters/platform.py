"""Platform adapters: ECR repositories, CodePipeline pipelines, SQS queues,
SNS topics, Step Functions state machines and CloudWatch log groups.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from sweeper.adapters.base import BotoAdapter, tags_from_list
from sweeper.models import Category, ResourceDescriptor, Scope

logger = logging.getLogger(__name__)


class EcrRepositoryAdapter(BotoAdapter):
    """ECR repositories, deleted together with their images."""

    kind = "ecr_repository"
    category = Category.PLATFORM
    service = "ecr"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_repositories"):
            for repo in page.get("repositories", []):
                yield self.descriptor(scope, repo["repositoryName"], repo.get("repositoryArn"))

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        response = client.list_tags_for_resource(resourceArn=descriptor.arn_or_key)
        return tags_from_list(response.get("tags"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_repository", repositoryName=descriptor.identity, force=True)


class CodePipelineAdapter(BotoAdapter):
    kind = "codepipeline_pipeline"
    category = Category.PLATFORM
    service = "codepipeline"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_pipelines"):
            for pipeline in page.get("pipelines", []):
                yield self.descriptor(scope, pipeline["name"])

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        arn = client.get_pipeline(name=descriptor.identity)["metadata"]["pipelineArn"]
        return tags_from_list(client.list_tags_for_resource(resourceArn=arn).get("tags"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_pipeline", name=descriptor.identity)


class SqsQueueAdapter(BotoAdapter):
    """SQS queues, identified by name and deleted by URL."""

    kind = "sqs_queue"
    category = Category.PLATFORM
    service = "sqs"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_queues"):
            for url in page.get("QueueUrls", []):
                yield self.descriptor(scope, url.rstrip("/").rsplit("/", 1)[-1], url)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return dict(client.list_queue_tags(QueueUrl=descriptor.arn_or_key).get("Tags") or {})

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_queue", QueueUrl=descriptor.arn_or_key)


class SnsTopicAdapter(BotoAdapter):
    """SNS topics, except the sweeper's own notification topic."""

    kind = "sns_topic"
    category = Category.PLATFORM
    service = "sns"
    supports_tag_lookup = True

    def __init__(self, client_manager: Any, exclude_arns: Optional[Iterable[str]] = None):
        super().__init__(client_manager)
        self.exclude_arns = frozenset(arn for arn in (exclude_arns or ()) if arn)

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_topics"):
            for topic in page.get("Topics", []):
                arn = topic["TopicArn"]
                if arn in self.exclude_arns:
                    logger.info(f"Leaving notification topic {arn} in place")
                    continue
                yield self.descriptor(scope, arn.rsplit(":", 1)[-1], arn)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        response = client.list_tags_for_resource(ResourceArn=descriptor.arn_or_key)
        return tags_from_list(response.get("Tags"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_topic", TopicArn=descriptor.arn_or_key)


class StepFunctionsStateMachineAdapter(BotoAdapter):
    kind = "step_functions_state_machine"
    category = Category.PLATFORM
    service = "stepfunctions"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "list_state_machines"):
            for machine in page.get("stateMachines", []):
                yield self.descriptor(scope, machine["name"], machine["stateMachineArn"])

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        response = client.list_tags_for_resource(resourceArn=descriptor.arn_or_key)
        return tags_from_list(response.get("tags"))

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_state_machine", stateMachineArn=descriptor.arn_or_key)


class LogGroupAdapter(BotoAdapter):
    """CloudWatch Logs log groups."""

    kind = "log_group"
    category = Category.PLATFORM
    service = "logs"
    supports_tag_lookup = True

    def _list(self, client: Any, scope: Scope) -> Iterable[ResourceDescriptor]:
        for page in self.paginate(client, "describe_log_groups"):
            for group in page.get("logGroups", []):
                arn = group.get("arn", "")
                # describe_log_groups returns the ARN with a trailing ":*"
                if arn.endswith(":*"):
                    arn = arn[:-2]
                yield self.descriptor(scope, group["logGroupName"], arn or None)

    def _tags(self, client: Any, descriptor: ResourceDescriptor) -> Dict[str, str]:
        return dict(client.list_tags_for_resource(resourceArn=descriptor.arn_or_key).get("tags") or {})

    def _delete(self, client: Any, descriptor: ResourceDescriptor, mode: Any) -> None:
        mode.invoke(client, "delete_log_group", logGroupName=descriptor.identity)
