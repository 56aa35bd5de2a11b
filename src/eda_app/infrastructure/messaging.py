"""
Provision the new-image topic, the orders queue and its dead-letter queue.
"""

import json
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .resources import QueueDefinition, StackDefinition, topic_policy

logger = get_logger(__name__)

QUEUE_MISSING_CODES = (
    'AWS.SimpleQueueService.NonExistentQueue',
    'QueueDoesNotExist',
)
QUEUE_CONFLICT_CODES = ('QueueAlreadyExists', 'QueueNameExists')


class QueueCreator:
    """Manages the SQS queues of the stack, dead-letter targets first."""

    def __init__(self, stack: StackDefinition, region: str = 'us-east-1'):
        self.stack = stack
        self.region = region
        self.sqs_client = get_boto3_client('sqs', region=region)
        self.queue_urls: Dict[str, str] = {}

    def queue_attributes(self, queue: QueueDefinition) -> Dict[str, str]:
        """
        Build the SQS attributes for a queue definition.

        Args:
            queue: Queue definition

        Returns:
            Attribute map for create_queue / set_queue_attributes.
        """
        attributes = {}
        if queue.retention_seconds is not None:
            attributes['MessageRetentionPeriod'] = str(queue.retention_seconds)

        if queue.dead_letter is not None:
            attributes['RedrivePolicy'] = json.dumps({
                'deadLetterTargetArn': self.stack.queue_arn(queue.dead_letter.queue),
                'maxReceiveCount': queue.dead_letter.max_receive_count,
            })

        return attributes

    def create_queue(self, queue: QueueDefinition) -> str:
        """
        Create a queue, converging attributes if it already exists.

        Args:
            queue: Queue definition

        Returns:
            Queue URL.
        """
        attributes = self.queue_attributes(queue)

        try:
            logger.info(f"Creating SQS queue: {queue.name}")
            response = self.sqs_client.create_queue(
                QueueName=queue.name,
                Attributes=attributes,
                tags={'Project': 'EDA-ImagePipeline', 'ManagedBy': 'Automation'},
            )
            queue_url = response['QueueUrl']
        except ClientError as e:
            if error_code(e) not in QUEUE_CONFLICT_CODES:
                logger.error(f"Failed to create queue {queue.name}: {e}")
                raise

            logger.info(f"Queue {queue.name} exists with different attributes, updating")
            queue_url = self.sqs_client.get_queue_url(QueueName=queue.name)['QueueUrl']
            if attributes:
                self.sqs_client.set_queue_attributes(QueueUrl=queue_url, Attributes=attributes)

        self.queue_urls[queue.logical_id] = queue_url
        logger.info(f"Queue ready: {queue_url}")
        return queue_url

    def provision(self) -> Dict[str, str]:
        """
        Create every queue in redrive order.

        Returns:
            Mapping of logical ID to queue URL.
        """
        for queue in self.stack.dead_letter_queues():
            self.create_queue(queue)
        for queue in self.stack.source_queues():
            self.create_queue(queue)
        return dict(self.queue_urls)

    def get_queue_url(self, logical_id: str) -> str:
        if logical_id not in self.queue_urls:
            name = self.stack.queues[logical_id].name
            self.queue_urls[logical_id] = self.sqs_client.get_queue_url(QueueName=name)['QueueUrl']
        return self.queue_urls[logical_id]

    def get_queue_arn(self, logical_id: str) -> str:
        response = self.sqs_client.get_queue_attributes(
            QueueUrl=self.get_queue_url(logical_id),
            AttributeNames=['QueueArn']
        )
        return response['Attributes']['QueueArn']

    def set_queue_policy(self, logical_id: str, policy: Dict[str, Any]) -> None:
        self.sqs_client.set_queue_attributes(
            QueueUrl=self.get_queue_url(logical_id),
            Attributes={'Policy': json.dumps(policy)}
        )
        logger.info(f"Queue policy set on {self.stack.queues[logical_id].name}")

    def exists(self, logical_id: str) -> bool:
        try:
            self.get_queue_url(logical_id)
            return True
        except ClientError as e:
            if error_code(e) in QUEUE_MISSING_CODES:
                return False
            raise

    def destroy(self) -> List[str]:
        """
        Delete source queues before their dead-letter targets.

        Returns:
            Names of queues deleted.
        """
        deleted = []
        for queue in self.stack.source_queues() + self.stack.dead_letter_queues():
            try:
                self.sqs_client.delete_queue(QueueUrl=self.get_queue_url(queue.logical_id))
                deleted.append(queue.name)
                logger.info(f"Deleted queue {queue.name}")
            except ClientError as e:
                if error_code(e) not in QUEUE_MISSING_CODES:
                    raise
                logger.info(f"Queue {queue.name} does not exist")
            self.queue_urls.pop(queue.logical_id, None)
        return deleted


class TopicCreator:
    """Manages the new-image SNS topic and its subscriptions."""

    def __init__(self, stack: StackDefinition, region: str = 'us-east-1'):
        self.stack = stack
        self.region = region
        self.sns_client = get_boto3_client('sns', region=region)

    def create_topic(self) -> str:
        """
        Create the topic (idempotent on the SNS side).

        Returns:
            Topic ARN.
        """
        topic = self.stack.topic
        logger.info(f"Creating SNS topic: {topic.name}")

        response = self.sns_client.create_topic(
            Name=topic.name,
            Attributes={
                'DisplayName': topic.display_name,
                'FifoTopic': 'false'
            },
            Tags=[
                {'Key': 'Project', 'Value': 'EDA-ImagePipeline'},
                {'Key': 'ManagedBy', 'Value': 'Automation'}
            ]
        )

        topic_arn = response['TopicArn']
        logger.info(f"Created SNS topic: {topic_arn}")
        return topic_arn

    def set_topic_policy(self, topic_arn: str) -> None:
        """Allow the images bucket to publish to the topic."""
        self.sns_client.set_topic_attributes(
            TopicArn=topic_arn,
            AttributeName='Policy',
            AttributeValue=json.dumps(topic_policy(self.stack))
        )
        logger.info("Topic policy set successfully")

    def subscribe(self, topic_arn: str, protocol: str, endpoint: str) -> str:
        """
        Subscribe an endpoint to the topic.

        Args:
            topic_arn: SNS topic ARN
            protocol: 'lambda' or 'sqs'
            endpoint: Function or queue ARN

        Returns:
            Subscription ARN.
        """
        logger.info(f"Subscribing {protocol} endpoint {endpoint} to topic")

        response = self.sns_client.subscribe(
            TopicArn=topic_arn,
            Protocol=protocol,
            Endpoint=endpoint,
            ReturnSubscriptionArn=True
        )

        subscription_arn = response['SubscriptionArn']
        logger.info(f"{protocol} subscription created: {subscription_arn}")
        return subscription_arn

    def list_subscriptions(self, topic_arn: str) -> List[Dict[str, str]]:
        paginator = self.sns_client.get_paginator('list_subscriptions_by_topic')
        subscriptions = []
        for page in paginator.paginate(TopicArn=topic_arn):
            for sub in page.get('Subscriptions', []):
                subscriptions.append({
                    'subscription_arn': sub['SubscriptionArn'],
                    'protocol': sub['Protocol'],
                    'endpoint': sub['Endpoint'],
                })
        return subscriptions

    def exists(self, topic_arn: str) -> bool:
        try:
            self.sns_client.get_topic_attributes(TopicArn=topic_arn)
            return True
        except ClientError as e:
            if error_code(e) == 'NotFound':
                return False
            raise

    def destroy(self, topic_arn: str) -> None:
        # delete_topic also removes subscriptions and is a no-op for missing topics
        self.sns_client.delete_topic(TopicArn=topic_arn)
        logger.info(f"Deleted topic {topic_arn}")
