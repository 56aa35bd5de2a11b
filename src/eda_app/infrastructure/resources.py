"""
Declarative resource graph for the image pipeline.

``build_stack`` turns a ``Config`` into a ``StackDefinition``: every
resource, its physical name, the wiring between resources and the IAM
grants each function receives. The provisioning classes apply this
definition with boto3; nothing here talks to AWS.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..config import Config

BUCKET = "images"
TABLE = "ImagesTable"
TOPIC = "NewImageTopic"
ORDERS_QUEUE = "orders-queue"
BAD_ORDERS_QUEUE = "bad-orders-q"
MAILER_FN = "mailer-function"
FAILED_MAILER_FN = "failed-mailer-function"
PROCESS_IMAGE_FN = "ProcessImageFn"

OBJECT_CREATED = "s3:ObjectCreated:*"
SES_SEND_ACTIONS = [
    "ses:SendEmail",
    "ses:SendRawEmail",
    "ses:SendTemplatedEmail",
]
LAMBDA_BASIC_EXECUTION_POLICY = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)


class RemovalPolicy(str, Enum):
    DESTROY = "destroy"
    RETAIN = "retain"


class PolicyStatement(BaseModel):
    """A single IAM policy statement."""

    actions: List[str]
    resources: List[str]
    effect: str = "Allow"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }


class BucketDefinition(BaseModel):
    logical_id: str = BUCKET
    name: str
    public_read_access: bool = False
    auto_delete_objects: bool = True
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    notification_events: List[str] = Field(default_factory=lambda: [OBJECT_CREATED])
    notification_topic: str = TOPIC

    @property
    def arn(self) -> str:
        return f"arn:aws:s3:::{self.name}"


class KeyDefinition(BaseModel):
    name: str
    type: str = "S"


class TableDefinition(BaseModel):
    logical_id: str = TABLE
    name: str
    billing_mode: str = "PAY_PER_REQUEST"
    partition_key: KeyDefinition = Field(default_factory=lambda: KeyDefinition(name="imageName"))
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY


class DeadLetterDefinition(BaseModel):
    queue: str
    max_receive_count: int


class QueueDefinition(BaseModel):
    logical_id: str
    name: str
    retention_seconds: Optional[int] = None
    dead_letter: Optional[DeadLetterDefinition] = None


class SubscriptionDefinition(BaseModel):
    protocol: str
    target: str


class TopicDefinition(BaseModel):
    logical_id: str = TOPIC
    name: str
    display_name: str
    subscriptions: List[SubscriptionDefinition] = Field(default_factory=list)


class FunctionDefinition(BaseModel):
    logical_id: str
    name: str
    handler: str
    runtime: str
    memory_size: int
    timeout: int
    environment: Dict[str, str] = Field(default_factory=dict)
    statements: List[PolicyStatement] = Field(default_factory=list)

    @property
    def role_name(self) -> str:
        return f"{self.name}-role"


class EventSourceDefinition(BaseModel):
    queue: str
    function: str
    batch_size: int
    max_batching_window_seconds: int
    max_concurrency: int


class StackDefinition(BaseModel):
    """The complete resource graph with ARN resolution helpers."""

    name: str
    region: str
    account_id: str
    bucket: BucketDefinition
    table: TableDefinition
    topic: TopicDefinition
    queues: Dict[str, QueueDefinition]
    functions: Dict[str, FunctionDefinition]
    event_sources: List[EventSourceDefinition]

    def _arn(self, service: str, resource: str) -> str:
        return f"arn:aws:{service}:{self.region}:{self.account_id}:{resource}"

    def queue_arn(self, logical_id: str) -> str:
        return self._arn("sqs", self.queues[logical_id].name)

    def function_arn(self, logical_id: str) -> str:
        return self._arn("lambda", f"function:{self.functions[logical_id].name}")

    @property
    def topic_arn(self) -> str:
        return self._arn("sns", self.topic.name)

    @property
    def table_arn(self) -> str:
        return self._arn("dynamodb", f"table/{self.table.name}")

    def dead_letter_queues(self) -> List[QueueDefinition]:
        """Queues that are redrive targets, so they can be created first."""
        targets = {
            q.dead_letter.queue for q in self.queues.values() if q.dead_letter is not None
        }
        return [q for q in self.queues.values() if q.logical_id in targets]

    def source_queues(self) -> List[QueueDefinition]:
        dlq_ids = {q.logical_id for q in self.dead_letter_queues()}
        return [q for q in self.queues.values() if q.logical_id not in dlq_ids]

    def outputs(self) -> Dict[str, str]:
        return {"bucketName": self.bucket.name}


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------

def grant_read(bucket: BucketDefinition) -> PolicyStatement:
    return PolicyStatement(
        actions=["s3:GetObject*", "s3:GetBucket*", "s3:List*"],
        resources=[bucket.arn, f"{bucket.arn}/*"],
    )


def grant_send_messages(queue_arn: str) -> PolicyStatement:
    return PolicyStatement(
        actions=["sqs:SendMessage", "sqs:GetQueueAttributes", "sqs:GetQueueUrl"],
        resources=[queue_arn],
    )


def grant_consume_messages(queue_arn: str) -> PolicyStatement:
    return PolicyStatement(
        actions=[
            "sqs:ReceiveMessage",
            "sqs:ChangeMessageVisibility",
            "sqs:GetQueueUrl",
            "sqs:DeleteMessage",
            "sqs:GetQueueAttributes",
        ],
        resources=[queue_arn],
    )


def grant_read_write_data(table_arn: str) -> PolicyStatement:
    return PolicyStatement(
        actions=[
            "dynamodb:BatchGetItem",
            "dynamodb:GetItem",
            "dynamodb:Query",
            "dynamodb:Scan",
            "dynamodb:ConditionCheckItem",
            "dynamodb:BatchWriteItem",
            "dynamodb:PutItem",
            "dynamodb:UpdateItem",
            "dynamodb:DeleteItem",
            "dynamodb:DescribeTable",
        ],
        resources=[table_arn],
    )


def ses_send_statement() -> PolicyStatement:
    return PolicyStatement(actions=list(SES_SEND_ACTIONS), resources=["*"])


def policy_document(statements: List[PolicyStatement]) -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [statement.to_dict() for statement in statements],
    }


# ---------------------------------------------------------------------------
# Resource policies
# ---------------------------------------------------------------------------

def topic_policy(stack: StackDefinition) -> Dict[str, Any]:
    """Allow the images bucket to publish object-created events to the topic."""
    return {
        "Version": "2012-10-17",
        "Id": "NewImageTopicPolicy",
        "Statement": [
            {
                "Sid": "AllowS3Publish",
                "Effect": "Allow",
                "Principal": {"Service": "s3.amazonaws.com"},
                "Action": "SNS:Publish",
                "Resource": stack.topic_arn,
                "Condition": {
                    "ArnLike": {"aws:SourceArn": stack.bucket.arn},
                    "StringEquals": {"aws:SourceAccount": stack.account_id},
                },
            }
        ],
    }


def queue_policy(stack: StackDefinition, logical_id: str) -> Dict[str, Any]:
    """Allow the topic to deliver into a subscribed queue."""
    queue_arn = stack.queue_arn(logical_id)
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "AllowTopicSendMessage",
                "Effect": "Allow",
                "Principal": {"Service": "sns.amazonaws.com"},
                "Action": "sqs:SendMessage",
                "Resource": queue_arn,
                "Condition": {"ArnEquals": {"aws:SourceArn": stack.topic_arn}},
            }
        ],
    }


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

def build_stack(config: Config, account_id: str) -> StackDefinition:
    """
    Describe the image pipeline for one account and region.

    Args:
        config: Project configuration
        account_id: AWS account the stack is deployed into

    Returns:
        StackDefinition with all grants resolved to ARNs.
    """
    pipeline = config.pipeline
    region = config.aws.region

    bucket = BucketDefinition(name=f"{account_id}-{pipeline.stack_name}-images".lower())
    table = TableDefinition(name=pipeline.table_name)

    queues = {
        BAD_ORDERS_QUEUE: QueueDefinition(
            logical_id=BAD_ORDERS_QUEUE,
            name=pipeline.resource_name(pipeline.bad_orders_queue_name),
            retention_seconds=pipeline.dlq_retention_seconds,
        ),
        ORDERS_QUEUE: QueueDefinition(
            logical_id=ORDERS_QUEUE,
            name=pipeline.resource_name(pipeline.orders_queue_name),
            dead_letter=DeadLetterDefinition(
                queue=BAD_ORDERS_QUEUE,
                max_receive_count=pipeline.max_receive_count,
            ),
        ),
    }

    topic = TopicDefinition(
        name=pipeline.resource_name(pipeline.topic_name),
        display_name=pipeline.topic_display_name,
        subscriptions=[
            SubscriptionDefinition(protocol="lambda", target=MAILER_FN),
            SubscriptionDefinition(protocol="sqs", target=ORDERS_QUEUE),
        ],
    )

    ses_environment = config.ses.as_environment()

    functions = {
        MAILER_FN: FunctionDefinition(
            logical_id=MAILER_FN,
            name=pipeline.resource_name(MAILER_FN),
            handler="eda_app.lambdas.mailer.lambda_handler",
            runtime=pipeline.runtime,
            memory_size=pipeline.mailer.memory_size,
            timeout=pipeline.mailer.timeout,
            environment=dict(ses_environment),
        ),
        FAILED_MAILER_FN: FunctionDefinition(
            logical_id=FAILED_MAILER_FN,
            name=pipeline.resource_name(FAILED_MAILER_FN),
            handler="eda_app.lambdas.rejection_mailer.lambda_handler",
            runtime=pipeline.runtime,
            memory_size=pipeline.failed_mailer.memory_size,
            timeout=pipeline.failed_mailer.timeout,
            environment=dict(ses_environment),
        ),
        PROCESS_IMAGE_FN: FunctionDefinition(
            logical_id=PROCESS_IMAGE_FN,
            name=pipeline.resource_name(PROCESS_IMAGE_FN),
            handler="eda_app.lambdas.process_image.lambda_handler",
            runtime=pipeline.runtime,
            memory_size=pipeline.process_image.memory_size,
            timeout=pipeline.process_image.timeout,
            environment={
                "TABLE_NAME": table.name,
                "ALLOWED_EXTENSIONS": ",".join(pipeline.allowed_extensions),
            },
        ),
    }

    event_sources = [
        EventSourceDefinition(
            queue=BAD_ORDERS_QUEUE,
            function=FAILED_MAILER_FN,
            batch_size=pipeline.batch_size,
            max_batching_window_seconds=pipeline.max_batching_window_seconds,
            max_concurrency=pipeline.max_concurrency,
        ),
        EventSourceDefinition(
            queue=ORDERS_QUEUE,
            function=PROCESS_IMAGE_FN,
            batch_size=pipeline.batch_size,
            max_batching_window_seconds=pipeline.max_batching_window_seconds,
            max_concurrency=pipeline.max_concurrency,
        ),
    ]

    stack = StackDefinition(
        name=pipeline.stack_name,
        region=region,
        account_id=account_id,
        bucket=bucket,
        table=table,
        topic=topic,
        queues=queues,
        functions=functions,
        event_sources=event_sources,
    )

    # Permissions
    process_image = stack.functions[PROCESS_IMAGE_FN]
    failed_mailer = stack.functions[FAILED_MAILER_FN]
    mailer = stack.functions[MAILER_FN]

    process_image.statements.append(grant_read(bucket))
    failed_mailer.statements.append(grant_send_messages(stack.queue_arn(BAD_ORDERS_QUEUE)))
    failed_mailer.statements.append(grant_send_messages(stack.queue_arn(ORDERS_QUEUE)))
    process_image.statements.append(grant_read_write_data(stack.table_arn))

    for source in event_sources:
        stack.functions[source.function].statements.append(
            grant_consume_messages(stack.queue_arn(source.queue))
        )

    mailer.statements.append(ses_send_statement())
    failed_mailer.statements.append(ses_send_statement())

    return stack
