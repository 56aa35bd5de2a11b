"""
The EDA image pipeline stack.

Deploys, in dependency order:
- Image lookup table
- Bad-orders dead-letter queue, then the orders queue redriving into it
- New-image topic with a publish policy for the bucket
- Execution roles and the three Lambda functions
- Topic subscriptions (mailer function, orders queue)
- SQS event sources (bad-orders -> rejection mailer, orders -> image processor)
- Images bucket publishing ObjectCreated events to the topic
"""

from pathlib import Path
from typing import Dict, Optional

from ..config import Config, config as default_config
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_account_id
from .functions import FunctionDeployer, create_deployment_package
from .iam import LambdaRoleCreator
from .messaging import QueueCreator, TopicCreator
from .resources import StackDefinition, build_stack, queue_policy
from .storage import ImagesBucketCreator, ImagesTableCreator

logger = get_logger(__name__)

DIST_DIR = Path.cwd() / 'dist'


class StackConfigurationError(ValueError):
    """Raised when the stack cannot be deployed with the current configuration."""


class EDAAppStack:
    """Applies the image pipeline resource graph with boto3."""

    def __init__(
        self,
        app_config: Optional[Config] = None,
        account_id: Optional[str] = None,
        dist_dir: Path = DIST_DIR
    ):
        """
        Initialize the stack.

        Args:
            app_config: Project configuration. Defaults to the global config.
            account_id: AWS account ID. If None, resolved via STS.
            dist_dir: Directory for the Lambda deployment package.
        """
        self.config = app_config or default_config
        self.region = self.config.aws.region
        self.account_id = account_id or get_account_id(self.region)
        self.definition = build_stack(self.config, self.account_id)
        self.dist_dir = dist_dir

        self.table_creator = ImagesTableCreator(self.definition.table, region=self.region)
        self.queue_creator = QueueCreator(self.definition, region=self.region)
        self.topic_creator = TopicCreator(self.definition, region=self.region)
        self.role_creator = LambdaRoleCreator(region=self.region)
        self.function_deployer = FunctionDeployer(self.definition, region=self.region)
        self.bucket_creator = ImagesBucketCreator(self.definition.bucket, region=self.region)

        logger.info(f"Initialized {self.definition.name} in {self.region} ({self.account_id})")

    def synth(self) -> StackDefinition:
        """Return the resource graph without touching AWS."""
        return self.definition

    def deploy(self) -> Dict[str, str]:
        """
        Provision or update every resource of the stack.

        Returns:
            Stack outputs.

        Raises:
            StackConfigurationError: If the SES settings are incomplete.
        """
        if not self.config.ses.is_complete:
            raise StackConfigurationError(
                "SES_EMAIL_FROM, SES_EMAIL_TO and SES_REGION must be set before deploying"
            )

        stack = self.definition

        logger.info("Step 1: Creating image table")
        self.table_creator.create_table()

        logger.info("Step 2: Creating queues")
        self.queue_creator.provision()

        logger.info("Step 3: Creating topic")
        topic_arn = self.topic_creator.create_topic()
        self.topic_creator.set_topic_policy(topic_arn)

        logger.info("Step 4: Deploying functions")
        zip_path = create_deployment_package(self.dist_dir / f'{stack.name}-lambdas.zip')
        zip_content = zip_path.read_bytes()
        for function in stack.functions.values():
            role_arn = self.role_creator.create_role(function)
            self.function_deployer.deploy_function(function, role_arn, zip_content)

        logger.info("Step 5: Subscribing to topic")
        for subscription in stack.topic.subscriptions:
            if subscription.protocol == 'lambda':
                function = stack.functions[subscription.target]
                self.function_deployer.allow_sns_invoke(function, topic_arn)
                endpoint = stack.function_arn(subscription.target)
            else:
                self.queue_creator.set_queue_policy(
                    subscription.target, queue_policy(stack, subscription.target)
                )
                endpoint = self.queue_creator.get_queue_arn(subscription.target)
            self.topic_creator.subscribe(topic_arn, subscription.protocol, endpoint)

        logger.info("Step 6: Creating event sources")
        for source in stack.event_sources:
            queue_arn = self.queue_creator.get_queue_arn(source.queue)
            self.function_deployer.create_event_source(source, queue_arn)

        logger.info("Step 7: Creating images bucket")
        self.bucket_creator.provision(topic_arn)

        outputs = stack.outputs()
        logger.info(f"Deployment complete: {outputs}")
        return outputs

    def destroy(self) -> None:
        """Tear the stack down in reverse dependency order."""
        stack = self.definition

        logger.info(f"Destroying {stack.name}")
        self.bucket_creator.destroy()

        for function in stack.functions.values():
            self.function_deployer.delete_function(function)
            self.role_creator.delete_role(function)

        self.topic_creator.destroy(stack.topic_arn)
        self.queue_creator.destroy()
        self.table_creator.destroy()
        logger.info(f"Destroyed {stack.name}")

    def verify(self) -> Dict[str, bool]:
        """
        Check which resources of the stack exist, including both fan-out
        subscriptions on the topic.

        Returns:
            Mapping of logical ID (or "topic->target" for subscriptions)
            to existence.
        """
        stack = self.definition
        status = {
            stack.bucket.logical_id: self.bucket_creator.exists(),
            stack.table.logical_id: self.table_creator.exists(),
            stack.topic.logical_id: self.topic_creator.exists(stack.topic_arn),
        }
        for logical_id in stack.queues:
            status[logical_id] = self.queue_creator.exists(logical_id)
        for logical_id, function in stack.functions.items():
            status[logical_id] = self.function_deployer.exists(function)

        subscribed = set()
        if status[stack.topic.logical_id]:
            subscribed = {
                (sub['protocol'], sub['endpoint'])
                for sub in self.topic_creator.list_subscriptions(stack.topic_arn)
            }
        for subscription in stack.topic.subscriptions:
            if subscription.protocol == 'lambda':
                endpoint = stack.function_arn(subscription.target)
            else:
                endpoint = stack.queue_arn(subscription.target)
            key = f"{stack.topic.logical_id}->{subscription.target}"
            status[key] = (subscription.protocol, endpoint) in subscribed

        missing = [name for name, present in status.items() if not present]
        if missing:
            logger.warning(f"Missing resources: {', '.join(missing)}")
        else:
            logger.info("All stack resources present")
        return status
