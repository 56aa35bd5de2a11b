"""
Deploy the pipeline's Lambda functions and their triggers.

Handles:
- Building the deployment package from ``eda_app.lambdas``
- Creating or updating function code and configuration
- SNS invoke permissions for topic subscribers
- SQS event source mappings with batching window and max concurrency
"""

import time
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .resources import EventSourceDefinition, FunctionDefinition, StackDefinition

logger = get_logger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
ROLE_PROPAGATION_RETRIES = 5
ROLE_PROPAGATION_DELAY = 10  # seconds


def create_deployment_package(output_path: Path, package_root: Path = PACKAGE_ROOT) -> Path:
    """
    Create a deployment package (ZIP file) holding the Lambda handlers.

    Only ``eda_app/__init__.py`` and ``eda_app/lambdas/*.py`` are packaged;
    the handlers depend on nothing beyond boto3 and the standard library.

    Args:
        output_path: Path where the ZIP file will be created
        package_root: Directory of the ``eda_app`` package

    Returns:
        The output path.
    """
    lambdas_dir = package_root / 'lambdas'
    sources = sorted(lambdas_dir.glob('*.py'))
    if not sources:
        raise FileNotFoundError(f"No Lambda sources found in {lambdas_dir}")

    logger.info(f"Creating deployment package from {lambdas_dir}")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(output_path, 'w', zipfile.ZIP_DEFLATED) as zipf:
        zipf.write(package_root / '__init__.py', f'{package_root.name}/__init__.py')
        for source in sources:
            zipf.write(source, f'{package_root.name}/lambdas/{source.name}')

    logger.info(f"Package size: {output_path.stat().st_size / 1024:.2f} KB")
    return output_path


class FunctionDeployer:
    """Creates, updates and wires the stack's Lambda functions."""

    def __init__(self, stack: StackDefinition, region: str = 'us-east-1'):
        self.stack = stack
        self.region = region
        self.lambda_client = get_boto3_client('lambda', region=region)

    def deploy_function(
        self,
        function: FunctionDefinition,
        role_arn: str,
        zip_content: bytes
    ) -> Dict[str, Any]:
        """
        Deploy or update a Lambda function.

        Args:
            function: Function definition
            role_arn: ARN of the IAM execution role
            zip_content: Deployment package bytes

        Returns:
            Lambda function configuration
        """
        configuration = {
            'Runtime': function.runtime,
            'Role': role_arn,
            'Handler': function.handler,
            'Timeout': function.timeout,
            'MemorySize': function.memory_size,
            'Environment': {'Variables': dict(function.environment)},
        }

        try:
            logger.info(f"Updating existing Lambda function: {function.name}")
            self.lambda_client.update_function_code(
                FunctionName=function.name,
                ZipFile=zip_content
            )
            self.lambda_client.get_waiter('function_updated_v2').wait(FunctionName=function.name)

            response = self.lambda_client.update_function_configuration(
                FunctionName=function.name,
                **configuration
            )
            self.lambda_client.get_waiter('function_updated_v2').wait(FunctionName=function.name)
            logger.info(f"Successfully updated Lambda function: {function.name}")
            return response

        except ClientError as e:
            if error_code(e) != 'ResourceNotFoundException':
                raise

        logger.info(f"Creating new Lambda function: {function.name}")
        response = self._create_function(function, configuration, zip_content)
        self.lambda_client.get_waiter('function_active_v2').wait(FunctionName=function.name)
        logger.info(f"Successfully created Lambda function: {function.name}")
        return response

    def _create_function(
        self,
        function: FunctionDefinition,
        configuration: Dict[str, Any],
        zip_content: bytes
    ) -> Dict[str, Any]:
        # A freshly created role is rejected until IAM has propagated it
        attempt = 1
        while True:
            try:
                return self.lambda_client.create_function(
                    FunctionName=function.name,
                    Code={'ZipFile': zip_content},
                    Description=f"{self.stack.name} {function.logical_id}",
                    Publish=True,
                    **configuration
                )
            except ClientError as e:
                if error_code(e) != 'InvalidParameterValueException' or attempt >= ROLE_PROPAGATION_RETRIES:
                    raise
                logger.info(
                    f"Role not yet assumable (attempt {attempt}), "
                    f"waiting {ROLE_PROPAGATION_DELAY} seconds"
                )
                time.sleep(ROLE_PROPAGATION_DELAY)
                attempt += 1

    def allow_sns_invoke(self, function: FunctionDefinition, topic_arn: str) -> None:
        """
        Add permission for SNS to invoke the function.

        Args:
            function: Subscriber function
            topic_arn: ARN of the topic allowed to invoke it
        """
        statement_id = f'sns-invoke-{self.stack.topic.name}'
        try:
            self.lambda_client.add_permission(
                FunctionName=function.name,
                StatementId=statement_id,
                Action='lambda:InvokeFunction',
                Principal='sns.amazonaws.com',
                SourceArn=topic_arn
            )
            logger.info(f"Added SNS invoke permission to {function.name}")
        except ClientError as e:
            if error_code(e) != 'ResourceConflictException':
                raise
            logger.info(f"SNS invoke permission already exists on {function.name}")

    def create_event_source(self, source: EventSourceDefinition, queue_arn: str) -> str:
        """
        Create or update the SQS event source mapping for a consumer.

        Args:
            source: Event source definition
            queue_arn: ARN of the queue feeding the function

        Returns:
            Mapping UUID.
        """
        function = self.stack.functions[source.function]
        settings = {
            'BatchSize': source.batch_size,
            'MaximumBatchingWindowInSeconds': source.max_batching_window_seconds,
            'ScalingConfig': {'MaximumConcurrency': source.max_concurrency},
        }

        existing = self.lambda_client.list_event_source_mappings(
            EventSourceArn=queue_arn,
            FunctionName=function.name
        ).get('EventSourceMappings', [])

        if existing:
            uuid = existing[0]['UUID']
            logger.info(f"Updating event source mapping {uuid} for {function.name}")
            self.lambda_client.update_event_source_mapping(UUID=uuid, Enabled=True, **settings)
            return uuid

        logger.info(f"Creating event source mapping {queue_arn} -> {function.name}")
        response = self.lambda_client.create_event_source_mapping(
            EventSourceArn=queue_arn,
            FunctionName=function.name,
            Enabled=True,
            **settings
        )
        return response['UUID']

    def exists(self, function: FunctionDefinition) -> bool:
        try:
            self.lambda_client.get_function(FunctionName=function.name)
            return True
        except ClientError as e:
            if error_code(e) == 'ResourceNotFoundException':
                return False
            raise

    def delete_function(self, function: FunctionDefinition) -> Optional[List[str]]:
        """
        Delete a function and its event source mappings.

        Returns:
            UUIDs of removed mappings, or None if the function did not exist.
        """
        try:
            mappings = self.lambda_client.list_event_source_mappings(
                FunctionName=function.name
            ).get('EventSourceMappings', [])
            removed = []
            for mapping in mappings:
                self.lambda_client.delete_event_source_mapping(UUID=mapping['UUID'])
                removed.append(mapping['UUID'])

            self.lambda_client.delete_function(FunctionName=function.name)
            logger.info(f"Deleted Lambda function {function.name}")
            return removed
        except ClientError as e:
            if error_code(e) != 'ResourceNotFoundException':
                raise
            logger.info(f"Lambda function {function.name} does not exist")
            return None
