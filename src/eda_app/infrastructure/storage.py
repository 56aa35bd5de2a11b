"""
Provision the images bucket and the image lookup table.

The bucket is private, publishes every ObjectCreated event to the
new-image topic, and is emptied before deletion. The table is billed per
request and keyed on ``imageName``.
"""

from typing import Dict, List

from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .resources import BucketDefinition, RemovalPolicy, TableDefinition

logger = get_logger(__name__)

TAGS = [
    {'Key': 'Project', 'Value': 'EDA-ImagePipeline'},
    {'Key': 'ManagedBy', 'Value': 'Automation'},
]


class ImagesBucketCreator:
    """Manages creation, notification wiring and teardown of the images bucket."""

    def __init__(self, bucket: BucketDefinition, region: str = 'us-east-1'):
        """
        Initialize Images Bucket Creator.

        Args:
            bucket: Bucket definition from the stack
            region: AWS region for bucket creation
        """
        self.bucket = bucket
        self.region = region
        self.s3_client = get_boto3_client('s3', region=region)
        logger.info(f"Initialized ImagesBucketCreator for bucket: {self.bucket.name}")

    def create_bucket(self) -> bool:
        """
        Create the S3 bucket.

        Returns:
            True if the bucket was created or is already owned by this account.

        Raises:
            ClientError: For any other failure, including a name owned elsewhere.
        """
        try:
            logger.info(f"Creating S3 bucket: {self.bucket.name}")

            # Create bucket with location constraint if not in us-east-1
            if self.region == 'us-east-1':
                self.s3_client.create_bucket(Bucket=self.bucket.name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket.name,
                    CreateBucketConfiguration={'LocationConstraint': self.region}
                )

            logger.info(f"Successfully created bucket: {self.bucket.name}")
            return True

        except ClientError as e:
            if error_code(e) == 'BucketAlreadyOwnedByYou':
                logger.warning(f"Bucket {self.bucket.name} already exists and is owned by you")
                return True
            logger.error(f"Failed to create bucket {self.bucket.name}: {e}")
            raise

    def block_public_access(self) -> None:
        """Block all public access unless the definition asks for public reads."""
        if self.bucket.public_read_access:
            logger.warning(f"Bucket {self.bucket.name} is configured for public reads")
            return

        self.s3_client.put_public_access_block(
            Bucket=self.bucket.name,
            PublicAccessBlockConfiguration={
                'BlockPublicAcls': True,
                'IgnorePublicAcls': True,
                'BlockPublicPolicy': True,
                'RestrictPublicBuckets': True,
            }
        )
        logger.info(f"Blocked public access on {self.bucket.name}")

    def tag_bucket(self) -> None:
        self.s3_client.put_bucket_tagging(
            Bucket=self.bucket.name,
            Tagging={'TagSet': TAGS}
        )

    def configure_notifications(self, topic_arn: str) -> Dict:
        """
        Publish the bucket's configured events to the SNS topic.

        Args:
            topic_arn: ARN of the new-image topic

        Returns:
            The notification configuration that was applied.
        """
        notification_config = {
            'TopicConfigurations': [
                {
                    'Id': f'{self.bucket.logical_id}-to-{self.bucket.notification_topic}',
                    'TopicArn': topic_arn,
                    'Events': list(self.bucket.notification_events),
                }
            ]
        }

        logger.info(f"Routing {self.bucket.notification_events} on {self.bucket.name} to {topic_arn}")
        self.s3_client.put_bucket_notification_configuration(
            Bucket=self.bucket.name,
            NotificationConfiguration=notification_config
        )
        return notification_config

    def provision(self, topic_arn: str) -> str:
        """Create and fully configure the bucket, returning its name."""
        self.create_bucket()
        self.block_public_access()
        self.tag_bucket()
        self.configure_notifications(topic_arn)
        return self.bucket.name

    def exists(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket.name)
            return True
        except ClientError as e:
            if error_code(e) in ('404', 'NoSuchBucket'):
                return False
            raise

    def empty_bucket(self) -> int:
        """
        Delete every object in the bucket.

        Returns:
            Number of objects deleted.
        """
        paginator = self.s3_client.get_paginator('list_objects_v2')
        deleted = 0

        for page in paginator.paginate(Bucket=self.bucket.name):
            objects: List[Dict[str, str]] = [
                {'Key': obj['Key']} for obj in page.get('Contents', [])
            ]
            if not objects:
                continue

            self.s3_client.delete_objects(
                Bucket=self.bucket.name,
                Delete={'Objects': objects, 'Quiet': True}
            )
            deleted += len(objects)

        logger.info(f"Deleted {deleted} object(s) from {self.bucket.name}")
        return deleted

    def destroy(self) -> bool:
        """
        Remove the bucket according to its removal policy.

        Returns:
            True if the bucket is gone, False if it was retained.
        """
        if self.bucket.removal_policy == RemovalPolicy.RETAIN:
            logger.info(f"Retaining bucket {self.bucket.name}")
            return False

        try:
            if self.bucket.auto_delete_objects:
                self.empty_bucket()
            self.s3_client.delete_bucket(Bucket=self.bucket.name)
            logger.info(f"Deleted bucket {self.bucket.name}")
        except ClientError as e:
            if error_code(e) != 'NoSuchBucket':
                logger.error(f"Failed to delete bucket {self.bucket.name}: {e}")
                raise
            logger.info(f"Bucket {self.bucket.name} does not exist")
        return True


class ImagesTableCreator:
    """Manages the DynamoDB lookup table for recorded images."""

    def __init__(self, table: TableDefinition, region: str = 'us-east-1'):
        self.table = table
        self.region = region
        self.dynamodb_client = get_boto3_client('dynamodb', region=region)

    def create_table(self, wait: bool = True) -> str:
        """
        Create the table, optionally waiting until it is ACTIVE.

        Args:
            wait: Block on the ``table_exists`` waiter

        Returns:
            Table ARN.
        """
        key = self.table.partition_key
        try:
            logger.info(f"Creating DynamoDB table: {self.table.name}")
            response = self.dynamodb_client.create_table(
                TableName=self.table.name,
                AttributeDefinitions=[{'AttributeName': key.name, 'AttributeType': key.type}],
                KeySchema=[{'AttributeName': key.name, 'KeyType': 'HASH'}],
                BillingMode=self.table.billing_mode,
                Tags=TAGS,
            )
            table_arn = response['TableDescription']['TableArn']
        except ClientError as e:
            if error_code(e) != 'ResourceInUseException':
                logger.error(f"Failed to create table {self.table.name}: {e}")
                raise
            logger.info(f"Table {self.table.name} already exists")
            table_arn = self.describe()['TableArn']

        if wait:
            self.dynamodb_client.get_waiter('table_exists').wait(TableName=self.table.name)

        return table_arn

    def describe(self) -> Dict:
        return self.dynamodb_client.describe_table(TableName=self.table.name)['Table']

    def exists(self) -> bool:
        try:
            self.describe()
            return True
        except ClientError as e:
            if error_code(e) == 'ResourceNotFoundException':
                return False
            raise

    def destroy(self) -> bool:
        if self.table.removal_policy == RemovalPolicy.RETAIN:
            logger.info(f"Retaining table {self.table.name}")
            return False

        try:
            self.dynamodb_client.delete_table(TableName=self.table.name)
            logger.info(f"Deleted table {self.table.name}")
        except ClientError as e:
            if error_code(e) != 'ResourceNotFoundException':
                raise
            logger.info(f"Table {self.table.name} does not exist")
        return True
