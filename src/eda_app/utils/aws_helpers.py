"""AWS helper functions using Boto3."""

from typing import Any, Optional
import boto3
from botocore.exceptions import ClientError

from ..config import config
from .logger import get_logger

logger = get_logger(__name__)


def get_boto3_client(service_name: str, region: Optional[str] = None) -> Any:
    """
    Get a Boto3 client for the specified AWS service.

    Args:
        service_name: AWS service name (e.g., 's3', 'sqs', 'lambda')
        region: AWS region. If None, uses config default.

    Returns:
        Boto3 client instance.
    """
    region = region or config.aws.region
    logger.debug(f"Creating Boto3 client for {service_name} in {region}")
    return boto3.client(service_name, region_name=region)


def get_boto3_resource(service_name: str, region: Optional[str] = None) -> Any:
    """
    Get a Boto3 resource for the specified AWS service.

    Args:
        service_name: AWS service name (e.g., 's3', 'dynamodb')
        region: AWS region. If None, uses config default.

    Returns:
        Boto3 resource instance.
    """
    region = region or config.aws.region
    logger.debug(f"Creating Boto3 resource for {service_name} in {region}")
    return boto3.resource(service_name, region_name=region)


def get_account_id(region: Optional[str] = None) -> str:
    """
    Resolve the AWS account ID, preferring the configured value.

    Args:
        region: AWS region for the STS call.

    Returns:
        12-digit account ID.
    """
    if config.aws.account_id:
        return config.aws.account_id

    sts_client = get_boto3_client('sts', region=region)
    account_id = sts_client.get_caller_identity()['Account']
    logger.debug(f"Resolved account ID {account_id} via STS")
    return account_id


def error_code(exc: ClientError) -> str:
    """Extract the service error code from a ClientError."""
    return exc.response.get('Error', {}).get('Code', '')
