"""Utility modules for the image pipeline."""

from .logger import get_logger
from .aws_helpers import (
    get_boto3_client,
    get_boto3_resource,
    get_account_id,
    error_code,
)

__all__ = [
    "get_logger",
    "get_boto3_client",
    "get_boto3_resource",
    "get_account_id",
    "error_code",
]
