"""
Lambda function consuming the orders queue.

Records every uploaded image in the lookup table. Uploads with an
unsupported extension raise, so SQS redelivers the message and, once the
redrive limit is reached, moves it to the bad-orders queue.
"""

import json
import logging
import os
from typing import Any, Dict, List

import boto3

from .events import file_extension, objects_in_sqs_record

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TABLE_NAME = os.environ.get('TABLE_NAME', 'ImageTable')
ALLOWED_EXTENSIONS = tuple(
    ext.strip().lower()
    for ext in os.environ.get('ALLOWED_EXTENSIONS', 'jpeg,png').split(',')
    if ext.strip()
)

dynamodb = boto3.resource('dynamodb')
table = dynamodb.Table(TABLE_NAME)


class UnsupportedImageError(ValueError):
    """Raised for an uploaded object that is not a supported image type."""

    def __init__(self, object_key: str, extension: str):
        self.object_key = object_key
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension or '<none>'} ({object_key})")


def record_image(object_key: str) -> None:
    """
    Validate the image type and store it in the lookup table.

    Args:
        object_key: Decoded S3 object key

    Raises:
        UnsupportedImageError: If the extension is not allowed.
    """
    extension = file_extension(object_key)
    if extension not in ALLOWED_EXTENSIONS:
        logger.warning(f"Rejecting {object_key}: unsupported extension '{extension}'")
        raise UnsupportedImageError(object_key, extension)

    table.put_item(Item={'imageName': object_key})
    logger.info(f"Recorded image {object_key} in {TABLE_NAME}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, List[str]]:
    """
    Lambda handler for orders-queue batches.

    Args:
        event: SQS event whose bodies are SNS-wrapped S3 notifications
        context: Lambda context object

    Returns:
        Keys recorded during this invocation.

    Raises:
        UnsupportedImageError: Propagated to fail the batch.
    """
    logger.info(f"Event {json.dumps(event)}")

    recorded = []
    for record in event.get('Records', []):
        for bucket_name, object_key in objects_in_sqs_record(record):
            logger.info(f"Processing s3://{bucket_name}/{object_key}")
            record_image(object_key)
            recorded.append(object_key)

    return {'recorded': recorded}
