"""
Lambda function subscribed directly to the new-image SNS topic.

Each SNS message wraps an S3 ObjectCreated notification; the function
sends one confirmation email per uploaded object.
"""

import json
import logging
from typing import Any, Dict

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .events import object_location, s3_records, sns_to_s3_event
from .notifications import (
    SENDER_NAME,
    ContactDetails,
    load_ses_settings,
    send_email_params,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

SES_SETTINGS = load_ses_settings()

ses_client = boto3.client('ses', region_name=SES_SETTINGS.region)

SUBJECT = "New Image Upload"


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, int]:
    """
    Lambda handler for SNS new-image notifications.

    Args:
        event: SNS event data
        context: Lambda context object

    Returns:
        Counts of emails sent and failed.
    """
    logger.info(f"Event {json.dumps(event)}")

    sent = 0
    failed = 0

    records = event.get('Records') or []
    if not records:
        logger.info("Invalid SNS event format. Missing 'Records'.")

    for record in records:
        sns_message = record.get('Sns', {}).get('Message')
        if not sns_message:
            logger.info("Invalid SNS record format. Missing 'Sns.Message'.")
            continue

        s3_event = sns_to_s3_event(sns_message)

        for s3_record in s3_records(s3_event):
            bucket_name, object_key = object_location(s3_record)

            details = ContactDetails(
                name=SENDER_NAME,
                email=SES_SETTINGS.email_from,
                message=f"We received your Image. Its URL is s3://{bucket_name}/{object_key}",
            )

            try:
                ses_client.send_email(**send_email_params(details, SES_SETTINGS, SUBJECT))
                sent += 1
                logger.info(f"Sent upload notification for s3://{bucket_name}/{object_key}")
            except (ClientError, BotoCoreError) as e:
                failed += 1
                logger.error(f"ERROR is: {e}", exc_info=True)

    return {'sent': sent, 'failed': failed}
