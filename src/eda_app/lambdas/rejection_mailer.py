"""
Lambda function for rejected image uploads.

Triggered by the bad-orders dead-letter queue. Each message is an SNS
notification that the image processor failed to handle within the
redrive limit; the function emails the configured recipient about it.
"""

import json
import logging
from typing import Any, Dict

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .notifications import (
    SENDER_NAME,
    ContactDetails,
    load_ses_settings,
    send_email_params,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Fail the cold start rather than every invocation
SES_SETTINGS = load_ses_settings()

ses_client = boto3.client('ses', region_name=SES_SETTINGS.region)

SUBJECT = "New message received"


def lambda_handler(event: Dict[str, Any], context: Any) -> None:
    """
    Lambda handler for dead-lettered SQS messages.

    Args:
        event: SQS event whose record bodies are SNS notifications
        context: Lambda context object
    """
    logger.info(f"Event {json.dumps(event)}")

    records = event.get('Records') or []
    if not records:
        logger.info("Invalid SNS event format. Missing 'Records'.")
        return

    for record in records:
        body = record.get('body')
        if not body:
            logger.info("Invalid SQS message format. Missing 'body'.")
            continue

        sqs_message = json.loads(body)

        if not sqs_message.get('Message') or not sqs_message.get('Subject'):
            logger.info("Invalid event format. Missing 'Message' or 'Subject'.")
            continue

        logger.info(f"SQS Message {json.dumps(sqs_message)}")

        details = ContactDetails(
            name=SENDER_NAME,
            email=SES_SETTINGS.email_from,
            message=f"We received your message: {sqs_message['Message']}",
        )

        try:
            params = send_email_params(details, SES_SETTINGS, SUBJECT)
            ses_client.send_email(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"ERROR is: {e}", exc_info=True)
