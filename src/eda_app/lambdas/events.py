"""Helpers for unwrapping SQS, SNS and S3 event envelopes."""

import json
from typing import Any, Dict, Iterator, List, Tuple
from urllib.parse import unquote_plus


def s3_records(s3_event: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the records of an S3 event notification (empty for test events)."""
    return s3_event.get('Records', [])


def object_location(s3_record: Dict[str, Any]) -> Tuple[str, str]:
    """
    Extract bucket and decoded object key from an S3 event record.

    S3 URL-encodes keys in notifications, with spaces as '+'.

    Returns:
        Tuple of (bucket_name, object_key).
    """
    s3_info = s3_record['s3']
    bucket_name = s3_info['bucket']['name']
    object_key = unquote_plus(s3_info['object']['key'])
    return bucket_name, object_key


def sns_to_s3_event(sns_message: str) -> Dict[str, Any]:
    """Parse an SNS ``Message`` string carrying an S3 event notification."""
    return json.loads(sns_message)


def sqs_to_sns_notification(sqs_record: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the SNS notification an SNS-to-SQS subscription puts in ``body``."""
    return json.loads(sqs_record['body'])


def objects_in_sqs_record(sqs_record: Dict[str, Any]) -> Iterator[Tuple[str, str]]:
    """Yield (bucket, key) for every S3 object referenced by one SQS record."""
    notification = sqs_to_sns_notification(sqs_record)
    s3_event = sns_to_s3_event(notification['Message'])
    for record in s3_records(s3_event):
        yield object_location(record)


def file_extension(object_key: str) -> str:
    """Lowercase extension of an object key, or '' when it has none."""
    name = object_key.rsplit('/', 1)[-1]
    if '.' not in name:
        return ''
    return name.rsplit('.', 1)[-1].lower()
