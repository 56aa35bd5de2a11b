"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock, Mock, patch

import pytest

# Lambda modules read these at import time
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('SES_EMAIL_FROM', 'sender@example.com')
os.environ.setdefault('SES_EMAIL_TO', 'recipient@example.com')
os.environ.setdefault('SES_REGION', 'us-east-1')
os.environ.setdefault('TABLE_NAME', 'ImageTable')


PROVISIONING_MODULES = [
    'eda_app.infrastructure.storage',
    'eda_app.infrastructure.messaging',
    'eda_app.infrastructure.iam',
    'eda_app.infrastructure.functions',
]


@pytest.fixture
def mock_context():
    """Mock Lambda context object."""
    context = Mock()
    context.function_name = 'EDAAppStack-mailer-function'
    context.aws_request_id = 'test-request-id-12345'
    context.memory_limit_in_mb = 1024
    return context


@pytest.fixture
def app_config():
    """Configuration with complete SES settings and a fixed region."""
    from eda_app.config import AWSConfig, Config, SESConfig

    return Config(
        aws=AWSConfig(region='us-east-1', account_id='123456789012'),
        ses=SESConfig(
            email_from='sender@example.com',
            email_to='recipient@example.com',
            region='us-east-1',
        ),
    )


@pytest.fixture
def stack_definition(app_config):
    from eda_app.infrastructure.resources import build_stack

    return build_stack(app_config, '123456789012')


@pytest.fixture
def aws_clients():
    """
    Patch get_boto3_client in every provisioning module.

    Yields a dict of service name to MagicMock, shared across modules.
    """
    clients = {}

    def factory(service_name, region=None):
        return clients.setdefault(service_name, MagicMock(name=f'{service_name}_client'))

    patchers = [patch(f'{module}.get_boto3_client', side_effect=factory) for module in PROVISIONING_MODULES]
    for patcher in patchers:
        patcher.start()

    yield clients

    for patcher in patchers:
        patcher.stop()
