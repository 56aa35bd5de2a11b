"""Unit tests for AWS helper functions."""

from unittest.mock import Mock, patch

from eda_app.utils.aws_helpers import (
    error_code,
    get_account_id,
    get_boto3_client,
    get_boto3_resource,
)
from sample_events import client_error


class TestBoto3Helpers:
    """Test Boto3 helper functions."""

    @patch('eda_app.utils.aws_helpers.config')
    @patch('eda_app.utils.aws_helpers.boto3')
    def test_get_boto3_client(self, mock_boto3, mock_config):
        """Test getting Boto3 client."""
        mock_config.aws.region = 'us-east-1'
        mock_client = Mock()
        mock_boto3.client.return_value = mock_client

        client = get_boto3_client('sqs')

        mock_boto3.client.assert_called_once_with('sqs', region_name='us-east-1')
        assert client == mock_client

    @patch('eda_app.utils.aws_helpers.boto3')
    def test_get_boto3_client_explicit_region(self, mock_boto3):
        get_boto3_client('sns', region='eu-west-1')

        mock_boto3.client.assert_called_once_with('sns', region_name='eu-west-1')

    @patch('eda_app.utils.aws_helpers.config')
    @patch('eda_app.utils.aws_helpers.boto3')
    def test_get_boto3_resource(self, mock_boto3, mock_config):
        """Test getting Boto3 resource."""
        mock_config.aws.region = 'us-east-1'
        mock_resource = Mock()
        mock_boto3.resource.return_value = mock_resource

        resource = get_boto3_resource('dynamodb')

        mock_boto3.resource.assert_called_once_with('dynamodb', region_name='us-east-1')
        assert resource == mock_resource


class TestAccountId:

    @patch('eda_app.utils.aws_helpers.get_boto3_client')
    @patch('eda_app.utils.aws_helpers.config')
    def test_configured_account_id_skips_sts(self, mock_config, mock_get_client):
        mock_config.aws.account_id = '111122223333'

        assert get_account_id() == '111122223333'
        mock_get_client.assert_not_called()

    @patch('eda_app.utils.aws_helpers.get_boto3_client')
    @patch('eda_app.utils.aws_helpers.config')
    def test_account_id_from_sts(self, mock_config, mock_get_client):
        mock_config.aws.account_id = None
        mock_get_client.return_value.get_caller_identity.return_value = {'Account': '123456789012'}

        assert get_account_id('us-east-1') == '123456789012'
        mock_get_client.assert_called_once_with('sts', region='us-east-1')


def test_error_code():
    assert error_code(client_error('NoSuchBucket')) == 'NoSuchBucket'
