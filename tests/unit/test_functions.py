"""Unit tests for Lambda deployment and trigger wiring."""

import zipfile
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from eda_app.infrastructure.functions import (
    ROLE_PROPAGATION_RETRIES,
    FunctionDeployer,
    create_deployment_package,
)
from eda_app.infrastructure.resources import (
    BAD_ORDERS_QUEUE,
    FAILED_MAILER_FN,
    MAILER_FN,
    PROCESS_IMAGE_FN,
)
from sample_events import TOPIC_ARN, client_error

ROLE_ARN = 'arn:aws:iam::123456789012:role/test-role'


@pytest.fixture
def deployer(aws_clients, stack_definition):
    return FunctionDeployer(stack_definition)


class TestDeploymentPackage:

    def test_package_contains_lambda_modules(self, tmp_path):
        zip_path = create_deployment_package(tmp_path / 'dist' / 'lambdas.zip')

        with zipfile.ZipFile(zip_path) as zipf:
            names = set(zipf.namelist())

        assert 'eda_app/__init__.py' in names
        assert {
            'eda_app/lambdas/__init__.py',
            'eda_app/lambdas/mailer.py',
            'eda_app/lambdas/rejection_mailer.py',
            'eda_app/lambdas/process_image.py',
            'eda_app/lambdas/events.py',
            'eda_app/lambdas/notifications.py',
        } <= names
        assert not any(name.startswith('eda_app/infrastructure') for name in names)

    def test_missing_sources(self, tmp_path):
        (tmp_path / 'pkg' / 'lambdas').mkdir(parents=True)
        with pytest.raises(FileNotFoundError):
            create_deployment_package(tmp_path / 'out.zip', package_root=tmp_path / 'pkg')


class TestDeployFunction:

    def test_update_existing_function(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        function = stack_definition.functions[PROCESS_IMAGE_FN]

        deployer.deploy_function(function, ROLE_ARN, b'zip')

        client.update_function_code.assert_called_once_with(
            FunctionName='EDAAppStack-ProcessImageFn', ZipFile=b'zip'
        )
        kwargs = client.update_function_configuration.call_args[1]
        assert kwargs['MemorySize'] == 128
        assert kwargs['Timeout'] == 15
        assert kwargs['Environment'] == {
            'Variables': {'TABLE_NAME': 'ImageTable', 'ALLOWED_EXTENSIONS': 'jpeg,png'}
        }
        client.create_function.assert_not_called()

    def test_update_waits_for_configuration_change(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']

        deployer.deploy_function(stack_definition.functions[MAILER_FN], ROLE_ARN, b'zip')

        names = [name for name, _, _ in client.mock_calls]
        after_configuration = names[names.index('update_function_configuration') + 1:]
        assert 'get_waiter().wait' in after_configuration
        assert client.get_waiter.call_args_list[-1][0] == ('function_updated_v2',)

    def test_create_missing_function(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.update_function_code.side_effect = client_error('ResourceNotFoundException')
        client.create_function.return_value = {'FunctionName': 'EDAAppStack-mailer-function'}

        deployer.deploy_function(stack_definition.functions[MAILER_FN], ROLE_ARN, b'zip')

        kwargs = client.create_function.call_args[1]
        assert kwargs['FunctionName'] == 'EDAAppStack-mailer-function'
        assert kwargs['Handler'] == 'eda_app.lambdas.mailer.lambda_handler'
        assert kwargs['Role'] == ROLE_ARN
        assert kwargs['MemorySize'] == 1024
        assert kwargs['Timeout'] == 3
        assert kwargs['Code'] == {'ZipFile': b'zip'}
        client.get_waiter.assert_called_with('function_active_v2')

    @patch('eda_app.infrastructure.functions.time.sleep')
    def test_create_retries_until_role_propagates(self, mock_sleep, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.update_function_code.side_effect = client_error('ResourceNotFoundException')
        client.create_function.side_effect = [
            client_error('InvalidParameterValueException'),
            {'FunctionName': 'EDAAppStack-mailer-function'},
        ]

        deployer.deploy_function(stack_definition.functions[MAILER_FN], ROLE_ARN, b'zip')

        assert client.create_function.call_count == 2
        mock_sleep.assert_called_once()

    @patch('eda_app.infrastructure.functions.time.sleep')
    def test_create_gives_up_after_retries(self, mock_sleep, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.update_function_code.side_effect = client_error('ResourceNotFoundException')
        client.create_function.side_effect = client_error('InvalidParameterValueException')

        with pytest.raises(ClientError):
            deployer.deploy_function(stack_definition.functions[MAILER_FN], ROLE_ARN, b'zip')

        assert client.create_function.call_count == ROLE_PROPAGATION_RETRIES

    def test_update_other_error_raises(self, deployer, aws_clients, stack_definition):
        aws_clients['lambda'].update_function_code.side_effect = client_error('AccessDeniedException')
        with pytest.raises(ClientError):
            deployer.deploy_function(stack_definition.functions[MAILER_FN], ROLE_ARN, b'zip')


class TestTriggers:

    def test_allow_sns_invoke(self, deployer, aws_clients, stack_definition):
        deployer.allow_sns_invoke(stack_definition.functions[MAILER_FN], TOPIC_ARN)

        aws_clients['lambda'].add_permission.assert_called_once_with(
            FunctionName='EDAAppStack-mailer-function',
            StatementId='sns-invoke-EDAAppStack-NewImageTopic',
            Action='lambda:InvokeFunction',
            Principal='sns.amazonaws.com',
            SourceArn=TOPIC_ARN
        )

    def test_allow_sns_invoke_existing_permission(self, deployer, aws_clients, stack_definition):
        aws_clients['lambda'].add_permission.side_effect = client_error('ResourceConflictException')
        deployer.allow_sns_invoke(stack_definition.functions[MAILER_FN], TOPIC_ARN)

    def test_create_event_source(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.list_event_source_mappings.return_value = {'EventSourceMappings': []}
        client.create_event_source_mapping.return_value = {'UUID': 'uuid-1'}
        source = next(s for s in stack_definition.event_sources if s.queue == BAD_ORDERS_QUEUE)

        assert deployer.create_event_source(source, 'arn:bad-orders') == 'uuid-1'

        client.create_event_source_mapping.assert_called_once_with(
            EventSourceArn='arn:bad-orders',
            FunctionName='EDAAppStack-failed-mailer-function',
            Enabled=True,
            BatchSize=10,
            MaximumBatchingWindowInSeconds=5,
            ScalingConfig={'MaximumConcurrency': 2}
        )

    def test_update_existing_event_source(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.list_event_source_mappings.return_value = {'EventSourceMappings': [{'UUID': 'uuid-9'}]}

        assert deployer.create_event_source(stack_definition.event_sources[1], 'arn:orders') == 'uuid-9'

        client.create_event_source_mapping.assert_not_called()
        kwargs = client.update_event_source_mapping.call_args[1]
        assert kwargs['UUID'] == 'uuid-9'
        assert kwargs['ScalingConfig'] == {'MaximumConcurrency': 2}


class TestDeleteFunction:

    def test_delete_function_and_mappings(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.list_event_source_mappings.return_value = {'EventSourceMappings': [{'UUID': 'uuid-1'}]}

        assert deployer.delete_function(stack_definition.functions[FAILED_MAILER_FN]) == ['uuid-1']
        client.delete_event_source_mapping.assert_called_once_with(UUID='uuid-1')
        client.delete_function.assert_called_once_with(FunctionName='EDAAppStack-failed-mailer-function')

    def test_delete_missing_function(self, deployer, aws_clients, stack_definition):
        client = aws_clients['lambda']
        client.list_event_source_mappings.return_value = {'EventSourceMappings': []}
        client.delete_function.side_effect = client_error('ResourceNotFoundException')

        assert deployer.delete_function(stack_definition.functions[MAILER_FN]) is None

    def test_exists(self, deployer, aws_clients, stack_definition):
        aws_clients['lambda'].get_function.side_effect = client_error('ResourceNotFoundException')
        assert deployer.exists(stack_definition.functions[MAILER_FN]) is False
