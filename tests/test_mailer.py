"""Unit tests for the new-image mailer Lambda function."""

import json
from unittest.mock import patch

from eda_app.lambdas.mailer import lambda_handler
from sample_events import BUCKET, client_error, s3_event, sns_event


class TestMailer:
    """SNS notifications become upload confirmation emails."""

    @patch('eda_app.lambdas.mailer.ses_client')
    def test_sends_confirmation_with_object_url(self, mock_ses, mock_context):
        response = lambda_handler(sns_event('photos/cat.jpeg'), mock_context)

        assert response == {'sent': 1, 'failed': 0}
        params = mock_ses.send_email.call_args[1]
        text = params['Message']['Body']['Text']['Data']
        assert f"We received your Image. Its URL is s3://{BUCKET}/photos/cat.jpeg" in text
        assert params['Message']['Subject']['Data'] == 'New Image Upload'
        assert params['Destination']['ToAddresses'] == ['recipient@example.com']

    @patch('eda_app.lambdas.mailer.ses_client')
    def test_object_key_is_url_decoded(self, mock_ses, mock_context):
        lambda_handler(sns_event('summer+trip%2C+day+1.png'), mock_context)

        html = mock_ses.send_email.call_args[1]['Message']['Body']['Html']['Data']
        assert f"s3://{BUCKET}/summer trip, day 1.png" in html

    @patch('eda_app.lambdas.mailer.ses_client')
    def test_multiple_s3_records_in_one_message(self, mock_ses, mock_context):
        event = {
            'Records': [
                {'Sns': {'Message': json.dumps(s3_event('a.jpeg', 'b.png'))}}
            ]
        }

        response = lambda_handler(event, mock_context)

        assert response['sent'] == 2

    @patch('eda_app.lambdas.mailer.ses_client')
    def test_s3_test_event_sends_nothing(self, mock_ses, mock_context):
        event = {'Records': [{'Sns': {'Message': json.dumps({'Event': 's3:TestEvent'})}}]}

        response = lambda_handler(event, mock_context)

        assert response == {'sent': 0, 'failed': 0}
        mock_ses.send_email.assert_not_called()

    @patch('eda_app.lambdas.mailer.ses_client')
    def test_empty_event(self, mock_ses, mock_context):
        assert lambda_handler({'Records': []}, mock_context) == {'sent': 0, 'failed': 0}

    @patch('eda_app.lambdas.mailer.ses_client')
    @patch('eda_app.lambdas.mailer.logger')
    def test_send_failure_counted_and_logged(self, mock_logger, mock_ses, mock_context):
        mock_ses.send_email.side_effect = client_error('Throttling', 'SendEmail')

        response = lambda_handler(sns_event('a.jpeg', 'b.jpeg'), mock_context)

        assert response == {'sent': 0, 'failed': 2}
        assert mock_logger.error.call_count == 2
