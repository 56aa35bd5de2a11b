"""
Create IAM execution roles for the pipeline's Lambda functions.

Each function gets its own role with:
- Trust policy for lambda.amazonaws.com
- AWS managed policy for CloudWatch Logs
- An inline least-privilege policy built from the function's grants
"""

import json
from typing import Dict

from botocore.exceptions import ClientError

from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, error_code
from .resources import (
    LAMBDA_BASIC_EXECUTION_POLICY,
    FunctionDefinition,
    policy_document,
)

logger = get_logger(__name__)

INLINE_POLICY_NAME = "pipeline-access"


class LambdaRoleCreator:
    """Manages creation and teardown of Lambda execution roles."""

    def __init__(self, region: str = 'us-east-1'):
        self.region = region
        self.iam_client = get_boto3_client('iam', region=region)

    @staticmethod
    def get_trust_policy() -> Dict:
        """
        Get trust policy for the Lambda service.

        Returns:
            dict: Trust policy document.
        """
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {
                        "Service": "lambda.amazonaws.com"
                    },
                    "Action": "sts:AssumeRole"
                }
            ]
        }

    def create_role(self, function: FunctionDefinition) -> str:
        """
        Create or update the execution role of a function.

        The inline policy is always rewritten so grants converge on redeploy.

        Args:
            function: Function definition carrying the policy statements

        Returns:
            Role ARN.
        """
        role_name = function.role_name
        try:
            logger.info(f"Creating IAM role: {role_name}")
            response = self.iam_client.create_role(
                RoleName=role_name,
                AssumeRolePolicyDocument=json.dumps(self.get_trust_policy()),
                Description=f"Execution role for {function.name}",
                Tags=[{'Key': 'ManagedBy', 'Value': 'Automation'}]
            )
            role_arn = response['Role']['Arn']
        except ClientError as e:
            if error_code(e) != 'EntityAlreadyExists':
                logger.error(f"Failed to create role {role_name}: {e}")
                raise
            role_arn = self.iam_client.get_role(RoleName=role_name)['Role']['Arn']
            logger.info(f"Using existing IAM role: {role_arn}")

        self.iam_client.attach_role_policy(
            RoleName=role_name,
            PolicyArn=LAMBDA_BASIC_EXECUTION_POLICY
        )

        if function.statements:
            self.iam_client.put_role_policy(
                RoleName=role_name,
                PolicyName=INLINE_POLICY_NAME,
                PolicyDocument=json.dumps(policy_document(function.statements))
            )
            logger.info(f"Attached {len(function.statements)} statement(s) to {role_name}")

        return role_arn

    def delete_role(self, function: FunctionDefinition) -> None:
        role_name = function.role_name
        try:
            attached = self.iam_client.list_attached_role_policies(RoleName=role_name)
            for policy in attached.get('AttachedPolicies', []):
                self.iam_client.detach_role_policy(RoleName=role_name, PolicyArn=policy['PolicyArn'])

            inline = self.iam_client.list_role_policies(RoleName=role_name)
            for policy_name in inline.get('PolicyNames', []):
                self.iam_client.delete_role_policy(RoleName=role_name, PolicyName=policy_name)

            self.iam_client.delete_role(RoleName=role_name)
            logger.info(f"Deleted IAM role {role_name}")
        except ClientError as e:
            if error_code(e) != 'NoSuchEntity':
                raise
            logger.info(f"IAM role {role_name} does not exist")
