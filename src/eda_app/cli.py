"""
Command line entry point for the image pipeline stack.

Usage:
    eda-app synth
    eda-app deploy [--region us-east-1]
    eda-app verify
    eda-app destroy --yes
"""

import argparse
import json
import sys
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import AWSConfig, Config
from .infrastructure import EDAAppStack, StackConfigurationError
from .utils.logger import get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='eda-app',
        description='Deploy the event-driven image upload pipeline'
    )
    parser.add_argument(
        'command',
        choices=['synth', 'deploy', 'verify', 'destroy'],
        help='Action to perform on the stack'
    )
    parser.add_argument(
        '--region',
        help='AWS region (default: AWS_REGION or us-east-1)',
        default=None
    )
    parser.add_argument(
        '--account-id',
        help='AWS account ID (default: resolved via STS)',
        default=None
    )
    parser.add_argument(
        '--yes',
        action='store_true',
        help='Confirm destroy without prompting'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    args = build_parser().parse_args(argv)

    if args.region:
        app_config = Config(aws=AWSConfig(region=args.region))
    else:
        app_config = Config()

    try:
        stack = EDAAppStack(app_config, account_id=args.account_id)

        if args.command == 'synth':
            print(json.dumps(stack.synth().model_dump(mode='json'), indent=2))

        elif args.command == 'deploy':
            outputs = stack.deploy()
            print("\n" + "=" * 60)
            print("Deployment successful!")
            print("=" * 60)
            for key, value in outputs.items():
                print(f"{key} = {value}")
            print("\nTest the pipeline:")
            print(f"  aws s3 cp photo.jpeg s3://{outputs['bucketName']}/photo.jpeg")

        elif args.command == 'verify':
            status = stack.verify()
            for name, present in status.items():
                print(f"{'✓' if present else '✗'} {name}")
            if not all(status.values()):
                return 1

        elif args.command == 'destroy':
            if not args.yes:
                print("Refusing to destroy without --yes", file=sys.stderr)
                return 1
            stack.destroy()
            print(f"Destroyed {stack.definition.name}")

        return 0

    except (StackConfigurationError, ClientError, BotoCoreError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\nError during {args.command}: {str(e)}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
