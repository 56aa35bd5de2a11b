"""Resource graph and boto3 provisioning for the image pipeline."""

from .resources import StackDefinition, build_stack
from .stack import EDAAppStack, StackConfigurationError

__all__ = [
    "StackDefinition",
    "build_stack",
    "EDAAppStack",
    "StackConfigurationError",
]
