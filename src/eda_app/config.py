"""Configuration management for the EDA image pipeline."""

import os
from typing import Optional, Tuple
from pydantic import BaseModel, Field, model_validator
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class AWSConfig(BaseModel):
    """AWS configuration settings."""

    region: str = Field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    account_id: Optional[str] = Field(default_factory=lambda: os.getenv("AWS_ACCOUNT_ID"))


class SESConfig(BaseModel):
    """SES sender/recipient settings handed to the mailer functions."""

    email_from: str = Field(default_factory=lambda: os.getenv("SES_EMAIL_FROM", ""))
    email_to: str = Field(default_factory=lambda: os.getenv("SES_EMAIL_TO", ""))
    # None until Config falls it back to the AWS region
    region: Optional[str] = Field(default_factory=lambda: os.getenv("SES_REGION"))

    @property
    def is_complete(self) -> bool:
        """Whether every setting the mailers need is present."""
        return bool(self.email_from and self.email_to and self.region)

    def as_environment(self) -> dict:
        """Render as the Lambda environment the mailers read."""
        return {
            "SES_EMAIL_FROM": self.email_from,
            "SES_EMAIL_TO": self.email_to,
            "SES_REGION": self.region,
        }


class FunctionSettings(BaseModel):
    """Sizing for a single Lambda function."""

    memory_size: int
    timeout: int


class PipelineConfig(BaseModel):
    """Static parameters of the image pipeline resource graph."""

    stack_name: str = Field(default_factory=lambda: os.getenv("STACK_NAME", "EDAAppStack"))
    table_name: str = "ImageTable"
    topic_name: str = "NewImageTopic"
    topic_display_name: str = "New Image topic"
    orders_queue_name: str = "orders-queue"
    bad_orders_queue_name: str = "bad-orders-q"

    # Dead-letter routing
    max_receive_count: int = 2
    dlq_retention_seconds: int = 30 * 60

    # SQS event source mappings
    batch_size: int = 10
    max_batching_window_seconds: int = 5
    max_concurrency: int = 2

    runtime: str = "python3.12"
    mailer: FunctionSettings = Field(
        default_factory=lambda: FunctionSettings(memory_size=1024, timeout=3)
    )
    failed_mailer: FunctionSettings = Field(
        default_factory=lambda: FunctionSettings(memory_size=1024, timeout=3)
    )
    process_image: FunctionSettings = Field(
        default_factory=lambda: FunctionSettings(memory_size=128, timeout=15)
    )

    allowed_extensions: Tuple[str, ...] = ("jpeg", "png")

    def resource_name(self, suffix: str) -> str:
        """Prefix a physical resource name with the stack name."""
        return f"{self.stack_name}-{suffix}"


class Config(BaseModel):
    """Main configuration object."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    ses: SESConfig = Field(default_factory=SESConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    # Project settings
    project_name: str = "eda-image-pipeline"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "dev"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @model_validator(mode="after")
    def default_ses_region(self) -> "Config":
        if not self.ses.region:
            self.ses.region = self.aws.region
        return self


# Global configuration instance
config = Config()
