import os
from enum import Enum
from typing import Any, Dict, Optional

from botocore.config import Config
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Pick up a local .env before any field defaults are read
load_dotenv()


class PlaceholderPolicy(str, Enum):
    """What happens when a template reference has no value in the payload."""

    BY_FIELD = "by_field"  # strict under Key/Item/RequestItems, permissive elsewhere
    STRICT = "strict"
    PERMISSIVE = "permissive"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


class DynamoDBConfig(BaseModel):
    """Settings shared by every store: connection, batching and templating."""

    model_config = ConfigDict(validate_assignment=True)

    # Credentials and endpoint; None defers to boto3's own lookup chain
    aws_access_key_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID"),
        description="Access key for the boto3 session"
    )
    aws_secret_access_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY"),
        description="Secret key for the boto3 session"
    )
    region_name: str = Field(
        default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"),
        description="Region the client talks to"
    )
    endpoint_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL"),
        description="Override endpoint, e.g. DynamoDB Local"
    )

    # botocore client behaviour
    max_pool_connections: int = Field(default=50, ge=1, description="HTTP connection pool size")
    retries: int = Field(default=3, ge=0, description="botocore-level retry attempts per call")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Connect and read timeout")

    # Batch execution
    batch_write_limit: int = Field(default=25, ge=1, le=25, description="Write requests per BatchWriteItem call")
    batch_get_limit: int = Field(default=100, ge=1, le=100, description="Keys per BatchGetItem call")
    batch_max_retries: int = Field(default=3, ge=0, description="Resubmissions of an unprocessed or throttled chunk")
    batch_concurrency: int = Field(default=4, ge=1, description="Chunks in flight at once")
    retry_base_delay: float = Field(default=0.05, ge=0, description="First backoff delay, doubled per retry")
    retry_max_delay: float = Field(default=1.0, ge=0, description="Cap on a single backoff delay")

    # Templates and payloads
    placeholder_policy: PlaceholderPolicy = Field(
        default_factory=lambda: PlaceholderPolicy(os.getenv("DYNAMODB_PLACEHOLDER_POLICY", "by_field")),
        description="Handling of placeholders missing from the payload"
    )
    options_key: str = Field(default="options", description="Payload key holding paging/control options")

    enable_debug_logging: bool = Field(
        default_factory=lambda: _env_flag("DYNAMODB_DEBUG_LOGGING"),
        description="Set the package logger to DEBUG when a store is loaded"
    )

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        """A region is needed to sign requests."""
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('options_key')
    @classmethod
    def validate_options_key(cls, v):
        if not v:
            raise ValueError("options_key must be a non-empty string")
        return v

    def session_kwargs(self) -> Dict[str, Any]:
        """Arguments for boto3.Session."""
        return {
            'aws_access_key_id': self.aws_access_key_id,
            'aws_secret_access_key': self.aws_secret_access_key,
            'region_name': self.region_name,
        }

    def client_kwargs(self) -> Dict[str, Any]:
        """Arguments for ``session.client('dynamodb', ...)``."""
        kwargs: Dict[str, Any] = {
            'region_name': self.region_name,
            'config': Config(
                retries={'max_attempts': self.retries},
                max_pool_connections=self.max_pool_connections,
                read_timeout=self.timeout_seconds,
                connect_timeout=self.timeout_seconds
            ),
        }
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        """Configuration read from environment variables (and .env)."""
        return cls()

    @classmethod
    def for_local_development(cls) -> 'DynamoDBConfig':
        """Configuration for DynamoDB Local on its default port."""
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url="http://localhost:8000",
            enable_debug_logging=True
        )
