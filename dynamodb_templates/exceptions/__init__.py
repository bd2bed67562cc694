# Base exception class
from .base import DynamoDBTemplatesError

from .domain_exceptions import (
    StoreDefinitionError,
    InvalidPayload,
    ValidationFailure,
    MissingPlaceholder,
    MarshallingError,
    BackendServiceError,
    ConditionalCheckFailed,
    RetryableError,
    ConnectionError,
    BatchRetryExhausted,
    PagingAborted,
)

__all__ = [
    # Base exception
    "DynamoDBTemplatesError",

    # Store exceptions (alphabetically ordered)
    "BackendServiceError",
    "BatchRetryExhausted",
    "ConditionalCheckFailed",
    "ConnectionError",
    "InvalidPayload",
    "MarshallingError",
    "MissingPlaceholder",
    "PagingAborted",
    "RetryableError",
    "StoreDefinitionError",
    "ValidationFailure",
]
