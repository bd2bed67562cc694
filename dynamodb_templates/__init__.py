from .config import DynamoDBConfig, PlaceholderPolicy
from .exceptions import (
    BackendServiceError,
    BatchRetryExhausted,
    ConditionalCheckFailed,
    ConnectionError,
    DynamoDBTemplatesError,
    InvalidPayload,
    MarshallingError,
    MissingPlaceholder,
    PagingAborted,
    RetryableError,
    StoreDefinitionError,
    ValidationFailure,
)
from .core import marshal, marshal_item, unmarshal, unmarshal_item
from .models import (
    OperationKind,
    OperationSpec,
    PagingOptions,
    StoreDescription,
    ValidationResult,
)
from .helpers import batch_write, count_records, make_records_counter
from .store import BoundOperation, Store, load_store

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",
    "PlaceholderPolicy",

    # Exceptions
    "BackendServiceError",
    "BatchRetryExhausted",
    "ConditionalCheckFailed",
    "ConnectionError",
    "DynamoDBTemplatesError",
    "InvalidPayload",
    "MarshallingError",
    "MissingPlaceholder",
    "PagingAborted",
    "RetryableError",
    "StoreDefinitionError",
    "ValidationFailure",

    # Type marshalling
    "marshal",
    "marshal_item",
    "unmarshal",
    "unmarshal_item",

    # Models
    "OperationKind",
    "OperationSpec",
    "PagingOptions",
    "StoreDescription",
    "ValidationResult",

    # Helpers
    "batch_write",
    "count_records",
    "make_records_counter",

    # Store
    "BoundOperation",
    "Store",
    "load_store",
]
