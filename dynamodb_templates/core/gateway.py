"""
Thin DynamoDB Client Gateway

Wraps the low-level boto3 DynamoDB client. Requests and responses are in
the typed attribute-value wire format; marshalling happens one layer up in
the executor.

The gateway is responsible for:
- Creating the boto3 client from DynamoDBConfig (or using an injected one)
- One method per primitive call the store needs
- Mapping botocore failures to the library's exception hierarchy, keeping
  DynamoDB's error code and message intact
"""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    BackendServiceError,
    ConditionalCheckFailed,
    ConnectionError,
    RetryableError,
)

logger = logging.getLogger(__name__)

THROTTLING_CODES = frozenset({
    'ProvisionedThroughputExceededException',
    'RequestLimitExceeded',
    'ThrottlingException',
    'TooManyRequestsException',
})

TRANSIENT_CODES = frozenset({
    'InternalServerError',
    'ServiceUnavailable',
    'ServiceUnavailableException',
    'RequestTimeoutException',
})

AUTH_CODES = frozenset({
    'UnrecognizedClientException',
    'AccessDeniedException',
    'InvalidSignatureException',
    'IncompleteSignatureException',
    'ExpiredTokenException',
    'MissingAuthenticationTokenException',
})


def map_dynamodb_error(error: Exception, operation: str, table_name: Optional[str] = None) -> BackendServiceError:
    """Map a botocore failure to a BackendServiceError subclass.

    The DynamoDB error code is kept on ``code`` so callers can branch on it
    exactly as they would on the raw ClientError.

    Args:
        error: The botocore exception
        operation: The call that failed (e.g. "GetItem", "UpdateItem")
        table_name: The DynamoDB table name, when known

    Returns:
        ConditionalCheckFailed: For failed condition expressions
        RetryableError: For throttling and transient service errors
        ConnectionError: For transport and credential failures
        BackendServiceError: For everything else
    """
    context = f"{operation} on {table_name}" if table_name else operation

    if not isinstance(error, ClientError):
        return ConnectionError(
            f"{context}: {error}",
            code=type(error).__name__,
            operation=operation,
            table_name=table_name,
            original_error=error
        )

    error_code = error.response.get('Error', {}).get('Code', 'Unknown')
    error_message = error.response.get('Error', {}).get('Message', str(error))
    full_message = f"{context}: {error_message}"
    arguments = dict(code=error_code, operation=operation, table_name=table_name, original_error=error)

    if error_code == 'ConditionalCheckFailedException':
        return ConditionalCheckFailed(f"Conditional check failed - {full_message}", **arguments)

    elif error_code in THROTTLING_CODES:
        return RetryableError(f"Throttling - {full_message}", **arguments)

    elif error_code in TRANSIENT_CODES:
        return RetryableError(f"Service unavailable - {full_message}", **arguments)

    elif error_code in AUTH_CODES:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", **arguments)

    logger.warning(f"DynamoDB error code '{error_code}' passed through as BackendServiceError")
    return BackendServiceError(full_message, **arguments)


def create_dynamodb_client(config: DynamoDBConfig):
    """Create a low-level boto3 DynamoDB client from configuration.

    Raises:
        ConnectionError: The session or client could not be created
    """
    try:
        session = boto3.Session(**config.session_kwargs())
        client = session.client('dynamodb', **config.client_kwargs())
        logger.debug(f"Created DynamoDB client for {config.region_name} (endpoint={config.endpoint_url or 'default'})")
        return client
    except Exception as e:
        logger.error(f"Failed to create DynamoDB client: {e}")
        raise ConnectionError(f"Failed to connect to DynamoDB: {e}", original_error=e) from e


class DynamoDBGateway:
    """
    Thin gateway over a low-level DynamoDB client.

    The client is either injected or created lazily from configuration, and
    is shared read-only by every call of every operation bound to it.
    """

    def __init__(self, config: DynamoDBConfig, client: Any = None):
        """Initialize the gateway.

        Args:
            config: DynamoDB configuration
            client: Optional pre-built boto3 DynamoDB client
        """
        self.config = config
        self._client = client

    @property
    def client(self):
        """Lazy initialization of the boto3 client."""
        if self._client is None:
            self._client = create_dynamodb_client(self.config)
        return self._client

    def _call(self, operation: str, method_name: str, request: Dict[str, Any]) -> Dict[str, Any]:
        table_name = request.get('TableName')
        try:
            response = getattr(self.client, method_name)(**request)
        except (ClientError, BotoCoreError) as e:
            raise map_dynamodb_error(e, operation, table_name) from e
        return response or {}

    def put_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call("PutItem", 'put_item', request)
        logger.info(f"Put item in {request.get('TableName')}")
        return response

    def get_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("GetItem", 'get_item', request)

    def delete_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call("DeleteItem", 'delete_item', request)
        logger.info(f"Deleted item from {request.get('TableName')}")
        return response

    def update_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call("UpdateItem", 'update_item', request)
        logger.info(f"Updated item in {request.get('TableName')}")
        return response

    def query(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("Query", 'query', request)

    def scan(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("Scan", 'scan', request)

    def batch_write_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("BatchWriteItem", 'batch_write_item', request)

    def batch_get_item(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("BatchGetItem", 'batch_get_item', request)
