"""
Store Exceptions

Every failure of a bound operation is one of these. They all extend
DynamoDBTemplatesError so callers can catch the whole family at once.

Organized by category:
1. Definition and payload errors (raised before any backend call)
2. Backend errors (passthrough of boto3 ClientError)
3. Multi-call errors (batch retry budget, paging)
"""

from typing import Any, Dict, List, Optional

from .base import DynamoDBTemplatesError


# =============================================================================
# Definition and Payload Errors
# =============================================================================

class StoreDefinitionError(DynamoDBTemplatesError):
    """Raised by load_store when a store description is malformed.

    Used for:
    - Unknown or missing operation kinds
    - Operation names that are empty or shadow Store attributes
    - Non-callable validators and invalid page limits
    """

    def __init__(self, message: str, operation: Optional[str] = None, original_error: Optional[Exception] = None):
        self.operation = operation
        context = {}
        if operation:
            context['operation'] = operation
        super().__init__(message, original_error, context)


class InvalidPayload(DynamoDBTemplatesError):
    """Raised when a payload or its options sub-key has the wrong shape."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)


class ValidationFailure(DynamoDBTemplatesError):
    """Raised when an operation's validator vetoes the pure model.

    The validator's returned object is kept unchanged on ``result`` so callers
    receive exactly what the validator produced.
    """

    def __init__(self, result: Any, operation: Optional[str] = None):
        """Initialize validation failure.

        Args:
            result: The failed object returned by the validator
            operation: Name of the vetoed operation
        """
        self.result = result
        self.operation = operation
        message = _result_message(result) or "Validator rejected the payload"
        context = {}
        if operation:
            context['operation'] = operation
        super().__init__(message, None, context)


class MissingPlaceholder(DynamoDBTemplatesError):
    """Raised when a required template reference is absent from the payload.

    Used for:
    - ``{{path}}`` markers under Key, Item or RequestItems
    - Any marker when the placeholder policy is strict
    """

    def __init__(self, path: str, field: Optional[str] = None):
        self.path = path
        self.field = field
        message = f"Placeholder '{{{{{path}}}}}' has no value in the payload"
        context = {'path': path}
        if field:
            context['field'] = field
        super().__init__(message, None, context)


class MarshallingError(DynamoDBTemplatesError):
    """Raised when a native value has no DynamoDB attribute-value form."""

    def __init__(self, message: str, value: Any = None, original_error: Optional[Exception] = None):
        self.value = value
        super().__init__(message, original_error, {'value_type': type(value).__name__})


# =============================================================================
# Backend Errors
# =============================================================================

class BackendServiceError(DynamoDBTemplatesError):
    """Raised when DynamoDB rejects a call.

    The backend's error code and message are passed through untouched; the
    boto3 exception is kept on ``original_error``.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        operation: Optional[str] = None,
        table_name: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """Initialize backend service error.

        Args:
            message: Human-readable error message
            code: DynamoDB error code (e.g. 'ConditionalCheckFailedException')
            operation: The low-level call that failed (e.g. 'UpdateItem')
            table_name: The DynamoDB table name
            original_error: The original boto3/botocore exception
        """
        self.code = code
        self.operation = operation
        self.table_name = table_name
        context = {}
        if code:
            context['code'] = code
        if operation:
            context['operation'] = operation
        if table_name:
            context['table_name'] = table_name
        super().__init__(message, original_error, context)


class ConditionalCheckFailed(BackendServiceError):
    """Raised when a ConditionExpression evaluates to false.

    The stored item is left unchanged and the call is never retried.
    """


class RetryableError(BackendServiceError):
    """Raised for throttling and transient service failures.

    Used for:
    - ProvisionedThroughputExceededException
    - RequestLimitExceeded and ThrottlingException
    - InternalServerError and ServiceUnavailable
    """


class ConnectionError(BackendServiceError):
    """Raised when DynamoDB cannot be reached or refuses the credentials.

    Used for:
    - Network connectivity issues and invalid endpoints
    - Authentication/authorization failures
    - Failures creating the boto3 client
    """


# =============================================================================
# Multi-call Errors
# =============================================================================

class BatchRetryExhausted(DynamoDBTemplatesError):
    """Raised when batch requests remain unprocessed after the retry budget.

    ``unprocessed`` maps table name to the remaining requests, in input
    order and in native (unmarshalled) form: PutRequest/DeleteRequest
    entries for batch writes, keys for batch gets. When throttling outlasted
    the budget, the throttling error is kept as ``original_error``.
    """

    def __init__(
        self,
        operation: str,
        unprocessed: Dict[str, List[Any]],
        attempts: int,
        original_error: Optional[Exception] = None
    ):
        self.operation = operation
        self.unprocessed = unprocessed
        self.attempts = attempts
        count = sum(len(requests) for requests in unprocessed.values())
        self.unprocessed_count = count
        message = f"{operation} left {count} requests unprocessed after {attempts} retries"
        context = {
            'operation': operation,
            'unprocessed_count': count,
            'tables': sorted(unprocessed)
        }
        if original_error is not None:
            context['last_error'] = getattr(original_error, 'code', type(original_error).__name__)
        super().__init__(message, original_error, context)


class PagingAborted(DynamoDBTemplatesError):
    """Raised when a page callback or reducer fails mid-sequence.

    No further pages are requested once this is raised.
    """

    def __init__(self, cause: Any, pages_fetched: int):
        self.cause = cause
        self.pages_fetched = pages_fetched
        message = f"Paging aborted after {pages_fetched} pages: {cause}"
        original_error = cause if isinstance(cause, Exception) else None
        super().__init__(message, original_error, {'pages_fetched': pages_fetched})


def _result_message(result: Any) -> Optional[str]:
    if isinstance(result, dict):
        return result.get('message')
    return getattr(result, 'message', None)
