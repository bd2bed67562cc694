"""
Store loading and bound operations.

    store = load_store({
        'table_name': 'Movies',
        'operations': {
            'addMovie': {'_type': 'put', 'Item': '{{movie}}'},
            'getMovie': {'_type': 'get', 'Key': '{{key}}'},
        },
    })

    store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})
    store.getMovie({'key': {'year': 2013, 'title': 'Superman'}}, callback)

Every bound operation can be used two ways:
- ``op(payload)`` returns the result or raises a DynamoDBTemplatesError
- ``op(payload, callback)`` calls ``callback(error, result)`` exactly once;
  a validator veto passes the validator's returned object as ``error``
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .config import DynamoDBConfig
from .core.executor import OperationExecutor
from .core.gateway import DynamoDBGateway
from .core.validation import pure_model, run_validator
from .exceptions import DynamoDBTemplatesError, InvalidPayload, StoreDefinitionError, ValidationFailure
from .models import OperationSpec, PagingOptions, StoreDescription

logger = logging.getLogger(__name__)

Callback = Callable[[Any, Any], Any]

# Instance attributes of Store that operation names must not shadow
_STORE_ATTRIBUTES = frozenset({'description', 'config', '_executor', '_operations'})


class BoundOperation:
    """A compiled operation bound to a store's executor."""

    def __init__(self, store: 'Store', spec: OperationSpec):
        self._store = store
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    def __repr__(self) -> str:
        return f"BoundOperation(name={self.spec.name!r}, kind={self.spec.kind.value!r})"

    def __call__(self, payload: Optional[Mapping[str, Any]] = None, callback: Optional[Callback] = None) -> Any:
        """Execute the operation.

        Args:
            payload: Values for the template placeholders, plus optional
                paging/control settings under the options key
            callback: Optional ``callback(error, result)``

        Returns:
            The result when no callback is given, otherwise None
        """
        try:
            result = self.invoke(payload)
        except DynamoDBTemplatesError as error:
            error.add_context(operation=self.spec.name)
            if callback is None:
                raise
            logger.debug(f"{self.spec.name} failed: {error}")
            # A vetoed call hands the callback the validator's own object
            callback(error.result if isinstance(error, ValidationFailure) else error, None)
            return None

        if callback is None:
            return result
        callback(None, result)
        return None

    def invoke(self, payload: Optional[Mapping[str, Any]] = None) -> Any:
        """Substitute, validate, execute and return the native result.

        Raises:
            InvalidPayload: Payload or options have the wrong shape
            MissingPlaceholder: A required placeholder has no value
            ValidationFailure: The validator rejected the pure model
            BackendServiceError: DynamoDB rejected the call
            BatchRetryExhausted: Batch requests left unprocessed
            PagingAborted: A page callback or reducer failed
        """
        config = self._store.config
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise InvalidPayload(f"Payload for {self.spec.name} must be a mapping, got {type(payload).__name__}")

        raw_options = payload.get(config.options_key)
        if raw_options is not None and not isinstance(raw_options, Mapping):
            raise InvalidPayload(f"'{config.options_key}' must be a mapping, got {type(raw_options).__name__}")
        try:
            options = PagingOptions.from_mapping(raw_options)
        except ValueError as e:
            raise InvalidPayload(f"Invalid '{config.options_key}' for {self.spec.name}: {e}", e) from e

        model = pure_model(payload, config.options_key)
        request = self.spec.template.render(model, config.placeholder_policy)
        run_validator(self.spec.validator, model, self.spec.name)

        table_name = self._store.table_name(model)
        logger.debug(f"{self.spec.name}: {self.spec.kind.value} on {table_name}")
        return self._store._executor.execute(self.spec, table_name, request, options)


class Store:
    """Bound operations of one store description.

    Operations are reachable as attributes (``store.getMovie``) or by
    subscription (``store['getMovie']``).
    """

    def __init__(self, description: StoreDescription, executor: OperationExecutor, config: DynamoDBConfig):
        self.description = description
        self.config = config
        self._executor = executor
        self._operations: Dict[str, BoundOperation] = {
            name: BoundOperation(self, spec) for name, spec in description.operations.items()
        }

    def __getattr__(self, name: str) -> BoundOperation:
        operations = self.__dict__.get('_operations', {})
        if name in operations:
            return operations[name]
        raise AttributeError(f"Store has no operation '{name}'")

    def __getitem__(self, name: str) -> BoundOperation:
        try:
            return self._operations[name]
        except KeyError:
            raise KeyError(f"Store has no operation '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._operations))

    @property
    def operation_names(self) -> List[str]:
        return list(self._operations)

    def table_name(self, context: Optional[Mapping[str, Any]] = None) -> str:
        """Resolve the table name for a call context."""
        table_name = self.description.resolve_table_name(dict(context or {}))
        if not isinstance(table_name, str) or not table_name:
            raise StoreDefinitionError(f"Table name resolver returned {table_name!r}, expected a non-empty string")
        return table_name


def load_store(
    description: Union[Mapping[str, Any], StoreDescription],
    client: Any = None,
    config: Optional[DynamoDBConfig] = None
) -> Store:
    """Compile a store description and bind its operations.

    Args:
        description: Raw store description or an already compiled one
        client: Optional low-level boto3 DynamoDB client; created lazily from
            the configuration when omitted
        config: Optional configuration; read from the environment when omitted

    Returns:
        Store with one bound operation per description entry

    Raises:
        StoreDefinitionError: The description is malformed
    """
    config = config or DynamoDBConfig.from_env()
    if config.enable_debug_logging:
        logging.getLogger(__package__).setLevel(logging.DEBUG)

    if isinstance(description, StoreDescription):
        compiled = description
    else:
        compiled = StoreDescription.from_description(description)

    for name in compiled.operations:
        if name in _STORE_ATTRIBUTES or hasattr(Store, name):
            raise StoreDefinitionError(f"Operation name '{name}' collides with a Store attribute", name)

    gateway = DynamoDBGateway(config, client)
    store = Store(compiled, OperationExecutor(gateway, config), config)
    logger.info(f"Loaded store with operations: {', '.join(store.operation_names)}")
    return store
