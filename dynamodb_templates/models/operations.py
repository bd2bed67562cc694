"""
Store Description Models

Compiled, immutable form of a store description:

    {
        'table_name': 'Movies',             # or a callable(context) -> str
        'operations': {
            'getMovie': {
                '_type': 'get',              # OperationKind
                '_validator': check_movie,   # optional
                '_page_limit': 10,           # optional, query/scan only
                'Key': '{{key}}',            # everything else is the request template
            },
        },
    }

Reserved keys start with an underscore so they can never collide with
DynamoDB request parameters, which are all PascalCase.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.templates import RequestTemplate, compile_request_template
from ..exceptions import StoreDefinitionError

logger = logging.getLogger(__name__)

TYPE_KEY = '_type'
VALIDATOR_KEY = '_validator'
PAGE_LIMIT_KEY = '_page_limit'
RESERVED_KEYS = (TYPE_KEY, VALIDATOR_KEY, PAGE_LIMIT_KEY)


class OperationKind(str, Enum):
    """DynamoDB call an operation is bound to."""

    PUT = "put"
    GET = "get"
    DELETE = "delete"
    UPDATE = "update"
    QUERY = "query"
    SCAN = "scan"
    BATCH_WRITE = "batch_write"
    BATCH_GET = "batch_get"

    @classmethod
    def _missing_(cls, value):
        # Accept camelCase spellings such as 'batchWrite'
        if isinstance(value, str):
            normalized = ''.join(f"_{c.lower()}" if c.isupper() else c for c in value).lstrip('_')
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def is_paged(self) -> bool:
        return self in (OperationKind.QUERY, OperationKind.SCAN)


class OperationSpec(BaseModel):
    """One named operation of a store."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    kind: OperationKind
    template: RequestTemplate
    validator: Optional[Callable[[Dict[str, Any]], Any]] = None
    page_limit: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def from_description(cls, name: str, raw: Mapping[str, Any]) -> 'OperationSpec':
        """Compile a raw operation description.

        Raises:
            StoreDefinitionError: Unknown kind, bad validator or page limit
        """
        if not isinstance(raw, Mapping):
            raise StoreDefinitionError(f"Operation '{name}' must be a mapping", name)
        if TYPE_KEY not in raw:
            raise StoreDefinitionError(f"Operation '{name}' is missing '{TYPE_KEY}'", name)

        try:
            kind = OperationKind(raw[TYPE_KEY])
        except ValueError as e:
            raise StoreDefinitionError(f"Operation '{name}' has unknown kind {raw[TYPE_KEY]!r}", name, e) from e

        validator = raw.get(VALIDATOR_KEY)
        if validator is not None and not callable(validator):
            raise StoreDefinitionError(f"Operation '{name}' validator must be callable", name)

        page_limit = raw.get(PAGE_LIMIT_KEY)
        if page_limit is not None and not kind.is_paged:
            raise StoreDefinitionError(f"Operation '{name}' sets '{PAGE_LIMIT_KEY}' but is not a query or scan", name)

        request = {key: value for key, value in raw.items() if key not in RESERVED_KEYS}
        try:
            return cls(
                name=name,
                kind=kind,
                template=compile_request_template(request),
                validator=validator,
                page_limit=page_limit
            )
        except StoreDefinitionError as e:
            raise StoreDefinitionError(f"Operation '{name}': {e.message}", name, e) from e
        except ValueError as e:
            raise StoreDefinitionError(f"Invalid operation '{name}': {e}", name, e) from e


TableNameResolver = Union[str, Callable[[Dict[str, Any]], str]]


class StoreDescription(BaseModel):
    """Compiled store: table name resolver plus operations by name."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)

    table_name: TableNameResolver = Field(alias='tableName')
    operations: Dict[str, OperationSpec]

    @field_validator('table_name')
    @classmethod
    def validate_table_name(cls, v):
        """Validate table name or resolver."""
        if isinstance(v, str) and not v:
            raise ValueError("table_name must be a non-empty string or a callable")
        return v

    def resolve_table_name(self, context: Mapping[str, Any]) -> str:
        """Table name for one call; callables are invoked per call."""
        if callable(self.table_name):
            return self.table_name(context)
        return self.table_name

    @classmethod
    def from_description(cls, raw: Mapping[str, Any]) -> 'StoreDescription':
        """Compile a raw store description.

        Raises:
            StoreDefinitionError: The description is malformed
        """
        if not isinstance(raw, Mapping):
            raise StoreDefinitionError("Store description must be a mapping")

        table_name = raw.get('table_name', raw.get('tableName'))
        if table_name is None:
            raise StoreDefinitionError("Store description is missing 'table_name'")

        raw_operations = raw.get('operations') or {}
        if not isinstance(raw_operations, Mapping):
            raise StoreDefinitionError("'operations' must map operation names to descriptions")

        operations = {}
        for name, operation in raw_operations.items():
            if not isinstance(name, str) or not name.isidentifier():
                raise StoreDefinitionError(f"Operation name {name!r} must be a valid identifier", str(name))
            operations[name] = OperationSpec.from_description(name, operation)

        try:
            description = cls(table_name=table_name, operations=operations)
        except ValueError as e:
            raise StoreDefinitionError(f"Invalid store description: {e}", original_error=e) from e

        logger.debug(f"Compiled store with {len(operations)} operations: {sorted(operations)}")
        return description
