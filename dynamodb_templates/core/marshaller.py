"""
Type Marshaller

Converts between plain Python values and DynamoDB's typed attribute-value
wire format used by the low-level boto3 client.

boto3's TypeSerializer/TypeDeserializer already cover strings, booleans,
nulls, binary, sets, lists and maps. Two behaviours differ here:

- Numbers: ``int`` and ``float`` are accepted (boto3 insists on Decimal) and
  are encoded as their shortest decimal string. Inbound, ``N`` values come
  back as ``int`` unless they carry a fraction or exponent, in which case
  they come back as ``float``.
- Binary: ``B`` values come back as ``bytes`` instead of boto3's ``Binary``
  wrapper, so ``unmarshal(marshal(v)) == v`` holds for raw bytes.
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from ..exceptions import MarshallingError

logger = logging.getLogger(__name__)


def format_number(value: Any) -> str:
    """Encode a native number as a DynamoDB ``N`` string.

    Examples:
        >>> format_number(2013)
        '2013'
        >>> format_number(0.1)
        '0.1'
    """
    if isinstance(value, bool):
        raise TypeError(f"Booleans are not numbers: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError(f"Infinity and NaN not supported: {value!r}")
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise TypeError(f"Infinity and NaN not supported: {value!r}")
        return str(value)
    raise TypeError(f"Unsupported number type: {type(value).__name__}")


def parse_number(text: str) -> Any:
    """Decode a DynamoDB ``N`` string to ``int`` or ``float``."""
    if any(marker in text for marker in ('.', 'e', 'E')):
        return float(text)
    return int(text)


class AttributeSerializer(TypeSerializer):
    """TypeSerializer that accepts native floats and keeps full int precision."""

    def _is_number(self, value):
        return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)

    def _serialize_n(self, value):
        return format_number(value)


class AttributeDeserializer(TypeDeserializer):
    """TypeDeserializer that yields int/float numbers and raw bytes."""

    def _deserialize_n(self, value):
        return parse_number(value)

    def _deserialize_ns(self, value):
        return set(map(self._deserialize_n, value))

    def _deserialize_b(self, value):
        return bytes(value)

    def _deserialize_bs(self, value):
        return set(map(self._deserialize_b, value))


_serializer = AttributeSerializer()
_deserializer = AttributeDeserializer()


def marshal(value: Any) -> Dict[str, Any]:
    """Convert a native value to a typed attribute value.

    Raises:
        MarshallingError: If the value has no attribute-value form
    """
    try:
        return _serializer.serialize(value)
    except TypeError as e:
        raise MarshallingError(f"Cannot marshal value: {e}", value, e) from e


def unmarshal(attribute: Mapping[str, Any]) -> Any:
    """Convert a typed attribute value back to a native value.

    Raises:
        MarshallingError: If the attribute value is malformed
    """
    try:
        return _deserializer.deserialize(attribute)
    except (TypeError, ValueError) as e:
        raise MarshallingError(f"Cannot unmarshal attribute value: {e}", attribute, e) from e


def marshal_item(item: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Marshal every attribute of an item, key or attribute-value map."""
    if not isinstance(item, Mapping):
        raise MarshallingError(f"Expected a mapping of attributes, got {type(item).__name__}", item)
    return {name: marshal(value) for name, value in item.items()}


def unmarshal_item(item: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Unmarshal an item returned by DynamoDB; ``None`` passes through."""
    if item is None:
        return None
    return {name: unmarshal(attribute) for name, attribute in item.items()}
