"""
Template Compiler & Substitution Engine

Request templates are ordinary DynamoDB request dictionaries with
``{{path}}`` markers wherever a value should come from the call payload:

    {
        'Key': {'title': '{{title}}:{{part}}', 'year': '{{year}}'},
        'UpdateExpression': 'set rating = :rating',
        'ExpressionAttributeValues': {':rating': '{{rating}}'},
    }

compile_request_template() parses such a dictionary once into a tree of
frozen nodes; RequestTemplate.render() rebuilds a fresh request from a
payload on every call without touching the tree or the payload.

String leaves are classified at compile time:
- Literal: no marker
- WholeValueRef: the whole string is a single marker; the referenced value
  keeps its type (scalar, list or map)
- InterpolatedString: text mixed with one or more markers; every value is
  rendered as text and concatenated
"""

import copy
import json
import logging
import re
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from ..config import PlaceholderPolicy
from ..exceptions import InvalidPayload, MissingPlaceholder, StoreDefinitionError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

# Request fields whose placeholders are mandatory under PlaceholderPolicy.BY_FIELD
REQUIRED_FIELDS = frozenset({'Key', 'Item', 'RequestItems'})


class _Absent:
    """Marker for a value that resolved to nothing and must be omitted."""

    def __repr__(self) -> str:
        return 'ABSENT'


ABSENT = _Absent()


class RenderContext:
    """Per-call lookup state for one top-level request field."""

    def __init__(self, payload: Mapping[str, Any], strict: bool, field: Optional[str] = None):
        self.payload = payload
        self.strict = strict
        self.field = field

    def lookup(self, path: str) -> Any:
        return resolve_path(self.payload, path)

    def missing(self, path: str) -> Any:
        if self.strict:
            raise MissingPlaceholder(path, self.field)
        logger.debug(f"Placeholder '{path}' missing in {self.field}, omitting value")
        return ABSENT


def resolve_path(payload: Any, path: str) -> Any:
    """Walk a dotted path through mappings and sequences.

    Returns ABSENT when any segment is missing. ``None`` is a present value.
    """
    current = payload
    for segment in path.split('.'):
        if isinstance(current, Mapping):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.lstrip('-').isdigit():
            index = int(segment)
            if not -len(current) <= index < len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT
    return current


def stringify(value: Any) -> str:
    """Text form of a value embedded in an interpolated string."""
    if isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        return str(value)
    return json.dumps(value, default=str, separators=(',', ':'))


# =============================================================================
# Template Nodes
# =============================================================================

class TemplateNode(BaseModel):
    """Base class of compiled template nodes."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def render(self, context: RenderContext) -> Any:
        raise NotImplementedError


class Literal(TemplateNode):
    value: Any

    def render(self, context: RenderContext) -> Any:
        return copy.deepcopy(self.value)


class WholeValueRef(TemplateNode):
    path: str

    def render(self, context: RenderContext) -> Any:
        value = context.lookup(self.path)
        if value is ABSENT:
            return context.missing(self.path)
        return copy.deepcopy(value)


class InterpolatedString(TemplateNode):
    parts: Tuple[Union[str, WholeValueRef], ...]

    def render(self, context: RenderContext) -> Any:
        pieces = []
        for part in self.parts:
            if isinstance(part, str):
                pieces.append(part)
                continue
            value = context.lookup(part.path)
            if value is ABSENT:
                return context.missing(part.path)
            pieces.append(stringify(value))
        return ''.join(pieces)


class MapNode(TemplateNode):
    entries: Dict[str, TemplateNode]

    def render(self, context: RenderContext) -> Any:
        result = {}
        for key, node in self.entries.items():
            value = node.render(context)
            if value is not ABSENT:
                result[key] = value
        if self.entries and not result:
            return ABSENT
        return result


class ListNode(TemplateNode):
    items: Tuple[TemplateNode, ...]

    def render(self, context: RenderContext) -> Any:
        result = [value for value in (node.render(context) for node in self.items) if value is not ABSENT]
        if self.items and not result:
            return ABSENT
        return result


class BatchWriteNode(TemplateNode):
    """Expands lists of items/keys into BatchWriteItem request entries."""

    put: Optional[TemplateNode] = None
    delete: Optional[TemplateNode] = None

    def render(self, context: RenderContext) -> Any:
        requests = []
        for node, request_type, member in (
            (self.put, 'PutRequest', 'Item'),
            (self.delete, 'DeleteRequest', 'Key'),
        ):
            if node is None:
                continue
            values = node.render(context)
            if values is ABSENT:
                continue
            requests.extend({request_type: {member: value}} for value in _as_list(values, request_type))
        return requests


class BatchWriteTemplate(BaseModel):
    """Uncompiled batch-write section, produced by helpers.batch_write()."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    put: Any = None
    delete: Any = None


def _as_list(values: Any, request_type: str) -> list:
    if isinstance(values, Mapping):
        return [values]
    if isinstance(values, (list, tuple)):
        return list(values)
    raise InvalidPayload(f"{request_type} expects an item or a list of items, got {type(values).__name__}")


# =============================================================================
# Compilation
# =============================================================================

def compile_string(text: str) -> TemplateNode:
    matches = list(PLACEHOLDER_PATTERN.finditer(text))
    if not matches:
        return Literal(value=text)
    if len(matches) == 1 and matches[0].span() == (0, len(text)):
        return WholeValueRef(path=matches[0].group(1))

    parts = []
    position = 0
    for match in matches:
        if match.start() > position:
            parts.append(text[position:match.start()])
        parts.append(WholeValueRef(path=match.group(1)))
        position = match.end()
    if position < len(text):
        parts.append(text[position:])
    return InterpolatedString(parts=tuple(parts))


def compile_node(raw: Any) -> TemplateNode:
    """Compile one raw template value into a node tree."""
    if isinstance(raw, TemplateNode):
        return raw
    if isinstance(raw, BatchWriteTemplate):
        return BatchWriteNode(
            put=compile_node(raw.put) if raw.put is not None else None,
            delete=compile_node(raw.delete) if raw.delete is not None else None,
        )
    if isinstance(raw, str):
        return compile_string(raw)
    if isinstance(raw, Mapping):
        entries = {}
        for key, value in raw.items():
            if not isinstance(key, str):
                raise StoreDefinitionError(f"Template keys must be strings, got {key!r}")
            entries[key] = compile_node(value)
        if all(isinstance(node, Literal) for node in entries.values()):
            return Literal(value={key: node.value for key, node in entries.items()})
        return MapNode(entries=entries)
    if isinstance(raw, (list, tuple)):
        items = tuple(compile_node(value) for value in raw)
        if all(isinstance(node, Literal) for node in items):
            return Literal(value=[node.value for node in items])
        return ListNode(items=items)
    return Literal(value=copy.deepcopy(raw))


class RequestTemplate(BaseModel):
    """Compiled request template: one node per top-level request field."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sections: Dict[str, TemplateNode]

    def render(self, payload: Mapping[str, Any], policy: PlaceholderPolicy = PlaceholderPolicy.BY_FIELD) -> Dict[str, Any]:
        """Build a fresh request dictionary from a payload.

        Raises:
            MissingPlaceholder: A mandatory reference has no value
        """
        request = {}
        for field, node in self.sections.items():
            context = RenderContext(payload, _is_strict(policy, field), field)
            value = node.render(context)
            if value is not ABSENT:
                request[field] = value
        return request


def _is_strict(policy: PlaceholderPolicy, field: str) -> bool:
    if policy == PlaceholderPolicy.STRICT:
        return True
    if policy == PlaceholderPolicy.PERMISSIVE:
        return False
    return field in REQUIRED_FIELDS


def compile_request_template(raw: Mapping[str, Any]) -> RequestTemplate:
    """Compile the request part of an operation description.

    Args:
        raw: DynamoDB request dictionary with ``{{path}}`` markers

    Returns:
        Immutable RequestTemplate
    """
    return RequestTemplate(sections={field: compile_node(value) for field, value in raw.items()})
