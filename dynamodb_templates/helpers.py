"""Helpers for writing store descriptions and payloads."""

from typing import Any, Dict, Mapping, Optional

from .core.templates import BatchWriteTemplate
from .exceptions import StoreDefinitionError


def batch_write(put: Any = None, delete: Any = None) -> BatchWriteTemplate:
    """Template section expanding item/key lists into BatchWriteItem requests.

    Example:
        'RequestItems': {'Movies': batch_write(put='{{movies}}', delete='{{stale_keys}}')}

    renders ``{'movies': [m1, m2]}`` into
    ``[{'PutRequest': {'Item': m1}}, {'PutRequest': {'Item': m2}}]``.
    """
    if put is None and delete is None:
        raise StoreDefinitionError("batch_write() needs a put and/or delete template")
    return BatchWriteTemplate(put=put, delete=delete)


def count_records(total: int, page: Mapping[str, Any]) -> int:
    """Page reducer adding up the Count of raw Query/Scan pages."""
    return total + page.get('Count', len(page.get('Items', [])))


def make_records_counter(params: Optional[Mapping[str, Any]] = None, options_key: str = "options") -> Dict[str, Any]:
    """Payload that counts every record a query/scan reaches across all pages.

    ``params`` is copied, never modified.
    """
    payload = dict(params or {})
    payload[options_key] = {
        'raw': True,
        'pages': 'all',
        'page_reduce': count_records,
        'page_reduce_initial': 0,
    }
    return payload
