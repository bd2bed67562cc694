"""
Operation Executor

One strategy per OperationKind. Every strategy receives the rendered
request (native values), marshals it into the wire format, performs the
backend call(s) through the gateway and shapes the result:

    put          -> the submitted item
    get          -> the item, or None when absent
    delete       -> None
    update       -> returned Attributes, or None
    query/scan   -> delegated to PagingController
    batch_write  -> None (BatchRetryExhausted names any residue)
    batch_get    -> {table_name: [items in requested key order]}

Batch requests are cut into chunks no larger than the backend's per-call
limits and run on a bounded thread pool. Each chunk resubmits its own
unprocessed residue with exponential backoff; results are reassembled in
input order so the concurrency never shows in the output.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..config import DynamoDBConfig
from ..exceptions import BatchRetryExhausted, InvalidPayload, RetryableError
from ..models import Chunk, OperationKind, OperationSpec, PagingOptions
from .gateway import DynamoDBGateway
from .marshaller import marshal_item, unmarshal_item
from .paging import PagingController

logger = logging.getLogger(__name__)

# Request fields holding attribute-name -> value maps
VALUE_MAP_FIELDS = ('Item', 'Key', 'ExclusiveStartKey', 'ExpressionAttributeValues')

Strategy = Callable[[OperationSpec, str, Dict[str, Any], PagingOptions], Any]


def _chunked(requests: List[Any], size: int) -> List[Chunk]:
    return [Chunk(index=number, requests=requests[start:start + size])
            for number, start in enumerate(range(0, len(requests), size))]


def _retain_unprocessed(requests: List[Tuple[str, Any]], unprocessed: Mapping[str, List[Any]]) -> List[Tuple[str, Any]]:
    """Pending requests the backend reported as unprocessed, in input order."""
    return [(table, request) for table, request in requests if request in unprocessed.get(table, [])]


def _attribute_signature(value: Any) -> Tuple[str, Any]:
    # Backends normalise N values ("2013.0" comes back as "2013"), so numbers compare by value
    if isinstance(value, Mapping) and len(value) == 1:
        type_code, raw = next(iter(value.items()))
        if type_code == 'N':
            return type_code, Decimal(raw)
        if type_code == 'B':
            return type_code, raw if isinstance(raw, str) else bytes(raw)
        if type_code == 'S':
            return type_code, raw
    return '?', repr(value)


def _key_signature(key: Mapping[str, Any]) -> Tuple[Tuple[str, Tuple[str, Any]], ...]:
    return tuple((name, _attribute_signature(key[name])) for name in sorted(key))


def _first_error(chunks: List[Chunk]) -> Optional[Exception]:
    return next((chunk.last_error for chunk in chunks if chunk.last_error is not None), None)


class OperationExecutor:
    """Dispatches compiled operations to per-kind strategies."""

    def __init__(self, gateway: DynamoDBGateway, config: DynamoDBConfig):
        self.gateway = gateway
        self.config = config
        self._strategies: Dict[OperationKind, Strategy] = {
            OperationKind.PUT: self._put,
            OperationKind.GET: self._get,
            OperationKind.DELETE: self._delete,
            OperationKind.UPDATE: self._update,
            OperationKind.QUERY: self._query,
            OperationKind.SCAN: self._scan,
            OperationKind.BATCH_WRITE: self._batch_write,
            OperationKind.BATCH_GET: self._batch_get,
        }

    def execute(self, operation: OperationSpec, table_name: str, request: Dict[str, Any], options: PagingOptions) -> Any:
        """Run one rendered request.

        Args:
            operation: Compiled operation
            table_name: Resolved table name for this call
            request: Rendered request with native values
            options: Parsed paging/control options

        Returns:
            Native result, shaped per operation kind
        """
        strategy = self._strategies[operation.kind]
        return strategy(operation, table_name, request, options)

    # =========================================================================
    # Single-item strategies
    # =========================================================================

    def _to_wire(self, table_name: str, request: Mapping[str, Any]) -> Dict[str, Any]:
        wire = dict(request)
        wire['TableName'] = table_name
        for field in VALUE_MAP_FIELDS:
            if field in wire:
                wire[field] = marshal_item(wire[field])
        return wire

    def _put(self, operation, table_name, request, options):
        self.gateway.put_item(self._to_wire(table_name, request))
        return request.get('Item')

    def _get(self, operation, table_name, request, options):
        response = self.gateway.get_item(self._to_wire(table_name, request))
        return unmarshal_item(response.get('Item'))

    def _delete(self, operation, table_name, request, options):
        self.gateway.delete_item(self._to_wire(table_name, request))
        return None

    def _update(self, operation, table_name, request, options):
        response = self.gateway.update_item(self._to_wire(table_name, request))
        attributes = response.get('Attributes')
        return unmarshal_item(attributes) if attributes else None

    # =========================================================================
    # Paged strategies
    # =========================================================================

    def _query(self, operation, table_name, request, options):
        return self._paged(operation, table_name, request, options, self.gateway.query)

    def _scan(self, operation, table_name, request, options):
        return self._paged(operation, table_name, request, options, self.gateway.scan)

    def _paged(self, operation, table_name, request, options, call):
        base_request = self._to_wire(table_name, request)

        def fetch(continuation_token):
            page_request = dict(base_request)
            if continuation_token is not None:
                page_request['ExclusiveStartKey'] = continuation_token
            return call(page_request)

        controller = PagingController(
            fetch,
            raw=options.raw,
            page_limit=operation.page_limit,
            operation=operation.name
        )
        return controller.run(options.resolve_mode())

    # =========================================================================
    # Batch strategies
    # =========================================================================

    def _batch_write(self, operation, table_name, request, options):
        pending = []
        for target_table, entries in self._request_items(request).items():
            if not isinstance(entries, (list, tuple)):
                raise InvalidPayload(f"RequestItems['{target_table}'] must be a list of write requests")
            pending.extend((target_table, self._wire_write_request(entry)) for entry in entries)
        if not pending:
            logger.debug(f"{operation.name}: no write requests, skipping BatchWriteItem")
            return None

        extra = {key: value for key, value in request.items() if key != 'RequestItems'}

        def send(chunk: Chunk) -> Dict[str, List[Any]]:
            response = self.gateway.batch_write_item({'RequestItems': chunk.request_items(), **extra})
            return response.get('UnprocessedItems') or {}

        chunks = _chunked(pending, self.config.batch_write_limit)
        residues = self._run_chunks(chunks, lambda chunk: self._drive_chunk(chunk, operation.name, send))

        unprocessed: Dict[str, List[Any]] = {}
        for target_table, wire_request in (entry for residue in residues for entry in residue):
            unprocessed.setdefault(target_table, []).append(self._native_write_request(wire_request))
        if unprocessed:
            raise BatchRetryExhausted("BatchWriteItem", unprocessed, self.config.batch_max_retries, _first_error(chunks))

        logger.info(f"{operation.name}: batch wrote {len(pending)} requests in {len(chunks)} chunks")
        return None

    def _batch_get(self, operation, table_name, request, options):
        table_params: Dict[str, Dict[str, Any]] = {}
        wanted: Dict[str, List[Dict[str, Any]]] = {}
        pending = []
        for target_table, spec in self._request_items(request).items():
            if not isinstance(spec, Mapping) or 'Keys' not in spec:
                raise InvalidPayload(f"RequestItems['{target_table}'] must be a mapping with 'Keys'")
            keys = spec['Keys']
            if isinstance(keys, Mapping):
                keys = [keys]
            table_params[target_table] = {key: value for key, value in spec.items() if key != 'Keys'}
            wanted[target_table] = [marshal_item(key) for key in keys]
            pending.extend((target_table, key) for key in wanted[target_table])

        limit = request.get('Limit')
        extra = {key: value for key, value in request.items() if key not in ('RequestItems', 'Limit')}

        def fetch_chunk(chunk: Chunk) -> Tuple[List[Tuple[str, Any]], List[Tuple[str, Any]]]:
            found = []

            def send(current: Chunk) -> Dict[str, List[Any]]:
                request_items = {
                    target: dict(table_params[target], Keys=keys)
                    for target, keys in current.request_items().items()
                }
                response = self.gateway.batch_get_item({'RequestItems': request_items, **extra})
                for target, items in (response.get('Responses') or {}).items():
                    found.extend((target, item) for item in items)
                return {
                    target: unprocessed_spec.get('Keys', [])
                    for target, unprocessed_spec in (response.get('UnprocessedKeys') or {}).items()
                }

            residue = self._drive_chunk(chunk, operation.name, send)
            return found, residue

        chunks = _chunked(pending, self.config.batch_get_limit)
        results = self._run_chunks(chunks, fetch_chunk) if pending else []

        unprocessed: Dict[str, List[Any]] = {}
        found_items: List[Tuple[str, Any]] = []
        for found, residue in results:
            found_items.extend(found)
            for target_table, key in residue:
                unprocessed.setdefault(target_table, []).append(unmarshal_item(key))
        if unprocessed:
            raise BatchRetryExhausted("BatchGetItem", unprocessed, self.config.batch_max_retries, _first_error(chunks))

        merged = self._merge_in_key_order(wanted, found_items)
        if limit is not None:
            merged = self._cap_merged(merged, int(limit))
        return merged

    def _cap_merged(self, merged: Dict[str, List[Any]], limit: int) -> Dict[str, List[Any]]:
        """Keep at most ``limit`` items overall, filling tables in request order."""
        capped = {}
        remaining = limit
        for target_table, items in merged.items():
            capped[target_table] = items[:max(remaining, 0)]
            remaining -= len(capped[target_table])
        return capped

    def _merge_in_key_order(
        self,
        wanted: Dict[str, List[Dict[str, Any]]],
        found_items: List[Tuple[str, Dict[str, Any]]]
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Order each table's items like the requested keys.

        Items that cannot be matched to a requested key (e.g. a projection
        dropped the key attributes) follow in the order they were returned.
        """
        merged = {}
        for target_table, keys in wanted.items():
            key_names = list(keys[0]) if keys else []
            requested = [_key_signature(key) for key in keys]
            requested_set = set(requested)
            by_key = {}
            unmatched = []
            for table, item in found_items:
                if table != target_table:
                    continue
                signature = None
                if all(name in item for name in key_names):
                    signature = _key_signature({name: item[name] for name in key_names})
                if signature in requested_set and signature not in by_key:
                    by_key[signature] = item
                else:
                    unmatched.append(item)
            ordered = [by_key[signature] for signature in requested if signature in by_key]
            merged[target_table] = [unmarshal_item(item) for item in ordered + unmatched]
        return merged

    def _request_items(self, request: Mapping[str, Any]) -> Mapping[str, Any]:
        request_items = request.get('RequestItems') or {}
        if not isinstance(request_items, Mapping):
            raise InvalidPayload("RequestItems must map table names to requests")
        return request_items

    def _wire_write_request(self, entry: Any) -> Dict[str, Any]:
        if isinstance(entry, Mapping) and 'PutRequest' in entry:
            return {'PutRequest': {'Item': marshal_item(entry['PutRequest']['Item'])}}
        if isinstance(entry, Mapping) and 'DeleteRequest' in entry:
            return {'DeleteRequest': {'Key': marshal_item(entry['DeleteRequest']['Key'])}}
        raise InvalidPayload(f"Batch write entries must be PutRequest or DeleteRequest, got {entry!r}")

    def _native_write_request(self, wire_request: Mapping[str, Any]) -> Dict[str, Any]:
        if 'PutRequest' in wire_request:
            return {'PutRequest': {'Item': unmarshal_item(wire_request['PutRequest']['Item'])}}
        return {'DeleteRequest': {'Key': unmarshal_item(wire_request['DeleteRequest']['Key'])}}

    # =========================================================================
    # Chunk scheduling and retry
    # =========================================================================

    def _run_chunks(self, chunks: List[Chunk], worker: Callable[[Chunk], Any]) -> List[Any]:
        """Run chunks with bounded concurrency, results in chunk order."""
        if len(chunks) == 1:
            return [worker(chunks[0])]
        max_workers = min(self.config.batch_concurrency, len(chunks))
        logger.debug(f"Dispatching {len(chunks)} chunks on {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(worker, chunk) for chunk in chunks]
            return [future.result() for future in futures]

    def _drive_chunk(self, chunk: Chunk, label: str, send: Callable[[Chunk], Dict[str, List[Any]]]) -> List[Tuple[str, Any]]:
        """Send a chunk until nothing is unprocessed or the retry budget is spent.

        A chunk still throttled when the budget runs out keeps all of its
        requests as residue and records the error on ``chunk.last_error``.

        Returns:
            Requests still unprocessed, in input order (empty on success)
        """
        max_retries = self.config.batch_max_retries
        while chunk.requests:
            try:
                unprocessed = send(chunk)
            except RetryableError as e:
                chunk.last_error = e
                if chunk.attempts >= max_retries:
                    logger.error(f"{label}: chunk {chunk.index} still throttled after {max_retries} retries")
                    break
                self._backoff(chunk, label, f"throttled ({e.code})")
                continue

            chunk.last_error = None
            chunk.requests = _retain_unprocessed(chunk.requests, unprocessed)
            if not chunk.requests:
                break
            if chunk.attempts >= max_retries:
                logger.error(
                    f"{label}: {len(chunk.requests)} requests in chunk {chunk.index} "
                    f"unprocessed after {max_retries} retries"
                )
                break
            self._backoff(chunk, label, f"{len(chunk.requests)} unprocessed")
        return chunk.requests

    def _backoff(self, chunk: Chunk, label: str, reason: str) -> None:
        chunk.attempts += 1
        delay = min(self.config.retry_base_delay * (2 ** (chunk.attempts - 1)), self.config.retry_max_delay)
        logger.warning(
            f"{label}: chunk {chunk.index} {reason}, retrying after {delay:.2f}s "
            f"(attempt {chunk.attempts}/{self.config.batch_max_retries})"
        )
        time.sleep(delay)
