from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from logging import getLogger
from typing import TYPE_CHECKING, Any

from .aws_errors import is_retryable, map_store_error
from .errors import BatchRetryExceededError, RetryExhaustedError, ValidationError
from .expressions import path_placeholders
from .model import ModelDefinitionError
from .pagination import backoff_seconds, deserialize_item
from .request import serialize_item

if TYPE_CHECKING:
    from .table import Table

log = getLogger(__name__)

BATCH_GET_LIMIT = 100


def _chunked[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _serialize_keys(table: Table, keys: Sequence[Any]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for key in keys:
        if isinstance(key, tuple):
            if len(key) != 2:
                raise ValidationError("expected key tuple (hash, range)")
            hash_value, range_value = key
        else:
            hash_value, range_value = key, None

        try:
            built = table.schema.build_key(hash_value, range_value)
        except ModelDefinitionError as err:
            raise ValidationError(str(err)) from err
        if table.schema.range_key is not None and table.schema.range_key not in built:
            raise ValidationError(f"key is missing range key: {table.schema.range_key}")
        out.append(serialize_item(built))
    return out


def _base_request(consistent_read: bool, projection: Sequence[str] | None) -> dict[str, Any]:
    base: dict[str, Any] = {}
    if consistent_read:
        base["ConsistentRead"] = True
    if projection:
        names: dict[str, str] = {}
        refs: list[str] = []
        for attr in projection:
            ref, attr_names = path_placeholders(attr)
            refs.append(ref)
            names.update(attr_names)
        base["ProjectionExpression"] = ",".join(refs)
        base["ExpressionAttributeNames"] = names
    return base


def _get_chunk(table: Table, keys: list[dict[str, Any]], base: Mapping[str, Any]) -> list[dict[str, Any]]:
    options = table.options
    pending = keys
    out: list[dict[str, Any]] = []
    follow_ups = 0
    stalled = 0
    failures = 0

    while pending:
        sent = len(pending)
        request_items = {table.table_name: dict(base, Keys=pending)}
        try:
            resp = table.client.batch_get_item(RequestItems=request_items)
        except Exception as err:
            if not is_retryable(err):
                mapped = map_store_error(err)
                if mapped is err:
                    raise
                raise mapped from err
            failures += 1
            if failures > options.max_retries:
                raise RetryExhaustedError(operation="batch_get", attempts=failures) from err
            log.info("batch_get: transient error, retrying (attempt=%d): %s", failures, err)
            options.sleep(backoff_seconds(failures))
            continue

        failures = 0
        for item in resp.get("Responses", {}).get(table.table_name, []):
            out.append(deserialize_item(item))

        pending = resp.get("UnprocessedKeys", {}).get(table.table_name, {}).get("Keys") or []
        if pending:
            # the budget only counts follow-ups that processed none of the keys sent
            stalled = 0 if len(pending) < sent else stalled + 1
            if stalled > options.max_retries:
                raise BatchRetryExceededError(operation="batch_get", unprocessed_count=len(pending))
            follow_ups += 1
            log.debug("batch_get: %d unprocessed keys, follow-up %d", len(pending), follow_ups)
            options.sleep(backoff_seconds(follow_ups))

    return out


def batch_get(
    table: Table,
    keys: Sequence[Any],
    *,
    consistent_read: bool = False,
    projection: Sequence[str] | None = None,
    max_workers: int = 1,
) -> list[dict[str, Any]]:
    """Fetch ``keys`` in chunks of at most 100, retrying unprocessed keys.

    Chunks are returned in input order; items inside one chunk keep the order the store
    returned them in, which is not necessarily the order of ``keys``.
    """

    if max_workers <= 0:
        raise ValidationError("max_workers must be > 0")
    if not keys:
        return []

    base = _base_request(consistent_read, projection)
    chunks = [list(chunk) for chunk in _chunked(_serialize_keys(table, keys), BATCH_GET_LIMIT)]

    if max_workers == 1 or len(chunks) == 1:
        results = [_get_chunk(table, chunk, base) for chunk in chunks]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            results = list(ex.map(lambda chunk: _get_chunk(table, chunk, base), chunks))

    out: list[dict[str, Any]] = []
    for chunk_items in results:
        out.extend(chunk_items)
    return out
