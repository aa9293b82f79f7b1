from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import boto3
from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .batch import batch_get as _batch_get
from .errors import NotFoundError, ValidationError
from .expressions import (
    build_filter_expression,
    merge_update_specs,
    parse_update_expression,
    path_placeholders,
    serialize_update_expression,
    stringify_update_expression,
)
from .model import KeySchema, ModelDefinitionError
from .pagination import ExecutionOptions, deserialize_item
from .parallel import ParallelScan
from .query import Query, Scan
from .request import RequestBuilder, serialize_item, serialize_value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and len(value) == 0:
        return True
    if isinstance(value, (list, set, frozenset, tuple)) and len(value) == 0:
        return True
    return False


def _expected_condition(name: str, expected: Any) -> tuple[str, Any]:
    if isinstance(expected, Mapping):
        if isinstance(expected.get("Exists"), bool):
            return "attribute_exists", expected["Exists"]
        if "<>" in expected:
            return "<>", expected["<>"]
    return "=", expected


class Table:
    def __init__(
        self,
        schema: KeySchema,
        *,
        table_name: str,
        client: Any | None = None,
        max_retries: int = 10,
        read_capacity_limit: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], float] | None = None,
    ) -> None:
        if not table_name:
            raise ValidationError("table_name is required")
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        if read_capacity_limit is not None and read_capacity_limit <= 0:
            raise ValidationError("read_capacity_limit must be > 0")

        self._schema = schema
        self._table_name = table_name
        self._client: Any = client or boto3.client("dynamodb")
        self._options = ExecutionOptions(
            max_retries=max_retries,
            read_capacity_limit=read_capacity_limit,
            sleep=sleep,
            now=now,
        )

    @property
    def schema(self) -> KeySchema:
        return self._schema

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def client(self) -> Any:
        return self._client

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    def query(self, partition_value: Any) -> Query:
        return Query(self, partition_value)

    def scan(self) -> Scan:
        return Scan(self)

    def parallel_scan(self, total_segments: int, *, max_workers: int | None = None) -> ParallelScan:
        return ParallelScan(self, total_segments, max_workers=max_workers)

    def batch_get(
        self,
        keys: Sequence[Any],
        *,
        consistent_read: bool = False,
        projection: Sequence[str] | None = None,
        max_workers: int = 1,
    ) -> list[dict[str, Any]]:
        return _batch_get(
            self,
            keys,
            consistent_read=consistent_read,
            projection=projection,
            max_workers=max_workers,
        )

    def get(
        self,
        hash_value: Any,
        range_value: Any | None = None,
        *,
        consistent_read: bool = False,
        attributes: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._key(hash_value, range_value),
            "ConsistentRead": consistent_read,
        }
        if attributes:
            names: dict[str, str] = {}
            refs: list[str] = []
            for attr in attributes:
                ref, attr_names = path_placeholders(attr)
                refs.append(ref)
                names.update(attr_names)
            req["ProjectionExpression"] = ",".join(refs)
            req["ExpressionAttributeNames"] = names

        try:
            resp = self._client.get_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

        item = resp.get("Item")
        if not item:
            raise NotFoundError("item not found")
        return deserialize_item(item)

    def put(
        self,
        item: Mapping[str, Any],
        *,
        overwrite: bool = True,
        expected: Mapping[str, Any] | None = None,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any] | None:
        self._key(item)

        conditions = dict(expected or {})
        if not overwrite:
            conditions.setdefault(self._schema.hash_key, {"Exists": False})

        data = {k: self._schema.coerce(k, v) for k, v in item.items() if not _is_empty(v)}
        req: dict[str, Any] = {"TableName": self._table_name, "Item": serialize_item(data)}
        self._apply_conditions(
            req,
            conditions,
            condition_expression=condition_expression,
            names=expression_attribute_names or {},
            values=expression_attribute_values or {},
        )
        if return_values is not None:
            req["ReturnValues"] = return_values

        try:
            resp = self._client.put_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

        attrs = resp.get("Attributes")
        return deserialize_item(attrs) if attrs else None

    def update(
        self,
        item: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        update_expression: str | None = None,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        key = self._key(item)

        parts = serialize_update_expression(self._schema, item)
        spec = parts.expressions
        if update_expression:
            spec = merge_update_specs(spec, parse_update_expression(update_expression))

        names = dict(parts.attribute_names)
        names.update(expression_attribute_names or {})
        values = dict(parts.values)
        values.update(expression_attribute_values or {})

        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": key,
            "ReturnValues": return_values,
        }
        expr = stringify_update_expression(spec)
        if expr:
            req["UpdateExpression"] = expr
        self._apply_conditions(
            req,
            expected or {},
            condition_expression=condition_expression,
            names=names,
            values=values,
        )

        try:
            resp = self._client.update_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

        attrs = resp.get("Attributes")
        return deserialize_item(attrs) if attrs else None

    def delete(
        self,
        hash_value: Any,
        range_value: Any | None = None,
        *,
        expected: Mapping[str, Any] | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any] | None:
        req: dict[str, Any] = {"TableName": self._table_name, "Key": self._key(hash_value, range_value)}
        self._apply_conditions(req, expected or {}, condition_expression=None, names={}, values={})
        if return_values is not None:
            req["ReturnValues"] = return_values

        try:
            resp = self._client.delete_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

        attrs = resp.get("Attributes")
        return deserialize_item(attrs) if attrs else None

    def _key(self, hash_value: Any, range_value: Any | None = None) -> dict[str, Any]:
        try:
            key = self._schema.build_key(hash_value, range_value)
        except ModelDefinitionError as err:
            raise ValidationError(str(err)) from err
        if self._schema.range_key is not None and self._schema.range_key not in key:
            raise ValidationError(f"missing range key: {self._schema.range_key}")
        return serialize_item(key)

    def _apply_conditions(
        self,
        req: dict[str, Any],
        expected: Mapping[str, Any],
        *,
        condition_expression: str | None,
        names: Mapping[str, str],
        values: Mapping[str, Any],
    ) -> None:
        acc = RequestBuilder(
            filter_expression=condition_expression,
            attribute_names=dict(names),
            attribute_values=dict(values),
        )
        for name, value in expected.items():
            operator, operand = _expected_condition(name, value)
            acc.add_filter_condition(build_filter_expression(name, operator, acc.value_names(), operand))

        if acc.filter_expression:
            req["ConditionExpression"] = acc.filter_expression
        if acc.attribute_names:
            req["ExpressionAttributeNames"] = acc.attribute_names
        if acc.attribute_values:
            req["ExpressionAttributeValues"] = {k: serialize_value(v) for k, v in acc.attribute_values.items()}
