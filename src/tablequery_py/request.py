from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeSerializer

from .expressions import Fragment

_serializer = TypeSerializer()


def to_wire_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): to_wire_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {to_wire_value(v) for v in value}
    return value


def serialize_value(value: Any) -> dict[str, Any]:
    return _serializer.serialize(to_wire_value(value))


def serialize_item(item: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k): serialize_value(v) for k, v in item.items()}


def _and(existing: str | None, statement: str) -> str:
    if existing:
        return f"{existing} AND ({statement})"
    return f"({statement})"


@dataclass
class RequestBuilder:
    """Typed accumulator for one Query or Scan request.

    Values are kept as Python values; :meth:`build` is the only place that produces the
    wire dict. ``exclusive_start_key`` is already in wire format because it is either a
    serialized key or a ``LastEvaluatedKey`` echoed back from the store.
    """

    key_condition_expression: str | None = None
    filter_expression: str | None = None
    attribute_names: dict[str, str] = field(default_factory=dict)
    attribute_values: dict[str, Any] = field(default_factory=dict)
    projection_expression: str | None = None
    exclusive_start_key: dict[str, Any] | None = None
    limit: int | None = None
    index_name: str | None = None
    scan_index_forward: bool | None = None
    select: str | None = None
    return_consumed_capacity: str | None = None
    consistent_read: bool | None = None
    segment: int | None = None
    total_segments: int | None = None
    load_all: bool = False

    def value_names(self) -> list[str]:
        return list(self.attribute_values)

    def add_key_condition(self, fragment: Fragment) -> None:
        self._merge_attributes(fragment)
        self.key_condition_expression = _and(self.key_condition_expression, fragment.statement)

    def add_filter_condition(self, fragment: Fragment) -> None:
        self._merge_attributes(fragment)
        self.filter_expression = _and(self.filter_expression, fragment.statement)

    def _merge_attributes(self, fragment: Fragment) -> None:
        for ref, name in fragment.attribute_names.items():
            self.attribute_names.setdefault(ref, name)
        for ref, value in fragment.attribute_values.items():
            self.attribute_values.setdefault(ref, value)

    def clone(self) -> RequestBuilder:
        return copy.deepcopy(self)

    def build(self, table_name: str) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": table_name}
        if self.key_condition_expression is not None:
            req["KeyConditionExpression"] = self.key_condition_expression
        if self.filter_expression is not None:
            req["FilterExpression"] = self.filter_expression
        if self.attribute_names:
            req["ExpressionAttributeNames"] = dict(self.attribute_names)
        if self.attribute_values:
            req["ExpressionAttributeValues"] = {k: serialize_value(v) for k, v in self.attribute_values.items()}
        if self.projection_expression is not None:
            req["ProjectionExpression"] = self.projection_expression
        if self.exclusive_start_key:
            req["ExclusiveStartKey"] = dict(self.exclusive_start_key)
        if self.limit is not None:
            req["Limit"] = self.limit
        if self.index_name is not None:
            req["IndexName"] = self.index_name
        if self.scan_index_forward is not None:
            req["ScanIndexForward"] = self.scan_index_forward
        if self.select is not None:
            req["Select"] = self.select
        if self.return_consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self.return_consumed_capacity
        if self.segment is not None and self.total_segments is not None:
            req["Segment"] = self.segment
            req["TotalSegments"] = self.total_segments
        if self.consistent_read is not None:
            req["ConsistentRead"] = self.consistent_read
        return req
