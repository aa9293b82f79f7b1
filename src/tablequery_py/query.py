from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Self

from .cursor import decode_cursor
from .errors import ValidationError
from .expressions import Fragment, build_filter_expression, path_placeholders
from .model import ModelDefinitionError
from .pagination import Page, execute_buffered, execute_stream
from .request import RequestBuilder, serialize_item

if TYPE_CHECKING:
    from .table import Table


class KeyCondition[B]:
    """Operators allowed in a key condition: equality, ordering, begins_with and between."""

    def __init__(self, owner: B, path: str, request: RequestBuilder, add: Callable[[Fragment], None]) -> None:
        self._owner = owner
        self._path = path
        self._request = request
        self._add = add

    def _apply(self, operator: str, *operands: Any) -> B:
        fragment = build_filter_expression(self._path, operator, self._request.value_names(), *operands)
        self._add(fragment)
        return self._owner

    def equals(self, value: Any) -> B:
        return self._apply("=", value)

    def eq(self, value: Any) -> B:
        return self._apply("=", value)

    def lte(self, value: Any) -> B:
        return self._apply("<=", value)

    def lt(self, value: Any) -> B:
        return self._apply("<", value)

    def gte(self, value: Any) -> B:
        return self._apply(">=", value)

    def gt(self, value: Any) -> B:
        return self._apply(">", value)

    def begins_with(self, prefix: Any) -> B:
        return self._apply("begins_with", prefix)

    def between(self, low: Any, high: Any) -> B:
        return self._apply("BETWEEN", low, high)


class FilterCondition[B](KeyCondition[B]):
    def ne(self, value: Any) -> B:
        return self._apply("<>", value)

    def null(self, is_null: bool = True) -> B:
        return self._apply("attribute_not_exists", is_null)

    def not_null(self) -> B:
        return self._apply("attribute_exists", True)

    def exists(self, exists: bool = True) -> B:
        return self._apply("attribute_exists", exists)

    def contains(self, value: Any) -> B:
        return self._apply("contains", value)

    def not_contains(self, value: Any) -> B:
        return self._apply("NOT contains", value)

    def in_(self, values: Sequence[Any]) -> B:
        return self._apply("IN", values)


class RequestBuilderBase:
    """Fluent surface shared by queries and scans."""

    _operation = "request"

    def __init__(self, table: Table, *, request: RequestBuilder | None = None) -> None:
        self._table = table
        self._request = request if request is not None else RequestBuilder()

    @property
    def request(self) -> RequestBuilder:
        return self._request

    @property
    def loads_all(self) -> bool:
        return self._request.load_all

    def limit(self, num: int) -> Self:
        if isinstance(num, bool) or not isinstance(num, int):
            raise ValidationError("limit must be an integer")
        if num <= 0:
            raise ValidationError("limit must be > 0")
        self._request.limit = num
        return self

    def filter_expression(self, expression: str) -> Self:
        self._request.filter_expression = expression
        return self

    def expression_attribute_values(self, values: Mapping[str, Any]) -> Self:
        self._request.attribute_values.update(values)
        return self

    def expression_attribute_names(self, names: Mapping[str, str]) -> Self:
        self._request.attribute_names.update(names)
        return self

    def projection_expression(self, expression: str) -> Self:
        self._request.projection_expression = expression
        return self

    def attributes(self, attrs: str | Sequence[str]) -> Self:
        if isinstance(attrs, str):
            attrs = [attrs]

        refs: list[str] = []
        for attr in attrs:
            ref, names = path_placeholders(attr)
            refs.append(ref)
            for name_ref, name in names.items():
                self._request.attribute_names.setdefault(name_ref, name)

        self._request.projection_expression = ",".join(refs)
        return self

    def select(self, value: str) -> Self:
        self._request.select = value
        return self

    def return_consumed_capacity(self, value: str = "TOTAL") -> Self:
        self._request.return_consumed_capacity = value
        return self

    def load_all(self) -> Self:
        self._request.load_all = True
        return self

    def start_key(self, hash_value: Any, range_value: Any | None = None) -> Self:
        try:
            key = self._table.schema.build_key(hash_value, range_value)
        except ModelDefinitionError as err:
            raise ValidationError(str(err)) from err
        self._request.exclusive_start_key = serialize_item(key)
        return self

    def cursor(self, token: str) -> Self:
        try:
            decoded = decode_cursor(token)
        except Exception as err:
            raise ValidationError("invalid cursor") from err
        if decoded.index is not None and decoded.index != self._request.index_name:
            raise ValidationError(f"cursor index does not match {self._operation}")
        self._request.exclusive_start_key = decoded.last_key
        return self

    def using_index(self, name: str) -> Self:
        if self._table.schema.index(name) is None:
            raise ValidationError(f"unknown index: {name}")
        self._request.index_name = name
        return self

    def consistent_read(self, read: bool = True) -> Self:
        if not isinstance(read, bool):
            read = True
        self._request.consistent_read = read
        return self

    def build_request(self) -> dict[str, Any]:
        return self._request.build(self._table.table_name)

    def _validate(self) -> None:
        index_name = self._request.index_name
        if index_name is not None and self._request.consistent_read:
            idx = self._table.schema.index(index_name)
            if idx is not None and idx.type == "GSI":
                raise ValidationError("consistent_read is not supported for GSIs")

    def _prepare(self) -> None:
        self._validate()

    def _send(self, req: dict[str, Any]) -> Mapping[str, Any]:
        raise NotImplementedError

    def execute(self) -> Page:
        self._prepare()
        return execute_buffered(
            self,
            self._send,
            table_name=self._table.table_name,
            options=self._table.options,
            operation=self._operation,
        )

    def stream(self) -> Iterator[Page]:
        self._prepare()
        return execute_stream(self, self._send, options=self._table.options, operation=self._operation)


class Query(RequestBuilderBase):
    _operation = "query"

    def __init__(self, table: Table, partition_value: Any) -> None:
        if partition_value is None:
            raise ValidationError("partition value is required")
        super().__init__(table)
        self._partition_value = partition_value
        self._partition_applied = False

    def ascending(self) -> Query:
        self._request.scan_index_forward = True
        return self

    def descending(self) -> Query:
        self._request.scan_index_forward = False
        return self

    def where(self, attr: str) -> KeyCondition[Query]:
        return KeyCondition(self, attr, self._request, self._request.add_key_condition)

    def filter(self, attr: str) -> FilterCondition[Query]:
        return FilterCondition(self, attr, self._request, self._request.add_filter_condition)

    def partition_key_name(self) -> str:
        index_name = self._request.index_name
        if index_name is not None:
            idx = self._table.schema.global_index(index_name)
            if idx is not None:
                return idx.hash_key
        return self._table.schema.hash_key

    def _prepare(self) -> None:
        super()._prepare()
        if self._partition_applied:
            return
        fragment = build_filter_expression(
            self.partition_key_name(),
            "=",
            self._request.value_names(),
            self._table.schema.coerce(self.partition_key_name(), self._partition_value),
        )
        self._request.add_key_condition(fragment)
        self._partition_applied = True

    def _send(self, req: dict[str, Any]) -> Mapping[str, Any]:
        return self._table.client.query(**req)


class Scan(RequestBuilderBase):
    _operation = "scan"

    def where(self, attr: str) -> FilterCondition[Scan]:
        return FilterCondition(self, attr, self._request, self._request.add_filter_condition)

    def segments(self, segment: int, total_segments: int) -> Scan:
        if total_segments <= 0 or segment < 0 or segment >= total_segments:
            raise ValidationError("invalid segment/total_segments")
        self._request.segment = segment
        self._request.total_segments = total_segments
        return self

    def _send(self, req: dict[str, Any]) -> Mapping[str, Any]:
        return self._table.client.scan(**req)
