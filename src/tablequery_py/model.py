from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .expressions import format_attribute_value

type IndexType = Literal["GSI", "LSI"]

SET_DATATYPES = frozenset({"stringSet", "numberSet", "binarySet"})
DATATYPES = frozenset({"string", "number", "boolean", "binary", "date", "map", "list"}) | SET_DATATYPES

_TABLE_HASH_KEY = "__TABLE_HASH_KEY__"


class ModelDefinitionError(ValueError):
    pass


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    type: IndexType
    hash_key: str
    range_key: str | None = None


def gsi(name: str, *, hash_key: str, range_key: str | None = None) -> IndexDefinition:
    return IndexDefinition(name=name, type="GSI", hash_key=hash_key, range_key=range_key)


def lsi(name: str, *, range_key: str) -> IndexDefinition:
    return IndexDefinition(name=name, type="LSI", hash_key=_TABLE_HASH_KEY, range_key=range_key)


@dataclass(frozen=True)
class KeySchema:
    """Key layout of one table: the part of a model definition the query engine consumes.

    ``datatypes`` maps attribute names to one of ``DATATYPES`` and is only used to coerce
    values (dates, sets) when an item diff is serialized into an update expression.
    """

    hash_key: str
    range_key: str | None = None
    indexes: tuple[IndexDefinition, ...] = ()
    datatypes: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def define(
        cls,
        *,
        hash_key: str,
        range_key: str | None = None,
        indexes: Sequence[IndexDefinition] = (),
        datatypes: Mapping[str, str] | None = None,
    ) -> KeySchema:
        if not hash_key:
            raise ModelDefinitionError("hash_key is required")
        if range_key is not None and range_key == hash_key:
            raise ModelDefinitionError("range_key must differ from hash_key")

        resolved: list[IndexDefinition] = []
        seen: set[str] = set()
        for idx in indexes:
            if idx.name in seen:
                raise ModelDefinitionError(f"duplicate index name: {idx.name}")
            seen.add(idx.name)

            if idx.type == "LSI":
                if idx.hash_key not in {_TABLE_HASH_KEY, hash_key}:
                    raise ModelDefinitionError(f"index {idx.name}: LSI hash key must be the table hash key")
                if not idx.range_key:
                    raise ModelDefinitionError(f"index {idx.name}: LSI requires a range key")
                resolved.append(IndexDefinition(idx.name, "LSI", hash_key, idx.range_key))
                continue

            if idx.type != "GSI":
                raise ModelDefinitionError(f"unsupported index type: {idx.type}")
            if not idx.hash_key or idx.hash_key == _TABLE_HASH_KEY:
                raise ModelDefinitionError(f"index {idx.name}: GSI requires a hash key")
            resolved.append(idx)

        types = dict(datatypes or {})
        for name, kind in types.items():
            if kind not in DATATYPES:
                raise ModelDefinitionError(f"unsupported datatype for {name}: {kind}")

        return cls(hash_key=hash_key, range_key=range_key, indexes=tuple(resolved), datatypes=types)

    def index(self, name: str) -> IndexDefinition | None:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        return None

    def global_index(self, name: str) -> IndexDefinition | None:
        idx = self.index(name)
        if idx is not None and idx.type == "GSI":
            return idx
        return None

    def is_key_field(self, name: str) -> bool:
        return name == self.hash_key or (self.range_key is not None and name == self.range_key)

    def omit_primary_keys(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in item.items() if not self.is_key_field(k)}

    def build_key(self, hash_value: Any, range_value: Any | None = None) -> dict[str, Any]:
        if isinstance(hash_value, Mapping):
            item = hash_value
            if self.hash_key not in item:
                raise ModelDefinitionError(f"key is missing hash key: {self.hash_key}")
            hash_value = item[self.hash_key]
            if self.range_key is not None:
                range_value = item.get(self.range_key, range_value)

        if hash_value is None:
            raise ModelDefinitionError("hash key value is required")

        key: dict[str, Any] = {self.hash_key: self.coerce(self.hash_key, hash_value)}
        if self.range_key is not None and range_value is not None:
            key[self.range_key] = self.coerce(self.range_key, range_value)
        return key

    def coerce(self, name: str, value: Any) -> Any:
        kind = self.datatypes.get(name)
        if value is None or kind is None:
            return value
        if kind == "date":
            return format_attribute_value(value)
        if kind in SET_DATATYPES:
            if isinstance(value, (set, frozenset)):
                return set(value)
            if isinstance(value, (list, tuple)):
                return set(value)
            return {value}
        if kind == "boolean":
            return bool(value) and value != "false"
        return value
