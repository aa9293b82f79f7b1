"""Lowering of single conditions and update diffs into DynamoDB expression syntax.

Everything here is pure: callers pass in the value placeholders already used by the
request they are building, and get back a :class:`Fragment` whose placeholders are
guaranteed not to collide with them.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from .errors import ValidationError

if TYPE_CHECKING:
    from .model import KeySchema

COMPARISON_OPERATORS = frozenset({"=", "<>", "<=", "<", ">=", ">"})
FUNCTION_OPERATORS = frozenset(
    {"attribute_exists", "attribute_not_exists", "begins_with", "contains", "NOT contains"}
)
OPERATORS = COMPARISON_OPERATORS | FUNCTION_OPERATORS | {"BETWEEN", "IN"}

MAX_IN_VALUES = 100

ACTION_WORDS = ("SET", "ADD", "REMOVE", "DELETE")

# keywords only count as standalone words, never inside a #name or :value placeholder
_KEYWORD = r"(?<![\w#:.])(?:{})(?!\w)"

_ACTION_PATTERNS = {
    word: re.compile(
        _KEYWORD.format(word) + r"\s*(.+?)\s*(?:" + _KEYWORD.format("|".join(ACTION_WORDS)) + r"|$)"
    )
    for word in ACTION_WORDS
}

# a comma is a split point only when it is not followed by a closing paren before an opening one
_SPLIT_OPERANDS = re.compile(r"\s*(?![^(]*\)),\s*")


@dataclass(frozen=True)
class Fragment:
    statement: str
    attribute_names: dict[str, str] = field(default_factory=dict)
    attribute_values: dict[str, Any] = field(default_factory=dict)


def format_attribute_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value.isoformat(timespec="milliseconds") + "Z"
    if isinstance(value, date):
        return value.isoformat()
    return value


def _value_name_base(path: str) -> str:
    return re.sub(r"\W", "", path.replace(".", "_"))


def unique_value_name(path: str, existing: Collection[str]) -> str:
    cleaned = _value_name_base(path)
    candidate = f":{cleaned}"
    idx = 1
    while candidate in existing:
        idx += 1
        candidate = f":{cleaned}_{idx}"
    return candidate


def path_placeholders(path: str) -> tuple[str, dict[str, str]]:
    segments = path.split(".")
    ref = "#" + ".#".join(segments)
    ref = re.sub(r"[^\w.#]", "", ref)

    names: dict[str, str] = {}
    for segment in segments:
        names["#" + re.sub(r"[^\w.]", "", segment)] = segment
    return ref, names


def build_filter_expression(
    path: str,
    operator: str,
    existing_value_names: Iterable[str],
    operand1: Any = None,
    operand2: Any = None,
) -> Fragment:
    if operator not in OPERATORS:
        raise ValidationError(f"unsupported condition operator: {operator}")
    if not path:
        raise ValidationError("attribute path is required")

    existing = set(existing_value_names)

    if operator == "IN":
        return _build_in_expression(path, existing, operand1)

    v1 = format_attribute_value(operand1)
    v2 = format_attribute_value(operand2)

    if operator in {"attribute_exists", "attribute_not_exists"}:
        if v1 is False:
            operator = "attribute_not_exists" if operator == "attribute_exists" else "attribute_exists"
        v1 = None
        v2 = None
    elif v1 is None:
        raise ValidationError(f"{operator} requires a value")

    if operator == "BETWEEN" and v2 is None:
        raise ValidationError("BETWEEN requires two values")

    name_ref, names = path_placeholders(path)
    v1_name = unique_value_name(path, existing)
    v2_name = unique_value_name(path, existing | {v1_name})

    if operator in FUNCTION_OPERATORS:
        if v1 is not None:
            statement = f"{operator}({name_ref}, {v1_name})"
        else:
            statement = f"{operator}({name_ref})"
    elif operator == "BETWEEN":
        statement = f"{name_ref} BETWEEN {v1_name} AND {v2_name}"
    else:
        statement = f"{name_ref} {operator} {v1_name}"

    values: dict[str, Any] = {}
    if v1 is not None:
        values[v1_name] = v1
    if v2 is not None:
        values[v2_name] = v2

    return Fragment(statement=statement, attribute_names=names, attribute_values=values)


def _build_in_expression(path: str, existing: set[str], operand: Any) -> Fragment:
    if not isinstance(operand, Collection) or isinstance(operand, (str, bytes, bytearray, Mapping)):
        raise ValidationError("IN requires a sequence of values")
    if not operand:
        raise ValidationError("IN requires at least one value")
    if len(operand) > MAX_IN_VALUES:
        raise ValidationError(f"IN supports maximum {MAX_IN_VALUES} values")

    name_ref, names = path_placeholders(path)
    values: dict[str, Any] = {}
    for value in operand:
        ref = unique_value_name(path, existing | values.keys())
        values[ref] = format_attribute_value(value)

    return Fragment(
        statement=f"{name_ref} IN (" + ", ".join(values) + ")",
        attribute_names=names,
        attribute_values=values,
    )


@dataclass(frozen=True)
class UpdateSpec:
    set: tuple[str, ...] | None = None
    add: tuple[str, ...] | None = None
    remove: tuple[str, ...] | None = None
    delete: tuple[str, ...] | None = None

    def clauses(self, action: str) -> tuple[str, ...]:
        return getattr(self, action.lower()) or ()

    def is_empty(self) -> bool:
        return not any(self.clauses(word) for word in ACTION_WORDS)


@dataclass(frozen=True)
class UpdateExpressionParts:
    expressions: UpdateSpec
    values: dict[str, Any]
    attribute_names: dict[str, str]


def _match_action(word: str, text: str) -> tuple[str, ...] | None:
    match = _ACTION_PATTERNS[word].search(text)
    if match is None:
        return None
    return tuple(_SPLIT_OPERANDS.split(match.group(1)))


def parse_update_expression(text: str) -> UpdateSpec:
    return UpdateSpec(**{word.lower(): _match_action(word, text or "") for word in ACTION_WORDS})


def stringify_update_expression(spec: UpdateSpec) -> str:
    parts: list[str] = []
    for word in ACTION_WORDS:
        clauses = spec.clauses(word)
        if clauses:
            parts.append(f"{word} " + ", ".join(clauses))
    return " ".join(parts)


def merge_update_specs(base: UpdateSpec, override: UpdateSpec) -> UpdateSpec:
    merged: dict[str, tuple[str, ...] | None] = {}
    for word in ACTION_WORDS:
        clauses = base.clauses(word) + override.clauses(word)
        merged[word.lower()] = clauses or None
    return UpdateSpec(**merged)


def _is_operation(value: Any, op: str) -> bool:
    return isinstance(value, Mapping) and op in value


def serialize_update_expression(schema: KeySchema, item: Mapping[str, Any]) -> UpdateExpressionParts:
    """Classify every non-key field of ``item`` into one update action.

    ``None`` and ``""`` remove the attribute, ``{"$add": v}`` and ``{"$del": v}`` become
    ADD and DELETE clauses, anything else is SET.
    """

    actions: dict[str, list[str]] = {word: [] for word in ACTION_WORDS}
    values: dict[str, Any] = {}
    names: dict[str, str] = {}

    for key, value in schema.omit_primary_keys(item).items():
        ref = _value_name_base(key)
        value_ref = f":{ref}"
        name_ref = f"#{ref}"
        names[name_ref] = key

        if value is None or value == "":
            actions["REMOVE"].append(name_ref)
        elif _is_operation(value, "$add"):
            actions["ADD"].append(f"{name_ref} {value_ref}")
            values[value_ref] = schema.coerce(key, value["$add"])
        elif _is_operation(value, "$del"):
            actions["DELETE"].append(f"{name_ref} {value_ref}")
            values[value_ref] = schema.coerce(key, value["$del"])
        else:
            actions["SET"].append(f"{name_ref} = {value_ref}")
            values[value_ref] = schema.coerce(key, value)

    spec = UpdateSpec(**{word.lower(): tuple(clauses) for word, clauses in actions.items()})
    return UpdateExpressionParts(expressions=spec, values=values, attribute_names=names)
