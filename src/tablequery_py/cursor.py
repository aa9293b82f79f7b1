from __future__ import annotations

import base64
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    index: str | None = None


def _single_entry(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, inner),) = value.items()
    return str(kind), inner


def _require(ok: bool, message: str) -> None:
    if not ok:
        raise ValueError(message)


def _encode_binary(value: Any) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


def _is_bytes(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray))


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _convert(av: Any, *, encode: bool) -> dict[str, Any]:
    kind, value = _single_entry(av)
    binary: Callable[[Any], Any] = _encode_binary if encode else base64.b64decode
    binary_ok: Callable[[Any], bool] = _is_bytes if encode else _is_text

    if kind in {"S", "N"}:
        _require(isinstance(value, str), f"{kind} value must be a string")
        return {kind: value}
    if kind == "B":
        _require(binary_ok(value), "B value has the wrong type")
        return {"B": binary(value)}
    if kind == "BOOL":
        _require(isinstance(value, bool), "BOOL value must be a boolean")
        return {"BOOL": value}
    if kind == "NULL":
        _require(value is True, "NULL value must be true")
        return {"NULL": True}
    if kind in {"SS", "NS"}:
        _require(isinstance(value, list) and all(isinstance(v, str) for v in value), f"{kind} must be strings")
        return {kind: list(value)}
    if kind == "BS":
        _require(isinstance(value, list) and all(binary_ok(v) for v in value), "BS value has the wrong type")
        return {"BS": [binary(v) for v in value]}
    if kind == "L":
        _require(isinstance(value, list), "L value must be a list")
        return {"L": [_convert(v, encode=encode) for v in value]}
    if kind == "M":
        _require(isinstance(value, dict), "M value must be a map")
        return {"M": {str(k): _convert(value[k], encode=encode) for k in sorted(value)}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(last_key: dict[str, Any] | None, *, index: str | None = None) -> str | None:
    """Turn a wire-format ``LastEvaluatedKey`` into an opaque url-safe token."""

    if not last_key:
        return None

    payload: dict[str, Any] = {
        "lastKey": {str(k): _convert(last_key[k], encode=True) for k in sorted(last_key)},
    }
    if index is not None:
        payload["index"] = index

    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(token: str) -> Cursor:
    raw = str(token or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _convert(v, encode=False) for k, v in last_key_raw.items()},
        index=index if isinstance(index, str) else None,
    )
