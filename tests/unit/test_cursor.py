from __future__ import annotations

import base64
import json

import pytest

from tablequery_py import decode_cursor, encode_cursor


def test_cursor_round_trip_with_bytes_and_nested_structures() -> None:
    key = {
        "PK": {"S": "A"},
        "SK": {"S": "B"},
        "blob": {"B": b"hi"},
        "nested": {"M": {"x": {"B": b"bye"}}},
        "list": {"L": [{"B": b"x"}, {"S": "y"}]},
    }
    cursor = encode_cursor(key, index="by-team")
    assert cursor is not None

    decoded = decode_cursor(cursor)
    assert decoded.last_key == key
    assert decoded.index == "by-team"


def test_cursor_round_trip_all_attribute_value_types() -> None:
    key = {
        "PK": {"S": "A"},
        "N": {"N": "123"},
        "flag": {"BOOL": True},
        "nil": {"NULL": True},
        "ss": {"SS": ["a", "b"]},
        "ns": {"NS": ["1", "2"]},
        "bs": {"BS": [b"x", b"y"]},
        "map": {"M": {"x": {"S": "y"}}},
    }

    decoded = decode_cursor(encode_cursor(key) or "")
    assert decoded.last_key == key
    assert decoded.index is None


def test_encode_cursor_without_key_is_none() -> None:
    assert encode_cursor(None) is None
    assert encode_cursor({}) is None


def test_decode_cursor_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        decode_cursor("")
    with pytest.raises(ValueError):
        decode_cursor("bm90LWpzb24")  # base64url("not-json")

    no_key = base64.urlsafe_b64encode(json.dumps({"index": "x"}).encode()).decode()
    with pytest.raises(ValueError):
        decode_cursor(no_key)

    bad_value = base64.urlsafe_b64encode(json.dumps({"lastKey": {"PK": {"X": "1"}}}).encode()).decode()
    with pytest.raises(ValueError):
        decode_cursor(bad_value)
