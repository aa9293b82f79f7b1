from __future__ import annotations

from datetime import UTC, datetime

import pytest

from tablequery_py import KeySchema, ModelDefinitionError, gsi, lsi


def test_define_resolves_lsi_hash_key_to_table_hash_key() -> None:
    schema = KeySchema.define(
        hash_key="email",
        range_key="created",
        indexes=[gsi("by-team", hash_key="team", range_key="age"), lsi("by-age", range_key="age")],
    )

    by_age = schema.index("by-age")
    assert by_age is not None
    assert by_age.hash_key == "email"
    assert schema.global_index("by-age") is None

    by_team = schema.global_index("by-team")
    assert by_team is not None
    assert by_team.hash_key == "team"
    assert schema.index("missing") is None


def test_define_rejects_invalid_layouts() -> None:
    with pytest.raises(ModelDefinitionError):
        KeySchema.define(hash_key="")
    with pytest.raises(ModelDefinitionError):
        KeySchema.define(hash_key="pk", range_key="pk")
    with pytest.raises(ModelDefinitionError):
        KeySchema.define(hash_key="pk", indexes=[gsi("a", hash_key="x"), gsi("a", hash_key="y")])
    with pytest.raises(ModelDefinitionError):
        KeySchema.define(hash_key="pk", datatypes={"x": "uuid"})


def test_build_key_accepts_values_or_items() -> None:
    schema = KeySchema.define(hash_key="email", range_key="created", datatypes={"created": "date"})
    when = datetime(2024, 1, 2, tzinfo=UTC)

    assert schema.build_key("a@example.com", when) == {
        "email": "a@example.com",
        "created": "2024-01-02T00:00:00.000Z",
    }
    assert schema.build_key({"email": "a@example.com", "created": "x", "name": "Tim"}) == {
        "email": "a@example.com",
        "created": "x",
    }
    with pytest.raises(ModelDefinitionError):
        schema.build_key({"name": "Tim"})
    with pytest.raises(ModelDefinitionError):
        schema.build_key(None)


def test_coerce_sets_and_booleans() -> None:
    schema = KeySchema.define(hash_key="pk", datatypes={"tags": "numberSet", "active": "boolean"})
    assert schema.coerce("tags", [1, 2, 2]) == {1, 2}
    assert schema.coerce("tags", 3) == {3}
    assert schema.coerce("active", "false") is False
    assert schema.coerce("active", 1) is True
    assert schema.coerce("other", [1]) == [1]
    assert schema.omit_primary_keys({"pk": "a", "x": 1}) == {"x": 1}
