from __future__ import annotations

import pytest

from tablequery_py import KeySchema, Table, gsi, lsi
from tablequery_py.mocks import FakeDynamoDBClient
from tablequery_py.testkit import no_sleep


@pytest.fixture
def schema() -> KeySchema:
    return KeySchema.define(
        hash_key="email",
        range_key="created",
        indexes=[gsi("by-team", hash_key="team", range_key="age"), lsi("by-age", range_key="age")],
        datatypes={"tags": "stringSet"},
    )


@pytest.fixture
def client() -> FakeDynamoDBClient:
    return FakeDynamoDBClient()


@pytest.fixture
def table(schema: KeySchema, client: FakeDynamoDBClient) -> Table:
    return Table(schema, table_name="accounts", client=client, sleep=no_sleep)
