from __future__ import annotations

import pytest

from tablequery_py import Table, ValidationError, encode_cursor
from tablequery_py.mocks import ANY, FakeDynamoDBClient


def test_successive_filters_on_same_attribute_do_not_collide(table: Table) -> None:
    req = table.query("a@example.com").filter("age").gt(5).filter("age").lt(20).build_request()

    assert req["FilterExpression"] == "(#age > :age) AND (#age < :age_2)"
    assert req["ExpressionAttributeNames"] == {"#age": "age"}
    assert req["ExpressionAttributeValues"] == {":age": {"N": "5"}, ":age_2": {"N": "20"}}
    assert "KeyConditionExpression" not in req


def test_query_appends_partition_key_clause_once(table: Table, client: FakeDynamoDBClient) -> None:
    expected = {
        "TableName": "accounts",
        "KeyConditionExpression": "(#created >= :created) AND (#email = :email)",
        "ExpressionAttributeNames": {"#created": "created", "#email": "email"},
        "ExpressionAttributeValues": {":created": {"S": "2024"}, ":email": {"S": "a@example.com"}},
    }
    client.expect("query", expected, response={"Items": [], "Count": 0})
    client.expect("query", expected, response={"Items": [], "Count": 0})

    query = table.query("a@example.com").where("created").gte("2024")
    query.execute()
    query.execute()

    client.assert_no_pending()


def test_query_on_gsi_uses_index_hash_key(table: Table, client: FakeDynamoDBClient) -> None:
    client.expect(
        "query",
        {
            "IndexName": "by-team",
            "KeyConditionExpression": "(#age > :age) AND (#team = :team)",
            "ExpressionAttributeValues": {":age": {"N": "30"}, ":team": {"S": "red"}},
        },
        response={"Items": [{"email": {"S": "a@example.com"}, "team": {"S": "red"}}], "Count": 1},
    )

    page = table.query("red").using_index("by-team").where("age").gt(30).execute()

    assert page.items == [{"email": "a@example.com", "team": "red"}]
    assert page.index_name == "by-team"
    client.assert_no_pending()


def test_query_on_lsi_uses_table_hash_key(table: Table, client: FakeDynamoDBClient) -> None:
    client.expect(
        "query",
        {"IndexName": "by-age", "KeyConditionExpression": "(#email = :email)"},
        response={"Items": [], "Count": 0},
    )

    table.query("a@example.com").using_index("by-age").consistent_read().execute()
    assert client.calls[0][1]["ConsistentRead"] is True


def test_build_request_does_not_apply_partition_clause(table: Table) -> None:
    query = table.query("a@example.com")
    assert "KeyConditionExpression" not in query.build_request()


def test_query_scalar_options(table: Table) -> None:
    req = (
        table.query("a@example.com")
        .descending()
        .limit(5)
        .select("COUNT")
        .return_consumed_capacity()
        .filter_expression("#a = :x")
        .expression_attribute_names({"#a": "a"})
        .expression_attribute_values({":x": 1})
        .build_request()
    )

    assert req == {
        "TableName": "accounts",
        "FilterExpression": "#a = :x",
        "ExpressionAttributeNames": {"#a": "a"},
        "ExpressionAttributeValues": {":x": {"N": "1"}},
        "Limit": 5,
        "ScanIndexForward": False,
        "Select": "COUNT",
        "ReturnConsumedCapacity": "TOTAL",
    }


def test_expression_attribute_maps_merge_with_condition_maps(table: Table) -> None:
    req = (
        table.scan()
        .where("age")
        .gt(1)
        .expression_attribute_values({":min": 2})
        .expression_attribute_names({"#n": "name"})
        .build_request()
    )
    assert req["ExpressionAttributeValues"] == {":age": {"N": "1"}, ":min": {"N": "2"}}
    assert req["ExpressionAttributeNames"] == {"#age": "age", "#n": "name"}


@pytest.mark.parametrize("value", [0, -1, "5", 2.5, True])
def test_limit_rejects_non_positive_or_non_integer(table: Table, value: object) -> None:
    with pytest.raises(ValidationError):
        table.query("a@example.com").limit(value)  # type: ignore[arg-type]


def test_attributes_builds_projection(table: Table) -> None:
    req = table.scan().attributes(["name", "address.city"]).build_request()
    assert req["ProjectionExpression"] == "#name,#address.#city"
    assert req["ExpressionAttributeNames"] == {"#name": "name", "#address": "address", "#city": "city"}

    req = table.scan().attributes("name").build_request()
    assert req["ProjectionExpression"] == "#name"


def test_start_key_is_serialized_through_schema(table: Table) -> None:
    req = table.query("a@example.com").start_key("a@example.com", "2024").build_request()
    assert req["ExclusiveStartKey"] == {"email": {"S": "a@example.com"}, "created": {"S": "2024"}}


def test_cursor_resumes_from_last_evaluated_key(table: Table) -> None:
    last_key = {"email": {"S": "a@example.com"}, "created": {"S": "2024"}}
    req = table.query("a@example.com").cursor(encode_cursor(last_key) or "").build_request()
    assert req["ExclusiveStartKey"] == last_key


def test_cursor_validation(table: Table) -> None:
    token = encode_cursor({"email": {"S": "a"}}, index="by-team") or ""
    with pytest.raises(ValidationError):
        table.query("a").cursor(token)
    table.query("red").using_index("by-team").cursor(token)

    with pytest.raises(ValidationError):
        table.query("a").cursor("not a cursor")


def test_unknown_index_is_rejected(table: Table) -> None:
    with pytest.raises(ValidationError):
        table.query("a").using_index("missing")


def test_consistent_read_on_gsi_fails_before_io(table: Table, client: FakeDynamoDBClient) -> None:
    query = table.query("red").using_index("by-team").consistent_read()
    with pytest.raises(ValidationError):
        query.execute()
    assert client.calls == []


def test_query_requires_partition_value(table: Table) -> None:
    with pytest.raises(ValidationError):
        table.query(None)


def test_scan_where_builds_filter_and_segments(table: Table, client: FakeDynamoDBClient) -> None:
    client.expect(
        "scan",
        {
            "TableName": "accounts",
            "FilterExpression": "(#age BETWEEN :age AND :age_2) AND (attribute_exists(#name))",
            "ExpressionAttributeValues": {":age": {"N": "18"}, ":age_2": {"N": "65"}},
            "Segment": 1,
            "TotalSegments": 4,
        },
        response={"Items": [], "Count": 0, "ScannedCount": 10},
    )

    page = table.scan().where("age").between(18, 65).where("name").not_null().segments(1, 4).execute()

    assert page.scanned_count == 10
    client.assert_no_pending()


@pytest.mark.parametrize(("segment", "total"), [(0, 0), (-1, 2), (2, 2)])
def test_scan_segments_are_validated(table: Table, segment: int, total: int) -> None:
    with pytest.raises(ValidationError):
        table.scan().segments(segment, total)


def test_filter_dsl_operators(table: Table) -> None:
    req = (
        table.query("a")
        .filter("name")
        .ne("x")
        .filter("tags")
        .contains("a")
        .filter("tags")
        .not_contains("b")
        .filter("nick")
        .null()
        .filter("team")
        .in_(["red", "blue"])
        .filter("bio")
        .exists(False)
        .build_request()
    )
    assert req["FilterExpression"] == (
        "(#name <> :name) AND (contains(#tags, :tags)) AND (NOT contains(#tags, :tags_2))"
        " AND (attribute_not_exists(#nick)) AND (#team IN (:team, :team_2)) AND (attribute_not_exists(#bio))"
    )
    assert req["ExpressionAttributeValues"] == {
        ":name": {"S": "x"},
        ":tags": {"S": "a"},
        ":tags_2": {"S": "b"},
        ":team": {"S": "red"},
        ":team_2": {"S": "blue"},
    }


def test_key_condition_dsl_operators(table: Table) -> None:
    req = table.query("a").where("created").begins_with("2024-").build_request()
    assert req["KeyConditionExpression"] == "(begins_with(#created, :created))"

    req = table.query("a").where("created").eq("x").build_request()
    assert req["KeyConditionExpression"] == "(#created = :created)"


def test_float_values_are_sent_as_numbers(table: Table, client: FakeDynamoDBClient) -> None:
    client.expect(
        "scan",
        {"ExpressionAttributeValues": {":score": {"N": "1.5"}}, "FilterExpression": ANY},
        response={"Items": [{"email": {"S": "a"}, "score": {"N": "1.5"}}], "Count": 1},
    )
    page = table.scan().where("score").gte(1.5).execute()
    assert str(page.items[0]["score"]) == "1.5"
