from __future__ import annotations

import logging
import os
import uuid

from tablequery_py import KeySchema, Table, create_dynamodb_client, gsi


def _client():
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")
    return create_dynamodb_client(
        region=os.environ.get("AWS_REGION", "us-east-1"),
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
    )


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    client = _client()
    table_name = f"tablequery_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "email", "KeyType": "HASH"}, {"AttributeName": "created", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "email", "AttributeType": "S"},
            {"AttributeName": "created", "AttributeType": "S"},
            {"AttributeName": "team", "AttributeType": "S"},
            {"AttributeName": "age", "AttributeType": "N"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "by-team",
                "KeySchema": [
                    {"AttributeName": "team", "KeyType": "HASH"},
                    {"AttributeName": "age", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        schema = KeySchema.define(
            hash_key="email",
            range_key="created",
            indexes=[gsi("by-team", hash_key="team", range_key="age")],
        )
        accounts = Table(schema, table_name=table_name, client=client)

        for i in range(25):
            accounts.put({"email": "a@example.com", "created": f"2024-01-{i + 1:02d}", "team": "red", "age": 20 + i})

        page = accounts.query("a@example.com").where("created").begins_with("2024-01-1").execute()
        print("query begins_with('2024-01-1'):", page.count)

        for page in accounts.query("red").using_index("by-team").filter("age").gt(30).limit(5).load_all().stream():
            print("page:", [item["age"] for item in page.items])

        print("parallel scan:", accounts.parallel_scan(4).execute().count)
        print("batch get:", accounts.batch_get([("a@example.com", "2024-01-01"), ("a@example.com", "2024-01-02")]))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
