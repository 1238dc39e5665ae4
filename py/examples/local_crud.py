from __future__ import annotations

import logging
import os
import uuid

import boto3

from dynomapper_py import PutOptions, Schema, Table, UpdateOptions


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    client = _client()
    table_name = f"dynomapper_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        schema = Schema.define(
            hash_key="pk",
            range_key="sk",
            attributes={"pk": "S", "sk": "S", "value": "N", "tags": "SS"},
            timestamps=True,
        )
        table = Table(schema, client=client, table_name=table_name)

        table.create([
            {"pk": "A", "sk": "001", "value": 1},
            {"pk": "A", "sk": "010", "value": 10},
            {"pk": "A", "sk": "100", "value": 100},
        ])
        table.create({"pk": "A", "sk": "001", "value": 2}, PutOptions(overwrite=True))

        print("get:", table.get("A", "010"))

        updated = table.update(
            {"pk": "A", "sk": "010", "value": {"$add": 5}, "tags": {"$add": ["x"]}},
            UpdateOptions(expected={"value": 10}),
        )
        print("update:", updated)

        result = table.query("A").where("sk").begins_with("0").load_all().exec()
        print("query begins_with('0'):", result.items)

        print("get_items:", table.get_items([("A", "001"), ("A", "100")]))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
