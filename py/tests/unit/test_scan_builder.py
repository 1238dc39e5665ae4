from __future__ import annotations

from typing import Any

import pytest

from dynomapper_py import Schema, Table, ValidationError
from dynomapper_py.mocks import FakeDynamoDBClient
from dynomapper_py.testkit import client_error


def _table(client: Any | None = None) -> Table:
    schema = Schema.define(
        hash_key="id",
        attributes={"id": "S", "age": "N", "status": "S", "tags": "SS"},
        table_name="people",
    )
    return Table(schema, client=client or FakeDynamoDBClient())


def _segment_page(req: Any) -> dict[str, Any]:
    return {"Items": [{"id": {"S": f"s{req['Segment']}"}}], "Count": 1, "ScannedCount": 2}


def test_scan_where_always_targets_filter() -> None:
    req = _table().scan().where("status").equals("active").where("age").gt(30).build_request()

    assert req == {
        "TableName": "people",
        "FilterExpression": "(#status = :status) AND (#age > :age)",
        "ExpressionAttributeNames": {"#status": "status", "#age": "age"},
        "ExpressionAttributeValues": {":status": {"S": "active"}, ":age": {"N": "30"}},
    }


def test_scan_condition_helpers() -> None:
    req = (
        _table()
        .scan()
        .where("tags")
        .contains("x")
        .where("tags")
        .not_contains("y")
        .where("status")
        .in_(["a", "b"])
        .where("email")
        .null()
        .where("id")
        .not_null()
        .where("age")
        .between(18, 65)
        .build_request()
    )

    assert req["FilterExpression"] == (
        "(contains(#tags, :tags)) AND (NOT contains(#tags, :tags_2))"
        " AND (#status IN (:status, :status_2))"
        " AND (attribute_not_exists(#email)) AND (attribute_exists(#id))"
        " AND (#age BETWEEN :age AND :age_2)"
    )
    assert req["ExpressionAttributeValues"][":tags"] == {"S": "x"}
    assert req["ExpressionAttributeValues"][":status_2"] == {"S": "b"}
    assert req["ExpressionAttributeValues"][":age_2"] == {"N": "65"}


def test_scan_comparison_helpers() -> None:
    req = (
        _table()
        .scan()
        .where("age")
        .lte(1)
        .where("age")
        .lt(2)
        .where("age")
        .gte(3)
        .where("age")
        .ne(4)
        .where("status")
        .eq("x")
        .where("status")
        .begins_with("y")
        .build_request()
    )
    assert req["FilterExpression"] == (
        "(#age <= :age) AND (#age < :age_2) AND (#age >= :age_3) AND (#age <> :age_4)"
        " AND (#status = :status) AND (begins_with(#status, :status_2))"
    )


def test_scan_segments() -> None:
    req = _table().scan().segments(1, 4).build_request()
    assert req["Segment"] == 1
    assert req["TotalSegments"] == 4


@pytest.mark.parametrize(("segment", "total"), [(-1, 4), (4, 4), (0, 0)])
def test_scan_segments_are_validated(segment: int, total: int) -> None:
    with pytest.raises(ValidationError):
        _table().scan().segments(segment, total)


def test_scan_exec_reports_consumed_capacity() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "scan",
        {"TableName": "people", "ReturnConsumedCapacity": "TOTAL"},
        response={
            "Items": [{"id": {"S": "a"}}],
            "Count": 1,
            "ScannedCount": 5,
            "ConsumedCapacity": {"CapacityUnits": 0.5, "TableName": "people"},
        },
    )

    result = _table(client).scan().return_consumed_capacity().exec()

    assert result.scanned_count == 5
    assert result.consumed_capacity is not None
    assert result.consumed_capacity.capacity_units == 0.5
    assert result.to_dict()["ConsumedCapacity"] == {"CapacityUnits": 0.5, "TableName": "people"}


def test_scan_exec_propagates_validation_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", error=client_error("ValidationException", "bad filter"))

    with pytest.raises(ValidationError, match="bad filter"):
        _table(client).scan().exec()


def test_parallel_scan_merges_segments_in_order() -> None:
    client = FakeDynamoDBClient()
    for _ in range(3):
        client.expect("scan", {"TotalSegments": 3}, response=_segment_page)

    result = _table(client).parallel_scan(3).where("age").gt(1).exec()

    client.assert_no_pending()
    assert [i.get("id") for i in result.items] == ["s0", "s1", "s2"]
    assert result.count == 3
    assert result.scanned_count == 6
    assert sorted(req["Segment"] for req in client.calls_to("scan")) == [0, 1, 2]
    assert all(req["FilterExpression"] == "(#age > :age)" for req in client.calls_to("scan"))


def test_parallel_scan_loads_every_page_of_each_segment() -> None:
    client = FakeDynamoDBClient()
    cursor = {"id": {"S": "s0"}}

    def respond(req: Any) -> dict[str, Any]:
        if req.get("ExclusiveStartKey") == cursor:
            return {"Items": [{"id": {"S": "s0-b"}}]}
        page = _segment_page(req)
        if req["Segment"] == 0:
            page["LastEvaluatedKey"] = cursor
        return page

    for _ in range(3):
        client.expect("scan", response=respond)

    result = _table(client).parallel_scan(2, max_workers=1).exec()

    assert [i.get("id") for i in result.items] == ["s0", "s0-b", "s1"]


def test_parallel_scan_stream_chains_segments() -> None:
    client = FakeDynamoDBClient()
    for _ in range(2):
        client.expect("scan", response=_segment_page)

    pages = list(_table(client).parallel_scan(2).stream())

    assert [p.items[0].get("id") for p in pages] == ["s0", "s1"]
    assert [req["Segment"] for req in client.calls_to("scan")] == [0, 1]


def test_parallel_scan_validates_arguments() -> None:
    with pytest.raises(ValidationError, match="total_segments"):
        _table().parallel_scan(0)
    with pytest.raises(ValidationError, match="max_workers"):
        _table().parallel_scan(2, max_workers=0)
