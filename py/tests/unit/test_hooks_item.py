from __future__ import annotations

from typing import Any

import pytest

from dynomapper_py import DeleteOptions, Schema, Table, UpdateOptions
from dynomapper_py.hooks import HookPipeline
from dynomapper_py.item import Item
from dynomapper_py.mocks import FakeDynamoDBClient


def test_hook_pipeline_threads_payload_in_order() -> None:
    pipeline = HookPipeline()
    pipeline.add("create", lambda p: p + ["a"])
    pipeline.add("create", lambda p: None)
    pipeline.add("create", lambda p: p + ["b"])

    assert pipeline.run("create", []) == ["a", "b"]
    assert pipeline.run("update", ["x"]) == ["x"]
    assert len(pipeline.steps("create")) == 3


def test_hook_pipeline_stops_on_first_error() -> None:
    seen: list[str] = []
    pipeline = HookPipeline()

    def fail(_: Any) -> None:
        raise RuntimeError("stop")

    pipeline.add("update", fail)
    pipeline.add("update", lambda p: seen.append("late"))

    with pytest.raises(RuntimeError, match="stop"):
        pipeline.run("update", {})
    assert seen == []


def test_hook_pipeline_emit_and_validation() -> None:
    seen: list[Any] = []
    pipeline = HookPipeline(("destroy",))
    pipeline.add("destroy", seen.append)
    pipeline.emit("destroy", "gone")
    assert seen == ["gone"]

    with pytest.raises(ValueError, match="unknown hook event"):
        pipeline.add("create", seen.append)
    with pytest.raises(TypeError, match="callable"):
        pipeline.add("destroy", "not-callable")  # type: ignore[arg-type]


def _table(client: FakeDynamoDBClient) -> Table:
    schema = Schema.define(hash_key="id", attributes={"id": "S", "n": "N"})
    return Table(schema, client=client, table_name="things")


def test_item_get_set_deep_merges() -> None:
    item = Item({"id": "1", "meta": {"a": 1, "b": {"c": 2}}}, _table(FakeDynamoDBClient()))

    item.set({"meta": {"b": {"d": 3}}, "n": 4})

    assert item.get("meta") == {"a": 1, "b": {"c": 2, "d": 3}}
    assert item.get("n") == 4
    assert item.get() is item.attrs
    assert item.get("missing") is None


def test_item_to_dict_is_a_copy() -> None:
    item = Item({"id": "1", "meta": {"a": 1}}, _table(FakeDynamoDBClient()))
    out = item.to_dict()
    out["meta"]["a"] = 99
    assert item.get("meta") == {"a": 1}
    assert repr(item) == "Item({'id': '1', 'meta': {'a': 1}})"


def test_item_save_update_destroy_go_through_table() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", {"Item": {"id": {"S": "1"}, "n": {"N": "1"}}})
    client.expect(
        "update_item",
        {"Key": {"id": {"S": "1"}}, "ConditionExpression": "(#n = :n_2)"},
        response={"Attributes": {"id": {"S": "1"}, "n": {"N": "2"}}},
    )
    client.expect("delete_item", {"Key": {"id": {"S": "1"}}, "ReturnValues": "NONE"})
    item = Item({"id": "1", "n": 1}, _table(client))

    assert item.save() is item
    item.set({"n": 2})
    updated = item.update(UpdateOptions(expected={"n": 1}))
    item.destroy(DeleteOptions(return_values="NONE"))

    client.assert_no_pending()
    assert updated.get("n") == 2
    assert item.get("n") == 2
