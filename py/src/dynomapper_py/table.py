from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from .batch import DEFAULT_BATCH_CONCURRENCY
from .batch import get_items as _batch_get_items
from .errors import ValidationError
from .expressions import append_condition, classify_update_value, compile_expected, compile_update, merge_update
from .gateway import Gateway, GatewayCallMetric
from .hooks import HOOK_EVENTS, HookPipeline, HookStep
from .item import Item
from .model import Schema
from .options import BatchGetOptions, DeleteOptions, Expected, GetOptions, PutOptions, UpdateOptions
from .pagination import Page
from .query import Query
from .scan import ParallelScan, Scan
from .serializer import Serializer, omit_nulls

type ItemFactory = Callable[[dict[str, Any]], Any]

_BEFORE_EVENTS = ("create", "update")


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Table:
    def __init__(
        self,
        schema: Schema,
        *,
        client: Any | None = None,
        table_name: str | None = None,
        item_factory: ItemFactory | None = None,
        metrics: Callable[[GatewayCallMetric], None] | None = None,
    ) -> None:
        if not table_name and schema.table_name is None:
            raise ValueError("table_name is required (or set Schema.table_name)")

        self.schema = schema
        self.serializer = Serializer(schema)
        self._table_name = table_name
        self._item_factory = item_factory
        self._gateway = Gateway(client, metrics=metrics)
        self._before = HookPipeline(_BEFORE_EVENTS)
        self._after = HookPipeline(HOOK_EVENTS)

    def table_name(self) -> str:
        if self._table_name:
            return self._table_name
        name = self.schema.table_name
        return name() if callable(name) else str(name)

    def before(self, event: str, step: HookStep) -> None:
        self._before.add(event, step)

    def after(self, event: str, step: HookStep) -> None:
        self._after.add(event, step)

    def send_request(self, operation: str, request: Mapping[str, Any]) -> dict[str, Any]:
        return self._gateway.send_request(operation, request)

    def init_item(self, attrs: dict[str, Any]) -> Any:
        if self._item_factory is not None:
            return self._item_factory(attrs)
        return Item(attrs, self)

    def get(self, hash_value: Any, range_value: Any | None = None, options: GetOptions | None = None) -> Any:
        request: dict[str, Any] = {
            "TableName": self.table_name(),
            "Key": self.serializer.build_key(hash_value, range_value),
        }
        if options is not None:
            request.update(options.to_request())

        resp = self.send_request("get", request)
        item = resp.get("Item")
        return self.init_item(self.serializer.deserialize_item(item)) if item else None

    def create(self, item: Mapping[str, Any] | Sequence[Mapping[str, Any]], options: PutOptions | None = None) -> Any:
        if isinstance(item, Sequence):
            return [self._create_item(data, options or PutOptions()) for data in item]
        return self._create_item(item, options or PutOptions())

    def _create_item(self, item: Mapping[str, Any], options: PutOptions) -> Any:
        schema = self.schema
        data = schema.apply_defaults(item)
        if schema.timestamps and schema.created_at and schema.created_at not in data:
            data[schema.created_at] = _now()

        data = self._before.run("create", data)
        self._validate(schema.validate, data)
        attrs = omit_nulls(data)

        request: dict[str, Any] = {
            "TableName": self.table_name(),
            "Item": self.serializer.serialize_item(attrs),
        }
        self._apply_caller_condition(
            request,
            options.condition_expression,
            options.expression_attribute_names,
            options.expression_attribute_values,
        )
        self._apply_expected(request, options.expected)

        if not options.overwrite:
            guard = {key: {"<>": attrs.get(key)} for key in schema.key_attributes()}
            self._apply_expected(request, guard)

        if options.return_values:
            request["ReturnValues"] = options.return_values

        self.send_request("put", request)
        created = self.init_item(attrs)
        self._after.emit("create", created)
        return created

    def update(self, data: Mapping[str, Any], options: UpdateOptions | None = None) -> Any:
        options = options or UpdateOptions()
        schema = self.schema

        payload = dict(data)
        if schema.timestamps and schema.updated_at and schema.updated_at not in payload:
            payload[schema.updated_at] = _now()
        payload = self._before.run("update", payload)

        actions = {name: classify_update_value(value) for name, value in payload.items()}
        self._validate(schema.validate_fragment, actions)

        range_value = payload.get(schema.range_key) if schema.range_key else None
        request: dict[str, Any] = {
            "TableName": self.table_name(),
            "Key": self.serializer.build_key(payload.get(schema.hash_key), range_value),
            "ReturnValues": options.return_values or "ALL_NEW",
        }

        derived = compile_update(schema, actions, serialize=self.serializer.serialize_value)
        merged = merge_update(
            derived,
            options.update_expression,
            options.expression_attribute_names,
            self.serializer.serialize_values(options.expression_attribute_values or {}),
        )
        request.update(merged.to_request())

        if options.condition_expression:
            request["ConditionExpression"] = f"({options.condition_expression})"
        self._apply_expected(request, options.expected)

        resp = self.send_request("update", request)
        attrs = resp.get("Attributes")
        result = self.init_item(self.serializer.deserialize_item(attrs)) if attrs else None
        self._after.emit("update", result)
        return result

    def destroy(self, hash_value: Any, range_value: Any | None = None, options: DeleteOptions | None = None) -> Any:
        options = options or DeleteOptions()
        request: dict[str, Any] = {
            "TableName": self.table_name(),
            "Key": self.serializer.build_key(hash_value, range_value),
        }
        self._apply_caller_condition(
            request,
            options.condition_expression,
            options.expression_attribute_names,
            options.expression_attribute_values,
        )
        self._apply_expected(request, options.expected)
        if options.return_values:
            request["ReturnValues"] = options.return_values

        resp = self.send_request("delete", request)
        attrs = resp.get("Attributes")
        result = self.init_item(self.serializer.deserialize_item(attrs)) if attrs else None
        self._after.emit("destroy", result)
        return result

    def query(self, hash_value: Any) -> Query:
        return Query(hash_value, self)

    def scan(self) -> Scan:
        return Scan(self)

    def parallel_scan(self, total_segments: int, *, max_workers: int | None = None) -> ParallelScan:
        return ParallelScan(self, total_segments, max_workers=max_workers)

    def get_items(
        self,
        keys: Sequence[Any],
        options: BatchGetOptions | None = None,
        *,
        max_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> list[Any]:
        return _batch_get_items(self, keys, options, max_concurrency=max_concurrency)

    def run_query(self, request: dict[str, Any]) -> Page[Any]:
        resp = self.send_request("query", request)
        return Page.from_response(resp, self._init_items(resp.get("Items", [])))

    def run_scan(self, request: dict[str, Any]) -> Page[Any]:
        resp = self.send_request("scan", request)
        return Page.from_response(resp, self._init_items(resp.get("Items", [])))

    def run_batch_get_items(self, request: dict[str, Any]) -> dict[str, Any]:
        return self.send_request("batch_get", request)

    def _init_items(self, items: Sequence[Mapping[str, Any]]) -> list[Any]:
        return [self.init_item(self.serializer.deserialize_item(item)) for item in items]

    def _validate[V](self, check: Callable[[V], None], data: V) -> None:
        try:
            check(data)
        except ValidationError as err:
            raise ValidationError(f"{err} on {self.table_name()}") from err

    def _apply_caller_condition(
        self,
        request: dict[str, Any],
        condition_expression: str | None,
        names: Mapping[str, str] | None,
        values: Mapping[str, Any] | None,
    ) -> None:
        if condition_expression:
            request["ConditionExpression"] = f"({condition_expression})"
        if names:
            request["ExpressionAttributeNames"] = {**request.get("ExpressionAttributeNames", {}), **names}
        if values:
            request["ExpressionAttributeValues"] = {
                **request.get("ExpressionAttributeValues", {}),
                **self.serializer.serialize_values(values),
            }

    def _apply_expected(self, request: dict[str, Any], expected: Expected | None) -> None:
        if not expected:
            return
        clause = compile_expected(
            expected,
            existing_value_aliases=request.get("ExpressionAttributeValues", {}),
            existing_names=request.get("ExpressionAttributeNames"),
            serialize=self.serializer.serialize_value,
        )
        append_condition(request, "ConditionExpression", clause, wrap=False)
