from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Self

from .errors import ValidationError
from .expressions import Clause, append_condition, compile_condition
from .options import OperationOptions, projection
from .pagination import Page, QueryResult, RunRequest, paginated_request, stream_request

if TYPE_CHECKING:
    from .table import Table

KEY_CONDITION = "KeyConditionExpression"
FILTER = "FilterExpression"

KEY_OPERATORS = frozenset({"=", "<", "<=", ">", ">=", "BETWEEN", "begins_with"})
HASH_KEY_OPERATORS = frozenset({"="})


class Condition[O: _Operation]:
    def __init__(self, op: O, attribute: str, target: str) -> None:
        self._op = op
        self._attribute = attribute
        self._target = target

    def _add(self, operator: str, value: Any = None, value2: Any = None) -> O:
        if self._target == KEY_CONDITION and operator not in self._op.key_operators(self._attribute):
            raise ValidationError(f"{operator} is not allowed in a key condition on {self._attribute}")
        self._op.add_condition(self._target, self._attribute, operator, value, value2)
        return self._op

    def equals(self, value: Any) -> O:
        return self._add("=", value)

    eq = equals

    def ne(self, value: Any) -> O:
        return self._add("<>", value)

    def lte(self, value: Any) -> O:
        return self._add("<=", value)

    def lt(self, value: Any) -> O:
        return self._add("<", value)

    def gte(self, value: Any) -> O:
        return self._add(">=", value)

    def gt(self, value: Any) -> O:
        return self._add(">", value)

    def null(self) -> O:
        return self._add("attribute_not_exists")

    def not_null(self) -> O:
        return self._add("attribute_exists")

    def contains(self, value: Any) -> O:
        return self._add("contains", value)

    def not_contains(self, value: Any) -> O:
        return self._add("NOT contains", value)

    def in_(self, values: Sequence[Any]) -> O:
        return self._add("IN", values)

    def begins_with(self, value: Any) -> O:
        return self._add("begins_with", value)

    def between(self, low: Any, high: Any) -> O:
        return self._add("BETWEEN", low, high)


class _Operation:
    def __init__(self, table: Table) -> None:
        self.table = table
        self.options = OperationOptions()
        self.request: dict[str, Any] = {}

    def table_name(self) -> str:
        return self.table.table_name()

    def limit(self, n: int) -> Self:
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise ValidationError("limit must be > 0")
        self.request["Limit"] = n
        return self

    def attributes(self, names: Sequence[str]) -> Self:
        expr, aliases = projection(names, self.request.get("ExpressionAttributeNames"))
        self.request["ProjectionExpression"] = expr
        self._merge_names(aliases)
        return self

    def select(self, value: str) -> Self:
        self.request["Select"] = value
        return self

    def return_consumed_capacity(self, value: str = "TOTAL") -> Self:
        self.request["ReturnConsumedCapacity"] = value
        return self

    def load_all(self, flag: bool = True) -> Self:
        self.options.load_all = flag
        return self

    def start_key(self, cursor: Mapping[str, Any] | None) -> Self:
        if not cursor:
            return self.clear_start_key()
        self.request["ExclusiveStartKey"] = dict(cursor)
        return self

    def clear_start_key(self) -> Self:
        self.request.pop("ExclusiveStartKey", None)
        return self

    def consistent_read(self, flag: bool = True) -> Self:
        self.request["ConsistentRead"] = flag
        return self

    def using_index(self, name: str) -> Self:
        self.table.schema.resolve_index(name)
        self.request["IndexName"] = name
        return self

    def filter_expression(self, text: str) -> Self:
        self.request[FILTER] = text
        return self

    def expression_attribute_names(self, names: Mapping[str, str]) -> Self:
        self._merge_names(names)
        return self

    def expression_attribute_values(self, values: Mapping[str, Any]) -> Self:
        serialized = self.table.serializer.serialize_values(values)
        self.request["ExpressionAttributeValues"] = {
            **self.request.get("ExpressionAttributeValues", {}),
            **serialized,
        }
        return self

    def projection_expression(self, text: str) -> Self:
        self.request["ProjectionExpression"] = text
        return self

    def key_operators(self, attribute: str) -> frozenset[str]:
        return KEY_OPERATORS

    def add_condition(self, target: str, attribute: str, operator: str, value: Any = None, value2: Any = None) -> None:
        clause = self._compile(self.request, attribute, operator, value, value2)
        append_condition(self.request, target, clause, wrap=target != KEY_CONDITION)

    def _compile(
        self, request: Mapping[str, Any], attribute: str, operator: str, value: Any, value2: Any = None
    ) -> Clause:
        clause = compile_condition(
            attribute,
            operator,
            request.get("ExpressionAttributeValues", {}),
            value,
            value2,
            existing_names=request.get("ExpressionAttributeNames"),
        )
        serializer = self.table.serializer
        return clause.map_values(lambda v: serializer.serialize_value(attribute, v))

    def _merge_names(self, names: Mapping[str, str]) -> None:
        if names:
            self.request["ExpressionAttributeNames"] = {
                **self.request.get("ExpressionAttributeNames", {}),
                **names,
            }

    def _run(self) -> RunRequest[Any]:
        raise NotImplementedError

    def build_request(self) -> dict[str, Any]:
        return {"TableName": self.table_name(), **copy.deepcopy(self.request)}

    def exec(self) -> QueryResult[Any]:
        return paginated_request(self, self._run())

    def stream(self) -> Iterator[Page[Any]]:
        return stream_request(self, self._run())


class Query(_Operation):
    def __init__(self, hash_value: Any, table: Table) -> None:
        super().__init__(table)
        if hash_value is None:
            raise ValidationError("query requires a hash key value")
        self.hash_value = hash_value

    def _keys(self) -> tuple[str, str | None]:
        hash_key, range_key, _ = self.table.schema.resolve_index(self.request.get("IndexName"))
        return hash_key, range_key

    def where(self, attribute: str) -> Condition[Query]:
        return Condition(self, attribute, KEY_CONDITION if attribute in self._keys() else FILTER)

    def key_operators(self, attribute: str) -> frozenset[str]:
        hash_key, _ = self._keys()
        return HASH_KEY_OPERATORS if attribute == hash_key else KEY_OPERATORS

    def add_condition(self, target: str, attribute: str, operator: str, value: Any = None, value2: Any = None) -> None:
        hash_key, _ = self._keys()
        if target != KEY_CONDITION or attribute != hash_key:
            super().add_condition(target, attribute, operator, value, value2)
            return
        # the hash equality is compiled at build time
        if value is None:
            raise ValidationError(f"query requires a value for hash key {hash_key}")
        self.hash_value = value

    def filter(self, attribute: str) -> Condition[Query]:
        return Condition(self, attribute, FILTER)

    def ascending(self) -> Query:
        self.request["ScanIndexForward"] = True
        return self

    def descending(self) -> Query:
        self.request["ScanIndexForward"] = False
        return self

    def build_request(self) -> dict[str, Any]:
        request = super().build_request()
        hash_key, _ = self._keys()
        append_condition(
            request,
            KEY_CONDITION,
            self._compile(request, hash_key, "=", self.hash_value),
            wrap=False,
            first=True,
        )
        return request

    def _run(self) -> RunRequest[Any]:
        return self.table.run_query
