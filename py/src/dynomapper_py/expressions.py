from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .errors import ValidationError

if TYPE_CHECKING:
    from .model import Schema

UPDATE_KEYWORDS = ("SET", "ADD", "REMOVE", "DELETE")

COMPARISON_OPERATORS = frozenset({"=", "<>", "<", "<=", ">", ">="})
FUNCTION_OPERATORS = frozenset({"attribute_exists", "attribute_not_exists", "begins_with", "contains", "NOT contains"})
OPERATORS = COMPARISON_OPERATORS | FUNCTION_OPERATORS | {"IN", "BETWEEN"}

MaxInValues = 100

_NO_VALUE_OPERATORS = frozenset({"attribute_exists", "attribute_not_exists"})
_NON_WORD = re.compile(r"\W")
_UPDATE_KEYWORD = re.compile(r"(?<![#:\w])(SET|ADD|REMOVE|DELETE)(?!\w)", re.IGNORECASE)

type Serialize = Callable[[str, Any], Any]


@dataclass(frozen=True)
class Clause:
    statement: str
    attribute_names: Mapping[str, str] = field(default_factory=dict)
    attribute_values: Mapping[str, Any] = field(default_factory=dict)

    def map_values(self, fn: Callable[[Any], Any]) -> Clause:
        return Clause(
            statement=self.statement,
            attribute_names=dict(self.attribute_names),
            attribute_values={k: fn(v) for k, v in self.attribute_values.items()},
        )


@dataclass(frozen=True)
class SetValue:
    value: Any


@dataclass(frozen=True)
class Add:
    value: Any


@dataclass(frozen=True)
class Delete:
    value: Any


@dataclass(frozen=True)
class Remove:
    pass


type UpdateValue = SetValue | Add | Delete | Remove


@dataclass(frozen=True)
class UpdateExpressions:
    expressions: Mapping[str, Sequence[str]]
    names: Mapping[str, str] = field(default_factory=dict)
    values: Mapping[str, Any] = field(default_factory=dict)

    def to_request(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        statement = stringify(self.expressions)
        if statement:
            out["UpdateExpression"] = statement
        if self.names:
            out["ExpressionAttributeNames"] = dict(self.names)
        if self.values:
            out["ExpressionAttributeValues"] = dict(self.values)
        return out


def _clean(segment: str) -> str:
    return _NON_WORD.sub("", segment)


def _format_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def unique_value_alias(path: str, existing: Iterable[str]) -> str:
    taken = set(existing)
    cleaned = _clean(path.replace(".", "_"))
    if not cleaned:
        raise ValidationError(f"invalid attribute path: {path!r}")

    candidate = f":{cleaned}"
    idx = 1
    while candidate in taken:
        idx += 1
        candidate = f":{cleaned}_{idx}"
    return candidate


def bind_name(segment: str, bound: Mapping[str, str] | None) -> str:
    cleaned = _clean(segment)
    if not cleaned:
        raise ValidationError(f"invalid attribute name: {segment!r}")

    existing = bound or {}
    alias = f"#{cleaned}"
    idx = 1
    while existing.get(alias, segment) != segment:
        idx += 1
        alias = f"#{cleaned}_{idx}"
    return alias


def name_aliases(path: str, existing_names: Mapping[str, str] | None = None) -> tuple[str, dict[str, str]]:
    bound = dict(existing_names or {})
    names: dict[str, str] = {}
    refs: list[str] = []
    for segment in path.split("."):
        if not segment:
            raise ValidationError(f"invalid attribute path: {path!r}")
        alias = bind_name(segment, bound)
        bound[alias] = segment
        names[alias] = segment
        refs.append(alias)
    return ".".join(refs), names


def compile_condition(
    path: str,
    operator: str,
    existing_value_aliases: Iterable[str] = (),
    value: Any = None,
    value2: Any = None,
    *,
    existing_names: Mapping[str, str] | None = None,
) -> Clause:
    """Compile one attribute predicate into a clause with private aliases.

    Name aliases are stable per path; value aliases get a numeric suffix when
    the plain ``:path`` form is already in ``existing_value_aliases``.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("attribute path is required")
    if operator not in OPERATORS:
        raise ValidationError(f"unsupported condition operator: {operator}")

    taken = list(existing_value_aliases)
    ref, names = name_aliases(path, existing_names)

    if operator == "IN":
        return _compile_in(path, ref, names, taken, value)

    v1 = _format_value(value)
    v2 = _format_value(value2)

    if operator in _NO_VALUE_OPERATORS:
        if v1 is not None and not isinstance(v1, bool):
            raise ValidationError(f"{operator} does not take a value")
        if operator == "attribute_exists" and v1 is False:
            operator = "attribute_not_exists"
        return Clause(statement=f"{operator}({ref})", attribute_names=names)

    if v1 is None:
        raise ValidationError(f"{operator} requires a value")

    alias = unique_value_alias(path, taken)
    values: dict[str, Any] = {alias: v1}

    if operator == "BETWEEN":
        if v2 is None:
            raise ValidationError("BETWEEN requires two values")
        upper = unique_value_alias(path, [alias, *taken])
        values[upper] = v2
        statement = f"{ref} BETWEEN {alias} AND {upper}"
    elif operator in FUNCTION_OPERATORS:
        statement = f"{operator}({ref}, {alias})"
    else:
        statement = f"{ref} {operator} {alias}"

    return Clause(statement=statement, attribute_names=names, attribute_values=values)


def _compile_in(path: str, ref: str, names: dict[str, str], taken: list[str], values: Any) -> Clause:
    if not isinstance(values, (Sequence, set, frozenset)) or isinstance(values, (str, bytes, bytearray)):
        raise ValidationError("IN requires a sequence of values")
    if not values:
        raise ValidationError("IN requires at least one value")
    if len(values) > MaxInValues:
        raise ValidationError(f"IN supports maximum {MaxInValues} values")

    out: dict[str, Any] = {}
    for v in values:
        alias = unique_value_alias(path, [*taken, *out])
        out[alias] = _format_value(v)

    return Clause(statement=f"{ref} IN ({', '.join(out)})", attribute_names=names, attribute_values=out)


def classify_update_value(value: Any) -> UpdateValue:
    if isinstance(value, (SetValue, Add, Delete, Remove)):
        return value
    if value is None:
        return Remove()
    if isinstance(value, Mapping):
        if "$add" in value:
            return Add(value["$add"])
        if "$del" in value:
            return Delete(value["$del"])
    return SetValue(value)


def compile_update(
    schema: Schema,
    data: Mapping[str, Any],
    *,
    serialize: Serialize | None = None,
) -> UpdateExpressions:
    expressions: dict[str, list[str]] = {keyword: [] for keyword in UPDATE_KEYWORDS}
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    keys = set(schema.key_attributes())

    for attribute, raw in data.items():
        if attribute in keys:
            continue

        action = classify_update_value(raw)
        ref = bind_name(attribute, names)
        names[ref] = attribute

        if isinstance(action, Remove):
            expressions["REMOVE"].append(ref)
            continue

        alias = unique_value_alias(attribute, values)
        literal = _format_value(action.value)
        values[alias] = serialize(attribute, literal) if serialize is not None else literal

        if isinstance(action, Add):
            expressions["ADD"].append(f"{ref} {alias}")
        elif isinstance(action, Delete):
            expressions["DELETE"].append(f"{ref} {alias}")
        else:
            expressions["SET"].append(f"{ref} = {alias}")

    return UpdateExpressions(expressions=expressions, names=names, values=values)


def _split_operands(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def parse_update_expression(text: str) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {keyword: [] for keyword in UPDATE_KEYWORDS}
    if not text or not text.strip():
        return out

    matches = list(_UPDATE_KEYWORD.finditer(text))
    if not matches or text[: matches[0].start()].strip():
        raise ValidationError(f"invalid update expression: {text!r}")

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        operands = _split_operands(text[match.end() : end])
        if not operands:
            raise ValidationError(f"empty {match.group(1).upper()} clause in update expression")
        out[match.group(1).upper()].extend(operands)

    return out


def merge_update(
    derived: UpdateExpressions,
    fragment: str | Mapping[str, Sequence[str]] | None = None,
    names: Mapping[str, str] | None = None,
    values: Mapping[str, Any] | None = None,
) -> UpdateExpressions:
    """Append a caller-supplied update fragment to the derived clauses.

    Derived clauses keep their position in each bucket; caller names and
    values are applied last and win on key collision.
    """
    parsed = parse_update_expression(fragment) if isinstance(fragment, str) else dict(fragment or {})

    expressions: dict[str, list[str]] = {}
    for keyword in UPDATE_KEYWORDS:
        expressions[keyword] = [*derived.expressions.get(keyword, ()), *parsed.get(keyword, ())]

    return UpdateExpressions(
        expressions=expressions,
        names={**derived.names, **(names or {})},
        values={**derived.values, **(values or {})},
    )


def stringify(expressions: Mapping[str, Sequence[str]]) -> str:
    parts: list[str] = []
    for keyword in UPDATE_KEYWORDS:
        clauses = expressions.get(keyword) or ()
        if clauses:
            parts.append(f"{keyword} {', '.join(clauses)}")
    return " ".join(parts)


def _expected_operator(spec: Any) -> tuple[str, Any]:
    if isinstance(spec, Mapping):
        exists = spec.get("Exists")
        if exists is True:
            return "attribute_exists", None
        if exists is False:
            return "attribute_not_exists", None
        if "<>" in spec:
            return "<>", spec["<>"]
    return "=", spec


def compile_expected(
    expected: Mapping[str, Any],
    *,
    existing_value_aliases: Iterable[str] = (),
    existing_names: Mapping[str, str] | None = None,
    serialize: Serialize | None = None,
) -> Clause:
    taken = list(existing_value_aliases)
    bound = dict(existing_names or {})
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    statements: list[str] = []

    for attribute, spec in expected.items():
        operator, value = _expected_operator(spec)
        clause = compile_condition(
            attribute,
            operator,
            [*taken, *values],
            value,
            existing_names={**bound, **names},
        )
        if serialize is not None:
            clause = clause.map_values(lambda v, a=attribute: serialize(a, v))
        names.update(clause.attribute_names)
        values.update(clause.attribute_values)
        statements.append(f"({clause.statement})")

    return Clause(statement=" AND ".join(statements), attribute_names=names, attribute_values=values)


def append_condition(
    request: dict[str, Any],
    key: str,
    clause: Clause,
    *,
    wrap: bool = True,
    first: bool = False,
) -> None:
    if not clause.statement:
        return

    if clause.attribute_names:
        request["ExpressionAttributeNames"] = {
            **clause.attribute_names,
            **request.get("ExpressionAttributeNames", {}),
        }
    if clause.attribute_values:
        request["ExpressionAttributeValues"] = {
            **clause.attribute_values,
            **request.get("ExpressionAttributeValues", {}),
        }

    statement = f"({clause.statement})" if wrap else clause.statement
    existing = request.get(key)
    if not existing:
        request[key] = statement
    elif first:
        request[key] = f"{statement} AND {existing}"
    else:
        request[key] = f"{existing} AND {statement}"
