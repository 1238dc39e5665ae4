from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from .errors import ValidationError
from .expressions import Add, Delete, Remove, SetValue, UpdateValue

WIRE_TYPES = frozenset({"S", "N", "B", "BOOL", "NULL", "SS", "NS", "BS", "L", "M", "DATE"})
SET_TYPES = frozenset({"SS", "NS", "BS"})

type IndexType = Literal["TABLE", "GSI", "LSI"]
type Validator = Callable[[Mapping[str, Any]], None]
type TableName = str | Callable[[], str]


class SchemaDefinitionError(ValueError):
    pass


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    type: str
    hash_key: str
    range_key: str | None = None


def gsi(name: str, *, hash_key: str, range_key: str | None = None) -> IndexDefinition:
    return IndexDefinition(name=name, type="GSI", hash_key=hash_key, range_key=range_key)


def lsi(name: str, *, range_key: str) -> IndexDefinition:
    return IndexDefinition(name=name, type="LSI", hash_key="__TABLE_HASH__", range_key=range_key)


@dataclass(frozen=True)
class Schema:
    hash_key: str
    range_key: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)
    table_name: TableName | None = None
    indexes: tuple[IndexDefinition, ...] = ()
    required: frozenset[str] = frozenset()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    timestamps: bool = False
    created_at: str | None = "createdAt"
    updated_at: str | None = "updatedAt"
    validator: Validator | None = None

    @classmethod
    def define(
        cls,
        *,
        hash_key: str,
        range_key: str | None = None,
        attributes: Mapping[str, str] | None = None,
        table_name: TableName | None = None,
        indexes: Sequence[IndexDefinition] = (),
        required: Sequence[str] = (),
        defaults: Mapping[str, Any] | None = None,
        timestamps: bool = False,
        created_at: str | None = "createdAt",
        updated_at: str | None = "updatedAt",
        validator: Validator | None = None,
    ) -> Schema:
        if not hash_key:
            raise SchemaDefinitionError("hash_key is required")
        if range_key is not None and range_key == hash_key:
            raise SchemaDefinitionError("range_key must differ from hash_key")

        wire_types: dict[str, str] = {}
        for name, wire_type in (attributes or {}).items():
            normalized = str(wire_type).upper()
            if normalized not in WIRE_TYPES:
                raise SchemaDefinitionError(f"unsupported attribute type for {name}: {wire_type}")
            wire_types[name] = normalized

        resolved: list[IndexDefinition] = []
        seen: set[str] = set()
        for spec in indexes:
            if spec.name in seen:
                raise SchemaDefinitionError(f"duplicate index name: {spec.name}")
            seen.add(spec.name)

            if spec.type not in {"GSI", "LSI"}:
                raise SchemaDefinitionError(f"unsupported index type: {spec.type}")
            if spec.type == "LSI":
                if spec.range_key is None:
                    raise SchemaDefinitionError(f"index {spec.name}: LSI requires a range key")
                spec = IndexDefinition(
                    name=spec.name, type="LSI", hash_key=hash_key, range_key=spec.range_key
                )
            resolved.append(spec)

        return cls(
            hash_key=hash_key,
            range_key=range_key,
            attributes=wire_types,
            table_name=table_name,
            indexes=tuple(resolved),
            required=frozenset(required) | {k for k in (hash_key, range_key) if k},
            defaults=dict(defaults or {}),
            timestamps=timestamps,
            created_at=created_at,
            updated_at=updated_at,
            validator=validator,
        )

    def wire_type(self, path: str) -> str | None:
        if "." in path:
            return None
        return self.attributes.get(path)

    def key_attributes(self) -> tuple[str, ...]:
        if self.range_key is None:
            return (self.hash_key,)
        return (self.hash_key, self.range_key)

    def resolve_index(self, index_name: str | None) -> tuple[str, str | None, IndexType]:
        if index_name is None:
            return self.hash_key, self.range_key, "TABLE"

        for idx in self.indexes:
            if idx.name == index_name:
                return idx.hash_key, idx.range_key, "GSI" if idx.type == "GSI" else "LSI"

        raise ValidationError(f"unknown index: {index_name}")

    def apply_defaults(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(data)
        for name, default in self.defaults.items():
            if out.get(name) is None:
                out[name] = default() if callable(default) else default
        return out

    def validate(self, data: Mapping[str, Any]) -> None:
        missing = sorted(name for name in self.required if data.get(name) is None)
        if missing:
            raise ValidationError(f"missing required attributes: {missing}")

        for name, value in data.items():
            self._check_type(name, value)

        if self.validator is not None:
            self.validator(data)

    def validate_fragment(self, actions: Mapping[str, UpdateValue]) -> None:
        if actions.get(self.hash_key) is None or isinstance(actions[self.hash_key], Remove):
            raise ValidationError(f"update requires the hash key: {self.hash_key}")
        if self.range_key is not None and (
            actions.get(self.range_key) is None or isinstance(actions[self.range_key], Remove)
        ):
            raise ValidationError(f"update requires the range key: {self.range_key}")

        removed = sorted(
            name for name, action in actions.items() if isinstance(action, Remove) and name in self.required
        )
        if removed:
            raise ValidationError(f"cannot remove required attributes: {removed}")

        for name, action in actions.items():
            if isinstance(action, SetValue):
                self._check_type(name, action.value)
            elif isinstance(action, (Add, Delete)) and self.wire_type(name) not in (None, "N", *SET_TYPES):
                raise ValidationError(f"{name}: ADD/DELETE require a number or set attribute")

    def _check_type(self, name: str, value: Any) -> None:
        wire_type = self.wire_type(name)
        if wire_type is None or value is None:
            return

        ok = True
        if wire_type == "S":
            ok = isinstance(value, str)
        elif wire_type == "N":
            ok = isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)
        elif wire_type == "B":
            ok = isinstance(value, (bytes, bytearray))
        elif wire_type == "BOOL":
            ok = isinstance(value, bool)
        elif wire_type == "DATE":
            ok = isinstance(value, (str, date, datetime))
        elif wire_type in SET_TYPES:
            ok = isinstance(value, (set, frozenset, list, tuple))
        elif wire_type == "L":
            ok = isinstance(value, (list, tuple))
        elif wire_type == "M":
            ok = isinstance(value, Mapping)

        if not ok:
            raise ValidationError(f"{name}: expected {wire_type}, got {type(value).__name__}")
