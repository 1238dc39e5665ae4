from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError
from .model import SET_TYPES, Schema

_ELEMENT_TYPES = {"SS": "S", "NS": "N", "BS": "B"}


def omit_nulls(data: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in data.items():
        if v is None:
            continue
        if isinstance(v, (str, list, tuple, set, frozenset)) and len(v) == 0:
            continue
        out[k] = v
    return out


def _normalize(value: Any, wire_type: str | None) -> Any:
    if value is None:
        return None

    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if wire_type == "N" and isinstance(value, str):
        try:
            return Decimal(value)
        except ArithmeticError as err:
            raise ValidationError(f"invalid number: {value!r}") from err

    if wire_type in SET_TYPES and isinstance(value, (list, tuple, set, frozenset)):
        element_type = _ELEMENT_TYPES[wire_type]
        normalized = {_normalize(v, element_type) for v in value}
        if not normalized:
            return None
        return normalized

    if isinstance(value, Mapping):
        return {str(k): _normalize(v, None) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v, None) for v in value]
    if isinstance(value, (set, frozenset)):
        normalized = {_normalize(v, None) for v in value}
        return normalized or None

    return value


def _denormalize(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, Binary):
        return value.value
    if isinstance(value, dict):
        return {k: _denormalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_denormalize(v) for v in value]
    if isinstance(value, set):
        return {_denormalize(v) for v in value}
    return value


class Serializer:
    def __init__(self, schema: Schema) -> None:
        self._schema = schema
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def serialize_attribute(self, value: Any, wire_type: str | None = None) -> dict[str, Any]:
        try:
            return self._serializer.serialize(_normalize(value, wire_type))
        except TypeError as err:
            raise ValidationError(str(err)) from err

    def serialize_value(self, attribute: str, value: Any) -> dict[str, Any]:
        wire_type = self._schema.wire_type(attribute)
        if wire_type in SET_TYPES and not isinstance(value, (list, tuple, set, frozenset)):
            wire_type = _ELEMENT_TYPES[wire_type]
        return self.serialize_attribute(value, wire_type)

    def serialize_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self.serialize_attribute(v) for k, v in values.items()}

    def serialize_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in item.items():
            out[name] = self.serialize_attribute(value, self._schema.wire_type(name))
        return out

    def build_key(self, hash_value: Any, range_value: Any | None = None) -> dict[str, Any]:
        schema = self._schema
        if isinstance(hash_value, Mapping):
            range_value = hash_value.get(schema.range_key) if schema.range_key else None
            hash_value = hash_value.get(schema.hash_key)
        elif isinstance(hash_value, tuple):
            if len(hash_value) != 2:
                raise ValidationError("expected key tuple (hash, range)")
            hash_value, range_value = hash_value

        if hash_value is None:
            raise ValidationError(f"hash key is required: {schema.hash_key}")
        if schema.range_key is None and range_value is not None:
            raise ValidationError("schema does not define a range key")
        if schema.range_key is not None and range_value is None:
            raise ValidationError(f"range key is required: {schema.range_key}")

        key = {schema.hash_key: self.serialize_value(schema.hash_key, hash_value)}
        if schema.range_key is not None:
            key[schema.range_key] = self.serialize_value(schema.range_key, range_value)
        return key

    def deserialize_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {name: _denormalize(self._deserializer.deserialize(av)) for name, av in item.items()}
