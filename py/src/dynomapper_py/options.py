from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError
from .expressions import name_aliases

type Expected = Mapping[str, Any]


@dataclass
class OperationOptions:
    load_all: bool = False


def projection(attributes: Sequence[str], names: Mapping[str, str] | None = None) -> tuple[str, dict[str, str]]:
    if isinstance(attributes, str) or not attributes:
        raise ValidationError("attributes must be a non-empty sequence of names")

    bound = dict(names or {})
    out: dict[str, str] = {}
    refs: list[str] = []
    for attribute in attributes:
        ref, aliases = name_aliases(attribute, {**bound, **out})
        out.update(aliases)
        refs.append(ref)
    return ", ".join(refs), out


@dataclass(frozen=True)
class GetOptions:
    consistent_read: bool | None = None
    attributes: Sequence[str] | None = None
    projection_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None

    def to_request(self) -> dict[str, Any]:
        if self.attributes is not None and self.projection_expression is not None:
            raise ValidationError("attributes and projection_expression are mutually exclusive")

        out: dict[str, Any] = {}
        names = dict(self.expression_attribute_names or {})
        if self.consistent_read is not None:
            out["ConsistentRead"] = self.consistent_read
        if self.projection_expression is not None:
            out["ProjectionExpression"] = self.projection_expression
        if self.attributes is not None:
            expr, aliases = projection(self.attributes, names)
            out["ProjectionExpression"] = expr
            names = {**aliases, **names}
        if names:
            out["ExpressionAttributeNames"] = names
        return out


@dataclass(frozen=True)
class BatchGetOptions(GetOptions):
    pass


@dataclass(frozen=True)
class PutOptions:
    expected: Expected | None = None
    overwrite: bool = True
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None
    return_values: str | None = None


@dataclass(frozen=True)
class UpdateOptions:
    expected: Expected | None = None
    update_expression: str | None = None
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None
    return_values: str | None = None


@dataclass(frozen=True)
class DeleteOptions:
    expected: Expected | None = None
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None
    return_values: str | None = None
