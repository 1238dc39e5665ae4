from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .options import DeleteOptions, UpdateOptions
    from .table import Table


def _deep_merge(base: dict[str, Any], params: Mapping[str, Any]) -> dict[str, Any]:
    for k, v in params.items():
        current = base.get(k)
        if isinstance(current, dict) and isinstance(v, Mapping):
            base[k] = _deep_merge(current, v)
        else:
            base[k] = copy.deepcopy(v)
    return base


def _attrs_of(item: Any) -> Mapping[str, Any]:
    if isinstance(item, Item):
        return item.attrs
    if isinstance(item, Mapping):
        return item
    return item.to_dict()


class Item:
    def __init__(self, attrs: Mapping[str, Any] | None, table: Table) -> None:
        self.table = table
        self.attrs: dict[str, Any] = {}
        self.set(attrs or {})

    def get(self, key: str | None = None) -> Any:
        if key is None:
            return self.attrs
        return self.attrs.get(key)

    def set(self, params: Mapping[str, Any]) -> Item:
        self.attrs = _deep_merge(copy.deepcopy(self.attrs), params)
        return self

    def save(self) -> Item:
        created = self.table.create(self.attrs)
        self.set(_attrs_of(created))
        return self

    def update(self, options: UpdateOptions | None = None) -> Any:
        updated = self.table.update(self.attrs, options)
        if updated is not None:
            self.set(_attrs_of(updated))
        return updated

    def destroy(self, options: DeleteOptions | None = None) -> None:
        self.table.destroy(self.attrs, options=options)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self.attrs)

    def __repr__(self) -> str:
        return f"Item({self.attrs!r})"
