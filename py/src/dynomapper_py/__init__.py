from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import (
    AwsError,
    ConditionFailedError,
    DynomapperError,
    NotFoundError,
    ValidationError,
    is_retryable,
)
from .expressions import Add, Clause, Delete, Remove, SetValue, compile_condition, compile_update
from .model import IndexDefinition, Schema, SchemaDefinitionError, gsi, lsi
from .options import BatchGetOptions, DeleteOptions, GetOptions, PutOptions, UpdateOptions
from .pagination import ConsumedCapacity, Page, QueryResult

if TYPE_CHECKING:
    from .gateway import Gateway, GatewayCallMetric, create_client_config
    from .item import Item
    from .query import Query
    from .scan import ParallelScan, Scan
    from .table import Table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name == "Item":
        from .item import Item

        return Item
    if name == "Query":
        from .query import Query

        return Query
    if name in {"Scan", "ParallelScan"}:
        from . import scan

        return getattr(scan, name)
    if name in {"Gateway", "GatewayCallMetric", "create_client_config"}:
        from . import gateway

        return getattr(gateway, name)
    raise AttributeError(name)


__all__ = [
    "Add",
    "AwsError",
    "BatchGetOptions",
    "Clause",
    "ConditionFailedError",
    "ConsumedCapacity",
    "Delete",
    "DeleteOptions",
    "DynomapperError",
    "Gateway",
    "GatewayCallMetric",
    "GetOptions",
    "IndexDefinition",
    "Item",
    "NotFoundError",
    "Page",
    "ParallelScan",
    "PutOptions",
    "Query",
    "QueryResult",
    "Remove",
    "Scan",
    "Schema",
    "SchemaDefinitionError",
    "SetValue",
    "Table",
    "UpdateOptions",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "compile_condition",
    "compile_update",
    "create_client_config",
    "gsi",
    "is_retryable",
    "lsi",
]
