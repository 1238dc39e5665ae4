from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, ConnectionClosedError, EndpointConnectionError, ReadTimeoutError

from .aws_errors import map_client_error, map_connection_error
from .errors import ValidationError, is_retryable

logger = logging.getLogger(__name__)

OPERATIONS: dict[str, str] = {
    "get": "get_item",
    "put": "put_item",
    "update": "update_item",
    "delete": "delete_item",
    "query": "query",
    "scan": "scan",
    "batch_get": "batch_get_item",
}

_CONNECTION_ERRORS = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)


@dataclass(frozen=True)
class GatewayCallMetric:
    operation: str
    seconds: float
    ok: bool
    retryable: bool = False


def create_client_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


def _table_of(request: Mapping[str, Any]) -> str:
    if "TableName" in request:
        return str(request["TableName"])
    return ",".join(request.get("RequestItems", {}))


class Gateway:
    def __init__(
        self,
        client: Any | None = None,
        *,
        metrics: Callable[[GatewayCallMetric], None] | None = None,
    ) -> None:
        self._client = client or boto3.client("dynamodb")
        self._metrics = metrics

    @property
    def client(self) -> Any:
        return self._client

    def send_request(self, operation: str, request: Mapping[str, Any]) -> dict[str, Any]:
        method = OPERATIONS.get(operation)
        if method is None:
            raise ValidationError(f"unsupported operation: {operation}")

        table = _table_of(request)
        logger.debug("dynamodb %s request table=%s", method, table)
        start = time.monotonic()
        try:
            resp = getattr(self._client, method)(**request)
        except ClientError as err:
            mapped = map_client_error(err)
            self._failed(operation, method, table, start, mapped)
            raise mapped from err
        except _CONNECTION_ERRORS as err:
            mapped = map_connection_error(err)
            self._failed(operation, method, table, start, mapped)
            raise mapped from err

        elapsed = time.monotonic() - start
        logger.debug("dynamodb %s response table=%s elapsed_ms=%.1f", method, table, elapsed * 1000)
        self._record(GatewayCallMetric(operation=operation, seconds=elapsed, ok=True))
        return dict(resp or {})

    def _failed(self, operation: str, method: str, table: str, start: float, err: Exception) -> None:
        elapsed = time.monotonic() - start
        retryable = is_retryable(err)
        logger.warning(
            "dynamodb %s failed table=%s elapsed_ms=%.1f retryable=%s: %s",
            method,
            table,
            elapsed * 1000,
            retryable,
            err,
        )
        self._record(
            GatewayCallMetric(
                operation=operation,
                seconds=elapsed,
                ok=False,
                retryable=retryable,
            )
        )

    def _record(self, metric: GatewayCallMetric) -> None:
        if self._metrics is not None:
            self._metrics(metric)
