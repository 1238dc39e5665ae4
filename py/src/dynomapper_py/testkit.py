from __future__ import annotations

from collections.abc import Callable
from typing import Any

from botocore.exceptions import ClientError

from .mocks import ANY, FakeDynamoDBClient


def no_sleep(_: float) -> None:
    return None


def recording_sleep() -> tuple[Callable[[float], None], list[float]]:
    delays: list[float] = []
    return delays.append, delays


def client_error(code: str, message: str = "", *, operation: str = "DynamoDB") -> ClientError:
    error: Any = {"Error": {"Code": code, "Message": message or code}}
    return ClientError(error, operation)


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "no_sleep",
    "recording_sleep",
]
