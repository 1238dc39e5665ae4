from __future__ import annotations

import logging

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from dynomapper_py.aws_errors import RETRYABLE_ERROR_CODES, map_client_error, map_connection_error
from dynomapper_py.errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    ValidationError,
    is_retryable,
)
from dynomapper_py.gateway import OPERATIONS, Gateway, GatewayCallMetric, create_client_config
from dynomapper_py.mocks import FakeDynamoDBClient
from dynomapper_py.testkit import client_error


@pytest.mark.parametrize(
    ("code", "cls"),
    [
        ("ConditionalCheckFailedException", ConditionFailedError),
        ("ValidationException", ValidationError),
        ("ResourceNotFoundException", NotFoundError),
        ("AccessDeniedException", AwsError),
    ],
)
def test_map_client_error_types(code: str, cls: type[Exception]) -> None:
    err = map_client_error(client_error(code, "msg"))
    assert isinstance(err, cls)
    assert is_retryable(err) is False


@pytest.mark.parametrize("code", sorted(RETRYABLE_ERROR_CODES))
def test_map_client_error_flags_transient_codes(code: str) -> None:
    err = map_client_error(client_error(code))
    assert isinstance(err, AwsError)
    assert err.code == code
    assert err.retryable is True


def test_map_client_error_without_code() -> None:
    err = map_client_error(ClientError({}, "GetItem"))
    assert isinstance(err, AwsError)
    assert err.code == "UnknownError"


def test_map_connection_error_is_retryable() -> None:
    err = map_connection_error(EndpointConnectionError(endpoint_url="http://localhost:8000"))
    assert err.code == "EndpointConnectionError"
    assert err.retryable is True


def test_create_client_config() -> None:
    cfg = create_client_config(connect_timeout=2.0, read_timeout=4.0, max_attempts=5)
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries == {"max_attempts": 5, "mode": "adaptive"}


@pytest.mark.parametrize(("operation", "method"), sorted(OPERATIONS.items()))
def test_send_request_dispatches_operations(operation: str, method: str) -> None:
    client = FakeDynamoDBClient()
    client.expect(method, {"TableName": "t"}, response={"ok": True})

    assert Gateway(client).send_request(operation, {"TableName": "t"}) == {"ok": True}


def test_send_request_rejects_unknown_operation() -> None:
    with pytest.raises(ValidationError, match="unsupported operation"):
        Gateway(FakeDynamoDBClient()).send_request("transact", {})


def test_send_request_maps_client_errors_and_chains_cause() -> None:
    client = FakeDynamoDBClient()
    original = client_error("ThrottlingException", "slow down")
    client.expect("query", error=original)

    with pytest.raises(AwsError) as exc:
        Gateway(client).send_request("query", {"TableName": "t"})

    assert exc.value.retryable is True
    assert exc.value.__cause__ is original


def test_send_request_maps_connection_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", error=ReadTimeoutError(endpoint_url="http://localhost:8000"))

    with pytest.raises(AwsError) as exc:
        Gateway(client).send_request("scan", {"TableName": "t"})
    assert exc.value.retryable is True


def test_send_request_lets_other_errors_through() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", error=RuntimeError("boom"))

    with pytest.raises(RuntimeError, match="boom"):
        Gateway(client).send_request("get", {"TableName": "t"})


def test_send_request_records_metrics() -> None:
    metrics: list[GatewayCallMetric] = []
    client = FakeDynamoDBClient()
    client.expect("put_item", response={})
    client.expect("put_item", error=client_error("ProvisionedThroughputExceededException"))
    gateway = Gateway(client, metrics=metrics.append)

    gateway.send_request("put", {"TableName": "t"})
    with pytest.raises(AwsError):
        gateway.send_request("put", {"TableName": "t"})

    assert [(m.operation, m.ok, m.retryable) for m in metrics] == [("put", True, False), ("put", False, True)]
    assert all(m.seconds >= 0 for m in metrics)


def test_send_request_logs_requests_and_failures(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeDynamoDBClient()
    client.expect("batch_get_item", response={})
    client.expect("delete_item", error=client_error("ValidationException", "bad key"))
    gateway = Gateway(client)

    with caplog.at_level(logging.DEBUG, logger="dynomapper_py.gateway"):
        gateway.send_request("batch_get", {"RequestItems": {"things": {"Keys": []}}})
        with pytest.raises(ValidationError):
            gateway.send_request("delete", {"TableName": "t"})

    messages = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert (logging.DEBUG, "dynamodb batch_get_item request table=things") in messages
    assert any(level == logging.DEBUG and "batch_get_item response" in msg for level, msg in messages)
    assert any(level == logging.WARNING and "delete_item failed table=t" in msg for level, msg in messages)
