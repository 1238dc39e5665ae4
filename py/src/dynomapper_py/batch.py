from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from .errors import ValidationError, is_retryable
from .options import BatchGetOptions

if TYPE_CHECKING:
    from .table import Table

logger = logging.getLogger(__name__)

MaxKeysPerBatch = 100
DEFAULT_BATCH_CONCURRENCY = 10


def buckets[T](keys: Sequence[T], size: int = MaxKeysPerBatch) -> list[list[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [list(keys[i : i + size]) for i in range(0, len(keys), size)]


def _bucket_request(table_name: str, keys: list[dict[str, Any]], base: dict[str, Any]) -> dict[str, Any]:
    return {"RequestItems": {table_name: dict(base, Keys=keys)}}


def _get_bucket(table: Table, keys: list[dict[str, Any]], base: dict[str, Any]) -> list[Any]:
    table_name = table.table_name()
    request: dict[str, Any] | None = _bucket_request(table_name, keys, base)
    raw_items: list[dict[str, Any]] = []

    while request is not None:
        try:
            resp = table.run_batch_get_items(request)
        except Exception as err:
            if not is_retryable(err):
                raise
            logger.info("retrying batch_get on %s after retryable error: %s", table_name, err)
            continue

        raw_items.extend(resp.get("Responses", {}).get(table_name, []))

        unprocessed = (resp.get("UnprocessedKeys") or {}).get(table_name, {}).get("Keys") or []
        request = _bucket_request(table_name, list(unprocessed), base) if unprocessed else None

    return [table.init_item(table.serializer.deserialize_item(item)) for item in raw_items]


def get_items(
    table: Table,
    keys: Sequence[Any],
    options: BatchGetOptions | None = None,
    *,
    max_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
) -> list[Any]:
    if max_concurrency <= 0:
        raise ValidationError("max_concurrency must be > 0")

    serialized = [table.serializer.build_key(key) for key in list(keys)]
    if not serialized:
        return []

    base = options.to_request() if options is not None else {}
    groups = buckets(serialized)

    results: list[list[Any]] = []
    with ThreadPoolExecutor(max_workers=min(max_concurrency, len(groups))) as ex:
        futures: list[Future[list[Any]]] = [ex.submit(_get_bucket, table, group, base) for group in groups]
        try:
            for fut in futures:
                results.append(fut.result())
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise

    return [item for group in results for item in group]
