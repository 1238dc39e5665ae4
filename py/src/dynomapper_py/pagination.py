from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import is_retryable
from .options import OperationOptions

logger = logging.getLogger(__name__)

STREAM_RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class ConsumedCapacity:
    capacity_units: float
    table_name: str


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    count: int = 0
    scanned_count: int = 0
    consumed_capacity: float | None = None
    last_evaluated_key: dict[str, Any] | None = None

    @classmethod
    def from_response(cls, resp: Mapping[str, Any], items: list[T]) -> Page[T]:
        capacity = resp.get("ConsumedCapacity") or {}
        return cls(
            items=items,
            count=int(resp.get("Count", len(items)) or 0),
            scanned_count=int(resp.get("ScannedCount") or 0),
            consumed_capacity=capacity.get("CapacityUnits") if isinstance(capacity, Mapping) else None,
            last_evaluated_key=resp.get("LastEvaluatedKey") or None,
        )


@dataclass(frozen=True)
class QueryResult[T]:
    items: list[T]
    count: int = 0
    scanned_count: int | None = None
    consumed_capacity: ConsumedCapacity | None = None
    last_evaluated_key: dict[str, Any] | None = None

    def to_page(self) -> Page[T]:
        return Page(
            items=list(self.items),
            count=self.count,
            scanned_count=self.scanned_count or 0,
            consumed_capacity=self.consumed_capacity.capacity_units if self.consumed_capacity else None,
            last_evaluated_key=self.last_evaluated_key,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Items": list(self.items), "Count": self.count}
        if self.scanned_count is not None:
            out["ScannedCount"] = self.scanned_count
        if self.consumed_capacity is not None:
            out["ConsumedCapacity"] = {
                "CapacityUnits": self.consumed_capacity.capacity_units,
                "TableName": self.consumed_capacity.table_name,
            }
        if self.last_evaluated_key is not None:
            out["LastEvaluatedKey"] = self.last_evaluated_key
        return out


class PaginatedOperation(Protocol):
    options: OperationOptions

    def build_request(self) -> dict[str, Any]: ...

    def start_key(self, cursor: Mapping[str, Any] | None) -> Any: ...

    def clear_start_key(self) -> Any: ...

    def table_name(self) -> str: ...


type RunRequest[T] = Callable[[dict[str, Any]], Page[T]]


def merge_results[T](pages: Iterable[Page[T]], table_name: str) -> QueryResult[T]:
    items: list[T] = []
    count = 0
    scanned_count = 0
    capacity_units = 0.0
    last_key: dict[str, Any] | None = None

    for page in pages:
        items.extend(page.items)
        count += page.count
        scanned_count += page.scanned_count
        capacity_units += page.consumed_capacity or 0
        if page.last_evaluated_key:
            last_key = page.last_evaluated_key

    return QueryResult(
        items=items,
        count=count,
        scanned_count=scanned_count if scanned_count != 0 else None,
        consumed_capacity=(
            ConsumedCapacity(capacity_units=capacity_units, table_name=table_name) if capacity_units != 0 else None
        ),
        last_evaluated_key=last_key,
    )


def _advance(op: PaginatedOperation, page: Page[Any]) -> bool:
    if page.last_evaluated_key:
        op.start_key(page.last_evaluated_key)
    else:
        op.clear_start_key()
    return bool(op.options.load_all and page.last_evaluated_key)


def paginated_request[T](op: PaginatedOperation, run: RunRequest[T]) -> QueryResult[T]:
    pages: list[Page[T]] = []

    while True:
        request = op.build_request()
        try:
            page = run(request)
        except Exception as err:
            if not is_retryable(err):
                raise
            logger.info("retrying %s page after retryable error: %s", op.table_name(), err)
            continue

        pages.append(page)
        if not _advance(op, page):
            break

    return merge_results(pages, op.table_name())


def stream_request[T](
    op: PaginatedOperation,
    run: RunRequest[T],
    *,
    retry_delay: float = STREAM_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Page[T]]:
    """Yield pages one at a time as they arrive.

    A page is only fetched once the consumer asks for it, so two fetches are
    never in flight together. Retryable failures wait ``retry_delay`` seconds
    and refetch the same page.
    """
    while True:
        request = op.build_request()
        try:
            page = run(request)
        except Exception as err:
            if not is_retryable(err):
                raise
            logger.info("retrying %s stream page in %.1fs: %s", op.table_name(), retry_delay, err)
            sleep(retry_delay)
            continue

        more = _advance(op, page)
        yield page
        if not more:
            return
