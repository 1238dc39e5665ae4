from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from .errors import ValidationError
from .pagination import Page, QueryResult, RunRequest, merge_results
from .query import FILTER, Condition, _Operation

if TYPE_CHECKING:
    from .table import Table

logger = logging.getLogger(__name__)


class Scan(_Operation):
    def where(self, attribute: str) -> Condition[Scan]:
        return Condition(self, attribute, FILTER)

    def segments(self, segment: int, total_segments: int) -> Scan:
        if total_segments <= 0:
            raise ValidationError("total_segments must be > 0")
        if not 0 <= segment < total_segments:
            raise ValidationError(f"segment must be in [0, {total_segments})")
        self.request["Segment"] = segment
        self.request["TotalSegments"] = total_segments
        return self

    def _run(self) -> RunRequest[Any]:
        return self.table.run_scan


class ParallelScan(Scan):
    def __init__(self, table: Table, total_segments: int, *, max_workers: int | None = None) -> None:
        super().__init__(table)
        if total_segments <= 0:
            raise ValidationError("total_segments must be > 0")
        if max_workers is not None and max_workers <= 0:
            raise ValidationError("max_workers must be > 0")
        self.total_segments = total_segments
        self.max_workers = max_workers or total_segments

    def _segment(self, segment: int) -> Scan:
        scan = Scan(self.table)
        scan.request = copy.deepcopy(self.request)
        scan.options.load_all = self.options.load_all
        return scan.segments(segment, self.total_segments)

    def exec(self) -> QueryResult[Any]:
        scans = [self._segment(i).load_all() for i in range(self.total_segments)]
        logger.debug("parallel scan on %s over %d segments", self.table_name(), self.total_segments)

        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            results = list(ex.map(lambda s: s.exec(), scans))

        return merge_results([r.to_page() for r in results], self.table_name())

    def stream(self) -> Iterator[Page[Any]]:
        for i in range(self.total_segments):
            yield from self._segment(i).stream()
