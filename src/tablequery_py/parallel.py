from __future__ import annotations

import queue
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from logging import getLogger
from typing import TYPE_CHECKING, Any

from .errors import ValidationError
from .pagination import Page, merge_pages
from .query import FilterCondition, RequestBuilderBase, Scan

if TYPE_CHECKING:
    from .table import Table

log = getLogger(__name__)

_RELAY_POLL_SECONDS = 0.05


def _offer(out: queue.Queue[tuple[str, Any]], entry: tuple[str, Any], stop: threading.Event) -> bool:
    while not stop.is_set():
        try:
            out.put(entry, timeout=_RELAY_POLL_SECONDS)
            return True
        except queue.Full:
            continue
    return False


def _scan_segment(segment: int, scan: Scan, stop: threading.Event) -> Page:
    log.debug("parallel scan: segment %d started", segment)
    pages: list[Page] = []
    stream = scan.stream()
    try:
        for page in stream:
            pages.append(page)
            if stop.is_set():
                break
    finally:
        stream.close()
    log.debug("parallel scan: segment %d finished (pages=%d)", segment, len(pages))
    return merge_pages(pages)


class ParallelScan(RequestBuilderBase):
    """Scan split into ``total_segments`` segments that run concurrently.

    The builder only holds the template request; every execution clones it into one
    :class:`Scan` per segment, each with its own pagination session and rate limiter.
    """

    _operation = "parallel_scan"

    def __init__(self, table: Table, total_segments: int, *, max_workers: int | None = None) -> None:
        if isinstance(total_segments, bool) or not isinstance(total_segments, int) or total_segments <= 0:
            raise ValidationError("total_segments must be > 0")
        if max_workers is None:
            max_workers = total_segments
        if max_workers <= 0:
            raise ValidationError("max_workers must be > 0")

        super().__init__(table)
        self._total_segments = total_segments
        self._max_workers = max_workers

    @property
    def total_segments(self) -> int:
        return self._total_segments

    def where(self, attr: str) -> FilterCondition[ParallelScan]:
        return FilterCondition(self, attr, self._request, self._request.add_filter_condition)

    def segment_scans(self) -> list[Scan]:
        scans: list[Scan] = []
        for segment in range(self._total_segments):
            scan = Scan(self._table, request=self._request.clone())
            scans.append(scan.segments(segment, self._total_segments).load_all())
        return scans

    def execute(self) -> Page:
        self._prepare()
        scans = self.segment_scans()
        stop = threading.Event()
        results: list[Page | None] = [None] * len(scans)

        ex = ThreadPoolExecutor(max_workers=self._max_workers)
        try:
            futures = {ex.submit(_scan_segment, seg, scan, stop): seg for seg, scan in enumerate(scans)}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()
        except BaseException:
            stop.set()
            raise
        finally:
            ex.shutdown(wait=True, cancel_futures=True)

        return merge_pages((r for r in results if r is not None), table_name=self._table.table_name)

    def stream(self) -> Iterator[Page]:
        self._prepare()
        return self._relay(self.segment_scans())

    def _relay(self, scans: list[Scan]) -> Iterator[Page]:
        out: queue.Queue[tuple[str, Any]] = queue.Queue(maxsize=len(scans))
        stop = threading.Event()

        def pump(segment: int, scan: Scan) -> None:
            try:
                stream = scan.stream()
                try:
                    for page in stream:
                        # checked before the next request is issued
                        if not _offer(out, ("page", page), stop) or stop.is_set():
                            return
                finally:
                    stream.close()
            except Exception as err:
                log.debug("parallel scan: segment %d failed: %s", segment, err)
                _offer(out, ("error", err), stop)
                return
            _offer(out, ("done", segment), stop)

        ex = ThreadPoolExecutor(max_workers=self._max_workers)
        try:
            for segment, scan in enumerate(scans):
                ex.submit(pump, segment, scan)

            remaining = len(scans)
            while remaining:
                kind, payload = out.get()
                if kind == "page":
                    yield payload
                elif kind == "error":
                    raise payload
                else:
                    remaining -= 1
        finally:
            stop.set()
            ex.shutdown(wait=False, cancel_futures=True)
