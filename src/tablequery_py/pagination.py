from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Protocol

from boto3.dynamodb.types import TypeDeserializer

from .aws_errors import is_retryable, map_store_error
from .cursor import encode_cursor
from .errors import RetryExhaustedError
from .protection import CapacityLimiter

log = getLogger(__name__)

RATE_LIMIT_POLL_SECONDS = 0.05

_deserializer = TypeDeserializer()

type SendFunc = Callable[[dict[str, Any]], Mapping[str, Any]]


def backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def deserialize_item(item: Mapping[str, Any]) -> dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


@dataclass(frozen=True)
class ConsumedCapacity:
    table_name: str | None
    capacity_units: float

    @staticmethod
    def from_response(raw: Any) -> ConsumedCapacity | None:
        if not isinstance(raw, Mapping):
            return None
        units = raw.get("CapacityUnits")
        if units is None:
            return None
        return ConsumedCapacity(table_name=raw.get("TableName"), capacity_units=float(units))


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    count: int = 0
    scanned_count: int | None = None
    consumed_capacity: ConsumedCapacity | None = None
    last_evaluated_key: dict[str, Any] | None = None
    index_name: str | None = None

    @staticmethod
    def from_response(resp: Mapping[str, Any], *, index_name: str | None = None) -> Page:
        items = [deserialize_item(item) for item in resp.get("Items") or []]
        return Page(
            items=items,
            count=int(resp.get("Count", len(items)) or 0),
            scanned_count=resp.get("ScannedCount"),
            consumed_capacity=ConsumedCapacity.from_response(resp.get("ConsumedCapacity")),
            last_evaluated_key=resp.get("LastEvaluatedKey") or None,
            index_name=index_name,
        )

    @property
    def has_more(self) -> bool:
        return self.last_evaluated_key is not None

    @property
    def last_key(self) -> dict[str, Any] | None:
        if self.last_evaluated_key is None:
            return None
        return deserialize_item(self.last_evaluated_key)

    @property
    def cursor(self) -> str | None:
        return encode_cursor(self.last_evaluated_key, index=self.index_name)


def merge_pages(pages: Iterable[Page], *, table_name: str | None = None) -> Page:
    items: list[dict[str, Any]] = []
    count = 0
    scanned = 0
    units = 0.0
    last: Page | None = None

    for page in pages:
        items.extend(page.items)
        count += page.count or 0
        scanned += page.scanned_count or 0
        if page.consumed_capacity is not None:
            units += page.consumed_capacity.capacity_units
        last = page

    return Page(
        items=items,
        count=count,
        scanned_count=scanned or None,
        consumed_capacity=ConsumedCapacity(table_name=table_name, capacity_units=units) if units else None,
        last_evaluated_key=last.last_evaluated_key if last is not None else None,
        index_name=last.index_name if last is not None else None,
    )


class PaginatedRequest(Protocol):
    @property
    def loads_all(self) -> bool: ...

    def build_request(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class ExecutionOptions:
    max_retries: int = 10
    read_capacity_limit: float | None = None
    sleep: Callable[[float], None] = time.sleep
    now: Callable[[], float] | None = None

    def new_limiter(self) -> CapacityLimiter | None:
        if self.read_capacity_limit is None:
            return None
        return CapacityLimiter(self.read_capacity_limit, now=self.now)


class SessionState(Enum):
    REQUESTING = "REQUESTING"
    RETRY_WAIT = "RETRY_WAIT"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class Session:
    operation: str
    continuation_key: dict[str, Any] | None = None
    pages: list[Page] = field(default_factory=list)
    retry: bool = False
    attempts: int = 0
    last_consumed: float = 0.0
    state: SessionState = SessionState.REQUESTING


def _admit(limiter: CapacityLimiter | None, units: float, sleep: Callable[[float], None]) -> None:
    if limiter is None or units <= 0:
        return
    while not limiter.allow(units):
        log.debug("rate limit: waiting to admit %.1f capacity units", units)
        sleep(RATE_LIMIT_POLL_SECONDS)


def _fetch_page(
    request: PaginatedRequest,
    send: SendFunc,
    session: Session,
    options: ExecutionOptions,
    limiter: CapacityLimiter | None,
) -> Page:
    while True:
        req = request.build_request()
        if session.continuation_key:
            req["ExclusiveStartKey"] = session.continuation_key
        if limiter is not None:
            req.setdefault("ReturnConsumedCapacity", "TOTAL")

        _admit(limiter, session.last_consumed, options.sleep)
        session.state = SessionState.REQUESTING
        log.debug("%s: sending request (page=%d)", session.operation, len(session.pages) + 1)

        try:
            resp = send(req)
        except Exception as err:
            if not is_retryable(err):
                session.state = SessionState.FAILED
                mapped = map_store_error(err)
                if mapped is err:
                    raise
                raise mapped from err

            session.retry = True
            session.attempts += 1
            session.state = SessionState.RETRY_WAIT
            if session.attempts > options.max_retries:
                session.state = SessionState.FAILED
                raise RetryExhaustedError(operation=session.operation, attempts=session.attempts) from err

            log.info("%s: transient error, retrying (attempt=%d): %s", session.operation, session.attempts, err)
            options.sleep(backoff_seconds(session.attempts))
            continue

        session.retry = False
        session.attempts = 0
        page = Page.from_response(resp, index_name=req.get("IndexName"))
        session.continuation_key = page.last_evaluated_key
        session.last_consumed = page.consumed_capacity.capacity_units if page.consumed_capacity else 0.0
        return page


def execute_buffered(
    request: PaginatedRequest,
    send: SendFunc,
    *,
    table_name: str,
    options: ExecutionOptions,
    operation: str = "query",
    limiter: CapacityLimiter | None = None,
) -> Page:
    session = Session(operation=operation)
    if limiter is None:
        limiter = options.new_limiter()

    while True:
        session.pages.append(_fetch_page(request, send, session, options, limiter))
        if not (request.loads_all and session.continuation_key):
            break

    session.state = SessionState.DONE
    return merge_pages(session.pages, table_name=table_name)


def execute_stream(
    request: PaginatedRequest,
    send: SendFunc,
    *,
    options: ExecutionOptions,
    operation: str = "query",
    limiter: CapacityLimiter | None = None,
) -> Iterator[Page]:
    """Yield one page per physical response.

    Nothing is sent until the first page is requested, and the next request is only
    issued once the consumer asks for another page; closing the generator stops it.
    """

    session = Session(operation=operation)
    if limiter is None:
        limiter = options.new_limiter()

    while True:
        page = _fetch_page(request, send, session, options, limiter)
        yield page
        if not (request.loads_all and session.continuation_key):
            break

    session.state = SessionState.DONE
