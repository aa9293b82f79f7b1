from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    # Throttling is retried by the pagination engine; keep the client-level budget small.
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def _record(self, operation: str, start: float, ok: bool) -> None:
        self._on_call(
            AwsCallMetric(
                service=self._service,
                operation=operation,
                seconds=time.monotonic() - start,
                ok=ok,
            )
        )

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            try:
                out = attr(*args, **kwargs)
            except Exception:
                self._record(name, start, False)
                raise
            self._record(name, start, True)
            return out

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


def create_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    sess = session or boto3.session.Session(region_name=region)
    kwargs: dict[str, Any] = {"region_name": region, "config": config or create_boto3_config()}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url

    client = cast(Any, sess).client("dynamodb", **kwargs)
    if metrics is not None:
        client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)
    return client
