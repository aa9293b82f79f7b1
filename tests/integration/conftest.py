from __future__ import annotations

import os
import socket
from urllib.parse import urlparse

import pytest


def dynamodb_endpoint() -> str:
    return os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000")


def _reachable(endpoint: str) -> bool:
    url = urlparse(endpoint)
    try:
        with socket.create_connection((url.hostname or "localhost", url.port or 80), timeout=0.5):
            return True
    except OSError:
        return False


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if _reachable(dynamodb_endpoint()):
        return
    skip = pytest.mark.skip(reason=f"DynamoDB Local not reachable at {dynamodb_endpoint()}")
    for item in items:
        if "integration" in str(item.path):
            item.add_marker(skip)
