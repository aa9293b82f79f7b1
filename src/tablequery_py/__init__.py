from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .cursor import Cursor, decode_cursor, encode_cursor
from .errors import (
    AwsError,
    BatchRetryExceededError,
    ConditionFailedError,
    NotFoundError,
    RetryExhaustedError,
    TablequeryPyError,
    ValidationError,
)
from .expressions import (
    Fragment,
    UpdateExpressionParts,
    UpdateSpec,
    build_filter_expression,
    merge_update_specs,
    parse_update_expression,
    serialize_update_expression,
    stringify_update_expression,
)
from .model import IndexDefinition, KeySchema, ModelDefinitionError, gsi, lsi
from .pagination import ConsumedCapacity, ExecutionOptions, Page, merge_pages
from .protection import CapacityLimiter
from .request import RequestBuilder

if TYPE_CHECKING:
    from .parallel import ParallelScan
    from .query import FilterCondition, KeyCondition, Query, Scan
    from .runtime import (
        AwsCallMetric,
        create_boto3_config,
        create_dynamodb_client,
        instrument_boto3_client,
    )
    from .table import Table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name in {"FilterCondition", "KeyCondition", "Query", "Scan"}:
        from . import query

        return getattr(query, name)
    if name == "ParallelScan":
        from .parallel import ParallelScan

        return ParallelScan
    if name in {
        "AwsCallMetric",
        "create_boto3_config",
        "create_dynamodb_client",
        "instrument_boto3_client",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AwsCallMetric",
    "AwsError",
    "BatchRetryExceededError",
    "build_filter_expression",
    "CapacityLimiter",
    "ConditionFailedError",
    "ConsumedCapacity",
    "create_boto3_config",
    "create_dynamodb_client",
    "Cursor",
    "decode_cursor",
    "encode_cursor",
    "ExecutionOptions",
    "FilterCondition",
    "Fragment",
    "gsi",
    "IndexDefinition",
    "instrument_boto3_client",
    "KeyCondition",
    "KeySchema",
    "lsi",
    "merge_pages",
    "merge_update_specs",
    "ModelDefinitionError",
    "NotFoundError",
    "Page",
    "ParallelScan",
    "parse_update_expression",
    "Query",
    "RequestBuilder",
    "RetryExhaustedError",
    "Scan",
    "serialize_update_expression",
    "stringify_update_expression",
    "Table",
    "TablequeryPyError",
    "UpdateExpressionParts",
    "UpdateSpec",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
