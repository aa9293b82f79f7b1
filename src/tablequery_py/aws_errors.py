from __future__ import annotations

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    ValidationError,
)

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "InternalServerError",
        "ServiceUnavailable",
        "LimitExceededException",
    }
)

_TRANSIENT_TRANSPORT_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ReadTimeoutError,
    ConnectTimeoutError,
)


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def is_retryable(err: BaseException) -> bool:
    if getattr(err, "retryable", False) is True:
        return True
    if isinstance(err, ClientError):
        return _error_code(err) in TRANSIENT_ERROR_CODES
    return isinstance(err, _TRANSIENT_TRANSPORT_ERRORS)


def map_client_error(err: ClientError) -> Exception:
    code = _error_code(err)
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message)
    if code == "ValidationException":
        return ValidationError(message)
    if code == "ResourceNotFoundException":
        return NotFoundError(message)

    return AwsError(
        code=code or "UnknownError",
        message=message or str(err),
        retryable=code in TRANSIENT_ERROR_CODES,
    )


def map_store_error(err: Exception) -> Exception:
    if isinstance(err, ClientError):
        return map_client_error(err)
    return err
