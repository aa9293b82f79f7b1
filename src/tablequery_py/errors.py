from __future__ import annotations


class TablequeryPyError(Exception):
    pass


class ConditionFailedError(TablequeryPyError):
    pass


class NotFoundError(TablequeryPyError):
    pass


class ValidationError(TablequeryPyError):
    pass


class BatchRetryExceededError(TablequeryPyError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class RetryExhaustedError(TablequeryPyError):
    def __init__(self, *, operation: str, attempts: int) -> None:
        super().__init__(f"{operation}: transient errors persisted after {attempts} attempts")
        self.operation = operation
        self.attempts = attempts


class AwsError(TablequeryPyError):
    def __init__(self, *, code: str, message: str, retryable: bool = False) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.retryable = retryable
