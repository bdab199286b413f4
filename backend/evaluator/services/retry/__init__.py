"""Retry policies, failure classification and the call executor."""

from .classifier import (
    ErrorClassification,
    classify_error,
    get_error_code,
    get_error_message,
    get_status_code,
    is_retryable_error,
)
from .executor import CallExecutionError, CallExecutor, OperationTimeoutError
from .policy import (
    DEFAULT_RETRY_POLICY,
    PDF_RETRY_POLICY,
    TEXT_RETRY_POLICY,
    RetryPolicy,
    StageType,
    backoff_delay,
    base_delay,
    policy_for_stage,
)

__all__ = [
    "ErrorClassification",
    "classify_error",
    "get_error_code",
    "get_error_message",
    "get_status_code",
    "is_retryable_error",
    "CallExecutionError",
    "CallExecutor",
    "OperationTimeoutError",
    "DEFAULT_RETRY_POLICY",
    "PDF_RETRY_POLICY",
    "TEXT_RETRY_POLICY",
    "RetryPolicy",
    "StageType",
    "backoff_delay",
    "base_delay",
    "policy_for_stage",
]
