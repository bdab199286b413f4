"""
Call executor: retries a remote operation under a deadline with exponential backoff.

The executor is an explicit object taking the operation and the policy as
values, so it can be unit tested with an injected ``sleep`` and random source.

    executor = CallExecutor()
    payload = await executor.execute(
        lambda: client.generate_structured(prompt, schema, "cv_evaluation"),
        PDF_RETRY_POLICY,
        operation_name="cv_evaluation",
    )
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from evaluator.services.retry.classifier import (
    ErrorClassification,
    classify_error,
    create_error_context,
    get_error_code,
    get_error_message,
    get_status_code,
)
from evaluator.services.retry.policy import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    backoff_delay,
    format_duration,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationTimeoutError(Exception):
    """An attempt exceeded the policy's per-call deadline"""
    code = "ETIMEDOUT"

    def __init__(self, timeout: float, operation_name: str = "operation"):
        self.timeout = timeout
        self.operation_name = operation_name
        super().__init__(f"Operation timeout: {operation_name} did not respond within {format_duration(timeout)}")


class CallExecutionError(Exception):
    """
    Final failure of an executed call.

    Carries the original failure's message verbatim plus the number of
    attempts made and whether the last failure was judged retryable.
    Raised ``from`` the original exception.
    """

    def __init__(
        self,
        original: BaseException,
        attempts: int,
        retryable: bool,
        operation_name: str = "operation",
    ):
        self.original = original
        self.attempts = attempts
        self.retryable = retryable
        self.operation_name = operation_name
        self.status_code = get_status_code(original)
        self.code = get_error_code(original)
        self.message = get_error_message(original)
        super().__init__(self.message)


class CallExecutor:
    """Runs operations with per-attempt timeouts, classification and backoff"""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Callable[[BaseException], ErrorClassification] = classify_error,
        random_fn: Callable[[], float] = random.random,
    ):
        self._sleep = sleep
        self._classify = classifier
        self._random = random_fn

    async def _attempt(self, operation: Callable[[], Awaitable[T]], policy: RetryPolicy, operation_name: str) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(policy.timeout, operation_name) from e

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "operation",
    ) -> T:
        """
        Run ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: zero-argument callable returning a fresh awaitable per attempt
            policy: retry policy, ``DEFAULT_RETRY_POLICY`` when omitted
            operation_name: label used in logs and error details

        Returns:
            The operation's result

        Raises:
            CallExecutionError: on a permanent failure or when all
                ``policy.max_retries + 1`` attempts failed
        """
        policy = policy or DEFAULT_RETRY_POLICY

        for attempt in range(policy.max_attempts):
            if attempt > 0:
                logger.info(f"Retry attempt {attempt}/{policy.max_retries} for {operation_name}")

            try:
                result = await self._attempt(operation, policy, operation_name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                retryable = self._classify(e) is ErrorClassification.RETRYABLE
                context = create_error_context(e, attempt, policy.max_retries)
                context["retryable"] = retryable
                is_last_attempt = attempt == policy.max_retries

                if not retryable:
                    logger.error(
                        f"{operation_name} failed with non-retryable error "
                        f"(attempt {attempt + 1}/{policy.max_attempts}): {context['error']}",
                        extra={"retry_context": context},
                    )
                    raise CallExecutionError(e, attempt + 1, False, operation_name) from e

                if is_last_attempt:
                    logger.error(
                        f"{operation_name} failed after {policy.max_attempts} attempts "
                        f"(max retries exhausted): {context['error']}",
                        extra={"retry_context": context},
                    )
                    raise CallExecutionError(e, attempt + 1, True, operation_name) from e

                delay = backoff_delay(attempt, policy, self._random)
                logger.warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{policy.max_attempts}), "
                    f"retrying after {format_duration(delay)}: {context['error']} "
                    f"[status={context['status_code']}, code={context['error_code']}, "
                    f"retries remaining={policy.max_retries - attempt}]",
                    extra={"retry_context": context},
                )
                await self._sleep(delay)
                continue

            if attempt > 0:
                logger.info(f"{operation_name} succeeded after {attempt} retry attempt(s)")
            return result

        # max_attempts >= 1, so the loop always returns or raises
        raise RuntimeError(f"{operation_name} made no attempts")
