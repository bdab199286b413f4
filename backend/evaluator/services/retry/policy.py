"""
Retry policies and exponential backoff

Each remote inference stage runs under its own policy. Delays grow
exponentially from ``initial_delay`` by ``multiplier`` per attempt and are
capped at ``max_delay``; optional jitter spreads synchronized retries.
"""

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters for one kind of remote call

    ``max_retries`` counts retries after the initial attempt, so a policy with
    ``max_retries=3`` allows 1 initial + 3 retries = 4 attempts in total.
    Delays and timeouts are in seconds.
    """
    max_retries: int
    initial_delay: float
    max_delay: float
    multiplier: float = 2.0
    timeout: float = 60.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class StageType(str, Enum):
    """Pipeline stages that call the remote inference service"""
    CV_EVALUATION = "cv_evaluation"
    PROJECT_EVALUATION = "project_evaluation"
    FINAL_SYNTHESIS = "final_synthesis"


# PDF scoring is slower and more prone to timeouts than text synthesis
PDF_RETRY_POLICY = RetryPolicy(
    max_retries=4,
    initial_delay=1.0,
    max_delay=30.0,
    multiplier=2.0,
    timeout=90.0,
    jitter=True,
)

TEXT_RETRY_POLICY = RetryPolicy(
    max_retries=3,
    initial_delay=0.5,
    max_delay=20.0,
    multiplier=2.0,
    timeout=60.0,
    jitter=True,
)

DEFAULT_RETRY_POLICY = TEXT_RETRY_POLICY

STAGE_RETRY_POLICIES: Dict[StageType, RetryPolicy] = {
    StageType.CV_EVALUATION: PDF_RETRY_POLICY,
    StageType.PROJECT_EVALUATION: PDF_RETRY_POLICY,
    StageType.FINAL_SYNTHESIS: TEXT_RETRY_POLICY,
}


def policy_for_stage(stage: StageType) -> RetryPolicy:
    return STAGE_RETRY_POLICIES.get(stage, DEFAULT_RETRY_POLICY)


def base_delay(attempt: int, policy: RetryPolicy) -> float:
    """Capped exponential delay before retry ``attempt`` (0 = first retry), no jitter"""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    try:
        exponential = policy.initial_delay * (policy.multiplier ** attempt)
    except OverflowError:
        return policy.max_delay
    return min(exponential, policy.max_delay)


def backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    random_fn: Callable[[], float] = random.random,
) -> float:
    """
    Delay in seconds before retry ``attempt`` (zero-indexed).

    Example with initial_delay=1s, multiplier=2 and no jitter:
    attempt 0 -> 1s, attempt 1 -> 2s, attempt 2 -> 4s, attempt 3 -> 8s.

    With jitter the capped delay is scaled by a factor in [0.5, 1.5) and
    rounded down to the millisecond. Pure: never sleeps.
    """
    delay = base_delay(attempt, policy)

    if policy.jitter:
        jitter_factor = 0.5 + random_fn()
        return math.floor(delay * jitter_factor * 1000) / 1000

    return delay


def format_duration(seconds: float) -> str:
    """Human readable duration: 0.5 -> '500ms', 1.5 -> '1.5s', 65 -> '1m 5s'"""
    ms = int(round(seconds * 1000))
    if ms < 1000:
        return f"{ms}ms"

    whole_seconds = ms // 1000
    minutes = whole_seconds // 60

    if minutes > 0:
        remaining = whole_seconds % 60
        return f"{minutes}m {remaining}s" if remaining else f"{minutes}m"

    tenths = (ms % 1000) // 100
    return f"{whole_seconds}.{tenths}s" if tenths else f"{whole_seconds}s"
