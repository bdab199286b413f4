"""
Tests for retry policies and backoff delay computation.
"""

import pytest
from dataclasses import replace

from evaluator.services.retry.policy import (
    DEFAULT_RETRY_POLICY,
    PDF_RETRY_POLICY,
    TEXT_RETRY_POLICY,
    RetryPolicy,
    StageType,
    backoff_delay,
    base_delay,
    format_duration,
    policy_for_stage,
)


class TestRetryPolicy:
    """Test policy values and validation."""

    @pytest.mark.unit
    def test_pdf_policy_values(self):
        assert PDF_RETRY_POLICY.max_retries == 4
        assert PDF_RETRY_POLICY.initial_delay == 1.0
        assert PDF_RETRY_POLICY.max_delay == 30.0
        assert PDF_RETRY_POLICY.multiplier == 2.0
        assert PDF_RETRY_POLICY.timeout == 90.0
        assert PDF_RETRY_POLICY.jitter is True

    @pytest.mark.unit
    def test_text_policy_values(self):
        assert TEXT_RETRY_POLICY.max_retries == 3
        assert TEXT_RETRY_POLICY.initial_delay == 0.5
        assert TEXT_RETRY_POLICY.max_delay == 20.0
        assert TEXT_RETRY_POLICY.timeout == 60.0
        assert DEFAULT_RETRY_POLICY is TEXT_RETRY_POLICY

    @pytest.mark.unit
    def test_max_attempts_counts_initial_attempt(self):
        assert PDF_RETRY_POLICY.max_attempts == 5
        assert TEXT_RETRY_POLICY.max_attempts == 4
        assert RetryPolicy(max_retries=0, initial_delay=1, max_delay=1).max_attempts == 1

    @pytest.mark.unit
    @pytest.mark.parametrize("kwargs", [
        {"max_retries": -1},
        {"initial_delay": -0.1},
        {"max_delay": -1},
        {"multiplier": 0.5},
        {"timeout": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        params = {"max_retries": 1, "initial_delay": 1.0, "max_delay": 10.0}
        params.update(kwargs)
        with pytest.raises(ValueError):
            RetryPolicy(**params)

    @pytest.mark.unit
    def test_policy_is_immutable(self):
        with pytest.raises(Exception):
            PDF_RETRY_POLICY.max_retries = 10

    @pytest.mark.unit
    def test_stage_policies(self):
        assert policy_for_stage(StageType.CV_EVALUATION) is PDF_RETRY_POLICY
        assert policy_for_stage(StageType.PROJECT_EVALUATION) is PDF_RETRY_POLICY
        assert policy_for_stage(StageType.FINAL_SYNTHESIS) is TEXT_RETRY_POLICY


class TestBackoffDelay:
    """Test exponential backoff with cap and jitter."""

    @pytest.mark.unit
    def test_exponential_growth_without_jitter(self):
        policy = replace(PDF_RETRY_POLICY, jitter=False)
        delays = [backoff_delay(attempt, policy) for attempt in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]

    @pytest.mark.unit
    def test_delay_capped_at_max(self):
        policy = replace(PDF_RETRY_POLICY, jitter=False)
        assert backoff_delay(5, policy) == 30.0
        assert backoff_delay(20, policy) == 30.0

    @pytest.mark.unit
    @pytest.mark.parametrize("attempt", [1100, 5000])
    def test_large_attempt_stays_at_cap(self, attempt):
        assert backoff_delay(attempt, replace(PDF_RETRY_POLICY, jitter=False)) == 30.0

        jittered = backoff_delay(attempt, PDF_RETRY_POLICY, random_fn=lambda: 0.999999)
        assert 15.0 <= jittered < 45.0

    @pytest.mark.unit
    def test_non_decreasing_until_cap(self):
        policy = replace(TEXT_RETRY_POLICY, jitter=False)
        delays = [base_delay(attempt, policy) for attempt in range(12)]
        assert delays == sorted(delays)
        assert max(delays) == policy.max_delay

    @pytest.mark.unit
    @pytest.mark.parametrize("attempt", range(8))
    def test_jitter_bounds(self, attempt):
        policy = PDF_RETRY_POLICY
        base = base_delay(attempt, policy)

        low = backoff_delay(attempt, policy, random_fn=lambda: 0.0)
        high = backoff_delay(attempt, policy, random_fn=lambda: 0.999999)

        assert low == pytest.approx(base * 0.5)
        assert base * 0.5 <= high < base * 1.5

    @pytest.mark.unit
    def test_jitter_rounds_down_to_milliseconds(self):
        # 0.5s * (0.5 + 0.3333) = 0.41665s -> 0.416s
        delay = backoff_delay(0, TEXT_RETRY_POLICY, random_fn=lambda: 0.3333)
        assert delay == 0.416

    @pytest.mark.unit
    def test_negative_attempt_rejected(self):
        with pytest.raises(ValueError):
            backoff_delay(-1, TEXT_RETRY_POLICY)


class TestFormatDuration:
    """Test human readable durations used in log messages."""

    @pytest.mark.unit
    @pytest.mark.parametrize("seconds,expected", [
        (0.5, "500ms"),
        (1.0, "1s"),
        (1.5, "1.5s"),
        (30, "30s"),
        (60, "1m"),
        (65, "1m 5s"),
        (90, "1m 30s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected
