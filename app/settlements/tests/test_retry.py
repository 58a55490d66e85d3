"""
Tests for RetryPolicy backoff and in-process retries.
"""

import pytest

from settlements.conf import SettlementConfig
from settlements.exceptions import ErrorKind, SettlementError
from settlements.retry import RetryPolicy


def transient_error():
    return SettlementError("Provider unavailable", kind=ErrorKind.PROVIDER_TRANSIENT)


def business_error():
    return SettlementError("Rejected", kind=ErrorKind.PROVIDER_ERROR, provider_code="INVALID_DESTINATION")


class TestRetryPolicyBackoff:
    """Tests for delay and countdown calculation."""

    def test_default_delays_double_and_cap(self):
        policy = RetryPolicy()

        assert [policy.delay(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_countdown_rounds_up_to_whole_seconds(self):
        policy = RetryPolicy(base_delay=0.5, multiplier=3.0, max_delay=30.0)

        assert policy.countdown(1) == 1
        assert policy.countdown(2) == 2  # 1.5s
        assert policy.countdown(3) == 5  # 4.5s

    def test_countdown_is_at_least_one_second(self):
        policy = RetryPolicy(base_delay=0.0)

        assert policy.countdown(1) == 1

    def test_attempt_is_one_indexed(self):
        with pytest.raises(ValueError):
            RetryPolicy().delay(0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": -1.0},
            {"max_delay": -1.0},
            {"multiplier": 0.5},
        ],
    )
    def test_rejects_invalid_bounds(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_from_config(self):
        config = SettlementConfig(
            retry_max_attempts=5,
            retry_base_delay=2.0,
            retry_multiplier=3.0,
            retry_max_delay=60.0,
        )

        policy = RetryPolicy.from_config(config)

        assert policy == RetryPolicy(max_attempts=5, base_delay=2.0, multiplier=3.0, max_delay=60.0)


class TestShouldRetry:
    """Tests for the retry decision."""

    def test_retries_transient_error_within_budget(self):
        policy = RetryPolicy(max_attempts=3)

        assert policy.should_retry(transient_error(), 1) is True
        assert policy.should_retry(transient_error(), 2) is True
        assert policy.should_retry(transient_error(), 3) is False

    def test_never_retries_business_error(self):
        assert RetryPolicy().should_retry(business_error(), 1) is False

    def test_never_retries_plain_exception(self):
        assert RetryPolicy().should_retry(RuntimeError("boom"), 1) is False


class TestRun:
    """Tests for synchronous execution with retries."""

    def test_returns_first_success_without_sleeping(self, mocker):
        sleep = mocker.Mock()
        operation = mocker.Mock(return_value="ok")

        result = RetryPolicy().run(operation, sleep=sleep)

        assert result == "ok"
        operation.assert_called_once_with()
        sleep.assert_not_called()

    def test_retries_transient_failures_with_backoff(self, mocker):
        sleep = mocker.Mock()
        operation = mocker.Mock(side_effect=[transient_error(), transient_error(), "ok"])

        result = RetryPolicy().run(operation, operation_name="get_balance", sleep=sleep)

        assert result == "ok"
        assert operation.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self, mocker):
        sleep = mocker.Mock()
        operation = mocker.Mock(side_effect=transient_error())

        with pytest.raises(SettlementError) as exc_info:
            RetryPolicy(max_attempts=3).run(operation, sleep=sleep)

        assert exc_info.value.kind == ErrorKind.PROVIDER_TRANSIENT
        assert operation.call_count == 3
        assert sleep.call_count == 2

    def test_business_error_is_raised_immediately(self, mocker):
        sleep = mocker.Mock()
        operation = mocker.Mock(side_effect=business_error())

        with pytest.raises(SettlementError) as exc_info:
            RetryPolicy().run(operation, sleep=sleep)

        assert exc_info.value.provider_code == "INVALID_DESTINATION"
        operation.assert_called_once_with()
        sleep.assert_not_called()
