from unittest.mock import MagicMock, patch

import pytest

from reviewgate.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from reviewgate.core.exceptions import (
    AiNonRetryableError,
    AiRetryableError,
    CircuitOpenError,
)


def _failing():
    raise AiRetryableError("timeout")


def _breaker(**overrides):
    config = dict(
        window_size=4,
        minimum_calls=4,
        failure_rate_threshold=50,
        open_cooldown_seconds=30,
        half_open_max_calls=2,
    )
    config.update(overrides)
    return CircuitBreaker(name="test", config=CircuitBreakerConfig(**config))


def _fail(breaker, times):
    for _ in range(times):
        with pytest.raises(AiRetryableError):
            breaker.call(_failing)


def test_stays_closed_below_minimum_calls():
    breaker = _breaker()
    _fail(breaker, 3)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_rate() == 100.0


def test_opens_when_failure_rate_reaches_threshold():
    breaker = _breaker()
    breaker.call(lambda: "ok")
    breaker.call(lambda: "ok")
    _fail(breaker, 2)

    assert breaker.state == CircuitState.OPEN
    assert breaker.health().failure_rate == 50.0


def test_open_breaker_fails_fast_without_calling():
    breaker = _breaker()
    _fail(breaker, 4)
    backend = MagicMock()

    with pytest.raises(CircuitOpenError) as excinfo:
        breaker.call(backend)

    backend.assert_not_called()
    assert excinfo.value.retryable is True


def test_window_slides_over_old_outcomes():
    breaker = _breaker(window_size=4, minimum_calls=4, failure_rate_threshold=75)
    _fail(breaker, 2)
    for _ in range(4):
        breaker.call(lambda: "ok")
    _fail(breaker, 2)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_rate() == 50.0


def test_non_retryable_errors_do_not_count():
    breaker = _breaker()

    def bad_request():
        raise AiNonRetryableError("400 bad request")

    for _ in range(10):
        with pytest.raises(AiNonRetryableError):
            breaker.call(bad_request)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_rate() == 0.0


def test_unexpected_exceptions_count_as_failures():
    breaker = _breaker(minimum_calls=1)

    def broken():
        raise ConnectionError("reset by peer")

    with pytest.raises(ConnectionError):
        breaker.call(broken)

    assert breaker.state == CircuitState.OPEN


@patch("reviewgate.core.circuit_breaker.time.monotonic")
def test_half_opens_after_cooldown_and_closes_on_success(mock_monotonic):
    mock_monotonic.return_value = 1000.0
    breaker = _breaker()
    _fail(breaker, 4)
    assert breaker.state == CircuitState.OPEN

    mock_monotonic.return_value = 1031.0
    assert breaker.state == CircuitState.HALF_OPEN

    breaker.call(lambda: "ok")
    assert breaker.state == CircuitState.HALF_OPEN
    breaker.call(lambda: "ok")
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_rate() == 0.0


@patch("reviewgate.core.circuit_breaker.time.monotonic")
def test_trial_failure_reopens(mock_monotonic):
    mock_monotonic.return_value = 1000.0
    breaker = _breaker()
    _fail(breaker, 4)

    mock_monotonic.return_value = 1031.0
    _fail(breaker, 1)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        breaker.call(lambda: "ok")


@patch("reviewgate.core.circuit_breaker.time.monotonic")
def test_half_open_limits_concurrent_trials(mock_monotonic):
    mock_monotonic.return_value = 1000.0
    breaker = _breaker(half_open_max_calls=1)
    _fail(breaker, 4)
    mock_monotonic.return_value = 1031.0

    def nested_call():
        # A second caller arrives while the only trial slot is taken.
        with pytest.raises(CircuitOpenError):
            breaker.call(lambda: "second")
        return "first"

    assert breaker.call(nested_call) == "first"
    assert breaker.state == CircuitState.CLOSED


def test_reset_closes_breaker():
    breaker = _breaker()
    _fail(breaker, 4)

    breaker.reset()

    assert breaker.state == CircuitState.CLOSED
    assert breaker.call(lambda: 42) == 42


def _open_then_half_open(breaker, mock_monotonic):
    _fail(breaker, 4)
    assert breaker.state == CircuitState.OPEN
    mock_monotonic.return_value = 1031.0
    assert breaker.state == CircuitState.HALF_OPEN


@patch("reviewgate.core.circuit_breaker.time.monotonic")
def test_late_success_from_closed_is_not_a_trial(mock_monotonic):
    mock_monotonic.return_value = 1000.0
    breaker = _breaker(half_open_max_calls=1)

    def slow_call():
        # Other workers trip the breaker while this call is still running.
        _open_then_half_open(breaker, mock_monotonic)
        return "late"

    assert breaker.call(slow_call) == "late"
    assert breaker.state == CircuitState.HALF_OPEN

    breaker.call(lambda: "trial")
    assert breaker.state == CircuitState.CLOSED


@patch("reviewgate.core.circuit_breaker.time.monotonic")
def test_late_failure_from_closed_does_not_reopen(mock_monotonic):
    mock_monotonic.return_value = 1000.0
    breaker = _breaker(half_open_max_calls=1)

    def slow_call():
        _open_then_half_open(breaker, mock_monotonic)
        raise AiRetryableError("timeout")

    with pytest.raises(AiRetryableError):
        breaker.call(slow_call)

    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.call(lambda: "trial") == "trial"
    assert breaker.state == CircuitState.CLOSED
