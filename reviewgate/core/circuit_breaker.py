"""Circuit breaker guarding calls to the AI reviewer.

A count-based sliding window records the outcome of the last ``window_size``
calls. Once at least ``minimum_calls`` outcomes are known and the failure
rate reaches ``failure_rate_threshold`` percent, the breaker opens and every
call fails fast with ``CircuitOpenError``. After ``open_cooldown_seconds`` it
half-opens and admits up to ``half_open_max_calls`` concurrent trials: one
failed trial reopens it, ``half_open_max_calls`` successful trials close it.

Each admitted call is tagged with the state generation it was admitted in;
an outcome that arrives after the breaker has moved on is dropped, so a slow
call started while CLOSED never counts as a HALF_OPEN trial.

Only retryable failures are counted. A non-retryable error (bad request,
auth) is a property of the request, not of backend health, so it passes
through without touching the window.

Workers call the breaker from pool threads, so state is guarded by a
``threading.Lock`` and timing uses ``time.monotonic``.
"""

import enum
import threading
import time
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Deque, TypeVar

from reviewgate.config.settings import (
    BREAKER_FAILURE_RATE_THRESHOLD,
    BREAKER_HALF_OPEN_MAX_CALLS,
    BREAKER_MINIMUM_CALLS,
    BREAKER_OPEN_COOLDOWN_SECONDS,
    BREAKER_WINDOW_SIZE,
)
from reviewgate.core.exceptions import CircuitOpenError, ReviewGateError
from reviewgate.utils.logger import logger

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerConfig:
    window_size: int = 10
    minimum_calls: int = 5
    failure_rate_threshold: float = 50.0
    open_cooldown_seconds: float = 30.0
    half_open_max_calls: int = 3


@dataclass(frozen=True)
class BreakerHealth:
    state: CircuitState
    failure_rate: float


class CircuitBreaker:
    def __init__(self, name: str = "ai-reviewer", config: CircuitBreakerConfig = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._outcomes: Deque[bool] = deque(maxlen=self.config.window_size)
        self._opened_at = 0.0
        self._half_open_in_flight = 0
        self._half_open_successes = 0
        self._generation = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def failure_rate(self) -> float:
        """Failure percentage over the current window (0.0 when empty)."""
        with self._lock:
            return self._failure_rate()

    def health(self) -> BreakerHealth:
        with self._lock:
            self._maybe_half_open()
            return BreakerHealth(state=self._state, failure_rate=self._failure_rate())

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run ``fn`` if the breaker admits it, recording the outcome."""
        generation = self._acquire_permission()
        try:
            result = fn(*args, **kwargs)
        except ReviewGateError as e:
            if e.retryable:
                self._on_failure(generation)
            else:
                self._on_ignored(generation)
            raise
        except Exception:
            self._on_failure(generation)
            raise
        self._on_success(generation)
        return result

    def reset(self) -> None:
        with self._lock:
            self._transition(CircuitState.CLOSED)

    def _acquire_permission(self) -> int:
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.OPEN:
                raise CircuitOpenError(
                    f"Circuit '{self.name}' is OPEN; not calling the AI backend"
                )
            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.config.half_open_max_calls:
                    raise CircuitOpenError(
                        f"Circuit '{self.name}' is HALF_OPEN and its trial calls are taken"
                    )
                self._half_open_in_flight += 1
            return self._generation

    def _on_success(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
                self._half_open_successes += 1
                if self._half_open_successes >= self.config.half_open_max_calls:
                    self._transition(CircuitState.CLOSED)
                return
            self._outcomes.append(True)

    def _on_failure(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
                return
            self._outcomes.append(False)
            if (
                self._state == CircuitState.CLOSED
                and len(self._outcomes) >= self.config.minimum_calls
                and self._failure_rate() >= self.config.failure_rate_threshold
            ):
                self._transition(CircuitState.OPEN)

    def _on_ignored(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def _maybe_half_open(self) -> None:
        if self._state != CircuitState.OPEN:
            return
        if time.monotonic() - self._opened_at >= self.config.open_cooldown_seconds:
            self._transition(CircuitState.HALF_OPEN)

    def _failure_rate(self) -> float:
        if not self._outcomes:
            return 0.0
        failures = sum(1 for ok in self._outcomes if not ok)
        return failures * 100.0 / len(self._outcomes)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        logger.warning(
            f"Circuit '{self.name}' {self._state.value} -> {new_state.value} "
            f"(failure rate {self._failure_rate():.1f}%)"
        )
        self._state = new_state
        self._generation += 1
        self._half_open_in_flight = 0
        self._half_open_successes = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state == CircuitState.CLOSED:
            self._outcomes.clear()


@lru_cache(maxsize=None)
def get_circuit_breaker() -> CircuitBreaker:
    return CircuitBreaker(
        name="ai-reviewer",
        config=CircuitBreakerConfig(
            window_size=BREAKER_WINDOW_SIZE,
            minimum_calls=BREAKER_MINIMUM_CALLS,
            failure_rate_threshold=BREAKER_FAILURE_RATE_THRESHOLD,
            open_cooldown_seconds=BREAKER_OPEN_COOLDOWN_SECONDS,
            half_open_max_calls=BREAKER_HALF_OPEN_MAX_CALLS,
        ),
    )
