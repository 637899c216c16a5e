"""
podmortem/resilience/circuit_breaker.py - Per-provider circuit breaking

Stops invoking a failing provider for a cooldown period once its failure
ratio over a rolling window of recent calls crosses a threshold.

State machine:
    CLOSED     calls pass; outcomes fill a rolling window of
               ``request_volume_threshold`` entries. A full window whose
               failure ratio reaches ``failure_ratio`` opens the circuit.
    OPEN       calls fail immediately with CircuitOpenError until
               ``delay_ms`` has elapsed, then the circuit goes HALF_OPEN.
    HALF_OPEN  one trial call at a time. A failure reopens the circuit;
               ``success_threshold`` consecutive successes close it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional

from ..config import ResilienceConfig
from ..exceptions import CircuitOpenError

logger = logging.getLogger("podmortem.resilience.circuit_breaker")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Thread-safe circuit breaker for a single provider id.

    Usage:
        ticket = breaker.before_call()     # may raise CircuitOpenError
        try:
            result = await call()
        except SomeError:
            breaker.record_failure(ticket)
            raise
        breaker.record_success(ticket)

    The ticket is the breaker epoch the call was admitted in. Every state
    transition starts a new epoch, and outcomes carrying an older epoch are
    left out of the state machine.
    """

    def __init__(
        self,
        name: str,
        request_volume_threshold: int = 10,
        failure_ratio: float = 0.5,
        success_threshold: int = 3,
        delay_ms: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.request_volume_threshold = request_volume_threshold
        self.failure_ratio = failure_ratio
        self.success_threshold = success_threshold
        self.delay_ms = delay_ms
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._window: Deque[bool] = deque(maxlen=request_volume_threshold)
        self._opened_at = 0.0
        self._half_open_successes = 0
        self._trial_in_flight = False
        self._epoch = 0

        self._total_calls = 0
        self._total_failures = 0
        self._rejected_calls = 0
        self._times_opened = 0

    @classmethod
    def from_config(
        cls,
        name: str,
        config: ResilienceConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CircuitBreaker":
        return cls(
            name=name,
            request_volume_threshold=config.circuit_request_volume_threshold,
            failure_ratio=config.circuit_failure_ratio,
            success_threshold=config.circuit_success_threshold,
            delay_ms=config.circuit_delay_ms,
            clock=clock,
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def _transition(self, new_state: CircuitState) -> None:
        """Switch state. Caller holds the lock."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self._epoch += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            self._times_opened += 1
            self._trial_in_flight = False
            logger.warning(
                f"Circuit for provider '{self.name}' {old_state.value} -> open "
                f"for {self.delay_ms}ms"
            )
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_successes = 0
            self._trial_in_flight = False
            logger.info(f"Circuit for provider '{self.name}' open -> half_open")
        else:
            self._window.clear()
            self._half_open_successes = 0
            self._trial_in_flight = False
            logger.info(f"Circuit for provider '{self.name}' {old_state.value} -> closed")

    def _remaining_delay(self) -> float:
        elapsed = self._clock() - self._opened_at
        return max(0.0, self.delay_ms / 1000.0 - elapsed)

    def _maybe_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._remaining_delay() <= 0:
            self._transition(CircuitState.HALF_OPEN)

    def before_call(self) -> int:
        """
        Admit or reject a call.

        Returns:
            Admission ticket to pass back with the call's outcome

        Raises:
            CircuitOpenError: If the circuit is open, or a half-open trial is
                already running
        """
        with self._lock:
            self._maybe_half_open()

            if self._state == CircuitState.OPEN:
                self._rejected_calls += 1
                raise CircuitOpenError(self.name, retry_after_seconds=self._remaining_delay())

            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    self._rejected_calls += 1
                    raise CircuitOpenError(self.name, retry_after_seconds=0.0)
                self._trial_in_flight = True

            self._total_calls += 1
            return self._epoch

    def _is_stale(self, ticket: int, outcome: str) -> bool:
        if ticket == self._epoch:
            return False
        logger.debug(
            f"Circuit for provider '{self.name}' ignoring {outcome} from an "
            f"earlier {self._state.value} epoch"
        )
        return True

    def record_success(self, ticket: int) -> None:
        with self._lock:
            if self._is_stale(ticket, "success"):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                self._half_open_successes += 1
                if self._half_open_successes >= self.success_threshold:
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._window.append(True)

    def record_failure(self, ticket: int) -> None:
        with self._lock:
            self._total_failures += 1
            if self._is_stale(ticket, "failure"):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._window.append(False)
                if len(self._window) >= self.request_volume_threshold:
                    failures = self._window.count(False)
                    if failures / len(self._window) >= self.failure_ratio:
                        self._transition(CircuitState.OPEN)

    def release(self, ticket: int) -> None:
        """Give back an admitted call that ended with no outcome (cancelled)."""
        with self._lock:
            if ticket == self._epoch and self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False

    def get_stats(self) -> Dict[str, Any]:
        """
        Get circuit breaker statistics.

        Returns:
            Dict with state, window counts, and lifetime totals
        """
        with self._lock:
            self._maybe_half_open()
            failures = self._window.count(False)
            window_size = len(self._window)
            return {
                "state": self._state.value,
                "window_size": window_size,
                "window_failures": failures,
                "window_failure_ratio": round(failures / window_size, 3) if window_size else 0.0,
                "total_calls": self._total_calls,
                "total_failures": self._total_failures,
                "rejected_calls": self._rejected_calls,
                "times_opened": self._times_opened,
                "retry_after_seconds": (
                    round(self._remaining_delay(), 3)
                    if self._state == CircuitState.OPEN
                    else 0.0
                ),
            }

    def reset(self) -> None:
        """Reset the breaker to a closed, empty state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._window.clear()
            self._opened_at = 0.0
            self._half_open_successes = 0
            self._trial_in_flight = False
            self._epoch += 1
            self._total_calls = 0
            self._total_failures = 0
            self._rejected_calls = 0
            self._times_opened = 0
        logger.info(f"Circuit for provider '{self.name}' reset")


class CircuitBreakerRegistry:
    """One circuit breaker per provider id, created on first use."""

    def __init__(
        self,
        config: Optional[ResilienceConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ResilienceConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, provider_id: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(provider_id)
            if breaker is None:
                breaker = CircuitBreaker.from_config(provider_id, self.config, self._clock)
                self._breakers[provider_id] = breaker
            return breaker

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.items())
        return {provider_id: breaker.get_stats() for provider_id, breaker in breakers}

    def reset(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
