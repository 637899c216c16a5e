"""
podmortem/resilience - Fault tolerance for provider calls

- ResiliencePolicy: per-attempt timeout, retry, circuit breaking
- CircuitBreaker / CircuitBreakerRegistry: per-provider breaker state
- DispatchMetrics: dispatch outcome tracking
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from .metrics import DispatchMetrics, DispatchOutcome, DispatchRecord
from .policy import CallStats, ResiliencePolicy

__all__ = [
    "CallStats",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "DispatchMetrics",
    "DispatchOutcome",
    "DispatchRecord",
    "ResiliencePolicy",
]
