"""
podmortem/resilience/policy.py - Resilient provider invocation

Wraps a single provider call with three policies, outermost first:

    1. retry             up to retry_max_attempts attempts, fixed delay,
                         transient failures only
    2. circuit breaker   admission per attempt (CircuitOpenError, provider
                         not invoked); the attempt outcome is recorded
    3. timeout           asyncio.wait_for around the provider call; expiry
                         cancels the attempt

Fallback is not part of the policy; the dispatcher decides what to do with
the typed error that comes out of ``execute``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import ResilienceConfig
from ..exceptions import (
    CircuitOpenError,
    ProviderPermanentError,
    ProviderTimeoutError,
    ProviderTransientError,
)
from .circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger("podmortem.resilience.policy")

T = TypeVar("T")


@dataclass
class CallStats:
    """Filled in by ``ResiliencePolicy.execute`` for the caller's bookkeeping."""

    attempts: int = 0


class ResiliencePolicy:
    """
    Timeout + retry + circuit breaker around a provider call.

    Breaker state is shared through ``breakers`` and scoped per provider id.
    """

    def __init__(
        self,
        config: Optional[ResilienceConfig] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
    ):
        self.config = (config or ResilienceConfig()).validate()
        self.breakers = breakers or CircuitBreakerRegistry(self.config)

    async def execute(
        self,
        provider_id: str,
        call: Callable[[], Awaitable[T]],
        stats: Optional[CallStats] = None,
    ) -> T:
        """
        Run ``call`` under the resilience policies.

        Args:
            provider_id: Provider being invoked; selects the circuit breaker
            call: Zero-argument coroutine factory, invoked once per attempt
            stats: Optional attempt counter for the caller

        Returns:
            The value produced by the first successful attempt

        Raises:
            CircuitOpenError: The breaker rejected an attempt
            ProviderTransientError: Every attempt failed transiently
                (ProviderTimeoutError when the last one timed out)
            ProviderPermanentError: An attempt failed non-retryably
        """
        breaker = self.breakers.get(provider_id)
        timeout = self.config.timeout_seconds
        max_attempts = self.config.retry_max_attempts
        delay = self.config.retry_delay_ms / 1000
        last_error: Optional[ProviderTransientError] = None

        for attempt in range(1, max_attempts + 1):
            try:
                ticket = breaker.before_call()
            except CircuitOpenError as e:
                logger.warning(f"Provider {provider_id} rejected (attempt {attempt}): {e}")
                if last_error is not None:
                    raise e from last_error
                raise

            if stats is not None:
                stats.attempts = attempt

            try:
                result = await asyncio.wait_for(call(), timeout=timeout)

            except asyncio.TimeoutError:
                breaker.record_failure(ticket)
                last_error = ProviderTimeoutError(timeout, provider_id)
                logger.warning(
                    f"Provider {provider_id} timed out after {timeout}s "
                    f"(attempt {attempt}/{max_attempts})"
                )

            except ProviderTransientError as e:
                breaker.record_failure(ticket)
                if e.provider_id is None:
                    e.provider_id = provider_id
                last_error = e
                logger.warning(
                    f"Provider {provider_id} transient error "
                    f"(attempt {attempt}/{max_attempts}): {e}"
                )

            except ProviderPermanentError as e:
                breaker.record_failure(ticket)
                if e.provider_id is None:
                    e.provider_id = provider_id
                logger.error(f"Provider {provider_id} permanent error, not retrying: {e}")
                raise

            except asyncio.CancelledError:
                breaker.release(ticket)
                raise

            except Exception as e:
                breaker.record_failure(ticket)
                logger.error(
                    f"Provider {provider_id} raised {type(e).__name__}, not retrying: {e}"
                )
                raise ProviderPermanentError(
                    f"Provider {provider_id} failed: {type(e).__name__}: {e}",
                    provider_id=provider_id,
                    original_error=e,
                ) from e

            else:
                breaker.record_success(ticket)
                if attempt > 1:
                    logger.info(f"Provider {provider_id} succeeded on attempt {attempt}")
                return result

            if attempt < max_attempts:
                logger.info(f"Retrying provider {provider_id} in {delay:.3f}s")
                await asyncio.sleep(delay)

        logger.error(f"Provider {provider_id} failed after {max_attempts} attempts: {last_error}")
        raise last_error
