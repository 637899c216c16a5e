"""
podmortem/service.py - Analysis dispatch service

Resolves the requested provider, invokes it under the resilience policy,
and enriches successful responses. ``protected_analyze_failure`` is the
best-effort entry point and substitutes a pattern-based explanation
whenever the provider path fails; ``analyze_failure`` surfaces the typed
error instead.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from .config import ResilienceConfig
from .exceptions import AnalysisError, ProviderPermanentError, UnknownProviderError
from .fallback import build_fallback_response
from .models import AIResponse, AnalysisResult, ProviderConfig, ValidationResult, utc_now
from .registry import ProviderRegistry
from .resilience import (
    CallStats,
    CircuitBreakerRegistry,
    DispatchMetrics,
    DispatchOutcome,
    ResiliencePolicy,
)

logger = logging.getLogger("podmortem.service")

# Metrics key for every provider id the registry does not know
UNKNOWN_PROVIDER_KEY = "<unknown>"


class AnalysisService:
    """
    Dispatches analysis results to explanation providers.

    Holds no per-request state. The only shared mutable state is the
    circuit breaker registry (per provider id) and the metrics collector.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config: Optional[ResilienceConfig] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        metrics: Optional[DispatchMetrics] = None,
    ):
        self.registry = registry
        self.config = config or ResilienceConfig()
        self.policy = ResiliencePolicy(self.config, breakers)
        self.metrics = metrics or DispatchMetrics()

    @property
    def breakers(self) -> CircuitBreakerRegistry:
        return self.policy.breakers

    async def _dispatch(
        self,
        analysis_result: AnalysisResult,
        provider_config: ProviderConfig,
        stats: CallStats,
    ) -> AIResponse:
        provider_id = provider_config.provider_id
        logger.info(
            f"Starting AI analysis for analysis ID: {analysis_result.analysis_id} "
            f"using provider: {provider_id}",
            extra={"analysis_id": analysis_result.analysis_id, "provider_id": provider_id},
        )

        # Unknown ids fail fast: no retry, no breaker accounting
        try:
            provider = self.registry.resolve(provider_id)
        except UnknownProviderError as e:
            logger.error(f"Failed to get AI provider: {e}", extra={"provider_id": provider_id})
            raise

        async def attempt() -> AIResponse:
            result = await provider.generate_explanation(analysis_result, provider_config)
            if not isinstance(result, AIResponse):
                raise ProviderPermanentError(
                    f"Provider {provider_id} returned {type(result).__name__}, "
                    f"expected AIResponse",
                    provider_id=provider_id,
                )
            return result

        response = await self.policy.execute(provider_id, attempt, stats)
        return self.enrich_response(response, analysis_result)

    async def analyze_failure(
        self,
        analysis_result: AnalysisResult,
        provider_config: ProviderConfig,
    ) -> AIResponse:
        """
        Explain a failure via the configured provider, without fallback.

        Raises:
            UnknownProviderError: Provider id not registered
            CircuitOpenError: Breaker for the provider is open
            ProviderTransientError: Retry budget exhausted
            ProviderPermanentError: Non-retryable provider failure
        """
        stats = CallStats()
        start_time = time.monotonic()
        try:
            response = await self._dispatch(analysis_result, provider_config, stats)
        except AnalysisError as e:
            self.metrics.record(
                analysis_id=analysis_result.analysis_id,
                provider_id=self._metrics_key(provider_config.provider_id),
                outcome=DispatchOutcome.ERROR,
                attempts=stats.attempts,
                latency_ms=int((time.monotonic() - start_time) * 1000),
                error=str(e),
            )
            raise

        self._record_success(analysis_result, provider_config, stats, start_time)
        return response

    async def protected_analyze_failure(
        self,
        analysis_result: AnalysisResult,
        provider_config: ProviderConfig,
    ) -> AIResponse:
        """
        Explain a failure, falling back to a pattern-based explanation.

        Never raises for provider-side failures.
        """
        stats = CallStats()
        start_time = time.monotonic()
        try:
            response = await self._dispatch(analysis_result, provider_config, stats)
        except AnalysisError as e:
            self.metrics.record(
                analysis_id=analysis_result.analysis_id,
                provider_id=self._metrics_key(provider_config.provider_id),
                outcome=DispatchOutcome.FALLBACK,
                attempts=stats.attempts,
                latency_ms=int((time.monotonic() - start_time) * 1000),
                error=str(e),
            )
            return self.generate_fallback_explanation(analysis_result, reason=type(e).__name__)

        self._record_success(analysis_result, provider_config, stats, start_time)
        return response

    def _metrics_key(self, provider_id: str) -> str:
        if self.registry.is_available(provider_id):
            return provider_id
        return UNKNOWN_PROVIDER_KEY

    def _record_success(
        self,
        analysis_result: AnalysisResult,
        provider_config: ProviderConfig,
        stats: CallStats,
        start_time: float,
    ) -> None:
        self.metrics.record(
            analysis_id=analysis_result.analysis_id,
            provider_id=self._metrics_key(provider_config.provider_id),
            outcome=DispatchOutcome.SUCCESS,
            attempts=stats.attempts,
            latency_ms=int((time.monotonic() - start_time) * 1000),
        )
        logger.info(
            f"AI analysis completed for analysis ID: {analysis_result.analysis_id} "
            f"using provider: {provider_config.provider_id}",
            extra={
                "analysis_id": analysis_result.analysis_id,
                "provider_id": provider_config.provider_id,
            },
        )

    def generate_fallback_explanation(
        self,
        analysis_result: AnalysisResult,
        reason: Optional[str] = None,
    ) -> AIResponse:
        logger.warning(
            f"Using fallback explanation for analysis ID: {analysis_result.analysis_id}"
            + (f" ({reason})" if reason else ""),
            extra={"analysis_id": analysis_result.analysis_id},
        )
        return build_fallback_response(
            analysis_result,
            confidence=self.config.fallback_confidence,
            reason=reason,
        )

    @staticmethod
    def enrich_response(response: AIResponse, analysis_result: AnalysisResult) -> AIResponse:
        """
        Stamp generation time and correlate the response with its analysis.

        ``analysisId`` and ``eventCount`` are inserted or overwritten; any
        other metadata the provider set is left as is.
        """
        response.generated_at = utc_now()
        if response.metadata is None:
            response.metadata = {}
        response.metadata["analysisId"] = analysis_result.analysis_id
        response.metadata["eventCount"] = analysis_result.event_count
        return response

    def list_available_providers(self) -> List[str]:
        """Registered provider ids. Empty if the registry is not initialized."""
        if not self.registry.is_initialized:
            return []
        return [p.get_provider_id() for p in self.registry.list()]

    async def validate_provider(self, config: ProviderConfig) -> ValidationResult:
        """
        Validate a provider configuration.

        An unknown provider id yields ``valid=False`` rather than an error.
        """
        try:
            provider = self.registry.resolve(config.provider_id)
        except UnknownProviderError as e:
            return ValidationResult(
                valid=False,
                provider_id=config.provider_id,
                message=f"Provider not found: {e}",
            )

        try:
            return await provider.validate_configuration(config)
        except Exception as e:
            logger.error(f"Validation failed for provider {config.provider_id}: {e}")
            return ValidationResult(
                valid=False,
                provider_id=config.provider_id,
                message=f"Validation failed: {e}",
            )

    def get_stats(self) -> Dict[str, Any]:
        """Combined circuit breaker and dispatch statistics."""
        return {
            "providers": self.list_available_providers(),
            "circuit_breakers": self.breakers.get_stats(),
            "dispatch": self.metrics.get_stats(),
        }
