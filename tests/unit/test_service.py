"""
tests/unit/test_service.py - Tests for AnalysisService dispatch.
"""

import time
from unittest.mock import AsyncMock

import pytest

from podmortem.exceptions import (
    CircuitOpenError,
    ProviderPermanentError,
    ProviderTransientError,
    UnknownProviderError,
)
from podmortem.models import (
    AIResponse,
    AnalysisResult,
    Event,
    MatchedPattern,
    ProviderConfig,
    ValidationResult,
)
from podmortem.registry import ProviderRegistry
from podmortem.resilience import CircuitBreakerRegistry
from podmortem.service import AnalysisService


class _BareProvider:
    """Implements the provider protocol directly, returning a fixed result."""

    def __init__(self, provider_id, result):
        self.provider_id = provider_id
        self.result = result
        self.calls = 0

    def get_provider_id(self):
        return self.provider_id

    async def generate_explanation(self, analysis_result, config):
        self.calls += 1
        return self.result

    async def validate_configuration(self, config):
        return ValidationResult(valid=True, provider_id=self.provider_id, message="ok")


@pytest.fixture
def make_service(fast_config, fake_clock):
    def _make(*providers):
        registry = ProviderRegistry().register(providers)
        breakers = CircuitBreakerRegistry(fast_config, clock=fake_clock)
        return AnalysisService(registry, fast_config, breakers)
    return _make


class TestProtectedAnalyzeFailure:
    """Best-effort entry point."""

    @pytest.mark.asyncio
    async def test_success_is_enriched(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", metadata={"tokens": 512})
        service = make_service(provider)

        response = await service.protected_analyze_failure(oom_analysis, provider_config)

        assert response.provider_id == "scripted"
        assert response.model_id == "test-model"
        assert response.explanation == "Container ran out of memory."
        assert response.generated_at is not None
        assert response.metadata == {"tokens": 512, "analysisId": "abc-123", "eventCount": 2}

    @pytest.mark.asyncio
    async def test_unknown_provider_falls_back(self, make_service, make_provider, empty_analysis):
        service = make_service(make_provider("scripted"))

        response = await service.protected_analyze_failure(
            empty_analysis, ProviderConfig(provider_id="x")
        )

        assert response.provider_id == "fallback"
        assert response.confidence == 0.6
        assert "No specific failure patterns" in response.explanation
        assert response.metadata["fallbackReason"] == "UnknownProviderError"

    @pytest.mark.asyncio
    async def test_crashloop_example(self, make_service, make_provider):
        """analysisId abc-123, one CrashLoop/high event, unregistered provider x."""
        service = make_service(make_provider("scripted"))
        analysis = AnalysisResult(
            analysis_id="abc-123",
            events=(Event(0.8, 12, MatchedPattern("CrashLoop", "high")),),
        )

        response = await service.protected_analyze_failure(analysis, ProviderConfig("x"))

        assert response.provider_id == "fallback"
        assert response.model_id == "pattern-based"
        assert response.confidence == 0.6
        assert "CrashLoop" in response.explanation
        assert "high" in response.explanation

    @pytest.mark.asyncio
    async def test_unknown_provider_creates_no_breaker(self, make_service, make_provider, empty_analysis):
        service = make_service(make_provider("scripted"))
        await service.protected_analyze_failure(empty_analysis, ProviderConfig("x"))
        assert service.breakers.get_stats() == {}

    @pytest.mark.asyncio
    async def test_always_timing_out_falls_back(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=["hang"])
        service = make_service(provider)

        start = time.monotonic()
        response = await service.protected_analyze_failure(oom_analysis, provider_config)

        assert provider.calls == 3
        assert response.provider_id == "fallback"
        assert response.metadata["fallbackReason"] == "ProviderTimeoutError"
        assert time.monotonic() - start < 2.0

    @pytest.mark.asyncio
    async def test_transient_then_success(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=[ProviderTransientError("429"), None])
        service = make_service(provider)

        response = await service.protected_analyze_failure(oom_analysis, provider_config)

        assert provider.calls == 2
        assert response.provider_id == "scripted"

    @pytest.mark.asyncio
    async def test_permanent_error_falls_back_without_retry(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=[ProviderPermanentError("bad key")])
        service = make_service(provider)

        response = await service.protected_analyze_failure(oom_analysis, provider_config)

        assert provider.calls == 1
        assert response.is_fallback
        assert "OOMKilled" in response.explanation
        assert "critical" in response.explanation

    @pytest.mark.asyncio
    async def test_open_circuit_falls_back_without_invocation(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=[ProviderPermanentError("down")])
        service = make_service(provider)

        for _ in range(10):
            await service.protected_analyze_failure(oom_analysis, provider_config)
        assert provider.calls == 10

        response = await service.protected_analyze_failure(oom_analysis, provider_config)
        assert provider.calls == 10
        assert response.metadata["fallbackReason"] == "CircuitOpenError"

    @pytest.mark.asyncio
    async def test_fallback_confidence_from_config(self, fast_config, make_provider, empty_analysis):
        fast_config.fallback_confidence = 0.4
        service = AnalysisService(ProviderRegistry().register([]), fast_config)
        response = await service.protected_analyze_failure(empty_analysis, ProviderConfig("x"))
        assert response.confidence == 0.4

    @pytest.mark.asyncio
    async def test_non_response_result_falls_back(self, make_service, oom_analysis):
        """A provider returning something other than an AIResponse counts as failed."""
        provider = _BareProvider("bare", result=None)
        service = make_service(provider)

        response = await service.protected_analyze_failure(oom_analysis, ProviderConfig("bare"))

        assert provider.calls == 1
        assert response.is_fallback
        assert response.metadata["fallbackReason"] == "ProviderPermanentError"
        assert service.breakers.get("bare").get_stats()["total_failures"] == 1

    @pytest.mark.asyncio
    async def test_non_response_result_raises_in_strict_mode(self, make_service, oom_analysis):
        service = make_service(_BareProvider("bare", result={"explanation": "dict"}))

        with pytest.raises(ProviderPermanentError) as exc_info:
            await service.analyze_failure(oom_analysis, ProviderConfig("bare"))

        assert "dict" in str(exc_info.value)
        assert exc_info.value.provider_id == "bare"

    @pytest.mark.asyncio
    async def test_unregistered_ids_share_one_metrics_bucket(self, make_service, make_provider, empty_analysis):
        service = make_service(make_provider("scripted"))

        for i in range(50):
            await service.protected_analyze_failure(empty_analysis, ProviderConfig(f"junk-{i}"))

        by_provider = service.get_stats()["dispatch"]["by_provider"]
        assert list(by_provider) == ["<unknown>"]
        assert by_provider["<unknown>"]["fallback"] == 50
        recent = service.metrics.get_recent(2)
        assert [r["provider_id"] for r in recent] == ["<unknown>", "<unknown>"]
        assert all(r["outcome"] == "fallback" for r in recent)


class TestAnalyzeFailure:
    """Strict entry point surfaces typed errors."""

    @pytest.mark.asyncio
    async def test_unknown_provider_raises(self, make_service, make_provider, oom_analysis):
        service = make_service(make_provider("scripted"))
        with pytest.raises(UnknownProviderError) as exc_info:
            await service.analyze_failure(oom_analysis, ProviderConfig("x"))
        assert exc_info.value.available_ids == ["scripted"]

    @pytest.mark.asyncio
    async def test_always_timing_out_raises_transient(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=["hang"])
        service = make_service(provider)

        with pytest.raises(ProviderTransientError):
            await service.analyze_failure(oom_analysis, provider_config)
        assert provider.calls == 3

    @pytest.mark.asyncio
    async def test_open_circuit_raises(self, make_service, make_provider, oom_analysis, provider_config):
        provider = make_provider("scripted", script=[ProviderPermanentError("down")])
        service = make_service(provider)
        for _ in range(10):
            with pytest.raises(ProviderPermanentError):
                await service.analyze_failure(oom_analysis, provider_config)

        with pytest.raises(CircuitOpenError):
            await service.analyze_failure(oom_analysis, provider_config)

    @pytest.mark.asyncio
    async def test_success(self, make_service, make_provider, oom_analysis, provider_config):
        service = make_service(make_provider("scripted"))
        response = await service.analyze_failure(oom_analysis, provider_config)
        assert response.metadata["analysisId"] == "abc-123"

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, make_service, make_provider, oom_analysis, provider_config):
        service = make_service(make_provider("scripted"))
        await service.analyze_failure(oom_analysis, provider_config)
        with pytest.raises(UnknownProviderError):
            await service.analyze_failure(oom_analysis, ProviderConfig("x"))
        await service.protected_analyze_failure(oom_analysis, ProviderConfig("x"))

        stats = service.get_stats()["dispatch"]
        assert stats["successes"] == 1
        assert stats["errors"] == 1
        assert stats["fallbacks"] == 1
        assert stats["by_provider"]["<unknown>"] == {"success": 0, "fallback": 1, "error": 1}
        assert stats["by_provider"]["scripted"]["success"] == 1


class TestEnrichResponse:
    """Correlation metadata."""

    def test_inserts_keys(self, oom_analysis):
        response = AIResponse(explanation="e", provider_id="p", confidence=0.5)
        AnalysisService.enrich_response(response, oom_analysis)
        assert response.metadata == {"analysisId": "abc-123", "eventCount": 2}
        assert response.generated_at is not None

    def test_none_metadata(self, empty_analysis):
        response = AIResponse(explanation="e", provider_id="p")
        response.metadata = None
        AnalysisService.enrich_response(response, empty_analysis)
        assert response.metadata == {"analysisId": "empty-1", "eventCount": 0}

    def test_overwrites_only_correlation_keys(self, oom_analysis):
        response = AIResponse(
            explanation="e",
            provider_id="p",
            metadata={"analysisId": "stale", "eventCount": 99, "tokens": 10},
        )
        AnalysisService.enrich_response(response, oom_analysis)
        assert response.metadata == {"analysisId": "abc-123", "eventCount": 2, "tokens": 10}

    def test_idempotent(self, oom_analysis):
        response = AIResponse(explanation="e", provider_id="p", metadata={"tokens": 10})
        AnalysisService.enrich_response(response, oom_analysis)
        first = dict(response.metadata)
        AnalysisService.enrich_response(response, oom_analysis)
        assert response.metadata == first


class TestProviderQueries:
    """list_available_providers / validate_provider."""

    def test_list_available_providers(self, make_service, make_provider):
        service = make_service(make_provider("a"), make_provider("b"), make_provider("a"))
        assert sorted(service.list_available_providers()) == ["a", "b"]

    def test_list_before_initialization(self, fast_config):
        service = AnalysisService(ProviderRegistry(), fast_config)
        assert service.list_available_providers() == []

    @pytest.mark.asyncio
    async def test_validate_unknown_provider(self, make_service, make_provider):
        service = make_service(make_provider("scripted"))
        result = await service.validate_provider(ProviderConfig("x"))
        assert result.valid is False
        assert result.provider_id == "x"
        assert result.message.startswith("Provider not found:")

    @pytest.mark.asyncio
    async def test_validate_forwards_to_provider(self, make_service, make_provider):
        service = make_service(make_provider("scripted"))

        ok = await service.validate_provider(ProviderConfig("scripted", {"api_key": "k"}))
        bad = await service.validate_provider(ProviderConfig("scripted", {"api_key": ""}))

        assert ok.valid is True
        assert bad.valid is False
        assert bad.message == "api_key must not be empty"

    @pytest.mark.asyncio
    async def test_validate_provider_raising(self, make_service, make_provider):
        provider = make_provider("scripted")
        provider.validate_configuration = AsyncMock(side_effect=RuntimeError("unreachable"))
        service = make_service(provider)

        result = await service.validate_provider(ProviderConfig("scripted"))

        assert result.valid is False
        assert "unreachable" in result.message
