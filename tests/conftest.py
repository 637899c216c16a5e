"""
podmortem test configuration and fixtures.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from podmortem.config import ResilienceConfig
from podmortem.models import (
    AIResponse,
    AnalysisResult,
    Event,
    MatchedPattern,
    ProviderConfig,
)
from podmortem.providers import BaseProvider


class FakeClock:
    """Manually advanced monotonic clock for circuit breaker timing."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider(BaseProvider):
    """
    Provider that plays back a script of outcomes, one per call.

    Each entry is an exception instance (raised), the string "hang"
    (sleeps past any test timeout), or None (success). Once the script is
    exhausted the last entry repeats.
    """

    def __init__(
        self,
        provider_id: str = "scripted",
        script: Optional[List[Any]] = None,
        explanation: str = "Container ran out of memory.",
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(provider_id, model_id="test-model")
        self.script = list(script or [None])
        self.explanation = explanation
        self.metadata = metadata
        self.calls = 0

    async def _raw_generate(self, analysis_result, config) -> AIResponse:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(step, BaseException):
            raise step
        if step == "hang":
            await asyncio.sleep(10)
        return AIResponse(
            explanation=self.explanation,
            provider_id=self.provider_id,
            confidence=0.9,
            metadata=dict(self.metadata) if self.metadata is not None else {},
        )

    def _validate_options(self, options):
        if "api_key" in options and not options["api_key"]:
            return "api_key must not be empty"
        return None


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fast_config():
    """Resilience config with short timeouts and no retry delay."""
    return ResilienceConfig(
        timeout_seconds=0.05,
        retry_max_attempts=3,
        retry_delay_ms=0,
        circuit_request_volume_threshold=10,
        circuit_failure_ratio=0.5,
        circuit_success_threshold=3,
        circuit_delay_ms=5000,
    )


@pytest.fixture
def oom_analysis():
    return AnalysisResult(
        analysis_id="abc-123",
        events=(
            Event(score=0.95, line_number=42, matched_pattern=MatchedPattern("OOMKilled", "critical")),
            Event(score=0.40, line_number=57),
        ),
    )


@pytest.fixture
def empty_analysis():
    return AnalysisResult(analysis_id="empty-1", events=())


@pytest.fixture
def provider_config():
    return ProviderConfig(provider_id="scripted", options={"api_key": "secret"})


@pytest.fixture
def make_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider
