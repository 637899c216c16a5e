"""
podmortem/protocol.py - AI Provider Protocol Definition

Defines the contract every explanation provider satisfies so providers
backed by different reasoning services are interchangeable.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import AIResponse, AnalysisResult, ProviderConfig, ValidationResult


@runtime_checkable
class AIProviderProtocol(Protocol):
    """
    Protocol for explanation providers.

    Implementations live in the embedding application. The dispatcher only
    relies on these three methods.
    """

    def get_provider_id(self) -> str:
        """
        Stable, non-empty identifier used for registry lookup.
        """
        ...

    async def generate_explanation(
        self,
        analysis_result: AnalysisResult,
        config: ProviderConfig,
    ) -> AIResponse:
        """
        Produce an explanation for an analysis result.

        Args:
            analysis_result: Events from the log analysis phase
            config: Provider configuration for this call

        Returns:
            AIResponse with the explanation and provider metadata

        Raises:
            ProviderTransientError: Retryable failure (rate limit, 5xx, ...)
            ProviderPermanentError: Non-retryable failure (bad config, ...)
        """
        ...

    async def validate_configuration(self, config: ProviderConfig) -> ValidationResult:
        """
        Check whether a configuration is usable with this provider.

        Returns:
            ValidationResult; never raises for an invalid configuration
        """
        ...
