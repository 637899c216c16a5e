"""
podmortem/api.py - Caller-facing analysis operations

Transport-agnostic entry points. Requests arrive as plain mappings (decoded
JSON) or pydantic models; malformed input is the only error a best-effort
caller sees.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Union

from .exceptions import PodmortemError
from .models import AIResponse, ProviderConfig, ValidationResult, utc_now
from .schemas import (
    AnalysisRequestModel,
    ProviderConfigModel,
    parse_analysis_request,
    parse_provider_config,
)
from .service import AnalysisService

logger = logging.getLogger("podmortem.api")

RequestPayload = Union[AnalysisRequestModel, Mapping[str, Any]]
ConfigPayload = Union[ProviderConfig, ProviderConfigModel, Mapping[str, Any]]


class AnalysisFacade:
    """Entry points for callers of the analysis service."""

    def __init__(self, service: AnalysisService):
        self.service = service

    async def analyze(self, request: RequestPayload) -> AIResponse:
        """
        Best-effort explanation; falls back internally.

        Raises:
            InvalidRequestError: If the request is malformed
        """
        parsed = parse_analysis_request(request)
        logger.info(
            f"Received analysis request for provider: {parsed.provider_config.provider_id}"
        )
        return await self.service.protected_analyze_failure(
            parsed.analysis_result.to_domain(),
            parsed.provider_config.to_domain(),
        )

    async def analyze_strict(self, request: RequestPayload) -> AIResponse:
        """
        Explanation from the requested provider only.

        Raises:
            InvalidRequestError: If the request is malformed
            AnalysisError: If no provider explanation was possible
        """
        parsed = parse_analysis_request(request)
        logger.info(
            f"Received strict analysis request for provider: "
            f"{parsed.provider_config.provider_id}"
        )
        return await self.service.analyze_failure(
            parsed.analysis_result.to_domain(),
            parsed.provider_config.to_domain(),
        )

    async def validate_provider(self, config: ConfigPayload) -> ValidationResult:
        """
        Raises:
            InvalidRequestError: If the configuration payload is malformed
        """
        provider_config = parse_provider_config(config)
        logger.info(f"Validating provider configuration: {provider_config.provider_id}")
        return await self.service.validate_provider(provider_config)

    def list_providers(self) -> List[str]:
        return self.service.list_available_providers()


def error_response(exc: Exception) -> AIResponse:
    """Error-shaped response body for transports that report strict failures."""
    message = exc.message if isinstance(exc, PodmortemError) else str(exc)
    return AIResponse(
        explanation=f"Analysis failed: {message}",
        provider_id="error",
        generated_at=utc_now(),
        confidence=0.0,
        metadata={"errorType": type(exc).__name__},
    )
