"""
podmortem/factory.py - Service factory

Builds the registry, resilience policy, and facade from the providers the
embedding application supplies.

Usage:
    from podmortem import create_analysis_facade

    facade = create_analysis_facade([OpenAIProvider(), OllamaProvider()])
    response = await facade.analyze(request_json)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .api import AnalysisFacade
from .config import PodmortemConfig, get_config
from .protocol import AIProviderProtocol
from .registry import ProviderRegistry
from .service import AnalysisService

logger = logging.getLogger("podmortem.factory")


def create_analysis_service(
    providers: Iterable[AIProviderProtocol],
    config: Optional[PodmortemConfig] = None,
) -> AnalysisService:
    """
    Create an AnalysisService over a freshly initialized registry.

    Args:
        providers: Every provider available to this process
        config: Configuration (defaults to ``get_config()``)
    """
    resolved = config or get_config()
    resilience = resolved.resilience.validate()

    registry = ProviderRegistry()
    registry.register(providers)

    logger.info(
        f"Creating analysis service: timeout={resilience.timeout_seconds}s, "
        f"attempts={resilience.retry_max_attempts}, "
        f"circuit_window={resilience.circuit_request_volume_threshold}"
    )
    return AnalysisService(registry, resilience)


def create_analysis_facade(
    providers: Iterable[AIProviderProtocol],
    config: Optional[PodmortemConfig] = None,
) -> AnalysisFacade:
    return AnalysisFacade(create_analysis_service(providers, config))
