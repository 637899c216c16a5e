"""
podmortem - Resilient AI explanation dispatch for pod failure analyses

Dispatches log analysis results to pluggable explanation providers with
per-attempt timeouts, retries, per-provider circuit breaking, and a
pattern-based fallback explanation.

Usage:
    from podmortem import create_analysis_facade, get_config, setup_logging_from_config

    setup_logging_from_config(get_config().logging)

    facade = create_analysis_facade(providers)

    # Best effort: always returns an explanation
    response = await facade.analyze({
        "analysisResult": {"analysisId": "abc-123", "events": [...]},
        "providerConfig": {"providerId": "openai", "modelId": "gpt-4o"},
    })

    # Strict: raises AnalysisError when no provider explanation is possible
    response = await facade.analyze_strict(request)
"""

from .api import AnalysisFacade, error_response
from .config import (
    LoggingConfig,
    PodmortemConfig,
    ResilienceConfig,
    get_config,
    load_config,
)
from .exceptions import (
    AnalysisError,
    CircuitOpenError,
    InvalidRequestError,
    PodmortemError,
    ProviderPermanentError,
    ProviderTimeoutError,
    ProviderTransientError,
    RegistryError,
    UnknownProviderError,
)
from .factory import create_analysis_facade, create_analysis_service
from .fallback import build_explanation, build_fallback_response
from .logging_setup import setup_logging, setup_logging_from_config
from .models import (
    AIResponse,
    AnalysisResult,
    Event,
    MatchedPattern,
    ProviderConfig,
    ValidationResult,
)
from .protocol import AIProviderProtocol
from .providers import BaseProvider
from .registry import ProviderRegistry
from .service import AnalysisService

__version__ = "0.1.0"

__all__ = [
    # Models
    "AIResponse",
    "AnalysisResult",
    "Event",
    "MatchedPattern",
    "ProviderConfig",
    "ValidationResult",
    # Providers
    "AIProviderProtocol",
    "BaseProvider",
    "ProviderRegistry",
    # Dispatch
    "AnalysisService",
    "AnalysisFacade",
    "error_response",
    "build_explanation",
    "build_fallback_response",
    # Factory & config
    "create_analysis_service",
    "create_analysis_facade",
    "LoggingConfig",
    "PodmortemConfig",
    "ResilienceConfig",
    "get_config",
    "load_config",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    # Exceptions
    "PodmortemError",
    "InvalidRequestError",
    "RegistryError",
    "AnalysisError",
    "UnknownProviderError",
    "ProviderTransientError",
    "ProviderTimeoutError",
    "ProviderPermanentError",
    "CircuitOpenError",
]
