"""
podmortem/providers/base.py - Base Provider

Abstract base class for explanation providers. Handles the bookkeeping
every provider needs (identity, processing time, configuration checks)
and delegates the actual backend call to subclasses.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Optional

from ..models import AIResponse, AnalysisResult, ProviderConfig, ValidationResult

logger = logging.getLogger("podmortem.provider")


class BaseProvider(ABC):
    """
    Abstract base class for explanation providers.

    Subclasses implement ``_raw_generate`` and optionally
    ``_validate_options``.
    """

    def __init__(self, provider_id: str, model_id: Optional[str] = None):
        """
        Initialize the base provider.

        Args:
            provider_id: Registry identifier, must be non-empty
            model_id: Default model reported in responses
        """
        if not provider_id:
            raise ValueError("provider_id must be non-empty")
        self.provider_id = provider_id
        self.model_id = model_id

    def get_provider_id(self) -> str:
        return self.provider_id

    @abstractmethod
    async def _raw_generate(
        self,
        analysis_result: AnalysisResult,
        config: ProviderConfig,
    ) -> AIResponse:
        """
        Call the backend. Implemented by subclasses.
        """
        ...

    def _validate_options(self, options: Dict[str, Any]) -> Optional[str]:
        """
        Check provider-specific options.

        Returns:
            An error message, or None when the options are acceptable
        """
        return None

    async def generate_explanation(
        self,
        analysis_result: AnalysisResult,
        config: ProviderConfig,
    ) -> AIResponse:
        """
        Generate an explanation and stamp provider identity and timing.
        """
        start_time = time.monotonic()
        response = await self._raw_generate(analysis_result, config)

        if not response.provider_id:
            response.provider_id = self.provider_id
        if response.model_id is None:
            response.model_id = self.model_id
        if not response.processing_time:
            response.processing_time = timedelta(seconds=time.monotonic() - start_time)

        logger.debug(
            f"Provider {self.provider_id} answered for analysis "
            f"{analysis_result.analysis_id} in {response.processing_time.total_seconds():.3f}s"
        )
        return response

    async def validate_configuration(self, config: ProviderConfig) -> ValidationResult:
        """Default validation: the config must target this provider and pass option checks."""
        if config.provider_id != self.provider_id:
            return ValidationResult(
                valid=False,
                provider_id=self.provider_id,
                message=(
                    f"Configuration targets provider '{config.provider_id}', "
                    f"not '{self.provider_id}'"
                ),
            )

        error = self._validate_options(config.options)
        if error:
            return ValidationResult(valid=False, provider_id=self.provider_id, message=error)

        return ValidationResult(
            valid=True,
            provider_id=self.provider_id,
            message="Configuration is valid",
        )
