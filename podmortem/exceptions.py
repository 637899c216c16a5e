"""
podmortem/exceptions.py - Dispatch exceptions

Typed failures for the provider path so the dispatcher can decide between
retrying, failing fast, and substituting a fallback explanation.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class PodmortemError(Exception):
    """Base exception for podmortem operations."""

    def __init__(
        self,
        message: str,
        recoverable: bool = False,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.request_id = request_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.request_id:
            parts.append(f"[request_id={self.request_id}]")
        return " ".join(parts)


class InvalidRequestError(PodmortemError):
    """Raised when caller input is malformed."""

    def __init__(
        self,
        message: str = "Invalid analysis request",
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, recoverable=False)
        self.errors = errors or []


class RegistryError(PodmortemError):
    """Raised when the provider registry is used outside its lifecycle."""


class AnalysisError(PodmortemError):
    """Base for failures on the provider path."""

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        recoverable: bool = False,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, recoverable=recoverable, request_id=request_id)
        self.provider_id = provider_id


class UnknownProviderError(AnalysisError):
    """Raised when the requested provider id is not registered."""

    def __init__(
        self,
        provider_id: str,
        available_ids: Iterable[str] = (),
        request_id: Optional[str] = None,
    ):
        self.available_ids = sorted(available_ids)
        message = (
            f"Unknown AI provider: {provider_id}. "
            f"Available providers: {self.available_ids}"
        )
        super().__init__(message, provider_id=provider_id, request_id=request_id)


class ProviderTransientError(AnalysisError):
    """Raised for provider failures that may succeed on retry."""

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message, provider_id=provider_id, recoverable=True, request_id=request_id
        )
        self.original_error = original_error


class ProviderTimeoutError(ProviderTransientError):
    """Raised when a single provider attempt exceeds its time bound."""

    def __init__(
        self,
        timeout_seconds: float,
        provider_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        message = f"Provider call timed out after {timeout_seconds}s"
        super().__init__(message, provider_id=provider_id, request_id=request_id)
        self.timeout_seconds = timeout_seconds


class ProviderPermanentError(AnalysisError):
    """Raised for provider failures that will not succeed on retry (e.g. bad config)."""

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message, provider_id=provider_id, recoverable=False, request_id=request_id
        )
        self.original_error = original_error


class CircuitOpenError(AnalysisError):
    """Raised when the circuit breaker for a provider is rejecting calls."""

    def __init__(
        self,
        provider_id: str,
        retry_after_seconds: float = 0.0,
        request_id: Optional[str] = None,
    ):
        message = (
            f"Circuit open for provider '{provider_id}', "
            f"retry after {retry_after_seconds:.1f}s"
        )
        super().__init__(
            message, provider_id=provider_id, recoverable=True, request_id=request_id
        )
        self.retry_after_seconds = retry_after_seconds
