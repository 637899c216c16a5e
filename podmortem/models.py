"""
podmortem/models.py - Domain data model

Analysis results flowing in from the pattern-matching phase, provider
configuration, and the explanation responses flowing back out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MatchedPattern:
    """Failure pattern matched against a log line. Severity is an opaque string."""

    id: Optional[str] = None
    severity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "severity": self.severity}


@dataclass(frozen=True)
class Event:
    """A scored log event, optionally tagged with the pattern it matched."""

    score: float
    line_number: int
    matched_pattern: Optional[MatchedPattern] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "lineNumber": self.line_number,
            "matchedPattern": self.matched_pattern.to_dict() if self.matched_pattern else None,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    Output of the log analysis phase.

    Events are kept in the order they appeared in the source log, so the
    first event is the chronologically earliest one.
    """

    analysis_id: str
    events: Tuple[Event, ...] = ()

    def __post_init__(self):
        if self.events is None:
            object.__setattr__(self, "events", ())
        elif not isinstance(self.events, tuple):
            object.__setattr__(self, "events", tuple(self.events))

    @property
    def event_count(self) -> int:
        return len(self.events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysisId": self.analysis_id,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass
class ProviderConfig:
    """Selects a provider; everything in ``options`` is opaque to the dispatcher."""

    provider_id: str
    options: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass
class AIResponse:
    """Explanation produced by a provider or by the fallback explainer."""

    explanation: str
    provider_id: str
    model_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    processing_time: timedelta = field(default_factory=timedelta)
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Keep confidence inside [0, 1] and metadata a real dict."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.metadata is None:
            self.metadata = {}

    @property
    def is_fallback(self) -> bool:
        return self.provider_id == "fallback"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "explanation": self.explanation,
            "providerId": self.provider_id,
            "modelId": self.model_id,
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
            "processingTimeMs": int(self.processing_time.total_seconds() * 1000),
            "confidence": self.confidence,
            "metadata": dict(self.metadata),
        }


@dataclass
class ValidationResult:
    """Outcome of validating a provider configuration."""

    valid: bool
    provider_id: str
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "providerId": self.provider_id,
            "message": self.message,
        }
